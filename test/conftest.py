from __future__ import annotations

import json
import os
from typing import Any, Dict, Iterator, List, Set, Tuple

from azure.core.exceptions import ResourceNotFoundError
from pytest import fixture

from azurerm_function_app.azure_client import SitesResourceType, WebAppsClient
from azurerm_function_app.config import FunctionAppProviderConfig
from azurerm_function_app.resource.base import ResourceData
from azurerm_function_app.resource.web import AzureFunctionAppResource, FunctionApp
from azurerm_function_app.types import Json

FixtureResourceGroup = "fixture-rg"
FixtureName = "fixture-func"
FixtureId = f"/subscriptions/test/resourceGroups/{FixtureResourceGroup}/providers/Microsoft.Web/sites/{FixtureName}"


def load_json(service: str, name: str) -> Json:
    path = os.path.dirname(__file__) + f"/files/{service}/{name}.json"
    with open(path) as f:
        return json.load(f)  # type: ignore


class InMemoryWebAppsClient(WebAppsClient):
    """
    Keeps all sites in memory and records every call.
    An exception registered in `failures` under the name of an operation is raised when the operation is called.
    """

    def __init__(self) -> None:
        self.sites: Dict[Tuple[str, str], Json] = {}
        self.app_settings: Dict[Tuple[str, str], Json] = {}
        self.connection_strings: Dict[Tuple[str, str], Json] = {}
        self.configs: Dict[Tuple[str, str], Json] = {}
        self.taken_names: Set[str] = set()
        self.calls: List[str] = []
        self.payloads: Dict[str, Any] = {}
        self.failures: Dict[str, Exception] = {}

    def add_fixture_app(self) -> None:
        key = (FixtureResourceGroup, FixtureName)
        self.sites[key] = load_json("web", "sites")
        self.app_settings[key] = load_json("web", "appsettings")
        self.connection_strings[key] = load_json("web", "connectionstrings")
        self.configs[key] = load_json("web", "web")
        self.taken_names.add(FixtureName)

    def _call(self, operation: str, payload: Any = None) -> None:
        self.calls.append(operation)
        if payload is not None:
            self.payloads[operation] = payload
        if (error := self.failures.get(operation)) is not None:
            raise error

    @staticmethod
    def _lookup(store: Dict[Tuple[str, str], Json], resource_group_name: str, name: str) -> Json:
        if (js := store.get((resource_group_name, name))) is None:
            raise ResourceNotFoundError(
                f"The Resource 'Microsoft.Web/sites/{name}' under resource group '{resource_group_name}' was not found."
            )
        return js

    def check_name_availability(self, name: str, resource_type: str = SitesResourceType) -> Json:
        self._call("check_name_availability", {"name": name, "type": resource_type})
        if name in self.taken_names:
            return load_json("web", "checknameavailability")
        return {"nameAvailable": True}

    def create_or_update(self, resource_group_name: str, name: str, site: Json) -> Json:
        self._call("create_or_update", site)
        key = (resource_group_name, name)
        properties = dict(site.get("properties", {}))
        site_config = dict(properties.pop("siteConfig", {}))
        app_settings = site_config.pop("appSettings", [])
        self.sites[key] = {
            "id": f"/subscriptions/test/resourceGroups/{resource_group_name}/providers/Microsoft.Web/sites/{name}",
            "name": name,
            "type": SitesResourceType,
            "kind": site.get("kind"),
            "location": site.get("location"),
            "tags": site.get("tags", {}),
            "properties": {
                "clientAffinityEnabled": True,
                **properties,
                "defaultHostName": f"{name}.azurewebsites.net",
                "outboundIpAddresses": "52.166.78.97,52.166.79.10",
            },
        }
        self.app_settings[key] = {"properties": {s["name"]: s["value"] for s in app_settings}}
        self.configs[key] = {
            "properties": {"alwaysOn": False, "use32BitWorkerProcess": True, "webSocketsEnabled": False, **site_config}
        }
        self.connection_strings.setdefault(key, {"properties": {}})
        self.taken_names.add(name)
        return self.sites[key]

    def get(self, resource_group_name: str, name: str) -> Json:
        self._call("get")
        return self._lookup(self.sites, resource_group_name, name)

    def list_application_settings(self, resource_group_name: str, name: str) -> Json:
        self._call("list_application_settings")
        return self._lookup(self.app_settings, resource_group_name, name)

    def update_application_settings(self, resource_group_name: str, name: str, app_settings: Json) -> Json:
        self._call("update_application_settings", app_settings)
        self._lookup(self.sites, resource_group_name, name)
        self.app_settings[(resource_group_name, name)] = app_settings
        return app_settings

    def list_connection_strings(self, resource_group_name: str, name: str) -> Json:
        self._call("list_connection_strings")
        return self._lookup(self.connection_strings, resource_group_name, name)

    def update_connection_strings(self, resource_group_name: str, name: str, connection_strings: Json) -> Json:
        self._call("update_connection_strings", connection_strings)
        self._lookup(self.sites, resource_group_name, name)
        self.connection_strings[(resource_group_name, name)] = connection_strings
        return connection_strings

    def get_configuration(self, resource_group_name: str, name: str) -> Json:
        self._call("get_configuration")
        return self._lookup(self.configs, resource_group_name, name)

    def update_configuration(self, resource_group_name: str, name: str, site_config: Json) -> Json:
        self._call("update_configuration", site_config)
        existing = self._lookup(self.configs, resource_group_name, name)
        updated = {"properties": {**existing.get("properties", {}), **site_config.get("properties", {})}}
        self.configs[(resource_group_name, name)] = updated
        return updated

    def delete(
        self, resource_group_name: str, name: str, delete_metrics: bool, delete_empty_server_farm: bool
    ) -> None:
        self._call("delete", {"delete_metrics": delete_metrics, "delete_empty_server_farm": delete_empty_server_farm})
        key = (resource_group_name, name)
        self._lookup(self.sites, resource_group_name, name)
        for store in (self.sites, self.app_settings, self.connection_strings, self.configs):
            store.pop(key, None)
        self.taken_names.discard(name)


@fixture
def config() -> FunctionAppProviderConfig:
    return FunctionAppProviderConfig(subscription_id="test")


@fixture
def web_client() -> Iterator[InMemoryWebAppsClient]:
    client = InMemoryWebAppsClient()
    client.add_fixture_app()
    original = WebAppsClient.create
    WebAppsClient.create = staticmethod(lambda *args, **kwargs: client)  # type: ignore
    yield client
    WebAppsClient.create = original  # type: ignore


@fixture
def resource(web_client: InMemoryWebAppsClient) -> AzureFunctionAppResource:
    return AzureFunctionAppResource(web_client)


@fixture
def desired() -> Json:
    return {
        "name": "orders-func",
        "resource_group_name": "orders-rg",
        "location": "West Europe",
        "app_service_plan_id": "/subscriptions/test/resourceGroups/orders-rg/providers/Microsoft.Web/serverfarms/orders-plan",  # noqa: E501
        "storage_connection_string": "DefaultEndpointsProtocol=https;AccountName=ordersstorage;AccountKey=c2VjcmV0",
        "app_settings": {"QUEUE_NAME": "orders"},
        "tags": {"environment": "test"},
    }


@fixture
def existing(resource: AzureFunctionAppResource, web_client: InMemoryWebAppsClient) -> ResourceData:
    # the fixture app as read from the remote side, desired configuration equals the remote state
    data = resource.read(ResourceData(config=FunctionApp.from_api(fixture_api_json()), id=FixtureId))
    assert data.state is not None
    web_client.calls.clear()
    return data


def fixture_api_json() -> Json:
    return {
        "name": FixtureName,
        "resourceGroup": FixtureResourceGroup,
        "site": load_json("web", "sites"),
        "appSettings": load_json("web", "appsettings"),
        "connectionStrings": load_json("web", "connectionstrings"),
        "config": load_json("web", "web"),
    }

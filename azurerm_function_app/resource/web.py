"""
Azure Function App.

A Function App shares the infrastructure of an App Service (Microsoft.Web/sites),
so the same management API is used, restricted to the configuration that applies to functions.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import ClassVar, Dict, Iterator, List, Optional, Tuple, cast

import attrs
from attr import define, field
from azure.core.exceptions import AzureError, ResourceNotFoundError

from azurerm_function_app.azure_client import WebAppsClient
from azurerm_function_app.config import FunctionAppProviderConfig
from azurerm_function_app.errors import (
    ConfigValidationError,
    FunctionAppError,
    FunctionAppNotFoundError,
    NameUnavailableError,
    RemoteCallError,
)
from azurerm_function_app.json_bender import Bend, Bender, F, K, S
from azurerm_function_app.resource.base import (
    AzureResourceId,
    Comparator,
    ResourceData,
    ResourceModel,
    Validator,
    one_of,
    validate_app_service_name,
    validate_resource_group_name,
    validate_tags,
)
from azurerm_function_app.types import Json
from azurerm_function_app.utils import normalize_location

log = logging.getLogger("azurerm.function_app")

AzureWebJobsDashboard = "AzureWebJobsDashboard"
AzureWebJobsStorage = "AzureWebJobsStorage"
FunctionsExtensionVersion = "FUNCTIONS_EXTENSION_VERSION"
WebsiteContentShare = "WEBSITE_CONTENTSHARE"
WebsiteContentAzureFileConnectionString = "WEBSITE_CONTENTAZUREFILECONNECTIONSTRING"
# Derived from other attributes: always sent, never surfaced as user app setting.
ImplicitAppSettings = (
    AzureWebJobsDashboard,
    AzureWebJobsStorage,
    FunctionsExtensionVersion,
    WebsiteContentShare,
    WebsiteContentAzureFileConnectionString,
)

FunctionAppVersions = ["~1", "beta"]
ConnectionStringTypes = [
    "ApiHub",
    "Custom",
    "DocDb",
    "EventHub",
    "MySql",
    "NotificationHub",
    "PostgreSQL",
    "RedisCache",
    "ServiceBus",
    "SQLAzure",
    "SQLServer",
]


def without_implicit_app_settings(app_settings: Dict[str, str]) -> Dict[str, str]:
    return {k: v for k, v in app_settings.items() if k not in ImplicitAppSettings}


def flatten_connection_strings(properties: Dict[str, Json]) -> List[Json]:
    return [
        {"name": name, "value": pair.get("value"), "type": pair.get("type")}
        for name, pair in sorted(properties.items())
    ]


def canonical_connection_string_type(value: str) -> str:
    return next((t for t in ConnectionStringTypes if t.lower() == value.lower()), value)


@define(slots=False)
class FunctionAppSiteConfig:
    kind: ClassVar[str] = "azure_function_app_site_config"
    mapping: ClassVar[Dict[str, Bender]] = {
        "always_on": S("alwaysOn"),
        "use_32_bit_worker_process": S("use32BitWorkerProcess"),
        "websockets_enabled": S("webSocketsEnabled"),
    }
    always_on: Optional[bool] = field(default=False, metadata={'description': '<code>true</code> if Always On is enabled; otherwise, <code>false</code>.'})  # fmt: skip
    use_32_bit_worker_process: Optional[bool] = field(default=True, metadata={'description': '<code>true</code> to use 32-bit worker process; otherwise, <code>false</code>.'})  # fmt: skip
    websockets_enabled: Optional[bool] = field(default=False, metadata={'description': '<code>true</code> if WebSocket is enabled; otherwise, <code>false</code>.'})  # fmt: skip

    def to_api(self) -> Json:
        site_config = {
            "alwaysOn": self.always_on,
            "use32BitWorkerProcess": self.use_32_bit_worker_process,
            "webSocketsEnabled": self.websockets_enabled,
        }
        return {k: v for k, v in site_config.items() if v is not None}


@define(slots=False)
class FunctionAppConnectionString:
    kind: ClassVar[str] = "azure_function_app_connection_string"
    name: str = field(metadata={"description": "The name of the connection string."})
    value: str = field(repr=False, metadata={"description": "The connection string value.", "sensitive": True})
    type: str = field(metadata={"description": "The type of the connection string, e.g. SQLAzure or DocDb."})


def connection_strings_eq(
    left: Optional[List[FunctionAppConnectionString]], right: Optional[List[FunctionAppConnectionString]]
) -> bool:
    # order is not relevant, the remote side stores a map by name
    def by_name(entries: Optional[List[FunctionAppConnectionString]]) -> Dict[str, Tuple[str, str]]:
        return {e.name: (e.value, e.type.lower()) for e in entries or []}

    return by_name(left) == by_name(right)


def validate_connection_strings(key: str, value: List[FunctionAppConnectionString]) -> List[str]:
    errors = []
    valid_type = one_of(ConnectionStringTypes, ignore_case=True)
    seen = set()
    for idx, cs in enumerate(value):
        errors.extend(valid_type(f"{key}.{idx}.type", cs.type))
        if cs.name in seen:
            errors.append(f"{key}.{idx}.name: duplicate connection string name {cs.name!r}")
        seen.add(cs.name)
    return errors


@define(eq=False, slots=False)
class FunctionApp(ResourceModel):
    kind: ClassVar[str] = "azure_function_app"
    mapping: ClassVar[Dict[str, Bender]] = {
        "name": S("name"),
        "resource_group_name": S("resourceGroup"),
        "location": S("site", "location"),
        "app_service_plan_id": S("site", "properties", "serverFarmId"),
        "enabled": S("site", "properties", "enabled"),
        "version": S("appSettings", "properties", FunctionsExtensionVersion),
        "storage_connection_string": S("appSettings", "properties", AzureWebJobsStorage),
        "app_settings": S("appSettings", "properties").or_else(K({})) >> F(without_implicit_app_settings),
        "connection_string": S("connectionStrings", "properties").or_else(K({})) >> F(flatten_connection_strings),
        "tags": S("site", "tags").or_else(K({})),
        "client_affinity_enabled": S("site", "properties", "clientAffinityEnabled"),
        "https_only": S("site", "properties", "httpsOnly"),
        "site_config": S("config", "properties") >> Bend(FunctionAppSiteConfig.mapping),
        "default_hostname": S("site", "properties", "defaultHostName"),
        "outbound_ip_addresses": S("site", "properties", "outboundIpAddresses"),
    }
    validators: ClassVar[Dict[str, Validator]] = {
        "name": validate_app_service_name,
        "resource_group_name": validate_resource_group_name,
        "version": one_of(FunctionAppVersions),
        "tags": validate_tags,
        "connection_string": validate_connection_strings,
    }
    comparators: ClassVar[Dict[str, Comparator]] = {"connection_string": connection_strings_eq}
    name: Optional[str] = field(default=None, metadata={'description': 'The name of the Function App. Has to be globally unique.', 'required': True, 'force_new': True})  # fmt: skip
    resource_group_name: Optional[str] = field(default=None, metadata={'description': 'The resource group the Function App is created in.', 'required': True, 'force_new': True})  # fmt: skip
    location: Optional[str] = field(default=None, converter=normalize_location, metadata={'description': 'The Azure location of the Function App.', 'required': True, 'force_new': True})  # fmt: skip
    app_service_plan_id: Optional[str] = field(default=None, metadata={'description': 'The id of the App Service plan the Function App runs on.', 'required': True, 'force_new': True})  # fmt: skip
    enabled: Optional[bool] = field(default=True, metadata={'description': 'Is the Function App enabled?', 'force_new': True})  # fmt: skip
    version: Optional[str] = field(default="~1", metadata={"description": "The runtime version of the Function App."})
    storage_connection_string: Optional[str] = field(default=None, repr=False, metadata={'description': 'The connection string of the storage account used by the Function App.', 'required': True, 'force_new': True, 'sensitive': True})  # fmt: skip
    app_settings: Optional[Dict[str, str]] = field(factory=dict, metadata={'description': 'Additional application settings.'})  # fmt: skip
    connection_string: Optional[List[FunctionAppConnectionString]] = field(default=None, metadata={'description': 'Connection strings of the Function App.', 'computed': True})  # fmt: skip
    tags: Optional[Dict[str, str]] = field(factory=dict, metadata={"description": "Tags of the resource.", "force_new": True})  # fmt: skip
    client_affinity_enabled: Optional[bool] = field(default=None, metadata={'description': 'Send session affinity cookies, which route client requests in the same session to the same instance.', 'computed': True, 'force_new': True})  # fmt: skip
    https_only: Optional[bool] = field(default=False, metadata={'description': 'Only accept https requests. Http requests are redirected.', 'force_new': True})  # fmt: skip
    site_config: Optional[FunctionAppSiteConfig] = field(default=None, metadata={'description': 'Site configuration of the Function App.', 'computed': True})  # fmt: skip
    default_hostname: Optional[str] = field(default=None, metadata={'description': 'Default hostname of the Function App.', 'read_only': True})  # fmt: skip
    outbound_ip_addresses: Optional[str] = field(default=None, metadata={'description': 'Comma separated IP addresses the Function App uses for outbound connections.', 'read_only': True})  # fmt: skip

    @classmethod
    def from_config(cls, js: Json) -> FunctionApp:
        # site_config is a block with at most one element: accept the block list or the block itself
        if isinstance(site_config := js.get("site_config"), list):
            if len(site_config) > 1:
                raise ConfigValidationError([f"site_config: at most 1 block is allowed, got {len(site_config)}"])
            js = {**js, "site_config": site_config[0] if site_config else None}
        return super().from_config(js)

    def basic_app_settings(self) -> Dict[str, str]:
        storage_connection = self.storage_connection_string or ""
        return {
            AzureWebJobsDashboard: storage_connection,
            AzureWebJobsStorage: storage_connection,
            FunctionsExtensionVersion: self.version or "",
            WebsiteContentShare: f"{self.name}-content",
            WebsiteContentAzureFileConnectionString: storage_connection,
        }

    def app_settings_payload(self) -> Json:
        # implicit settings win over user defined settings with the same name
        return {"properties": {**(self.app_settings or {}), **self.basic_app_settings()}}

    def site_config_payload(self) -> Json:
        return self.site_config.to_api() if self.site_config else {}

    def connection_strings_payload(self) -> Json:
        return {
            "properties": {
                cs.name: {"value": cs.value, "type": canonical_connection_string_type(cs.type)}
                for cs in self.connection_string or []
            }
        }

    def site_envelope(self) -> Json:
        site_config = self.site_config_payload()
        site_config["appSettings"] = [{"name": k, "value": v} for k, v in self.basic_app_settings().items()]
        properties: Json = {
            "serverFarmId": self.app_service_plan_id,
            "enabled": self.enabled,
            "httpsOnly": self.https_only,
            "siteConfig": site_config,
        }
        if self.client_affinity_enabled is not None:
            properties["clientAffinityEnabled"] = self.client_affinity_enabled
        return {
            "kind": "functionapp",
            "location": self.location,
            "tags": self.tags or {},
            "properties": properties,
        }


@contextmanager
def remote_call(operation: str, name: str, message: str) -> Iterator[None]:
    try:
        yield
    except AzureError as e:
        raise RemoteCallError(operation, name, f"{message}: {e}") from e


class AzureFunctionAppResource:
    """
    Create, read, update and delete a Function App.

    Every operation takes the ResourceData of the host framework and reports the outcome in the same object:
    the id is set after creation and cleared after deletion, the state reflects the remote side after a read.
    Calls are issued exactly once; retrying is left to the caller.
    """

    def __init__(self, client: WebAppsClient) -> None:
        self.client = client

    @staticmethod
    def for_config(config: FunctionAppProviderConfig) -> AzureFunctionAppResource:
        return AzureFunctionAppResource(WebAppsClient.create(config, config.credentials()))

    def create(self, data: ResourceData) -> ResourceData:
        app = cast(FunctionApp, data.config)
        name, resource_group = cast(str, app.name), cast(str, app.resource_group_name)
        log.info(f"[Azure] Preparing arguments for Function App {name} creation")

        with remote_call("check_name_availability", name, f"Error checking if the name {name!r} was available"):
            available = self.client.check_name_availability(name)
        if not available.get("nameAvailable"):
            raise NameUnavailableError(name, available.get("message"))

        with remote_call("create_or_update", name, f"Error creating Function App {name!r} in {resource_group!r}"):
            self.client.create_or_update(resource_group, name, app.site_envelope())

        with remote_call("get", name, f"Error retrieving Function App {name!r} in {resource_group!r}"):
            site = self.client.get(resource_group, name)
        if not (resource_id := site.get("id")):
            raise FunctionAppError(f"Cannot read Function App {name!r} (resource group {resource_group!r}) ID")
        data.set_id(resource_id)

        return self.update(data)

    def update(self, data: ResourceData) -> ResourceData:
        rid = data.resource_id
        name, resource_group = rid.extract_part("sites"), rid.resource_group
        app = cast(FunctionApp, data.config)

        # sub resources are updated one by one: a failure leaves the previous updates in place
        if data.has_change("app_settings") or data.has_change("version"):
            with remote_call(
                "update_application_settings", name, f"Error updating Application Settings for Function App {name!r}"
            ):
                self.client.update_application_settings(resource_group, name, app.app_settings_payload())

        if data.has_change("site_config"):
            with remote_call("update_configuration", name, f"Error updating Configuration for Function App {name!r}"):
                self.client.update_configuration(resource_group, name, {"properties": app.site_config_payload()})

        if data.has_change("connection_string"):
            with remote_call(
                "update_connection_strings", name, f"Error updating Connection Strings for Function App {name!r}"
            ):
                self.client.update_connection_strings(resource_group, name, app.connection_strings_payload())

        return self.read(data)

    def read(self, data: ResourceData) -> ResourceData:
        rid = data.resource_id
        name, resource_group = rid.extract_part("sites"), rid.resource_group

        try:
            site = self.client.get(resource_group, name)
        except ResourceNotFoundError:
            log.debug(
                f"[Azure] Function App {name} (resource group {resource_group}) was not found - removing from state"
            )
            data.set_id(None)
            return data
        except AzureError as e:
            raise RemoteCallError("get", name, f"Error making Read request on Function App {name!r}: {e}") from e

        with remote_call(
            "list_application_settings", name, f"Error making Read request on Function App AppSettings {name!r}"
        ):
            app_settings = self.client.list_application_settings(resource_group, name)
        with remote_call(
            "list_connection_strings", name, f"Error making Read request on Function App ConnectionStrings {name!r}"
        ):
            connection_strings = self.client.list_connection_strings(resource_group, name)
        with remote_call(
            "get_configuration", name, f"Error making Read request on Function App Configuration {name!r}"
        ):
            site_config = self.client.get_configuration(resource_group, name)

        data.state = FunctionApp.from_api(
            {
                "name": name,
                "resourceGroup": resource_group,
                "site": site,
                "appSettings": app_settings,
                "connectionStrings": connection_strings,
                "config": site_config,
            }
        )
        return data

    def delete(self, data: ResourceData) -> ResourceData:
        rid = data.resource_id
        name, resource_group = rid.extract_part("sites"), rid.resource_group
        log.info(f"[Azure] Deleting Function App {name} (resource group {resource_group})")

        try:
            # metrics go with the app, a now empty App Service plan stays
            self.client.delete(resource_group, name, delete_metrics=True, delete_empty_server_farm=False)
        except ResourceNotFoundError:
            log.debug(f"[Azure] Function App {name} (resource group {resource_group}) is already gone")
        except AzureError as e:
            raise RemoteCallError("delete", name, f"Error deleting Function App {name!r}: {e}") from e

        data.set_id(None)
        return data

    def import_resource(self, resource_id: str) -> ResourceData:
        AzureResourceId.parse(resource_id).extract_part("sites")
        data = self.read(ResourceData(config=FunctionApp(), id=resource_id))
        if data.state is None:
            raise FunctionAppNotFoundError(f"Cannot import non-existent Function App {resource_id}")
        # the imported state becomes the configuration, so nothing is changed right after the import
        data.config = attrs.evolve(data.state)
        return data

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, TypeVar

from azure.core.exceptions import ResourceNotFoundError
from azure.core.polling import LROPoller
from azure.mgmt.web import WebSiteManagementClient
from azure.mgmt.web.models import (
    ConnectionStringDictionary,
    Site,
    SiteConfigResource,
    StringDictionary,
)

from azurerm_function_app.config import AzureCredentials, FunctionAppProviderConfig
from azurerm_function_app.errors import OperationTimeoutError
from azurerm_function_app.types import Json

log = logging.getLogger("azurerm.function_app")

SitesResourceType = "Microsoft.Web/sites"
T = TypeVar("T")


class WebAppsClient(ABC):
    """
    The remote management API of Microsoft.Web/sites as used by the Function App resource.
    All payloads are ARM REST json: camelCase keys, with the resource properties in a `properties` envelope.
    A missing resource is reported with `azure.core.exceptions.ResourceNotFoundError`.
    """

    @abstractmethod
    def check_name_availability(self, name: str, resource_type: str = SitesResourceType) -> Json:
        pass

    @abstractmethod
    def create_or_update(self, resource_group_name: str, name: str, site: Json) -> Json:
        """Create or update the site and block until the long running operation is done."""

    @abstractmethod
    def get(self, resource_group_name: str, name: str) -> Json:
        pass

    @abstractmethod
    def list_application_settings(self, resource_group_name: str, name: str) -> Json:
        pass

    @abstractmethod
    def update_application_settings(self, resource_group_name: str, name: str, app_settings: Json) -> Json:
        pass

    @abstractmethod
    def list_connection_strings(self, resource_group_name: str, name: str) -> Json:
        pass

    @abstractmethod
    def update_connection_strings(self, resource_group_name: str, name: str, connection_strings: Json) -> Json:
        pass

    @abstractmethod
    def get_configuration(self, resource_group_name: str, name: str) -> Json:
        pass

    @abstractmethod
    def update_configuration(self, resource_group_name: str, name: str, site_config: Json) -> Json:
        pass

    @abstractmethod
    def delete(
        self, resource_group_name: str, name: str, delete_metrics: bool, delete_empty_server_farm: bool
    ) -> None:
        pass

    @staticmethod
    def __create_web_apps_client(config: FunctionAppProviderConfig, credential: AzureCredentials) -> WebAppsClient:
        return WebSiteManagementWebAppsClient(config, credential)

    create = __create_web_apps_client


class WebSiteManagementWebAppsClient(WebAppsClient):
    def __init__(
        self,
        config: FunctionAppProviderConfig,
        credential: AzureCredentials,
        web_client: Optional[WebSiteManagementClient] = None,
    ) -> None:
        self.config = config
        self.credential = credential
        self.web_client = web_client or WebSiteManagementClient(credential, config.subscription_id)

    def check_name_availability(self, name: str, resource_type: str = SitesResourceType) -> Json:
        available = self.web_client.check_name_availability(name=name, type=resource_type)
        return available.serialize(keep_readonly=True)  # type: ignore

    def create_or_update(self, resource_group_name: str, name: str, site: Json) -> Json:
        poller = self.web_client.web_apps.begin_create_or_update(
            resource_group_name, name, Site.deserialize(site), **self._polling_args()
        )
        return self._wait(poller, "create_or_update", name).serialize(keep_readonly=True)  # type: ignore

    def get(self, resource_group_name: str, name: str) -> Json:
        site = self.web_client.web_apps.get(resource_group_name, name)
        # the sites API declares 404 as regular response without body
        if site is None:
            raise ResourceNotFoundError(f"Function App {name} (resource group {resource_group_name}) was not found")
        return site.serialize(keep_readonly=True)  # type: ignore

    def list_application_settings(self, resource_group_name: str, name: str) -> Json:
        settings = self.web_client.web_apps.list_application_settings(resource_group_name, name)
        return settings.serialize(keep_readonly=True)  # type: ignore

    def update_application_settings(self, resource_group_name: str, name: str, app_settings: Json) -> Json:
        updated = self.web_client.web_apps.update_application_settings(
            resource_group_name, name, StringDictionary.deserialize(app_settings)
        )
        return updated.serialize(keep_readonly=True)  # type: ignore

    def list_connection_strings(self, resource_group_name: str, name: str) -> Json:
        connection_strings = self.web_client.web_apps.list_connection_strings(resource_group_name, name)
        return connection_strings.serialize(keep_readonly=True)  # type: ignore

    def update_connection_strings(self, resource_group_name: str, name: str, connection_strings: Json) -> Json:
        updated = self.web_client.web_apps.update_connection_strings(
            resource_group_name, name, ConnectionStringDictionary.deserialize(connection_strings)
        )
        return updated.serialize(keep_readonly=True)  # type: ignore

    def get_configuration(self, resource_group_name: str, name: str) -> Json:
        site_config = self.web_client.web_apps.get_configuration(resource_group_name, name)
        return site_config.serialize(keep_readonly=True)  # type: ignore

    def update_configuration(self, resource_group_name: str, name: str, site_config: Json) -> Json:
        updated = self.web_client.web_apps.create_or_update_configuration(
            resource_group_name, name, SiteConfigResource.deserialize(site_config)
        )
        return updated.serialize(keep_readonly=True)  # type: ignore

    def delete(
        self, resource_group_name: str, name: str, delete_metrics: bool, delete_empty_server_farm: bool
    ) -> None:
        self.web_client.web_apps.delete(
            resource_group_name,
            name,
            delete_metrics=delete_metrics,
            delete_empty_server_farm=delete_empty_server_farm,
        )

    def _polling_args(self) -> Dict[str, Any]:
        if self.config.polling_interval is not None:
            return {"polling_interval": self.config.polling_interval}
        return {}

    def _wait(self, poller: LROPoller[T], operation: str, name: str) -> T:
        timeout = self.config.operation_timeout
        log.debug(f"[Azure] Waiting up to {timeout}s for {operation} of {name} to complete")
        poller.wait(timeout=timeout)
        if not poller.done():
            raise OperationTimeoutError(
                operation, name, f"Operation {operation} of Function App {name!r} did not complete in {timeout}s"
            )
        return poller.result()

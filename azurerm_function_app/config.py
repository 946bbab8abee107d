from __future__ import annotations

from typing import ClassVar, Optional, Union

from attr import define, field
from azure.identity import ClientSecretCredential, DefaultAzureCredential

from azurerm_function_app.json import from_json
from azurerm_function_app.types import Json

AzureCredentials = Union[DefaultAzureCredential, ClientSecretCredential]


@define
class AzureClientSecretConfig:
    kind: ClassVar[str] = "azure_client_secret"
    tenant_id: str = field(metadata={"description": "Azure tenant ID"})
    client_id: str = field(metadata={"description": "Azure client ID"})
    client_secret: str = field(metadata={"description": "Azure client secret"})


@define
class FunctionAppProviderConfig:
    kind: ClassVar[str] = "azure_function_app"

    subscription_id: str = field(metadata={"description": "Subscription that owns the managed Function Apps."})

    client_secret: Optional[AzureClientSecretConfig] = field(
        default=None,
        metadata={
            "description": "If you can not provide access via the environment, define access with a client secret.\nIf no secret is provided the default credential chain will be used.\nSee https://docs.microsoft.com/en-us/azure/developer/python/azure-sdk-authenticate?tabs=cmd#environment-variables for more information."  # noqa: E501
        },
    )

    operation_timeout: int = field(
        default=1800,
        metadata={"description": "Seconds to wait for a long running operation (e.g. create) to complete."},
    )

    polling_interval: Optional[int] = field(
        default=None,
        metadata={
            "description": "Seconds between two polls of a long running operation. "
            "If not defined, the interval requested by the API is used."
        },
    )

    def credentials(self) -> AzureCredentials:
        if cs := self.client_secret:
            return ClientSecretCredential(
                tenant_id=cs.tenant_id,
                client_id=cs.client_id,
                client_secret=cs.client_secret,
            )

        return DefaultAzureCredential(process_timeout=300)

    @staticmethod
    def from_json(js: Json) -> FunctionAppProviderConfig:
        return from_json(js, FunctionAppProviderConfig)

from azurerm_function_app.config import AzureClientSecretConfig, FunctionAppProviderConfig
from azurerm_function_app.resource.base import AzureResourceId, ResourceData
from azurerm_function_app.resource.web import AzureFunctionAppResource, FunctionApp

__title__ = "azurerm-function-app"
__description__ = "Declarative lifecycle of Azure Function Apps."
__version__ = "0.1.0"

__all__ = [
    "AzureClientSecretConfig",
    "AzureFunctionAppResource",
    "AzureResourceId",
    "FunctionApp",
    "FunctionAppProviderConfig",
    "ResourceData",
]

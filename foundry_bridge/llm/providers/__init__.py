from .azure_foundry import API_VERSION, AzureFoundryContentGenerator

__all__ = [
    "API_VERSION",
    "AzureFoundryContentGenerator",
]

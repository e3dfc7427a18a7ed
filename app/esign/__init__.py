# local imports
from .client import ProviderClient, ProviderResponse
from .exceptions import ProviderError, ProviderErrorKind

__all__ = ["ProviderClient", "ProviderResponse", "ProviderError", "ProviderErrorKind"]

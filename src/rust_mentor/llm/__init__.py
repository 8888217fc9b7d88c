from .base import LLMProvider
from .cancellation import CancellationToken, CancelledError
from .gateway import PROVIDER_REGISTRY, LLMGateway

__all__ = [
    "CancellationToken",
    "CancelledError",
    "LLMGateway",
    "LLMProvider",
    "PROVIDER_REGISTRY",
]

from .artifact import Artifact
from .chat import ChatMode, Message
from .preferences import GistConfig, ProviderConfig

__all__ = [
    "Artifact",
    "ChatMode",
    "GistConfig",
    "Message",
    "ProviderConfig",
]

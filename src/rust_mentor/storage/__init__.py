from .folder import FolderSink, WriteOutcome
from .handle_store import HandleStore
from .kv_store import KeyValueStore
from .state import MentorState, StateRepository

__all__ = [
    "FolderSink",
    "HandleStore",
    "KeyValueStore",
    "MentorState",
    "StateRepository",
    "WriteOutcome",
]

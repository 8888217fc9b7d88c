from __future__ import annotations


class MentorError(Exception):
    """Base class for errors raised by the mentor package."""


class ProviderError(MentorError):
    """A model provider call failed (transport, auth, or provider-side error)."""

    def __init__(self, provider: str, message: str):
        super().__init__(f"[{provider}] {message}")
        self.provider = provider


class StructuredOutputError(MentorError):
    """The model reply could not be parsed into the requested structure."""


class UnsupportedOperationError(MentorError):
    """The selected provider does not offer the requested capability."""


class SessionBusyError(MentorError):
    """A chat session already has a generation request in flight."""


class ChapterIndexError(MentorError, IndexError):
    """A chapter index does not exist in the active curriculum."""


class SyncError(MentorError):
    """Mirroring an artifact to an external store failed."""


class RemoteNotFoundError(SyncError):
    """The remembered remote document no longer exists (HTTP 404)."""

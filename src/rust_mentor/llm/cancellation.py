from __future__ import annotations

import threading


class CancelledError(Exception):
    """Raised by `CancellationToken.raise_if_cancelled` once the token is cancelled."""


class CancellationToken:
    """Thread-safe flag a caller flips to abandon an in-flight generation."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CancelledError("generation cancelled")

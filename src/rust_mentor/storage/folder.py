from __future__ import annotations

import logging
import os
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class WriteOutcome(str, Enum):
    SUCCESS = "success"
    DENIED = "denied"
    ERROR = "error"


PermissionPrompt = Callable[[Path], bool]


def _create_folder(folder: Path) -> bool:
    try:
        folder.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        logger.warning("Could not create sync folder %s: %s", folder, exc)
        return False
    return os.access(folder, os.W_OK)


class FolderSink:
    """
    Write capability over a learner-granted folder.

    `write` never raises: permission refusal maps to `WriteOutcome.DENIED` and any
    OS-level failure to `WriteOutcome.ERROR`, so callers can treat mirroring as
    best-effort.
    """

    def __init__(self, folder: Path, request_permission: Optional[PermissionPrompt] = None):
        self.folder = Path(folder)
        self._request_permission = request_permission or _create_folder

    def query_permission(self) -> bool:
        return self.folder.is_dir() and os.access(self.folder, os.W_OK)

    def request_permission(self) -> bool:
        try:
            return bool(self._request_permission(self.folder))
        except OSError as exc:
            logger.warning("Permission request for %s failed: %s", self.folder, exc)
            return False

    def write(self, name: str, content: str) -> WriteOutcome:
        if not self.query_permission() and not self.request_permission():
            logger.warning("Write permission for %s was not granted", self.folder)
            return WriteOutcome.DENIED
        target = self.folder / name
        try:
            target.write_text(content, encoding="utf-8")
        except PermissionError as exc:
            logger.warning("Permission denied writing %s: %s", target, exc)
            return WriteOutcome.DENIED
        except OSError as exc:
            logger.error("Local sync error for %s: %s", target, exc)
            return WriteOutcome.ERROR
        logger.info("Wrote %s", target)
        return WriteOutcome.SUCCESS

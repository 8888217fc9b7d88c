from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

HANDLE_KEY = "syncFolderHandle"


class HandleStore:
    """Single named slot remembering the folder the learner granted for artifact sync."""

    def __init__(self, path: Path, key: str = HANDLE_KEY):
        self.path = path
        self.key = key

    def save(self, folder: Path) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {self.key: str(Path(folder).expanduser().resolve())}
        with self.path.open("w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2)
        logger.info("Remembered sync folder %s", payload[self.key])

    def get(self) -> Optional[Path]:
        if not self.path.exists():
            return None
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Could not read folder handle from %s: %s", self.path, exc)
            return None
        value = payload.get(self.key) if isinstance(payload, dict) else None
        return Path(value) if value else None

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)

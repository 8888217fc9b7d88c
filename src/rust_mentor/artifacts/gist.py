from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from rust_mentor.data_models import GistConfig
from rust_mentor.errors import RemoteNotFoundError, SyncError

logger = logging.getLogger(__name__)

GITHUB_API_VERSION = "2022-11-28"


@dataclass
class GistRef:
    gist_id: str
    html_url: str


class GistClient:
    """Thin wrapper over the GitHub Gists REST endpoints used for artifact backup."""

    def __init__(
        self,
        token: str,
        api_url: str = "https://api.github.com/gists",
        timeout: float = 20.0,
        session: Optional[requests.Session] = None,
    ):
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }

    def _request(self, method: str, url: str, payload: Dict[str, Any]) -> GistRef:
        try:
            response = self.session.request(
                method, url, headers=self._headers(), json=payload, timeout=self.timeout
            )
        except requests.RequestException as exc:
            raise SyncError(f"Gist request failed: {exc}") from exc
        if response.status_code == 404:
            raise RemoteNotFoundError(f"Gist not found at {url}")
        if response.status_code >= 400:
            raise SyncError(f"Gist request failed with HTTP {response.status_code}: {response.text[:300]}")
        try:
            data = response.json()
            return GistRef(gist_id=str(data["id"]), html_url=data.get("html_url") or "")
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            raise SyncError(f"Unexpected gist response from {url}: {response.text[:300]}") from exc

    def create(self, files: Dict[str, str], description: str, public: bool = False) -> GistRef:
        payload = {
            "description": description,
            "public": public,
            "files": {name: {"content": content} for name, content in files.items()},
        }
        return self._request("POST", self.api_url, payload)

    def update(self, gist_id: str, files: Dict[str, str]) -> GistRef:
        payload = {"files": {name: {"content": content} for name, content in files.items()}}
        return self._request("PATCH", f"{self.api_url}/{gist_id}", payload)


class GistSync:
    """
    Upsert artifacts into one private gist remembered in `GistConfig.gist_id`.

    A remembered id is updated in place; a missing id creates a fresh gist and
    remembers it. A 404 on the remembered id means the gist was deleted remotely:
    the stale id is dropped and the write is retried once as a create.
    """

    def __init__(self, client: GistClient, config: GistConfig, description: str = "Rust Mentor knowledge artifacts"):
        self.client = client
        self.config = config
        self.description = description

    def upsert(self, files: Dict[str, str]) -> GistRef:
        if self.config.gist_id:
            try:
                ref = self.client.update(self.config.gist_id, files)
                logger.info("Updated gist %s", ref.gist_id)
                return ref
            except RemoteNotFoundError:
                logger.warning("Remembered gist %s no longer exists; creating a new one", self.config.gist_id)
                self.config.gist_id = None
        ref = self.client.create(files, self.description)
        self.config.gist_id = ref.gist_id
        logger.info("Created gist %s", ref.gist_id)
        return ref

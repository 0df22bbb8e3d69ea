"""
Media Store adapters.

Media files live outside this service.  A message only stores an opaque
reference, and the store resolves it to ``{url, format, size}``.  The
adapter in use is chosen by ``SUPPORT_CHAT["MEDIA_STORE"]``.
"""
from __future__ import annotations

import logging
import threading
from typing import Optional
from urllib.parse import quote

import requests
from django.conf import settings
from django.utils.module_loading import import_string

from .exceptions import ServiceUnavailable

logger = logging.getLogger(__name__)


class MediaStore:
    """Resolve a media reference, returning ``None`` when it does not exist."""

    def resolve(self, media_ref: str) -> Optional[dict]:
        raise NotImplementedError


class HttpMediaStore(MediaStore):
    """Looks references up at ``GET <MEDIA_STORE_URL>/<ref>``."""

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        config = settings.SUPPORT_CHAT
        self.base_url = (base_url or config["MEDIA_STORE_URL"]).rstrip("/")
        self.timeout = timeout or config.get("MEDIA_STORE_TIMEOUT", 5)

    def resolve(self, media_ref: str) -> Optional[dict]:
        try:
            resp = requests.get(f"{self.base_url}/{quote(media_ref, safe='')}", timeout=self.timeout)
            if resp.status_code == 404:
                return None
            resp.raise_for_status()
            body = resp.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Media store lookup failed for %s: %s", media_ref, exc)
            raise ServiceUnavailable("Media store is unavailable") from exc

        data = body.get("data", body) if isinstance(body, dict) else None
        if not data or not data.get("url"):
            return None
        return {
            "url": data["url"],
            "format": data.get("format") or data.get("mimeType") or "",
            "size": data.get("size"),
        }


class InMemoryMediaStore(MediaStore):
    """Process-local store, used by tests and local development."""

    _items: dict[str, dict] = {}
    _lock = threading.Lock()

    @classmethod
    def add(cls, media_ref: str, url: str, format: str = "", size: int | None = None) -> dict:
        item = {"url": url, "format": format, "size": size}
        with cls._lock:
            cls._items[media_ref] = item
        return item

    @classmethod
    def clear(cls) -> None:
        with cls._lock:
            cls._items.clear()

    def resolve(self, media_ref: str) -> Optional[dict]:
        with self._lock:
            item = self._items.get(media_ref)
        return dict(item) if item else None


def get_media_store() -> MediaStore:
    return import_string(settings.SUPPORT_CHAT["MEDIA_STORE"])()

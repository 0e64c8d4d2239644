"""
Published content lookups and the static content server.

Every read goes through two indirections: the collection index maps a logical
path to a content-addressed key, and that key names the stored bytes. A break
at either step is reported as a ``ContentResult`` status, never raised.
"""

from __future__ import annotations

import json
import logging
import mimetypes
import posixpath
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from flask import Response

from edge_router.config import RouterSettings
from edge_router.errors import StoreError

logger = logging.getLogger(__name__)

ASSET_PREFIX = "/assets/"
AUTO_INDEX = ("index.html", "index.htm")
NOT_FOUND_PAGE = "/404.html"

IMMUTABLE_CACHE = "public, max-age=31536000, immutable"
REVALIDATE_CACHE = "public, max-age=0, must-revalidate"

STATIC_EXTENSIONS = frozenset(
    {
        ".js", ".mjs", ".css", ".map", ".json", ".webmanifest", ".txt", ".xml",
        ".png", ".jpg", ".jpeg", ".gif", ".webp", ".avif", ".svg", ".ico",
        ".woff", ".woff2", ".ttf", ".otf", ".eot",
        ".mp4", ".webm", ".mp3", ".wasm", ".pdf", ".vtt",
    }
)


def is_static_asset(path: str) -> bool:
    """True for hashed bundle paths and files with a static extension."""
    if path.startswith(ASSET_PREFIX):
        return True
    ext = posixpath.splitext(path)[1].lower()
    return ext in STATIC_EXTENSIONS


class ContentStatus(Enum):
    FOUND = "found"
    INDEX_MISSING = "index_missing"
    ENTRY_MISSING = "entry_missing"
    BODY_MISSING = "body_missing"
    ERROR = "error"


@dataclass(frozen=True)
class ContentIndexEntry:
    path: str
    key: str
    size: Optional[int] = None
    content_type: Optional[str] = None

    @property
    def digest(self) -> Optional[str]:
        algorithm, _, digest = self.key.partition(":")
        if algorithm != "sha256" or not digest:
            return None
        return digest

    @classmethod
    def from_json(cls, path: str, payload: Any) -> Optional["ContentIndexEntry"]:
        if not isinstance(payload, dict) or not isinstance(payload.get("key"), str):
            return None
        size = payload.get("size")
        return cls(
            path=path,
            key=payload["key"],
            size=size if isinstance(size, int) else None,
            content_type=payload.get("contentType"),
        )


@dataclass(frozen=True)
class ContentResult:
    status: ContentStatus
    entry: Optional[ContentIndexEntry] = None
    body: Optional[bytes] = None

    @property
    def found(self) -> bool:
        return self.status is ContentStatus.FOUND


class ContentIndex:
    """One request's view of a published collection index."""

    def __init__(self, store, settings: RouterSettings, entries: Optional[Dict[str, Any]]):
        self.store = store
        self.settings = settings
        self.entries = entries

    @classmethod
    def load(cls, store, settings: RouterSettings) -> "ContentIndex":
        key = settings.index_key
        try:
            raw = store.get(key)
        except StoreError as e:
            logger.error(f"Content index read failed for {key}: {e}")
            return cls(store, settings, None)
        if raw is None:
            logger.warning(f"Content index {key} not found")
            return cls(store, settings, None)
        try:
            entries = json.loads(raw)
        except (UnicodeDecodeError, ValueError) as e:
            logger.error(f"Content index {key} is not valid JSON: {e}")
            return cls(store, settings, None)
        if not isinstance(entries, dict):
            logger.error(f"Content index {key} is not a JSON object")
            return cls(store, settings, None)
        return cls(store, settings, entries)

    @property
    def available(self) -> bool:
        return self.entries is not None

    def entry(self, path: str) -> Optional[ContentIndexEntry]:
        if self.entries is None:
            return None
        return ContentIndexEntry.from_json(path, self.entries.get(path))

    def read(self, path: str) -> ContentResult:
        if self.entries is None:
            return ContentResult(ContentStatus.INDEX_MISSING)

        entry = self.entry(path)
        if entry is None or entry.digest is None:
            return ContentResult(ContentStatus.ENTRY_MISSING)

        body_key = self.settings.content_key(entry.digest)
        try:
            body = self.store.get(body_key)
        except StoreError as e:
            logger.error(f"Content body read failed for {body_key}: {e}")
            return ContentResult(ContentStatus.ERROR, entry)
        if body is None:
            logger.warning(f"Content body {body_key} missing for {path}")
            return ContentResult(ContentStatus.BODY_MISSING, entry)
        return ContentResult(ContentStatus.FOUND, entry, body)


def load_shell(store, settings: RouterSettings) -> ContentResult:
    """Read the application shell HTML through the content index."""
    return ContentIndex.load(store, settings).read(settings.shell_path)


class StaticContentServer:
    """
    Serve published files out of the content store.

    Paths resolve exactly, with index.html auto-indexing for directories and
    an SPA fallback to the shell for extension-less routes.
    """

    def __init__(self, store, settings: RouterSettings):
        self.store = store
        self.settings = settings

    def _response(self, result: ContentResult, method: str, status: int = 200) -> Response:
        entry = result.entry
        content_type = entry.content_type or mimetypes.guess_type(entry.path)[0] or "application/octet-stream"
        body = b"" if method == "HEAD" else result.body
        response = Response(body, status=status, content_type=content_type)
        if method == "HEAD":
            response.headers["Content-Length"] = str(len(result.body))
        if entry.path.startswith(ASSET_PREFIX):
            response.headers["Cache-Control"] = IMMUTABLE_CACHE
        else:
            response.headers["Cache-Control"] = REVALIDATE_CACHE
        return response

    def serve(self, path: str, method: str = "GET") -> Optional[Response]:
        """
        Serve ``path`` or return None when nothing is published for it.

        Only GET and HEAD are served; other methods fall through.
        """
        if method not in ("GET", "HEAD"):
            return None

        index = ContentIndex.load(self.store, self.settings)
        if not index.available:
            return None

        candidates = [path]
        if path.endswith("/"):
            candidates = [path + name for name in AUTO_INDEX]

        for candidate in candidates:
            result = index.read(candidate)
            if result.found:
                return self._response(result, method)

        if not posixpath.splitext(path)[1]:
            shell = index.read(self.settings.shell_path)
            if shell.found:
                return self._response(shell, method)

        not_found = index.read(NOT_FOUND_PAGE)
        if not_found.found:
            return self._response(not_found, method, status=404)
        return None

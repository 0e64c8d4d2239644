"""
Key-value store access for the identity and content stores.

Both stores are read-only from the router's point of view. Production uses
Redis; tests and local development use ``MemoryKVStore``, which keeps
everything in a Python dictionary.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Mapping, Optional, Protocol

import redis

from edge_router.errors import StoreError, StoreTimeout

logger = logging.getLogger(__name__)


class KVStore(Protocol):
    def get(self, key: str) -> Optional[bytes]:
        ...


class RedisKVStore:
    """Read-only adapter over a binary-mode ``redis.Redis`` client."""

    def __init__(self, client: redis.Redis, name: str = "redis"):
        self.client = client
        self.name = name

    def get(self, key: str) -> Optional[bytes]:
        try:
            value = self.client.get(key)
        except redis.exceptions.TimeoutError as exc:
            raise StoreTimeout(f"{self.name}: read of {key!r} timed out") from exc
        except redis.exceptions.RedisError as exc:
            raise StoreError(f"{self.name}: read of {key!r} failed: {exc}") from exc

        if value is None:
            return None
        if isinstance(value, str):
            return value.encode("utf-8")
        return value

    def ping(self) -> bool:
        return bool(self.client.ping())


class MemoryKVStore:
    """In-memory store used by the test-suite and local development."""

    name = "memory"

    def __init__(self, initial: Optional[Mapping[str, Any]] = None):
        self._data: Dict[str, bytes] = {}
        for key, value in (initial or {}).items():
            self.put(key, value)

    def put(self, key: str, value: Any) -> None:
        if isinstance(value, str):
            value = value.encode("utf-8")
        self._data[key] = bytes(value)

    def put_json(self, key: str, obj: Any) -> None:
        self.put(key, json.dumps(obj))

    def get(self, key: str) -> Optional[bytes]:
        return self._data.get(key)

    def clear(self) -> None:
        self._data.clear()

    def ping(self) -> bool:
        return True


def _build_redis_uri(cfg: Mapping[str, Any]) -> str:
    if cfg.get("REDIS_URL"):
        return str(cfg["REDIS_URL"])

    host = cfg.get("REDIS_HOST", "127.0.0.1")
    port = cfg.get("REDIS_PORT", 6379)
    db = cfg.get("REDIS_DB", 0)
    password = cfg.get("REDIS_PASSWORD")
    if password:
        return f"redis://:{password}@{host}:{port}/{db}"
    return f"redis://{host}:{port}/{db}"


def create_redis_store(url: str, name: str) -> RedisKVStore:
    """
    Create a Redis-backed store.

    The client is created lazily by redis-py; no connection is attempted
    until the first read.
    """
    client = redis.Redis.from_url(
        url,
        decode_responses=False,
        socket_connect_timeout=5,
        socket_timeout=5,
        max_connections=50,
        health_check_interval=30,
    )
    logger.info(f"Redis store '{name}' configured")
    return RedisKVStore(client, name=name)


def create_stores(cfg: Mapping[str, Any]):
    """Build the (names, content) store pair from configuration."""
    names_url = _build_redis_uri(cfg)
    names_store = create_redis_store(names_url, "names")
    content_url = cfg.get("CONTENT_REDIS_URL")
    if content_url and content_url != names_url:
        content_store = create_redis_store(str(content_url), "content")
    else:
        content_store = RedisKVStore(names_store.client, name="content")
    return names_store, content_store


def check_store_health(store: Any) -> dict:
    """
    Check store connectivity.

    Returns:
        Dictionary with health status
    """
    name = getattr(store, "name", "store")
    try:
        store.ping()
        return {"status": "connected", "store": name}
    except Exception as e:
        logger.error(f"Store health check failed for {name}: {e}")
        return {"status": "error", "store": name}

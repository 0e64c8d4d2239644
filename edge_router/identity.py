"""
Identity resolution against the names store.

Usernames map to ``user:<lowercased-name>`` records holding a JSON object
``{"pubkey": ..., "status": ..., "relays": [...]}``. The lookup returns a
``LookupResult`` so that every fallback is an explicit branch for the caller.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from edge_router.errors import StoreError, StoreTimeout

logger = logging.getLogger(__name__)

ACTIVE_STATUS = "active"


class LookupStatus(Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    INACTIVE = "inactive"
    MALFORMED = "malformed"
    ERROR = "error"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class IdentityRecord:
    username: str
    pubkey: Optional[str]
    status: Optional[str] = None
    relays: List[str] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def is_active(self) -> bool:
        return self.status == ACTIVE_STATUS

    @classmethod
    def from_json(cls, username: str, payload: Dict[str, Any]) -> "IdentityRecord":
        relays = payload.get("relays") or []
        if not isinstance(relays, list):
            relays = []
        pubkey = payload.get("pubkey")
        return cls(
            username=payload.get("username") or username,
            pubkey=pubkey if isinstance(pubkey, str) and pubkey else None,
            status=payload.get("status"),
            relays=[r for r in relays if isinstance(r, str)],
            raw=payload,
        )


@dataclass(frozen=True)
class LookupResult:
    status: LookupStatus
    record: Optional[IdentityRecord] = None

    @property
    def found(self) -> bool:
        return self.status is LookupStatus.FOUND


def user_key(name: str) -> str:
    return f"user:{name.lower()}"


def lookup_identity(store, name: str, require_active: bool = False) -> LookupResult:
    """
    Look up an identity record by username.

    Args:
        store: Names store exposing ``get(key) -> Optional[bytes]``
        name: Username or subdomain; normalised to lower case
        require_active: Report non-active records as INACTIVE

    Returns:
        LookupResult; a malformed stored record is MALFORMED, never an exception
    """
    key = user_key(name)
    try:
        raw = store.get(key)
    except StoreTimeout as e:
        logger.warning(f"Identity lookup timed out for {key}: {e}")
        return LookupResult(LookupStatus.TIMEOUT)
    except StoreError as e:
        logger.error(f"Identity lookup failed for {key}: {e}")
        return LookupResult(LookupStatus.ERROR)

    if raw is None:
        return LookupResult(LookupStatus.NOT_FOUND)

    try:
        payload = json.loads(raw)
    except (UnicodeDecodeError, ValueError) as e:
        logger.warning(f"Malformed identity record at {key}: {e}")
        return LookupResult(LookupStatus.MALFORMED)
    if not isinstance(payload, dict):
        logger.warning(f"Identity record at {key} is not a JSON object")
        return LookupResult(LookupStatus.MALFORMED)

    record = IdentityRecord.from_json(name.lower(), payload)
    if require_active and not record.is_active:
        return LookupResult(LookupStatus.INACTIVE, record)
    return LookupResult(LookupStatus.FOUND, record)


def build_discovery_document(name: str, record: IdentityRecord) -> Dict[str, Any]:
    """Build a NIP-05 ``nostr.json`` body mapping ``name`` to the record's key."""
    document: Dict[str, Any] = {"names": {name: record.pubkey}}
    if record.relays:
        document["relays"] = {record.pubkey: list(record.relays)}
    return document

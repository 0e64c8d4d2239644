"""Client for the upstream video/profile REST API."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional
from urllib.parse import quote

import requests

logger = logging.getLogger(__name__)


class UpstreamStatus(Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    HTTP_ERROR = "http_error"
    MALFORMED = "malformed"
    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class UpstreamResult:
    status: UpstreamStatus
    data: Optional[Dict[str, Any]] = None
    status_code: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.status is UpstreamStatus.OK


class UpstreamClient:
    """
    Thin JSON client with a hard timeout on every request.

    Failures are returned as ``UpstreamResult`` values rather than raised;
    callers decide which default applies.
    """

    def __init__(self, base_url: str, timeout: float = 5, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        # Module-level requests.get by default: no cookie jar or pool outlives a call.
        self.http = session or requests

    def _get_json(self, path: str) -> UpstreamResult:
        url = f"{self.base_url}{path}"
        try:
            resp = self.http.get(url, headers={"Accept": "application/json"}, timeout=self.timeout)
        except requests.Timeout:
            logger.warning(f"Upstream request timed out after {self.timeout}s: {url}")
            return UpstreamResult(UpstreamStatus.TIMEOUT)
        except requests.RequestException as e:
            logger.warning(f"Upstream request failed: {url}: {e}")
            return UpstreamResult(UpstreamStatus.NETWORK_ERROR)

        if resp.status_code == 404:
            return UpstreamResult(UpstreamStatus.NOT_FOUND, status_code=404)
        if resp.status_code >= 300:
            logger.warning(f"Upstream returned {resp.status_code} for {url}")
            return UpstreamResult(UpstreamStatus.HTTP_ERROR, status_code=resp.status_code)

        try:
            data = resp.json()
        except ValueError:
            logger.warning(f"Upstream returned a non-JSON body for {url}")
            return UpstreamResult(UpstreamStatus.MALFORMED, status_code=resp.status_code)
        if not isinstance(data, dict):
            return UpstreamResult(UpstreamStatus.MALFORMED, status_code=resp.status_code)

        return UpstreamResult(UpstreamStatus.OK, data=data, status_code=resp.status_code)

    def fetch_video(self, video_id: str) -> UpstreamResult:
        return self._get_json(f"/api/videos/{quote(video_id, safe='')}")

    def fetch_user(self, pubkey: str) -> UpstreamResult:
        return self._get_json(f"/api/users/{quote(pubkey, safe='')}")

"""
Content report passthrough to the Zendesk ticketing backend.

Handles both authenticated (reporter pubkey) and anonymous (reporter email)
reports. The router only validates and forwards; the helpdesk owns the ticket.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Tuple

import requests
from flask import Request, Response, jsonify

from edge_router.audit_logger import get_audit_logger
from edge_router.errors import ReportConfigurationError

logger = logging.getLogger(__name__)
audit_logger = get_audit_logger()

REPORT_PATH = "/api/report"

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

URGENT_REASONS = {"csam", "illegal"}
HIGH_REASONS = {"violence", "harassment", "impersonation"}


def is_allowed_origin(origin: str, cfg: Mapping[str, Any]) -> bool:
    if not origin:
        return False
    if origin in (cfg.get("REPORT_ALLOWED_ORIGINS") or []):
        return True
    pattern = cfg.get("REPORT_PREVIEW_ORIGIN_PATTERN")
    return bool(pattern and re.match(pattern, origin))


def cors_headers(origin: str, cfg: Mapping[str, Any]) -> Dict[str, str]:
    return {
        "Access-Control-Allow-Origin": origin if is_allowed_origin(origin, cfg) else "",
        "Access-Control-Allow-Methods": "POST, OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type",
        "Access-Control-Max-Age": "86400",
    }


def get_priority(reason: str) -> str:
    if reason in URGENT_REASONS:
        return "urgent"
    if reason in HIGH_REASONS:
        return "high"
    return "normal"


def _zendesk_credentials(cfg: Mapping[str, Any]) -> Tuple[str, str, str]:
    subdomain = cfg.get("ZENDESK_SUBDOMAIN")
    email = cfg.get("ZENDESK_API_EMAIL")
    token = cfg.get("ZENDESK_API_TOKEN")
    if not subdomain or not email or not token:
        raise ReportConfigurationError("Missing Zendesk configuration")
    return subdomain, email, token


def _json(body: Dict[str, Any], status: int, headers: Dict[str, str]) -> Response:
    response = jsonify(body)
    response.status_code = status
    response.headers.update(headers)
    return response


def validate_report(body: Any) -> Optional[str]:
    """Return an error message for an unacceptable report body, else None."""
    if not isinstance(body, dict):
        return "Invalid JSON body"
    if not body.get("contentType") or not body.get("reason") or not body.get("timestamp"):
        return "Missing required fields: contentType, reason, timestamp"
    if not body.get("eventId") and not body.get("pubkey"):
        return "Must provide either eventId or pubkey"
    if not body.get("reporterPubkey"):
        email = body.get("reporterEmail")
        if not email:
            return "Must provide either reporterPubkey or reporterEmail"
        if not isinstance(email, str) or not _EMAIL_RE.match(email):
            return "Invalid email format"
    return None


def build_ticket(body: Dict[str, Any], reports_domain: str) -> Dict[str, Any]:
    """Build the Zendesk ticket payload for a validated report."""
    authenticated = bool(body.get("reporterPubkey"))
    if authenticated:
        requester_email = f"{body['reporterPubkey']}@reports.{reports_domain}"
    else:
        requester_email = body["reporterEmail"]

    reason = body["reason"]
    content_type = body["contentType"]

    parts = [f"**Content Type:** {content_type}", f"**Reason:** {reason}"]
    if body.get("eventId"):
        parts.append(f"**Event ID:** {body['eventId']}")
    if body.get("pubkey"):
        parts.append(f"**Reported Pubkey:** {body['pubkey']}")
    if body.get("contentUrl"):
        parts.append(f"**Content URL:** {body['contentUrl']}")
    if body.get("details"):
        parts.append(f"\n**Details:**\n{body['details']}")

    try:
        reported_at = datetime.fromtimestamp(float(body["timestamp"]) / 1000, tz=timezone.utc)
        parts.append(f"\n**Reported at:** {reported_at.isoformat().replace('+00:00', 'Z')}")
    except (TypeError, ValueError, OverflowError, OSError):
        parts.append(f"\n**Reported at:** {body['timestamp']}")

    if authenticated:
        parts.append(f"**Reporter:** Authenticated user ({body['reporterPubkey']})")
    else:
        parts.append(f"**Reporter:** Anonymous ({body['reporterEmail']})")

    return {
        "ticket": {
            "subject": f"[Content Report] {reason} - {content_type}",
            "comment": {"body": "\n".join(parts)},
            "requester": {"email": requester_email},
            "tags": [
                "content-report",
                "client-divine-web",
                f"reason-{reason}",
                f"type-{content_type}",
                "authenticated" if authenticated else "anonymous",
            ],
            "priority": get_priority(reason),
        }
    }


def handle_report(
    request: Request,
    cfg: Mapping[str, Any],
    reports_domain: str,
    timeout: float = 5,
    session: Optional[requests.Session] = None,
) -> Response:
    """
    Validate a content report and create a helpdesk ticket for it.

    Returns:
        204 for preflight, 201 with the ticket id on success, 4xx for
        rejected input, 500 when unconfigured and 502 when the backend fails
    """
    origin = request.headers.get("Origin", "")
    headers = cors_headers(origin, cfg)

    if request.method == "OPTIONS":
        return Response(status=204, headers=headers)
    if request.method != "POST":
        return _json({"error": "Method not allowed"}, 405, {**headers, "Allow": "POST, OPTIONS"})

    if not is_allowed_origin(origin, cfg):
        audit_logger.log_report_rejected("forbidden_origin", origin)
        return _json({"error": "Forbidden"}, 403, headers)

    try:
        subdomain, email, token = _zendesk_credentials(cfg)
    except ReportConfigurationError:
        logger.error("Missing Zendesk configuration environment variables")
        return _json({"error": "Server configuration error"}, 500, headers)

    body = request.get_json(silent=True)
    error = validate_report(body)
    if error:
        audit_logger.log_report_rejected(error, origin)
        return _json({"error": error}, 400, headers)

    ticket = build_ticket(body, reports_domain)
    url = f"https://{subdomain}.zendesk.com/api/v2/tickets.json"
    http = session or requests

    try:
        resp = http.post(url, json=ticket, auth=(f"{email}/token", token), timeout=timeout)
    except requests.RequestException as e:
        logger.error(f"Zendesk API request failed: {e}")
        return _json({"error": "Failed to connect to ticket system"}, 502, headers)

    if resp.status_code >= 300:
        logger.error(f"Zendesk API error: {resp.status_code} {resp.text[:500]}")
        return _json({"error": "Failed to create ticket"}, 502, headers)

    try:
        ticket_id = resp.json()["ticket"]["id"]
    except (ValueError, KeyError, TypeError):
        logger.error("Zendesk API returned an unexpected body")
        return _json({"error": "Failed to create ticket"}, 502, headers)

    audit_logger.log_report_submitted(
        body["reason"], body["contentType"], bool(body.get("reporterPubkey")), ticket_id
    )
    return _json({"success": True, "ticketId": ticket_id}, 201, headers)

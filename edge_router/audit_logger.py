"""
Audit logging for the edge router.

Tenant-relevant events (discovery lookups, profile injections, crawler
previews, report submissions) are written to the ``audit`` logger as
pipe-delimited lines so they can be grepped or shipped as-is.
"""

import logging
from typing import Any, Iterable, Optional

_logger = logging.getLogger("audit")
_audit_logger = None  # Will be initialized by init_audit_logger


def init_audit_logger():
    """Initialize the audit logger."""
    global _audit_logger

    _logger.setLevel(logging.INFO)
    _audit_logger = AuditLogger()
    _logger.debug("Audit logger initialized")
    return _audit_logger


def get_audit_logger():
    """Get the audit logger instance."""
    global _audit_logger

    if _audit_logger is None:
        init_audit_logger()
    return _audit_logger


class AuditLogger:
    """Audit logging interface for routing events."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or _logger

    def log_discovery(self, name: str, form: str, result: str):
        """Log a NIP-05 discovery document lookup."""
        self.logger.info(f"DISCOVERY | name={name} | form={form} | result={result}")

    def log_profile_injection(self, subdomain: str, pubkey: str, degraded: Iterable[str] = ()):
        """Log a subdomain profile page served with an injected payload."""
        degraded = ",".join(degraded) or "none"
        self.logger.info(f"PROFILE_INJECTED | subdomain={subdomain} | pubkey={pubkey[:16]}... | degraded={degraded}")

    def log_profile_fallback(self, subdomain: str, reason: str, location: str):
        """Log a profile request answered with a redirect instead of injection."""
        self.logger.warning(f"PROFILE_FALLBACK | subdomain={subdomain} | reason={reason} | location={location}")

    def log_crawler_preview(self, video_id: str, user_agent: str, source: str):
        """Log an Open Graph preview synthesized for a crawler."""
        self.logger.info(f"CRAWLER_PREVIEW | video={video_id} | source={source} | ua={user_agent[:64]}")

    def log_report_submitted(self, reason: str, content_type: str, authenticated: bool, ticket_id: Any = None):
        """Log a content report forwarded to the ticketing backend."""
        mode = "authenticated" if authenticated else "anonymous"
        self.logger.info(f"REPORT | reason={reason} | type={content_type} | mode={mode} | ticket={ticket_id}")

    def log_report_rejected(self, reason: str, origin: Optional[str] = None):
        """Log a content report refused before reaching the backend."""
        self.logger.warning(f"REPORT_REJECTED | reason={reason} | origin={origin}")

    def log_error(self, error_type: str, error_msg: str, context: Optional[dict] = None):
        """Log application error."""
        msg = f"ERROR | type={error_type} | msg={error_msg}"
        if context:
            msg += f" | context={context}"
        self.logger.error(msg)

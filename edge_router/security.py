"""Proxy, rate limiting and logging setup for the edge router."""
from __future__ import annotations

import logging
from typing import Any, Mapping

from flask import Flask, current_app
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from werkzeug.middleware.proxy_fix import ProxyFix

logger = logging.getLogger(__name__)

# Route decorators bind to this instance at import time; init_security attaches it to an app.
limiter = Limiter(key_func=get_remote_address, strategy="fixed-window")


def report_rate_limit() -> str:
    """Per-client limit for report submissions, read from the active app's config."""
    cfg = current_app.config.get("APP_CONFIG", {})
    return cfg.get("RATE_LIMIT_REPORT") or "10 per minute"


def _configure_logging(cfg: Mapping[str, Any]) -> None:
    log_level = str(cfg.get("LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, log_level, logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    if not any(isinstance(handler, logging.StreamHandler) for handler in root_logger.handlers):
        handler = logging.StreamHandler()
        fmt = (
            "{\"level\":\"%(levelname)s\",\"msg\":\"%(message)s\",\"name\":\"%(name)s\",\"path\":\"%(pathname)s\","
            "\"lineno\":%(lineno)d}"
        )
        handler.setFormatter(logging.Formatter(fmt))
        root_logger.addHandler(handler)


def init_security(app: Flask, cfg: Mapping[str, Any]) -> Limiter:
    """Initialise proxy handling, rate limiting and root logging."""

    # Client IP and scheme come from the load balancer. The tenant host is
    # carried separately in the original-host header, so X-Forwarded-Host is ignored.
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1)  # type: ignore[assignment]

    enabled = cfg.get("RATE_LIMIT_ENABLED") is not False
    app.config["RATELIMIT_ENABLED"] = enabled
    app.config["RATELIMIT_STORAGE_URI"] = cfg.get("RATE_LIMIT_STORAGE_URI") or "memory://"
    limiter.init_app(app)
    if not enabled:
        logger.warning("Rate limiting disabled: report submissions are unthrottled")

    _configure_logging(cfg)
    return limiter

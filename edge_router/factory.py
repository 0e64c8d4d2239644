"""
Application Factory for the edge router

Implements the Flask application factory pattern with:
- Configuration loading and validation
- Store and upstream client construction
- Blueprint registration
- Error handling
"""

import logging
from typing import Any, Optional

from flask import Flask, jsonify

from edge_router.audit_logger import init_audit_logger
from edge_router.config import AppConfig, build_settings, get_config, validate_config
from edge_router.router import EdgeRouter
from edge_router.security import init_security
from edge_router.store import create_stores
from edge_router.upstream import UpstreamClient

logger = logging.getLogger(__name__)


def create_app(
    config_override: Optional[AppConfig] = None,
    names_store: Any = None,
    content_store: Any = None,
    upstream: Optional[UpstreamClient] = None,
) -> Flask:
    """
    Create and configure the Flask application using the factory pattern.

    Args:
        config_override: Optional configuration override for testing
        names_store: Identity store; built from the Redis settings when omitted
        content_store: Published content store; built from the Redis settings when omitted
        upstream: Upstream API client; built from ``UPSTREAM_API_URL`` when omitted

    Returns:
        Configured Flask application instance
    """
    app = Flask(__name__)

    cfg = config_override or get_config()
    validate_config(cfg)
    app.config["APP_CONFIG"] = cfg
    if cfg.get("FLASK_SECRET_KEY"):
        app.secret_key = cfg["FLASK_SECRET_KEY"]

    init_security(app, cfg)

    if names_store is None or content_store is None:
        default_names, default_content = create_stores(cfg)
        names_store = names_store if names_store is not None else default_names
        content_store = content_store if content_store is not None else default_content

    if upstream is None:
        upstream = UpstreamClient(cfg["UPSTREAM_API_URL"], timeout=cfg.get("UPSTREAM_TIMEOUT", 5))

    settings = build_settings(cfg)
    app.extensions["edge_router"] = EdgeRouter(settings, names_store, content_store, upstream, app_config=cfg)
    logger.info(f"Edge router configured for apex domains: {', '.join(settings.apex_domains)}")

    init_audit_logger()

    register_blueprints(app)
    register_error_handlers(app)

    logger.info("Application factory completed")
    return app


def register_blueprints(app: Flask) -> None:
    """Register all application blueprints."""

    # Health checks and metrics
    from edge_router.blueprints.ops import ops_bp
    app.register_blueprint(ops_bp)

    # Rate-limited report submission
    from edge_router.blueprints.report import report_bp
    app.register_blueprint(report_bp)

    # Everything else goes through the router
    from edge_router.blueprints.edge import edge_bp
    app.register_blueprint(edge_bp)


def register_error_handlers(app: Flask) -> None:
    """Register global error handlers."""

    @app.errorhandler(400)
    def bad_request(e):
        return jsonify({"error": "bad_request", "message": "Bad request"}), 400

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "not_found", "message": "Resource not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"error": "method_not_allowed", "message": "Method not allowed"}), 405

    @app.errorhandler(429)
    def rate_limit_exceeded(e):
        return jsonify({"error": "rate_limit_exceeded", "message": str(e.description)}), 429

    @app.errorhandler(500)
    def internal_error(e):
        logger.error(f"Internal server error: {e}", exc_info=True)
        return jsonify({"error": "internal_error", "message": "An unexpected error occurred"}), 500

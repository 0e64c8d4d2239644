"""
Ops Blueprint - Health Checks and Metrics

Provides monitoring endpoints for the edge router. On a tenant subdomain the
same paths belong to the profile page, so those requests are passed through
to the router instead.
"""

import logging
import time
from functools import wraps
from typing import Any, Dict

from flask import Blueprint, Response, current_app, jsonify, request
from prometheus_client import generate_latest

from edge_router.blueprints.edge import get_router
from edge_router.metrics import registry
from edge_router.store import check_store_health

logger = logging.getLogger(__name__)

ops_bp = Blueprint("ops", __name__)


def apex_only(view):
    """Hand tenant subdomain and www requests to the router instead of ``view``."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        router = get_router()
        host = router.classify(request)
        if host.subdomain is not None or host.www_redirect:
            return router.dispatch(request)
        return view(*args, **kwargs)

    return wrapper


@ops_bp.route("/health")
@apex_only
def health():
    """
    Health check endpoint.

    Returns:
        JSON health status with per-store connectivity
    """
    cfg = current_app.config.get("APP_CONFIG", {})
    router = get_router()
    health_status: Dict[str, Any] = {
        "status": "healthy",
        "timestamp": time.time(),
        "service": cfg.get("APP_NAME", "Divine") + " edge router",
        "version": cfg.get("APP_VERSION", "1.0.0"),
        "components": {},
    }

    for name, store in (("names", router.names_store), ("content", router.content_store)):
        component = check_store_health(store)
        health_status["components"][name] = component
        if component["status"] != "connected":
            health_status["status"] = "degraded"

    return jsonify(health_status), 200 if health_status["status"] == "healthy" else 503


@ops_bp.route("/health/live")
@apex_only
def liveness():
    """Liveness probe: 200 while the process is serving."""
    return jsonify({"status": "alive"}), 200


@ops_bp.route("/health/ready")
@apex_only
def readiness():
    """
    Readiness probe - the identity store must answer.

    Returns:
        200 if ready, 503 if not ready
    """
    component = check_store_health(get_router().names_store)
    if component["status"] == "connected":
        return jsonify({"status": "ready"}), 200
    logger.warning("Readiness check failed: identity store unavailable")
    return jsonify({"status": "not_ready"}), 503


@ops_bp.route("/metrics/prometheus")
@apex_only
def metrics_prometheus():
    """Prometheus text format metrics."""
    try:
        metrics = generate_latest(registry)
        return Response(metrics, mimetype="text/plain; version=0.0.4")
    except Exception as e:
        logger.error(f"Prometheus metrics failed: {e}", exc_info=True)
        return Response("# Error generating metrics\n", mimetype="text/plain"), 500

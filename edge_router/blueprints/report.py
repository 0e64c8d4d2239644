"""
Report Blueprint - Content Report Submission

Registers ``/api/report`` explicitly so flask-limiter can throttle it; the
request still flows through the router so stage ordering is unchanged.
"""

from flask import Blueprint, request

from edge_router.blueprints.edge import get_router
from edge_router.report import REPORT_PATH
from edge_router.security import limiter, report_rate_limit

report_bp = Blueprint("report", __name__)


@report_bp.route(REPORT_PATH, methods=["POST", "OPTIONS"])
@limiter.limit(report_rate_limit, methods=["POST"])
def submit_report():
    return get_router().dispatch(request)

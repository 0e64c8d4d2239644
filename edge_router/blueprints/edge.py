"""
Edge Blueprint - Catch-all Routing

Every request that no operational endpoint claims is handed to the
application's ``EdgeRouter``.
"""

import logging

from flask import Blueprint, current_app, request

logger = logging.getLogger(__name__)

edge_bp = Blueprint("edge", __name__)

EDGE_METHODS = ["GET", "HEAD", "POST", "OPTIONS"]


def get_router():
    return current_app.extensions["edge_router"]


@edge_bp.route("/", defaults={"path": ""}, methods=EDGE_METHODS)
@edge_bp.route("/<path:path>", methods=EDGE_METHODS)
def dispatch(path):
    return get_router().dispatch(request)

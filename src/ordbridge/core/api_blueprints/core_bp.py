"""
Core API Blueprint

Liveness and Prometheus scrape endpoints.
"""

from __future__ import annotations

from typing import Any, Tuple

from flask import Blueprint, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from ordbridge.core.api_blueprints.base import get_bridge, success_response

core_bp = Blueprint("core", __name__)


@core_bp.route("/health", methods=["GET"])
def health() -> Tuple[Any, int]:
    bridge = get_bridge()
    return success_response(
        {
            "status": "ok",
            "paused": bridge.config.paused,
            "highest_header_height": bridge.headers.highest_height,
        }
    )


@core_bp.route("/metrics", methods=["GET"])
def metrics() -> Response:
    return Response(generate_latest(), content_type=CONTENT_TYPE_LATEST)

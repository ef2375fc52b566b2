"""
ordbridge API Blueprints

Flask Blueprints exposing a bridge instance over HTTP.

Usage:
    from ordbridge.core.api_blueprints import create_app
    app = create_app(bridge, state_path="bridge-state.json")
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional, Union

from flask import Flask, Response, g, request

from ordbridge.core.api_blueprints.admin_bp import admin_bp
from ordbridge.core.api_blueprints.bridge_bp import bridge_bp
from ordbridge.core.api_blueprints.core_bp import core_bp
from ordbridge.core.api_blueprints.ordinals_bp import ordinals_bp
from ordbridge.core.bridge_persistence import save_bridge

if TYPE_CHECKING:
    from ordbridge.core.bridge import OrdinalsBridge

__all__ = [
    "core_bp",
    "bridge_bp",
    "admin_bp",
    "ordinals_bp",
    "register_blueprints",
    "create_app",
    "ALL_BLUEPRINTS",
]

logger = logging.getLogger(__name__)

ALL_BLUEPRINTS = [core_bp, bridge_bp, admin_bp, ordinals_bp]


def register_blueprints(
    app: Flask,
    bridge: "OrdinalsBridge",
    state_path: Optional[Union[str, Path]] = None,
) -> None:
    """
    Register all API blueprints with the Flask app.

    This function sets up:
    1. A before_request handler to inject context into Flask's g object
    2. An after_request handler that saves the bridge after successful writes
       when ``state_path`` is given
    3. All domain-specific blueprints
    """
    api_context = {
        "bridge": bridge,
        "indexer": bridge.indexer,
        "state_path": state_path,
    }

    @app.before_request
    def inject_api_context() -> None:
        """Inject API context into Flask's g object for blueprint access."""
        g.api_context = api_context

    @app.after_request
    def persist_state(response: Response) -> Response:
        if state_path and request.method in {"POST", "DELETE"} and response.status_code < 400:
            save_bridge(bridge, state_path)
        return response

    for bp in ALL_BLUEPRINTS:
        app.register_blueprint(bp)


def create_app(
    bridge: "OrdinalsBridge",
    state_path: Optional[Union[str, Path]] = None,
    **config: Any,
) -> Flask:
    """Build a Flask app serving ``bridge``."""
    app = Flask("ordbridge")
    app.config.update(config)
    register_blueprints(app, bridge, state_path=state_path)
    logger.info(
        "Bridge API created",
        extra={"event": "api.created", "persistent": state_path is not None},
    )
    return app

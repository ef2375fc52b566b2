"""
Admin API Blueprint

Owner-only configuration endpoints: pause switch, thresholds, operator set
and ownership transfer.
"""

from __future__ import annotations

from typing import Any, Tuple

from flask import Blueprint

from ordbridge.core.api_blueprints.base import (
    get_bridge,
    get_caller,
    get_json_body,
    handle_bridge_errors,
    parse_int,
    require_field,
    success_response,
)
from ordbridge.core.bridge_exceptions import InvalidInputError

admin_bp = Blueprint("bridge_admin", __name__, url_prefix="/bridge/admin")


def _config_payload() -> dict[str, Any]:
    return {"config": get_bridge().config.to_dict()}


@admin_bp.route("/pause", methods=["POST"])
@handle_bridge_errors
def set_paused() -> Tuple[Any, int]:
    body = get_json_body()
    paused = require_field(body, "paused")
    if not isinstance(paused, bool):
        raise InvalidInputError("paused must be a boolean")
    get_bridge().set_paused(paused, caller=get_caller())
    return success_response(_config_payload())


@admin_bp.route("/min-confirmations", methods=["POST"])
@handle_bridge_errors
def set_min_confirmations() -> Tuple[Any, int]:
    body = get_json_body()
    value = parse_int(require_field(body, "value"), "value")
    get_bridge().set_min_confirmations(value, caller=get_caller())
    return success_response(_config_payload())


@admin_bp.route("/min-deposit", methods=["POST"])
@handle_bridge_errors
def set_min_deposit_amount() -> Tuple[Any, int]:
    body = get_json_body()
    value = parse_int(require_field(body, "value"), "value")
    get_bridge().set_min_deposit_amount(value, caller=get_caller())
    return success_response(_config_payload())


@admin_bp.route("/operators", methods=["POST"])
@handle_bridge_errors
def add_operator() -> Tuple[Any, int]:
    body = get_json_body()
    get_bridge().add_operator(str(require_field(body, "operator")), caller=get_caller())
    return success_response(_config_payload())


@admin_bp.route("/operators/<operator>", methods=["DELETE"])
@handle_bridge_errors
def remove_operator(operator: str) -> Tuple[Any, int]:
    get_bridge().remove_operator(operator, caller=get_caller())
    return success_response(_config_payload())


@admin_bp.route("/owner", methods=["POST"])
@handle_bridge_errors
def transfer_ownership() -> Tuple[Any, int]:
    body = get_json_body()
    get_bridge().transfer_ownership(str(require_field(body, "owner")), caller=get_caller())
    return success_response(_config_payload())

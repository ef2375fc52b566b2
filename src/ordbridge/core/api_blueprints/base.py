"""
Base utilities for API Blueprints

Provides common dependencies and helper functions shared across blueprints.
"""

from __future__ import annotations

import functools
import logging
from typing import Any, Callable, Dict, Optional, Tuple

from flask import g, jsonify, request

from ordbridge.core.bridge_exceptions import (
    BridgeError,
    BridgePausedError,
    ConflictError,
    DuplicateRecordError,
    IndexingError,
    InvalidInputError,
    NotFoundError,
    PolicyViolationError,
    RecordNotFoundError,
    StorageInactiveError,
    UnauthorizedError,
    VerificationFailureError,
    get_error_context,
    is_recoverable_error,
)

logger = logging.getLogger(__name__)

CALLER_HEADER = "X-Bridge-Caller"


def get_api_context() -> Dict[str, Any]:
    """Get the API context containing the bridge and its collaborators.

    The context is stored in Flask's g object during request setup.
    """
    return g.get("api_context", {})


def get_bridge() -> Any:
    """Get the bridge instance from context."""
    return get_api_context().get("bridge")


def get_indexer() -> Optional[Any]:
    """Get the record indexer from context."""
    return get_api_context().get("indexer")


def get_caller(default: str = "") -> str:
    """Identity of the caller, taken from the X-Bridge-Caller header."""
    return (request.headers.get(CALLER_HEADER) or "").strip() or default


def success_response(payload: Dict[str, Any], status: int = 200) -> Tuple[Any, int]:
    """Return a success payload with consistent structure."""
    body = {"success": True, **payload}
    return jsonify(body), status


def error_response(
    message: str,
    status: int = 400,
    code: str = "bad_request",
    category: str = "invalid_input",
    recoverable: bool = False,
    context: Optional[Dict[str, Any]] = None,
) -> Tuple[Any, int]:
    """Return an error payload and log it."""
    log = logger.error if status >= 500 else logger.warning
    log(
        "API error %s: %s",
        code,
        message,
        extra={"event": "api.error", "status": status, "path": request.path, **(context or {})},
    )
    body = {
        "success": False,
        "error": message,
        "code": code,
        "category": category,
        "recoverable": recoverable,
    }
    return jsonify(body), status


def status_for_error(exc: BridgeError) -> int:
    """Map a typed bridge error onto an HTTP status code."""
    if isinstance(exc, InvalidInputError):
        return 400
    if isinstance(exc, UnauthorizedError):
        return 403
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, ConflictError):
        return 409
    if isinstance(exc, BridgePausedError):
        return 423
    if isinstance(exc, (PolicyViolationError, VerificationFailureError)):
        return 422
    if isinstance(exc, IndexingError):
        if isinstance(exc, RecordNotFoundError):
            return 404
        if isinstance(exc, DuplicateRecordError):
            return 409
        if isinstance(exc, StorageInactiveError):
            return 423
        return 400
    return 500


def bridge_error_response(exc: BridgeError) -> Tuple[Any, int]:
    context = get_error_context(exc)
    context.pop("error_message", None)
    return error_response(
        exc.message,
        status=status_for_error(exc),
        code=exc.code,
        category=exc.category,
        recoverable=is_recoverable_error(exc),
        context=context,
    )


def handle_bridge_errors(view: Callable[..., Tuple[Any, int]]) -> Callable[..., Tuple[Any, int]]:
    """Turn BridgeError raised by a view into a JSON error response."""

    @functools.wraps(view)
    def wrapper(*args: Any, **kwargs: Any) -> Tuple[Any, int]:
        try:
            return view(*args, **kwargs)
        except BridgeError as exc:
            return bridge_error_response(exc)

    return wrapper


def get_json_body() -> Dict[str, Any]:
    """Parse the request body as a JSON object."""
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise InvalidInputError("Request body must be a JSON object")
    return body


def require_field(body: Dict[str, Any], name: str) -> Any:
    if name not in body:
        raise InvalidInputError(f"Missing field: {name}", details={"field": name})
    return body[name]


def parse_int(value: Any, name: str) -> int:
    """Accept JSON integers and decimal or 0x-prefixed strings."""
    if isinstance(value, bool):
        raise InvalidInputError(f"{name} must be an integer", details={"field": name})
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip(), 0)
        except ValueError:
            pass
    raise InvalidInputError(f"{name} must be an integer", details={"field": name})


def get_int_arg(name: str) -> Optional[int]:
    """Optional integer query parameter."""
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    return parse_int(raw, name)

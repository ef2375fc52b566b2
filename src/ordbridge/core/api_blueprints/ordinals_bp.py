"""
Ordinals API Blueprint

Read and search endpoints over the inscription records produced by finalized
claims, plus direct indexing for inscriptions whose source transaction the
bridge has already verified.
"""

from __future__ import annotations

from typing import Any, Tuple

from flask import Blueprint, request

from ordbridge.core.api_blueprints.base import (
    error_response,
    get_indexer,
    get_int_arg,
    get_json_body,
    handle_bridge_errors,
    parse_int,
    require_field,
    success_response,
)
from ordbridge.core.bridge_exceptions import InvalidInputError
from ordbridge.core.ordinals_indexer import OrdinalsIndexer

ordinals_bp = Blueprint("ordinals", __name__, url_prefix="/ordinals")


def _ordinals_indexer() -> OrdinalsIndexer | None:
    indexer = get_indexer()
    return indexer if isinstance(indexer, OrdinalsIndexer) else None


def _unavailable() -> Tuple[Any, int]:
    return error_response(
        "Inscription indexing is not enabled",
        status=503,
        code="indexer_unavailable",
        category="configuration",
    )


@ordinals_bp.route("/stats", methods=["GET"])
def storage_stats() -> Tuple[Any, int]:
    indexer = _ordinals_indexer()
    if indexer is None:
        return _unavailable()
    return success_response(
        {
            "storage": indexer.storage.get_storage_statistics(),
            "indexer": indexer.get_indexer_status(),
            "search": indexer.storage.get_search_stats(),
        }
    )


@ordinals_bp.route("/status", methods=["GET"])
def system_status() -> Tuple[Any, int]:
    indexer = _ordinals_indexer()
    if indexer is None:
        return _unavailable()
    return success_response({"status": indexer.get_system_status()})


@ordinals_bp.route("/search", methods=["GET"])
@handle_bridge_errors
def search() -> Tuple[Any, int]:
    """Search by exactly one of owner, content_type or block_height."""
    indexer = _ordinals_indexer()
    if indexer is None:
        return _unavailable()
    include_inactive = request.args.get("include_inactive", "false").lower() in {"1", "true", "yes"}
    owner = request.args.get("owner")
    content_type = request.args.get("content_type")
    block_height = get_int_arg("block_height")
    given = [v for v in (owner, content_type, block_height) if v is not None]
    if len(given) != 1:
        raise InvalidInputError("Provide exactly one of owner, content_type or block_height")

    storage = indexer.storage
    if owner is not None:
        records = storage.search_by_owner(owner, include_inactive)
    elif content_type is not None:
        records = storage.search_by_content_type(content_type, include_inactive)
    else:
        records = storage.search_by_block_height(block_height, include_inactive)
    return success_response({"count": len(records), "ordinals": [r.to_dict() for r in records]})


@ordinals_bp.route("/<inscription_id>", methods=["GET"])
def get_ordinal(inscription_id: str) -> Tuple[Any, int]:
    indexer = _ordinals_indexer()
    if indexer is None:
        return _unavailable()
    record = indexer.get_record(inscription_id)
    if record is None:
        return error_response("Inscription not found", status=404, code="record_not_found", category="indexing")
    return success_response({"ordinal": record})


@ordinals_bp.route("/verified", methods=["POST"])
@handle_bridge_errors
def index_verified_ordinal() -> Tuple[Any, int]:
    indexer = _ordinals_indexer()
    if indexer is None:
        return _unavailable()
    body = get_json_body()
    record = indexer.index_bitcoin_verified_ordinal(
        require_field(body, "inscription_id"),
        str(require_field(body, "content_type")),
        parse_int(require_field(body, "content_size"), "content_size"),
        str(require_field(body, "owner")),
        require_field(body, "bitcoin_tx_hash"),
        parse_int(require_field(body, "bitcoin_block_height"), "bitcoin_block_height"),
        body.get("metadata_uri"),
    )
    return success_response({"ordinal": record.to_dict()}, status=201)


@ordinals_bp.route("/batch", methods=["POST"])
@handle_bridge_errors
def batch_index() -> Tuple[Any, int]:
    indexer = _ordinals_indexer()
    if indexer is None:
        return _unavailable()
    items = require_field(get_json_body(), "items")
    if not isinstance(items, list) or not all(isinstance(item, dict) for item in items):
        raise InvalidInputError("items must be a list of objects")
    results = indexer.batch_index_ordinals(items)
    return success_response(
        {
            "indexed": sum(1 for r in results if r.success),
            "failed": sum(1 for r in results if not r.success),
            "results": [r.to_dict() for r in results],
        }
    )

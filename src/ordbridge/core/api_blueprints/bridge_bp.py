"""
Bridge API Blueprint

Header, proof, claim and deposit endpoints under /bridge. Hashes travel as
hex strings in internal byte order; the caller identity comes from the
X-Bridge-Caller header.
"""

from __future__ import annotations

import logging
from typing import Any, Tuple

from flask import Blueprint, request

from ordbridge.core.api_blueprints.base import (
    error_response,
    get_bridge,
    get_caller,
    get_int_arg,
    get_json_body,
    handle_bridge_errors,
    parse_int,
    require_field,
    success_response,
)
from ordbridge.core.bridge import RELAYER
from ordbridge.core.bridge_exceptions import InvalidInputError
from ordbridge.core.deposit_ledger import DepositStatus
from ordbridge.core.verification_pipeline import ClaimStatus

logger = logging.getLogger(__name__)

bridge_bp = Blueprint("bridge", __name__, url_prefix="/bridge")


# ===== Status =====
@bridge_bp.route("/status", methods=["GET"])
def bridge_status() -> Tuple[Any, int]:
    """Configuration, entity counts and statistics."""
    return success_response({"status": get_bridge().get_bridge_status()})


@bridge_bp.route("/log", methods=["GET"])
@handle_bridge_errors
def operation_log() -> Tuple[Any, int]:
    limit = get_int_arg("limit")
    entries = get_bridge().get_operation_log(
        operation=request.args.get("operation") or None,
        subject=request.args.get("subject") or None,
        limit=limit if limit is not None else 100,
    )
    return success_response({"count": len(entries), "entries": [e.to_dict() for e in entries]})


# ===== Headers =====
@bridge_bp.route("/headers", methods=["POST"])
@handle_bridge_errors
def submit_header() -> Tuple[Any, int]:
    body = get_json_body()
    header = get_bridge().submit_header(
        parse_int(require_field(body, "height"), "height"),
        require_field(body, "block_hash"),
        require_field(body, "previous_block_hash"),
        require_field(body, "merkle_root"),
        parse_int(require_field(body, "timestamp"), "timestamp"),
        parse_int(require_field(body, "difficulty"), "difficulty"),
        parse_int(require_field(body, "nonce"), "nonce"),
        caller=get_caller(RELAYER),
    )
    return success_response({"header": header.to_dict()}, status=201)


@bridge_bp.route("/headers/<int:height>/verify", methods=["POST"])
@handle_bridge_errors
def verify_header(height: int) -> Tuple[Any, int]:
    header = get_bridge().verify_header(height, caller=get_caller(RELAYER))
    return success_response({"header": header.to_dict()})


@bridge_bp.route("/headers/<int:height>", methods=["GET"])
def get_header(height: int) -> Tuple[Any, int]:
    header = get_bridge().get_header(height)
    if header is None:
        return error_response(f"No header at height {height}", status=404, code="header_not_found", category="not_found")
    return success_response({"header": header.to_dict()})


# ===== Proofs =====
@bridge_bp.route("/proofs", methods=["POST"])
@handle_bridge_errors
def submit_proof() -> Tuple[Any, int]:
    body = get_json_body()
    merkle_path = require_field(body, "merkle_path")
    if not isinstance(merkle_path, list):
        raise InvalidInputError("merkle_path must be a list of hex hashes")
    proof = get_bridge().submit_proof(
        require_field(body, "transaction_hash"),
        parse_int(require_field(body, "target_height"), "target_height"),
        merkle_path,
        parse_int(require_field(body, "transaction_index"), "transaction_index"),
        caller=get_caller(RELAYER),
    )
    return success_response({"proof": proof.to_dict()}, status=201)


@bridge_bp.route("/proofs/<tx_hash>/verify", methods=["POST"])
@handle_bridge_errors
def verify_proof(tx_hash: str) -> Tuple[Any, int]:
    proof = get_bridge().verify_proof(tx_hash, caller=get_caller(RELAYER))
    return success_response({"proof": proof.to_dict()})


@bridge_bp.route("/proofs/<tx_hash>", methods=["GET"])
@handle_bridge_errors
def get_proof(tx_hash: str) -> Tuple[Any, int]:
    proof = get_bridge().get_proof(tx_hash)
    if proof is None:
        return error_response("No proof for this transaction", status=404, code="proof_not_found", category="not_found")
    return success_response({"proof": proof.to_dict()})


# ===== Claims =====
@bridge_bp.route("/claims", methods=["POST"])
@handle_bridge_errors
def submit_claim() -> Tuple[Any, int]:
    body = get_json_body()
    effects = body.get("claimed_effects", [])
    if not isinstance(effects, list):
        raise InvalidInputError("claimed_effects must be a list of objects")
    claim = get_bridge().submit_claim(
        require_field(body, "transaction_hash"),
        parse_int(require_field(body, "claimed_height"), "claimed_height"),
        effects,
        submitter=get_caller(),
    )
    return success_response({"claim": claim.to_dict(), "status": ClaimStatus.PENDING.value}, status=201)


@bridge_bp.route("/claims/<tx_hash>/finalize", methods=["POST"])
@handle_bridge_errors
def finalize_claim(tx_hash: str) -> Tuple[Any, int]:
    body = get_json_body()
    result = get_bridge().finalize_claim(
        tx_hash,
        parse_int(require_field(body, "confirmations"), "confirmations"),
        caller=get_caller(),
    )
    return success_response({"result": result.to_dict()})


@bridge_bp.route("/claims/<tx_hash>/reject", methods=["POST"])
@handle_bridge_errors
def reject_claim(tx_hash: str) -> Tuple[Any, int]:
    body = request.get_json(silent=True) or {}
    rejected = get_bridge().reject_claim(tx_hash, str(body.get("reason", "")), caller=get_caller())
    return success_response({"rejected": rejected.to_dict()})


@bridge_bp.route("/claims/<tx_hash>", methods=["GET"])
@handle_bridge_errors
def claim_status(tx_hash: str) -> Tuple[Any, int]:
    bridge = get_bridge()
    status = bridge.get_claim_status(tx_hash)
    payload: dict[str, Any] = {"transaction_hash": tx_hash.lower().removeprefix("0x"), "status": status.value}
    if status is ClaimStatus.PENDING:
        payload["claim"] = bridge.get_pending_claim(tx_hash).to_dict()
    elif status is ClaimStatus.VERIFIED:
        payload["transaction"] = bridge.get_verified_transaction(tx_hash).to_dict()
    elif status is ClaimStatus.REJECTED:
        payload["rejected"] = bridge.get_rejected_claim(tx_hash).to_dict()
    return success_response(payload)


@bridge_bp.route("/transactions/<tx_hash>/verified", methods=["GET"])
def transaction_verified(tx_hash: str) -> Tuple[Any, int]:
    return success_response({"verified": get_bridge().is_transaction_verified(tx_hash)})


# ===== Deposits =====
@bridge_bp.route("/deposits", methods=["POST"])
@handle_bridge_errors
def create_deposit() -> Tuple[Any, int]:
    body = get_json_body()
    deposit = get_bridge().create_deposit(
        require_field(body, "transaction_hash"),
        get_caller(),
        parse_int(require_field(body, "amount"), "amount"),
    )
    return success_response({"deposit": deposit.to_dict()}, status=201)


@bridge_bp.route("/deposits/<int:deposit_id>/confirm", methods=["POST"])
@handle_bridge_errors
def confirm_deposit(deposit_id: int) -> Tuple[Any, int]:
    deposit = get_bridge().confirm_deposit(deposit_id, caller=get_caller())
    return success_response({"deposit": deposit.to_dict()})


@bridge_bp.route("/deposits/<int:deposit_id>", methods=["GET"])
def get_deposit(deposit_id: int) -> Tuple[Any, int]:
    deposit = get_bridge().get_deposit(deposit_id)
    if deposit is None:
        return error_response(
            f"Deposit {deposit_id} not found", status=404, code="deposit_not_found", category="not_found"
        )
    return success_response({"deposit": deposit.to_dict()})


@bridge_bp.route("/deposits", methods=["GET"])
@handle_bridge_errors
def list_deposits() -> Tuple[Any, int]:
    raw_status = request.args.get("status")
    try:
        status = DepositStatus(raw_status) if raw_status else None
    except ValueError:
        raise InvalidInputError(f"Unknown deposit status {raw_status!r}") from None
    deposits = get_bridge().list_deposits(depositor=request.args.get("depositor") or None, status=status)
    return success_response({"count": len(deposits), "deposits": [d.to_dict() for d in deposits]})

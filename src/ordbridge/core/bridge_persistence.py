"""
JSON snapshot persistence for a bridge instance.

Snapshots are written atomically (temp file + os.replace) and loaded without
re-running verification: the file is trusted state written by this process.
"""

from __future__ import annotations

import json
import logging
import os
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

from ordbridge.core.bridge import OrdinalsBridge
from ordbridge.core.bridge_config import BridgeConfig
from ordbridge.core.bridge_exceptions import CorruptedStateError
from ordbridge.core.deposit_ledger import DepositRecord
from ordbridge.core.indexer_interface import RecordIndexer
from ordbridge.core.merkle_proof_store import InclusionProof
from ordbridge.core.operation_log import BridgeStatistics
from ordbridge.core.ordinals_indexer import OrdinalsIndexer
from ordbridge.core.ordinals_storage import InscriptionRecord, OrdinalsStorage
from ordbridge.core.spv_header_store import BlockHeader
from ordbridge.core.verification_pipeline import PendingClaim, RejectedClaim, VerifiedTransaction

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1

PathLike = Union[str, Path]


def snapshot_bridge(bridge: OrdinalsBridge) -> Dict[str, Any]:
    """Serialize all bridge-owned state into JSON-compatible data."""
    with bridge.lock:
        payload: Dict[str, Any] = {
            "version": SNAPSHOT_VERSION,
            "config": bridge.config.to_dict(),
            "headers": [header.to_dict() for header in bridge.headers],
            "highest_height": bridge.headers.highest_height,
            "proofs": [proof.to_dict() for proof in bridge.proofs.proofs.values()],
            "pending_claims": [claim.to_dict() for claim in bridge.pipeline.pending.values()],
            "verified_transactions": [tx.to_dict() for tx in bridge.pipeline.verified.values()],
            "rejected_claims": [claim.to_dict() for claim in bridge.pipeline.rejected.values()],
            "deposits": [deposit.to_dict() for deposit in bridge.deposits.list_deposits()],
            "next_deposit_id": bridge.deposits.next_deposit_id,
            "statistics": bridge.stats.to_dict(),
            "operation_log": bridge.operation_log.to_list(),
        }
        storage = getattr(bridge.indexer, "storage", None)
        if isinstance(storage, OrdinalsStorage):
            payload["ordinals"] = {
                "active": storage.is_contract_active(),
                "records": storage.to_list(),
            }
        return payload


def save_bridge(bridge: OrdinalsBridge, path: PathLike) -> None:
    """Persist bridge state to disk atomically."""
    state_path = Path(path)
    state_path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = state_path.with_name(state_path.name + ".tmp")
    # saves share one temp path
    with bridge.lock:
        payload = snapshot_bridge(bridge)
        with open(tmp_path, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2, sort_keys=True)
        os.replace(tmp_path, state_path)
    logger.debug(
        "Bridge state saved to %s",
        state_path,
        extra={"event": "bridge.state_saved", "headers": len(payload["headers"])},
    )


def restore_bridge(
    data: Dict[str, Any],
    indexer: Optional[RecordIndexer] = None,
    clock: Callable[[], float] = time.time,
) -> OrdinalsBridge:
    """Rebuild a bridge from :func:`snapshot_bridge` output."""
    if data.get("version") != SNAPSHOT_VERSION:
        raise CorruptedStateError(
            "Unsupported bridge snapshot version",
            details={"version": data.get("version")},
        )
    try:
        config = BridgeConfig.from_dict(data["config"])
        if indexer is None:
            storage = OrdinalsStorage(clock=clock)
            ordinals = data.get("ordinals") or {}
            for item in ordinals.get("records", []):
                storage.restore(InscriptionRecord.from_dict(item))
            if not ordinals.get("active", True):
                storage.set_contract_active(False)
            indexer = OrdinalsIndexer(storage)

        bridge = OrdinalsBridge(config=config, indexer=indexer, clock=clock)
        if isinstance(indexer, OrdinalsIndexer):
            indexer.bind_verifier(bridge.is_transaction_verified)

        for item in data.get("headers", []):
            bridge.headers.restore(BlockHeader.from_dict(item))
        bridge.headers.highest_height = max(
            bridge.headers.highest_height, int(data.get("highest_height", 0))
        )
        for item in data.get("proofs", []):
            bridge.proofs.restore(InclusionProof.from_dict(item))
        for item in data.get("pending_claims", []):
            claim = PendingClaim.from_dict(item)
            bridge.pipeline.pending[claim.transaction_hash] = claim
        for item in data.get("verified_transactions", []):
            tx = VerifiedTransaction.from_dict(item)
            bridge.pipeline.verified[tx.transaction_hash] = tx
        for item in data.get("rejected_claims", []):
            rejected = RejectedClaim.from_dict(item)
            bridge.pipeline.rejected[rejected.transaction_hash] = rejected
        for item in data.get("deposits", []):
            bridge.deposits.restore(DepositRecord.from_dict(item))
        bridge.deposits.next_deposit_id = max(
            bridge.deposits.next_deposit_id, int(data.get("next_deposit_id", 1))
        )
        restored_stats = BridgeStatistics.from_dict(data.get("statistics", {}))
        for name, value in restored_stats.to_dict().items():
            setattr(bridge.stats, name, value)
        bridge.operation_log.restore(data.get("operation_log", []))
    except (KeyError, ValueError, TypeError) as exc:
        raise CorruptedStateError(
            "Bridge snapshot is malformed",
            details={"error_type": type(exc).__name__, "error": str(exc)},
        ) from exc
    return bridge


def load_bridge(
    path: PathLike,
    config: Optional[BridgeConfig] = None,
    indexer: Optional[RecordIndexer] = None,
    clock: Callable[[], float] = time.time,
) -> OrdinalsBridge:
    """
    Load bridge state from disk.

    A missing file yields a fresh bridge built from ``config`` with an
    inscription indexer attached. A file that cannot be decoded raises
    CorruptedStateError.
    """
    state_path = Path(path)
    if not state_path.exists():
        if indexer is None:
            indexer = OrdinalsIndexer(OrdinalsStorage(clock=clock))
        bridge = OrdinalsBridge(config=config, indexer=indexer, clock=clock)
        if isinstance(indexer, OrdinalsIndexer):
            indexer.bind_verifier(bridge.is_transaction_verified)
        return bridge
    try:
        with open(state_path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except (OSError, json.JSONDecodeError) as exc:
        logger.error("Failed to load bridge state", exc_info=exc)
        raise CorruptedStateError(
            f"Cannot read bridge state from {state_path}",
            details={"path": str(state_path)},
        ) from exc
    if not isinstance(data, dict):
        raise CorruptedStateError("Bridge snapshot must be a JSON object")
    return restore_bridge(data, indexer=indexer, clock=clock)

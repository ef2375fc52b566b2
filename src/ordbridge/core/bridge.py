"""
OrdinalsBridge: the single entry point for all bridge state.

Owns the header store, proof store, claim pipeline, deposit ledger,
configuration, statistics and audit log of one bridge instance. Every public
operation runs under one re-entrant lock, so each call is applied in full
before the next one is observed.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, TypeVar

from ordbridge.core import bridge_metrics
from ordbridge.core.bridge_config import BridgeConfig
from ordbridge.core.bridge_exceptions import BridgeError, InvalidInputError
from ordbridge.core.deposit_ledger import DepositLedger, DepositRecord, DepositStatus
from ordbridge.core.hash_utils import HashLike, parse_hash32
from ordbridge.core.indexer_interface import NullIndexer, RecordIndexer
from ordbridge.core.merkle_proof_store import InclusionProof, MerkleProofStore
from ordbridge.core.operation_log import BridgeStatistics, OperationLog, OperationLogEntry
from ordbridge.core.spv_header_store import BlockHeader, SPVHeaderStore
from ordbridge.core.verification_pipeline import (
    ClaimStatus,
    FinalizationResult,
    PendingClaim,
    RejectedClaim,
    TransactionVerificationPipeline,
    VerifiedTransaction,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

RELAYER = "relayer"


class OrdinalsBridge:
    """Cross-chain verification bridge for one source chain."""

    def __init__(
        self,
        config: Optional[BridgeConfig] = None,
        indexer: Optional[RecordIndexer] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or BridgeConfig()
        self.indexer: RecordIndexer = indexer or NullIndexer()
        self.clock = clock
        self.stats = BridgeStatistics()
        self.operation_log = OperationLog(clock=clock)
        self.headers = SPVHeaderStore(pow_limit_bits=self.config.pow_limit_bits)
        self.proofs = MerkleProofStore(
            self.headers, max_path_length=self.config.max_merkle_path_length, clock=clock
        )
        self.pipeline = TransactionVerificationPipeline(
            self.proofs, self.config, self.indexer, self.operation_log, self.stats, clock=clock
        )
        self.deposits = DepositLedger(
            self.pipeline, self.config, self.operation_log, self.stats, clock=clock
        )
        self._lock = threading.RLock()

    @property
    def lock(self) -> threading.RLock:
        """The critical section guarding this bridge's state."""
        return self._lock

    def _run(self, operation: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        with self._lock:
            try:
                return fn(*args, **kwargs)
            except BridgeError as exc:
                bridge_metrics.record_rejection(operation, exc.code)
                logger.info(
                    "%s rejected: %s",
                    operation,
                    exc.message,
                    extra={"event": "bridge.call_rejected", "operation": operation, "code": exc.code},
                )
                raise

    # ===== Headers =====
    def submit_header(
        self,
        height: int,
        block_hash: HashLike,
        previous_block_hash: HashLike,
        merkle_root: HashLike,
        timestamp: int,
        difficulty: int,
        nonce: int,
        *,
        caller: str = RELAYER,
    ) -> BlockHeader:
        def _submit() -> BlockHeader:
            header = self.headers.submit_header(
                height, block_hash, previous_block_hash, merkle_root, timestamp, difficulty, nonce
            )
            self.stats.increment("headers_submitted")
            self.operation_log.append(
                "submit_header", caller, str(height), {"block_hash": header.block_hash.hex()}
            )
            return header

        return self._run("submit_header", _submit)

    def verify_header(self, height: int, *, caller: str = RELAYER) -> BlockHeader:
        def _verify() -> BlockHeader:
            header = self.headers.verify_header(height)
            self.stats.increment("headers_verified")
            self.operation_log.append("verify_header", caller, str(height))
            return header

        return self._run("verify_header", _verify)

    def get_header(self, height: int) -> Optional[BlockHeader]:
        with self._lock:
            return self.headers.get_header(height)

    # ===== Proofs =====
    def submit_proof(
        self,
        transaction_hash: HashLike,
        target_height: int,
        merkle_path: Sequence[HashLike],
        transaction_index: int,
        *,
        caller: str = RELAYER,
    ) -> InclusionProof:
        def _submit() -> InclusionProof:
            proof = self.proofs.submit_proof(transaction_hash, target_height, merkle_path, transaction_index)
            self.stats.increment("proofs_submitted")
            self.operation_log.append(
                "submit_proof",
                caller,
                proof.transaction_hash.hex(),
                {"target_height": target_height, "depth": len(proof.merkle_path)},
            )
            return proof

        return self._run("submit_proof", _submit)

    def verify_proof(self, transaction_hash: HashLike, *, caller: str = RELAYER) -> InclusionProof:
        def _verify() -> InclusionProof:
            proof = self.proofs.verify_proof(transaction_hash)
            self.stats.increment("proofs_verified")
            self.operation_log.append("verify_proof", caller, proof.transaction_hash.hex())
            return proof

        return self._run("verify_proof", _verify)

    def get_proof(self, transaction_hash: HashLike) -> Optional[InclusionProof]:
        with self._lock:
            return self.proofs.get_proof(parse_hash32(transaction_hash, "transaction_hash"))

    # ===== Claims =====
    def submit_claim(
        self,
        transaction_hash: HashLike,
        claimed_height: int,
        claimed_effects: Sequence[Mapping[str, Any]],
        *,
        submitter: str,
    ) -> PendingClaim:
        return self._run(
            "submit_claim",
            self.pipeline.submit_claim,
            transaction_hash,
            claimed_height,
            claimed_effects,
            submitter=submitter,
        )

    def finalize_claim(self, transaction_hash: HashLike, confirmations: int, *, caller: str) -> FinalizationResult:
        return self._run(
            "finalize_claim", self.pipeline.finalize_claim, transaction_hash, confirmations, caller=caller
        )

    def reject_claim(self, transaction_hash: HashLike, reason: str, *, caller: str) -> RejectedClaim:
        return self._run("reject_claim", self.pipeline.reject_claim, transaction_hash, reason, caller=caller)

    def get_claim_status(self, transaction_hash: HashLike) -> ClaimStatus:
        with self._lock:
            return self.pipeline.get_claim_status(parse_hash32(transaction_hash, "transaction_hash"))

    def get_pending_claim(self, transaction_hash: HashLike) -> Optional[PendingClaim]:
        with self._lock:
            return self.pipeline.get_pending_claim(parse_hash32(transaction_hash, "transaction_hash"))

    def get_verified_transaction(self, transaction_hash: HashLike) -> Optional[VerifiedTransaction]:
        with self._lock:
            return self.pipeline.get_verified_transaction(parse_hash32(transaction_hash, "transaction_hash"))

    def get_rejected_claim(self, transaction_hash: HashLike) -> Optional[RejectedClaim]:
        with self._lock:
            return self.pipeline.get_rejected_claim(parse_hash32(transaction_hash, "transaction_hash"))

    def is_transaction_verified(self, transaction_hash: HashLike) -> bool:
        try:
            tx_hash = parse_hash32(transaction_hash, "transaction_hash")
        except InvalidInputError:
            return False
        with self._lock:
            return self.pipeline.is_verified(tx_hash)

    # ===== Deposits =====
    def create_deposit(self, transaction_hash: HashLike, depositor: str, amount: int) -> DepositRecord:
        return self._run("create_deposit", self.deposits.create_deposit, transaction_hash, depositor, amount)

    def confirm_deposit(self, deposit_id: int, *, caller: str) -> DepositRecord:
        return self._run("confirm_deposit", self.deposits.confirm_deposit, deposit_id, caller=caller)

    def get_deposit(self, deposit_id: int) -> Optional[DepositRecord]:
        with self._lock:
            return self.deposits.get_deposit(deposit_id)

    def list_deposits(
        self, depositor: Optional[str] = None, status: Optional[DepositStatus] = None
    ) -> List[DepositRecord]:
        with self._lock:
            return self.deposits.list_deposits(depositor=depositor, status=status)

    # ===== Administration =====
    def set_paused(self, paused: bool, *, caller: str) -> None:
        def _set() -> None:
            self.config.require_owner(caller, "set_paused")
            self.config.paused = bool(paused)
            self.operation_log.append("set_paused", caller, "config", {"paused": self.config.paused})
            logger.warning(
                "Bridge %s by %s",
                "paused" if self.config.paused else "unpaused",
                caller,
                extra={"event": "bridge.pause_toggled", "paused": self.config.paused},
            )

        self._run("set_paused", _set)

    def set_min_confirmations(self, value: int, *, caller: str) -> None:
        def _set() -> None:
            self.config.require_owner(caller, "set_min_confirmations")
            previous = self.config.min_confirmations
            self.config.min_confirmations = self.config.validate_min_confirmations(value)
            self.operation_log.append(
                "set_min_confirmations", caller, "config", {"previous": previous, "value": value}
            )

        self._run("set_min_confirmations", _set)

    def set_min_deposit_amount(self, value: int, *, caller: str) -> None:
        def _set() -> None:
            self.config.require_owner(caller, "set_min_deposit_amount")
            previous = self.config.min_deposit_amount
            self.config.min_deposit_amount = self.config.validate_min_deposit_amount(value)
            self.operation_log.append(
                "set_min_deposit_amount", caller, "config", {"previous": previous, "value": value}
            )

        self._run("set_min_deposit_amount", _set)

    def add_operator(self, operator: str, *, caller: str) -> None:
        def _add() -> None:
            self.config.require_owner(caller, "add_operator")
            if not operator:
                raise InvalidInputError("Operator identity is required")
            self.config.operators.add(operator)
            self.operation_log.append("add_operator", caller, operator)

        self._run("add_operator", _add)

    def remove_operator(self, operator: str, *, caller: str) -> None:
        def _remove() -> None:
            self.config.require_owner(caller, "remove_operator")
            self.config.operators.discard(operator)
            self.operation_log.append("remove_operator", caller, operator)

        self._run("remove_operator", _remove)

    def transfer_ownership(self, new_owner: str, *, caller: str) -> None:
        def _transfer() -> None:
            self.config.require_owner(caller, "transfer_ownership")
            if not new_owner:
                raise InvalidInputError("New owner identity is required")
            self.config.owner = new_owner
            self.operation_log.append("transfer_ownership", caller, new_owner)

        self._run("transfer_ownership", _transfer)

    # ===== Status =====
    def get_operation_log(
        self, operation: Optional[str] = None, subject: Optional[str] = None, limit: Optional[int] = None
    ) -> List[OperationLogEntry]:
        with self._lock:
            return self.operation_log.entries(operation=operation, subject=subject, limit=limit)

    def get_bridge_status(self) -> Dict[str, Any]:
        with self._lock:
            deposits = self.deposits.list_deposits()
            return {
                "paused": self.config.paused,
                "owner": self.config.owner,
                "operators": sorted(self.config.operators),
                "min_confirmations": self.config.min_confirmations,
                "min_deposit_amount": self.config.min_deposit_amount,
                "highest_header_height": self.headers.highest_height,
                "headers": len(self.headers),
                "verified_headers": self.headers.verified_count(),
                "proofs": len(self.proofs),
                "verified_proofs": self.proofs.verified_count(),
                "pending_claims": len(self.pipeline.pending),
                "verified_transactions": len(self.pipeline.verified),
                "rejected_claims": len(self.pipeline.rejected),
                "deposits": len(deposits),
                "pending_deposits": sum(1 for d in deposits if d.status is DepositStatus.PENDING),
                "statistics": self.stats.to_dict(),
            }

"""
Pending -> verified lifecycle of claimed source-chain transactions.

A submitter registers a claim (transaction hash, block height and the
effects to apply once proven). An operator finalizes it once the
transaction's inclusion proof is verified and the supplied confirmation
depth meets policy. Finalization promotes the claim to a VerifiedTransaction
and hands each effect, in submission order, to the record indexer. A failing
effect is recorded but never undoes the verification.
"""

from __future__ import annotations

import copy
import dataclasses
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from ordbridge.core.bridge_config import BridgeConfig
from ordbridge.core.bridge_exceptions import (
    AlreadyVerifiedError,
    BridgePausedError,
    ClaimHeightMismatchError,
    ClaimNotFoundError,
    DuplicateClaimError,
    InsufficientConfirmationsError,
    InvalidClaimError,
    ProofNotReadyError,
    TooManyEffectsError,
    get_error_context,
)
from ordbridge.core.hash_utils import HashLike, parse_hash32
from ordbridge.core.indexer_interface import RecordIndexer
from ordbridge.core.merkle_proof_store import MerkleProofStore
from ordbridge.core.operation_log import BridgeStatistics, OperationLog

logger = logging.getLogger(__name__)


class ClaimStatus(str, Enum):
    UNKNOWN = "unknown"
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


@dataclass(frozen=True)
class PendingClaim:
    transaction_hash: bytes
    submitted_at: float
    submitter: str
    claimed_height: int
    claimed_effects: Tuple[Dict[str, Any], ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transaction_hash": self.transaction_hash.hex(),
            "submitted_at": self.submitted_at,
            "submitter": self.submitter,
            "claimed_height": self.claimed_height,
            "claimed_effects": copy.deepcopy(list(self.claimed_effects)),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PendingClaim":
        return cls(
            transaction_hash=bytes.fromhex(data["transaction_hash"]),
            submitted_at=float(data["submitted_at"]),
            submitter=str(data["submitter"]),
            claimed_height=int(data["claimed_height"]),
            claimed_effects=tuple(dict(e) for e in data.get("claimed_effects", [])),
        )


@dataclass(frozen=True)
class VerifiedTransaction:
    transaction_hash: bytes
    claimed_height: int
    confirmations: int
    verified_at: float
    effect_count: int
    is_valid: bool = True
    # Bookkeeping owned by the bridge
    indexed_effects: int = 0
    failed_effects: int = 0
    record_ids: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transaction_hash": self.transaction_hash.hex(),
            "claimed_height": self.claimed_height,
            "confirmations": self.confirmations,
            "verified_at": self.verified_at,
            "effect_count": self.effect_count,
            "is_valid": self.is_valid,
            "indexed_effects": self.indexed_effects,
            "failed_effects": self.failed_effects,
            "record_ids": list(self.record_ids),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "VerifiedTransaction":
        return cls(
            transaction_hash=bytes.fromhex(data["transaction_hash"]),
            claimed_height=int(data["claimed_height"]),
            confirmations=int(data["confirmations"]),
            verified_at=float(data["verified_at"]),
            effect_count=int(data["effect_count"]),
            is_valid=bool(data.get("is_valid", True)),
            indexed_effects=int(data.get("indexed_effects", 0)),
            failed_effects=int(data.get("failed_effects", 0)),
            record_ids=tuple(data.get("record_ids", [])),
        )


@dataclass(frozen=True)
class RejectedClaim:
    transaction_hash: bytes
    claimed_height: int
    reason: str
    rejected_by: str
    rejected_at: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transaction_hash": self.transaction_hash.hex(),
            "claimed_height": self.claimed_height,
            "reason": self.reason,
            "rejected_by": self.rejected_by,
            "rejected_at": self.rejected_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RejectedClaim":
        return cls(
            transaction_hash=bytes.fromhex(data["transaction_hash"]),
            claimed_height=int(data["claimed_height"]),
            reason=str(data["reason"]),
            rejected_by=str(data["rejected_by"]),
            rejected_at=float(data["rejected_at"]),
        )


@dataclass
class EffectFailure:
    effect_index: int
    error_type: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"effect_index": self.effect_index, "error_type": self.error_type, "message": self.message}


@dataclass
class FinalizationResult:
    transaction: VerifiedTransaction
    record_ids: List[str] = field(default_factory=list)
    failures: List[EffectFailure] = field(default_factory=list)

    @property
    def fully_applied(self) -> bool:
        return not self.failures

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transaction": self.transaction.to_dict(),
            "record_ids": list(self.record_ids),
            "failures": [failure.to_dict() for failure in self.failures],
            "fully_applied": self.fully_applied,
        }


class TransactionVerificationPipeline:
    """Owns the pending, verified and rejected claim maps."""

    def __init__(
        self,
        proof_store: MerkleProofStore,
        config: BridgeConfig,
        indexer: RecordIndexer,
        operation_log: OperationLog,
        stats: BridgeStatistics,
        clock: Callable[[], float] = time.time,
    ):
        self.proof_store = proof_store
        self.config = config
        self.indexer = indexer
        self.operation_log = operation_log
        self.stats = stats
        self._clock = clock
        self.pending: dict[bytes, PendingClaim] = {}
        self.verified: dict[bytes, VerifiedTransaction] = {}
        self.rejected: dict[bytes, RejectedClaim] = {}

    # ===== Submission =====
    def submit_claim(
        self,
        transaction_hash: HashLike,
        claimed_height: int,
        claimed_effects: Sequence[Mapping[str, Any]],
        *,
        submitter: str,
    ) -> PendingClaim:
        if self.config.paused:
            raise BridgePausedError("Bridge is paused; claims are not accepted")
        tx_hash = parse_hash32(transaction_hash, "transaction_hash", InvalidClaimError)
        if not isinstance(claimed_height, int) or isinstance(claimed_height, bool) or claimed_height <= 0:
            raise InvalidClaimError(
                "Claimed height must be a positive integer",
                details={"claimed_height": claimed_height},
            )
        if not submitter:
            raise InvalidClaimError("Submitter identity is required")
        if claimed_effects is None or isinstance(claimed_effects, (str, bytes, Mapping)):
            raise InvalidClaimError("Claimed effects must be a sequence of mappings")
        effects = list(claimed_effects)
        if len(effects) > self.config.max_effects_per_claim:
            raise TooManyEffectsError(
                f"Claim carries {len(effects)} effects, maximum is {self.config.max_effects_per_claim}",
                details={"count": len(effects), "max": self.config.max_effects_per_claim},
            )
        for index, effect in enumerate(effects):
            if not isinstance(effect, Mapping):
                raise InvalidClaimError(
                    f"Effect {index} is not a mapping",
                    details={"effect_index": index},
                )
        if tx_hash in self.pending or tx_hash in self.verified:
            raise DuplicateClaimError(
                "Transaction already has a live claim",
                details={"transaction_hash": tx_hash.hex(), "status": self.get_claim_status(tx_hash).value},
            )

        claim = PendingClaim(
            transaction_hash=tx_hash,
            submitted_at=self._clock(),
            submitter=submitter,
            claimed_height=claimed_height,
            claimed_effects=tuple(copy.deepcopy(dict(effect)) for effect in effects),
        )
        self.rejected.pop(tx_hash, None)
        self.pending[tx_hash] = claim
        self.stats.increment("claims_submitted")
        self.operation_log.append(
            "submit_claim",
            submitter,
            tx_hash.hex(),
            {"claimed_height": claimed_height, "effect_count": len(effects)},
        )
        logger.info(
            "Claim submitted for %s at height %s",
            tx_hash.hex(),
            claimed_height,
            extra={"event": "bridge.claim_submitted", "effect_count": len(effects)},
        )
        return claim

    # ===== Finalization =====
    def finalize_claim(
        self,
        transaction_hash: HashLike,
        confirmations: int,
        *,
        caller: str,
    ) -> FinalizationResult:
        self.config.require_operator(caller, "finalize_claim")
        tx_hash = parse_hash32(transaction_hash, "transaction_hash", InvalidClaimError)
        if not isinstance(confirmations, int) or isinstance(confirmations, bool) or confirmations < 0:
            raise InvalidClaimError(
                "Confirmations must be a non-negative integer",
                details={"confirmations": confirmations},
            )
        if tx_hash in self.verified:
            raise AlreadyVerifiedError(
                "Transaction is already verified",
                details={"transaction_hash": tx_hash.hex()},
            )
        claim = self.pending.get(tx_hash)
        if claim is None:
            raise ClaimNotFoundError(
                "No pending claim for this transaction",
                details={"transaction_hash": tx_hash.hex()},
            )
        if confirmations < self.config.min_confirmations:
            raise InsufficientConfirmationsError(
                f"{confirmations} confirmations, {self.config.min_confirmations} required",
                details={"confirmations": confirmations, "required": self.config.min_confirmations},
            )
        proof = self.proof_store.get_proof(tx_hash)
        if proof is None or not proof.verified:
            raise ProofNotReadyError(
                "Inclusion proof is missing or not yet verified",
                details={"transaction_hash": tx_hash.hex(), "proof_submitted": proof is not None},
            )
        if proof.target_height != claim.claimed_height:
            raise ClaimHeightMismatchError(
                "Inclusion proof targets a different block than the claim",
                details={"claimed_height": claim.claimed_height, "proof_height": proof.target_height},
            )

        del self.pending[tx_hash]
        verified = VerifiedTransaction(
            transaction_hash=tx_hash,
            claimed_height=claim.claimed_height,
            confirmations=confirmations,
            verified_at=self._clock(),
            effect_count=len(claim.claimed_effects),
        )
        self.verified[tx_hash] = verified
        self.stats.increment("claims_verified")

        record_ids, failures = self._apply_effects(claim)
        verified = dataclasses.replace(
            verified,
            indexed_effects=len(record_ids),
            failed_effects=len(failures),
            record_ids=tuple(record_ids),
        )
        self.verified[tx_hash] = verified

        self.operation_log.append(
            "finalize_claim",
            caller,
            tx_hash.hex(),
            {
                "confirmations": confirmations,
                "effect_count": verified.effect_count,
                "failed_effects": verified.failed_effects,
            },
        )
        logger.info(
            "Transaction %s verified with %s confirmations",
            tx_hash.hex(),
            confirmations,
            extra={
                "event": "bridge.claim_verified",
                "indexed_effects": verified.indexed_effects,
                "failed_effects": verified.failed_effects,
            },
        )
        return FinalizationResult(transaction=verified, record_ids=record_ids, failures=failures)

    def _apply_effects(self, claim: PendingClaim) -> Tuple[List[str], List[EffectFailure]]:
        """Hand each effect to the indexer; individual failures are collected."""
        record_ids: List[str] = []
        failures: List[EffectFailure] = []
        for index, effect in enumerate(claim.claimed_effects):
            try:
                record_id = self.indexer.index_effect(
                    copy.deepcopy(effect), claim.transaction_hash, claim.claimed_height
                )
            except Exception as exc:  # any collaborator failure is recorded per effect
                logger.exception(
                    "Failed to index effect %s of %s",
                    index,
                    claim.transaction_hash.hex(),
                    extra={"event": "bridge.effect_failed", **get_error_context(exc)},
                )
                failures.append(EffectFailure(index, type(exc).__name__, str(exc)))
                self.stats.increment("effects_failed")
                continue
            record_ids.append(record_id)
            self.stats.increment("effects_indexed")
        return record_ids, failures

    # ===== Rejection =====
    def reject_claim(self, transaction_hash: HashLike, reason: str, *, caller: str) -> RejectedClaim:
        self.config.require_operator(caller, "reject_claim")
        tx_hash = parse_hash32(transaction_hash, "transaction_hash", InvalidClaimError)
        if tx_hash in self.verified:
            raise AlreadyVerifiedError(
                "Verified transactions cannot be rejected",
                details={"transaction_hash": tx_hash.hex()},
            )
        claim = self.pending.get(tx_hash)
        if claim is None:
            raise ClaimNotFoundError(
                "No pending claim for this transaction",
                details={"transaction_hash": tx_hash.hex()},
            )

        del self.pending[tx_hash]
        rejected = RejectedClaim(
            transaction_hash=tx_hash,
            claimed_height=claim.claimed_height,
            reason=reason or "unspecified",
            rejected_by=caller,
            rejected_at=self._clock(),
        )
        self.rejected[tx_hash] = rejected
        self.stats.increment("claims_rejected")
        self.operation_log.append("reject_claim", caller, tx_hash.hex(), {"reason": rejected.reason})
        logger.info(
            "Claim for %s rejected: %s",
            tx_hash.hex(),
            rejected.reason,
            extra={"event": "bridge.claim_rejected"},
        )
        return rejected

    # ===== Readers =====
    def get_claim_status(self, transaction_hash: bytes) -> ClaimStatus:
        if transaction_hash in self.verified:
            return ClaimStatus.VERIFIED
        if transaction_hash in self.pending:
            return ClaimStatus.PENDING
        if transaction_hash in self.rejected:
            return ClaimStatus.REJECTED
        return ClaimStatus.UNKNOWN

    def get_pending_claim(self, transaction_hash: bytes) -> Optional[PendingClaim]:
        return self.pending.get(transaction_hash)

    def get_verified_transaction(self, transaction_hash: bytes) -> Optional[VerifiedTransaction]:
        return self.verified.get(transaction_hash)

    def get_rejected_claim(self, transaction_hash: bytes) -> Optional[RejectedClaim]:
        return self.rejected.get(transaction_hash)

    def is_verified(self, transaction_hash: bytes) -> bool:
        verified = self.verified.get(transaction_hash)
        return verified is not None and verified.is_valid

"""
Bridge-specific exception hierarchy for ordbridge.

Every rejected bridge call raises exactly one of these typed exceptions. The
five category bases let callers tell "try again later" (recoverable policy
errors) apart from malformed requests and structural conflicts.
"""

from __future__ import annotations
from typing import Optional, Any, Dict

import requests


class BridgeError(Exception):
    """Base exception for all bridge errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether the same call may succeed later without changes
        code: Stable machine-readable error code
        category: Taxonomy bucket the error belongs to
    """

    code = "bridge_error"
    category = "bridge_error"
    recoverable = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: Optional[bool] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if recoverable is not None:
            self.recoverable = recoverable


# ==================== Categories ====================


class InvalidInputError(BridgeError):
    """Malformed request: bad hash length, zero height, oversized lists."""
    category = "invalid_input"
    code = "invalid_input"


class NotFoundError(BridgeError):
    """A referenced header, proof, claim or deposit does not exist."""
    category = "not_found"
    code = "not_found"


class ConflictError(BridgeError):
    """Duplicate submission, already verified, or not in the required state."""
    category = "conflict"
    code = "conflict"


class PolicyViolationError(BridgeError):
    """Bridge policy forbids the call (paused, thresholds, authorization)."""
    category = "policy_violation"
    code = "policy_violation"


class VerificationFailureError(BridgeError):
    """Cryptographic or chain-linkage verification failed."""
    category = "verification_failure"
    code = "verification_failure"


# ==================== Invalid input ====================


class InvalidHeaderError(InvalidInputError):
    code = "invalid_header"


class InvalidProofError(InvalidInputError):
    code = "invalid_proof"


class ProofTooLongError(InvalidInputError):
    """Raised when a merkle path exceeds the configured maximum depth."""
    code = "proof_too_long"


class InvalidClaimError(InvalidInputError):
    code = "invalid_claim"


class TooManyEffectsError(InvalidInputError):
    """Raised when a claim carries more effects than the configured bound."""
    code = "too_many_effects"


class InvalidDepositError(InvalidInputError):
    code = "invalid_deposit"


class InvalidConfigError(InvalidInputError):
    """Raised when an administrative setting is out of its allowed range."""
    code = "invalid_config"


# ==================== Not found ====================


class HeaderNotFoundError(NotFoundError):
    code = "header_not_found"


class UnknownHeaderError(NotFoundError):
    """Raised when a proof targets a height with no verified header."""
    code = "unknown_header"


class ProofNotFoundError(NotFoundError):
    code = "proof_not_found"


class ClaimNotFoundError(NotFoundError):
    code = "claim_not_found"


class DepositNotFoundError(NotFoundError):
    code = "deposit_not_found"


# ==================== Conflict ====================


class HeaderAlreadyExistsError(ConflictError):
    code = "header_already_exists"


class HeaderAlreadyVerifiedError(ConflictError):
    code = "header_already_verified"


class ProofAlreadyExistsError(ConflictError):
    code = "proof_already_exists"


class ProofAlreadyVerifiedError(ConflictError):
    code = "proof_already_verified"


class DuplicateClaimError(ConflictError):
    code = "duplicate_claim"


class DuplicateDepositError(ConflictError):
    """Raised when a source transaction already backs a deposit."""
    code = "duplicate_deposit"


class AlreadyVerifiedError(ConflictError):
    """Raised when finalizing a transaction that is already verified."""
    code = "already_verified"


class NotPendingError(ConflictError):
    code = "not_pending"


# ==================== Policy ====================


class BridgePausedError(PolicyViolationError):
    code = "bridge_paused"
    recoverable = True  # Succeeds once the owner unpauses


class BelowThresholdError(PolicyViolationError):
    code = "below_threshold"


class InsufficientConfirmationsError(PolicyViolationError):
    code = "insufficient_confirmations"
    recoverable = True  # More blocks will be mined on top


class UnauthorizedError(PolicyViolationError):
    code = "unauthorized"


class TransactionNotVerifiedError(PolicyViolationError):
    code = "transaction_not_verified"
    recoverable = True


# ==================== Verification ====================


class InvalidProofOfWorkError(VerificationFailureError):
    """Raised when a header hash does not meet its difficulty target."""
    code = "invalid_proof_of_work"


class ChainLinkageError(VerificationFailureError):
    """Raised when a header does not link to its stored neighbours."""
    code = "chain_linkage_mismatch"


class ProofMismatchError(VerificationFailureError):
    """Raised when a recomputed merkle root differs from the header's root."""
    code = "proof_mismatch"


class ProofNotReadyError(VerificationFailureError):
    """Raised when a claim is finalized before its inclusion proof is verified."""
    code = "proof_not_ready"
    recoverable = True


class ClaimHeightMismatchError(VerificationFailureError):
    code = "claim_height_mismatch"


# ==================== Collaborators & storage ====================


class IndexingError(BridgeError):
    """Raised by a record indexer when a single effect cannot be applied."""
    code = "indexing_failed"
    category = "indexing"


class InvalidRecordError(IndexingError):
    """Raised when an effect or record payload is missing fields or malformed."""
    code = "invalid_record"


class InvalidContentTypeError(IndexingError):
    code = "invalid_content_type"


class InvalidSizeRangeError(IndexingError):
    code = "invalid_size_range"


class DuplicateRecordError(IndexingError):
    code = "duplicate_record"


class RecordNotFoundError(IndexingError):
    code = "record_not_found"


class StorageInactiveError(IndexingError):
    """Raised when records are written while storage is switched off."""
    code = "storage_inactive"
    recoverable = True


class BatchTooLargeError(IndexingError):
    code = "batch_too_large"


class ConfigurationError(BridgeError):
    """Raised when environment configuration is missing or invalid."""
    code = "configuration_error"
    category = "configuration"


class CorruptedStateError(BridgeError):
    """Raised when a persisted bridge snapshot cannot be decoded."""
    code = "corrupted_state"
    category = "storage"


# ==================== Utility Functions ====================


def is_recoverable_error(exc: Exception) -> bool:
    """Check if an exception represents a recoverable error.

    Args:
        exc: The exception to check

    Returns:
        True if the call may succeed later without changing its arguments
    """
    if isinstance(exc, BridgeError):
        return exc.recoverable

    recoverable_types = (
        ConnectionError,
        TimeoutError,
        requests.ConnectionError,
        requests.Timeout,
    )
    return isinstance(exc, recoverable_types)


def get_error_context(exc: Exception) -> Dict[str, Any]:
    """Extract error context from an exception for logging.

    Args:
        exc: The exception to extract context from

    Returns:
        Dictionary containing error type, message, and any additional details
    """
    context: Dict[str, Any] = {
        "error_type": type(exc).__name__,
        "error_message": str(exc),
    }

    if isinstance(exc, BridgeError):
        context["code"] = exc.code
        context["category"] = exc.category
        context["recoverable"] = exc.recoverable
        if exc.details:
            context["details"] = exc.details

    return context

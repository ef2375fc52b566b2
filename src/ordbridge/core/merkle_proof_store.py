"""
Inclusion proof store.

Proofs may only target verified headers. Verification recomputes the merkle
root from the transaction hash and sibling path and compares it with the
target header's committed root.
"""

from __future__ import annotations

import dataclasses
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

from ordbridge.core.bridge_config import DEFAULT_MAX_MERKLE_PATH
from ordbridge.core.bridge_exceptions import (
    InvalidProofError,
    ProofAlreadyExistsError,
    ProofAlreadyVerifiedError,
    ProofMismatchError,
    ProofNotFoundError,
    ProofTooLongError,
    UnknownHeaderError,
)
from ordbridge.core.hash_utils import HashLike, parse_hash32
from ordbridge.core.merkle import fold_merkle_path
from ordbridge.core.spv_header_store import SPVHeaderStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InclusionProof:
    transaction_hash: bytes
    target_height: int
    merkle_path: Tuple[bytes, ...]
    transaction_index: int
    submitted_at: float
    verified: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transaction_hash": self.transaction_hash.hex(),
            "target_height": self.target_height,
            "merkle_path": [sibling.hex() for sibling in self.merkle_path],
            "transaction_index": self.transaction_index,
            "submitted_at": self.submitted_at,
            "verified": self.verified,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InclusionProof":
        return cls(
            transaction_hash=bytes.fromhex(data["transaction_hash"]),
            target_height=int(data["target_height"]),
            merkle_path=tuple(bytes.fromhex(s) for s in data["merkle_path"]),
            transaction_index=int(data["transaction_index"]),
            submitted_at=float(data["submitted_at"]),
            verified=bool(data.get("verified", False)),
        )


class MerkleProofStore:
    """Keyed store of inclusion proofs, one per transaction hash."""

    def __init__(
        self,
        header_store: SPVHeaderStore,
        max_path_length: int = DEFAULT_MAX_MERKLE_PATH,
        clock: Callable[[], float] = time.time,
    ):
        self.header_store = header_store
        self.max_path_length = max_path_length
        self._clock = clock
        self.proofs: dict[bytes, InclusionProof] = {}

    def submit_proof(
        self,
        transaction_hash: HashLike,
        target_height: int,
        merkle_path: Sequence[HashLike],
        transaction_index: int,
    ) -> InclusionProof:
        tx_hash = parse_hash32(transaction_hash, "transaction_hash", InvalidProofError)
        if isinstance(merkle_path, (str, bytes, bytearray)) or not merkle_path:
            raise InvalidProofError("Merkle path must be a non-empty sequence of hashes")
        if len(merkle_path) > self.max_path_length:
            raise ProofTooLongError(
                f"Merkle path has {len(merkle_path)} entries, maximum is {self.max_path_length}",
                details={"length": len(merkle_path), "max": self.max_path_length},
            )
        path = tuple(
            parse_hash32(sibling, f"merkle_path[{i}]", InvalidProofError)
            for i, sibling in enumerate(merkle_path)
        )
        if (
            not isinstance(transaction_index, int)
            or isinstance(transaction_index, bool)
            or transaction_index < 0
            or transaction_index >= 1 << len(path)
        ):
            raise InvalidProofError(
                "Transaction index does not fit the merkle path depth",
                details={"transaction_index": transaction_index, "depth": len(path)},
            )
        if self.header_store.get_verified_header(target_height) is None:
            raise UnknownHeaderError(
                f"No verified header at height {target_height}",
                details={"target_height": target_height},
            )
        existing = self.proofs.get(tx_hash)
        if existing is not None and existing.verified:
            raise ProofAlreadyExistsError(
                "A verified proof for this transaction already exists",
                details={"transaction_hash": tx_hash.hex()},
            )

        proof = InclusionProof(
            transaction_hash=tx_hash,
            target_height=target_height,
            merkle_path=path,
            transaction_index=transaction_index,
            submitted_at=self._clock(),
        )
        self.proofs[tx_hash] = proof
        logger.info(
            "Inclusion proof submitted for %s at height %s",
            tx_hash.hex(),
            target_height,
            extra={"event": "bridge.proof_submitted", "depth": len(path), "replaced": existing is not None},
        )
        return proof

    def check_proof(self, transaction_hash: HashLike) -> InclusionProof:
        """Recompute the root for a stored proof; raises unless it matches."""
        tx_hash = parse_hash32(transaction_hash, "transaction_hash", InvalidProofError)
        proof = self.proofs.get(tx_hash)
        if proof is None:
            raise ProofNotFoundError(
                "No proof stored for this transaction",
                details={"transaction_hash": tx_hash.hex()},
            )
        if proof.verified:
            raise ProofAlreadyVerifiedError(
                "Proof is already verified",
                details={"transaction_hash": tx_hash.hex()},
            )
        header = self.header_store.get_verified_header(proof.target_height)
        if header is None:
            raise UnknownHeaderError(
                f"No verified header at height {proof.target_height}",
                details={"target_height": proof.target_height},
            )

        computed = fold_merkle_path(proof.transaction_hash, proof.merkle_path, proof.transaction_index)
        if computed != header.merkle_root:
            logger.warning(
                "Merkle root mismatch for %s",
                tx_hash.hex(),
                extra={"event": "bridge.proof_mismatch", "target_height": proof.target_height},
            )
            raise ProofMismatchError(
                "Recomputed merkle root does not match the header",
                details={
                    "transaction_hash": tx_hash.hex(),
                    "computed_root": computed.hex(),
                    "header_root": header.merkle_root.hex(),
                },
            )
        return proof

    def verify_proof(self, transaction_hash: HashLike) -> InclusionProof:
        proof = self.check_proof(transaction_hash)
        verified = dataclasses.replace(proof, verified=True)
        self.proofs[proof.transaction_hash] = verified
        logger.info(
            "Inclusion proof verified for %s",
            proof.transaction_hash.hex(),
            extra={"event": "bridge.proof_verified", "target_height": proof.target_height},
        )
        return verified

    def get_proof(self, transaction_hash: bytes) -> Optional[InclusionProof]:
        return self.proofs.get(transaction_hash)

    def verified_count(self) -> int:
        return sum(1 for proof in self.proofs.values() if proof.verified)

    def __len__(self) -> int:
        return len(self.proofs)

    def restore(self, proof: InclusionProof) -> None:
        self.proofs[proof.transaction_hash] = proof

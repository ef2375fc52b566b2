"""
SPV header store for the source chain.

Tracks one header per height, a highest-known-height watermark, and the
verification flag that gates inclusion proofs. Verification checks
proof-of-work against the header's compact difficulty and continuity with
the stored neighbours.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional

from ordbridge.core import bridge_metrics
from ordbridge.core.bridge_config import DEFAULT_POW_LIMIT_BITS
from ordbridge.core.bridge_exceptions import (
    ChainLinkageError,
    HeaderAlreadyExistsError,
    HeaderAlreadyVerifiedError,
    HeaderNotFoundError,
    InvalidHeaderError,
    InvalidProofOfWorkError,
)
from ordbridge.core.hash_utils import (
    HashLike,
    compact_to_target,
    hash_to_int,
    parse_hash32,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BlockHeader:
    """Source-chain block header as submitted by a relayer."""
    height: int
    block_hash: bytes
    previous_block_hash: bytes
    merkle_root: bytes
    timestamp: int
    difficulty: int  # compact "bits" encoding
    nonce: int
    verified: bool = False

    @property
    def target(self) -> int:
        return compact_to_target(self.difficulty)

    def meets_target(self) -> bool:
        target = self.target
        return target > 0 and hash_to_int(self.block_hash) <= target

    def to_dict(self) -> Dict[str, Any]:
        return {
            "height": self.height,
            "block_hash": self.block_hash.hex(),
            "previous_block_hash": self.previous_block_hash.hex(),
            "merkle_root": self.merkle_root.hex(),
            "timestamp": self.timestamp,
            "difficulty": self.difficulty,
            "nonce": self.nonce,
            "verified": self.verified,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BlockHeader":
        return cls(
            height=int(data["height"]),
            block_hash=bytes.fromhex(data["block_hash"]),
            previous_block_hash=bytes.fromhex(data["previous_block_hash"]),
            merkle_root=bytes.fromhex(data["merkle_root"]),
            timestamp=int(data["timestamp"]),
            difficulty=int(data["difficulty"]),
            nonce=int(data["nonce"]),
            verified=bool(data.get("verified", False)),
        )


def _require_non_negative_int(value: Any, field: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise InvalidHeaderError(
            f"{field} must be a non-negative integer",
            details={"field": field, "value": value},
        )
    return value


class SPVHeaderStore:
    """Keyed store of source-chain headers, one per height."""

    def __init__(self, pow_limit_bits: int = DEFAULT_POW_LIMIT_BITS):
        self.pow_limit = compact_to_target(pow_limit_bits)
        self.headers: dict[int, BlockHeader] = {}
        self.highest_height = 0

    def submit_header(
        self,
        height: int,
        block_hash: HashLike,
        previous_block_hash: HashLike,
        merkle_root: HashLike,
        timestamp: int,
        difficulty: int,
        nonce: int,
    ) -> BlockHeader:
        """Store an unverified header. Raises on malformed input or an occupied height."""
        if not isinstance(height, int) or isinstance(height, bool) or height <= 0:
            raise InvalidHeaderError("Header height must be a positive integer", details={"height": height})
        header = BlockHeader(
            height=height,
            block_hash=parse_hash32(block_hash, "block_hash", InvalidHeaderError),
            previous_block_hash=parse_hash32(previous_block_hash, "previous_block_hash", InvalidHeaderError),
            merkle_root=parse_hash32(merkle_root, "merkle_root", InvalidHeaderError),
            timestamp=_require_non_negative_int(timestamp, "timestamp"),
            difficulty=_require_non_negative_int(difficulty, "difficulty"),
            nonce=_require_non_negative_int(nonce, "nonce"),
        )
        if height in self.headers:
            raise HeaderAlreadyExistsError(
                f"Header at height {height} already exists",
                details={"height": height},
            )

        self.headers[height] = header
        if height > self.highest_height:
            self.highest_height = height
            bridge_metrics.update_highest_height(height)
        logger.info(
            "Header submitted at height %s",
            height,
            extra={"event": "bridge.header_submitted", "height": height, "block_hash": header.block_hash.hex()},
        )
        return header

    def check_header(self, height: int) -> BlockHeader:
        """
        Run proof-of-work and continuity checks without mutating the store.

        Returns the header that would be marked verified.
        """
        header = self.headers.get(height)
        if header is None:
            raise HeaderNotFoundError(f"No header at height {height}", details={"height": height})
        if header.verified:
            raise HeaderAlreadyVerifiedError(
                f"Header at height {height} is already verified", details={"height": height}
            )

        target = header.target
        if target <= 0 or target > self.pow_limit:
            raise InvalidProofOfWorkError(
                f"Difficulty bits {header.difficulty:#x} encode an invalid target",
                details={"height": height, "difficulty": header.difficulty},
            )
        if not header.meets_target():
            raise InvalidProofOfWorkError(
                f"Header hash at height {height} does not meet its target",
                details={"height": height, "block_hash": header.block_hash.hex()},
            )

        parent = self.headers.get(height - 1)
        if parent is not None and header.previous_block_hash != parent.block_hash:
            raise ChainLinkageError(
                f"Header at height {height} does not link to its parent",
                details={
                    "height": height,
                    "previous_block_hash": header.previous_block_hash.hex(),
                    "parent_block_hash": parent.block_hash.hex(),
                },
            )
        # only a verified child constrains its parent
        child = self.headers.get(height + 1)
        if child is not None and child.verified and child.previous_block_hash != header.block_hash:
            raise ChainLinkageError(
                f"Header at height {height + 1} does not link to height {height}",
                details={"height": height, "child_height": height + 1},
            )
        return header

    def verify_header(self, height: int) -> BlockHeader:
        header = self.check_header(height)
        verified = dataclasses.replace(header, verified=True)
        self.headers[height] = verified
        logger.info(
            "Header verified at height %s",
            height,
            extra={"event": "bridge.header_verified", "height": height},
        )
        return verified

    def get_header(self, height: int) -> Optional[BlockHeader]:
        return self.headers.get(height)

    def get_verified_header(self, height: int) -> Optional[BlockHeader]:
        header = self.headers.get(height)
        return header if header is not None and header.verified else None

    def verified_count(self) -> int:
        return sum(1 for header in self.headers.values() if header.verified)

    def __len__(self) -> int:
        return len(self.headers)

    def __iter__(self) -> Iterator[BlockHeader]:
        return iter(sorted(self.headers.values(), key=lambda h: h.height))

    def restore(self, header: BlockHeader) -> None:
        """Insert a header loaded from a trusted snapshot, skipping checks."""
        self.headers[header.height] = header
        self.highest_height = max(self.highest_height, header.height)

"""
Inscription record storage.

Keyed store of inscription records produced by the indexer. Records are
never physically deleted: deactivation flips their state so readers can
tell "never existed" from "existed then deactivated".
"""

from __future__ import annotations

import dataclasses
import logging
import threading
import time
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

from ordbridge.core.bridge_exceptions import (
    DuplicateRecordError,
    InvalidContentTypeError,
    InvalidRecordError,
    InvalidSizeRangeError,
    RecordNotFoundError,
    StorageInactiveError,
)
from ordbridge.core.hash_utils import HashLike, parse_hash32

logger = logging.getLogger(__name__)

MIN_CONTENT_SIZE = 1
MAX_CONTENT_SIZE = 104_857_600  # 100 MiB

SEARCH_KINDS = ("by_owner", "by_content_type", "by_block_height")

VALID_CONTENT_TYPES = frozenset(
    {
        "image/png",
        "image/jpeg",
        "image/gif",
        "image/webp",
        "image/svg+xml",
        "image/avif",
        "text/plain",
        "text/html",
        "text/css",
        "text/javascript",
        "text/markdown",
        "application/json",
        "application/pdf",
        "audio/mpeg",
        "audio/wav",
        "video/mp4",
        "video/webm",
        "model/gltf-binary",
    }
)


class RecordState(str, Enum):
    ACTIVE = "active"
    DEACTIVATED = "deactivated"


@dataclass(frozen=True)
class InscriptionRecord:
    inscription_id: bytes
    content_type: str
    content_size: int
    owner: str
    bitcoin_tx_hash: bytes
    bitcoin_block_height: int
    indexed_at: float
    metadata_uri: Optional[str] = None
    bridge_verified: bool = False
    state: RecordState = RecordState.ACTIVE

    @property
    def record_id(self) -> str:
        return self.inscription_id.hex()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "inscription_id": self.inscription_id.hex(),
            "content_type": self.content_type,
            "content_size": self.content_size,
            "owner": self.owner,
            "bitcoin_tx_hash": self.bitcoin_tx_hash.hex(),
            "bitcoin_block_height": self.bitcoin_block_height,
            "indexed_at": self.indexed_at,
            "metadata_uri": self.metadata_uri,
            "bridge_verified": self.bridge_verified,
            "state": self.state.value,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "InscriptionRecord":
        return cls(
            inscription_id=bytes.fromhex(data["inscription_id"]),
            content_type=str(data["content_type"]),
            content_size=int(data["content_size"]),
            owner=str(data["owner"]),
            bitcoin_tx_hash=bytes.fromhex(data["bitcoin_tx_hash"]),
            bitcoin_block_height=int(data["bitcoin_block_height"]),
            indexed_at=float(data["indexed_at"]),
            metadata_uri=data.get("metadata_uri"),
            bridge_verified=bool(data.get("bridge_verified", False)),
            state=RecordState(data.get("state", RecordState.ACTIVE.value)),
        )


def is_valid_content_type(content_type: str) -> bool:
    return isinstance(content_type, str) and content_type.lower() in VALID_CONTENT_TYPES


class OrdinalsStorage:
    """Thread-safe keyed store of inscription records."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._records: Dict[bytes, InscriptionRecord] = {}
        self._active = True
        self._lock = threading.RLock()
        self._search_counts: Counter = Counter()

    # ===== Contract switch =====
    def is_contract_active(self) -> bool:
        return self._active

    def set_contract_active(self, active: bool) -> None:
        with self._lock:
            self._active = bool(active)
            logger.info(
                "Ordinals storage %s",
                "activated" if self._active else "deactivated",
                extra={"event": "storage.active_toggled", "active": self._active},
            )

    # ===== Writes =====
    def add_ordinal(
        self,
        inscription_id: HashLike,
        content_type: str,
        content_size: int,
        owner: str,
        bitcoin_tx_hash: HashLike,
        bitcoin_block_height: int,
        metadata_uri: Optional[str] = None,
        *,
        bridge_verified: bool = False,
    ) -> InscriptionRecord:
        record_key = parse_hash32(inscription_id, "inscription_id", InvalidRecordError)
        tx_hash = parse_hash32(bitcoin_tx_hash, "bitcoin_tx_hash", InvalidRecordError)
        if not is_valid_content_type(content_type):
            raise InvalidContentTypeError(
                f"Unsupported content type {content_type!r}",
                details={"content_type": content_type},
            )
        if (
            not isinstance(content_size, int)
            or isinstance(content_size, bool)
            or not MIN_CONTENT_SIZE <= content_size <= MAX_CONTENT_SIZE
        ):
            raise InvalidSizeRangeError(
                f"Content size must be between {MIN_CONTENT_SIZE} and {MAX_CONTENT_SIZE} bytes",
                details={"content_size": content_size},
            )
        if not owner:
            raise InvalidRecordError("Owner is required")
        if not isinstance(bitcoin_block_height, int) or bitcoin_block_height <= 0:
            raise InvalidRecordError(
                "Bitcoin block height must be a positive integer",
                details={"bitcoin_block_height": bitcoin_block_height},
            )

        with self._lock:
            if not self._active:
                raise StorageInactiveError("Ordinals storage is not active")
            if record_key in self._records:
                raise DuplicateRecordError(
                    "Inscription already stored",
                    details={"inscription_id": record_key.hex()},
                )
            record = InscriptionRecord(
                inscription_id=record_key,
                content_type=content_type.lower(),
                content_size=content_size,
                owner=owner,
                bitcoin_tx_hash=tx_hash,
                bitcoin_block_height=bitcoin_block_height,
                indexed_at=self._clock(),
                metadata_uri=metadata_uri,
                bridge_verified=bridge_verified,
            )
            self._records[record_key] = record
        logger.debug(
            "Stored inscription %s",
            record.record_id,
            extra={"event": "storage.record_added", "content_type": record.content_type},
        )
        return record

    def deactivate_ordinal(self, inscription_id: HashLike) -> InscriptionRecord:
        record_key = parse_hash32(inscription_id, "inscription_id", InvalidRecordError)
        with self._lock:
            record = self._records.get(record_key)
            if record is None:
                raise RecordNotFoundError(
                    "Inscription not found", details={"inscription_id": record_key.hex()}
                )
            if record.state is RecordState.DEACTIVATED:
                return record
            record = dataclasses.replace(record, state=RecordState.DEACTIVATED)
            self._records[record_key] = record
            return record

    # ===== Reads =====
    def get_ordinal_data(self, inscription_id: HashLike) -> Optional[InscriptionRecord]:
        try:
            record_key = parse_hash32(inscription_id, "inscription_id", InvalidRecordError)
        except InvalidRecordError:
            return None
        with self._lock:
            return self._records.get(record_key)

    def ordinal_exists(self, inscription_id: HashLike) -> bool:
        record = self.get_ordinal_data(inscription_id)
        return record is not None and record.state is RecordState.ACTIVE

    def total_ordinals(self) -> int:
        with self._lock:
            return len(self._records)

    def _search(
        self, kind: str, predicate: Callable[[InscriptionRecord], bool], include_inactive: bool
    ) -> List[InscriptionRecord]:
        with self._lock:
            self._search_counts[kind] += 1
            return [
                record
                for record in self._records.values()
                if (include_inactive or record.state is RecordState.ACTIVE) and predicate(record)
            ]

    def search_by_owner(self, owner: str, include_inactive: bool = False) -> List[InscriptionRecord]:
        return self._search("by_owner", lambda r: r.owner == owner, include_inactive)

    def search_by_content_type(self, content_type: str, include_inactive: bool = False) -> List[InscriptionRecord]:
        wanted = content_type.lower()
        return self._search("by_content_type", lambda r: r.content_type == wanted, include_inactive)

    def search_by_block_height(self, height: int, include_inactive: bool = False) -> List[InscriptionRecord]:
        return self._search("by_block_height", lambda r: r.bitcoin_block_height == height, include_inactive)

    def get_storage_statistics(self) -> Dict[str, Any]:
        with self._lock:
            records = list(self._records.values())
            active = [r for r in records if r.state is RecordState.ACTIVE]
            return {
                "total_ordinals": len(records),
                "active_ordinals": len(active),
                "deactivated_ordinals": len(records) - len(active),
                "bridge_verified_ordinals": sum(1 for r in records if r.bridge_verified),
                "total_content_bytes": sum(r.content_size for r in active),
                "by_content_type": dict(Counter(r.content_type for r in active)),
                "contract_active": self._active,
            }

    def get_search_stats(self) -> Dict[str, int]:
        """Query counts per search kind since this store was created."""
        with self._lock:
            counts = {kind: self._search_counts[kind] for kind in SEARCH_KINDS}
            counts["total_searches"] = sum(counts.values())
            return counts

    # ===== Persistence helpers =====
    def to_list(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [record.to_dict() for record in self._records.values()]

    def restore(self, record: InscriptionRecord) -> None:
        with self._lock:
            self._records[record.inscription_id] = record

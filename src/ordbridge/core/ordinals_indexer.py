"""
Inscription indexer.

Implements the bridge's RecordIndexer boundary on top of OrdinalsStorage and
exposes direct and batch indexing for inscriptions that do not arrive
through a finalized claim.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from ordbridge.core.bridge_exceptions import (
    BatchTooLargeError,
    IndexingError,
    InvalidRecordError,
    TransactionNotVerifiedError,
    get_error_context,
)
from ordbridge.core.hash_utils import HashLike
from ordbridge.core.ordinals_storage import InscriptionRecord, OrdinalsStorage

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 20
EFFECT_FIELDS = ("inscription_id", "content_type", "content_size", "owner")


def normalize_effect(effect: Mapping[str, Any]) -> Dict[str, Any]:
    """Accept both ``inscription-id`` and ``inscription_id`` style keys."""
    normalized = {str(key).replace("-", "_"): value for key, value in effect.items()}
    missing = [name for name in EFFECT_FIELDS if name not in normalized]
    if missing:
        raise InvalidRecordError(
            f"Effect is missing fields: {', '.join(missing)}",
            details={"missing": missing},
        )
    return normalized


@dataclass
class BatchItemResult:
    index: int
    success: bool
    record_id: Optional[str] = None
    error: Optional[str] = None
    code: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "success": self.success,
            "record_id": self.record_id,
            "error": self.error,
            "code": self.code,
        }


class OrdinalsIndexer:
    """Record indexer for inscriptions certified by the bridge."""

    def __init__(
        self,
        storage: Optional[OrdinalsStorage] = None,
        is_transaction_verified: Optional[Callable[[HashLike], bool]] = None,
    ):
        self.storage = storage or OrdinalsStorage()
        self._is_transaction_verified = is_transaction_verified
        self._lock = threading.RLock()
        self._stats = {
            "indexed_total": 0,
            "bridge_indexed": 0,
            "direct_indexed": 0,
            "batch_runs": 0,
            "failures": 0,
        }

    def bind_verifier(self, is_transaction_verified: Callable[[HashLike], bool]) -> None:
        """Attach the bridge query used by ``index_bitcoin_verified_ordinal``."""
        self._is_transaction_verified = is_transaction_verified

    def _count(self, *names: str) -> None:
        with self._lock:
            for name in names:
                self._stats[name] += 1

    # ===== RecordIndexer =====
    def index_effect(
        self,
        effect: Mapping[str, Any],
        source_transaction_hash: bytes,
        source_height: int,
    ) -> str:
        try:
            fields = normalize_effect(effect)
            record = self.storage.add_ordinal(
                fields["inscription_id"],
                fields["content_type"],
                fields["content_size"],
                fields["owner"],
                source_transaction_hash,
                source_height,
                fields.get("metadata_uri"),
                bridge_verified=True,
            )
        except IndexingError:
            self._count("failures")
            raise
        self._count("indexed_total", "bridge_indexed")
        return record.record_id

    def record_exists(self, record_id: str) -> bool:
        return self.storage.ordinal_exists(record_id)

    def get_record(self, record_id: str) -> Optional[Dict[str, Any]]:
        record = self.storage.get_ordinal_data(record_id)
        return record.to_dict() if record else None

    # ===== Direct indexing =====
    def index_ordinal(
        self,
        inscription_id: HashLike,
        content_type: str,
        content_size: int,
        owner: str,
        bitcoin_tx_hash: HashLike,
        bitcoin_block_height: int,
        metadata_uri: Optional[str] = None,
    ) -> InscriptionRecord:
        try:
            record = self.storage.add_ordinal(
                inscription_id,
                content_type,
                content_size,
                owner,
                bitcoin_tx_hash,
                bitcoin_block_height,
                metadata_uri,
            )
        except IndexingError:
            self._count("failures")
            raise
        self._count("indexed_total", "direct_indexed")
        return record

    def index_bitcoin_verified_ordinal(
        self,
        inscription_id: HashLike,
        content_type: str,
        content_size: int,
        owner: str,
        bitcoin_tx_hash: HashLike,
        bitcoin_block_height: int,
        metadata_uri: Optional[str] = None,
    ) -> InscriptionRecord:
        """Index an inscription whose source transaction the bridge has verified."""
        if self._is_transaction_verified is None or not self._is_transaction_verified(bitcoin_tx_hash):
            self._count("failures")
            raise TransactionNotVerifiedError(
                "Source transaction is not verified by the bridge",
                details={"bitcoin_tx_hash": str(bitcoin_tx_hash)},
            )
        try:
            record = self.storage.add_ordinal(
                inscription_id,
                content_type,
                content_size,
                owner,
                bitcoin_tx_hash,
                bitcoin_block_height,
                metadata_uri,
                bridge_verified=True,
            )
        except IndexingError:
            self._count("failures")
            raise
        self._count("indexed_total", "bridge_indexed")
        return record

    def batch_index_ordinals(self, items: Sequence[Mapping[str, Any]]) -> List[BatchItemResult]:
        """Index several inscriptions; each item succeeds or fails on its own."""
        if len(items) > MAX_BATCH_SIZE:
            raise BatchTooLargeError(
                f"Batch of {len(items)} exceeds the maximum of {MAX_BATCH_SIZE}",
                details={"size": len(items), "max": MAX_BATCH_SIZE},
            )
        self._count("batch_runs")
        results: List[BatchItemResult] = []
        for index, item in enumerate(items):
            try:
                fields = normalize_effect(item)
                record = self.index_ordinal(
                    fields["inscription_id"],
                    fields["content_type"],
                    fields["content_size"],
                    fields["owner"],
                    fields.get("bitcoin_tx_hash", ""),
                    fields.get("bitcoin_block_height", 0),
                    fields.get("metadata_uri"),
                )
            except IndexingError as exc:
                logger.warning(
                    "Batch item %s failed: %s",
                    index,
                    exc.message,
                    extra={"event": "indexer.batch_item_failed", **get_error_context(exc)},
                )
                results.append(BatchItemResult(index, False, error=exc.message, code=exc.code))
                continue
            results.append(BatchItemResult(index, True, record_id=record.record_id))
        return results

    # ===== Status =====
    def get_indexing_stats(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._stats)

    def get_indexer_status(self) -> Dict[str, Any]:
        return {
            "active": self.storage.is_contract_active(),
            "total_ordinals": self.storage.total_ordinals(),
            "bridge_connected": self._is_transaction_verified is not None,
            "stats": self.get_indexing_stats(),
        }

    def get_system_status(self) -> Dict[str, Any]:
        """Indexer status plus storage totals and search activity."""
        status = self.get_indexer_status()
        status["storage"] = self.storage.get_storage_statistics()
        status["search"] = self.storage.get_search_stats()
        return status

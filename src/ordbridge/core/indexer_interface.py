"""
Boundary with the record-indexing collaborator.

The bridge hands each claimed effect of a finalized transaction to an
injected indexer. Failures are reported by raising IndexingError.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Protocol, runtime_checkable


@runtime_checkable
class RecordIndexer(Protocol):
    def index_effect(
        self,
        effect: Mapping[str, Any],
        source_transaction_hash: bytes,
        source_height: int,
    ) -> str:
        """Apply one effect and return the id of the record it produced."""
        ...

    def record_exists(self, record_id: str) -> bool:
        ...

    def get_record(self, record_id: str) -> Optional[Dict[str, Any]]:
        ...


class NullIndexer:
    """Indexer that accepts every effect without storing anything."""

    def __init__(self) -> None:
        self._count = 0

    def index_effect(
        self,
        effect: Mapping[str, Any],
        source_transaction_hash: bytes,
        source_height: int,
    ) -> str:
        self._count += 1
        return f"{source_transaction_hash.hex()}:{self._count}"

    def record_exists(self, record_id: str) -> bool:
        return False

    def get_record(self, record_id: str) -> Optional[Dict[str, Any]]:
        return None

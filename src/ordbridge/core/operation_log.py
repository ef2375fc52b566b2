"""
Append-only operation audit trail and bridge statistics counters.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field, fields
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from ordbridge.core import bridge_metrics


@dataclass(frozen=True)
class OperationLogEntry:
    entry_id: int
    operation: str
    actor: str
    subject: str
    timestamp: float
    details: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "details", MappingProxyType(dict(self.details)))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entry_id": self.entry_id,
            "operation": self.operation,
            "actor": self.actor,
            "subject": self.subject,
            "timestamp": self.timestamp,
            "details": dict(self.details),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "OperationLogEntry":
        return cls(
            entry_id=int(data["entry_id"]),
            operation=str(data["operation"]),
            actor=str(data["actor"]),
            subject=str(data["subject"]),
            timestamp=float(data["timestamp"]),
            details=dict(data.get("details", {})),
        )


class OperationLog:
    """Append-only audit trail. Entries are never edited or removed."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._entries: List[OperationLogEntry] = []
        self._next_id = 1

    def append(
        self,
        operation: str,
        actor: str,
        subject: str = "",
        details: Optional[Mapping[str, Any]] = None,
    ) -> OperationLogEntry:
        entry = OperationLogEntry(
            entry_id=self._next_id,
            operation=operation,
            actor=actor,
            subject=subject,
            timestamp=self._clock(),
            details=details or {},
        )
        self._entries.append(entry)
        self._next_id += 1
        return entry

    def entries(
        self,
        operation: Optional[str] = None,
        subject: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[OperationLogEntry]:
        result = [
            entry
            for entry in self._entries
            if (operation is None or entry.operation == operation)
            and (subject is None or entry.subject == subject)
        ]
        if limit is not None:
            result = result[-limit:] if limit > 0 else []
        return result

    def __len__(self) -> int:
        return len(self._entries)

    def to_list(self) -> List[Dict[str, Any]]:
        return [entry.to_dict() for entry in self._entries]

    def restore(self, data: Iterable[Mapping[str, Any]]) -> None:
        """Append entries loaded from a snapshot, keeping their ids."""
        for item in data:
            entry = OperationLogEntry.from_dict(item)
            self._entries.append(entry)
            self._next_id = max(self._next_id, entry.entry_id + 1)


@dataclass
class BridgeStatistics:
    headers_submitted: int = 0
    headers_verified: int = 0
    proofs_submitted: int = 0
    proofs_verified: int = 0
    claims_submitted: int = 0
    claims_verified: int = 0
    claims_rejected: int = 0
    effects_indexed: int = 0
    effects_failed: int = 0
    deposits_created: int = 0
    deposits_confirmed: int = 0
    confirmed_deposit_volume: int = 0

    def increment(self, name: str, amount: int = 1) -> None:
        setattr(self, name, getattr(self, name) + amount)
        if name == "confirmed_deposit_volume":
            bridge_metrics.record_confirmed_volume(amount)
        else:
            bridge_metrics.record_event(name, amount)

    def to_dict(self) -> Dict[str, int]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BridgeStatistics":
        known = {f.name for f in fields(cls)}
        return cls(**{k: int(v) for k, v in data.items() if k in known})

"""
Deposit ledger for value transfers backed by verified source-chain transactions.
"""

from __future__ import annotations

import dataclasses
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

from ordbridge.core.bridge_config import BridgeConfig
from ordbridge.core.bridge_exceptions import (
    BelowThresholdError,
    BridgePausedError,
    DepositNotFoundError,
    DuplicateDepositError,
    InvalidDepositError,
    NotPendingError,
    TransactionNotVerifiedError,
)
from ordbridge.core.hash_utils import HashLike, parse_hash32
from ordbridge.core.operation_log import BridgeStatistics, OperationLog
from ordbridge.core.verification_pipeline import TransactionVerificationPipeline

logger = logging.getLogger(__name__)


class DepositStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"


@dataclass(frozen=True)
class DepositRecord:
    deposit_id: int
    transaction_hash: bytes
    depositor: str
    amount: int
    status: DepositStatus
    created_at: float
    confirmed_at: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "deposit_id": self.deposit_id,
            "transaction_hash": self.transaction_hash.hex(),
            "depositor": self.depositor,
            "amount": self.amount,
            "status": self.status.value,
            "created_at": self.created_at,
            "confirmed_at": self.confirmed_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DepositRecord":
        confirmed_at = data.get("confirmed_at")
        return cls(
            deposit_id=int(data["deposit_id"]),
            transaction_hash=bytes.fromhex(data["transaction_hash"]),
            depositor=str(data["depositor"]),
            amount=int(data["amount"]),
            status=DepositStatus(data["status"]),
            created_at=float(data["created_at"]),
            confirmed_at=float(confirmed_at) if confirmed_at is not None else None,
        )


class DepositLedger:
    """
    Records deposits contingent on a verified transaction.
    Each source transaction backs at most one deposit.

    Deposit ids are allocated from a monotonic counter starting at 1 and are
    never reused.
    """

    def __init__(
        self,
        pipeline: TransactionVerificationPipeline,
        config: BridgeConfig,
        operation_log: OperationLog,
        stats: BridgeStatistics,
        clock: Callable[[], float] = time.time,
    ):
        self.pipeline = pipeline
        self.config = config
        self.operation_log = operation_log
        self.stats = stats
        self._clock = clock
        self.deposits: dict[int, DepositRecord] = {}
        self.next_deposit_id = 1
        self._deposit_by_tx: dict[bytes, int] = {}

    def create_deposit(self, transaction_hash: HashLike, depositor: str, amount: int) -> DepositRecord:
        if self.config.paused:
            raise BridgePausedError("Bridge is paused; deposits are not accepted")
        tx_hash = parse_hash32(transaction_hash, "transaction_hash", InvalidDepositError)
        if not depositor:
            raise InvalidDepositError("Depositor identity is required")
        if not isinstance(amount, int) or isinstance(amount, bool):
            raise InvalidDepositError(
                "Deposit amount must be an integer number of satoshis",
                details={"amount": amount},
            )
        if amount < self.config.min_deposit_amount:
            raise BelowThresholdError(
                f"Deposit of {amount} is below the minimum of {self.config.min_deposit_amount}",
                details={"amount": amount, "minimum": self.config.min_deposit_amount},
            )
        if not self.pipeline.is_verified(tx_hash):
            raise TransactionNotVerifiedError(
                "Deposits require a verified source transaction",
                details={"transaction_hash": tx_hash.hex()},
            )
        existing_id = self._deposit_by_tx.get(tx_hash)
        if existing_id is not None:
            raise DuplicateDepositError(
                f"Transaction already backs deposit {existing_id}",
                details={"transaction_hash": tx_hash.hex(), "deposit_id": existing_id},
            )

        deposit = DepositRecord(
            deposit_id=self.next_deposit_id,
            transaction_hash=tx_hash,
            depositor=depositor,
            amount=amount,
            status=DepositStatus.PENDING,
            created_at=self._clock(),
        )
        self.deposits[deposit.deposit_id] = deposit
        self.next_deposit_id += 1
        self._deposit_by_tx[tx_hash] = deposit.deposit_id
        self.stats.increment("deposits_created")
        self.operation_log.append(
            "create_deposit",
            depositor,
            str(deposit.deposit_id),
            {"transaction_hash": tx_hash.hex(), "amount": amount},
        )
        logger.info(
            "Deposit %s created for %s",
            deposit.deposit_id,
            tx_hash.hex(),
            extra={"event": "bridge.deposit_created", "amount": amount},
        )
        return deposit

    def confirm_deposit(self, deposit_id: int, *, caller: str) -> DepositRecord:
        self.config.require_operator(caller, "confirm_deposit")
        deposit = self.deposits.get(deposit_id)
        if deposit is None:
            raise DepositNotFoundError(f"Deposit {deposit_id} not found", details={"deposit_id": deposit_id})
        if deposit.status is not DepositStatus.PENDING:
            raise NotPendingError(
                f"Deposit {deposit_id} is {deposit.status.value}",
                details={"deposit_id": deposit_id, "status": deposit.status.value},
            )

        confirmed = dataclasses.replace(
            deposit, status=DepositStatus.CONFIRMED, confirmed_at=self._clock()
        )
        self.deposits[deposit_id] = confirmed
        self.stats.increment("deposits_confirmed")
        self.stats.increment("confirmed_deposit_volume", confirmed.amount)
        self.operation_log.append("confirm_deposit", caller, str(deposit_id), {"amount": confirmed.amount})
        logger.info(
            "Deposit %s confirmed",
            deposit_id,
            extra={"event": "bridge.deposit_confirmed", "amount": confirmed.amount},
        )
        return confirmed

    def get_deposit(self, deposit_id: int) -> Optional[DepositRecord]:
        return self.deposits.get(deposit_id)

    def list_deposits(
        self, depositor: Optional[str] = None, status: Optional[DepositStatus] = None
    ) -> List[DepositRecord]:
        return [
            deposit
            for deposit in sorted(self.deposits.values(), key=lambda d: d.deposit_id)
            if (depositor is None or deposit.depositor == depositor)
            and (status is None or deposit.status is status)
        ]

    def restore(self, deposit: DepositRecord) -> None:
        self.deposits[deposit.deposit_id] = deposit
        self._deposit_by_tx[deposit.transaction_hash] = deposit.deposit_id
        self.next_deposit_id = max(self.next_deposit_id, deposit.deposit_id + 1)

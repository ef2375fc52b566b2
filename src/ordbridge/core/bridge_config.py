"""
ordbridge configuration

Mutable bridge policy knobs (pause switch, confirmation threshold, deposit
minimum, operator roles) plus environment loading.

Environment variables (all optional):
    ORDBRIDGE_OWNER              bridge owner identity
    ORDBRIDGE_OPERATORS          comma separated operator identities
    ORDBRIDGE_MIN_CONFIRMATIONS  default 6
    ORDBRIDGE_MAX_CONFIRMATIONS  upper bound for the setting above, default 144
    ORDBRIDGE_MIN_DEPOSIT_AMOUNT satoshis, default 10000
    ORDBRIDGE_MAX_EFFECTS        effects per claim, default 10
    ORDBRIDGE_MAX_MERKLE_PATH    proof depth, default 24
    ORDBRIDGE_POW_LIMIT_BITS     compact bits of the easiest allowed target
    ORDBRIDGE_PAUSED             "1" to start paused
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from ordbridge.core.bridge_exceptions import (
    ConfigurationError,
    InvalidConfigError,
    UnauthorizedError,
)
from ordbridge.core.hash_utils import compact_to_target

logger = logging.getLogger(__name__)

DEFAULT_OWNER = "bridge-owner"
DEFAULT_MIN_CONFIRMATIONS = 6
DEFAULT_MAX_CONFIRMATIONS = 144
DEFAULT_MIN_DEPOSIT_AMOUNT = 10_000
DEFAULT_MAX_EFFECTS = 10
DEFAULT_MAX_MERKLE_PATH = 24
# Bitcoin regtest proof-of-work limit
DEFAULT_POW_LIMIT_BITS = 0x207FFFFF
MAINNET_POW_LIMIT_BITS = 0x1D00FFFF


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw, 0)
    except ValueError:
        raise ConfigurationError(
            f"{name} must be an integer, got {raw!r}",
            details={"env_var": name},
        ) from None


@dataclass
class BridgeConfig:
    owner: str = DEFAULT_OWNER
    operators: set[str] = field(default_factory=set)
    paused: bool = False
    min_confirmations: int = DEFAULT_MIN_CONFIRMATIONS
    max_confirmations_setting: int = DEFAULT_MAX_CONFIRMATIONS
    min_deposit_amount: int = DEFAULT_MIN_DEPOSIT_AMOUNT
    max_effects_per_claim: int = DEFAULT_MAX_EFFECTS
    max_merkle_path_length: int = DEFAULT_MAX_MERKLE_PATH
    pow_limit_bits: int = DEFAULT_POW_LIMIT_BITS

    def __post_init__(self) -> None:
        if not self.owner:
            raise ConfigurationError("Bridge owner must be set")
        if self.max_confirmations_setting < 1:
            raise ConfigurationError("Maximum confirmations setting must be positive")
        if not 1 <= self.min_confirmations <= self.max_confirmations_setting:
            raise ConfigurationError(
                "Minimum confirmations out of range",
                details={
                    "min_confirmations": self.min_confirmations,
                    "max": self.max_confirmations_setting,
                },
            )
        if self.min_deposit_amount <= 0:
            raise ConfigurationError("Minimum deposit amount must be positive")
        if self.max_effects_per_claim < 1 or self.max_merkle_path_length < 1:
            raise ConfigurationError("Capacity limits must be positive")
        if not 0 < self.pow_limit_bits <= 0xFFFFFFFF or not 0 < compact_to_target(self.pow_limit_bits) < 1 << 256:
            raise ConfigurationError(
                "Proof-of-work limit bits do not encode a usable target",
                details={"pow_limit_bits": self.pow_limit_bits},
            )
        self.operators = set(self.operators)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "BridgeConfig":
        """Build a config from ``ORDBRIDGE_*`` environment variables."""
        env = os.environ if env is None else env
        operators = {
            op.strip() for op in env.get("ORDBRIDGE_OPERATORS", "").split(",") if op.strip()
        }
        config = cls(
            owner=env.get("ORDBRIDGE_OWNER", "").strip() or DEFAULT_OWNER,
            operators=operators,
            paused=env.get("ORDBRIDGE_PAUSED", "0").strip() == "1",
            min_confirmations=_env_int(env, "ORDBRIDGE_MIN_CONFIRMATIONS", DEFAULT_MIN_CONFIRMATIONS),
            max_confirmations_setting=_env_int(
                env, "ORDBRIDGE_MAX_CONFIRMATIONS", DEFAULT_MAX_CONFIRMATIONS
            ),
            min_deposit_amount=_env_int(env, "ORDBRIDGE_MIN_DEPOSIT_AMOUNT", DEFAULT_MIN_DEPOSIT_AMOUNT),
            max_effects_per_claim=_env_int(env, "ORDBRIDGE_MAX_EFFECTS", DEFAULT_MAX_EFFECTS),
            max_merkle_path_length=_env_int(env, "ORDBRIDGE_MAX_MERKLE_PATH", DEFAULT_MAX_MERKLE_PATH),
            pow_limit_bits=_env_int(env, "ORDBRIDGE_POW_LIMIT_BITS", DEFAULT_POW_LIMIT_BITS),
        )
        if config.owner == DEFAULT_OWNER:
            logger.warning(
                "ORDBRIDGE_OWNER not set, using default owner identity",
                extra={"event": "config.default_owner"},
            )
        return config

    # ===== Roles =====
    def is_owner(self, caller: str) -> bool:
        return caller == self.owner

    def is_operator(self, caller: str) -> bool:
        return caller == self.owner or caller in self.operators

    def require_owner(self, caller: str, action: str) -> None:
        if not self.is_owner(caller):
            raise UnauthorizedError(
                f"{action} requires the bridge owner",
                details={"caller": caller, "action": action},
            )

    def require_operator(self, caller: str, action: str) -> None:
        if not self.is_operator(caller):
            raise UnauthorizedError(
                f"{action} requires an operator",
                details={"caller": caller, "action": action},
            )

    # ===== Validated setters =====
    def validate_min_confirmations(self, value: int) -> int:
        if not isinstance(value, int) or isinstance(value, bool):
            raise InvalidConfigError("Minimum confirmations must be an integer")
        if not 1 <= value <= self.max_confirmations_setting:
            raise InvalidConfigError(
                f"Minimum confirmations must be between 1 and {self.max_confirmations_setting}",
                details={"value": value},
            )
        return value

    def validate_min_deposit_amount(self, value: int) -> int:
        if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
            raise InvalidConfigError(
                "Minimum deposit amount must be a positive integer",
                details={"value": value},
            )
        return value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner": self.owner,
            "operators": sorted(self.operators),
            "paused": self.paused,
            "min_confirmations": self.min_confirmations,
            "max_confirmations_setting": self.max_confirmations_setting,
            "min_deposit_amount": self.min_deposit_amount,
            "max_effects_per_claim": self.max_effects_per_claim,
            "max_merkle_path_length": self.max_merkle_path_length,
            "pow_limit_bits": self.pow_limit_bits,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BridgeConfig":
        return cls(
            owner=str(data["owner"]),
            operators=set(data.get("operators", [])),
            paused=bool(data.get("paused", False)),
            min_confirmations=int(data.get("min_confirmations", DEFAULT_MIN_CONFIRMATIONS)),
            max_confirmations_setting=int(
                data.get("max_confirmations_setting", DEFAULT_MAX_CONFIRMATIONS)
            ),
            min_deposit_amount=int(data.get("min_deposit_amount", DEFAULT_MIN_DEPOSIT_AMOUNT)),
            max_effects_per_claim=int(data.get("max_effects_per_claim", DEFAULT_MAX_EFFECTS)),
            max_merkle_path_length=int(data.get("max_merkle_path_length", DEFAULT_MAX_MERKLE_PATH)),
            pow_limit_bits=int(data.get("pow_limit_bits", DEFAULT_POW_LIMIT_BITS)),
        )

"""
Hash and difficulty helpers shared by the header and proof stores.

All hashes are kept as 32-byte values in Bitcoin internal (wire) byte order.
Block explorers and bitcoind RPC display them reversed.
"""

from __future__ import annotations

import hashlib
from typing import Type, Union

from ordbridge.core.bridge_exceptions import InvalidInputError

HASH_LENGTH = 32

HashLike = Union[bytes, bytearray, str]


def double_sha256(data: bytes) -> bytes:
    """Bitcoin's hash function: SHA-256 applied twice."""
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def parse_hash32(
    value: HashLike,
    field: str,
    error_cls: Type[InvalidInputError] = InvalidInputError,
) -> bytes:
    """
    Normalize ``value`` into exactly 32 bytes.

    Accepts raw bytes or a hex string with an optional ``0x`` prefix.
    Anything else raises ``error_cls`` naming ``field``.
    """
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    elif isinstance(value, str):
        text = value[2:] if value.lower().startswith("0x") else value
        try:
            raw = bytes.fromhex(text)
        except ValueError:
            raise error_cls(
                f"{field} is not valid hex",
                details={"field": field},
            ) from None
    else:
        raise error_cls(
            f"{field} must be bytes or a hex string",
            details={"field": field, "type": type(value).__name__},
        )

    if len(raw) != HASH_LENGTH:
        raise error_cls(
            f"{field} must be exactly {HASH_LENGTH} bytes, got {len(raw)}",
            details={"field": field, "length": len(raw)},
        )
    return raw


def display_to_internal(display_hex: str) -> bytes:
    """Convert an RPC/explorer display hash into internal byte order."""
    return bytes.fromhex(display_hex)[::-1]


def internal_to_display(value: bytes) -> str:
    return value[::-1].hex()


def compact_to_target(bits: int) -> int:
    """Convert Bitcoin-style compact bits to a target integer.

    Returns 0 for encodings with the sign bit set, which never validate.
    """
    exponent = bits >> 24
    mantissa = bits & 0xFFFFFF
    if mantissa & 0x800000:
        return 0
    if exponent <= 3:
        target = mantissa >> (8 * (3 - exponent))
    else:
        target = mantissa << (8 * (exponent - 3))
    return target


def hash_to_int(block_hash: bytes) -> int:
    """Interpret an internal-order block hash as the integer PoW compares."""
    return int.from_bytes(block_hash, "little")

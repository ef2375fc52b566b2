"""
Bitcoin binary merkle tree math.

Leaves are transaction hashes in internal byte order. Odd levels duplicate
their last element, and each parent is double-SHA256(left || right).
"""

from __future__ import annotations

from typing import Sequence

from ordbridge.core.hash_utils import double_sha256


def hash_pair(left: bytes, right: bytes) -> bytes:
    return double_sha256(left + right)


def compute_merkle_root(tx_hashes: Sequence[bytes]) -> bytes:
    """Calculate the merkle root committed to by a block's transactions."""
    if not tx_hashes:
        raise ValueError("Merkle tree requires at least one transaction hash.")

    level = list(tx_hashes)
    while len(level) > 1:
        if len(level) % 2 != 0:
            level.append(level[-1])
        level = [hash_pair(level[i], level[i + 1]) for i in range(0, len(level), 2)]
    return level[0]


def build_merkle_path(tx_hashes: Sequence[bytes], index: int) -> list[bytes]:
    """
    Generate the sibling path for the transaction at ``index``.

    The returned list pairs with ``index`` under the bit convention used by
    :func:`fold_merkle_path`.
    """
    if not tx_hashes:
        raise ValueError("No transactions")
    if index < 0 or index >= len(tx_hashes):
        raise ValueError(f"Transaction index {index} out of range")

    path: list[bytes] = []
    current_index = index
    level = list(tx_hashes)

    while len(level) > 1:
        if len(level) % 2 != 0:
            level.append(level[-1])
        sibling_index = current_index + 1 if current_index % 2 == 0 else current_index - 1
        path.append(level[sibling_index])
        level = [hash_pair(level[i], level[i + 1]) for i in range(0, len(level), 2)]
        current_index //= 2

    return path


def fold_merkle_path(tx_hash: bytes, merkle_path: Sequence[bytes], index: int) -> bytes:
    """
    Walk a sibling path from leaf to root.

    At each level an index bit of 0 means the running hash is the left child,
    1 means it is the right child. The index shifts right once per level.
    """
    current = tx_hash
    position = index
    for sibling in merkle_path:
        if position & 1 == 0:
            current = hash_pair(current, sibling)
        else:
            current = hash_pair(sibling, current)
        position >>= 1
    return current


def verify_merkle_path(
    tx_hash: bytes, merkle_path: Sequence[bytes], index: int, merkle_root: bytes
) -> bool:
    """Verify a transaction is in a block using its merkle path."""
    if not merkle_path or not 0 <= index < 1 << len(merkle_path):
        return False
    return fold_merkle_path(tx_hash, merkle_path, index) == merkle_root

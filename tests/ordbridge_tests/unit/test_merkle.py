"""
Tests for Bitcoin merkle root and sibling path math.
"""

import pytest

from ordbridge.core.hash_utils import display_to_internal, internal_to_display
from ordbridge.core.merkle import (
    build_merkle_path,
    compute_merkle_root,
    fold_merkle_path,
    hash_pair,
    verify_merkle_path,
)

# Transactions of mainnet block 100000, display order
BLOCK_100000_TXS = [
    "8c14f0db3df150123e6f3dbbf30f8b955a8249b62ac1d1ff16284aefa3d06d87",
    "fff2525b8931402dd09222c50775608f75787bd2b87e56995a7bdd30f79702c4",
    "6359f0868171b1d194cbee1af2f16ea598ae8fad666d9b012c8ed2b79a236ec4",
    "e9a66845e05d5abc0ad04ec80f774a7e585c6e8db975962d069a522137b80c1d",
]
BLOCK_100000_ROOT = "f3e94742aca4b5ef85488dc37c06c3282295ffec960994b2c0d5ac2a25a95766"


def _leaves(count):
    return [bytes([i + 1]) * 32 for i in range(count)]


def test_mainnet_block_merkle_root():
    leaves = [display_to_internal(tx) for tx in BLOCK_100000_TXS]
    root = compute_merkle_root(leaves)
    assert internal_to_display(root) == BLOCK_100000_ROOT


def test_mainnet_block_paths_verify():
    leaves = [display_to_internal(tx) for tx in BLOCK_100000_TXS]
    root = display_to_internal(BLOCK_100000_ROOT)
    for index, leaf in enumerate(leaves):
        path = build_merkle_path(leaves, index)
        assert len(path) == 2
        assert verify_merkle_path(leaf, path, index, root)


def test_single_transaction_root_is_the_transaction():
    leaf = _leaves(1)[0]
    assert compute_merkle_root([leaf]) == leaf
    assert build_merkle_path([leaf], 0) == []


def test_two_transactions():
    a, b = _leaves(2)
    assert compute_merkle_root([a, b]) == hash_pair(a, b)
    assert build_merkle_path([a, b], 0) == [b]
    assert build_merkle_path([a, b], 1) == [a]


def test_odd_level_duplicates_last_node():
    a, b, c = _leaves(3)
    expected = hash_pair(hash_pair(a, b), hash_pair(c, c))
    assert compute_merkle_root([a, b, c]) == expected
    assert build_merkle_path([a, b, c], 2) == [c, hash_pair(a, b)]


@pytest.mark.parametrize("count", [2, 3, 5, 8, 13])
def test_every_leaf_folds_to_root(count):
    leaves = _leaves(count)
    root = compute_merkle_root(leaves)
    for index, leaf in enumerate(leaves):
        path = build_merkle_path(leaves, index)
        assert fold_merkle_path(leaf, path, index) == root


def test_index_bit_selects_side():
    a, b = _leaves(2)
    assert fold_merkle_path(a, [b], 0) == hash_pair(a, b)
    assert fold_merkle_path(a, [b], 1) == hash_pair(b, a)


def test_wrong_index_does_not_verify():
    leaves = _leaves(4)
    root = compute_merkle_root(leaves)
    path = build_merkle_path(leaves, 1)
    assert verify_merkle_path(leaves[1], path, 1, root)
    assert not verify_merkle_path(leaves[1], path, 0, root)
    # out of range for the path depth
    assert not verify_merkle_path(leaves[1], path, 1 + (1 << len(path)), root)


def test_empty_path_never_verifies():
    leaf = _leaves(1)[0]
    assert verify_merkle_path(leaf, [], 0, leaf) is False


def test_invalid_inputs_raise():
    with pytest.raises(ValueError):
        compute_merkle_root([])
    with pytest.raises(ValueError):
        build_merkle_path([], 0)
    with pytest.raises(ValueError):
        build_merkle_path(_leaves(3), 3)

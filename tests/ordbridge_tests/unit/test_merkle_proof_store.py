"""
Tests for MerkleProofStore submission and root recomputation.
"""

import pytest

from bridge_helpers import REGTEST_BITS, FakeClock, pow_hash, tx_hash
from ordbridge.core.bridge_exceptions import (
    InvalidProofError,
    ProofAlreadyExistsError,
    ProofAlreadyVerifiedError,
    ProofMismatchError,
    ProofNotFoundError,
    ProofTooLongError,
    UnknownHeaderError,
)
from ordbridge.core.merkle import build_merkle_path, compute_merkle_root
from ordbridge.core.merkle_proof_store import InclusionProof, MerkleProofStore
from ordbridge.core.spv_header_store import SPVHeaderStore

HEIGHT = 100
TXS = [tx_hash(f"block-tx-{i}") for i in range(4)]


@pytest.fixture
def headers():
    store = SPVHeaderStore()
    store.submit_header(HEIGHT, pow_hash("block"), pow_hash("parent"), compute_merkle_root(TXS), 1, REGTEST_BITS, 0)
    store.verify_header(HEIGHT)
    return store


@pytest.fixture
def proofs(headers):
    return MerkleProofStore(headers, max_path_length=24, clock=FakeClock(42.0))


def _submit(proofs, index=1, path=None, height=HEIGHT):
    return proofs.submit_proof(
        TXS[index],
        height,
        path if path is not None else build_merkle_path(TXS, index),
        index,
    )


def test_submit_and_verify_valid_proof(proofs):
    proof = _submit(proofs)
    assert proof.verified is False
    assert proof.submitted_at == 42.0
    verified = proofs.verify_proof(TXS[1])
    assert verified.verified is True
    assert proofs.get_proof(TXS[1]).verified is True
    assert proofs.verified_count() == 1


def test_every_position_verifies(proofs):
    for index in range(len(TXS)):
        _submit(proofs, index=index)
        proofs.verify_proof(TXS[index])
    assert proofs.verified_count() == len(TXS)


def test_proof_requires_verified_header():
    headers = SPVHeaderStore()
    headers.submit_header(HEIGHT, pow_hash("block"), pow_hash("parent"), compute_merkle_root(TXS), 1, REGTEST_BITS, 0)
    proofs = MerkleProofStore(headers)
    with pytest.raises(UnknownHeaderError):
        _submit(proofs)
    with pytest.raises(UnknownHeaderError):
        _submit(proofs, height=HEIGHT + 1)
    assert len(proofs) == 0


def test_unverified_proof_can_be_replaced(proofs):
    _submit(proofs, path=[b"\x11" * 32, b"\x22" * 32])
    with pytest.raises(ProofMismatchError):
        proofs.verify_proof(TXS[1])

    replaced = _submit(proofs)
    assert replaced.merkle_path == tuple(build_merkle_path(TXS, 1))
    assert proofs.verify_proof(TXS[1]).verified is True
    assert len(proofs) == 1


def test_verified_proof_is_a_conflict(proofs):
    _submit(proofs)
    proofs.verify_proof(TXS[1])
    with pytest.raises(ProofAlreadyExistsError):
        _submit(proofs, path=[b"\x11" * 32, b"\x22" * 32])
    assert proofs.get_proof(TXS[1]).verified is True


def test_empty_and_oversized_paths_are_rejected(proofs):
    with pytest.raises(InvalidProofError):
        _submit(proofs, path=[])
    with pytest.raises(ProofTooLongError):
        _submit(proofs, path=[TXS[0]] * 25)


def test_malformed_path_entry_is_rejected(proofs):
    path = build_merkle_path(TXS, 1)
    path[1] = path[1][:31]
    with pytest.raises(InvalidProofError):
        _submit(proofs, path=path)


def test_index_outside_tree_is_rejected(proofs):
    with pytest.raises(InvalidProofError):
        proofs.submit_proof(TXS[1], HEIGHT, build_merkle_path(TXS, 1), 4)
    with pytest.raises(InvalidProofError):
        proofs.submit_proof(TXS[1], HEIGHT, build_merkle_path(TXS, 1), -1)


@pytest.mark.parametrize("level", [0, 1])
@pytest.mark.parametrize("byte_index", [0, 17, 31])
def test_any_mutated_path_byte_breaks_verification(headers, level, byte_index):
    proofs = MerkleProofStore(headers)
    path = build_merkle_path(TXS, 2)
    mutated = bytearray(path[level])
    mutated[byte_index] ^= 0x01
    path[level] = bytes(mutated)
    proofs.submit_proof(TXS[2], HEIGHT, path, 2)
    with pytest.raises(ProofMismatchError) as exc_info:
        proofs.verify_proof(TXS[2])
    assert exc_info.value.details["header_root"] == compute_merkle_root(TXS).hex()
    assert proofs.get_proof(TXS[2]).verified is False


def test_transaction_outside_block_fails(proofs):
    outsider = tx_hash("not-in-block")
    proofs.submit_proof(outsider, HEIGHT, build_merkle_path(TXS, 1), 1)
    with pytest.raises(ProofMismatchError):
        proofs.verify_proof(outsider)


def test_verify_missing_and_twice(proofs):
    with pytest.raises(ProofNotFoundError):
        proofs.verify_proof(TXS[0])
    _submit(proofs, index=0)
    proofs.verify_proof(TXS[0])
    with pytest.raises(ProofAlreadyVerifiedError):
        proofs.verify_proof(TXS[0])


def test_proof_dict_round_trip(proofs):
    proof = _submit(proofs)
    assert InclusionProof.from_dict(proof.to_dict()) == proof

"""
Tests for inscription record storage and search.
"""

import pytest

from bridge_helpers import tx_hash
from ordbridge.core.bridge_exceptions import (
    DuplicateRecordError,
    InvalidContentTypeError,
    InvalidRecordError,
    InvalidSizeRangeError,
    RecordNotFoundError,
    StorageInactiveError,
)
from ordbridge.core.ordinals_storage import (
    MAX_CONTENT_SIZE,
    InscriptionRecord,
    RecordState,
    is_valid_content_type,
)

INSCRIPTION = b"\x0a" * 32


def _add(storage, inscription_id=INSCRIPTION, **overrides):
    args = {
        "content_type": "image/png",
        "content_size": 1024,
        "owner": "alice",
        "bitcoin_tx_hash": tx_hash("inscribe"),
        "bitcoin_block_height": 800_000,
    }
    args.update(overrides)
    return storage.add_ordinal(inscription_id, **args)


def test_add_and_read(storage, clock):
    record = _add(storage, metadata_uri="ipfs://meta")
    assert record.record_id == INSCRIPTION.hex()
    assert record.indexed_at == clock.now
    assert record.state is RecordState.ACTIVE
    assert storage.get_ordinal_data(INSCRIPTION.hex()) == record
    assert storage.ordinal_exists(INSCRIPTION)
    assert storage.total_ordinals() == 1


def test_content_type_is_case_insensitive(storage):
    assert is_valid_content_type("IMAGE/PNG")
    record = _add(storage, content_type="Text/Plain")
    assert record.content_type == "text/plain"


@pytest.mark.parametrize(
    "overrides, error",
    [
        ({"content_type": "application/x-msdownload"}, InvalidContentTypeError),
        ({"content_size": 0}, InvalidSizeRangeError),
        ({"content_size": MAX_CONTENT_SIZE + 1}, InvalidSizeRangeError),
        ({"owner": ""}, InvalidRecordError),
        ({"bitcoin_block_height": 0}, InvalidRecordError),
        ({"bitcoin_tx_hash": "beef"}, InvalidRecordError),
    ],
)
def test_invalid_records(storage, overrides, error):
    with pytest.raises(error):
        _add(storage, **overrides)
    assert storage.total_ordinals() == 0


def test_size_bounds_are_inclusive(storage):
    _add(storage, b"\x01" * 32, content_size=1)
    _add(storage, b"\x02" * 32, content_size=MAX_CONTENT_SIZE)
    assert storage.total_ordinals() == 2


def test_duplicate_inscription(storage):
    _add(storage)
    with pytest.raises(DuplicateRecordError):
        _add(storage, owner="bob")


def test_inactive_storage_refuses_writes(storage):
    storage.set_contract_active(False)
    with pytest.raises(StorageInactiveError):
        _add(storage)
    storage.set_contract_active(True)
    _add(storage)


def test_deactivation_keeps_record(storage):
    _add(storage)
    record = storage.deactivate_ordinal(INSCRIPTION)
    assert record.state is RecordState.DEACTIVATED
    assert storage.ordinal_exists(INSCRIPTION) is False
    assert storage.get_ordinal_data(INSCRIPTION).state is RecordState.DEACTIVATED
    assert storage.deactivate_ordinal(INSCRIPTION) == record
    with pytest.raises(RecordNotFoundError):
        storage.deactivate_ordinal(b"\x0b" * 32)


def test_get_unknown_or_malformed_returns_none(storage):
    assert storage.get_ordinal_data(b"\x0c" * 32) is None
    assert storage.get_ordinal_data("xyz") is None


def test_search(storage):
    _add(storage, b"\x01" * 32, owner="alice", content_type="image/png", bitcoin_block_height=10)
    _add(storage, b"\x02" * 32, owner="bob", content_type="text/plain", bitcoin_block_height=10)
    _add(storage, b"\x03" * 32, owner="alice", content_type="text/plain", bitcoin_block_height=11)
    storage.deactivate_ordinal(b"\x03" * 32)

    assert [r.owner for r in storage.search_by_block_height(10)] == ["alice", "bob"]
    assert len(storage.search_by_owner("alice")) == 1
    assert len(storage.search_by_owner("alice", include_inactive=True)) == 2
    assert [r.owner for r in storage.search_by_content_type("TEXT/PLAIN")] == ["bob"]


def test_search_stats_count_queries_by_kind(storage):
    assert storage.get_search_stats() == {
        "by_owner": 0,
        "by_content_type": 0,
        "by_block_height": 0,
        "total_searches": 0,
    }
    _add(storage, b"\x01" * 32, owner="alice")
    storage.search_by_owner("alice")
    storage.search_by_owner("nobody")
    storage.search_by_block_height(10)

    stats = storage.get_search_stats()
    assert stats["by_owner"] == 2
    assert stats["by_content_type"] == 0
    assert stats["by_block_height"] == 1
    assert stats["total_searches"] == 3


def test_statistics(storage):
    _add(storage, b"\x01" * 32, content_size=100, bridge_verified=True)
    _add(storage, b"\x02" * 32, content_size=50, content_type="text/plain")
    _add(storage, b"\x03" * 32, content_size=999)
    storage.deactivate_ordinal(b"\x03" * 32)

    stats = storage.get_storage_statistics()
    assert stats["total_ordinals"] == 3
    assert stats["active_ordinals"] == 2
    assert stats["deactivated_ordinals"] == 1
    assert stats["bridge_verified_ordinals"] == 1
    assert stats["total_content_bytes"] == 150
    assert stats["by_content_type"] == {"image/png": 1, "text/plain": 1}
    assert stats["contract_active"] is True


def test_record_dict_round_trip(storage):
    record = _add(storage, metadata_uri="ipfs://meta", bridge_verified=True)
    assert InscriptionRecord.from_dict(record.to_dict()) == record

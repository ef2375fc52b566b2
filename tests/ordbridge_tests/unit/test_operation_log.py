"""
Tests for the append-only operation log and statistics counters.
"""

import pytest

from bridge_helpers import OPERATOR, FakeClock, tx_hash
from ordbridge.core.bridge_exceptions import HeaderNotFoundError
from ordbridge.core.operation_log import BridgeStatistics, OperationLog, OperationLogEntry


def test_append_assigns_monotonic_ids_and_timestamps():
    clock = FakeClock(10.0)
    log = OperationLog(clock=clock)
    first = log.append("submit_header", "relayer", "100", {"block_hash": "aa"})
    clock.advance(5)
    second = log.append("verify_header", "relayer", "100")
    assert (first.entry_id, second.entry_id) == (1, 2)
    assert (first.timestamp, second.timestamp) == (10.0, 15.0)
    assert len(log) == 2


def test_entries_are_immutable():
    log = OperationLog()
    details = {"amount": 5}
    entry = log.append("create_deposit", "alice", "1", details)
    details["amount"] = 500
    assert entry.details["amount"] == 5
    with pytest.raises(TypeError):
        entry.details["amount"] = 7
    with pytest.raises(AttributeError):
        entry.actor = "mallory"


def test_entries_filter_and_limit():
    log = OperationLog()
    for i in range(5):
        log.append("submit_header", "relayer", str(i))
    log.append("verify_header", "relayer", "3")
    assert [e.subject for e in log.entries(operation="submit_header", limit=2)] == ["3", "4"]
    assert [e.operation for e in log.entries(subject="3")] == ["submit_header", "verify_header"]
    assert log.entries(limit=0) == []


def test_restore_continues_numbering():
    log = OperationLog()
    log.append("a", "x")
    log.append("b", "x")
    restored = OperationLog()
    restored.restore(log.to_list())
    assert restored.append("c", "x").entry_id == 3
    assert OperationLogEntry.from_dict(log.to_list()[0]).operation == "a"


def test_bridge_operations_are_logged(bridge, relay):
    tx = tx_hash("logged")
    relay.certify(tx, 100)
    operations = [e.operation for e in bridge.get_operation_log()]
    assert operations == [
        "submit_header",
        "verify_header",
        "submit_claim",
        "submit_proof",
        "verify_proof",
        "finalize_claim",
    ]
    finalize = bridge.get_operation_log(operation="finalize_claim")[0]
    assert finalize.actor == OPERATOR
    assert finalize.subject == tx.hex()
    assert finalize.details["confirmations"] == 6


def test_rejected_calls_leave_no_log_entry(bridge):
    with pytest.raises(HeaderNotFoundError):
        bridge.verify_header(1)
    assert bridge.get_operation_log() == []


def test_statistics_increment_and_round_trip():
    stats = BridgeStatistics()
    stats.increment("headers_submitted")
    stats.increment("confirmed_deposit_volume", 25_000)
    assert stats.headers_submitted == 1
    assert stats.confirmed_deposit_volume == 25_000
    assert BridgeStatistics.from_dict({**stats.to_dict(), "unknown": 3}) == stats

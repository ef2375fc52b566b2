"""
Tests header ingestion from parsed dictionaries and from monkeypatched RPC
responses.
"""

import pytest

from bridge_helpers import REGTEST_BITS, pow_hash
from ordbridge.core.hash_utils import internal_to_display
from ordbridge.core.spv_header_ingestor import RPCError, SPVHeaderIngestor, header_from_rpc

ROOT = b"\x33" * 32


def _header(height, previous=None, block_hash=None):
    return {
        "height": height,
        "block_hash": block_hash or pow_hash(f"block-{height}"),
        "previous_block_hash": previous or pow_hash(f"block-{height - 1}"),
        "merkle_root": ROOT,
        "timestamp": 1_700_000_000 + height,
        "difficulty": REGTEST_BITS,
        "nonce": height,
    }


def test_ingest_submits_and_verifies(bridge):
    ingestor = SPVHeaderIngestor(bridge)
    added, rejected = ingestor.ingest([_header(h) for h in (1, 2, 3)])
    assert added == 3
    assert rejected == []
    assert all(bridge.get_header(h).verified for h in (1, 2, 3))


def test_ingest_without_verification(bridge):
    added, _ = SPVHeaderIngestor(bridge).ingest([_header(5)], verify=False)
    assert added == 1
    assert bridge.get_header(5).verified is False


def test_ingest_reports_rejections(bridge):
    headers = [
        _header(1),
        _header(2, previous=pow_hash("fork")),
        _header(3, block_hash=b"\xff" * 32),
        {"height": 4},
        _header(1),
    ]
    added, rejected = SPVHeaderIngestor(bridge).ingest(headers)
    assert added == 1
    assert rejected == [
        "2:chain_linkage_mismatch",
        "3:invalid_proof_of_work",
        "4:malformed",
        "1:header_already_exists",
    ]


def test_header_from_rpc_converts_byte_order():
    block_hash = pow_hash("rpc")
    header = header_from_rpc(
        9,
        {
            "hash": internal_to_display(block_hash),
            "previousblockhash": internal_to_display(pow_hash("rpc-parent")),
            "merkleroot": internal_to_display(ROOT),
            "time": 1_700_000_123,
            "bits": "207fffff",
            "nonce": 7,
        },
    )
    assert header["block_hash"] == block_hash
    assert header["previous_block_hash"] == pow_hash("rpc-parent")
    assert header["difficulty"] == REGTEST_BITS


class DummyResponse:
    def __init__(self, result=None, error=None):
        self._result = result
        self._error = error
        self.status_code = 200

    def raise_for_status(self):
        return None

    def json(self):
        return {"result": self._result, "error": self._error}


def _fake_node(chain):
    """Serve getblockhash/getblockheader from ``{height: internal hash}``."""
    by_hash = {internal_to_display(h): height for height, h in chain.items()}
    calls = []

    def fake_post(self, url, auth=None, json=None, timeout=None):
        calls.append(json["method"])
        if json["method"] == "getblockhash":
            return DummyResponse(internal_to_display(chain[json["params"][0]]))
        if json["method"] == "getblockheader":
            height = by_hash[json["params"][0]]
            result = {
                "hash": json["params"][0],
                "merkleroot": internal_to_display(ROOT),
                "time": 1_700_000_000 + height,
                "bits": format(REGTEST_BITS, "08x"),
                "nonce": height,
            }
            if height - 1 in chain:
                result["previousblockhash"] = internal_to_display(chain[height - 1])
            return DummyResponse(result)
        raise AssertionError("unexpected method")

    return fake_post, calls


def test_ingest_from_rpc(monkeypatch, bridge):
    chain = {h: pow_hash(f"rpc-block-{h}") for h in (1, 2, 3)}
    fake_post, calls = _fake_node(chain)
    monkeypatch.setattr("requests.Session.post", fake_post)

    added, rejected = SPVHeaderIngestor(bridge).ingest_from_rpc("http://node", "user", "pass", 1, 3)
    assert added == 3
    assert rejected == []
    assert calls.count("getblockhash") == 3
    assert calls.count("getblockheader") == 3
    assert bridge.get_header(3).previous_block_hash == chain[2]
    assert bridge.headers.verified_count() == 3


def test_ingest_from_rpc_raises_on_rpc_error(monkeypatch, bridge):
    def fake_post(self, url, auth=None, json=None, timeout=None):
        return DummyResponse(error={"code": -8, "message": "Block height out of range"})

    monkeypatch.setattr("requests.Session.post", fake_post)
    with pytest.raises(RPCError):
        SPVHeaderIngestor(bridge).ingest_from_rpc("http://node", "user", "pass", 1, 1)
    assert len(bridge.headers) == 0

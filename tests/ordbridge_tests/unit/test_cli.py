"""
Tests for the ordbridge command line interface.

Commands run through click's CliRunner against a temporary state file.
"""

import json
import logging

import pytest
import requests
from click.testing import CliRunner

from bridge_helpers import REGTEST_BITS, pow_hash, tx_hash
from ordbridge.cli.main import cli
from ordbridge.core.bridge_persistence import load_bridge
from ordbridge.core.hash_utils import internal_to_display
from ordbridge.core.merkle import build_merkle_path, compute_merkle_root

BLOCK_100000_TXS = [
    "8c14f0db3df150123e6f3dbbf30f8b955a8249b62ac1d1ff16284aefa3d06d87",
    "fff2525b8931402dd09222c50775608f75787bd2b87e56995a7bdd30f79702c4",
    "6359f0868171b1d194cbee1af2f16ea598ae8fad666d9b012c8ed2b79a236ec4",
    "e9a66845e05d5abc0ad04ec80f774a7e585c6e8db975962d069a522137b80c1d",
]
BLOCK_100000_ROOT = "f3e94742aca4b5ef85488dc37c06c3282295ffec960994b2c0d5ac2a25a95766"

TXS = [tx_hash("cli"), tx_hash("cli-filler")]


@pytest.fixture(autouse=True)
def cli_env(monkeypatch):
    monkeypatch.setenv("ORDBRIDGE_OWNER", "cli-owner")
    monkeypatch.setenv("ORDBRIDGE_OPERATORS", "cli-operator")
    yield
    # setup_logging binds a handler to the runner's stderr
    bridge_logger = logging.getLogger("ordbridge")
    for handler in bridge_logger.handlers:
        handler.close()
    bridge_logger.handlers = []
    bridge_logger.setLevel(logging.NOTSET)


@pytest.fixture
def state(tmp_path):
    return tmp_path / "bridge.json"


@pytest.fixture
def run(state):
    runner = CliRunner()

    def _run(*args):
        return runner.invoke(cli, ["--state", str(state), *args], obj={})

    return _run


def _submit_header(run, height=100, block_hash=None, extra=()):
    return run(
        "submit-header",
        str(height),
        (block_hash or pow_hash(f"block-{height}")).hex(),
        pow_hash(f"parent-{height}").hex(),
        compute_merkle_root(TXS).hex(),
        "--timestamp",
        "1700000000",
        "--bits",
        hex(REGTEST_BITS),
        "--nonce",
        "1",
        *extra,
    )


def test_merkle_root_display_order(run):
    result = run("merkle-root", "--display-order", *BLOCK_100000_TXS)
    assert result.exit_code == 0
    assert BLOCK_100000_ROOT in result.stdout


def test_merkle_root_json_with_path(state):
    runner = CliRunner()
    leaves = [h.hex() for h in TXS]
    result = runner.invoke(
        cli, ["--state", str(state), "--json-output", "merkle-root", "--index", "1", *leaves], obj={}
    )
    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["merkle_root"] == compute_merkle_root(TXS).hex()
    assert data["merkle_root_display"] == internal_to_display(compute_merkle_root(TXS))
    assert data["index"] == 1
    assert data["merkle_path"] == [h.hex() for h in build_merkle_path(TXS, 1)]
    # offline command leaves no state behind
    assert not state.exists()


def test_log_file_receives_json_records(run, tmp_path):
    log_file = tmp_path / "logs" / "cli.json"
    result = run("--log-level", "INFO", "--log-file", str(log_file), "submit-header", "1", "aa" * 32, "bb" * 32,
                 "cc" * 32, "--timestamp", "1", "--bits", hex(REGTEST_BITS), "--nonce", "0")
    assert result.exit_code == 0
    records = [json.loads(line) for line in log_file.read_text().splitlines()]
    stored = [r for r in records if r.get("event") == "bridge.header_submitted"]
    assert stored and stored[0]["environment"] == "cli"


def test_verify_path_offline(state):
    runner = CliRunner()
    path = [h.hex() for h in build_merkle_path(TXS, 1)]
    root = compute_merkle_root(TXS).hex()
    result = runner.invoke(
        cli, ["--state", str(state), "--json-output", "verify-path", TXS[1].hex(), root, "1", *path], obj={}
    )
    assert result.exit_code == 0
    assert json.loads(result.stdout) == {"included": True, "index": 1, "depth": 1}
    assert not state.exists()


def test_verify_path_display_order(run):
    internal = [bytes.fromhex(h)[::-1] for h in BLOCK_100000_TXS]
    path = [internal_to_display(h) for h in build_merkle_path(internal, 2)]
    result = run("verify-path", "--display-order", BLOCK_100000_TXS[2], BLOCK_100000_ROOT, "2", *path)
    assert result.exit_code == 0
    assert "links the transaction" in result.stdout


def test_verify_path_wrong_root_exits_nonzero(run):
    path = [h.hex() for h in build_merkle_path(TXS, 0)]
    result = run("verify-path", TXS[0].hex(), "ab" * 32, "0", *path)
    assert result.exit_code == 1
    assert "does not reach" in result.stdout


def test_merkle_root_rejects_bad_index(run):
    result = run("merkle-root", "--index", "5", TXS[0].hex())
    assert result.exit_code == 1
    assert "out of range" in result.stdout


def test_header_relay_and_status(run, state):
    result = _submit_header(run)
    assert result.exit_code == 0
    assert "Header stored" in result.stdout

    result = run("verify-header", "100")
    assert result.exit_code == 0
    assert load_bridge(state).get_header(100).verified

    result = run("--json-output", "status")
    assert result.exit_code == 0
    status = json.loads(result.stdout)
    assert status["owner"] == "cli-owner"
    assert status["operators"] == ["cli-operator"]
    assert status["verified_headers"] == 1

    result = run("status")
    assert result.exit_code == 0
    assert "Bridge Status" in result.stdout


def test_submit_header_in_display_order(run, state):
    block_hash = pow_hash("block-7")
    result = run(
        "submit-header",
        "7",
        internal_to_display(block_hash),
        internal_to_display(pow_hash("parent-7")),
        internal_to_display(compute_merkle_root(TXS)),
        "--timestamp",
        "1700000000",
        "--bits",
        "0x207fffff",
        "--nonce",
        "3",
        "--display-order",
    )
    assert result.exit_code == 0
    assert load_bridge(state).get_header(7).block_hash == block_hash


def test_duplicate_header_exits_with_error(run):
    _submit_header(run)
    result = _submit_header(run)
    assert result.exit_code == 1
    assert "header_already_exists" in result.stdout


def test_bad_bits_is_usage_error(run):
    result = run(
        "submit-header", "1", "aa" * 32, "bb" * 32, "cc" * 32,
        "--timestamp", "1", "--bits", "lots", "--nonce", "0",
    )
    assert result.exit_code == 2


def test_proof_relay_and_claim_status(run, state):
    _submit_header(run)
    run("verify-header", "100")
    path = [h.hex() for h in build_merkle_path(TXS, 0)]

    result = run("submit-proof", TXS[0].hex(), "100", "0", *path)
    assert result.exit_code == 0
    result = run("--json-output", "verify-proof", TXS[0].hex())
    assert result.exit_code == 0
    assert json.loads(result.stdout)["verified"] is True

    result = run("--json-output", "claim-status", TXS[0].hex())
    assert json.loads(result.stdout) == {"status": "unknown"}
    assert load_bridge(state).get_proof(TXS[0]).verified


def test_proof_against_unverified_header_fails(run):
    _submit_header(run)
    path = [h.hex() for h in build_merkle_path(TXS, 0)]
    result = run("submit-proof", TXS[0].hex(), "100", "0", *path)
    assert result.exit_code == 1
    assert "Error" in result.stdout


def test_ingest_rpc(monkeypatch, run, state):
    calls = []

    def fake_ingest(self, rpc_url, rpc_user, rpc_password, start_height, end_height, verify=True):
        calls.append((rpc_url, rpc_user, start_height, end_height, verify))
        return 2, ["3:invalid_proof_of_work"]

    monkeypatch.setattr(
        "ordbridge.core.spv_header_ingestor.SPVHeaderIngestor.ingest_from_rpc", fake_ingest
    )
    result = run(
        "--json-output", "ingest-rpc", "--rpc-url", "http://node:18443", "--rpc-user", "u",
        "--start", "1", "--end", "3", "--no-verify",
    )
    assert result.exit_code == 0
    assert json.loads(result.stdout) == {"added": 2, "rejected": ["3:invalid_proof_of_work"]}
    assert calls == [("http://node:18443", "u", 1, 3, False)]
    assert state.exists()


def test_unreachable_node_is_reported_as_temporary(monkeypatch, run, state):
    def unreachable(*args, **kwargs):
        raise requests.ConnectionError("node down")

    monkeypatch.setattr(
        "ordbridge.core.spv_header_ingestor.SPVHeaderIngestor.ingest_from_rpc", unreachable
    )
    result = run("ingest-rpc", "--start", "1", "--end", "2")
    assert result.exit_code == 1
    assert "node down" in result.stdout
    assert "retry later" in result.stdout
    assert not state.exists()


def test_permanent_errors_have_no_retry_hint(run):
    _submit_header(run)
    result = _submit_header(run)
    assert result.exit_code == 1
    assert "retry later" not in result.stdout


def test_ingest_rpc_rejects_inverted_range(run):
    result = run("ingest-rpc", "--start", "5", "--end", "2")
    assert result.exit_code == 2

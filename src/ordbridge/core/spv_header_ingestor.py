"""
SPV header ingestion helper.

Feeds headers into a bridge from parsed dictionaries or from a
Bitcoin-compatible JSON-RPC endpoint, optionally verifying each one as it
lands.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

import requests

from ordbridge.core.bridge import OrdinalsBridge
from ordbridge.core.bridge_exceptions import BridgeError
from ordbridge.core.hash_utils import display_to_internal

logger = logging.getLogger(__name__)

ZERO_HASH = "00" * 32


class RPCError(RuntimeError):
    """Raised when the source-chain node returns an RPC error payload."""


def header_from_rpc(height: int, header_json: dict[str, Any]) -> dict[str, Any]:
    """Convert a ``getblockheader`` verbose result into submit_header arguments."""
    return {
        "height": height,
        "block_hash": display_to_internal(header_json["hash"]),
        "previous_block_hash": display_to_internal(header_json.get("previousblockhash", ZERO_HASH)),
        "merkle_root": display_to_internal(header_json["merkleroot"]),
        "timestamp": int(header_json["time"]),
        "difficulty": int(header_json["bits"], 16),
        "nonce": int(header_json["nonce"]),
    }


class SPVHeaderIngestor:
    """Submit (and optionally verify) batches of headers into a bridge."""

    def __init__(self, bridge: OrdinalsBridge, caller: str = "relayer"):
        self.bridge = bridge
        self.caller = caller

    def ingest(self, headers: Iterable[dict[str, Any]], verify: bool = True) -> tuple[int, list[str]]:
        """
        Ingest a batch of headers. Returns count added and list of rejected entries.

        Headers should be provided in height order and include: height,
        block_hash, previous_block_hash, merkle_root, timestamp, difficulty,
        nonce. Rejected entries are reported as ``"<height>:<error code>"``.
        """
        added = 0
        rejected: list[str] = []
        for h in headers:
            try:
                height = int(h["height"])
                self.bridge.submit_header(
                    height,
                    h["block_hash"],
                    h["previous_block_hash"],
                    h["merkle_root"],
                    int(h["timestamp"]),
                    int(h["difficulty"]),
                    int(h["nonce"]),
                    caller=self.caller,
                )
                if verify:
                    self.bridge.verify_header(height, caller=self.caller)
            except (KeyError, ValueError, TypeError):
                rejected.append(f"{h.get('height', 'unknown')}:malformed")
                continue
            except BridgeError as exc:
                rejected.append(f"{h.get('height')}:{exc.code}")
                continue
            added += 1

        if rejected:
            logger.warning(
                "Rejected %s of %s headers during ingestion",
                len(rejected),
                added + len(rejected),
                extra={"event": "ingest.headers_rejected", "rejected": rejected[:10]},
            )
        return added, rejected

    def ingest_from_rpc(
        self,
        rpc_url: str,
        rpc_user: str,
        rpc_password: str,
        start_height: int,
        end_height: int,
        verify: bool = True,
    ) -> tuple[int, list[str]]:
        """
        Ingest headers from a Bitcoin-compatible JSON-RPC endpoint (e.g., regtest).
        """
        session = requests.Session()
        headers = []

        def rpc_call(method: str, params: list[Any] | None = None) -> Any:
            resp = session.post(
                rpc_url,
                auth=(rpc_user, rpc_password),
                json={"jsonrpc": "1.0", "id": "ordbridge", "method": method, "params": params or []},
                timeout=5,
            )
            resp.raise_for_status()
            payload = resp.json()
            if payload.get("error"):
                raise RPCError(payload["error"])
            return payload["result"]

        for height in range(start_height, end_height + 1):
            block_hash = rpc_call("getblockhash", [height])
            header_json = rpc_call("getblockheader", [block_hash])
            headers.append(header_from_rpc(height, header_json))

        logger.info(
            "Fetched %s headers from %s",
            len(headers),
            rpc_url,
            extra={"event": "ingest.rpc_fetched", "start": start_height, "end": end_height},
        )
        return self.ingest(headers, verify=verify)

"""ordbridge CLI Commands - header relay, proof checks and local state inspection."""

from __future__ import annotations

import json
import logging
import sys
from typing import Any

import click
import requests
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ordbridge.core.bridge import OrdinalsBridge
from ordbridge.core.bridge_config import BridgeConfig
from ordbridge.core.bridge_exceptions import BridgeError, is_recoverable_error
from ordbridge.core.bridge_persistence import load_bridge, save_bridge
from ordbridge.core.hash_utils import display_to_internal, internal_to_display, parse_hash32
from ordbridge.core.merkle import build_merkle_path, compute_merkle_root, verify_merkle_path
from ordbridge.core.spv_header_ingestor import RPCError, SPVHeaderIngestor

logger = logging.getLogger(__name__)
console = Console()


def _handle_cli_error(exc: Exception, exit_code: int = 1) -> None:
    """Centralized CLI error handler."""
    logger.error("CLI error: %s", exc, exc_info=True)
    code = getattr(exc, "code", None)
    suffix = f" [dim]({code})[/]" if isinstance(code, str) else ""
    console.print(f"[bold red]Error:[/] {exc}{suffix}")
    if is_recoverable_error(exc):
        console.print("[yellow]This is a temporary condition; retry later.[/]")
    sys.exit(exit_code)


def _open_bridge(ctx: click.Context) -> OrdinalsBridge:
    state_path = ctx.obj["state_path"]
    return load_bridge(state_path, config=BridgeConfig.from_env())


def _save(ctx: click.Context, bridge: OrdinalsBridge) -> None:
    save_bridge(bridge, ctx.obj["state_path"])


def _emit_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, sort_keys=True))


def _short(value: str, width: int = 16) -> str:
    return value if len(value) <= width else f"{value[:width]}..."


@click.command("status")
@click.pass_context
def status(ctx: click.Context):
    """Show bridge configuration, counts and statistics."""
    try:
        bridge = _open_bridge(ctx)
        data = bridge.get_bridge_status()
    except BridgeError as exc:
        _handle_cli_error(exc)
        return

    if ctx.obj.get("json_output"):
        _emit_json(data)
        return

    table = Table(show_header=False, box=box.ROUNDED)
    table.add_row("[cyan]Paused", "[red]Yes[/]" if data["paused"] else "[green]No[/]")
    table.add_row("[cyan]Owner", data["owner"])
    table.add_row("[cyan]Operators", ", ".join(data["operators"]) or "-")
    table.add_row("[cyan]Min Confirmations", str(data["min_confirmations"]))
    table.add_row("[cyan]Min Deposit", f"{data['min_deposit_amount']} sat")
    table.add_row("[cyan]Highest Header", str(data["highest_header_height"]))
    table.add_row("[cyan]Headers", f"{data['verified_headers']}/{data['headers']} verified")
    table.add_row("[cyan]Proofs", f"{data['verified_proofs']}/{data['proofs']} verified")
    table.add_row("[cyan]Pending Claims", str(data["pending_claims"]))
    table.add_row("[cyan]Verified Transactions", str(data["verified_transactions"]))
    table.add_row("[cyan]Deposits", f"{data['deposits']} ({data['pending_deposits']} pending)")
    console.print(Panel(table, title="[cyan]Bridge Status", border_style="cyan"))


@click.command("submit-header")
@click.argument("height", type=int)
@click.argument("block_hash")
@click.argument("previous_block_hash")
@click.argument("merkle_root")
@click.option("--timestamp", type=int, required=True, help="Block time (unix seconds)")
@click.option("--bits", "difficulty", required=True, help="Compact difficulty bits, e.g. 0x207fffff")
@click.option("--nonce", type=int, required=True)
@click.option("--display-order", is_flag=True, help="Hashes are given in RPC/explorer display order")
@click.option("--caller", default="relayer", show_default=True)
@click.pass_context
def submit_header(
    ctx: click.Context,
    height: int,
    block_hash: str,
    previous_block_hash: str,
    merkle_root: str,
    timestamp: int,
    difficulty: str,
    nonce: int,
    display_order: bool,
    caller: str,
):
    """Store an unverified block header."""
    try:
        bits = int(difficulty, 0)
    except ValueError:
        raise click.BadParameter(f"{difficulty!r} is not an integer", param_hint="--bits")

    hashes = [block_hash, previous_block_hash, merkle_root]
    if display_order:
        try:
            hashes = [display_to_internal(h.removeprefix("0x")) for h in hashes]
        except ValueError:
            raise click.BadParameter("hashes must be hex", param_hint="BLOCK_HASH")

    try:
        bridge = _open_bridge(ctx)
        header = bridge.submit_header(height, *hashes, timestamp, bits, nonce, caller=caller)
        _save(ctx, bridge)
    except BridgeError as exc:
        _handle_cli_error(exc)
        return

    if ctx.obj.get("json_output"):
        _emit_json(header.to_dict())
        return
    console.print(f"[green]Header stored[/] at height {header.height} ({_short(header.block_hash.hex())})")


@click.command("verify-header")
@click.argument("height", type=int)
@click.option("--caller", default="relayer", show_default=True)
@click.pass_context
def verify_header(ctx: click.Context, height: int, caller: str):
    """Run proof-of-work and linkage checks on a stored header."""
    try:
        bridge = _open_bridge(ctx)
        header = bridge.verify_header(height, caller=caller)
        _save(ctx, bridge)
    except BridgeError as exc:
        _handle_cli_error(exc)
        return

    if ctx.obj.get("json_output"):
        _emit_json(header.to_dict())
        return
    console.print(f"[green]Header verified[/] at height {header.height}")


@click.command("submit-proof")
@click.argument("transaction_hash")
@click.argument("target_height", type=int)
@click.argument("transaction_index", type=int)
@click.argument("merkle_path", nargs=-1, required=True)
@click.option("--caller", default="relayer", show_default=True)
@click.pass_context
def submit_proof(
    ctx: click.Context,
    transaction_hash: str,
    target_height: int,
    transaction_index: int,
    merkle_path: tuple[str, ...],
    caller: str,
):
    """Store an inclusion proof against a verified header."""
    try:
        bridge = _open_bridge(ctx)
        proof = bridge.submit_proof(
            transaction_hash, target_height, list(merkle_path), transaction_index, caller=caller
        )
        _save(ctx, bridge)
    except BridgeError as exc:
        _handle_cli_error(exc)
        return

    if ctx.obj.get("json_output"):
        _emit_json(proof.to_dict())
        return
    console.print(
        f"[green]Proof stored[/] for {_short(proof.transaction_hash.hex())} "
        f"at height {proof.target_height} (depth {len(proof.merkle_path)})"
    )


@click.command("verify-proof")
@click.argument("transaction_hash")
@click.option("--caller", default="relayer", show_default=True)
@click.pass_context
def verify_proof(ctx: click.Context, transaction_hash: str, caller: str):
    """Recompute a stored proof's merkle root against its header."""
    try:
        bridge = _open_bridge(ctx)
        proof = bridge.verify_proof(transaction_hash, caller=caller)
        _save(ctx, bridge)
    except BridgeError as exc:
        _handle_cli_error(exc)
        return

    if ctx.obj.get("json_output"):
        _emit_json(proof.to_dict())
        return
    console.print(f"[green]Proof verified[/] for {_short(proof.transaction_hash.hex())}")


@click.command("claim-status")
@click.argument("transaction_hash")
@click.pass_context
def claim_status(ctx: click.Context, transaction_hash: str):
    """Show where a transaction sits in the claim lifecycle."""
    try:
        bridge = _open_bridge(ctx)
        status_value = bridge.get_claim_status(transaction_hash).value
        verified = bridge.get_verified_transaction(transaction_hash)
    except BridgeError as exc:
        _handle_cli_error(exc)
        return

    data: dict[str, Any] = {"status": status_value}
    if verified is not None:
        data["transaction"] = verified.to_dict()
    if ctx.obj.get("json_output"):
        _emit_json(data)
        return
    console.print(f"Claim status: [bold]{status_value}[/]")


@click.command("merkle-root")
@click.argument("tx_hashes", nargs=-1, required=True)
@click.option("--index", type=int, default=None, help="Also print the sibling path for this leaf")
@click.option("--display-order", is_flag=True, help="Hashes are given in RPC/explorer display order")
@click.pass_context
def merkle_root(ctx: click.Context, tx_hashes: tuple[str, ...], index: int | None, display_order: bool):
    """Compute a block merkle root (and optionally a proof path) offline."""
    try:
        if display_order:
            leaves = [parse_hash32(h, "tx_hash")[::-1] for h in tx_hashes]
        else:
            leaves = [parse_hash32(h, "tx_hash") for h in tx_hashes]
        root = compute_merkle_root(leaves)
        path = build_merkle_path(leaves, index) if index is not None else None
    except (BridgeError, ValueError) as exc:
        _handle_cli_error(exc)
        return

    data: dict[str, Any] = {"merkle_root": root.hex(), "merkle_root_display": internal_to_display(root)}
    if path is not None:
        data["index"] = index
        data["merkle_path"] = [sibling.hex() for sibling in path]
    if ctx.obj.get("json_output"):
        _emit_json(data)
        return

    console.print(f"[cyan]Merkle root:[/] {data['merkle_root']}")
    console.print(f"[cyan]Display order:[/] {data['merkle_root_display']}")
    if path is not None:
        for level, sibling in enumerate(data["merkle_path"]):
            console.print(f"  [dim]{level}[/] {sibling}")


@click.command("verify-path")
@click.argument("tx_hash")
@click.argument("merkle_root")
@click.argument("index", type=click.IntRange(min=0))
@click.argument("merkle_path", nargs=-1, required=True)
@click.option("--display-order", is_flag=True, help="Hashes are given in RPC/explorer display order")
@click.pass_context
def verify_path(
    ctx: click.Context,
    tx_hash: str,
    merkle_root: str,
    index: int,
    merkle_path: tuple[str, ...],
    display_order: bool,
):
    """Check offline that a sibling path links a transaction to a merkle root."""
    try:
        hashes = [parse_hash32(tx_hash, "tx_hash"), parse_hash32(merkle_root, "merkle_root")]
        path = [parse_hash32(h, "merkle_path") for h in merkle_path]
    except BridgeError as exc:
        _handle_cli_error(exc)
        return
    if display_order:
        hashes = [h[::-1] for h in hashes]
        path = [h[::-1] for h in path]

    included = verify_merkle_path(hashes[0], path, index, hashes[1])
    if ctx.obj.get("json_output"):
        _emit_json({"included": included, "index": index, "depth": len(path)})
    elif included:
        console.print("[green]Path links the transaction to the root[/]")
    else:
        console.print("[red]Path does not reach the given root[/]")
    if not included:
        sys.exit(1)


@click.command("ingest-rpc")
@click.option("--rpc-url", envvar="ORDBRIDGE_RPC_URL", default="http://127.0.0.1:18443", show_default=True)
@click.option("--rpc-user", envvar="ORDBRIDGE_RPC_USER", default="")
@click.option("--rpc-password", envvar="ORDBRIDGE_RPC_PASSWORD", default="")
@click.option("--start", "start_height", type=click.IntRange(min=1), required=True)
@click.option("--end", "end_height", type=click.IntRange(min=1), required=True)
@click.option("--no-verify", is_flag=True, help="Store headers without verifying them")
@click.option("--caller", default="relayer", show_default=True)
@click.pass_context
def ingest_rpc(
    ctx: click.Context,
    rpc_url: str,
    rpc_user: str,
    rpc_password: str,
    start_height: int,
    end_height: int,
    no_verify: bool,
    caller: str,
):
    """Pull headers from a bitcoind JSON-RPC endpoint into the bridge."""
    if end_height < start_height:
        raise click.BadParameter("--end must not be below --start", param_hint="--end")
    try:
        bridge = _open_bridge(ctx)
        ingestor = SPVHeaderIngestor(bridge, caller=caller)
        added, rejected = ingestor.ingest_from_rpc(
            rpc_url, rpc_user, rpc_password, start_height, end_height, verify=not no_verify
        )
        _save(ctx, bridge)
    except (BridgeError, RPCError, requests.RequestException) as exc:
        _handle_cli_error(exc)
        return

    if ctx.obj.get("json_output"):
        _emit_json({"added": added, "rejected": rejected})
        return
    console.print(f"[green]Ingested {added} headers[/]")
    for entry in rejected:
        console.print(f"  [yellow]rejected[/] {entry}")


@click.command("serve")
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", type=int, default=8645, show_default=True)
@click.pass_context
def serve(ctx: click.Context, host: str, port: int):
    """Serve the bridge HTTP API, persisting every successful write."""
    from ordbridge.core.api_blueprints import create_app

    try:
        bridge = _open_bridge(ctx)
    except BridgeError as exc:
        _handle_cli_error(exc)
        return
    app = create_app(bridge, state_path=ctx.obj["state_path"])
    console.print(f"[cyan]Serving bridge API on http://{host}:{port}[/]")
    app.run(host=host, port=port)


BRIDGE_COMMANDS = [
    status,
    submit_header,
    verify_header,
    submit_proof,
    verify_proof,
    claim_status,
    merkle_root,
    verify_path,
    ingest_rpc,
    serve,
]

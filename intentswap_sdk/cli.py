"""
Command line tools for IntentSwap.

Commands:
    verify <encoded>      Decode an intent envelope and check its hash
    status <intent-id>    Show the settlement status of an intent
    history <address>     List past swaps for an address
"""
import json
import logging
import os
import sys
from dataclasses import dataclass
from typing import Optional

import typer

from .amounts import format_display_amount, truncate_address
from .config import NetworkConfig, SwapConfig
from .envelope import decode, hash_payload, verify_envelope
from .exceptions import EnvelopeError, IntentSwapError
from .models import SwapDirection
from .payload import target_chain
from .settlement import SettlementClient
from .version import __version__

app = typer.Typer(
    name="intentswap-cli",
    help="IntentSwap command line tools",
    no_args_is_help=True,
    add_completion=False,
)

_STATUS_COLORS = {
    "FULFILLED": typer.colors.GREEN,
    "fulfilled": typer.colors.GREEN,
    "OPEN": typer.colors.YELLOW,
    "EXPIRED": typer.colors.RED,
    "REJECTED": typer.colors.RED,
    "failed": typer.colors.RED,
}


@dataclass
class CliState:
    api_url: str
    use_color: bool


def should_use_color(no_color: bool = False) -> bool:
    """Color only on a TTY, and never when NO_COLOR is set or --no-color is passed."""
    if no_color or os.environ.get("NO_COLOR"):
        return False
    return sys.stdout.isatty()


def _style(text: str, color: Optional[str], use_color: bool) -> str:
    return typer.style(text, fg=color) if use_color and color else text


def _fail(message: str, use_color: bool) -> None:
    typer.echo(_style(message, typer.colors.RED, use_color), err=True)
    raise typer.Exit(code=1)


def payout_url(direction: Optional[SwapDirection], tx_hash: Optional[str]) -> Optional[str]:
    """Explorer link for a payout transaction, when the chain is known."""
    if direction is None or not tx_hash:
        return None
    return NetworkConfig.tx_url(target_chain(direction).value, tx_hash)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"intentswap-cli {__version__}")
        raise typer.Exit()


@app.callback()
def cli(
    ctx: typer.Context,
    api_url: Optional[str] = typer.Option(None, "--api-url", help="Settlement API URL (defaults to INTENTSWAP_API_URL)"),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colored output"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug output"),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show the version and exit"
    ),
):
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    use_color = should_use_color(no_color)
    try:
        resolved_url = api_url or SwapConfig.from_env().api_url
    except ValueError as e:
        _fail(f"Error: {e}", use_color)
    ctx.obj = CliState(api_url=resolved_url, use_color=use_color)


@app.command()
def verify(
    ctx: typer.Context,
    encoded: str = typer.Argument(..., help="Base64 message or 0x calldata"),
):
    """Decode an intent envelope and check its hash."""
    state: CliState = ctx.obj
    try:
        envelope = decode(encoded)
    except EnvelopeError as e:
        _fail(f"Invalid envelope: {e}", state.use_color)

    typer.echo(json.dumps(envelope.to_wire(), indent=2, sort_keys=True))
    if verify_envelope(envelope):
        typer.echo(_style(f"Hash OK: {envelope.payload_hash}", typer.colors.GREEN, state.use_color))
        return

    typer.echo(_style("Hash mismatch", typer.colors.RED, state.use_color))
    typer.echo(f"  envelope: {envelope.payload_hash}")
    typer.echo(f"  computed: {hash_payload(envelope.payload)}")
    raise typer.Exit(code=1)


@app.command()
def status(
    ctx: typer.Context,
    intent_id: str = typer.Argument(..., help="Intent ID returned at submission"),
):
    """Show the settlement status of an intent."""
    state: CliState = ctx.obj
    try:
        result = SettlementClient(api_url=state.api_url).get_intent_status(intent_id)
    except (IntentSwapError, ValueError) as e:
        _fail(f"Error: {e}", state.use_color)

    typer.echo(f"Intent:     {result.intent_id}")
    typer.echo(f"Status:     {_style(result.status.value, _STATUS_COLORS.get(result.status.value), state.use_color)}")
    if result.direction is not None:
        typer.echo(f"Direction:  {result.direction.value}")
    if result.amount_out is not None:
        typer.echo(f"Amount out: {format_display_amount(result.amount_out, 6)}")
    if result.target_tx_hash:
        typer.echo(f"Payout tx:  {result.target_tx_hash}")
        url = payout_url(result.direction, result.target_tx_hash)
        if url:
            typer.echo(f"Explorer:   {url}")


@app.command()
def history(
    ctx: typer.Context,
    address: str = typer.Argument(..., help="Wallet address"),
    limit: int = typer.Option(50, "--limit", min=1, help="Maximum number of swaps"),
):
    """List past swaps for an address."""
    state: CliState = ctx.obj
    try:
        result = SettlementClient(api_url=state.api_url).fetch_swap_history(address, limit=limit)
    except (IntentSwapError, ValueError) as e:
        _fail(f"Error: {e}", state.use_color)

    if not result.swaps:
        typer.echo(f"No swaps for {truncate_address(address)}")
        return

    for entry in result.swaps:
        entry_status = _style(f"{entry.status:<10}", _STATUS_COLORS.get(entry.status), state.use_color)
        typer.echo(
            f"{entry.id}  {entry.direction.value:<10}  {entry_status}  "
            f"{format_display_amount(entry.payload.amount_in, 6)} {entry.payload.from_asset}"
            f" -> {entry.payload.target_address}"
        )
        url = payout_url(entry.direction, entry.target_tx_hash)
        if url:
            typer.echo(f"    payout: {url}")


def main() -> None:
    """Console script entry point."""
    app(prog_name="intentswap-cli")


if __name__ == "__main__":
    main()

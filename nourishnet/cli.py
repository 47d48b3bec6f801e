"""Command line interface for inspecting the claim cache and the access rules."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import typer

from nourishnet.claims import ClaimStore
from nourishnet.config import load_config
from nourishnet.policy import render_rules
from nourishnet.storage import get_storage

app = typer.Typer(help="CLI for NourishNet claims and access rules")

claims_app = typer.Typer(help="Commands for the local claim cache")
rules_app = typer.Typer(help="Commands for the access rules")

app.add_typer(claims_app, name="claims")
app.add_typer(rules_app, name="rules")


@app.callback()
def main() -> None:
    """NourishNet CLI entry point."""
    pass


def _open_store(storage_url: Optional[str]) -> ClaimStore:
    config = load_config()
    return ClaimStore(get_storage(storage_url, config=config), key=config.claims_key)


@claims_app.command("list")
def claims_list(
    storage: Optional[str] = typer.Option(
        None, help="Storage url, e.g. sqlite:///path/claims.db"
    ),
) -> None:
    """List cached claims."""

    store = _open_store(storage)
    entries = asyncio.run(store.list_claims())
    if not entries:
        typer.echo("No cached claims.")
        return

    for entry in entries:
        claimed_at = entry.claimed_at.isoformat() if entry.claimed_at else "unknown"
        item = entry.donation.get("itemName") or entry.donation_id
        sync_state = "synced" if entry.synced else "offline"
        typer.echo(f"{entry.id}\t{item}\t{entry.status}\t{claimed_at}\t{sync_state}")


@claims_app.command("clear")
def claims_clear(
    storage: Optional[str] = typer.Option(None, help="Storage url"),
) -> None:
    """Remove every cached claim."""

    store = _open_store(storage)
    if not asyncio.run(store.clear_all()):
        typer.echo("Failed to clear cached claims.", err=True)
        raise typer.Exit(code=1)
    typer.echo("Cleared cached claims.")


@rules_app.command("render")
def rules_render(
    output: Optional[Path] = typer.Option(None, help="Write rules to this file"),
) -> None:
    """Print the remote store rules equivalent to the access policy."""

    text = render_rules()
    if output is None:
        typer.echo(text, nl=False)
        return
    output.write_text(text)
    typer.echo(f"Wrote rules to {output}")


if __name__ == "__main__":
    app()

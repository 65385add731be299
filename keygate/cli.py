"""CLI module for API key administration.

Operates directly on the key store configured via KEYGATE_* environment
variables:
- issue: create a key and print its plaintext once
- list: show all keys
- revoke / delete: retire a key by ID
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from keygate.core.database import close_db, get_db_context
from keygate.core.exceptions import KeygateError
from keygate.models.orm.api_key import ApiKey
from keygate.services.api_key_service import ApiKeyService

app = typer.Typer(
    name="keygate",
    help="Keygate API key administration",
    no_args_is_help=True,
)

console = Console()
error_console = Console(stderr=True)

logger = logging.getLogger(__name__)


def _parse_expiry(value: str | None) -> datetime | None:
    """Parse an ISO 8601 expiry; naive values are taken as UTC.

    Raises:
        typer.BadParameter: If the value isn't a valid timestamp.
    """
    if value is None:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as e:
        raise typer.BadParameter(f"Invalid ISO 8601 timestamp: {value}") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _format_ts(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else "-"


def _status(api_key: ApiKey) -> str:
    if not api_key.is_active:
        return "[red]revoked[/red]"
    if api_key.is_expired():
        return "[yellow]expired[/yellow]"
    return "[green]active[/green]"


def _run(coro):
    """Run a coroutine and release database connections afterwards."""

    async def runner():
        try:
            return await coro
        finally:
            await close_db()

    try:
        return asyncio.run(runner())
    except KeygateError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from e


@app.command()
def issue(
    name: Annotated[str, typer.Argument(help="Display name for the key")],
    description: Annotated[str | None, typer.Option(help="Free-text description")] = None,
    expires_at: Annotated[
        str | None, typer.Option("--expires-at", help="Expiry as ISO 8601 (default: never)")
    ] = None,
    created_by: Annotated[str | None, typer.Option("--created-by", help="Creator identifier")] = None,
) -> None:
    """Issue a new API key and print it once."""
    if not name.strip():
        raise typer.BadParameter("Name is required", param_hint="NAME")
    expiry = _parse_expiry(expires_at)

    async def do_issue() -> tuple[str, ApiKey]:
        async with get_db_context() as db:
            return await ApiKeyService(db).issue(name, description, created_by, expiry)

    raw_key, api_key = _run(do_issue())
    console.print(
        Panel(
            f"[bold]{raw_key}[/bold]\n\nCopy it now - this is the only time it's shown.",
            title=f"API key #{api_key.id}: {api_key.name}",
            border_style="green",
        )
    )


@app.command("list")
def list_keys() -> None:
    """List all API keys, newest first."""

    async def do_list() -> list[ApiKey]:
        async with get_db_context() as db:
            return await ApiKeyService(db).get_all()

    api_keys = _run(do_list())
    if not api_keys:
        console.print("No API keys found.")
        return

    table = Table(title="API Keys")
    table.add_column("ID", justify="right")
    table.add_column("Name")
    table.add_column("Status")
    table.add_column("Created")
    table.add_column("Expires")
    table.add_column("Last used")
    table.add_column("Uses", justify="right")

    for key in api_keys:
        table.add_row(
            str(key.id),
            key.name,
            _status(key),
            _format_ts(key.created_at),
            _format_ts(key.expires_at),
            _format_ts(key.last_used_at),
            str(key.usage_count),
        )

    console.print(table)


@app.command()
def revoke(
    key_id: Annotated[int, typer.Argument(help="API key ID")],
    by: Annotated[str, typer.Option("--by", help="Who is revoking the key")] = "cli",
) -> None:
    """Revoke an API key."""

    async def do_revoke() -> bool:
        async with get_db_context() as db:
            return await ApiKeyService(db).revoke(key_id, by)

    if not _run(do_revoke()):
        error_console.print(f"[red]Error:[/red] API key {key_id} not found")
        raise typer.Exit(code=1)
    console.print(f"API key {key_id} revoked.")


@app.command()
def delete(
    key_id: Annotated[int, typer.Argument(help="API key ID")],
) -> None:
    """Permanently delete an API key."""

    async def do_delete() -> bool:
        async with get_db_context() as db:
            return await ApiKeyService(db).delete(key_id)

    if not _run(do_delete()):
        error_console.print(f"[red]Error:[/red] API key {key_id} not found")
        raise typer.Exit(code=1)
    console.print(f"API key {key_id} deleted.")


if __name__ == "__main__":
    app()

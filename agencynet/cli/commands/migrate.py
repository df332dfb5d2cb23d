"""
agencynet migrate command - Run database migrations.

Applies pending SQL migrations to your Supabase database.
"""

from typing import Optional

import typer
from postgrest.exceptions import APIError
from pydantic import ValidationError
from rich.table import Table

from ...config import load_config
from ...migrations.manager import MigrationManager
from ...utils.supabase import NetworkSupabaseClient
from . import console, run_async


def _load_config():
    try:
        config = load_config()
    except ValidationError as e:
        console.print(f"[red]Error loading configuration:[/red] {e}")
        console.print("\nSet [cyan]AGENCYNET_SUPABASE_URL[/cyan] and [cyan]AGENCYNET_SUPABASE_KEY[/cyan]")
        raise typer.Exit(1)
    return config


def migrate_command(
    target: Optional[str] = typer.Argument(
        None,
        help="Target migration version (default: latest)",
    ),
) -> None:
    """
    Run database migrations.

    Example:
        $ agencynet migrate           # Run all pending migrations
        $ agencynet migrate 001       # Run migrations up to version 001
    """
    console.print("\n[bold cyan]Agency Network Migration[/bold cyan]\n")
    config = _load_config()
    console.print("[green]✓[/green] Configuration loaded")

    run_async(_run_migrations(config, target))


async def _run_migrations(config, target: Optional[str]) -> None:
    client = await NetworkSupabaseClient.create(config)
    console.print("[green]✓[/green] Connected to Supabase")

    manager = MigrationManager(client)
    try:
        applied = await manager.migrate(target=target)
    except APIError as e:
        console.print(f"\n[red]Error:[/red] {e.message}")
        console.print(
            "\nMigrations run through the [cyan]exec_sql(sql text)[/cyan] function; "
            "create it once from the Supabase SQL editor, or apply "
            "[cyan]agencynet/migrations/versions/*.sql[/cyan] manually."
        )
        raise typer.Exit(1)
    finally:
        await client.close()

    if not applied:
        console.print("No pending migrations")
        return

    for migration in applied:
        console.print(f"[green]✓[/green] {migration.version}_{migration.name}")
    console.print(f"\n[green]✓[/green] {len(applied)} migration(s) applied")


def status_command() -> None:
    """
    Show migration status.

    Example:
        $ agencynet status
    """
    console.print("\n[bold cyan]Agency Network Migration Status[/bold cyan]\n")
    config = _load_config()

    run_async(_show_status(config))


async def _show_status(config) -> None:
    client = await NetworkSupabaseClient.create(config)
    try:
        states = await MigrationManager(client).status()
    finally:
        await client.close()

    table = Table(title="Migration Status")
    table.add_column("Status", style="cyan", width=8)
    table.add_column("Version", style="magenta")
    table.add_column("Name", style="green")

    for state in states:
        label = "[green]✓[/green]" if state.applied else "[yellow]pending[/yellow]"
        table.add_row(label, state.migration.version, state.migration.name)

    console.print(table)

    pending_count = len([s for s in states if not s.applied])
    console.print(f"\nTotal: {len(states)} migrations")
    console.print(f"[green]Applied: {len(states) - pending_count}[/green]")
    console.print(f"[yellow]Pending: {pending_count}[/yellow]\n")

    if pending_count > 0:
        console.print("Run [cyan]agencynet migrate[/cyan] to apply pending migrations\n")

"""
CLI commands for agency membership.
"""

from typing import Optional
from uuid import UUID

import typer
from rich.table import Table

from ...memberships import MembershipStatus
from . import console, open_network, run_async

app = typer.Typer(help="Manage an agency's agents")


@app.command("list")
def agents_list_command(
    agency_id: str = typer.Option(..., "--agency", "-a", help="Agency ID"),
    status: Optional[MembershipStatus] = typer.Option(None, "--status", "-s", help="Filter by status"),
    search: Optional[str] = typer.Option(None, "--search", "-q", help="Match name or email"),
) -> None:
    """List agents linked to an agency."""

    async def _list():
        async with open_network() as network:
            links = await network.memberships.list(UUID(agency_id), status=status, search=search)

            if not links:
                console.print("[yellow]No agents found[/yellow]")
                return

            table = Table(title="Agents")
            table.add_column("Name", style="cyan")
            table.add_column("Email")
            table.add_column("Status", style="green")
            table.add_column("Agent ID", style="dim")

            for link in links:
                table.add_row(
                    link.agent.full_name or "" if link.agent else "",
                    link.agent.email or "" if link.agent else "",
                    link.status.value,
                    str(link.agent_id),
                )

            console.print(table)

    run_async(_list())


@app.command("remove")
def agents_remove_command(
    agent_id: str = typer.Argument(..., help="Agent ID to remove"),
    agency_id: str = typer.Option(..., "--agency", "-a", help="Agency ID"),
) -> None:
    """Remove an agent from an agency (the account is kept)."""

    async def _remove():
        async with open_network() as network:
            await network.memberships.remove(UUID(agency_id), UUID(agent_id))
            console.print(f"[green]✓[/green] Agent {agent_id[:8]}... removed from agency")

    run_async(_remove())

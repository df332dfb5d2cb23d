"""
CLI commands for property sharing.
"""

from typing import List
from uuid import UUID

import typer

from . import console, open_network, run_async

app = typer.Typer(help="Manage which agents see a property")


def _print_visibility(visibility) -> None:
    if visibility.broadcast:
        console.print("  Shared with: [green]all agents[/green]")
    elif not visibility.agent_ids:
        console.print("  Shared with: [yellow]nobody[/yellow]")
    else:
        console.print(f"  Shared with {visibility.count} agent(s):")
        for agent_id in visibility.agent_ids:
            console.print(f"    - {agent_id}")


@app.command("show")
def sharing_show_command(
    property_id: str = typer.Argument(..., help="Property ID"),
    agency_id: str = typer.Option(..., "--agency", "-a", help="Owning agency ID"),
) -> None:
    """Show who can see a property."""

    async def _show():
        async with open_network() as network:
            visibility = await network.sharing.effective_visibility(UUID(property_id), UUID(agency_id))
            console.print(f"Property {property_id}")
            _print_visibility(visibility)

    run_async(_show())


@app.command("broadcast")
def sharing_broadcast_command(
    property_id: str = typer.Argument(..., help="Property ID"),
    agency_id: str = typer.Option(..., "--agency", "-a", help="Owning agency ID"),
    off: bool = typer.Option(False, "--off", help="Stop sharing with all agents"),
) -> None:
    """Share a property with the whole team (or stop doing so)."""

    async def _broadcast():
        async with open_network() as network:
            visibility = await network.sharing.set_broadcast(
                UUID(property_id), UUID(agency_id), not off
            )
            console.print(f"[green]✓[/green] Broadcast {'off' if off else 'on'}")
            _print_visibility(visibility)

    run_async(_broadcast())


@app.command("set")
def sharing_set_command(
    property_id: str = typer.Argument(..., help="Property ID"),
    agency_id: str = typer.Option(..., "--agency", "-a", help="Owning agency ID"),
    agents: List[str] = typer.Option([], "--agent", help="Agent ID (repeatable)"),
) -> None:
    """Share a property with exactly the given agents."""

    async def _set():
        async with open_network() as network:
            visibility = await network.sharing.save_settings(
                UUID(property_id),
                UUID(agency_id),
                share_with_all=False,
                agent_ids=[UUID(agent_id) for agent_id in agents],
            )
            console.print("[green]✓[/green] Sharing updated")
            _print_visibility(visibility)

    run_async(_set())

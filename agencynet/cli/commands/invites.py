"""
CLI commands for agent invitations.
"""

from typing import Optional
from uuid import UUID

import typer
from rich.table import Table

from ...invitations import InvitationStatus
from . import console, open_network, run_async

app = typer.Typer(help="Manage agent invitations")


@app.command("send")
def invites_send_command(
    email: str = typer.Argument(..., help="Email address to invite"),
    agency_id: str = typer.Option(..., "--agency", "-a", help="Agency ID"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Invitee's full name"),
    phone: Optional[str] = typer.Option(None, "--phone", help="Phone number"),
    whatsapp: Optional[str] = typer.Option(None, "--whatsapp", "-w", help="WhatsApp number"),
) -> None:
    """Invite an agent to join an agency."""

    async def _send():
        async with open_network() as network:
            invite = await network.invitations.issue(
                agency_id=UUID(agency_id),
                email=email,
                full_name=name,
                phone=phone,
                whatsapp=whatsapp,
            )
            console.print(f"[green]✓[/green] Invitation sent to {invite.email}")
            console.print(f"  ID: {invite.id}")
            console.print(f"  Link: {network.invitations.invite_link(invite)}")
            console.print(f"  Expires: {invite.expires_at}")

    run_async(_send())


@app.command("list")
def invites_list_command(
    agency_id: str = typer.Option(..., "--agency", "-a", help="Agency ID"),
    status: Optional[InvitationStatus] = typer.Option(None, "--status", "-s", help="Filter by status"),
    limit: int = typer.Option(50, "--limit", "-l", help="Maximum results"),
) -> None:
    """List invitations of an agency."""

    async def _list():
        async with open_network() as network:
            invites = await network.invitations.list_by_agency(
                UUID(agency_id), status=status, limit=limit
            )

            if not invites:
                console.print("[yellow]No invitations found[/yellow]")
                return

            now = network.now()
            table = Table(title="Invitations")
            table.add_column("Email", style="cyan")
            table.add_column("Name")
            table.add_column("Status", style="green")
            table.add_column("Expires", style="yellow")
            table.add_column("ID", style="dim")

            for invite in invites:
                label = invite.status.value.capitalize()
                if invite.status == InvitationStatus.PENDING and not invite.is_valid_at(now):
                    label = "Expired"

                table.add_row(
                    invite.email,
                    invite.full_name or "",
                    label,
                    invite.expires_at.strftime("%Y-%m-%d"),
                    str(invite.id)[:8],
                )

            console.print(table)

    run_async(_list())


@app.command("resend")
def invites_resend_command(
    invite_id: str = typer.Argument(..., help="Invitation ID to resend"),
) -> None:
    """Replace an invitation with a fresh token and expiry."""

    async def _resend():
        async with open_network() as network:
            invite = await network.invitations.resend(UUID(invite_id))
            console.print(f"[green]✓[/green] Invitation resent to {invite.email}")
            console.print(f"  New ID: {invite.id}")
            console.print(f"  New expiration: {invite.expires_at}")

    run_async(_resend())


@app.command("revoke")
def invites_revoke_command(
    invite_id: str = typer.Argument(..., help="Invitation ID to revoke"),
) -> None:
    """Revoke (delete) an invitation that was not accepted."""

    async def _revoke():
        async with open_network() as network:
            await network.invitations.revoke(UUID(invite_id))
            console.print(f"[green]✓[/green] Invitation {invite_id[:8]}... revoked")

    run_async(_revoke())


@app.command("verify")
def invites_verify_command(
    token: str = typer.Argument(..., help="Invitation token"),
) -> None:
    """Check whether a token is still valid."""

    async def _verify():
        async with open_network() as network:
            result = await network.invitations.verify(token)
            if not result.valid:
                console.print(f"[red]✗[/red] {result.message}")
                raise typer.Exit(1)

            console.print(f"[green]✓[/green] Valid invitation from {result.agency_name}")
            console.print(f"  Email: {result.email}")
            console.print(f"  Expires: {result.expires_at}")

    run_async(_verify())


@app.command("accept")
def invites_accept_command(
    token: str = typer.Argument(..., help="Invitation token"),
    user_id: str = typer.Option(..., "--user", "-u", help="User ID accepting"),
) -> None:
    """Accept an invitation using its token."""

    async def _accept():
        async with open_network() as network:
            invite = await network.invitations.accept(token, UUID(user_id))
            console.print("[green]✓[/green] Invitation accepted")
            console.print(f"  Agency: {invite.agency_id}")
            console.print(f"  User: {user_id[:8]}...")

    run_async(_accept())


@app.command("decline")
def invites_decline_command(
    token: str = typer.Argument(..., help="Invitation token"),
    user_id: str = typer.Option(..., "--user", "-u", help="User ID declining"),
) -> None:
    """Decline an invitation using its token."""

    async def _decline():
        async with open_network() as network:
            await network.invitations.decline(token, UUID(user_id))
            console.print("[green]✓[/green] Invitation declined")

    run_async(_decline())

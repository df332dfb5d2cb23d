"""
CLI commands for developer-agency collaborations.
"""

from typing import Optional
from uuid import UUID

import typer
from rich.table import Table

from ...collaborations import CollaborationState, ContractSort, ContractStatus
from . import console, open_network, run_async

app = typer.Typer(help="Manage developer-agency collaborations")

STATE_STYLES = {
    CollaborationState.ACTIVE: "green",
    CollaborationState.PENDING: "yellow",
    CollaborationState.REJECTED: "red",
    CollaborationState.RENEWAL_REQUIRED: "magenta",
}


@app.command("request")
def contracts_request_command(
    developer_id: str = typer.Option(..., "--developer", "-d", help="Developer ID"),
    agency_id: str = typer.Option(..., "--agency", "-a", help="Requesting agency ID"),
    registration: str = typer.Option(..., "--registration", help="Registration document URL"),
    license_url: str = typer.Option(..., "--license", help="Business license URL"),
    signed_contract: str = typer.Option(..., "--signed-contract", help="Signed contract URL"),
    project: Optional[str] = typer.Option(None, "--project", "-p", help="Project name"),
) -> None:
    """Request a collaboration with a developer."""

    async def _request():
        async with open_network() as network:
            contract = await network.contracts.request(
                UUID(developer_id),
                UUID(agency_id),
                {
                    "agency_registration_url": registration,
                    "agency_license_url": license_url,
                    "agency_signed_contract_url": signed_contract,
                },
                project_name=project,
            )
            console.print("[green]✓[/green] Collaboration requested")
            console.print(f"  ID: {contract.id}")

    run_async(_request())


@app.command("review")
def contracts_review_command(
    developer_id: str = typer.Option(..., "--developer", "-d", help="Developer ID"),
    agency_id: str = typer.Option(..., "--agency", "-a", help="Agency ID"),
    decision: ContractStatus = typer.Option(..., "--decision", help="active or rejected"),
    counter_signed: Optional[str] = typer.Option(
        None, "--counter-signed", help="Counter-signed contract URL"
    ),
) -> None:
    """Approve or reject a pending collaboration request."""

    async def _review():
        async with open_network() as network:
            contract = await network.contracts.review(
                UUID(developer_id),
                UUID(agency_id),
                decision,
                counter_signed_doc_url=counter_signed,
            )
            console.print(f"[green]✓[/green] Collaboration {contract.status.value}")

    run_async(_review())


@app.command("renew")
def contracts_renew_command(
    developer_id: str = typer.Option(..., "--developer", "-d", help="Developer ID"),
    agency_id: str = typer.Option(..., "--agency", "-a", help="Agency ID"),
    license_url: str = typer.Option(..., "--license", help="Renewed business license URL"),
) -> None:
    """Upload a renewed agency license for an active collaboration."""

    async def _renew():
        async with open_network() as network:
            contract = await network.contracts.renew(UUID(developer_id), UUID(agency_id), license_url)
            console.print("[green]✓[/green] License renewed")
            console.print(f"  Valid from: {contract.license_anchor:%Y-%m-%d}")

    run_async(_renew())


@app.command("list")
def contracts_list_command(
    developer_id: Optional[str] = typer.Option(None, "--developer", "-d", help="Developer ID"),
    agency_id: Optional[str] = typer.Option(None, "--agency", "-a", help="Agency ID"),
    status: Optional[ContractStatus] = typer.Option(None, "--status", "-s", help="Filter by status"),
    search: Optional[str] = typer.Option(None, "--search", "-q", help="Match agency name or email"),
    sort: ContractSort = typer.Option(ContractSort.DATE, "--sort", help="date, name or status"),
    ascending: bool = typer.Option(False, "--asc", help="Ascending order"),
) -> None:
    """List collaborations of a developer or of an agency."""
    if (developer_id is None) == (agency_id is None):
        console.print("[red]Error:[/red] pass exactly one of --developer or --agency")
        raise typer.Exit(1)

    async def _list():
        async with open_network() as network:
            if developer_id:
                contracts = await network.contracts.list_by_developer(
                    UUID(developer_id),
                    status=status,
                    search=search,
                    sort=sort,
                    descending=not ascending,
                )
            else:
                contracts = await network.contracts.list_by_agency(UUID(agency_id), status=status)

            if not contracts:
                console.print("[yellow]No collaborations found[/yellow]")
                return

            now = network.now()
            table = Table(title="Collaborations")
            table.add_column("Agency" if developer_id else "Developer", style="cyan")
            table.add_column("State")
            table.add_column("Documents")
            table.add_column("Requested", style="dim")

            for contract in contracts:
                state = network.contracts.collaboration_state(contract, now)
                style = STATE_STYLES.get(state, "white")
                checklist = network.contracts.document_checklist(contract)
                if developer_id:
                    party = contract.agency.display_name if contract.agency else str(contract.agency_id)
                else:
                    party = str(contract.developer_id)

                table.add_row(
                    party,
                    f"[{style}]{state.value}[/{style}]",
                    "complete" if checklist.ready_for_approval else f"missing {len(checklist.missing)}",
                    contract.created_at.strftime("%Y-%m-%d"),
                )

            console.print(table)

    run_async(_list())

"""
Agency network CLI - manage invitations, agents, collaborations and sharing.

Usage:
    agencynet migrate           Run database migrations
    agencynet status            Show migration status
    agencynet invites           Manage agent invitations
    agencynet agents            Manage an agency's agents
    agencynet contracts         Manage developer-agency collaborations
    agencynet sharing           Manage property visibility
"""

from typing import Optional

import typer

from ..utils.log import configure_logging
from .commands import agents, contracts, invites, migrate, sharing

app = typer.Typer(
    name="agencynet",
    help="Agency network lifecycle on Supabase",
    add_completion=False,
)

app.command(name="migrate")(migrate.migrate_command)
app.command(name="status")(migrate.status_command)

app.add_typer(invites.app, name="invites")
app.add_typer(agents.app, name="agents")
app.add_typer(contracts.app, name="contracts")
app.add_typer(sharing.app, name="sharing")


@app.callback()
def callback(
    log_level: Optional[str] = typer.Option(
        None, "--log-level", envvar="AGENCYNET_LOG_LEVEL", help="Logging level"
    ),
) -> None:
    """
    Agency network - invitations, memberships, collaborations and sharing.
    """
    configure_logging(level=log_level or "WARNING")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()

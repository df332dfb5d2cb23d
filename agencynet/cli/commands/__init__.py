"""
Shared helpers for CLI command modules.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

import typer
from rich.console import Console

from ...client import AgencyNetwork
from ...exceptions import AgencyNetworkError, PartialFailureError

console = Console()


def run_async(coro):
    """Run async function in sync context."""
    return asyncio.run(coro)


@asynccontextmanager
async def open_network() -> AsyncIterator[AgencyNetwork]:
    """
    Create a client from the environment and report lifecycle errors.

    Lifecycle errors are printed in red and end the command with exit code 1.
    """
    network = await AgencyNetwork.create()
    try:
        yield network
    except PartialFailureError as e:
        console.print(f"[red]Error:[/red] {e}")
        console.print(
            f"[yellow]Completed:[/yellow] {', '.join(e.completed_steps) or 'nothing'}; "
            f"retry to resume at '{e.failed_step}'"
        )
        raise typer.Exit(1)
    except AgencyNetworkError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    finally:
        await network.close()

"""
CLI commands for the reviewer access guard.
"""

import asyncio
from uuid import UUID

import typer
from rich.console import Console

from ...client import ReviewGate
from ...identity.models import Identity

console = Console()
app = typer.Typer(help="Check reviewer access to owner-only pages")


@app.command("check")
def guard_check_command(
    user_id: str = typer.Option(..., "--user", "-u", help="Identity ID"),
    email: str = typer.Option(..., "--email", "-e", help="Identity email"),
    path: str = typer.Option("/dashboard", "--path", "-p", help="Path being visited"),
) -> None:
    """Show whether an identity would be let through to a path."""

    async def _check():
        gate = await ReviewGate.create()
        try:
            decision = await gate.guard().evaluate(
                Identity(id=UUID(user_id), email=email), path
            )
        finally:
            await gate.close()

        if decision.allow:
            console.print(f"[green]✓[/green] Access to {path} allowed")
        else:
            console.print(f"[yellow]→[/yellow] Redirected to {decision.redirect_to}")
        if decision.timed_out:
            console.print("  [dim]Lookups timed out; allowed by default[/dim]")
        elif decision.owned_count is not None:
            console.print(f"  Owned projects: {decision.owned_count}")
            console.print(f"  Active invitations: {decision.invitation_count}")

    asyncio.run(_check())

"""
CLI commands for review invitations.
"""

import asyncio
from typing import Optional
from uuid import UUID

import typer
from rich.console import Console
from rich.table import Table

from ... import links
from ...client import ReviewGate
from ...identity.models import Identity
from ...invitations.models import utcnow

console = Console()
app = typer.Typer(help="Manage review invitations")


def run_async(coro):
    """Run async function in sync context."""
    return asyncio.run(coro)


def _status_label(invite) -> str:
    if invite.review_completed_at:
        return "Reviewed"
    if invite.is_accepted:
        return "Accepted"
    if invite.is_expired(utcnow()):
        return "Expired"
    return "Pending"


@app.command("show")
def invites_show_command(
    token: str = typer.Argument(..., help="Invitation token"),
) -> None:
    """Show an invitation and the prompt it grants access to."""

    async def _show():
        gate = await ReviewGate.create()
        try:
            invite = await gate.invites.get_by_token(token)
            if invite is None:
                console.print("[red]Error:[/red] Invalid invitation link")
                raise typer.Exit(1)

            console.print(f"[bold]Invitation[/bold] {invite.id}")
            console.print(f"  Email: {invite.target_email}")
            console.print(f"  Status: {_status_label(invite)}")
            console.print(f"  Expires: {invite.expires_at}")
            if invite.resource:
                console.print(f"  Prompt: {invite.resource.title or invite.resource.prompt_id}")
                console.print(f"  Project: {invite.resource.project_id}")
            if invite.accepted_by:
                console.print(f"  Reviewer: {invite.accepted_by}")
        finally:
            await gate.close()

    run_async(_show())


@app.command("accept")
def invites_accept_command(
    token: str = typer.Argument(..., help="Invitation token"),
    user_id: str = typer.Option(..., "--user", "-u", help="Identity ID accepting"),
    email: str = typer.Option(..., "--email", "-e", help="Email of the accepting identity"),
) -> None:
    """Accept an invitation on behalf of an identity."""

    async def _accept():
        gate = await ReviewGate.create()
        orchestrator = gate.acceptance(
            on_step=lambda step: console.print(f"  [dim]{step.value}...[/dim]")
        )
        try:
            outcome = await orchestrator.run(token, Identity(id=UUID(user_id), email=email))
        finally:
            orchestrator.close()
            await gate.close()

        if not outcome.succeeded:
            console.print(f"[red]Error:[/red] {outcome.message}")
            raise typer.Exit(1)

        if outcome.already_accepted:
            console.print("[green]✓[/green] Invitation already accepted")
        else:
            console.print("[green]✓[/green] Invitation accepted")
        console.print(
            f"  Continue at: {outcome.redirect_url or outcome.dashboard_url}", soft_wrap=True
        )

    run_async(_accept())


@app.command("pending")
def invites_pending_command(
    user_id: str = typer.Option(..., "--user", "-u", help="Identity ID"),
    email: str = typer.Option(..., "--email", "-e", help="Identity email"),
) -> None:
    """List active invitations addressed to or accepted by an identity."""

    async def _pending():
        gate = await ReviewGate.create()
        try:
            invites = await gate.invites.list_active_for_identity(
                Identity(id=UUID(user_id), email=email)
            )

            if not invites:
                console.print("[yellow]No active invitations found[/yellow]")
                return

            table = Table(title="Review Invitations")
            table.add_column("Prompt", style="cyan")
            table.add_column("Status", style="green")
            table.add_column("Expires", style="yellow")
            table.add_column("Token", style="dim")

            for invite in invites:
                table.add_row(
                    invite.resource.title if invite.resource and invite.resource.title
                    else str(invite.prompt_id)[:8],
                    _status_label(invite),
                    invite.expires_at.strftime("%Y-%m-%d"),
                    invite.token,
                )

            console.print(table)
        finally:
            await gate.close()

    run_async(_pending())


@app.command("auth-link")
def invites_auth_link_command(
    token: str = typer.Argument(..., help="Invitation token"),
    base_url: Optional[str] = typer.Option(None, "--base-url", help="App base URL"),
) -> None:
    """Print the sign-in or sign-up link for an invitation."""

    async def _auth_link():
        gate = await ReviewGate.create()
        try:
            invite = await gate.invites.get_by_token(token, with_resource=False)
            if invite is None:
                console.print("[red]Error:[/red] Invalid invitation link")
                raise typer.Exit(1)

            mode = await gate.identities.auth_mode_for(invite.target_email)
            base = base_url or gate.config.app_url
            console.print(
                links.auth_url(
                    token,
                    email=invite.target_email,
                    mode=mode,
                    next_url=links.review_url(token),
                    base_url=base,
                ),
                soft_wrap=True,
            )
        finally:
            await gate.close()

    run_async(_auth_link())


@app.command("reviewed")
def invites_reviewed_command(
    invitation_id: str = typer.Argument(..., help="Invitation ID"),
) -> None:
    """Mark an invitation's review as completed."""

    async def _reviewed():
        gate = await ReviewGate.create()
        try:
            invite = await gate.invites.mark_reviewed(UUID(invitation_id))
            console.print(f"[green]✓[/green] Review completed for {invite.target_email}")
        except ValueError as e:
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(1)
        finally:
            await gate.close()

    run_async(_reviewed())

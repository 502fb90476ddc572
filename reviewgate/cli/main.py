"""
ReviewGate CLI - inspect and accept review invitations.

Usage:
    reviewgate invites      Inspect, accept and complete invitations
    reviewgate guard        Check reviewer access to owner-only pages
"""

import logging

import typer
from rich.logging import RichHandler

from .commands import guard, invites

app = typer.Typer(
    name="reviewgate",
    help="Review invitations backed by Supabase",
    add_completion=False,
)

app.add_typer(invites.app, name="invites")
app.add_typer(guard.app, name="guard")


@app.callback()
def callback(
    debug: bool = typer.Option(False, "--debug", help="Show debug logging"),
) -> None:
    """
    ReviewGate - review invitations for Python.
    """
    if debug:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(rich_tracebacks=True)],
        )


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()

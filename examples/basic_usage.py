"""
Basic ReviewGate usage example.

This example walks one invitation through the review flow:
- Building the auth link for an anonymous invitee
- Accepting the invitation once they are signed in
- Checking where a pure reviewer may go
- Marking the review as completed

Run with:
    python examples/basic_usage.py <invitation-token> <access-token>
"""

import asyncio
import logging
import sys

from reviewgate import ReviewGate, links


async def main(invitation_token: str, access_token: str) -> None:
    logging.basicConfig(level=logging.INFO)

    # Create ReviewGate client (loads config from .env)
    gate = await ReviewGate.create()

    try:
        # =================================================================
        # 1. Auth link for an invitee who is not signed in yet
        # =================================================================
        invite = await gate.invites.get_by_token(invitation_token)
        if invite is None:
            print("Invalid invitation link")
            return

        mode = await gate.identities.auth_mode_for(invite.target_email)
        print("Send the invitee to:")
        print(
            "  "
            + links.auth_url(
                invitation_token,
                email=invite.target_email,
                mode=mode,
                next_url=links.review_url(invitation_token),
                base_url=gate.config.app_url,
            )
        )

        # =================================================================
        # 2. Accept once signed in
        # =================================================================
        identity = await gate.identities.get_from_token(access_token)
        if identity is None:
            print("Access token is invalid or expired")
            return

        orchestrator = gate.acceptance(
            on_step=lambda step: print(f"  step: {step.value}"),
        )
        outcome = await orchestrator.run(invitation_token, identity)

        if not outcome.succeeded:
            print(f"\nAcceptance failed ({outcome.error_kind.value}): {outcome.message}")
            if outcome.logout_url:
                print(f"  Sign out and continue at: {outcome.logout_url}")
            # Manual retry restarts from verification
            outcome = await orchestrator.retry()

        if outcome.succeeded:
            done = asyncio.Event()
            orchestrator.schedule_navigation(lambda url: (print(f"\nOpen {url}"), done.set()))
            await done.wait()
        orchestrator.close()

        # =================================================================
        # 3. Reviewer access to owner-only pages
        # =================================================================
        decision = await gate.guard().evaluate(identity, "/dashboard")
        if decision.allow:
            print("/dashboard: allowed")
        else:
            print(f"/dashboard: redirected to {decision.redirect_to}")

        # =================================================================
        # 4. Review finished
        # =================================================================
        await gate.invites.mark_reviewed(invite.id)
        entries = await gate.audit.list_by_invitation(invite.id)
        print(f"\nAudit trail: {[entry.action for entry in entries]}")

    finally:
        await gate.close()


if __name__ == "__main__":
    if len(sys.argv) != 3:
        print(__doc__)
        sys.exit(1)
    asyncio.run(main(sys.argv[1], sys.argv[2]))

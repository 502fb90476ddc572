"""
Review invitation backend operations.

Reads and writes the review_invitations table. Invitations are created by
the invite-sending flow elsewhere; this manager only fetches them, records
acceptance and records review completion.
"""

import logging
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional
from uuid import UUID

from ..audit.models import AuditAction, ResourceType
from ..identity.verifier import emails_match
from .models import InvitationStatus, ReviewInvitation, utcnow

if TYPE_CHECKING:
    from ..client import ReviewGate
    from ..identity.models import Identity

logger = logging.getLogger(__name__)

TABLE = "review_invitations"
WITH_RESOURCE = "*, prompts!inner(id, project_id, title)"


def ilike_literal(value: str) -> str:
    """
    Quote a value for an exact ``ilike`` match inside a PostgREST ``or``.

    LIKE wildcards are escaped, then the result is double-quoted so commas
    and parentheses in the value cannot break the filter grammar.
    """
    pattern = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    quoted = pattern.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{quoted}"'


class InvitationManager:
    """
    Manages review invitation records.

    The acceptance write is conditional: it only applies while
    ``reviewer_id`` is still empty, so a second identity cannot overwrite
    the first. Callers resolve an empty update by re-reading the record.

    Example:
        ```python
        invite = await gate.invites.get_by_token("tok-1")
        updated = await gate.invites.accept("tok-1", identity.id)
        pending = await gate.invites.list_active_for_identity(identity)
        ```
    """

    def __init__(self, gate: "ReviewGate") -> None:
        """
        Initialize InvitationManager.

        Args:
            gate: Main ReviewGate client instance
        """
        self.gate = gate
        self.client = gate.client

    async def get_by_token(
        self, token: str, with_resource: bool = True
    ) -> Optional[ReviewInvitation]:
        """
        Get an invitation by its token.

        Args:
            token: Invitation token
            with_resource: Join the prompt (id, project_id, title)

        Returns:
            ReviewInvitation instance or None if not found
        """
        if not token:
            return None

        columns = WITH_RESOURCE if with_resource else "*"
        result = await self.client.table(TABLE).select(columns).eq(
            "invitation_token", token
        ).execute()

        if not result.data:
            return None

        return ReviewInvitation(**result.data[0])

    async def get(self, invitation_id: UUID) -> Optional[ReviewInvitation]:
        """
        Get an invitation by ID.

        Args:
            invitation_id: Invitation UUID

        Returns:
            ReviewInvitation instance or None if not found
        """
        result = await self.client.table(TABLE).select("*").eq(
            "id", str(invitation_id)
        ).execute()

        if not result.data:
            return None

        return ReviewInvitation(**result.data[0])

    async def accept(
        self,
        token: str,
        identity_id: UUID,
        now: Optional[datetime] = None,
    ) -> Optional[ReviewInvitation]:
        """
        Mark an invitation accepted by an identity.

        Only updates a row whose ``reviewer_id`` is still null.

        Args:
            token: Invitation token
            identity_id: Identity accepting the invitation
            now: Timestamp for updated_at (defaults to current UTC time)

        Returns:
            The updated invitation, or None if no row matched the guard
            (already accepted, or the token vanished)
        """
        now = now or utcnow()
        result = await self.client.table(TABLE).update({
            "status": InvitationStatus.ACCEPTED.value,
            "reviewer_id": str(identity_id),
            "updated_at": now.isoformat(),
        }).eq("invitation_token", token).is_("reviewer_id", "null").execute()

        if not result.data:
            logger.info("Conditional accept matched no row for token %s", token)
            return None

        return ReviewInvitation(**result.data[0])

    async def list_active_for_identity(
        self,
        identity: "Identity",
        now: Optional[datetime] = None,
    ) -> List[ReviewInvitation]:
        """
        List an identity's active invitations.

        Active means addressed to the identity (accepted by it, or sent to
        its email), not expired and not yet reviewed.

        Args:
            identity: Identity to list invitations for
            now: Reference time for expiry (defaults to current UTC time)

        Returns:
            List of ReviewInvitation instances, newest first
        """
        now = now or utcnow()
        email = ilike_literal(identity.email)
        result = await self.client.table(TABLE).select("*").or_(
            f"reviewer_id.eq.{identity.id},reviewer_email.ilike.{email}"
        ).in_(
            "status", [s.value for s in InvitationStatus]
        ).gt(
            "expires_at", now.isoformat()
        ).is_(
            "reviewer_completed_at", "null"
        ).order("created_at", desc=True).execute()

        invitations = [ReviewInvitation(**row) for row in result.data]
        # Guard against clock skew, and against PostgREST reading "*" in
        # an address as a wildcard.
        return [
            inv for inv in invitations
            if inv.is_active(now)
            and (
                inv.accepted_by == identity.id
                or emails_match(inv.target_email, identity.email)
            )
        ]

    async def mark_reviewed(self, invitation_id: UUID) -> ReviewInvitation:
        """
        Record that the reviewer finished their review.

        Removes the invitation from the reviewer's pending list and writes
        an ``invite.reviewed`` audit entry. Audit failures are only logged.

        Args:
            invitation_id: Invitation UUID

        Returns:
            Updated ReviewInvitation instance

        Raises:
            ValueError: If invitation not found
        """
        now = utcnow()
        result = await self.client.table(TABLE).update({
            "reviewer_completed_at": now.isoformat(),
            "status": InvitationStatus.ACCEPTED.value,
            "updated_at": now.isoformat(),
        }).eq("id", str(invitation_id)).execute()

        if not result.data:
            raise ValueError(f"Invitation {invitation_id} not found")

        invite = ReviewInvitation(**result.data[0])
        try:
            await self.gate.audit.log(
                AuditAction.INVITE_REVIEWED,
                user_id=invite.accepted_by,
                resource_type=ResourceType.INVITATION,
                resource_id=invite.id,
            )
        except Exception:
            logger.warning("Could not write audit entry for review %s", invite.id, exc_info=True)

        return invite

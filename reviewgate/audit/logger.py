"""
Audit logging for ReviewGate.

Records invitation acceptances, failed attempts and guard redirects in the
review_audit_log table.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import UUID

from ..invitations.models import utcnow
from .models import AuditAction, AuditLogEntry, ResourceType

if TYPE_CHECKING:
    from ..client import ReviewGate

TABLE = "review_audit_log"
NIL_ID = UUID("00000000-0000-0000-0000-000000000000")


class AuditLogger:
    """
    Manages audit logging operations.

    Example:
        ```python
        await gate.audit.log(
            AuditAction.INVITE_ACCEPTED,
            user_id=identity.id,
            resource_type=ResourceType.INVITATION,
            resource_id=invitation.id,
            metadata={"attempt": 1},
        )

        entries = await gate.audit.list_by_invitation(invitation.id)
        ```
    """

    def __init__(self, gate: "ReviewGate") -> None:
        """
        Initialize AuditLogger.

        Args:
            gate: Main ReviewGate client instance
        """
        self.gate = gate
        self.client = gate.client
        self._enabled = gate.config.enable_audit_log

    def disable(self) -> None:
        self._enabled = False

    def enable(self) -> None:
        self._enabled = True

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    async def log(
        self,
        action: AuditAction | str,
        user_id: Optional[UUID] = None,
        resource_type: Optional[ResourceType | str] = None,
        resource_id: Optional[UUID] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AuditLogEntry:
        """
        Log an audit event.

        Args:
            action: The action being recorded
            user_id: ID of the identity performing the action
            resource_type: Type of resource being acted on
            resource_id: ID of the resource being acted on
            metadata: Additional details about the action

        Returns:
            AuditLogEntry instance (not persisted when logging is disabled)
        """
        action_value = action.value if isinstance(action, AuditAction) else action

        if not self._enabled:
            return AuditLogEntry(id=NIL_ID, action=action_value, created_at=utcnow())

        entry_data = {
            "action": action_value,
            "user_id": str(user_id) if user_id else None,
            "resource_type": (
                resource_type.value
                if isinstance(resource_type, ResourceType)
                else resource_type
            ),
            "resource_id": str(resource_id) if resource_id else None,
            "metadata": metadata or {},
            "created_at": utcnow().isoformat(),
        }

        result = await self.client.table(TABLE).insert(entry_data).execute()

        return AuditLogEntry(**result.data[0])

    async def list_by_invitation(
        self,
        invitation_id: UUID,
        action: Optional[AuditAction | str] = None,
        since: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[AuditLogEntry]:
        """
        List audit entries recorded against an invitation, newest first.

        Args:
            invitation_id: Invitation UUID
            action: Filter by action type
            since: Only entries after this time
            limit: Maximum entries to return

        Returns:
            List of AuditLogEntry instances
        """
        query = (
            self.client.table(TABLE)
            .select("*")
            .eq("resource_type", ResourceType.INVITATION.value)
            .eq("resource_id", str(invitation_id))
        )

        if action:
            action_value = action.value if isinstance(action, AuditAction) else action
            query = query.eq("action", action_value)

        if since:
            query = query.gte("created_at", since.isoformat())

        result = await query.limit(limit).order("created_at", desc=True).execute()

        return [AuditLogEntry(**entry) for entry in result.data]

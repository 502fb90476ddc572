"""
Review audit log models.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class AuditAction(str, Enum):
    """Actions recorded in the review audit trail."""

    INVITE_ACCEPTED = "invite.accepted"
    INVITE_ACCEPT_FAILED = "invite.accept_failed"
    INVITE_REVIEWED = "invite.reviewed"
    GUARD_REDIRECTED = "guard.redirected"


class ResourceType(str, Enum):
    INVITATION = "invitation"
    ROUTE = "route"


class AuditLogEntry(BaseModel):
    """
    A single audit event.

    Stored in the review_audit_log table so acceptance attempts and
    redirects can be traced after the fact.
    """

    id: UUID
    user_id: Optional[UUID] = None

    action: str
    resource_type: Optional[str] = None
    resource_id: Optional[UUID] = None

    metadata: Dict[str, Any] = Field(default_factory=dict)

    created_at: datetime

    model_config = {
        "from_attributes": True,
        "json_schema_extra": {
            "example": {
                "id": "123e4567-e89b-12d3-a456-426614174000",
                "user_id": "789e0123-e89b-12d3-a456-426614174000",
                "action": "invite.accepted",
                "resource_type": "invitation",
                "resource_id": "012e3456-e89b-12d3-a456-426614174000",
                "metadata": {"attempt": 1},
                "created_at": "2024-01-01T00:00:00Z",
            }
        },
    }

"""
Review invitation models.

Pydantic models for review invitations. Attribute names follow the domain;
aliases map them onto the review_invitations columns.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class InvitationStatus(str, Enum):
    """Persisted invitation status. Expiry is computed, never stored."""

    SENT = "sent"
    ACCEPTED = "accepted"


class ResourceRef(BaseModel):
    """The prompt an invitation grants review access to, and its project."""

    prompt_id: UUID = Field(alias="id")
    project_id: UUID
    title: Optional[str] = None

    model_config = {"populate_by_name": True}


class ReviewInvitation(BaseModel):
    """
    Review invitation - one identity invited to review one prompt.

    Stored in the review_invitations table. ``token`` is the only
    identifier ever shown outside the backend.
    """

    id: UUID
    token: str = Field(alias="invitation_token")
    target_email: str = Field(alias="reviewer_email")
    prompt_id: UUID

    # Who sent the invite
    inviter_id: Optional[UUID] = None
    message: Optional[str] = None

    status: InvitationStatus = InvitationStatus.SENT
    expires_at: datetime

    # Acceptance tracking
    accepted_by: Optional[UUID] = Field(default=None, alias="reviewer_id")
    review_completed_at: Optional[datetime] = Field(
        default=None, alias="reviewer_completed_at"
    )

    # Joined prompt (select "*, prompts!inner(id, project_id, title)")
    resource: Optional[ResourceRef] = Field(default=None, alias="prompts")

    # Timestamps
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {
        "populate_by_name": True,
        "from_attributes": True,
        "json_schema_extra": {
            "example": {
                "id": "123e4567-e89b-12d3-a456-426614174000",
                "invitation_token": "tok-1",
                "reviewer_email": "rev@x.com",
                "prompt_id": "456e7890-e89b-12d3-a456-426614174000",
                "status": "sent",
                "expires_at": "2024-01-08T00:00:00Z",
                "reviewer_id": None,
                "reviewer_completed_at": None,
            }
        },
    }

    @field_validator(
        "expires_at", "review_completed_at", "created_at", "updated_at"
    )
    @classmethod
    def _assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)

    @property
    def is_accepted(self) -> bool:
        return self.status == InvitationStatus.ACCEPTED

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """True once wall-clock time has passed ``expires_at``."""
        return (as_utc(now) or utcnow()) > self.expires_at

    def is_active(self, now: Optional[datetime] = None) -> bool:
        """Not expired and review not yet completed."""
        return not self.is_expired(now) and self.review_completed_at is None

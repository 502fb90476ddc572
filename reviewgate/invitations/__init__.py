"""
ReviewGate invitations module.

Review invitation records and their backend operations.
"""

from .invites import InvitationManager
from .models import InvitationStatus, ResourceRef, ReviewInvitation

__all__ = [
    "InvitationManager",
    "ReviewInvitation",
    "InvitationStatus",
    "ResourceRef",
]

"""
ReviewGate identity module.

Identity resolution, ownership lookups and invitee email verification.
"""

from .models import AuthMode, Identity
from .users import IdentityManager
from .verifier import emails_match

__all__ = [
    "IdentityManager",
    "Identity",
    "AuthMode",
    "emails_match",
]

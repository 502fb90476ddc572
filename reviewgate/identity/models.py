"""
Identity models.
"""

from enum import Enum
from uuid import UUID

from pydantic import BaseModel


class Identity(BaseModel):
    """
    An authenticated identity as resolved from an access token.

    ``email`` is kept exactly as the auth provider reports it.
    """

    id: UUID
    email: str

    model_config = {"frozen": True}


class AuthMode(str, Enum):
    """Which authentication form an invitee should land on."""

    SIGN_IN = "signin"
    SIGN_UP = "signup"

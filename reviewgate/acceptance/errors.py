"""
Acceptance error taxonomy.

Validation errors are fatal and never retried automatically; only a
user-initiated retry restarts the workflow. ``PersistenceFailure`` is what
a transient backend error becomes once the retry policy gives up.
"""

from datetime import datetime
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Machine-readable failure category of an acceptance run."""

    INVALID_TOKEN = "invalid_token"
    EMAIL_MISMATCH = "email_mismatch"
    EXPIRED = "expired"
    ALREADY_ACCEPTED = "already_accepted"
    PERSISTENCE_FAILURE = "persistence_failure"
    TIMEOUT = "timeout"
    UNEXPECTED = "unexpected"


class AcceptanceError(Exception):
    """Base class for every acceptance failure."""

    kind: ErrorKind = ErrorKind.UNEXPECTED
    retryable: bool = False
    default_message = "An unexpected error occurred during invitation acceptance"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InvitationValidationError(AcceptanceError, ValueError):
    """The invitation cannot be accepted as presented. Never retried."""


class InvalidToken(InvitationValidationError):
    kind = ErrorKind.INVALID_TOKEN
    default_message = "Invalid invitation token or invitation not found"


class EmailMismatch(InvitationValidationError):
    """Signed in as someone other than the invitee."""

    kind = ErrorKind.EMAIL_MISMATCH

    def __init__(self, target_email: str, identity_email: str) -> None:
        self.target_email = target_email
        self.identity_email = identity_email
        super().__init__(
            f"You're logged in as {identity_email}, but this invitation was sent "
            f"to {target_email}. Would you like to log out and sign in with the "
            "correct email address?"
        )


class InvitationExpired(InvitationValidationError):
    kind = ErrorKind.EXPIRED
    default_message = "This invitation has expired"

    def __init__(self, expires_at: Optional[datetime] = None) -> None:
        self.expires_at = expires_at
        super().__init__()


class InvitationAlreadyAccepted(InvitationValidationError):
    """Accepted invitations belong to a single identity."""

    kind = ErrorKind.ALREADY_ACCEPTED
    default_message = "This invitation has already been accepted by another account"


class PersistenceFailure(AcceptanceError):
    """A backend operation kept failing after every allowed attempt."""

    kind = ErrorKind.PERSISTENCE_FAILURE
    retryable = True
    default_message = "Failed to accept invitation - database update failed"

    def __init__(
        self,
        cause: Optional[BaseException] = None,
        attempts: int = 0,
        message: Optional[str] = None,
    ) -> None:
        self.cause = cause
        self.attempts = attempts
        super().__init__(message)


class AcceptanceTimeout(AcceptanceError):
    kind = ErrorKind.TIMEOUT
    retryable = True
    default_message = (
        "The invitation acceptance process is taking longer than expected. "
        "Please try again or contact support."
    )


class UnexpectedFailure(AcceptanceError):
    """Wraps anything outside the taxonomy."""

    kind = ErrorKind.UNEXPECTED

    def __init__(self, cause: Optional[BaseException] = None) -> None:
        self.cause = cause
        super().__init__()

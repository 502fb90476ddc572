"""
ReviewGate acceptance module.

The invitation acceptance workflow and the retry and deadline primitives
it runs on.
"""

from .deadline import Deadline, DeadlineExceeded
from .errors import (
    AcceptanceError,
    AcceptanceTimeout,
    EmailMismatch,
    ErrorKind,
    InvalidToken,
    InvitationAlreadyAccepted,
    InvitationExpired,
    InvitationValidationError,
    PersistenceFailure,
    UnexpectedFailure,
)
from .models import AcceptanceOutcome, ProcessStep
from .orchestrator import AcceptanceOrchestrator
from .retry import TRANSIENT_ERRORS, RetryPolicy, linear_backoff, with_retry

__all__ = [
    "AcceptanceOrchestrator",
    "AcceptanceOutcome",
    "ProcessStep",
    "RetryPolicy",
    "with_retry",
    "linear_backoff",
    "TRANSIENT_ERRORS",
    "Deadline",
    "DeadlineExceeded",
    "ErrorKind",
    "AcceptanceError",
    "InvitationValidationError",
    "InvalidToken",
    "EmailMismatch",
    "InvitationExpired",
    "InvitationAlreadyAccepted",
    "PersistenceFailure",
    "AcceptanceTimeout",
    "UnexpectedFailure",
]

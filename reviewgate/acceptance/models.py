"""
Acceptance workflow models.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel

from ..invitations.models import ResourceRef
from .errors import ErrorKind


class ProcessStep(str, Enum):
    """
    Orchestrator state.

    In-progress: verifying -> accepting -> preparing.
    Terminal: complete, error, timeout.
    """

    VERIFYING = "verifying"
    ACCEPTING = "accepting"
    PREPARING = "preparing"
    COMPLETE = "complete"
    ERROR = "error"
    TIMEOUT = "timeout"

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessStep.COMPLETE, ProcessStep.ERROR, ProcessStep.TIMEOUT)


class AcceptanceOutcome(BaseModel):
    """
    Terminal result of one acceptance run.

    Fatal outcomes always offer a manual retry and the dashboard as an
    escape hatch; email mismatches also offer signing out.
    """

    step: ProcessStep
    token: str
    attempt: int = 1

    # Success
    resource: Optional[ResourceRef] = None
    redirect_url: Optional[str] = None
    already_accepted: bool = False

    # Failure
    error_kind: Optional[ErrorKind] = None
    message: Optional[str] = None
    target_email: Optional[str] = None
    identity_email: Optional[str] = None
    retry_allowed: bool = False
    dashboard_url: Optional[str] = None
    logout_url: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.step == ProcessStep.COMPLETE

"""
ReviewGate - review invitations backed by Supabase.

Turns a review-invitation token into an accepted, audited reviewer grant,
and keeps pure reviewers out of owner-only pages.

Example:
    ```python
    from reviewgate import ReviewGate

    gate = await ReviewGate.create()

    # Resolve the signed-in user
    identity = await gate.identities.get_from_token(access_token)

    # Accept an invitation
    orchestrator = gate.acceptance()
    outcome = await orchestrator.run("tok-1", identity)
    if outcome.succeeded:
        print(outcome.redirect_url)

    # Guard owner-only pages
    decision = await gate.guard().evaluate(identity, "/dashboard")
    ```
"""

from .acceptance import (
    AcceptanceError,
    AcceptanceOrchestrator,
    AcceptanceOutcome,
    Deadline,
    ErrorKind,
    ProcessStep,
    RetryPolicy,
)
from .audit import AuditAction, AuditLogEntry, AuditLogger
from .client import ReviewGate
from .config import ReviewGateConfig, load_config
from .continuation import PendingRedirect, RedirectContinuation
from .guard import AccessGuard, GuardDecision
from .identity import AuthMode, Identity, IdentityManager, emails_match
from .invitations import InvitationManager, InvitationStatus, ReviewInvitation

__version__ = "0.1.0"

__all__ = [
    # Main client
    "ReviewGate",
    "ReviewGateConfig",
    "load_config",
    # Acceptance workflow
    "AcceptanceOrchestrator",
    "AcceptanceOutcome",
    "ProcessStep",
    "RetryPolicy",
    "Deadline",
    "AcceptanceError",
    "ErrorKind",
    # Invitations
    "InvitationManager",
    "ReviewInvitation",
    "InvitationStatus",
    # Identity
    "IdentityManager",
    "Identity",
    "AuthMode",
    "emails_match",
    # Guard and continuation
    "AccessGuard",
    "GuardDecision",
    "RedirectContinuation",
    "PendingRedirect",
    # Audit logging
    "AuditLogger",
    "AuditLogEntry",
    "AuditAction",
]

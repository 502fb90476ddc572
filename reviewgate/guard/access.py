"""
Access guard for owner-only pages.

An identity that owns no projects but holds at least one active review
invitation is a "pure reviewer" and is sent to the landing page instead of
the dashboard or a project page it has no business browsing. Lookups are
bounded by a deadline; when they are slow or fail, access is allowed.
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Iterable, Optional, Tuple

from pydantic import BaseModel

from .. import links
from ..acceptance.deadline import Deadline, DeadlineExceeded
from ..audit.models import AuditAction, ResourceType
from ..identity.models import Identity

if TYPE_CHECKING:
    from ..audit.logger import AuditLogger
    from ..identity.users import IdentityManager
    from ..invitations.invites import InvitationManager

logger = logging.getLogger(__name__)

OWNER_ONLY_PREFIXES: Tuple[str, ...] = (links.DASHBOARD_URL, "/project/")


class GuardDecision(BaseModel):
    """Result of evaluating one navigation."""

    allow: bool
    redirect_to: Optional[str] = None
    reason: Optional[str] = None
    owned_count: Optional[int] = None
    invitation_count: Optional[int] = None
    timed_out: bool = False


class AccessGuard:
    """
    Redirects pure reviewers away from owner-only paths.

    Example:
        ```python
        guard = gate.guard()
        decision = await guard.evaluate(identity, "/dashboard")
        if not decision.allow:
            return RedirectResponse(decision.redirect_to)
        ```
    """

    def __init__(
        self,
        identities: "IdentityManager",
        invitations: "InvitationManager",
        timeout: float = 10.0,
        landing_url: str = links.LANDING_URL,
        owner_only_prefixes: Iterable[str] = OWNER_ONLY_PREFIXES,
        audit: Optional["AuditLogger"] = None,
    ) -> None:
        """
        Initialize AccessGuard.

        Args:
            identities: Source of project ownership counts
            invitations: Source of active invitations
            timeout: Seconds to wait for both lookups before allowing access
            landing_url: Where pure reviewers are sent
            owner_only_prefixes: Path prefixes reserved for owners
            audit: Optional audit logger for recording redirects
        """
        self.identities = identities
        self.invitations = invitations
        self.timeout = timeout
        self.landing_url = landing_url
        self.owner_only_prefixes = tuple(owner_only_prefixes)
        self.audit = audit

    def is_owner_only(self, path: str) -> bool:
        return any(path.startswith(prefix) for prefix in self.owner_only_prefixes)

    @staticmethod
    def decide(
        owned_count: int,
        invitation_count: int,
        path: str,
        landing_url: str = links.LANDING_URL,
        owner_only_prefixes: Iterable[str] = OWNER_ONLY_PREFIXES,
    ) -> GuardDecision:
        """
        Decide whether a navigation may proceed.

        Owners are never redirected. Identities with neither projects nor
        invitations are left alone as well.
        """
        pure_reviewer = owned_count == 0 and invitation_count > 0
        owner_only = any(path.startswith(p) for p in owner_only_prefixes)

        if pure_reviewer and owner_only:
            return GuardDecision(
                allow=False,
                redirect_to=landing_url,
                reason="pure_reviewer",
                owned_count=owned_count,
                invitation_count=invitation_count,
            )

        return GuardDecision(
            allow=True,
            reason="owner" if owned_count > 0 else None,
            owned_count=owned_count,
            invitation_count=invitation_count,
        )

    async def evaluate(self, identity: Optional[Identity], path: str) -> GuardDecision:
        """
        Evaluate a navigation for an identity.

        Args:
            identity: Signed-in identity, or None when anonymous
            path: Path being navigated to

        Returns:
            GuardDecision; lookups that time out or fail allow access
        """
        if identity is None:
            return GuardDecision(allow=True, reason="anonymous")
        if not self.is_owner_only(path):
            return GuardDecision(allow=True, reason="unguarded_path")

        deadline = Deadline(self.timeout)
        try:
            owned_count, invitations = await deadline.guard(
                asyncio.gather(
                    self.identities.owned_project_count(identity.id),
                    self.invitations.list_active_for_identity(identity),
                )
            )
        except DeadlineExceeded:
            logger.warning(
                "Reviewer guard timed out after %.1fs for %s; allowing access",
                self.timeout,
                path,
            )
            return GuardDecision(allow=True, reason="timeout", timed_out=True)
        except Exception:
            logger.warning(
                "Reviewer guard lookups failed for %s; allowing access",
                path,
                exc_info=True,
            )
            return GuardDecision(allow=True, reason="lookup_failed")

        decision = self.decide(
            owned_count,
            len(invitations),
            path,
            landing_url=self.landing_url,
            owner_only_prefixes=self.owner_only_prefixes,
        )
        logger.debug(
            "Reviewer guard: owned=%d invitations=%d path=%s allow=%s",
            owned_count,
            len(invitations),
            path,
            decision.allow,
        )

        if not decision.allow:
            logger.info("Redirecting pure reviewer from %s to %s", path, decision.redirect_to)
            await self._record(identity, path)
        return decision

    async def _record(self, identity: Identity, path: str) -> None:
        if self.audit is None or not self.audit.is_enabled:
            return
        try:
            await self.audit.log(
                AuditAction.GUARD_REDIRECTED,
                user_id=identity.id,
                resource_type=ResourceType.ROUTE,
                metadata={"path": path, "redirect_to": self.landing_url},
            )
        except Exception:
            logger.warning("Could not write guard audit entry", exc_info=True)

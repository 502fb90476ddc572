"""
Invitation acceptance workflow.

Turns an invitation token plus an authenticated identity into an accepted
invitation. One run moves through verifying -> accepting -> preparing ->
complete, and can end early in ``error``. A deadline races the whole run
and ends it in ``timeout`` if it fires first.
"""

import asyncio
import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any, Awaitable, Callable, List, Optional

from .. import links
from ..audit.models import AuditAction, ResourceType
from ..identity.models import Identity
from ..identity.verifier import emails_match
from ..invitations.models import ResourceRef, ReviewInvitation, utcnow
from .deadline import Deadline, DeadlineExceeded
from .errors import (
    AcceptanceError,
    AcceptanceTimeout,
    EmailMismatch,
    InvalidToken,
    InvitationAlreadyAccepted,
    InvitationExpired,
    UnexpectedFailure,
)
from .models import AcceptanceOutcome, ProcessStep
from .retry import RetryPolicy

if TYPE_CHECKING:
    from ..client import ReviewGate

logger = logging.getLogger(__name__)


class AcceptanceOrchestrator:
    """
    Runs the invitation acceptance state machine for one user session.

    Steps:
    1. verifying: fetch the invitation (with its prompt) by token
    2. identity check: already accepted by this identity -> complete, no
       writes; otherwise the invitee email must match
    3. expiry check against the current time
    4. accepting: conditional write of status/reviewer_id, retried
    5. preparing: short settle delay so read models catch up
    6. complete: outcome carries the project URL to navigate to

    Validation failures end the run immediately. Backend failures are
    retried by the retry policy and only then surface as errors. A manual
    ``retry()`` restarts from step 1 and keeps nothing from the failed run
    except the attempt counter.

    Example:
        ```python
        orchestrator = gate.acceptance(on_step=print)
        outcome = await orchestrator.run("tok-1", identity)
        if outcome.succeeded:
            orchestrator.schedule_navigation(redirect)
        else:
            outcome = await orchestrator.retry()
        ...
        orchestrator.close()
        ```
    """

    def __init__(
        self,
        gate: "ReviewGate",
        on_step: Optional[Callable[[ProcessStep], Any]] = None,
        on_debug: Optional[Callable[[str], Any]] = None,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            gate: Main ReviewGate client instance
            on_step: Called with every step the run enters
            on_debug: Receives human-readable progress messages
            clock: Source of "now" for expiry checks
            sleep: Awaitable sleep used for backoff and settling
        """
        self.gate = gate
        self.config = gate.config
        self.on_step = on_step
        self.on_debug = on_debug
        self.clock = clock
        self.sleep = sleep
        self.retry_policy = RetryPolicy(
            max_attempts=self.config.max_attempts,
            base_delay=self.config.seconds(1),
            sleep=sleep,
        )

        self.step = ProcessStep.VERIFYING
        self.history: List[ProcessStep] = []
        self.outcome: Optional[AcceptanceOutcome] = None
        self.attempt = 0

        self._run_id = 0
        self._token: Optional[str] = None
        self._identity: Optional[Identity] = None
        self._resource: Optional[ResourceRef] = None
        self._invitation: Optional[ReviewInvitation] = None
        self._deadline: Optional[Deadline] = None
        self._navigation: Optional[Deadline] = None
        self._closed = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run(self, token: str, identity: Identity) -> AcceptanceOutcome:
        """
        Accept an invitation on behalf of an authenticated identity.

        Any run still in flight is cancelled first.

        Args:
            token: Invitation token
            identity: Authenticated identity

        Returns:
            AcceptanceOutcome in a terminal step (complete, error or timeout)

        Raises:
            RuntimeError: If the orchestrator was closed
        """
        if self._closed:
            raise RuntimeError("AcceptanceOrchestrator is closed")

        self._cancel_timers()
        self.attempt += 1
        self._run_id += 1
        run_id = self._run_id
        attempt = self.attempt

        self._token = token
        self._identity = identity
        self._resource = None
        self._invitation = None
        self.outcome = None
        self.history = []

        self._debug(f"Starting invitation acceptance (attempt {attempt})")
        deadline = Deadline(self.config.seconds(self.config.acceptance_timeout))
        self._deadline = deadline
        try:
            return await deadline.guard(
                self._process(run_id, token, identity, attempt)
            )
        except DeadlineExceeded:
            logger.error(
                "Invitation acceptance timed out after %.1fs (token %s, attempt %d)",
                deadline.timeout,
                token,
                attempt,
            )
            self._debug("Process timed out")
            error = AcceptanceTimeout()
            if run_id == self._run_id and not self._closed:
                await self._record(
                    AuditAction.INVITE_ACCEPT_FAILED,
                    self._invitation,
                    identity,
                    {"attempt": attempt, "error": error.kind.value},
                )
            return self._finish(run_id, self._failure(token, attempt, error))

    async def retry(self) -> AcceptanceOutcome:
        """
        Manually restart the last run from verification.

        Raises:
            RuntimeError: If nothing has been run yet
        """
        if self._token is None or self._identity is None:
            raise RuntimeError("No previous acceptance run to retry")
        self._debug(f"Manual retry initiated (attempt {self.attempt + 1})")
        return await self.run(self._token, self._identity)

    def schedule_navigation(
        self, navigate: Callable[[str], Any], url: Optional[str] = None
    ) -> str:
        """
        Navigate after the completion display delay.

        Args:
            navigate: Called with the target URL once the delay elapses;
                may return a coroutine
            url: Override target; defaults to the outcome's redirect URL

        Returns:
            The URL that will be navigated to
        """
        target = url or (self.outcome.redirect_url if self.outcome else None)
        target = target or self.fallback_url
        if self._navigation is not None:
            self._navigation.cancel()

        def _go() -> Any:
            self._debug(f"Redirecting to {target}")
            return navigate(target)

        self._navigation = Deadline(
            self.config.seconds(self.config.navigation_delay), on_expire=_go
        )
        self._navigation.arm()
        return target

    @property
    def fallback_url(self) -> str:
        """Project page when the prompt is known, otherwise the dashboard."""
        if self._resource is not None and self._token is not None:
            return links.project_url(
                self._resource.project_id,
                self._token,
                self._resource.prompt_id,
                base_url=self.config.app_url,
            )
        return links.dashboard_url(self.config.app_url)

    @property
    def logout_url(self) -> Optional[str]:
        """Auth page to return to after signing out to switch accounts."""
        if self._token is None:
            return None
        return links.logout_url(self._token, base_url=self.config.app_url)

    @property
    def is_running(self) -> bool:
        return self.outcome is None and self._deadline is not None and self._deadline.armed

    def close(self) -> None:
        """Cancel the deadline, the in-flight run and any pending navigation."""
        self._closed = True
        self._cancel_timers()

    # ------------------------------------------------------------------
    # Workflow
    # ------------------------------------------------------------------

    async def _process(
        self, run_id: int, token: str, identity: Identity, attempt: int
    ) -> AcceptanceOutcome:
        invitation: Optional[ReviewInvitation] = None
        try:
            self._set_step(run_id, ProcessStep.VERIFYING)
            self._debug("Fetching invitation details...")
            invitation = await self.retry_policy.run(
                lambda: self.gate.invites.get_by_token(token),
                description=f"fetch invitation (attempt {attempt})",
            )
            if invitation is None:
                raise InvalidToken()

            self._resource = invitation.resource
            self._invitation = invitation
            self._debug(
                f"Found invitation for prompt: "
                f"{invitation.resource.title if invitation.resource else invitation.prompt_id}"
            )

            if invitation.accepted_by == identity.id:
                self._debug("Invitation already accepted by this user")
                return self._finish(
                    run_id,
                    self._success(token, attempt, invitation.resource, already_accepted=True),
                )

            if not emails_match(invitation.target_email, identity.email):
                raise EmailMismatch(invitation.target_email, identity.email)

            if invitation.accepted_by is not None:
                raise InvitationAlreadyAccepted()

            if invitation.is_expired(self.clock()):
                raise InvitationExpired(invitation.expires_at)

            self._set_step(run_id, ProcessStep.ACCEPTING)
            self._debug("Accepting invitation...")
            await self.retry_policy.run(
                lambda: self._accept_once(token, identity),
                description=f"accept invitation (attempt {attempt})",
            )
            await self._record(
                AuditAction.INVITE_ACCEPTED, invitation, identity, {"attempt": attempt}
            )

            self._set_step(run_id, ProcessStep.PREPARING)
            self._debug("Preparing project access...")
            await self.sleep(self.config.seconds(self.config.settle_delay))

            self._debug("Process completed successfully")
            return self._finish(run_id, self._success(token, attempt, invitation.resource))

        except AcceptanceError as e:
            logger.warning("Invitation acceptance failed (%s): %s", e.kind.value, e.message)
            self._debug(f"Error: {e.message}")
            await self._record(
                AuditAction.INVITE_ACCEPT_FAILED,
                invitation,
                identity,
                {"attempt": attempt, "error": e.kind.value},
            )
            return self._finish(run_id, self._failure(token, attempt, e))
        except Exception as e:
            logger.exception("Unexpected error during invitation acceptance")
            self._debug(f"Error: {e}")
            return self._finish(run_id, self._failure(token, attempt, UnexpectedFailure(e)))

    async def _accept_once(self, token: str, identity: Identity) -> ReviewInvitation:
        updated = await self.gate.invites.accept(token, identity.id, now=self.clock())
        if updated is not None:
            return updated

        # The guarded write matched nothing: either an earlier attempt of
        # ours already landed, or someone else holds the invitation.
        current = await self.gate.invites.get_by_token(token, with_resource=False)
        if current is None:
            raise InvalidToken()
        if current.accepted_by == identity.id:
            return current
        raise InvitationAlreadyAccepted()

    async def _record(
        self,
        action: AuditAction,
        invitation: Optional[ReviewInvitation],
        identity: Identity,
        metadata: dict,
    ) -> None:
        if not self.config.enable_audit_log:
            return
        try:
            await self.gate.audit.log(
                action,
                user_id=identity.id,
                resource_type=ResourceType.INVITATION,
                resource_id=invitation.id if invitation else None,
                metadata=metadata,
            )
        except Exception:
            logger.warning("Could not write audit entry %s", action.value, exc_info=True)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def _success(
        self,
        token: str,
        attempt: int,
        resource: Optional[ResourceRef],
        already_accepted: bool = False,
    ) -> AcceptanceOutcome:
        redirect = None
        if resource is not None:
            redirect = links.project_url(
                resource.project_id, token, resource.prompt_id, base_url=self.config.app_url
            )
        return AcceptanceOutcome(
            step=ProcessStep.COMPLETE,
            token=token,
            attempt=attempt,
            resource=resource,
            redirect_url=redirect,
            already_accepted=already_accepted,
            dashboard_url=links.dashboard_url(self.config.app_url),
        )

    def _failure(
        self, token: str, attempt: int, error: AcceptanceError
    ) -> AcceptanceOutcome:
        outcome = AcceptanceOutcome(
            step=ProcessStep.TIMEOUT
            if isinstance(error, AcceptanceTimeout)
            else ProcessStep.ERROR,
            token=token,
            attempt=attempt,
            resource=self._resource,
            error_kind=error.kind,
            message=error.message,
            retry_allowed=True,
            dashboard_url=links.dashboard_url(self.config.app_url),
        )
        if isinstance(error, EmailMismatch):
            outcome.target_email = error.target_email
            outcome.identity_email = error.identity_email
            outcome.logout_url = links.logout_url(token, base_url=self.config.app_url)
        return outcome

    def _finish(self, run_id: int, outcome: AcceptanceOutcome) -> AcceptanceOutcome:
        if run_id != self._run_id or self._closed:
            return outcome
        if self._deadline is not None:
            self._deadline.cancel()
        self.outcome = outcome
        self._set_step(run_id, outcome.step)
        return outcome

    def _set_step(self, run_id: int, step: ProcessStep) -> None:
        if run_id != self._run_id or self._closed:
            return
        self.step = step
        self.history.append(step)
        logger.info("Invitation acceptance step: %s", step.value)
        if self.on_step:
            self.on_step(step)

    def _cancel_timers(self) -> None:
        if self._deadline is not None:
            self._deadline.close()
        if self._navigation is not None:
            self._navigation.close()

    def _debug(self, message: str) -> None:
        logger.debug(message)
        if self.on_debug:
            self.on_debug(message)

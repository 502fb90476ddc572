"""
FastAPI integration for ReviewGate.

Provides dependency injection and ready-made invitation routes for FastAPI
applications.

Example:
    ```python
    from fastapi import Depends, FastAPI
    from reviewgate.integrations.fastapi import ReviewGateFastAPI

    app = FastAPI()
    review = ReviewGateFastAPI(app)
    app.include_router(review.router(), prefix="/api")

    @app.get("/dashboard")
    async def dashboard(identity = Depends(review.require_reviewer_access())):
        return {"email": identity.email}
    ```
"""

import logging
from contextvars import ContextVar
from typing import Any, Callable, Dict, Optional

try:
    from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
    from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
except ImportError:
    raise ImportError(
        "FastAPI is required for this integration. "
        "Install it with: pip install reviewgate[fastapi]"
    )

from .. import links
from ..acceptance.errors import ErrorKind
from ..client import ReviewGate
from ..identity.models import Identity

logger = logging.getLogger(__name__)

_gate_ctx: ContextVar[Optional[ReviewGate]] = ContextVar("reviewgate", default=None)
_identity_ctx: ContextVar[Optional[Identity]] = ContextVar("current_identity", default=None)

security = HTTPBearer(auto_error=False)

ERROR_STATUS: Dict[ErrorKind, int] = {
    ErrorKind.INVALID_TOKEN: 404,
    ErrorKind.EMAIL_MISMATCH: 403,
    ErrorKind.EXPIRED: 410,
    ErrorKind.ALREADY_ACCEPTED: 409,
    ErrorKind.PERSISTENCE_FAILURE: 503,
    ErrorKind.TIMEOUT: 504,
    ErrorKind.UNEXPECTED: 500,
}


class ReviewGateFastAPI:
    """
    FastAPI integration for ReviewGate.

    Provides:
    - Automatic ReviewGate client lifecycle management
    - Dependency injection for the authenticated identity
    - Reviewer access guard dependency
    - Invitation routes (auth link, accept)

    Example:
        ```python
        review = ReviewGateFastAPI(app)

        # Or manually without lifecycle hooks
        review = ReviewGateFastAPI()
        await review.setup()
        # ... later
        await review.teardown()
        ```
    """

    def __init__(
        self,
        app: Optional[FastAPI] = None,
        supabase_url: Optional[str] = None,
        supabase_key: Optional[str] = None,
        gate: Optional[ReviewGate] = None,
    ) -> None:
        """
        Initialize ReviewGateFastAPI integration.

        Args:
            app: FastAPI application (optional, for automatic lifecycle)
            supabase_url: Supabase URL (optional, loads from env)
            supabase_key: Supabase key (optional, loads from env)
            gate: Already-initialized client; setup() will not create another
        """
        self.supabase_url = supabase_url
        self.supabase_key = supabase_key
        self._gate: Optional[ReviewGate] = gate

        if gate:
            _gate_ctx.set(gate)
        if app:
            self._setup_lifespan(app)

    def _setup_lifespan(self, app: FastAPI) -> None:
        @app.on_event("startup")
        async def startup() -> None:
            await self.setup()

        @app.on_event("shutdown")
        async def shutdown() -> None:
            await self.teardown()

    async def setup(self) -> None:
        """Initialize the ReviewGate client."""
        if self._gate is None:
            self._gate = await ReviewGate.create(
                supabase_url=self.supabase_url,
                supabase_key=self.supabase_key,
            )
        _gate_ctx.set(self._gate)

    async def teardown(self) -> None:
        """Close the ReviewGate client."""
        if self._gate:
            await self._gate.close()
            self._gate = None
            _gate_ctx.set(None)

    @property
    def gate(self) -> ReviewGate:
        if not self._gate:
            raise RuntimeError("ReviewGate not initialized. Call setup() first.")
        return self._gate

    def require_identity(self) -> Callable:
        """
        Dependency that requires a valid bearer token.

        Returns the authenticated Identity or raises 401.
        """

        async def dependency(
            credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
        ) -> Identity:
            if not credentials:
                raise HTTPException(
                    status_code=401,
                    detail="Not authenticated",
                    headers={"WWW-Authenticate": "Bearer"},
                )

            identity = await self.gate.identities.get_from_token(credentials.credentials)

            if not identity:
                raise HTTPException(
                    status_code=401,
                    detail="Invalid or expired token",
                    headers={"WWW-Authenticate": "Bearer"},
                )

            _identity_ctx.set(identity)
            return identity

        return dependency

    def require_reviewer_access(self) -> Callable:
        """
        Dependency that keeps pure reviewers off owner-only pages.

        Redirects (307) to the landing page when the guard says so.

        Example:
            ```python
            @app.get("/dashboard")
            async def dashboard(
                identity = Depends(review.require_reviewer_access())
            ):
                ...
            ```
        """

        async def dependency(
            request: Request,
            identity: Identity = Depends(self.require_identity()),
        ) -> Identity:
            decision = await self.gate.guard().evaluate(identity, request.url.path)

            if not decision.allow:
                raise HTTPException(
                    status_code=307,
                    detail="Reviewers cannot access this page",
                    headers={"Location": decision.redirect_to or links.LANDING_URL},
                )

            return identity

        return dependency

    def router(self) -> APIRouter:
        """
        Invitation routes.

        - ``GET /invitations/{token}/auth-link``: where an anonymous invitee
          should sign in or sign up
        - ``POST /invitations/{token}/accept``: run the acceptance workflow
          for the bearer of the request
        """
        router = APIRouter(tags=["invitations"])

        @router.get("/invitations/{token}/auth-link")
        async def auth_link(token: str) -> Dict[str, Any]:
            invitation = await self.gate.invites.get_by_token(token, with_resource=False)
            if invitation is None:
                raise HTTPException(status_code=404, detail="Invitation not found")

            mode = await self.gate.identities.auth_mode_for(invitation.target_email)
            return {
                "url": links.auth_url(
                    token,
                    email=invitation.target_email,
                    mode=mode,
                    next_url=links.review_url(token),
                ),
                "email": invitation.target_email,
                "mode": mode.value,
            }

        @router.post("/invitations/{token}/accept")
        async def accept(
            token: str,
            identity: Identity = Depends(self.require_identity()),
        ) -> Dict[str, Any]:
            orchestrator = self.gate.acceptance()
            try:
                outcome = await orchestrator.run(token, identity)
            finally:
                orchestrator.close()

            body = outcome.model_dump(mode="json")
            if outcome.succeeded:
                return body

            status = ERROR_STATUS.get(outcome.error_kind, 500)
            raise HTTPException(status_code=status, detail=body)

        return router


def get_gate() -> ReviewGate:
    """
    Get the current ReviewGate instance.

    Example:
        ```python
        @app.get("/invitations")
        async def pending(gate: ReviewGate = Depends(get_gate)):
            ...
        ```
    """
    gate = _gate_ctx.get()
    if not gate:
        raise RuntimeError(
            "ReviewGate not available. Make sure ReviewGateFastAPI is initialized."
        )
    return gate


def get_current_identity() -> Optional[Identity]:
    """Get the authenticated identity from context, or None."""
    return _identity_ctx.get()

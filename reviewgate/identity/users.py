"""
Identity lookups for ReviewGate.

Resolves access tokens to identities and answers the questions the
invitation flow asks about an identity: does an account exist for this
email, and how many projects does it own.
"""

import logging
from typing import TYPE_CHECKING, Optional
from uuid import UUID

from supabase_auth.errors import AuthError

from .models import AuthMode, Identity

if TYPE_CHECKING:
    from ..client import ReviewGate

logger = logging.getLogger(__name__)


class IdentityManager:
    """
    Identity and ownership lookups.

    Example:
        ```python
        identity = await gate.identities.get_from_token(access_token)
        owned = await gate.identities.owned_project_count(identity.id)
        mode = await gate.identities.auth_mode_for("rev@x.com")
        ```
    """

    def __init__(self, gate: "ReviewGate") -> None:
        """
        Initialize IdentityManager.

        Args:
            gate: Main ReviewGate client instance
        """
        self.gate = gate
        self.client = gate.client

    async def get_from_token(self, access_token: str) -> Optional[Identity]:
        """
        Resolve an access token to the authenticated identity.

        Args:
            access_token: Supabase JWT

        Returns:
            Identity, or None if the token is invalid or has no email
        """
        try:
            response = await self.client.auth.get_user(access_token)
        except AuthError as e:
            logger.debug("Rejected access token: %s", e)
            return None
        user = getattr(response, "user", None)
        if user is None or not user.email:
            return None
        return Identity(id=user.id, email=user.email)

    async def exists_by_email(self, email: str) -> Optional[bool]:
        """
        Check whether an account exists for an email address.

        Calls the ``user_exists_by_email`` RPC.

        Args:
            email: Email address to look up

        Returns:
            True/False, or None when the lookup itself failed
        """
        try:
            result = await self.client.rpc(
                "user_exists_by_email", {"email_address": email}
            ).execute()
        except Exception:
            logger.warning("Account lookup failed for %s", email, exc_info=True)
            return None
        return bool(result.data) if result.data is not None else None

    async def auth_mode_for(self, email: Optional[str]) -> AuthMode:
        """
        Pick sign-in or sign-up for an invitee.

        Sign-up is chosen only when the backend confirms no account exists;
        an unknown answer falls back to sign-in.
        """
        if not email:
            return AuthMode.SIGN_IN
        exists = await self.exists_by_email(email)
        return AuthMode.SIGN_UP if exists is False else AuthMode.SIGN_IN

    async def owned_project_count(self, identity_id: UUID) -> int:
        """
        Count the projects an identity owns.

        Args:
            identity_id: Identity UUID

        Returns:
            Number of rows in projects with user_id = identity_id
        """
        result = await self.client.table("projects").select(
            "id", count="exact"
        ).eq("user_id", str(identity_id)).execute()

        return result.count or 0

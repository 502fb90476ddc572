"""
Main ReviewGate client.

This is the primary interface users interact with.
"""

import logging
from typing import Any, Callable, MutableMapping, Optional

from .acceptance import AcceptanceOrchestrator
from .audit import AuditLogger
from .config import ReviewGateConfig, load_config
from .continuation import RedirectContinuation
from .guard import AccessGuard
from .identity import IdentityManager
from .invitations import InvitationManager
from .links import LANDING_URL
from .utils.supabase import ReviewGateSupabaseClient


class ReviewGate:
    """
    Main ReviewGate client for review invitations.

    Holds the backend managers and hands out the per-session workflow
    objects: acceptance orchestrators, access guards and redirect
    continuations.

    Example:
        ```python
        from reviewgate import ReviewGate

        # Initialize from environment variables
        gate = await ReviewGate.create()

        # Or with explicit config
        gate = await ReviewGate.create(
            supabase_url="https://xxx.supabase.co",
            supabase_key="your-service-key",
        )

        identity = await gate.identities.get_from_token(access_token)
        outcome = await gate.acceptance().run(token, identity)
        ```
    """

    def __init__(self, config: ReviewGateConfig, client: ReviewGateSupabaseClient) -> None:
        """
        Initialize ReviewGate client.

        Args:
            config: ReviewGate configuration
            client: Supabase client wrapper

        Note:
            Use ReviewGate.create() instead of direct instantiation.
        """
        self.config = config
        self.client = client

        self.invites = InvitationManager(self)
        self.identities = IdentityManager(self)
        self.audit = AuditLogger(self)

    @classmethod
    async def create(
        cls,
        supabase_url: Optional[str] = None,
        supabase_key: Optional[str] = None,
        **kwargs,
    ) -> "ReviewGate":
        """
        Create and initialize a ReviewGate client.

        Args:
            supabase_url: Supabase project URL (optional, loads from env)
            supabase_key: Supabase service role key (optional, loads from env)
            **kwargs: Additional configuration options

        Returns:
            Initialized ReviewGate client

        Raises:
            ValidationError: If required configuration is missing or invalid
        """
        config_kwargs = kwargs.copy()
        if supabase_url:
            config_kwargs["supabase_url"] = supabase_url
        if supabase_key:
            config_kwargs["supabase_key"] = supabase_key

        config = load_config(**config_kwargs)

        if config.debug:
            logging.getLogger("reviewgate").setLevel(logging.DEBUG)

        client = await ReviewGateSupabaseClient.create(config)

        return cls(config=config, client=client)

    def acceptance(
        self,
        on_step: Optional[Callable[..., Any]] = None,
        on_debug: Optional[Callable[[str], Any]] = None,
        **kwargs,
    ) -> AcceptanceOrchestrator:
        """
        New acceptance orchestrator. Use one per user session.

        Args:
            on_step: Called with every step the run enters
            on_debug: Receives progress messages
            **kwargs: Passed through (``clock``, ``sleep``)
        """
        return AcceptanceOrchestrator(self, on_step=on_step, on_debug=on_debug, **kwargs)

    def guard(self, landing_url: str = LANDING_URL) -> AccessGuard:
        """Access guard bounded by the configured guard timeout."""
        return AccessGuard(
            self.identities,
            self.invites,
            timeout=self.config.seconds(self.config.guard_timeout),
            landing_url=landing_url,
            audit=self.audit,
        )

    def continuation(self, store: MutableMapping[str, str]) -> RedirectContinuation:
        """Redirect continuation backed by ``store``."""
        return RedirectContinuation(
            store, delay=self.config.seconds(self.config.continuation_delay)
        )

    async def close(self) -> None:
        """
        Close the ReviewGate client and cleanup resources.

        Example:
            ```python
            gate = await ReviewGate.create()
            try:
                ...
            finally:
                await gate.close()
            ```
        """
        await self.client.close()

    async def __aenter__(self) -> "ReviewGate":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

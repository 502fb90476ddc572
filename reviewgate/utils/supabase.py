"""
Supabase client wrapper for ReviewGate.

Thin wrapper around the Supabase AsyncClient configured for the review
tables (review_invitations, projects, review_audit_log) and the
``user_exists_by_email`` RPC.
"""

from typing import Any, Dict, Optional

from supabase import AsyncClient, acreate_client
from supabase.lib.client_options import AsyncClientOptions
from supabase_auth import AsyncMemoryStorage

from ..config import ReviewGateConfig


class ReviewGateSupabaseClient:
    """
    Wrapper around Supabase AsyncClient with ReviewGate-specific configuration.

    This class provides:
    1. Configured client with service role key
    2. Access to the auth API (token -> identity resolution)
    3. Table query builders and RPC calls

    Example:
        ```python
        config = ReviewGateConfig()
        client = await ReviewGateSupabaseClient.create(config)

        result = await client.table("review_invitations").select("*").execute()
        ```
    """

    def __init__(self, config: ReviewGateConfig, client: AsyncClient) -> None:
        """
        Initialize the wrapper.

        Args:
            config: ReviewGate configuration
            client: Initialized Supabase AsyncClient

        Note:
            Use ReviewGateSupabaseClient.create() instead of direct instantiation.
        """
        self.config = config
        self._client = client

    @classmethod
    async def create(cls, config: ReviewGateConfig) -> "ReviewGateSupabaseClient":
        """
        Create and initialize a ReviewGateSupabaseClient.

        Args:
            config: ReviewGate configuration with Supabase credentials

        Returns:
            Initialized ReviewGateSupabaseClient
        """
        options = AsyncClientOptions(
            schema=config.db_schema,
            storage=AsyncMemoryStorage(),
            headers={
                "apikey": config.supabase_key,
                "Authorization": f"Bearer {config.supabase_key}",
            },
        )

        client = await acreate_client(
            supabase_url=config.supabase_url,
            supabase_key=config.supabase_key,
            options=options,
        )

        return cls(config=config, client=client)

    @property
    def auth(self):
        """
        Access Supabase Auth client.

        Used to resolve an access token to the authenticated user
        (``auth.get_user(jwt)``).
        """
        return self._client.auth

    def table(self, table_name: str):
        """
        Create a query builder for a specific table.

        Args:
            table_name: Name of the table (e.g., "review_invitations")

        Returns:
            AsyncRequestBuilder for chaining queries

        Example:
            ```python
            result = await client.table("review_invitations").select("*").eq(
                "invitation_token", token
            ).execute()
            ```
        """
        return self._client.table(table_name)

    def rpc(self, fn: str, params: Optional[Dict[str, Any]] = None):
        """
        Call a Postgres function.

        Args:
            fn: Function name (e.g., "user_exists_by_email")
            params: Named arguments for the function

        Returns:
            Request builder; call ``execute()`` on it
        """
        return self._client.rpc(fn, params or {})

    def schema(self, schema: str):
        """
        Select a database schema.

        Args:
            schema: Schema name (e.g., "public")
        """
        return self._client.schema(schema)

    async def close(self) -> None:
        """
        Close the client and cleanup resources.

        The Supabase AsyncClient holds no resources that need explicit release.
        """
        pass


async def create_supabase_client(config: ReviewGateConfig) -> ReviewGateSupabaseClient:
    """
    Convenience function to create a ReviewGateSupabaseClient.

    Args:
        config: ReviewGate configuration

    Returns:
        Initialized ReviewGateSupabaseClient
    """
    return await ReviewGateSupabaseClient.create(config)

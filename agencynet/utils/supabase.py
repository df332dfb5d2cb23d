"""
Supabase client wrapper for the agency network.

Provides a thin wrapper around the Supabase AsyncClient: table queries for
the network tables, RPC calls for migrations, and Realtime channels for the
change feed.
"""

from typing import Any, Dict, Optional

from supabase import AsyncClient, acreate_client
from supabase.lib.client_options import AsyncClientOptions
from supabase_auth import AsyncMemoryStorage

from ..config import AgencyNetworkConfig


class NetworkSupabaseClient:
    """
    Wrapper around Supabase AsyncClient with agency network configuration.

    This class provides:
    1. Configured client with service role key
    2. Query builders for the network tables
    3. Realtime channels scoped per table and tenant filter

    Example:
        ```python
        from agencynet.utils.supabase import NetworkSupabaseClient
        from agencynet.config import AgencyNetworkConfig

        config = AgencyNetworkConfig()
        client = await NetworkSupabaseClient.create(config)

        result = await client.table("agent_invitations").select("*").execute()
        ```
    """

    def __init__(self, config: AgencyNetworkConfig, client: AsyncClient) -> None:
        """
        Initialize the network Supabase client.

        Args:
            config: Agency network configuration
            client: Initialized Supabase AsyncClient

        Note:
            Use NetworkSupabaseClient.create() instead of direct instantiation.
        """
        self.config = config
        self._client = client

    @classmethod
    async def create(cls, config: AgencyNetworkConfig) -> "NetworkSupabaseClient":
        """
        Create and initialize a NetworkSupabaseClient.

        Args:
            config: Configuration with Supabase credentials

        Returns:
            Initialized NetworkSupabaseClient
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
            config.supabase_url,
            config.supabase_key,
            options=options,
        )

        return cls(config=config, client=client)

    @property
    def auth(self):
        """Access Supabase Auth client."""
        return self._client.auth

    def table(self, table_name: str):
        """
        Create a query builder for a specific table.

        Args:
            table_name: Name of the table (e.g., "agent_invitations")

        Returns:
            AsyncRequestBuilder for chaining queries

        Example:
            ```python
            result = await client.table("agency_agents").update({
                "status": "active"
            }).eq("agency_id", agency_id).eq("agent_id", agent_id).execute()
            ```
        """
        return self._client.table(table_name)

    def rpc(self, fn: str, params: Optional[Dict[str, Any]] = None):
        """Call a Postgres function exposed through PostgREST."""
        return self._client.rpc(fn, params or {})

    def channel(self, topic: str):
        """
        Create a Realtime channel.

        Returns:
            AsyncRealtimeChannel, subscribe with ``await channel.subscribe()``
        """
        return self._client.channel(topic)

    async def remove_channel(self, channel) -> None:
        """Unsubscribe and drop a Realtime channel."""
        await self._client.remove_channel(channel)

    async def close(self) -> None:
        """Close the client and drop any open Realtime channels."""
        await self._client.remove_all_channels()

"""
Main AgencyNetwork client.

This is the primary interface users interact with.
"""

from datetime import datetime
from typing import Callable, Optional

from .collaborations import ContractManager
from .config import AgencyNetworkConfig, load_config
from .invitations import InvitationManager
from .memberships import MembershipManager
from .notifications import NotificationRelay
from .realtime import ChangeFeed
from .sagas import SagaOrchestrator
from .sharing import SharingManager
from .utils.supabase import NetworkSupabaseClient
from .utils.timeutils import ensure_utc, utcnow


class AgencyNetwork:
    """
    Main client for the agency network lifecycle.

    Provides access to invitations, memberships, collaboration contracts,
    property sharing, notifications and the change feed.

    Example:
        ```python
        from agencynet import AgencyNetwork

        # Initialize from environment variables
        network = await AgencyNetwork.create()

        # Or with explicit config
        network = await AgencyNetwork.create(
            supabase_url="https://xxx.supabase.co",
            supabase_key="your-service-key"
        )

        invite = await network.invitations.issue(agency_id, "agent@example.com")
        await network.invitations.accept(invite.token, agent_id)
        ```
    """

    def __init__(
        self,
        config: AgencyNetworkConfig,
        client: NetworkSupabaseClient,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """
        Initialize AgencyNetwork client.

        Args:
            config: Agency network configuration
            client: Supabase client wrapper
            clock: Returns the current time; defaults to UTC wall clock

        Note:
            Use AgencyNetwork.create() instead of direct instantiation.
        """
        self.config = config
        self.client = client
        self.clock = clock or utcnow

        self.notifications = NotificationRelay(self)
        self.sagas = SagaOrchestrator(self)

        self.memberships = MembershipManager(self)
        self.invitations = InvitationManager(self)
        self.contracts = ContractManager(self)
        self.sharing = SharingManager(self)

        self.feed = ChangeFeed(self)

    def now(self) -> datetime:
        """Current time from the configured clock, as aware UTC."""
        return ensure_utc(self.clock())

    @classmethod
    async def create(
        cls,
        supabase_url: Optional[str] = None,
        supabase_key: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None,
        **kwargs,
    ) -> "AgencyNetwork":
        """
        Create and initialize an AgencyNetwork client.

        Args:
            supabase_url: Supabase project URL (optional, loads from env)
            supabase_key: Supabase service role key (optional, loads from env)
            clock: Replacement clock, mostly for tests
            **kwargs: Additional configuration options

        Returns:
            Initialized AgencyNetwork client

        Raises:
            ValidationError: If required configuration is missing or invalid

        Example:
            ```python
            # Load from environment (.env file or AGENCYNET_* env vars)
            network = await AgencyNetwork.create()

            # Explicit configuration
            network = await AgencyNetwork.create(
                supabase_url="https://xxx.supabase.co",
                supabase_key="your-service-key",
                invitation_ttl_days=14,
            )
            ```
        """
        config_kwargs = kwargs.copy()
        if supabase_url:
            config_kwargs["supabase_url"] = supabase_url
        if supabase_key:
            config_kwargs["supabase_key"] = supabase_key

        config = load_config(**config_kwargs)

        client = await NetworkSupabaseClient.create(config)

        if config.auto_migrate:
            from .migrations.manager import MigrationManager

            manager = MigrationManager(client)
            await manager.migrate()

        return cls(config=config, client=client, clock=clock)

    async def close(self) -> None:
        """
        Close the client and drop Realtime channels.

        Example:
            ```python
            network = await AgencyNetwork.create()
            try:
                ...
            finally:
                await network.close()
            ```
        """
        await self.feed.close()
        await self.client.close()

    async def __aenter__(self) -> "AgencyNetwork":
        """Context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        await self.close()

"""
Change feed over Supabase Realtime.

Other sessions learn about lifecycle writes (a new invitation, an accepted
membership, an approved contract) through ``postgres_changes`` events
scoped to one tenant. Events of different tables arrive in no particular
order relative to each other.
"""

import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional
from uuid import UUID

from ..exceptions import ValidationError

if TYPE_CHECKING:
    from ..client import AgencyNetwork

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[Dict[str, Any]], None]

EVENTS = ("*", "INSERT", "UPDATE", "DELETE")


class ChangeFeed:
    """
    Subscribes callbacks to row changes of the network tables.

    Example:
        ```python
        def on_change(payload):
            print(payload["data"]["type"], payload["data"]["record"])

        channel = await network.feed.watch_invitations(agency_id, on_change)
        ...
        await network.feed.unsubscribe(channel)
        ```
    """

    def __init__(self, network: "AgencyNetwork") -> None:
        """
        Initialize ChangeFeed.

        Args:
            network: AgencyNetwork client instance
        """
        self.network = network
        self.client = network.client
        self._channels: List[Any] = []

    @property
    def channels(self) -> List[Any]:
        """Channels opened by this feed and not yet removed."""
        return list(self._channels)

    async def subscribe(
        self,
        table: str,
        column: str,
        value: Any,
        callback: ChangeCallback,
        event: str = "*",
    ):
        """
        Subscribe to changes of ``table`` rows where ``column = value``.

        Args:
            table: Table name (e.g. "agency_agents")
            column: Tenant column the filter applies to
            value: Tenant id
            callback: Called with the Realtime payload of each change
            event: "*", "INSERT", "UPDATE" or "DELETE"

        Returns:
            The subscribed Realtime channel
        """
        event = event.upper()
        if event not in EVENTS:
            raise ValidationError(f"Unknown event '{event}', expected one of {EVENTS}")

        row_filter = f"{column}=eq.{value}"
        channel = self.client.channel(f"{table}:{row_filter}")
        channel.on_postgres_changes(
            event,
            callback,
            table=table,
            schema=self.network.config.db_schema,
            filter=row_filter,
        )
        await channel.subscribe()

        self._channels.append(channel)
        logger.debug("Subscribed to %s %s where %s", table, event, row_filter)
        return channel

    async def watch_invitations(self, agency_id: UUID, callback: ChangeCallback):
        """Invitation rows of one agency."""
        return await self.subscribe("agent_invitations", "agency_id", agency_id, callback)

    async def watch_memberships(self, agency_id: UUID, callback: ChangeCallback):
        """Membership links of one agency."""
        return await self.subscribe("agency_agents", "agency_id", agency_id, callback)

    async def watch_contracts(
        self,
        callback: ChangeCallback,
        developer_id: Optional[UUID] = None,
        agency_id: Optional[UUID] = None,
    ):
        """
        Collaboration contracts of a developer or of an agency.

        Raises:
            ValidationError: Unless exactly one of developer_id/agency_id is given
        """
        if (developer_id is None) == (agency_id is None):
            raise ValidationError("Pass exactly one of developer_id or agency_id")

        if developer_id is not None:
            return await self.subscribe(
                "developer_agency_contracts", "developer_id", developer_id, callback
            )
        return await self.subscribe(
            "developer_agency_contracts", "agency_id", agency_id, callback
        )

    async def unsubscribe(self, channel) -> None:
        """Stop receiving changes on ``channel``."""
        await self.client.remove_channel(channel)
        if channel in self._channels:
            self._channels.remove(channel)

    async def close(self) -> None:
        """Remove every channel this feed opened."""
        for channel in list(self._channels):
            await self.unsubscribe(channel)

"""
Membership management for the agency network.

Handles the agency_agents link table and the single profile column
(agency association) the invitation flow writes.
"""

import logging
from typing import TYPE_CHECKING, List, Optional
from uuid import UUID

from ..exceptions import NotFoundError, StaleTransitionError
from .models import AgencyAgentLink, MembershipFilter, MembershipStatus

if TYPE_CHECKING:
    from ..client import AgencyNetwork

logger = logging.getLogger(__name__)

LINK_COLUMNS = (
    "id, agency_id, agent_id, status, created_at, updated_at, "
    "agent:agent_id(id, full_name, email, avatar_url, whatsapp)"
)


class MembershipManager:
    """
    Manager for agency membership links.

    Works directly with the agency_agents table via PostgREST. Links are
    keyed by (agency_id, agent_id) and written with upserts so every write
    is safe to replay.

    Example:
        ```python
        network = await AgencyNetwork.create()

        # List an agency's active agents matching a search
        agents = await network.memberships.list(
            agency_id, status=MembershipStatus.ACTIVE, search="jane"
        )

        # Drop an agent from the team (account and listings untouched)
        await network.memberships.remove(agency_id, agent_id)
        ```
    """

    def __init__(self, network: "AgencyNetwork") -> None:
        """
        Initialize MembershipManager.

        Args:
            network: AgencyNetwork client instance
        """
        self.network = network
        self.client = network.client

    async def get(self, agency_id: UUID, agent_id: UUID) -> Optional[AgencyAgentLink]:
        """
        Get the link between an agency and an agent.

        Returns:
            AgencyAgentLink if found, None otherwise
        """
        result = await self.client.table("agency_agents").select("*").eq(
            "agency_id", str(agency_id)
        ).eq("agent_id", str(agent_id)).execute()

        if not result.data:
            return None

        return AgencyAgentLink(**result.data[0])

    async def upsert(
        self,
        agency_id: UUID,
        agent_id: UUID,
        status: MembershipStatus,
    ) -> AgencyAgentLink:
        """
        Create or update the link for (agency_id, agent_id).

        Idempotent by composite key: repeating the call with the same status
        leaves one row in that status.

        Args:
            agency_id: Agency profile UUID
            agent_id: Agent profile UUID
            status: Target membership status

        Returns:
            The stored AgencyAgentLink

        Raises:
            StaleTransitionError: If the current status cannot move to ``status``
        """
        status = MembershipStatus(status)
        current = await self.get(agency_id, agent_id)
        if current is not None and not current.status.can_transition_to(status):
            raise StaleTransitionError(
                "membership",
                f"{agency_id}/{agent_id}",
                expected=" or ".join(
                    s.value for s in MembershipStatus if s.can_transition_to(status)
                ),
                actual=current.status.value,
            )

        now = self.network.now().isoformat()
        row = {
            "agency_id": str(agency_id),
            "agent_id": str(agent_id),
            "status": status.value,
            "updated_at": now,
        }
        if current is None:
            row["created_at"] = now

        result = await self.client.table("agency_agents").upsert(
            row, on_conflict="agency_id,agent_id"
        ).execute()

        logger.info("Membership %s/%s -> %s", agency_id, agent_id, status.value)

        if result.data:
            return AgencyAgentLink(**result.data[0])
        return AgencyAgentLink(**row)

    async def list(
        self,
        agency_id: UUID,
        status: Optional[MembershipStatus] = None,
        search: Optional[str] = None,
    ) -> List[AgencyAgentLink]:
        """
        List an agency's agents, newest first.

        Args:
            agency_id: Agency profile UUID
            status: Only links in this status
            search: Case-insensitive substring of the agent's name or email

        Returns:
            List of AgencyAgentLink with the agent profile embedded
        """
        request = MembershipFilter(status=status, search=search)

        query = self.client.table("agency_agents").select(LINK_COLUMNS).eq(
            "agency_id", str(agency_id)
        )

        if request.status:
            query = query.eq("status", request.status.value)

        result = await query.order("created_at", desc=True).execute()

        links = [AgencyAgentLink(**row) for row in result.data or []]

        if request.search:
            links = [link for link in links if link.matches(request.search)]

        return links

    async def list_active_agent_ids(self, agency_id: UUID) -> List[UUID]:
        """Agent ids of the agency's active team."""
        result = await self.client.table("agency_agents").select("agent_id").eq(
            "agency_id", str(agency_id)
        ).eq("status", MembershipStatus.ACTIVE.value).execute()

        return [UUID(row["agent_id"]) for row in result.data or []]

    async def remove(self, agency_id: UUID, agent_id: UUID) -> None:
        """
        Remove an agent from an agency.

        Deletes only the link row. The agent's account and the listings the
        agent owns are left untouched.

        Raises:
            NotFoundError: If no link exists for the pair
        """
        result = await self.client.table("agency_agents").delete().eq(
            "agency_id", str(agency_id)
        ).eq("agent_id", str(agent_id)).execute()

        if not result.data:
            raise NotFoundError(
                f"Agent {agent_id} is not linked to agency {agency_id}"
            )

        logger.info("Removed agent %s from agency %s", agent_id, agency_id)

    async def count(
        self,
        agency_id: UUID,
        status: Optional[MembershipStatus] = None,
    ) -> int:
        """Count links of an agency, optionally by status."""
        query = self.client.table("agency_agents").select(
            "id", count="exact"
        ).eq("agency_id", str(agency_id))

        if status:
            query = query.eq("status", MembershipStatus(status).value)

        result = await query.execute()

        return result.count if result.count is not None else 0

    # Profiles

    async def find_account_id(self, email: str) -> Optional[UUID]:
        """Id of the profile registered with ``email``, if any."""
        result = await self.client.table("profiles").select("id").eq(
            "email", email.strip().lower()
        ).execute()

        if not result.data:
            return None

        return UUID(result.data[0]["id"])

    async def set_agency_association(self, agent_id: UUID, agency_id: UUID) -> None:
        """
        Point an agent's profile at the agency they joined.

        Writing the same value twice is a no-op for the store.

        Raises:
            NotFoundError: If the agent has no profile
        """
        result = await self.client.table("profiles").update(
            {"agency_id": str(agency_id)}
        ).eq("id", str(agent_id)).execute()

        if not result.data:
            raise NotFoundError(f"Profile {agent_id} not found")

    async def display_name(self, profile_id: UUID, default: str = "Unknown Agency") -> str:
        """Agency name of a profile, falling back to the person's name."""
        result = await self.client.table("profiles").select(
            "agency_name, full_name"
        ).eq("id", str(profile_id)).execute()

        if not result.data:
            return default

        profile = result.data[0]
        return profile.get("agency_name") or profile.get("full_name") or default

"""
Property sharing visibility for agencies.

Visibility of a property owned by an agency is either broadcast (flag on
the property, zero grants) or enumerated (flag off, one grant row per
agent). Recipient changes are applied as a diff so untouched agents keep
their grant rows and ``notified`` flags.
"""

import logging
from typing import TYPE_CHECKING, Iterable, List
from uuid import UUID

from ..exceptions import NotFoundError, PartialFailureError, ValidationError
from .models import EffectiveVisibility, ReconcileResult, SharedPropertyGrant

if TYPE_CHECKING:
    from ..client import AgencyNetwork

logger = logging.getLogger(__name__)


class SharingManager:
    """
    Manages who on an agency's team can see a property.

    Example:
        ```python
        # Share with two agents
        result = await network.sharing.reconcile(property_id, agency_id, [a1, a2])

        # Share with the whole team instead
        await network.sharing.set_broadcast(property_id, agency_id, True)

        visibility = await network.sharing.effective_visibility(property_id, agency_id)
        ```
    """

    def __init__(self, network: "AgencyNetwork") -> None:
        """
        Initialize SharingManager.

        Args:
            network: AgencyNetwork client instance
        """
        self.network = network
        self.client = network.client

    async def is_broadcast(self, property_id: UUID, agency_id: UUID) -> bool:
        """
        Read the broadcast flag of a property owned by ``agency_id``.

        Raises:
            NotFoundError: If the agency owns no such property
        """
        result = await self.client.table("properties").select(
            "id, shared_with_all_agents"
        ).eq("id", str(property_id)).eq("agent_id", str(agency_id)).execute()

        if not result.data:
            raise NotFoundError(f"Property {property_id} not found for agency {agency_id}")

        return bool(result.data[0].get("shared_with_all_agents"))

    async def _write_flag(self, property_id: UUID, agency_id: UUID, on: bool) -> None:
        result = await self.client.table("properties").update(
            {"shared_with_all_agents": on}
        ).eq("id", str(property_id)).eq("agent_id", str(agency_id)).execute()

        if not result.data:
            raise NotFoundError(f"Property {property_id} not found for agency {agency_id}")

    async def _delete_grants(self, property_id: UUID, agency_id: UUID) -> int:
        result = await self.client.table("shared_properties").delete().eq(
            "property_id", str(property_id)
        ).eq("shared_by_agency_id", str(agency_id)).execute()

        return len(result.data or [])

    async def list_grants(self, property_id: UUID, agency_id: UUID) -> List[SharedPropertyGrant]:
        """Enumerated grants of a property, oldest first."""
        result = await self.client.table("shared_properties").select("*").eq(
            "property_id", str(property_id)
        ).eq("shared_by_agency_id", str(agency_id)).order("created_at").execute()

        return [SharedPropertyGrant(**row) for row in result.data or []]

    async def list_shared_with_agent(self, agent_id: UUID) -> List[SharedPropertyGrant]:
        """Grants naming an agent, newest first."""
        result = await self.client.table("shared_properties").select("*").eq(
            "agent_id", str(agent_id)
        ).order("created_at", desc=True).execute()

        return [SharedPropertyGrant(**row) for row in result.data or []]

    async def set_broadcast(
        self,
        property_id: UUID,
        agency_id: UUID,
        on: bool,
    ) -> EffectiveVisibility:
        """
        Switch a property between broadcast and enumerated sharing.

        Grants are deleted before the flag is written in both directions.
        Turning broadcast off leaves the property shared with nobody until
        reconcile() is called.

        Raises:
            NotFoundError: If the agency owns no such property
            PartialFailureError: If grants were deleted but the flag write failed
        """
        await self.is_broadcast(property_id, agency_id)

        deleted = await self._delete_grants(property_id, agency_id)

        try:
            await self._write_flag(property_id, agency_id, on)
        except Exception as exc:
            if not deleted:
                raise
            raise PartialFailureError(
                transition="set_broadcast",
                entity_id=property_id,
                failed_step="broadcast_flag",
                completed_steps=["delete_grants"],
                cause=exc,
                context={"agency_id": str(agency_id), "on": on},
            ) from exc

        logger.info(
            "Property %s broadcast %s (%d grants removed)",
            property_id, "on" if on else "off", deleted,
        )
        return EffectiveVisibility(broadcast=on)

    async def reconcile(
        self,
        property_id: UUID,
        agency_id: UUID,
        desired_agent_ids: Iterable[UUID],
    ) -> ReconcileResult:
        """
        Rewrite the enumerated recipient set of a property as a diff.

        Deletes grants no longer desired, adds missing ones with
        ``notified=False`` and leaves the intersection untouched. A grant
        written meanwhile by a concurrent save is kept as is. Calling twice
        with the same set makes zero writes the second time.

        Args:
            property_id: Property UUID
            agency_id: Owning agency UUID
            desired_agent_ids: Agents that should see the property

        Returns:
            ReconcileResult with added/removed/unchanged ids and row writes

        Raises:
            ValidationError: If the property is broadcast
            NotFoundError: If the agency owns no such property
            PartialFailureError: If removals were written but inserting failed
        """
        if await self.is_broadcast(property_id, agency_id):
            raise ValidationError(
                "Property is shared with all agents; turn broadcast off before choosing agents"
            )

        desired = {UUID(str(agent_id)) for agent_id in desired_agent_ids}
        existing = {grant.agent_id for grant in await self.list_grants(property_id, agency_id)}

        to_remove = sorted(existing - desired, key=str)
        to_add = sorted(desired - existing, key=str)
        unchanged = sorted(existing & desired, key=str)

        if to_remove:
            await self.client.table("shared_properties").delete().eq(
                "property_id", str(property_id)
            ).eq("shared_by_agency_id", str(agency_id)).in_(
                "agent_id", [str(agent_id) for agent_id in to_remove]
            ).execute()

        if to_add:
            now = self.network.now().isoformat()
            rows = [
                {
                    "property_id": str(property_id),
                    "agent_id": str(agent_id),
                    "shared_by_agency_id": str(agency_id),
                    "notified": False,
                    "created_at": now,
                }
                for agent_id in to_add
            ]
            try:
                # a concurrent save may already have written some of these grants
                await self.client.table("shared_properties").upsert(
                    rows,
                    on_conflict="property_id,agent_id,shared_by_agency_id",
                    ignore_duplicates=True,
                ).execute()
            except Exception as exc:
                if not to_remove:
                    raise
                raise PartialFailureError(
                    transition="reconcile",
                    entity_id=property_id,
                    failed_step="insert_grants",
                    completed_steps=["delete_grants"],
                    cause=exc,
                    context={"agency_id": str(agency_id), "agent_ids": [str(a) for a in desired]},
                ) from exc

        if to_add or to_remove:
            logger.info(
                "Property %s sharing: +%d -%d (=%d)",
                property_id, len(to_add), len(to_remove), len(unchanged),
            )

        return ReconcileResult(
            added=to_add,
            removed=to_remove,
            unchanged=unchanged,
            writes=len(to_add) + len(to_remove),
        )

    async def effective_visibility(self, property_id: UUID, agency_id: UUID) -> EffectiveVisibility:
        """
        Who can see a property.

        A broadcast property reports ``count == 0`` and no agent ids; the
        whole active team sees it.
        """
        if await self.is_broadcast(property_id, agency_id):
            return EffectiveVisibility(broadcast=True)

        grants = await self.list_grants(property_id, agency_id)
        return EffectiveVisibility(
            broadcast=False,
            count=len(grants),
            agent_ids=[grant.agent_id for grant in grants],
        )

    async def save_settings(
        self,
        property_id: UUID,
        agency_id: UUID,
        share_with_all: bool,
        agent_ids: Iterable[UUID] = (),
    ) -> EffectiveVisibility:
        """
        Apply a sharing settings form in one call.

        ``share_with_all`` turns broadcast on; otherwise broadcast is turned
        off (if it was on) and the recipient set is reconciled to
        ``agent_ids``.

        Raises:
            PartialFailureError: If broadcast was switched off but reconciling failed
        """
        if share_with_all:
            return await self.set_broadcast(property_id, agency_id, True)

        flipped = False
        if await self.is_broadcast(property_id, agency_id):
            await self.set_broadcast(property_id, agency_id, False)
            flipped = True

        agent_ids = list(agent_ids)
        try:
            result = await self.reconcile(property_id, agency_id, agent_ids)
        except PartialFailureError:
            raise
        except Exception as exc:
            if not flipped:
                raise
            raise PartialFailureError(
                transition="save_settings",
                entity_id=property_id,
                failed_step="reconcile",
                completed_steps=["broadcast_flag"],
                cause=exc,
                context={"agency_id": str(agency_id), "agent_ids": [str(a) for a in agent_ids]},
            ) from exc

        agent_set = result.added + result.unchanged
        return EffectiveVisibility(
            broadcast=False,
            count=len(agent_set),
            agent_ids=sorted(agent_set, key=str),
        )

"""
Tests for agencynet.sharing module.
"""

from unittest.mock import patch
from uuid import UUID, uuid4

import pytest
from postgrest.exceptions import APIError

from agencynet.exceptions import NotFoundError, PartialFailureError, ValidationError


@pytest.fixture
def property_id(store, agency_id) -> UUID:
    """A property owned by the agency, not broadcast."""
    prop = uuid4()
    store.seed("properties", id=prop, agent_id=agency_id, shared_with_all_agents=False)
    return prop


@pytest.fixture
def agents():
    return [uuid4(), uuid4(), uuid4()]


class TestReconcile:
    """Tests for diffing the recipient set."""

    @pytest.mark.asyncio
    async def test_initial_share(self, network, store, property_id, agency_id, agents):
        result = await network.sharing.reconcile(property_id, agency_id, agents[:2])

        assert sorted(result.added, key=str) == sorted(agents[:2], key=str)
        assert result.removed == []
        assert result.writes == 2

        grants = store.rows("shared_properties", property_id=property_id)
        assert {row["agent_id"] for row in grants} == {str(a) for a in agents[:2]}
        assert all(row["notified"] is False for row in grants)
        assert all(row["shared_by_agency_id"] == str(agency_id) for row in grants)

    @pytest.mark.asyncio
    async def test_diff_leaves_intersection_untouched(
        self, network, store, property_id, agency_id, agents
    ):
        a1, a2, a3 = agents
        await network.sharing.reconcile(property_id, agency_id, [a1, a2])

        kept = store.find("shared_properties", property_id=property_id, agent_id=a2)
        kept["notified"] = True
        kept_id = kept["id"]

        result = await network.sharing.reconcile(property_id, agency_id, [a2, a3])

        assert result.added == [a3]
        assert result.removed == [a1]
        assert result.unchanged == [a2]
        assert result.writes == 2

        after = store.find("shared_properties", property_id=property_id, agent_id=a2)
        assert after["id"] == kept_id
        assert after["notified"] is True
        assert store.find("shared_properties", property_id=property_id, agent_id=a1) is None

    @pytest.mark.asyncio
    async def test_same_set_twice_writes_nothing(self, network, store, property_id, agency_id, agents):
        await network.sharing.reconcile(property_id, agency_id, agents)
        before = store.writes["shared_properties"]

        result = await network.sharing.reconcile(property_id, agency_id, reversed(agents))

        assert result.writes == 0
        assert result.added == result.removed == []
        assert store.writes["shared_properties"] == before

    @pytest.mark.asyncio
    async def test_empty_set_removes_everyone(self, network, store, property_id, agency_id, agents):
        await network.sharing.reconcile(property_id, agency_id, agents)

        result = await network.sharing.reconcile(property_id, agency_id, [])

        assert len(result.removed) == 3
        assert store.rows("shared_properties", property_id=property_id) == []

    @pytest.mark.asyncio
    async def test_broadcast_property_rejects_reconcile(
        self, network, store, property_id, agency_id, agents
    ):
        await network.sharing.set_broadcast(property_id, agency_id, True)

        with pytest.raises(ValidationError):
            await network.sharing.reconcile(property_id, agency_id, agents)

        assert store.rows("shared_properties", property_id=property_id) == []

    @pytest.mark.asyncio
    async def test_foreign_property(self, network, property_id, agents):
        with pytest.raises(NotFoundError):
            await network.sharing.reconcile(property_id, uuid4(), agents)

    @pytest.mark.asyncio
    async def test_insert_failure_after_delete(self, network, store, property_id, agency_id, agents):
        a1, a2, a3 = agents
        await network.sharing.reconcile(property_id, agency_id, [a1])
        store.fail("shared_properties", "upsert")

        with pytest.raises(PartialFailureError) as exc_info:
            await network.sharing.reconcile(property_id, agency_id, [a2, a3])

        assert exc_info.value.failed_step == "insert_grants"
        assert exc_info.value.completed_steps == ["delete_grants"]

        # retry converges
        result = await network.sharing.reconcile(property_id, agency_id, [a2, a3])
        assert sorted(result.added, key=str) == sorted([a2, a3], key=str)
        assert result.removed == []

    @pytest.mark.asyncio
    async def test_concurrent_saves_of_same_set(self, network, store, property_id, agency_id, agents):
        """A save whose read went stale does not trip over the other save's grants."""
        a1, a2, _ = agents
        read_grants = network.sharing.list_grants
        interleaved = []

        async def stale_read(*args, **kwargs):
            grants = await read_grants(*args, **kwargs)
            if not interleaved:
                interleaved.append(True)
                await network.sharing.reconcile(property_id, agency_id, [a1, a2])
                store.find("shared_properties", property_id=property_id, agent_id=a1)["notified"] = True
            return grants

        with patch.object(network.sharing, "list_grants", side_effect=stale_read):
            result = await network.sharing.reconcile(property_id, agency_id, [a1, a2])

        assert sorted(result.added, key=str) == sorted([a1, a2], key=str)
        grants = store.rows("shared_properties", property_id=property_id)
        assert sorted(row["agent_id"] for row in grants) == sorted([str(a1), str(a2)])
        assert store.find("shared_properties", property_id=property_id, agent_id=a1)["notified"] is True


class TestBroadcast:
    """Tests for switching between broadcast and enumerated sharing."""

    @pytest.mark.asyncio
    async def test_broadcast_clears_grants(self, network, store, property_id, agency_id, agents):
        await network.sharing.reconcile(property_id, agency_id, agents)

        await network.sharing.set_broadcast(property_id, agency_id, True)
        visibility = await network.sharing.effective_visibility(property_id, agency_id)

        assert visibility.broadcast is True
        assert visibility.count == 0
        assert visibility.agent_ids == []
        assert store.rows("shared_properties", property_id=property_id) == []
        assert store.find("properties", id=property_id)["shared_with_all_agents"] is True

    @pytest.mark.asyncio
    async def test_broadcast_off_shares_with_nobody(self, network, property_id, agency_id):
        await network.sharing.set_broadcast(property_id, agency_id, True)
        await network.sharing.set_broadcast(property_id, agency_id, False)

        visibility = await network.sharing.effective_visibility(property_id, agency_id)

        assert visibility.broadcast is False
        assert visibility.count == 0

    @pytest.mark.asyncio
    async def test_flag_failure_after_delete(self, network, store, property_id, agency_id, agents):
        await network.sharing.reconcile(property_id, agency_id, agents)
        store.fail("properties", "update")

        with pytest.raises(PartialFailureError) as exc_info:
            await network.sharing.set_broadcast(property_id, agency_id, True)

        assert exc_info.value.failed_step == "broadcast_flag"
        assert store.find("properties", id=property_id)["shared_with_all_agents"] is False

    @pytest.mark.asyncio
    async def test_flag_failure_without_grants(self, network, store, property_id, agency_id):
        store.fail("properties", "update")

        with pytest.raises(APIError):
            await network.sharing.set_broadcast(property_id, agency_id, True)

    @pytest.mark.asyncio
    async def test_visibility_enumerated(self, network, property_id, agency_id, agents):
        await network.sharing.reconcile(property_id, agency_id, agents[:2])

        visibility = await network.sharing.effective_visibility(property_id, agency_id)

        assert visibility.broadcast is False
        assert visibility.count == 2
        assert set(visibility.agent_ids) == set(agents[:2])


class TestSaveSettings:
    """Tests for the combined settings form."""

    @pytest.mark.asyncio
    async def test_share_with_all(self, network, property_id, agency_id, agents):
        await network.sharing.reconcile(property_id, agency_id, agents)

        visibility = await network.sharing.save_settings(property_id, agency_id, True, agents)

        assert visibility.broadcast is True
        assert visibility.count == 0

    @pytest.mark.asyncio
    async def test_from_broadcast_to_selected(self, network, store, property_id, agency_id, agents):
        await network.sharing.set_broadcast(property_id, agency_id, True)

        visibility = await network.sharing.save_settings(
            property_id, agency_id, False, agents[:1]
        )

        assert visibility.broadcast is False
        assert visibility.agent_ids == [agents[0]]
        assert store.find("properties", id=property_id)["shared_with_all_agents"] is False

    @pytest.mark.asyncio
    async def test_list_shared_with_agent(self, network, property_id, agency_id, agents):
        await network.sharing.reconcile(property_id, agency_id, agents[:1])

        grants = await network.sharing.list_shared_with_agent(agents[0])

        assert [g.property_id for g in grants] == [property_id]
        assert await network.sharing.list_shared_with_agent(agents[2]) == []

"""
Tests for agencynet.memberships module.
"""

from datetime import timedelta
from uuid import uuid4

import pytest

from agencynet.exceptions import NotFoundError, StaleTransitionError
from agencynet.memberships.models import AgencyAgentLink, MembershipStatus


class TestMembershipModels:
    """Tests for membership models."""

    def test_transitions(self):
        assert MembershipStatus.PENDING.can_transition_to(MembershipStatus.ACTIVE)
        assert MembershipStatus.INACTIVE.can_transition_to(MembershipStatus.PENDING)
        assert not MembershipStatus.ACTIVE.can_transition_to(MembershipStatus.PENDING)

    def test_matches(self):
        link = AgencyAgentLink(
            agency_id=uuid4(),
            agent_id=uuid4(),
            agent={"id": str(uuid4()), "full_name": "Jane Agent", "email": "jane@example.com"},
        )

        assert link.matches("JANE")
        assert link.matches("example.com")
        assert link.matches("  ")
        assert not link.matches("bob")

    def test_matches_without_profile(self):
        link = AgencyAgentLink(agency_id=uuid4(), agent_id=uuid4())

        assert not link.matches("jane")


class TestUpsert:
    """Tests for writing membership links."""

    @pytest.mark.asyncio
    async def test_upsert_is_idempotent(self, network, store, agency_id, agent_id):
        first = await network.memberships.upsert(agency_id, agent_id, MembershipStatus.PENDING)
        second = await network.memberships.upsert(agency_id, agent_id, MembershipStatus.PENDING)

        assert first.status == second.status == MembershipStatus.PENDING
        assert len(store.rows("agency_agents", agency_id=agency_id, agent_id=agent_id)) == 1

    @pytest.mark.asyncio
    async def test_upsert_moves_status(self, network, store, agency_id, agent_id):
        await network.memberships.upsert(agency_id, agent_id, MembershipStatus.PENDING)
        link = await network.memberships.upsert(agency_id, agent_id, "active")

        assert link.status == MembershipStatus.ACTIVE
        rows = store.rows("agency_agents", agency_id=agency_id, agent_id=agent_id)
        assert [row["status"] for row in rows] == ["active"]

    @pytest.mark.asyncio
    async def test_reinvite_former_agent(self, network, agency_id, agent_id):
        await network.memberships.upsert(agency_id, agent_id, MembershipStatus.INACTIVE)
        link = await network.memberships.upsert(agency_id, agent_id, MembershipStatus.PENDING)

        assert link.status == MembershipStatus.PENDING

    @pytest.mark.asyncio
    async def test_active_link_cannot_go_back_to_pending(self, network, agency_id, agent_id):
        await network.memberships.upsert(agency_id, agent_id, MembershipStatus.ACTIVE)

        with pytest.raises(StaleTransitionError) as exc_info:
            await network.memberships.upsert(agency_id, agent_id, MembershipStatus.PENDING)

        assert exc_info.value.actual == "active"

    @pytest.mark.asyncio
    async def test_keeps_created_at(self, network, store, clock, agency_id, agent_id):
        await network.memberships.upsert(agency_id, agent_id, MembershipStatus.PENDING)
        clock.set(clock.at + timedelta(days=3))
        await network.memberships.upsert(agency_id, agent_id, MembershipStatus.ACTIVE)

        row = store.find("agency_agents", agency_id=agency_id, agent_id=agent_id)
        assert row["created_at"].startswith("2024-01-01")
        assert row["updated_at"].startswith("2024-01-04")


class TestListing:
    """Tests for listing an agency's agents."""

    @pytest.fixture
    async def team(self, network, store, clock, agency_id):
        people = [
            ("Jane Agent", "jane@example.com", MembershipStatus.ACTIVE),
            ("Bob Broker", "bob@example.com", MembershipStatus.PENDING),
            ("Jim Former", "jim@example.com", MembershipStatus.INACTIVE),
        ]
        ids = []
        for name, email, status in people:
            agent = uuid4()
            store.seed("profiles", id=agent, full_name=name, email=email)
            await network.memberships.upsert(agency_id, agent, status)
            clock.set(clock.at + timedelta(hours=1))
            ids.append(agent)
        return ids

    @pytest.mark.asyncio
    async def test_list_newest_first(self, network, agency_id, team):
        links = await network.memberships.list(agency_id)

        assert [link.agent_id for link in links] == list(reversed(team))
        assert links[-1].agent.full_name == "Jane Agent"

    @pytest.mark.asyncio
    async def test_list_by_status(self, network, agency_id, team):
        links = await network.memberships.list(agency_id, status=MembershipStatus.PENDING)

        assert [link.agent_id for link in links] == [team[1]]

    @pytest.mark.asyncio
    async def test_list_search(self, network, agency_id, team):
        links = await network.memberships.list(agency_id, search="BOB@")

        assert [link.agent_id for link in links] == [team[1]]

    @pytest.mark.asyncio
    async def test_list_other_agency_is_empty(self, network, team):
        assert await network.memberships.list(uuid4()) == []

    @pytest.mark.asyncio
    async def test_count_and_active_ids(self, network, agency_id, team):
        assert await network.memberships.count(agency_id) == 3
        assert await network.memberships.count(agency_id, MembershipStatus.ACTIVE) == 1
        assert await network.memberships.list_active_agent_ids(agency_id) == [team[0]]


class TestRemove:
    """Tests for removing an agent from an agency."""

    @pytest.mark.asyncio
    async def test_remove_keeps_account(self, network, store, agency_id, agent_id):
        await network.memberships.upsert(agency_id, agent_id, MembershipStatus.ACTIVE)

        await network.memberships.remove(agency_id, agent_id)

        assert await network.memberships.get(agency_id, agent_id) is None
        assert store.find("profiles", id=agent_id) is not None

    @pytest.mark.asyncio
    async def test_remove_unknown_link(self, network, agency_id, agent_id):
        with pytest.raises(NotFoundError):
            await network.memberships.remove(agency_id, agent_id)


class TestProfiles:
    """Tests for the profile helpers."""

    @pytest.mark.asyncio
    async def test_find_account_id(self, network, agent_id):
        assert await network.memberships.find_account_id(" Jane@Example.com ") == agent_id
        assert await network.memberships.find_account_id("nobody@example.com") is None

    @pytest.mark.asyncio
    async def test_set_agency_association(self, network, store, agency_id, agent_id):
        await network.memberships.set_agency_association(agent_id, agency_id)

        assert store.find("profiles", id=agent_id)["agency_id"] == str(agency_id)

    @pytest.mark.asyncio
    async def test_set_agency_association_missing_profile(self, network, agency_id):
        with pytest.raises(NotFoundError):
            await network.memberships.set_agency_association(uuid4(), agency_id)

    @pytest.mark.asyncio
    async def test_display_name(self, network, agency_id, agent_id):
        assert await network.memberships.display_name(agency_id) == "Acme Realty"
        assert await network.memberships.display_name(agent_id) == "Jane Agent"
        assert await network.memberships.display_name(uuid4()) == "Unknown Agency"

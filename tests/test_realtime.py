"""
Tests for agencynet.realtime module.
"""

from uuid import uuid4

import pytest

from agencynet.exceptions import ValidationError


class TestChangeFeed:
    """Tests for ChangeFeed subscriptions."""

    @pytest.mark.asyncio
    async def test_watch_invitations(self, network, store, agency_id):
        received = []

        channel = await network.feed.watch_invitations(agency_id, received.append)

        assert channel.subscribed
        assert channel.topic == f"agent_invitations:agency_id=eq.{agency_id}"
        binding = channel.bindings[0]
        assert binding["event"] == "*"
        assert binding["table"] == "agent_invitations"
        assert binding["schema"] == "public"
        assert binding["filter"] == f"agency_id=eq.{agency_id}"

        channel.emit({"data": {"type": "INSERT", "record": {"email": "jane@example.com"}}})
        assert received[0]["data"]["type"] == "INSERT"

    @pytest.mark.asyncio
    async def test_watch_memberships(self, network, agency_id):
        channel = await network.feed.watch_memberships(agency_id, lambda payload: None)

        assert channel.bindings[0]["table"] == "agency_agents"
        assert network.feed.channels == [channel]

    @pytest.mark.asyncio
    async def test_watch_contracts_by_side(self, network, developer_id, agency_id):
        by_developer = await network.feed.watch_contracts(lambda p: None, developer_id=developer_id)
        by_agency = await network.feed.watch_contracts(lambda p: None, agency_id=agency_id)

        assert by_developer.bindings[0]["filter"] == f"developer_id=eq.{developer_id}"
        assert by_agency.bindings[0]["filter"] == f"agency_id=eq.{agency_id}"

    @pytest.mark.asyncio
    async def test_watch_contracts_needs_one_side(self, network):
        with pytest.raises(ValidationError):
            await network.feed.watch_contracts(lambda p: None)
        with pytest.raises(ValidationError):
            await network.feed.watch_contracts(lambda p: None, developer_id=uuid4(), agency_id=uuid4())

    @pytest.mark.asyncio
    async def test_event_filter(self, network, agency_id):
        channel = await network.feed.subscribe(
            "agency_agents", "agency_id", agency_id, lambda p: None, event="update"
        )

        assert channel.bindings[0]["event"] == "UPDATE"

        with pytest.raises(ValidationError):
            await network.feed.subscribe("agency_agents", "agency_id", agency_id, lambda p: None, event="TRUNCATE")

    @pytest.mark.asyncio
    async def test_unsubscribe_and_close(self, network, store, agency_id):
        first = await network.feed.watch_invitations(agency_id, lambda p: None)
        second = await network.feed.watch_memberships(agency_id, lambda p: None)

        await network.feed.unsubscribe(first)
        assert network.feed.channels == [second]

        await network.feed.close()
        assert network.feed.channels == []
        assert store.removed_channels == [first, second]

"""
Tests for agencynet.notifications module.
"""

from datetime import timedelta
from uuid import uuid4

import pytest

from agencynet.notifications.models import NotificationType


class TestNotificationRelay:
    """Tests for NotificationRelay."""

    @pytest.mark.asyncio
    async def test_send(self, network, store, agency_id, agent_id):
        note = await network.notifications.send(
            recipient_id=agent_id,
            type=NotificationType.ALERT,
            title="You have been invited to join an agency",
            message="Acme Realty has invited you to join their team.",
            link_url=f"/notifications?agency_id={agency_id}",
            agency_id=agency_id,
            token="abc",
        )

        assert note.recipient_id == agent_id
        assert note.type == "alert"
        assert note.is_read is False
        row = store.find("notifications", recipient_id=agent_id)
        assert row["token"] == "abc"
        assert row["agency_id"] == str(agency_id)

    @pytest.mark.asyncio
    async def test_dedupe_key(self, network, store, agent_id):
        for _ in range(2):
            await network.notifications.send(
                recipient_id=agent_id,
                type=NotificationType.SYSTEM,
                title="Agency Invitation Accepted",
                message="You have joined Acme Realty!",
                dedupe_key="invitation:1:accept",
            )

        assert len(store.rows("notifications", recipient_id=agent_id)) == 1

    @pytest.mark.asyncio
    async def test_without_dedupe_key(self, network, store, agent_id):
        for _ in range(2):
            await network.notifications.send(
                recipient_id=agent_id, type="custom", title="Hello", message="Hi"
            )

        rows = store.rows("notifications", recipient_id=agent_id)
        assert [row["type"] for row in rows] == ["custom", "custom"]

    @pytest.mark.asyncio
    async def test_disabled(self, network, store, agent_id):
        network.notifications.disable()
        assert not network.notifications.is_enabled

        note = await network.notifications.send(
            recipient_id=agent_id, type=NotificationType.SYSTEM, title="t", message="m"
        )

        assert note is None
        assert store.rows("notifications") == []

        network.notifications.enable()
        assert network.notifications.is_enabled

    @pytest.mark.asyncio
    async def test_list_for_recipient(self, network, store, clock, agent_id):
        for title in ("first", "second"):
            await network.notifications.send(
                recipient_id=agent_id, type=NotificationType.SYSTEM, title=title, message="m"
            )
            clock.set(clock.at + timedelta(minutes=5))
        await network.notifications.send(
            recipient_id=uuid4(), type=NotificationType.SYSTEM, title="other", message="m"
        )
        store.find("notifications", title="first")["is_read"] = True

        notes = await network.notifications.list_for_recipient(agent_id)
        unread = await network.notifications.list_for_recipient(agent_id, unread_only=True)

        assert [n.title for n in notes] == ["second", "first"]
        assert [n.title for n in unread] == ["second"]

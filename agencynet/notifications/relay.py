"""
Notification relay for the agency network.

Writes one notification row per lifecycle transition. Writes are keyed by
``dedupe_key`` so a replayed saga step never produces a second message.
"""

import logging
from typing import TYPE_CHECKING, List, Optional
from uuid import UUID

from .models import Notification, NotificationType

if TYPE_CHECKING:
    from ..client import AgencyNetwork

logger = logging.getLogger(__name__)


class NotificationRelay:
    """
    Creates recipient-addressed notifications.

    Example:
        ```python
        await network.notifications.send(
            recipient_id=agent_id,
            type=NotificationType.SYSTEM,
            title="Agency Invitation Accepted",
            message="You have joined Acme Realty!",
            dedupe_key=f"invitation:{invitation.id}:accept",
        )
        ```
    """

    def __init__(self, network: "AgencyNetwork") -> None:
        """
        Initialize NotificationRelay.

        Args:
            network: AgencyNetwork client instance
        """
        self.network = network
        self.client = network.client
        self._enabled = network.config.enable_notifications

    def disable(self) -> None:
        """Disable notification writes (useful for bulk operations)."""
        self._enabled = False

    def enable(self) -> None:
        """Enable notification writes."""
        self._enabled = True

    @property
    def is_enabled(self) -> bool:
        """Check if notification writes are enabled."""
        return self._enabled

    async def send(
        self,
        recipient_id: UUID,
        type: NotificationType | str,
        title: str,
        message: str,
        link_url: Optional[str] = None,
        agency_id: Optional[UUID] = None,
        token: Optional[str] = None,
        dedupe_key: Optional[str] = None,
    ) -> Optional[Notification]:
        """
        Write a notification for ``recipient_id``.

        Args:
            recipient_id: Profile receiving the message
            type: NotificationType or custom string
            title: Short title
            message: Message body
            link_url: In-app link the message points to
            agency_id: Agency the message is about
            token: Invitation token for in-product answers
            dedupe_key: Idempotency key; a second send with the same key is ignored

        Returns:
            The stored Notification, or None when disabled or deduplicated
        """
        if not self._enabled:
            return None

        row = {
            "recipient_id": str(recipient_id),
            "type": type.value if isinstance(type, NotificationType) else type,
            "title": title,
            "message": message,
            "link_url": link_url,
            "agency_id": str(agency_id) if agency_id else None,
            "token": token,
            "is_read": False,
            "dedupe_key": dedupe_key,
            "created_at": self.network.now().isoformat(),
        }

        if dedupe_key:
            query = self.client.table("notifications").upsert(
                row, on_conflict="dedupe_key", ignore_duplicates=True
            )
        else:
            query = self.client.table("notifications").insert(row)

        result = await query.execute()

        if not result.data:
            logger.debug("Notification %s already sent", dedupe_key)
            return None

        logger.debug("Notified %s: %s", recipient_id, title)
        return Notification(**result.data[0])

    async def list_for_recipient(
        self,
        recipient_id: UUID,
        unread_only: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Notification]:
        """
        List notifications addressed to a profile, newest first.

        Args:
            recipient_id: Profile UUID
            unread_only: Only unread notifications
            limit: Maximum entries to return
            offset: Entries to skip
        """
        query = self.client.table("notifications").select("*").eq(
            "recipient_id", str(recipient_id)
        )

        if unread_only:
            query = query.eq("is_read", False)

        result = await query.limit(limit).offset(offset).order(
            "created_at", desc=True
        ).execute()

        return [Notification(**row) for row in result.data]

"""
Notification models.

Pydantic models for the recipient-addressed messages written on each
lifecycle transition. Delivery and read-state handling live outside the
network core.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class NotificationType(str, Enum):
    """Notification categories used by the network."""

    ALERT = "alert"
    SYSTEM = "system"


class Notification(BaseModel):
    """
    Notification row - a message addressed to one profile.

    ``token`` is set on invitation alerts so an existing user can answer
    the invitation from within the product.
    """

    id: UUID
    recipient_id: UUID
    type: str
    title: str
    message: str
    link_url: Optional[str] = None
    agency_id: Optional[UUID] = None
    token: Optional[str] = None
    is_read: bool = False
    dedupe_key: Optional[str] = None
    created_at: datetime

    model_config = {
        "from_attributes": True,
        "json_schema_extra": {
            "example": {
                "id": "123e4567-e89b-12d3-a456-426614174000",
                "recipient_id": "456e7890-e89b-12d3-a456-426614174000",
                "type": "alert",
                "title": "You have been invited to join an agency",
                "message": "Acme Realty has invited you to join their team.",
                "link_url": "/notifications?agency_id=789e0123-e89b-12d3-a456-426614174000",
                "agency_id": "789e0123-e89b-12d3-a456-426614174000",
                "token": "Jx3...",
                "is_read": False,
                "dedupe_key": "invitation:123e4567:issue",
                "created_at": "2024-01-01T00:00:00Z",
            }
        },
    }

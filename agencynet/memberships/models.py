"""
Agency membership models.

Pydantic models for the agency <-> agent relationship.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class MembershipStatus(str, Enum):
    """Closed set of agency/agent link states."""

    PENDING = "pending"
    ACTIVE = "active"
    INACTIVE = "inactive"

    def can_transition_to(self, target: "MembershipStatus") -> bool:
        return target in MEMBERSHIP_TRANSITIONS[self]


# A link only becomes active through an agent accepting an invitation;
# an agency re-inviting a former agent moves it back to pending.
MEMBERSHIP_TRANSITIONS: Dict[MembershipStatus, FrozenSet[MembershipStatus]] = {
    MembershipStatus.PENDING: frozenset(
        {MembershipStatus.PENDING, MembershipStatus.ACTIVE, MembershipStatus.INACTIVE}
    ),
    MembershipStatus.ACTIVE: frozenset({MembershipStatus.ACTIVE, MembershipStatus.INACTIVE}),
    MembershipStatus.INACTIVE: frozenset(
        {MembershipStatus.PENDING, MembershipStatus.ACTIVE, MembershipStatus.INACTIVE}
    ),
}


class AgentProfile(BaseModel):
    """Subset of the agent's profile embedded in membership listings."""

    id: UUID
    full_name: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None
    whatsapp: Optional[str] = None


class AgencyAgentLink(BaseModel):
    """
    Agency membership - links an agent to an agency.

    Keyed by (agency_id, agent_id); the row is a derived side effect of
    invitation outcomes and is never edited by the agent directly.
    """

    id: Optional[UUID] = None
    agency_id: UUID
    agent_id: UUID
    status: MembershipStatus = MembershipStatus.PENDING

    agent: Optional[AgentProfile] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {
        "from_attributes": True,
        "json_schema_extra": {
            "example": {
                "id": "123e4567-e89b-12d3-a456-426614174000",
                "agency_id": "456e7890-e89b-12d3-a456-426614174000",
                "agent_id": "789e0123-e89b-12d3-a456-426614174000",
                "status": "active",
                "created_at": "2024-01-01T00:00:00Z",
                "updated_at": "2024-01-01T00:00:00Z",
            }
        },
    }

    def matches(self, search: str) -> bool:
        """Case-insensitive substring match on the agent's name or email."""
        needle = search.strip().lower()
        if not needle:
            return True
        if self.agent is None:
            return False
        return any(
            needle in (value or "").lower()
            for value in (self.agent.full_name, self.agent.email)
        )


class MembershipFilter(BaseModel):
    """Filter for listing an agency's agents."""

    status: Optional[MembershipStatus] = None
    search: Optional[str] = Field(None, max_length=255)

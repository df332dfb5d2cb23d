"""
Agent invitation models.

Pydantic models for agency-to-agent invitations.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from ..utils.timeutils import ensure_utc


class InvitationStatus(str, Enum):
    """Closed set of invitation states."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REFUSED = "refused"

    def can_transition_to(self, target: "InvitationStatus") -> bool:
        return target in INVITATION_TRANSITIONS[self]


# accepted and refused are terminal
INVITATION_TRANSITIONS: Dict[InvitationStatus, FrozenSet[InvitationStatus]] = {
    InvitationStatus.PENDING: frozenset({InvitationStatus.ACCEPTED, InvitationStatus.REFUSED}),
    InvitationStatus.ACCEPTED: frozenset(),
    InvitationStatus.REFUSED: frozenset(),
}


class AgentInvitation(BaseModel):
    """
    Agent invitation - an agency's time-boxed offer to an agent.

    Stored in the agent_invitations table. The token is the only credential
    the recipient needs before having an account.
    """

    id: UUID
    agency_id: UUID
    email: EmailStr
    full_name: Optional[str] = None
    phone: Optional[str] = None
    whatsapp: Optional[str] = None

    token: str
    status: InvitationStatus = InvitationStatus.PENDING
    linked_user_id: Optional[UUID] = None

    created_at: datetime
    updated_at: Optional[datetime] = None
    expires_at: datetime

    model_config = {
        "from_attributes": True,
        "json_schema_extra": {
            "example": {
                "id": "123e4567-e89b-12d3-a456-426614174000",
                "agency_id": "456e7890-e89b-12d3-a456-426614174000",
                "email": "agent@example.com",
                "full_name": "Jane Agent",
                "phone": "+971500000000",
                "whatsapp": "+971500000000",
                "token": "Jx3...",
                "status": "pending",
                "linked_user_id": None,
                "created_at": "2024-01-01T00:00:00Z",
                "updated_at": "2024-01-01T00:00:00Z",
                "expires_at": "2024-01-08T00:00:00Z",
            }
        },
    }

    @field_validator("created_at", "updated_at", "expires_at")
    @classmethod
    def _as_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v) if v is not None else None

    def is_valid_at(self, now: datetime) -> bool:
        """Validity is computed, never stored: pending and not yet expired."""
        return self.status == InvitationStatus.PENDING and ensure_utc(now) < self.expires_at

    def payload(self) -> "InvitationPayload":
        """The fields a resend carries over to the replacement invitation."""
        return InvitationPayload(
            agency_id=self.agency_id,
            email=self.email,
            full_name=self.full_name,
            phone=self.phone,
            whatsapp=self.whatsapp,
        )


class InvitationPayload(BaseModel):
    """Request model for issuing an invitation."""

    agency_id: UUID
    email: EmailStr = Field(..., description="Email address to invite")
    full_name: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=32)
    whatsapp: Optional[str] = Field(None, max_length=32)

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, v: str) -> str:
        return v.strip().lower()


class InvitationVerification(BaseModel):
    """
    Result of verifying a bearer token.

    Safe to return to an unauthenticated caller: an invalid result carries
    no invitation data.
    """

    valid: bool
    invitation_id: Optional[UUID] = None
    email: Optional[str] = None
    agency_id: Optional[UUID] = None
    agency_name: Optional[str] = None
    expires_at: Optional[datetime] = None
    message: Optional[str] = None

    @classmethod
    def invalid(cls, message: str = "Invalid or expired invitation") -> "InvitationVerification":
        return cls(valid=False, message=message)

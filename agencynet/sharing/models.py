"""
Property sharing models.

An agency shares a property with its whole team (broadcast) or with an
enumerated set of agents (grants). The two modes never coexist.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class SharedPropertyGrant(BaseModel):
    """One enumerated share of a property with one agent."""

    id: Optional[UUID] = None
    property_id: UUID
    agent_id: UUID
    shared_by_agency_id: UUID
    notified: bool = False
    created_at: Optional[datetime] = None

    model_config = {
        "from_attributes": True,
        "json_schema_extra": {
            "example": {
                "id": "123e4567-e89b-12d3-a456-426614174000",
                "property_id": "456e7890-e89b-12d3-a456-426614174000",
                "agent_id": "789e0123-e89b-12d3-a456-426614174000",
                "shared_by_agency_id": "012e3456-e89b-12d3-a456-426614174000",
                "notified": False,
                "created_at": "2024-01-01T00:00:00Z",
            }
        },
    }


class ReconcileResult(BaseModel):
    """Outcome of rewriting a property's recipient set."""

    added: List[UUID] = Field(default_factory=list)
    removed: List[UUID] = Field(default_factory=list)
    unchanged: List[UUID] = Field(default_factory=list)
    writes: int = 0


class EffectiveVisibility(BaseModel):
    """Who can see a property: everyone on the team, or ``agent_ids``."""

    broadcast: bool
    count: int = 0
    agent_ids: List[UUID] = Field(default_factory=list)

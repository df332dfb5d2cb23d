"""
Saga progress models.

A multi-step transition (accept, decline, issue, request, review, renew)
runs as a sequence of idempotent writes. Its progress is stored in the
transition_progress table so a retry resumes instead of re-running blindly.
"""

from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, NamedTuple, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class SagaStep(NamedTuple):
    """One idempotent write of a transition."""

    name: str
    action: Callable[[], Awaitable[Any]]


class TransitionProgress(BaseModel):
    """Durable progress of one transition of one entity."""

    id: Optional[UUID] = None
    entity_type: str
    entity_id: UUID
    transition: str

    steps: List[str] = Field(default_factory=list)
    last_completed_step: Optional[str] = None
    failed_step: Optional[str] = None
    error: Optional[str] = None

    # Inputs needed to rebuild the remaining steps on resume
    context: Dict[str, Any] = Field(default_factory=dict)

    completed: bool = False

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

    @property
    def completed_steps(self) -> List[str]:
        if self.last_completed_step is None:
            return []
        if self.last_completed_step not in self.steps:
            return []
        return self.steps[: self.steps.index(self.last_completed_step) + 1]

    @property
    def started(self) -> bool:
        return self.last_completed_step is not None

"""
Agency network error taxonomy.

Every error raised by a core operation derives from AgencyNetworkError so
callers can tell a lifecycle failure apart from transport errors.
"""

from typing import Any, Dict, List, Optional


class AgencyNetworkError(Exception):
    """Base class for all agency network errors."""


class ValidationError(AgencyNetworkError):
    """A required document or field is missing before a gated action."""

    def __init__(self, message: str, missing: Optional[List[str]] = None) -> None:
        super().__init__(message)
        self.missing = missing or []


class NotFoundError(AgencyNetworkError):
    """The referenced row does not exist (or is not owned by the caller)."""


class ConflictError(AgencyNetworkError):
    """A uniqueness rule of the network was violated."""


class DuplicateInvitationError(ConflictError):
    """A pending invitation already exists for this agency and email."""

    def __init__(self, agency_id: Any, email: str) -> None:
        super().__init__(
            f"A pending invitation already exists for {email} in agency {agency_id}"
        )
        self.agency_id = agency_id
        self.email = email


class DuplicateCollaborationError(ConflictError):
    """A collaboration request already exists for this developer and agency."""

    def __init__(self, developer_id: Any, agency_id: Any) -> None:
        super().__init__("You already have a collaboration request with this developer")
        self.developer_id = developer_id
        self.agency_id = agency_id


class StaleTransitionError(AgencyNetworkError):
    """The entity is not in the source state the transition expects."""

    def __init__(
        self,
        entity: str,
        entity_id: Any,
        expected: Optional[str] = None,
        actual: Optional[str] = None,
        message: Optional[str] = None,
    ) -> None:
        if message is None:
            message = f"{entity} {entity_id} is {actual}, expected {expected}"
        super().__init__(message)
        self.entity = entity
        self.entity_id = entity_id
        self.expected = expected
        self.actual = actual


class ExpiredInvitationError(StaleTransitionError):
    """The invitation is still pending but its expiry has passed."""

    def __init__(self, invitation_id: Any) -> None:
        super().__init__(
            "invitation",
            invitation_id,
            expected="pending",
            actual="expired",
            message=f"Invitation {invitation_id} has expired",
        )


class PartialFailureError(AgencyNetworkError):
    """
    A later write of a multi-step transition failed after earlier writes committed.

    Nothing is rolled back. ``completed_steps`` lists what was applied,
    ``failed_step`` names the step that must be retried.
    """

    def __init__(
        self,
        transition: str,
        entity_id: Any,
        failed_step: str,
        completed_steps: List[str],
        cause: Optional[BaseException] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            f"{transition} of {entity_id} failed at step '{failed_step}' "
            f"after completing {completed_steps}: {cause}"
        )
        self.transition = transition
        self.entity_id = entity_id
        self.failed_step = failed_step
        self.completed_steps = list(completed_steps)
        self.cause = cause
        self.context = context or {}


UNIQUE_VIOLATION = "23505"


def is_unique_violation(error: BaseException) -> bool:
    """Check whether a PostgREST APIError is a unique-key violation."""
    code = getattr(error, "code", None)
    if code == UNIQUE_VIOLATION:
        return True
    message = getattr(error, "message", None) or str(error)
    return "duplicate key" in message

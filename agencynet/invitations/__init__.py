"""
Agency network invitations module.

Handles agency-to-agent invitations and their accept/decline flow.
"""

from .invites import InvitationManager
from .models import (
    AgentInvitation,
    InvitationPayload,
    InvitationStatus,
    InvitationVerification,
)

__all__ = [
    "InvitationManager",
    "AgentInvitation",
    "InvitationPayload",
    "InvitationStatus",
    "InvitationVerification",
]

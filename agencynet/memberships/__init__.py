"""
Agency network memberships module.

Handles the links between agencies and their agents.
"""

from .links import MembershipManager
from .models import AgencyAgentLink, AgentProfile, MembershipFilter, MembershipStatus

__all__ = [
    "MembershipManager",
    "AgencyAgentLink",
    "AgentProfile",
    "MembershipFilter",
    "MembershipStatus",
]

"""
agencynet - Agency network lifecycle on Supabase.

Invitations, memberships, developer collaborations and property sharing
for a real-estate marketplace, with sagas for multi-step transitions.

Example:
    ```python
    from agencynet import AgencyNetwork

    network = await AgencyNetwork.create()

    # Agency invites an agent
    invite = await network.invitations.issue(agency_id, "agent@example.com")

    # Invitee checks the token, then accepts
    check = await network.invitations.verify(invite.token)
    await network.invitations.accept(invite.token, agent_id)

    # Agency asks a developer to collaborate
    await network.contracts.request(developer_id, agency_id, documents)

    # Share a listing with two agents
    await network.sharing.reconcile(property_id, agency_id, [agent_a, agent_b])
    ```
"""

from .client import AgencyNetwork
from .collaborations import CollaborationContract, ContractManager, ContractStatus
from .config import AgencyNetworkConfig, load_config
from .exceptions import (
    AgencyNetworkError,
    ConflictError,
    DuplicateCollaborationError,
    DuplicateInvitationError,
    ExpiredInvitationError,
    NotFoundError,
    PartialFailureError,
    StaleTransitionError,
    ValidationError,
)
from .invitations import AgentInvitation, InvitationManager, InvitationStatus
from .memberships import AgencyAgentLink, MembershipManager, MembershipStatus
from .sharing import EffectiveVisibility, ReconcileResult, SharingManager

__version__ = "0.1.0"

__all__ = [
    # Main client
    "AgencyNetwork",
    "AgencyNetworkConfig",
    "load_config",
    # Invitations
    "InvitationManager",
    "AgentInvitation",
    "InvitationStatus",
    # Memberships
    "MembershipManager",
    "AgencyAgentLink",
    "MembershipStatus",
    # Collaborations
    "ContractManager",
    "CollaborationContract",
    "ContractStatus",
    # Sharing
    "SharingManager",
    "EffectiveVisibility",
    "ReconcileResult",
    # Errors
    "AgencyNetworkError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "DuplicateInvitationError",
    "DuplicateCollaborationError",
    "StaleTransitionError",
    "ExpiredInvitationError",
    "PartialFailureError",
]

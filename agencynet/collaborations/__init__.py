"""
Agency network collaborations module.

Handles developer-agency collaboration contracts and license re-validation.
"""

from .contracts import ContractManager
from .models import (
    AgencySummary,
    CollaborationContract,
    CollaborationState,
    ContractDocuments,
    ContractSort,
    ContractStatus,
    DocumentChecklist,
)

__all__ = [
    "ContractManager",
    "AgencySummary",
    "CollaborationContract",
    "CollaborationState",
    "ContractDocuments",
    "ContractSort",
    "ContractStatus",
    "DocumentChecklist",
]

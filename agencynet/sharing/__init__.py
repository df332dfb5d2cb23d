"""
Agency network sharing module.

Handles broadcast and enumerated property visibility.
"""

from .models import EffectiveVisibility, ReconcileResult, SharedPropertyGrant
from .visibility import SharingManager

__all__ = [
    "SharingManager",
    "EffectiveVisibility",
    "ReconcileResult",
    "SharedPropertyGrant",
]

"""
Agency network sagas module.

Tracks multi-step transitions so interrupted ones can be resumed.
"""

from .models import SagaStep, TransitionProgress
from .orchestrator import SagaOrchestrator

__all__ = [
    "SagaOrchestrator",
    "SagaStep",
    "TransitionProgress",
]

"""
Agency network notifications module.

Writes recipient-addressed messages on lifecycle transitions.
"""

from .models import Notification, NotificationType
from .relay import NotificationRelay

__all__ = [
    "NotificationRelay",
    "Notification",
    "NotificationType",
]

"""SQLAlchemy models."""

from src.models.notification import Notification
from src.models.push_subscription import PushSubscription
from src.models.user import User

__all__ = [
    "User",
    "PushSubscription",
    "Notification",
]

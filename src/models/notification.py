"""Notification log model."""

from sqlalchemy import JSON, Boolean, Column, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from src.database import Base
from src.models.mixins import CreatedAtMixin


class Notification(Base, CreatedAtMixin):
    """One delivered-or-attempted notification, per channel."""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type = Column(String(20), nullable=False, default="general")  # NotificationType
    channel = Column(String(10), nullable=False)  # NotificationChannel
    title = Column(String(255), nullable=False)
    body = Column(Text, nullable=False)
    # Routing data: {"type": "order", "url": "/seller", "orderId": "..."}
    data = Column(JSON, nullable=True)
    is_read = Column(Boolean, default=False, nullable=False, index=True)

    # Relationships
    user = relationship("User", backref="notifications")

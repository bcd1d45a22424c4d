"""Enums for model fields."""

from enum import StrEnum


class NotificationChannel(StrEnum):
    """Delivery channel a notification record was sent through."""

    PUSH = "push"
    EMAIL = "email"


class NotificationType(StrEnum):
    """Logical notification type shown in the notification center."""

    ORDER = "order"
    MESSAGE = "message"
    LOW_STOCK = "low_stock"
    STATUS_CHANGE = "status_change"
    GENERAL = "general"


class EventType(StrEnum):
    """Business events that trigger a notification."""

    NEW_ORDER = "new_order"
    ORDER_STATUS = "order_status"
    NEW_MESSAGE = "new_message"
    LOW_STOCK = "low_stock"

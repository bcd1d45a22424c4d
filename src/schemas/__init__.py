"""Pydantic schemas for API requests and responses."""

from src.schemas.auth import AuthResponse, UserLogin, UserRegister, UserResponse
from src.schemas.notification import (
    DeliveryOutcomeResponse,
    DispatchRequest,
    NotificationIds,
    NotificationResponse,
    PushSubscriptionCreate,
    PushSubscriptionResponse,
    SubscriptionExistsResponse,
    UnreadCountResponse,
    UpdatedCountResponse,
    VapidPublicKeyResponse,
)

__all__ = [
    "UserRegister",
    "UserLogin",
    "AuthResponse",
    "UserResponse",
    "PushSubscriptionCreate",
    "PushSubscriptionResponse",
    "NotificationResponse",
    "NotificationIds",
    "SubscriptionExistsResponse",
    "UnreadCountResponse",
    "UpdatedCountResponse",
    "VapidPublicKeyResponse",
    "DispatchRequest",
    "DeliveryOutcomeResponse",
]

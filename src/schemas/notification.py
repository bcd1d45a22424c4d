"""Notification-related Pydantic schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.models.enums import NotificationChannel


class PushSubscriptionCreate(BaseModel):
    """Schema for registering a device's push subscription."""

    endpoint: str = Field(..., max_length=500)
    p256dh: str = Field(..., max_length=200)
    auth: str = Field(..., max_length=100)


class PushSubscriptionResponse(BaseModel):
    """Schema for push subscription response."""

    id: int
    endpoint: str
    created_at: datetime

    model_config = {"from_attributes": True}


class SubscriptionExistsResponse(BaseModel):
    exists: bool


class VapidPublicKeyResponse(BaseModel):
    """Schema for VAPID public key response."""

    public_key: str | None


class NotificationResponse(BaseModel):
    """A delivery log record as shown in the notification center."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    type: str
    channel: NotificationChannel
    title: str
    body: str
    data: dict[str, Any] | None = None
    is_read: bool
    created_at: datetime


class NotificationIds(BaseModel):
    """Record ids for bulk read/delete."""

    ids: list[int] = Field(default_factory=list)


class UpdatedCountResponse(BaseModel):
    count: int


class UnreadCountResponse(BaseModel):
    count: int


class DispatchRequest(BaseModel):
    """Internal request to notify a user about a business event."""

    recipient_user_id: int
    event_type: str = Field(..., min_length=1, max_length=50)
    event_data: dict[str, Any] = Field(default_factory=dict)
    channels: list[NotificationChannel] | None = None


class DeliveryOutcomeResponse(BaseModel):
    """Per-channel result of a dispatch."""

    push_sent: int
    push_failed: int
    email_sent: bool
    email_error: str | None = None
    pruned_endpoints: list[str] = Field(default_factory=list)

"""Notification API endpoints: push subscriptions, notification center and dispatch."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query

from src.api.dependencies import (
    get_current_user,
    get_delivery_log,
    get_dispatcher,
    get_subscription_registry,
    require_service_key,
)
from src.config import get_settings
from src.exceptions import ValidationError
from src.models import Notification, PushSubscription
from src.models.enums import NotificationChannel
from src.models.user import User
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
from src.services.delivery_log import DeliveryLog
from src.services.dispatcher import NotificationDispatcher
from src.services.subscription_registry import SubscriptionRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/notifications", tags=["notifications"])


@router.get("/vapid-public-key", response_model=VapidPublicKeyResponse)
async def get_vapid_public_key() -> VapidPublicKeyResponse:
    """Get the VAPID public key for push notification subscription."""
    settings = get_settings()
    return VapidPublicKeyResponse(public_key=settings.vapid_public_key)


# ----- push subscriptions -----


@router.post("/subscriptions", response_model=PushSubscriptionResponse)
async def subscribe_push(
    subscription: PushSubscriptionCreate,
    registry: Annotated[SubscriptionRegistry, Depends(get_subscription_registry)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> PushSubscription:
    """Register (or refresh) this device's push subscription."""
    try:
        return registry.upsert(
            current_user.id, subscription.endpoint, subscription.p256dh, subscription.auth
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e


@router.get("/subscriptions", response_model=list[PushSubscriptionResponse])
async def list_subscriptions(
    registry: Annotated[SubscriptionRegistry, Depends(get_subscription_registry)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> list[PushSubscription]:
    """List the current user's registered devices."""
    return registry.list(current_user.id)


@router.get("/subscriptions/exists", response_model=SubscriptionExistsResponse)
async def subscription_exists(
    endpoint: str,
    registry: Annotated[SubscriptionRegistry, Depends(get_subscription_registry)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> SubscriptionExistsResponse:
    """Check whether an endpoint is registered for the current user."""
    return SubscriptionExistsResponse(exists=registry.exists(current_user.id, endpoint))


@router.delete("/subscriptions")
async def unsubscribe_push(
    endpoint: str,
    registry: Annotated[SubscriptionRegistry, Depends(get_subscription_registry)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    """Unsubscribe from push notifications."""
    if registry.remove(current_user.id, endpoint):
        return {"message": "Unsubscribed successfully"}
    return {"message": "Subscription not found"}


# ----- notification center -----


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    log: Annotated[DeliveryLog, Depends(get_delivery_log)],
    current_user: Annotated[User, Depends(get_current_user)],
    channel: NotificationChannel | None = None,
    unread_only: bool = False,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> list[Notification]:
    """List the current user's notifications, newest first."""
    return log.list_by_user(
        current_user.id, channel=channel, unread_only=unread_only, limit=limit, offset=offset
    )


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(
    log: Annotated[DeliveryLog, Depends(get_delivery_log)],
    current_user: Annotated[User, Depends(get_current_user)],
    channel: NotificationChannel | None = None,
) -> UnreadCountResponse:
    """Badge count of unread notifications."""
    return UnreadCountResponse(count=log.count_unread(current_user.id, channel=channel))


@router.post("/read", response_model=UpdatedCountResponse)
async def mark_read(
    request: NotificationIds,
    log: Annotated[DeliveryLog, Depends(get_delivery_log)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> UpdatedCountResponse:
    """Mark notifications as read."""
    return UpdatedCountResponse(count=log.mark_read(current_user.id, request.ids))


@router.post("/read-all", response_model=UpdatedCountResponse)
async def mark_all_read(
    log: Annotated[DeliveryLog, Depends(get_delivery_log)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> UpdatedCountResponse:
    """Mark every notification as read."""
    return UpdatedCountResponse(count=log.mark_all_read(current_user.id))


@router.post("/delete", response_model=UpdatedCountResponse)
async def delete_notifications(
    request: NotificationIds,
    log: Annotated[DeliveryLog, Depends(get_delivery_log)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> UpdatedCountResponse:
    """Delete notifications from the notification center."""
    return UpdatedCountResponse(count=log.delete_many(current_user.id, request.ids))


# ----- internal -----


@router.post(
    "/dispatch",
    response_model=DeliveryOutcomeResponse,
    dependencies=[Depends(require_service_key)],
)
def dispatch_notification(
    request: DispatchRequest,
    dispatcher: Annotated[NotificationDispatcher, Depends(get_dispatcher)],
) -> DeliveryOutcomeResponse:
    """Notify a user about a business event (called by order and message handlers).

    Runs in the threadpool since the dispatcher drives its own event loop.
    """
    outcome = dispatcher.dispatch(
        request.recipient_user_id,
        request.event_type,
        request.event_data,
        channels=request.channels,
    )
    return DeliveryOutcomeResponse(**outcome.to_dict())

"""Celery tasks and fire-and-forget hooks for marketplace notifications.

Business code (order placement, order status changes, chat messages, stock
updates) calls the ``notify_*`` hooks. They only enqueue work: a broker
outage is logged and never fails the business operation.
"""

import logging
from typing import Any

from sqlalchemy.orm import Session

from src.celery_app import app as celery_app
from src.config import get_settings
from src.database import SessionLocal
from src.models.enums import EventType
from src.services.dispatcher import NotificationDispatcher

logger = logging.getLogger(__name__)


@celery_app.task
def dispatch_notification(
    recipient_user_id: int,
    event_type: str,
    event_data: dict[str, Any] | None = None,
    channels: list[str] | None = None,
) -> dict:
    """Deliver one event to a user over push and email.

    Args:
        recipient_user_id: User to notify
        event_type: Business event name (new_order, order_status, ...)
        event_data: Fields used by the templates
        channels: Optional subset of "push"/"email"

    Returns:
        dict with the delivery outcome, or an error entry
    """
    db: Session = SessionLocal()
    try:
        outcome = NotificationDispatcher(db).dispatch(
            recipient_user_id, event_type, event_data, channels=channels
        )
        return outcome.to_dict()
    except Exception as e:
        logger.error(
            f"Error dispatching {event_type} to user {recipient_user_id}: {e}", exc_info=True
        )
        db.rollback()
        return {"error": str(e)}
    finally:
        db.close()


def _enqueue(recipient_user_id: int, event_type: EventType, event_data: dict[str, Any]) -> bool:
    try:
        dispatch_notification.delay(recipient_user_id, str(event_type), event_data)
    except Exception as e:
        logger.error(f"Could not enqueue {event_type} notification for user {recipient_user_id}: {e}")
        return False
    return True


def notify_new_order(
    store_owner_id: int,
    order_id: str,
    order_amount: float,
    items: list[dict[str, Any]] | None = None,
    buyer_name: str | None = None,
) -> bool:
    """Tell a seller about a new order."""
    return _enqueue(
        store_owner_id,
        EventType.NEW_ORDER,
        {
            "orderId": str(order_id),
            "orderAmount": order_amount,
            "items": items or [],
            "buyerName": buyer_name or "A customer",
        },
    )


def notify_order_status(
    buyer_id: int, order_id: str, status: str, store_name: str | None = None
) -> bool:
    """Tell a buyer their order moved to a new status."""
    data = {"orderId": str(order_id), "status": status}
    if store_name:
        data["storeName"] = store_name
    return _enqueue(buyer_id, EventType.ORDER_STATUS, data)


def notify_new_message(receiver_id: int, sender_name: str, message_preview: str) -> bool:
    return _enqueue(
        receiver_id,
        EventType.NEW_MESSAGE,
        {"senderName": sender_name, "messagePreview": message_preview},
    )


def notify_low_stock(store_owner_id: int, products: list[dict[str, Any]]) -> bool:
    """Warn a seller about products at or below the low-stock threshold.

    Returns False without enqueuing anything when no product qualifies.
    """
    threshold = get_settings().low_stock_threshold
    low = [
        {"name": p.get("name"), "stock": p.get("stock")}
        for p in products
        if isinstance(p.get("stock"), int | float) and p["stock"] <= threshold
    ]
    if not low:
        return False
    return _enqueue(store_owner_id, EventType.LOW_STOCK, {"products": low})

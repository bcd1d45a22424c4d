"""Per-event notification content for push and email.

Each business event maps to an ``EventTemplate`` in ``EVENT_TEMPLATES``. A
template declares the fields it needs and renders three views of the same
event: a short push message, an HTML email and a plain-text summary for the
notification log. Rendering is pure and total; unknown events or events
missing required fields fall back to the generic template.
"""

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from html import escape
from typing import Any

from src.config import get_settings
from src.models.enums import EventType, NotificationType

logger = logging.getLogger(__name__)

PUSH_BODY_LIMIT = 100
EMAIL_PREVIEW_LIMIT = 150

ORDER_STATUS_MESSAGES = {
    "confirmed": "Your order has been confirmed!",
    "preparing": "Your order is being prepared.",
    "ready": "Your order is ready for pickup!",
    "delivered": "Your order has been delivered!",
    "completed": "Your order has been completed.",
    "cancelled": "Your order has been cancelled.",
}

ORDER_STATUS_COLORS = {
    "confirmed": "#22c55e",
    "preparing": "#3b82f6",
    "processing": "#3b82f6",
    "ready": "#0ea5e9",
    "delivered": "#14b8a6",
    "completed": "#8b5cf6",
    "cancelled": "#ef4444",
}

ORDER_STATUS_EMOJI = {
    "confirmed": "✅",
    "preparing": "🔄",
    "processing": "🔄",
    "ready": "🛍️",
    "delivered": "🚚",
    "completed": "🎉",
    "cancelled": "❌",
}


@dataclass(frozen=True)
class PushMessage:
    """Channel payload for a push notification."""

    title: str
    body: str
    tag: str = "general"
    data: dict[str, Any] = field(default_factory=dict)

    def to_payload(self, icon: str | None = None, badge: str | None = None) -> dict[str, Any]:
        """JSON body sent to each push endpoint."""
        payload: dict[str, Any] = {"title": self.title, "body": self.body, "tag": self.tag}
        if icon:
            payload["icon"] = icon
        if badge:
            payload["badge"] = badge
        payload["data"] = self.data
        return payload


@dataclass(frozen=True)
class EmailMessage:
    """Rendered email plus the plain-text line stored in the notification log."""

    subject: str
    html: str
    text: str


@dataclass(frozen=True)
class EventTemplate:
    """Rendering contract for one event type."""

    event_type: str
    notification_type: NotificationType
    required_fields: tuple[str, ...]
    push: Callable[[Mapping[str, Any]], PushMessage]
    email: Callable[[Mapping[str, Any]], tuple[str, str]]
    text: Callable[[Mapping[str, Any]], str]

    def missing_fields(self, data: Mapping[str, Any]) -> list[str]:
        return [name for name in self.required_fields if data.get(name) in (None, "")]


def short_id(value: Any) -> str:
    """First eight characters of an order id, as shown to users."""
    return str(value or "")[:8]


def two_dp(value: Any) -> str:
    try:
        return f"{float(value):.2f}"
    except (TypeError, ValueError):
        return str(value)


def format_amount(value: Any) -> str:
    try:
        return f"{float(value):,.2f}"
    except (TypeError, ValueError):
        return str(value)


def truncate(text: str, limit: int) -> str:
    """Cut text to ``limit`` characters, ending in '...' when shortened."""
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def stock_label(stock: Any) -> str:
    """'Out of Stock' for zero stock, '<n> left' otherwise."""
    try:
        count = int(stock)
    except (TypeError, ValueError):
        return str(stock)
    return "Out of Stock" if count <= 0 else f"{count} left"


def _layout(header_color: str, heading: str, intro: str, content: str, footer_note: str) -> str:
    """Wrap event content in the shared branded email layout."""
    app_name = escape(get_settings().app_name)
    return f"""
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
            <div style="text-align: center; margin-bottom: 30px;">
                <h1 style="color: #f97316; margin: 0;">{app_name}</h1>
                <p style="color: #666; margin-top: 5px;">Campus Marketplace</p>
            </div>
            <div style="background: {header_color}; color: white; padding: 20px; border-radius: 12px; margin-bottom: 20px;">
                <h2 style="margin: 0 0 10px 0;">{heading}</h2>
                <p style="margin: 0; opacity: 0.9;">{intro}</p>
            </div>
            <div style="background: #f8f9fa; padding: 20px; border-radius: 12px; margin-bottom: 20px;">
                {content}
            </div>
            <p style="color: #666; text-align: center;">{footer_note}</p>
            <div style="text-align: center; margin-top: 30px; padding-top: 20px; border-top: 1px solid #eee;">
                <p style="color: #999; font-size: 12px;">{app_name} - Your Campus Marketplace</p>
            </div>
        </div>
    """


# ----- new_order -----


def _new_order_push(data: Mapping[str, Any]) -> PushMessage:
    return PushMessage(
        title="🎉 New Order Received!",
        body=f"Order #{short_id(data['orderId'])} - ₵{two_dp(data['orderAmount'])}",
        tag="order",
        data={"type": "order", "url": "/seller", "orderId": data["orderId"]},
    )


def _new_order_email(data: Mapping[str, Any]) -> tuple[str, str]:
    order_ref = escape(short_id(data["orderId"]))
    rows = ""
    for item in data.get("items") or []:
        rows += f"""
                    <tr>
                        <td style="padding: 8px; border-bottom: 1px solid #eee;">{escape(str(item.get("name", "")))}</td>
                        <td style="padding: 8px; border-bottom: 1px solid #eee; text-align: center;">{escape(str(item.get("quantity", "")))}</td>
                        <td style="padding: 8px; border-bottom: 1px solid #eee; text-align: right;">₵{format_amount(item.get("price"))}</td>
                    </tr>"""

    content = f"""
                <h3 style="margin: 0 0 15px 0; color: #333;">Order Details</h3>
                <p style="margin: 5px 0;"><strong>Order ID:</strong> {order_ref}</p>
                <table style="width: 100%; border-collapse: collapse; margin-top: 15px;">
                    <thead>
                        <tr style="background: #eee;">
                            <th style="padding: 10px; text-align: left;">Item</th>
                            <th style="padding: 10px; text-align: center;">Qty</th>
                            <th style="padding: 10px; text-align: right;">Price</th>
                        </tr>
                    </thead>
                    <tbody>{rows}
                    </tbody>
                    <tfoot>
                        <tr>
                            <td colspan="2" style="padding: 10px; font-weight: bold;">Total</td>
                            <td style="padding: 10px; text-align: right; font-weight: bold; color: #f97316;">₵{format_amount(data["orderAmount"])}</td>
                        </tr>
                    </tfoot>
                </table>
    """
    buyer = escape(str(data.get("buyerName") or "a customer"))
    html = _layout(
        "linear-gradient(135deg, #f97316, #ea580c)",
        "🎉 New Order Received!",
        f"You have a new order from {buyer}",
        content,
        "Please check your seller dashboard to manage this order.",
    )
    return f"🎉 New Order Received! - Order #{short_id(data['orderId'])}", html


def _new_order_text(data: Mapping[str, Any]) -> str:
    buyer = data.get("buyerName") or "a customer"
    return f"New order from {buyer} - ₵{format_amount(data['orderAmount'])}"


# ----- order_status -----


def _order_status_push(data: Mapping[str, Any]) -> PushMessage:
    status = str(data["status"])
    order_id = data.get("orderId")
    return PushMessage(
        title="Order Update",
        body=ORDER_STATUS_MESSAGES.get(
            status, f"Your order status has been updated to: {status}"
        ),
        tag=f"order-{order_id}" if order_id else "order",
        data={"type": "order", "url": "/profile", "orderId": order_id},
    )


def _order_status_email(data: Mapping[str, Any]) -> tuple[str, str]:
    status = str(data["status"])
    color = ORDER_STATUS_COLORS.get(status, "#666")
    emoji = ORDER_STATUS_EMOJI.get(status, "📦")
    store_line = ""
    if data.get("storeName"):
        store_line = (
            f'<p style="margin: 5px 0;"><strong>Store:</strong> {escape(str(data["storeName"]))}</p>'
        )
    content = f"""
                {store_line}
                <p style="margin: 5px 0;"><strong>Status:</strong> <span style="color: {color};">{escape(status)}</span></p>
    """
    intro = f"Order #{escape(short_id(data.get('orderId')))}" if data.get("orderId") else ""
    html = _layout(
        color,
        f"{emoji} Order {escape(status.capitalize())}",
        intro,
        content,
        "Check your purchase history for more details.",
    )
    return f"Order Update - Your order is {status}", html


def _order_status_text(data: Mapping[str, Any]) -> str:
    text = "Your order"
    if data.get("orderId"):
        text += f" #{short_id(data['orderId'])}"
    if data.get("storeName"):
        text += f" from {data['storeName']}"
    return f"{text} is now {data['status']}"


# ----- new_message -----


def _sender(data: Mapping[str, Any]) -> str:
    return str(data.get("senderName") or "someone")


def _new_message_push(data: Mapping[str, Any]) -> PushMessage:
    return PushMessage(
        title=f"New message from {_sender(data)}",
        body=truncate(str(data["messagePreview"]), PUSH_BODY_LIMIT),
        tag="message",
        data={"type": "message", "url": "/messages"},
    )


def _new_message_email(data: Mapping[str, Any]) -> tuple[str, str]:
    preview = str(data["messagePreview"])
    if len(preview) > EMAIL_PREVIEW_LIMIT:
        preview = preview[:EMAIL_PREVIEW_LIMIT] + "..."
    sender = escape(_sender(data))
    content = f"""
                <p style="margin: 0; color: #333; font-style: italic;">"{escape(preview)}"</p>
    """
    html = _layout(
        "#3b82f6",
        "💬 New Message",
        f"You have a new message from {sender}",
        content,
        f"Log in to {escape(get_settings().app_name)} to reply to this message.",
    )
    return f"New message from {_sender(data)}", html


def _new_message_text(data: Mapping[str, Any]) -> str:
    return f"{_sender(data)}: {str(data['messagePreview'])[:PUSH_BODY_LIMIT]}"


# ----- low_stock -----


def _low_stock_push(data: Mapping[str, Any]) -> PushMessage:
    lines = [f"{p.get('name')}: {stock_label(p.get('stock'))}" for p in data["products"]]
    return PushMessage(
        title="⚠️ Low Stock Alert",
        body=", ".join(lines),
        tag="low_stock",
        data={"type": "low_stock", "url": "/seller"},
    )


def _low_stock_email(data: Mapping[str, Any]) -> tuple[str, str]:
    rows = ""
    for product in data["products"]:
        label = stock_label(product.get("stock"))
        color = "#ef4444" if label == "Out of Stock" else "#f97316"
        rows += f"""
                    <tr>
                        <td style="padding: 10px; border-bottom: 1px solid #eee;">{escape(str(product.get("name", "")))}</td>
                        <td style="padding: 10px; border-bottom: 1px solid #eee; text-align: center; color: {color}; font-weight: bold;">{escape(label)}</td>
                    </tr>"""
    content = f"""
                <table style="width: 100%; border-collapse: collapse;">
                    <thead>
                        <tr style="background: #eee;">
                            <th style="padding: 10px; text-align: left;">Product</th>
                            <th style="padding: 10px; text-align: center;">Stock Status</th>
                        </tr>
                    </thead>
                    <tbody>{rows}
                    </tbody>
                </table>
    """
    html = _layout(
        "#f97316",
        "⚠️ Low Stock Alert",
        "Some of your products are running low on stock",
        content,
        "Please restock these products to avoid missing sales.",
    )
    return "⚠️ Low Stock Alert for your products", html


def _low_stock_text(data: Mapping[str, Any]) -> str:
    return f"{len(data['products'])} products are running low on stock"


# ----- generic fallback -----


def _generic_push(data: Mapping[str, Any]) -> PushMessage:
    return PushMessage(
        title="Notification",
        body="You have a new notification",
        tag="general",
        data={"type": "general", "url": data.get("url") or "/notifications"},
    )


def _generic_email(data: Mapping[str, Any]) -> tuple[str, str]:
    return (
        f"Notification from {get_settings().app_name}",
        "<p>You have a new notification.</p>",
    )


def _generic_text(data: Mapping[str, Any]) -> str:
    return "You have a new notification"


GENERIC_TEMPLATE = EventTemplate(
    event_type="general",
    notification_type=NotificationType.GENERAL,
    required_fields=(),
    push=_generic_push,
    email=_generic_email,
    text=_generic_text,
)

EVENT_TEMPLATES: dict[str, EventTemplate] = {
    EventType.NEW_ORDER: EventTemplate(
        event_type=EventType.NEW_ORDER,
        notification_type=NotificationType.ORDER,
        required_fields=("orderId", "orderAmount"),
        push=_new_order_push,
        email=_new_order_email,
        text=_new_order_text,
    ),
    EventType.ORDER_STATUS: EventTemplate(
        event_type=EventType.ORDER_STATUS,
        notification_type=NotificationType.STATUS_CHANGE,
        required_fields=("status",),
        push=_order_status_push,
        email=_order_status_email,
        text=_order_status_text,
    ),
    EventType.NEW_MESSAGE: EventTemplate(
        event_type=EventType.NEW_MESSAGE,
        notification_type=NotificationType.MESSAGE,
        required_fields=("messagePreview",),
        push=_new_message_push,
        email=_new_message_email,
        text=_new_message_text,
    ),
    EventType.LOW_STOCK: EventTemplate(
        event_type=EventType.LOW_STOCK,
        notification_type=NotificationType.LOW_STOCK,
        required_fields=("products",),
        push=_low_stock_push,
        email=_low_stock_email,
        text=_low_stock_text,
    ),
}


def get_template(event_type: str, data: Mapping[str, Any] | None = None) -> EventTemplate:
    """Resolve the template for an event, falling back to the generic one."""
    template = EVENT_TEMPLATES.get(event_type)
    if template is None:
        logger.warning(f"Unknown notification event type {event_type!r}, using generic template")
        return GENERIC_TEMPLATE

    missing = template.missing_fields(data or {})
    if missing:
        logger.warning(f"Event {event_type} is missing {', '.join(missing)}, using generic template")
        return GENERIC_TEMPLATE
    return template


def notification_type_for(event_type: str) -> NotificationType:
    """Log record type for an event type."""
    template = EVENT_TEMPLATES.get(event_type)
    return template.notification_type if template else NotificationType.GENERAL


_RENDER_ERRORS = (AttributeError, KeyError, TypeError, ValueError)


def render_push(event_type: str, data: Mapping[str, Any] | None = None) -> PushMessage:
    data = data or {}
    try:
        return get_template(event_type, data).push(data)
    except _RENDER_ERRORS as e:
        logger.warning(f"Could not render push for {event_type}: {e!r}")
        return GENERIC_TEMPLATE.push(data)


def render_email(event_type: str, data: Mapping[str, Any] | None = None) -> EmailMessage:
    data = data or {}
    template = get_template(event_type, data)
    try:
        subject, html = template.email(data)
        text = template.text(data)
    except _RENDER_ERRORS as e:
        logger.warning(f"Could not render email for {event_type}: {e!r}")
        subject, html = GENERIC_TEMPLATE.email(data)
        text = GENERIC_TEMPLATE.text(data)
    return EmailMessage(subject=subject, html=html, text=text)

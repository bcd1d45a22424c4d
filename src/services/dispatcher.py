"""Multi-channel notification dispatch.

``NotificationDispatcher.dispatch`` turns one business event into a push
fan-out to every registered device of the recipient plus an email, prunes
endpoints the push service rejected and writes the outcome to the delivery
log. It never raises for delivery problems: callers such as the order status
handler must succeed whatever happens to the notification.
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.config import Settings, get_settings
from src.exceptions import RecipientUnknownError, TransportError
from src.models.enums import NotificationChannel
from src.services.delivery_log import DeliveryLog
from src.services.email_service import EmailService
from src.services.identity import IdentityProvider
from src.services.push_transport import WebPushTransport
from src.services.subscription_registry import SubscriptionRegistry
from src.services.templates import notification_type_for, render_email, render_push

logger = logging.getLogger(__name__)

T = TypeVar("T")

ALL_CHANNELS = (NotificationChannel.PUSH, NotificationChannel.EMAIL)


@dataclass
class ChannelOutcome:
    """Delivery result for one channel of one dispatch."""

    channel: NotificationChannel
    attempted: bool = False
    sent: int = 0
    failed: int = 0
    pruned_endpoints: list[str] = field(default_factory=list)
    notification_id: int | None = None


@dataclass
class DeliveryOutcome:
    """Aggregate result returned to the code that triggered the notification."""

    push: ChannelOutcome = field(default_factory=lambda: ChannelOutcome(NotificationChannel.PUSH))
    email: ChannelOutcome = field(
        default_factory=lambda: ChannelOutcome(NotificationChannel.EMAIL)
    )
    email_error: str | None = None

    @property
    def push_sent(self) -> int:
        return self.push.sent

    @property
    def push_failed(self) -> int:
        return self.push.failed

    @property
    def email_sent(self) -> bool:
        return self.email.sent > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "push_sent": self.push_sent,
            "push_failed": self.push_failed,
            "email_sent": self.email_sent,
            "email_error": self.email_error,
            "pruned_endpoints": list(self.push.pruned_endpoints),
        }


def _run_fan_out(factory: Callable[[], Awaitable[T]]) -> T:
    """Run an async fan-out from synchronous code (API worker thread or Celery task)."""
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(factory())
    raise RuntimeError("NotificationDispatcher must be called from synchronous code")


class NotificationDispatcher:
    """Delivers business events over push and email and records the outcome."""

    def __init__(
        self,
        db: Session,
        push_transport: WebPushTransport | None = None,
        email_service: EmailService | None = None,
        registry: SubscriptionRegistry | None = None,
        delivery_log: DeliveryLog | None = None,
        identity: IdentityProvider | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.db = db
        self.settings = settings or get_settings()
        self.push_transport = push_transport or WebPushTransport(self.settings)
        self.email_service = email_service or EmailService(self.settings)
        self.registry = registry or SubscriptionRegistry(db)
        self.delivery_log = delivery_log or DeliveryLog(db)
        self.identity = identity or IdentityProvider(db)

    def dispatch(
        self,
        recipient_user_id: int,
        event_type: str,
        event_data: dict[str, Any] | None = None,
        channels: Iterable[NotificationChannel | str] | None = None,
    ) -> DeliveryOutcome:
        """Notify a user about an event on every requested channel.

        Args:
            recipient_user_id: User to notify
            event_type: new_order, order_status, new_message, low_stock (others
                are delivered with the generic template)
            event_data: Event fields used by the templates
            channels: Subset of channels to use; defaults to push and email

        Returns:
            DeliveryOutcome with per-channel counts
        """
        data = dict(event_data or {})
        if channels is None:
            channels = ALL_CHANNELS
        selected = {NotificationChannel(c) for c in channels}
        outcome = DeliveryOutcome()

        if NotificationChannel.PUSH in selected:
            outcome.push = self._dispatch_push(recipient_user_id, event_type, data)
        if NotificationChannel.EMAIL in selected:
            outcome.email, outcome.email_error = self._dispatch_email(
                recipient_user_id, event_type, data
            )

        logger.info(
            f"Dispatched {event_type} to user {recipient_user_id}: "
            f"push {outcome.push_sent} sent/{outcome.push_failed} failed, "
            f"email {'sent' if outcome.email_sent else 'not sent'}"
        )
        return outcome

    def send_push(
        self, recipient_user_id: int, event_type: str, event_data: dict[str, Any] | None = None
    ) -> DeliveryOutcome:
        """Push-only dispatch."""
        return self.dispatch(recipient_user_id, event_type, event_data, [NotificationChannel.PUSH])

    def send_email(
        self, recipient_user_id: int, event_type: str, event_data: dict[str, Any] | None = None
    ) -> DeliveryOutcome:
        """Email-only dispatch."""
        return self.dispatch(
            recipient_user_id, event_type, event_data, [NotificationChannel.EMAIL]
        )

    # ----- push -----

    def _dispatch_push(self, user_id: int, event_type: str, data: dict[str, Any]) -> ChannelOutcome:
        result = ChannelOutcome(NotificationChannel.PUSH, attempted=True)
        message = render_push(event_type, data)

        try:
            targets = [sub.to_subscription_info() for sub in self.registry.list(user_id)]
        except SQLAlchemyError as e:
            logger.error(f"Could not load push subscriptions for user {user_id}: {e}")
            self.db.rollback()
            targets = []

        if targets:
            payload = message.to_payload(icon=self.settings.push_icon, badge=self.settings.push_badge)
            errors = _run_fan_out(lambda: self._fan_out(targets, payload))

            for target, error in zip(targets, errors, strict=True):
                if error is None:
                    result.sent += 1
                    continue
                result.failed += 1
                result.pruned_endpoints.append(target["endpoint"])
                logger.error(f"Push failed for user {user_id} at {target['endpoint'][:60]}: {error}")

            self._prune(user_id, result.pruned_endpoints)
        else:
            logger.info(f"No push subscriptions for user {user_id}")

        # One log entry per logical notification; it records the attempt even
        # when no device accepted it, so the notification center still shows it.
        result.notification_id = self._record(
            user_id,
            event_type,
            NotificationChannel.PUSH,
            message.title,
            message.body,
            message.data,
        )
        return result

    async def _fan_out(
        self, targets: list[dict[str, Any]], payload: dict[str, Any]
    ) -> list[BaseException | None]:
        """Attempt every endpoint concurrently and wait for all of them.

        Sends run on a private pool that is shut down without waiting, so a send
        that outlives its timeout does not hold up the caller.
        """
        attempts = self.settings.push_retry_attempts + 1
        executor = ThreadPoolExecutor(
            max_workers=len(targets) * attempts, thread_name_prefix="web-push"
        )
        try:
            return await asyncio.gather(
                *(self._deliver(executor, target, payload) for target in targets),
                return_exceptions=True,
            )
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    async def _deliver(
        self, executor: ThreadPoolExecutor, target: dict[str, Any], payload: dict[str, Any]
    ) -> None:
        loop = asyncio.get_running_loop()
        attempts = self.settings.push_retry_attempts + 1
        for attempt in range(1, attempts + 1):
            try:
                await asyncio.wait_for(
                    loop.run_in_executor(executor, self.push_transport.send, target, payload),
                    timeout=self.settings.push_timeout_seconds,
                )
                return None
            except TimeoutError as e:
                error: Exception = TransportError(
                    "Push delivery timed out", endpoint=target["endpoint"]
                )
                error.__cause__ = e
            except Exception as e:
                error = e

            if getattr(error, "permanent", False) or attempt == attempts:
                raise error
            logger.warning(f"Retrying push to {target['endpoint'][:60]} after: {error}")
        return None

    def _prune(self, user_id: int, endpoints: list[str]) -> None:
        if not endpoints:
            return
        try:
            self.registry.remove_many(user_id, endpoints)
        except SQLAlchemyError as e:
            logger.error(f"Could not prune push subscriptions for user {user_id}: {e}")
            self.db.rollback()

    # ----- email -----

    def _dispatch_email(
        self, user_id: int, event_type: str, data: dict[str, Any]
    ) -> tuple[ChannelOutcome, str | None]:
        result = ChannelOutcome(NotificationChannel.EMAIL, attempted=True)

        try:
            address = self.identity.get_email_for_user(user_id)
        except RecipientUnknownError as e:
            logger.warning(str(e))
            return result, str(e)
        except SQLAlchemyError as e:
            logger.error(f"Could not resolve email for user {user_id}: {e}")
            self.db.rollback()
            return result, "Recipient lookup failed"

        message = render_email(event_type, data)
        if not self.email_service.send_email(address, message.subject, message.html, message.text):
            result.failed = 1
            return result, "Email transport rejected the message"

        result.sent = 1
        result.notification_id = self._record(
            user_id,
            event_type,
            NotificationChannel.EMAIL,
            message.subject,
            message.text,
            data,
        )
        return result, None

    # ----- log -----

    def _record(
        self,
        user_id: int,
        event_type: str,
        channel: NotificationChannel,
        title: str,
        body: str,
        data: dict[str, Any],
    ) -> int | None:
        try:
            record = self.delivery_log.append(
                user_id=user_id,
                type=notification_type_for(event_type),
                channel=channel,
                title=title,
                body=body,
                data=data,
            )
        except SQLAlchemyError as e:
            logger.error(f"Error logging {channel} notification for user {user_id}: {e}")
            self.db.rollback()
            return None
        return record.id


def get_notification_dispatcher(db: Session) -> NotificationDispatcher:
    """Get a dispatcher wired to the configured transports."""
    return NotificationDispatcher(db)

"""Append-only notification history per user."""

import logging
from collections.abc import Callable, Iterable
from typing import Any

from sqlalchemy.orm import Query, Session

from src.models import Notification
from src.models.enums import NotificationChannel, NotificationType
from src.services.realtime import NotificationEventType, publish_user_event

logger = logging.getLogger(__name__)

Publisher = Callable[[int, NotificationEventType, dict | None], None]


class DeliveryLog:
    """Notification records as read by badges, the notification center and toasts.

    Records are immutable once written, except for the read flag and deletion.
    Every mutation is followed by a best-effort realtime event.
    """

    def __init__(self, db: Session, publisher: Publisher | None = publish_user_event):
        self.db = db
        self.publisher = publisher

    def _publish(self, user_id: int, event_type: NotificationEventType, data: dict) -> None:
        if self.publisher is not None:
            self.publisher(user_id, event_type, data)

    def _query(
        self,
        user_id: int,
        channel: NotificationChannel | str | None = None,
        unread_only: bool = False,
    ) -> Query:
        query = self.db.query(Notification).filter(Notification.user_id == user_id)
        if channel is not None:
            query = query.filter(Notification.channel == str(channel))
        if unread_only:
            query = query.filter(Notification.is_read.is_(False))
        return query

    def append(
        self,
        user_id: int,
        type: NotificationType | str,
        channel: NotificationChannel | str,
        title: str,
        body: str,
        data: dict[str, Any] | None = None,
    ) -> Notification:
        """Insert a new unread record."""
        record = Notification(
            user_id=user_id,
            type=str(type),
            channel=str(channel),
            title=title,
            body=body,
            data=data or {},
            is_read=False,
        )
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)

        self._publish(
            user_id,
            NotificationEventType.NOTIFICATION_CREATED,
            {
                "id": record.id,
                "type": record.type,
                "channel": record.channel,
                "title": record.title,
                "body": record.body,
            },
        )
        return record

    def list_by_user(
        self,
        user_id: int,
        channel: NotificationChannel | str | None = None,
        unread_only: bool = False,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Notification]:
        """List a user's records, newest first."""
        query = self._query(user_id, channel, unread_only).order_by(
            Notification.created_at.desc(), Notification.id.desc()
        )
        if offset:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def count_unread(self, user_id: int, channel: NotificationChannel | str | None = None) -> int:
        """Unread badge count; same filter as list_by_user(unread_only=True)."""
        return self._query(user_id, channel, unread_only=True).count()

    def mark_read(self, user_id: int, ids: Iterable[int]) -> int:
        """Mark the given records read. Already-read and foreign ids are ignored."""
        ids = self._owned_ids(user_id, ids, unread_only=True)
        if not ids:
            return 0

        updated = (
            self._query(user_id, unread_only=True)
            .filter(Notification.id.in_(ids))
            .update({Notification.is_read: True}, synchronize_session=False)
        )
        self.db.commit()

        self._publish(user_id, NotificationEventType.NOTIFICATIONS_READ, {"ids": ids})
        return updated

    def mark_all_read(self, user_id: int) -> int:
        """Mark every unread record of the user read."""
        ids = [row.id for row in self._query(user_id, unread_only=True).all()]
        return self.mark_read(user_id, ids)

    def delete_many(self, user_id: int, ids: Iterable[int]) -> int:
        """Delete the given records of the user."""
        ids = self._owned_ids(user_id, ids)
        if not ids:
            return 0

        deleted = (
            self._query(user_id)
            .filter(Notification.id.in_(ids))
            .delete(synchronize_session=False)
        )
        self.db.commit()

        logger.info(f"Deleted {deleted} notification(s) for user {user_id}")
        self._publish(user_id, NotificationEventType.NOTIFICATIONS_DELETED, {"ids": ids})
        return deleted

    def _owned_ids(self, user_id: int, ids: Iterable[int], unread_only: bool = False) -> list[int]:
        """Subset of ``ids`` that belong to the user, in ascending order."""
        ids = list(ids)
        if not ids:
            return []
        rows = (
            self._query(user_id, unread_only=unread_only)
            .filter(Notification.id.in_(ids))
            .with_entities(Notification.id)
            .order_by(Notification.id)
            .all()
        )
        return [row.id for row in rows]

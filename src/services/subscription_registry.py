"""Registry of live web push endpoints per user."""

import logging
from collections.abc import Iterable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.exceptions import ValidationError
from src.models import PushSubscription

logger = logging.getLogger(__name__)


def _require(value: str | None, name: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"Push subscription {name} is required")
    return value


class SubscriptionRegistry:
    """Durable store of push subscriptions keyed by (user, endpoint)."""

    def __init__(self, db: Session):
        self.db = db

    def _get(self, user_id: int, endpoint: str) -> PushSubscription | None:
        return (
            self.db.query(PushSubscription)
            .filter(
                PushSubscription.user_id == user_id,
                PushSubscription.endpoint == endpoint,
            )
            .first()
        )

    def upsert(self, user_id: int, endpoint: str, p256dh: str, auth: str) -> PushSubscription:
        """Insert a subscription, or refresh the keys of an existing one.

        Calling this twice with the same input leaves a single row.
        """
        endpoint = _require(endpoint, "endpoint")
        p256dh = _require(p256dh, "p256dh key")
        auth = _require(auth, "auth key")

        existing = self._get(user_id, endpoint)
        if existing:
            existing.p256dh_key = p256dh
            existing.auth_key = auth
            self.db.commit()
            self.db.refresh(existing)
            return existing

        subscription = PushSubscription(
            user_id=user_id,
            endpoint=endpoint,
            p256dh_key=p256dh,
            auth_key=auth,
        )
        self.db.add(subscription)
        try:
            self.db.commit()
        except IntegrityError:
            # Another request registered the same device first; last writer wins
            self.db.rollback()
            subscription = self._get(user_id, endpoint)
            if subscription is None:
                raise
            subscription.p256dh_key = p256dh
            subscription.auth_key = auth
            self.db.commit()

        self.db.refresh(subscription)
        logger.info(f"Registered push endpoint for user {user_id}")
        return subscription

    def list(self, user_id: int) -> list[PushSubscription]:
        """Return all live subscriptions for a user (possibly none)."""
        return (
            self.db.query(PushSubscription)
            .filter(PushSubscription.user_id == user_id)
            .order_by(PushSubscription.id)
            .all()
        )

    def exists(self, user_id: int, endpoint: str) -> bool:
        """Check whether a (user, endpoint) registration is stored."""
        return self._get(user_id, endpoint) is not None

    def remove(self, user_id: int, endpoint: str) -> bool:
        """Delete one subscription. Returns False if there was nothing to delete."""
        return self.remove_many(user_id, [endpoint]) > 0

    def remove_many(self, user_id: int, endpoints: Iterable[str]) -> int:
        """Delete several subscriptions of one user, e.g. after failed deliveries."""
        endpoints = list(dict.fromkeys(endpoints))
        if not endpoints:
            return 0

        removed = (
            self.db.query(PushSubscription)
            .filter(
                PushSubscription.user_id == user_id,
                PushSubscription.endpoint.in_(endpoints),
            )
            .delete(synchronize_session=False)
        )
        self.db.commit()

        if removed:
            logger.info(f"Removed {removed} push subscription(s) for user {user_id}")
        return removed

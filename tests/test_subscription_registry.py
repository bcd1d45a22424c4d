"""Tests for the push subscription registry."""

import pytest

from src.exceptions import ValidationError
from src.models import PushSubscription
from src.services.subscription_registry import SubscriptionRegistry


@pytest.fixture
def registry(db):
    return SubscriptionRegistry(db)


def test_upsert_twice_leaves_one_row(db, registry, user):
    registry.upsert(user.id, "https://fcm.test/abc", "key-1", "auth-1")
    registry.upsert(user.id, "https://fcm.test/abc", "key-1", "auth-1")

    rows = db.query(PushSubscription).filter(PushSubscription.user_id == user.id).all()
    assert len(rows) == 1


def test_upsert_refreshes_keys(registry, user):
    first = registry.upsert(user.id, "https://fcm.test/abc", "old-key", "old-auth")
    second = registry.upsert(user.id, "https://fcm.test/abc", "new-key", "new-auth")

    assert second.id == first.id
    assert second.p256dh_key == "new-key"
    assert second.auth_key == "new-auth"


def test_same_endpoint_for_two_users(registry, make_user):
    """Uniqueness is per (user, endpoint)."""
    alice = make_user(email="alice@example.com")
    bob = make_user(email="bob@example.com")

    registry.upsert(alice.id, "https://fcm.test/shared", "k", "a")
    registry.upsert(bob.id, "https://fcm.test/shared", "k", "a")

    assert len(registry.list(alice.id)) == 1
    assert len(registry.list(bob.id)) == 1


@pytest.mark.parametrize(
    "endpoint,p256dh,auth",
    [("", "k", "a"), ("https://fcm.test/x", "", "a"), ("https://fcm.test/x", "k", "  ")],
)
def test_upsert_rejects_missing_fields(db, registry, user, endpoint, p256dh, auth):
    with pytest.raises(ValidationError):
        registry.upsert(user.id, endpoint, p256dh, auth)
    assert db.query(PushSubscription).count() == 0


def test_list_empty_for_unknown_user(registry):
    assert registry.list(12345) == []


def test_subscription_info_shape(registry, user):
    sub = registry.upsert(user.id, "https://fcm.test/abc", "p-key", "a-key")

    assert sub.to_subscription_info() == {
        "endpoint": "https://fcm.test/abc",
        "keys": {"p256dh": "p-key", "auth": "a-key"},
    }


def test_remove(registry, user):
    registry.upsert(user.id, "https://fcm.test/abc", "k", "a")

    assert registry.exists(user.id, "https://fcm.test/abc")
    assert registry.remove(user.id, "https://fcm.test/abc") is True
    assert not registry.exists(user.id, "https://fcm.test/abc")
    # Removing again is a no-op
    assert registry.remove(user.id, "https://fcm.test/abc") is False


def test_remove_many_only_touches_owner(registry, make_user):
    owner = make_user(email="owner@example.com")
    other = make_user(email="other@example.com")
    for endpoint in ("https://fcm.test/1", "https://fcm.test/2", "https://fcm.test/3"):
        registry.upsert(owner.id, endpoint, "k", "a")
    registry.upsert(other.id, "https://fcm.test/1", "k", "a")

    removed = registry.remove_many(
        owner.id, ["https://fcm.test/1", "https://fcm.test/3", "https://fcm.test/1"]
    )

    assert removed == 2
    assert [s.endpoint for s in registry.list(owner.id)] == ["https://fcm.test/2"]
    assert registry.exists(other.id, "https://fcm.test/1")


def test_remove_many_empty(registry, user):
    assert registry.remove_many(user.id, []) == 0

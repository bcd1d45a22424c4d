"""API endpoint tests."""

import pytest

from src.api.dependencies import get_dispatcher
from src.main import app
from src.services.delivery_log import DeliveryLog
from src.services.dispatcher import NotificationDispatcher

SERVICE_HEADERS = {"X-Service-Key": "test-service-key"}


def _subscribe(client, headers, endpoint="https://fcm.test/device-1"):
    return client.post(
        "/api/v1/notifications/subscriptions",
        headers=headers,
        json={"endpoint": endpoint, "p256dh": "p-key", "auth": "a-key"},
    )


def _append(db, user_id, channel="push", title="Order Update"):
    return DeliveryLog(db, publisher=None).append(
        user_id=user_id,
        type="order",
        channel=channel,
        title=title,
        body="Your order is ready for pickup!",
        data={"url": "/profile"},
    )


def test_health_check(client):
    """Test health check endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_register_user(client):
    """Test user registration."""
    response = client.post(
        "/api/v1/auth/register",
        json={"email": "newuser@example.com", "password": "password123", "name": "New User"},
    )
    assert response.status_code == 201
    data = response.json()
    assert "access_token" in data
    assert data["user"]["email"] == "newuser@example.com"


def test_register_duplicate_email(client, auth_headers):
    """Test registration with duplicate email fails."""
    response = client.post(
        "/api/v1/auth/register",
        json={"email": auth_headers.email, "password": "password123", "name": "Duplicate"},
    )
    assert response.status_code == 400
    assert "already registered" in response.json()["detail"]


def test_login(client, auth_headers):
    """Test user login."""
    response = client.post(
        "/api/v1/auth/login", json={"email": auth_headers.email, "password": "testpass123"}
    )
    assert response.status_code == 200
    assert "access_token" in response.json()


def test_login_wrong_password(client, auth_headers):
    """Test login with wrong password."""
    response = client.post(
        "/api/v1/auth/login", json={"email": auth_headers.email, "password": "wrongpass"}
    )
    assert response.status_code == 401


def test_get_current_user(client, auth_headers):
    """Test getting current user info."""
    response = client.get("/api/v1/auth/me", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["email"] == auth_headers.email


def test_unauthorized_access(client):
    """Notification endpoints require authentication."""
    response = client.get("/api/v1/notifications")
    assert response.status_code in (401, 403)


def test_vapid_public_key(client):
    response = client.get("/api/v1/notifications/vapid-public-key")
    assert response.status_code == 200
    assert response.json()["public_key"].startswith("BEl62")


class TestSubscriptions:
    def test_subscribe_is_idempotent(self, client, auth_headers):
        first = _subscribe(client, auth_headers)
        second = _subscribe(client, auth_headers)

        assert first.status_code == 200
        assert second.json()["id"] == first.json()["id"]
        listed = client.get("/api/v1/notifications/subscriptions", headers=auth_headers).json()
        assert [s["endpoint"] for s in listed] == ["https://fcm.test/device-1"]

    def test_subscribe_rejects_blank_endpoint(self, client, auth_headers):
        response = _subscribe(client, auth_headers, endpoint="  ")
        assert response.status_code == 422

    def test_exists_and_unsubscribe(self, client, auth_headers):
        _subscribe(client, auth_headers)
        params = {"endpoint": "https://fcm.test/device-1"}

        exists = client.get(
            "/api/v1/notifications/subscriptions/exists", headers=auth_headers, params=params
        )
        assert exists.json() == {"exists": True}

        response = client.delete(
            "/api/v1/notifications/subscriptions", headers=auth_headers, params=params
        )
        assert response.json()["message"] == "Unsubscribed successfully"

        again = client.delete(
            "/api/v1/notifications/subscriptions", headers=auth_headers, params=params
        )
        assert again.status_code == 200
        assert again.json()["message"] == "Subscription not found"


class TestNotificationCenter:
    def test_list_and_filter(self, client, auth_headers, db):
        push = _append(db, auth_headers.user_id, channel="push")
        email = _append(db, auth_headers.user_id, channel="email")

        everything = client.get("/api/v1/notifications", headers=auth_headers).json()
        assert [n["id"] for n in everything] == [email.id, push.id]
        assert everything[0]["is_read"] is False

        only_email = client.get(
            "/api/v1/notifications", headers=auth_headers, params={"channel": "email"}
        ).json()
        assert [n["id"] for n in only_email] == [email.id]

    def test_read_flow(self, client, auth_headers, db):
        first = _append(db, auth_headers.user_id)
        _append(db, auth_headers.user_id)

        count = client.get("/api/v1/notifications/unread-count", headers=auth_headers)
        assert count.json() == {"count": 2}

        response = client.post(
            "/api/v1/notifications/read", headers=auth_headers, json={"ids": [first.id]}
        )
        assert response.json() == {"count": 1}

        unread = client.get(
            "/api/v1/notifications", headers=auth_headers, params={"unread_only": True}
        ).json()
        assert len(unread) == 1

        response = client.post("/api/v1/notifications/read-all", headers=auth_headers)
        assert response.json() == {"count": 1}
        count = client.get("/api/v1/notifications/unread-count", headers=auth_headers)
        assert count.json() == {"count": 0}

    def test_delete(self, client, auth_headers, db, make_user):
        mine = _append(db, auth_headers.user_id)
        other = make_user(email="other@example.com")
        theirs = _append(db, other.id)

        response = client.post(
            "/api/v1/notifications/delete",
            headers=auth_headers,
            json={"ids": [mine.id, theirs.id]},
        )

        assert response.json() == {"count": 1}
        assert client.get("/api/v1/notifications", headers=auth_headers).json() == []
        assert len(DeliveryLog(db, publisher=None).list_by_user(other.id)) == 1

    def test_invalid_channel(self, client, auth_headers):
        response = client.get(
            "/api/v1/notifications", headers=auth_headers, params={"channel": "sms"}
        )
        assert response.status_code == 422


class TestDispatchEndpoint:
    @pytest.fixture
    def fake_dispatcher(self, db, push_transport, email_service, push_settings):
        dispatcher = NotificationDispatcher(
            db,
            push_transport=push_transport,
            email_service=email_service,
            delivery_log=DeliveryLog(db, publisher=None),
            settings=push_settings,
        )
        app.dependency_overrides[get_dispatcher] = lambda: dispatcher
        yield dispatcher
        app.dependency_overrides.pop(get_dispatcher, None)

    def test_requires_service_key(self, client):
        response = client.post(
            "/api/v1/notifications/dispatch",
            json={"recipient_user_id": 1, "event_type": "general"},
        )
        assert response.status_code == 403

        response = client.post(
            "/api/v1/notifications/dispatch",
            headers={"X-Service-Key": "wrong"},
            json={"recipient_user_id": 1, "event_type": "general"},
        )
        assert response.status_code == 403

    def test_dispatch_new_order(
        self, client, auth_headers, fake_dispatcher, push_transport, email_service
    ):
        _subscribe(client, auth_headers)

        response = client.post(
            "/api/v1/notifications/dispatch",
            headers=SERVICE_HEADERS,
            json={
                "recipient_user_id": auth_headers.user_id,
                "event_type": "new_order",
                "event_data": {"orderId": "abcdef123456", "orderAmount": 18},
            },
        )

        assert response.status_code == 200
        assert response.json() == {
            "push_sent": 1,
            "push_failed": 0,
            "email_sent": True,
            "email_error": None,
            "pruned_endpoints": [],
        }
        assert push_transport.endpoints == ["https://fcm.test/device-1"]
        assert email_service.sent[0]["to"] == auth_headers.email

        center = client.get("/api/v1/notifications", headers=auth_headers).json()
        assert sorted(n["channel"] for n in center) == ["email", "push"]
        assert all(n["type"] == "order" for n in center)

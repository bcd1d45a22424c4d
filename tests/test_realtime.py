"""Tests for the realtime notification feed."""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

import src.services.realtime as realtime_module
from src.services.realtime import (
    NotificationEventType,
    RealtimeService,
    get_sync_redis,
    publish_user_event,
    user_channel,
)


@pytest.fixture
def realtime_enabled(monkeypatch):
    """Turn publishing on for one test (it is disabled for the suite)."""
    monkeypatch.setattr(realtime_module.settings, "realtime_enabled", True)


@pytest.fixture
def mock_redis():
    client = MagicMock()
    realtime_module._sync_redis = client
    yield client
    realtime_module._sync_redis = None


class TestNotificationEventType:
    def test_event_values(self):
        assert NotificationEventType.NOTIFICATION_CREATED == "notification_created"
        assert NotificationEventType.NOTIFICATIONS_READ == "notifications_read"
        assert NotificationEventType.NOTIFICATIONS_DELETED == "notifications_deleted"

    def test_user_channel(self):
        assert user_channel(42) == "notifications:42"


class TestGetSyncRedis:
    def test_creates_redis_client(self):
        realtime_module._sync_redis = None

        with patch("src.services.realtime.redis.from_url") as mock_from_url:
            client = MagicMock()
            mock_from_url.return_value = client

            assert get_sync_redis() == client
            mock_from_url.assert_called_once()

        realtime_module._sync_redis = None

    def test_reuses_existing_client(self, mock_redis):
        with patch("src.services.realtime.redis.from_url") as mock_from_url:
            assert get_sync_redis() == mock_redis
            mock_from_url.assert_not_called()


class TestPublishUserEvent:
    def test_publishes_to_user_channel(self, realtime_enabled, mock_redis):
        publish_user_event(7, NotificationEventType.NOTIFICATIONS_READ, {"ids": [1, 2]})

        mock_redis.publish.assert_called_once()
        channel, raw = mock_redis.publish.call_args.args
        assert channel == "notifications:7"
        message = json.loads(raw)
        assert message["type"] == "notifications_read"
        assert message["user_id"] == 7
        assert message["data"] == {"ids": [1, 2]}
        assert "timestamp" in message

    def test_publishes_without_data(self, realtime_enabled, mock_redis):
        publish_user_event(7, NotificationEventType.NOTIFICATIONS_DELETED)

        message = json.loads(mock_redis.publish.call_args.args[1])
        assert message["data"] == {}

    def test_redis_error_is_swallowed(self, realtime_enabled, mock_redis):
        mock_redis.publish.side_effect = Exception("Redis connection failed")

        publish_user_event(7, NotificationEventType.NOTIFICATION_CREATED, {"id": 1})

    def test_disabled_does_not_publish(self, mock_redis):
        publish_user_event(7, NotificationEventType.NOTIFICATION_CREATED, {"id": 1})

        mock_redis.publish.assert_not_called()


class TestRealtimeService:
    def test_init(self):
        service = RealtimeService()
        assert service._redis is None
        assert service._pubsub is None

    @pytest.mark.asyncio
    async def test_get_redis_creates_connection(self):
        service = RealtimeService()

        with patch("src.services.realtime.aioredis.from_url") as mock_from_url:
            client = AsyncMock()
            mock_from_url.return_value = client

            assert await service._get_redis() == client
            mock_from_url.assert_called_once()

    @pytest.mark.asyncio
    async def test_cleanup_closes_connections(self):
        service = RealtimeService()
        service._redis = AsyncMock()
        service._pubsub = AsyncMock()

        await service.cleanup()

        service._pubsub.close.assert_called_once()
        service._redis.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_cleanup_handles_no_connections(self):
        await RealtimeService().cleanup()

    @pytest.mark.asyncio
    async def test_subscribe_skips_control_and_invalid_messages(self):
        service = RealtimeService()
        event = {"type": "notification_created", "user_id": 3}

        async def mock_listen():
            yield {"type": "subscribe", "data": 1}
            yield {"type": "message", "data": "not valid json"}
            yield {"type": "message", "data": json.dumps(event)}

        pubsub = MagicMock()
        pubsub.listen = mock_listen
        pubsub.subscribe = AsyncMock()
        pubsub.unsubscribe = AsyncMock()
        client = MagicMock()
        client.pubsub.return_value = pubsub
        service._redis = client

        messages = []
        async for message in service.subscribe(3):
            messages.append(message)
            break

        assert messages == [event]
        pubsub.subscribe.assert_awaited_once_with("notifications:3")


class TestWebSocketEndpoint:
    def test_websocket_requires_token(self, client):
        from starlette.websockets import WebSocketDisconnect

        with pytest.raises(WebSocketDisconnect), client.websocket_connect("/api/v1/ws/notifications"):
            pass

    def test_websocket_rejects_invalid_token(self, client):
        from starlette.websockets import WebSocketDisconnect

        with (
            pytest.raises(WebSocketDisconnect),
            client.websocket_connect("/api/v1/ws/notifications?token=invalid_token"),
        ):
            pass

    def test_websocket_rejects_nonexistent_user(self, client):
        from starlette.websockets import WebSocketDisconnect

        from src.services.auth import create_access_token

        fake_token = create_access_token(user_id=99999, email="fake@example.com")
        with (
            pytest.raises(WebSocketDisconnect),
            client.websocket_connect(f"/api/v1/ws/notifications?token={fake_token}"),
        ):
            pass

    @pytest.mark.asyncio
    async def test_disconnect_ends_idle_subscription(self, user):
        from starlette.websockets import WebSocketDisconnect

        from src.api.websocket import websocket_notifications
        from src.services.auth import create_access_token

        class IdleRealtime:
            cleaned_up = False

            async def subscribe(self, user_id):
                await asyncio.Event().wait()
                yield {}

            async def cleanup(self):
                IdleRealtime.cleaned_up = True

        websocket = MagicMock()
        websocket.accept = AsyncMock()
        websocket.send_json = AsyncMock()
        websocket.receive_json = AsyncMock(side_effect=WebSocketDisconnect(code=1000))
        token = create_access_token(user_id=user.id, email=user.email)

        with patch("src.api.websocket.RealtimeService", IdleRealtime):
            await asyncio.wait_for(websocket_notifications(websocket, token=token), timeout=2)

        websocket.accept.assert_awaited_once()
        assert IdleRealtime.cleaned_up is True

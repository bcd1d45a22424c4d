"""WebSocket endpoint for live notification updates."""

import asyncio
import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from src.database import SessionLocal
from src.models.user import User
from src.services.auth import decode_access_token
from src.services.realtime import RealtimeService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/ws", tags=["websocket"])


@router.websocket("/notifications")
async def websocket_notifications(
    websocket: WebSocket,
    token: str = Query(...),
) -> None:
    """Stream the user's notification events (new, read, deleted).

    Authentication via token query parameter (WebSocket doesn't support headers).
    """
    db = SessionLocal()
    realtime_service = RealtimeService()
    user_id: int | None = None

    try:
        payload = decode_access_token(token)
        if not payload or not payload.get("sub"):
            await websocket.close(code=4001, reason="Invalid token")
            return

        user_id = int(payload["sub"])
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            await websocket.close(code=4001, reason="User not found")
            return
        # The session is only needed for the handshake
        db.close()

        await websocket.accept()
        logger.info(f"Notification WebSocket connected: user={user_id}")

        async def handle_messages() -> None:
            """Receive events from Redis and forward to WebSocket."""
            async for message in realtime_service.subscribe(user_id):
                try:
                    await websocket.send_json(message)
                except WebSocketDisconnect:
                    break
                except Exception as e:
                    logger.error(f"Error sending WebSocket message: {e}")
                    break

        async def handle_ping() -> None:
            """Send periodic pings to keep connection alive."""
            while True:
                try:
                    await asyncio.sleep(30)
                    await websocket.send_json({"type": "ping"})
                except Exception:
                    break

        async def handle_client() -> None:
            """Drain client messages (pong responses) until disconnect."""
            while True:
                try:
                    data = await websocket.receive_json()
                    if data.get("type") == "pong":
                        continue
                except WebSocketDisconnect:
                    break
                except Exception:
                    break

        # The first handler to finish (usually the client hanging up) ends the
        # session; the Redis listener would otherwise wait for the next event.
        tasks = [
            asyncio.create_task(handle_messages()),
            asyncio.create_task(handle_ping()),
            asyncio.create_task(handle_client()),
        ]
        _, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        logger.info(f"Notification WebSocket closed: user={user_id}")

    except WebSocketDisconnect:
        logger.info(f"Notification WebSocket disconnected: user={user_id}")
    except Exception as e:
        logger.error(f"WebSocket error: {e}", exc_info=True)
    finally:
        db.close()
        await realtime_service.cleanup()

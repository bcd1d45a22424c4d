"""FastAPI dependencies for authentication and database."""

import hmac
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from src.config import get_settings
from src.database import get_db
from src.models.user import User
from src.services.auth import decode_access_token
from src.services.delivery_log import DeliveryLog
from src.services.dispatcher import NotificationDispatcher, get_notification_dispatcher
from src.services.subscription_registry import SubscriptionRegistry

security = HTTPBearer()


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
) -> User:
    """Get the current authenticated user from JWT token."""
    token = credentials.credentials
    payload = decode_access_token(token)

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("sub")
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = db.query(User).filter(User.id == int(user_id)).first()
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user


def require_service_key(
    x_service_key: Annotated[str | None, Header()] = None,
) -> None:
    """Allow only internal callers presenting the configured service key."""
    expected = get_settings().service_api_key
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Internal dispatch is not configured",
        )
    if not x_service_key or not hmac.compare_digest(x_service_key, expected):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid service key",
        )


def get_subscription_registry(
    db: Annotated[Session, Depends(get_db)],
) -> SubscriptionRegistry:
    """Get subscription registry bound to the request session."""
    return SubscriptionRegistry(db)


def get_delivery_log(
    db: Annotated[Session, Depends(get_db)],
) -> DeliveryLog:
    """Get delivery log bound to the request session."""
    return DeliveryLog(db)


def get_dispatcher(
    db: Annotated[Session, Depends(get_db)],
) -> NotificationDispatcher:
    """Get notification dispatcher with dependencies."""
    return get_notification_dispatcher(db)

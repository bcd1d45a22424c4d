"""Registry gateways used by the device-side subscription lifecycle.

A gateway is bound to the signed-in user and exposes only the three registry
operations the device needs. ``HttpRegistryGateway`` talks to the
notifications API; ``LocalRegistryGateway`` wraps an in-process
``SubscriptionRegistry`` (used by scripts and tests).
"""

import logging
from typing import Protocol

import httpx

from src.exceptions import ValidationError
from src.services.subscription_registry import SubscriptionRegistry

logger = logging.getLogger(__name__)

SUBSCRIPTIONS_PATH = "/api/v1/notifications/subscriptions"


class RegistryGateway(Protocol):
    """Registry operations available to a device for the current user."""

    async def upsert(self, endpoint: str, p256dh: str, auth: str) -> None: ...

    async def exists(self, endpoint: str) -> bool: ...

    async def remove(self, endpoint: str) -> None: ...


class HttpRegistryGateway:
    """Registry gateway over the HTTP API, authenticated with a bearer token."""

    def __init__(
        self,
        base_url: str,
        token: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self._client = client
        self.timeout = timeout

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)
        return self._client

    @property
    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}

    async def upsert(self, endpoint: str, p256dh: str, auth: str) -> None:
        response = await self._get_client().post(
            SUBSCRIPTIONS_PATH,
            json={"endpoint": endpoint, "p256dh": p256dh, "auth": auth},
            headers=self._headers,
        )
        if response.status_code == 422:
            raise ValidationError(f"Subscription rejected by server: {response.text}")
        response.raise_for_status()

    async def exists(self, endpoint: str) -> bool:
        response = await self._get_client().get(
            f"{SUBSCRIPTIONS_PATH}/exists",
            params={"endpoint": endpoint},
            headers=self._headers,
        )
        response.raise_for_status()
        return bool(response.json().get("exists"))

    async def remove(self, endpoint: str) -> None:
        response = await self._get_client().delete(
            SUBSCRIPTIONS_PATH,
            params={"endpoint": endpoint},
            headers=self._headers,
        )
        response.raise_for_status()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class LocalRegistryGateway:
    """Registry gateway backed directly by a ``SubscriptionRegistry``."""

    def __init__(self, registry: SubscriptionRegistry, user_id: int):
        self.registry = registry
        self.user_id = user_id

    async def upsert(self, endpoint: str, p256dh: str, auth: str) -> None:
        self.registry.upsert(self.user_id, endpoint, p256dh, auth)

    async def exists(self, endpoint: str) -> bool:
        return self.registry.exists(self.user_id, endpoint)

    async def remove(self, endpoint: str) -> None:
        self.registry.remove(self.user_id, endpoint)

"""Device-side push subscription lifecycle.

Tracks whether this device is registered for web push and keeps the server
registry in sync with the platform's registration:

    unsupported          (terminal)
    not_subscribed  --subscribe-->   subscribed
    not_subscribed  --denied-->      permission_denied
    permission_denied --subscribe--> subscribed (if the user now grants)
    subscribed      --unsubscribe--> not_subscribed

Every operation returns a ``LifecycleResult`` carrying the message shown to
the user; errors are reported through it rather than raised.
"""

import base64
import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Protocol

from src.client.gateway import RegistryGateway
from src.exceptions import InconsistentStateError

logger = logging.getLogger(__name__)


class LifecycleState(StrEnum):
    UNSUPPORTED = "unsupported"
    NOT_SUBSCRIBED = "not_subscribed"
    PERMISSION_DENIED = "permission_denied"
    SUBSCRIBED = "subscribed"


class PushPermission(StrEnum):
    DEFAULT = "default"
    GRANTED = "granted"
    DENIED = "denied"


@dataclass
class PlatformSubscription:
    """Registration handed out by the platform push manager."""

    endpoint: str
    keys: dict[str, str] = field(default_factory=dict)


class PushPlatform(Protocol):
    """Capabilities of the device's push stack (service worker + push manager)."""

    def is_supported(self) -> bool: ...

    def permission(self) -> PushPermission: ...

    async def request_permission(self) -> PushPermission: ...

    async def get_subscription(self) -> PlatformSubscription | None: ...

    async def subscribe(self, application_server_key: bytes) -> PlatformSubscription: ...

    async def unsubscribe(self) -> bool: ...


@dataclass
class LifecycleResult:
    """Outcome of a lifecycle operation, with the toast shown to the user."""

    success: bool
    state: LifecycleState
    title: str = ""
    description: str = ""


def url_base64_to_bytes(value: str) -> bytes:
    """Decode a URL-safe base64 VAPID key, restoring any stripped padding."""
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(value + padding)



class PushSubscriptionLifecycle:
    """Subscribe/unsubscribe state machine for one signed-in user on one device."""

    def __init__(
        self,
        platform: PushPlatform,
        gateway: RegistryGateway,
        vapid_public_key: str | None,
        verify_writes: bool = False,
    ):
        self.platform = platform
        self.gateway = gateway
        self.vapid_public_key = vapid_public_key
        self.verify_writes = verify_writes

        if not (vapid_public_key and platform.is_supported()):
            self.state = LifecycleState.UNSUPPORTED
        elif platform.permission() == PushPermission.DENIED:
            self.state = LifecycleState.PERMISSION_DENIED
        else:
            self.state = LifecycleState.NOT_SUBSCRIBED

    @property
    def is_supported(self) -> bool:
        return self.state != LifecycleState.UNSUPPORTED

    @property
    def is_subscribed(self) -> bool:
        return self.state == LifecycleState.SUBSCRIBED

    def _unavailable(self) -> LifecycleResult:
        return LifecycleResult(
            success=False,
            state=self.state,
            title="Push notifications not available",
            description="Please make sure you're logged in and using a supported browser.",
        )

    async def _register(self, subscription: PlatformSubscription) -> None:
        p256dh = subscription.keys.get("p256dh")
        auth = subscription.keys.get("auth")
        if not p256dh or not auth:
            raise ValueError("Failed to get subscription keys")

        await self.gateway.upsert(subscription.endpoint, p256dh, auth)
        if self.verify_writes and not await self.gateway.exists(subscription.endpoint):
            raise InconsistentStateError(
                f"Subscription for {subscription.endpoint[:60]} not found after save"
            )

    async def restore(self) -> LifecycleResult:
        """Re-sync an existing platform registration without prompting the user."""
        if not self.is_supported:
            return self._unavailable()

        if self.platform.permission() == PushPermission.DENIED:
            self.state = LifecycleState.PERMISSION_DENIED
            return LifecycleResult(success=True, state=self.state)

        try:
            subscription = await self.platform.get_subscription()
            if subscription is None:
                self.state = LifecycleState.NOT_SUBSCRIBED
                return LifecycleResult(success=True, state=self.state)
            await self._register(subscription)
        except Exception as e:
            logger.error(f"Error checking push subscription: {e}", exc_info=True)
            self.state = LifecycleState.NOT_SUBSCRIBED
            return LifecycleResult(success=False, state=self.state)

        self.state = LifecycleState.SUBSCRIBED
        return LifecycleResult(success=True, state=self.state)

    async def request_permission(self) -> PushPermission:
        """Prompt the user for notification permission."""
        if not self.is_supported:
            return PushPermission.DENIED

        permission = await self.platform.request_permission()
        if permission == PushPermission.DENIED:
            self.state = LifecycleState.PERMISSION_DENIED
        elif self.state == LifecycleState.PERMISSION_DENIED:
            self.state = LifecycleState.NOT_SUBSCRIBED
        return permission

    async def subscribe(self) -> LifecycleResult:
        """Register this device for push and store the registration on the server."""
        if not self.is_supported:
            return self._unavailable()

        permission = self.platform.permission()
        if permission != PushPermission.GRANTED:
            permission = await self.request_permission()

        if permission != PushPermission.GRANTED:
            self.state = LifecycleState.PERMISSION_DENIED
            return LifecycleResult(
                success=False,
                state=self.state,
                title="Permission denied",
                description="Please enable notifications in your browser settings.",
            )

        try:
            subscription = await self.platform.subscribe(
                url_base64_to_bytes(self.vapid_public_key)
            )
            await self._register(subscription)
        except Exception as e:
            logger.error(f"Error subscribing to push notifications: {e}", exc_info=True)
            self.state = LifecycleState.NOT_SUBSCRIBED
            return LifecycleResult(
                success=False,
                state=self.state,
                title="Failed to enable notifications",
                description="Please try again later.",
            )

        self.state = LifecycleState.SUBSCRIBED
        return LifecycleResult(
            success=True,
            state=self.state,
            title="Notifications enabled",
            description="You'll now receive push notifications for new messages and orders.",
        )

    async def unsubscribe(self) -> LifecycleResult:
        """Drop the platform registration and the matching server row."""
        if not self.is_supported:
            return self._unavailable()

        try:
            subscription = await self.platform.get_subscription()
            if subscription is not None:
                await self.platform.unsubscribe()
                await self.gateway.remove(subscription.endpoint)
        except Exception as e:
            logger.error(f"Error unsubscribing from push notifications: {e}", exc_info=True)
            return LifecycleResult(
                success=False,
                state=self.state,
                title="Failed to disable notifications",
                description="Please try again later.",
            )

        self.state = LifecycleState.NOT_SUBSCRIBED
        return LifecycleResult(
            success=True,
            state=self.state,
            title="Notifications disabled",
            description="You won't receive push notifications anymore.",
        )

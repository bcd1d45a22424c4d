"""Device-side push subscription management."""

from src.client.gateway import HttpRegistryGateway, LocalRegistryGateway, RegistryGateway
from src.client.lifecycle import (
    LifecycleResult,
    LifecycleState,
    PlatformSubscription,
    PushPermission,
    PushPlatform,
    PushSubscriptionLifecycle,
    url_base64_to_bytes,
)

__all__ = [
    "HttpRegistryGateway",
    "LifecycleResult",
    "LifecycleState",
    "LocalRegistryGateway",
    "PlatformSubscription",
    "PushPermission",
    "PushPlatform",
    "PushSubscriptionLifecycle",
    "RegistryGateway",
    "url_base64_to_bytes",
]

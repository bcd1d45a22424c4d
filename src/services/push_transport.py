"""Signed Web Push delivery to a single endpoint."""

import json
import logging
from typing import Any

import requests
from pywebpush import WebPushException, webpush

from src.config import Settings, get_settings
from src.exceptions import TransportError

logger = logging.getLogger(__name__)

# Push services answer 404/410 for endpoints that no longer exist
GONE_STATUS_CODES = (404, 410)


class WebPushTransport:
    """Sends one push message to one endpoint using the process-wide VAPID keys."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        if not self.is_configured:
            logger.info("VAPID credentials not configured, push disabled")

    @property
    def is_configured(self) -> bool:
        return self.settings.push_configured

    def send(self, subscription_info: dict[str, Any], payload: dict[str, Any]) -> None:
        """Deliver ``payload`` as JSON to one endpoint.

        ``subscription_info`` is ``{"endpoint": ..., "keys": {"p256dh": ..., "auth": ...}}``.

        Raises:
            TransportError: the push service rejected the message or could not
                be reached; ``permanent`` is set when the endpoint is gone.
        """
        endpoint = subscription_info["endpoint"]
        if not self.is_configured:
            raise TransportError("VAPID keys not configured", endpoint=endpoint)

        try:
            webpush(
                subscription_info=subscription_info,
                data=json.dumps(payload),
                vapid_private_key=self.settings.vapid_private_key,
                # pywebpush adds aud/exp to the claims, so build a fresh dict per call
                vapid_claims={"sub": f"mailto:{self.settings.vapid_email}"},
                ttl=self.settings.push_ttl_seconds,
                timeout=self.settings.push_timeout_seconds,
            )
        except WebPushException as e:
            status_code = e.response.status_code if e.response is not None else None
            raise TransportError(
                f"Push rejected: {e}",
                endpoint=endpoint,
                status_code=status_code,
                permanent=status_code in GONE_STATUS_CODES,
            ) from e
        except requests.RequestException as e:
            raise TransportError(f"Push service unreachable: {e}", endpoint=endpoint) from e

        logger.debug(f"Push notification sent to {endpoint[:60]}")

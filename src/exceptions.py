"""Errors raised by the notification delivery services."""


class NotificationError(Exception):
    """Base class for notification subsystem errors."""


class ValidationError(NotificationError):
    """Raised when a push subscription is malformed (rejected before any I/O)."""


class RecipientUnknownError(NotificationError):
    """Raised when no email address can be resolved for a user."""

    def __init__(self, user_id: int):
        self.user_id = user_id
        super().__init__(f"No email address on record for user {user_id}")


class TransportError(NotificationError):
    """Raised when a single push or email delivery fails.

    ``permanent`` is set when the push service reported the endpoint as gone
    (HTTP 404/410). The dispatcher prunes the endpoint either way.
    """

    def __init__(
        self,
        message: str,
        endpoint: str | None = None,
        status_code: int | None = None,
        permanent: bool = False,
    ):
        self.endpoint = endpoint
        self.status_code = status_code
        self.permanent = permanent
        super().__init__(message)


class InconsistentStateError(NotificationError):
    """Raised when a registry write succeeded but the read-back check did not find it."""

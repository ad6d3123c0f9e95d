"""
Service-layer exceptions shared by the REST routes and the realtime channels.

Routes translate them to HTTP status codes, socket handlers turn them into an
`error` event for the originating connection.
"""


class ServiceError(Exception):
    """Base exception for messaging and notification operations."""

    status_code = 500

    def __init__(self, message: str, user_id: str | None = None):
        super().__init__(message)
        self.message = message
        self.user_id = user_id


class InvalidPayloadError(ServiceError):
    """Malformed input (empty content, missing field)."""

    status_code = 400


class NotFoundError(ServiceError):
    """Referenced message, notification or user does not exist."""

    status_code = 404


class ForbiddenError(ServiceError):
    """Caller is not allowed to touch the referenced resource."""

    status_code = 403

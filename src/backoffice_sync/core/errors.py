"""Error taxonomy shared by the gateway, the draft store and the reorder controller."""

from __future__ import annotations

from typing import Any, Optional


class SyncError(Exception):
    """Base class for every error raised by backoffice_sync."""


class ValidationError(SyncError):
    """Local validation failure for a single item or create form.

    Raised before any gateway call is made. ``item_id`` is None for items that
    do not exist yet (the create form).
    """

    def __init__(self, message: str, *, item_id: Any = None, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.item_id = item_id
        self.field = field


class GatewayError(SyncError):
    """A persistence operation failed."""

    def __init__(self, message: str, *, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status = status


class NetworkError(GatewayError):
    """The storage backend could not be reached."""


class ServerError(GatewayError):
    """The storage backend accepted the request but failed to complete it."""


class RejectedError(GatewayError):
    """The storage backend refused the payload (HTTP 4xx)."""


class NotFoundError(GatewayError):
    """The targeted item does not exist in the storage backend."""


__all__ = [
    "SyncError",
    "ValidationError",
    "GatewayError",
    "NetworkError",
    "ServerError",
    "RejectedError",
    "NotFoundError",
]

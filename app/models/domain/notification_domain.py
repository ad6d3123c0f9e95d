from datetime import datetime
from enum import StrEnum
from typing import Any

from app.models.domain.base import WireModel


class NotificationType(StrEnum):
    MESSAGE = "MESSAGE"
    ORDER = "ORDER"
    REQUEST_STATUS = "REQUEST_STATUS"
    PRODUCT_UPDATE = "PRODUCT_UPDATE"
    SYSTEM = "SYSTEM"


class NotificationDraft(WireModel):
    """Content of a notification before it is addressed to a user."""

    type: NotificationType
    title: str
    message: str
    link: str | None = None
    metadata: dict[str, Any] | None = None


class Notification(WireModel):
    """Persisted notification row."""

    id: str
    user_id: str
    type: NotificationType
    title: str
    message: str
    link: str | None = None
    metadata: dict[str, Any] | None = None
    read: bool = False
    created_at: datetime


class NotificationPage(WireModel):
    notifications: list[Notification]
    unread_count: int
    page: int
    limit: int
    total: int
    total_pages: int
    has_more: bool

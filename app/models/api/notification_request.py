# app/models/api/notification_request.py
"""Inbound payloads for notification socket events."""

from pydantic import Field

from app.models.domain.base import WireModel


class NotificationPagePayload(WireModel):
    page: int | None = 1
    limit: int | None = None


class NotificationIdPayload(WireModel):
    notification_id: str = Field(..., min_length=1)

"""
Notification service.

Every read and write is scoped to the owning user. Creating a notification
always attempts a live push to the owner's connections; offline users pick
it up from the next listing or unread-count poll.
"""

import asyncio

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.models.domain.notification_domain import (
    Notification,
    NotificationDraft,
    NotificationPage,
    NotificationType,
)
from app.realtime.events import ServerEvent
from app.realtime.publisher import realtime_publisher
from app.repositories.notification_repository import NotificationRepository
from app.services.errors import InvalidPayloadError, NotFoundError
from app.services.pagination import resolve_page, total_pages

logger = get_logger(__name__)


async def create_notification(user_id: str, draft: NotificationDraft) -> Notification:
    """Store one notification and push it if the owner is online."""
    notification = await NotificationRepository.create(user_id, draft)
    await realtime_publisher.push_to_user(
        user_id, ServerEvent.NOTIFICATION, notification.to_wire()
    )
    return notification


async def create_bulk_notifications(
    user_ids: list[str], draft: NotificationDraft
) -> list[Notification]:
    """Fan one draft out to many users in a single write, then push to those online."""
    targets = list(dict.fromkeys(uid for uid in user_ids if uid))
    if not targets:
        return []

    notifications = await NotificationRepository.create_many(targets, draft)

    await asyncio.gather(
        *(
            realtime_publisher.push_to_user(n.user_id, ServerEvent.NOTIFICATION, n.to_wire())
            for n in notifications
        )
    )
    return notifications


async def get_user_notifications(
    user_id: str, page: int | None = 1, limit: int | None = None
) -> NotificationPage:
    page, limit, offset = resolve_page(page, limit, settings.NOTIFICATIONS_DEFAULT_LIMIT)

    notifications, unread_count, total = await asyncio.gather(
        NotificationRepository.list_page(user_id, offset=offset, limit=limit),
        NotificationRepository.count(user_id, unread_only=True),
        NotificationRepository.count(user_id),
    )

    return NotificationPage(
        notifications=notifications,
        unread_count=unread_count,
        page=page,
        limit=limit,
        total=total,
        total_pages=total_pages(total, limit),
        has_more=len(notifications) == limit,
    )


async def get_notifications_by_type(
    user_id: str, notification_type: str, page: int | None = 1, limit: int | None = None
) -> NotificationPage:
    try:
        kind = NotificationType(notification_type.upper())
    except ValueError as e:
        raise InvalidPayloadError(f"Unknown notification type: {notification_type}") from e

    page, limit, offset = resolve_page(page, limit, settings.NOTIFICATIONS_DEFAULT_LIMIT)

    notifications, unread_count, total = await asyncio.gather(
        NotificationRepository.list_by_type(user_id, str(kind), offset=offset, limit=limit),
        NotificationRepository.count(user_id, unread_only=True, notification_type=str(kind)),
        NotificationRepository.count(user_id, notification_type=str(kind)),
    )

    return NotificationPage(
        notifications=notifications,
        unread_count=unread_count,
        page=page,
        limit=limit,
        total=total,
        total_pages=total_pages(total, limit),
        has_more=len(notifications) == limit,
    )


async def get_unread_notifications(user_id: str) -> list[Notification]:
    return await NotificationRepository.list_unread(user_id)


async def get_unread_count(user_id: str) -> int:
    return await NotificationRepository.count(user_id, unread_only=True)


async def get_notification_by_id(notification_id: str, user_id: str) -> Notification:
    notification = await NotificationRepository.get(notification_id, user_id)
    if notification is None:
        raise NotFoundError("Notification not found", user_id=user_id)
    return notification


async def mark_notification_read(notification_id: str, user_id: str) -> Notification:
    if not notification_id:
        raise InvalidPayloadError("notificationId is required", user_id=user_id)

    notification = await NotificationRepository.mark_read(notification_id, user_id)
    if notification is None:
        raise NotFoundError("Notification not found", user_id=user_id)
    return notification


async def mark_all_read(user_id: str) -> int:
    updated = await NotificationRepository.mark_all_read(user_id)
    logger.info("All notifications marked read", user_id=user_id, updated=updated)
    return updated


async def delete_notification(notification_id: str, user_id: str) -> None:
    if not notification_id:
        raise InvalidPayloadError("notificationId is required", user_id=user_id)

    deleted = await NotificationRepository.delete(notification_id, user_id)
    if not deleted:
        raise NotFoundError("Notification not found", user_id=user_id)


async def delete_all_read(user_id: str) -> int:
    deleted = await NotificationRepository.delete_read(user_id)
    logger.info("Read notifications deleted", user_id=user_id, deleted=deleted)
    return deleted


async def delete_all_notifications(user_id: str) -> int:
    deleted = await NotificationRepository.delete_all(user_id)
    logger.info("All notifications deleted", user_id=user_id, deleted=deleted)
    return deleted

"""
Notification inbox over Socket.IO.

Mutations that change the unread total are followed by an `unread_count`
event so badges stay in step without another round trip.
"""

from app.models.api.notification_request import NotificationIdPayload, NotificationPagePayload
from app.realtime.channels.base import Channel, socket_handler
from app.realtime.context import ConnectionContext
from app.realtime.events import ClientEvent, ServerEvent
from app.services import notification_service


class NotificationChannel(Channel):
    async def _send_unread_count(self, ctx: ConnectionContext, count: int | None = None):
        if count is None:
            count = await notification_service.get_unread_count(ctx.user_id)
        await self.reply(ctx, ServerEvent.UNREAD_COUNT, {"count": count})

    @socket_handler(ClientEvent.GET_NOTIFICATIONS)
    async def get_notifications(self, ctx: ConnectionContext, data: dict):
        payload = NotificationPagePayload.model_validate(data)
        page = await notification_service.get_user_notifications(
            ctx.user_id, page=payload.page, limit=payload.limit
        )
        wire = page.to_wire()
        await self.reply(
            ctx,
            ServerEvent.NOTIFICATIONS_LIST,
            {
                "notifications": wire["notifications"],
                "unreadCount": wire["unreadCount"],
                "page": wire["page"],
                "hasMore": wire["hasMore"],
            },
        )

    @socket_handler(ClientEvent.GET_UNREAD_NOTIFICATIONS)
    async def get_unread_notifications(self, ctx: ConnectionContext, data: dict):
        notifications = await notification_service.get_unread_notifications(ctx.user_id)
        await self.reply(
            ctx, ServerEvent.UNREAD_NOTIFICATIONS, [n.to_wire() for n in notifications]
        )

    @socket_handler(ClientEvent.GET_UNREAD_COUNT)
    async def get_unread_count(self, ctx: ConnectionContext, data: dict):
        await self._send_unread_count(ctx)

    @socket_handler(ClientEvent.MARK_NOTIFICATION_READ)
    async def mark_notification_read(self, ctx: ConnectionContext, data: dict):
        payload = NotificationIdPayload.model_validate(data)
        await notification_service.mark_notification_read(payload.notification_id, ctx.user_id)
        await self.reply(
            ctx, ServerEvent.NOTIFICATION_READ, {"notificationId": payload.notification_id}
        )
        await self._send_unread_count(ctx)

    @socket_handler(ClientEvent.MARK_ALL_READ)
    async def mark_all_read(self, ctx: ConnectionContext, data: dict):
        await notification_service.mark_all_read(ctx.user_id)
        await self.reply(ctx, ServerEvent.ALL_NOTIFICATIONS_READ)
        await self._send_unread_count(ctx, 0)

    @socket_handler(ClientEvent.DELETE_NOTIFICATION)
    async def delete_notification(self, ctx: ConnectionContext, data: dict):
        payload = NotificationIdPayload.model_validate(data)
        await notification_service.delete_notification(payload.notification_id, ctx.user_id)
        await self.reply(
            ctx, ServerEvent.NOTIFICATION_DELETED, {"notificationId": payload.notification_id}
        )
        await self._send_unread_count(ctx)

    @socket_handler(ClientEvent.DELETE_ALL_READ)
    async def delete_all_read(self, ctx: ConnectionContext, data: dict):
        deleted = await notification_service.delete_all_read(ctx.user_id)
        await self.reply(ctx, ServerEvent.READ_NOTIFICATIONS_DELETED, {"count": deleted})

    @socket_handler(ClientEvent.DELETE_ALL_NOTIFICATIONS)
    async def delete_all_notifications(self, ctx: ConnectionContext, data: dict):
        deleted = await notification_service.delete_all_notifications(ctx.user_id)
        await self.reply(ctx, ServerEvent.ALL_NOTIFICATIONS_DELETED, {"count": deleted})
        await self._send_unread_count(ctx, 0)

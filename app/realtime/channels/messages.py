"""
Direct messaging over Socket.IO.

Each handler acknowledges to the calling connection. Pushes to the other
party (new_message, messages_read_by, typing) go through the publisher and
are dropped when that user is offline.
"""

from app.models.api.message_request import (
    ConversationPayload,
    GetMessagesPayload,
    MarkAsReadPayload,
    SendMessageRequest,
    TypingPayload,
)
from app.realtime.channels.base import Channel, socket_handler
from app.realtime.context import ConnectionContext
from app.realtime.events import ClientEvent, ServerEvent
from app.services import message_service


class MessageChannel(Channel):
    @socket_handler(ClientEvent.SEND_MESSAGE)
    async def send_message(self, ctx: ConnectionContext, data: dict):
        payload = SendMessageRequest.model_validate(data)
        message = await message_service.send_message(
            ctx.user_id, payload.receiver_id, payload.content
        )
        await self.reply(ctx, ServerEvent.MESSAGE_SENT, message.to_wire())

    @socket_handler(ClientEvent.GET_MESSAGES)
    async def get_messages(self, ctx: ConnectionContext, data: dict):
        payload = GetMessagesPayload.model_validate(data)
        history = await message_service.get_message_history(
            ctx.user_id, payload.with_user_id, page=payload.page, limit=payload.limit
        )
        wire = history.to_wire()
        await self.reply(
            ctx,
            ServerEvent.MESSAGES_HISTORY,
            {"messages": wire["messages"], "page": wire["page"], "hasMore": wire["hasMore"]},
        )

    @socket_handler(ClientEvent.GET_CONVERSATIONS)
    async def get_conversations(self, ctx: ConnectionContext, data: dict):
        conversations = await message_service.get_conversations(ctx.user_id)
        await self.reply(
            ctx, ServerEvent.CONVERSATIONS_LIST, [c.to_wire() for c in conversations]
        )

    @socket_handler(ClientEvent.MARK_AS_READ)
    async def mark_as_read(self, ctx: ConnectionContext, data: dict):
        payload = MarkAsReadPayload.model_validate(data)
        await message_service.mark_message_read(payload.message_id, ctx.user_id)
        await self.reply(ctx, ServerEvent.MESSAGE_READ, {"messageId": payload.message_id})

    @socket_handler(ClientEvent.MARK_CONVERSATION_READ)
    async def mark_conversation_read(self, ctx: ConnectionContext, data: dict):
        payload = ConversationPayload.model_validate(data)
        await message_service.mark_conversation_read(ctx.user_id, payload.with_user_id)
        await self.reply(ctx, ServerEvent.CONVERSATION_READ, {"withUserId": payload.with_user_id})

    @socket_handler(ClientEvent.TYPING_START)
    async def typing_start(self, ctx: ConnectionContext, data: dict):
        payload = TypingPayload.model_validate(data)
        await self.publisher.push_to_user(
            payload.receiver_id, ServerEvent.USER_TYPING, {"userId": ctx.user_id}
        )

    @socket_handler(ClientEvent.TYPING_STOP)
    async def typing_stop(self, ctx: ConnectionContext, data: dict):
        payload = TypingPayload.model_validate(data)
        await self.publisher.push_to_user(
            payload.receiver_id, ServerEvent.USER_STOPPED_TYPING, {"userId": ctx.user_id}
        )

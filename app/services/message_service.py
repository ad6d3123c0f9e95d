"""
Direct messaging service.

Shared by the realtime channel and the REST routes so both paths read and
write the same history. Live pushes go through the realtime publisher and are
dropped when the target has no open connection.
"""

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.models.domain.message_domain import Conversation, Message, MessageHistory
from app.realtime.events import ServerEvent
from app.realtime.publisher import realtime_publisher
from app.repositories.message_repository import MessageRepository
from app.repositories.user_repository import UserRepository
from app.services.errors import ForbiddenError, InvalidPayloadError, NotFoundError
from app.services.notification_triggers import notify_new_message
from app.services.pagination import resolve_page

logger = get_logger(__name__)


async def send_message(sender_id: str, receiver_id: str, content: str) -> Message:
    """
    Persist a message, write the receiver's MESSAGE notification and push both
    live if the receiver is connected.

    Raises:
        InvalidPayloadError: empty content or missing receiver id
        NotFoundError: receiver does not exist
    """
    if not receiver_id:
        raise InvalidPayloadError("receiverId is required", user_id=sender_id)
    if not content or not content.strip():
        raise InvalidPayloadError("Message content must not be empty", user_id=sender_id)

    receiver = await UserRepository.get_summary(receiver_id)
    if receiver is None:
        raise NotFoundError("Receiver not found", user_id=sender_id)

    message = await MessageRepository.create_message(sender_id, receiver_id, content)

    await realtime_publisher.push_to_user(receiver_id, ServerEvent.NEW_MESSAGE, message.to_wire())

    # Independent write: a failure here leaves the message without its notification
    try:
        await notify_new_message(message)
    except Exception as e:
        logger.error(
            "Failed to create message notification",
            message_id=message.id,
            receiver_id=receiver_id,
            error=str(e),
        )

    return message


async def get_message_history(
    user_id: str, other_user_id: str, page: int | None = 1, limit: int | None = None
) -> MessageHistory:
    """
    Page through a conversation.

    Page 1 holds the most recent `limit` messages; each page is returned
    oldest-to-newest for display.
    """
    if not other_user_id:
        raise InvalidPayloadError("withUserId is required", user_id=user_id)

    page, limit, offset = resolve_page(page, limit, settings.MESSAGE_HISTORY_DEFAULT_LIMIT)

    newest_first = await MessageRepository.list_between(
        user_id, other_user_id, offset=offset, limit=limit
    )

    return MessageHistory(
        messages=list(reversed(newest_first)),
        page=page,
        limit=limit,
        has_more=len(newest_first) == limit,
    )


async def get_conversations(user_id: str) -> list[Conversation]:
    """One entry per counterpart: latest message plus unread count, newest first."""
    latest_messages = await MessageRepository.latest_per_counterpart(user_id)
    unread_by_sender = await MessageRepository.unread_counts_by_sender(user_id)

    conversations = []
    for message in latest_messages:
        counterpart_id = message.counterpart_of(user_id)
        conversations.append(
            Conversation(
                user=message.receiver if message.sender_id == user_id else message.sender,
                last_message=message,
                unread_count=unread_by_sender.get(counterpart_id, 0),
            )
        )

    return conversations


async def get_unread_messages_count(user_id: str) -> int:
    return await MessageRepository.count_unread(user_id)


async def mark_message_read(message_id: str, user_id: str) -> Message:
    """Mark one message read. Only its receiver may do so; repeating is a no-op."""
    if not message_id:
        raise InvalidPayloadError("messageId is required", user_id=user_id)

    message = await MessageRepository.get_message(message_id)
    if message is None:
        raise NotFoundError("Message not found", user_id=user_id)

    if message.receiver_id != user_id:
        raise ForbiddenError("Only the receiver can mark a message as read", user_id=user_id)

    if not message.read:
        await MessageRepository.mark_read(message_id)

    return message.model_copy(update={"read": True})


async def mark_conversation_read(user_id: str, other_user_id: str) -> int:
    """
    Mark everything other_user_id sent to user_id as read and tell the other
    party, if connected, that their messages were read.
    """
    if not other_user_id:
        raise InvalidPayloadError("withUserId is required", user_id=user_id)

    updated = await MessageRepository.mark_conversation_read(user_id, other_user_id)

    await realtime_publisher.push_to_user(
        other_user_id, ServerEvent.MESSAGES_READ_BY, {"userId": user_id}
    )

    logger.info(
        "Conversation marked read", user_id=user_id, other_user_id=other_user_id, updated=updated
    )
    return updated


async def delete_message(message_id: str, user_id: str) -> None:
    """Hard-delete a message. Either participant may delete it."""
    message = await MessageRepository.get_message(message_id)
    if message is None:
        raise NotFoundError("Message not found", user_id=user_id)

    if user_id not in (message.sender_id, message.receiver_id):
        raise ForbiddenError("Not allowed to delete this message", user_id=user_id)

    await MessageRepository.delete_message(message_id)
    logger.info("Message deleted", message_id=message_id, user_id=user_id)


async def delete_conversation(user_id: str, other_user_id: str) -> int:
    deleted = await MessageRepository.delete_conversation(user_id, other_user_id)
    logger.info(
        "Conversation deleted", user_id=user_id, other_user_id=other_user_id, deleted=deleted
    )
    return deleted

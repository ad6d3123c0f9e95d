# app/models/api/message_request.py
"""Inbound payloads for messaging, shared by REST bodies and socket events."""

from pydantic import Field

from app.models.domain.base import WireModel


class SendMessageRequest(WireModel):
    """Body of POST /api/messages and payload of the `send_message` event."""

    receiver_id: str = Field(..., min_length=1)
    content: str


class GetMessagesPayload(WireModel):
    with_user_id: str = Field(..., min_length=1)
    page: int | None = 1
    limit: int | None = None


class ConversationPayload(WireModel):
    """Used by `mark_conversation_read`."""

    with_user_id: str = Field(..., min_length=1)


class MarkAsReadPayload(WireModel):
    message_id: str = Field(..., min_length=1)


class TypingPayload(WireModel):
    receiver_id: str = Field(..., min_length=1)

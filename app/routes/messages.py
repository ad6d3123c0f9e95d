"""
Direct message REST routes.

Same service layer as the realtime channel, so a message sent here is
persisted, notified and pushed live exactly like one sent over the socket.
"""

from fastapi import APIRouter, Depends, Query, status

from app.auth.verify import auth_dependency
from app.models.api.message_request import SendMessageRequest
from app.models.api.responses import http_error, success_response
from app.models.domain.user_domain import AuthenticatedUser
from app.services import message_service
from app.services.errors import ServiceError

router = APIRouter(prefix="/api/messages", tags=["messages"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def send_message(
    body: SendMessageRequest, user: AuthenticatedUser = Depends(auth_dependency)
):
    try:
        message = await message_service.send_message(user.user_id, body.receiver_id, body.content)
    except ServiceError as e:
        raise http_error(e) from e

    return success_response(message.to_wire(), "Message sent")


@router.get("/conversations")
async def list_conversations(user: AuthenticatedUser = Depends(auth_dependency)):
    conversations = await message_service.get_conversations(user.user_id)
    return success_response([c.to_wire() for c in conversations])


@router.get("/unread-count")
async def unread_count(user: AuthenticatedUser = Depends(auth_dependency)):
    count = await message_service.get_unread_messages_count(user.user_id)
    return success_response({"count": count})


@router.get("/{other_user_id}")
async def get_history(
    other_user_id: str,
    page: int = Query(1),
    limit: int | None = Query(None),
    user: AuthenticatedUser = Depends(auth_dependency),
):
    """Page 1 is the most recent messages, each page ordered oldest first."""
    try:
        history = await message_service.get_message_history(
            user.user_id, other_user_id, page=page, limit=limit
        )
    except ServiceError as e:
        raise http_error(e) from e

    return success_response(history.to_wire())


@router.put("/{message_id}/read")
async def mark_read(message_id: str, user: AuthenticatedUser = Depends(auth_dependency)):
    try:
        message = await message_service.mark_message_read(message_id, user.user_id)
    except ServiceError as e:
        raise http_error(e) from e

    return success_response(message.to_wire(), "Message marked as read")


@router.put("/{other_user_id}/read-all")
async def mark_conversation_read(
    other_user_id: str, user: AuthenticatedUser = Depends(auth_dependency)
):
    try:
        updated = await message_service.mark_conversation_read(user.user_id, other_user_id)
    except ServiceError as e:
        raise http_error(e) from e

    return success_response({"count": updated}, "Conversation marked as read")


@router.delete("/conversation/{other_user_id}")
async def delete_conversation(
    other_user_id: str, user: AuthenticatedUser = Depends(auth_dependency)
):
    deleted = await message_service.delete_conversation(user.user_id, other_user_id)
    return success_response({"count": deleted}, "Conversation deleted")


@router.delete("/{message_id}")
async def delete_message(message_id: str, user: AuthenticatedUser = Depends(auth_dependency)):
    try:
        await message_service.delete_message(message_id, user.user_id)
    except ServiceError as e:
        raise http_error(e) from e

    return success_response(message="Message deleted")

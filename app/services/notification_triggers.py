"""
Notification producers for the rest of the marketplace.

Orders, owner requests and messaging call these instead of building
notification rows themselves, so titles, links and metadata stay uniform.
"""

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.models.domain.message_domain import Message
from app.models.domain.notification_domain import Notification, NotificationDraft, NotificationType
from app.repositories.user_repository import UserRepository
from app.services import notification_service

logger = get_logger(__name__)


def _preview(content: str) -> str:
    limit = settings.NOTIFICATION_PREVIEW_LENGTH
    return content[:limit] + ("..." if len(content) > limit else "")


async def notify_new_message(message: Message) -> Notification:
    sender_name = message.sender.username if message.sender else "Someone"
    draft = NotificationDraft(
        type=NotificationType.MESSAGE,
        title="New message",
        message=f"{sender_name}: {_preview(message.content)}",
        link=f"/messages/{message.sender_id}",
        metadata={"messageId": message.id, "senderId": message.sender_id},
    )
    return await notification_service.create_notification(message.receiver_id, draft)


async def notify_order_paid(
    user_id: str, order_id: str, order_number: str, total_amount: float
) -> Notification:
    draft = NotificationDraft(
        type=NotificationType.ORDER,
        title="The order has been paid",
        message=f"Your order #{order_number} was paid successfully. Total amount: ${total_amount:.2f}",
        link=f"/orders/{order_id}",
        metadata={"orderId": order_id},
    )
    return await notification_service.create_notification(user_id, draft)


async def notify_owner_new_order(
    owner_id: str, order_id: str, order_number: str, owner_total: float
) -> Notification:
    draft = NotificationDraft(
        type=NotificationType.ORDER,
        title="New order",
        message=f"You received a new order for ${owner_total:.2f}. Order #{order_number}",
        link=f"/dashboard/orders/{order_id}",
        metadata={"orderId": order_id},
    )
    return await notification_service.create_notification(owner_id, draft)


async def notify_order_cancelled(
    user_id: str, order_id: str, order_number: str, refund_id: str | None = None
) -> Notification:
    metadata = {"orderId": order_id}
    if refund_id:
        metadata["refundId"] = refund_id

    draft = NotificationDraft(
        type=NotificationType.ORDER,
        title="Order cancelled",
        message=f"Your order #{order_number} was cancelled. The refund takes 10-15 days.",
        link=f"/orders/{order_id}",
        metadata=metadata,
    )
    return await notification_service.create_notification(user_id, draft)


async def notify_owner_request_submitted(request_id: str, username: str) -> list[Notification]:
    """Tell every admin about a new owner request."""
    admin_ids = await UserRepository.list_ids_by_role("ADMIN")
    if not admin_ids:
        logger.warning("No admins to notify about owner request", request_id=request_id)
        return []

    draft = NotificationDraft(
        type=NotificationType.REQUEST_STATUS,
        title="New Owner request",
        message=f"User {username} has submitted a request to become an owner",
        link=f"/admin/requests/{request_id}",
        metadata={"requestId": request_id},
    )
    return await notification_service.create_bulk_notifications(admin_ids, draft)


async def notify_owner_request_reviewed(
    user_id: str, request_id: str, status: str, admin_comment: str | None = None
) -> Notification:
    approved = status.upper() == "APPROVED"

    if approved:
        title = "Request approved!"
        message = (
            "Congratulations! Your request to become an owner has been approved. "
            "You can now create and sell products."
        )
    else:
        title = "Request rejected"
        message = f"Unfortunately, your request was rejected. {admin_comment or 'No reason provided.'}"

    draft = NotificationDraft(
        type=NotificationType.REQUEST_STATUS,
        title=title,
        message=message,
        link="/dashboard/products" if approved else "/owner-request",
        metadata={"requestId": request_id, "status": status.upper()},
    )
    return await notification_service.create_notification(user_id, draft)

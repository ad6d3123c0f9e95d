"""
Notification inbox REST routes.

Every query is scoped to the authenticated user; another user's notification
is reported as not found.
"""

from fastapi import APIRouter, Depends, Query

from app.auth.verify import auth_dependency
from app.models.api.responses import http_error, success_response
from app.models.domain.notification_domain import NotificationPage
from app.models.domain.user_domain import AuthenticatedUser
from app.services import notification_service
from app.services.errors import ServiceError

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


def _page_body(page: NotificationPage) -> dict:
    wire = page.to_wire()
    return {
        "notifications": wire["notifications"],
        "unreadCount": wire["unreadCount"],
        "pagination": {
            "page": wire["page"],
            "limit": wire["limit"],
            "total": wire["total"],
            "totalPages": wire["totalPages"],
            "hasMore": wire["hasMore"],
        },
    }


@router.get("")
async def list_notifications(
    page: int = Query(1),
    limit: int | None = Query(None),
    user: AuthenticatedUser = Depends(auth_dependency),
):
    try:
        result = await notification_service.get_user_notifications(
            user.user_id, page=page, limit=limit
        )
    except ServiceError as e:
        raise http_error(e) from e

    return success_response(_page_body(result))


@router.get("/unread")
async def list_unread(user: AuthenticatedUser = Depends(auth_dependency)):
    notifications = await notification_service.get_unread_notifications(user.user_id)
    return success_response([n.to_wire() for n in notifications])


@router.get("/unread-count")
async def unread_count(user: AuthenticatedUser = Depends(auth_dependency)):
    count = await notification_service.get_unread_count(user.user_id)
    return success_response({"count": count})


@router.get("/type/{notification_type}")
async def list_by_type(
    notification_type: str,
    page: int = Query(1),
    limit: int | None = Query(None),
    user: AuthenticatedUser = Depends(auth_dependency),
):
    try:
        result = await notification_service.get_notifications_by_type(
            user.user_id, notification_type, page=page, limit=limit
        )
    except ServiceError as e:
        raise http_error(e) from e

    return success_response(_page_body(result))


@router.put("/read-all")
async def mark_all_read(user: AuthenticatedUser = Depends(auth_dependency)):
    updated = await notification_service.mark_all_read(user.user_id)
    return success_response({"count": updated}, "All notifications marked as read")


@router.delete("/read/all")
async def delete_all_read(user: AuthenticatedUser = Depends(auth_dependency)):
    deleted = await notification_service.delete_all_read(user.user_id)
    return success_response({"count": deleted}, "Read notifications deleted")


@router.delete("/all")
async def delete_all(user: AuthenticatedUser = Depends(auth_dependency)):
    deleted = await notification_service.delete_all_notifications(user.user_id)
    return success_response({"count": deleted}, "All notifications deleted")


@router.get("/{notification_id}")
async def get_notification(
    notification_id: str, user: AuthenticatedUser = Depends(auth_dependency)
):
    try:
        notification = await notification_service.get_notification_by_id(
            notification_id, user.user_id
        )
    except ServiceError as e:
        raise http_error(e) from e

    return success_response(notification.to_wire())


@router.put("/{notification_id}/read")
async def mark_read(notification_id: str, user: AuthenticatedUser = Depends(auth_dependency)):
    try:
        notification = await notification_service.mark_notification_read(
            notification_id, user.user_id
        )
    except ServiceError as e:
        raise http_error(e) from e

    return success_response(notification.to_wire(), "Notification marked as read")


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: str, user: AuthenticatedUser = Depends(auth_dependency)
):
    try:
        await notification_service.delete_notification(notification_id, user.user_id)
    except ServiceError as e:
        raise http_error(e) from e

    return success_response(message="Notification deleted")

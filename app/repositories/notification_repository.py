"""
Persistence for user notifications.

Every query carries the owner's user_id in its predicate, so a caller can
never read or mutate another user's rows: a foreign id simply matches nothing.
"""

from psycopg.types.json import Jsonb

from app.db.helpers import execute_query, fetch_all, fetch_one, fetch_val, with_db_retry
from app.infrastructure.observability.logging import get_logger
from app.models.domain.notification_domain import Notification, NotificationDraft

logger = get_logger(__name__)


class NotificationRepository:
    """Queries over the notifications table, always scoped to one owner."""

    SELECT_COLUMNS = "id, user_id, type, title, message, link, metadata, read, created_at"

    @classmethod
    def _row_to_notification(cls, row: dict | None) -> Notification | None:
        if not row:
            return None

        return Notification(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            type=row["type"],
            title=row["title"],
            message=row["message"],
            link=row.get("link"),
            metadata=row.get("metadata"),
            read=bool(row["read"]),
            created_at=row["created_at"],
        )

    @staticmethod
    def _jsonb(metadata: dict | None) -> Jsonb | None:
        return Jsonb(metadata) if metadata is not None else None

    @classmethod
    async def create(cls, user_id: str, draft: NotificationDraft) -> Notification:
        query = f"""
            INSERT INTO notifications (user_id, type, title, message, link, metadata, read)
            VALUES (%s, %s, %s, %s, %s, %s, false)
            RETURNING {cls.SELECT_COLUMNS}
        """

        row = await fetch_one(
            query,
            (
                user_id,
                str(draft.type),
                draft.title,
                draft.message,
                draft.link,
                cls._jsonb(draft.metadata),
            ),
        )
        notification = cls._row_to_notification(row)
        if notification is None:
            raise RuntimeError("Notification insert returned no row")

        logger.info(
            "Notification stored",
            notification_id=notification.id,
            user_id=user_id,
            type=str(draft.type),
        )
        return notification

    @classmethod
    async def create_many(cls, user_ids: list[str], draft: NotificationDraft) -> list[Notification]:
        """Write one row per target in a single statement."""
        if not user_ids:
            return []

        query = f"""
            INSERT INTO notifications (user_id, type, title, message, link, metadata, read)
            SELECT target.user_id, %s, %s, %s, %s, %s, false
            FROM unnest(%s::text[]) AS target(user_id)
            RETURNING {cls.SELECT_COLUMNS}
        """

        rows = await fetch_all(
            query,
            (
                str(draft.type),
                draft.title,
                draft.message,
                draft.link,
                cls._jsonb(draft.metadata),
                list(user_ids),
            ),
        )

        logger.info("Bulk notifications stored", count=len(rows), type=str(draft.type))
        return [cls._row_to_notification(row) for row in rows]

    @classmethod
    @with_db_retry(max_retries=2, base_delay=0.1)
    async def list_page(cls, user_id: str, *, offset: int, limit: int) -> list[Notification]:
        query = f"""
            SELECT {cls.SELECT_COLUMNS}
            FROM notifications
            WHERE user_id = %s
            ORDER BY created_at DESC, id DESC
            LIMIT %s OFFSET %s
        """
        rows = await fetch_all(query, (user_id, limit, offset))
        return [cls._row_to_notification(row) for row in rows]

    @classmethod
    @with_db_retry(max_retries=2, base_delay=0.1)
    async def list_unread(cls, user_id: str) -> list[Notification]:
        query = f"""
            SELECT {cls.SELECT_COLUMNS}
            FROM notifications
            WHERE user_id = %s AND read = false
            ORDER BY created_at DESC, id DESC
        """
        rows = await fetch_all(query, (user_id,))
        return [cls._row_to_notification(row) for row in rows]

    @classmethod
    @with_db_retry(max_retries=2, base_delay=0.1)
    async def list_by_type(
        cls, user_id: str, notification_type: str, *, offset: int, limit: int
    ) -> list[Notification]:
        query = f"""
            SELECT {cls.SELECT_COLUMNS}
            FROM notifications
            WHERE user_id = %s AND type = %s
            ORDER BY created_at DESC, id DESC
            LIMIT %s OFFSET %s
        """
        rows = await fetch_all(query, (user_id, notification_type, limit, offset))
        return [cls._row_to_notification(row) for row in rows]

    @classmethod
    @with_db_retry(max_retries=2, base_delay=0.1)
    async def get(cls, notification_id: str, user_id: str) -> Notification | None:
        query = f"SELECT {cls.SELECT_COLUMNS} FROM notifications WHERE id = %s AND user_id = %s"
        row = await fetch_one(query, (notification_id, user_id))
        return cls._row_to_notification(row)

    @classmethod
    @with_db_retry(max_retries=2, base_delay=0.1)
    async def count(
        cls, user_id: str, *, unread_only: bool = False, notification_type: str | None = None
    ) -> int:
        query = "SELECT COUNT(*) FROM notifications WHERE user_id = %s"
        params: list = [user_id]

        if unread_only:
            query += " AND read = false"
        if notification_type:
            query += " AND type = %s"
            params.append(notification_type)

        return int(await fetch_val(query, tuple(params)) or 0)

    @classmethod
    async def mark_read(cls, notification_id: str, user_id: str) -> Notification | None:
        query = f"""
            UPDATE notifications
            SET read = true
            WHERE id = %s AND user_id = %s
            RETURNING {cls.SELECT_COLUMNS}
        """
        row = await fetch_one(query, (notification_id, user_id))
        return cls._row_to_notification(row)

    @classmethod
    async def mark_all_read(cls, user_id: str) -> int:
        query = "UPDATE notifications SET read = true WHERE user_id = %s AND read = false"
        return await execute_query(query, (user_id,))

    @classmethod
    async def delete(cls, notification_id: str, user_id: str) -> int:
        query = "DELETE FROM notifications WHERE id = %s AND user_id = %s"
        return await execute_query(query, (notification_id, user_id))

    @classmethod
    async def delete_read(cls, user_id: str) -> int:
        query = "DELETE FROM notifications WHERE user_id = %s AND read = true"
        return await execute_query(query, (user_id,))

    @classmethod
    async def delete_all(cls, user_id: str) -> int:
        return await execute_query("DELETE FROM notifications WHERE user_id = %s", (user_id,))

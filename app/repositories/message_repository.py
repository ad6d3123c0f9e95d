"""
Persistence for direct messages.

Every read joins the sender and receiver profiles so callers can emit a
complete record without a second lookup.
"""

from app.db.helpers import execute_query, fetch_all, fetch_one, fetch_val, with_db_retry
from app.infrastructure.observability.logging import get_logger
from app.models.domain.message_domain import Message
from app.models.domain.user_domain import UserSummary

logger = get_logger(__name__)


class MessageRepository:
    """Queries over the messages table."""

    SELECT_COLUMNS = """
        m.id, m.sender_id, m.receiver_id, m.content, m.read, m.created_at,
        s.username AS sender_username, s.avatar AS sender_avatar,
        r.username AS receiver_username, r.avatar AS receiver_avatar
    """

    PROFILE_JOINS = """
        JOIN users s ON s.id = m.sender_id
        JOIN users r ON r.id = m.receiver_id
    """

    @classmethod
    def _row_to_message(cls, row: dict | None) -> Message | None:
        if not row:
            return None

        return Message(
            id=str(row["id"]),
            sender_id=str(row["sender_id"]),
            receiver_id=str(row["receiver_id"]),
            content=row["content"],
            read=bool(row["read"]),
            created_at=row["created_at"],
            sender=UserSummary(
                id=str(row["sender_id"]),
                username=row["sender_username"],
                avatar=row.get("sender_avatar"),
            ),
            receiver=UserSummary(
                id=str(row["receiver_id"]),
                username=row["receiver_username"],
                avatar=row.get("receiver_avatar"),
            ),
        )

    @classmethod
    async def create_message(cls, sender_id: str, receiver_id: str, content: str) -> Message:
        """Insert an unread message and return it with both profiles."""
        query = f"""
            WITH m AS (
                INSERT INTO messages (sender_id, receiver_id, content, read)
                VALUES (%s, %s, %s, false)
                RETURNING id, sender_id, receiver_id, content, read, created_at
            )
            SELECT {cls.SELECT_COLUMNS}
            FROM m
            {cls.PROFILE_JOINS}
        """

        row = await fetch_one(query, (sender_id, receiver_id, content))
        message = cls._row_to_message(row)
        if message is None:
            raise RuntimeError("Message insert returned no row")

        logger.info(
            "Message stored", message_id=message.id, sender_id=sender_id, receiver_id=receiver_id
        )
        return message

    @classmethod
    @with_db_retry(max_retries=2, base_delay=0.1)
    async def get_message(cls, message_id: str) -> Message | None:
        query = f"SELECT {cls.SELECT_COLUMNS} FROM messages m {cls.PROFILE_JOINS} WHERE m.id = %s"
        row = await fetch_one(query, (message_id,))
        return cls._row_to_message(row)

    @classmethod
    @with_db_retry(max_retries=2, base_delay=0.1)
    async def list_between(
        cls, user_id: str, other_user_id: str, *, offset: int, limit: int
    ) -> list[Message]:
        """Messages exchanged by the pair, newest first."""
        query = f"""
            SELECT {cls.SELECT_COLUMNS}
            FROM messages m
            {cls.PROFILE_JOINS}
            WHERE (m.sender_id = %s AND m.receiver_id = %s)
               OR (m.sender_id = %s AND m.receiver_id = %s)
            ORDER BY m.created_at DESC, m.id DESC
            LIMIT %s OFFSET %s
        """

        rows = await fetch_all(
            query, (user_id, other_user_id, other_user_id, user_id, limit, offset)
        )
        return [cls._row_to_message(row) for row in rows]

    @classmethod
    @with_db_retry(max_retries=2, base_delay=0.1)
    async def latest_per_counterpart(cls, user_id: str) -> list[Message]:
        """Most recent message for every user the caller has talked to, newest first."""
        query = f"""
            SELECT * FROM (
                SELECT DISTINCT ON (counterpart_id) {cls.SELECT_COLUMNS},
                    CASE WHEN m.sender_id = %s THEN m.receiver_id ELSE m.sender_id END
                        AS counterpart_id
                FROM messages m
                {cls.PROFILE_JOINS}
                WHERE m.sender_id = %s OR m.receiver_id = %s
                ORDER BY counterpart_id, m.created_at DESC, m.id DESC
            ) latest
            ORDER BY latest.created_at DESC
        """

        rows = await fetch_all(query, (user_id, user_id, user_id))
        return [cls._row_to_message(row) for row in rows]

    @classmethod
    @with_db_retry(max_retries=2, base_delay=0.1)
    async def unread_counts_by_sender(cls, receiver_id: str) -> dict[str, int]:
        query = """
            SELECT sender_id, COUNT(*) AS unread
            FROM messages
            WHERE receiver_id = %s AND read = false
            GROUP BY sender_id
        """

        rows = await fetch_all(query, (receiver_id,))
        return {str(row["sender_id"]): int(row["unread"]) for row in rows}

    @classmethod
    @with_db_retry(max_retries=2, base_delay=0.1)
    async def count_unread(cls, receiver_id: str) -> int:
        query = "SELECT COUNT(*) FROM messages WHERE receiver_id = %s AND read = false"
        return int(await fetch_val(query, (receiver_id,)) or 0)

    @classmethod
    async def mark_read(cls, message_id: str) -> int:
        query = "UPDATE messages SET read = true WHERE id = %s"
        return await execute_query(query, (message_id,))

    @classmethod
    async def mark_conversation_read(cls, receiver_id: str, sender_id: str) -> int:
        """Flip every unread message sender -> receiver. Returns affected rows."""
        query = """
            UPDATE messages
            SET read = true
            WHERE sender_id = %s AND receiver_id = %s AND read = false
        """
        return await execute_query(query, (sender_id, receiver_id))

    @classmethod
    async def delete_message(cls, message_id: str) -> int:
        return await execute_query("DELETE FROM messages WHERE id = %s", (message_id,))

    @classmethod
    async def delete_conversation(cls, user_id: str, other_user_id: str) -> int:
        query = """
            DELETE FROM messages
            WHERE (sender_id = %s AND receiver_id = %s)
               OR (sender_id = %s AND receiver_id = %s)
        """
        return await execute_query(query, (user_id, other_user_id, other_user_id, user_id))

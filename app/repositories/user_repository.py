"""
Read-only access to the users table.

Account management lives in the wider marketplace; the realtime layer only
needs identity lookups, profile fragments and role fan-out targets.
"""

from app.db.helpers import fetch_all, fetch_one, with_db_retry
from app.infrastructure.observability.logging import get_logger
from app.models.domain.user_domain import AuthenticatedUser, UserSummary

logger = get_logger(__name__)


class UserRepository:
    """Lookups used by the authenticator and the messaging service."""

    @classmethod
    @with_db_retry(max_retries=2, base_delay=0.1)
    async def get_identity(cls, user_id: str) -> AuthenticatedUser | None:
        query = "SELECT id, username, email, role FROM users WHERE id = %s"

        row = await fetch_one(query, (user_id,))
        if not row:
            return None

        return AuthenticatedUser(
            user_id=str(row["id"]),
            username=row["username"],
            email=row["email"],
            role=row["role"],
        )

    @classmethod
    @with_db_retry(max_retries=2, base_delay=0.1)
    async def get_summary(cls, user_id: str) -> UserSummary | None:
        query = "SELECT id, username, avatar FROM users WHERE id = %s"

        row = await fetch_one(query, (user_id,))
        if not row:
            return None

        return UserSummary(id=str(row["id"]), username=row["username"], avatar=row.get("avatar"))

    @classmethod
    async def list_ids_by_role(cls, role: str) -> list[str]:
        rows = await fetch_all("SELECT id FROM users WHERE role = %s", (role,))
        return [str(row["id"]) for row in rows]

from typing import Literal

from pydantic import ConfigDict

from app.models.domain.base import WireModel

UserRole = Literal["USER", "OWNER", "ADMIN"]


class AuthenticatedUser(WireModel):
    """Identity resolved from an access token. Immutable for a connection's lifetime."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    username: str
    email: str
    role: UserRole = "USER"


class UserSummary(WireModel):
    """Public profile fragment embedded in messages and conversations."""

    id: str
    username: str
    avatar: str | None = None

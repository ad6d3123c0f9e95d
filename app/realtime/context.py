from dataclasses import dataclass

from app.models.domain.user_domain import AuthenticatedUser


@dataclass(frozen=True, slots=True)
class ConnectionContext:
    """Identity bound to one Socket.IO connection, built once at connect time."""

    sid: str
    user: AuthenticatedUser

    @property
    def user_id(self) -> str:
        return self.user.user_id

    def to_session(self) -> dict:
        return {"sid": self.sid, "user": self.user.model_dump()}

    @classmethod
    def from_session(cls, session: dict) -> "ConnectionContext":
        return cls(sid=session["sid"], user=AuthenticatedUser(**session["user"]))

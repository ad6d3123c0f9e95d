from datetime import datetime

from app.models.domain.base import WireModel
from app.models.domain.user_domain import UserSummary


class Message(WireModel):
    """Direct message row with sender/receiver profile fragments."""

    id: str
    sender_id: str
    receiver_id: str
    content: str
    read: bool = False
    created_at: datetime

    sender: UserSummary | None = None
    receiver: UserSummary | None = None

    def counterpart_of(self, user_id: str) -> str:
        return self.receiver_id if self.sender_id == user_id else self.sender_id


class Conversation(WireModel):
    """Derived view: the latest message exchanged with one counterpart."""

    user: UserSummary | None
    last_message: Message
    unread_count: int = 0


class MessageHistory(WireModel):
    """One page of a conversation, oldest first within the page."""

    messages: list[Message]
    page: int
    limit: int
    has_more: bool

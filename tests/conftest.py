import asyncio
import itertools
import time
from collections import defaultdict
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
import pytest

from app.auth.verify import auth_dependency
from app.config import settings
from app.models.domain.message_domain import Message
from app.models.domain.notification_domain import Notification, NotificationDraft
from app.models.domain.user_domain import AuthenticatedUser, UserSummary
from app.realtime.presence import InMemoryPresenceRegistry
from app.realtime.publisher import realtime_publisher
from app.realtime.server import RealtimeServer
from app.repositories.message_repository import MessageRepository
from app.repositories.notification_repository import NotificationRepository
from app.repositories.user_repository import UserRepository

BASE_TIME = datetime(2024, 1, 1, tzinfo=UTC)


# ---------------------------------------------------------------------------
# In-memory store standing in for the Postgres repositories
# ---------------------------------------------------------------------------


class InMemoryStore:
    def __init__(self):
        self.users: dict[str, dict[str, Any]] = {}
        self.messages: dict[str, Message] = {}
        self.notifications: dict[str, Notification] = {}
        self._ids = itertools.count(1)

    def next_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    def next_timestamp(self) -> datetime:
        return BASE_TIME + timedelta(seconds=next(self._ids))

    def add_user(self, user_id: str, username: str | None = None, role: str = "USER") -> None:
        username = username or user_id
        self.users[user_id] = {
            "id": user_id,
            "username": username,
            "email": f"{username}@example.com",
            "role": role,
            "avatar": None,
        }

    def add_message(self, sender_id: str, receiver_id: str, content: str) -> Message:
        message = Message(
            id=self.next_id("msg"),
            sender_id=sender_id,
            receiver_id=receiver_id,
            content=content,
            read=False,
            created_at=self.next_timestamp(),
            sender=self.summary(sender_id),
            receiver=self.summary(receiver_id),
        )
        self.messages[message.id] = message
        return message

    def add_notification(self, user_id: str, draft: NotificationDraft) -> Notification:
        notification = Notification(
            id=self.next_id("notif"),
            user_id=user_id,
            type=draft.type,
            title=draft.title,
            message=draft.message,
            link=draft.link,
            metadata=draft.metadata,
            read=False,
            created_at=self.next_timestamp(),
        )
        self.notifications[notification.id] = notification
        return notification

    def summary(self, user_id: str) -> UserSummary | None:
        row = self.users.get(user_id)
        if row is None:
            return None
        return UserSummary(id=row["id"], username=row["username"], avatar=row["avatar"])


class FakeUserRepository:
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def get_identity(self, user_id: str) -> AuthenticatedUser | None:
        row = self.store.users.get(user_id)
        if row is None:
            return None
        return AuthenticatedUser(
            user_id=row["id"], username=row["username"], email=row["email"], role=row["role"]
        )

    async def get_summary(self, user_id: str) -> UserSummary | None:
        return self.store.summary(user_id)

    async def list_ids_by_role(self, role: str) -> list[str]:
        return [uid for uid, row in self.store.users.items() if row["role"] == role]


class FakeMessageRepository:
    def __init__(self, store: InMemoryStore):
        self.store = store

    def _between(self, a: str, b: str) -> list[Message]:
        return [
            m
            for m in self.store.messages.values()
            if (m.sender_id, m.receiver_id) in ((a, b), (b, a))
        ]

    async def create_message(self, sender_id: str, receiver_id: str, content: str) -> Message:
        return self.store.add_message(sender_id, receiver_id, content).model_copy()

    async def get_message(self, message_id: str) -> Message | None:
        message = self.store.messages.get(message_id)
        return message.model_copy() if message else None

    async def list_between(
        self, user_id: str, other_user_id: str, *, offset: int, limit: int
    ) -> list[Message]:
        newest_first = sorted(
            self._between(user_id, other_user_id), key=lambda m: m.created_at, reverse=True
        )
        return [m.model_copy() for m in newest_first[offset : offset + limit]]

    async def latest_per_counterpart(self, user_id: str) -> list[Message]:
        latest: dict[str, Message] = {}
        for message in self.store.messages.values():
            if user_id not in (message.sender_id, message.receiver_id):
                continue
            counterpart = message.counterpart_of(user_id)
            current = latest.get(counterpart)
            if current is None or message.created_at > current.created_at:
                latest[counterpart] = message
        return sorted(
            (m.model_copy() for m in latest.values()), key=lambda m: m.created_at, reverse=True
        )

    async def unread_counts_by_sender(self, receiver_id: str) -> dict[str, int]:
        counts: dict[str, int] = defaultdict(int)
        for message in self.store.messages.values():
            if message.receiver_id == receiver_id and not message.read:
                counts[message.sender_id] += 1
        return dict(counts)

    async def count_unread(self, receiver_id: str) -> int:
        return sum(
            1
            for m in self.store.messages.values()
            if m.receiver_id == receiver_id and not m.read
        )

    async def mark_read(self, message_id: str) -> int:
        message = self.store.messages.get(message_id)
        if message is None:
            return 0
        message.read = True
        return 1

    async def mark_conversation_read(self, receiver_id: str, sender_id: str) -> int:
        updated = 0
        for message in self.store.messages.values():
            if message.receiver_id == receiver_id and message.sender_id == sender_id:
                if not message.read:
                    message.read = True
                    updated += 1
        return updated

    async def delete_message(self, message_id: str) -> int:
        return 1 if self.store.messages.pop(message_id, None) else 0

    async def delete_conversation(self, user_id: str, other_user_id: str) -> int:
        doomed = [m.id for m in self._between(user_id, other_user_id)]
        for message_id in doomed:
            del self.store.messages[message_id]
        return len(doomed)


class FakeNotificationRepository:
    def __init__(self, store: InMemoryStore):
        self.store = store

    def _owned(self, user_id: str) -> list[Notification]:
        owned = [n for n in self.store.notifications.values() if n.user_id == user_id]
        return sorted(owned, key=lambda n: n.created_at, reverse=True)

    async def create(self, user_id: str, draft: NotificationDraft) -> Notification:
        return self.store.add_notification(user_id, draft).model_copy()

    async def create_many(self, user_ids: list[str], draft: NotificationDraft) -> list[Notification]:
        return [await self.create(user_id, draft) for user_id in user_ids]

    async def list_page(self, user_id: str, *, offset: int, limit: int) -> list[Notification]:
        return [n.model_copy() for n in self._owned(user_id)[offset : offset + limit]]

    async def list_unread(self, user_id: str) -> list[Notification]:
        return [n.model_copy() for n in self._owned(user_id) if not n.read]

    async def list_by_type(
        self, user_id: str, notification_type: str, *, offset: int, limit: int
    ) -> list[Notification]:
        matching = [n for n in self._owned(user_id) if n.type == notification_type]
        return [n.model_copy() for n in matching[offset : offset + limit]]

    async def get(self, notification_id: str, user_id: str) -> Notification | None:
        notification = self.store.notifications.get(notification_id)
        if notification is None or notification.user_id != user_id:
            return None
        return notification.model_copy()

    async def count(
        self, user_id: str, *, unread_only: bool = False, notification_type: str | None = None
    ) -> int:
        return sum(
            1
            for n in self._owned(user_id)
            if (not unread_only or not n.read)
            and (notification_type is None or n.type == notification_type)
        )

    async def mark_read(self, notification_id: str, user_id: str) -> Notification | None:
        notification = self.store.notifications.get(notification_id)
        if notification is None or notification.user_id != user_id:
            return None
        notification.read = True
        return notification.model_copy()

    async def mark_all_read(self, user_id: str) -> int:
        unread = [n for n in self._owned(user_id) if not n.read]
        for notification in unread:
            notification.read = True
        return len(unread)

    async def delete(self, notification_id: str, user_id: str) -> int:
        notification = self.store.notifications.get(notification_id)
        if notification is None or notification.user_id != user_id:
            return 0
        del self.store.notifications[notification_id]
        return 1

    async def delete_read(self, user_id: str) -> int:
        doomed = [n.id for n in self._owned(user_id) if n.read]
        for notification_id in doomed:
            del self.store.notifications[notification_id]
        return len(doomed)

    async def delete_all(self, user_id: str) -> int:
        doomed = [n.id for n in self._owned(user_id)]
        for notification_id in doomed:
            del self.store.notifications[notification_id]
        return len(doomed)


def _patch_repository(monkeypatch, repository_cls, fake) -> None:
    for name in dir(fake):
        if name.startswith("_") or name == "store":
            continue
        if hasattr(repository_cls, name):
            monkeypatch.setattr(repository_cls, name, getattr(fake, name))


@pytest.fixture
def store(monkeypatch):
    """Replace every repository with an in-memory implementation."""
    memory = InMemoryStore()
    _patch_repository(monkeypatch, UserRepository, FakeUserRepository(memory))
    _patch_repository(monkeypatch, MessageRepository, FakeMessageRepository(memory))
    _patch_repository(monkeypatch, NotificationRepository, FakeNotificationRepository(memory))
    return memory


# ---------------------------------------------------------------------------
# Fake Socket.IO server
# ---------------------------------------------------------------------------


@dataclass
class Emit:
    event: str
    data: Any
    to: str | None
    skip_sid: str | None


class FakeSocketServer:
    """Records emits, sessions and room membership like socketio.AsyncServer would."""

    def __init__(self):
        self.emitted: list[Emit] = []
        self.sessions: dict[str, dict] = {}
        self.rooms: dict[str, set[str]] = defaultdict(set)
        self.handlers: dict[str, Any] = {}
        self.background_tasks: list[asyncio.Task] = []

    def on(self, event, handler=None, namespace=None):
        self.handlers[event] = handler

    async def emit(self, event, data=None, to=None, room=None, skip_sid=None, namespace=None):
        self.emitted.append(Emit(event=event, data=data, to=to or room, skip_sid=skip_sid))

    async def save_session(self, sid, session, namespace=None):
        self.sessions[sid] = session

    async def get_session(self, sid, namespace=None):
        return self.sessions[sid]

    async def enter_room(self, sid, room, namespace=None):
        self.rooms[room].add(sid)

    def start_background_task(self, target, *args, **kwargs):
        task = asyncio.ensure_future(target(*args, **kwargs))
        self.background_tasks.append(task)
        return task

    async def drain(self):
        tasks, self.background_tasks = self.background_tasks, []
        await asyncio.gather(*tasks)

    def events(self, name: str, to: str | None = None) -> list[Emit]:
        return [e for e in self.emitted if e.event == name and (to is None or e.to == to)]

    def clear(self):
        self.emitted.clear()


@pytest.fixture
def sio():
    return FakeSocketServer()


@pytest.fixture
def presence():
    return InMemoryPresenceRegistry()


@pytest.fixture
def realtime(sio, presence):
    """Realtime server over the fake Socket.IO server, publisher bound for pushes."""
    server = RealtimeServer(sio=sio, presence=presence)
    realtime_publisher.bind(sio, presence)
    yield server
    realtime_publisher.unbind()


# ---------------------------------------------------------------------------
# Auth helpers
# ---------------------------------------------------------------------------


def make_token(user_id: str, expires_in: int = 3600, secret: str | None = None) -> str:
    now = int(time.time())
    claims = {"userId": user_id, "iat": now, "exp": now + expires_in}
    return jwt.encode(claims, secret or settings.JWT_ACCESS_SECRET, algorithm=settings.JWT_ALGORITHM)


@pytest.fixture
def token_for():
    return make_token


@pytest.fixture
def connect(realtime, sio, token_for):
    """Run the connect handler for a user and flush its announcements."""

    async def _connect(user_id: str, sid: str):
        await realtime.lifecycle.on_connect(sid, {}, {"token": token_for(user_id)})
        await sio.drain()

    return _connect


@pytest.fixture
def auth_override():
    def _override():
        return AuthenticatedUser(
            user_id="user-1", username="alice", email="alice@example.com", role="USER"
        )

    return _override


@pytest.fixture
def apply_auth_override(auth_override):
    def _apply(app):
        app.dependency_overrides[auth_dependency] = auth_override

    return _apply


# ---------------------------------------------------------------------------
# Fake Redis for the shared presence backend
# ---------------------------------------------------------------------------


class FakeRedis:
    """Mirrors the FastRedisClient helpers used by RedisPresenceRegistry."""

    def __init__(self):
        self.zsets: dict[str, dict[str, float]] = defaultdict(dict)
        self.sets: dict[str, set[str]] = defaultdict(set)
        self.hashes: dict[str, dict[str, str]] = defaultdict(dict)
        self.strings: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    async def presence_add(self, user_key, online_key, node_key, user_id, sid, score) -> bool:
        self.zsets[user_key][sid] = score
        self.hashes[node_key][sid] = user_id
        return await self.sadd(online_key, user_id)

    async def presence_remove(self, user_key, online_key, node_key, user_id, sid) -> bool:
        self.hashes[node_key].pop(sid, None)
        if self.zsets[user_key].pop(sid, None) is None or self.zsets[user_key]:
            return False
        return await self.srem(online_key, user_id)

    async def presence_purge_node(self, node_key, online_key, user_key_prefix) -> list[str]:
        offline = []
        for sid, user_id in self.hashes.pop(node_key, {}).items():
            user_key = f"{user_key_prefix}{user_id}"
            self.zsets[user_key].pop(sid, None)
            if not self.zsets[user_key] and await self.srem(online_key, user_id):
                offline.append(user_id)
        return offline

    async def set_expiring(self, key: str, value: str, ttl_seconds: int) -> None:
        self.strings[key] = value
        self.ttls[key] = ttl_seconds

    async def exists(self, key: str) -> bool:
        return key in self.strings

    def expire(self, key: str) -> None:
        """Let a TTL run out."""
        self.strings.pop(key, None)
        self.ttls.pop(key, None)

    async def zmembers_newest_first(self, key: str) -> list[str]:
        members = self.zsets.get(key, {})
        return sorted(members, key=lambda m: members[m], reverse=True)

    async def sadd(self, key: str, member: str) -> bool:
        added = member not in self.sets[key]
        self.sets[key].add(member)
        return added

    async def srem(self, key: str, member: str) -> bool:
        present = member in self.sets[key]
        self.sets[key].discard(member)
        return present

    async def smembers(self, key: str) -> set[str]:
        return set(self.sets.get(key, set()))


@pytest.fixture
def fake_redis():
    return FakeRedis()

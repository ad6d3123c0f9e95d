"""
Tests for the SQL the repositories send: placeholder count and parameter order.
"""

from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest
from psycopg.types.json import Jsonb

from app.models.domain.notification_domain import NotificationDraft, NotificationType
from app.repositories.message_repository import MessageRepository
from app.repositories.notification_repository import NotificationRepository

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


def message_row(sender_id: str, receiver_id: str, **overrides) -> dict:
    row = {
        "id": 7,
        "sender_id": sender_id,
        "receiver_id": receiver_id,
        "content": "is the bottle still sealed?",
        "read": False,
        "created_at": NOW,
        "sender_username": sender_id,
        "sender_avatar": None,
        "receiver_username": receiver_id,
        "receiver_avatar": None,
        "counterpart_id": receiver_id,
    }
    row.update(overrides)
    return row


def notification_row(user_id: str, **overrides) -> dict:
    row = {
        "id": 3,
        "user_id": user_id,
        "type": "SYSTEM",
        "title": "New owner request",
        "message": "alice asked to open a shop",
        "link": "/admin/requests/9",
        "metadata": {"requestId": "9"},
        "read": False,
        "created_at": NOW,
    }
    row.update(overrides)
    return row


def sent(mock: AsyncMock) -> tuple[str, tuple]:
    query, params = mock.await_args.args
    return query, params


class TestMessageRepositorySql:
    @pytest.mark.asyncio
    async def test_latest_per_counterpart_binds_caller_three_times(self, monkeypatch):
        fetch_all = AsyncMock(return_value=[message_row("alice", "bob")])
        monkeypatch.setattr("app.repositories.message_repository.fetch_all", fetch_all)

        messages = await MessageRepository.latest_per_counterpart("alice")

        query, params = sent(fetch_all)
        assert query.count("%s") == len(params) == 3
        assert params == ("alice", "alice", "alice")
        assert messages[0].id == "7"
        assert messages[0].counterpart_of("alice") == "bob"
        assert messages[0].receiver.username == "bob"

    @pytest.mark.asyncio
    async def test_list_between_orders_both_directions_then_paging(self, monkeypatch):
        fetch_all = AsyncMock(return_value=[])
        monkeypatch.setattr("app.repositories.message_repository.fetch_all", fetch_all)

        await MessageRepository.list_between("alice", "bob", offset=50, limit=25)

        query, params = sent(fetch_all)
        assert query.count("%s") == len(params)
        assert params == ("alice", "bob", "bob", "alice", 25, 50)
        assert query.index("LIMIT") < query.index("OFFSET")

    @pytest.mark.asyncio
    async def test_mark_conversation_read_flips_messages_from_counterpart(self, monkeypatch):
        execute_query = AsyncMock(return_value=2)
        monkeypatch.setattr("app.repositories.message_repository.execute_query", execute_query)

        updated = await MessageRepository.mark_conversation_read("alice", "bob")

        query, params = sent(execute_query)
        assert updated == 2
        assert query.count("%s") == len(params)
        # sender first, then receiver
        assert params == ("bob", "alice")


class TestNotificationRepositorySql:
    @pytest.mark.asyncio
    async def test_create_many_binds_draft_then_target_array(self, monkeypatch):
        fetch_all = AsyncMock(
            return_value=[notification_row("admin-1"), notification_row("admin-2", id=4)]
        )
        monkeypatch.setattr("app.repositories.notification_repository.fetch_all", fetch_all)
        draft = NotificationDraft(
            type=NotificationType.SYSTEM,
            title="New owner request",
            message="alice asked to open a shop",
            link="/admin/requests/9",
            metadata={"requestId": "9"},
        )

        created = await NotificationRepository.create_many(["admin-1", "admin-2"], draft)

        query, params = sent(fetch_all)
        assert query.count("%s") == len(params) == 6
        assert params[:4] == (
            "SYSTEM",
            "New owner request",
            "alice asked to open a shop",
            "/admin/requests/9",
        )
        assert isinstance(params[4], Jsonb)
        assert params[5] == ["admin-1", "admin-2"]
        assert [n.user_id for n in created] == ["admin-1", "admin-2"]

    @pytest.mark.asyncio
    async def test_create_many_without_targets_skips_query(self, monkeypatch):
        fetch_all = AsyncMock()
        monkeypatch.setattr("app.repositories.notification_repository.fetch_all", fetch_all)
        draft = NotificationDraft(type=NotificationType.SYSTEM, title="t", message="m")

        assert await NotificationRepository.create_many([], draft) == []
        fetch_all.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_count_adds_type_placeholder_only_when_filtering(self, monkeypatch):
        fetch_val = AsyncMock(return_value=5)
        monkeypatch.setattr("app.repositories.notification_repository.fetch_val", fetch_val)

        assert await NotificationRepository.count("alice", unread_only=True) == 5
        query, params = sent(fetch_val)
        assert query.count("%s") == len(params) == 1
        assert "read = false" in query

        await NotificationRepository.count("alice", notification_type="ORDER")
        query, params = sent(fetch_val)
        assert query.count("%s") == len(params) == 2
        assert params == ("alice", "ORDER")

    @pytest.mark.asyncio
    async def test_mark_read_is_scoped_to_owner(self, monkeypatch):
        fetch_one = AsyncMock(return_value=None)
        monkeypatch.setattr("app.repositories.notification_repository.fetch_one", fetch_one)

        assert await NotificationRepository.mark_read("3", "mallory") is None

        query, params = sent(fetch_one)
        assert "user_id = %s" in query
        assert params == ("3", "mallory")

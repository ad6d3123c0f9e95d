"""
Tests for the database retry decorator.
"""

from unittest.mock import AsyncMock

import pytest

from app.db.helpers import DatabaseError, with_db_retry


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr("app.db.helpers.asyncio.sleep", AsyncMock())


@pytest.mark.asyncio
async def test_recoverable_error_is_retried():
    op = AsyncMock(side_effect=[DatabaseError("connection reset", recoverable=True), "ok"])
    op.__name__ = "op"

    result = await with_db_retry(max_retries=2)(op)()

    assert result == "ok"
    assert op.await_count == 2


@pytest.mark.asyncio
async def test_non_recoverable_error_raised_immediately():
    op = AsyncMock(side_effect=DatabaseError("duplicate key", recoverable=False))
    op.__name__ = "op"

    with pytest.raises(DatabaseError, match="duplicate key"):
        await with_db_retry(max_retries=3)(op)()

    assert op.await_count == 1


@pytest.mark.asyncio
async def test_gives_up_after_max_retries():
    op = AsyncMock(side_effect=DatabaseError("timeout", recoverable=True))
    op.__name__ = "op"

    with pytest.raises(DatabaseError) as exc_info:
        await with_db_retry(max_retries=2)(op)()

    assert op.await_count == 3
    assert exc_info.value.recoverable is False


@pytest.mark.asyncio
async def test_other_exceptions_pass_through():
    op = AsyncMock(side_effect=ValueError("bad input"))
    op.__name__ = "op"

    with pytest.raises(ValueError):
        await with_db_retry()(op)()

    assert op.await_count == 1

# app/db/helpers.py
"""
Query helpers used by the repositories.

Every helper borrows a pooled connection for one statement and converts
psycopg failures into DatabaseError, which the API maps to 503.
"""

import asyncio
import functools
from collections.abc import Awaitable, Callable
from typing import Any

import psycopg

from app.db.pool import get_db_connection
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class DatabaseError(Exception):
    """A query against the history store failed."""

    def __init__(self, message: str, operation: str = "unknown", recoverable: bool = True):
        super().__init__(message)
        self.operation = operation
        self.recoverable = recoverable


async def _run(
    operation: str,
    query: str,
    params: tuple,
    read: Callable[[psycopg.AsyncCursor], Awaitable[Any]],
) -> Any:
    try:
        async with await get_db_connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(query, params)
                return await read(cur)
    except psycopg.Error as e:
        logger.error("Query failed", operation=operation, query=query[:100], error=str(e))
        # Lost connections and timeouts can succeed on a second attempt
        raise DatabaseError(
            f"Query failed: {e}",
            operation=operation,
            recoverable=isinstance(e, psycopg.OperationalError),
        ) from e


async def _first_row(cur: psycopg.AsyncCursor) -> dict[str, Any] | None:
    return await cur.fetchone()


async def _all_rows(cur: psycopg.AsyncCursor) -> list[dict[str, Any]]:
    return await cur.fetchall()


async def _first_value(cur: psycopg.AsyncCursor) -> Any:
    row = await cur.fetchone()
    return next(iter(row.values())) if row else None


async def _rowcount(cur: psycopg.AsyncCursor) -> int:
    return cur.rowcount


async def fetch_one(query: str, params: tuple = ()) -> dict[str, Any] | None:
    """Single row as a dict, or None."""
    return await _run("fetch_one", query, params, _first_row)


async def fetch_all(query: str, params: tuple = ()) -> list[dict[str, Any]]:
    return await _run("fetch_all", query, params, _all_rows)


async def fetch_val(query: str, params: tuple = ()) -> Any:
    """First column of the first row, e.g. a COUNT(*)."""
    return await _run("fetch_val", query, params, _first_value)


async def execute_query(query: str, params: tuple = ()) -> int:
    """Run an UPDATE/DELETE and return the affected row count."""
    return await _run("execute", query, params, _rowcount)


def with_db_retry(max_retries: int = 3, base_delay: float = 0.1):
    """
    Retry a repository call on recoverable DatabaseError with exponential backoff.

    Non-recoverable errors (constraint violations, bad SQL) are raised on the
    first attempt. Once retries run out the error is re-raised as
    non-recoverable so outer layers do not retry again.
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            attempt = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except DatabaseError as e:
                    if not e.recoverable:
                        raise
                    if attempt >= max_retries:
                        logger.error(
                            "Giving up on database operation",
                            operation=func.__name__,
                            attempts=attempt + 1,
                            error=str(e),
                        )
                        raise DatabaseError(
                            f"Operation failed after {max_retries} retries: {e}",
                            operation=func.__name__,
                            recoverable=False,
                        ) from e

                    delay = base_delay * (2**attempt)
                    attempt += 1
                    logger.warning(
                        "Retrying database operation",
                        operation=func.__name__,
                        attempt=attempt,
                        delay=delay,
                        error=str(e),
                    )
                    await asyncio.sleep(delay)

        return wrapper

    return decorator

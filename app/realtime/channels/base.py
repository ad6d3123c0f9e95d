"""
Shared plumbing for socket channels.

Handlers are written against the caller's `ConnectionContext` and a dict
payload. The `socket_handler` decorator loads the context from the socket
session, times the call, logs the outcome and turns any failure into an
`error` event on the originating connection only.
"""

import functools
import time
from typing import Any

import socketio
from pydantic import ValidationError

from app.infrastructure.observability.logging import get_logger, log_socket_event
from app.realtime.context import ConnectionContext
from app.realtime.events import ServerEvent
from app.realtime.publisher import RealtimePublisher
from app.services.errors import ServiceError

logger = get_logger(__name__)


def describe_error(event: str, error: Exception) -> str:
    """Client-facing text for a failed handler."""
    if isinstance(error, ServiceError):
        return error.message
    if isinstance(error, ValidationError):
        first = error.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or "payload"
        return f"Invalid payload: {field} {first.get('msg', 'is invalid').lower()}"
    return f"Failed to process {event}"


def socket_handler(event: str):
    """Wrap a channel method `(self, ctx, data)` as a Socket.IO handler `(sid, data)`."""

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(self: "Channel", sid: str, data: Any = None):
            start_time = time.time()
            user_id = None

            try:
                ctx = await self.context(sid)
                user_id = ctx.user_id
                await func(self, ctx, data if data is not None else {})
            except Exception as e:
                duration_ms = round((time.time() - start_time) * 1000, 2)
                log_socket_event(event, sid, user_id, False, duration_ms, error=str(e))
                await self.sio.emit(ServerEvent.ERROR, {"message": describe_error(event, e)}, to=sid)
                return

            duration_ms = round((time.time() - start_time) * 1000, 2)
            log_socket_event(event, sid, user_id, True, duration_ms)

        wrapper.socket_event = event
        return wrapper

    return decorator


class Channel:
    """Base for a group of handlers sharing one Socket.IO server."""

    def __init__(self, sio: socketio.AsyncServer, publisher: RealtimePublisher):
        self.sio = sio
        self.publisher = publisher

    async def context(self, sid: str) -> ConnectionContext:
        session = await self.sio.get_session(sid)
        return ConnectionContext.from_session(session)

    async def reply(self, ctx: ConnectionContext, event: str, data: Any = None) -> None:
        """Emit to the calling connection only."""
        await self.sio.emit(event, data, to=ctx.sid)

    def register(self) -> None:
        """Attach every `socket_handler`-decorated method to the server."""
        for name in dir(type(self)):
            handler = getattr(self, name)
            event = getattr(handler, "socket_event", None)
            if event:
                self.sio.on(event, handler)
                logger.debug("Socket handler registered", socket_event=event, handler=name)

"""
Server-initiated pushes.

Services push through the module-level `realtime_publisher`, which is bound
to the Socket.IO server and presence registry at startup. A push reaches
every connection in the target's personal room, or is dropped when the
target is offline. There is no queue or retry; offline users read the
durable history instead.
"""

from typing import Any

import socketio

from app.infrastructure.observability.logging import get_logger
from app.realtime.events import user_room
from app.realtime.presence import PresenceRegistry

logger = get_logger(__name__)


class RealtimePublisher:
    def __init__(self):
        self.sio: socketio.AsyncServer | None = None
        self.presence: PresenceRegistry | None = None

    def bind(self, sio: socketio.AsyncServer, presence: PresenceRegistry) -> None:
        self.sio = sio
        self.presence = presence

    def unbind(self) -> None:
        self.sio = None
        self.presence = None

    @property
    def bound(self) -> bool:
        return self.sio is not None and self.presence is not None

    async def push_to_user(self, user_id: str, event: str, data: Any = None) -> bool:
        """Emit to every connection of a user. Returns False when nothing was sent."""
        if not self.bound:
            logger.debug("Realtime publisher not bound, push skipped", event_name=event)
            return False

        if not await self.presence.is_online(user_id):
            logger.debug("Push target offline, dropping", user_id=user_id, event_name=event)
            return False

        await self.sio.emit(event, data, to=user_room(user_id))
        return True


realtime_publisher = RealtimePublisher()

"""
Connection lifecycle: identity binding, presence fan-out and keepalive.

Connect:
    1. Authenticate the handshake (refused connections never reach step 2).
    2. Store the ConnectionContext in the socket session.
    3. Register presence and join the user's personal room.
    4. After the connection is accepted, send `online_users` to it and, on the
       user's first connection, broadcast `user_online` to everyone else.
       If the connection closed in between, `online_users` is skipped, and
       `user_online` is skipped too unless another connection is still live.

Disconnect:
    Unregister the connection and broadcast `user_offline` once the user's
    last connection is gone.

Keepalive:
    Broadcast `ping` and heartbeat the presence registry. Users whose only
    connections sat on a node that stopped heartbeating are announced offline.
"""

import asyncio
import time

import socketio
from socketio.exceptions import ConnectionRefusedError

from app.infrastructure.observability.logging import get_logger
from app.realtime.auth import authenticate_handshake
from app.realtime.context import ConnectionContext
from app.realtime.events import ServerEvent, user_room
from app.realtime.presence import PresenceRegistry

logger = get_logger(__name__)


class ConnectionLifecycle:
    def __init__(
        self, sio: socketio.AsyncServer, presence: PresenceRegistry, ping_interval: float = 30
    ):
        self.sio = sio
        self.presence = presence
        self.ping_interval = ping_interval
        self._keepalive_task: asyncio.Task | None = None

    async def on_connect(self, sid: str, environ: dict, auth: dict | None = None):
        user = await authenticate_handshake(sid, environ, auth)
        ctx = ConnectionContext(sid=sid, user=user)

        await self.sio.save_session(sid, ctx.to_session())
        try:
            came_online = await self.presence.register(ctx.user_id, sid)
        except Exception as e:
            logger.error("Presence registration failed", sid=sid, user_id=ctx.user_id, error=str(e))
            raise ConnectionRefusedError("Presence unavailable") from e
        await self.sio.enter_room(sid, user_room(ctx.user_id))

        # Emits from inside the connect handler would precede the CONNECT packet
        self.sio.start_background_task(self.announce_connection, ctx, came_online)

        logger.info(
            "Socket connected",
            sid=sid,
            user_id=ctx.user_id,
            username=user.username,
            came_online=came_online,
        )

    async def announce_connection(self, ctx: ConnectionContext, came_online: bool):
        """
        Runs after the connect handler returns, so the connection may already be
        gone. Presence is re-read here: a user whose only connection closed in
        the meantime has been announced offline and must not be announced again.
        """
        try:
            live = await self.presence.connections(ctx.user_id)

            # Another device may still hold the user online after this sid closed
            if came_online and live:
                await self.sio.emit(
                    ServerEvent.USER_ONLINE, {"userId": ctx.user_id}, skip_sid=ctx.sid
                )

            if ctx.sid not in live:
                logger.debug(
                    "Connection closed before announcement", sid=ctx.sid, user_id=ctx.user_id
                )
                return

            online = await self.presence.online_users()
            await self.sio.emit(ServerEvent.ONLINE_USERS, online, to=ctx.sid)
        except Exception as e:
            logger.error(
                "Failed to announce connection", sid=ctx.sid, user_id=ctx.user_id, error=str(e)
            )

    async def on_disconnect(self, sid: str, reason=None):
        try:
            ctx = ConnectionContext.from_session(await self.sio.get_session(sid))
        except KeyError:
            logger.debug("Disconnect without session", sid=sid)
            return

        try:
            went_offline = await self.presence.unregister(ctx.user_id, sid)
        except Exception as e:
            # The entry stays with this node until it is released or purged
            logger.error("Presence unregister failed", sid=sid, user_id=ctx.user_id, error=str(e))
            return

        if went_offline:
            await self.sio.emit(ServerEvent.USER_OFFLINE, {"userId": ctx.user_id})

        logger.info(
            "Socket disconnected",
            sid=sid,
            user_id=ctx.user_id,
            reason=str(reason) if reason else None,
            went_offline=went_offline,
        )

    async def refresh_presence(self) -> None:
        """Heartbeat the registry and announce users whose node stopped responding."""
        for user_id in await self.presence.heartbeat():
            await self.sio.emit(ServerEvent.USER_OFFLINE, {"userId": user_id})

    async def release_presence(self) -> None:
        """Drop this node's connections from the registry on shutdown."""
        for user_id in await self.presence.release():
            await self.sio.emit(ServerEvent.USER_OFFLINE, {"userId": user_id})

    async def keepalive(self):
        """Broadcast `ping` and refresh presence forever. Pings are never acknowledged."""
        while True:
            await asyncio.sleep(self.ping_interval)
            try:
                await self.sio.emit(ServerEvent.PING, {"timestamp": int(time.time() * 1000)})
            except Exception as e:
                logger.warning("Keepalive ping failed", error=str(e))

            try:
                await self.refresh_presence()
            except Exception as e:
                logger.warning("Presence heartbeat failed", error=str(e))

    def start_keepalive(self) -> None:
        if self._keepalive_task is None or self._keepalive_task.done():
            self._keepalive_task = asyncio.create_task(self.keepalive())
            logger.info("Socket keepalive started", interval_seconds=self.ping_interval)

    async def stop_keepalive(self) -> None:
        if self._keepalive_task is None:
            return

        self._keepalive_task.cancel()
        try:
            await self._keepalive_task
        except asyncio.CancelledError:
            pass
        self._keepalive_task = None
        logger.info("Socket keepalive stopped")

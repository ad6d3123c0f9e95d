"""
Socket.IO server assembly.

`RealtimeServer` owns the AsyncServer, the presence registry, the lifecycle
manager and the feature channels. `app.main` mounts it in front of FastAPI
with `asgi_app()` and drives `start()`/`stop()` from the lifespan.
"""

import socketio

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.realtime.channels.messages import MessageChannel
from app.realtime.channels.notifications import NotificationChannel
from app.realtime.lifecycle import ConnectionLifecycle
from app.realtime.presence import PresenceRegistry, build_presence_registry
from app.realtime.publisher import RealtimePublisher, realtime_publisher

logger = get_logger(__name__)


def create_socket_server() -> socketio.AsyncServer:
    client_manager = None
    if settings.REDIS_URL:
        # Fan emits out across nodes sharing the same Redis
        client_manager = socketio.AsyncRedisManager(settings.REDIS_URL)

    return socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins=settings.allowed_origins(),
        client_manager=client_manager,
        transports=["websocket", "polling"],
        always_connect=False,
        logger=settings.debug,
        engineio_logger=False,
    )


class RealtimeServer:
    def __init__(
        self,
        sio: socketio.AsyncServer | None = None,
        presence: PresenceRegistry | None = None,
        publisher: RealtimePublisher = realtime_publisher,
    ):
        self.sio = sio or create_socket_server()
        self.presence = presence or build_presence_registry()
        self.publisher = publisher

        self.lifecycle = ConnectionLifecycle(
            self.sio, self.presence, ping_interval=settings.SOCKET_PING_INTERVAL_SECONDS
        )
        self.channels = [
            MessageChannel(self.sio, self.publisher),
            NotificationChannel(self.sio, self.publisher),
        ]

        self.sio.on("connect", self.lifecycle.on_connect)
        self.sio.on("disconnect", self.lifecycle.on_disconnect)
        for channel in self.channels:
            channel.register()

    def asgi_app(self, other_asgi_app) -> socketio.ASGIApp:
        return socketio.ASGIApp(
            self.sio, other_asgi_app=other_asgi_app, socketio_path=settings.SOCKET_PATH
        )

    async def start(self) -> None:
        self.publisher.bind(self.sio, self.presence)
        await self.lifecycle.refresh_presence()
        self.lifecycle.start_keepalive()
        logger.info("Realtime server started", presence=type(self.presence).__name__)

    async def stop(self) -> None:
        await self.lifecycle.stop_keepalive()
        try:
            await self.lifecycle.release_presence()
        except Exception as e:
            logger.error("Failed to release presence", error=str(e))
        self.publisher.unbind()
        logger.info("Realtime server stopped")

    async def online_count(self) -> int:
        return len(await self.presence.online_users())

"""
Presence registry: which users currently hold at least one live connection.

A user maps to the set of their connection ids (one per device/tab). The
registry reports transitions so the lifecycle manager can announce
`user_online` only on the first connection and `user_offline` only when the
last one closes.

Two backends:
    - InMemoryPresenceRegistry: process-local, lost on restart.
    - RedisPresenceRegistry: shared by every server node through Redis.
"""

import time
import uuid
from abc import ABC, abstractmethod

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.services.redis_client import FastRedisClient, fast_redis

logger = get_logger(__name__)


class PresenceRegistry(ABC):
    """Interface every presence backend implements."""

    @abstractmethod
    async def register(self, user_id: str, sid: str) -> bool:
        """Record a live connection. Returns True if the user just came online."""

    @abstractmethod
    async def unregister(self, user_id: str, sid: str) -> bool:
        """Forget one connection. Returns True if the user just went offline."""

    @abstractmethod
    async def connections(self, user_id: str) -> list[str]:
        """Live connection ids for a user, most recently registered first."""

    @abstractmethod
    async def online_users(self) -> list[str]:
        """Ids of every user with at least one live connection."""

    async def resolve(self, user_id: str) -> str | None:
        """Most recently registered live connection id, or None when offline."""
        sids = await self.connections(user_id)
        return sids[0] if sids else None

    async def is_online(self, user_id: str) -> bool:
        return await self.resolve(user_id) is not None

    async def heartbeat(self) -> list[str]:
        """
        Refresh this node's liveness and drop connections held by nodes that
        stopped refreshing. Returns the users that went offline as a result.
        """
        return []

    async def release(self) -> list[str]:
        """Drop every connection this node holds. Returns users that went offline."""
        return []


class InMemoryPresenceRegistry(PresenceRegistry):
    """
    Process-local registry.

    Mutations touch a single key without awaiting in between, so they are
    atomic with respect to other tasks on the event loop.
    """

    def __init__(self):
        # user_id -> {sid: None}; dict insertion order tracks registration order
        self._entries: dict[str, dict[str, None]] = {}

    async def register(self, user_id: str, sid: str) -> bool:
        sids = self._entries.get(user_id)
        came_online = not sids

        if sids is None:
            sids = self._entries[user_id] = {}
        sids.pop(sid, None)
        sids[sid] = None

        return came_online

    async def unregister(self, user_id: str, sid: str) -> bool:
        sids = self._entries.get(user_id)
        if not sids or sid not in sids:
            return False

        del sids[sid]
        if sids:
            return False

        del self._entries[user_id]
        return True

    async def connections(self, user_id: str) -> list[str]:
        return list(reversed(self._entries.get(user_id, {})))

    async def online_users(self) -> list[str]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()


class RedisPresenceRegistry(PresenceRegistry):
    """
    Registry shared across server nodes.

    Layout:
        presence:user:{user_id}     -> sorted set of sids scored by connect time
        presence:online             -> set of online user ids
        presence:node:{node}        -> hash sid -> user_id owned by one node
        presence:node:{node}:alive  -> heartbeat key, expires after node_ttl
        presence:nodes              -> set of node ids that own sids

    A node that stops heartbeating (crash, restart) has its sids purged by
    the next surviving node's sweep, so an entry always maps to a live
    connection on a live node within one TTL.
    """

    ONLINE_KEY = "presence:online"
    NODES_KEY = "presence:nodes"
    USER_KEY_PREFIX = "presence:user:"

    def __init__(
        self,
        client: FastRedisClient | None = None,
        node_id: str | None = None,
        node_ttl: int | None = None,
    ):
        self.client = client or fast_redis
        self.node_id = node_id or uuid.uuid4().hex
        self.node_ttl = node_ttl or settings.PRESENCE_NODE_TTL_SECONDS

    def _user_key(self, user_id: str) -> str:
        return f"{self.USER_KEY_PREFIX}{user_id}"

    @staticmethod
    def _node_key(node_id: str) -> str:
        return f"presence:node:{node_id}"

    @classmethod
    def _alive_key(cls, node_id: str) -> str:
        return f"{cls._node_key(node_id)}:alive"

    async def register(self, user_id: str, sid: str) -> bool:
        return await self.client.presence_add(
            self._user_key(user_id),
            self.ONLINE_KEY,
            self._node_key(self.node_id),
            user_id,
            sid,
            time.time(),
        )

    async def unregister(self, user_id: str, sid: str) -> bool:
        return await self.client.presence_remove(
            self._user_key(user_id), self.ONLINE_KEY, self._node_key(self.node_id), user_id, sid
        )

    async def connections(self, user_id: str) -> list[str]:
        return await self.client.zmembers_newest_first(self._user_key(user_id))

    async def online_users(self) -> list[str]:
        return sorted(await self.client.smembers(self.ONLINE_KEY))

    async def heartbeat(self) -> list[str]:
        await self.client.set_expiring(self._alive_key(self.node_id), "1", self.node_ttl)
        await self.client.sadd(self.NODES_KEY, self.node_id)

        offline = []
        for node_id in await self.client.smembers(self.NODES_KEY):
            if node_id == self.node_id or await self.client.exists(self._alive_key(node_id)):
                continue
            purged = await self._purge_node(node_id)
            offline.extend(purged)
            logger.warning("Purged presence of dead node", node_id=node_id, went_offline=purged)
        return offline

    async def release(self) -> list[str]:
        offline = await self._purge_node(self.node_id)
        logger.info("Released node presence", node_id=self.node_id, went_offline=len(offline))
        return offline

    async def _purge_node(self, node_id: str) -> list[str]:
        offline = await self.client.presence_purge_node(
            self._node_key(node_id), self.ONLINE_KEY, self.USER_KEY_PREFIX
        )
        await self.client.srem(self.NODES_KEY, node_id)
        return offline


def build_presence_registry() -> PresenceRegistry:
    """Pick the backend from configuration."""
    if settings.use_redis_presence():
        logger.info("Using Redis presence registry")
        return RedisPresenceRegistry()

    logger.info("Using in-memory presence registry")
    return InMemoryPresenceRegistry()

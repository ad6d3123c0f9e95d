# app/services/redis_client.py
import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool

from app.config import settings
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

# Presence mutations touch the user's sid set, the online set and the owning
# node's sid hash together, so each runs as one script.
# Keys are built inside PURGE_NODE, which requires a single (non-cluster) Redis.
PRESENCE_SCRIPTS = {
    # KEYS: user sids zset, online set, node hash. ARGV: user_id, sid, score
    "add": """
        redis.call('ZADD', KEYS[1], ARGV[3], ARGV[2])
        redis.call('HSET', KEYS[3], ARGV[2], ARGV[1])
        return redis.call('SADD', KEYS[2], ARGV[1])
    """,
    # KEYS: user sids zset, online set, node hash. ARGV: user_id, sid
    "remove": """
        redis.call('HDEL', KEYS[3], ARGV[2])
        if redis.call('ZREM', KEYS[1], ARGV[2]) == 0 then
            return 0
        end
        if redis.call('ZCARD', KEYS[1]) > 0 then
            return 0
        end
        return redis.call('SREM', KEYS[2], ARGV[1])
    """,
    # KEYS: node hash, online set. ARGV: user key prefix
    # Returns the users whose last connection belonged to the node.
    "purge_node": """
        local entries = redis.call('HGETALL', KEYS[1])
        local offline = {}
        for i = 1, #entries, 2 do
            local user_key = ARGV[1] .. entries[i + 1]
            redis.call('ZREM', user_key, entries[i])
            if redis.call('ZCARD', user_key) == 0 then
                if redis.call('SREM', KEYS[2], entries[i + 1]) == 1 then
                    table.insert(offline, entries[i + 1])
                end
            end
        end
        redis.call('DEL', KEYS[1])
        return offline
    """,
}


class FastRedisClient:
    """Pooled async Redis client backing the shared presence registry."""

    def __init__(self, url: str | None = None):
        self.url = url
        self.pool = None
        self.client = None
        self._initialized = False

    @property
    def configured(self) -> bool:
        return bool(self.url or settings.REDIS_URL)

    async def initialize(self):
        """Initialize connection pool on startup"""
        if self._initialized:
            return

        redis_url = self.url or settings.REDIS_URL
        if not redis_url:
            raise RuntimeError("REDIS_URL is not configured")

        try:
            logger.info("Attempting Redis connection", url_preview=redis_url[:30] + "...")

            self.pool = ConnectionPool.from_url(
                redis_url,
                max_connections=20,
                retry_on_timeout=True,
                retry_on_error=[redis.ConnectionError, redis.TimeoutError],
                socket_connect_timeout=10,
                socket_timeout=10,
                health_check_interval=30,
                decode_responses=True,
            )

            self.client = redis.Redis(connection_pool=self.pool)

            result = await self.client.ping()
            logger.info("Redis ping successful", result=result)

            self._initialized = True
            logger.info("Fast Redis client initialized successfully", max_connections=20)

        except Exception as e:
            logger.error("Failed to initialize fast Redis client", error=str(e))
            self._initialized = False
            raise RuntimeError("Redis initialization failed") from e

    async def close(self):
        """Clean shutdown"""
        try:
            if self.client:
                await self.client.aclose()
            if self.pool:
                await self.pool.disconnect()
            self._initialized = False
            logger.info("Fast Redis client closed")
        except Exception as e:
            logger.error("Error closing Redis client", error=str(e))

    async def _ensure_initialized(self):
        """Ensure Redis is initialized, fallback if not"""
        if not self._initialized:
            logger.warning("Redis not initialized, attempting to initialize")
            await self.initialize()

    async def ping(self) -> bool:
        """Test Redis connection"""
        try:
            await self._ensure_initialized()
            return bool(await self.client.ping())
        except Exception as e:
            logger.error("Redis ping failed", error=str(e))
            return False

    async def _run_script(self, name: str, keys: list[str], args: list):
        """Run a presence script. Failures are raised, never masked as a default."""
        await self._ensure_initialized()
        try:
            return await self.client.eval(PRESENCE_SCRIPTS[name], len(keys), *keys, *args)
        except Exception as e:
            logger.error("Redis presence script failed", script=name, error=str(e))
            raise

    async def presence_add(
        self, user_key: str, online_key: str, node_key: str, user_id: str, sid: str, score: float
    ) -> bool:
        """Record a sid for a user and its owning node. True if the user just came online."""
        added = await self._run_script(
            "add", [user_key, online_key, node_key], [user_id, sid, score]
        )
        return bool(added)

    async def presence_remove(
        self, user_key: str, online_key: str, node_key: str, user_id: str, sid: str
    ) -> bool:
        """Drop a sid. True if it was the user's last one."""
        removed = await self._run_script(
            "remove", [user_key, online_key, node_key], [user_id, sid]
        )
        return bool(removed)

    async def presence_purge_node(
        self, node_key: str, online_key: str, user_key_prefix: str
    ) -> list[str]:
        """Drop every sid a node owned. Returns users left without a connection."""
        offline = await self._run_script("purge_node", [node_key, online_key], [user_key_prefix])
        return list(offline or [])

    async def set_expiring(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._ensure_initialized()
        await self.client.set(key, value, ex=ttl_seconds)

    async def exists(self, key: str) -> bool:
        await self._ensure_initialized()
        return bool(await self.client.exists(key))

    async def zmembers_newest_first(self, key: str) -> list[str]:
        try:
            await self._ensure_initialized()
            return list(await self.client.zrevrange(key, 0, -1))
        except Exception as e:
            logger.error("Redis ZREVRANGE failed", key=key[:40], error=str(e))
            return []

    async def sadd(self, key: str, member: str) -> bool:
        await self._ensure_initialized()
        return bool(await self.client.sadd(key, member))

    async def srem(self, key: str, member: str) -> bool:
        await self._ensure_initialized()
        return bool(await self.client.srem(key, member))

    async def smembers(self, key: str) -> set[str]:
        try:
            await self._ensure_initialized()
            return set(await self.client.smembers(key))
        except Exception as e:
            logger.error("Redis SMEMBERS failed", key=key[:40], error=str(e))
            return set()


# Global instance
fast_redis = FastRedisClient()

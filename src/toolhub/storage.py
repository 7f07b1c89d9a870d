"""Key-value store used by the hub.

Every piece of hub state is a string value under a string key. The store
offers plain get/put/delete with optional TTL plus two atomic primitives:
``get_and_delete`` for single-use values and ``compare_and_swap`` for
single-document read-modify-write.
"""

from typing import Protocol

from redis.asyncio import Redis
from redis.exceptions import WatchError
import structlog

logger = structlog.get_logger(__name__)


# Key layout
SERVERS_CONFIG_KEY = "servers:config"


def api_key_key(user_id: str, server_name: str) -> str:
    return f"auth:{user_id}:{server_name}"


def oauth_state_key(state: str) -> str:
    return f"oauth:state:{state}"


def oauth_token_key(user_id: str, service: str) -> str:
    return f"oauth:token:{user_id}:{service}"


def conversation_key(thread_id: str) -> str:
    return f"conversation:{thread_id}"


class KeyValueStore(Protocol):
    """Backing store contract."""

    async def get(self, key: str) -> str | None: ...

    async def put(self, key: str, value: str, ttl_seconds: int | None = None) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def get_and_delete(self, key: str) -> str | None: ...

    async def compare_and_swap(self, key: str, expected: str | None, new: str) -> bool: ...


class RedisKeyValueStore:
    """KeyValueStore over ``redis.asyncio``.

    The client must be created with ``decode_responses=True``.
    """

    def __init__(self, redis: Redis) -> None:
        self.redis = redis

    @classmethod
    def from_url(cls, redis_url: str) -> "RedisKeyValueStore":
        """Create a store with its own connection pool."""
        return cls(Redis.from_url(redis_url, decode_responses=True))

    async def close(self) -> None:
        """Close Redis connection."""
        await self.redis.aclose()
        logger.info("redis_connection_closed")

    async def get(self, key: str) -> str | None:
        return await self.redis.get(key)

    async def put(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        await self.redis.set(key, value, ex=ttl_seconds)

    async def delete(self, key: str) -> None:
        await self.redis.delete(key)

    async def get_and_delete(self, key: str) -> str | None:
        """Atomically read and remove a key (Redis >= 6.2)."""
        return await self.redis.getdel(key)

    async def compare_and_swap(self, key: str, expected: str | None, new: str) -> bool:
        """Write ``new`` only if the key still holds ``expected``.

        ``expected=None`` means the key must not exist. Returns False when
        another writer got there first.
        """
        async with self.redis.pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(key)
                current = await pipe.get(key)
                if current != expected:
                    await pipe.unwatch()
                    return False
                pipe.multi()
                pipe.set(key, new)
                await pipe.execute()
                return True
            except WatchError:
                logger.debug("kv_cas_conflict", key=key)
                return False

import asyncio
from abc import ABC, abstractmethod

from loguru import logger
from redis.asyncio import Redis
from redis.exceptions import RedisError

from gatekeeper.core.config import Settings, settings
from gatekeeper.core.exceptions import CounterStoreError
from gatekeeper.core.utils import Clock, system_clock
from gatekeeper.services.cache.base import create_redis_client

# Count and extend the window in one step; refuse without touching the key
# once the limit is reached.
INCREMENT_IF_BELOW_SCRIPT = """
local current = tonumber(redis.call('GET', KEYS[1]) or '0')
if current >= tonumber(ARGV[1]) then
    return -1
end
current = redis.call('INCR', KEYS[1])
redis.call('EXPIRE', KEYS[1], ARGV[2])
return current
"""


class CounterStore(ABC):
    """
    Key-value store of integer counters with expiry.

    Implementations must make ``increment_if_below`` atomic per key.
    """

    @abstractmethod
    async def get(self, key: str) -> int:
        """Current count, 0 if absent or expired."""

    @abstractmethod
    async def set(self, key: str, value: int, ttl: int) -> None:
        """Store a count that expires after ``ttl`` seconds."""

    @abstractmethod
    async def increment_if_below(self, key: str, limit: int, ttl: int) -> int | None:
        """
        Increment the counter unless it already reached ``limit``.

        On increment the key's TTL is reset to ``ttl``. At the limit nothing
        is written.

        Returns:
            The new count, or None if the limit was already reached
        """

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove a counter. True if it existed."""

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        return None


class MemoryCounterStore(CounterStore):
    """
    Process-local counter store.

    Suitable for tests, local development and single-process deployments.
    Counters are not shared between workers. Expired counters are dropped
    when read and, at most once per ``sweep_interval`` seconds, all at once
    on write.
    """

    def __init__(self, clock: Clock = system_clock, sweep_interval: int = 60):
        self._clock = clock
        self._counters: dict[str, tuple[int, int]] = {}
        self._lock = asyncio.Lock()
        self._sweep_interval = sweep_interval
        self._next_sweep = clock() + sweep_interval

    def __len__(self) -> int:
        return len(self._counters)

    def _current(self, key: str) -> int:
        entry = self._counters.get(key)
        if entry is None:
            return 0

        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._counters[key]
            return 0

        return value

    def _sweep(self) -> None:
        now = self._clock()
        if now < self._next_sweep:
            return

        expired = [key for key, (_, expires_at) in self._counters.items() if now >= expires_at]
        for key in expired:
            del self._counters[key]

        self._next_sweep = now + self._sweep_interval
        if expired:
            logger.debug(f"Dropped {len(expired)} expired rate limit counters")

    async def get(self, key: str) -> int:
        return self._current(key)

    async def set(self, key: str, value: int, ttl: int) -> None:
        self._sweep()
        self._counters[key] = (value, self._clock() + ttl)

    async def increment_if_below(self, key: str, limit: int, ttl: int) -> int | None:
        async with self._lock:
            self._sweep()
            current = self._current(key)
            if current >= limit:
                return None

            current += 1
            self._counters[key] = (current, self._clock() + ttl)
            return current

    async def delete(self, key: str) -> bool:
        return self._counters.pop(key, None) is not None


class RedisCounterStore(CounterStore):
    """
    Redis-backed counter store shared by all workers.

    ``increment_if_below`` runs as a Lua script so the read, compare,
    increment and expire happen atomically on the server.

    Example:
        ```python
        store = RedisCounterStore(app_settings=settings)
        count = await store.increment_if_below("rate_limit:ip:10.0.0.1", 100, 60)
        ```
    """

    def __init__(self, redis_client: Redis | None = None, app_settings: Settings = settings):
        """
        Args:
            redis_client: Client to use. Defaults to one on the shared pool.
            app_settings: Redis connection settings for the default client
        """
        if redis_client is None:
            redis_client = create_redis_client(app_settings)

        self.redis_client = redis_client
        self._increment_script = self.redis_client.register_script(INCREMENT_IF_BELOW_SCRIPT)

    async def get(self, key: str) -> int:
        try:
            value = await self.redis_client.get(key)
        except RedisError as e:
            raise CounterStoreError(f"Counter get failed for key {key}", e)

        return int(value) if value is not None else 0

    async def set(self, key: str, value: int, ttl: int) -> None:
        try:
            await self.redis_client.set(key, value, ex=ttl)
        except RedisError as e:
            raise CounterStoreError(f"Counter set failed for key {key}", e)

    async def increment_if_below(self, key: str, limit: int, ttl: int) -> int | None:
        try:
            result = await self._increment_script(keys=[key], args=[limit, ttl])
        except RedisError as e:
            raise CounterStoreError(f"Counter increment failed for key {key}", e)

        result = int(result)
        return None if result < 0 else result

    async def delete(self, key: str) -> bool:
        try:
            deleted = await self.redis_client.delete(key)
        except RedisError as e:
            raise CounterStoreError(f"Counter delete failed for key {key}", e)

        if deleted:
            logger.info(f"Counter deleted for key {key}")
        return deleted > 0

    async def health_check(self) -> bool:
        try:
            await self.redis_client.ping()
        except RedisError as e:
            logger.error(f"Redis health check failed: {e}")
            return False

        return True

    async def close(self) -> None:
        try:
            await self.redis_client.aclose()
        except RedisError as e:
            logger.error(f"Error closing Redis connection: {e}")
            return

        logger.info("Redis connection closed")

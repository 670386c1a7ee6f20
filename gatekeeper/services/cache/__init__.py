from .base import create_redis_client, get_redis_pool
from .counter_store import CounterStore, MemoryCounterStore, RedisCounterStore
from .rate_limiter import RateLimiter

__all__ = [
    "create_redis_client",
    "get_redis_pool",
    "CounterStore",
    "MemoryCounterStore",
    "RedisCounterStore",
    "RateLimiter",
]

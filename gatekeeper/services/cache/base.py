from loguru import logger
from redis.asyncio import ConnectionPool, Redis

from gatekeeper.core.config import Settings, settings

# Pools by Redis URL, shared by every client in the process
_redis_pools: dict[str, ConnectionPool] = {}


def get_redis_pool(app_settings: Settings = settings) -> ConnectionPool:
    """
    Shared connection pool for the configured Redis URL, created on first use
    """
    url = app_settings.redis_url.human_repr()

    pool = _redis_pools.get(url)
    if pool is None:
        pool = ConnectionPool.from_url(
            url,
            encoding="utf-8",
            decode_responses=False,
            max_connections=app_settings.redis_max_pool_connections,
            retry_on_timeout=True,
            socket_connect_timeout=app_settings.redis_socket_connect_timeout,
            socket_timeout=app_settings.redis_socket_timeout,
        )
        _redis_pools[url] = pool
        logger.info(
            f"Redis connection pool created for {app_settings.redis_host}:"
            f"{app_settings.redis_port} with "
            f"max_connections={app_settings.redis_max_pool_connections}"
        )

    return pool


def create_redis_client(app_settings: Settings = settings) -> Redis:
    """
    Redis client on the shared pool. No connection is made until first use.
    """
    return Redis(connection_pool=get_redis_pool(app_settings))

"""Redis connection factory with Sentinel support.

Used by the Redis-backed usage store and session snapshot store. Two
deployment shapes are supported without code changes:

- standalone Redis (development, docker-compose)
- Redis Sentinel (HA deployments with automatic failover)

Connection parameters come from ``REDIS_*`` environment variables unless
passed explicitly.
"""

import logging
import os
from dataclasses import dataclass
from typing import List, Optional, Tuple

from redis.asyncio import Redis
from redis.asyncio.sentinel import Sentinel

from circuitiq_core.utils import service_startup_retry

logger = logging.getLogger(__name__)

DEFAULT_SENTINEL_PORT = 26379


def _parse_sentinel_hosts(hosts_str: str) -> List[Tuple[str, int]]:
    """Parse a comma-separated ``host:port`` list.

    Example:
        >>> _parse_sentinel_hosts("sentinel1:26379,sentinel2")
        [('sentinel1', 26379), ('sentinel2', 26379)]
    """
    sentinels = []
    for host_port in hosts_str.split(","):
        host_port = host_port.strip()
        if not host_port:
            continue
        if ":" in host_port:
            host, port_str = host_port.rsplit(":", 1)
            sentinels.append((host, int(port_str)))
        else:
            sentinels.append((host_port, DEFAULT_SENTINEL_PORT))
    return sentinels


@dataclass
class RedisConnectionSettings:
    """Where and how to connect to Redis"""

    mode: str = "standalone"  # "standalone" | "sentinel"
    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None
    sentinel_hosts: str = ""
    master_set: str = "mymaster"
    health_check_interval: int = 30

    @classmethod
    def from_env(cls) -> "RedisConnectionSettings":
        """Read ``REDIS_MODE``, ``REDIS_HOST``, ``REDIS_PORT``, ``REDIS_DB``,
        ``REDIS_PASSWORD``, ``REDIS_SENTINEL_HOSTS`` and ``REDIS_MASTER_SET``"""
        return cls(
            mode=os.getenv("REDIS_MODE", "standalone").lower(),
            host=os.getenv("REDIS_HOST", "localhost"),
            port=int(os.getenv("REDIS_PORT", "6379")),
            db=int(os.getenv("REDIS_DB", "0")),
            password=os.getenv("REDIS_PASSWORD") or None,
            sentinel_hosts=os.getenv("REDIS_SENTINEL_HOSTS", ""),
            master_set=os.getenv("REDIS_MASTER_SET", "mymaster"),
        )


def build_redis_client(settings: RedisConnectionSettings) -> Redis:
    """Create (but do not verify) an async Redis client.

    Raises:
        ValueError: Sentinel mode without any sentinel host
    """
    if settings.mode == "sentinel":
        sentinels = _parse_sentinel_hosts(settings.sentinel_hosts)
        if not sentinels:
            raise ValueError(
                "REDIS_SENTINEL_HOSTS must list at least one host:port for Sentinel mode"
            )

        logger.info(f"Connecting to Redis Sentinel: master={settings.master_set}, sentinels={sentinels}")
        sentinel = Sentinel(
            sentinels,
            sentinel_kwargs={"password": settings.password} if settings.password else {},
            socket_keepalive=True,
            health_check_interval=settings.health_check_interval,
        )
        # master_for follows failover transparently
        return sentinel.master_for(
            settings.master_set,
            db=settings.db,
            password=settings.password,
            decode_responses=True,
            socket_keepalive=True,
            health_check_interval=settings.health_check_interval,
        )

    logger.info(f"Connecting to standalone Redis: {settings.host}:{settings.port}/{settings.db}")
    return Redis(
        host=settings.host,
        port=settings.port,
        db=settings.db,
        password=settings.password,
        decode_responses=True,
        socket_keepalive=True,
        health_check_interval=settings.health_check_interval,
        socket_connect_timeout=5,
    )


@service_startup_retry
async def _verify_redis_connection(client: Redis) -> None:
    await client.ping()
    logger.info("Redis connection verified")


async def get_redis_client(settings: Optional[RedisConnectionSettings] = None) -> Redis:
    """Create an async Redis client and verify it answers ``PING``.

    Args:
        settings: Connection settings (default: from ``REDIS_*`` env vars)

    Returns:
        Verified async Redis client (``decode_responses=True``)

    Raises:
        ValueError: Invalid Sentinel configuration
        redis.exceptions.ConnectionError: Redis unreachable after retries
    """
    settings = settings or RedisConnectionSettings.from_env()
    client = build_redis_client(settings)
    await _verify_redis_connection(client)
    return client

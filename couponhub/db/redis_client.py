from __future__ import annotations

import redis
from redis.backoff import NoBackoff
from redis.exceptions import RedisError
from redis.retry import Retry

from couponhub.core.config import get_settings


def build_redis_client(redis_url: str, *, timeout_seconds: float | None = None) -> redis.Redis:
    """Client without internal retries; callers decide whether a Redis failure is fatal."""
    return redis.Redis.from_url(
        redis_url,
        socket_connect_timeout=timeout_seconds,
        socket_timeout=timeout_seconds,
        retry_on_timeout=False,
        retry=Retry(NoBackoff(), 0),
    )


def get_redis_client() -> redis.Redis | None:
    """Startup probe: a live client when submission throttling needs Redis, else None."""
    settings = get_settings()
    if settings.app_env.lower() == "test" or not settings.rate_limit_enabled:
        return None
    client = build_redis_client(settings.redis_url, timeout_seconds=1.0)
    try:
        client.ping()
    except RedisError as exc:
        raise RuntimeError(f"Redis unavailable at {settings.redis_url}; disable RATE_LIMIT_ENABLED or start Redis") from exc
    return client

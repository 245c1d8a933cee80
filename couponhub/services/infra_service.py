from __future__ import annotations

import logging

from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from couponhub.core.config import get_settings
from couponhub.db.redis_client import build_redis_client
from couponhub.db.session import session_scope

REDIS_HEALTHCHECK_TIMEOUT_SECONDS = 0.2
logger = logging.getLogger("couponhub.api.health")


def db_connected() -> bool:
    try:
        with session_scope() as db:
            db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.warning("database health probe failed", exc_info=True)
        return False
    return True


def redis_connected() -> bool:
    """Only meaningful when submission throttling is on; tests never touch Redis."""
    settings = get_settings()
    if settings.app_env.lower() == "test":
        return False
    client = build_redis_client(settings.redis_url, timeout_seconds=REDIS_HEALTHCHECK_TIMEOUT_SECONDS)
    try:
        return bool(client.ping())
    except RedisError:
        logger.warning("redis health probe failed", extra={"operation": "health"})
        return False
    finally:
        client.close()

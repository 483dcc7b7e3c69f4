"""Utility modules."""

from app.utils.db import engine, get_db, get_db_session
from app.utils.redis_client import get_redis

__all__ = [
    "engine",
    "get_db",
    "get_db_session",
    "get_redis",
]

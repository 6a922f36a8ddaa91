"""
Инфраструктурный слой: PostgreSQL, Redis, RabbitMQ.
"""

from roadside.infra.database import DatabaseManager, get_db
from roadside.infra.redis_client import RedisClient, get_redis
from roadside.infra.event_bus import EventBus, get_event_bus

__all__ = [
    "DatabaseManager",
    "get_db",
    "RedisClient",
    "get_redis",
    "EventBus",
    "get_event_bus",
]

from roadside.services.realtime.connection_manager import ConnectionInfo, ConnectionManager, manager
from roadside.services.realtime.redis_subscriber import RedisSubscriber, channel_user_id, forward_to_connections

__all__ = [
    "ConnectionInfo",
    "ConnectionManager",
    "RedisSubscriber",
    "channel_user_id",
    "forward_to_connections",
    "manager",
]

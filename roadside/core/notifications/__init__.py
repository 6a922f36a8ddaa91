from roadside.core.notifications.bus import USER_CHANNEL_PREFIX, NotificationBus, encode_event, user_channel

__all__ = ["USER_CHANNEL_PREFIX", "NotificationBus", "encode_event", "user_channel"]

from roadside.core.presence.directory import ONLINE_WORKERS_KEY, WORKER_LOCATIONS_KEY, PresenceDirectory

__all__ = ["ONLINE_WORKERS_KEY", "WORKER_LOCATIONS_KEY", "PresenceDirectory"]

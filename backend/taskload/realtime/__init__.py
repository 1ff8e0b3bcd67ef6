"""Real-time relay over WebSockets."""

from taskload.realtime.manager import ConnectionManager, manager

__all__ = ["ConnectionManager", "manager"]

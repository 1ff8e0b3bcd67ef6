"""TaskLoad backend: task and project management API with a realtime relay."""

__version__ = "0.1.0"

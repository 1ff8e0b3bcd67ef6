"""Middleware package."""

from taskload.middleware.logging import LoggingMiddleware
from taskload.middleware.request_id import RequestIDMiddleware

__all__ = ["LoggingMiddleware", "RequestIDMiddleware"]

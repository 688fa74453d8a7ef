"""
Middleware
Custom middleware for the FastAPI application.
"""

from .logging import RequestLoggingMiddleware
from .timing import RequestTimingMiddleware

__all__ = [
    "RequestLoggingMiddleware",
    "RequestTimingMiddleware",
]

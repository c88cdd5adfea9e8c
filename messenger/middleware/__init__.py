"""
Middleware components for request processing.
"""

from messenger.middleware.request_context import RequestContextMiddleware

__all__ = ["RequestContextMiddleware"]

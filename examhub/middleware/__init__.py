"""
Middleware package for request/response processing.
"""
from .request_logging import RequestLoggingMiddleware
from .security import RequestSizeLimitMiddleware, SecurityHeadersMiddleware

__all__ = [
    "RequestLoggingMiddleware",
    "RequestSizeLimitMiddleware",
    "SecurityHeadersMiddleware",
]

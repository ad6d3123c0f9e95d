"""
Middleware components for request processing.

- Request context (request ID bound into every log line, access log)
- CORS for browser clients of the REST API
"""

from app.middleware.cors import CORSMiddleware
from app.middleware.request_context import RequestContextMiddleware

__all__ = [
    "RequestContextMiddleware",
    "CORSMiddleware",
]

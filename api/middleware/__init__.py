from .request_id import RequestIDMiddleware, resolve_client_id
from .logging import LoggingMiddleware
from .cors import CORSHeadersMiddleware
from .error_boundary import ErrorBoundaryMiddleware
from .rate_limit import RateLimitMiddleware

__all__ = [
    "RequestIDMiddleware",
    "LoggingMiddleware",
    "CORSHeadersMiddleware",
    "ErrorBoundaryMiddleware",
    "RateLimitMiddleware",
    "resolve_client_id",
]

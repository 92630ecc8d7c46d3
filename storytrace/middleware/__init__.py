from .correlation import CorrelationIdMiddleware, get_correlation_id
from .cors import CorsHeadersMiddleware, CORS_HEADERS
from .error_handler import ErrorHandlerMiddleware
from .metrics import MetricsMiddleware
from .validation import BodySizeLimitMiddleware

__all__ = [
    "BodySizeLimitMiddleware",
    "CORS_HEADERS",
    "CorrelationIdMiddleware",
    "CorsHeadersMiddleware",
    "ErrorHandlerMiddleware",
    "MetricsMiddleware",
    "get_correlation_id",
]

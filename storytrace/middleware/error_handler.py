"""Structured error response middleware."""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
import structlog

from ..api.responses import error_response
from ..errors import PayloadTooLarge, TraceError
from .correlation import get_correlation_id

log = structlog.get_logger()


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Turns every escaping exception into a JSON error body."""

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except PayloadTooLarge as exc:
            log.warning(
                "payload.too_large",
                max_size=exc.max_size,
                path=request.url.path,
                correlation_id=get_correlation_id(),
            )
            return error_response(exc.status_code, exc.code, max_size=exc.max_size)
        except TraceError as exc:
            log.error(
                "trace.request_failed",
                error=str(exc),
                code=exc.code,
                path=request.url.path,
                correlation_id=get_correlation_id(),
            )
            return error_response(exc.status_code, exc.code)
        except Exception as exc:
            log.error(
                "unhandled.exception",
                error=str(exc),
                error_type=exc.__class__.__name__,
                path=request.url.path,
                correlation_id=get_correlation_id(),
                exc_info=True,
            )
            return error_response(500, "internal_error")

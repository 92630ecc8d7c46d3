"""Request size validation."""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
import structlog

from ..api.responses import error_response

log = structlog.get_logger()


class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    """
    Rejects requests whose declared ``content-length`` exceeds the limit.

    Bodies without a usable header (chunked uploads) are still capped while
    streaming in :func:`storytrace.api.router.read_body`.
    """

    def __init__(self, app, max_size: int):
        super().__init__(app)
        self.max_size = max_size

    async def dispatch(self, request: Request, call_next):
        if request.method in ("POST", "PUT", "PATCH"):
            content_length = request.headers.get("content-length", "")
            if content_length.isdigit() and int(content_length) > self.max_size:
                log.warning(
                    "payload.too_large",
                    size=int(content_length),
                    max_size=self.max_size,
                    path=request.url.path,
                )
                return error_response(
                    413,
                    "payload_too_large",
                    max_size=self.max_size,
                    received_size=int(content_length),
                )

        return await call_next(request)

"""Cross-origin headers, pre-flight handling and path normalization."""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

CORS_HEADERS = {
    "access-control-allow-origin": "*",
    "access-control-allow-methods": "GET,POST,OPTIONS",
    "access-control-allow-headers": "content-type",
    "cache-control": "no-store",
}


class CorsHeadersMiddleware(BaseHTTPMiddleware):
    """
    Outermost middleware of the app.

    - Strips trailing slashes so ``/stats/`` routes like ``/stats``
    - Answers every OPTIONS request with an empty 204
    - Stamps permissive CORS and ``cache-control: no-store`` on all responses
    """

    async def dispatch(self, request: Request, call_next):
        path = request.scope["path"]
        stripped = path.rstrip("/") or "/"
        if stripped != path:
            request.scope["path"] = stripped

        if request.method == "OPTIONS":
            return Response(status_code=204, headers=CORS_HEADERS)

        response = await call_next(request)
        response.headers.update(CORS_HEADERS)
        return response

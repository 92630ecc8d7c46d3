"""JSON response class shared by every route and error path."""
from typing import Any

import orjson
from fastapi.responses import JSONResponse


class TraceJSONResponse(JSONResponse):
    """orjson-rendered JSON with an explicit utf-8 charset."""

    media_type = "application/json; charset=utf-8"

    def render(self, content: Any) -> bytes:
        return orjson.dumps(content)


def error_response(status_code: int, code: str, **extra: Any) -> TraceJSONResponse:
    """Structured error body: ``{"ok": false, "error": code, ...}``."""
    return TraceJSONResponse(status_code=status_code, content={"ok": False, "error": code, **extra})

"""Error taxonomy for the trace service.

Only boundary failures live here. Malformed input never raises; it is
degraded to defaults by the sanitizer and the normalizer instead.
"""


class TraceError(Exception):
    """Base class for errors that reach the HTTP layer."""

    status_code = 500
    code = "trace_error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.code)


class PayloadTooLarge(TraceError):
    """Request body exceeded the configured size limit."""

    status_code = 413
    code = "payload_too_large"

    def __init__(self, max_size: int, received_size: int | None = None):
        super().__init__(f"Request payload exceeds maximum size of {max_size} bytes")
        self.max_size = max_size
        self.received_size = received_size


class TraceWriteFailed(TraceError):
    """Appending to the event log or replacing the snapshot failed."""

    status_code = 500
    code = "trace_write_failed"

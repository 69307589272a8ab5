"""
Shared error handling for the Geo Gateway.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel
from opentelemetry import trace


class ErrorResponse(BaseModel):
    """Standard error response format."""

    trace_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class GeoGatewayError(Exception):
    """Base exception for Geo Gateway services."""

    status_code: int = 500

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        # Get trace ID from current span
        trace_id = None
        current_span = trace.get_current_span()
        if current_span and current_span.is_recording():
            span_context = current_span.get_span_context()
            if span_context.trace_id != 0:
                trace_id = f"{span_context.trace_id:032x}"

        return ErrorResponse(
            trace_id=trace_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class MisconfiguredError(GeoGatewayError):
    """Required service configuration is missing."""

    status_code = 500

    def __init__(self, message: str = "Service is misconfigured", details: Optional[Dict[str, Any]] = None):
        super().__init__("MISCONFIGURED", message, details)


class BadInputError(GeoGatewayError):
    """Caller supplied an invalid request."""

    status_code = 400

    def __init__(self, message: str = "Invalid input", details: Optional[Dict[str, Any]] = None):
        super().__init__("BAD_INPUT", message, details)


class UpstreamError(GeoGatewayError):
    """
    Geolocation provider failure.

    Subclasses stay distinguishable for logging and metrics through ``kind``,
    but all of them surface as 502 to the caller.
    """

    status_code = 502
    kind = "upstream_error"

    def __init__(
        self,
        message: str = "Provider returned error",
        details: Optional[Dict[str, Any]] = None,
        code: str = "UPSTREAM_ERROR",
    ):
        super().__init__(code, message, details)


class UpstreamUnreachableError(UpstreamError):
    """Provider request could not be sent."""

    kind = "unreachable"

    def __init__(self, message: str = "Provider request failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details, code="UPSTREAM_UNREACHABLE")


class UpstreamStatusError(UpstreamError):
    """Provider answered with a non-success status."""

    kind = "bad_status"

    def __init__(self, status_code: int, message: str = "Provider returned error", details: Optional[Dict[str, Any]] = None):
        details = dict(details or {})
        details.setdefault("upstream_status", status_code)
        super().__init__(message, details, code="UPSTREAM_ERROR")


class UpstreamReadError(UpstreamError):
    """Provider response body could not be read."""

    kind = "read_failure"

    def __init__(self, message: str = "Provider read failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details, code="UPSTREAM_READ_FAILURE")

"""
Error taxonomy for the Gripp Hours Service.

Empty results (no contract, no cache entry, no absences) are never errors.
Only connectivity problems and malformed input are raised.
"""

from typing import Optional


class GrippHoursError(Exception):
    """Base class for all service errors."""


class ValidationError(GrippHoursError):
    """Malformed period or missing identifiers. Raised before any I/O."""


class StoreUnavailableError(GrippHoursError):
    """The local store could not be reached. Never retried."""


class RequestCancelledError(GrippHoursError):
    """The caller cancelled an upstream request."""


class UpstreamError(GrippHoursError):
    """Base class for failures talking to the Gripp API."""


class TransientUpstreamError(UpstreamError):
    """HTTP 503 or a transport/network error. Retried by the request queue."""


class RateLimitedError(UpstreamError):
    """HTTP 429. Retried with exponential backoff, honoring Retry-After."""

    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class UpstreamApplicationError(UpstreamError):
    """A well-formed error envelope returned by the API. Not retried."""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = code


class UpstreamHTTPError(UpstreamError):
    """Any other non-2xx response. Not retried."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


class InvalidUpstreamResponseError(UpstreamError):
    """The response body was not a JSON-RPC response array."""

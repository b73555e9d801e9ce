"""
Error taxonomy for CareerTrack.

Every failure the controllers deal with is one of three kinds:
- ValidationError: a required field is missing, caught before any request
- TransportError: the request never got a response (connection, timeout)
- UpstreamError: the backend answered with a failure

Controllers never let these escape; they turn them into an ErrorReport
and store it in their error slot.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

import httpx
from pydantic import BaseModel, Field


class ErrorKind(str, Enum):
    """Classification of a reported error."""

    VALIDATION = "validation"
    TRANSPORT = "transport"
    UPSTREAM = "upstream"


class CareerTrackError(Exception):
    """Base class for all classified errors."""

    kind: ErrorKind = ErrorKind.UPSTREAM

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CareerTrackError):
    """A draft failed client-side validation."""

    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class TransportError(CareerTrackError):
    """The request failed or timed out before a response arrived."""

    kind = ErrorKind.TRANSPORT


class UpstreamError(CareerTrackError):
    """The backend returned a failure status or an unusable payload."""

    kind = ErrorKind.UPSTREAM

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ErrorReport(BaseModel):
    """What a controller surfaces in its current-error slot."""

    kind: ErrorKind
    message: str
    field: Optional[str] = None
    operation: Optional[str] = None
    job_id: Optional[str] = None
    occurred_at: datetime = Field(default_factory=datetime.utcnow)

    @classmethod
    def from_error(cls, error: CareerTrackError, operation: Optional[str] = None,
                   job_id: Optional[str] = None) -> "ErrorReport":
        return cls(
            kind=error.kind,
            message=error.message,
            field=getattr(error, "field", None),
            operation=operation,
            job_id=job_id,
        )


def classify_error(exc: Exception) -> CareerTrackError:
    """
    Map an arbitrary exception onto the taxonomy.

    httpx timeouts and connection problems become TransportError, HTTP
    status errors become UpstreamError; anything unknown is treated as an
    upstream failure so callers always get a CareerTrackError.
    """
    if isinstance(exc, CareerTrackError):
        return exc
    if isinstance(exc, httpx.TimeoutException):
        return TransportError(f"Request timed out: {exc}")
    if isinstance(exc, httpx.TransportError):
        return TransportError(f"Request failed: {exc}")
    if isinstance(exc, httpx.HTTPStatusError):
        return UpstreamError(
            f"Backend returned {exc.response.status_code}",
            status_code=exc.response.status_code
        )
    return UpstreamError(str(exc) or exc.__class__.__name__)

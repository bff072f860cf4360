"""
Error Taxonomy and Classification

Every failure that leaves the gateway is a GatewayError carrying one
NormalizedError. Inside the package, components signal failures with the
small exception types below; the gateway converts them, and adapter-extracted
VenueErrorPayloads, into NormalizedError through classify(). That function is
the only place a NormalizedError is built.

ERROR KINDS:
    VALIDATION          caller-fixable, never sent to the network
    AUTH                bad or missing credentials
    RATE_LIMIT          venue throttling, caller may back off and retry
    INSUFFICIENT_FUNDS  balance too low for the order
    SYMBOL_NOT_FOUND    unknown trading pair
    ORDER_NOT_FOUND     unknown order id / client order id
    TRANSPORT           network failure or timeout (retryable for reads only)
    VENUE_REJECTED      any other venue-side rejection, venue code preserved
    UNKNOWN             malformed response, fatal for the call
"""

from enum import Enum
from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ErrorKind(str, Enum):
    """Canonical error categories shared by all venues."""

    VALIDATION = "VALIDATION"
    AUTH = "AUTH"
    RATE_LIMIT = "RATE_LIMIT"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    SYMBOL_NOT_FOUND = "SYMBOL_NOT_FOUND"
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
    TRANSPORT = "TRANSPORT"
    VENUE_REJECTED = "VENUE_REJECTED"
    UNKNOWN = "UNKNOWN"


RETRYABLE_KINDS = frozenset({ErrorKind.TRANSPORT, ErrorKind.RATE_LIMIT})


# ============================================
# Canonical Error Model
# ============================================

class NormalizedError(BaseModel):
    """
    Venue-agnostic error returned to callers.

    Attributes:
        kind: Canonical error category
        venue_code: Original venue error code (e.g. "-2010", "INSUFFICIENT_FUND"),
                    kept as a string for diagnostics
        message: Human-readable description
        venue: Venue the call was addressed to (None for pre-routing failures)
        http_status: HTTP status of the venue response, when there was one
    """

    model_config = ConfigDict(frozen=True)

    kind: ErrorKind
    venue_code: Optional[str] = None
    message: str = ""
    venue: Optional[str] = None
    http_status: Optional[int] = None

    @property
    def retryable(self) -> bool:
        """True for kinds a caller may retry (reads only for TRANSPORT)."""
        return self.kind in RETRYABLE_KINDS

    def __str__(self) -> str:
        code = f" ({self.venue_code})" if self.venue_code is not None else ""
        venue = f"{self.venue} " if self.venue else ""
        return f"[{self.kind.value}] {venue}{self.message}{code}"


class GatewayError(Exception):
    """
    The only exception type raised by OrderGateway operations.

    Example:
        >>> try:
        ...     await gateway.submit_order("binance", request, creds)
        ... except GatewayError as e:
        ...     if e.kind is ErrorKind.RATE_LIMIT:
        ...         ...
    """

    def __init__(self, error: NormalizedError):
        self.error = error
        super().__init__(str(error))

    @property
    def kind(self) -> ErrorKind:
        return self.error.kind


# ============================================
# Internal Failure Signals
# ============================================

class RequestValidationError(ValueError):
    """A request field is missing, malformed or unsupported by the venue."""

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"{field}: {reason}")


class SigningError(Exception):
    """Credentials unusable for signing (e.g. empty secret)."""


class TransportError(Exception):
    """Network failure, timeout or cancellation inside the HTTP executor."""


class MalformedResponseError(Exception):
    """A venue response is missing required fields or has an unexpected shape."""

    def __init__(self, reason: str, raw: Any = None):
        self.reason = reason
        self.raw = raw
        super().__init__(reason)


class VenueErrorPayload(BaseModel):
    """
    Raw error fields an adapter extracted from a venue response.

    Adapters return this instead of building a NormalizedError, so the
    taxonomy mapping happens in exactly one place (classify()).
    """

    model_config = ConfigDict(frozen=True)

    venue: str
    code: Optional[str] = None
    message: str = ""
    details: Optional[str] = None
    http_status: Optional[int] = None
    extra: Mapping[str, Any] = Field(default_factory=dict)


# ============================================
# Classification
# ============================================

def _kind_for_status(http_status: Optional[int]) -> ErrorKind:
    if http_status in (401, 403):
        return ErrorKind.AUTH
    if http_status == 404:
        return ErrorKind.ORDER_NOT_FOUND
    if http_status in (418, 429):
        return ErrorKind.RATE_LIMIT
    if http_status is not None and http_status >= 500:
        return ErrorKind.TRANSPORT
    return ErrorKind.VENUE_REJECTED


def classify(
    failure: Union[VenueErrorPayload, Exception],
    venue: Optional[str] = None,
    code_kinds: Optional[Mapping[str, ErrorKind]] = None,
) -> NormalizedError:
    """
    Map any failure into a NormalizedError.

    Venue payloads are classified by their venue code first (using the
    adapter's code table), then by HTTP status. Internal failure signals map
    directly onto their kind.

    Args:
        failure: VenueErrorPayload or one of the internal failure exceptions
        venue: Venue the call was addressed to
        code_kinds: Venue error code -> ErrorKind table (VenueAdapter.error_kinds)

    Returns:
        NormalizedError
    """
    if isinstance(failure, VenueErrorPayload):
        kind = None
        if failure.code is not None and code_kinds:
            kind = code_kinds.get(str(failure.code))
        if kind is None and failure.details and code_kinds:
            kind = code_kinds.get(failure.details)
        if kind is None:
            kind = _kind_for_status(failure.http_status)

        message = failure.message or failure.details or "venue rejected the request"
        return NormalizedError(
            kind=kind,
            venue_code=str(failure.code) if failure.code is not None else None,
            message=message,
            venue=failure.venue,
            http_status=failure.http_status,
        )

    if isinstance(failure, RequestValidationError):
        return NormalizedError(kind=ErrorKind.VALIDATION, message=str(failure), venue=venue)

    if isinstance(failure, SigningError):
        return NormalizedError(kind=ErrorKind.AUTH, message=str(failure), venue=venue)

    if isinstance(failure, TransportError):
        return NormalizedError(kind=ErrorKind.TRANSPORT, message=str(failure) or "transport failure", venue=venue)

    if isinstance(failure, MalformedResponseError):
        return NormalizedError(kind=ErrorKind.UNKNOWN, message=f"malformed response: {failure.reason}", venue=venue)

    return NormalizedError(
        kind=ErrorKind.UNKNOWN,
        message=f"{type(failure).__name__}: {failure}",
        venue=venue,
    )

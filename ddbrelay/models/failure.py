"""
Failure taxonomy for the relay.

Every error that reaches a client is a KnownError subclass rendered into the
uniform ErrorResponse shape: {"error": <title>, "message": <explanation>}.

Classification:
- CredentialValidation: malformed/missing request input, never touches the network (400)
- CredentialInvalid: the platform rejected the session credential (401)
- RateLimited: sliding window cap exceeded (429)
- UpstreamUnavailable: platform unreachable or non-2xx (500)
- UpstreamTimeout: platform did not answer in time (504)
- UnsupportedEndpoint: no platform equivalent, caller uses static fallback (500)

AUTHORITY BOUNDARY:
Lower layers raise these exceptions. Only the API layer turns them into
responses (see ddbrelay.main exception handlers).
"""

from enum import Enum

from pydantic import BaseModel, Field


class FailureKind(str, Enum):
    """Classification of failure types."""

    # Input validation failures
    INVALID_INPUT = "invalid_input"
    MISSING_REQUIRED = "missing_required"

    # Credential failures
    CREDENTIAL_INVALID = "credential_invalid"

    # Constraint violations
    RATE_LIMITED = "rate_limited"

    # Service failures
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    UPSTREAM_TIMEOUT = "upstream_timeout"
    UNSUPPORTED_ENDPOINT = "unsupported_endpoint"

    # Unknown
    UNKNOWN = "unknown"


class ErrorResponse(BaseModel):
    """Uniform error body returned by every failing endpoint."""

    error: str = Field(..., description="Short error title")
    message: str = Field(..., description="Explanation of what went wrong")


class KnownError(Exception):
    """
    Base class for exceptions that represent known, explainable failures.

    Subclass this for errors where the system knows exactly what went wrong.
    """

    def __init__(
        self,
        kind: FailureKind,
        error: str,
        message: str,
        status_code: int = 400,
    ):
        self.kind = kind
        self.error = error
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to an ErrorResponse."""
        return ErrorResponse(error=self.error, message=self.message)


class CredentialValidationError(KnownError):
    """Session credential missing or outside sane bounds."""

    def __init__(self, error: str, message: str, missing: bool = False):
        super().__init__(
            kind=FailureKind.MISSING_REQUIRED if missing else FailureKind.INVALID_INPUT,
            error=error,
            message=message,
            status_code=400,
        )


class CredentialInvalidError(KnownError):
    """
    The platform rejected the session credential.

    User-actionable: the credential must be re-acquired.
    """

    def __init__(self, message: str = "Invalid or expired Cobalt cookie"):
        super().__init__(
            kind=FailureKind.CREDENTIAL_INVALID,
            error="Authentication failed",
            message=message,
            status_code=401,
        )


class RateLimitExceededError(KnownError):
    """Per-address sliding window cap exceeded."""

    def __init__(
        self,
        address_hash: str,
        limit: int,
        window_seconds: float,
        reset_seconds: int = 0,
    ):
        self.address_hash = address_hash
        self.limit = limit
        self.window_seconds = window_seconds
        self.reset_seconds = reset_seconds
        super().__init__(
            kind=FailureKind.RATE_LIMITED,
            error="Too many requests",
            message="Please wait before making more requests.",
            status_code=429,
        )


class UpstreamUnavailableError(KnownError):
    """
    Network failure or non-2xx response from the platform.

    Retryable by the caller, who may fall back to static content.
    """

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(
            kind=FailureKind.UPSTREAM_UNAVAILABLE,
            error="API request failed",
            message=message,
            status_code=status_code,
        )


class UpstreamTimeoutError(UpstreamUnavailableError):
    """The platform did not respond within the request timeout."""

    def __init__(
        self,
        message: str = "Request timeout - D&D Beyond is taking too long to respond",
    ):
        super().__init__(message=message, status_code=504)
        self.kind = FailureKind.UPSTREAM_TIMEOUT


class UnsupportedEndpointError(KnownError):
    """The platform has no equivalent endpoint; use the static fallback."""

    def __init__(self, endpoint: str):
        self.endpoint = endpoint
        super().__init__(
            kind=FailureKind.UNSUPPORTED_ENDPOINT,
            error="Unsupported endpoint",
            message=(
                f"The {endpoint} endpoint is not available from D&D Beyond. "
                "Use the bundled static data instead."
            ),
            status_code=500,
        )

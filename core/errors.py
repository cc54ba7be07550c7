"""
Error Taxonomy

Every failure raised by the registry client, the authentication engine and
the session gate is one of the exceptions below. Raw httpx exceptions are
converted at the client boundary and never reach presentation code.

    FaceGateError
    ├── PreconditionError       caller misuse (no identities, wrong state)
    ├── ValidationError         bad local input, raised before any network call
    ├── CaptureError            the capture provider could not produce an image
    ├── NetworkError            transport failure or timeout
    ├── ServerError             4xx/5xx from the backend
    ├── ContractViolation       response shape does not match the wire contract
    └── ReauthenticationRequired  gate refused a protected action
"""

from typing import Optional


class FaceGateError(Exception):
    """Base class for all face gate errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class PreconditionError(FaceGateError):
    """An operation was invoked in a state where it is not allowed."""


class ValidationError(FaceGateError):
    """Local input was rejected before any request was sent."""


class CaptureError(FaceGateError):
    """The image capture provider failed to yield a payload."""


class NetworkError(FaceGateError):
    """The backend could not be reached or did not answer in time."""


class ServerError(FaceGateError):
    """
    The backend answered with a 4xx/5xx status.

    Attributes:
        code: HTTP status code.
        detail: Diagnostic reason from the backend, if it sent one
                (e.g. "Failed to extract embedding: no face detected").
    """

    def __init__(self, code: int, detail: Optional[str] = None):
        message = f"Server returned {code}"
        if detail:
            message += f": {detail}"
        super().__init__(message)
        self.code = code
        self.detail = detail


class ContractViolation(FaceGateError):
    """The backend response does not match the expected shape."""


class ReauthenticationRequired(FaceGateError):
    """A protected action was attempted without a valid session."""

"""
Classified API errors.

Every failed call through the access layer surfaces as exactly one ApiError
carrying a kind tag, a human-readable message and, when the server answered,
its status code and payload.
"""
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union


class ErrorKind(str, Enum):
    """Kind tags produced by the access layer."""
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    SERVER_ERROR = "SERVER_ERROR"
    TIMEOUT = "TIMEOUT"
    NETWORK_ERROR = "NETWORK_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


# Default messages when the server does not supply one
DEFAULT_MESSAGES: Dict[ErrorKind, str] = {
    ErrorKind.UNAUTHORIZED: "Authentication failed",
    ErrorKind.FORBIDDEN: "Access forbidden",
    ErrorKind.NOT_FOUND: "Resource not found",
    ErrorKind.VALIDATION_ERROR: "Validation failed",
    ErrorKind.RATE_LIMIT_EXCEEDED: "Too many requests. Please try again later.",
    ErrorKind.SERVER_ERROR: "Server error. Please try again later.",
    ErrorKind.TIMEOUT: "Request timeout. Please check your connection.",
    ErrorKind.NETWORK_ERROR: "Network error. Please check your connection.",
    ErrorKind.UNKNOWN_ERROR: "An unexpected error occurred",
}


class ApiError(Exception):
    """
    Normalized failure of an API call.

    ``kind`` is an ErrorKind value for access-layer failures, or a
    facade-specific tag string (e.g. ``BLOG_NOT_FOUND``).
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        kind: Union[ErrorKind, str] = ErrorKind.UNKNOWN_ERROR,
        data: Any = None,
    ):
        self.message = message
        self.status_code = status_code
        self.kind = kind.value if isinstance(kind, ErrorKind) else kind
        self.data = data
        super().__init__(self.message)

    def is_kind(self, *kinds: Union[ErrorKind, str]) -> bool:
        names = {k.value if isinstance(k, ErrorKind) else k for k in kinds}
        return self.kind in names

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "status_code": self.status_code,
            "kind": self.kind,
            "data": self.data,
        }

    def __repr__(self) -> str:
        return f"ApiError(kind={self.kind!r}, status_code={self.status_code!r}, message={self.message!r})"


def server_message(payload: Any) -> Optional[str]:
    """Pick the ``message`` or ``error`` string out of a JSON error body."""
    if not isinstance(payload, Mapping):
        return None
    for field in ("message", "error"):
        value = payload.get(field)
        if isinstance(value, str) and value:
            return value
    return None

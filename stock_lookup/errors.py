"""
Error taxonomy for the stock lookup service.

Every failure that reaches the response layer is a ServiceError carrying a
stable ErrorCode and HTTP status.
"""

from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCode(str, Enum):
    """Stable error codes exposed in the error envelope."""
    VALIDATION_ERROR = "VALIDATION_ERROR"
    PRODUCT_NOT_FOUND = "PRODUCT_NOT_FOUND"
    OMIE_API_ERROR = "OMIE_API_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    UNSUPPORTED_MEDIA_TYPE = "UNSUPPORTED_MEDIA_TYPE"
    REQUEST_TOO_LARGE = "REQUEST_TOO_LARGE"
    RATE_LIMIT_ERROR = "RATE_LIMIT_ERROR"
    NOT_FOUND = "NOT_FOUND"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"


class ServiceError(Exception):
    """
    The only error shape allowed to cross into the controller/view layer.

    Args:
        message: Human readable message sent as ``error`` in the envelope
        http_status: HTTP status of the response
        code: Stable error code
        details: Per-field validation failures (VALIDATION_ERROR only)
        extra: Additional envelope fields (e.g. ``retryAfter``)
        headers: Additional response headers (e.g. ``Retry-After``)
    """

    def __init__(
        self,
        message: str,
        http_status: int = 500,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[List[Any]] = None,
        extra: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ):
        super().__init__(message)
        self.message = message
        self.http_status = http_status
        self.code = code
        self.details = details
        self.extra = extra or {}
        self.headers = headers or {}

    def __repr__(self) -> str:
        return f"ServiceError({self.http_status}, {self.code.value}, {self.message!r})"


class ConfigurationError(RuntimeError):
    """Raised at construction time when required configuration is missing."""

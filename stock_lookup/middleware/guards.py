"""
Request guards applied before any product route runs.

Each guard either returns quietly or raises the ServiceError that should be
sent back to the client.
"""

import logging
from typing import Optional, Sequence

from fastapi import Request

from stock_lookup.core.rate_limiter import UNKNOWN_CLIENT, SlidingWindowRateLimiter
from stock_lookup.errors import ErrorCode, ServiceError

logger = logging.getLogger(__name__)

DEFAULT_ALLOWED_CONTENT_TYPES = ("application/json",)
BODYLESS_METHODS = ("GET", "DELETE")


def get_client_ip(request: Request, proxy_hops: int = 0) -> str:
    """
    Client identity used to key rate limits.

    Each trusted proxy appends the address it received the request from, so the
    client is the entry ``proxy_hops`` positions from the right of
    X-Forwarded-For. Entries further left are supplied by the client and ignored.

    Args:
        request: Incoming request
        proxy_hops: Number of trusted reverse proxies (0: use the socket peer)
    """
    if proxy_hops > 0:
        forwarded = request.headers.get("x-forwarded-for", "")
        hops = [hop.strip() for hop in forwarded.split(",") if hop.strip()]
        if hops:
            return hops[max(len(hops) - proxy_hops, 0)]
    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_CLIENT


def enforce_rate_limit(limiter: SlidingWindowRateLimiter, client_id: str) -> None:
    """
    Raises:
        ServiceError: RATE_LIMIT_ERROR (429) when the client is over its limit
    """
    decision = limiter.check(client_id)
    if decision.allowed:
        return

    raise ServiceError(
        "Too many requests. Please try again in a few moments.",
        http_status=429,
        code=ErrorCode.RATE_LIMIT_ERROR,
        extra={"retryAfter": decision.retry_after_seconds},
        headers={
            "Retry-After": str(decision.retry_after_seconds),
            "X-RateLimit-Limit": str(decision.limit),
            "X-RateLimit-Remaining": "0"
        }
    )


def enforce_content_type(
    method: str,
    content_type: Optional[str],
    allowed_types: Sequence[str] = DEFAULT_ALLOWED_CONTENT_TYPES
) -> None:
    """
    Requests that may carry a body must declare an allowed content type.

    Raises:
        ServiceError: UNSUPPORTED_MEDIA_TYPE (415)
    """
    if method.upper() in BODYLESS_METHODS:
        return

    normalized = (content_type or "").lower()
    if normalized and any(allowed in normalized for allowed in allowed_types):
        return

    logger.warning(f"Rejected {method} request with content type {content_type!r}")
    raise ServiceError(
        "Unsupported content type",
        http_status=415,
        code=ErrorCode.UNSUPPORTED_MEDIA_TYPE,
        extra={"allowedTypes": list(allowed_types)}
    )


def enforce_request_size(content_length: Optional[str], max_bytes: int) -> None:
    """
    Reject bodies whose declared Content-Length exceeds ``max_bytes``.

    Raises:
        ServiceError: REQUEST_TOO_LARGE (413)
    """
    try:
        declared = int(content_length or 0)
    except ValueError:
        declared = 0

    if declared <= max_bytes:
        return

    logger.warning(f"Rejected request of {declared} bytes (max {max_bytes})")
    raise ServiceError(
        "Request too large",
        http_status=413,
        code=ErrorCode.REQUEST_TOO_LARGE,
        extra={"maxSize": max_bytes, "receivedSize": declared}
    )

"""
Rate Limiting Middleware for API requests.

Global per-client limit on everything under /api (default: 100 requests per
15 minutes per IP). Product routes additionally go through their own, stricter
limiter in the controller.
"""

import logging

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from stock_lookup.core.rate_limiter import SlidingWindowRateLimiter
from stock_lookup.errors import ErrorCode, ServiceError
from stock_lookup.middleware.guards import get_client_ip
from stock_lookup.views.product_view import ProductView

logger = logging.getLogger(__name__)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Rate limiting middleware using the sliding window limiter.
    Adds X-RateLimit-* headers to every limited response.
    """

    def __init__(self, app, limiter: SlidingWindowRateLimiter, path_prefix: str = "/api", proxy_hops: int = 0):
        """
        Initialize rate limiter middleware.

        Args:
            app: ASGI application
            limiter: Shared limiter instance (also exposed on app.state for tests)
            path_prefix: Only paths under this prefix are limited
            proxy_hops: Trusted reverse proxies in front of the app
        """
        super().__init__(app)
        self.limiter = limiter
        self.path_prefix = path_prefix
        self.proxy_hops = proxy_hops
        logger.info(
            f"Rate limiter initialized: {limiter.max_requests} requests per "
            f"{limiter.window_ms}ms on {path_prefix}"
        )

    async def dispatch(self, request: Request, call_next):
        """
        Process request with rate limiting.

        Returns:
            Response, or the 429 error envelope if the client is over the limit
        """
        if not request.url.path.startswith(self.path_prefix):
            return await call_next(request)

        client_id = get_client_ip(request, self.proxy_hops)
        decision = self.limiter.check(client_id)

        if not decision.allowed:
            error = ServiceError(
                "Too many requests from this IP, please try again later.",
                http_status=429,
                code=ErrorCode.RATE_LIMIT_ERROR,
                extra={"retryAfter": decision.retry_after_seconds},
                headers={
                    "Retry-After": str(decision.retry_after_seconds),
                    "X-RateLimit-Limit": str(decision.limit),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Reset": str(decision.retry_after_seconds)
                }
            )
            return ProductView.render_error(error)

        response = await call_next(request)

        response.headers["X-RateLimit-Limit"] = str(decision.limit)
        response.headers["X-RateLimit-Remaining"] = str(decision.remaining)
        response.headers["X-RateLimit-Reset"] = str(self.limiter.retry_after_seconds)

        return response

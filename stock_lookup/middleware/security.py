"""
Security headers and request logging middleware.
"""

import logging
import secrets
import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from stock_lookup.middleware.guards import get_client_ip

logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


def generate_request_id() -> str:
    return f"req_{int(time.time() * 1000)}_{secrets.token_hex(3)}"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Adds the standard hardening headers; HSTS only outside development.
    """

    def __init__(self, app, enable_hsts: bool = False):
        super().__init__(app)
        self.enable_hsts = enable_hsts

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers[name] = value
        if self.enable_hsts:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs every request with a generated id, returned as X-Request-Id.
    """

    def __init__(self, app, proxy_hops: int = 0):
        super().__init__(app)
        self.proxy_hops = proxy_hops

    async def dispatch(self, request: Request, call_next):
        request_id = generate_request_id()
        request.state.request_id = request_id
        started = time.perf_counter()

        logger.info(
            f"{request.method} {request.url.path} - IP: {get_client_ip(request, self.proxy_hops)} "
            f"- reqId={request_id}"
        )
        response = await call_next(request)

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.0f}ms) reqId={request_id}")
        response.headers["X-Request-Id"] = request_id
        return response

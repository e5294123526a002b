"""
FastAPI application entry point.

The app is built by ``create_app`` so the upstream client, limiters and
settings are constructed explicitly and can be injected in tests. Run with:

    uvicorn stock_lookup.main:create_app --factory
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from stock_lookup.config import Settings
from stock_lookup.controllers.product_controller import ProductController
from stock_lookup.core.rate_limiter import SlidingWindowRateLimiter
from stock_lookup.errors import ErrorCode, ServiceError
from stock_lookup.middleware.rate_limiter import RateLimitMiddleware
from stock_lookup.middleware.security import RequestLoggingMiddleware, SecurityHeadersMiddleware
from stock_lookup.routers import health, products
from stock_lookup.service import ProductService
from stock_lookup.vendors import OmieClient
from stock_lookup.views.product_view import ProductView

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def _register_exception_handlers(app: FastAPI, settings: Settings) -> None:

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        log = logger.error if exc.http_status >= 500 else logger.warning
        log(
            f"Error: message={exc.message!r} code={exc.code.value} status={exc.http_status} "
            f"method={request.method} url={request.url.path}"
        )
        return ProductView.render_error(exc, include_stack=settings.is_development)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            error = ServiceError("Endpoint not found", http_status=404, code=ErrorCode.NOT_FOUND)
        elif exc.status_code == 405:
            error = ServiceError(
                f"Method {request.method} not allowed",
                http_status=405,
                code=ErrorCode.METHOD_NOT_ALLOWED,
                headers=exc.headers
            )
        else:
            code = ErrorCode.INTERNAL_ERROR if exc.status_code >= 500 else ErrorCode.VALIDATION_ERROR
            error = ServiceError(str(exc.detail), http_status=exc.status_code, code=code, headers=exc.headers)
        return ProductView.render_error(error)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(
            f"Unhandled error on {request.method} {request.url.path}: {str(exc)}",
            exc_info=exc
        )
        error = ServiceError("Internal server error", http_status=500, code=ErrorCode.INTERNAL_ERROR)
        return ProductView.render_error(error, exc, include_stack=settings.is_development)


def create_app(
    settings: Optional[Settings] = None,
    omie_client: Optional[OmieClient] = None,
    api_rate_limiter: Optional[SlidingWindowRateLimiter] = None,
    product_rate_limiter: Optional[SlidingWindowRateLimiter] = None
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Configuration (default: read from the environment)
        omie_client: Upstream client (default: built from settings)
        api_rate_limiter: Global /api limiter (default: from settings)
        product_rate_limiter: /api/product limiter (default: from settings)

    Raises:
        ConfigurationError: If no client is given and OMIE settings are missing
    """
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    owns_client = omie_client is None
    if omie_client is None:
        omie_client = OmieClient(
            settings.omie_api_url,
            settings.omie_app_key,
            settings.omie_app_secret,
            timeout_seconds=settings.omie_timeout_seconds
        )

    api_rate_limiter = api_rate_limiter or SlidingWindowRateLimiter(
        settings.api_rate_limit_window_ms,
        settings.api_rate_limit_max,
        max_clients=settings.rate_limit_max_clients
    )
    product_rate_limiter = product_rate_limiter or SlidingWindowRateLimiter(
        settings.product_rate_limit_window_ms,
        settings.product_rate_limit_max,
        max_clients=settings.rate_limit_max_clients
    )

    app = FastAPI(
        title="Stock Lookup Service",
        version=settings.version,
        docs_url="/docs"
    )

    app.state.settings = settings
    app.state.omie_client = omie_client
    app.state.api_rate_limiter = api_rate_limiter
    app.state.product_rate_limiter = product_rate_limiter
    app.state.product_controller = ProductController(
        ProductService(omie_client),
        product_rate_limiter,
        settings
    )

    # Added last runs first: logging -> security headers -> CORS -> rate limit
    app.add_middleware(
        RateLimitMiddleware,
        limiter=api_rate_limiter,
        proxy_hops=settings.proxy_hops
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.frontend_urls,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With", "X-Request-Time"],
    )
    app.add_middleware(SecurityHeadersMiddleware, enable_hsts=not settings.is_development)
    app.add_middleware(RequestLoggingMiddleware, proxy_hops=settings.proxy_hops)

    _register_exception_handlers(app, settings)

    app.include_router(health.router)
    app.include_router(products.router)

    @app.on_event("shutdown")
    async def shutdown_event():
        """Close the upstream connection pool if this app created it."""
        if owns_client:
            await omie_client.aclose()
            logger.info("OMIE client closed")

    logger.info(
        f"Stock lookup service ready (env={settings.environment}, "
        f"CORS origins={settings.frontend_urls})"
    )
    return app


def run() -> None:
    import uvicorn

    settings = Settings.from_env()
    uvicorn.run(
        "stock_lookup.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower()
    )


if __name__ == "__main__":
    run()

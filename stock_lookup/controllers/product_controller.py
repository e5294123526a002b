"""
Product Controller.
Orchestrates the flow between the router, guards, validation, service and view.
"""

import logging
from typing import Any, Dict, Mapping, Optional

from stock_lookup.config import Settings
from stock_lookup.core.pipeline import PRODUCT_SEARCH_PIPELINE, ValidationPipeline
from stock_lookup.core.rate_limiter import SlidingWindowRateLimiter
from stock_lookup.core.sanitizer import sanitize_body
from stock_lookup.errors import ErrorCode, ServiceError
from stock_lookup.middleware.guards import enforce_content_type, enforce_rate_limit, enforce_request_size
from stock_lookup.service import ProductService
from stock_lookup.views.product_view import ProductView

logger = logging.getLogger(__name__)


class ProductController:
    """
    Controller for Product related operations.

    Request sequence for product routes:
    rate limit -> content type -> request size -> body sanitization ->
    validation -> upstream search -> envelope.
    Any short-circuit raises a ServiceError and never reaches the upstream.
    """

    def __init__(
        self,
        service: ProductService,
        rate_limiter: SlidingWindowRateLimiter,
        settings: Settings,
        pipeline: ValidationPipeline = PRODUCT_SEARCH_PIPELINE
    ):
        self.service = service
        self.rate_limiter = rate_limiter
        self.settings = settings
        self.pipeline = pipeline

    def guard(self, method: str, headers: Mapping[str, str], client_id: str) -> None:
        """
        Run the pre-handler guards shared by every product route.

        Raises:
            ServiceError: RATE_LIMIT_ERROR, UNSUPPORTED_MEDIA_TYPE or REQUEST_TOO_LARGE
        """
        enforce_rate_limit(self.rate_limiter, client_id)
        enforce_content_type(method, headers.get("content-type"))
        enforce_request_size(headers.get("content-length"), self.settings.max_request_bytes)

    async def search_product(self, body: Any) -> Dict[str, Any]:
        """
        Handle a product search request.

        Args:
            body: Parsed JSON request body

        Returns:
            Success envelope with the normalized product

        Raises:
            ServiceError: Validation, upstream or internal failure
        """
        if isinstance(body, dict):
            body = sanitize_body(body)

        values = self.pipeline.validate(body)
        product_code = values["productCode"]
        date: Optional[str] = values.get("date")

        logger.info(f"Searching product: {product_code}" + (f" for date: {date}" if date else ""))

        try:
            product = await self.service.search_product(product_code, date)
        except ServiceError as e:
            logger.error(
                f"Product search error: message={e.message!r} code={e.code.value} "
                f"status={e.http_status} productCode={product_code}"
            )
            raise
        except Exception as e:
            logger.error(
                f"Product search error: message={str(e)!r} code={ErrorCode.INTERNAL_ERROR.value} "
                f"status=500 productCode={product_code}",
                exc_info=True
            )
            raise ServiceError(
                "Internal server error",
                http_status=500,
                code=ErrorCode.INTERNAL_ERROR
            ) from e

        logger.info(f"Product search successful: {product.description}")
        return ProductView.render_product(product)

    async def test_connection(self) -> Dict[str, Any]:
        connected = await self.service.test_connection()
        return ProductView.render_connection(connected)

    def get_stats(self) -> Dict[str, Any]:
        return ProductView.render_stats(self.service.get_stats())

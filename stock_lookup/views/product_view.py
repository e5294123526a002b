"""
Product View.
Responsible for formatting service results and errors into the response envelope.
"""

import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi.responses import JSONResponse

from stock_lookup.errors import ServiceError
from stock_lookup.models import (
    ConnectionTestResponse,
    ErrorResponse,
    ProductData,
    ProductSearchResponse,
    SearchStats,
    StatsResponse,
)


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class ProductView:
    """
    View layer for Product resources.
    Every response, success or error, goes through one of these renderers.
    """

    @staticmethod
    def render_product(product: ProductData) -> Dict[str, Any]:
        return ProductSearchResponse(data=product).model_dump(by_alias=True)

    @staticmethod
    def render_connection(connected: bool) -> Dict[str, Any]:
        return ConnectionTestResponse(
            connected=connected,
            message="OMIE API connection successful" if connected else "OMIE API connection failed",
            timestamp=utc_timestamp()
        ).model_dump()

    @staticmethod
    def render_stats(stats: SearchStats) -> Dict[str, Any]:
        return StatsResponse(data=stats).model_dump(by_alias=True)

    @staticmethod
    def error_body(error: ServiceError, exc: Optional[BaseException] = None, include_stack: bool = False) -> Dict[str, Any]:
        """
        Build the uniform error envelope.

        Args:
            error: Classified error
            exc: Original exception, used for the development-only stack
            include_stack: Whether to add a ``stack`` field
        """
        body = ErrorResponse(
            error=error.message,
            code=error.code.value,
            details=error.details,
            timestamp=utc_timestamp()
        ).model_dump(by_alias=True)
        if body["details"] is None:
            del body["details"]
        body.update(error.extra)

        if include_stack:
            source = exc if exc is not None else error
            body["stack"] = "".join(traceback.format_exception(type(source), source, source.__traceback__))
        return body

    @classmethod
    def render_error(cls, error: ServiceError, exc: Optional[BaseException] = None, include_stack: bool = False) -> JSONResponse:
        return JSONResponse(
            status_code=error.http_status,
            content=cls.error_body(error, exc, include_stack),
            headers=error.headers or None
        )

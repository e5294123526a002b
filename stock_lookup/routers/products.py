"""
Product routes.
Handles product search, upstream connection test and search statistics.
"""

import json
import logging

from fastapi import APIRouter, Depends, Request

from stock_lookup.controllers.product_controller import ProductController
from stock_lookup.errors import ErrorCode, ServiceError
from stock_lookup.middleware.guards import get_client_ip
from stock_lookup.models import ConnectionTestResponse, ErrorResponse, ProductSearchResponse, StatsResponse

logger = logging.getLogger(__name__)


def get_controller(request: Request) -> ProductController:
    """Controller built by the app factory and stored on app.state."""
    return request.app.state.product_controller


async def product_guards(request: Request, controller: ProductController = Depends(get_controller)) -> None:
    client_id = get_client_ip(request, controller.settings.proxy_hops)
    controller.guard(request.method, request.headers, client_id)


router = APIRouter(
    prefix="/api/product",
    tags=["products"],
    dependencies=[Depends(product_guards)]
)

_ERROR_RESPONSES = {
    400: {"description": "Invalid input data", "model": ErrorResponse},
    404: {"description": "Product not found", "model": ErrorResponse},
    413: {"description": "Request too large", "model": ErrorResponse},
    415: {"description": "Unsupported content type", "model": ErrorResponse},
    429: {"description": "Rate limit exceeded", "model": ErrorResponse},
    500: {"description": "Internal server error", "model": ErrorResponse},
    502: {"description": "OMIE API error", "model": ErrorResponse},
    503: {"description": "OMIE API unreachable", "model": ErrorResponse},
    504: {"description": "OMIE API timeout", "model": ErrorResponse},
}


async def search_product(request: Request, controller: ProductController = Depends(get_controller)):
    """
    Search a product's stock and average cost in OMIE.

    Body: ``{"productCode": "PRD00003", "date": "15/01/2025"}`` (date optional)
    """
    raw = await request.body()
    try:
        body = json.loads(raw) if raw else None
    except ValueError:
        raise ServiceError("Malformed JSON body", http_status=400, code=ErrorCode.VALIDATION_ERROR)

    return await controller.search_product(body)


async def test_connection(controller: ProductController = Depends(get_controller)):
    """
    Check that OMIE answers and accepts the configured credentials.
    """
    return await controller.test_connection()


async def get_search_stats(controller: ProductController = Depends(get_controller)):
    """
    Product search statistics (static values).
    """
    return controller.get_stats()


router.add_api_route(
    "/search",
    search_product,
    methods=["POST"],
    response_model=ProductSearchResponse,
    response_model_by_alias=True,
    responses=_ERROR_RESPONSES,
    summary="Search product stock in OMIE"
)

router.add_api_route(
    "/test-connection",
    test_connection,
    methods=["GET"],
    response_model=ConnectionTestResponse,
    summary="Test OMIE API connection"
)

router.add_api_route(
    "/stats",
    get_search_stats,
    methods=["GET"],
    response_model=StatsResponse,
    response_model_by_alias=True,
    summary="Get product search statistics"
)

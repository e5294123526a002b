"""
Health, readiness and API info routes.
"""

import time

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from stock_lookup.views.product_view import utc_timestamp

router = APIRouter(prefix="/api", tags=["health"])

_STARTED_AT = time.monotonic()


@router.get("/health")
async def health_check(request: Request):
    """
    Liveness check.
    """
    settings = request.app.state.settings
    return {
        "status": "ok",
        "timestamp": utc_timestamp(),
        "environment": settings.environment,
        "uptime": round(time.monotonic() - _STARTED_AT, 3),
        "version": settings.version
    }


@router.get("/ready")
async def readiness_check(request: Request):
    """
    Readiness check: the OMIE credentials must be configured.
    """
    missing = request.app.state.settings.missing_omie_settings()
    if missing:
        return JSONResponse(
            status_code=503,
            content={
                "status": "not ready",
                "message": "Missing required environment variables",
                "missing": missing
            }
        )

    return {
        "status": "ready",
        "timestamp": utc_timestamp(),
        "services": {"omie": "configured"}
    }


@router.get("")
async def api_info():
    """
    API information.
    """
    return {
        "name": "Stock Lookup API",
        "version": "1.0.0",
        "description": "Product stock and average cost lookup backed by OMIE",
        "endpoints": {
            "health": "/api/health",
            "ready": "/api/ready",
            "productSearch": "/api/product/search",
            "testConnection": "/api/product/test-connection",
            "searchStats": "/api/product/stats"
        },
        "documentation": {
            "productSearch": {
                "method": "POST",
                "url": "/api/product/search",
                "body": {
                    "productCode": "string (required)",
                    "date": "string (optional, DD/MM/YYYY format)"
                }
            }
        }
    }

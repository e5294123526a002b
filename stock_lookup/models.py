"""
Data models for the stock lookup service.
All API-facing models use Pydantic for validation and serialization.
"""

from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class ProductData(BaseModel):
    """
    Normalized product stock data.

    Built only by the upstream normalizer. Serialized with the upstream (OMIE)
    field names so the wire format matches what clients already consume.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int = Field(alias="nIdProduto")
    code: str = Field(alias="cCodigo")
    description: str = Field(alias="cDescricao")
    average_cost: float = Field(alias="nCMC")  # Negative values are logged, not rejected
    total_physical_stock: float = Field(alias="fIsico")


class ValidationErrorDetail(BaseModel):
    """
    One failing field rule.
    ``rejected_value`` is sent as ``value`` on the wire.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    field: str
    message: str
    rejected_value: Any = Field(default=None, alias="value")


class ProductSearchResponse(BaseModel):
    """
    API response model for POST /api/product/search.
    """
    success: bool = True
    data: ProductData
    message: str = "Product found successfully"


class ConnectionTestResponse(BaseModel):
    """
    API response model for GET /api/product/test-connection.
    """
    success: bool = True
    connected: bool
    message: str
    timestamp: str


class SearchStats(BaseModel):
    """
    Search statistics. Values are static until real aggregation exists.
    """
    model_config = ConfigDict(populate_by_name=True)

    total_searches: int = Field(default=0, alias="totalSearches")
    successful_searches: int = Field(default=0, alias="successfulSearches")
    failed_searches: int = Field(default=0, alias="failedSearches")
    average_response_time: float = Field(default=0, alias="averageResponseTime")
    last_search: Optional[str] = Field(default=None, alias="lastSearch")
    popular_products: List[str] = Field(default_factory=list, alias="popularProducts")


class StatsResponse(BaseModel):
    """
    API response model for GET /api/product/stats.
    """
    success: bool = True
    data: SearchStats
    message: str = "Search statistics retrieved successfully"


class ErrorResponse(BaseModel):
    """
    Standard error envelope.
    Code-specific extras (retryAfter, allowedTypes, ...) are merged in by the view.
    """
    model_config = ConfigDict(populate_by_name=True)

    success: bool = False
    error: str
    code: str
    details: Optional[List[ValidationErrorDetail]] = None
    timestamp: str

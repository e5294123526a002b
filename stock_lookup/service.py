"""
Product service - business operations on top of the OMIE client.
"""

import logging
import time
from typing import Optional

from stock_lookup.models import ProductData, SearchStats
from stock_lookup.vendors import OmieClient

logger = logging.getLogger(__name__)


class ProductService:
    """
    Service layer for product operations.
    Wraps the injected upstream client; no retries and no caching.
    """

    def __init__(self, client: OmieClient):
        self.client = client

    async def search_product(self, product_code: str, date: Optional[str] = None) -> ProductData:
        """
        Look up a product's stock and average cost.

        Args:
            product_code: Normalized product code
            date: Optional DD/MM/YYYY date

        Returns:
            ProductData

        Raises:
            ServiceError: Propagated unchanged from the client
        """
        started = time.perf_counter()
        product = await self.client.search(product_code, date)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(f"Product {product_code} found in {elapsed_ms:.0f}ms: {product.description}")
        return product

    async def test_connection(self) -> bool:
        logger.info("Testing OMIE connection...")
        connected = await self.client.test_connection()
        logger.info(f"OMIE connection test result: {'SUCCESS' if connected else 'FAILED'}")
        return connected

    def get_stats(self) -> SearchStats:
        # Real aggregation would need persistence; static values for now
        return SearchStats()

"""
Data normalization logic for OMIE stock responses.
Decodes the loosely typed upstream payload into a ProductData.
"""

import logging
import math
from typing import Any, Dict, Optional

from stock_lookup.errors import ErrorCode, ServiceError
from stock_lookup.models import ProductData

logger = logging.getLogger(__name__)


class ProductNormalizer:
    """
    Normalizes OMIE product payloads into the stable ProductData schema.

    The upstream omits fields, sends numbers as strings and sometimes splits
    stock across several locations; every field is decoded with an explicit
    default instead of a strict schema.
    """

    @staticmethod
    def parse_number(value: Any, field_name: str) -> float:
        """
        Safely parse a numeric field.

        Args:
            value: Raw value (number, numeric string, None, ...)
            field_name: Field name used in the warning log

        Returns:
            The parsed number, or 0 when missing or unparseable
        """
        if value is None or value == "":
            return 0.0

        if isinstance(value, bool):
            logger.warning(f"OMIE: Invalid {field_name} value: {value!r}, using 0")
            return 0.0

        try:
            if isinstance(value, (int, float)):
                parsed = float(value)
            else:
                parsed = float(str(value).strip())
        except (ValueError, OverflowError):
            logger.warning(f"OMIE: Invalid {field_name} value: {value!r:.60}, using 0")
            return 0.0

        if math.isnan(parsed) or math.isinf(parsed):
            logger.warning(f"OMIE: Invalid {field_name} value: {value!r}, using 0")
            return 0.0
        return parsed

    @classmethod
    def _parse_id(cls, value: Any) -> int:
        return int(cls.parse_number(value, "nIdProduto"))

    @classmethod
    def normalize(cls, data: Any, product_code: str) -> ProductData:
        """
        Normalize an OMIE ObterEstoqueProduto response.

        Business Rules:
        - With ``listaEstoque``: total stock is the sum of ``fisico`` and the
          cost is the stock-weighted average of ``nCMC``
        - Without it (or when the summed stock is 0): flat ``nCMC`` / ``fIsico``
        - Missing description falls back to "Produto <code>"
        - Negative cost is accepted but logged

        Args:
            data: Parsed upstream JSON
            product_code: The code that was searched

        Returns:
            ProductData

        Raises:
            ServiceError: OMIE_API_ERROR (502) if the payload is not a product
        """
        if not isinstance(data, dict) or (not data.get("cCodigo") and not data.get("nIdProduto")):
            logger.error(f"OMIE: Invalid response format for {product_code}: {str(data)[:300]}")
            raise ServiceError(
                "Invalid response format from OMIE API",
                http_status=502,
                code=ErrorCode.OMIE_API_ERROR
            )

        total_stock = 0.0
        average_cost = 0.0
        locations = data.get("listaEstoque")

        if isinstance(locations, list):
            total_value = 0.0
            for location in locations:
                if not isinstance(location, dict):
                    logger.warning(f"OMIE: Skipping malformed stock record for {product_code}: {location!r}")
                    continue
                physical = cls.parse_number(location.get("fisico"), "fisico")
                cost = cls.parse_number(location.get("nCMC"), "nCMC")
                total_stock += physical
                total_value += physical * cost

            if not (math.isfinite(total_stock) and math.isfinite(total_value)):
                logger.warning(f"OMIE: Stock totals out of range for {product_code}, using flat fields")
                total_stock = 0.0
            elif total_stock > 0:
                average_cost = total_value / total_stock

        if total_stock > 0:
            stock = total_stock
            cost = average_cost
        else:
            stock = cls.parse_number(cls._first_present(data, "fIsico", "fisico"), "fisico")
            cost = cls.parse_number(data.get("nCMC"), "nCMC")

        description = data.get("cDescricao")
        if not isinstance(description, str) or not description.strip():
            description = f"Produto {product_code}"

        code = data.get("cCodigo")
        if not isinstance(code, str) or not code:
            code = product_code

        if cost < 0:
            logger.warning(f"OMIE: Negative cost for product {product_code}: {cost}")

        product = ProductData(
            id=cls._parse_id(data.get("nIdProduto")),
            code=code,
            description=description,
            average_cost=cost,
            total_physical_stock=stock
        )

        logger.info(
            f"OMIE: Normalized {product.code} - description={product.description!r}, "
            f"stock={product.total_physical_stock}, cost={product.average_cost}, "
            f"locations={len(locations) if isinstance(locations, list) else 0}"
        )
        return product

    @staticmethod
    def _first_present(data: Dict[str, Any], *keys: str) -> Optional[Any]:
        for key in keys:
            if data.get(key) is not None:
                return data[key]
        return None

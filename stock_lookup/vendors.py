"""
OMIE inventory API client.

This is the only place that talks to the upstream. Every failure mode
(timeouts, HTTP errors, connection errors, malformed payloads, domain faults)
is classified here into a ServiceError; nothing httpx-specific escapes.
"""

import json
import logging
import re
import time
from datetime import datetime
from typing import Any, Callable, Dict, Optional

import httpx

from stock_lookup.core.normalizer import ProductNormalizer
from stock_lookup.errors import ConfigurationError, ErrorCode, ServiceError
from stock_lookup.models import ProductData

logger = logging.getLogger(__name__)

OMIE_CALL = "ObterEstoqueProduto"
DEFAULT_TIMEOUT_SECONDS = 30.0
DATE_FORMAT = "%d/%m/%Y"

_NOT_FOUND_PATTERN = re.compile(r"n[ãa]o encontrad[oa]|not found", re.IGNORECASE)


class OmieResponseError(Exception):
    """Base class for upstream failures. Never leaves this module."""


class OmieTimeout(OmieResponseError):
    pass


class OmieHttpStatus(OmieResponseError):
    def __init__(self, status_code: int, body: str, content_type: str = ""):
        super().__init__(f"OMIE API returned status {status_code}")
        self.status_code = status_code
        self.body = body
        self.content_type = content_type


class OmieTransportError(OmieResponseError):
    pass


class OmieMalformedPayload(OmieResponseError):
    pass


class OmieFault(OmieResponseError):
    pass


class OmieNotFound(OmieResponseError):
    def __init__(self, product_code: str):
        super().__init__(f"Product {product_code} not found in OMIE")
        self.product_code = product_code


def _looks_like_xml(body: str, content_type: str) -> bool:
    return "xml" in content_type.lower() or body.lstrip().startswith("<")


def _to_service_error(error: OmieResponseError) -> ServiceError:
    """Map an upstream failure onto the stable error taxonomy."""
    if isinstance(error, OmieNotFound):
        return ServiceError(str(error), http_status=404, code=ErrorCode.PRODUCT_NOT_FOUND)
    if isinstance(error, OmieTimeout):
        return ServiceError("OMIE API request timeout", http_status=504, code=ErrorCode.OMIE_API_ERROR)
    if isinstance(error, OmieTransportError):
        return ServiceError("Unable to connect to OMIE API", http_status=503, code=ErrorCode.OMIE_API_ERROR)
    if isinstance(error, OmieHttpStatus):
        if _looks_like_xml(error.body, error.content_type):
            message = "OMIE API Bad Request (check credentials and payload)"
        else:
            message = f"OMIE API returned status {error.status_code}"
        return ServiceError(message, http_status=502, code=ErrorCode.OMIE_API_ERROR)
    if isinstance(error, OmieFault):
        return ServiceError(f"OMIE API Error: {error}", http_status=502, code=ErrorCode.OMIE_API_ERROR)
    return ServiceError(str(error), http_status=502, code=ErrorCode.OMIE_API_ERROR)


class OmieClient:
    """
    Async client for the OMIE ObterEstoqueProduto call.

    One instance is created per application and injected where needed. The
    underlying httpx.AsyncClient keeps connections alive between calls.
    """

    def __init__(
        self,
        api_url: Optional[str],
        app_key: Optional[str],
        app_secret: Optional[str],
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        today: Callable[[], datetime] = datetime.now
    ):
        """
        Initialize the client.

        Args:
            api_url: OMIE endpoint URL
            app_key: OMIE application key
            app_secret: OMIE application secret
            timeout_seconds: Outbound call timeout (default: 30)
            transport: Optional httpx transport (tests use httpx.MockTransport)
            today: Clock used for the default request date

        Raises:
            ConfigurationError: If the URL or any credential is missing
        """
        if not api_url or not app_key or not app_secret:
            raise ConfigurationError("OMIE API credentials not configured")

        self.api_url = api_url
        self._app_key = app_key
        self._app_secret = app_secret
        self.timeout_seconds = timeout_seconds
        self._today = today
        self._http = httpx.AsyncClient(timeout=timeout_seconds, transport=transport)

        logger.info(f"OMIE client configured: {api_url} (timeout={timeout_seconds}s)")

    async def aclose(self) -> None:
        """Close pooled connections. Called on application shutdown."""
        await self._http.aclose()

    def current_date(self) -> str:
        """Today's date in OMIE format (DD/MM/YYYY)."""
        return self._today().strftime(DATE_FORMAT)

    def build_request(self, product_code: str, date: Optional[str] = None) -> Dict[str, Any]:
        """Build the fixed-shape OMIE request envelope."""
        return {
            "call": OMIE_CALL,
            "param": [{
                "cCodigo": product_code,
                "nIdProduto": 0,
                "cEAN": "",
                "xCodigo": "",
                "dDia": date or self.current_date()
            }],
            "app_key": self._app_key,
            "app_secret": self._app_secret
        }

    async def search(self, product_code: str, date: Optional[str] = None) -> ProductData:
        """
        Search a product's stock position in OMIE.

        Args:
            product_code: Validated, upper-cased product code
            date: Optional DD/MM/YYYY date (defaults to today)

        Returns:
            Normalized ProductData

        Raises:
            ServiceError: For every failure, already classified
        """
        payload = self.build_request(product_code, date)
        logger.info(f"OMIE: Searching product {product_code} for date {payload['param'][0]['dDia']}")

        try:
            response = await self._post(payload)
            data = self._decode(response, product_code)
            return ProductNormalizer.normalize(data, product_code)
        except ServiceError:
            raise
        except OmieResponseError as e:
            error = _to_service_error(e)
            logger.error(f"OMIE: {product_code} failed with {error.code.value} ({error.http_status}): {e}")
            raise error from e
        except Exception as e:
            logger.error(f"OMIE: Unexpected error while searching {product_code}: {str(e)}", exc_info=True)
            raise ServiceError(
                "Unexpected error while calling OMIE API",
                http_status=500,
                code=ErrorCode.INTERNAL_ERROR
            ) from e

    async def _post(self, payload: Dict[str, Any]) -> httpx.Response:
        """Issue the call and translate httpx failures into upstream errors."""
        try:
            response = await self._http.post(
                self.api_url,
                json=payload,
                headers={"Content-type": "application/json"}
            )
        except httpx.TimeoutException as e:
            raise OmieTimeout(str(e) or "timeout") from e
        except httpx.TransportError as e:
            raise OmieTransportError(str(e) or type(e).__name__) from e

        content_type = response.headers.get("content-type", "")
        logger.info(f"OMIE: Response status={response.status_code} content-type={content_type}")
        logger.debug(f"OMIE: Response snippet: {response.text[:300]}")

        # 4xx/5xx bodies still carry OMIE faults, so they are classified from the body
        if not 200 <= response.status_code < 600:
            raise OmieHttpStatus(response.status_code, response.text, content_type)
        return response

    def _decode(self, response: httpx.Response, product_code: str) -> Any:
        """Parse the body and surface OMIE faults, in priority order."""
        body = response.text
        if not body.strip():
            raise OmieMalformedPayload("Empty response from OMIE API")

        try:
            data = json.loads(body)
        except ValueError as e:
            content_type = response.headers.get("content-type", "")
            if response.status_code >= 400:
                raise OmieHttpStatus(response.status_code, body, content_type) from e
            raise OmieMalformedPayload("Non-JSON response from OMIE API") from e

        if data is None:
            raise OmieMalformedPayload("Empty response from OMIE API")

        if isinstance(data, dict) and data.get("faultstring"):
            fault = str(data["faultstring"])
            logger.error(f"OMIE: API fault for {product_code}: {fault}")
            if _NOT_FOUND_PATTERN.search(fault):
                raise OmieNotFound(product_code)
            raise OmieFault(fault)

        return data

    async def test_connection(self) -> bool:
        """
        Probe the upstream with a code that cannot exist.

        A PRODUCT_NOT_FOUND answer proves the round trip and the credential
        check worked; anything else means the connection is unhealthy.
        """
        probe_code = f"TEST_CONNECTION_{int(time.time() * 1000)}"
        try:
            await self.search(probe_code)
        except ServiceError as e:
            healthy = e.code == ErrorCode.PRODUCT_NOT_FOUND
            logger.info(f"OMIE: Connection probe returned {e.code.value}, healthy={healthy}")
            return healthy

        logger.warning(f"OMIE: Connection probe unexpectedly found {probe_code}")
        return False

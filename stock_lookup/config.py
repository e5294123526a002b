"""
Application configuration.

All settings come from environment variables (a local .env file is loaded
first when present):
- OMIE_API_URL / OMIE_APP_KEY / OMIE_APP_SECRET: upstream credentials (required)
- OMIE_TIMEOUT_SECONDS: outbound call timeout (default: 30)
- APP_ENV: "development" exposes tracebacks in error responses (default: production)
- LOG_LEVEL: root log level (default: INFO)
- FRONTEND_URL: comma-separated CORS origins (default: http://localhost:3000)
- TRUST_PROXY: take the client IP from X-Forwarded-For (default: false)
- TRUSTED_PROXY_HOPS: reverse proxies in front of the app; the client IP is the
  entry that many hops from the right of X-Forwarded-For (default: 1)
- API_RATE_LIMIT_WINDOW_MS / API_RATE_LIMIT_MAX: global /api limit (default: 100 per 15 min)
- PRODUCT_RATE_LIMIT_WINDOW_MS / PRODUCT_RATE_LIMIT_MAX: /api/product limit (default: 10 per min)
- RATE_LIMIT_MAX_CLIENTS: client buckets kept per limiter (default: 10000)
- MAX_REQUEST_BYTES: largest accepted Content-Length on product routes (default: 10 KiB)
- APP_VERSION / HOST / PORT: reported version and bind address (default: 1.0.0, 0.0.0.0, 3001)
"""

import os
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv

REQUIRED_OMIE_VARIABLES = ("OMIE_API_URL", "OMIE_APP_KEY", "OMIE_APP_SECRET")


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    omie_api_url: str = ""
    omie_app_key: str = ""
    omie_app_secret: str = ""
    omie_timeout_seconds: float = 30.0

    environment: str = "production"
    log_level: str = "INFO"
    version: str = "1.0.0"
    host: str = "0.0.0.0"
    port: int = 3001

    frontend_urls: List[str] = field(default_factory=lambda: ["http://localhost:3000"])
    trust_proxy: bool = False
    trusted_proxy_hops: int = 1

    api_rate_limit_window_ms: int = 15 * 60 * 1000
    api_rate_limit_max: int = 100
    product_rate_limit_window_ms: int = 60 * 1000
    product_rate_limit_max: int = 10
    rate_limit_max_clients: int = 10000
    max_request_bytes: int = 10 * 1024

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    @property
    def proxy_hops(self) -> int:
        """X-Forwarded-For entries appended by trusted proxies (0 when untrusted)."""
        return max(self.trusted_proxy_hops, 0) if self.trust_proxy else 0

    def missing_omie_settings(self) -> List[str]:
        """Names of the required OMIE variables that are not configured."""
        values = dict(zip(REQUIRED_OMIE_VARIABLES, (self.omie_api_url, self.omie_app_key, self.omie_app_secret)))
        return [name for name, value in values.items() if not value]

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment."""
        load_dotenv()

        origins = os.getenv("FRONTEND_URL", "http://localhost:3000")
        return cls(
            omie_api_url=os.getenv("OMIE_API_URL", ""),
            omie_app_key=os.getenv("OMIE_APP_KEY", ""),
            omie_app_secret=os.getenv("OMIE_APP_SECRET", ""),
            omie_timeout_seconds=float(os.getenv("OMIE_TIMEOUT_SECONDS", "30")),
            environment=os.getenv("APP_ENV", "production"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            version=os.getenv("APP_VERSION", "1.0.0"),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "3001")),
            frontend_urls=[origin.strip() for origin in origins.split(",") if origin.strip()],
            trust_proxy=_env_bool("TRUST_PROXY", False),
            trusted_proxy_hops=int(os.getenv("TRUSTED_PROXY_HOPS", "1")),
            api_rate_limit_window_ms=int(os.getenv("API_RATE_LIMIT_WINDOW_MS", str(15 * 60 * 1000))),
            api_rate_limit_max=int(os.getenv("API_RATE_LIMIT_MAX", "100")),
            product_rate_limit_window_ms=int(os.getenv("PRODUCT_RATE_LIMIT_WINDOW_MS", str(60 * 1000))),
            product_rate_limit_max=int(os.getenv("PRODUCT_RATE_LIMIT_MAX", "10")),
            rate_limit_max_clients=int(os.getenv("RATE_LIMIT_MAX_CLIENTS", "10000")),
            max_request_bytes=int(os.getenv("MAX_REQUEST_BYTES", str(10 * 1024))),
        )

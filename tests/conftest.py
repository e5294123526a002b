"""Pytest fixtures for the stock lookup service."""

import json
from datetime import datetime

import httpx
import pytest
from fastapi.testclient import TestClient

from stock_lookup.config import Settings
from stock_lookup.core.rate_limiter import SlidingWindowRateLimiter
from stock_lookup.main import create_app
from stock_lookup.vendors import OmieClient

OMIE_URL = "https://app.omie.com.br/api/v1/estoque/resumo/"


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class RecordingUpstream:
    """httpx handler that records requests and replays a canned response."""

    def __init__(self, status_code=200, body=None, content_type="application/json", error=None):
        self.status_code = status_code
        self.body = body
        self.content_type = content_type
        self.error = error
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if isinstance(self.body, (dict, list)):
            content = json.dumps(self.body)
        else:
            content = self.body or ""
        return httpx.Response(
            self.status_code,
            content=content.encode("utf-8"),
            headers={"content-type": self.content_type}
        )

    @property
    def last_payload(self):
        return json.loads(self.requests[-1].content)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return Settings(
        omie_api_url=OMIE_URL,
        omie_app_key="test_app_key",
        omie_app_secret="test_app_secret",
        environment="test",
    )


@pytest.fixture
def make_omie_client():
    def factory(upstream: RecordingUpstream) -> OmieClient:
        return OmieClient(
            OMIE_URL,
            "test_app_key",
            "test_app_secret",
            transport=httpx.MockTransport(upstream),
            today=lambda: datetime(2025, 1, 15)
        )
    return factory


@pytest.fixture
def make_test_client(settings, make_omie_client):
    """Builds a TestClient around an app wired to a canned upstream."""

    def factory(upstream: RecordingUpstream, product_limit: int = 100, api_limit: int = 1000) -> TestClient:
        app = create_app(
            settings=settings,
            omie_client=make_omie_client(upstream),
            api_rate_limiter=SlidingWindowRateLimiter(60_000, api_limit),
            product_rate_limiter=SlidingWindowRateLimiter(60_000, product_limit),
        )
        return TestClient(app)

    return factory

"""
End-to-end tests for /api/product/* through the FastAPI app with a stubbed
OMIE upstream.
"""

import json

import httpx
import pytest

from conftest import RecordingUpstream

UPSTREAM_PRODUCT = {"nIdProduto": 1, "cCodigo": "PRD00003", "cDescricao": "X", "nCMC": 10, "fIsico": 5}


def test_search_returns_normalized_product(make_test_client):
    upstream = RecordingUpstream(body=UPSTREAM_PRODUCT)
    client = make_test_client(upstream)

    response = client.post("/api/product/search", json={"productCode": "prd00003"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"] == UPSTREAM_PRODUCT
    assert body["message"] == "Product found successfully"
    assert upstream.last_payload["param"][0]["cCodigo"] == "PRD00003"


def test_search_sanitizes_before_validation(make_test_client):
    upstream = RecordingUpstream(body=UPSTREAM_PRODUCT)
    client = make_test_client(upstream)

    response = client.post("/api/product/search", json={"productCode": "  <b>prd00003</b> ", "date": " 15/01/2025 "})

    assert response.status_code == 200
    assert upstream.last_payload["param"][0]["cCodigo"] == "PRD00003"
    assert upstream.last_payload["param"][0]["dDia"] == "15/01/2025"


def test_validation_errors_are_aggregated(make_test_client):
    upstream = RecordingUpstream(body=UPSTREAM_PRODUCT)
    client = make_test_client(upstream)

    response = client.post("/api/product/search", json={"productCode": "bad code", "date": "31/02/2025"})

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["code"] == "VALIDATION_ERROR"
    assert body["timestamp"]
    assert {d["field"] for d in body["details"]} == {"productCode", "date"}
    assert {"field", "message", "value"} <= set(body["details"][0])
    assert upstream.requests == []


def test_missing_product_code_keeps_null_value_in_details(make_test_client):
    client = make_test_client(RecordingUpstream(body=UPSTREAM_PRODUCT))

    response = client.post("/api/product/search", json={})

    assert response.status_code == 400
    assert response.json()["details"] == [
        {"field": "productCode", "message": "Product code is required", "value": None}
    ]


def test_malformed_json_is_a_validation_error(make_test_client):
    client = make_test_client(RecordingUpstream(body=UPSTREAM_PRODUCT))

    response = client.post(
        "/api/product/search",
        content=b"{not json",
        headers={"Content-Type": "application/json"}
    )

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_unsupported_content_type_is_rejected(make_test_client):
    upstream = RecordingUpstream(body=UPSTREAM_PRODUCT)
    client = make_test_client(upstream)

    response = client.post(
        "/api/product/search",
        content=b"productCode=PRD1",
        headers={"Content-Type": "application/x-www-form-urlencoded"}
    )

    assert response.status_code == 415
    body = response.json()
    assert body["code"] == "UNSUPPORTED_MEDIA_TYPE"
    assert body["allowedTypes"] == ["application/json"]
    assert upstream.requests == []


def test_oversized_body_is_rejected(make_test_client):
    upstream = RecordingUpstream(body=UPSTREAM_PRODUCT)
    client = make_test_client(upstream)

    payload = json.dumps({"productCode": "PRD1", "padding": "x" * 20000}).encode()
    response = client.post(
        "/api/product/search",
        content=payload,
        headers={"Content-Type": "application/json"}
    )

    assert response.status_code == 413
    body = response.json()
    assert body["code"] == "REQUEST_TOO_LARGE"
    assert body["maxSize"] == 10 * 1024
    assert body["receivedSize"] == len(payload)
    assert upstream.requests == []


def test_product_rate_limit_returns_429(make_test_client):
    upstream = RecordingUpstream(body=UPSTREAM_PRODUCT)
    client = make_test_client(upstream, product_limit=2)

    statuses = [client.post("/api/product/search", json={"productCode": "PRD1"}).status_code for _ in range(3)]

    assert statuses == [200, 200, 429]
    blocked = client.post("/api/product/search", json={"productCode": "PRD1"})
    assert blocked.json()["code"] == "RATE_LIMIT_ERROR"
    assert blocked.json()["retryAfter"] == 60
    assert blocked.headers["Retry-After"] == "60"
    assert len(upstream.requests) == 2


def test_rate_limit_is_per_client_ip_behind_trusted_proxy(make_test_client, settings):
    settings.trust_proxy = True
    client = make_test_client(RecordingUpstream(body=UPSTREAM_PRODUCT), product_limit=1)

    first = client.post("/api/product/search", json={"productCode": "PRD1"}, headers={"X-Forwarded-For": "1.1.1.1"})
    second = client.post("/api/product/search", json={"productCode": "PRD1"}, headers={"X-Forwarded-For": "2.2.2.2"})
    third = client.post("/api/product/search", json={"productCode": "PRD1"}, headers={"X-Forwarded-For": "1.1.1.1"})

    assert (first.status_code, second.status_code, third.status_code) == (200, 200, 429)


def test_spoofed_forwarded_for_entries_share_the_proxy_reported_bucket(make_test_client, settings):
    settings.trust_proxy = True
    upstream = RecordingUpstream(body=UPSTREAM_PRODUCT)
    client = make_test_client(upstream, product_limit=1)

    statuses = [
        client.post(
            "/api/product/search",
            json={"productCode": "PRD1"},
            headers={"X-Forwarded-For": f"6.6.6.{i}, 10.0.0.1"}
        ).status_code
        for i in range(5)
    ]

    assert statuses == [200, 429, 429, 429, 429]
    assert len(upstream.requests) == 1


def test_forwarded_for_is_ignored_without_trusted_proxy(make_test_client):
    upstream = RecordingUpstream(body=UPSTREAM_PRODUCT)
    client = make_test_client(upstream, product_limit=1, api_limit=3)

    product_statuses = [
        client.post(
            "/api/product/search",
            json={"productCode": "PRD1"},
            headers={"X-Forwarded-For": f"6.6.6.{i}"}
        ).status_code
        for i in range(2)
    ]
    health = client.get("/api/health", headers={"X-Forwarded-For": "7.7.7.7"})
    blocked = client.get("/api/health", headers={"X-Forwarded-For": "8.8.8.8"})

    assert product_statuses == [200, 429]
    assert health.status_code == 200
    assert blocked.status_code == 429
    assert len(upstream.requests) == 1


def test_global_api_rate_limit_applies_to_all_api_routes(make_test_client):
    client = make_test_client(RecordingUpstream(body=UPSTREAM_PRODUCT), api_limit=2)

    assert client.get("/api/health").status_code == 200
    assert client.get("/api/product/stats").status_code == 200
    response = client.get("/api/health")

    assert response.status_code == 429
    assert response.json()["code"] == "RATE_LIMIT_ERROR"
    assert response.headers["X-RateLimit-Limit"] == "2"


@pytest.mark.parametrize("upstream, status, code", [
    (RecordingUpstream(body={"faultstring": "ERROR: Produto não encontrado"}), 404, "PRODUCT_NOT_FOUND"),
    (RecordingUpstream(body={"faultstring": "Chave inválida"}), 502, "OMIE_API_ERROR"),
    (RecordingUpstream(error=httpx.ConnectTimeout("slow")), 504, "OMIE_API_ERROR"),
    (RecordingUpstream(error=httpx.ConnectError("down")), 503, "OMIE_API_ERROR"),
    (RecordingUpstream(body="oops", content_type="text/plain"), 502, "OMIE_API_ERROR"),
])
def test_upstream_failures_become_error_envelopes(make_test_client, upstream, status, code):
    client = make_test_client(upstream)

    response = client.post("/api/product/search", json={"productCode": "PRD1"})

    assert response.status_code == status
    body = response.json()
    assert body["success"] is False
    assert body["code"] == code
    assert "stack" not in body


def test_test_connection_reports_connected(make_test_client):
    client = make_test_client(RecordingUpstream(body={"faultstring": "Produto não encontrado"}))

    response = client.get("/api/product/test-connection")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["connected"] is True
    assert body["message"] == "OMIE API connection successful"
    assert body["timestamp"]


def test_test_connection_reports_disconnected(make_test_client):
    client = make_test_client(RecordingUpstream(error=httpx.ConnectError("down")))

    body = client.get("/api/product/test-connection").json()

    assert body["connected"] is False
    assert body["message"] == "OMIE API connection failed"


def test_stats_are_static(make_test_client):
    client = make_test_client(RecordingUpstream(body=UPSTREAM_PRODUCT))

    body = client.get("/api/product/stats").json()

    assert body["success"] is True
    assert body["data"] == {
        "totalSearches": 0,
        "successfulSearches": 0,
        "failedSearches": 0,
        "averageResponseTime": 0,
        "lastSearch": None,
        "popularProducts": [],
    }


def test_huge_upstream_number_is_zeroed_not_a_server_error(make_test_client):
    client = make_test_client(RecordingUpstream(body={**UPSTREAM_PRODUCT, "nCMC": 10 ** 400}))

    response = client.post("/api/product/search", json={"productCode": "PRD00003"})

    assert response.status_code == 200
    assert response.json()["data"]["nCMC"] == 0


def test_wrong_method_uses_error_envelope(make_test_client):
    client = make_test_client(RecordingUpstream(body=UPSTREAM_PRODUCT))

    response = client.get("/api/product/search")

    assert response.status_code == 405
    body = response.json()
    assert body["success"] is False
    assert body["code"] == "METHOD_NOT_ALLOWED"
    assert "POST" in response.headers["Allow"]

import pytest
from starlette.requests import Request

from stock_lookup.config import Settings
from stock_lookup.middleware.guards import get_client_ip


def make_request(forwarded_for=None, peer="10.0.0.9"):
    headers = []
    if forwarded_for is not None:
        headers.append((b"x-forwarded-for", forwarded_for.encode("latin-1")))
    return Request({
        "type": "http",
        "method": "POST",
        "path": "/api/product/search",
        "headers": headers,
        "client": (peer, 51000) if peer else None,
    })


def test_peer_address_used_without_trusted_proxies():
    assert get_client_ip(make_request("1.2.3.4"), proxy_hops=0) == "10.0.0.9"


@pytest.mark.parametrize("forwarded_for, hops, expected", [
    ("203.0.113.7", 1, "203.0.113.7"),
    ("6.6.6.6, 203.0.113.7", 1, "203.0.113.7"),
    ("6.6.6.6, 203.0.113.7, 10.0.0.1", 2, "203.0.113.7"),
    ("203.0.113.7", 3, "203.0.113.7"),
    (" , 203.0.113.7 ,", 1, "203.0.113.7"),
])
def test_client_is_counted_from_the_right(forwarded_for, hops, expected):
    assert get_client_ip(make_request(forwarded_for), proxy_hops=hops) == expected


def test_missing_forwarded_for_falls_back_to_peer():
    assert get_client_ip(make_request(), proxy_hops=1) == "10.0.0.9"


def test_unknown_client_without_peer():
    assert get_client_ip(make_request(peer=None), proxy_hops=0) == "unknown"


def test_proxy_hops_only_apply_when_proxy_is_trusted():
    assert Settings().proxy_hops == 0
    assert Settings(trust_proxy=True, trusted_proxy_hops=2).proxy_hops == 2

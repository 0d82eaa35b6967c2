from __future__ import annotations

from urllib.parse import parse_qs

import httpx
import pytest

from pgp_guardian.exceptions import ProtocolParseFailure, TransportFailure
from pgp_guardian.hkp import HkpClient, normalize_server_url


@pytest.mark.parametrize(
    "server, expected",
    [
        ("hkp://keys.example.org", "http://keys.example.org:11371"),
        ("hkp://keys.example.org:8080", "http://keys.example.org:8080"),
        ("hkps://keys.example.org", "https://keys.example.org"),
        ("http://localhost:8080/", "http://localhost:8080"),
        ("keys.example.org", "http://keys.example.org:11371"),
    ],
)
def test_normalize_server_url(server: str, expected: str) -> None:
    assert normalize_server_url(server) == expected


@pytest.mark.parametrize("server", ["ftp://keys.example.org", "hkp://keys.example.org/?x=1"])
def test_normalize_rejects_unsupported_addresses(server: str) -> None:
    with pytest.raises(ValueError):
        normalize_server_url(server)


def test_fetch_key_builds_lookup_request(alice) -> None:
    key = alice[0]
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text=key.armored())

    client = HkpClient("hkp://keys.example.org", transport=httpx.MockTransport(handler))
    fetched = client.fetch_key(key.key_id)

    assert fetched is not None
    assert fetched.key_id == key.key_id
    (request,) = seen
    assert request.method == "GET"
    assert request.url.host == "keys.example.org"
    assert request.url.port == 11371
    assert request.url.path == "/pks/lookup"
    assert dict(request.url.params) == {"op": "get", "options": "mr", "search": f"0x{key.key_id_hex}"}


def test_fetch_key_by_short_id(alice) -> None:
    key = alice[0]

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["search"] == f"0x{key.key_id_hex[-8:]}"
        return httpx.Response(200, text=key.armored())

    client = HkpClient("http://localhost:8080", transport=httpx.MockTransport(handler))
    assert client.fetch_key(key.key_id_hex[-8:]).key_id == key.key_id


def test_fetch_key_not_found_is_none() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(404, text="No results found"))
    client = HkpClient("hkps://keys.example.org", transport=transport)
    assert client.fetch_key(0xDEADBEEFCAFEBABE) is None


def test_fetch_key_server_error() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(500, text="database on fire"))
    client = HkpClient("hkps://keys.example.org", transport=transport)
    with pytest.raises(TransportFailure) as excinfo:
        client.fetch_key(0xDEADBEEFCAFEBABE)
    assert excinfo.value.status_code == 500
    assert excinfo.value.body == "database on fire"
    assert "/pks/lookup" in excinfo.value.url


def test_fetch_key_malformed_body() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>maintenance</html>"))
    client = HkpClient("hkps://keys.example.org", transport=transport)
    with pytest.raises(ProtocolParseFailure):
        client.fetch_key(0xDEADBEEFCAFEBABE)


def test_fetch_key_rejects_wrong_key(alice, bob) -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(200, text=bob[0].armored()))
    client = HkpClient("hkps://keys.example.org", transport=transport)
    with pytest.raises(ProtocolParseFailure):
        client.fetch_key(alice[0].key_id)


def test_fetch_key_requires_key_id() -> None:
    client = HkpClient("hkps://keys.example.org", transport=httpx.MockTransport(lambda r: httpx.Response(200)))
    with pytest.raises(ValueError):
        client.fetch_key("alice@example.com")


def test_connection_error_is_transport_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = HkpClient("hkp://keys.example.org", transport=httpx.MockTransport(handler))
    with pytest.raises(TransportFailure) as excinfo:
        client.fetch_key(0xDEADBEEFCAFEBABE)
    assert excinfo.value.url.startswith("http://keys.example.org:11371/pks/lookup")


def test_unreachable_host_is_transport_failure() -> None:
    client = HkpClient("http://127.0.0.1:9", timeout=2)
    with pytest.raises(TransportFailure):
        client.fetch_key(0xDEADBEEFCAFEBABE)


def test_timeout_is_transport_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("too slow", request=request)

    client = HkpClient("hkp://keys.example.org", timeout=1, transport=httpx.MockTransport(handler))
    with pytest.raises(TransportFailure, match="Timed out"):
        client.fetch_key(0xDEADBEEFCAFEBABE)


def test_push_key_posts_form(alice) -> None:
    key = alice[0]
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text="Key added")

    HkpClient("hkp://keys.example.org", transport=httpx.MockTransport(handler)).push_key(key)

    (request,) = seen
    assert request.method == "POST"
    assert request.url.path == "/pks/add"
    assert request.headers["content-type"] == "application/x-www-form-urlencoded"
    form = parse_qs(request.content.decode("ascii"))
    assert form["keytext"] == [key.armored()]


def test_push_key_rejected(alice) -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(403, text="key too large"))
    client = HkpClient("hkp://keys.example.org", transport=transport)
    with pytest.raises(TransportFailure) as excinfo:
        client.push_key(alice[0])
    assert excinfo.value.status_code == 403
    assert "key too large" in str(excinfo.value)

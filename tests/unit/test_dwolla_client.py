"""Unit tests for the Dwolla request forwarder"""

import asyncio
import inspect
from typing import Callable, List

import httpx
import pytest

from dwolla_dashboard.domain.exceptions import ConfigurationError, MappingError, ProviderError
from dwolla_dashboard.infrastructure.clients.dwolla import HAL_JSON, DwollaClient, parse_provider_errors
from dwolla_dashboard.infrastructure.clients.token import TokenManager

API_BASE = "https://api-sandbox.dwolla.com"


class Recorder:
    """Routes /token itself and hands every other request to ``handler``"""

    def __init__(self, handler: Callable):
        self.handler = handler
        self.grants = 0
        self.requests: List[httpx.Request] = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/token":
            self.grants += 1
            return httpx.Response(200, json={"access_token": f"token-{self.grants}", "expires_in": 3600})

        self.requests.append(request)
        response = self.handler(request)
        if inspect.isawaitable(response):
            response = await response
        return response


def make_client(handler: Callable, configured: bool = True):
    recorder = Recorder(handler)
    transport = httpx.MockTransport(recorder)
    token_manager = TokenManager(api_base=API_BASE, transport=transport)
    if configured:
        token_manager.configure("app-key", "app-secret")
    return DwollaClient(token_manager, api_base=API_BASE, transport=transport), recorder


def dwolla_validation_error(code: str, message: str, path: str) -> httpx.Response:
    return httpx.Response(
        400,
        json={
            "code": "ValidationError",
            "message": "Validation error(s) present.",
            "_embedded": {"errors": [{"code": code, "message": message, "path": path}]},
        },
    )


def test_parse_provider_errors_prefers_embedded_list():
    errors = parse_provider_errors(
        {
            "code": "ValidationError",
            "message": "Validation error(s) present.",
            "_embedded": {"errors": [{"code": "Duplicate", "message": "Email taken.", "path": "/email"}]},
        }
    )

    assert len(errors) == 1
    assert errors[0].code == "Duplicate"
    assert errors[0].path == "/email"


def test_parse_provider_errors_falls_back_to_top_level():
    errors = parse_provider_errors({"code": "NotFound", "message": "Customer not found."})
    assert [(e.code, e.message) for e in errors] == [("NotFound", "Customer not found.")]

    assert parse_provider_errors("not json") == []
    assert parse_provider_errors({}) == []


def test_resolve_keeps_absolute_urls():
    client, _ = make_client(lambda r: httpx.Response(200, json={}))

    assert client.resolve("customers") == f"{API_BASE}/customers"
    assert client.resolve("/customers") == f"{API_BASE}/customers"
    assert client.resolve(f"{API_BASE}/transfers/abc") == f"{API_BASE}/transfers/abc"


async def test_forward_attaches_bearer_and_hal_headers():
    client, recorder = make_client(lambda r: httpx.Response(200, json={"ok": True}))

    body = await client.get("customers", params={"limit": 5})

    assert body == {"ok": True}
    request = recorder.requests[0]
    assert request.headers["authorization"] == "Bearer token-1"
    assert request.headers["accept"] == HAL_JSON
    assert request.url.params["limit"] == "5"


async def test_forward_sends_hal_content_type_with_body():
    client, recorder = make_client(lambda r: httpx.Response(200, json={}))

    await client.post("customers/abc", {"ssn": "1234"})

    assert recorder.requests[0].headers["content-type"] == HAL_JSON


async def test_forward_rejects_unsupported_method():
    client, recorder = make_client(lambda r: httpx.Response(200, json={}))

    with pytest.raises(ValueError):
        await client.forward("PATCH", "customers")

    assert recorder.requests == []


async def test_forward_requires_configuration():
    client, recorder = make_client(lambda r: httpx.Response(200, json={}), configured=False)

    with pytest.raises(ConfigurationError):
        await client.get("customers")

    assert recorder.requests == []


async def test_client_error_maps_to_400_with_provider_messages():
    client, recorder = make_client(lambda r: dwolla_validation_error("Duplicate", "Email taken.", "/email"))

    with pytest.raises(ProviderError) as exc_info:
        await client.post("customers", {"email": "a@b.com"})

    error = exc_info.value
    assert error.http_status == 400
    assert error.provider_status == 400
    assert error.message == "Email taken."
    assert error.errors[0].code == "Duplicate"
    # No retry
    assert len(recorder.requests) == 1


async def test_server_error_maps_to_500():
    client, recorder = make_client(lambda r: httpx.Response(502, text="bad gateway"))

    with pytest.raises(ProviderError) as exc_info:
        await client.get("customers")

    assert exc_info.value.http_status == 500
    assert exc_info.value.message == "Dwolla API request failed"
    assert len(recorder.requests) == 1


async def test_network_failure_maps_to_500():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    client, recorder = make_client(handler)

    with pytest.raises(ProviderError) as exc_info:
        await client.get("customers")

    assert exc_info.value.http_status == 500
    assert exc_info.value.provider_status is None
    assert len(recorder.requests) == 1


async def test_unauthorized_response_invalidates_token():
    client, recorder = make_client(lambda r: httpx.Response(401, json={"code": "InvalidAccessToken"}))

    with pytest.raises(ProviderError):
        await client.get("customers")
    assert client.token_manager.token is None

    with pytest.raises(ProviderError):
        await client.get("customers")
    assert recorder.grants == 2


async def test_create_follows_location_header():
    location = f"{API_BASE}/customers/new-id"

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            return httpx.Response(201, headers={"Location": location})
        return httpx.Response(200, json={"id": "new-id"})

    client, recorder = make_client(handler)

    url, document = await client.create("customers", {"firstName": "Jane"})

    assert url == location
    assert document == {"id": "new-id"}
    assert [(r.method, str(r.url)) for r in recorder.requests] == [
        ("POST", f"{API_BASE}/customers"),
        ("GET", location),
    ]


async def test_create_without_location_is_mapping_error():
    client, _ = make_client(lambda r: httpx.Response(201))

    with pytest.raises(MappingError):
        await client.create("customers", {"firstName": "Jane"})


async def test_account_url_reads_root_links():
    account = f"{API_BASE}/accounts/acct-1"
    client, _ = make_client(lambda r: httpx.Response(200, json={"_links": {"account": {"href": account}}}))

    assert await client.account_url() == account


async def test_fetch_many_captures_failures_per_url():
    good = f"{API_BASE}/funding-sources/good"
    bad = f"{API_BASE}/funding-sources/bad"

    def handler(request: httpx.Request) -> httpx.Response:
        if str(request.url) == bad:
            return httpx.Response(404, json={"code": "NotFound", "message": "Funding source not found."})
        return httpx.Response(200, json={"name": "Checking"})

    client, recorder = make_client(handler)

    results = await client.fetch_many([good, bad, good, None])

    assert set(results) == {good, bad}
    assert results[good].ok and results[good].body == {"name": "Checking"}
    assert not results[bad].ok
    assert isinstance(results[bad].error, ProviderError)
    # Duplicates fetched once
    assert len(recorder.requests) == 2


async def test_fetch_many_bounds_concurrency():
    in_flight = 0
    peak = 0

    async def handler(request: httpx.Request) -> httpx.Response:
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return httpx.Response(200, json={})

    client, _ = make_client(handler)
    urls = [f"{API_BASE}/funding-sources/{i}" for i in range(10)]

    results = await client.fetch_many(urls, concurrency=3)

    assert len(results) == 10
    assert peak <= 3


async def test_fetch_many_with_no_urls_makes_no_calls():
    client, recorder = make_client(lambda r: httpx.Response(200, json={}))

    assert await client.fetch_many([]) == {}
    assert recorder.requests == []

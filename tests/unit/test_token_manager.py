"""Unit tests for the OAuth token lifecycle"""

import asyncio
import base64
from typing import List

import httpx
import pytest

from dwolla_dashboard.domain.exceptions import AuthenticationError, ConfigurationError, ProviderError
from dwolla_dashboard.infrastructure.clients.token import TokenManager

API_BASE = "https://api-sandbox.dwolla.com"


class FakeClock:
    """Monotonic clock the test moves by hand"""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def token_transport(grants: List[httpx.Request], status_code: int = 200, expires_in: int = 3600):
    def handler(request: httpx.Request) -> httpx.Response:
        grants.append(request)
        if status_code != 200:
            return httpx.Response(status_code, json={"error": "invalid_client"})
        return httpx.Response(
            200,
            json={"access_token": f"token-{len(grants)}", "token_type": "bearer", "expires_in": expires_in},
        )

    return httpx.MockTransport(handler)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def grants() -> List[httpx.Request]:
    return []


@pytest.fixture
def manager(grants, clock) -> TokenManager:
    tm = TokenManager(api_base=API_BASE, safety_margin=60, transport=token_transport(grants), clock=clock)
    tm.configure("app-key", "app-secret")
    return tm


async def test_unconfigured_manager_raises_configuration_error(grants, clock):
    tm = TokenManager(api_base=API_BASE, transport=token_transport(grants), clock=clock)

    with pytest.raises(ConfigurationError):
        await tm.get_valid_token()

    assert grants == []


async def test_token_request_uses_client_credentials_grant(manager, grants):
    await manager.get_valid_token()

    request = grants[0]
    assert request.method == "POST"
    assert str(request.url) == f"{API_BASE}/token"
    expected = base64.b64encode(b"app-key:app-secret").decode()
    assert request.headers["authorization"] == f"Basic {expected}"
    assert b"grant_type=client_credentials" in request.content


async def test_token_reused_within_lifetime_minus_margin(manager, grants, clock):
    """Repeated calls inside (expires_in - 60s) make exactly one grant"""
    first = await manager.get_valid_token()
    clock.advance(3539)
    second = await manager.get_valid_token()

    assert first.access_token == second.access_token
    assert len(grants) == 1


async def test_token_refreshed_once_margin_is_reached(manager, grants, clock):
    first = await manager.get_valid_token()
    clock.advance(3540)
    second = await manager.get_valid_token()
    third = await manager.get_valid_token()

    assert second.access_token != first.access_token
    assert third.access_token == second.access_token
    assert len(grants) == 2


async def test_concurrent_callers_share_one_refresh(manager, grants):
    tokens = await asyncio.gather(*(manager.get_valid_token() for _ in range(5)))

    assert len({t.access_token for t in tokens}) == 1
    assert len(grants) == 1


async def test_rejected_credentials_raise_authentication_error(grants, clock):
    tm = TokenManager(api_base=API_BASE, transport=token_transport(grants, status_code=401), clock=clock)
    tm.configure("bad-key", "bad-secret")

    with pytest.raises(AuthenticationError) as exc_info:
        await tm.get_valid_token()

    assert exc_info.value.http_status == 400
    assert "Check your API credentials" in exc_info.value.message
    # Not retried
    assert len(grants) == 1
    assert tm.token is None


async def test_token_endpoint_server_error_is_provider_error(grants, clock):
    tm = TokenManager(api_base=API_BASE, transport=token_transport(grants, status_code=503), clock=clock)
    tm.configure("app-key", "app-secret")

    with pytest.raises(ProviderError) as exc_info:
        await tm.get_valid_token()

    assert exc_info.value.http_status == 500


async def test_unreachable_token_endpoint_is_provider_error(clock):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    tm = TokenManager(api_base=API_BASE, transport=httpx.MockTransport(handler), clock=clock)
    tm.configure("app-key", "app-secret")

    with pytest.raises(ProviderError):
        await tm.get_valid_token()


async def test_malformed_token_response_is_authentication_error(clock):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"token_type": "bearer"})

    tm = TokenManager(api_base=API_BASE, transport=httpx.MockTransport(handler), clock=clock)
    tm.configure("app-key", "app-secret")

    with pytest.raises(AuthenticationError):
        await tm.get_valid_token()


async def test_reconfigure_drops_held_token(manager, grants):
    await manager.get_valid_token()
    manager.configure("other-key", "other-secret")

    assert manager.token is None
    await manager.get_valid_token()
    assert len(grants) == 2


async def test_invalidate_forces_new_grant(manager, grants):
    await manager.get_valid_token()
    manager.invalidate()
    await manager.get_valid_token()

    assert len(grants) == 2


async def test_status_reports_token_state(manager, clock):
    assert manager.status() == {"has_token": False, "token_status": "none", "remaining_token_time": 0}

    await manager.get_valid_token()
    clock.advance(600)
    status = manager.status()
    assert status["has_token"] is True
    assert status["token_status"] == "valid"
    assert status["remaining_token_time"] == 3000

    clock.advance(4000)
    status = manager.status()
    assert status["token_status"] == "expired"
    assert status["remaining_token_time"] == 0


async def test_credentials_cleared_while_waiting_for_refresh(manager, grants):
    """A caller queued behind the refresh lock sees credentials cleared meanwhile"""
    async with manager._refresh_lock:
        waiting = asyncio.create_task(manager.get_valid_token())
        await asyncio.sleep(0)
        manager.clear()

    with pytest.raises(ConfigurationError):
        await waiting

    assert grants == []


def test_clear_forgets_credentials(manager):
    manager.clear()

    assert manager.is_configured is False
    assert manager.token is None

"""Pytest fixtures for testing"""

from typing import Callable, Generator

import httpx
import pytest
from fastapi.testclient import TestClient

from dwolla_dashboard.api.main import create_app
from dwolla_dashboard.config import Settings
from sandbox_mock.main import SandboxState, create_sandbox_app

DWOLLA_BASE = "https://api-sandbox.dwolla.com"


@pytest.fixture
def sandbox() -> SandboxState:
    """Fresh mock Dwolla sandbox per test"""
    return SandboxState(base_url=DWOLLA_BASE)


@pytest.fixture
def test_settings() -> Settings:
    return Settings(dwolla_api_base=DWOLLA_BASE, log_level="WARNING", detail_fetch_concurrency=3)


@pytest.fixture
def client(test_settings: Settings, sandbox: SandboxState) -> Generator[TestClient, None, None]:
    """Dashboard test client whose Dwolla calls land on the mock sandbox"""
    transport = httpx.ASGITransport(app=create_sandbox_app(sandbox))
    app = create_app(settings=test_settings, transport=transport)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def configured_client(client: TestClient, sandbox: SandboxState) -> TestClient:
    """Test client with sandbox credentials already configured"""
    response = client.post("/api/config", json={"key": sandbox.key, "secret": sandbox.secret})
    assert response.status_code == 200
    return client


@pytest.fixture
def create_customer(configured_client: TestClient) -> Callable[..., dict]:
    """Create a customer through the API and return its JSON record"""

    def _create(email: str = "jane@example.com", **fields) -> dict:
        body = {"firstName": "Jane", "lastName": "Doe", "email": email, **fields}
        response = configured_client.post("/api/customers", json=body)
        assert response.status_code == 201, response.json()
        return response.json()["customer"]

    return _create


@pytest.fixture
def add_funding_source(configured_client: TestClient) -> Callable[..., dict]:
    """Attach a sandbox bank account to a customer and return its JSON record"""

    def _add(customer_id: str, name: str = "Payout Checking") -> dict:
        response = configured_client.post(f"/api/customers/{customer_id}/funding-sources", json={"name": name})
        assert response.status_code == 201, response.json()
        return response.json()["fundingSource"]

    return _add

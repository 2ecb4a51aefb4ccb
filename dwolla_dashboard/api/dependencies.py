"""Dependency injection for FastAPI endpoints"""

from dataclasses import dataclass
from typing import Optional

import httpx
from fastapi import Request

from dwolla_dashboard.config import Settings
from dwolla_dashboard.infrastructure.clients.dwolla import DwollaClient
from dwolla_dashboard.infrastructure.clients.token import TokenManager
from dwolla_dashboard.infrastructure.registry.stores import CustomerStore, TransferStore, WebhookStore


@dataclass
class DashboardContext:
    """Process-wide state: credentials/token, Dwolla client and registries"""

    settings: Settings
    token_manager: TokenManager
    dwolla: DwollaClient
    customers: CustomerStore
    transfers: TransferStore
    webhooks: WebhookStore
    webhook_secret: Optional[str] = None

    @classmethod
    def build(cls, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> "DashboardContext":
        token_manager = TokenManager(
            api_base=settings.dwolla_api_base,
            timeout=settings.http_timeout_seconds,
            safety_margin=settings.token_safety_margin_seconds,
            transport=transport,
        )
        return cls(
            settings=settings,
            token_manager=token_manager,
            dwolla=DwollaClient(
                token_manager,
                api_base=settings.dwolla_api_base,
                timeout=settings.http_timeout_seconds,
                transport=transport,
            ),
            customers=CustomerStore(),
            transfers=TransferStore(),
            webhooks=WebhookStore(capacity=settings.webhook_buffer_size),
        )

    def reset_registries(self) -> None:
        """Registries belong to one credential pair; reconfiguring starts over"""
        self.customers.clear()
        self.transfers.clear()
        self.webhooks.clear()


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_context(request: Request) -> DashboardContext:
    return request.app.state.context


def get_dwolla_client(request: Request) -> DwollaClient:
    """Provide the Dwolla request forwarder"""
    return get_context(request).dwolla


def get_customer_store(request: Request) -> CustomerStore:
    return get_context(request).customers


def get_transfer_store(request: Request) -> TransferStore:
    return get_context(request).transfers


def get_webhook_store(request: Request) -> WebhookStore:
    return get_context(request).webhooks

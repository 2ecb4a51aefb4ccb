"""
Mock Dwolla sandbox.

Answers the subset of the Dwolla API the dashboard uses, with HAL
documents, Location headers and Dwolla-shaped error bodies. Run it
standalone for offline GUI work:

    SANDBOX_BASE_URL=http://localhost:8001 uvicorn sandbox_mock.main:app --port 8001
    DWOLLA_API_BASE=http://localhost:8001 dwolla-dashboard

Tests mount it in-process through httpx.ASGITransport.
"""

import base64
import os
import secrets
import uuid
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Tuple

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

DWOLLA_SANDBOX_URL = "https://api-sandbox.dwolla.com"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return str(uuid.uuid4())


def dwolla_error(status: int, code: str, message: str, errors: Optional[List[Dict[str, str]]] = None) -> JSONResponse:
    body: Dict[str, Any] = {"code": code, "message": message}
    if errors:
        body["_embedded"] = {"errors": errors}
    return JSONResponse(status_code=status, content=body)


def validation_error(code: str, message: str, path: str) -> JSONResponse:
    return dwolla_error(
        400,
        "ValidationError",
        "Validation error(s) present. See embedded errors list for more details.",
        [{"code": code, "message": message, "path": path}],
    )


def not_found(kind: str) -> JSONResponse:
    return dwolla_error(404, "NotFound", f"{kind} not found.")


class SandboxState:
    """Everything the mock sandbox knows; tests reach in to arrange scenarios"""

    def __init__(
        self,
        key: str = "sandbox-key",
        secret: str = "sandbox-secret",
        base_url: str = DWOLLA_SANDBOX_URL,
        token_lifetime: int = 3600,
        master_balance: str = "10000.00",
    ):
        self.key = key
        self.secret = secret
        self.base_url = base_url.rstrip("/")
        self.token_lifetime = token_lifetime
        self.tokens: set = set()
        self.token_grants = 0
        self.requests: List[Tuple[str, str]] = []
        self.failing_paths: set = set()

        self.account_id = _new_id()
        self.customers: Dict[str, Dict[str, Any]] = {}
        self.funding_sources: Dict[str, Dict[str, Any]] = {}
        self.transfers: Dict[str, Dict[str, Any]] = {}

        self.balance_source_url = self.add_funding_source(
            name="Balance", status="verified", source_type="balance", balance=master_balance
        )
        self.master_bank_url = self.add_funding_source(name="Master Checking", status="verified")

    def url(self, *parts: str) -> str:
        return "/".join([self.base_url, *parts])

    @staticmethod
    def id_from(url: str) -> str:
        return url.rstrip("/").split("/")[-1]

    # Scenario helpers

    def add_customer(
        self,
        first_name: str = "Jane",
        last_name: str = "Doe",
        email: Optional[str] = None,
        status: str = "unverified",
        customer_type: str = "personal",
        phone: Optional[str] = None,
    ) -> str:
        customer_id = _new_id()
        self.customers[customer_id] = {
            "id": customer_id,
            "firstName": first_name,
            "lastName": last_name,
            "email": email or f"{customer_id[:8]}@example.com",
            "type": customer_type,
            "status": status,
            "phone": phone,
            "created": _now(),
        }
        return self.url("customers", customer_id)

    def add_funding_source(
        self,
        customer_url: Optional[str] = None,
        name: str = "Checking",
        status: str = "unverified",
        source_type: str = "bank",
        balance: Optional[str] = None,
        removed: bool = False,
    ) -> str:
        source_id = _new_id()
        self.funding_sources[source_id] = {
            "id": source_id,
            "name": name,
            "status": status,
            "type": source_type,
            "bankAccountType": "checking" if source_type == "bank" else None,
            "bankName": "SANDBOX TEST BANK" if source_type == "bank" else None,
            "removed": removed,
            "created": _now(),
            "customer_id": self.id_from(customer_url) if customer_url else None,
            "balance": Decimal(balance) if balance is not None else None,
        }
        return self.url("funding-sources", source_id)

    def set_funding_source_status(self, url: str, status: str) -> None:
        self.funding_sources[self.id_from(url)]["status"] = status

    def set_customer_status(self, url: str, status: str) -> None:
        self.customers[self.id_from(url)]["status"] = status

    def add_transfer(self, source_url: str, destination_url: str, value: str = "10.00", status: str = "pending") -> str:
        transfer_id = _new_id()
        self.transfers[transfer_id] = {
            "id": transfer_id,
            "status": status,
            "amount": {"value": value, "currency": "USD"},
            "created": _now(),
            "source": source_url,
            "destination": destination_url,
        }
        return self.url("transfers", transfer_id)

    def provider_calls(self) -> List[Tuple[str, str]]:
        """Requests other than token grants"""
        return [r for r in self.requests if r[1] != "/token"]

    # Documents

    def customer_document(self, customer: Dict[str, Any]) -> Dict[str, Any]:
        document = {k: v for k, v in customer.items() if v is not None}
        document["_links"] = {
            "self": {"href": self.url("customers", customer["id"])},
            "funding-sources": {"href": self.url("customers", customer["id"], "funding-sources")},
        }
        return document

    def funding_source_document(self, source: Dict[str, Any]) -> Dict[str, Any]:
        document = {
            k: v for k, v in source.items() if k not in ("customer_id", "balance") and v is not None
        }
        links = {"self": {"href": self.url("funding-sources", source["id"])}}
        if source["customer_id"]:
            links["customer"] = {"href": self.url("customers", source["customer_id"])}
        else:
            links["account"] = {"href": self.url("accounts", self.account_id)}
        if source["type"] == "balance":
            links["balance"] = {"href": self.url("funding-sources", source["id"], "balance")}
        document["_links"] = links
        return document

    def transfer_document(self, transfer: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "_links": {
                "self": {"href": self.url("transfers", transfer["id"])},
                "source": {"href": transfer["source"]},
                "destination": {"href": transfer["destination"]},
            },
            "id": transfer["id"],
            "status": transfer["status"],
            "amount": transfer["amount"],
            "created": transfer["created"],
        }

    def listing(self, key: str, documents: List[Dict[str, Any]]) -> Dict[str, Any]:
        return {"_embedded": {key: documents}, "total": len(documents)}


def _limit(request: Request, default: int = 25) -> int:
    try:
        return int(request.query_params.get("limit", default))
    except ValueError:
        return default


def create_sandbox_app(state: Optional[SandboxState] = None) -> FastAPI:
    state = state or SandboxState()
    app = FastAPI(title="Mock Dwolla Sandbox", version="1.0.0")
    app.state.sandbox = state

    @app.middleware("http")
    async def authorize(request: Request, call_next):
        state.requests.append((request.method, request.url.path))

        if request.url.path in state.failing_paths:
            return dwolla_error(500, "ServerError", "A server error occurred.")

        if request.url.path not in ("/token", "/health"):
            header = request.headers.get("authorization", "")
            if not header.startswith("Bearer ") or header[len("Bearer "):] not in state.tokens:
                return dwolla_error(401, "InvalidAccessToken", "Invalid access token.")

        return await call_next(request)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.post("/token")
    async def token(request: Request):
        header = request.headers.get("authorization", "")
        try:
            key, _, secret = base64.b64decode(header.removeprefix("Basic ")).decode().partition(":")
        except ValueError:
            key, secret = "", ""

        form = (await request.body()).decode()
        if "grant_type=client_credentials" not in form:
            return JSONResponse(status_code=400, content={"error": "unsupported_grant_type"})
        if key != state.key or secret != state.secret:
            return JSONResponse(status_code=401, content={"error": "invalid_client"})

        access_token = secrets.token_urlsafe(24)
        state.tokens.add(access_token)
        state.token_grants += 1
        return {"access_token": access_token, "token_type": "bearer", "expires_in": state.token_lifetime}

    @app.get("/")
    def root():
        return {"_links": {"account": {"href": state.url("accounts", state.account_id)}}}

    @app.get("/accounts/{account_id}")
    def get_account(account_id: str):
        if account_id != state.account_id:
            return not_found("Account")
        return {
            "_links": {"self": {"href": state.url("accounts", account_id)}},
            "id": account_id,
            "name": "Sandbox Master Account",
            "type": "business",
        }

    @app.get("/accounts/{account_id}/funding-sources")
    def account_funding_sources(account_id: str):
        if account_id != state.account_id:
            return not_found("Account")
        sources = [s for s in state.funding_sources.values() if s["customer_id"] is None]
        return state.listing("funding-sources", [state.funding_source_document(s) for s in sources])

    @app.get("/accounts/{account_id}/transfers")
    def account_transfers(account_id: str, request: Request):
        if account_id != state.account_id:
            return not_found("Account")
        transfers = list(state.transfers.values())[: _limit(request)]
        return state.listing("transfers", [state.transfer_document(t) for t in transfers])

    @app.post("/customers")
    async def create_customer(request: Request):
        body = await request.json()
        for field in ("firstName", "lastName", "email"):
            if not body.get(field):
                return validation_error("Required", f"{field} is required.", f"/{field}")
        if any(c["email"].lower() == body["email"].lower() for c in state.customers.values()):
            return validation_error("Duplicate", "A customer with the specified email already exists.", "/email")
        if body.get("type") == "business" and not body.get("businessName"):
            return validation_error("Required", "businessName is required.", "/businessName")

        url = state.add_customer(
            first_name=body["firstName"],
            last_name=body["lastName"],
            email=body["email"],
            customer_type=body.get("type", "personal"),
            phone=body.get("phone"),
        )
        return Response(status_code=201, headers={"Location": url})

    @app.get("/customers")
    def list_customers(request: Request):
        customers = list(state.customers.values())[: _limit(request)]
        return state.listing("customers", [state.customer_document(c) for c in customers])

    @app.get("/customers/{customer_id}")
    def get_customer(customer_id: str):
        customer = state.customers.get(customer_id)
        if customer is None:
            return not_found("Customer")
        return state.customer_document(customer)

    @app.post("/customers/{customer_id}")
    async def update_customer(customer_id: str, request: Request):
        """Sandbox KYC: the SSN's last four digits pick the outcome"""
        customer = state.customers.get(customer_id)
        if customer is None:
            return not_found("Customer")

        body = await request.json()
        ssn = str(body.get("ssn") or "")
        if not ssn:
            return validation_error("Required", "ssn is required.", "/ssn")

        outcomes = {"0001": "retry", "0002": "document", "0003": "suspended"}
        customer["status"] = outcomes.get(ssn[-4:], "verified")
        return state.customer_document(customer)

    @app.post("/customers/{customer_id}/funding-sources")
    async def create_customer_funding_source(customer_id: str, request: Request):
        if customer_id not in state.customers:
            return not_found("Customer")

        body = await request.json()
        for field in ("routingNumber", "accountNumber", "bankAccountType", "name"):
            if not body.get(field):
                return validation_error("Required", f"{field} is required.", f"/{field}")

        url = state.add_funding_source(customer_url=state.url("customers", customer_id), name=body["name"])
        return Response(status_code=201, headers={"Location": url})

    @app.get("/customers/{customer_id}/funding-sources")
    def customer_funding_sources(customer_id: str):
        if customer_id not in state.customers:
            return not_found("Customer")
        sources = [s for s in state.funding_sources.values() if s["customer_id"] == customer_id]
        return state.listing("funding-sources", [state.funding_source_document(s) for s in sources])

    @app.post("/customers/{customer_id}/iav-token")
    def iav_token(customer_id: str):
        if customer_id not in state.customers:
            return not_found("Customer")
        return {"token": secrets.token_urlsafe(32)}

    @app.get("/funding-sources/{source_id}")
    def get_funding_source(source_id: str):
        source = state.funding_sources.get(source_id)
        if source is None:
            return not_found("Funding source")
        return state.funding_source_document(source)

    @app.get("/funding-sources/{source_id}/balance")
    def get_balance(source_id: str):
        source = state.funding_sources.get(source_id)
        if source is None or source["balance"] is None:
            return not_found("Balance")
        amount = {"value": f"{source['balance']:.2f}", "currency": "USD"}
        return {"balance": amount, "total": amount, "lastUpdated": _now()}

    @app.post("/transfers")
    async def create_transfer(request: Request):
        body = await request.json()
        links = body.get("_links") or {}
        source_url = (links.get("source") or {}).get("href", "")
        destination_url = (links.get("destination") or {}).get("href", "")

        source = state.funding_sources.get(state.id_from(source_url))
        if source is None or source["status"] != "verified":
            return validation_error("Invalid", "Invalid funding source.", "/_links/source/href")

        destination = state.funding_sources.get(state.id_from(destination_url))
        if destination is None:
            return validation_error("Invalid", "Invalid funding source.", "/_links/destination/href")
        if destination["status"] != "verified":
            owner = state.customers.get(destination["customer_id"] or "")
            if owner is None or owner["status"] != "verified":
                return validation_error("Invalid", "Invalid funding source.", "/_links/destination/href")

        try:
            value = Decimal(str((body.get("amount") or {}).get("value")))
        except InvalidOperation:
            return validation_error("Invalid", "Invalid amount.", "/amount/value")

        if source["balance"] is not None:
            if value > source["balance"]:
                return validation_error("InsufficientFunds", "Insufficient funds.", "/amount/value")
            source["balance"] -= value

        url = state.add_transfer(source_url, destination_url, value=f"{value:.2f}")
        return Response(status_code=201, headers={"Location": url})

    @app.get("/transfers/{transfer_id}")
    def get_transfer(transfer_id: str):
        transfer = state.transfers.get(transfer_id)
        if transfer is None:
            return not_found("Transfer")
        return state.transfer_document(transfer)

    return app


app = create_sandbox_app(
    SandboxState(
        key=os.getenv("SANDBOX_KEY", "sandbox-key"),
        secret=os.getenv("SANDBOX_SECRET", "sandbox-secret"),
        base_url=os.getenv("SANDBOX_BASE_URL", "http://localhost:8001"),
    )
)

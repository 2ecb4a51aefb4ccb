"""Dwolla REST client: attaches a fresh token and relays calls"""

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

import httpx

from dwolla_dashboard.config import settings
from dwolla_dashboard.domain.exceptions import MappingError, ProviderError
from dwolla_dashboard.domain.models import FetchResult, ProviderErrorDetail, ProviderResponse
from dwolla_dashboard.infrastructure.clients.token import TokenManager
from dwolla_dashboard.infrastructure.observability.metrics import (
    dwolla_latency_histogram,
    dwolla_request_counter,
    outcome_for_status,
)

HAL_JSON = "application/vnd.dwolla.v1.hal+json"
ALLOWED_METHODS = ("GET", "POST", "DELETE")


def parse_provider_errors(body: Any) -> List[ProviderErrorDetail]:
    """
    Flatten a Dwolla error document.

    Dwolla answers ``{code, message, _embedded: {errors: [...]}}``; the
    embedded list is preferred, the top-level pair is the fallback.
    """
    if not isinstance(body, dict):
        return []

    embedded = body.get("_embedded")
    if isinstance(embedded, dict) and isinstance(embedded.get("errors"), list):
        return [
            ProviderErrorDetail(code=e.get("code", ""), message=e.get("message", ""), path=e.get("path"))
            for e in embedded["errors"]
            if isinstance(e, dict)
        ]

    if body.get("code") or body.get("message"):
        return [ProviderErrorDetail(code=body.get("code", ""), message=body.get("message", ""))]
    return []


class DwollaClient:
    """
    Request forwarder for the Dwolla API.

    Every call goes through the TokenManager first. Failures are raised as
    ProviderError carrying Dwolla's status and error list; nothing is
    retried here, callers decide.
    """

    def __init__(
        self,
        token_manager: TokenManager,
        api_base: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token_manager = token_manager
        self.api_base = (api_base or settings.dwolla_api_base).rstrip("/")
        self.timeout = timeout or settings.http_timeout_seconds
        self.transport = transport

    def resolve(self, path_or_url: str) -> str:
        """Absolute URLs pass through; paths resolve against the API root"""
        if path_or_url.startswith(("http://", "https://")):
            return path_or_url
        return f"{self.api_base}/{path_or_url.lstrip('/')}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport, timeout=self.timeout)

    async def forward(
        self,
        method: str,
        path_or_url: str,
        body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> ProviderResponse:
        """
        Relay one call to Dwolla.

        Raises:
            ConfigurationError / AuthenticationError: From the TokenManager
            ProviderError: Dwolla answered >= 400 or could not be reached
        """
        method = method.upper()
        if method not in ALLOWED_METHODS:
            raise ValueError(f"Unsupported method: {method}")

        token = await self.token_manager.get_valid_token()
        url = self.resolve(path_or_url)
        headers = {"Authorization": f"Bearer {token.access_token}", "Accept": HAL_JSON}
        if body is not None:
            headers["Content-Type"] = HAL_JSON

        if client is None:
            async with self._client() as owned:
                return await self._send(owned, method, url, headers, body, params)
        return await self._send(client, method, url, headers, body, params)

    async def _send(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        headers: Dict[str, str],
        body: Optional[Dict[str, Any]],
        params: Optional[Dict[str, Any]],
    ) -> ProviderResponse:
        try:
            with dwolla_latency_histogram.time():
                response = await client.request(method, url, json=body, params=params, headers=headers)
        except httpx.RequestError as e:
            dwolla_request_counter.labels(method=method, outcome="unreachable").inc()
            logging.error(f"Dwolla {method} {url} unreachable: {e.__class__.__name__}")
            raise ProviderError("Dwolla API unreachable") from e

        dwolla_request_counter.labels(method=method, outcome=outcome_for_status(response.status_code)).inc()

        try:
            payload = response.json() if response.content else {}
        except ValueError:
            payload = {}

        if response.status_code >= 400:
            if response.status_code == 401:
                self.token_manager.invalidate()
            errors = parse_provider_errors(payload)
            logging.warning(
                f"Dwolla {method} {url} failed",
                extra={"provider_status": response.status_code, "codes": [e.code for e in errors]},
            )
            raise ProviderError(provider_status=response.status_code, errors=errors)

        return ProviderResponse(
            status=response.status_code,
            headers={k.lower(): v for k, v in response.headers.items()},
            body=payload if isinstance(payload, dict) else {},
        )

    async def get(self, path_or_url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return (await self.forward("GET", path_or_url, params=params)).body

    async def post(self, path_or_url: str, body: Optional[Dict[str, Any]] = None) -> ProviderResponse:
        return await self.forward("POST", path_or_url, body=body if body is not None else {})

    async def delete(self, path_or_url: str) -> ProviderResponse:
        return await self.forward("DELETE", path_or_url)

    async def create(self, path_or_url: str, body: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
        """
        POST a new resource and follow its Location header.

        Dwolla answers 201 with an empty body; the created document is
        fetched from the Location URL. Returns (url, document).
        """
        response = await self.post(path_or_url, body)
        location = response.location
        if not location:
            raise MappingError("Dwolla did not return a Location header for the created resource")
        return location, await self.get(location)

    async def account_url(self) -> str:
        """URL of the master account, from the API root's links"""
        root = await self.get("/")
        href = (root.get("_links") or {}).get("account", {}).get("href")
        if not href:
            raise MappingError("Dwolla root document has no account link")
        return href

    async def fetch_many(self, urls: Iterable[str], concurrency: Optional[int] = None) -> Dict[str, FetchResult]:
        """
        GET several documents with bounded concurrency.

        Failures are captured per URL instead of aborting the batch.
        Duplicate URLs are fetched once.
        """
        unique = list(dict.fromkeys(u for u in urls if u))
        if not unique:
            return {}

        semaphore = asyncio.Semaphore(concurrency or settings.detail_fetch_concurrency)

        async with self._client() as client:

            async def fetch(url: str) -> FetchResult:
                async with semaphore:
                    try:
                        response = await self.forward("GET", url, client=client)
                        return FetchResult(url=url, body=response.body)
                    except ProviderError as e:
                        return FetchResult(url=url, error=e)

            results = await asyncio.gather(*(fetch(u) for u in unique))

        return {r.url: r for r in results}

"""Customer funding source endpoints and IAV token issuance"""

import logging

from fastapi import APIRouter, Depends

from dwolla_dashboard.api.dependencies import get_customer_store, get_dwolla_client
from dwolla_dashboard.api.v1.customers import require_customer
from dwolla_dashboard.api.v1.schemas import (
    FundingSourceListResponse,
    FundingSourceRequest,
    FundingSourceResponse,
    FundingSourceSchema,
    IavTokenResponse,
)
from dwolla_dashboard.domain.customers import build_funding_source_payload
from dwolla_dashboard.domain.exceptions import MappingError
from dwolla_dashboard.domain.mappers import funding_source_from_provider, funding_sources_from_listing
from dwolla_dashboard.infrastructure.clients.dwolla import DwollaClient
from dwolla_dashboard.infrastructure.registry.stores import CustomerStore

router = APIRouter()


@router.post("/customers/{customer_id}/funding-sources", response_model=FundingSourceResponse, status_code=201)
async def add_funding_source(
    customer_id: str,
    request_body: FundingSourceRequest,
    dwolla: DwollaClient = Depends(get_dwolla_client),
    customers: CustomerStore = Depends(get_customer_store),
):
    """
    Attach a bank account to a customer.

    The sandbox accepts test routing/account numbers directly, without the
    IAV flow; they are used when the caller leaves them blank.
    """
    customer = require_customer(customers, customer_id)
    payload = build_funding_source_payload(
        request_body.name,
        routing_number=request_body.routing_number,
        account_number=request_body.account_number,
        account_type=request_body.account_type,
    )

    url, document = await dwolla.create(f"{customer.url}/funding-sources", payload)
    record = funding_source_from_provider(document)
    if record is None:
        raise MappingError(f"Funding source {url} was reported as removed right after creation")

    logging.info("Funding source created", extra={"customer_id": customer_id, "funding_source_id": record.id})
    return FundingSourceResponse(funding_source=FundingSourceSchema.from_record(record))


@router.get("/customers/{customer_id}/funding-sources", response_model=FundingSourceListResponse)
async def list_funding_sources(
    customer_id: str,
    dwolla: DwollaClient = Depends(get_dwolla_client),
    customers: CustomerStore = Depends(get_customer_store),
):
    """Funding sources are never cached; always read from Dwolla"""
    customer = require_customer(customers, customer_id)
    body = await dwolla.get(f"{customer.url}/funding-sources")
    return FundingSourceListResponse(
        funding_sources=[FundingSourceSchema.from_record(s) for s in funding_sources_from_listing(body)]
    )


@router.post("/customers/{customer_id}/iav-token", response_model=IavTokenResponse)
async def create_iav_token(
    customer_id: str,
    dwolla: DwollaClient = Depends(get_dwolla_client),
    customers: CustomerStore = Depends(get_customer_store),
):
    """Token for Dwolla's Instant Account Verification drop-in"""
    customer = require_customer(customers, customer_id)
    response = await dwolla.post(f"{customer.url}/iav-token")

    token = response.body.get("token")
    if not token:
        raise MappingError("Dwolla did not return an IAV token")
    return IavTokenResponse(token=token)

"""Customer endpoints - onboarding, listing, KYC and payout eligibility"""

import logging
from typing import List

from fastapi import APIRouter, Depends, Query, Request

from dwolla_dashboard.api.dependencies import (
    DashboardContext,
    get_context,
    get_customer_store,
    get_dwolla_client,
    get_request_id,
)
from dwolla_dashboard.api.v1.schemas import (
    CreateCustomerRequest,
    CustomerDetailResponse,
    CustomerDetailSchema,
    CustomerListResponse,
    CustomerResponse,
    CustomerSchema,
    EligibleCustomerListResponse,
    EligibleCustomerSchema,
    FundingSourceSchema,
    VerifyCustomerRequest,
    VerifyCustomerResponse,
)
from dwolla_dashboard.domain.customers import (
    build_customer_payload,
    build_verification_payload,
    ensure_unique_contact,
    validate_new_customer,
)
from dwolla_dashboard.domain.exceptions import MappingError, NotFoundError, ProviderError
from dwolla_dashboard.domain.mappers import customer_documents, customer_from_provider, funding_sources_from_listing
from dwolla_dashboard.domain.models import CUSTOMER_VERIFIED, CustomerRecord
from dwolla_dashboard.domain.payouts import payout_funding_sources
from dwolla_dashboard.infrastructure.clients.dwolla import DwollaClient
from dwolla_dashboard.infrastructure.observability.logging import log_customer_created
from dwolla_dashboard.infrastructure.registry.stores import CustomerStore

router = APIRouter()


def require_customer(customers: CustomerStore, customer_id: str) -> CustomerRecord:
    customer = customers.find_by_id(customer_id)
    if customer is None:
        raise NotFoundError("Customer not found")
    return customer


async def rebuild_customer_registry(context: DashboardContext) -> List[CustomerRecord]:
    """
    Replace the customer cache with Dwolla's current list.

    A document that cannot be mapped is logged and left out rather than
    failing the whole listing.
    """
    body = await context.dwolla.get("customers", params={"limit": context.settings.provider_page_limit})

    records = []
    for document in customer_documents(body):
        try:
            records.append(customer_from_provider(document))
        except MappingError as e:
            document_id = document.get("id") if isinstance(document, dict) else None
            logging.warning(f"Skipping unmappable Dwolla customer: {e.message}", extra={"document_id": document_id})

    async with context.customers.lock:
        # Dwolla may omit phone numbers we captured at creation
        for record in records:
            known = context.customers.find_by_id(record.id)
            if known is not None and not record.phone:
                record.phone = known.phone
        context.customers.replace_all(records)

    return records


@router.post("/customers", response_model=CustomerResponse, status_code=201)
async def create_customer(
    request_body: CreateCustomerRequest,
    request: Request,
    dwolla: DwollaClient = Depends(get_dwolla_client),
    customers: CustomerStore = Depends(get_customer_store),
):
    """
    Create a customer in Dwolla.

    Flow:
    1. Validate required fields
    2. Reject duplicate email/phone against the local registry
    3. POST /customers, then GET the Location of the new customer
    4. Cache the mapped record
    """
    validate_new_customer(request_body.first_name, request_body.last_name, request_body.email)

    # The duplicate check and the insert must not be split by another creation
    async with customers.lock:
        ensure_unique_contact(customers, request_body.email, request_body.phone)

        payload = build_customer_payload(
            request_body.first_name,
            request_body.last_name,
            request_body.email,
            phone=request_body.phone,
            customer_type=request_body.type,
            business_name=request_body.business_name,
            business_type=request_body.business_type,
        )
        _, document = await dwolla.create("customers", payload)
        record = customers.upsert(customer_from_provider(document, phone=request_body.phone))

    log_customer_created(get_request_id(request), record.id, record.status)
    return CustomerResponse(customer=CustomerSchema.from_record(record))


@router.get("/customers", response_model=CustomerListResponse)
async def list_customers(
    refresh: bool = Query(False, description="Rebuild the cache from Dwolla"),
    context: DashboardContext = Depends(get_context),
):
    """Cached customers; rebuilt from Dwolla on refresh or when the cache is empty"""
    if context.token_manager.is_configured and (refresh or len(context.customers) == 0):
        await rebuild_customer_registry(context)

    return CustomerListResponse(customers=[CustomerSchema.from_record(c) for c in context.customers.all()])


@router.get("/customers/eligible", response_model=EligibleCustomerListResponse)
async def eligible_customers(
    include_unverified: bool = Query(False, alias="includeUnverified"),
    context: DashboardContext = Depends(get_context),
):
    """
    Customers a payout can target: verified, with at least one usable
    funding source. Unverified funding sources count only when
    ``includeUnverified`` is set.
    """
    records = await rebuild_customer_registry(context)

    eligible = []
    for customer in records:
        if customer.status != CUSTOMER_VERIFIED:
            continue

        try:
            body = await context.dwolla.get(f"{customer.url}/funding-sources")
        except ProviderError as e:
            logging.warning(f"Failed to check funding sources for {customer.id}: {e.message}")
            continue

        sources = payout_funding_sources(funding_sources_from_listing(body), include_unverified)
        if sources:
            eligible.append(
                EligibleCustomerSchema.from_record(
                    customer,
                    funding_sources=[FundingSourceSchema.from_record(s) for s in sources],
                )
            )

    return EligibleCustomerListResponse(customers=eligible)


@router.get("/customers/{customer_id}", response_model=CustomerDetailResponse)
async def get_customer(
    customer_id: str,
    dwolla: DwollaClient = Depends(get_dwolla_client),
    customers: CustomerStore = Depends(get_customer_store),
):
    """Cached customer with status refreshed from Dwolla"""
    customer = require_customer(customers, customer_id)

    document = await dwolla.get(customer.url)
    fresh = customer_from_provider(document, phone=customer.phone)
    customers.update_status(customer_id, fresh.status)

    return CustomerDetailResponse(customer=CustomerDetailSchema.from_record(fresh, dwolla_data=document))


@router.post("/customers/{customer_id}/verify", response_model=VerifyCustomerResponse)
async def verify_customer(
    customer_id: str,
    request_body: VerifyCustomerRequest,
    dwolla: DwollaClient = Depends(get_dwolla_client),
    customers: CustomerStore = Depends(get_customer_store),
):
    """
    Submit KYC details to upgrade a customer.

    Dwolla decides the outcome, so the customer is re-fetched afterwards
    to read the authoritative status.
    """
    customer = require_customer(customers, customer_id)

    payload = build_verification_payload(customer, request_body.model_dump(by_alias=True))
    await dwolla.post(customer.url, payload)

    document = await dwolla.get(customer.url)
    status = customer_from_provider(document).status
    customer.status = status
    # The cache may have been rebuilt while we waited on Dwolla
    updated = customers.update_status(customer_id, status) or customer

    logging.info("Customer verification submitted", extra={"customer_id": customer_id, "customer_status": status})

    return VerifyCustomerResponse(
        success=True,
        message=f"Verification submitted. Customer status: {status}",
        customer=CustomerSchema.from_record(updated),
    )

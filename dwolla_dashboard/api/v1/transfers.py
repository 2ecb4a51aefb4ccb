"""Transfer endpoints - payouts from the master account"""

import time
from typing import Dict, Optional

from fastapi import APIRouter, Depends, Request

from dwolla_dashboard.api.dependencies import DashboardContext, get_context, get_request_id
from dwolla_dashboard.api.v1.schemas import (
    TransferDetailResponse,
    TransferDetailSchema,
    TransferListResponse,
    TransferRequest,
    TransferResponse,
    TransferSchema,
)
from dwolla_dashboard.domain.exceptions import MappingError, NotFoundError, ProviderError, ValidationError
from dwolla_dashboard.domain.mappers import (
    funding_source_details,
    funding_source_from_provider,
    transfer_from_provider,
    transfers_from_listing,
)
from dwolla_dashboard.domain.models import FetchResult, FundingSourceDetails, FundingSourceRecord
from dwolla_dashboard.domain.payouts import (
    build_transfer_payload,
    destination_needs_owner_check,
    ensure_owner_can_receive,
    ensure_source_can_send,
    translate_transfer_errors,
    validate_transfer_request,
)
from dwolla_dashboard.infrastructure.clients.dwolla import DwollaClient
from dwolla_dashboard.infrastructure.observability.logging import log_transfer_created
from dwolla_dashboard.infrastructure.observability.metrics import transfer_created_counter, transfer_detail_failure_counter

router = APIRouter()


async def load_funding_source(dwolla: DwollaClient, url: str, role: str) -> FundingSourceRecord:
    """Fetch a transfer endpoint; anything unreadable is an invalid request"""
    try:
        record = funding_source_from_provider(await dwolla.get(url))
    except (ProviderError, MappingError) as e:
        raise ValidationError(f"Invalid {role} funding source") from e
    if record is None:
        raise ValidationError(f"Invalid {role} funding source")
    return record


def endpoint_details(url: Optional[str], results: Dict[str, FetchResult]) -> Optional[FundingSourceDetails]:
    if not url:
        return None
    result = results.get(url)
    if result is None or not result.ok:
        transfer_detail_failure_counter.inc()
        return FundingSourceDetails(url=url)
    return funding_source_details(url, result.body)


@router.post("/transfers", response_model=TransferResponse, status_code=201)
async def create_transfer(
    request_body: TransferRequest,
    request: Request,
    context: DashboardContext = Depends(get_context),
):
    """
    Send a payout between two funding sources.

    Flow:
    1. Validate fields and amount locally (no Dwolla call on failure)
    2. Source funding source must be verified
    3. Destination must be verified, or ``allowUnverified`` with a
       verified owning customer
    4. POST /transfers, follow Location, cache the mapped record
    """
    start_time = time.time()
    request_id = get_request_id(request)
    dwolla = context.dwolla

    source_url = request_body.source_funding_source_url
    destination_url = request_body.destination_funding_source_url
    validate_transfer_request(source_url, destination_url, request_body.amount)

    source = await load_funding_source(dwolla, source_url, "source")
    ensure_source_can_send(source.status)

    destination = await load_funding_source(dwolla, destination_url, "destination")
    if destination_needs_owner_check(destination.status, request_body.allow_unverified):
        if not destination.customer_url:
            raise ValidationError("Destination funding source does not belong to a customer")
        try:
            owner = await dwolla.get(destination.customer_url)
        except ProviderError as e:
            raise ValidationError("Unable to verify the destination customer") from e
        ensure_owner_can_receive(owner.get("status"))

    payload = build_transfer_payload(source_url, destination_url, request_body.amount, request_body.currency)
    try:
        _, document = await dwolla.create("transfers", payload)
    except ProviderError as e:
        raise e.with_message(translate_transfer_errors(e.errors) or e.message) from e

    record = transfer_from_provider(document)
    record.source_url = record.source_url or source_url
    record.destination_url = record.destination_url or destination_url
    record.source_details = FundingSourceDetails(
        url=source_url, name=source.name, type=source.type, bank_name=source.bank_name
    )
    record.destination_details = FundingSourceDetails(
        url=destination_url, name=destination.name, type=destination.type, bank_name=destination.bank_name
    )
    context.transfers.upsert(record)

    transfer_created_counter.inc()
    log_transfer_created(
        request_id,
        record.id,
        record.amount.value,
        record.amount.currency,
        record.status,
        duration_ms=(time.time() - start_time) * 1000,
    )

    return TransferResponse(transfer=TransferSchema.from_record(record))


@router.get("/transfers", response_model=TransferListResponse)
async def list_transfers(context: DashboardContext = Depends(get_context)):
    """
    Master account transfers with endpoint details.

    Details are fetched concurrently and best-effort: an endpoint that
    cannot be read shows as 'Unknown' instead of failing the list.
    """
    dwolla = context.dwolla
    account_url = await dwolla.account_url()
    body = await dwolla.get(f"{account_url}/transfers", params={"limit": context.settings.provider_page_limit})
    records = transfers_from_listing(body)

    urls = [r.source_url for r in records] + [r.destination_url for r in records]
    results = await dwolla.fetch_many(urls, concurrency=context.settings.detail_fetch_concurrency)

    for record in records:
        record.source_details = endpoint_details(record.source_url, results)
        record.destination_details = endpoint_details(record.destination_url, results)

    async with context.transfers.lock:
        context.transfers.replace_all(records)

    return TransferListResponse(transfers=[TransferSchema.from_record(r) for r in records])


@router.get("/transfers/{transfer_id}", response_model=TransferDetailResponse)
async def get_transfer(transfer_id: str, context: DashboardContext = Depends(get_context)):
    """Cached transfer with status refreshed from Dwolla"""
    transfer = context.transfers.find_by_id(transfer_id)
    if transfer is None:
        raise NotFoundError("Transfer not found")

    document = await context.dwolla.get(transfer.url)
    fresh = transfer_from_provider(document)
    fresh.source_details = transfer.source_details
    fresh.destination_details = transfer.destination_details
    context.transfers.update_status(transfer_id, fresh.status)

    return TransferDetailResponse(transfer=TransferDetailSchema.from_record(fresh, dwolla_data=document))

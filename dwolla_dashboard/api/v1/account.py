"""GET /api/me... - the master account that payouts are sent from"""

from fastapi import APIRouter, Depends

from dwolla_dashboard.api.dependencies import get_dwolla_client
from dwolla_dashboard.api.v1.schemas import (
    AccountResponse,
    AccountSchema,
    BalanceResponse,
    FundingSourceListResponse,
    FundingSourceSchema,
)
from dwolla_dashboard.domain.mappers import extract_resource_id, funding_sources_from_listing
from dwolla_dashboard.infrastructure.clients.dwolla import DwollaClient

router = APIRouter()


@router.get("/me", response_model=AccountResponse)
async def get_account(dwolla: DwollaClient = Depends(get_dwolla_client)):
    account_url = await dwolla.account_url()
    account = await dwolla.get(account_url)

    return AccountResponse(
        account=AccountSchema(
            id=extract_resource_id(account_url),
            url=account_url,
            name=account.get("name"),
            type=account.get("type"),
        )
    )


@router.get("/me/funding-sources", response_model=FundingSourceListResponse)
async def get_account_funding_sources(dwolla: DwollaClient = Depends(get_dwolla_client)):
    account_url = await dwolla.account_url()
    body = await dwolla.get(f"{account_url}/funding-sources")
    return FundingSourceListResponse(
        funding_sources=[FundingSourceSchema.from_record(s) for s in funding_sources_from_listing(body)]
    )


@router.get("/me/balance", response_model=BalanceResponse)
async def get_account_balance(dwolla: DwollaClient = Depends(get_dwolla_client)):
    """Balance of the account's 'balance' funding source, when it has one"""
    account_url = await dwolla.account_url()
    body = await dwolla.get(f"{account_url}/funding-sources")

    balance_source = next((s for s in funding_sources_from_listing(body) if s.type == "balance"), None)
    if balance_source is None or not balance_source.balance_url:
        return BalanceResponse(message="Balance not available for this account type")

    balance = await dwolla.get(balance_source.balance_url)
    return BalanceResponse(balance=balance.get("balance"), total=balance.get("total"))

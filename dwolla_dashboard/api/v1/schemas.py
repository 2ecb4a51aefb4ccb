"""Pydantic schemas for API request/response validation

The GUI speaks camelCase JSON; fields are snake_case here and aliased.
Required request fields are Optional on purpose: the handlers report
missing fields with the dashboard's own error wording.
"""

from dataclasses import asdict
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @classmethod
    def from_record(cls, record: Any, **extra: Any):
        """Build from a domain dataclass"""
        return cls.model_validate({**asdict(record), **extra})


# Requests


class ConfigRequest(CamelModel):
    """Request body for POST /api/config"""

    key: Optional[str] = None
    secret: Optional[str] = None
    webhook_secret: Optional[str] = None


class CreateCustomerRequest(CamelModel):
    """Request body for POST /api/customers"""

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    type: Optional[str] = Field(default=None, description="personal | business")
    business_name: Optional[str] = None
    business_type: Optional[str] = None


class VerifyCustomerRequest(CamelModel):
    """KYC fields; blanks fall back to sandbox defaults"""

    ssn: Optional[str] = None
    date_of_birth: Optional[str] = None
    address1: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None


class FundingSourceRequest(CamelModel):
    """Request body for POST /api/customers/{id}/funding-sources"""

    name: Optional[str] = None
    routing_number: Optional[str] = None
    account_number: Optional[str] = None
    account_type: Optional[str] = None


class TransferRequest(CamelModel):
    """Request body for POST /api/transfers"""

    source_funding_source_url: Optional[str] = None
    destination_funding_source_url: Optional[str] = None
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    allow_unverified: bool = False


# Responses


class ErrorResponse(BaseModel):
    error: str


class ConfigResponse(CamelModel):
    success: bool
    message: str
    token_expires_in: Optional[int] = None


class ConfigStatusResponse(CamelModel):
    is_configured: bool
    has_token: bool
    token_status: str
    remaining_token_time: float


class CustomerSchema(CamelModel):
    id: str
    url: str
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    type: str = "personal"
    status: str
    created_at: Optional[str] = None


class CustomerDetailSchema(CustomerSchema):
    dwolla_data: Dict[str, Any]


class FundingSourceSchema(CamelModel):
    id: str
    url: str
    name: str
    type: Optional[str] = None
    bank_account_type: Optional[str] = None
    status: str
    bank_name: Optional[str] = None
    created: Optional[str] = None


class EligibleCustomerSchema(CustomerSchema):
    funding_sources: List[FundingSourceSchema]


class CustomerResponse(CamelModel):
    success: bool = True
    customer: CustomerSchema


class CustomerDetailResponse(CamelModel):
    customer: CustomerDetailSchema


class CustomerListResponse(CamelModel):
    customers: List[CustomerSchema]


class EligibleCustomerListResponse(CamelModel):
    customers: List[EligibleCustomerSchema]


class VerifyCustomerResponse(CamelModel):
    success: bool
    message: str
    customer: CustomerSchema


class FundingSourceResponse(CamelModel):
    success: bool = True
    funding_source: FundingSourceSchema


class FundingSourceListResponse(CamelModel):
    funding_sources: List[FundingSourceSchema]


class IavTokenResponse(CamelModel):
    token: str


class AccountSchema(CamelModel):
    id: str
    url: str
    name: Optional[str] = None
    type: Optional[str] = None


class AccountResponse(CamelModel):
    account: AccountSchema


class BalanceResponse(CamelModel):
    balance: Optional[Dict[str, Any]] = None
    total: Optional[Dict[str, Any]] = None
    message: Optional[str] = None


class AmountSchema(CamelModel):
    currency: str
    value: str


class FundingSourceDetailsSchema(CamelModel):
    url: str
    name: str = "Unknown"
    type: Optional[str] = None
    bank_name: Optional[str] = None


class TransferSchema(CamelModel):
    id: str
    url: str
    status: str
    amount: AmountSchema
    created: Optional[str] = None
    source_url: Optional[str] = None
    destination_url: Optional[str] = None
    source_details: Optional[FundingSourceDetailsSchema] = None
    destination_details: Optional[FundingSourceDetailsSchema] = None


class TransferDetailSchema(TransferSchema):
    dwolla_data: Dict[str, Any]


class TransferResponse(CamelModel):
    success: bool = True
    transfer: TransferSchema


class TransferDetailResponse(CamelModel):
    transfer: TransferDetailSchema


class TransferListResponse(CamelModel):
    transfers: List[TransferSchema]


class WebhookSchema(CamelModel):
    id: str
    topic: Optional[str] = None
    resource_id: Optional[str] = None
    timestamp: str
    links: Dict[str, Any] = Field(default_factory=dict, alias="_links")
    created: Optional[str] = None


class WebhookListResponse(CamelModel):
    webhooks: List[WebhookSchema]


class WebhookAck(CamelModel):
    received: bool = True


class ClearResponse(CamelModel):
    success: bool
    message: str

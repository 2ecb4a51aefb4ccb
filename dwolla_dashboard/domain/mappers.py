"""
Mapping between Dwolla HAL documents and dashboard records.

Dwolla documents are validated on the way in with Pydantic models; anything
missing a required field or a usable self link raises MappingError instead
of producing a half-filled record.
"""

from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from dwolla_dashboard.domain.exceptions import MappingError
from dwolla_dashboard.domain.models import (
    Amount,
    CustomerRecord,
    FundingSourceDetails,
    FundingSourceRecord,
    TransferRecord,
)


class Link(BaseModel):
    model_config = ConfigDict(extra="allow")

    href: str


class ProviderResource(BaseModel):
    """Common shape of a Dwolla HAL resource"""

    model_config = ConfigDict(extra="allow", populate_by_name=True, alias_generator=to_camel)

    links: Dict[str, Link] = Field(default_factory=dict, alias="_links")

    def link(self, rel: str) -> Optional[str]:
        link = self.links.get(rel)
        return link.href if link else None


class ProviderCustomer(ProviderResource):
    first_name: str
    last_name: str
    email: str
    status: str
    type: Optional[str] = None
    phone: Optional[str] = None
    created: Optional[str] = None


class ProviderFundingSource(ProviderResource):
    name: str
    status: str
    type: Optional[str] = None
    bank_account_type: Optional[str] = None
    bank_name: Optional[str] = None
    removed: bool = False
    created: Optional[str] = None


class ProviderAmount(BaseModel):
    value: str
    currency: str

    @field_validator("value", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        if isinstance(value, (int, float)):
            return str(value)
        return value


class ProviderTransfer(ProviderResource):
    status: str
    amount: ProviderAmount
    created: Optional[str] = None


def extract_resource_id(url: Optional[str]) -> str:
    """
    Return the trailing path segment of a Dwolla resource URL.

    https://api-sandbox.dwolla.com/customers/<id> -> <id>. URLs without a
    scheme/host, without a collection segment, or ending in '/' are
    rejected.
    """
    if not url:
        raise MappingError("Missing resource URL in Dwolla response")

    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise MappingError(f"Malformed resource URL: {url}")

    segments = parsed.path.split("/")
    resource_id = segments[-1]
    if not resource_id or len([s for s in segments if s]) < 2:
        raise MappingError(f"Malformed resource URL: {url}")

    return resource_id


def _parse(model: type, document: Dict[str, Any]) -> Any:
    try:
        return model.model_validate(document)
    except PydanticValidationError as e:
        raise MappingError(f"Unexpected {model.__name__} document from Dwolla: {e.error_count()} invalid field(s)") from e


def _self_url(resource: ProviderResource) -> str:
    url = resource.link("self")
    if url is None:
        raise MappingError("Dwolla resource has no self link")
    return url


def _embedded_items(body: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    embedded = body.get("_embedded")
    if not isinstance(embedded, dict) or not isinstance(embedded.get(key), list):
        raise MappingError(f"Dwolla listing has no embedded '{key}'")
    return embedded[key]


def customer_from_provider(document: Dict[str, Any], phone: Optional[str] = None) -> CustomerRecord:
    """Map a Dwolla customer; a missing type means personal"""
    customer = _parse(ProviderCustomer, document)
    url = _self_url(customer)
    return CustomerRecord(
        id=extract_resource_id(url),
        url=url,
        first_name=customer.first_name,
        last_name=customer.last_name,
        email=customer.email,
        phone=customer.phone or phone,
        type=customer.type or "personal",
        status=customer.status,
        created_at=customer.created,
    )


def customer_to_provider(record: CustomerRecord) -> Dict[str, Any]:
    """Inverse of customer_from_provider, in Dwolla's document shape"""
    document: Dict[str, Any] = {
        "_links": {"self": {"href": record.url}},
        "id": record.id,
        "firstName": record.first_name,
        "lastName": record.last_name,
        "email": record.email,
        "type": record.type,
        "status": record.status,
    }
    if record.phone:
        document["phone"] = record.phone
    if record.created_at:
        document["created"] = record.created_at
    return document


def funding_source_from_provider(document: Dict[str, Any]) -> Optional[FundingSourceRecord]:
    """Map a Dwolla funding source; removed ones map to None"""
    source = _parse(ProviderFundingSource, document)
    if source.removed:
        return None

    url = _self_url(source)
    return FundingSourceRecord(
        id=extract_resource_id(url),
        url=url,
        name=source.name,
        type=source.type,
        status=source.status,
        bank_account_type=source.bank_account_type,
        bank_name=source.bank_name,
        created=source.created,
        customer_url=source.link("customer"),
        balance_url=source.link("balance"),
    )


def funding_sources_from_listing(body: Dict[str, Any]) -> List[FundingSourceRecord]:
    records = (funding_source_from_provider(doc) for doc in _embedded_items(body, "funding-sources"))
    return [r for r in records if r is not None]


def customer_documents(body: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Raw customer documents of a listing, for callers that map them one by one"""
    return _embedded_items(body, "customers")


def customers_from_listing(body: Dict[str, Any]) -> List[CustomerRecord]:
    return [customer_from_provider(doc) for doc in customer_documents(body)]


def transfer_from_provider(document: Dict[str, Any]) -> TransferRecord:
    transfer = _parse(ProviderTransfer, document)
    url = _self_url(transfer)
    return TransferRecord(
        id=extract_resource_id(url),
        url=url,
        status=transfer.status,
        amount=Amount(currency=transfer.amount.currency, value=transfer.amount.value),
        created=transfer.created,
        source_url=transfer.link("source"),
        destination_url=transfer.link("destination"),
    )


def transfers_from_listing(body: Dict[str, Any]) -> List[TransferRecord]:
    return [transfer_from_provider(doc) for doc in _embedded_items(body, "transfers")]


def funding_source_details(url: str, document: Optional[Dict[str, Any]]) -> FundingSourceDetails:
    """Display details for a transfer endpoint; degrades to name 'Unknown'"""
    if document is None:
        return FundingSourceDetails(url=url)
    try:
        source = ProviderFundingSource.model_validate(document)
    except PydanticValidationError:
        return FundingSourceDetails(url=url)
    return FundingSourceDetails(url=url, name=source.name, type=source.type, bank_name=source.bank_name)

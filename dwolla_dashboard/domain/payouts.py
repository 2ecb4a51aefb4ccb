"""Payout eligibility rules - who may send and receive funds"""

from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from dwolla_dashboard.domain.exceptions import ValidationError
from dwolla_dashboard.domain.models import (
    CUSTOMER_VERIFIED,
    FUNDING_SOURCE_VERIFIED,
    FundingSourceRecord,
    ProviderErrorDetail,
)

# Dwolla error (code, path) -> dashboard wording; path None matches any path
FRIENDLY_TRANSFER_ERRORS = {
    ("InsufficientFunds", None): "Insufficient funds in source account",
    ("Invalid", "/_links/source/href"): "Source funding source is not verified",
    ("Invalid", "/_links/destination/href"): "Destination funding source is not verified",
}


def validate_transfer_request(
    source_url: Optional[str],
    destination_url: Optional[str],
    amount: Optional[Decimal],
) -> None:
    """Reject incomplete requests and non-positive amounts before any Dwolla call"""
    if not source_url or not destination_url or amount is None:
        raise ValidationError("Source funding source, destination funding source, and amount are required")
    if amount <= 0:
        raise ValidationError("Amount must be greater than 0")
    # Dwolla takes whole cents; anything finer would be silently rounded
    if amount.normalize().as_tuple().exponent < -2:
        raise ValidationError("Amount cannot have more than 2 decimal places")


def format_amount(amount: Decimal) -> str:
    """Dwolla expects a decimal string with two places"""
    return f"{amount:.2f}"


def ensure_source_can_send(status: str) -> None:
    if status != FUNDING_SOURCE_VERIFIED:
        raise ValidationError(
            "Source funding source is not verified. Only verified funding sources can send transfers."
        )


def destination_needs_owner_check(status: str, allow_unverified: bool) -> bool:
    """
    Decide whether a destination funding source may receive funds.

    Returns False for a verified destination. An unverified destination is
    rejected unless ``allow_unverified`` is set, in which case the owning
    customer must be checked (True).
    """
    if status == FUNDING_SOURCE_VERIFIED:
        return False
    if not allow_unverified:
        raise ValidationError(
            "Destination funding source is not verified. Only verified funding sources can receive transfers."
        )
    return True


def ensure_owner_can_receive(customer_status: Optional[str]) -> None:
    """A verified customer may receive into an unverified account; nobody else may"""
    if customer_status != CUSTOMER_VERIFIED:
        raise ValidationError(
            "Destination customer is not verified. Unverified customers cannot receive funds "
            "into an unverified funding source."
        )


def build_transfer_payload(source_url: str, destination_url: str, amount: Decimal, currency: Optional[str]) -> Dict[str, Any]:
    return {
        "_links": {
            "source": {"href": source_url},
            "destination": {"href": destination_url},
        },
        "amount": {
            "currency": currency or "USD",
            "value": format_amount(amount),
        },
    }


def translate_transfer_errors(errors: Iterable[ProviderErrorDetail]) -> Optional[str]:
    """Friendly text for a failed transfer; None when Dwolla sent no details"""
    messages = []
    for error in errors:
        friendly = FRIENDLY_TRANSFER_ERRORS.get((error.code, error.path)) or FRIENDLY_TRANSFER_ERRORS.get(
            (error.code, None)
        )
        messages.append(friendly or error.message)
    return ". ".join(m for m in messages if m) or None


def payout_funding_sources(
    sources: Iterable[FundingSourceRecord], include_unverified: bool = False
) -> List[FundingSourceRecord]:
    """Funding sources a payout may target (removed ones are already filtered by the mapper)"""
    if include_unverified:
        return list(sources)
    return [s for s in sources if s.status == FUNDING_SOURCE_VERIFIED]

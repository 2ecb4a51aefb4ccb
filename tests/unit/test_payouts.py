"""Unit tests for payout eligibility rules"""

from decimal import Decimal

import pytest

from dwolla_dashboard.domain.exceptions import ValidationError
from dwolla_dashboard.domain.models import FundingSourceRecord, ProviderErrorDetail
from dwolla_dashboard.domain.payouts import (
    build_transfer_payload,
    destination_needs_owner_check,
    ensure_owner_can_receive,
    ensure_source_can_send,
    format_amount,
    payout_funding_sources,
    translate_transfer_errors,
    validate_transfer_request,
)

SOURCE = "https://api-sandbox.dwolla.com/funding-sources/src"
DESTINATION = "https://api-sandbox.dwolla.com/funding-sources/dst"


@pytest.mark.parametrize(
    "source,destination,amount",
    [
        (None, DESTINATION, Decimal("10")),
        (SOURCE, "", Decimal("10")),
        (SOURCE, DESTINATION, None),
    ],
)
def test_incomplete_transfer_request_rejected(source, destination, amount):
    with pytest.raises(ValidationError) as exc_info:
        validate_transfer_request(source, destination, amount)

    assert exc_info.value.message == "Source funding source, destination funding source, and amount are required"


@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5"), Decimal("-0.01")])
def test_non_positive_amount_rejected(amount):
    with pytest.raises(ValidationError) as exc_info:
        validate_transfer_request(SOURCE, DESTINATION, amount)

    assert exc_info.value.message == "Amount must be greater than 0"


def test_valid_transfer_request_passes():
    validate_transfer_request(SOURCE, DESTINATION, Decimal("0.01"))
    validate_transfer_request(SOURCE, DESTINATION, Decimal("10.000"))
    validate_transfer_request(SOURCE, DESTINATION, Decimal("1E+3"))


@pytest.mark.parametrize("amount", [Decimal("0.004"), Decimal("1.005"), Decimal("12.345")])
def test_amount_finer_than_cents_rejected(amount):
    """Rounding would change what is sent, e.g. 0.004 would go out as 0.00"""
    with pytest.raises(ValidationError) as exc_info:
        validate_transfer_request(SOURCE, DESTINATION, amount)

    assert exc_info.value.message == "Amount cannot have more than 2 decimal places"


def test_format_amount_uses_two_places():
    assert format_amount(Decimal("10")) == "10.00"
    assert format_amount(Decimal("12.5")) == "12.50"


def test_source_must_be_verified():
    ensure_source_can_send("verified")

    with pytest.raises(ValidationError):
        ensure_source_can_send("unverified")


def test_verified_destination_needs_no_owner_check():
    assert destination_needs_owner_check("verified", allow_unverified=False) is False
    assert destination_needs_owner_check("verified", allow_unverified=True) is False


def test_unverified_destination_rejected_without_flag():
    with pytest.raises(ValidationError) as exc_info:
        destination_needs_owner_check("unverified", allow_unverified=False)

    assert exc_info.value.message.startswith("Destination funding source is not verified")


def test_unverified_destination_with_flag_requires_owner_check():
    assert destination_needs_owner_check("unverified", allow_unverified=True) is True


def test_only_verified_owner_can_receive():
    ensure_owner_can_receive("verified")

    for status in ("unverified", "retry", "document", "suspended", None):
        with pytest.raises(ValidationError):
            ensure_owner_can_receive(status)


def test_transfer_payload_shape():
    payload = build_transfer_payload(SOURCE, DESTINATION, Decimal("25"), None)

    assert payload == {
        "_links": {"source": {"href": SOURCE}, "destination": {"href": DESTINATION}},
        "amount": {"currency": "USD", "value": "25.00"},
    }


def test_translate_transfer_errors():
    assert (
        translate_transfer_errors([ProviderErrorDetail("InsufficientFunds", "Insufficient funds.", "/amount/value")])
        == "Insufficient funds in source account"
    )
    assert (
        translate_transfer_errors([ProviderErrorDetail("Invalid", "Invalid funding source.", "/_links/source/href")])
        == "Source funding source is not verified"
    )
    assert (
        translate_transfer_errors(
            [ProviderErrorDetail("Invalid", "Invalid funding source.", "/_links/destination/href")]
        )
        == "Destination funding source is not verified"
    )


def test_translate_transfer_errors_passes_unknown_codes_through():
    assert translate_transfer_errors([ProviderErrorDetail("RateLimited", "Slow down.")]) == "Slow down."
    assert translate_transfer_errors([]) is None


def test_payout_funding_sources_filters_unverified():
    sources = [
        FundingSourceRecord(id="a", url="u/a", name="A", type="bank", status="verified"),
        FundingSourceRecord(id="b", url="u/b", name="B", type="bank", status="unverified"),
    ]

    assert [s.id for s in payout_funding_sources(sources)] == ["a"]
    assert [s.id for s in payout_funding_sources(sources, include_unverified=True)] == ["a", "b"]

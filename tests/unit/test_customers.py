"""Unit tests for customer onboarding rules"""

import pytest

from dwolla_dashboard.domain.customers import (
    DEFAULT_VERIFICATION,
    SANDBOX_ACCOUNT_NUMBER,
    SANDBOX_ROUTING_NUMBER,
    build_customer_payload,
    build_funding_source_payload,
    build_verification_payload,
    ensure_unique_contact,
    validate_new_customer,
)
from dwolla_dashboard.domain.exceptions import DuplicateError, ValidationError
from dwolla_dashboard.domain.models import CustomerRecord
from dwolla_dashboard.infrastructure.registry.stores import CustomerStore


@pytest.fixture
def store() -> CustomerStore:
    store = CustomerStore()
    store.upsert(
        CustomerRecord(
            id="c-1",
            url="https://api-sandbox.dwolla.com/customers/c-1",
            first_name="Jane",
            last_name="Doe",
            email="Jane@Example.com",
            phone="5550100",
            status="unverified",
        )
    )
    return store


@pytest.mark.parametrize(
    "first,last,email",
    [("", "Doe", "a@b.com"), ("Jane", None, "a@b.com"), ("Jane", "Doe", "")],
)
def test_missing_identity_fields_rejected(first, last, email):
    with pytest.raises(ValidationError) as exc_info:
        validate_new_customer(first, last, email)

    assert exc_info.value.message == "First name, last name, and email are required"


def test_duplicate_email_is_case_insensitive(store):
    with pytest.raises(DuplicateError) as exc_info:
        ensure_unique_contact(store, "jane@example.COM", None)

    assert exc_info.value.message == "A customer with this email already exists"


def test_duplicate_phone_rejected(store):
    with pytest.raises(DuplicateError) as exc_info:
        ensure_unique_contact(store, "other@example.com", "5550100")

    assert exc_info.value.message == "A customer with this phone number already exists"


def test_new_contact_accepted(store):
    ensure_unique_contact(store, "other@example.com", "5550199")
    ensure_unique_contact(store, "other@example.com", None)


def test_personal_customer_payload():
    payload = build_customer_payload("Jane", "Doe", "jane@example.com")

    assert payload == {"firstName": "Jane", "lastName": "Doe", "email": "jane@example.com"}


def test_business_customer_payload_gets_defaults():
    payload = build_customer_payload("Jane", "Doe", "jane@example.com", phone="5550100", customer_type="business")

    assert payload["type"] == "business"
    assert payload["businessName"] == "Jane Doe Business"
    assert payload["businessType"] == "soleProprietorship"
    assert payload["phone"] == "5550100"


def test_verification_payload_falls_back_to_sandbox_defaults(store):
    record = store.find_by_id("c-1")

    payload = build_verification_payload(record, {"ssn": "0002", "city": None})

    assert payload["firstName"] == "Jane"
    assert payload["type"] == "personal"
    assert payload["ssn"] == "0002"
    assert payload["city"] == DEFAULT_VERIFICATION["city"]
    assert payload["postalCode"] == DEFAULT_VERIFICATION["postalCode"]


def test_funding_source_payload_defaults_to_sandbox_bank():
    payload = build_funding_source_payload("Payout Checking")

    assert payload == {
        "routingNumber": SANDBOX_ROUTING_NUMBER,
        "accountNumber": SANDBOX_ACCOUNT_NUMBER,
        "bankAccountType": "checking",
        "name": "Payout Checking",
    }


def test_funding_source_payload_requires_name():
    with pytest.raises(ValidationError) as exc_info:
        build_funding_source_payload("")

    assert exc_info.value.message == "Account nickname (name) is required"

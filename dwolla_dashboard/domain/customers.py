"""Customer onboarding rules: validation, duplicate checks and Dwolla payloads"""

from typing import Any, Dict, Optional

from dwolla_dashboard.domain.exceptions import DuplicateError, ValidationError
from dwolla_dashboard.domain.models import CustomerRecord

# Sandbox conveniences used when the caller leaves KYC fields blank
DEFAULT_VERIFICATION = {
    "ssn": "1234",
    "dateOfBirth": "1990-01-01",
    "address1": "123 Main St",
    "city": "San Francisco",
    "state": "CA",
    "postalCode": "94105",
}

# Dwolla sandbox test bank account
SANDBOX_ROUTING_NUMBER = "222222226"
SANDBOX_ACCOUNT_NUMBER = "123456789"


def validate_new_customer(first_name: Optional[str], last_name: Optional[str], email: Optional[str]) -> None:
    if not first_name or not last_name or not email:
        raise ValidationError("First name, last name, and email are required")


def ensure_unique_contact(store, email: str, phone: Optional[str]) -> None:
    """
    Reject an email (case-insensitive) or phone already in the registry.

    Advisory only: Dwolla is the source of truth and may still reject.
    """
    if store.find_by_email(email) is not None:
        raise DuplicateError("A customer with this email already exists")
    if phone and store.find_by_phone(phone) is not None:
        raise DuplicateError("A customer with this phone number already exists")


def build_customer_payload(
    first_name: str,
    last_name: str,
    email: str,
    phone: Optional[str] = None,
    customer_type: Optional[str] = None,
    business_name: Optional[str] = None,
    business_type: Optional[str] = None,
) -> Dict[str, Any]:
    """Body for POST /customers; business customers need name and type"""
    payload: Dict[str, Any] = {"firstName": first_name, "lastName": last_name, "email": email}
    if phone:
        payload["phone"] = phone

    if customer_type == "business":
        payload["type"] = "business"
        payload["businessName"] = business_name or f"{first_name} {last_name} Business"
        payload["businessType"] = business_type or "soleProprietorship"

    return payload


def build_verification_payload(record: CustomerRecord, kyc: Dict[str, Optional[str]]) -> Dict[str, Any]:
    """
    Merge stored identity with supplied KYC fields, falling back to sandbox
    defaults for anything left blank.

    In the sandbox the SSN decides the outcome (last four 0000 verified,
    0001 retry, 0002 document, 0003 suspended).
    """
    payload: Dict[str, Any] = {
        "firstName": record.first_name,
        "lastName": record.last_name,
        "email": record.email,
        "type": "personal",
    }
    for field_name, default in DEFAULT_VERIFICATION.items():
        payload[field_name] = kyc.get(field_name) or default
    return payload


def build_funding_source_payload(
    name: Optional[str],
    routing_number: Optional[str] = None,
    account_number: Optional[str] = None,
    account_type: Optional[str] = None,
) -> Dict[str, Any]:
    if not name:
        raise ValidationError("Account nickname (name) is required")

    return {
        "routingNumber": routing_number or SANDBOX_ROUTING_NUMBER,
        "accountNumber": account_number or SANDBOX_ACCOUNT_NUMBER,
        "bankAccountType": account_type or "checking",
        "name": name,
    }

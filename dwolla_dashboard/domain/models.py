"""Domain models - pure Python dataclasses representing dashboard entities"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

# Customer statuses reported by Dwolla
CUSTOMER_UNVERIFIED = "unverified"
CUSTOMER_VERIFIED = "verified"
CUSTOMER_DOCUMENT = "document"
CUSTOMER_RETRY = "retry"
CUSTOMER_SUSPENDED = "suspended"

# Funding source statuses
FUNDING_SOURCE_VERIFIED = "verified"
FUNDING_SOURCE_UNVERIFIED = "unverified"

# Transfer statuses
TRANSFER_PENDING = "pending"
TRANSFER_PROCESSED = "processed"
TRANSFER_CANCELLED = "cancelled"
TRANSFER_FAILED = "failed"


@dataclass
class Credentials:
    """Dwolla application key/secret pair"""

    key: str
    secret: str


@dataclass(frozen=True)
class Token:
    """OAuth bearer token from the client-credentials grant"""

    access_token: str
    expires_in: int  # seconds
    issued_at: float  # clock reading when the token was granted

    def age(self, now: float) -> float:
        return now - self.issued_at

    def remaining(self, now: float) -> float:
        return self.expires_in - self.age(now)

    def is_usable(self, now: float, safety_margin: int) -> bool:
        """Usable while issued_at + expires_in - margin > now"""
        return self.issued_at + self.expires_in - safety_margin > now


@dataclass
class ProviderErrorDetail:
    """One entry of Dwolla's embedded error list"""

    code: str
    message: str
    path: Optional[str] = None


@dataclass
class ProviderResponse:
    """Relayed Dwolla response"""

    status: int
    headers: Dict[str, str]
    body: Dict[str, Any]

    @property
    def location(self) -> Optional[str]:
        return self.headers.get("location")


@dataclass
class Amount:
    currency: str
    value: str  # decimal string, as Dwolla sends it


@dataclass
class CustomerRecord:
    """Customer as displayed by the dashboard"""

    id: str
    url: str
    first_name: str
    last_name: str
    email: str
    status: str
    type: str = "personal"
    phone: Optional[str] = None
    created_at: Optional[str] = None


@dataclass
class FundingSourceRecord:
    """Bank account or balance linked to a customer or the master account"""

    id: str
    url: str
    name: str
    type: Optional[str]
    status: str
    bank_account_type: Optional[str] = None
    bank_name: Optional[str] = None
    created: Optional[str] = None
    customer_url: Optional[str] = None
    balance_url: Optional[str] = None


@dataclass
class FundingSourceDetails:
    """Display details of a transfer endpoint; name is 'Unknown' when unavailable"""

    url: str
    name: str = "Unknown"
    type: Optional[str] = None
    bank_name: Optional[str] = None


@dataclass
class TransferRecord:
    """Transfer between two funding sources"""

    id: str
    url: str
    status: str
    amount: Amount
    source_url: Optional[str]
    destination_url: Optional[str]
    created: Optional[str] = None
    source_details: Optional[FundingSourceDetails] = None
    destination_details: Optional[FundingSourceDetails] = None


@dataclass
class WebhookRecord:
    """Inbound Dwolla event notification"""

    id: str
    topic: Optional[str]
    resource_id: Optional[str]
    timestamp: str
    links: Dict[str, Any] = field(default_factory=dict)
    created: Optional[str] = None


@dataclass
class FetchResult:
    """Outcome of one read in a best-effort fan-out"""

    url: str
    body: Optional[Dict[str, Any]] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None

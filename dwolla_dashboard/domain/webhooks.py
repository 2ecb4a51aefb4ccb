"""Webhook ingestion: event records, signature checks and local status patching"""

import hashlib
import hmac
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from dwolla_dashboard.domain.models import (
    CUSTOMER_DOCUMENT,
    CUSTOMER_RETRY,
    CUSTOMER_SUSPENDED,
    CUSTOMER_VERIFIED,
    TRANSFER_CANCELLED,
    TRANSFER_FAILED,
    TRANSFER_PROCESSED,
    WebhookRecord,
)

SIGNATURE_HEADER = "X-Request-Signature-SHA-256"

CUSTOMER_TOPIC_STATUS = {
    "customer_verified": CUSTOMER_VERIFIED,
    "customer_suspended": CUSTOMER_SUSPENDED,
    "customer_verification_document_needed": CUSTOMER_DOCUMENT,
    "customer_reverification_needed": CUSTOMER_RETRY,
}

TRANSFER_TOPIC_STATUS = {
    "transfer_completed": TRANSFER_PROCESSED,
    "transfer_failed": TRANSFER_FAILED,
    "transfer_cancelled": TRANSFER_CANCELLED,
}


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _text(value: Any) -> Optional[str]:
    """Scalar event field as a string; objects, lists and blanks count as absent"""
    if isinstance(value, str):
        return value or None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def build_webhook_record(event: Dict[str, Any]) -> WebhookRecord:
    """Record an event, defaulting id and timestamp when Dwolla omits them"""
    now = _utc_now_iso()
    links = event.get("_links")
    return WebhookRecord(
        id=_text(event.get("id")) or f"local-{int(time.time() * 1000)}",
        topic=_text(event.get("topic")),
        resource_id=_text(event.get("resourceId")),
        timestamp=_text(event.get("timestamp")) or now,
        links=links if isinstance(links, dict) else {},
        created=_text(event.get("created")) or now,
    )


def verify_signature(secret: str, body: bytes, signature: Optional[str]) -> bool:
    """HMAC-SHA256 hex digest of the raw body, keyed with the webhook secret"""
    if not signature:
        return False
    expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature.strip().lower())


def _link(links: Dict[str, Any], rel: str) -> Optional[str]:
    link = links.get(rel)
    if isinstance(link, dict):
        return link.get("href")
    return None


def apply_webhook_event(record: WebhookRecord, customers, transfers) -> bool:
    """
    Patch the status of the local record an event refers to.

    Customer topics match on the customer link, transfer topics on the
    resource link. Returns True when a local record changed.
    """
    topic = record.topic or ""

    if topic.startswith("customer_"):
        status = CUSTOMER_TOPIC_STATUS.get(topic)
        url = _link(record.links, "customer")
        if status and url:
            customer = customers.find_by_url(url)
            if customer is not None:
                customer.status = status
                return True

    if topic.startswith("transfer_"):
        status = TRANSFER_TOPIC_STATUS.get(topic)
        url = _link(record.links, "resource")
        if status and url:
            transfer = transfers.find_by_url(url)
            if transfer is not None:
                transfer.status = status
                return True

    return False

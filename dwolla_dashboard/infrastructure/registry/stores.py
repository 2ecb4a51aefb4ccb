"""In-memory registries for dashboard entities

The registries are a display cache, rebuildable from Dwolla at any time.
Individual methods never await, so each is atomic on the event loop; flows
that await Dwolla between a read and a write hold the store's ``lock``.
"""

import asyncio
from collections import deque
from typing import Deque, Dict, Generic, Iterable, List, Optional, TypeVar

from dwolla_dashboard.domain.models import CustomerRecord, TransferRecord, WebhookRecord

RecordT = TypeVar("RecordT", CustomerRecord, TransferRecord)


class RecordStore(Generic[RecordT]):
    """Records keyed by id, kept in insertion order"""

    def __init__(self):
        self.lock = asyncio.Lock()
        self._records: Dict[str, RecordT] = {}

    def upsert(self, record: RecordT) -> RecordT:
        self._records[record.id] = record
        return record

    def find_by_id(self, record_id: str) -> Optional[RecordT]:
        return self._records.get(record_id)

    def find_by_url(self, url: str) -> Optional[RecordT]:
        return next((r for r in self._records.values() if r.url == url), None)

    def all(self) -> List[RecordT]:
        return list(self._records.values())

    def replace_all(self, records: Iterable[RecordT]) -> None:
        self._records = {r.id: r for r in records}

    def clear(self) -> None:
        self._records = {}

    def __len__(self) -> int:
        return len(self._records)


class CustomerStore(RecordStore[CustomerRecord]):
    """Customers created or listed through the dashboard"""

    def find_by_email(self, email: str) -> Optional[CustomerRecord]:
        wanted = email.lower()
        return next((c for c in self._records.values() if c.email.lower() == wanted), None)

    def find_by_phone(self, phone: str) -> Optional[CustomerRecord]:
        return next((c for c in self._records.values() if c.phone == phone), None)

    def update_status(self, customer_id: str, status: str) -> Optional[CustomerRecord]:
        customer = self.find_by_id(customer_id)
        if customer is not None:
            customer.status = status
        return customer


class TransferStore(RecordStore[TransferRecord]):
    """Transfers submitted or listed through the dashboard"""

    def update_status(self, transfer_id: str, status: str) -> Optional[TransferRecord]:
        transfer = self.find_by_id(transfer_id)
        if transfer is not None:
            transfer.status = status
        return transfer


class WebhookStore:
    """Ring buffer of received events, newest first; the oldest is evicted on overflow"""

    def __init__(self, capacity: int = 100):
        self.capacity = capacity
        self._events: Deque[WebhookRecord] = deque(maxlen=capacity)

    def add(self, record: WebhookRecord) -> None:
        # appendleft on a bounded deque drops from the right, i.e. the oldest
        self._events.appendleft(record)

    def all(self) -> List[WebhookRecord]:
        return list(self._events)

    def clear(self) -> None:
        self._events.clear()

    def __len__(self) -> int:
        return len(self._events)

"""
Domain events for the payment ledger.

Immutable event objects published after a reconciliation commits. Handlers
(notifications, dashboards) react without the webhook pipeline knowing who
is listening.

Events carry the committed result so handlers don't need to re-fetch state.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from utils.timezone import now_utc


@dataclass(frozen=True, kw_only=True)
class LedgerEvent:
    """Base class for all ledger domain events."""
    event_id: str = field(default_factory=lambda: str(uuid4()))
    occurred_at: datetime = field(default_factory=now_utc)


@dataclass(frozen=True)
class InvoicePaid(LedgerEvent):
    """An invoice was marked paid by a processor callback."""
    result: Any = None  # ReconciliationResult - Any to avoid importing payments here
    processor_reference: str | None = None
    paid_at: datetime | None = None

    @classmethod
    def create(cls, result: Any, processor_reference: str, paid_at: datetime) -> "InvoicePaid":
        return cls(result=result, processor_reference=processor_reference, paid_at=paid_at)


@dataclass(frozen=True)
class PaymentUnposted(LedgerEvent):
    """A payment was recorded but no ledger account existed to post it to."""
    result: Any = None
    company_id: int | None = None

    @classmethod
    def create(cls, result: Any, company_id: int) -> "PaymentUnposted":
        return cls(result=result, company_id=company_id)

"""Tests for ledger domain events."""

from dataclasses import FrozenInstanceError
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

import pytest

from core.events import LedgerEvent, InvoicePaid, PaymentUnposted
from payments.types import ReconciliationResult
from utils.timezone import now_utc


PAID_AT = datetime(2025, 5, 6, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def _posted():
    return ReconciliationResult(
        invoice_id=32, invoice_number="INV-20250506-523",
        payment_id=5, transaction_id=9,
        account_id=1, account_balance=Decimal("501000.00"),
    )


@pytest.fixture
def _unposted():
    return ReconciliationResult(invoice_id=32, invoice_number="INV-20250506-523", payment_id=5)


# =============================================================================
# CONSTRUCTION VIA .create() FACTORY
# =============================================================================


class TestFactories:

    def test_invoice_paid_stores_result_by_identity(self, _posted):
        event = InvoicePaid.create(result=_posted, processor_reference="pay-1", paid_at=PAID_AT)

        assert event.result is _posted
        assert event.processor_reference == "pay-1"
        assert event.paid_at == PAID_AT

    def test_payment_unposted_carries_company(self, _unposted):
        event = PaymentUnposted.create(result=_unposted, company_id=1)

        assert event.result is _unposted
        assert event.company_id == 1


# =============================================================================
# AUTO-GENERATED METADATA
# =============================================================================


class TestMetadata:

    def test_event_id_is_uuid4_string(self, _posted):
        event = InvoicePaid.create(result=_posted, processor_reference="pay-1", paid_at=PAID_AT)
        assert str(UUID(event.event_id, version=4)) == event.event_id

    def test_event_ids_unique(self, _posted):
        ids = {
            InvoicePaid.create(result=_posted, processor_reference="pay-1", paid_at=PAID_AT).event_id
            for _ in range(10)
        }
        assert len(ids) == 10

    def test_occurred_at_is_receipt_time_not_paid_at(self, _posted):
        before = now_utc()
        event = InvoicePaid.create(result=_posted, processor_reference="pay-1", paid_at=PAID_AT)
        after = now_utc()

        assert before <= event.occurred_at <= after
        assert event.occurred_at.tzinfo == timezone.utc


# =============================================================================
# IMMUTABILITY
# =============================================================================


class TestFrozenFields:

    def test_cannot_reassign_result(self, _posted):
        event = InvoicePaid.create(result=_posted, processor_reference="pay-1", paid_at=PAID_AT)
        with pytest.raises(FrozenInstanceError):
            event.result = None

    def test_cannot_reassign_event_id(self, _unposted):
        event = PaymentUnposted.create(result=_unposted, company_id=1)
        with pytest.raises(FrozenInstanceError):
            event.event_id = "tampered"


class TestInheritance:

    def test_all_events_are_ledger_events(self, _posted, _unposted):
        assert isinstance(InvoicePaid.create(result=_posted, processor_reference="p", paid_at=PAID_AT), LedgerEvent)
        assert isinstance(PaymentUnposted.create(result=_unposted, company_id=1), LedgerEvent)

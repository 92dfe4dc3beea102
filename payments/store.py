"""
Storage interface consumed by the reconciliation pipeline.

The pipeline never issues SQL itself. It needs soft-delete-aware lookups, an
atomic unit of work, and a handful of row-level writes; anything offering
these (PostgresLedgerStore in production, an in-memory store in tests) will do.
"""

from contextlib import AbstractContextManager
from datetime import datetime
from decimal import Decimal
from typing import Any, Protocol

from core.models import (
    Account,
    Invoice,
    Payment,
    PaymentCreate,
    Transaction,
    TransactionCreate,
)
from payments.types import InvoiceReference


class DuplicatePaymentError(Exception):
    """
    Insert hit the (invoice_id, payment_processor_reference) uniqueness rule.

    Raised by the store from inside a unit of work; the unit of work is
    rolled back and the callback is treated as already processed.
    """

    def __init__(self, invoice_id: int, processor_reference: str):
        self.invoice_id = invoice_id
        self.processor_reference = processor_reference
        super().__init__(
            f"Payment {processor_reference} already exists for invoice {invoice_id}"
        )


class LedgerUnitOfWork(Protocol):
    """Writes available inside one atomic unit of work."""

    def lock_invoice(self, invoice_id: int) -> Invoice | None:
        """Re-read a live invoice and hold its row until commit."""
        ...

    def insert_payment(self, data: PaymentCreate) -> Payment:
        """Raises DuplicatePaymentError on a repeated processor reference."""
        ...

    def mark_invoice_paid(self, invoice_id: int, paid_at: datetime) -> Invoice:
        ...

    def find_ledger_account(self, company_id: int, account_id: int | None = None) -> Account | None:
        """The configured account if given, else the lowest-id live account."""
        ...

    def insert_transaction(self, data: TransactionCreate) -> Transaction:
        ...

    def credit_account(self, account_id: int, amount: Decimal) -> Account:
        """current_balance = current_balance + amount, atomically."""
        ...

    def link_payment_transaction(self, payment_id: int, transaction_id: int) -> Payment:
        ...

    def record_audit(self, entity_type: str, entity_id: int, action: str, changes: dict[str, Any]) -> None:
        ...


class LedgerStore(Protocol):
    """Lookups plus the unit-of-work factory."""

    def find_invoice(self, reference: InvoiceReference, company_id: int | None = None) -> Invoice | None:
        ...

    def find_payment_by_reference(self, invoice_id: int, processor_reference: str) -> Payment | None:
        ...

    def unit_of_work(self, timeout_ms: int | None = None) -> AbstractContextManager[LedgerUnitOfWork]:
        """Commit on clean exit, roll back everything on any exception."""
        ...

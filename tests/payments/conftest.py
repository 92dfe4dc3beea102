"""Payment pipeline fixtures - in-memory ledger store, no DB needed.

InMemoryLedgerStore honours the same contract as PostgresLedgerStore:
soft-delete-aware lookups, all-or-nothing units of work (snapshot and
restore), and the (invoice_id, processor_reference) uniqueness rule.
"""

from contextlib import contextmanager
from datetime import timedelta
from decimal import Decimal

import pytest
from starlette.testclient import TestClient

from core.event_bus import EventBus
from core.models import (
    Account,
    AccountType,
    Invoice,
    InvoiceStatus,
    Payment,
    Transaction,
)
from payments.config import XenditConfig
from payments.service import WebhookService
from payments.store import DuplicatePaymentError
from utils.timezone import now_utc

CALLBACK_TOKEN = "test-callback-token"


class SimulatedFailure(RuntimeError):
    """Raised by the in-memory store where a test asked for a failure."""


class InMemoryUnitOfWork:

    def __init__(self, store: "InMemoryLedgerStore"):
        self.store = store

    def _maybe_fail(self, operation: str) -> None:
        if self.store.fail_on == operation:
            raise SimulatedFailure(f"simulated failure in {operation}")

    def lock_invoice(self, invoice_id):
        self._maybe_fail("lock_invoice")
        invoice = self.store.invoices.get(invoice_id)
        if invoice is None or invoice.soft_delete:
            return None
        return invoice

    def insert_payment(self, data):
        self._maybe_fail("insert_payment")
        for existing in self.store.payments.values():
            if (
                existing.invoice_id == data.invoice_id
                and existing.payment_processor_reference == data.payment_processor_reference
                and not existing.soft_delete
            ):
                raise DuplicatePaymentError(data.invoice_id, data.payment_processor_reference)

        now = now_utc()
        payment = Payment(
            id=self.store.next_id("payments"),
            created_at=now,
            updated_at=now,
            **data.model_dump(),
        )
        self.store.payments[payment.id] = payment
        return payment

    def mark_invoice_paid(self, invoice_id, paid_at):
        self._maybe_fail("mark_invoice_paid")
        invoice = self.store.invoices[invoice_id].model_copy(update={
            "status": InvoiceStatus.PAID,
            "paid_at": paid_at,
            "updated_at": now_utc(),
        })
        self.store.invoices[invoice_id] = invoice
        return invoice

    def find_ledger_account(self, company_id, account_id=None):
        self._maybe_fail("find_ledger_account")
        live = sorted(
            (a for a in self.store.accounts.values() if a.company_id == company_id and not a.soft_delete),
            key=lambda a: a.id,
        )
        if account_id is not None:
            for account in live:
                if account.id == account_id:
                    return account
        return live[0] if live else None

    def insert_transaction(self, data):
        self._maybe_fail("insert_transaction")
        now = now_utc()
        transaction = Transaction(
            id=self.store.next_id("transactions"),
            created_at=now,
            updated_at=now,
            **data.model_dump(),
        )
        self.store.transactions[transaction.id] = transaction
        return transaction

    def credit_account(self, account_id, amount):
        self._maybe_fail("credit_account")
        account = self.store.accounts[account_id]
        credited = account.model_copy(update={
            "current_balance": account.current_balance + amount,
            "updated_at": now_utc(),
        })
        self.store.accounts[account_id] = credited
        return credited

    def link_payment_transaction(self, payment_id, transaction_id):
        self._maybe_fail("link_payment_transaction")
        payment = self.store.payments[payment_id].model_copy(update={"transaction_id": transaction_id})
        self.store.payments[payment_id] = payment
        return payment

    def record_audit(self, entity_type, entity_id, action, changes):
        self._maybe_fail("record_audit")
        self.store.audit.append({
            "entity_type": entity_type,
            "entity_id": entity_id,
            "action": action,
            "changes": changes,
        })


class InMemoryLedgerStore:

    def __init__(self):
        self.invoices: dict[int, Invoice] = {}
        self.payments: dict[int, Payment] = {}
        self.accounts: dict[int, Account] = {}
        self.transactions: dict[int, Transaction] = {}
        self.audit: list[dict] = []
        self._sequences: dict[str, int] = {}

        # Test knobs
        self.fail_on: str | None = None
        self.hide_payments_from_lookup = False
        self.timeouts: list[int | None] = []

    def next_id(self, table: str) -> int:
        self._sequences[table] = self._sequences.get(table, 0) + 1
        return self._sequences[table]

    def add_invoice(self, **overrides) -> Invoice:
        now = now_utc()
        values = {
            "id": self.next_id("invoices"),
            "company_id": 1,
            "client_id": 10,
            "invoice_number": "INV-20250506-523",
            "status": InvoiceStatus.SENT,
            "total": Decimal("500000"),
            "currency": "IDR",
            "created_at": now - timedelta(days=3),
            "updated_at": now - timedelta(days=3),
        }
        values.update(overrides)
        if "id" in overrides:
            self._sequences["invoices"] = max(self._sequences.get("invoices", 0), overrides["id"])
        invoice = Invoice(**values)
        self.invoices[invoice.id] = invoice
        return invoice

    def add_account(self, **overrides) -> Account:
        now = now_utc()
        values = {
            "id": self.next_id("accounts"),
            "company_id": 1,
            "name": "BCA Operating",
            "type": AccountType.BANK,
            "currency": "IDR",
            "current_balance": Decimal("1000.00"),
            "created_at": now,
            "updated_at": now,
        }
        values.update(overrides)
        account = Account(**values)
        self.accounts[account.id] = account
        return account

    def find_invoice(self, reference, company_id=None):
        matches = [
            inv for inv in sorted(self.invoices.values(), key=lambda i: i.id)
            if not inv.soft_delete
            and (company_id is None or inv.company_id == company_id)
            and (
                inv.id == reference.invoice_id
                if reference.invoice_id is not None
                else inv.invoice_number == reference.invoice_number
            )
        ]
        return matches[0] if len(matches) == 1 else None

    def find_payment_by_reference(self, invoice_id, processor_reference):
        if self.hide_payments_from_lookup:
            return None
        for payment in self.payments.values():
            if (
                payment.invoice_id == invoice_id
                and payment.payment_processor_reference == processor_reference
                and not payment.soft_delete
            ):
                return payment
        return None

    @contextmanager
    def unit_of_work(self, timeout_ms=None):
        self.timeouts.append(timeout_ms)
        snapshot = (
            dict(self.invoices),
            dict(self.payments),
            dict(self.accounts),
            dict(self.transactions),
            list(self.audit),
        )
        try:
            yield InMemoryUnitOfWork(self)
        except BaseException:
            self.invoices, self.payments, self.accounts, self.transactions, self.audit = snapshot
            raise


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def store():
    return InMemoryLedgerStore()


@pytest.fixture
def invoice(store):
    """Sent invoice INV-20250506-523 (id 32) for company 1."""
    return store.add_invoice(id=32)


@pytest.fixture
def account(store):
    """Company 1 bank account holding 1000.00."""
    return store.add_account()


@pytest.fixture
def config():
    return XenditConfig(callback_token=CALLBACK_TOKEN)


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def service(store, config, event_bus):
    return WebhookService(store, config, event_bus)


@pytest.fixture
def app(store, config, event_bus):
    from main import create_app
    return create_app(config, store, event_bus)


@pytest.fixture
def client(app):
    """Test client that turns unhandled exceptions into 500s like production."""
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def auth_headers():
    return {"x-callback-token": CALLBACK_TOKEN}


@pytest.fixture
def status_payload():
    """Status-shaped callback as forwarded by the notification relay."""
    return {
        "id": "6818d4c3f1e2a5001b6c9d01",
        "description": "Payment for Invoice #INV-20250506-523",
        "status": "PAID",
        "amount": 500000,
        "paid_at": "2025-05-06T10:00:00Z",
        "currency": "IDR",
        "payment_method": "BANK_TRANSFER",
        "payment_channel": "BCA",
    }


@pytest.fixture
def event_payload():
    """Event-shaped invoice.paid callback."""
    return {
        "external_id": "inv-32-INV20250506523",
        "event": "invoice.paid",
        "data": {
            "id": "proc-evt-1",
            "amount": 500000,
            "paid_at": "2025-05-06T10:00:00Z",
            "currency": "IDR",
            "payment_method": "CREDIT_CARD",
        },
    }

"""
PostgreSQL-backed ledger store for payment reconciliation.

Lookups run as single statements on the pooled client. Writes run inside
PostgresClient.transaction() through PostgresLedgerUnitOfWork, so the
payment, invoice, ledger transaction, balance and audit rows commit together.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterator

from psycopg2 import errors as pg_errors

from clients.postgres_client import PostgresClient, PostgresTransaction
from core.audit import AuditAction, AuditLogger
from core.models import (
    Account,
    Invoice,
    InvoiceStatus,
    Payment,
    PaymentCreate,
    Transaction,
    TransactionCreate,
)
from payments.store import DuplicatePaymentError
from payments.types import InvoiceReference
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

PAYMENT_REFERENCE_INDEX = "payments_invoice_reference_uniq"


class PostgresLedgerUnitOfWork:
    """Row-level writes bound to one open transaction."""

    def __init__(self, tx: PostgresTransaction):
        self.tx = tx
        self.audit = AuditLogger(tx)

    def lock_invoice(self, invoice_id: int) -> Invoice | None:
        row = self.tx.execute_single(
            "SELECT * FROM invoices WHERE id = %s AND NOT soft_delete FOR UPDATE",
            (invoice_id,)
        )
        return Invoice.model_validate(row) if row else None

    def insert_payment(self, data: PaymentCreate) -> Payment:
        now = now_utc()
        try:
            row = self.tx.execute_returning(
                """
                INSERT INTO payments (
                    company_id, invoice_id, client_id,
                    amount, currency, payment_date, payment_method,
                    payment_processor_reference, status, notes,
                    created_at, updated_at, soft_delete
                ) VALUES (
                    %s, %s, %s,
                    %s, %s, %s, %s,
                    %s, %s, %s,
                    %s, %s, false
                )
                RETURNING *
                """,
                (
                    data.company_id, data.invoice_id, data.client_id,
                    data.amount, data.currency, data.payment_date, data.payment_method.value,
                    data.payment_processor_reference, data.status.value, data.notes,
                    now, now,
                )
            )[0]
        except pg_errors.UniqueViolation as e:
            if e.diag.constraint_name != PAYMENT_REFERENCE_INDEX:
                raise
            raise DuplicatePaymentError(data.invoice_id, data.payment_processor_reference) from e

        return Payment.model_validate(row)

    def mark_invoice_paid(self, invoice_id: int, paid_at: datetime) -> Invoice:
        row = self.tx.execute_returning(
            """
            UPDATE invoices
            SET status = %s, paid_at = %s, updated_at = %s
            WHERE id = %s
            RETURNING *
            """,
            (InvoiceStatus.PAID.value, paid_at, now_utc(), invoice_id)
        )[0]
        return Invoice.model_validate(row)

    def find_ledger_account(self, company_id: int, account_id: int | None = None) -> Account | None:
        if account_id is not None:
            row = self.tx.execute_single(
                """
                SELECT * FROM accounts
                WHERE id = %s AND company_id = %s AND NOT soft_delete
                """,
                (account_id, company_id)
            )
            if row is not None:
                return Account.model_validate(row)
            logger.warning(
                "Configured ledger account %s missing for company %s, falling back",
                account_id,
                company_id,
            )

        row = self.tx.execute_single(
            """
            SELECT * FROM accounts
            WHERE company_id = %s AND NOT soft_delete
            ORDER BY id ASC
            LIMIT 1
            """,
            (company_id,)
        )
        if row is None:
            return None

        account = Account.model_validate(row)
        logger.info("Using account %s (lowest id) as ledger account for company %s", account.id, company_id)
        return account

    def insert_transaction(self, data: TransactionCreate) -> Transaction:
        now = now_utc()
        row = self.tx.execute_returning(
            """
            INSERT INTO transactions (
                company_id, account_id, type, description,
                amount, currency, transaction_date,
                related_invoice_id, reconciled,
                created_at, updated_at, soft_delete
            ) VALUES (
                %s, %s, %s, %s,
                %s, %s, %s,
                %s, %s,
                %s, %s, false
            )
            RETURNING *
            """,
            (
                data.company_id, data.account_id, data.type.value, data.description,
                data.amount, data.currency, data.transaction_date,
                data.related_invoice_id, data.reconciled,
                now, now,
            )
        )[0]
        return Transaction.model_validate(row)

    def credit_account(self, account_id: int, amount: Decimal) -> Account:
        # Single statement: concurrent credits serialize on the row lock
        rows = self.tx.execute_returning(
            """
            UPDATE accounts
            SET current_balance = current_balance + %s, updated_at = %s
            WHERE id = %s AND NOT soft_delete
            RETURNING *
            """,
            (amount, now_utc(), account_id)
        )
        if not rows:
            raise RuntimeError(f"Account {account_id} disappeared during reconciliation")
        return Account.model_validate(rows[0])

    def link_payment_transaction(self, payment_id: int, transaction_id: int) -> Payment:
        row = self.tx.execute_returning(
            """
            UPDATE payments
            SET transaction_id = %s, updated_at = %s
            WHERE id = %s
            RETURNING *
            """,
            (transaction_id, now_utc(), payment_id)
        )[0]
        return Payment.model_validate(row)

    def record_audit(self, entity_type: str, entity_id: int, action: str, changes: dict[str, Any]) -> None:
        self.audit.log_change(
            entity_type=entity_type,
            entity_id=entity_id,
            action=AuditAction(action),
            changes=changes,
        )


class PostgresLedgerStore:
    """LedgerStore over PostgresClient."""

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def find_invoice(self, reference: InvoiceReference, company_id: int | None = None) -> Invoice | None:
        """
        Find a live invoice by numeric ID, or by invoice number.

        Invoice numbers are only unique per company. Without a company filter,
        a number shared by several companies resolves to nothing rather than
        to an arbitrary tenant's invoice.
        """
        if reference.invoice_id is not None:
            query = "SELECT * FROM invoices WHERE id = %s AND NOT soft_delete"
            params: list[Any] = [reference.invoice_id]
        else:
            query = "SELECT * FROM invoices WHERE invoice_number = %s AND NOT soft_delete"
            params = [reference.invoice_number]

        if company_id is not None:
            query += " AND company_id = %s"
            params.append(company_id)

        rows = self.postgres.execute(query + " ORDER BY id LIMIT 2", tuple(params))

        if not rows:
            return None
        if len(rows) > 1:
            logger.warning(
                "Invoice number %s matches invoices in several companies; refusing to guess",
                reference.invoice_number,
            )
            return None

        return Invoice.model_validate(rows[0])

    def find_payment_by_reference(self, invoice_id: int, processor_reference: str) -> Payment | None:
        row = self.postgres.execute_single(
            """
            SELECT * FROM payments
            WHERE invoice_id = %s AND payment_processor_reference = %s AND NOT soft_delete
            LIMIT 1
            """,
            (invoice_id, processor_reference)
        )
        return Payment.model_validate(row) if row else None

    @contextmanager
    def unit_of_work(self, timeout_ms: int | None = None) -> Iterator[PostgresLedgerUnitOfWork]:
        with self.postgres.transaction(timeout_ms=timeout_ms) as tx:
            yield PostgresLedgerUnitOfWork(tx)

"""
Ledger reconciler: the transactional core of payment webhook handling.

Given a resolved invoice and a completed payment event, one unit of work
records the payment, marks the invoice paid, posts a credit to the company's
ledger account and bumps that account's balance. Either all of it commits or
none of it does.
"""

import logging

from core.audit import AuditAction, compute_changes
from core.models import (
    Invoice,
    PaymentCreate,
    PaymentMethod,
    PaymentStatus,
    TransactionCreate,
    TransactionType,
)
from payments.config import XenditConfig
from payments.exceptions import InvoiceNotFound, LedgerAccountMissing
from payments.store import LedgerStore
from payments.types import PaymentEvent, ReconciliationResult
from utils.timezone import utc_date

logger = logging.getLogger(__name__)

_METHOD_MAP = {
    "CARD": PaymentMethod.CARD,
    "CREDIT_CARD": PaymentMethod.CARD,
    "DEBIT_CARD": PaymentMethod.CARD,
    "BANK_TRANSFER": PaymentMethod.BANK_TRANSFER,
    "VIRTUAL_ACCOUNT": PaymentMethod.BANK_TRANSFER,
    "DIRECT_DEBIT": PaymentMethod.BANK_TRANSFER,
    "RETAIL_OUTLET": PaymentMethod.CASH,
    "CASH": PaymentMethod.CASH,
}


def map_payment_method(processor_method: str | None) -> PaymentMethod:
    """Map a processor payment method onto the internal enum; unknown methods become OTHER."""
    if not processor_method:
        return PaymentMethod.OTHER
    return _METHOD_MAP.get(processor_method.strip().upper(), PaymentMethod.OTHER)


class LedgerReconciler:
    """Applies a completed payment to the ledger in one unit of work."""

    def __init__(self, store: LedgerStore, config: XenditConfig):
        self.store = store
        self.config = config

    def apply(self, invoice: Invoice, event: PaymentEvent) -> ReconciliationResult:
        """
        Record the payment and post it.

        Args:
            invoice: Invoice resolved from the callback
            event: Normalized completed-payment event

        Returns:
            What was created and updated

        Raises:
            DuplicatePaymentError: Processor reference already recorded (rolled back)
            InvoiceNotFound: Invoice deleted between lookup and lock
            LedgerAccountMissing: No account and require_ledger_account is set
            Exception: Anything the store raises; the unit of work is rolled back
        """
        currency = event.currency or invoice.currency
        payment_date = utc_date(event.paid_at)

        with self.store.unit_of_work(self.config.transaction_timeout_ms) as uow:
            locked = uow.lock_invoice(invoice.id)
            if locked is None:
                raise InvoiceNotFound(f"Invoice {invoice.id} not found")

            payment = uow.insert_payment(PaymentCreate(
                company_id=locked.company_id,
                invoice_id=locked.id,
                client_id=locked.client_id,
                amount=event.amount,
                currency=currency,
                payment_date=payment_date,
                payment_method=map_payment_method(event.payment_method),
                payment_processor_reference=event.processor_reference,
                status=PaymentStatus.COMPLETED,
                notes=f"Paid via Xendit ({event.method_label})",
            ))
            uow.record_audit("payment", payment.id, AuditAction.CREATE.value, {
                "created": payment.model_dump(mode="json"),
            })

            paid_at = event.paid_at
            if locked.is_paid:
                # First payment's timestamp stays authoritative
                logger.warning(
                    "Invoice %s already paid at %s; recording further payment %s",
                    locked.invoice_number,
                    locked.paid_at,
                    event.processor_reference,
                )
                paid_at = locked.paid_at or event.paid_at

            paid = uow.mark_invoice_paid(locked.id, paid_at)
            changes = compute_changes(locked.model_dump(mode="json"), paid.model_dump(mode="json"))
            changes["payment_id"] = payment.id
            uow.record_audit("invoice", paid.id, AuditAction.UPDATE.value, changes)

            account = uow.find_ledger_account(
                locked.company_id,
                self.config.ledger_accounts.get(locked.company_id),
            )
            if account is None:
                if self.config.require_ledger_account:
                    raise LedgerAccountMissing(
                        f"No ledger account for company {locked.company_id}"
                    )
                logger.warning(
                    "No ledger account for company %s; invoice %s paid without a ledger transaction",
                    locked.company_id,
                    locked.invoice_number,
                )
                return ReconciliationResult(
                    invoice_id=paid.id,
                    invoice_number=paid.invoice_number,
                    payment_id=payment.id,
                )

            transaction = uow.insert_transaction(TransactionCreate(
                company_id=locked.company_id,
                account_id=account.id,
                type=TransactionType.CREDIT,
                description=f"Payment received for Invoice #{locked.invoice_number}",
                amount=event.amount,
                currency=currency,
                transaction_date=payment_date,
                related_invoice_id=locked.id,
                reconciled=False,
            ))
            uow.record_audit("transaction", transaction.id, AuditAction.CREATE.value, {
                "created": transaction.model_dump(mode="json"),
            })

            uow.link_payment_transaction(payment.id, transaction.id)

            credited = uow.credit_account(account.id, event.amount)
            uow.record_audit("account", credited.id, AuditAction.UPDATE.value, {
                "current_balance": {
                    "old": str(credited.current_balance - event.amount),
                    "new": str(credited.current_balance),
                },
                "transaction_id": transaction.id,
            })

        return ReconciliationResult(
            invoice_id=paid.id,
            invoice_number=paid.invoice_number,
            payment_id=payment.id,
            transaction_id=transaction.id,
            account_id=credited.id,
            account_balance=credited.current_balance,
        )

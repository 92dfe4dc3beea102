"""
Payment webhook service.

Runs one processor callback through the pipeline:

    authenticate -> interpret payload -> resolve invoice
        -> idempotency guard -> reconcile -> publish events

Every early exit is a typed WebhookError so the HTTP layer can pick the
status code the processor's retry policy expects.
"""

import json
import logging

from core.event_bus import EventBus
from core.events import InvoicePaid, PaymentUnposted
from core.models import Invoice
from payments.adapters import interpret_callback
from payments.config import XenditConfig
from payments.exceptions import (
    AuthenticationFailure,
    DuplicateEvent,
    InvoiceNotFound,
    MalformedPayload,
    PersistenceFailure,
    WebhookError,
)
from payments.reconciler import LedgerReconciler
from payments.store import DuplicatePaymentError, LedgerStore
from payments.types import InvoiceReference, PaymentEvent, ReconciliationResult
from payments.verification import verify_callback_token
from utils.company_context import company_context

logger = logging.getLogger(__name__)


class WebhookService:
    """Processes Xendit payment callbacks against the ledger store."""

    def __init__(self, store: LedgerStore, config: XenditConfig, event_bus: EventBus | None = None):
        self.store = store
        self.config = config
        self.event_bus = event_bus or EventBus()
        self.reconciler = LedgerReconciler(store, config)

    def handle_callback(self, token: str | None, body: bytes) -> ReconciliationResult:
        """
        Authenticate, interpret and apply one callback.

        The token is checked before the body is even decoded.

        Args:
            token: x-callback-token header value
            body: Raw request body

        Returns:
            Result of a successful reconciliation

        Raises:
            AuthenticationFailure, UnsupportedEvent, MalformedPayload,
            InvoiceNotFound, DuplicateEvent, PersistenceFailure
        """
        secret = self.config.callback_token.get_secret_value() if self.config.callback_token else None
        if not verify_callback_token(token, secret):
            raise AuthenticationFailure("Invalid callback token")

        try:
            payload = json.loads(body)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise MalformedPayload("Callback body is not valid JSON") from e

        interpreted = interpret_callback(payload)
        invoice = self._resolve_invoice(interpreted.reference)
        event = interpreted.event

        with company_context(invoice.company_id):
            self._ensure_not_applied(invoice, event)
            result = self._reconcile(invoice, event)

        logger.info(
            "Invoice %s (id=%s) paid via %s: payment=%s transaction=%s",
            result.invoice_number,
            result.invoice_id,
            event.processor_reference,
            result.payment_id,
            result.transaction_id,
        )

        self.event_bus.publish(InvoicePaid.create(
            result=result,
            processor_reference=event.processor_reference,
            paid_at=event.paid_at,
        ))
        if not result.posted:
            self.event_bus.publish(PaymentUnposted.create(result=result, company_id=invoice.company_id))

        return result

    def _resolve_invoice(self, reference: InvoiceReference) -> Invoice:
        invoice = self.store.find_invoice(reference, company_id=self.config.company_id)
        if invoice is None:
            logger.warning("Invoice not found for callback reference %s", reference.describe())
            raise InvoiceNotFound(f"Invoice not found ({reference.describe()})")
        return invoice

    def _ensure_not_applied(self, invoice: Invoice, event: PaymentEvent) -> None:
        """Fast-path duplicate check. The unique index in the store is the real guard."""
        existing = self.store.find_payment_by_reference(invoice.id, event.processor_reference)
        if existing is not None:
            logger.info(
                "Duplicate callback %s for invoice %s ignored (payment=%s)",
                event.processor_reference,
                invoice.id,
                existing.id,
            )
            raise DuplicateEvent(invoice.id, event.processor_reference)

    def _reconcile(self, invoice: Invoice, event: PaymentEvent) -> ReconciliationResult:
        try:
            return self.reconciler.apply(invoice, event)
        except DuplicatePaymentError as e:
            logger.info(
                "Concurrent delivery of %s for invoice %s lost the insert race; rolled back",
                e.processor_reference,
                e.invoice_id,
            )
            raise DuplicateEvent(e.invoice_id, e.processor_reference) from e
        except WebhookError:
            raise
        except Exception as e:
            logger.exception(
                "Reconciliation failed for invoice %s (%s); rolled back",
                invoice.id,
                event.processor_reference,
            )
            raise PersistenceFailure(f"Reconciliation failed for invoice {invoice.id}") from e

"""Xendit payment webhook reconciliation."""

from payments.exceptions import (
    WebhookError,
    AuthenticationFailure,
    UnsupportedEvent,
    MalformedPayload,
    InvoiceNotFound,
    DuplicateEvent,
    PersistenceFailure,
    LedgerAccountMissing,
)
from payments.types import (
    ReferenceSource,
    InvoiceReference,
    PaymentEvent,
    InterpretedCallback,
    ReconciliationResult,
)
from payments.config import XenditConfig
from payments.store import LedgerStore, LedgerUnitOfWork, DuplicatePaymentError
from payments.verification import verify_callback_token
from payments.adapters import interpret_callback, build_external_id
from payments.reconciler import LedgerReconciler
from payments.service import WebhookService
from payments.api import create_xendit_router

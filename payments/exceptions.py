"""Typed outcomes for payment webhook processing.

Every way a callback can end short of a clean reconciliation is one of these.
The HTTP layer maps them to status codes; the processor's retry policy is the
consumer, so 5xx is reserved for failures a redelivery can fix.
"""


class WebhookError(Exception):
    """Base class for webhook processing outcomes."""


class AuthenticationFailure(WebhookError):
    """Callback token missing, not configured, or wrong. Nothing was parsed."""


class UnsupportedEvent(WebhookError):
    """
    Callback is not a completed-payment signal (PENDING, EXPIRED, ...).

    Not an error from the processor's point of view: it is acknowledged
    with 200 so it is not redelivered.
    """

    def __init__(self, kind: str | None):
        self.kind = kind
        super().__init__(f"Event not applicable: {kind or 'unknown'}")


class MalformedPayload(WebhookError):
    """No supported payload shape yields an invoice reference, or required fields are unusable."""


class InvoiceNotFound(WebhookError):
    """The referenced invoice does not exist, is deleted, or belongs to another company."""


class DuplicateEvent(WebhookError):
    """This processor event was already applied to the invoice. Acknowledged, not re-applied."""

    def __init__(self, invoice_id: int, processor_reference: str):
        self.invoice_id = invoice_id
        self.processor_reference = processor_reference
        super().__init__(
            f"Payment {processor_reference} already recorded for invoice {invoice_id}"
        )


class PersistenceFailure(WebhookError):
    """
    The reconciliation unit of work failed and was rolled back.

    Retry-worthy: the idempotency guard makes redelivery safe.
    """


class LedgerAccountMissing(PersistenceFailure):
    """No ledger account available for the company while one is required."""

"""Pydantic models for the payment webhook domain."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field, model_validator

# invoices.id is BIGINT
MAX_INVOICE_ID = 2**63 - 1


class ReferenceSource(str, Enum):
    """Which payload shape produced an invoice reference."""

    DESCRIPTION = "description"
    EXTERNAL_ID = "external_id"


class InvoiceReference(BaseModel):
    """
    How a callback points at an internal invoice.

    Exactly one lookup key is authoritative: the numeric ID when present,
    otherwise the invoice number. An external_id reference carries both, the
    number being a cosmetic recovery for logs and responses.
    """

    source: ReferenceSource
    invoice_id: int | None = Field(default=None, ge=1, le=MAX_INVOICE_ID)
    invoice_number: str | None = None

    @model_validator(mode="after")
    def _require_key(self) -> "InvoiceReference":
        if self.invoice_id is None and not self.invoice_number:
            raise ValueError("InvoiceReference needs invoice_id or invoice_number")
        return self

    def describe(self) -> str:
        if self.invoice_id is not None:
            return f"id={self.invoice_id}"
        return f"number={self.invoice_number}"


class PaymentEvent(BaseModel):
    """A completed payment as reported by the processor, normalized."""

    processor_reference: str = Field(..., min_length=1, max_length=255)
    amount: Decimal = Field(..., gt=0)
    currency: str | None = Field(default=None, max_length=10)
    paid_at: datetime
    payment_method: str | None = None
    payment_channel: str | None = None

    @property
    def method_label(self) -> str:
        """Processor method for human-readable notes, e.g. 'BANK_TRANSFER / BCA'."""
        parts = [p for p in (self.payment_method, self.payment_channel) if p]
        return " / ".join(parts) if parts else "unknown method"


class InterpretedCallback(BaseModel):
    """Output of the payload interpreter."""

    reference: InvoiceReference
    event: PaymentEvent


class ReconciliationResult(BaseModel):
    """What a successful reconciliation changed."""

    invoice_id: int
    invoice_number: str
    payment_id: int
    transaction_id: int | None = None
    account_id: int | None = None
    account_balance: Decimal | None = None

    @property
    def posted(self) -> bool:
        """Whether a ledger transaction was created."""
        return self.transaction_id is not None

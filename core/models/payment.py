"""Payment domain models."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field


class PaymentMethod(str, Enum):
    """Internal payment method enum. Processor methods are mapped onto it."""

    CARD = "card"
    BANK_TRANSFER = "bank_transfer"
    CASH = "cash"
    OTHER = "other"


class PaymentStatus(str, Enum):
    """Payment record status."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class PaymentCreate(BaseModel):
    """Data required to record a payment against an invoice."""

    company_id: int
    invoice_id: int
    client_id: int
    amount: Decimal = Field(..., gt=0)
    currency: str = Field(..., min_length=1, max_length=10)
    payment_date: date
    payment_method: PaymentMethod
    payment_processor_reference: str = Field(..., min_length=1, max_length=255)
    status: PaymentStatus = PaymentStatus.COMPLETED
    notes: str | None = None


class Payment(BaseModel):
    """Full payment entity as stored."""

    id: int
    company_id: int
    invoice_id: int
    client_id: int
    amount: Decimal
    currency: str
    payment_date: date
    payment_method: PaymentMethod
    payment_processor_reference: str | None
    status: PaymentStatus
    transaction_id: int | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime
    soft_delete: bool = False

    model_config = {"from_attributes": True}

"""Invoice domain models.

Amounts are decimals in the invoice currency (IDR has no minor unit in
practice, other currencies use two decimal places). Never floats.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel


class InvoiceStatus(str, Enum):
    """Invoice lifecycle status."""

    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class Invoice(BaseModel):
    """Full invoice entity as stored."""

    id: int
    company_id: int
    client_id: int
    invoice_number: str
    status: InvoiceStatus
    total: Decimal
    currency: str = "IDR"
    xendit_invoice_id: str | None = None
    paid_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    soft_delete: bool = False

    model_config = {"from_attributes": True}

    @property
    def is_paid(self) -> bool:
        """Whether invoice has been marked paid."""
        return self.status == InvoiceStatus.PAID

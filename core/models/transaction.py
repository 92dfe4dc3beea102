"""Ledger transaction models."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field


class TransactionType(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"


class TransactionCreate(BaseModel):
    """Data required to post a ledger entry."""

    company_id: int
    account_id: int
    type: TransactionType
    description: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)
    currency: str = Field(..., min_length=1, max_length=10)
    transaction_date: date
    related_invoice_id: int | None = None
    reconciled: bool = False  # Bank-statement reconciliation happens elsewhere


class Transaction(BaseModel):
    """Full ledger transaction entity as stored."""

    id: int
    company_id: int
    account_id: int
    type: TransactionType
    description: str
    amount: Decimal
    currency: str
    transaction_date: date
    related_invoice_id: int | None = None
    reconciled: bool = False
    created_at: datetime
    updated_at: datetime
    soft_delete: bool = False

    model_config = {"from_attributes": True}

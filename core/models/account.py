"""Bank/cash account models. The balance is a running sum, not derived on read."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel


class AccountType(str, Enum):
    BANK = "bank"
    CREDIT_CARD = "credit_card"
    CASH = "cash"


class Account(BaseModel):
    """Full account entity as stored."""

    id: int
    company_id: int
    name: str
    type: AccountType
    currency: str = "IDR"
    current_balance: Decimal
    created_at: datetime
    updated_at: datetime
    soft_delete: bool = False

    model_config = {"from_attributes": True}

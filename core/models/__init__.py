"""Core domain models."""

from core.models.invoice import Invoice, InvoiceStatus
from core.models.payment import Payment, PaymentCreate, PaymentMethod, PaymentStatus
from core.models.account import Account, AccountType
from core.models.transaction import Transaction, TransactionCreate, TransactionType

__all__ = [
    # Invoice
    "Invoice", "InvoiceStatus",
    # Payment
    "Payment", "PaymentCreate", "PaymentMethod", "PaymentStatus",
    # Account
    "Account", "AccountType",
    # Transaction
    "Transaction", "TransactionCreate", "TransactionType",
]

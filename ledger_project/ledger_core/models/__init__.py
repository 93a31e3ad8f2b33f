from .account import (Account, AccountType, NormalBalance, TaxCategory,
                      TaxCode, normal_balance_for)
from .auditlog import AuditLog
from .company import Company
from .invoice import (Invoice, InvoicePayment, InvoiceStatus, InvoiceType,
                      PaymentMethod, PaymentStatus, normalize_invoice_number)
from .journal import JournalEntry, JournalStatus, SourceType, TransactionLine

__all__ = [
    "Account",
    "AccountType",
    "AuditLog",
    "Company",
    "Invoice",
    "InvoicePayment",
    "InvoiceStatus",
    "InvoiceType",
    "JournalEntry",
    "JournalStatus",
    "NormalBalance",
    "PaymentMethod",
    "PaymentStatus",
    "SourceType",
    "TaxCategory",
    "TaxCode",
    "TransactionLine",
    "normal_balance_for",
    "normalize_invoice_number",
]

import datetime

from ledger_core.models import Company, InvoiceType
from ledger_core.services import (create_invoice, post_invoice,
                                  seed_chart_of_accounts, verify_invoice)
from ledger_core.store import CompanyScopedStore


def make_store(slug="acme", name="Acme Ltd", tax_id="12345678", user=None):
    """Company with the default chart of accounts, wrapped in a store."""
    company = Company.objects.create(name=name, slug=slug, tax_id=tax_id)
    store = CompanyScopedStore(company, user=user)
    seed_chart_of_accounts(store)
    return store


def output_fields(store, **overrides):
    fields = {
        "number": "AB-12345678",
        "invoice_type": InvoiceType.OUTPUT,
        "date": datetime.date(2025, 3, 10),
        "untaxed_amount": 10000,
        "tax_amount": 500,
        "total_amount": 10500,
        "counterparty_name": "Buyer Co",
        "counterparty_tax_id": "87654321",
        "tax_code": store.tax_codes().get(code="T5"),
    }
    fields.update(overrides)
    return fields


def input_fields(**overrides):
    fields = {
        "number": "CD-00000001",
        "invoice_type": InvoiceType.INPUT,
        "date": datetime.date(2025, 3, 12),
        "untaxed_amount": 2000,
        "tax_amount": 100,
        "total_amount": 2100,
        "counterparty_name": "Supplier Co",
        "counterparty_tax_id": "22334455",
    }
    fields.update(overrides)
    return fields


def posted_invoice(store, **fields):
    invoice = create_invoice(store, **fields)
    verify_invoice(store, invoice.pk)
    return post_invoice(store, invoice.pk)


def line_set(entry):
    """{(account code, debit, credit)} for an entry's lines."""
    return {
        (line.account.code, line.debit, line.credit)
        for line in entry.lines.select_related("account")
    }

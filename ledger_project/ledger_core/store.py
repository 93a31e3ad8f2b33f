from django.db import transaction

from .exceptions import NotFoundError
from .models import (Account, AuditLog, Invoice, InvoicePayment, JournalEntry,
                     TaxCode, TransactionLine)


class CompanyScopedStore:
    """
    Capability object handed to every ledger operation.

    Built once per request with the caller's company (and user, for audit
    fields) baked in. Every queryset it hands out is already filtered with
    ``for_company`` so an operation cannot reach another tenant's rows.
    """

    def __init__(self, company, user=None):
        self.company = company
        self.user = user

    def __repr__(self):
        return f"<CompanyScopedStore company={self.company.pk}>"

    # ----- scoped querysets -----
    def accounts(self):
        return Account.objects.for_company(self.company)

    def tax_codes(self):
        return TaxCode.objects.for_company(self.company)

    def journal_entries(self):
        return JournalEntry.objects.for_company(self.company)

    def lines(self):
        return TransactionLine.objects.for_company(self.company)

    def invoices(self):
        return Invoice.objects.for_company(self.company)

    def payments(self):
        return InvoicePayment.objects.for_company(self.company)

    def audit_logs(self):
        return AuditLog.objects.for_company(self.company)

    # ----- lookups -----
    def _get(self, queryset, pk, lock):
        if lock:
            # Row lock held until the surrounding transaction ends
            queryset = queryset.select_for_update()
        try:
            return queryset.get(pk=pk)
        except (queryset.model.DoesNotExist, ValueError, TypeError):
            raise NotFoundError(
                f"{queryset.model.__name__} {pk} not found.",
                code="not_found",
            )

    def get_account(self, pk, lock=False):
        return self._get(self.accounts(), pk, lock)

    def get_tax_code(self, pk, lock=False):
        return self._get(self.tax_codes(), pk, lock)

    def get_journal(self, pk, lock=False):
        return self._get(self.journal_entries(), pk, lock)

    def get_line(self, pk, lock=False):
        return self._get(self.lines(), pk, lock)

    def get_invoice(self, pk, lock=False):
        return self._get(self.invoices(), pk, lock)

    def get_payment(self, pk, lock=False):
        return self._get(self.payments(), pk, lock)

    # ----- writes -----
    def create(self, model, **fields):
        """Create a row of ``model`` owned by this store's company."""
        fields["company"] = self.company
        return model.objects.create(**fields)

    def atomic(self):
        return transaction.atomic()

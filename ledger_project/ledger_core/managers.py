from django.db import models

# -----------------------------------------
# Enforce tenant scoping across all models
# that belong to a company
# -----------------------------------------
class TenantQuerySet(models.QuerySet):
    def for_company(self, company):  # Add queryset helper
        return self.filter(company=company)  # Apply filter

    def active(self, company):
        return self.filter(
                            company=company,  # enforce tenant scoping
                            is_active=True    # only fetch active records
                        )
    # Enables query:
    # Account.objects.active(store.company)


# Attach TenantQuerySet to .objects
class TenantManager(models.Manager.from_queryset(TenantQuerySet)):
    # every model using TenantManager can call:
    # Invoice.objects.for_company(company)
    pass


# Journal lines reached through their entry's status
class TransactionLineQuerySet(TenantQuerySet):
    def in_ledger(self):
        # Lines of posted entries, plus lines of voided entries:
        # a voided entry's reversal is posted, so both sides must be
        # counted for the void to net out to zero
        return self.filter(journal_entry__status__in=("posted", "voided"))


class TransactionLineManager(models.Manager.from_queryset(TransactionLineQuerySet)):
    pass

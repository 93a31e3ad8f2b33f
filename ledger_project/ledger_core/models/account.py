from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager
from .company import Company


# Used in Account model to classify general ledger accounts
class AccountType(models.TextChoices):
    ASSET = "asset", "Asset"
    LIABILITY = "liability", "Liability"
    EQUITY = "equity", "Equity"
    REVENUE = "revenue", "Revenue"
    EXPENSE = "expense", "Expense"


# Define whether the account normally increases
# on the debit side or credit side
class NormalBalance(models.TextChoices):
    DEBIT = "debit", "Debit"
    CREDIT = "credit", "Credit"


DEBIT_NORMAL_TYPES = (AccountType.ASSET, AccountType.EXPENSE)


def normal_balance_for(ac_type):
    """Assets/Expenses → Debit, Liabilities/Equity/Revenue → Credit."""
    if ac_type in DEBIT_NORMAL_TYPES:
        return NormalBalance.DEBIT
    return NormalBalance.CREDIT


class Account(models.Model):
    """
    Actual ledger account entry in Chart of Accounts.
    - code should be unique per company
    - ac_type: determines reporting -BS vs P&L
    - normal_balance: used to interpret sign when building reports
    """

    company = models.ForeignKey(  # Each account belongs to one company
        Company,  # All reports must filter by company_id to prevent data leaks
        on_delete=models.CASCADE,
    )
    # Every account has a code
    # which lets you sort/group accounts consistently in reports.
    code = models.CharField(max_length=32)
    name = models.CharField(max_length=200)

    # Classify account into one of the 5 basic accounting types
    ac_type = models.CharField(max_length=10, choices=AccountType.choices)

    # Define whether the account normally carries a debit or credit balance
    normal_balance = models.CharField(
        max_length=6,
        choices=NormalBalance.choices,
        default=NormalBalance.DEBIT,
    )
    # “soft deactivate” accounts (stop new postings)
    # without deleting history
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        indexes = [
            # For reports grouped by ac_type
            # (Trial Balance, P&L, Balance Sheet)
            models.Index(fields=["company", "ac_type"], name="acct_company_type_idx"),
            # For looking up accounts by code
            models.Index(fields=["company", "code"], name="acct_company_code_idx"),
        ]

        """ Each company defines its own chart of accounts.
               Codes repeat across companies but must be unique within one. """
        constraints = [
            models.UniqueConstraint(
                fields=["company", "code"], name="uq_company_account_code"
            )
        ]
        ordering = ("company", "code")

    def __str__(self):
        return f"{self.code} {self.name}"

    def clean(self):
        if self.normal_balance != normal_balance_for(self.ac_type):
            raise ValidationError(
                f"{self.get_ac_type_display()} accounts carry a "
                f"{normal_balance_for(self.ac_type)} normal balance."
            )

    def save(self, *args, **kwargs):
        """Enforce business immutability
        (can’t disable accounts used in journal lines)"""
        if not self.pk:
            return super().save(*args, **kwargs)
        # Fetch the previous version of account from DB
        old = Account.objects.filter(pk=self.pk).first()

        # If account was active before, but now being set to inactive
        if old and old.is_active and not self.is_active:
            from .journal import TransactionLine

            if TransactionLine.objects.filter(account=self).exists():
                raise ValidationError(
                    "Cannot disable an account that is used in journal lines."
                )
        return super().save(*args, **kwargs)


# Filing classification of an output invoice
class TaxCategory(models.TextChoices):
    TAXABLE = "taxable", "Taxable"
    ZERO_RATED = "zero_rated", "Zero-rated"
    EXEMPT = "exempt", "Exempt"


class TaxCode(models.Model):
    """
    VAT code attached to invoices and tax lines.
    rate > 0 → taxable; rate 0 with is_export → zero-rated; otherwise exempt.
    """

    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    code = models.CharField(max_length=16)
    name = models.CharField(max_length=100)
    # Percentage, e.g. 5.00 for the standard 5% business tax
    rate = models.DecimalField(
        max_digits=5, decimal_places=2, default=Decimal("0.00"))
    is_export = models.BooleanField(default=False)

    objects = TenantManager()

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["company", "code"], name="uq_company_tax_code"
            ),
            models.CheckConstraint(
                condition=models.Q(rate__gte=0),
                name="tax_code_rate_non_negative",
            ),
        ]

    def __str__(self):
        return f"{self.code} ({self.rate}%)"

    @property
    def category(self):
        if self.rate > 0:
            return TaxCategory.TAXABLE
        if self.is_export:
            return TaxCategory.ZERO_RATED
        return TaxCategory.EXEMPT

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager, TransactionLineManager
from .account import Account, TaxCode
from .company import Company


# Where a journal entry originated (lookup only, not ownership)
class SourceType(models.TextChoices):
    MANUAL = "manual", "Manual"
    QUOTATION = "quotation", "Quotation"
    CONTRACT = "contract", "Contract"
    POS = "pos", "POS"
    INVOICE = "invoice", "Invoice"
    PAYMENT = "payment", "Payment"


class JournalStatus(models.TextChoices):
    DRAFT = "draft", "Draft"  # still editable
    POSTED = "posted", "Posted"  # finalized, can only be voided
    VOIDED = "voided", "Voided"  # reversed, permanently immutable


# Header fields frozen once an entry leaves draft
LOCKED_FIELDS = (
    "company_id",
    "date",
    "reference",
    "description",
    "source_type",
    "source_id",
    "reversal_of_id",
)


# ---------- Journal (Header) & TransactionLine ----------
class JournalEntry(models.Model):  # Represents one accounting transaction
    # Multi-tenant: every entry belongs to a company
    company = models.ForeignKey(Company, on_delete=models.CASCADE)

    # Business metadata
    date = models.DateField()
    reference = models.CharField(max_length=200, null=True, blank=True)
    description = models.TextField(blank=True, default="")

    # Helps trace back where the JE originated
    source_type = models.CharField(
        max_length=20, choices=SourceType.choices, default=SourceType.MANUAL
    )
    source_id = models.BigIntegerField(null=True, blank=True)

    status = models.CharField(
        max_length=10,
        choices=JournalStatus.choices,
        default=JournalStatus.DRAFT,
    )

    # Track who created / posted / voided it
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    posted_at = models.DateTimeField(null=True, blank=True)
    posted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL,
        related_name="+",
    )
    voided_at = models.DateTimeField(null=True, blank=True)
    voided_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL,
        related_name="+",
    )
    void_reason = models.TextField(blank=True, default="")

    # Set on the reversing entry created when the original is voided
    reversal_of = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.PROTECT,  # never break the audit chain
        related_name="reversals",
    )

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        verbose_name_plural = "journal entries"
        # Speed up listing & filtering
        # (e.g. show all posted entries this month)
        indexes = [
            models.Index(fields=["company", "date"], name="je_company_date_idx"),
            models.Index(fields=["company", "status"], name="je_company_status_idx"),
        ]

        constraints = [
            # Within one company, each reference must be unique
            # Across companies, duplicates are allowed
            models.UniqueConstraint(
                fields=["company", "reference"], name="uq_je_company_ref"
            )
        ]

    def __str__(self):
        return f"JE {self.pk} {self.date} [{self.status}]"

    # Aggregate all debit and credit amounts across entry’s lines
    def compute_totals(self):
        """Return debits, credits sums for lines"""
        aggs = self.lines.aggregate(
            total_debit=models.Sum("debit"),
            total_credit=models.Sum("credit"),
        )
        return aggs["total_debit"] or 0, aggs["total_credit"] or 0

    # True if double-entry rule holds: total debits = total credits
    def is_balanced(self):
        debit, credit = self.compute_totals()
        return debit == credit

    @property
    def is_draft(self):
        return self.status == JournalStatus.DRAFT

    def save(self, *args, **kwargs):
        if self.pk:  # Does this row already exist in DB?
            orig = JournalEntry.objects.filter(pk=self.pk).first()
            if orig is not None:
                # posted → voided is the only move out of posted,
                # voided is terminal
                if (
                    orig.status == JournalStatus.POSTED
                    and self.status not in (
                        JournalStatus.POSTED, JournalStatus.VOIDED)
                ):
                    raise ValidationError("Cannot unpost a posted journal")
                if (
                    orig.status == JournalStatus.VOIDED
                    and self.status != JournalStatus.VOIDED
                ):
                    raise ValidationError("A voided journal is immutable")
                if orig.status != JournalStatus.DRAFT:
                    changed_fields = [
                        field for field in LOCKED_FIELDS
                        if getattr(orig, field) != getattr(self, field)
                    ]
                    if changed_fields:
                        raise ValidationError(
                            f"Cannot modify {changed_fields} on a {orig.status} journal"
                        )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        # Financial history is append-only once posted
        if JournalEntry.objects.filter(pk=self.pk).exclude(
            status=JournalStatus.DRAFT
        ).exists():
            raise ValidationError(
                "Only draft journal entries can be deleted.")
        return super().delete(*args, **kwargs)


class TransactionLine(models.Model):  # Stores Lines ( credits / debits )
    """
    Each line belongs to a journal entry and to a GL account.
    Amounts are integer currency units; exactly one side is non-zero.
    """

    # Belongs to company & a journal entry
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    journal_entry = models.ForeignKey(
        JournalEntry,
        on_delete=models.CASCADE,
        related_name="lines",
    )

    # Must point to one Account (can’t delete account if lines exist → PROTECT)
    account = models.ForeignKey(Account, on_delete=models.PROTECT)

    debit = models.BigIntegerField(default=0)
    credit = models.BigIntegerField(default=0)

    # Optional tax classification and trading partner reference
    tax_code = models.ForeignKey(
        TaxCode, null=True, blank=True, on_delete=models.PROTECT
    )
    counterparty_id = models.CharField(max_length=64, blank=True, default="")
    description = models.CharField(max_length=400, blank=True, default="")

    # Enforce tenant scoping, plus .in_ledger() for report scans
    objects = TransactionLineManager()

    class Meta:
        # For fast queries like “all lines for this account” /
        # “all lines in this JE.”
        indexes = [
            models.Index(fields=["company", "account"], name="tl_company_account_idx"),
            models.Index(fields=["company", "journal_entry"], name="tl_company_entry_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(debit__gte=0) & models.Q(credit__gte=0),
                name="tl_non_negative_amounts",
            ),
            models.CheckConstraint(
                condition=~(models.Q(debit=0) & models.Q(credit=0)),
                name="tl_debit_or_credit_nonzero",
            ),
            models.CheckConstraint(
                condition=models.Q(debit=0) | models.Q(credit=0),
                name="tl_one_sided",
            ),
        ]

    # Show journal, account, and amounts in debug logs
    def __str__(self):
        acc = self.account.code
        return f"{self.journal_entry_id} | {acc} | D:{self.debit} C:{self.credit}"

    def clean(self):
        # Ensure no negative values sneak in
        # (redundant with CheckConstraint but useful at app-level)
        if self.debit < 0 or self.credit < 0:
            raise ValidationError("Debit and credit must be >= 0")
        if self.debit > 0 and self.credit > 0:
            raise ValidationError(
                "TransactionLine should not have both debit and credit > 0"
            )
        if self.debit == 0 and self.credit == 0:
            raise ValidationError(
                "TransactionLine requires a non-0 amount on either debit or credit"
            )

        # Company consistency
        # Every line must belong to same company as its parent journal
        if self.journal_entry_id and self.company_id != self.journal_entry.company_id:
            raise ValidationError(
                "TransactionLine.company must equal JournalEntry.company"
            )
        if self.account_id and self.account.company_id != self.company_id:
            raise ValidationError(
                "TransactionLine.account must belong to the same company."
            )
        if self.tax_code_id and self.tax_code.company_id != self.company_id:
            raise ValidationError(
                "TransactionLine.tax_code must belong to the same company."
            )

        # Lines can only be added or edited while the parent is a draft
        if self.journal_entry_id and JournalEntry.objects.filter(
            pk=self.journal_entry_id
        ).exclude(status=JournalStatus.DRAFT).exists():
            raise ValidationError(
                "Cannot modify TransactionLine: parent JournalEntry is not a draft."
            )

    def delete(self, *args, **kwargs):
        # Prevent deletion unless the parent journal is a draft
        if JournalEntry.objects.filter(
            pk=self.journal_entry_id
        ).exclude(status=JournalStatus.DRAFT).exists():
            raise ValidationError(
                "Cannot delete TransactionLine: parent JournalEntry is not a draft."
            )
        return super().delete(*args, **kwargs)

    def save(self, *args, **kwargs):
        # If company not set, copy it from the parent journal
        if not self.company_id and self.journal_entry_id:
            self.company_id = self.journal_entry.company_id

        # clean()+field validation always run whenever
        # you save a TransactionLine programmatically
        self.full_clean()
        return super().save(*args, **kwargs)

import re

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager
from .account import Account, TaxCode
from .company import Company, tax_id_validator
from .journal import JournalEntry

# Two letters + eight digits, dash optional on input
INVOICE_NUMBER_RE = re.compile(r"^([A-Z]{2})-?(\d{8})$")


def normalize_invoice_number(value):
    """Return the canonical ``AB-12345678`` form or raise ValidationError."""
    match = INVOICE_NUMBER_RE.match((value or "").strip().upper())
    if not match:
        raise ValidationError(
            f"Invalid invoice number {value!r}: expected 2 letters + 8 digits."
        )
    return f"{match.group(1)}-{match.group(2)}"


class InvoiceType(models.TextChoices):
    OUTPUT = "OUTPUT", "Output (sales)"
    INPUT = "INPUT", "Input (purchases)"


class InvoiceStatus(models.TextChoices):
    DRAFT = "DRAFT", "Draft"  # editable
    VERIFIED = "VERIFIED", "Verified"  # fields locked, awaiting posting
    POSTED = "POSTED", "Posted"  # journal entry created, immutable
    VOIDED = "VOIDED", "Voided"  # terminal


class PaymentStatus(models.TextChoices):
    UNPAID = "UNPAID", "Unpaid"
    PARTIAL = "PARTIAL", "Partially paid"
    PAID = "PAID", "Paid"


class PaymentMethod(models.TextChoices):
    CASH = "CASH", "Cash"
    TRANSFER = "TRANSFER", "Bank transfer"
    CHECK = "CHECK", "Check"
    CREDIT_CARD = "CREDIT_CARD", "Credit card"
    UNCLASSIFIED = "UNCLASSIFIED", "Unclassified"


# Fields frozen once an invoice leaves DRAFT
LOCKED_FIELDS = (
    "number",
    "invoice_type",
    "date",
    "untaxed_amount",
    "tax_amount",
    "total_amount",
    "counterparty_tax_id",
    "tax_code_id",
    "is_deductible",
    "account_id",
)


class Invoice(models.Model):  # Represents a VAT invoice, sales or purchases

    # Invoice belongs to one company (multi-tenant)
    company = models.ForeignKey(Company, on_delete=models.CASCADE)

    # Identifiers and key dates
    number = models.CharField(max_length=11)  # canonical "AB-12345678"
    invoice_type = models.CharField(max_length=6, choices=InvoiceType.choices)
    status = models.CharField(
        max_length=10,
        choices=InvoiceStatus.choices,
        default=InvoiceStatus.DRAFT,
    )
    date = models.DateField()  # issue date
    due_date = models.DateField(null=True, blank=True)

    # Integer currency units, total = untaxed + tax
    untaxed_amount = models.BigIntegerField(default=0)
    tax_amount = models.BigIntegerField(default=0)
    total_amount = models.BigIntegerField(default=0)

    # Trading partner (customer for OUTPUT, vendor for INPUT)
    counterparty_name = models.CharField(max_length=200, blank=True, default="")
    counterparty_tax_id = models.CharField(
        max_length=8, blank=True, default="", validators=[tax_id_validator]
    )
    description = models.TextField(blank=True, default="")

    # Filing classification:
    # OUTPUT → tax code decides taxable / zero-rated / exempt
    # INPUT → is_deductible decides deductible / non-deductible
    tax_code = models.ForeignKey(
        TaxCode, null=True, blank=True, on_delete=models.PROTECT
    )
    is_deductible = models.BooleanField(default=True)

    # Optional revenue (OUTPUT) / expense (INPUT) account override
    account = models.ForeignKey(
        Account,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="+",
    )

    # Set once posted
    journal_entry = models.OneToOneField(
        JournalEntry,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="invoice",
    )

    # Lifecycle audit fields
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL, related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    verified_at = models.DateTimeField(null=True, blank=True)
    verified_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL, related_name="+",
    )
    posted_at = models.DateTimeField(null=True, blank=True)
    posted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL, related_name="+",
    )
    voided_at = models.DateTimeField(null=True, blank=True)
    voided_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL, related_name="+",
    )
    void_reason = models.TextField(blank=True, default="")

    # Running payment state (never changes status)
    paid_amount = models.BigIntegerField(default=0)
    payment_status = models.CharField(
        max_length=10,
        choices=PaymentStatus.choices,
        default=PaymentStatus.UNPAID,
    )

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        # Optimize for filing scans and lookups by number
        indexes = [
            models.Index(fields=["company", "status", "date"],
                         name="inv_company_status_date_idx"),
            models.Index(fields=["company", "number"], name="inv_company_number_idx"),
        ]

        constraints = [
            # Within one company, each invoice number must be unique
            # Across companies, duplicates are allowed
            models.UniqueConstraint(
                fields=["company", "number"],
                name="uq_invoice_company_number"
            ),
            models.CheckConstraint(
                condition=models.Q(
                    total_amount=models.F("untaxed_amount") + models.F("tax_amount")
                ),
                name="invoice_total_identity",
            ),
            models.CheckConstraint(
                condition=(
                    models.Q(untaxed_amount__gte=0)
                    & models.Q(tax_amount__gte=0)
                    & models.Q(total_amount__gte=0)
                ),
                name="invoice_non_negative_amounts",
            ),
            models.CheckConstraint(
                condition=models.Q(paid_amount__gte=0)
                & models.Q(paid_amount__lte=models.F("total_amount")),
                name="invoice_paid_within_total",
            ),
        ]

    def __str__(self):
        return f"{self.invoice_type} {self.number} [{self.status}]"

    @property
    def outstanding_amount(self):
        return self.total_amount - self.paid_amount

    def clean(self):
        if min(self.untaxed_amount, self.tax_amount, self.total_amount) < 0:
            raise ValidationError("Invoice amounts must be non-negative.")
        if self.total_amount != self.untaxed_amount + self.tax_amount:
            raise ValidationError(
                "total_amount must equal untaxed_amount + tax_amount "
                f"({self.untaxed_amount} + {self.tax_amount} != {self.total_amount})"
            )

        # Ensure related records chosen belong to the same company
        if self.tax_code_id and self.tax_code.company_id != self.company_id:
            raise ValidationError(
                "Invoice.tax_code must belong to the same company.")
        if self.account_id and self.account.company_id != self.company_id:
            raise ValidationError(
                "Invoice.account must belong to the same company.")

        """ Make non-draft invoices immutable in all code paths """
        if self.pk:
            orig = Invoice.objects.filter(pk=self.pk).first()
            if orig is not None and orig.status != InvoiceStatus.DRAFT:
                changed_fields = [
                    field for field in LOCKED_FIELDS
                    if getattr(orig, field) != getattr(self, field)
                ]
                if changed_fields:
                    raise ValidationError(
                        f"Cannot modify {changed_fields} on a "
                        f"{orig.get_status_display().lower()} invoice."
                    )

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)


class InvoicePayment(models.Model):
    """A payment settled against a posted invoice, with its own journal entry."""

    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    invoice = models.ForeignKey(
        Invoice, on_delete=models.PROTECT, related_name="payments"
    )
    amount = models.BigIntegerField()
    date = models.DateField()
    method = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices,
        default=PaymentMethod.UNCLASSIFIED,
    )
    reference = models.CharField(max_length=200, blank=True, default="")
    journal_entry = models.OneToOneField(
        JournalEntry, on_delete=models.PROTECT, related_name="payment"
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL, related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    # Set when the payment is reversed; the row stays for the audit trail
    voided_at = models.DateTimeField(null=True, blank=True)
    voided_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL, related_name="+",
    )
    void_reason = models.TextField(blank=True, default="")

    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["company", "invoice"], name="invpay_company_invoice_idx")
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="invoice_payment_positive",
            )
        ]

    def __str__(self):
        return f"Payment {self.amount} on {self.invoice_id} ({self.date})"

    @property
    def is_voided(self):
        return self.voided_at is not None

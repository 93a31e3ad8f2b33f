"""
Fixed-width media file for the tax authority's offline filing tool.

Each invoice becomes one 81-character record followed by a newline:

    cols  1-2   format code          (35 output / 25 input e-invoice)
    cols  3-11  tax registration no. (tax id 8 + branch 1)
    cols 12-18  sequence             (zero-padded, from 1)
    cols 19-23  filing year-month    (ROC year 3 + end month of bi-month 2)
    cols 24-31  buyer tax id
    cols 32-39  seller tax id
    cols 40-49  invoice number       (separators removed, left-aligned)
    cols 50-61  untaxed amount       (zero-padded)
    col  62     tax type             (1 taxable, 2 zero-rated, 3 exempt)
    cols 63-72  tax amount           (zero-padded)
    col  73     deduction code       (input only)
    col  74     summary mark         (blank)
    col  75     customs mark         (1 for any zero-rated record)
    cols 76-81  reserved             (blank)

A value that does not fit its column is rejected, never truncated: one
shifted column invalidates the whole file.
"""
import logging
import re
from dataclasses import dataclass, field

from django.core.exceptions import ValidationError

from ..models import InvoiceType, TaxCategory
from .reports import ROC_EPOCH

logger = logging.getLogger(__name__)

RECORD_LENGTH = 81

FORMAT_CODES = {
    InvoiceType.INPUT: {
        "TRIPLICATE": "21",
        "DUPLICATE_CASH_REGISTER": "22",
        "RETURN_TRIPLICATE": "23",
        "TRIPLICATE_CASH_REGISTER": "24",
        "E_INVOICE": "25",
        "SUMMARY": "26",
        "RETURN_SUMMARY": "27",
        "CUSTOMS": "28",
        "CUSTOMS_RETURN": "29",
    },
    InvoiceType.OUTPUT: {
        "TRIPLICATE": "31",
        "DUPLICATE_CASH_REGISTER": "32",
        "RETURN_TRIPLICATE": "33",
        "RETURN_DUPLICATE": "34",
        "E_INVOICE": "35",
        "EXEMPT_SUMMARY": "36",
        "SPECIAL_TAX": "37",
        "E_INVOICE_RETURN": "38",
    },
}
VALID_FORMAT_CODES = frozenset(
    code for codes in FORMAT_CODES.values() for code in codes.values())

TAX_TYPE_CODES = {
    TaxCategory.TAXABLE: "1",
    TaxCategory.ZERO_RATED: "2",
    TaxCategory.EXEMPT: "3",
}

DEDUCTIBLE = "1"
NON_DEDUCTIBLE = "2"
DEDUCTIBLE_FIXED_ASSET = "3"
NON_DEDUCTIBLE_FIXED_ASSET = "4"


# ----------------------------
# Field helpers
# ----------------------------
def to_roc_year(year):
    return year - ROC_EPOCH


def format_year_month(year, month):
    """2024, 12 → "11312"."""
    return f"{pad_number(to_roc_year(year), 3)}{pad_number(month, 2)}"


def pad_number(value, width):
    """Right-aligned, zero-padded; negative or over-wide values are rejected."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"Expected an integer amount, got {value!r}.")
    if value < 0:
        raise ValidationError(f"Negative value {value} cannot be encoded.")
    text = str(value)
    if len(text) > width:
        raise ValidationError(
            f"Value {value} does not fit in {width} columns.")
    return text.zfill(width)


def pad_text(value, width):
    """Left-aligned, space-padded."""
    text = value or ""
    if len(text) > width:
        raise ValidationError(
            f"Text {text!r} does not fit in {width} columns.")
    return text.ljust(width)


def format_tax_id(value):
    """8 digits, zero-padded on the left; blank when there is none."""
    value = (value or "").strip()
    if not value:
        return " " * 8
    if not value.isdigit():
        raise ValidationError(f"Tax id {value!r} must be numeric.")
    return pad_number(int(value), 8)


def clean_invoice_number(number):
    """AB-12345678 → AB12345678."""
    return re.sub(r"[-\s]", "", number or "")


def deduction_code(is_deductible, is_fixed_asset=False):
    if is_deductible:
        return DEDUCTIBLE_FIXED_ASSET if is_fixed_asset else DEDUCTIBLE
    return NON_DEDUCTIBLE_FIXED_ASSET if is_fixed_asset else NON_DEDUCTIBLE


# ----------------------------
# Records
# ----------------------------
@dataclass(frozen=True)
class MediaInvoice:
    invoice_type: str
    number: str
    untaxed_amount: int
    tax_amount: int
    tax_category: str
    counterparty_tax_id: str = ""
    is_deductible: bool = True
    is_fixed_asset: bool = False

    @classmethod
    def from_invoice(cls, invoice):
        if invoice.tax_code is not None:
            category = invoice.tax_code.category
        elif invoice.invoice_type == InvoiceType.INPUT:
            # Purchases without a code are treated as ordinary taxable receipts
            category = TaxCategory.TAXABLE
        else:
            raise ValidationError(
                f"Invoice {invoice.number} has no tax classification.")
        return cls(
            invoice_type=invoice.invoice_type,
            number=invoice.number,
            untaxed_amount=invoice.untaxed_amount,
            tax_amount=invoice.tax_amount,
            tax_category=category,
            counterparty_tax_id=invoice.counterparty_tax_id,
            is_deductible=invoice.is_deductible,
        )


@dataclass(frozen=True)
class MediaFileOptions:
    tax_id: str
    year: int
    bi_month: int
    branch_code: str = "0"

    @property
    def tax_registration_number(self):
        return f"{self.tax_id}{self.branch_code}"

    @property
    def end_month(self):
        return self.bi_month * 2


@dataclass
class MediaFileResult:
    content: str
    record_count: int = 0
    output_count: int = 0
    input_count: int = 0
    output_amount: int = 0
    input_amount: int = 0
    output_tax: int = 0
    input_tax: int = 0


def _check_options(options):
    if not re.fullmatch(r"\d{8}", options.tax_id or ""):
        raise ValidationError(
            f"Tax id {options.tax_id!r} must be exactly 8 digits.")
    if not re.fullmatch(r"\d", options.branch_code or ""):
        raise ValidationError(
            f"Branch code {options.branch_code!r} must be a single digit.")
    if not 1 <= options.bi_month <= 6:
        raise ValidationError(f"bi_month must be 1..6, got {options.bi_month}.")


def generate_media_line(invoice, sequence, options):
    """Encode one invoice as an 81-character record (no newline)."""
    is_input = invoice.invoice_type == InvoiceType.INPUT
    own_tax_id = format_tax_id(options.tax_id)
    counterparty = format_tax_id(invoice.counterparty_tax_id)

    if invoice.tax_category not in TAX_TYPE_CODES:
        raise ValidationError(
            f"Unknown tax category {invoice.tax_category!r} on {invoice.number}.")
    zero_rated = invoice.tax_category == TaxCategory.ZERO_RATED

    fields = [
        FORMAT_CODES[invoice.invoice_type]["E_INVOICE"],              # 1
        pad_text(options.tax_registration_number, 9),                 # 2
        pad_number(sequence, 7),                                      # 3
        format_year_month(options.year, options.end_month),           # 4
        own_tax_id if is_input else counterparty,                     # 5 buyer
        counterparty if is_input else own_tax_id,                     # 6 seller
        pad_text(clean_invoice_number(invoice.number), 10),           # 7
        pad_number(invoice.untaxed_amount, 12),                       # 8
        TAX_TYPE_CODES[invoice.tax_category],                         # 9
        pad_number(invoice.tax_amount, 10),                           # 10
        (deduction_code(invoice.is_deductible, invoice.is_fixed_asset)
         if is_input else " "),                                       # 11
        " ",                                                          # 12
        "1" if zero_rated else " ",                                   # 13
        " " * 6,                                                      # 14
    ]
    record = "".join(fields)
    if len(record) != RECORD_LENGTH:
        raise ValidationError(
            f"Record for {invoice.number} is {len(record)} characters, "
            f"expected {RECORD_LENGTH}.")
    return record


def generate_media_file(invoices, options):
    """
    One record per invoice in the given order, each newline-terminated.
    Summary figures are returned alongside the content, never inside it.
    """
    _check_options(options)
    result = MediaFileResult(content="")
    records = []
    for sequence, invoice in enumerate(invoices, start=1):
        records.append(generate_media_line(invoice, sequence, options) + "\n")
        if invoice.invoice_type == InvoiceType.OUTPUT:
            result.output_count += 1
            result.output_amount += invoice.untaxed_amount
            result.output_tax += invoice.tax_amount
        else:
            result.input_count += 1
            result.input_amount += invoice.untaxed_amount
            result.input_tax += invoice.tax_amount
    result.content = "".join(records)
    result.record_count = len(records)
    logger.info(
        "Generated media file for %s %s/%s: %d records",
        options.tax_id, options.year, options.bi_month, result.record_count,
    )
    return result


def media_invoices_from_summary(summary):
    """Sales (taxable, zero-rated, exempt) then purchases (deductible, non-deductible)."""
    return [
        MediaInvoice.from_invoice(invoice)
        for bucket in summary.sales_buckets + summary.purchase_buckets
        for invoice in bucket.invoices
    ]


def media_filename(tax_id):
    return f"{tax_id}.TXT"


@dataclass
class MediaFileValidation:
    record_count: int
    errors: list = field(default_factory=list)

    @property
    def valid(self):
        return not self.errors


def validate_media_file(content):
    """Check record length, format codes and sequence numbers."""
    if not content:
        return MediaFileValidation(record_count=0)
    errors = []
    if not content.endswith("\n"):
        errors.append("File does not end with a newline.")
    records = content.split("\n")
    if records[-1] == "":
        records.pop()
    for index, record in enumerate(records, start=1):
        if len(record) != RECORD_LENGTH:
            errors.append(
                f"Record {index} is {len(record)} characters, expected {RECORD_LENGTH}.")
            continue
        if record[0:2] not in VALID_FORMAT_CODES:
            errors.append(f"Record {index} has invalid format code {record[0:2]!r}.")
        expected = str(index).zfill(7)
        if record[11:18] != expected:
            errors.append(
                f"Record {index} has sequence {record[11:18]!r}, expected {expected!r}.")
    return MediaFileValidation(record_count=len(records), errors=errors)

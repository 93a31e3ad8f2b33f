import datetime

import pytest
from django.core.exceptions import ValidationError
from django.test import TestCase

from ledger_core.models import InvoiceType, TaxCategory
from ledger_core.services import (MediaFileOptions, MediaInvoice,
                                  generate_media_file, get_tax_summary,
                                  media_filename, media_invoices_from_summary,
                                  validate_media_file)
from ledger_core.services.media_file import (RECORD_LENGTH,
                                             format_year_month,
                                             generate_media_line, pad_number,
                                             pad_text)

from .utils import input_fields, make_store, output_fields, posted_invoice

OPTIONS = MediaFileOptions(tax_id="12345678", year=2024, bi_month=6)


def _sale(**overrides):
    fields = dict(
        invoice_type=InvoiceType.OUTPUT,
        number="AB-12345678",
        untaxed_amount=10000,
        tax_amount=500,
        tax_category=TaxCategory.TAXABLE,
        counterparty_tax_id="87654321",
    )
    fields.update(overrides)
    return MediaInvoice(**fields)


def _purchase(**overrides):
    fields = dict(
        invoice_type=InvoiceType.INPUT,
        number="CD-00000001",
        untaxed_amount=2000,
        tax_amount=100,
        tax_category=TaxCategory.TAXABLE,
        counterparty_tax_id="22334455",
    )
    fields.update(overrides)
    return MediaInvoice(**fields)


# ----------------------------
# Field helpers
# ----------------------------
def test_year_month_uses_roc_year():
    assert format_year_month(2024, 12) == "11312"
    assert format_year_month(2025, 2) == "11402"


def test_pad_number_rejects_overflow_and_negatives():
    assert pad_number(500, 10) == "0000000500"
    with pytest.raises(ValidationError):
        pad_number(10 ** 12, 12)
    with pytest.raises(ValidationError):
        pad_number(-1, 12)
    with pytest.raises(ValidationError):
        pad_number("12", 12)


def test_pad_text_rejects_truncation():
    assert pad_text("AB12", 6) == "AB12  "
    with pytest.raises(ValidationError):
        pad_text("AB123456789", 10)


# ----------------------------
# Record layout, column by column
# ----------------------------
def test_output_record_columns():
    line = generate_media_line(_sale(), 1, OPTIONS)

    assert len(line) == RECORD_LENGTH
    assert line[0:2] == "35"
    assert line[2:11] == "123456780"
    assert line[11:18] == "0000001"
    assert line[18:23] == "11312"
    assert line[23:31] == "87654321"  # buyer is the customer
    assert line[31:39] == "12345678"  # seller is us
    assert line[39:49] == "AB12345678"
    assert line[49:61] == "000000010000"
    assert line[61] == "1"
    assert line[62:72] == "0000000500"
    assert line[72] == " "  # no deduction code on sales
    assert line[73] == " "
    assert line[74] == " "
    assert line[75:81] == " " * 6


def test_input_record_columns():
    line = generate_media_line(_purchase(), 12, OPTIONS)

    assert line[0:2] == "25"
    assert line[11:18] == "0000012"
    assert line[23:31] == "12345678"  # buyer is us
    assert line[31:39] == "22334455"  # seller is the supplier
    assert line[39:49] == "CD00000001"
    assert line[49:61] == "000000002000"
    assert line[62:72] == "0000000100"
    assert line[72] == "1"


def test_non_deductible_and_fixed_asset_codes():
    assert generate_media_line(_purchase(is_deductible=False), 1, OPTIONS)[72] == "2"
    assert generate_media_line(_purchase(is_fixed_asset=True), 1, OPTIONS)[72] == "3"
    assert generate_media_line(
        _purchase(is_deductible=False, is_fixed_asset=True), 1, OPTIONS)[72] == "4"


def test_zero_rated_and_exempt_sales():
    zero = generate_media_line(
        _sale(tax_category=TaxCategory.ZERO_RATED, tax_amount=0), 1, OPTIONS)
    assert zero[61] == "2"
    assert zero[62:72] == "0" * 10
    assert zero[74] == "1"

    exempt = generate_media_line(
        _sale(tax_category=TaxCategory.EXEMPT, tax_amount=0), 1, OPTIONS)
    assert exempt[61] == "3"
    assert exempt[74] == " "


def test_zero_rated_purchase_carries_customs_mark():
    line = generate_media_line(
        _purchase(tax_category=TaxCategory.ZERO_RATED, tax_amount=0), 1, OPTIONS)
    assert line[61] == "2"
    assert line[74] == "1"
    assert generate_media_line(_purchase(), 1, OPTIONS)[74] == " "


def test_counterparty_tax_id_blank_or_short():
    blank = generate_media_line(_sale(counterparty_tax_id=""), 1, OPTIONS)
    assert blank[23:31] == " " * 8
    short = generate_media_line(_sale(counterparty_tax_id="1234"), 1, OPTIONS)
    assert short[23:31] == "00001234"
    assert len(blank) == len(short) == RECORD_LENGTH


def test_branch_code_in_registration_number():
    options = MediaFileOptions(tax_id="12345678", year=2024, bi_month=6, branch_code="2")
    assert generate_media_line(_sale(), 1, options)[2:11] == "123456782"


def test_amount_overflow_rejected():
    with pytest.raises(ValidationError):
        generate_media_line(_sale(untaxed_amount=10 ** 12), 1, OPTIONS)
    with pytest.raises(ValidationError):
        generate_media_line(_sale(tax_amount=10 ** 10), 1, OPTIONS)


def test_negative_amount_rejected():
    with pytest.raises(ValidationError):
        generate_media_line(_sale(untaxed_amount=-1), 1, OPTIONS)


# ----------------------------
# Whole file
# ----------------------------
def test_media_file_counts_and_totals():
    invoices = [
        _sale(),
        _sale(number="AB-00000002", untaxed_amount=20000, tax_amount=1000),
        _sale(number="AB-00000003", tax_category=TaxCategory.ZERO_RATED, tax_amount=0),
        _purchase(),
        _purchase(number="CD-00000002", untaxed_amount=1000, tax_amount=50),
    ]
    result = generate_media_file(invoices, OPTIONS)

    assert result.record_count == 5
    assert (result.output_count, result.input_count) == (3, 2)
    assert result.output_amount == 40000
    assert result.output_tax == 1500
    assert (result.input_amount, result.input_tax) == (3000, 150)

    assert len(result.content) == 5 * (RECORD_LENGTH + 1)
    lines = result.content.splitlines()
    assert [line[11:18] for line in lines] == [f"000000{n}" for n in range(1, 6)]
    assert validate_media_file(result.content).valid


def test_empty_media_file():
    result = generate_media_file([], OPTIONS)
    assert result.content == ""
    assert result.record_count == 0
    assert validate_media_file("").valid


@pytest.mark.parametrize("options", [
    MediaFileOptions(tax_id="1234567", year=2024, bi_month=6),
    MediaFileOptions(tax_id="1234567A", year=2024, bi_month=6),
    MediaFileOptions(tax_id="12345678", year=2024, bi_month=7),
    MediaFileOptions(tax_id="12345678", year=2024, bi_month=6, branch_code="10"),
])
def test_invalid_options_rejected(options):
    with pytest.raises(ValidationError):
        generate_media_file([_sale()], options)


def test_media_filename():
    assert media_filename("12345678") == "12345678.TXT"


def test_validate_media_file_reports_errors():
    good = generate_media_file([_sale(), _purchase()], OPTIONS).content
    lines = good.splitlines()

    short = validate_media_file(lines[0][:80] + "\n")
    assert not short.valid
    assert "80 characters" in short.errors[0]

    bad_code = validate_media_file("99" + lines[0][2:] + "\n")
    assert any("format code" in error for error in bad_code.errors)

    swapped = validate_media_file(lines[1] + "\n" + lines[0] + "\n")
    assert len(swapped.errors) == 2

    unterminated = validate_media_file(good.rstrip("\n"))
    assert unterminated.record_count == 2
    assert unterminated.errors == ["File does not end with a newline."]


class MediaFileFromLedgerTests(TestCase):
    def setUp(self):
        self.store = make_store()
        codes = {code.code: code for code in self.store.tax_codes()}
        posted_invoice(self.store, **input_fields())
        posted_invoice(self.store, **output_fields(
            self.store, number="AB-00000002", tax_code=codes["E0"],
            untaxed_amount=4000, tax_amount=0, total_amount=4000))
        posted_invoice(self.store, **output_fields(self.store))
        posted_invoice(self.store, **input_fields(
            number="CD-00000002", is_deductible=False,
            untaxed_amount=1000, tax_amount=50, total_amount=1050))

    def test_records_follow_bucket_order(self):
        summary = get_tax_summary(self.store, 2025, 2)
        invoices = media_invoices_from_summary(summary)

        self.assertEqual(
            [inv.number for inv in invoices],
            ["AB-12345678", "AB-00000002", "CD-00000001", "CD-00000002"],
        )
        self.assertEqual(invoices[2].tax_category, TaxCategory.TAXABLE)

        company = self.store.company
        options = MediaFileOptions(tax_id=company.tax_id, year=2025, bi_month=2,
                                   branch_code=company.branch_code)
        result = generate_media_file(invoices, options)
        lines = result.content.splitlines()

        self.assertEqual(result.record_count, 4)
        self.assertEqual(lines[0][18:23], "11404")
        self.assertEqual(lines[1][61], "3")
        self.assertEqual(lines[3][72], "2")
        self.assertTrue(validate_media_file(result.content).valid)
        self.assertEqual(result.input_tax, 150)

    def test_whole_period_is_included(self):
        posted_invoice(self.store, **input_fields(
            number="CD-00000003", date=datetime.date(2025, 4, 30)))
        summary = get_tax_summary(self.store, 2025, 2)
        self.assertEqual(len(media_invoices_from_summary(summary)), 5)

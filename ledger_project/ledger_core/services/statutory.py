"""
Form 401 / 403 filing structures and their XML rendering.

Both are pure transforms of a TaxPeriodSummary: the same summary always
produces the same data and byte-identical XML, so a resubmission can be
compared against what was filed before.
"""
from dataclasses import dataclass
from xml.etree import ElementTree

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'


@dataclass(frozen=True)
class FilingCompany:
    tax_id: str
    name: str
    branch_code: str = "0"

    @classmethod
    def from_company(cls, company):
        return cls(tax_id=company.tax_id, name=company.name,
                   branch_code=company.branch_code)

    @property
    def tax_registration_number(self):
        return f"{self.tax_id}{self.branch_code}"


@dataclass(frozen=True)
class FormBucketTotals:
    count: int
    untaxed_amount: int
    tax_amount: int

    @classmethod
    def of(cls, bucket):
        return cls(count=bucket.count, untaxed_amount=bucket.untaxed_total,
                   tax_amount=bucket.tax_total)


@dataclass(frozen=True)
class Form401Data:
    """Regular bi-monthly business tax return."""
    year: int
    bi_month: int
    company: FilingCompany
    taxable_sales: FormBucketTotals
    zero_rated_sales: FormBucketTotals
    exempt_sales: FormBucketTotals
    deductible_purchases: FormBucketTotals
    non_deductible_purchases: FormBucketTotals
    output_tax: int
    input_tax: int
    net_tax: int  # output - input; negative is a refund

    @property
    def is_refund(self):
        return self.net_tax < 0

    @property
    def total_sales(self):
        return (self.taxable_sales.untaxed_amount
                + self.zero_rated_sales.untaxed_amount
                + self.exempt_sales.untaxed_amount)

    @property
    def total_sales_count(self):
        return (self.taxable_sales.count + self.zero_rated_sales.count
                + self.exempt_sales.count)

    @property
    def total_purchases_count(self):
        return self.deductible_purchases.count + self.non_deductible_purchases.count

    @property
    def total_purchases_amount(self):
        return (self.deductible_purchases.untaxed_amount
                + self.non_deductible_purchases.untaxed_amount)


@dataclass(frozen=True)
class ExportLine:
    number: str
    date: str  # ISO date
    buyer_tax_id: str
    buyer_name: str
    amount: int


@dataclass(frozen=True)
class Form403Data:
    """Zero-rated (export) variant of the return."""
    year: int
    bi_month: int
    company: FilingCompany
    exports: tuple
    export_count: int
    export_amount: int
    output_tax: int
    input_tax: int
    net_tax: int

    @property
    def is_refund(self):
        return self.net_tax < 0


def _taxes(summary):
    output_tax = summary.taxable.tax_total
    input_tax = summary.deductible.tax_total
    return output_tax, input_tax, output_tax - input_tax


def generate_form401(summary, company):
    output_tax, input_tax, net_tax = _taxes(summary)
    return Form401Data(
        year=summary.year,
        bi_month=summary.bi_month,
        company=company,
        taxable_sales=FormBucketTotals.of(summary.taxable),
        zero_rated_sales=FormBucketTotals.of(summary.zero_rated),
        exempt_sales=FormBucketTotals.of(summary.exempt),
        deductible_purchases=FormBucketTotals.of(summary.deductible),
        non_deductible_purchases=FormBucketTotals.of(summary.non_deductible),
        output_tax=output_tax,
        input_tax=input_tax,
        net_tax=net_tax,
    )


def generate_form403(summary, company):
    output_tax, input_tax, net_tax = _taxes(summary)
    exports = tuple(
        ExportLine(
            number=inv.number,
            date=inv.date.isoformat(),
            buyer_tax_id=inv.counterparty_tax_id,
            buyer_name=inv.counterparty_name,
            amount=inv.untaxed_amount,
        )
        for inv in summary.zero_rated.invoices
    )
    return Form403Data(
        year=summary.year,
        bi_month=summary.bi_month,
        company=company,
        exports=exports,
        export_count=len(exports),
        export_amount=sum(line.amount for line in exports),
        output_tax=output_tax,
        input_tax=input_tax,
        net_tax=net_tax,
    )


# ----------------------------
# XML
# ----------------------------
def _add(parent, tag, value):
    element = ElementTree.SubElement(parent, tag)
    element.text = str(value)
    return element


def _header(root, data):
    header = ElementTree.SubElement(root, "Header")
    _add(header, "Year", data.year)
    _add(header, "Period", f"{data.bi_month:02d}")
    _add(header, "TaxId", data.company.tax_id)
    _add(header, "CompanyName", data.company.name)


def _bucket(parent, tag, totals, with_tax=True):
    element = ElementTree.SubElement(parent, tag)
    _add(element, "Count", totals.count)
    if with_tax:
        _add(element, "UntaxedAmount", totals.untaxed_amount)
        _add(element, "TaxAmount", totals.tax_amount)
    else:
        _add(element, "Amount", totals.untaxed_amount)


def _tax_calculation(root, data):
    calc = ElementTree.SubElement(root, "TaxCalculation")
    _add(calc, "OutputTax", data.output_tax)
    _add(calc, "InputTax", data.input_tax)
    _add(calc, "NetTax", data.net_tax)
    _add(calc, "IsRefund", "Y" if data.is_refund else "N")


def _serialize(root):
    ElementTree.indent(root, space="  ")
    body = ElementTree.tostring(root, encoding="unicode")
    return XML_DECLARATION + body + "\n"


def generate_form401_xml(data):
    root = ElementTree.Element("VAT401")
    _header(root, data)

    sales = ElementTree.SubElement(root, "Sales")
    _bucket(sales, "Taxable", data.taxable_sales)
    _bucket(sales, "ZeroRated", data.zero_rated_sales, with_tax=False)
    _bucket(sales, "Exempt", data.exempt_sales, with_tax=False)

    purchases = ElementTree.SubElement(root, "Purchases")
    _bucket(purchases, "Deductible", data.deductible_purchases)
    _bucket(purchases, "NonDeductible", data.non_deductible_purchases)

    _tax_calculation(root, data)
    return _serialize(root)


def generate_form403_xml(data):
    root = ElementTree.Element("VAT403")
    _header(root, data)

    zero_rated = ElementTree.SubElement(root, "ZeroRatedSales")
    exports = ElementTree.SubElement(zero_rated, "Exports")
    _add(exports, "Count", data.export_count)
    _add(exports, "TotalAmount", data.export_amount)

    details = ElementTree.SubElement(root, "InvoiceDetails")
    for line in data.exports:
        invoice = ElementTree.SubElement(details, "Invoice")
        _add(invoice, "Number", line.number)
        _add(invoice, "Date", line.date)
        _add(invoice, "BuyerTaxId", line.buyer_tax_id)
        _add(invoice, "BuyerName", line.buyer_name)
        _add(invoice, "Amount", line.amount)

    _tax_calculation(root, data)
    return _serialize(root)

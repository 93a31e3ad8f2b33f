"""
Read-only projections over the ledger.

Nothing in this module writes: every function scans posted data fresh,
so calls are safe to repeat or run concurrently.
"""
import calendar
import datetime
import logging
from dataclasses import dataclass, field

from django.core.exceptions import ValidationError

from ..models import AccountType, InvoiceStatus, InvoiceType, TaxCategory
from .journal import account_totals

logger = logging.getLogger(__name__)

ROC_EPOCH = 1911  # ROC year = Gregorian year - 1911


# ----------------------------
# Tax periods
# ----------------------------
@dataclass(frozen=True)
class TaxPeriod:
    year: int
    bi_month: int
    start_date: datetime.date
    end_date: datetime.date

    @property
    def start_month(self):
        return self.start_date.month

    @property
    def end_month(self):
        return self.end_date.month

    @property
    def roc_year(self):
        return self.year - ROC_EPOCH


def calculate_tax_period(year, bi_month):
    """Bi-month 1 = Jan-Feb ... 6 = Nov-Dec."""
    if isinstance(bi_month, bool) or not isinstance(bi_month, int) or not 1 <= bi_month <= 6:
        raise ValidationError(f"bi_month must be 1..6, got {bi_month!r}.")
    if isinstance(year, bool) or not isinstance(year, int) or year <= ROC_EPOCH:
        raise ValidationError(f"year must be after {ROC_EPOCH}, got {year!r}.")
    start_month = bi_month * 2 - 1
    end_month = start_month + 1
    last_day = calendar.monthrange(year, end_month)[1]
    return TaxPeriod(
        year=year,
        bi_month=bi_month,
        start_date=datetime.date(year, start_month, 1),
        end_date=datetime.date(year, end_month, last_day),
    )


# ----------------------------
# Tax summary
# ----------------------------
@dataclass
class TaxBucket:
    invoices: list = field(default_factory=list)
    count: int = 0
    untaxed_total: int = 0
    tax_total: int = 0
    total_amount: int = 0

    @classmethod
    def of_invoices(cls, invoices):
        invoices = list(invoices)
        return cls(
            invoices=invoices,
            count=len(invoices),
            untaxed_total=sum(inv.untaxed_amount for inv in invoices),
            tax_total=sum(inv.tax_amount for inv in invoices),
            total_amount=sum(inv.total_amount for inv in invoices),
        )


def classify_output_invoice(invoice):
    """
    rate > 0 → taxable; rate 0 with the export flag → zero-rated;
    anything else → exempt.
    """
    tax_code = invoice.tax_code
    if tax_code is None:
        # Output invoices cannot be created without a tax code
        raise ValidationError(
            f"Invoice {invoice.number} has no tax classification.")
    return tax_code.category


@dataclass
class TaxPeriodSummary:
    period: TaxPeriod
    taxable: TaxBucket
    zero_rated: TaxBucket
    exempt: TaxBucket
    deductible: TaxBucket
    non_deductible: TaxBucket

    @property
    def year(self):
        return self.period.year

    @property
    def bi_month(self):
        return self.period.bi_month

    @property
    def start_date(self):
        return self.period.start_date

    @property
    def end_date(self):
        return self.period.end_date

    @property
    def sales_buckets(self):
        return [self.taxable, self.zero_rated, self.exempt]

    @property
    def purchase_buckets(self):
        return [self.deductible, self.non_deductible]

    @property
    def output_tax(self):
        return self.taxable.tax_total

    @property
    def input_tax(self):
        return self.deductible.tax_total


def get_invoice_detail_list(store, invoice_type, start_date, end_date):
    """POSTED invoices of one type in [start_date, end_date], by date then number."""
    if invoice_type not in InvoiceType.values:
        raise ValidationError(f"Unknown invoice type {invoice_type!r}.")
    return list(
        store.invoices()
        .filter(
            invoice_type=invoice_type,
            status=InvoiceStatus.POSTED,
            date__gte=start_date,
            date__lte=end_date,
        )
        .select_related("tax_code")
        .order_by("date", "number")
    )


def get_tax_summary(store, year, bi_month):
    period = calculate_tax_period(year, bi_month)

    sales = {category: [] for category in TaxCategory}
    for invoice in get_invoice_detail_list(
        store, InvoiceType.OUTPUT, period.start_date, period.end_date
    ):
        sales[classify_output_invoice(invoice)].append(invoice)

    purchases = get_invoice_detail_list(
        store, InvoiceType.INPUT, period.start_date, period.end_date)

    summary = TaxPeriodSummary(
        period=period,
        taxable=TaxBucket.of_invoices(sales[TaxCategory.TAXABLE]),
        zero_rated=TaxBucket.of_invoices(sales[TaxCategory.ZERO_RATED]),
        exempt=TaxBucket.of_invoices(sales[TaxCategory.EXEMPT]),
        deductible=TaxBucket.of_invoices(
            inv for inv in purchases if inv.is_deductible),
        non_deductible=TaxBucket.of_invoices(
            inv for inv in purchases if not inv.is_deductible),
    )
    logger.debug(
        "Tax summary %s/%s for company %s: output tax %s, input tax %s",
        year, bi_month, store.company.pk, summary.output_tax, summary.input_tax,
    )
    return summary


# ----------------------------
# Financial statements
# ----------------------------
@dataclass
class StatementLine:
    account: object
    amount: int  # signed by the account's normal balance


def _statement_lines(store, totals, ac_type):
    """Accounts of one type with their balance signed by normal side."""
    debit_normal = ac_type in (AccountType.ASSET, AccountType.EXPENSE)
    accounts = store.accounts().filter(pk__in=totals, ac_type=ac_type).order_by("code")
    lines = []
    for account in accounts:
        debit, credit = totals[account.pk]
        amount = debit - credit if debit_normal else credit - debit
        lines.append(StatementLine(account=account, amount=amount))
    return lines


@dataclass
class IncomeStatement:
    start_date: datetime.date
    end_date: datetime.date
    revenue: list
    expenses: list

    @property
    def total_revenue(self):
        return sum(line.amount for line in self.revenue)

    @property
    def total_expenses(self):
        return sum(line.amount for line in self.expenses)

    @property
    def net_income(self):
        return self.total_revenue - self.total_expenses


def get_income_statement(store, start_date, end_date):
    if start_date > end_date:
        raise ValidationError("start_date must not be after end_date.")
    totals = account_totals(store, start_date=start_date, end_date=end_date)
    return IncomeStatement(
        start_date=start_date,
        end_date=end_date,
        revenue=_statement_lines(store, totals, AccountType.REVENUE),
        expenses=_statement_lines(store, totals, AccountType.EXPENSE),
    )


@dataclass
class BalanceSheet:
    as_of_date: datetime.date
    assets: list
    liabilities: list
    equity: list
    # Revenue - expense up to the date, not yet closed to retained earnings
    current_earnings: int

    @property
    def total_assets(self):
        return sum(line.amount for line in self.assets)

    @property
    def total_liabilities(self):
        return sum(line.amount for line in self.liabilities)

    @property
    def total_equity(self):
        return sum(line.amount for line in self.equity) + self.current_earnings

    @property
    def is_balanced(self):
        # Assets = Liabilities + Equity
        return self.total_assets == self.total_liabilities + self.total_equity


def get_balance_sheet(store, as_of_date):
    totals = account_totals(store, end_date=as_of_date)
    revenue = sum(line.amount for line in _statement_lines(store, totals, AccountType.REVENUE))
    expenses = sum(line.amount for line in _statement_lines(store, totals, AccountType.EXPENSE))
    return BalanceSheet(
        as_of_date=as_of_date,
        assets=_statement_lines(store, totals, AccountType.ASSET),
        liabilities=_statement_lines(store, totals, AccountType.LIABILITY),
        equity=_statement_lines(store, totals, AccountType.EQUITY),
        current_earnings=revenue - expenses,
    )

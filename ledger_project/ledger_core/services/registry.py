import logging
from decimal import Decimal

from ..exceptions import NotFoundError
from ..models import (Account, AccountType, PaymentMethod, TaxCode,
                      normal_balance_for)

logger = logging.getLogger(__name__)

# Default chart of accounts created for a new company
# (code, name, type)
DEFAULT_CHART = [
    # Assets
    ("1101", "Cash", AccountType.ASSET),
    ("1102", "Petty Cash", AccountType.ASSET),
    ("1103", "Bank Deposits", AccountType.ASSET),
    ("1131", "Accounts Receivable", AccountType.ASSET),
    ("1141", "Notes Receivable", AccountType.ASSET),
    ("1181", "Other Receivables", AccountType.ASSET),
    ("1301", "Prepayments", AccountType.ASSET),
    ("1471", "Input VAT", AccountType.ASSET),
    # Liabilities
    ("2101", "Accounts Payable", AccountType.LIABILITY),
    ("2111", "Notes Payable", AccountType.LIABILITY),
    ("2171", "Accrued Expenses", AccountType.LIABILITY),
    ("2181", "Other Payables", AccountType.LIABILITY),
    ("2261", "Output VAT", AccountType.LIABILITY),
    # Equity
    ("3101", "Share Capital", AccountType.EQUITY),
    ("3351", "Retained Earnings", AccountType.EQUITY),
    ("3353", "Current Period Profit and Loss", AccountType.EQUITY),
    # Revenue
    ("4101", "Sales Revenue", AccountType.REVENUE),
    ("4111", "Service Revenue", AccountType.REVENUE),
    ("4181", "Other Operating Revenue", AccountType.REVENUE),
    ("4201", "Interest Income", AccountType.REVENUE),
    # Expenses
    ("5101", "Cost of Goods Sold", AccountType.EXPENSE),
    ("5111", "Cost of Services", AccountType.EXPENSE),
    ("6101", "Salaries", AccountType.EXPENSE),
    ("6111", "Rent", AccountType.EXPENSE),
    ("6121", "Utilities", AccountType.EXPENSE),
    ("6131", "Office Supplies", AccountType.EXPENSE),
    ("6141", "Travel", AccountType.EXPENSE),
    ("6151", "Depreciation", AccountType.EXPENSE),
    ("6201", "Other Expenses", AccountType.EXPENSE),
]

# Accounts the posting rules need, by role
ROLE_CODES = {
    "cash": "1101",
    "bank": "1103",
    "receivable": "1131",
    "input_tax": "1471",
    "payable": "2101",
    "output_tax": "2261",
    "revenue": "4101",
    "expense": "6201",
}

# (code, name, rate %, is_export)
DEFAULT_TAX_CODES = [
    ("T5", "Taxable 5%", Decimal("5.00"), False),
    ("Z0", "Zero-rated (export)", Decimal("0.00"), True),
    ("E0", "Tax exempt", Decimal("0.00"), False),
]


def seed_chart_of_accounts(store):
    """
    Create the default chart and tax codes for the store's company.
    Idempotent: existing codes are left untouched.
    Returns the number of rows created.
    """
    created = 0
    with store.atomic():
        for code, name, ac_type in DEFAULT_CHART:
            _, was_created = Account.objects.get_or_create(
                company=store.company,
                code=code,
                defaults={
                    "name": name,
                    "ac_type": ac_type,
                    "normal_balance": normal_balance_for(ac_type),
                },
            )
            created += was_created
        for code, name, rate, is_export in DEFAULT_TAX_CODES:
            _, was_created = TaxCode.objects.get_or_create(
                company=store.company,
                code=code,
                defaults={"name": name, "rate": rate, "is_export": is_export},
            )
            created += was_created
    logger.info(
        "Seeded chart of accounts for company %s (%d new rows)",
        store.company.pk, created,
    )
    return created


class AccountRegistry:
    """Resolves chart-of-accounts entries for one company."""

    def __init__(self, store):
        self.store = store
        self._cache = {}

    def by_code(self, code):
        if code not in self._cache:
            account = self.store.accounts().filter(code=code).first()
            if account is None:
                raise NotFoundError(
                    f"Account {code} is missing from the chart of accounts.",
                    code="not_found",
                )
            self._cache[code] = account
        return self._cache[code]

    def by_role(self, role):
        try:
            code = ROLE_CODES[role]
        except KeyError:
            raise NotFoundError(f"Unknown account role {role!r}.", code="not_found")
        return self.by_code(code)


def payment_account_role(method):
    # Cash settles through the till, everything else through the bank
    if method == PaymentMethod.CASH:
        return "cash"
    return "bank"

import logging

from celery import shared_task
from django.utils.dateparse import parse_date

logger = logging.getLogger(__name__)


@shared_task  # register this function as a Celery task
def check_trial_balance(company_id, as_of=None):
    """
    Recompute the trial balance for a company and report whether it nets
    to zero. An imbalance means ledger data was written around the
    posting rules, so it is logged as an error.
    """
    # import lazily to avoid circular imports at module import time
    from .models import Company
    from .services import get_trial_balance
    from .store import CompanyScopedStore

    company = Company.objects.get(pk=company_id)
    as_of_date = parse_date(as_of) if isinstance(as_of, str) else as_of
    rows = get_trial_balance(CompanyScopedStore(company), as_of_date)

    debit_total = sum(row.debit_total for row in rows)
    credit_total = sum(row.credit_total for row in rows)
    balanced = debit_total == credit_total
    if balanced:
        logger.info(
            "Trial balance for company %s is balanced (%d accounts)",
            company_id, len(rows),
        )
    else:
        logger.error(
            "Trial balance for company %s is off: debits=%s credits=%s",
            company_id, debit_total, credit_total,
        )
    return {
        "company_id": company_id,
        "accounts": len(rows),
        "debit_total": debit_total,
        "credit_total": credit_total,
        "balanced": balanced,
    }

import logging
from dataclasses import dataclass

from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from ..exceptions import (AlreadyPostedError, InvalidTransitionError,
                          UnbalancedEntryError)
from ..models import (Account, JournalEntry, JournalStatus, SourceType,
                      TaxCode, TransactionLine)
from .audit_helper import log_action

logger = logging.getLogger(__name__)

# Line attributes a caller may stage on a draft
LINE_FIELDS = ("account", "debit", "credit", "tax_code",
               "counterparty_id", "description")


def validate_amount(value, field):
    """Amounts are integer currency units, never floats or negatives."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(
            f"{field} must be an integer amount, got {value!r}.")
    if value < 0:
        raise ValidationError(f"{field} must be >= 0, got {value}.")
    return value


# ----------------------------
# Line helpers
# ----------------------------
def _resolve_account(store, account):
    # Accept an Account or its pk, always re-read inside the tenant
    pk = account.pk if isinstance(account, Account) else account
    account = store.get_account(pk)
    if not account.is_active:
        raise ValidationError(
            f"Account {account.code} is inactive and cannot take new postings.")
    return account


def _resolve_tax_code(store, tax_code):
    if tax_code is None:
        return None
    pk = tax_code.pk if isinstance(tax_code, TaxCode) else tax_code
    return store.get_tax_code(pk)


def _line_values(store, line_data):
    """Turn a caller line mapping into validated TransactionLine kwargs."""
    unknown = set(line_data) - set(LINE_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown line fields: {sorted(unknown)}")
    if line_data.get("account") is None:
        raise ValidationError("Every journal line needs an account.")

    debit = validate_amount(line_data.get("debit", 0), "debit")
    credit = validate_amount(line_data.get("credit", 0), "credit")
    if (debit > 0) == (credit > 0):
        raise ValidationError(
            "Each line must carry exactly one non-zero side "
            f"(debit={debit}, credit={credit})."
        )
    return {
        "account": _resolve_account(store, line_data["account"]),
        "debit": debit,
        "credit": credit,
        "tax_code": _resolve_tax_code(store, line_data.get("tax_code")),
        "counterparty_id": line_data.get("counterparty_id") or "",
        "description": line_data.get("description") or "",
    }


def _check_reference(store, reference):
    if not reference:
        return
    max_length = JournalEntry._meta.get_field("reference").max_length
    if len(reference) > max_length:
        raise ValidationError(
            f"Journal reference is {len(reference)} characters, max {max_length}.")
    if store.journal_entries().filter(reference=reference).exists():
        raise ValidationError(
            f"Journal reference {reference!r} is already used.")


def _require_draft(entry, action):
    if entry.status != JournalStatus.DRAFT:
        logger.warning(
            "Rejected %s on journal %s in status %s", action, entry.pk, entry.status)
        raise InvalidTransitionError(
            f"Cannot {action}: journal entry {entry.pk} is {entry.status}.",
            code="invalid_transition",
        )


# ----------------------------
# Journal-related workflows
# ----------------------------
def create_draft_journal(store, date, description, source_type, lines,
                         source_id=None, reference=None):
    """
    Create a draft entry with at least two lines.
    Balance is not required until post time, so drafts can be edited
    in stages.
    """
    if date is None:
        raise ValidationError("A journal entry needs a date.")
    if source_type not in SourceType.values:
        raise ValidationError(f"Unknown source type {source_type!r}.")
    lines = list(lines or [])
    if len(lines) < 2:
        raise ValidationError("A journal entry needs at least two lines.")

    with store.atomic():
        # Validate every line before writing anything
        values = [_line_values(store, line_data) for line_data in lines]
        _check_reference(store, reference)
        entry = store.create(
            JournalEntry,
            date=date,
            description=description or "",
            source_type=source_type,
            source_id=source_id,
            reference=reference or None,
            created_by=store.user,
        )
        for value in values:
            store.create(TransactionLine, journal_entry=entry, **value)
        log_action(action="create", instance=entry, user=store.user,
                   changes={"lines": len(values)})
    logger.info("Created draft journal %s (%d lines)", entry.pk, len(values))
    return entry


def add_journal_line(store, entry_id, **line_data):
    with store.atomic():
        entry = store.get_journal(entry_id, lock=True)
        _require_draft(entry, "add a line")
        line = store.create(
            TransactionLine, journal_entry=entry, **_line_values(store, line_data))
    return line


def update_journal_line(store, line_id, **changes):
    with store.atomic():
        line = store.get_line(line_id, lock=True)
        entry = store.get_journal(line.journal_entry_id, lock=True)
        _require_draft(entry, "edit a line")
        current = {
            "account": line.account,
            "debit": line.debit,
            "credit": line.credit,
            "tax_code": line.tax_code,
            "counterparty_id": line.counterparty_id,
            "description": line.description,
        }
        current.update(changes)
        for field, value in _line_values(store, current).items():
            setattr(line, field, value)
        line.save()
    return line


def remove_journal_line(store, line_id):
    with store.atomic():
        line = store.get_line(line_id, lock=True)
        entry = store.get_journal(line.journal_entry_id, lock=True)
        _require_draft(entry, "remove a line")
        line.delete()


def delete_draft_journal(store, entry_id):
    """Hard delete, allowed only while the entry is a draft."""
    with store.atomic():
        entry = store.get_journal(entry_id, lock=True)
        _require_draft(entry, "delete")
        log_action(action="delete", instance=entry, user=store.user)
        entry.delete()
    logger.info("Deleted draft journal %s", entry_id)


def post_journal(store, entry_id):
    """
    Post a draft entry.
    Joins the caller's transaction when one is open, so invoice posting
    and journal posting commit or roll back together.
    """
    with store.atomic():
        # Lock the row to avoid race conditions
        entry = store.get_journal(entry_id, lock=True)
        if entry.status != JournalStatus.DRAFT:
            raise AlreadyPostedError(
                f"Journal entry {entry.pk} is already {entry.status}.",
                code="already_posted",
            )

        """ Business validations """
        if entry.lines.count() < 2:
            raise ValidationError(
                "JournalEntry must have at least two lines to post.")

        # Recompute totals fresh from DB, exact integer equality
        total_debit, total_credit = entry.compute_totals()
        if total_debit != total_credit:
            logger.warning(
                "Rejected unbalanced journal %s: debits=%s credits=%s",
                entry.pk, total_debit, total_credit,
            )
            raise UnbalancedEntryError(
                f"Journal not balanced: debits={total_debit}, credits={total_credit}",
                code="unbalanced",
            )

        # Conditional write: only one concurrent poster can flip draft → posted
        updated = store.journal_entries().filter(
            pk=entry.pk, status=JournalStatus.DRAFT
        ).update(
            status=JournalStatus.POSTED,
            posted_at=timezone.now(),
            posted_by=store.user,
        )
        if not updated:
            raise AlreadyPostedError(
                f"Journal entry {entry.pk} was posted concurrently.",
                code="already_posted",
            )
        entry.refresh_from_db()
        log_action(action="post", instance=entry, user=store.user,
                   changes={"debit": total_debit, "credit": total_credit})
    logger.info("Posted journal %s (%s)", entry.pk, total_debit)
    return entry


def _owning_document(store, entry):
    """Name of the invoice or payment that owns ``entry``, if any."""
    invoice = store.invoices().filter(journal_entry=entry).only("number").first()
    if invoice is not None:
        return f"invoice {invoice.number}"
    payment = store.payments().filter(journal_entry=entry).first()
    if payment is not None:
        return f"payment {payment.pk}"
    return None


def void_journal(store, entry_id, reason):
    """
    Void a posted manual entry.
    Entries booked by an invoice or a payment are voided through
    void_invoice / void_payment so the document moves with its ledger.
    """
    with store.atomic():
        entry = store.get_journal(entry_id, lock=True)
        owner = _owning_document(store, entry)
        if owner is not None:
            logger.warning("Rejected direct void of journal %s owned by %s", entry.pk, owner)
            raise InvalidTransitionError(
                f"Journal entry {entry.pk} belongs to {owner}; void the document instead.",
                code="invalid_transition",
            )
        return reverse_journal(store, entry.pk, reason)


def reverse_journal(store, entry_id, reason):
    """
    Void a posted entry by posting a mirror-image reversal.
    Nothing is deleted; the original keeps its lines and becomes voided.
    Returns the original entry.
    """
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A reason is required to void a journal entry.")

    with store.atomic():
        entry = store.get_journal(entry_id, lock=True)
        if entry.status != JournalStatus.POSTED:
            logger.warning(
                "Rejected void of journal %s in status %s", entry.pk, entry.status)
            raise InvalidTransitionError(
                f"Only posted entries can be voided; {entry.pk} is {entry.status}.",
                code="invalid_transition",
            )
        if entry.reversal_of_id is not None:
            raise InvalidTransitionError(
                f"Journal entry {entry.pk} is a reversal and cannot be voided.",
                code="invalid_transition",
            )

        reference = f"REV JE {entry.pk}"
        _check_reference(store, reference)
        reversal = store.create(
            JournalEntry,
            date=entry.date,
            reference=reference,
            description=f"Reversal of JE {entry.pk}: {reason}",
            source_type=entry.source_type,
            source_id=entry.source_id,
            reversal_of=entry,
            created_by=store.user,
        )
        # Every line mirrored: debit ↔ credit
        for line in entry.lines.order_by("id"):
            store.create(
                TransactionLine,
                journal_entry=reversal,
                account=line.account,
                debit=line.credit,
                credit=line.debit,
                tax_code=line.tax_code,
                counterparty_id=line.counterparty_id,
                description=line.description,
            )
        post_journal(store, reversal.pk)

        updated = store.journal_entries().filter(
            pk=entry.pk, status=JournalStatus.POSTED
        ).update(
            status=JournalStatus.VOIDED,
            voided_at=timezone.now(),
            voided_by=store.user,
            void_reason=reason,
        )
        if not updated:
            raise InvalidTransitionError(
                f"Journal entry {entry.pk} was voided concurrently.",
                code="invalid_transition",
            )
        entry.refresh_from_db()
        log_action(action="void", instance=entry, user=store.user,
                   changes={"reason": reason, "reversal": reversal.pk})
    logger.info("Voided journal %s via reversal %s", entry.pk, reversal.pk)
    return entry


# ----------------------------
# Trial balance
# ----------------------------
@dataclass
class TrialBalanceRow:
    account: Account
    debit_total: int
    credit_total: int
    balance: int  # debit_total - credit_total


def account_totals(store, start_date=None, end_date=None):
    """
    {account_id: (debit_total, credit_total)} over ledger lines
    (posted entries and voided originals, whose reversals are posted).
    """
    lines = store.lines().in_ledger()
    if start_date is not None:
        lines = lines.filter(journal_entry__date__gte=start_date)
    if end_date is not None:
        lines = lines.filter(journal_entry__date__lte=end_date)
    rows = lines.values("account_id").annotate(
        debit_total=models.Sum("debit"),
        credit_total=models.Sum("credit"),
    )
    return {
        row["account_id"]: (row["debit_total"] or 0, row["credit_total"] or 0)
        for row in rows
    }


def get_trial_balance(store, as_of_date=None):
    """One row per account with ledger activity, ordered by code. Σbalance == 0."""
    totals = account_totals(store, end_date=as_of_date)
    accounts = store.accounts().filter(pk__in=totals).order_by("code")
    result = []
    for account in accounts:
        debit, credit = totals[account.pk]
        result.append(TrialBalanceRow(
            account=account,
            debit_total=debit,
            credit_total=credit,
            balance=debit - credit,
        ))
    return result

import logging
import re
from dataclasses import dataclass, field

from django.core.exceptions import ValidationError
from django.db import IntegrityError
from django.utils import timezone

from ..exceptions import (AmountExceedsBalanceError, DuplicateNumberError,
                          InvalidStateError, InvalidTransitionError)
from ..models import (Account, AccountType, Invoice, InvoicePayment,
                      InvoiceStatus, InvoiceType, PaymentMethod,
                      PaymentStatus, SourceType, TaxCode,
                      normalize_invoice_number)
from .audit_helper import log_action
from .journal import (create_draft_journal, post_journal, reverse_journal,
                      validate_amount)
from .registry import AccountRegistry, payment_account_role

logger = logging.getLogger(__name__)

TAX_ID_RE = re.compile(r"^\d{8}$")

# Fields a caller may set on create, or change while DRAFT
EDITABLE_FIELDS = (
    "number",
    "invoice_type",
    "date",
    "due_date",
    "untaxed_amount",
    "tax_amount",
    "total_amount",
    "counterparty_name",
    "counterparty_tax_id",
    "description",
    "tax_code",
    "is_deductible",
    "account",
)


# ----------------------------
# Validation
# ----------------------------
def _clean_invoice_fields(store, values, exclude_pk=None):
    """
    Validate and normalise invoice input.
    Everything malformed is rejected here so the report generators
    never have to coerce anything.
    """
    unknown = set(values) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown invoice fields: {sorted(unknown)}")

    cleaned = dict(values)
    cleaned["number"] = normalize_invoice_number(values.get("number"))

    invoice_type = values.get("invoice_type")
    if invoice_type not in InvoiceType.values:
        raise ValidationError(f"Invoice type must be OUTPUT or INPUT, got {invoice_type!r}.")
    if values.get("date") is None:
        raise ValidationError("An invoice needs a date.")

    # Amount identity: total = untaxed + tax, all non-negative integers
    untaxed = validate_amount(values.get("untaxed_amount", 0), "untaxed_amount")
    tax = validate_amount(values.get("tax_amount", 0), "tax_amount")
    total = validate_amount(values.get("total_amount", 0), "total_amount")
    if total != untaxed + tax:
        raise ValidationError(
            f"total_amount must equal untaxed_amount + tax_amount "
            f"({untaxed} + {tax} != {total})."
        )
    if total == 0:
        raise ValidationError("An invoice total must be greater than zero.")

    tax_id = (values.get("counterparty_tax_id") or "").strip()
    if tax_id and not TAX_ID_RE.match(tax_id):
        raise ValidationError(
            f"Counterparty tax id must be 8 digits, got {tax_id!r}.")
    cleaned["counterparty_tax_id"] = tax_id
    cleaned["counterparty_name"] = (values.get("counterparty_name") or "").strip()

    # Filing classification must be known before the invoice exists
    tax_code = values.get("tax_code")
    if tax_code is not None:
        pk = tax_code.pk if isinstance(tax_code, TaxCode) else tax_code
        tax_code = store.get_tax_code(pk)
    cleaned["tax_code"] = tax_code
    if invoice_type == InvoiceType.OUTPUT and tax_code is None:
        raise ValidationError("Output invoices need a tax code for filing.")
    if tax_code is not None and tax > 0 and tax_code.rate == 0:
        raise ValidationError(
            f"Tax code {tax_code.code} is 0% but tax_amount is {tax}.")

    account = values.get("account")
    if account is not None:
        pk = account.pk if isinstance(account, Account) else account
        account = store.get_account(pk)
        if not account.is_active:
            raise ValidationError(f"Account {account.code} is inactive.")
        expected = (AccountType.REVENUE if invoice_type == InvoiceType.OUTPUT
                    else AccountType.EXPENSE)
        if account.ac_type != expected:
            raise ValidationError(
                f"{invoice_type} invoices post to a {expected} account, "
                f"{account.code} is {account.ac_type}."
            )
    cleaned["account"] = account

    duplicates = store.invoices().filter(number=cleaned["number"])
    if exclude_pk is not None:
        duplicates = duplicates.exclude(pk=exclude_pk)
    if duplicates.exists():
        logger.warning("Rejected duplicate invoice number %s", cleaned["number"])
        raise DuplicateNumberError(
            f"Invoice number {cleaned['number']} already exists.",
            code="duplicate_number",
        )
    return cleaned


def _require_status(invoice, status, action, error=InvalidTransitionError):
    if invoice.status != status:
        logger.warning(
            "Rejected %s on invoice %s in status %s", action, invoice.pk, invoice.status)
        raise error(
            f"Cannot {action} invoice {invoice.number}: it is {invoice.status}, "
            f"expected {status}.",
            code="invalid_transition",
        )


# ----------------------------
# Invoice CRUD (draft only)
# ----------------------------
def create_invoice(store, **fields):
    cleaned = _clean_invoice_fields(store, fields)
    try:
        with store.atomic():
            invoice = store.create(Invoice, created_by=store.user, **cleaned)
            log_action(action="create", instance=invoice, user=store.user,
                       changes={"number": invoice.number,
                                "total_amount": invoice.total_amount})
    except IntegrityError:
        # Lost a race with a concurrent create of the same number
        raise DuplicateNumberError(
            f"Invoice number {cleaned['number']} already exists.",
            code="duplicate_number",
        )
    logger.info("Created %s invoice %s", invoice.invoice_type, invoice.number)
    return invoice


def update_invoice(store, invoice_id, **changes):
    with store.atomic():
        invoice = store.get_invoice(invoice_id, lock=True)
        _require_status(invoice, InvoiceStatus.DRAFT, "edit")
        values = {name: getattr(invoice, name) for name in EDITABLE_FIELDS}
        values.update(changes)
        cleaned = _clean_invoice_fields(store, values, exclude_pk=invoice.pk)
        for name, value in cleaned.items():
            setattr(invoice, name, value)
        invoice.save()
        log_action(action="update", instance=invoice, user=store.user,
                   changes={name: str(value) for name, value in changes.items()})
    return invoice


def delete_draft_invoice(store, invoice_id):
    with store.atomic():
        invoice = store.get_invoice(invoice_id, lock=True)
        _require_status(invoice, InvoiceStatus.DRAFT, "delete")
        log_action(action="delete", instance=invoice, user=store.user,
                   changes={"number": invoice.number})
        invoice.delete()
    logger.info("Deleted draft invoice %s", invoice_id)


# ----------------------------
# Lifecycle
# ----------------------------
def verify_invoice(store, invoice_id):
    """DRAFT → VERIFIED; monetary fields are locked from here on."""
    with store.atomic():
        invoice = store.get_invoice(invoice_id, lock=True)
        _require_status(invoice, InvoiceStatus.DRAFT, "verify")
        if not invoice.counterparty_name:
            raise ValidationError(
                f"Invoice {invoice.number} needs a counterparty name before verification.")
        updated = store.invoices().filter(
            pk=invoice.pk, status=InvoiceStatus.DRAFT
        ).update(
            status=InvoiceStatus.VERIFIED,
            verified_at=timezone.now(),
            verified_by=store.user,
        )
        if not updated:
            raise InvalidTransitionError(
                f"Invoice {invoice.number} was changed concurrently.")
        invoice.refresh_from_db()
        log_action(action="verify", instance=invoice, user=store.user)
    logger.info("Verified invoice %s", invoice.number)
    return invoice


def _posting_lines(store, invoice):
    """Derive the balanced journal lines for an invoice."""
    registry = AccountRegistry(store)
    counterparty = invoice.counterparty_tax_id
    desc = f"Invoice {invoice.number}"

    if invoice.invoice_type == InvoiceType.OUTPUT:
        # Dr AR total / Cr Revenue untaxed / Cr Output tax
        revenue = invoice.account or registry.by_role("revenue")
        lines = [
            {"account": registry.by_role("receivable"),
             "debit": invoice.total_amount},
            {"account": revenue, "credit": invoice.untaxed_amount},
            {"account": registry.by_role("output_tax"),
             "credit": invoice.tax_amount, "tax_code": invoice.tax_code},
        ]
    elif invoice.is_deductible:
        # Dr Expense untaxed / Dr Input tax / Cr AP total
        expense = invoice.account or registry.by_role("expense")
        lines = [
            {"account": expense, "debit": invoice.untaxed_amount},
            {"account": registry.by_role("input_tax"),
             "debit": invoice.tax_amount, "tax_code": invoice.tax_code},
            {"account": registry.by_role("payable"),
             "credit": invoice.total_amount},
        ]
    else:
        # Non-deductible tax is expensed, not recovered
        expense = invoice.account or registry.by_role("expense")
        lines = [
            {"account": expense, "debit": invoice.total_amount},
            {"account": registry.by_role("payable"),
             "credit": invoice.total_amount},
        ]

    result = []
    for line in lines:
        # Zero-amount lines are omitted (e.g. exempt or zero-rated tax)
        if not line.get("debit") and not line.get("credit"):
            continue
        line.update(counterparty_id=counterparty, description=desc)
        result.append(line)
    return result


def post_invoice(store, invoice_id):
    """
    VERIFIED → POSTED.
    Journal creation, journal post and the invoice write are one atomic
    unit: on any failure the invoice stays VERIFIED and no entry remains.
    """
    with store.atomic():
        invoice = store.get_invoice(invoice_id, lock=True)
        _require_status(invoice, InvoiceStatus.VERIFIED, "post")

        entry = create_draft_journal(
            store,
            date=invoice.date,
            description=f"{invoice.get_invoice_type_display()} invoice {invoice.number}",
            source_type=SourceType.INVOICE,
            lines=_posting_lines(store, invoice),
            source_id=invoice.pk,
            reference=f"INV {invoice.number}",
        )
        entry = post_journal(store, entry.pk)

        updated = store.invoices().filter(
            pk=invoice.pk, status=InvoiceStatus.VERIFIED
        ).update(
            status=InvoiceStatus.POSTED,
            journal_entry=entry,
            posted_at=timezone.now(),
            posted_by=store.user,
        )
        if not updated:
            raise InvalidTransitionError(
                f"Invoice {invoice.number} was posted concurrently.")
        invoice.refresh_from_db()
        log_action(action="post", instance=invoice, user=store.user,
                   changes={"journal_entry": entry.pk})
    logger.info("Posted invoice %s as journal %s", invoice.number, entry.pk)
    return invoice


def void_invoice(store, invoice_id, reason=""):
    """
    POSTED → VOIDED reverses the linked entry first.
    DRAFT / VERIFIED → VOIDED has no journal side effect.
    """
    reason = (reason or "").strip()
    with store.atomic():
        invoice = store.get_invoice(invoice_id, lock=True)
        previous = invoice.status
        if previous == InvoiceStatus.VOIDED:
            raise InvalidTransitionError(
                f"Invoice {invoice.number} is already voided.",
                code="invalid_transition",
            )
        if previous == InvoiceStatus.POSTED:
            if invoice.paid_amount > 0:
                raise InvalidStateError(
                    f"Invoice {invoice.number} has payments of "
                    f"{invoice.paid_amount}; void them before voiding the invoice.",
                    code="invalid_state",
                )
            reverse_journal(store, invoice.journal_entry_id,
                            reason or f"Void invoice {invoice.number}")

        updated = store.invoices().filter(
            pk=invoice.pk, status=previous
        ).update(
            status=InvoiceStatus.VOIDED,
            voided_at=timezone.now(),
            voided_by=store.user,
            void_reason=reason,
        )
        if not updated:
            raise InvalidTransitionError(
                f"Invoice {invoice.number} was changed concurrently.")
        invoice.refresh_from_db()
        log_action(action="void", instance=invoice, user=store.user,
                   changes={"from": previous, "reason": reason})
    logger.info("Voided invoice %s (was %s)", invoice.number, previous)
    return invoice


# ----------------------------
# Payment-related workflows
# ----------------------------
def record_payment(store, invoice_id, amount, date,
                   method=PaymentMethod.UNCLASSIFIED, reference=None):
    """
    Settle part (or all) of a posted invoice.
    Books a supplementary entry and never changes the invoice status.
    """
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValidationError(f"Payment amount must be a positive integer, got {amount!r}.")
    if method not in PaymentMethod.values:
        raise ValidationError(f"Unknown payment method {method!r}.")
    if date is None:
        raise ValidationError("A payment needs a date.")

    # Everything inside either succeeds
    # as one unit or rolls back if something fails
    with store.atomic():
        invoice = store.get_invoice(invoice_id, lock=True)
        _require_status(invoice, InvoiceStatus.POSTED, "record a payment on",
                        error=InvalidStateError)

        # Validate invoice outstanding
        outstanding = invoice.outstanding_amount
        if amount > outstanding:
            logger.warning(
                "Rejected payment %s on invoice %s (outstanding %s)",
                amount, invoice.number, outstanding,
            )
            raise AmountExceedsBalanceError(
                f"Payment {amount} exceeds invoice outstanding amount {outstanding}.",
                code="amount_exceeds_balance",
            )

        registry = AccountRegistry(store)
        money = registry.by_role(payment_account_role(method))
        desc = f"Payment for invoice {invoice.number}"
        if invoice.invoice_type == InvoiceType.OUTPUT:
            # Dr Cash/Bank / Cr AR
            lines = [
                {"account": money, "debit": amount, "description": desc},
                {"account": registry.by_role("receivable"), "credit": amount,
                 "description": desc},
            ]
        else:
            # Dr AP / Cr Cash/Bank
            lines = [
                {"account": registry.by_role("payable"), "debit": amount,
                 "description": desc},
                {"account": money, "credit": amount, "description": desc},
            ]
        sequence = invoice.payments.count() + 1
        entry = create_draft_journal(
            store,
            date=date,
            description=desc,
            source_type=SourceType.PAYMENT,
            lines=lines,
            source_id=invoice.pk,
            reference=f"PAY {invoice.number} #{sequence}",
        )
        post_journal(store, entry.pk)

        payment = store.create(
            InvoicePayment,
            invoice=invoice,
            amount=amount,
            date=date,
            method=method,
            reference=reference or "",
            journal_entry=entry,
            created_by=store.user,
        )

        paid = invoice.paid_amount + amount
        store.invoices().filter(pk=invoice.pk).update(
            paid_amount=paid,
            payment_status=(PaymentStatus.PAID if paid == invoice.total_amount
                            else PaymentStatus.PARTIAL),
        )
        log_action(action="payment", instance=invoice, user=store.user,
                   changes={"amount": amount, "paid_amount": paid,
                            "method": method})
    logger.info("Recorded payment %s on invoice %s", amount, invoice.number)
    return payment


def void_payment(store, payment_id, reason):
    """
    Reverse a recorded payment: its journal entry is voided and the
    invoice's paid amount drops back, in one transaction.
    """
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A reason is required to void a payment.")

    with store.atomic():
        payment = store.get_payment(payment_id)
        # Same lock order as record_payment: invoice first
        invoice = store.get_invoice(payment.invoice_id, lock=True)
        payment = store.get_payment(payment_id, lock=True)
        if payment.is_voided:
            raise InvalidTransitionError(
                f"Payment {payment.pk} is already voided.",
                code="invalid_transition",
            )

        reverse_journal(store, payment.journal_entry_id, reason)

        store.payments().filter(pk=payment.pk, voided_at__isnull=True).update(
            voided_at=timezone.now(),
            voided_by=store.user,
            void_reason=reason,
        )
        paid = invoice.paid_amount - payment.amount
        store.invoices().filter(pk=invoice.pk).update(
            paid_amount=paid,
            payment_status=(PaymentStatus.UNPAID if paid == 0
                            else PaymentStatus.PARTIAL),
        )
        payment.refresh_from_db()
        log_action(action="void_payment", instance=invoice, user=store.user,
                   changes={"payment": payment.pk, "amount": payment.amount,
                            "paid_amount": paid, "reason": reason})
    logger.info("Voided payment %s on invoice %s", payment.pk, invoice.number)
    return payment


# ----------------------------
# Batch helpers
# ----------------------------
@dataclass
class BatchResult:
    succeeded: list = field(default_factory=list)
    failed: list = field(default_factory=list)  # (invoice_id, message)


def _run_batch(store, invoice_ids, operation):
    # Each invoice runs in its own transaction; one failure
    # does not roll back the others
    result = BatchResult()
    for invoice_id in invoice_ids:
        try:
            operation(store, invoice_id)
        except ValidationError as exc:
            result.failed.append((invoice_id, "; ".join(exc.messages)))
        else:
            result.succeeded.append(invoice_id)
    return result


def batch_verify_invoices(store, invoice_ids):
    return _run_batch(store, invoice_ids, verify_invoice)


def batch_post_invoices(store, invoice_ids):
    return _run_batch(store, invoice_ids, post_invoice)

from django.core.exceptions import ValidationError
from django.db.models.signals import pre_delete
from django.dispatch import receiver

from .models import (Account, Invoice, InvoicePayment, InvoiceStatus,
                     JournalEntry, JournalStatus, TransactionLine)

""" Block invoice deletion unless it is a draft without payments."""


# pre_delete signal auto-fires just before Django deletes a model instance,
# also for queryset.delete() where Model.delete() is bypassed
@receiver(pre_delete, sender=Invoice)
def prevent_delete_non_draft_invoice(sender, instance, **kwargs):
    if InvoicePayment.objects.filter(invoice=instance).exists():
        raise ValidationError("Cannot delete invoice with applied payments.")
    if instance.status != InvoiceStatus.DRAFT:
        raise ValidationError("Only draft invoices can be deleted.")


"""Block deletion of posted / voided journals: history is append-only."""


@receiver(pre_delete, sender=JournalEntry)
def prevent_delete_finalized_journal(sender, instance, **kwargs):
    if instance.status != JournalStatus.DRAFT:
        raise ValidationError(
            "Cannot delete a posted or voided journal entry.")


"""Block deletion if account has ever been used in a journal line."""


@receiver(pre_delete, sender=Account)
def prevent_delete_account_with_lines(sender, instance, **kwargs):
    if TransactionLine.objects.filter(account=instance).exists():
        raise ValidationError("Cannot delete account used in journal lines.")

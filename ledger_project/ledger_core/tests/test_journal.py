import datetime

import pytest
from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.test import TestCase

from ledger_core.exceptions import (AlreadyPostedError, InvalidTransitionError,
                                    UnbalancedEntryError)
from ledger_core.models import JournalEntry, JournalStatus, SourceType
from ledger_core.services import (AccountRegistry, add_journal_line,
                                  create_draft_journal, delete_draft_journal,
                                  get_trial_balance, post_journal,
                                  remove_journal_line, update_journal_line,
                                  void_journal)

from .utils import line_set, make_store


class JournalTestMixin:
    def setUp(self):
        self.user = get_user_model().objects.create_user(
            username="clerk", password="pw")
        self.store = make_store(user=self.user)
        registry = AccountRegistry(self.store)
        self.cash = registry.by_code("1101")
        self.revenue = registry.by_code("4101")
        self.rent = registry.by_code("6111")
        self.date = datetime.date(2025, 3, 15)

    def draft(self, debit=100, credit=100, date=None):
        return create_draft_journal(
            self.store,
            date or self.date,
            "Cash sale",
            SourceType.MANUAL,
            [
                {"account": self.cash, "debit": debit},
                {"account": self.revenue, "credit": credit},
            ],
        )


""" Success tests """
class JournalPostingTests(JournalTestMixin, TestCase):

    def test_balanced_entry_posts_successfully(self):
        je = self.draft()
        self.assertEqual(je.status, JournalStatus.DRAFT)

        post_journal(self.store, je.pk)

        je.refresh_from_db()  # get up-to-date values
        self.assertEqual(je.status, JournalStatus.POSTED)
        self.assertIsNotNone(je.posted_at)
        self.assertEqual(je.posted_by, self.user)
        self.assertEqual(je.compute_totals(), (100, 100))

    def test_post_writes_audit_log(self):
        je = self.draft()
        post_journal(self.store, je.pk)
        self.assertTrue(
            self.store.audit_logs().filter(
                action="post", object_type="JournalEntry", object_id=str(je.pk)
            ).exists()
        )

    def test_draft_does_not_need_to_balance(self):
        je = self.draft(debit=100, credit=90)
        self.assertFalse(je.is_balanced())
        self.assertEqual(je.status, JournalStatus.DRAFT)

    def test_staged_editing_then_post(self):
        je = self.draft(debit=100, credit=90)
        credit_line = je.lines.get(account=self.revenue)

        update_journal_line(self.store, credit_line.pk, credit=100)
        post_journal(self.store, je.pk)

        je.refresh_from_db()
        self.assertEqual(je.status, JournalStatus.POSTED)

    def test_add_and_remove_lines_while_draft(self):
        je = self.draft(debit=100, credit=60)
        line = add_journal_line(
            self.store, je.pk, account=self.revenue, credit=40,
            description="Service part")
        self.assertEqual(je.lines.count(), 3)
        self.assertTrue(je.is_balanced())

        remove_journal_line(self.store, line.pk)
        self.assertEqual(je.lines.count(), 2)

    def test_delete_draft_journal(self):
        je = self.draft()
        delete_draft_journal(self.store, je.pk)
        self.assertFalse(JournalEntry.objects.filter(pk=je.pk).exists())


""" Failure tests """
class JournalPostingFailureTests(JournalTestMixin, TestCase):

    def test_unbalanced_entry_stays_draft(self):
        je = self.draft(debit=100, credit=90)

        with self.assertRaises(UnbalancedEntryError) as ctx:
            post_journal(self.store, je.pk)
        self.assertIn("debits=100, credits=90", str(ctx.exception))

        je.refresh_from_db()
        self.assertEqual(je.status, JournalStatus.DRAFT)
        self.assertIsNone(je.posted_at)

    def test_posting_twice_raises_already_posted(self):
        je = self.draft()
        post_journal(self.store, je.pk)
        with self.assertRaises(AlreadyPostedError):
            post_journal(self.store, je.pk)

    def test_already_posted_is_a_transition_error(self):
        self.assertTrue(issubclass(AlreadyPostedError, InvalidTransitionError))

    def test_draft_needs_two_lines(self):
        with self.assertRaises(ValidationError):
            create_draft_journal(
                self.store, self.date, "One line", SourceType.MANUAL,
                [{"account": self.cash, "debit": 100}],
            )
        self.assertFalse(self.store.journal_entries().exists())

    def test_line_with_both_sides_rejected(self):
        with self.assertRaises(ValidationError):
            create_draft_journal(
                self.store, self.date, "Both sides", SourceType.MANUAL,
                [
                    {"account": self.cash, "debit": 50, "credit": 50},
                    {"account": self.revenue, "credit": 100},
                ],
            )
        self.assertFalse(self.store.journal_entries().exists())

    def test_negative_and_float_amounts_rejected(self):
        for bad in (-100, 100.5):
            with self.assertRaises(ValidationError):
                self.draft(debit=bad, credit=100)
        self.assertFalse(self.store.journal_entries().exists())

    def test_unknown_source_type_rejected(self):
        with self.assertRaises(ValidationError):
            create_draft_journal(
                self.store, self.date, "x", "bank_feed",
                [{"account": self.cash, "debit": 1},
                 {"account": self.revenue, "credit": 1}],
            )

    def test_lines_frozen_after_post(self):
        je = self.draft()
        post_journal(self.store, je.pk)
        line = je.lines.first()

        with self.assertRaises(InvalidTransitionError):
            add_journal_line(self.store, je.pk, account=self.cash, debit=5)
        with self.assertRaises(InvalidTransitionError):
            update_journal_line(self.store, line.pk, description="edited")
        with self.assertRaises(InvalidTransitionError):
            remove_journal_line(self.store, line.pk)
        # Model-level guard as well
        with self.assertRaises(ValidationError):
            line.delete()
        self.assertEqual(je.lines.count(), 2)

    def test_posted_journal_cannot_be_deleted_or_unposted(self):
        je = self.draft()
        post_journal(self.store, je.pk)

        with self.assertRaises(InvalidTransitionError):
            delete_draft_journal(self.store, je.pk)

        je.refresh_from_db()
        je.status = JournalStatus.DRAFT
        with self.assertRaises(ValidationError):
            je.save()


    def test_inactive_account_rejected(self):
        self.rent.is_active = False
        self.rent.save()

        with self.assertRaises(ValidationError):
            create_draft_journal(
                self.store, self.date, "Rent", SourceType.MANUAL,
                [{"account": self.rent, "debit": 80},
                 {"account": self.cash, "credit": 80}],
            )
        je = self.draft()
        with self.assertRaises(ValidationError):
            add_journal_line(self.store, je.pk, account=self.rent, debit=5)
        self.assertEqual(self.store.lines().filter(account=self.rent).count(), 0)

    def test_reference_too_long_rejected(self):
        with self.assertRaises(ValidationError):
            create_draft_journal(
                self.store, self.date, "Long ref", SourceType.MANUAL,
                [{"account": self.cash, "debit": 1},
                 {"account": self.revenue, "credit": 1}],
                reference="R" * 201,
            )
        self.assertFalse(self.store.journal_entries().exists())

    def test_posted_header_is_locked(self):
        je = post_journal(self.store, self.draft().pk)

        je.description = "Rewritten after posting"
        with self.assertRaises(ValidationError):
            je.save()

        je.refresh_from_db()
        je.date = datetime.date(2024, 12, 31)
        with self.assertRaises(ValidationError):
            je.save()

        je.refresh_from_db()
        self.assertEqual(je.description, "Cash sale")
        self.assertEqual(je.date, self.date)

    def test_draft_header_is_editable(self):
        je = self.draft()
        je.description = "Cash sale, corrected"
        je.save()
        je.refresh_from_db()
        self.assertEqual(je.description, "Cash sale, corrected")


class JournalVoidTests(JournalTestMixin, TestCase):

    def test_void_posts_mirror_reversal(self):
        je = self.draft()
        post_journal(self.store, je.pk)

        void_journal(self.store, je.pk, "Entered twice")

        je.refresh_from_db()
        self.assertEqual(je.status, JournalStatus.VOIDED)
        self.assertIsNotNone(je.voided_at)
        self.assertEqual(je.void_reason, "Entered twice")

        reversal = je.reversals.get()
        self.assertEqual(reversal.status, JournalStatus.POSTED)
        self.assertEqual(reversal.date, je.date)
        self.assertEqual(line_set(reversal), {("1101", 0, 100), ("4101", 100, 0)})
        # Original lines stay queryable
        self.assertEqual(line_set(je), {("1101", 100, 0), ("4101", 0, 100)})

    def test_trial_balance_after_void_matches_before_entry(self):
        before = get_trial_balance(self.store)
        je = self.draft()
        post_journal(self.store, je.pk)
        void_journal(self.store, je.pk, "Wrong account")

        after = {row.account.code: row.balance for row in get_trial_balance(self.store)}
        self.assertEqual(before, [])
        self.assertTrue(all(balance == 0 for balance in after.values()))

    def test_void_requires_reason(self):
        je = self.draft()
        post_journal(self.store, je.pk)
        with self.assertRaises(ValidationError):
            void_journal(self.store, je.pk, "   ")
        je.refresh_from_db()
        self.assertEqual(je.status, JournalStatus.POSTED)

    def test_void_draft_or_voided_rejected(self):
        je = self.draft()
        with self.assertRaises(InvalidTransitionError):
            void_journal(self.store, je.pk, "not posted")

        post_journal(self.store, je.pk)
        void_journal(self.store, je.pk, "first")
        with self.assertRaises(InvalidTransitionError):
            void_journal(self.store, je.pk, "second")
        self.assertEqual(je.reversals.count(), 1)

    def test_reversal_reference_derived_from_entry(self):
        je = create_draft_journal(
            self.store, self.date, "Long ref", SourceType.MANUAL,
            [{"account": self.cash, "debit": 10},
             {"account": self.revenue, "credit": 10}],
            reference="R" * 200,
        )
        post_journal(self.store, je.pk)

        void_journal(self.store, je.pk, "wrong amount")

        self.assertEqual(je.reversals.get().reference, f"REV JE {je.pk}")

    def test_reversal_reference_collision_is_a_validation_error(self):
        je = post_journal(self.store, self.draft().pk)
        create_draft_journal(
            self.store, self.date, "Manual", SourceType.MANUAL,
            [{"account": self.cash, "debit": 5},
             {"account": self.revenue, "credit": 5}],
            reference=f"REV JE {je.pk}",
        )

        with self.assertRaises(ValidationError):
            void_journal(self.store, je.pk, "wrong amount")

        je.refresh_from_db()
        self.assertEqual(je.status, JournalStatus.POSTED)
        self.assertEqual(je.reversals.count(), 0)


class TrialBalanceTests(JournalTestMixin, TestCase):

    def test_trial_balance_nets_to_zero(self):
        for amount in (100, 250):
            post_journal(self.store, self.draft(debit=amount, credit=amount).pk)
        rent = create_draft_journal(
            self.store, self.date, "Rent", SourceType.MANUAL,
            [{"account": self.rent, "debit": 80},
             {"account": self.cash, "credit": 80}],
        )
        post_journal(self.store, rent.pk)
        # Drafts are not part of the ledger
        self.draft(debit=999, credit=999)

        rows = get_trial_balance(self.store)
        self.assertEqual([row.account.code for row in rows], ["1101", "4101", "6111"])
        self.assertEqual(sum(row.balance for row in rows), 0)

        cash = rows[0]
        self.assertEqual((cash.debit_total, cash.credit_total, cash.balance), (350, 80, 270))

    def test_trial_balance_as_of_date(self):
        post_journal(self.store, self.draft(date=datetime.date(2025, 1, 5)).pk)
        post_journal(self.store, self.draft(debit=40, credit=40).pk)

        rows = get_trial_balance(self.store, datetime.date(2025, 1, 31))
        self.assertEqual({row.account.code: row.balance for row in rows},
                         {"1101": 100, "4101": -100})


@pytest.mark.django_db
def test_unbalanced_post_leaves_no_audit_trail():
    store = make_store(slug="solo")
    registry = AccountRegistry(store)
    je = create_draft_journal(
        store, datetime.date(2025, 2, 1), "Scenario B", SourceType.MANUAL,
        [{"account": registry.by_code("1101"), "debit": 100},
         {"account": registry.by_code("4101"), "credit": 90}],
    )
    with pytest.raises(UnbalancedEntryError):
        post_journal(store, je.pk)
    assert not store.audit_logs().filter(action="post").exists()

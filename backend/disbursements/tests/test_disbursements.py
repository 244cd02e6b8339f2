"""
Service tests — recording disbursements and reading the ledger summaries.
"""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.db import DatabaseError
from django.test import TestCase

from accounts.models import Masjid, UserRole
from applications.models import ApplicationHistory, ApplicationStatus, HistoryAction
from applications.services import (
    ApplicationAssignmentService,
    ApplicationCreationService,
    ApplicationWorkflowService,
)
from core.domain.exceptions import InvalidArgument, InvalidState, NotFound
from core.models import Notification
from disbursements.models import Disbursement
from disbursements.services import DisbursementService, DisbursementSummaryService

User = get_user_model()


def _approved_application(applicant, reviewer, amount="500.00"):
    draft = ApplicationCreationService.create_draft(applicant)
    ApplicationWorkflowService.submit(draft.pk, applicant)
    ApplicationAssignmentService.claim(draft.pk, reviewer)
    return ApplicationWorkflowService.resolve(
        draft.pk, reviewer, "approved", amount_approved=Decimal(amount),
    )


class TestRecordDisbursement(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.masjid = Masjid.objects.create(name="Masjid Al-Noor", zip_code="60601")
        cls.applicant = User.objects.create_user(
            username="amina", password="Zakat!Pass123", email="amina@zakat.test",
            first_name="Amina", last_name="Yusuf", role=UserRole.APPLICANT,
        )
        cls.reviewer = User.objects.create_user(
            username="reviewer", password="Zakat!Pass123", email="reviewer@zakat.test",
            first_name="Yusuf", last_name="Ali",
            role=UserRole.ZAKAT_ADMIN, masjid=cls.masjid,
        )
        cls.app = _approved_application(cls.applicant, cls.reviewer)

    def test_record_creates_ledger_entry_without_status_change(self):
        disbursement = DisbursementService.record_disbursement(
            self.reviewer, self.app.pk, Decimal("500.00"), "check",
            reference_number="CHK-1001", period_month=3, period_year=2025,
        )

        self.assertEqual(disbursement.amount, Decimal("500.00"))
        self.assertEqual(disbursement.applicant, self.applicant)
        self.assertEqual(disbursement.masjid, self.masjid)
        self.assertEqual(disbursement.masjid_name, "Masjid Al-Noor")
        self.assertEqual(disbursement.disbursed_by_name, "Yusuf Ali")

        self.app.refresh_from_db()
        self.assertEqual(self.app.status, ApplicationStatus.APPROVED)

    def test_record_writes_history_and_notifies_applicant(self):
        DisbursementService.record_disbursement(
            self.reviewer, self.app.pk, "500", "check", period_month=3, period_year=2025,
        )

        entry = ApplicationHistory.objects.get(application=self.app, action=HistoryAction.DISBURSED)
        self.assertEqual(entry.details, "Disbursement of $500.00 recorded via check for March 2025")
        self.assertEqual(entry.metadata["amount"], "500")

        notification = Notification.objects.get(
            recipient=self.applicant, notification_type="disbursement_recorded",
        )
        self.assertIn("$500.00", notification.message)
        self.assertIn("for March 2025", notification.message)

    def test_invalid_amounts_rejected(self):
        for amount in ("0", "-10", "abc", None, "NaN"):
            with self.subTest(amount=amount):
                with self.assertRaises(InvalidArgument):
                    DisbursementService.record_disbursement(self.reviewer, self.app.pk, amount, "check")
        self.assertFalse(Disbursement.objects.exists())

    def test_unknown_method_rejected(self):
        with self.assertRaises(InvalidArgument):
            DisbursementService.record_disbursement(self.reviewer, self.app.pk, "10", "crypto")

    def test_period_month_out_of_range_rejected(self):
        with self.assertRaises(InvalidArgument):
            DisbursementService.record_disbursement(
                self.reviewer, self.app.pk, "10", "cash", period_month=13,
            )

    def test_missing_application_fails_not_found(self):
        with self.assertRaises(NotFound):
            DisbursementService.record_disbursement(self.reviewer, 31337, "10", "cash")

    def test_unapproved_application_fails_invalid_state(self):
        draft = ApplicationCreationService.create_draft(self.applicant)

        with self.assertRaises(InvalidState):
            DisbursementService.record_disbursement(self.reviewer, draft.pk, "10", "cash")

    def test_falls_back_to_application_masjid(self):
        super_admin = User.objects.create_user(
            username="root", password="Zakat!Pass123", email="root@zakat.test",
            role=UserRole.SUPER_ADMIN,
        )

        disbursement = DisbursementService.record_disbursement(super_admin, self.app.pk, "25", "cash")

        self.assertEqual(disbursement.masjid, self.masjid)

    def test_disbursed_application_still_accepts_payments(self):
        ApplicationWorkflowService.change_status(self.app.pk, self.reviewer, ApplicationStatus.DISBURSED)

        DisbursementService.record_disbursement(self.reviewer, self.app.pk, "75", "bank_transfer")

        self.assertEqual(Disbursement.objects.filter(application=self.app).count(), 1)


class TestDisbursementSummaries(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.masjid_a = Masjid.objects.create(name="Masjid A", zip_code="10001")
        cls.masjid_b = Masjid.objects.create(name="Masjid B", zip_code="10002")
        cls.applicant = User.objects.create_user(
            username="amina", password="Zakat!Pass123", email="amina@zakat.test",
            first_name="Amina", last_name="Yusuf", role=UserRole.APPLICANT,
        )
        cls.other_applicant = User.objects.create_user(
            username="omar", password="Zakat!Pass123", email="omar@zakat.test",
            first_name="Omar", last_name="Farooq", role=UserRole.APPLICANT,
        )
        cls.admin_a = User.objects.create_user(
            username="admina", password="Zakat!Pass123", email="admina@zakat.test",
            role=UserRole.ZAKAT_ADMIN, masjid=cls.masjid_a,
        )
        cls.admin_b = User.objects.create_user(
            username="adminb", password="Zakat!Pass123", email="adminb@zakat.test",
            role=UserRole.ZAKAT_ADMIN, masjid=cls.masjid_b,
        )

        cls.app = _approved_application(cls.applicant, cls.admin_a)
        cls.other_app = _approved_application(cls.other_applicant, cls.admin_b)

        DisbursementService.record_disbursement(cls.admin_a, cls.app.pk, "500.00", "check")
        DisbursementService.record_disbursement(cls.admin_a, cls.app.pk, "250.00", "cash")
        DisbursementService.record_disbursement(cls.admin_b, cls.app.pk, "1000.00", "bank_transfer")
        DisbursementService.record_disbursement(cls.admin_b, cls.other_app.pk, "100.00", "gift_card")

    def test_application_ledger_totals(self):
        summary = DisbursementSummaryService.get_application_disbursements(self.app.pk)

        self.assertEqual(summary["total_disbursed"], Decimal("1750.00"))
        self.assertEqual(summary["disbursement_count"], 3)
        self.assertEqual(summary["disbursements"][0].amount, Decimal("1000.00"))
        self.assertEqual(summary["last_disbursed_at"], summary["disbursements"][0].disbursed_at)

    def test_applicant_summary_by_masjid_sorted_by_total(self):
        summary = DisbursementSummaryService.get_applicant_disbursement_summary(self.applicant.pk)

        self.assertEqual(summary["applicant_name"], "Amina Yusuf")
        self.assertEqual(summary["total_disbursed"], Decimal("1750.00"))
        self.assertEqual(summary["disbursement_count"], 3)
        self.assertEqual(summary["application_count"], 1)
        self.assertEqual(
            [(row["masjid_name"], row["total_disbursed"], row["disbursement_count"]) for row in summary["by_masjid"]],
            [("Masjid B", Decimal("1000.00"), 1), ("Masjid A", Decimal("750.00"), 2)],
        )

    def test_applicant_summary_is_stable_across_reads(self):
        first = DisbursementSummaryService.get_applicant_disbursement_summary(self.applicant.pk)
        second = DisbursementSummaryService.get_applicant_disbursement_summary(self.applicant.pk)

        for key in ("total_disbursed", "disbursement_count", "last_disbursed_at", "by_masjid"):
            with self.subTest(key=key):
                self.assertEqual(first[key], second[key])
        self.assertEqual(Disbursement.objects.filter(applicant=self.applicant).count(), 3)

    def test_all_applicants_summary_is_stable_across_reads(self):
        first = DisbursementSummaryService.get_all_applicants_disbursement_summary()
        second = DisbursementSummaryService.get_all_applicants_disbursement_summary()

        self.assertEqual(first["total_disbursed"], Decimal("1850.00"))
        for key in ("total_disbursed", "total_applicants", "applicants"):
            with self.subTest(key=key):
                self.assertEqual(first[key], second[key])

    def test_applicant_without_disbursements_has_zero_totals(self):
        newcomer = User.objects.create_user(
            username="newcomer", password="Zakat!Pass123", email="new@zakat.test",
        )

        summary = DisbursementSummaryService.get_applicant_disbursement_summary(newcomer.pk)

        self.assertEqual(summary["total_disbursed"], Decimal("0.00"))
        self.assertEqual(summary["by_masjid"], [])
        self.assertIsNone(summary["last_disbursed_at"])

    def test_unknown_applicant_fails_not_found(self):
        with self.assertRaises(NotFound):
            DisbursementSummaryService.get_applicant_disbursement_summary(99999)

    def test_masjid_summary_by_applicant(self):
        summary = DisbursementSummaryService.get_masjid_disbursement_summary(self.masjid_b.pk)

        self.assertEqual(summary["total_disbursed"], Decimal("1100.00"))
        self.assertEqual(summary["applicant_count"], 2)
        self.assertEqual(
            [(row["applicant_name"], row["total_disbursed"]) for row in summary["by_applicant"]],
            [("Amina Yusuf", Decimal("1000.00")), ("Omar Farooq", Decimal("100.00"))],
        )

    def test_all_applicants_summary(self):
        summary = DisbursementSummaryService.get_all_applicants_disbursement_summary()

        self.assertEqual(summary["total_disbursed"], Decimal("1850.00"))
        self.assertEqual(summary["total_applicants"], 2)
        self.assertEqual(
            [row["applicant_id"] for row in summary["applicants"]],
            [self.applicant.pk, self.other_applicant.pk],
        )
        self.assertEqual(len(summary["applicants"][0]["by_masjid"]), 2)

    def test_all_applicants_summary_limit_keeps_grand_total(self):
        summary = DisbursementSummaryService.get_all_applicants_disbursement_summary(limit=1)

        self.assertEqual(len(summary["applicants"]), 1)
        self.assertEqual(summary["total_applicants"], 2)
        self.assertEqual(summary["total_disbursed"], Decimal("1850.00"))

    def test_storage_failure_degrades_to_empty_summary(self):
        with patch.object(
            DisbursementSummaryService, "_by_masjid", side_effect=DatabaseError("boom"),
        ):
            with self.assertLogs("disbursements.services", level="ERROR"):
                summary = DisbursementSummaryService.get_applicant_disbursement_summary(
                    self.applicant.pk,
                )

        self.assertEqual(summary["total_disbursed"], Decimal("0.00"))
        self.assertEqual(summary["by_masjid"], [])
        self.assertEqual(summary["disbursements"], [])

"""
Service tests — draft creation, submission, status changes and resolution.
"""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.test import TestCase

from accounts.models import Masjid, UserRole
from applications.models import (
    AdminNote,
    Application,
    ApplicationHistory,
    ApplicationStatus,
    HistoryAction,
)
from applications.services import (
    ApplicationAssignmentService,
    ApplicationCreationService,
    ApplicationQueryService,
    ApplicationWorkflowService,
)
from applications.transitions import VALID_STATUS_TRANSITIONS
from core.domain.exceptions import (
    InvalidArgument,
    InvalidState,
    InvalidTransition,
    NotFound,
    PermissionDenied,
)
from core.models import Notification

User = get_user_model()


class TestDraftCreation(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.applicant = User.objects.create_user(
            username="amina",
            password="Zakat!Pass123",
            email="amina@zakat.test",
            first_name="Amina",
            last_name="Yusuf",
            phone_number="+13125550101",
            role=UserRole.APPLICANT,
        )
        cls.other = User.objects.create_user(
            username="omar",
            password="Zakat!Pass123",
            email="omar@zakat.test",
            role=UserRole.APPLICANT,
        )

    def test_create_draft_snapshots_applicant(self):
        app = ApplicationCreationService.create_draft(self.applicant)

        self.assertEqual(app.status, ApplicationStatus.DRAFT)
        self.assertEqual(app.applicant_name, "Amina Yusuf")
        self.assertEqual(app.applicant_email, "amina@zakat.test")
        self.assertEqual(app.applicant_phone, "+13125550101")
        self.assertFalse(app.applicant_is_flagged)

    def test_application_number_derived_from_pk(self):
        app = ApplicationCreationService.create_draft(self.applicant)

        self.assertEqual(app.application_number, f"ZKT-{app.pk:08d}")

    def test_snapshot_not_refreshed_after_profile_edit(self):
        app = ApplicationCreationService.create_draft(self.applicant)

        self.applicant.first_name = "Aminah"
        self.applicant.email = "aminah@zakat.test"
        self.applicant.save()

        app.refresh_from_db()
        self.assertEqual(app.applicant_name, "Amina Yusuf")
        self.assertEqual(app.applicant_email, "amina@zakat.test")

    def test_create_draft_keeps_only_known_sections(self):
        app = ApplicationCreationService.create_draft(
            self.applicant,
            sections={"household": [{"name": "Bilal", "age": 9}], "bogus": {"x": 1}},
        )

        self.assertEqual(app.household, [{"name": "Bilal", "age": 9}])
        self.assertFalse(hasattr(app, "bogus"))

    def test_create_draft_records_history(self):
        app = ApplicationCreationService.create_draft(self.applicant)

        entry = ApplicationHistory.objects.get(application=app)
        self.assertEqual(entry.action, HistoryAction.CREATED)
        self.assertEqual(entry.new_status, ApplicationStatus.DRAFT)
        self.assertEqual(entry.performed_by_role, UserRole.APPLICANT)

    def test_save_draft_overwrites_sections(self):
        app = ApplicationCreationService.create_draft(self.applicant)

        saved = ApplicationCreationService.save_draft(
            app.pk, self.applicant, {"financial": {"monthly_income": 1200}},
        )

        self.assertEqual(saved.financial, {"monthly_income": 1200})
        self.assertTrue(
            ApplicationHistory.objects.filter(application=app, action=HistoryAction.EDITED).exists()
        )

    def test_save_draft_by_other_user_is_denied(self):
        app = ApplicationCreationService.create_draft(self.applicant)

        with self.assertRaises(PermissionDenied):
            ApplicationCreationService.save_draft(app.pk, self.other, {"contact": {}})

    def test_save_draft_after_submit_fails_invalid_state(self):
        app = ApplicationCreationService.create_draft(self.applicant)
        ApplicationWorkflowService.submit(app.pk, self.applicant)

        with self.assertRaises(InvalidState):
            ApplicationCreationService.save_draft(app.pk, self.applicant, {"contact": {}})


class TestSubmit(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.applicant = User.objects.create_user(
            username="amina", password="Zakat!Pass123", email="amina@zakat.test",
            role=UserRole.APPLICANT,
        )
        cls.other = User.objects.create_user(
            username="omar", password="Zakat!Pass123", email="omar@zakat.test",
            role=UserRole.APPLICANT,
        )

    def test_submit_moves_draft_into_pool(self):
        draft = ApplicationCreationService.create_draft(self.applicant)

        app = ApplicationWorkflowService.submit(draft.pk, self.applicant)

        self.assertEqual(app.status, ApplicationStatus.SUBMITTED)
        self.assertIsNotNone(app.submitted_at)
        self.assertIsNone(app.assigned_to)
        self.assertIn(app, list(ApplicationQueryService.list_pool()))
        self.assertTrue(
            Notification.objects.filter(
                recipient=self.applicant, notification_type="application_submitted",
            ).exists()
        )

    def test_submit_twice_fails_invalid_state(self):
        draft = ApplicationCreationService.create_draft(self.applicant)
        ApplicationWorkflowService.submit(draft.pk, self.applicant)

        with self.assertRaises(InvalidState):
            ApplicationWorkflowService.submit(draft.pk, self.applicant)

    def test_submit_other_users_draft_is_denied(self):
        draft = ApplicationCreationService.create_draft(self.applicant)

        with self.assertRaises(PermissionDenied):
            ApplicationWorkflowService.submit(draft.pk, self.other)

    def test_submit_missing_application_fails_not_found(self):
        with self.assertRaises(NotFound):
            ApplicationWorkflowService.submit(424242, self.applicant)


class TestChangeStatus(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.masjid = Masjid.objects.create(name="Masjid Al-Noor", zip_code="60601")
        cls.applicant = User.objects.create_user(
            username="amina", password="Zakat!Pass123", email="amina@zakat.test",
            role=UserRole.APPLICANT,
        )
        cls.reviewer = User.objects.create_user(
            username="reviewer", password="Zakat!Pass123", email="reviewer@zakat.test",
            first_name="Yusuf", last_name="Ali",
            role=UserRole.ZAKAT_ADMIN, masjid=cls.masjid,
        )

    def setUp(self):
        draft = ApplicationCreationService.create_draft(self.applicant)
        ApplicationWorkflowService.submit(draft.pk, self.applicant)
        self.app = ApplicationAssignmentService.claim(draft.pk, self.reviewer)

    def test_valid_change_updates_status_and_history(self):
        app = ApplicationWorkflowService.change_status(
            self.app.pk, self.reviewer, ApplicationStatus.PENDING_DOCUMENTS,
            note="Need a lease",
        )

        self.assertEqual(app.status, ApplicationStatus.PENDING_DOCUMENTS)
        self.assertEqual(app.assigned_to, self.reviewer)

        entry = ApplicationHistory.objects.get(
            application=self.app, action=HistoryAction.STATUS_CHANGED,
        )
        self.assertEqual(entry.previous_status, ApplicationStatus.UNDER_REVIEW)
        self.assertEqual(entry.new_status, ApplicationStatus.PENDING_DOCUMENTS)
        self.assertEqual(
            entry.details,
            "Status changed from under_review to pending_documents: Need a lease",
        )

    def test_change_notifies_applicant_with_status_label(self):
        ApplicationWorkflowService.change_status(
            self.app.pk, self.reviewer, ApplicationStatus.PENDING_VERIFICATION,
        )

        notification = Notification.objects.get(
            recipient=self.applicant, notification_type="status_changed",
        )
        self.assertEqual(notification.title, "Application Pending Verification")
        self.assertEqual(notification.message, "Your application documents are being verified.")

    def test_pair_outside_table_fails_and_writes_nothing(self):
        with self.assertRaises(InvalidTransition):
            ApplicationWorkflowService.change_status(
                self.app.pk, self.reviewer, ApplicationStatus.DISBURSED,
            )

        self.app.refresh_from_db()
        self.assertEqual(self.app.status, ApplicationStatus.UNDER_REVIEW)
        self.assertFalse(
            ApplicationHistory.objects.filter(
                application=self.app, action=HistoryAction.STATUS_CHANGED,
            ).exists()
        )

    def test_unknown_status_fails_invalid_state(self):
        with self.assertRaises(InvalidState):
            ApplicationWorkflowService.change_status(self.app.pk, self.reviewer, "archived")

    def test_closed_application_cannot_move(self):
        ApplicationWorkflowService.resolve(
            self.app.pk, self.reviewer, "rejected", rejection_reason="Over income threshold",
        )
        ApplicationWorkflowService.change_status(self.app.pk, self.reviewer, ApplicationStatus.CLOSED)

        for target in (ApplicationStatus.UNDER_REVIEW, ApplicationStatus.APPROVED, ApplicationStatus.SUBMITTED):
            with self.subTest(target=target):
                with self.assertRaises(InvalidTransition):
                    ApplicationWorkflowService.change_status(self.app.pk, self.reviewer, target)

    def test_return_to_pool_clears_assignment(self):
        app = ApplicationWorkflowService.change_status(
            self.app.pk, self.reviewer, ApplicationStatus.SUBMITTED,
        )

        self.assertEqual(app.status, ApplicationStatus.SUBMITTED)
        self.assertIsNone(app.assigned_to)
        self.assertIsNone(app.assigned_to_masjid)
        self.assertIn(app, list(ApplicationQueryService.list_pool()))

        entry = ApplicationHistory.objects.get(
            application=self.app, action=HistoryAction.STATUS_CHANGED,
        )
        self.assertEqual(entry.previous_assignee, self.reviewer)

    def test_lost_race_fails_invalid_transition(self):
        """
        Two reviewers both observed ``under_review``; the first moved the
        application on, so the second conditional update matches nothing.
        """
        stale = Application.objects.get(pk=self.app.pk)
        ApplicationWorkflowService.change_status(
            self.app.pk, self.reviewer, ApplicationStatus.PENDING_DOCUMENTS,
        )
        fresh = Application.objects.get(pk=self.app.pk)

        with patch.object(
            ApplicationQueryService, "get_application", side_effect=[stale, fresh],
        ):
            with self.assertRaises(InvalidTransition) as ctx:
                ApplicationWorkflowService.change_status(
                    self.app.pk, self.reviewer, ApplicationStatus.PENDING_VERIFICATION,
                )

        self.assertEqual(ctx.exception.current, ApplicationStatus.PENDING_DOCUMENTS)
        self.app.refresh_from_db()
        self.assertEqual(self.app.status, ApplicationStatus.PENDING_DOCUMENTS)


class TestResolve(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.masjid = Masjid.objects.create(name="Masjid Al-Noor", zip_code="60601")
        cls.applicant = User.objects.create_user(
            username="amina", password="Zakat!Pass123", email="amina@zakat.test",
            role=UserRole.APPLICANT,
        )
        cls.reviewer = User.objects.create_user(
            username="reviewer", password="Zakat!Pass123", email="reviewer@zakat.test",
            role=UserRole.ZAKAT_ADMIN, masjid=cls.masjid,
        )

    def setUp(self):
        draft = ApplicationCreationService.create_draft(self.applicant)
        ApplicationWorkflowService.submit(draft.pk, self.applicant)
        self.app = ApplicationAssignmentService.claim(draft.pk, self.reviewer)

    def test_approve_writes_status_and_resolution_together(self):
        app = ApplicationWorkflowService.resolve(
            self.app.pk, self.reviewer, "approved", amount_approved=Decimal("500.00"),
        )

        self.assertEqual(app.status, ApplicationStatus.APPROVED)
        self.assertEqual(app.resolution_decision, "approved")
        self.assertEqual(app.amount_approved, Decimal("500.00"))
        self.assertEqual(app.resolution_decided_by, self.reviewer)
        self.assertEqual(app.resolution_decided_by_masjid, self.masjid)
        self.assertIsNotNone(app.resolution_decided_at)
        self.assertEqual(app.rejection_reason, "")

        entry = ApplicationHistory.objects.get(application=self.app, action=HistoryAction.APPROVED)
        self.assertEqual(entry.details, "Application approved for $500.00")
        self.assertTrue(
            Notification.objects.filter(
                recipient=self.applicant, notification_type="application_approved",
            ).exists()
        )

    def test_reject_requires_reason(self):
        with self.assertRaises(InvalidArgument):
            ApplicationWorkflowService.resolve(self.app.pk, self.reviewer, "rejected")

        self.app.refresh_from_db()
        self.assertEqual(self.app.status, ApplicationStatus.UNDER_REVIEW)

    def test_approve_requires_positive_amount(self):
        for amount in (None, Decimal("0"), Decimal("-5")):
            with self.subTest(amount=amount):
                with self.assertRaises(InvalidArgument):
                    ApplicationWorkflowService.resolve(
                        self.app.pk, self.reviewer, "approved", amount_approved=amount,
                    )

    def test_unknown_decision_fails_invalid_argument(self):
        with self.assertRaises(InvalidArgument):
            ApplicationWorkflowService.resolve(self.app.pk, self.reviewer, "deferred")

    def test_resolve_outside_review_fails_invalid_state(self):
        ApplicationWorkflowService.resolve(
            self.app.pk, self.reviewer, "rejected", rejection_reason="Incomplete",
        )

        with self.assertRaises(InvalidState):
            ApplicationWorkflowService.resolve(
                self.app.pk, self.reviewer, "approved", amount_approved=Decimal("10"),
            )

    def test_resolution_notes_become_visible_note(self):
        ApplicationWorkflowService.resolve(
            self.app.pk, self.reviewer, "rejected",
            rejection_reason="Over income threshold",
            notes="You may reapply next year.",
        )

        note = AdminNote.objects.get(application=self.app)
        self.assertFalse(note.is_internal)
        self.assertEqual(note.content, "You may reapply next year.")

    def test_resolve_from_pending_documents(self):
        ApplicationWorkflowService.change_status(
            self.app.pk, self.reviewer, ApplicationStatus.PENDING_DOCUMENTS,
        )

        app = ApplicationWorkflowService.resolve(
            self.app.pk, self.reviewer, "rejected", rejection_reason="Documents never provided",
        )

        self.assertEqual(app.status, ApplicationStatus.REJECTED)


class TestChangeStatusOutsideTable(TestCase):
    """
    Every (current, requested) pair missing from the transition table is
    refused by the service and leaves the stored application untouched.
    """

    @classmethod
    def setUpTestData(cls):
        cls.masjid = Masjid.objects.create(name="Masjid Al-Noor", zip_code="60601")
        cls.applicant = User.objects.create_user(
            username="amina", password="Zakat!Pass123", email="amina@zakat.test",
            role=UserRole.APPLICANT,
        )
        cls.reviewer = User.objects.create_user(
            username="reviewer", password="Zakat!Pass123", email="reviewer@zakat.test",
            role=UserRole.ZAKAT_ADMIN, masjid=cls.masjid,
        )
        draft = ApplicationCreationService.create_draft(cls.applicant)
        ApplicationWorkflowService.submit(draft.pk, cls.applicant)
        cls.app = ApplicationAssignmentService.claim(draft.pk, cls.reviewer)

    def test_every_pair_outside_table_is_refused(self):
        status_changes = ApplicationHistory.objects.filter(
            application=self.app, action=HistoryAction.STATUS_CHANGED,
        )
        checked = 0

        for current in ApplicationStatus.values:
            Application.objects.filter(pk=self.app.pk).update(status=current)
            before = Application.objects.get(pk=self.app.pk)
            disallowed = [
                target for target in ApplicationStatus.values
                if target not in VALID_STATUS_TRANSITIONS[current]
            ]

            for target in disallowed:
                with self.subTest(current=current, target=target):
                    with self.assertRaises(InvalidTransition):
                        ApplicationWorkflowService.change_status(
                            self.app.pk, self.reviewer, target,
                        )

                    after = Application.objects.get(pk=self.app.pk)
                    self.assertEqual(after.status, current)
                    self.assertEqual(after.assigned_to_id, before.assigned_to_id)
                    self.assertEqual(after.updated_at, before.updated_at)
                    self.assertFalse(status_changes.exists())
                checked += 1

        # Self loops alone account for one refused pair per status.
        self.assertGreaterEqual(checked, len(ApplicationStatus.values))

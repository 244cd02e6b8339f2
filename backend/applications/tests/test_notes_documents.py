"""
Service tests — reviewer notes, history visibility and document requests.
"""

from __future__ import annotations

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings

from accounts.models import Masjid, UserRole
from applications.models import (
    ApplicationStatus,
    DocumentRequestState,
    HistoryAction,
)
from applications.services import (
    AdminNoteService,
    ApplicationAssignmentService,
    ApplicationCreationService,
    ApplicationHistoryService,
    ApplicationWorkflowService,
    DocumentRequestService,
)
from core.domain.exceptions import InvalidArgument, NotFound
from core.models import Notification

User = get_user_model()


class _ClaimedApplicationMixin:

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
        draft = ApplicationCreationService.create_draft(cls.applicant)
        ApplicationWorkflowService.submit(draft.pk, cls.applicant)
        cls.app = ApplicationAssignmentService.claim(draft.pk, cls.reviewer)


class TestAdminNotes(_ClaimedApplicationMixin, TestCase):

    def test_internal_note_does_not_notify_applicant(self):
        note = AdminNoteService.add_note(self.app.pk, self.reviewer, "  Verified employer by phone.  ")

        self.assertTrue(note.is_internal)
        self.assertEqual(note.content, "Verified employer by phone.")
        self.assertEqual(note.created_by_name, "Yusuf Ali")
        self.assertEqual(note.created_by_masjid, self.masjid)
        self.assertFalse(
            Notification.objects.filter(recipient=self.applicant, notification_type="note_added").exists()
        )

    def test_visible_note_notifies_applicant(self):
        AdminNoteService.add_note(self.app.pk, self.reviewer, "Please call us.", is_internal=False)

        self.assertTrue(
            Notification.objects.filter(recipient=self.applicant, notification_type="note_added").exists()
        )

    def test_empty_note_fails_invalid_argument(self):
        with self.assertRaises(InvalidArgument):
            AdminNoteService.add_note(self.app.pk, self.reviewer, "   ")

    @override_settings(ZAKAT_NOTE_MAX_LENGTH=10)
    def test_overlong_note_fails_invalid_argument(self):
        with self.assertRaises(InvalidArgument):
            AdminNoteService.add_note(self.app.pk, self.reviewer, "x" * 11)

    def test_note_on_missing_application_fails_not_found(self):
        with self.assertRaises(NotFound):
            AdminNoteService.add_note(987654, self.reviewer, "Hello")

    def test_list_notes_hides_internal_for_applicant_view(self):
        AdminNoteService.add_note(self.app.pk, self.reviewer, "Internal only")
        AdminNoteService.add_note(self.app.pk, self.reviewer, "For the applicant", is_internal=False)

        all_notes = [n.content for n in AdminNoteService.list_notes(self.app.pk)]
        visible = [n.content for n in AdminNoteService.list_notes(self.app.pk, include_internal=False)]

        self.assertEqual(all_notes, ["For the applicant", "Internal only"])
        self.assertEqual(visible, ["For the applicant"])


class TestHistoryVisibility(_ClaimedApplicationMixin, TestCase):

    def test_history_is_newest_first(self):
        actions = [entry.action for entry in ApplicationHistoryService.get_history(self.app.pk)]

        self.assertEqual(
            actions,
            [HistoryAction.ASSIGNED, HistoryAction.SUBMITTED, HistoryAction.CREATED],
        )

    def test_internal_note_entries_hidden_from_applicant_view(self):
        AdminNoteService.add_note(self.app.pk, self.reviewer, "Internal only")
        AdminNoteService.add_note(self.app.pk, self.reviewer, "Visible", is_internal=False)

        full = ApplicationHistoryService.get_history(self.app.pk)
        public = ApplicationHistoryService.get_history(self.app.pk, include_internal=False)

        self.assertEqual(full.filter(action=HistoryAction.NOTE_ADDED).count(), 2)
        self.assertEqual(public.filter(action=HistoryAction.NOTE_ADDED).count(), 1)

    def test_history_of_missing_application_fails_not_found(self):
        with self.assertRaises(NotFound):
            ApplicationHistoryService.get_history(555555)


class TestDocumentRequests(_ClaimedApplicationMixin, TestCase):

    def test_request_document_notifies_applicant(self):
        doc = DocumentRequestService.request_document(
            self.app.pk, self.reviewer, "pay_stub", description="Last two months",
        )

        self.assertEqual(doc.state, DocumentRequestState.REQUESTED)
        self.assertEqual(doc.requested_by_name, "Yusuf Ali")
        notification = Notification.objects.get(
            recipient=self.applicant, notification_type="document_requested",
        )
        self.assertIn("pay_stub", notification.message)

    def test_request_does_not_change_application_status(self):
        DocumentRequestService.request_document(self.app.pk, self.reviewer, "pay_stub")

        self.app.refresh_from_db()
        self.assertEqual(self.app.status, ApplicationStatus.UNDER_REVIEW)

    def test_empty_document_type_fails_invalid_argument(self):
        with self.assertRaises(InvalidArgument):
            DocumentRequestService.request_document(self.app.pk, self.reviewer, "  ")

    def test_fulfill_then_verify(self):
        doc = DocumentRequestService.request_document(self.app.pk, self.reviewer, "lease")

        doc = DocumentRequestService.fulfill_request(
            self.app.pk, doc.pk, "uploads/lease.pdf", file_name="lease.pdf",
            requesting_user=self.applicant,
        )
        self.assertEqual(doc.state, DocumentRequestState.FULFILLED)

        doc = DocumentRequestService.verify_request(self.app.pk, doc.pk, self.reviewer, True)
        self.assertEqual(doc.state, DocumentRequestState.VERIFIED)
        self.assertEqual(doc.verified_by, self.reviewer)

    def test_last_required_upload_tells_reviewer_all_submitted(self):
        doc = DocumentRequestService.request_document(self.app.pk, self.reviewer, "lease")

        DocumentRequestService.fulfill_request(
            self.app.pk, doc.pk, "uploads/lease.pdf", requesting_user=self.applicant,
        )

        notification = Notification.objects.get(
            recipient=self.reviewer, notification_type="document_uploaded",
        )
        self.assertTrue(notification.message.endswith("All required documents have been submitted."))

    def test_upload_with_outstanding_requests_omits_completion(self):
        first = DocumentRequestService.request_document(self.app.pk, self.reviewer, "lease")
        DocumentRequestService.request_document(self.app.pk, self.reviewer, "photo_id")

        DocumentRequestService.fulfill_request(
            self.app.pk, first.pk, "uploads/lease.pdf", requesting_user=self.applicant,
        )

        notification = Notification.objects.get(
            recipient=self.reviewer, notification_type="document_uploaded",
        )
        self.assertNotIn("All required documents", notification.message)

    def test_rejection_notifies_and_reupload_clears_verdict(self):
        doc = DocumentRequestService.request_document(self.app.pk, self.reviewer, "lease")
        DocumentRequestService.fulfill_request(
            self.app.pk, doc.pk, "uploads/lease.pdf", requesting_user=self.applicant,
        )

        doc = DocumentRequestService.verify_request(
            self.app.pk, doc.pk, self.reviewer, False, notes="Page 2 missing",
        )
        self.assertEqual(doc.state, DocumentRequestState.REJECTED)
        notification = Notification.objects.get(
            recipient=self.applicant, notification_type="document_rejected",
        )
        self.assertIn("Page 2 missing", notification.message)

        doc = DocumentRequestService.fulfill_request(
            self.app.pk, doc.pk, "uploads/lease-v2.pdf", requesting_user=self.applicant,
        )
        self.assertEqual(doc.state, DocumentRequestState.FULFILLED)
        self.assertIsNone(doc.verified_by)
        self.assertEqual(doc.verification_notes, "")

    def test_verify_before_upload_fails_not_found(self):
        doc = DocumentRequestService.request_document(self.app.pk, self.reviewer, "lease")

        with self.assertRaises(NotFound):
            DocumentRequestService.verify_request(self.app.pk, doc.pk, self.reviewer, True)

    def test_request_on_other_application_fails_not_found(self):
        doc = DocumentRequestService.request_document(self.app.pk, self.reviewer, "lease")
        other = ApplicationCreationService.create_draft(self.applicant)

        with self.assertRaises(NotFound):
            DocumentRequestService.fulfill_request(
                other.pk, doc.pk, "uploads/lease.pdf", requesting_user=self.applicant,
            )

    def test_fulfill_requires_storage_path(self):
        doc = DocumentRequestService.request_document(self.app.pk, self.reviewer, "lease")

        with self.assertRaises(InvalidArgument):
            DocumentRequestService.fulfill_request(self.app.pk, doc.pk, "")

    def test_document_history_entries(self):
        doc = DocumentRequestService.request_document(self.app.pk, self.reviewer, "lease")
        DocumentRequestService.fulfill_request(
            self.app.pk, doc.pk, "uploads/lease.pdf", requesting_user=self.applicant,
        )
        DocumentRequestService.verify_request(self.app.pk, doc.pk, self.reviewer, True)

        actions = {
            entry.action for entry in ApplicationHistoryService.get_history(self.app.pk)
        }
        self.assertTrue({
            HistoryAction.DOCUMENT_REQUESTED,
            HistoryAction.DOCUMENT_UPLOADED,
            HistoryAction.DOCUMENT_VERIFIED,
        } <= actions)

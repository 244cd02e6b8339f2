"""
Integration tests for core endpoints.

Scope in this file:
- GET  /api/core/constants/
- GET  /api/core/notifications/
- POST /api/core/notifications/{id}/read/
- POST /api/core/notifications/read-all/
"""

from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from accounts.models import User, UserRole
from applications.models import ApplicationStatus
from applications.services import ApplicationCreationService, ApplicationWorkflowService
from core.domain.notifications import NotificationService
from core.models import Notification


class TestSystemConstants(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.url = reverse("core:system-constants")

    def test_constants_are_public(self):
        response = self.client.get(self.url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        for key in (
            "application_statuses",
            "status_transitions",
            "resolution_decisions",
            "history_actions",
            "document_request_states",
            "disbursement_methods",
            "flag_severities",
            "user_roles",
        ):
            self.assertIn(key, response.data)

    def test_statuses_are_value_label_pairs(self):
        response = self.client.get(self.url)

        statuses = response.data["application_statuses"]
        self.assertEqual([item["value"] for item in statuses], ApplicationStatus.values)
        self.assertIn({"value": "under_review", "label": "Under Review"}, statuses)

    def test_transition_table_is_exposed(self):
        response = self.client.get(self.url)

        transitions = response.data["status_transitions"]
        self.assertEqual(transitions["draft"], ["submitted"])
        self.assertEqual(transitions["approved"], ["disbursed", "closed"])
        self.assertEqual(transitions["closed"], [])

    def test_disbursement_methods_listed(self):
        response = self.client.get(self.url)

        methods = [item["value"] for item in response.data["disbursement_methods"]]
        self.assertIn("check", methods)
        self.assertIn("bank_transfer", methods)


class TestNotificationInbox(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.password = "Inbox!Pass123"
        cls.applicant = User.objects.create_user(
            username="inbox_applicant",
            password=cls.password,
            email="inbox_applicant@zakat.test",
            phone_number="+13125550301",
            role=UserRole.APPLICANT,
        )
        cls.other = User.objects.create_user(
            username="inbox_other",
            password=cls.password,
            email="inbox_other@zakat.test",
            phone_number="+13125550302",
            role=UserRole.APPLICANT,
        )
        draft = ApplicationCreationService.create_draft(cls.applicant)
        cls.application = ApplicationWorkflowService.submit(draft.pk, cls.applicant)
        NotificationService.create(
            actor=None,
            recipients=cls.applicant,
            event_type="note_added",
            payload={"application_number": cls.application.application_number},
            related_object=cls.application,
        )

    def setUp(self):
        self.client = APIClient()
        self.list_url = reverse("core:notification-list")

    def login(self, user: User) -> None:
        response = self.client.post(
            reverse("accounts:login"),
            {"email": user.email, "password": self.password},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK, msg=response.data)
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def test_requires_authentication(self):
        response = self.client.get(self.list_url)
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_lists_own_notifications_newest_first(self):
        self.login(self.applicant)

        response = self.client.get(self.list_url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(
            [item["notification_type"] for item in response.data],
            ["note_added", "application_submitted"],
        )
        self.assertEqual(response.data[0]["object_id"], self.application.pk)
        self.assertIn(self.application.application_number, response.data[1]["message"])

    def test_other_user_sees_nothing(self):
        self.login(self.other)

        response = self.client.get(self.list_url)

        self.assertEqual(response.data, [])

    def test_mark_one_as_read(self):
        self.login(self.applicant)
        notification = Notification.objects.filter(recipient=self.applicant).first()

        response = self.client.post(
            reverse("core:notification-mark-as-read", kwargs={"pk": notification.pk}),
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["is_read"])

        unread = self.client.get(self.list_url, {"unread": "true"})
        self.assertEqual(len(unread.data), 1)

    def test_cannot_mark_someone_elses_notification(self):
        self.login(self.other)
        notification = Notification.objects.filter(recipient=self.applicant).first()

        response = self.client.post(
            reverse("core:notification-mark-as-read", kwargs={"pk": notification.pk}),
        )

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data["code"], "not_found")

    def test_mark_all_as_read(self):
        self.login(self.applicant)

        response = self.client.post(reverse("core:notification-mark-all-as-read"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["updated"], 2)
        self.assertFalse(
            Notification.objects.filter(recipient=self.applicant, is_read=False).exists()
        )

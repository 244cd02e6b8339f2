"""
Integration tests — flagging applicants over the HTTP API.

Endpoints under test:
    POST /api/flags/                 (flag-list)
    GET  /api/flags/                 (flag-list)
    POST /api/flags/{id}/resolve/    (flag-resolve)
"""

from __future__ import annotations

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from accounts.models import Masjid, UserRole
from applications.models import ApplicantFlag, Application
from applications.services import ApplicationCreationService

User = get_user_model()

_PASSWORD = "Zakat!Flag2025"


class TestFlagFlow(TestCase):

    @classmethod
    def setUpTestData(cls) -> None:
        cls.masjid = Masjid.objects.create(name="Masjid Al-Noor", zip_code="60601")
        cls.applicant = User.objects.create_user(
            username="flag_applicant",
            password=_PASSWORD,
            email="flag_applicant@zakat.test",
            first_name="Maryam",
            last_name="Hassan",
            role=UserRole.APPLICANT,
        )
        cls.reviewer = User.objects.create_user(
            username="flag_reviewer",
            password=_PASSWORD,
            email="flag_reviewer@zakat.test",
            first_name="Khalid",
            last_name="Rahman",
            role=UserRole.ZAKAT_ADMIN,
            masjid=cls.masjid,
        )
        cls.application = ApplicationCreationService.create_draft(cls.applicant)

    def setUp(self) -> None:
        self.client = APIClient()

    # ── Helpers ──────────────────────────────────────────────────────

    def login(self, user: User) -> None:
        response = self.client.post(
            reverse("accounts:login"),
            {"email": user.email, "password": _PASSWORD},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK, msg=response.data)
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def raise_flag(
        self, reason: str = "Duplicate identity documents", expected: int = status.HTTP_201_CREATED,
    ):
        response = self.client.post(
            reverse("flag-list"),
            {
                "applicant": self.applicant.pk,
                "application": self.application.pk,
                "reason": reason,
                "severity": "blocked",
            },
            format="json",
        )
        self.assertEqual(response.status_code, expected, msg=response.data)
        return response

    def resolve(
        self, pk: int, notes: str = "Verified in person.", expected: int = status.HTTP_200_OK,
    ):
        response = self.client.post(
            reverse("flag-resolve", kwargs={"pk": pk}),
            {"resolution_notes": notes},
            format="json",
        )
        self.assertEqual(response.status_code, expected, msg=response.data)
        return response

    # ── Tests ────────────────────────────────────────────────────────

    def test_reviewer_flags_and_resolves(self):
        self.login(self.reviewer)

        created = self.raise_flag().data
        self.assertTrue(created["is_active"])
        self.assertEqual(created["severity"], "blocked")
        self.assertEqual(created["applicant_name"], "Maryam Hassan")
        self.assertEqual(created["application_number"], self.application.application_number)
        self.assertEqual(created["flagged_by_name"], "Khalid Rahman")
        self.assertTrue(Application.objects.get(pk=self.application.pk).applicant_is_flagged)

        listing = self.client.get(reverse("flag-list"), {"is_active": "true"})
        self.assertEqual(listing.status_code, status.HTTP_200_OK)
        self.assertEqual([row["id"] for row in listing.data], [created["id"]])

        resolved = self.resolve(created["id"]).data
        self.assertFalse(resolved["is_active"])
        self.assertEqual(resolved["resolution_notes"], "Verified in person.")
        self.applicant.refresh_from_db()
        self.assertFalse(self.applicant.is_flagged)

    def test_resolving_twice_conflicts(self):
        self.login(self.reviewer)
        pk = self.raise_flag().data["id"]
        self.resolve(pk)

        response = self.resolve(pk, expected=status.HTTP_409_CONFLICT)

        self.assertEqual(response.data["code"], "invalid_state")

    def test_empty_reason_rejected(self):
        self.login(self.reviewer)

        response = self.raise_flag(reason="", expected=status.HTTP_400_BAD_REQUEST)

        self.assertEqual(response.data["code"], "invalid_argument")
        self.assertFalse(ApplicantFlag.objects.exists())

    def test_applicant_cannot_use_flags(self):
        self.login(self.applicant)

        self.raise_flag(expected=status.HTTP_403_FORBIDDEN)
        response = self.client.get(reverse("flag-list"))

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(ApplicantFlag.objects.exists())

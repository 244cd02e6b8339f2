"""
Accounts app models.

Defines the ``Masjid`` organisation a reviewer belongs to and a custom
``User`` model that extends Django's ``AbstractUser`` with a fixed role
(applicant, zakat admin, super admin), an optional masjid affiliation
and the contact details that are snapshotted onto applications.
"""

from django.contrib.auth.models import AbstractUser
from django.db import models

from core.models import TimeStampedModel


class UserRole(models.TextChoices):
    APPLICANT = "applicant", "Applicant"
    ZAKAT_ADMIN = "zakat_admin", "Zakat Admin"
    SUPER_ADMIN = "super_admin", "Super Admin"


class Masjid(TimeStampedModel):
    """
    A masjid (mosque) that reviews applications and distributes funds.

    Reviewers carry a masjid affiliation; claims and disbursements are
    attributed to it for reporting.
    """

    name = models.CharField(max_length=255, verbose_name="Name")
    zip_code = models.CharField(
        max_length=10,
        blank=True,
        default="",
        verbose_name="ZIP Code",
    )
    is_active = models.BooleanField(default=True, verbose_name="Active")

    class Meta:
        verbose_name = "Masjid"
        verbose_name_plural = "Masajid"
        ordering = ["name"]

    def __str__(self):
        return self.name


class User(AbstractUser):
    """
    Custom user model for the zakat case-management system.

    Each user holds exactly **one** role.  Applicants file applications;
    zakat admins claim and review them on behalf of their masjid; super
    admins see everything.  Users sign in with their email address and
    password (``accounts.backends.EmailBackend``).
    """

    email = models.EmailField(
        unique=True,
        verbose_name="Email Address",
    )
    phone_number = models.CharField(
        max_length=20,
        blank=True,
        default="",
        verbose_name="Phone Number",
        db_index=True,
    )
    role = models.CharField(
        max_length=20,
        choices=UserRole.choices,
        default=UserRole.APPLICANT,
        db_index=True,
        verbose_name="Role",
    )
    masjid = models.ForeignKey(
        Masjid,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="members",
        verbose_name="Masjid",
    )
    is_flagged = models.BooleanField(
        default=False,
        verbose_name="Flagged",
        help_text="Applicant flagged for additional scrutiny.",
    )

    REQUIRED_FIELDS = ["email", "first_name", "last_name"]

    class Meta:
        verbose_name = "User"
        verbose_name_plural = "Users"

    def __str__(self):
        return f"{self.username} ({self.get_full_name()}) - {self.get_role_display()}"

    # ── Helper predicates for role checks ────────────────────────────

    @property
    def display_name(self) -> str:
        """Full name, falling back to email then username."""
        return self.get_full_name() or self.email or self.username

    @property
    def is_applicant(self) -> bool:
        return self.role == UserRole.APPLICANT

    @property
    def is_zakat_admin(self) -> bool:
        return self.role == UserRole.ZAKAT_ADMIN

    @property
    def is_super_admin(self) -> bool:
        return self.role == UserRole.SUPER_ADMIN or self.is_superuser

    @property
    def is_reviewer(self) -> bool:
        """Zakat admins and super admins may claim and review applications."""
        return self.is_zakat_admin or self.is_super_admin

"""
Applications app models.

Defines the zakat ``Application`` (the case record moving through the
review lifecycle), its immutable ``AdminNote`` entries, the append-only
``ApplicationHistory`` audit ledger and the ``DocumentRequest``
sub-workflow records, plus ``ApplicantFlag`` for applicants flagged
for fraud or eligibility concerns.

Snapshot fields
---------------
``applicant_name``, ``applicant_email`` and ``applicant_phone`` are copied
from the applicant's ``User`` row when the application is created and are
**never** refreshed afterwards.  They record who applied, as they were at
the time; profile edits made later do not propagate.

``applicant_is_flagged`` starts as a copy of ``User.is_flagged`` too, but
``FlagService`` keeps it in step with the applicant's active flags so that
every masjid reviewing one of their applications sees the flag.
"""

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.models import TimeStampedModel


class ApplicationStatus(models.TextChoices):
    DRAFT = "draft", "Draft"
    SUBMITTED = "submitted", "Submitted"
    UNDER_REVIEW = "under_review", "Under Review"
    PENDING_DOCUMENTS = "pending_documents", "Pending Documents"
    PENDING_VERIFICATION = "pending_verification", "Pending Verification"
    APPROVED = "approved", "Approved"
    REJECTED = "rejected", "Rejected"
    DISBURSED = "disbursed", "Disbursed"
    CLOSED = "closed", "Closed"


#: Statuses in which an application is held by a reviewer and can be released.
ACTIVE_REVIEW_STATUSES = frozenset({
    ApplicationStatus.UNDER_REVIEW,
    ApplicationStatus.PENDING_DOCUMENTS,
    ApplicationStatus.PENDING_VERIFICATION,
})

#: Statuses in which an assigned application counts as held by a reviewer.
HELD_STATUSES = ACTIVE_REVIEW_STATUSES | {ApplicationStatus.SUBMITTED}

#: Statuses that carry a resolution record.
RESOLVED_STATUSES = frozenset({
    ApplicationStatus.APPROVED,
    ApplicationStatus.REJECTED,
    ApplicationStatus.DISBURSED,
    ApplicationStatus.CLOSED,
})


class ResolutionDecision(models.TextChoices):
    APPROVED = "approved", "Approved"
    REJECTED = "rejected", "Rejected"


class HistoryAction(models.TextChoices):
    CREATED = "created", "Created"
    SUBMITTED = "submitted", "Submitted"
    ASSIGNED = "assigned", "Assigned"
    RELEASED = "released", "Released"
    STATUS_CHANGED = "status_changed", "Status Changed"
    NOTE_ADDED = "note_added", "Note Added"
    DOCUMENT_REQUESTED = "document_requested", "Document Requested"
    DOCUMENT_UPLOADED = "document_uploaded", "Document Uploaded"
    DOCUMENT_VERIFIED = "document_verified", "Document Verified"
    APPROVED = "approved", "Approved"
    REJECTED = "rejected", "Rejected"
    DISBURSED = "disbursed", "Disbursed"
    FLAGGED = "flagged", "Flagged"
    EDITED = "edited", "Edited"


#: Form sections an applicant fills in while the application is a draft.
FORM_SECTIONS = (
    "demographics",
    "contact",
    "household",
    "financial",
    "circumstances",
    "zakat_request",
    "references",
)

#: Named document slots on an application.
DOCUMENT_SLOTS = ("photo_id", "ssn_card", "lease_agreement")


def default_documents() -> dict:
    """Empty document bag: one slot per named document plus free-form extras."""
    documents = {slot: None for slot in DOCUMENT_SLOTS}
    documents["other_documents"] = []
    return documents


class Application(TimeStampedModel):
    """
    A zakat assistance application (the case record).

    Lifecycle::

        draft → submitted → under_review ⇄ pending_documents / pending_verification
              → approved / rejected → disbursed → closed

    A submitted application sits in the shared pool until a reviewer
    claims it; claiming sets ``assigned_to`` and moves it to
    ``under_review``.  See ``applications.transitions`` for the full
    transition table.
    """

    application_number = models.CharField(
        max_length=20,
        unique=True,
        null=True,
        blank=True,
        editable=False,
        verbose_name="Application Number",
        help_text="Human-readable number, e.g. ZKT-00000042.  Assigned once at creation.",
    )

    # ── Applicant and creation-time snapshot ─────────────────────────
    applicant = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="applications",
        verbose_name="Applicant",
    )
    applicant_name = models.CharField(max_length=255, blank=True, default="", verbose_name="Applicant Name")
    applicant_email = models.EmailField(blank=True, default="", verbose_name="Applicant Email")
    applicant_phone = models.CharField(max_length=20, blank=True, default="", verbose_name="Applicant Phone")
    applicant_is_flagged = models.BooleanField(default=False, verbose_name="Applicant Flagged")

    status = models.CharField(
        max_length=30,
        choices=ApplicationStatus.choices,
        default=ApplicationStatus.DRAFT,
        db_index=True,
        verbose_name="Status",
    )

    # ── Assignment ───────────────────────────────────────────────────
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assigned_applications",
        verbose_name="Assigned Reviewer",
    )
    assigned_to_masjid = models.ForeignKey(
        "accounts.Masjid",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assigned_applications",
        verbose_name="Assigned Masjid",
    )
    assigned_at = models.DateTimeField(null=True, blank=True, verbose_name="Assigned At")

    # ── Form sections ────────────────────────────────────────────────
    demographics = models.JSONField(default=dict, blank=True)
    contact = models.JSONField(default=dict, blank=True)
    household = models.JSONField(default=list, blank=True)
    financial = models.JSONField(default=dict, blank=True)
    circumstances = models.JSONField(default=dict, blank=True)
    zakat_request = models.JSONField(default=dict, blank=True)
    references = models.JSONField(default=list, blank=True)
    documents = models.JSONField(default=default_documents, blank=True)
    previous_applications = models.JSONField(default=list, blank=True)

    # ── Resolution ───────────────────────────────────────────────────
    resolution_decision = models.CharField(
        max_length=20,
        choices=ResolutionDecision.choices,
        blank=True,
        default="",
        verbose_name="Decision",
    )
    resolution_decided_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="resolved_applications",
        verbose_name="Decided By",
    )
    resolution_decided_by_masjid = models.ForeignKey(
        "accounts.Masjid",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="resolved_applications",
        verbose_name="Decided By Masjid",
    )
    resolution_decided_at = models.DateTimeField(null=True, blank=True, verbose_name="Decided At")
    amount_approved = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        verbose_name="Amount Approved",
    )
    rejection_reason = models.TextField(blank=True, default="", verbose_name="Rejection Reason")

    submitted_at = models.DateTimeField(null=True, blank=True, verbose_name="Submitted At")

    class Meta:
        verbose_name = "Application"
        verbose_name_plural = "Applications"
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["status", "assigned_to"], name="app_status_assignee_idx"),
            models.Index(fields=["applicant", "created_at"], name="app_applicant_created_idx"),
        ]

    def __str__(self):
        return f"{self.application_number or 'Draft'} - {self.applicant_name} ({self.get_status_display()})"

    @staticmethod
    def format_number(sequence: int) -> str:
        """Render ``sequence`` as ``<PREFIX>-XXXXXXXX``."""
        prefix = getattr(settings, "ZAKAT_APPLICATION_NUMBER_PREFIX", "ZKT")
        return f"{prefix}-{sequence:08d}"

    @property
    def is_assigned(self) -> bool:
        return self.assigned_to_id is not None

    @property
    def has_resolution(self) -> bool:
        return bool(self.resolution_decision)


class AdminNote(models.Model):
    """
    A reviewer's note on an application.  Notes are immutable once
    written.  Internal notes are visible to reviewers only; the others
    are shown to the applicant as messages.
    """

    application = models.ForeignKey(
        Application,
        on_delete=models.CASCADE,
        related_name="admin_notes",
        verbose_name="Application",
    )
    content = models.TextField(verbose_name="Content")
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="application_notes",
        verbose_name="Author",
    )
    created_by_name = models.CharField(max_length=255, blank=True, default="", verbose_name="Author Name")
    created_by_masjid = models.ForeignKey(
        "accounts.Masjid",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        verbose_name="Author Masjid",
    )
    is_internal = models.BooleanField(default=True, verbose_name="Internal")
    created_at = models.DateTimeField(auto_now_add=True, verbose_name="Created At")

    class Meta:
        verbose_name = "Admin Note"
        verbose_name_plural = "Admin Notes"
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"Note #{self.pk} on {self.application_id} by {self.created_by_name}"


class ApplicationHistory(models.Model):
    """
    Append-only audit entry describing one event on an application.

    Entries are never updated.  They are written best-effort after the
    primary change, so a missing entry does not mean the change did not
    happen; the ``Application`` row is authoritative.
    """

    application = models.ForeignKey(
        Application,
        on_delete=models.CASCADE,
        related_name="history",
        verbose_name="Application",
    )
    action = models.CharField(
        max_length=30,
        choices=HistoryAction.choices,
        verbose_name="Action",
    )
    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="application_history_entries",
        verbose_name="Performed By",
    )
    performed_by_name = models.CharField(max_length=255, blank=True, default="")
    performed_by_role = models.CharField(max_length=20, blank=True, default="")
    performed_by_masjid = models.ForeignKey(
        "accounts.Masjid",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    previous_status = models.CharField(max_length=30, blank=True, default="")
    new_status = models.CharField(max_length=30, blank=True, default="")
    previous_assignee = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    new_assignee = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    details = models.TextField(blank=True, default="")
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, verbose_name="Created At")

    class Meta:
        verbose_name = "Application History Entry"
        verbose_name_plural = "Application History"
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["application", "created_at"], name="app_history_app_created_idx"),
        ]

    def __str__(self):
        return f"{self.get_action_display()} on {self.application_id} by {self.performed_by_name}"


class DocumentRequestState(models.TextChoices):
    REQUESTED = "requested", "Requested"
    FULFILLED = "fulfilled", "Fulfilled"
    VERIFIED = "verified", "Verified"
    REJECTED = "rejected", "Rejected"


class DocumentRequest(TimeStampedModel):
    """
    A reviewer's request for an additional document from the applicant.

    State is derived from the fulfillment and verification fields::

        requested → fulfilled → verified | rejected
                        ↑______________________|   (re-upload clears verification)
    """

    application = models.ForeignKey(
        Application,
        on_delete=models.CASCADE,
        related_name="document_requests",
        verbose_name="Application",
    )
    document_type = models.CharField(max_length=100, verbose_name="Document Type")
    description = models.TextField(blank=True, default="", verbose_name="Description")
    required = models.BooleanField(default=True, verbose_name="Required")

    requested_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="document_requests_made",
        verbose_name="Requested By",
    )
    requested_by_name = models.CharField(max_length=255, blank=True, default="")
    requested_at = models.DateTimeField(default=timezone.now, verbose_name="Requested At")

    # ── Fulfillment ──────────────────────────────────────────────────
    storage_path = models.CharField(max_length=500, blank=True, default="", verbose_name="Storage Path")
    file_name = models.CharField(max_length=255, blank=True, default="", verbose_name="File Name")
    fulfilled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    fulfilled_at = models.DateTimeField(null=True, blank=True, verbose_name="Fulfilled At")

    # ── Verification ─────────────────────────────────────────────────
    verified = models.BooleanField(null=True, blank=True, verbose_name="Verified")
    verified_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    verified_by_name = models.CharField(max_length=255, blank=True, default="")
    verified_at = models.DateTimeField(null=True, blank=True, verbose_name="Verified At")
    verification_notes = models.TextField(blank=True, default="")

    class Meta:
        verbose_name = "Document Request"
        verbose_name_plural = "Document Requests"
        ordering = ["-requested_at", "-id"]

    def __str__(self):
        return f"{self.document_type} for {self.application_id} ({self.state})"

    @property
    def is_fulfilled(self) -> bool:
        return self.fulfilled_at is not None

    @property
    def state(self) -> str:
        if self.fulfilled_at is None:
            return DocumentRequestState.REQUESTED
        if self.verified is None:
            return DocumentRequestState.FULFILLED
        return DocumentRequestState.VERIFIED if self.verified else DocumentRequestState.REJECTED


class FlagSeverity(models.TextChoices):
    WARNING = "warning", "Warning"
    BLOCKED = "blocked", "Blocked"


class ApplicantFlag(TimeStampedModel):
    """
    A reviewer's flag on an applicant (fraud or eligibility concern).

    A flag is active until resolved; resolution is one-way.  The
    applicant's ``User.is_flagged`` is set while at least one of their
    flags is active.
    """

    applicant = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="flags",
        verbose_name="Applicant",
    )
    application = models.ForeignKey(
        Application,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="flags",
        verbose_name="Related Application",
    )
    reason = models.TextField(verbose_name="Reason")
    severity = models.CharField(
        max_length=10,
        choices=FlagSeverity.choices,
        default=FlagSeverity.WARNING,
        verbose_name="Severity",
    )

    flagged_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="flags_raised",
        verbose_name="Flagged By",
    )
    flagged_by_name = models.CharField(max_length=255, blank=True, default="")
    flagged_by_masjid = models.ForeignKey(
        "accounts.Masjid",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="flags_raised",
        verbose_name="Flagged By Masjid",
    )

    # ── Resolution ───────────────────────────────────────────────────
    is_active = models.BooleanField(default=True, db_index=True, verbose_name="Active")
    resolved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        verbose_name="Resolved By",
    )
    resolved_at = models.DateTimeField(null=True, blank=True, verbose_name="Resolved At")
    resolution_notes = models.TextField(blank=True, default="", verbose_name="Resolution Notes")

    class Meta:
        verbose_name = "Applicant Flag"
        verbose_name_plural = "Applicant Flags"
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["applicant", "is_active"], name="flag_applicant_active_idx"),
        ]

    def __str__(self):
        state = "active" if self.is_active else "resolved"
        return f"Flag #{self.pk} on user {self.applicant_id} ({self.severity}, {state})"

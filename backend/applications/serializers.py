"""
Applications app serializers.

Contains all Request and Response serializers for the Applications API.
Serializers handle field definitions, read/write constraints, and field-level
validation only.  **No business logic or workflow transitions live here**;
those belong in ``services.py``.

Structure
---------
1. Filter / query-param serializers
2. Application read serializers (list, detail)
3. Application write serializers (create, draft save)
4. Workflow action serializers (release, status change, resolve)
5. Sub-resource serializers (notes, history, document requests)
6. Applicant flag serializers
"""

from __future__ import annotations

from typing import Any

from rest_framework import serializers

from .models import (
    FORM_SECTIONS,
    AdminNote,
    ApplicantFlag,
    Application,
    ApplicationHistory,
    ApplicationStatus,
    DocumentRequest,
    FlagSeverity,
    ResolutionDecision,
)
from .transitions import allowed_targets


# ═══════════════════════════════════════════════════════════════════
#  1. Filter / Query-Parameter Serializers
# ═══════════════════════════════════════════════════════════════════


class ApplicationFilterSerializer(serializers.Serializer):
    """
    Validates and cleans query-parameter filters for ``GET /api/applications/``.

    All fields are optional.  The view passes the validated dict directly
    to ``ApplicationQueryService.get_filtered_queryset``.
    """

    status = serializers.ChoiceField(
        choices=ApplicationStatus.choices,
        required=False,
        help_text="Filter by status. Options: " + ", ".join(ApplicationStatus.values) + ".",
    )
    pool = serializers.BooleanField(
        required=False,
        default=False,
        help_text="Reviewers only: list the unassigned submitted pool.",
    )
    assigned_to = serializers.IntegerField(required=False, min_value=1, help_text="PK of the assigned reviewer.")
    masjid = serializers.IntegerField(required=False, min_value=1, help_text="PK of the assigned masjid.")
    applicant = serializers.IntegerField(required=False, min_value=1, help_text="PK of the applicant.")
    search = serializers.CharField(
        required=False,
        max_length=255,
        help_text="Match against application number, applicant name or email.",
    )


# ═══════════════════════════════════════════════════════════════════
#  2. Application Read Serializers
# ═══════════════════════════════════════════════════════════════════


class ApplicationListSerializer(serializers.ModelSerializer):
    """Compact representation for list and pool endpoints."""

    status_display = serializers.CharField(source="get_status_display", read_only=True)

    class Meta:
        model = Application
        fields = [
            "id",
            "application_number",
            "applicant",
            "applicant_name",
            "applicant_is_flagged",
            "status",
            "status_display",
            "assigned_to",
            "assigned_to_masjid",
            "submitted_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ApplicationDetailSerializer(serializers.ModelSerializer):
    """
    Full application including form sections, assignment and resolution.

    ``allowed_transitions`` lists the statuses reachable from the current
    one according to the transition table.
    """

    status_display = serializers.CharField(source="get_status_display", read_only=True)
    assigned_to_name = serializers.SerializerMethodField()
    allowed_transitions = serializers.SerializerMethodField()

    class Meta:
        model = Application
        fields = [
            "id",
            "application_number",
            "applicant",
            "applicant_name",
            "applicant_email",
            "applicant_phone",
            "applicant_is_flagged",
            "status",
            "status_display",
            "allowed_transitions",
            "assigned_to",
            "assigned_to_name",
            "assigned_to_masjid",
            "assigned_at",
            *FORM_SECTIONS,
            "documents",
            "previous_applications",
            "resolution_decision",
            "resolution_decided_by",
            "resolution_decided_by_masjid",
            "resolution_decided_at",
            "amount_approved",
            "rejection_reason",
            "submitted_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_assigned_to_name(self, obj: Application) -> str | None:
        if obj.assigned_to is None:
            return None
        return obj.assigned_to.display_name

    def get_allowed_transitions(self, obj: Application) -> list[str]:
        return allowed_targets(obj.status)


# ═══════════════════════════════════════════════════════════════════
#  3. Application Write Serializers
# ═══════════════════════════════════════════════════════════════════


class ApplicationSectionsSerializer(serializers.Serializer):
    """
    Form sections accepted on create and draft save.

    Each section is free-form JSON; only its container type is checked.
    """

    demographics = serializers.DictField(required=False)
    contact = serializers.DictField(required=False)
    household = serializers.ListField(child=serializers.DictField(), required=False)
    financial = serializers.DictField(required=False)
    circumstances = serializers.DictField(required=False)
    zakat_request = serializers.DictField(required=False)
    references = serializers.ListField(child=serializers.DictField(), required=False)

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        if self.partial and not attrs:
            raise serializers.ValidationError(
                "Provide at least one section to save."
            )
        return attrs


# ═══════════════════════════════════════════════════════════════════
#  4. Workflow Action Serializers
# ═══════════════════════════════════════════════════════════════════


class ReleaseSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="", max_length=1000)


class StatusChangeSerializer(serializers.Serializer):
    """
    Request body for ``POST /api/applications/{id}/change-status/``.

    ``new_status`` is a free string so unknown values reach the state
    machine and are reported as an invalid state rather than a field error.
    """

    new_status = serializers.CharField(max_length=30)
    note = serializers.CharField(required=False, allow_blank=True, default="", max_length=5000)


class ResolveSerializer(serializers.Serializer):
    """
    Request body for ``POST /api/applications/{id}/resolve/``.

    Decision-specific requirements (a positive amount to approve, a reason
    to reject) are enforced by the service.
    """

    decision = serializers.ChoiceField(choices=ResolutionDecision.choices)
    amount_approved = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        required=False,
        allow_null=True,
    )
    rejection_reason = serializers.CharField(required=False, allow_blank=True, default="")
    notes = serializers.CharField(required=False, allow_blank=True, default="", max_length=5000)


# ═══════════════════════════════════════════════════════════════════
#  5. Sub-resource Serializers
# ═══════════════════════════════════════════════════════════════════


class AdminNoteCreateSerializer(serializers.Serializer):
    content = serializers.CharField(allow_blank=True, trim_whitespace=False)
    is_internal = serializers.BooleanField(required=False, default=True)


class AdminNoteSerializer(serializers.ModelSerializer):
    class Meta:
        model = AdminNote
        fields = [
            "id",
            "application",
            "content",
            "created_by",
            "created_by_name",
            "created_by_masjid",
            "is_internal",
            "created_at",
        ]
        read_only_fields = fields


class ApplicationHistorySerializer(serializers.ModelSerializer):
    action_display = serializers.CharField(source="get_action_display", read_only=True)

    class Meta:
        model = ApplicationHistory
        fields = [
            "id",
            "action",
            "action_display",
            "performed_by",
            "performed_by_name",
            "performed_by_role",
            "performed_by_masjid",
            "previous_status",
            "new_status",
            "previous_assignee",
            "new_assignee",
            "details",
            "metadata",
            "created_at",
        ]
        read_only_fields = fields


class DocumentRequestCreateSerializer(serializers.Serializer):
    document_type = serializers.CharField(max_length=100)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    required = serializers.BooleanField(required=False, default=True)


class DocumentFulfillSerializer(serializers.Serializer):
    storage_path = serializers.CharField(max_length=500)
    file_name = serializers.CharField(required=False, allow_blank=True, default="", max_length=255)


class DocumentVerifySerializer(serializers.Serializer):
    verified = serializers.BooleanField()
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class DocumentRequestSerializer(serializers.ModelSerializer):
    state = serializers.CharField(read_only=True)

    class Meta:
        model = DocumentRequest
        fields = [
            "id",
            "application",
            "document_type",
            "description",
            "required",
            "state",
            "requested_by",
            "requested_by_name",
            "requested_at",
            "storage_path",
            "file_name",
            "fulfilled_by",
            "fulfilled_at",
            "verified",
            "verified_by",
            "verified_by_name",
            "verified_at",
            "verification_notes",
        ]
        read_only_fields = fields


# ═══════════════════════════════════════════════════════════════════
#  6. Applicant Flag Serializers
# ═══════════════════════════════════════════════════════════════════


class FlagFilterSerializer(serializers.Serializer):
    is_active = serializers.BooleanField(required=False, allow_null=True, default=None)
    severity = serializers.ChoiceField(choices=FlagSeverity.choices, required=False)
    applicant = serializers.IntegerField(required=False, min_value=1)
    masjid = serializers.IntegerField(required=False, min_value=1)


class FlagCreateSerializer(serializers.Serializer):
    """
    Request body for ``POST /api/flags/``.

    An empty ``reason`` is passed through so the service reports it as
    an ``invalid_argument`` error.
    """

    applicant = serializers.IntegerField(min_value=1)
    application = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    reason = serializers.CharField(allow_blank=True, max_length=2000)
    severity = serializers.ChoiceField(choices=FlagSeverity.choices, default=FlagSeverity.WARNING)


class FlagResolveSerializer(serializers.Serializer):
    resolution_notes = serializers.CharField(allow_blank=True, max_length=5000)


class ApplicantFlagSerializer(serializers.ModelSerializer):
    severity_display = serializers.CharField(source="get_severity_display", read_only=True)
    applicant_name = serializers.CharField(source="applicant.display_name", read_only=True)
    applicant_email = serializers.EmailField(source="applicant.email", read_only=True)
    application_number = serializers.CharField(
        source="application.application_number",
        read_only=True,
        default=None,
    )

    class Meta:
        model = ApplicantFlag
        fields = [
            "id",
            "applicant",
            "applicant_name",
            "applicant_email",
            "application",
            "application_number",
            "reason",
            "severity",
            "severity_display",
            "flagged_by",
            "flagged_by_name",
            "flagged_by_masjid",
            "is_active",
            "resolved_by",
            "resolved_at",
            "resolution_notes",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

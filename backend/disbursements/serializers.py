"""
Disbursements app serializers.

Request serializers validate field shapes only; the amount, method and
period rules are enforced by ``DisbursementService``.  Summary
serializers render the plain dicts returned by
``DisbursementSummaryService``.
"""

from __future__ import annotations

from rest_framework import serializers

from .models import Disbursement, DisbursementMethod


# ═══════════════════════════════════════════════════════════════════
#  Request Serializers
# ═══════════════════════════════════════════════════════════════════


class DisbursementCreateSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    method = serializers.CharField(
        max_length=20,
        help_text="Options: " + ", ".join(DisbursementMethod.values) + ".",
    )
    reference_number = serializers.CharField(required=False, allow_blank=True, default="", max_length=100)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    period_month = serializers.IntegerField(required=False, allow_null=True, default=None)
    period_year = serializers.IntegerField(required=False, allow_null=True, default=None, min_value=2000, max_value=9999)


class SummaryLimitSerializer(serializers.Serializer):
    limit = serializers.IntegerField(required=False, min_value=1, max_value=1000)


# ═══════════════════════════════════════════════════════════════════
#  Response Serializers
# ═══════════════════════════════════════════════════════════════════


class DisbursementSerializer(serializers.ModelSerializer):
    method_display = serializers.CharField(source="get_method_display", read_only=True)
    application_number = serializers.CharField(source="application.application_number", read_only=True)

    class Meta:
        model = Disbursement
        fields = [
            "id",
            "application",
            "application_number",
            "applicant",
            "amount",
            "method",
            "method_display",
            "reference_number",
            "notes",
            "disbursed_by",
            "disbursed_by_name",
            "masjid",
            "masjid_name",
            "disbursed_at",
            "period_month",
            "period_year",
            "created_at",
        ]
        read_only_fields = fields


class MasjidBreakdownSerializer(serializers.Serializer):
    masjid_id = serializers.IntegerField()
    masjid_name = serializers.CharField()
    total_disbursed = serializers.DecimalField(max_digits=14, decimal_places=2)
    disbursement_count = serializers.IntegerField()


class ApplicantBreakdownSerializer(serializers.Serializer):
    applicant_id = serializers.IntegerField()
    applicant_name = serializers.CharField()
    total_disbursed = serializers.DecimalField(max_digits=14, decimal_places=2)
    disbursement_count = serializers.IntegerField()


class ApplicationDisbursementSummarySerializer(serializers.Serializer):
    application_id = serializers.IntegerField()
    total_disbursed = serializers.DecimalField(max_digits=14, decimal_places=2)
    disbursement_count = serializers.IntegerField()
    last_disbursed_at = serializers.DateTimeField(allow_null=True)
    disbursements = DisbursementSerializer(many=True)


class ApplicantDisbursementSummarySerializer(serializers.Serializer):
    applicant_id = serializers.IntegerField()
    applicant_name = serializers.CharField()
    total_disbursed = serializers.DecimalField(max_digits=14, decimal_places=2)
    disbursement_count = serializers.IntegerField()
    application_count = serializers.IntegerField()
    last_disbursed_at = serializers.DateTimeField(allow_null=True)
    by_masjid = MasjidBreakdownSerializer(many=True)
    disbursements = DisbursementSerializer(many=True)


class MasjidDisbursementSummarySerializer(serializers.Serializer):
    masjid_id = serializers.IntegerField()
    masjid_name = serializers.CharField()
    total_disbursed = serializers.DecimalField(max_digits=14, decimal_places=2)
    disbursement_count = serializers.IntegerField()
    applicant_count = serializers.IntegerField()
    last_disbursed_at = serializers.DateTimeField(allow_null=True)
    by_applicant = ApplicantBreakdownSerializer(many=True)
    disbursements = DisbursementSerializer(many=True)


class ApplicantTotalsSerializer(serializers.Serializer):
    applicant_id = serializers.IntegerField()
    applicant_name = serializers.CharField()
    total_disbursed = serializers.DecimalField(max_digits=14, decimal_places=2)
    disbursement_count = serializers.IntegerField()
    last_disbursed_at = serializers.DateTimeField(allow_null=True)
    by_masjid = MasjidBreakdownSerializer(many=True)


class AllApplicantsDisbursementSummarySerializer(serializers.Serializer):
    total_disbursed = serializers.DecimalField(max_digits=14, decimal_places=2)
    total_applicants = serializers.IntegerField()
    applicants = ApplicantTotalsSerializer(many=True)

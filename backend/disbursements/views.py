"""
Disbursements app views.

Thin views: validate with a serializer, call ``disbursements.services``,
render the result.

View Map
--------
- ``ApplicationDisbursementViewSet`` — GET/POST
  ``/api/applications/{application_pk}/disbursements/``
- ``ApplicantDisbursementSummaryView`` — GET
  ``/api/disbursements/applicants/{applicant_id}/summary/``
- ``MasjidDisbursementSummaryView`` — GET
  ``/api/disbursements/masajid/{masjid_id}/summary/``
- ``AllApplicantsDisbursementSummaryView`` — GET
  ``/api/disbursements/summary/`` (super admin)
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status, viewsets
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.permissions import IsSuperAdmin, IsZakatAdmin
from applications.permissions import CanManageApplication
from applications.services import ApplicationQueryService
from core.domain.access import require_role
from core.domain.exceptions import PermissionDenied

from .serializers import (
    AllApplicantsDisbursementSummarySerializer,
    ApplicantDisbursementSummarySerializer,
    ApplicationDisbursementSummarySerializer,
    DisbursementCreateSerializer,
    DisbursementSerializer,
    MasjidDisbursementSummarySerializer,
    SummaryLimitSerializer,
)
from .services import DisbursementService, DisbursementSummaryService


class ApplicationDisbursementViewSet(viewsets.ViewSet):
    """
    Ledger of one application.

    Reviewers managing the application record payments; the applicant and
    any reviewer can read the ledger.
    """

    permission_classes = [IsAuthenticated]

    def get_permissions(self):
        if self.action == "create":
            return [IsAuthenticated(), IsZakatAdmin(), CanManageApplication()]
        return super().get_permissions()

    @extend_schema(
        summary="List disbursements for an application",
        responses={
            200: OpenApiResponse(response=ApplicationDisbursementSummarySerializer, description="Ledger with totals."),
            404: OpenApiResponse(description="Application not found."),
        },
        tags=["Disbursements"],
    )
    def list(self, request: Request, application_pk=None) -> Response:
        application = ApplicationQueryService.get_application_for_user(int(application_pk), request.user)
        summary = DisbursementSummaryService.get_application_disbursements(application.pk)
        return Response(ApplicationDisbursementSummarySerializer(summary).data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Record a disbursement",
        description=(
            "Record a payment against an approved (or already disbursed) "
            "application. Does not change the application's status."
        ),
        request=DisbursementCreateSerializer,
        responses={
            201: OpenApiResponse(response=DisbursementSerializer, description="Disbursement recorded."),
            400: OpenApiResponse(description="Invalid amount, method or period."),
            403: OpenApiResponse(description="You do not manage this application."),
            409: OpenApiResponse(description="Application is not approved."),
        },
        tags=["Disbursements"],
    )
    def create(self, request: Request, application_pk=None) -> Response:
        application = ApplicationQueryService.get_application_for_user(int(application_pk), request.user)
        self.check_object_permissions(request, application)

        serializer = DisbursementCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        disbursement = DisbursementService.record_disbursement(
            request.user,
            application.pk,
            **serializer.validated_data,
        )
        return Response(DisbursementSerializer(disbursement).data, status=status.HTTP_201_CREATED)


class ApplicantDisbursementSummaryView(APIView):
    """
    GET /api/disbursements/applicants/{applicant_id}/summary/

    Applicants may read their own summary; reviewers may read anyone's.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Applicant disbursement summary",
        responses={
            200: OpenApiResponse(response=ApplicantDisbursementSummarySerializer, description="Summary."),
            403: OpenApiResponse(description="Not your summary."),
            404: OpenApiResponse(description="Applicant not found."),
        },
        tags=["Disbursements"],
    )
    def get(self, request: Request, applicant_id: int) -> Response:
        if request.user.pk != applicant_id:
            require_role(
                request.user, "zakat_admin", "super_admin",
                message="You don't have permission to view this user's disbursement summary.",
            )
        summary = DisbursementSummaryService.get_applicant_disbursement_summary(applicant_id)
        return Response(ApplicantDisbursementSummarySerializer(summary).data, status=status.HTTP_200_OK)


class MasjidDisbursementSummaryView(APIView):
    """
    GET /api/disbursements/masajid/{masjid_id}/summary/

    Zakat admins read their own masjid's summary; super admins read any.
    """

    permission_classes = [IsAuthenticated, IsZakatAdmin]

    @extend_schema(
        summary="Masjid disbursement summary",
        responses={
            200: OpenApiResponse(response=MasjidDisbursementSummarySerializer, description="Summary."),
            403: OpenApiResponse(description="Not your masjid."),
            404: OpenApiResponse(description="Masjid not found."),
        },
        tags=["Disbursements"],
    )
    def get(self, request: Request, masjid_id: int) -> Response:
        if not request.user.is_super_admin and request.user.masjid_id != masjid_id:
            raise PermissionDenied("You can only view your own masjid's disbursements.")
        summary = DisbursementSummaryService.get_masjid_disbursement_summary(masjid_id)
        return Response(MasjidDisbursementSummarySerializer(summary).data, status=status.HTTP_200_OK)


class AllApplicantsDisbursementSummaryView(APIView):
    """GET /api/disbursements/summary/ (super admin)."""

    permission_classes = [IsAuthenticated, IsSuperAdmin]

    @extend_schema(
        summary="All applicants disbursement summary",
        parameters=[
            OpenApiParameter(name="limit", type=int, location=OpenApiParameter.QUERY, description="Maximum applicant entries."),
        ],
        responses={
            200: OpenApiResponse(response=AllApplicantsDisbursementSummarySerializer, description="Summary."),
            403: OpenApiResponse(description="Super admins only."),
        },
        tags=["Disbursements"],
    )
    def get(self, request: Request) -> Response:
        params = SummaryLimitSerializer(data=request.query_params)
        params.is_valid(raise_exception=True)
        summary = DisbursementSummaryService.get_all_applicants_disbursement_summary(
            params.validated_data.get("limit"),
        )
        return Response(AllApplicantsDisbursementSummarySerializer(summary).data, status=status.HTTP_200_OK)

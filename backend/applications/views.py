"""
Applications app ViewSets.

Architecture: Views are intentionally thin.
Every view follows the strict three-step pattern:

    1. Parse / validate input via a serializer.
    2. Delegate all business logic to the appropriate service class.
    3. Serialize the result and return a DRF ``Response``.

ViewSets
--------
- ``ApplicationViewSet``     — Application CRUD plus workflow, assignment
  and sub-resource @actions (notes, history).
- ``DocumentRequestViewSet`` — Nested under an application:
  ``/api/applications/{application_pk}/document-requests/``.
- ``ApplicantFlagViewSet``   — Reviewer flags on applicants: ``/api/flags/``.

Permission Strategy
-------------------
Role checks use the permission classes from ``accounts.permissions``,
selected per action in ``get_permissions``.  Reviewer actions on a single
application additionally run ``CanManageApplication`` through
``check_object_permissions``.  Ownership and state rules are enforced by
the service layer.
"""

from __future__ import annotations

import logging

from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
)
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response

from accounts.permissions import IsApplicant, IsZakatAdmin

from .models import Application
from .permissions import CanManageApplication, IsApplicationOwner
from .serializers import (
    AdminNoteCreateSerializer,
    AdminNoteSerializer,
    ApplicantFlagSerializer,
    ApplicationDetailSerializer,
    ApplicationFilterSerializer,
    ApplicationHistorySerializer,
    ApplicationListSerializer,
    ApplicationSectionsSerializer,
    DocumentFulfillSerializer,
    DocumentRequestCreateSerializer,
    DocumentRequestSerializer,
    DocumentVerifySerializer,
    FlagCreateSerializer,
    FlagFilterSerializer,
    FlagResolveSerializer,
    ReleaseSerializer,
    ResolveSerializer,
    StatusChangeSerializer,
)
from .services import (
    AdminNoteService,
    ApplicationAssignmentService,
    ApplicationCreationService,
    ApplicationHistoryService,
    ApplicationQueryService,
    ApplicationWorkflowService,
    DocumentRequestService,
    FlagService,
)

logger = logging.getLogger(__name__)


class ApplicationViewSet(viewsets.ViewSet):
    """
    Central ViewSet for the applications app.

    Uses ``viewsets.ViewSet`` (not ``ModelViewSet``) so every action is
    explicitly defined.
    """

    permission_classes = [IsAuthenticated]
    lookup_value_regex = r"\d+"

    _APPLICANT_ACTIONS = {"create", "partial_update", "submit"}
    _REVIEWER_ACTIONS = {"pool", "claim", "release"}
    _MANAGER_ACTIONS = {"change_status", "resolve"}

    def get_permissions(self):
        if self.action in self._APPLICANT_ACTIONS:
            return [IsAuthenticated(), IsApplicant(), IsApplicationOwner()]
        if self.action in self._REVIEWER_ACTIONS:
            return [IsAuthenticated(), IsZakatAdmin()]
        if self.action in self._MANAGER_ACTIONS:
            return [IsAuthenticated(), IsZakatAdmin(), CanManageApplication()]
        return super().get_permissions()

    # ── Helpers ──────────────────────────────────────────────────────

    def _get_application(self, request: Request, pk) -> Application:
        """Load a visible application and run object-level permissions."""
        application = ApplicationQueryService.get_application_for_user(int(pk), request.user)
        self.check_object_permissions(request, application)
        return application

    def _detail(self, request: Request, application: Application, code: int = status.HTTP_200_OK) -> Response:
        serializer = ApplicationDetailSerializer(application, context={"request": request})
        return Response(serializer.data, status=code)

    # ── Standard CRUD ────────────────────────────────────────────────

    @extend_schema(
        summary="List applications",
        description=(
            "List applications visible to the authenticated user. Applicants "
            "see their own, zakat admins see their masjid's and their own "
            "assignments, super admins see all."
        ),
        parameters=[
            OpenApiParameter(name="status", type=str, location=OpenApiParameter.QUERY, description="Filter by status."),
            OpenApiParameter(name="pool", type=bool, location=OpenApiParameter.QUERY, description="Reviewers: list the unassigned pool."),
            OpenApiParameter(name="assigned_to", type=int, location=OpenApiParameter.QUERY, description="Filter by assigned reviewer PK."),
            OpenApiParameter(name="masjid", type=int, location=OpenApiParameter.QUERY, description="Filter by assigned masjid PK."),
            OpenApiParameter(name="applicant", type=int, location=OpenApiParameter.QUERY, description="Filter by applicant PK."),
            OpenApiParameter(name="search", type=str, location=OpenApiParameter.QUERY, description="Search number, name or email."),
        ],
        responses={
            200: OpenApiResponse(response=ApplicationListSerializer(many=True), description="Filtered list of applications."),
        },
        tags=["Applications"],
    )
    def list(self, request: Request) -> Response:
        filter_serializer = ApplicationFilterSerializer(data=request.query_params)
        filter_serializer.is_valid(raise_exception=True)

        qs = ApplicationQueryService.get_filtered_queryset(
            request.user, filter_serializer.validated_data,
        )
        serializer = ApplicationListSerializer(qs, many=True)
        return Response(serializer.data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Start a new application",
        description="Create a draft application for the authenticated applicant. Any form sections may be sent up front.",
        request=ApplicationSectionsSerializer,
        responses={
            201: OpenApiResponse(response=ApplicationDetailSerializer, description="Draft created."),
            400: OpenApiResponse(description="Validation error."),
            403: OpenApiResponse(description="Only applicants can create applications."),
        },
        tags=["Applications"],
    )
    def create(self, request: Request) -> Response:
        serializer = ApplicationSectionsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        application = ApplicationCreationService.create_draft(
            request.user, serializer.validated_data,
        )
        return self._detail(request, application, status.HTTP_201_CREATED)

    @extend_schema(
        summary="Retrieve application",
        responses={
            200: OpenApiResponse(response=ApplicationDetailSerializer, description="Full application detail."),
            404: OpenApiResponse(description="Application not found."),
        },
        tags=["Applications"],
    )
    def retrieve(self, request: Request, pk=None) -> Response:
        application = self._get_application(request, pk)
        return self._detail(request, application)

    @extend_schema(
        summary="Save draft sections",
        description="Overwrite one or more form sections on the applicant's own draft.",
        request=ApplicationSectionsSerializer,
        responses={
            200: OpenApiResponse(response=ApplicationDetailSerializer, description="Draft saved."),
            400: OpenApiResponse(description="Validation error."),
            403: OpenApiResponse(description="Not the owner."),
            409: OpenApiResponse(description="Application is no longer a draft."),
        },
        tags=["Applications"],
    )
    def partial_update(self, request: Request, pk=None) -> Response:
        self._get_application(request, pk)
        serializer = ApplicationSectionsSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        application = ApplicationCreationService.save_draft(
            int(pk), request.user, serializer.validated_data,
        )
        return self._detail(request, application)

    # ── Pool & Assignment @actions ───────────────────────────────────

    @action(detail=False, methods=["get"], url_path="pool")
    @extend_schema(
        summary="List the unassigned pool",
        description="Submitted applications that no reviewer holds, newest first.",
        responses={
            200: OpenApiResponse(response=ApplicationListSerializer(many=True), description="Pool."),
            403: OpenApiResponse(description="Reviewers only."),
        },
        tags=["Applications – Assignment"],
    )
    def pool(self, request: Request) -> Response:
        qs = ApplicationQueryService.list_pool()
        return Response(ApplicationListSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="claim")
    @extend_schema(
        summary="Claim application",
        description="Take an unassigned, submitted application for review (submitted → under_review).",
        request=None,
        responses={
            200: OpenApiResponse(response=ApplicationDetailSerializer, description="Application claimed."),
            404: OpenApiResponse(description="Application not found."),
            409: OpenApiResponse(description="Already assigned, or not in submitted status."),
        },
        tags=["Applications – Assignment"],
    )
    def claim(self, request: Request, pk=None) -> Response:
        application = ApplicationAssignmentService.claim(int(pk), request.user)
        return self._detail(request, application)

    @action(detail=True, methods=["post"], url_path="release")
    @extend_schema(
        summary="Release application",
        description="Return an application you hold to the pool (→ submitted).",
        request=ReleaseSerializer,
        responses={
            200: OpenApiResponse(response=ApplicationDetailSerializer, description="Application released."),
            403: OpenApiResponse(description="Not assigned to you."),
            409: OpenApiResponse(description="Not in an active review status."),
        },
        tags=["Applications – Assignment"],
    )
    def release(self, request: Request, pk=None) -> Response:
        serializer = ReleaseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        application = ApplicationAssignmentService.release(
            int(pk), request.user, serializer.validated_data["reason"],
        )
        return self._detail(request, application)

    # ── Workflow @actions ────────────────────────────────────────────

    @action(detail=True, methods=["post"], url_path="submit")
    @extend_schema(
        summary="Submit application",
        description="Applicant submits their draft into the review pool (draft → submitted).",
        request=None,
        responses={
            200: OpenApiResponse(response=ApplicationDetailSerializer, description="Submitted."),
            403: OpenApiResponse(description="Not the owner."),
            409: OpenApiResponse(description="Not a draft."),
        },
        tags=["Applications – Workflow"],
    )
    def submit(self, request: Request, pk=None) -> Response:
        self._get_application(request, pk)
        application = ApplicationWorkflowService.submit(int(pk), request.user)
        return self._detail(request, application)

    @action(detail=True, methods=["post"], url_path="change-status")
    @extend_schema(
        summary="Change application status",
        description=(
            "Move the application along the transition table. Submit and claim "
            "have their own endpoints and are refused here."
        ),
        request=StatusChangeSerializer,
        responses={
            200: OpenApiResponse(response=ApplicationDetailSerializer, description="Status changed."),
            403: OpenApiResponse(description="You do not manage this application."),
            409: OpenApiResponse(description="Invalid state or transition."),
        },
        tags=["Applications – Workflow"],
    )
    def change_status(self, request: Request, pk=None) -> Response:
        self._get_application(request, pk)
        serializer = StatusChangeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        application = ApplicationWorkflowService.change_status(
            int(pk),
            request.user,
            serializer.validated_data["new_status"],
            serializer.validated_data["note"],
        )
        return self._detail(request, application)

    @action(detail=True, methods=["post"], url_path="resolve")
    @extend_schema(
        summary="Approve or reject",
        description="Record the decision and move the application to approved or rejected in one step.",
        request=ResolveSerializer,
        responses={
            200: OpenApiResponse(response=ApplicationDetailSerializer, description="Resolved."),
            400: OpenApiResponse(description="Missing amount or rejection reason."),
            403: OpenApiResponse(description="You do not manage this application."),
            409: OpenApiResponse(description="Not under review."),
        },
        tags=["Applications – Workflow"],
    )
    def resolve(self, request: Request, pk=None) -> Response:
        self._get_application(request, pk)
        serializer = ResolveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        application = ApplicationWorkflowService.resolve(
            int(pk),
            request.user,
            data["decision"],
            amount_approved=data.get("amount_approved"),
            rejection_reason=data["rejection_reason"],
            notes=data["notes"],
        )
        return self._detail(request, application)

    # ── Sub-resource @actions ────────────────────────────────────────

    @action(detail=True, methods=["get", "post"], url_path="notes")
    @extend_schema(
        summary="List or add notes",
        description=(
            "GET: reviewers see every note, the applicant sees only notes "
            "addressed to them. POST: reviewers managing the application add a note."
        ),
        request=AdminNoteCreateSerializer,
        responses={
            200: OpenApiResponse(response=AdminNoteSerializer(many=True), description="Notes."),
            201: OpenApiResponse(response=AdminNoteSerializer, description="Note added."),
            400: OpenApiResponse(description="Empty or too long."),
        },
        tags=["Applications – Notes"],
    )
    def notes(self, request: Request, pk=None) -> Response:
        application = ApplicationQueryService.get_application_for_user(int(pk), request.user)

        if request.method == "GET":
            notes = AdminNoteService.list_notes(
                application.pk, include_internal=request.user.is_reviewer,
            )
            return Response(AdminNoteSerializer(notes, many=True).data, status=status.HTTP_200_OK)

        for permission in (IsZakatAdmin(), CanManageApplication()):
            if not permission.has_permission(request, self) or not permission.has_object_permission(request, self, application):
                self.permission_denied(request, message=permission.message)

        serializer = AdminNoteCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        note = AdminNoteService.add_note(
            application.pk,
            request.user,
            serializer.validated_data["content"],
            is_internal=serializer.validated_data["is_internal"],
        )
        return Response(AdminNoteSerializer(note).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["get"], url_path="history")
    @extend_schema(
        summary="Application history",
        description="Audit ledger, newest first. Internal note entries are hidden from the applicant.",
        responses={
            200: OpenApiResponse(response=ApplicationHistorySerializer(many=True), description="History."),
            404: OpenApiResponse(description="Application not found."),
        },
        tags=["Applications – History"],
    )
    def history(self, request: Request, pk=None) -> Response:
        application = ApplicationQueryService.get_application_for_user(int(pk), request.user)
        entries = ApplicationHistoryService.get_history(
            application.pk, include_internal=request.user.is_reviewer,
        )
        return Response(ApplicationHistorySerializer(entries, many=True).data, status=status.HTTP_200_OK)


# ═══════════════════════════════════════════════════════════════════
#  Document Request ViewSet (nested)
# ═══════════════════════════════════════════════════════════════════


class DocumentRequestViewSet(viewsets.ViewSet):
    """
    ``/api/applications/{application_pk}/document-requests/``

    Reviewers managing the application create requests and verify uploads;
    the applicant fulfills them.
    """

    permission_classes = [IsAuthenticated]
    lookup_value_regex = r"\d+"

    def get_permissions(self):
        if self.action in ("create", "verify"):
            return [IsAuthenticated(), IsZakatAdmin(), CanManageApplication()]
        if self.action == "fulfill":
            return [IsAuthenticated(), IsApplicant(), IsApplicationOwner()]
        return super().get_permissions()

    def _get_application(self, request: Request, application_pk) -> Application:
        application = ApplicationQueryService.get_application_for_user(int(application_pk), request.user)
        self.check_object_permissions(request, application)
        return application

    @extend_schema(
        summary="List document requests",
        responses={200: OpenApiResponse(response=DocumentRequestSerializer(many=True), description="Requests, newest first.")},
        tags=["Applications – Documents"],
    )
    def list(self, request: Request, application_pk=None) -> Response:
        application = self._get_application(request, application_pk)
        requests_qs = DocumentRequestService.list_requests(application.pk)
        return Response(DocumentRequestSerializer(requests_qs, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Request a document",
        request=DocumentRequestCreateSerializer,
        responses={
            201: OpenApiResponse(response=DocumentRequestSerializer, description="Request created."),
            400: OpenApiResponse(description="Validation error."),
            403: OpenApiResponse(description="You do not manage this application."),
        },
        tags=["Applications – Documents"],
    )
    def create(self, request: Request, application_pk=None) -> Response:
        application = self._get_application(request, application_pk)
        serializer = DocumentRequestCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        doc_request = DocumentRequestService.request_document(
            application.pk,
            request.user,
            serializer.validated_data["document_type"],
            description=serializer.validated_data["description"],
            required=serializer.validated_data["required"],
        )
        return Response(DocumentRequestSerializer(doc_request).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"], url_path="fulfill")
    @extend_schema(
        summary="Upload a requested document",
        description="Applicant records the stored file for a request. Clears any earlier verification.",
        request=DocumentFulfillSerializer,
        responses={
            200: OpenApiResponse(response=DocumentRequestSerializer, description="Request fulfilled."),
            404: OpenApiResponse(description="Request not on this application."),
        },
        tags=["Applications – Documents"],
    )
    def fulfill(self, request: Request, application_pk=None, pk=None) -> Response:
        application = self._get_application(request, application_pk)
        serializer = DocumentFulfillSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        doc_request = DocumentRequestService.fulfill_request(
            application.pk,
            int(pk),
            serializer.validated_data["storage_path"],
            file_name=serializer.validated_data["file_name"],
            requesting_user=request.user,
        )
        return Response(DocumentRequestSerializer(doc_request).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="verify")
    @extend_schema(
        summary="Verify an uploaded document",
        request=DocumentVerifySerializer,
        responses={
            200: OpenApiResponse(response=DocumentRequestSerializer, description="Verification recorded."),
            404: OpenApiResponse(description="Request absent or not yet fulfilled."),
        },
        tags=["Applications – Documents"],
    )
    def verify(self, request: Request, application_pk=None, pk=None) -> Response:
        application = self._get_application(request, application_pk)
        serializer = DocumentVerifySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        doc_request = DocumentRequestService.verify_request(
            application.pk,
            int(pk),
            request.user,
            serializer.validated_data["verified"],
            notes=serializer.validated_data["notes"],
        )
        return Response(DocumentRequestSerializer(doc_request).data, status=status.HTTP_200_OK)


# ═══════════════════════════════════════════════════════════════════
#  Applicant Flag ViewSet
# ═══════════════════════════════════════════════════════════════════


class ApplicantFlagViewSet(viewsets.ViewSet):
    """
    ``/api/flags/``

    Reviewers flag applicants for fraud or eligibility concerns and
    resolve those flags.  Applicants have no access.
    """

    permission_classes = [IsAuthenticated, IsZakatAdmin]
    lookup_value_regex = r"\d+"

    @extend_schema(
        summary="List applicant flags",
        parameters=[
            OpenApiParameter(name="is_active", type=bool, location=OpenApiParameter.QUERY, description="Only active (true) or resolved (false) flags."),
            OpenApiParameter(name="severity", type=str, location=OpenApiParameter.QUERY, description="warning or blocked."),
            OpenApiParameter(name="applicant", type=int, location=OpenApiParameter.QUERY, description="Flags on one applicant."),
            OpenApiParameter(name="masjid", type=int, location=OpenApiParameter.QUERY, description="Flags raised by one masjid."),
        ],
        responses={200: OpenApiResponse(response=ApplicantFlagSerializer(many=True), description="Flags, newest first.")},
        tags=["Flags"],
    )
    def list(self, request: Request) -> Response:
        filter_serializer = FlagFilterSerializer(data=request.query_params)
        filter_serializer.is_valid(raise_exception=True)
        flags = FlagService.list_flags(filter_serializer.validated_data)
        return Response(ApplicantFlagSerializer(flags, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Flag an applicant",
        description="Marks the applicant and all of their applications as flagged.",
        request=FlagCreateSerializer,
        responses={
            201: OpenApiResponse(response=ApplicantFlagSerializer, description="Flag created."),
            400: OpenApiResponse(description="Missing reason or mismatched application."),
            404: OpenApiResponse(description="Applicant or application not found."),
        },
        tags=["Flags"],
    )
    def create(self, request: Request) -> Response:
        serializer = FlagCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        flag = FlagService.flag_applicant(
            request.user,
            serializer.validated_data["applicant"],
            serializer.validated_data["reason"],
            severity=serializer.validated_data["severity"],
            application_id=serializer.validated_data.get("application"),
        )
        return Response(ApplicantFlagSerializer(flag).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        summary="Retrieve a flag",
        responses={
            200: OpenApiResponse(response=ApplicantFlagSerializer, description="Flag."),
            404: OpenApiResponse(description="Flag not found."),
        },
        tags=["Flags"],
    )
    def retrieve(self, request: Request, pk=None) -> Response:
        flag = FlagService.get_flag(int(pk))
        return Response(ApplicantFlagSerializer(flag).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="resolve")
    @extend_schema(
        summary="Resolve a flag",
        description="The applicant is unflagged once none of their flags is active.",
        request=FlagResolveSerializer,
        responses={
            200: OpenApiResponse(response=ApplicantFlagSerializer, description="Flag resolved."),
            403: OpenApiResponse(description="Only super admins or the flag's author."),
            409: OpenApiResponse(description="Flag already resolved."),
        },
        tags=["Flags"],
    )
    def resolve(self, request: Request, pk=None) -> Response:
        serializer = FlagResolveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        flag = FlagService.resolve_flag(
            int(pk),
            request.user,
            serializer.validated_data["resolution_notes"],
        )
        return Response(ApplicantFlagSerializer(flag).data, status=status.HTTP_200_OK)

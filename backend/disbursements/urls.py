"""
Disbursements app URL configuration.

Included from the project-level ``urls.py`` as::

    path("api/", include("disbursements.urls")),

Endpoint Map
------------
  GET/POST /api/applications/{application_pk}/disbursements/
  GET      /api/disbursements/applicants/{applicant_id}/summary/
  GET      /api/disbursements/masajid/{masjid_id}/summary/
  GET      /api/disbursements/summary/
"""

from django.urls import path
from rest_framework_nested import routers as nested_routers

from applications.urls import router as applications_router

from .views import (
    AllApplicantsDisbursementSummaryView,
    ApplicantDisbursementSummaryView,
    ApplicationDisbursementViewSet,
    MasjidDisbursementSummaryView,
)

# ── Nested router: disbursements under an application ────────────────────────
# Parent lookup kwarg → application_pk
disbursements_router = nested_routers.NestedSimpleRouter(
    parent_router=applications_router,
    parent_prefix=r"applications",
    lookup="application",
)
disbursements_router.register(
    prefix=r"disbursements",
    viewset=ApplicationDisbursementViewSet,
    basename="application-disbursement",
)

urlpatterns = [
    *disbursements_router.urls,
    path(
        "disbursements/applicants/<int:applicant_id>/summary/",
        ApplicantDisbursementSummaryView.as_view(),
        name="applicant-disbursement-summary",
    ),
    path(
        "disbursements/masajid/<int:masjid_id>/summary/",
        MasjidDisbursementSummaryView.as_view(),
        name="masjid-disbursement-summary",
    ),
    path(
        "disbursements/summary/",
        AllApplicantsDisbursementSummaryView.as_view(),
        name="all-disbursement-summary",
    ),
]

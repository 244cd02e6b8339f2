"""
Applications app URL configuration.

Included from the project-level ``urls.py`` as::

    path("api/", include("applications.urls")),

Route Hierarchy
---------------
  /api/applications/                          → list / create
  /api/applications/{id}/                     → retrieve / partial_update
  GET  /api/applications/pool/                → unassigned pool

  ── Workflow & assignment @actions ──────────────────────────────
  POST /api/applications/{id}/submit/
  POST /api/applications/{id}/claim/
  POST /api/applications/{id}/release/
  POST /api/applications/{id}/change-status/
  POST /api/applications/{id}/resolve/

  ── Sub-resources ───────────────────────────────────────────────
  GET/POST /api/applications/{id}/notes/
  GET      /api/applications/{id}/history/
  GET/POST /api/applications/{application_pk}/document-requests/
  POST     /api/applications/{application_pk}/document-requests/{id}/fulfill/
  POST     /api/applications/{application_pk}/document-requests/{id}/verify/

  ── Applicant flags ─────────────────────────────────────────────
  GET/POST /api/flags/
  GET      /api/flags/{id}/
  POST     /api/flags/{id}/resolve/
"""

from rest_framework.routers import DefaultRouter
from rest_framework_nested import routers as nested_routers

from .views import ApplicantFlagViewSet, ApplicationViewSet, DocumentRequestViewSet

router = DefaultRouter()
router.register(
    prefix=r"applications",
    viewset=ApplicationViewSet,
    basename="application",
)
router.register(
    prefix=r"flags",
    viewset=ApplicantFlagViewSet,
    basename="flag",
)

# ── Nested router: document requests ─────────────────────────────────────────
# Parent lookup kwarg → application_pk
document_requests_router = nested_routers.NestedDefaultRouter(
    parent_router=router,
    parent_prefix=r"applications",
    lookup="application",
)
document_requests_router.register(
    prefix=r"document-requests",
    viewset=DocumentRequestViewSet,
    basename="application-document-request",
)

urlpatterns = [
    *router.urls,
    *document_requests_router.urls,
]

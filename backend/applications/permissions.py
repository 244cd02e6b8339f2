"""
Applications app object-level permission classes.

Views call ``self.check_object_permissions(request, application)`` after
loading the application, so these run once the role permission classes
from ``accounts.permissions`` have already passed.
"""

from __future__ import annotations

from rest_framework.permissions import BasePermission


class CanManageApplication(BasePermission):
    """
    Reviewer-side access to a single application.

    Super admins manage every application.  A zakat admin manages the
    applications assigned to them or to their masjid.
    """

    message = "You do not manage this application."

    def has_object_permission(self, request, view, obj) -> bool:
        user = request.user
        if user.is_super_admin:
            return True
        if not user.is_zakat_admin:
            return False
        if obj.assigned_to_id == user.pk:
            return True
        return user.masjid_id is not None and obj.assigned_to_masjid_id == user.masjid_id


class IsApplicationOwner(BasePermission):
    """Applicant-side access: the caller filed the application."""

    message = "You can only act on your own application."

    def has_object_permission(self, request, view, obj) -> bool:
        return obj.applicant_id == request.user.pk

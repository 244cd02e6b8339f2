"""
Accounts app DRF permission classes.

Role-based authorization happens here, at the HTTP boundary.  The
workflow services in ``applications`` and ``disbursements`` assume the
caller has already been authorized for the operation and only enforce
ownership and state rules.
"""

from __future__ import annotations

from rest_framework.permissions import BasePermission

from .models import UserRole


class IsApplicant(BasePermission):
    """Allow only users holding the applicant role."""

    message = "Only applicants can perform this action."

    def has_permission(self, request, view) -> bool:
        user = request.user
        return bool(user and user.is_authenticated and user.role == UserRole.APPLICANT)


class IsZakatAdmin(BasePermission):
    """Allow zakat admins and super admins (reviewers)."""

    message = "Only zakat administrators can perform this action."

    def has_permission(self, request, view) -> bool:
        user = request.user
        return bool(user and user.is_authenticated and user.is_reviewer)


class IsSuperAdmin(BasePermission):
    """Allow only super admins."""

    message = "Only super administrators can perform this action."

    def has_permission(self, request, view) -> bool:
        user = request.user
        return bool(user and user.is_authenticated and user.is_super_admin)

"""
core.domain.access — Role-scoped queryset selectors (shared patterns).

This module provides shared utilities that each app's service layer
calls to obtain querysets filtered by the requesting user's role.

╔══════════════════════════════════════════════════════════════════╗
║  IMPORTANT — Per-app scoping logic does NOT live here.          ║
║  Each app's ``services.py`` owns its own scope config.          ║
║  This module provides:                                          ║
║    1) ``apply_role_scope`` — role-keyed queryset dispatch.      ║
║    2) ``require_role`` — guard that checks the caller's role.   ║
║    3) ``get_user_role_name`` — role-name helper.                ║
╚══════════════════════════════════════════════════════════════════╝

Usage in an app's service layer::

    from core.domain.access import apply_role_scope

    _APPLICATION_SCOPE: ScopeConfig = {
        "super_admin": lambda qs, u: qs,
        "zakat_admin": lambda qs, u: qs.filter(assigned_to_masjid=u.masjid_id),
        "applicant":   lambda qs, u: qs.filter(applicant=u),
    }

    qs = apply_role_scope(Application.objects.all(), user, scope_config=_APPLICATION_SCOPE)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

from django.db.models import QuerySet

from core.domain.exceptions import PermissionDenied

if TYPE_CHECKING:
    from accounts.models import User

# Type alias for a scope filter function.
# Takes (queryset, user) and returns a filtered queryset.
ScopeFilter = Callable[[QuerySet, "User"], QuerySet]

# Role name → scope filter.
ScopeConfig = dict[str, ScopeFilter]


def get_user_role_name(user: User) -> str | None:
    """
    Return the role value for a user, or ``None`` if unauthenticated.

    Django superusers are treated as ``super_admin`` regardless of the
    stored role.
    """
    if not getattr(user, "is_authenticated", False):
        return None
    if user.is_superuser:
        return "super_admin"
    return getattr(user, "role", None) or None


def apply_role_scope(
    queryset: QuerySet,
    user: User,
    *,
    scope_config: ScopeConfig,
    default: str = "none",
) -> QuerySet:
    """
    Apply the scope filter registered for the user's role.

    Args:
        queryset:     Base (unfiltered) queryset.
        user:         The authenticated user.
        scope_config: Mapping of role value → filter function.
        default:      What to do when the role has no entry.
                      ``"none"`` (default) → empty queryset.
                      ``"all"`` → return unfiltered.

    Returns:
        The (possibly filtered) queryset.
    """
    role_name = get_user_role_name(user)

    if role_name and role_name in scope_config:
        return scope_config[role_name](queryset, user)

    if default == "none":
        return queryset.none()
    return queryset


def require_role(user: User, *allowed_roles: str, message: str = "") -> None:
    """
    Guard that raises ``PermissionDenied`` if the user's role is not
    among ``allowed_roles``.

    Example::

        require_role(user, "zakat_admin", "super_admin")
    """
    role_name = get_user_role_name(user)
    if role_name not in allowed_roles:
        raise PermissionDenied(
            message
            or (
                f"Role '{role_name}' is not permitted for this operation. "
                f"Required: {', '.join(allowed_roles)}."
            )
        )

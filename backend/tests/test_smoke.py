"""
Smoke tests — verify that Django boots, URL routing resolves, and
the core domain modules are importable.

These tests require a DB (they use ``@pytest.mark.django_db`` where
needed) but do NOT require real data — they just prove the plumbing
works.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from django.urls import resolve, reverse


# ════════════════════════════════════════════════════════════════════
#  URL Routing Smoke Tests
# ════════════════════════════════════════════════════════════════════

class TestURLRouting:
    """Ensure all top-level app URL names reverse and resolve."""

    EXPECTED_URLS = [
        # (url_name, kwargs, expected_path)
        ("application-list", {}, "/api/applications/"),
        ("application-pool", {}, "/api/applications/pool/"),
        ("application-claim", {"pk": 7}, "/api/applications/7/claim/"),
        ("application-change-status", {"pk": 7}, "/api/applications/7/change-status/"),
        ("application-document-request-list", {"application_pk": 7}, "/api/applications/7/document-requests/"),
        ("application-disbursement-list", {"application_pk": 7}, "/api/applications/7/disbursements/"),
        ("all-disbursement-summary", {}, "/api/disbursements/summary/"),
        ("flag-list", {}, "/api/flags/"),
        ("flag-resolve", {"pk": 3}, "/api/flags/3/resolve/"),
        ("core:system-constants", {}, "/api/core/constants/"),
        ("core:notification-list", {}, "/api/core/notifications/"),
        ("accounts:login", {}, "/api/accounts/auth/login/"),
    ]

    @pytest.mark.parametrize("url_name,kwargs,expected_path", EXPECTED_URLS)
    def test_url_reverses(self, url_name: str, kwargs: dict, expected_path: str):
        """Named URL reverses to the expected path."""
        assert reverse(url_name, kwargs=kwargs) == expected_path

    @pytest.mark.parametrize("url_name,kwargs,expected_path", EXPECTED_URLS)
    def test_url_resolve_matches_view(self, url_name: str, kwargs: dict, expected_path: str):
        """Path resolves to a view function (not a 404)."""
        match = resolve(expected_path)
        assert match.func is not None

    def test_pool_is_not_taken_for_a_detail_lookup(self):
        assert resolve("/api/applications/pool/").url_name == "application-pool"


# ════════════════════════════════════════════════════════════════════
#  Core Domain Module Import Tests
# ════════════════════════════════════════════════════════════════════

class TestCoreDomainImports:
    """Verify that shared domain utility modules are importable."""

    def test_import_exceptions(self):
        from core.domain.exceptions import (
            AlreadyAssigned,
            Conflict,
            DomainError,
            InvalidState,
            InvalidTransition,
            NotFound,
            NotOwner,
            PermissionDenied,
        )
        # Ensure they form an inheritance chain
        assert issubclass(InvalidTransition, Conflict)
        assert issubclass(InvalidState, Conflict)
        assert issubclass(AlreadyAssigned, Conflict)
        assert issubclass(NotOwner, PermissionDenied)
        assert issubclass(Conflict, DomainError)
        assert issubclass(NotFound, DomainError)

    def test_import_notifications(self):
        from core.domain.notifications import NotificationService
        assert hasattr(NotificationService, "create")
        assert hasattr(NotificationService, "notify")

    def test_import_transactions(self):
        from core.domain.transactions import (
            conditional_update,
            lock_for_update,
            run_best_effort,
        )
        assert callable(conditional_update)
        assert callable(run_best_effort)
        assert callable(lock_for_update)

    def test_import_access(self):
        from core.domain.access import (
            apply_role_scope,
            get_user_role_name,
            require_role,
        )
        assert callable(apply_role_scope)
        assert callable(get_user_role_name)
        assert callable(require_role)


# ════════════════════════════════════════════════════════════════════
#  Exception Behaviour Tests
# ════════════════════════════════════════════════════════════════════

class TestDomainExceptions:
    """Unit tests for domain exception classes."""

    def test_domain_error_message(self):
        from core.domain.exceptions import DomainError
        err = DomainError("test message")
        assert str(err) == "test message"

    def test_invalid_transition_structured(self):
        from core.domain.exceptions import InvalidTransition
        err = InvalidTransition(
            current="rejected",
            target="approved",
            reason="Allowed next statuses: closed.",
        )
        assert "rejected" in str(err)
        assert "approved" in str(err)
        assert "Allowed next statuses: closed." in str(err)
        assert err.current == "rejected"
        assert err.target == "approved"

    def test_invalid_transition_plain_message(self):
        from core.domain.exceptions import InvalidTransition
        err = InvalidTransition("Cannot reopen application.")
        assert str(err) == "Cannot reopen application."

    @pytest.mark.parametrize("exc_name,code", [
        ("AlreadyAssigned", "already_assigned"),
        ("NotOwner", "not_owner"),
        ("InvalidTransition", "invalid_transition"),
        ("InvalidState", "invalid_state"),
        ("NotFound", "not_found"),
        ("InvalidArgument", "invalid_argument"),
        ("Internal", "internal"),
    ])
    def test_error_codes(self, exc_name: str, code: str):
        from core.domain import exceptions
        assert getattr(exceptions, exc_name).code == code


# ════════════════════════════════════════════════════════════════════
#  Exception Handler Tests
# ════════════════════════════════════════════════════════════════════

class TestExceptionHandler:
    """Domain errors map to HTTP status + stable code."""

    @pytest.mark.parametrize("exc_name,http_status", [
        ("AlreadyAssigned", 409),
        ("NotOwner", 403),
        ("InvalidTransition", 409),
        ("InvalidState", 409),
        ("NotFound", 404),
        ("InvalidArgument", 400),
        ("Internal", 500),
    ])
    def test_status_mapping(self, exc_name: str, http_status: int):
        from core.domain import exceptions
        from core.domain.exception_handler import domain_exception_handler

        exc = getattr(exceptions, exc_name)()
        response = domain_exception_handler(exc, {"view": None})

        assert response.status_code == http_status
        assert response.data["code"] == exc.code
        assert response.data["detail"] == str(exc)

    def test_database_error_is_reported_as_internal(self):
        from django.db import DatabaseError
        from core.domain.exception_handler import domain_exception_handler

        response = domain_exception_handler(DatabaseError("disk I/O error"), {"view": None})

        assert response.status_code == 500
        assert response.data["code"] == "internal"
        assert "disk" not in response.data["detail"]

    def test_unknown_exception_passes_through(self):
        from core.domain.exception_handler import domain_exception_handler
        assert domain_exception_handler(RuntimeError("boom"), {"view": None}) is None


# ════════════════════════════════════════════════════════════════════
#  Access Helper Unit Tests
# ════════════════════════════════════════════════════════════════════

class TestAccessHelpers:
    """Unit tests for core.domain.access helpers."""

    def _user(self, role: str | None, superuser: bool = False) -> MagicMock:
        user = MagicMock()
        user.is_authenticated = True
        user.is_superuser = superuser
        user.role = role
        return user

    def test_apply_role_scope_unknown_role_default_all(self):
        """Unknown role with default='all' returns unfiltered qs."""
        from core.domain.access import apply_role_scope

        qs = MagicMock()
        result = apply_role_scope(qs, self._user("auditor"), scope_config={}, default="all")
        assert result is qs  # returned unmodified

    def test_apply_role_scope_unknown_role_default_none(self):
        """Unknown role with default='none' returns empty qs."""
        from core.domain.access import apply_role_scope

        qs = MagicMock()
        apply_role_scope(qs, self._user("auditor"), scope_config={}, default="none")
        qs.none.assert_called_once()

    def test_apply_role_scope_dispatches_on_role(self):
        from core.domain.access import apply_role_scope

        qs = MagicMock()
        user = self._user("applicant")
        apply_role_scope(
            qs, user,
            scope_config={"applicant": lambda q, u: q.filter(applicant=u)},
        )
        qs.filter.assert_called_once_with(applicant=user)

    def test_require_role_raises(self):
        """require_role raises PermissionDenied for wrong role."""
        from core.domain.access import require_role
        from core.domain.exceptions import PermissionDenied

        with pytest.raises(PermissionDenied):
            require_role(self._user("applicant"), "zakat_admin", "super_admin")

    def test_get_user_role_name_superuser(self):
        """Superusers are mapped to 'super_admin'."""
        from core.domain.access import get_user_role_name

        assert get_user_role_name(self._user("applicant", superuser=True)) == "super_admin"

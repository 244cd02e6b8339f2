"""
core.domain — Shared domain utilities for cross-app service layers.

Modules
-------
exceptions         Domain-specific exceptions that map cleanly to HTTP responses.
exception_handler  DRF exception handler for those exceptions.
notifications      Notification creation helper (raising and best-effort).
transactions       Conditional updates, best-effort side effects, row locks.
access             Role-scoped queryset selectors.

Usage from any app::

    from core.domain.exceptions import DomainError, InvalidTransition
    from core.domain.notifications import NotificationService
    from core.domain.transactions import conditional_update, run_best_effort
    from core.domain.access import apply_role_scope
"""

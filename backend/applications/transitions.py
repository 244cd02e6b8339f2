"""
Application status state machine.

``VALID_STATUS_TRANSITIONS`` is the complete transition table: every
``ApplicationStatus`` member has an entry, and a missing entry is a
configuration error raised at import time.  There are no self loops, so
repeating a transition to the current status is always rejected.

Two pairs in the table belong to dedicated operations and are refused by
the generic status change:

* ``draft → submitted`` is performed by **submit** (owner check).
* ``submitted → under_review`` is performed by **claim** (the
  application must be unassigned and the reviewer is recorded).

Usage::

    from applications.transitions import validate_status_change

    validate_status_change(application.status, new_status)  # raises
"""

from __future__ import annotations

from django.core.exceptions import ImproperlyConfigured

from core.domain.exceptions import InvalidState, InvalidTransition

from .models import ApplicationStatus

S = ApplicationStatus

VALID_STATUS_TRANSITIONS: dict[str, frozenset[str]] = {
    S.DRAFT: frozenset({S.SUBMITTED}),
    S.SUBMITTED: frozenset({S.UNDER_REVIEW}),
    S.UNDER_REVIEW: frozenset({
        S.PENDING_DOCUMENTS,
        S.PENDING_VERIFICATION,
        S.APPROVED,
        S.REJECTED,
        S.SUBMITTED,
    }),
    S.PENDING_DOCUMENTS: frozenset({S.UNDER_REVIEW, S.APPROVED, S.REJECTED}),
    S.PENDING_VERIFICATION: frozenset({S.UNDER_REVIEW, S.APPROVED, S.REJECTED}),
    S.APPROVED: frozenset({S.DISBURSED, S.CLOSED}),
    S.REJECTED: frozenset({S.CLOSED}),
    S.DISBURSED: frozenset({S.CLOSED}),
    S.CLOSED: frozenset(),
}

#: (current, target) → name of the operation that owns the transition.
RESERVED_TRANSITIONS: dict[tuple[str, str], str] = {
    (S.DRAFT, S.SUBMITTED): "submit",
    (S.SUBMITTED, S.UNDER_REVIEW): "claim",
}

_missing = set(ApplicationStatus.values) - set(VALID_STATUS_TRANSITIONS)
if _missing:
    raise ImproperlyConfigured(
        f"VALID_STATUS_TRANSITIONS has no entry for: {', '.join(sorted(_missing))}"
    )


def is_known_status(value: str) -> bool:
    return value in VALID_STATUS_TRANSITIONS


def is_valid_transition(current: str, requested: str) -> bool:
    """Return ``True`` if ``current → requested`` is in the transition table."""
    return requested in VALID_STATUS_TRANSITIONS.get(current, frozenset())


def allowed_targets(current: str) -> list[str]:
    """Statuses reachable from ``current``, in declaration order."""
    targets = VALID_STATUS_TRANSITIONS.get(current, frozenset())
    return [value for value in ApplicationStatus.values if value in targets]


def validate_transition(current: str, requested: str) -> None:
    """
    Raise unless ``current → requested`` is in the transition table.

    Raises:
        InvalidState:      ``current`` or ``requested`` is not a known status.
        InvalidTransition: the pair is not in the table.
    """
    for value in (current, requested):
        if not is_known_status(value):
            raise InvalidState(f"Unknown application status '{value}'.")

    if not is_valid_transition(current, requested):
        allowed = allowed_targets(current)
        raise InvalidTransition(
            current=current,
            target=requested,
            reason=(
                f"Allowed next statuses: {', '.join(allowed)}."
                if allowed
                else f"'{current}' is a terminal status."
            ),
        )


def validate_status_change(current: str, requested: str) -> None:
    """
    Validate a generic status change.

    Same as ``validate_transition`` but also refuses the pairs that
    belong to a dedicated operation (see ``RESERVED_TRANSITIONS``).
    """
    validate_transition(current, requested)

    operation = RESERVED_TRANSITIONS.get((current, requested))
    if operation is not None:
        raise InvalidTransition(
            current=current,
            target=requested,
            reason=f"Use the {operation} operation for this transition.",
        )

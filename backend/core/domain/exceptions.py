"""
core.domain.exceptions — Domain-specific exception hierarchy.

These exceptions represent business-rule violations inside service layers.
They are deliberately **not** DRF exceptions so that the domain layer stays
framework-agnostic.  The global DRF exception handler in
``core.domain.exception_handler`` maps them to HTTP responses.

Every class carries a stable machine-readable ``code`` which the handler
returns alongside the human-readable ``detail``.  Clients branch on the
code, never on the message text.

Mapping cheatsheet
------------------
┌─────────────────────┬──────────────────────┬──────┬──────────────────────┐
│ Domain Exception    │ Base                 │ HTTP │ code                 │
├─────────────────────┼──────────────────────┼──────┼──────────────────────┤
│ DomainError         │ Exception            │ 400  │ domain_error         │
│ InvalidArgument     │ DomainError          │ 400  │ invalid_argument     │
│ PermissionDenied    │ DomainError          │ 403  │ permission_denied    │
│ NotOwner            │ PermissionDenied     │ 403  │ not_owner            │
│ NotFound            │ DomainError          │ 404  │ not_found            │
│ Conflict            │ DomainError          │ 409  │ conflict             │
│ InvalidState        │ Conflict             │ 409  │ invalid_state        │
│ InvalidTransition   │ Conflict             │ 409  │ invalid_transition   │
│ AlreadyAssigned     │ Conflict             │ 409  │ already_assigned     │
│ Internal            │ DomainError          │ 500  │ internal             │
└─────────────────────┴──────────────────────┴──────┴──────────────────────┘

Recommended usage inside a service::

    from core.domain.exceptions import InvalidTransition

    if not is_valid_transition(current_status, new_status):
        raise InvalidTransition(current=current_status, target=new_status)
"""

from __future__ import annotations


class DomainError(Exception):
    """
    Base class for all domain / business-rule errors.

    Catch this at the view boundary and convert to a 400 Bad Request.
    """

    code = "domain_error"

    def __init__(self, message: str = "A business rule was violated.") -> None:
        self.message = message
        super().__init__(self.message)


class InvalidArgument(DomainError):
    """
    A caller-supplied value is malformed or out of range (non-positive
    amount, empty note, unknown disbursement method, ...).

    Maps to HTTP 400.
    """

    code = "invalid_argument"

    def __init__(self, message: str = "An argument is invalid.") -> None:
        super().__init__(message)


class PermissionDenied(DomainError):
    """
    The authenticated user does not have the required role or permission
    for this operation.

    Maps to HTTP 403.
    """

    code = "permission_denied"

    def __init__(self, message: str = "You do not have permission to perform this action.") -> None:
        super().__init__(message)


class NotOwner(PermissionDenied):
    """
    The caller is not the reviewer currently holding the application.

    Maps to HTTP 403.
    """

    code = "not_owner"

    def __init__(self, message: str = "You are not assigned to this application.") -> None:
        super().__init__(message)


class NotFound(DomainError):
    """
    The requested resource does not exist (or is not visible to the
    requesting user given their role scope).

    Maps to HTTP 404.
    """

    code = "not_found"

    def __init__(self, message: str = "The requested resource was not found.") -> None:
        super().__init__(message)


class Conflict(DomainError):
    """
    The operation conflicts with the current state of the resource.

    Typical usage: duplicate creation attempt, optimistic-lock failure.
    Maps to HTTP 409.
    """

    code = "conflict"

    def __init__(self, message: str = "The operation conflicts with the current state.") -> None:
        super().__init__(message)


class InvalidState(Conflict):
    """
    The resource is not in a status that permits the operation
    (claiming a non-submitted application, releasing a resolved one,
    recording a disbursement before approval).

    Maps to HTTP 409.
    """

    code = "invalid_state"

    def __init__(self, message: str = "The resource is not in a valid state for this operation.") -> None:
        super().__init__(message)


class InvalidTransition(Conflict):
    """
    A state-machine transition that is not allowed from the current status.

    Inherits from ``Conflict`` because an invalid transition IS a conflict
    with the resource's current state.  Maps to HTTP 409.

    Example::

        raise InvalidTransition(
            current="draft",
            target="approved",
            reason="Application must be reviewed first.",
        )
    """

    code = "invalid_transition"

    def __init__(
        self,
        message: str | None = None,
        *,
        current: str | None = None,
        target: str | None = None,
        reason: str | None = None,
    ) -> None:
        if message is None:
            parts = ["Invalid state transition"]
            if current and target:
                parts.append(f"from '{current}' to '{target}'")
            message = " ".join(parts) + "."
            if reason:
                message = f"{message} {reason}"
        super().__init__(message)
        self.current = current
        self.target = target
        self.reason = reason


class AlreadyAssigned(Conflict):
    """
    The application is already held by a reviewer.

    Raised by claim when another reviewer got there first, including the
    case where a concurrent claim won the conditional update.
    Maps to HTTP 409.
    """

    code = "already_assigned"

    def __init__(self, message: str = "This application is already assigned to a reviewer.") -> None:
        super().__init__(message)


class Internal(DomainError):
    """
    The backing store failed in a way the caller cannot correct.

    Storage exceptions never leak to callers; they surface as this.
    Maps to HTTP 500.
    """

    code = "internal"

    def __init__(self, message: str = "An internal error occurred.") -> None:
        super().__init__(message)

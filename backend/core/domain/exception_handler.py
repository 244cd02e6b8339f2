"""
core.domain.exception_handler — DRF-compatible global exception handler.

Maps domain exceptions from ``core.domain.exceptions`` to proper
DRF ``Response`` objects so that views don't need per-endpoint
try/except boilerplate.

Register in ``settings.py``::

    REST_FRAMEWORK = {
        ...
        'EXCEPTION_HANDLER': 'core.domain.exception_handler.domain_exception_handler',
    }

Response body for domain errors::

    {"detail": "<human readable message>", "code": "<stable error code>"}
"""

from __future__ import annotations

import logging

from django.db import DatabaseError
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_default_handler

from core.domain.exceptions import (
    AlreadyAssigned,
    Conflict,
    DomainError,
    Internal,
    InvalidArgument,
    InvalidState,
    InvalidTransition,
    NotFound,
    NotOwner,
    PermissionDenied,
)

logger = logging.getLogger(__name__)

# Domain exception → HTTP status code
_STATUS_MAP: dict[type, int] = {
    NotOwner:          403,
    PermissionDenied:  403,
    NotFound:          404,
    AlreadyAssigned:   409,
    InvalidState:      409,
    InvalidTransition: 409,
    Conflict:          409,
    InvalidArgument:   400,
    Internal:          500,
    DomainError:       400,  # catch-all base class last
}


def domain_exception_handler(exc: Exception, context: dict) -> Response | None:
    """
    DRF exception handler that also handles ``core.domain.exceptions``.

    The default DRF handler is called first.  If it returns ``None``
    (meaning DRF doesn't recognise the exception), we check whether
    it's one of our domain exceptions and return an appropriate response.
    Raw database errors are reported as ``Internal`` so storage details
    never reach the client.
    """
    # Let DRF handle its own exceptions (ValidationError, AuthN, etc.)
    response = drf_default_handler(exc, context)
    if response is not None:
        return response

    if isinstance(exc, DatabaseError):
        logger.error(
            "Storage failure in %s",
            context.get("view", "unknown"),
            exc_info=exc,
        )
        exc = Internal()

    # Check domain exceptions, most specific first
    for exc_class, status_code in _STATUS_MAP.items():
        if isinstance(exc, exc_class):
            if status_code >= 500:
                logger.error(
                    "Internal domain error in %s: %s",
                    context.get("view", "unknown"),
                    exc,
                )
            else:
                logger.warning(
                    "Domain exception [%s] in %s: %s",
                    exc_class.__name__,
                    context.get("view", "unknown"),
                    exc,
                )
            return Response(
                {"detail": str(exc), "code": exc.code},
                status=status_code,
            )

    # Not ours; let it propagate
    return None

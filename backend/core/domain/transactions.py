"""
core.domain.transactions — Helpers for safe state transitions.

Provides utilities that wrap ``transaction.atomic``, conditional
``UPDATE`` statements and ``select_for_update`` into reusable patterns
so that every app's service layer follows the same concurrency-safe
approach.

Design goals
------------
* A primary mutation is a single conditional write: the ``WHERE``
  clause carries the state the caller observed, and the affected row
  count tells the caller whether a concurrent writer got there first.
* Side effects (history entries, notifications) never fail the primary
  mutation.  They run in a savepoint and any error is logged.
* Keep the helpers **generic** — they accept any Django ``Model``
  class and plain field dicts.

Usage::

    from core.domain.transactions import conditional_update, run_best_effort

    rows = conditional_update(
        Application,
        pk=application.pk,
        expected={"status": "submitted", "assigned_to__isnull": True},
        changes={"status": "under_review", "assigned_to": user},
    )
    if rows == 0:
        ...  # lost the race, re-read and report

    run_best_effort(
        ApplicationHistoryService.record,
        application, action="assigned", actor=user,
        label="assignment history",
    )
"""

from __future__ import annotations

import logging
from typing import Any, Callable, TypeVar

from django.db import models, transaction
from django.utils import timezone

from core.domain.exceptions import NotFound

logger = logging.getLogger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=models.Model)


def conditional_update(
    model_class: type[models.Model],
    *,
    pk: Any,
    expected: dict[str, Any],
    changes: dict[str, Any],
) -> int:
    """
    Apply ``changes`` to the row ``pk`` only while it still matches
    ``expected``.

    Runs one ``UPDATE ... WHERE pk = %s AND <expected>`` statement inside
    ``transaction.atomic()``.  ``updated_at`` is stamped automatically
    when the model defines it, since ``QuerySet.update`` bypasses
    ``auto_now``.

    Args:
        model_class: The Django model class.
        pk:          Primary key of the row to update.
        expected:    Field lookups the row must satisfy at write time.
        changes:     Field values to write.

    Returns:
        Number of rows updated (``0`` or ``1``).  ``0`` means the row is
        gone or no longer matches ``expected``; the caller re-reads to
        decide which error to raise.
    """
    values = dict(changes)
    field_names = {f.name for f in model_class._meta.get_fields()}
    if "updated_at" in field_names and "updated_at" not in values:
        values["updated_at"] = timezone.now()

    with transaction.atomic():
        return (
            model_class.objects
            .filter(pk=pk, **expected)
            .update(**values)
        )


def run_best_effort(
    fn: Callable[..., T],
    *args: Any,
    label: str = "side effect",
    **kwargs: Any,
) -> T | None:
    """
    Execute ``fn(*args, **kwargs)`` in a savepoint, swallowing failures.

    Used for secondary writes that must not undo or fail the primary
    mutation that has already been applied.  The savepoint keeps an
    enclosing transaction usable after a database error inside ``fn``.

    Args:
        fn:      Callable to run.
        *args:   Positional arguments forwarded to ``fn``.
        label:   Short description used in the log line on failure.
        **kwargs: Keyword arguments forwarded to ``fn``.

    Returns:
        Whatever ``fn`` returns, or ``None`` if it raised.
    """
    try:
        with transaction.atomic():
            return fn(*args, **kwargs)
    except Exception:
        logger.exception("Best-effort %s failed; primary change kept.", label)
        return None


def lock_for_update(model_class: type[M], pk: Any, **filters: Any) -> M:
    """
    Acquire a row-level lock on the given model instance.

    Convenience wrapper around ``select_for_update().get(pk=pk)``
    that must be called inside an ``atomic()`` block.

    Args:
        model_class: The Django model class.
        pk:          Primary key value.
        **filters:   Extra lookups the row must satisfy (e.g. the parent
                     application for a child record).

    Returns:
        The locked model instance.

    Raises:
        NotFound: If no matching row exists.
    """
    try:
        return model_class.objects.select_for_update().get(pk=pk, **filters)
    except model_class.DoesNotExist:
        raise NotFound(f"{model_class.__name__} with pk={pk} does not exist.")

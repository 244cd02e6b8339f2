"""
core.domain.notifications — Notification creation helper.

Centralises notification creation so every app uses one consistent
entry-point rather than directly constructing ``Notification`` objects.

Design decisions
----------------
* **Persistence only** — this module writes ``Notification`` rows.
  Delivery (email, push) is an external consumer of those rows.
* **Fire-and-forget** — workflow services call ``notify``, which never
  raises: a failed notification is logged and the workflow operation
  that triggered it still succeeds.  ``create`` is the raising variant.
* **Supports multiple recipients** — pass a single ``User`` or an
  iterable of ``User`` instances.
* **Generic relation** — ``related_object`` is optional; if provided
  its ``ContentType`` and PK are stored via the ``Notification`` model's
  ``GenericForeignKey``.
* **Templated text** — titles and messages are ``str.format`` templates
  interpolated with ``payload``.  Missing keys render as empty strings.

Usage::

    from core.domain.notifications import NotificationService

    NotificationService.notify(
        actor=request.user,
        recipients=application.applicant,
        event_type="application_under_review",
        payload={"application_number": application.application_number},
        related_object=application,
    )
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import TYPE_CHECKING, Any, Iterable

from django.contrib.contenttypes.models import ContentType
from django.db import models

from core.domain.transactions import run_best_effort

if TYPE_CHECKING:
    from accounts.models import User
    from core.models import Notification

logger = logging.getLogger(__name__)

# ── Event-type → human-readable templates ───────────────────────────
# Extend this dict as new event types are introduced in app services.
_EVENT_TEMPLATES: dict[str, tuple[str, str]] = {
    # event_type: (title_template, message_template)
    "application_submitted":    ("Application Submitted",    "Your application {application_number} has been submitted and is now in the review queue."),
    "application_assigned":     ("Application Assigned",     "Application {application_number} has been assigned to you."),
    "application_under_review": ("Application Under Review", "Your application {application_number} is now being reviewed."),
    "application_released":     ("Application Returned to Queue", "Your application {application_number} has been returned to the review queue."),
    "status_changed":           ("Application {status_label}", "{status_message}"),
    "application_approved":     ("Application Approved",     "Congratulations! Your application {application_number} has been approved for ${amount_approved}."),
    "application_rejected":     ("Application Declined",     "We regret to inform you that your application {application_number} has been declined. Reason: {rejection_reason}"),
    "note_added":               ("New Message",              "A note has been added to your application {application_number}."),
    "document_requested":       ("Documents Requested",      "Additional documents needed for your application {application_number}: {document_type}. {description}"),
    "document_uploaded":        ("Document Uploaded",        "Applicant has uploaded a requested document for application {application_number}.{completion}"),
    "document_rejected":        ("Document Issue",           "There is an issue with a document you uploaded for application {application_number}. {notes}"),
    "disbursement_recorded":    ("Disbursement Received",    "A disbursement of ${amount} has been recorded for your application {application_number}{period_label}."),
}


class NotificationService:
    """
    Stateless helper for creating ``Notification`` records.

    All methods are classmethods — no instance state is needed.
    """

    @classmethod
    def create(
        cls,
        *,
        actor: User | None,
        recipients: User | Iterable[User],
        event_type: str,
        payload: dict[str, Any] | None = None,
        related_object: models.Model | None = None,
    ) -> list[Notification]:
        """
        Create one ``Notification`` per recipient.

        Args:
            actor:          The user who performed the action (used for
                            logging only, not stored).
            recipients:     A single ``User`` or iterable of ``User``
                            instances.  ``None`` entries are skipped.
            event_type:     Key into ``_EVENT_TEMPLATES``.  If unknown
                            the raw event_type is used as title.  Stored
                            as ``notification_type``.
            payload:        Context dict interpolated into the templates.
            related_object: Optional model instance linked via
                            ``GenericForeignKey``.

        Returns:
            List of created ``Notification`` instances.
        """
        from core.models import Notification  # lazy import — avoids circular deps

        # Normalise recipients to a list
        if recipients is None:
            recipients = []
        elif isinstance(recipients, models.Model):
            recipients = [recipients]
        else:
            recipients = [r for r in recipients if r is not None]

        if not recipients:
            logger.warning(
                "NotificationService.create called with empty recipients "
                "for event_type=%s by actor=%s",
                event_type,
                actor,
            )
            return []

        title, message = cls.render(event_type, payload or {})

        # Resolve GenericFK fields
        content_type = None
        object_id = None
        if related_object is not None:
            content_type = ContentType.objects.get_for_model(related_object)
            object_id = related_object.pk

        notifications: list[Notification] = []
        for recipient in recipients:
            notif = Notification.objects.create(
                recipient=recipient,
                notification_type=event_type,
                title=title,
                message=message,
                content_type=content_type,
                object_id=object_id,
            )
            notifications.append(notif)

        logger.info(
            "Created %d notification(s) [%s] by actor=%s",
            len(notifications),
            event_type,
            actor,
        )
        return notifications

    @classmethod
    def notify(cls, **kwargs: Any) -> list[Notification]:
        """
        Best-effort variant of ``create``.

        Accepts the same keyword arguments.  Any failure is logged and an
        empty list is returned.
        """
        created = run_best_effort(
            cls.create,
            label=f"notification [{kwargs.get('event_type', 'unknown')}]",
            **kwargs,
        )
        return created or []

    @staticmethod
    def render(event_type: str, payload: dict[str, Any]) -> tuple[str, str]:
        """Return ``(title, message)`` for ``event_type`` filled from ``payload``."""
        title_tpl, message_tpl = _EVENT_TEMPLATES.get(
            event_type,
            (event_type.replace("_", " ").title(), f"Event: {event_type}"),
        )
        values = defaultdict(str, payload)
        return (
            title_tpl.format_map(values).strip(),
            message_tpl.format_map(values).strip(),
        )

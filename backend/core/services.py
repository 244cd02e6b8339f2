"""
Core app Service Layer.

Cross-app read services backing the ``/api/core/`` endpoints:

- ``SystemConstantsService``   — Choice enumerations for frontend dropdowns.
- ``NotificationInboxService`` — A user's notification inbox.

Notification *creation* lives in ``core.domain.notifications``; this
module only reads and marks notifications on behalf of their recipient.
"""

from __future__ import annotations

import logging
from typing import Any

from django.db.models import QuerySet

from core.domain.exceptions import NotFound

logger = logging.getLogger(__name__)


# ════════════════════════════════════════════════════════════════════
#  System Constants Service
# ════════════════════════════════════════════════════════════════════

class SystemConstantsService:
    """
    Gathers all system-wide choice enumerations into a single dict for
    the frontend, together with the status transition table.

    This service is **stateless**: it does not depend on the requesting
    user.
    """

    @staticmethod
    def get_constants() -> dict[str, Any]:
        """Return all system constants as a dict."""
        from accounts.models import UserRole
        from applications.models import (
            ApplicationStatus,
            DocumentRequestState,
            FlagSeverity,
            HistoryAction,
            ResolutionDecision,
        )
        from applications.transitions import allowed_targets
        from disbursements.models import DisbursementMethod

        to_list = SystemConstantsService._choices_to_list

        return {
            "application_statuses": to_list(ApplicationStatus),
            "status_transitions": {
                value: allowed_targets(value) for value in ApplicationStatus.values
            },
            "resolution_decisions": to_list(ResolutionDecision),
            "history_actions": to_list(HistoryAction),
            "document_request_states": to_list(DocumentRequestState),
            "disbursement_methods": to_list(DisbursementMethod),
            "flag_severities": to_list(FlagSeverity),
            "user_roles": to_list(UserRole),
        }

    @staticmethod
    def _choices_to_list(
        choices_class: type,
    ) -> list[dict[str, str]]:
        """
        Convert a Django ``TextChoices`` class to a list of
        ``{"value": ..., "label": ...}`` dicts.
        """
        return [
            {"value": str(value), "label": str(label)}
            for value, label in choices_class.choices
        ]


# ═══════════════════════════════════════════════════════════════════
#  Notification Inbox Service
# ═══════════════════════════════════════════════════════════════════

class NotificationInboxService:
    """
    Handles listing and marking notifications as read for a given user.
    """

    def __init__(self, user: Any) -> None:
        self.user = user

    def list_notifications(self, unread_only: bool = False) -> QuerySet:
        """Return notifications for ``self.user``, most recent first."""
        from core.models import Notification

        qs = (
            Notification.objects
            .filter(recipient=self.user)
            .select_related("content_type")
            .order_by("-created_at", "-id")
        )
        if unread_only:
            qs = qs.filter(is_read=False)
        return qs

    def mark_as_read(self, notification_id: int) -> Any:
        """
        Mark a single notification as read.

        Raises ``NotFound`` when the notification does not exist or
        belongs to another user.
        """
        from core.models import Notification

        try:
            notification = Notification.objects.get(
                pk=notification_id,
                recipient=self.user,
            )
        except Notification.DoesNotExist:
            raise NotFound(f"Notification with id {notification_id} not found.")

        if not notification.is_read:
            notification.is_read = True
            notification.save(update_fields=["is_read", "updated_at"])
            logger.debug("Notification #%d marked read by user %s", notification.pk, self.user)
        return notification

    def mark_all_as_read(self) -> int:
        """Mark every unread notification of ``self.user`` as read."""
        from core.models import Notification

        return (
            Notification.objects
            .filter(recipient=self.user, is_read=False)
            .update(is_read=True)
        )

"""
Core app serializers.

Read-only response serializers for the ``/api/core/`` endpoints.
"""

from __future__ import annotations

from rest_framework import serializers


# ════════════════════════════════════════════════════════════════════
#  System Constants / Enums
# ════════════════════════════════════════════════════════════════════

class ChoiceItemSerializer(serializers.Serializer):
    """
    A single key-label pair representing one choice/enum option.

    Example::

        {"value": "under_review", "label": "Under Review"}
    """

    value = serializers.CharField(
        help_text="Machine-readable value to send in API requests.",
    )
    label = serializers.CharField(
        help_text="Human-readable display label for the UI.",
    )


class SystemConstantsSerializer(serializers.Serializer):
    """
    Top-level response serializer for ``GET /api/core/constants/``.

    Response shape::

        {
            "application_statuses": [{"value": "draft", "label": "Draft"}, ...],
            "status_transitions": {"draft": ["submitted"], ...},
            "resolution_decisions": [...],
            "history_actions": [...],
            "document_request_states": [...],
            "disbursement_methods": [...],
            "flag_severities": [...],
            "user_roles": [...]
        }
    """

    application_statuses = ChoiceItemSerializer(
        many=True,
        help_text="All application lifecycle statuses.",
    )
    status_transitions = serializers.DictField(
        child=serializers.ListField(child=serializers.CharField()),
        help_text="Status → statuses reachable from it.",
    )
    resolution_decisions = ChoiceItemSerializer(many=True)
    history_actions = ChoiceItemSerializer(many=True)
    document_request_states = ChoiceItemSerializer(many=True)
    disbursement_methods = ChoiceItemSerializer(
        many=True,
        help_text="Payment methods accepted when recording a disbursement.",
    )
    flag_severities = ChoiceItemSerializer(many=True)
    user_roles = ChoiceItemSerializer(many=True)


# ════════════════════════════════════════════════════════════════════
#  Notifications
# ════════════════════════════════════════════════════════════════════

class NotificationSerializer(serializers.Serializer):
    """
    Read-only serializer for ``Notification`` instances.
    """

    id = serializers.IntegerField(read_only=True, help_text="Notification PK.")
    notification_type = serializers.CharField(
        read_only=True,
        help_text="Event tag, e.g. application_submitted.",
    )
    title = serializers.CharField(
        read_only=True,
        help_text="Short notification title.",
    )
    message = serializers.CharField(
        read_only=True,
        help_text="Full notification message body.",
    )
    is_read = serializers.BooleanField(
        read_only=True,
        help_text="Whether the recipient has marked this notification as read.",
    )
    created_at = serializers.DateTimeField(
        read_only=True,
        help_text="When the notification was created.",
    )
    content_type = serializers.StringRelatedField(
        read_only=True,
        help_text="Related content type (if any).",
    )
    object_id = serializers.IntegerField(
        read_only=True,
        allow_null=True,
        help_text="PK of the related object (if any).",
    )


class MarkAllReadResponseSerializer(serializers.Serializer):
    updated = serializers.IntegerField(help_text="Number of notifications marked read.")

"""
Accounts app Service Layer.

Login itself is handled by SimpleJWT through
``LoginSerializer``; this module only covers the
"me" profile helpers used by ``MeView``.
"""

from __future__ import annotations

import logging
from typing import Any

from django.contrib.auth import get_user_model

User = get_user_model()

logger = logging.getLogger(__name__)


class CurrentUserService:
    """
    Helpers for the "Me" endpoint.

    Profile edits never touch applications already filed: the applicant
    snapshot on an application is taken at creation time only.
    """

    @staticmethod
    def get_profile(user: User) -> User:
        """Return the user re-fetched with the masjid pre-loaded."""
        return User.objects.select_related("masjid").get(pk=user.pk)

    @staticmethod
    def update_profile(user: User, validated_data: dict[str, Any]) -> User:
        """
        Update the authenticated user's own profile fields.

        Only the fields present in ``validated_data`` are written.
        """
        for field, value in validated_data.items():
            setattr(user, field, value)
        user.save(update_fields=list(validated_data.keys()))

        logger.info(
            "User #%d updated own profile (fields: %s)",
            user.pk,
            ", ".join(validated_data.keys()),
        )
        return CurrentUserService.get_profile(user)

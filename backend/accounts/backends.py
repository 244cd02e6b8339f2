"""
Email login backend.

Applicants and reviewers sign in with their email address.  Django's
``ModelBackend`` stays registered after this one so staff can still use
their username on the admin site.
"""

from __future__ import annotations

from django.contrib.auth import get_user_model
from django.contrib.auth.backends import ModelBackend

UserModel = get_user_model()


class EmailBackend(ModelBackend):
    """Authenticate ``email`` (case-insensitive) + ``password``."""

    def authenticate(self, request, email=None, password=None, **kwargs):
        if not email or password is None:
            return None

        matches = list(UserModel._default_manager.filter(email__iexact=email.strip())[:2])
        if len(matches) != 1:
            # Keep response time close to a real password check.
            UserModel().set_password(password)
            return None

        user = matches[0]
        if user.check_password(password) and self.user_can_authenticate(user):
            return user
        return None

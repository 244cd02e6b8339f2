"""
Accounts app serializers.

Contains all Request and Response serializers for the accounts API.
Serializers handle field definitions, read/write constraints, and
basic validation.  **No business logic** lives here — all domain
rules are delegated to ``services.py``.
"""

from __future__ import annotations

import re
from typing import Any

from django.contrib.auth import get_user_model
from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from .models import Masjid

User = get_user_model()


# ═══════════════════════════════════════════════════════════════════
#  Masjid / User Serializers
# ═══════════════════════════════════════════════════════════════════


class MasjidSerializer(serializers.ModelSerializer):
    class Meta:
        model = Masjid
        fields = ["id", "name", "zip_code", "is_active"]
        read_only_fields = fields


class UserDetailSerializer(serializers.ModelSerializer):
    """
    Full user representation (used in login and "me" responses).
    """

    role_display = serializers.CharField(source="get_role_display", read_only=True)
    masjid_detail = MasjidSerializer(source="masjid", read_only=True)
    display_name = serializers.CharField(read_only=True)

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "phone_number",
            "first_name",
            "last_name",
            "display_name",
            "is_active",
            "is_flagged",
            "date_joined",
            "role",
            "role_display",
            "masjid",
            "masjid_detail",
        ]
        read_only_fields = fields


class MeUpdateSerializer(serializers.ModelSerializer):
    """
    Allows the authenticated user to update limited profile fields.
    Role, masjid, flag and activation state cannot be self-modified.
    """

    class Meta:
        model = User
        fields = [
            "email",
            "phone_number",
            "first_name",
            "last_name",
        ]

    def validate_email(self, value: str) -> str:
        if (
            self.instance
            and User.objects.exclude(pk=self.instance.pk)
            .filter(email__iexact=value)
            .exists()
        ):
            raise serializers.ValidationError(
                "This email is already in use by another account."
            )
        return value

    def validate_phone_number(self, value: str) -> str:
        if value and not re.match(r"^\+?[\d\s().-]{7,20}$", value):
            raise serializers.ValidationError(
                "Phone number may contain digits, spaces, parentheses, dots and dashes."
            )
        return value


# ═══════════════════════════════════════════════════════════════════
#  Authentication Serializers
# ═══════════════════════════════════════════════════════════════════


class LoginSerializer(TokenObtainPairSerializer):
    """
    SimpleJWT obtain-pair keyed on ``email``.

    The token carries ``role`` and ``masjid_id`` claims, and the
    response adds the user profile next to the token pair.
    """

    username_field = "email"

    @classmethod
    def get_token(cls, user) -> Any:
        token = super().get_token(user)
        token["role"] = user.role
        token["masjid_id"] = user.masjid_id
        return token

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        data = super().validate(attrs)
        data["user"] = UserDetailSerializer(self.user).data
        return data


class TokenResponseSerializer(serializers.Serializer):
    access = serializers.CharField(read_only=True)
    refresh = serializers.CharField(read_only=True)
    user = UserDetailSerializer(read_only=True)

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import Masjid, User


@admin.register(Masjid)
class MasjidAdmin(admin.ModelAdmin):
    list_display = ("name", "zip_code", "is_active")
    search_fields = ("name", "zip_code")
    list_filter = ("is_active",)


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ("username", "email", "phone_number",
                    "first_name", "last_name", "is_active", "role", "masjid")
    search_fields = ("username", "email", "phone_number")
    list_filter = ("is_active", "is_staff", "role", "is_flagged")
    filter_horizontal = ("groups", "user_permissions")
    fieldsets = BaseUserAdmin.fieldsets + (
        ("Zakat", {"fields": ("phone_number", "role", "masjid", "is_flagged")}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ("Zakat", {"fields": ("email", "phone_number", "first_name",
                              "last_name", "role", "masjid")}),
    )

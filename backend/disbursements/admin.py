from django.contrib import admin

from .models import Disbursement


@admin.register(Disbursement)
class DisbursementAdmin(admin.ModelAdmin):
    list_display = ("application", "applicant", "amount", "method",
                    "masjid_name", "disbursed_at")
    list_filter = ("method", "masjid")
    search_fields = ("reference_number", "application__application_number")
    readonly_fields = ("disbursed_by", "disbursed_by_name", "masjid_name",
                       "disbursed_at", "created_at")

from django.contrib import admin

from .models import AdminNote, ApplicantFlag, Application, ApplicationHistory, DocumentRequest


class AdminNoteInline(admin.TabularInline):
    model = AdminNote
    extra = 0
    readonly_fields = ("content", "created_by", "created_by_name",
                       "is_internal", "created_at")


class DocumentRequestInline(admin.TabularInline):
    model = DocumentRequest
    extra = 0
    fields = ("document_type", "required", "requested_by_name",
              "fulfilled_at", "verified")
    readonly_fields = fields


class ApplicationHistoryInline(admin.TabularInline):
    model = ApplicationHistory
    extra = 0
    readonly_fields = ("action", "performed_by_name", "previous_status",
                       "new_status", "details", "created_at")


@admin.register(Application)
class ApplicationAdmin(admin.ModelAdmin):
    list_display = ("application_number", "applicant_name", "status",
                    "assigned_to", "assigned_to_masjid", "created_at")
    list_filter = ("status", "assigned_to_masjid", "applicant_is_flagged")
    search_fields = ("application_number", "applicant_name", "applicant_email")
    readonly_fields = ("application_number",)
    inlines = [DocumentRequestInline, AdminNoteInline,
               ApplicationHistoryInline]


@admin.register(ApplicationHistory)
class ApplicationHistoryAdmin(admin.ModelAdmin):
    list_display = ("application", "action", "performed_by_name",
                    "previous_status", "new_status", "created_at")
    list_filter = ("action",)


@admin.register(DocumentRequest)
class DocumentRequestAdmin(admin.ModelAdmin):
    list_display = ("application", "document_type", "required",
                    "fulfilled_at", "verified")
    list_filter = ("required", "verified")


@admin.register(ApplicantFlag)
class ApplicantFlagAdmin(admin.ModelAdmin):
    list_display = ("applicant", "severity", "is_active", "flagged_by_name",
                    "flagged_by_masjid", "created_at")
    list_filter = ("is_active", "severity", "flagged_by_masjid")
    readonly_fields = ("resolved_by", "resolved_at")

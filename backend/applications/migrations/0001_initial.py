import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

import applications.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("accounts", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Application",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated At")),
                ("application_number", models.CharField(blank=True, editable=False, help_text="Human-readable number, e.g. ZKT-00000042.  Assigned once at creation.", max_length=20, null=True, unique=True, verbose_name="Application Number")),
                ("applicant_name", models.CharField(blank=True, default="", max_length=255, verbose_name="Applicant Name")),
                ("applicant_email", models.EmailField(blank=True, default="", max_length=254, verbose_name="Applicant Email")),
                ("applicant_phone", models.CharField(blank=True, default="", max_length=20, verbose_name="Applicant Phone")),
                ("applicant_is_flagged", models.BooleanField(default=False, verbose_name="Applicant Flagged")),
                ("status", models.CharField(choices=[("draft", "Draft"), ("submitted", "Submitted"), ("under_review", "Under Review"), ("pending_documents", "Pending Documents"), ("pending_verification", "Pending Verification"), ("approved", "Approved"), ("rejected", "Rejected"), ("disbursed", "Disbursed"), ("closed", "Closed")], db_index=True, default="draft", max_length=30, verbose_name="Status")),
                ("assigned_at", models.DateTimeField(blank=True, null=True, verbose_name="Assigned At")),
                ("demographics", models.JSONField(blank=True, default=dict)),
                ("contact", models.JSONField(blank=True, default=dict)),
                ("household", models.JSONField(blank=True, default=list)),
                ("financial", models.JSONField(blank=True, default=dict)),
                ("circumstances", models.JSONField(blank=True, default=dict)),
                ("zakat_request", models.JSONField(blank=True, default=dict)),
                ("references", models.JSONField(blank=True, default=list)),
                ("documents", models.JSONField(blank=True, default=applications.models.default_documents)),
                ("previous_applications", models.JSONField(blank=True, default=list)),
                ("resolution_decision", models.CharField(blank=True, choices=[("approved", "Approved"), ("rejected", "Rejected")], default="", max_length=20, verbose_name="Decision")),
                ("resolution_decided_at", models.DateTimeField(blank=True, null=True, verbose_name="Decided At")),
                ("amount_approved", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True, verbose_name="Amount Approved")),
                ("rejection_reason", models.TextField(blank=True, default="", verbose_name="Rejection Reason")),
                ("submitted_at", models.DateTimeField(blank=True, null=True, verbose_name="Submitted At")),
                ("applicant", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="applications", to=settings.AUTH_USER_MODEL, verbose_name="Applicant")),
                ("assigned_to", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="assigned_applications", to=settings.AUTH_USER_MODEL, verbose_name="Assigned Reviewer")),
                ("assigned_to_masjid", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="assigned_applications", to="accounts.masjid", verbose_name="Assigned Masjid")),
                ("resolution_decided_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="resolved_applications", to=settings.AUTH_USER_MODEL, verbose_name="Decided By")),
                ("resolution_decided_by_masjid", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="resolved_applications", to="accounts.masjid", verbose_name="Decided By Masjid")),
            ],
            options={
                "verbose_name": "Application",
                "verbose_name_plural": "Applications",
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(fields=["status", "assigned_to"], name="app_status_assignee_idx"),
                    models.Index(fields=["applicant", "created_at"], name="app_applicant_created_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="AdminNote",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("content", models.TextField(verbose_name="Content")),
                ("created_by_name", models.CharField(blank=True, default="", max_length=255, verbose_name="Author Name")),
                ("is_internal", models.BooleanField(default=True, verbose_name="Internal")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                ("application", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="admin_notes", to="applications.application", verbose_name="Application")),
                ("created_by", models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="application_notes", to=settings.AUTH_USER_MODEL, verbose_name="Author")),
                ("created_by_masjid", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to="accounts.masjid", verbose_name="Author Masjid")),
            ],
            options={
                "verbose_name": "Admin Note",
                "verbose_name_plural": "Admin Notes",
                "ordering": ["-created_at", "-id"],
            },
        ),
        migrations.CreateModel(
            name="ApplicationHistory",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("action", models.CharField(choices=[("created", "Created"), ("submitted", "Submitted"), ("assigned", "Assigned"), ("released", "Released"), ("status_changed", "Status Changed"), ("note_added", "Note Added"), ("document_requested", "Document Requested"), ("document_uploaded", "Document Uploaded"), ("document_verified", "Document Verified"), ("approved", "Approved"), ("rejected", "Rejected"), ("disbursed", "Disbursed"), ("flagged", "Flagged"), ("edited", "Edited")], max_length=30, verbose_name="Action")),
                ("performed_by_name", models.CharField(blank=True, default="", max_length=255)),
                ("performed_by_role", models.CharField(blank=True, default="", max_length=20)),
                ("previous_status", models.CharField(blank=True, default="", max_length=30)),
                ("new_status", models.CharField(blank=True, default="", max_length=30)),
                ("details", models.TextField(blank=True, default="")),
                ("metadata", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                ("application", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="history", to="applications.application", verbose_name="Application")),
                ("new_assignee", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("performed_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="application_history_entries", to=settings.AUTH_USER_MODEL, verbose_name="Performed By")),
                ("performed_by_masjid", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to="accounts.masjid")),
                ("previous_assignee", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "Application History Entry",
                "verbose_name_plural": "Application History",
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(fields=["application", "created_at"], name="app_history_app_created_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="DocumentRequest",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated At")),
                ("document_type", models.CharField(max_length=100, verbose_name="Document Type")),
                ("description", models.TextField(blank=True, default="", verbose_name="Description")),
                ("required", models.BooleanField(default=True, verbose_name="Required")),
                ("requested_by_name", models.CharField(blank=True, default="", max_length=255)),
                ("requested_at", models.DateTimeField(default=django.utils.timezone.now, verbose_name="Requested At")),
                ("storage_path", models.CharField(blank=True, default="", max_length=500, verbose_name="Storage Path")),
                ("file_name", models.CharField(blank=True, default="", max_length=255, verbose_name="File Name")),
                ("fulfilled_at", models.DateTimeField(blank=True, null=True, verbose_name="Fulfilled At")),
                ("verified", models.BooleanField(blank=True, null=True, verbose_name="Verified")),
                ("verified_by_name", models.CharField(blank=True, default="", max_length=255)),
                ("verified_at", models.DateTimeField(blank=True, null=True, verbose_name="Verified At")),
                ("verification_notes", models.TextField(blank=True, default="")),
                ("application", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="document_requests", to="applications.application", verbose_name="Application")),
                ("fulfilled_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("requested_by", models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="document_requests_made", to=settings.AUTH_USER_MODEL, verbose_name="Requested By")),
                ("verified_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "Document Request",
                "verbose_name_plural": "Document Requests",
                "ordering": ["-requested_at", "-id"],
            },
        ),
    ]

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("accounts", "0001_initial"),
        ("applications", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="ApplicantFlag",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated At")),
                ("reason", models.TextField(verbose_name="Reason")),
                ("severity", models.CharField(choices=[("warning", "Warning"), ("blocked", "Blocked")], default="warning", max_length=10, verbose_name="Severity")),
                ("flagged_by_name", models.CharField(blank=True, default="", max_length=255)),
                ("is_active", models.BooleanField(db_index=True, default=True, verbose_name="Active")),
                ("resolved_at", models.DateTimeField(blank=True, null=True, verbose_name="Resolved At")),
                ("resolution_notes", models.TextField(blank=True, default="", verbose_name="Resolution Notes")),
                ("applicant", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="flags", to=settings.AUTH_USER_MODEL, verbose_name="Applicant")),
                ("application", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="flags", to="applications.application", verbose_name="Related Application")),
                ("flagged_by", models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="flags_raised", to=settings.AUTH_USER_MODEL, verbose_name="Flagged By")),
                ("flagged_by_masjid", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="flags_raised", to="accounts.masjid", verbose_name="Flagged By Masjid")),
                ("resolved_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL, verbose_name="Resolved By")),
            ],
            options={
                "verbose_name": "Applicant Flag",
                "verbose_name_plural": "Applicant Flags",
                "ordering": ["-created_at", "-id"],
                "indexes": [models.Index(fields=["applicant", "is_active"], name="flag_applicant_active_idx")],
            },
        ),
    ]

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("accounts", "0001_initial"),
        ("applications", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Disbursement",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("amount", models.DecimalField(decimal_places=2, max_digits=12, verbose_name="Amount")),
                ("method", models.CharField(choices=[("check", "Check"), ("cash", "Cash"), ("bank_transfer", "Bank Transfer"), ("money_order", "Money Order"), ("gift_card", "Gift Card"), ("direct_payment", "Direct Payment (Bills, Rent, etc.)"), ("other", "Other")], max_length=20, verbose_name="Method")),
                ("reference_number", models.CharField(blank=True, default="", max_length=100, verbose_name="Reference Number")),
                ("notes", models.TextField(blank=True, default="", verbose_name="Notes")),
                ("disbursed_by_name", models.CharField(blank=True, default="", max_length=255)),
                ("masjid_name", models.CharField(blank=True, default="", max_length=255)),
                ("disbursed_at", models.DateTimeField(verbose_name="Disbursed At")),
                ("period_month", models.PositiveSmallIntegerField(blank=True, null=True, verbose_name="Period Month")),
                ("period_year", models.PositiveSmallIntegerField(blank=True, null=True, verbose_name="Period Year")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                ("applicant", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="disbursements_received", to=settings.AUTH_USER_MODEL, verbose_name="Applicant")),
                ("application", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="disbursements", to="applications.application", verbose_name="Application")),
                ("disbursed_by", models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="disbursements_recorded", to=settings.AUTH_USER_MODEL, verbose_name="Disbursed By")),
                ("masjid", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="disbursements", to="accounts.masjid", verbose_name="Masjid")),
            ],
            options={
                "verbose_name": "Disbursement",
                "verbose_name_plural": "Disbursements",
                "ordering": ["-disbursed_at", "-id"],
                "indexes": [
                    models.Index(fields=["application", "disbursed_at"], name="disb_app_disbursed_idx"),
                    models.Index(fields=["applicant", "disbursed_at"], name="disb_applicant_disbursed_idx"),
                    models.Index(fields=["masjid", "disbursed_at"], name="disb_masjid_disbursed_idx"),
                ],
            },
        ),
    ]

"""
Disbursements app models.

A ``Disbursement`` is one payment made against an approved application.
Records are append-only: they are never edited or deleted through the
API, and totals are always computed from them on read.
"""

import calendar

from django.conf import settings
from django.db import models


class DisbursementMethod(models.TextChoices):
    CHECK = "check", "Check"
    CASH = "cash", "Cash"
    BANK_TRANSFER = "bank_transfer", "Bank Transfer"
    MONEY_ORDER = "money_order", "Money Order"
    GIFT_CARD = "gift_card", "Gift Card"
    DIRECT_PAYMENT = "direct_payment", "Direct Payment (Bills, Rent, etc.)"
    OTHER = "other", "Other"


class Disbursement(models.Model):
    """
    Immutable payment record.

    ``applicant`` duplicates ``application.applicant`` so per-applicant
    aggregation does not need the join.  ``disbursed_by_name`` and
    ``masjid_name`` are snapshots taken when the payment is recorded.
    """

    application = models.ForeignKey(
        "applications.Application",
        on_delete=models.PROTECT,
        related_name="disbursements",
        verbose_name="Application",
    )
    applicant = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="disbursements_received",
        verbose_name="Applicant",
    )
    amount = models.DecimalField(max_digits=12, decimal_places=2, verbose_name="Amount")
    method = models.CharField(
        max_length=20,
        choices=DisbursementMethod.choices,
        verbose_name="Method",
    )
    reference_number = models.CharField(max_length=100, blank=True, default="", verbose_name="Reference Number")
    notes = models.TextField(blank=True, default="", verbose_name="Notes")

    disbursed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="disbursements_recorded",
        verbose_name="Disbursed By",
    )
    disbursed_by_name = models.CharField(max_length=255, blank=True, default="")
    masjid = models.ForeignKey(
        "accounts.Masjid",
        on_delete=models.PROTECT,
        related_name="disbursements",
        verbose_name="Masjid",
    )
    masjid_name = models.CharField(max_length=255, blank=True, default="")

    disbursed_at = models.DateTimeField(verbose_name="Disbursed At")
    period_month = models.PositiveSmallIntegerField(null=True, blank=True, verbose_name="Period Month")
    period_year = models.PositiveSmallIntegerField(null=True, blank=True, verbose_name="Period Year")
    created_at = models.DateTimeField(auto_now_add=True, verbose_name="Created At")

    class Meta:
        verbose_name = "Disbursement"
        verbose_name_plural = "Disbursements"
        ordering = ["-disbursed_at", "-id"]
        indexes = [
            models.Index(fields=["application", "disbursed_at"], name="disb_app_disbursed_idx"),
            models.Index(fields=["applicant", "disbursed_at"], name="disb_applicant_disbursed_idx"),
            models.Index(fields=["masjid", "disbursed_at"], name="disb_masjid_disbursed_idx"),
        ]

    def __str__(self):
        return f"${self.amount} to {self.applicant_id} via {self.get_method_display()}"

    @property
    def period_label(self) -> str:
        """``" for March 2025"`` when a period is set, else ``""``."""
        if not (self.period_month and self.period_year):
            return ""
        return f" for {calendar.month_name[self.period_month]} {self.period_year}"

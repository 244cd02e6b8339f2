"""
Disbursements app Service Layer.

Architecture
------------
- ``DisbursementService``        — Records payments against approved
  applications.
- ``DisbursementSummaryService`` — Read-side aggregation per application,
  per applicant, per masjid and across all applicants.

Summaries are computed from the ledger on every read; there are no
stored counters to keep in step.  A storage failure while aggregating
is logged and an empty summary is returned instead.

Recording a disbursement never changes the application's status.
Moving an application to ``disbursed`` is a separate status change.
"""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Any

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import DatabaseError, transaction
from django.db.models import Count, Max, Sum
from django.utils import timezone

from accounts.models import Masjid
from applications.models import Application, ApplicationStatus, HistoryAction
from applications.services import ApplicationHistoryService, ApplicationQueryService
from core.domain.exceptions import InvalidArgument, InvalidState, NotFound
from core.domain.notifications import NotificationService

from .models import Disbursement, DisbursementMethod

User = get_user_model()

logger = logging.getLogger(__name__)

#: Application statuses that accept new disbursements.
DISBURSABLE_STATUSES = frozenset({
    ApplicationStatus.APPROVED,
    ApplicationStatus.DISBURSED,
})

_ZERO = Decimal("0.00")


def _money(value: Decimal | None) -> Decimal:
    return (value or _ZERO).quantize(Decimal("0.01"))


# ═══════════════════════════════════════════════════════════════════
#  Disbursement Service
# ═══════════════════════════════════════════════════════════════════


class DisbursementService:
    """
    Appends payment records to the ledger.
    """

    @staticmethod
    def _validate(amount: Any, method: str, period_month: int | None) -> Decimal:
        try:
            amount = Decimal(str(amount))
        except (InvalidOperation, TypeError, ValueError):
            raise InvalidArgument("Amount must be a positive number.")
        if not amount.is_finite() or amount <= 0:
            raise InvalidArgument("Amount must be a positive number.")
        if method not in DisbursementMethod.values:
            raise InvalidArgument(
                f"Unknown disbursement method '{method}'. "
                f"Options: {', '.join(DisbursementMethod.values)}."
            )
        if period_month is not None and not 1 <= period_month <= 12:
            raise InvalidArgument("Period month must be between 1 and 12.")
        return amount

    @staticmethod
    def record_disbursement(
        requesting_user: Any,
        application_id: int,
        amount: Any,
        method: str,
        reference_number: str = "",
        notes: str = "",
        period_month: int | None = None,
        period_year: int | None = None,
    ) -> Disbursement:
        """
        Record a payment against an approved application.

        The payment is attributed to the caller's masjid, falling back to
        the masjid the application is assigned to.

        Raises:
            InvalidArgument: non-positive amount, unknown method, month
                             outside 1..12, or no masjid to attribute.
            NotFound:        no such application.
            InvalidState:    the application is not approved or disbursed.
        """
        amount = DisbursementService._validate(amount, method, period_month)

        application = ApplicationQueryService.get_application(application_id)
        if application.status not in DISBURSABLE_STATUSES:
            raise InvalidState(
                "Application must be in approved or disbursed status to "
                "record disbursements."
            )

        masjid_id = requesting_user.masjid_id or application.assigned_to_masjid_id
        if masjid_id is None:
            raise InvalidArgument("No masjid associated with this disbursement.")
        masjid = Masjid.objects.filter(pk=masjid_id).first()
        if masjid is None:
            raise InvalidArgument("No masjid associated with this disbursement.")

        with transaction.atomic():
            disbursement = Disbursement.objects.create(
                application=application,
                applicant_id=application.applicant_id,
                amount=amount,
                method=method,
                reference_number=reference_number or "",
                notes=notes or "",
                disbursed_by=requesting_user,
                disbursed_by_name=requesting_user.display_name,
                masjid=masjid,
                masjid_name=masjid.name,
                disbursed_at=timezone.now(),
                period_month=period_month,
                period_year=period_year,
            )

        period_label = disbursement.period_label
        metadata: dict[str, Any] = {
            "disbursement_id": disbursement.pk,
            "amount": str(amount),
            "method": method,
        }
        if reference_number:
            metadata["reference_number"] = reference_number
        if period_month:
            metadata["period_month"] = period_month
        if period_year:
            metadata["period_year"] = period_year

        ApplicationHistoryService.record(
            application,
            action=HistoryAction.DISBURSED,
            actor=requesting_user,
            previous_status=application.status,
            new_status=application.status,
            details=f"Disbursement of ${amount:,.2f} recorded via {method}{period_label}",
            metadata=metadata,
        )
        NotificationService.notify(
            actor=requesting_user,
            recipients=application.applicant,
            event_type="disbursement_recorded",
            payload={
                "application_id": application.pk,
                "application_number": application.application_number,
                "amount": f"{amount:,.2f}",
                "period_label": period_label,
            },
            related_object=application,
        )

        logger.info(
            "Disbursement #%d of %s (%s) recorded on application #%d by user %s",
            disbursement.pk,
            amount,
            method,
            application.pk,
            requesting_user,
        )
        return disbursement


# ═══════════════════════════════════════════════════════════════════
#  Disbursement Summary Service
# ═══════════════════════════════════════════════════════════════════


class DisbursementSummaryService:
    """
    Aggregations over the disbursement ledger.

    Every method returns plain dicts shaped for the summary serializers.
    Amounts are ``Decimal``; breakdowns are sorted by total, largest first.
    """

    @staticmethod
    def _by_masjid(qs) -> list[dict[str, Any]]:
        rows = (
            qs.order_by()
            .values("masjid_id", "masjid_name")
            .annotate(total=Sum("amount"), count=Count("id"))
        )
        breakdown = [
            {
                "masjid_id": row["masjid_id"],
                "masjid_name": row["masjid_name"],
                "total_disbursed": _money(row["total"]),
                "disbursement_count": row["count"],
            }
            for row in rows
        ]
        breakdown.sort(key=lambda entry: (-entry["total_disbursed"], entry["masjid_id"]))
        return breakdown

    @staticmethod
    def get_application_disbursements(application_id: int) -> dict[str, Any]:
        """
        Disbursements on one application, newest first, with totals.

        Raises:
            NotFound: no such application.
        """
        if not Application.objects.filter(pk=application_id).exists():
            raise NotFound(f"Application with id {application_id} not found.")

        try:
            disbursements = list(
                Disbursement.objects
                .filter(application_id=application_id)
                .order_by("-disbursed_at", "-id")
            )
        except DatabaseError:
            logger.exception("Failed to load disbursements for application #%d", application_id)
            disbursements = []

        return {
            "application_id": application_id,
            "total_disbursed": _money(sum((d.amount for d in disbursements), _ZERO)),
            "disbursement_count": len(disbursements),
            "last_disbursed_at": disbursements[0].disbursed_at if disbursements else None,
            "disbursements": disbursements,
        }

    @staticmethod
    def get_applicant_disbursement_summary(applicant_id: int) -> dict[str, Any]:
        """
        Everything paid to one applicant across all their applications,
        broken down by masjid.

        Raises:
            NotFound: no such user.
        """
        applicant = User.objects.filter(pk=applicant_id).first()
        if applicant is None:
            raise NotFound(f"Applicant with id {applicant_id} not found.")

        summary: dict[str, Any] = {
            "applicant_id": applicant_id,
            "applicant_name": applicant.display_name,
            "total_disbursed": _ZERO,
            "disbursement_count": 0,
            "application_count": 0,
            "last_disbursed_at": None,
            "by_masjid": [],
            "disbursements": [],
        }

        try:
            qs = Disbursement.objects.filter(applicant_id=applicant_id)
            totals = qs.aggregate(
                total=Sum("amount"),
                count=Count("id"),
                last=Max("disbursed_at"),
            )
            summary.update(
                total_disbursed=_money(totals["total"]),
                disbursement_count=totals["count"],
                last_disbursed_at=totals["last"],
                application_count=Application.objects.filter(applicant_id=applicant_id).count(),
                by_masjid=DisbursementSummaryService._by_masjid(qs),
                disbursements=list(
                    qs.select_related("application").order_by("-disbursed_at", "-id")
                ),
            )
        except DatabaseError:
            logger.exception("Failed to aggregate disbursements for applicant #%d", applicant_id)

        return summary

    @staticmethod
    def get_masjid_disbursement_summary(masjid_id: int) -> dict[str, Any]:
        """
        Everything a masjid has paid out, broken down by applicant.

        Raises:
            NotFound: no such masjid.
        """
        masjid = Masjid.objects.filter(pk=masjid_id).first()
        if masjid is None:
            raise NotFound(f"Masjid with id {masjid_id} not found.")

        summary: dict[str, Any] = {
            "masjid_id": masjid_id,
            "masjid_name": masjid.name,
            "total_disbursed": _ZERO,
            "disbursement_count": 0,
            "applicant_count": 0,
            "last_disbursed_at": None,
            "by_applicant": [],
            "disbursements": [],
        }

        try:
            qs = Disbursement.objects.filter(masjid_id=masjid_id)
            totals = qs.aggregate(
                total=Sum("amount"),
                count=Count("id"),
                last=Max("disbursed_at"),
            )
            rows = (
                qs.order_by()
                .values("applicant_id")
                .annotate(
                    name=Max("application__applicant_name"),
                    total=Sum("amount"),
                    count=Count("id"),
                )
            )
            by_applicant = [
                {
                    "applicant_id": row["applicant_id"],
                    "applicant_name": row["name"] or "",
                    "total_disbursed": _money(row["total"]),
                    "disbursement_count": row["count"],
                }
                for row in rows
            ]
            by_applicant.sort(key=lambda entry: (-entry["total_disbursed"], entry["applicant_id"]))

            summary.update(
                total_disbursed=_money(totals["total"]),
                disbursement_count=totals["count"],
                last_disbursed_at=totals["last"],
                applicant_count=len(by_applicant),
                by_applicant=by_applicant,
                disbursements=list(
                    qs.select_related("application").order_by("-disbursed_at", "-id")
                ),
            )
        except DatabaseError:
            logger.exception("Failed to aggregate disbursements for masjid #%d", masjid_id)

        return summary

    @staticmethod
    def get_all_applicants_disbursement_summary(limit: int | None = None) -> dict[str, Any]:
        """
        Per-applicant totals across the whole ledger, largest first.

        ``limit`` caps the number of applicant entries returned; the grand
        total and applicant count always cover everyone.
        """
        if limit is None:
            limit = getattr(settings, "ZAKAT_SUMMARY_APPLICANT_LIMIT", 100)

        summary: dict[str, Any] = {
            "total_disbursed": _ZERO,
            "total_applicants": 0,
            "applicants": [],
        }

        try:
            qs = Disbursement.objects.all()
            per_applicant = list(
                qs.order_by()
                .values("applicant_id")
                .annotate(
                    name=Max("application__applicant_name"),
                    total=Sum("amount"),
                    count=Count("id"),
                    last=Max("disbursed_at"),
                )
            )
            per_applicant.sort(key=lambda row: (-row["total"], row["applicant_id"]))
            top = per_applicant[:limit] if limit else per_applicant

            breakdowns: dict[int, list[dict[str, Any]]] = {}
            for row in top:
                breakdowns[row["applicant_id"]] = DisbursementSummaryService._by_masjid(
                    qs.filter(applicant_id=row["applicant_id"])
                )

            summary.update(
                total_disbursed=_money(sum((row["total"] for row in per_applicant), _ZERO)),
                total_applicants=len(per_applicant),
                applicants=[
                    {
                        "applicant_id": row["applicant_id"],
                        "applicant_name": row["name"] or "",
                        "total_disbursed": _money(row["total"]),
                        "disbursement_count": row["count"],
                        "last_disbursed_at": row["last"],
                        "by_masjid": breakdowns[row["applicant_id"]],
                    }
                    for row in top
                ],
            )
        except DatabaseError:
            logger.exception("Failed to aggregate disbursements across applicants")

        return summary

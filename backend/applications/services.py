"""
Applications app Service Layer.

This module is the **single source of truth** for all business logic
in the ``applications`` app.  Views must remain thin: validate input via
serializers, call a service method, and return the result wrapped in
a DRF ``Response``.

Architecture
------------
- ``ApplicationQueryService``      — Retrieval, role-scoped listing, pool listing.
- ``ApplicationHistoryService``    — Best-effort audit ledger writes and reads.
- ``ApplicationCreationService``   — Draft creation and auto-save.
- ``ApplicationWorkflowService``   — Submit, generic status change, resolve.
- ``ApplicationAssignmentService`` — Claim / release against the shared pool.
- ``AdminNoteService``             — Immutable reviewer notes.
- ``DocumentRequestService``       — Request / fulfill / verify sub-workflow.
- ``FlagService``                  — Applicant flags for fraud or eligibility concerns.

Write protocol
--------------
Every state-changing operation follows the same four steps:

    1. Load the application (``NotFound`` if absent).
    2. Validate against the state machine and ownership rules.  Nothing
       is written when validation fails.
    3. Apply the primary change as ONE conditional ``UPDATE`` keyed on
       the state observed in step 1.  Zero affected rows means another
       reviewer changed the application first; the row is re-read and
       the matching error raised.
    4. Append history and send notifications best-effort.  Their
       failures are logged and never undo or fail step 3.

Role-based authorization (who may claim, who may change status) is
enforced by the DRF permission classes on the views.  This layer only
checks ownership: the reviewer holding an application, and the
applicant owning a draft.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Q, QuerySet
from django.utils import timezone

from core.domain.access import ScopeConfig, apply_role_scope
from core.domain.exceptions import (
    AlreadyAssigned,
    InvalidArgument,
    InvalidState,
    InvalidTransition,
    NotFound,
    NotOwner,
    PermissionDenied,
)
from core.domain.notifications import NotificationService
from core.domain.transactions import conditional_update, lock_for_update, run_best_effort

from .models import (
    ACTIVE_REVIEW_STATUSES,
    FORM_SECTIONS,
    HELD_STATUSES,
    AdminNote,
    ApplicantFlag,
    Application,
    ApplicationHistory,
    ApplicationStatus,
    DocumentRequest,
    FlagSeverity,
    HistoryAction,
    ResolutionDecision,
)
from .transitions import validate_status_change, validate_transition

User = get_user_model()

logger = logging.getLogger(__name__)

# ── Role-scoped queryset configuration for application visibility ───
_APPLICATION_SCOPE_CONFIG: ScopeConfig = {
    # Unrestricted
    "super_admin": lambda qs, u: qs,
    # Reviewer sees what their masjid holds plus anything assigned to them
    "zakat_admin": lambda qs, u: qs.filter(
        Q(assigned_to_masjid_id=u.masjid_id) | Q(assigned_to=u)
    ) if u.masjid_id else qs.filter(assigned_to=u),
    # Applicant sees only their own applications
    "applicant": lambda qs, u: qs.filter(applicant=u),
}

# Applicant-facing text for each status reached via a status change.
_STATUS_MESSAGES: dict[str, str] = {
    ApplicationStatus.SUBMITTED: "Your application has been returned to the review queue.",
    ApplicationStatus.UNDER_REVIEW: "Your application is now being reviewed.",
    ApplicationStatus.PENDING_DOCUMENTS: "Additional documents are needed for your application.",
    ApplicationStatus.PENDING_VERIFICATION: "Your application documents are being verified.",
    ApplicationStatus.APPROVED: "Congratulations! Your application has been approved.",
    ApplicationStatus.REJECTED: "We regret to inform you that your application has been declined.",
    ApplicationStatus.DISBURSED: "Funds for your application have been disbursed.",
    ApplicationStatus.CLOSED: "Your application has been closed.",
}


def _actor_fields(actor: Any) -> dict[str, Any]:
    """Denormalised actor identity stored on history entries."""
    if actor is None:
        return {
            "performed_by": None,
            "performed_by_name": "System",
            "performed_by_role": "system",
            "performed_by_masjid_id": None,
        }
    return {
        "performed_by": actor,
        "performed_by_name": actor.display_name,
        "performed_by_role": actor.role,
        "performed_by_masjid_id": actor.masjid_id,
    }


def _payload(application: Application, **extra: Any) -> dict[str, Any]:
    payload = {
        "application_id": application.pk,
        "application_number": application.application_number,
    }
    payload.update(extra)
    return payload


# ═══════════════════════════════════════════════════════════════════
#  Application Query Service
# ═══════════════════════════════════════════════════════════════════


class ApplicationQueryService:
    """
    Read-side helpers for applications.

    ``get_application`` is the single loader used by every write
    operation in this module.
    """

    @staticmethod
    def get_application(application_id: int) -> Application:
        """
        Retrieve an application by PK.

        Raises ``NotFound`` if no application with the given PK exists.
        """
        try:
            return (
                Application.objects
                .select_related("applicant", "assigned_to", "assigned_to_masjid")
                .get(pk=application_id)
            )
        except Application.DoesNotExist:
            raise NotFound(f"Application with id {application_id} not found.")

    @staticmethod
    def get_application_for_user(application_id: int, requesting_user: Any) -> Application:
        """
        Retrieve an application the user is allowed to see.

        Reviewers see every application (they must be able to open pool
        items before claiming them).  Applicants see only their own; any
        other application is reported as not found.
        """
        application = ApplicationQueryService.get_application(application_id)
        if not requesting_user.is_reviewer and application.applicant_id != requesting_user.pk:
            raise NotFound(f"Application with id {application_id} not found.")
        return application

    @staticmethod
    def pool_queryset() -> QuerySet[Application]:
        """Submitted applications that no reviewer holds."""
        return (
            Application.objects
            .filter(status=ApplicationStatus.SUBMITTED, assigned_to__isnull=True)
            .select_related("applicant")
            .order_by("-created_at", "-id")
        )

    @staticmethod
    def list_pool(limit: int | None = None) -> QuerySet[Application]:
        """
        Return the unassigned pool, newest first.

        The filter is on the nullable ``assigned_to`` column itself, so an
        application held by *any* reviewer never appears.
        """
        qs = ApplicationQueryService.pool_queryset()
        if limit is None:
            limit = getattr(settings, "ZAKAT_POOL_PAGE_LIMIT", None)
        return qs[:limit] if limit else qs

    @staticmethod
    def get_filtered_queryset(
        requesting_user: Any,
        filters: dict[str, Any],
    ) -> QuerySet[Application]:
        """
        Build a role-scoped, filtered queryset of ``Application`` objects.

        ``pool=True`` from a reviewer replaces the role scope with the
        unassigned pool.
        """
        # 1. Role scope (or the pool)
        if filters.get("pool") and requesting_user.is_reviewer:
            qs = ApplicationQueryService.pool_queryset()
        else:
            qs = apply_role_scope(
                Application.objects.all(),
                requesting_user,
                scope_config=_APPLICATION_SCOPE_CONFIG,
                default="none",
            )

        # 2. Explicit filters
        status = filters.get("status")
        if status:
            qs = qs.filter(status=status)

        assigned_to = filters.get("assigned_to")
        if assigned_to is not None:
            qs = qs.filter(assigned_to_id=assigned_to)

        masjid = filters.get("masjid")
        if masjid is not None:
            qs = qs.filter(assigned_to_masjid_id=masjid)

        applicant = filters.get("applicant")
        if applicant is not None:
            qs = qs.filter(applicant_id=applicant)

        search = filters.get("search")
        if search:
            qs = qs.filter(
                Q(application_number__icontains=search)
                | Q(applicant_name__icontains=search)
                | Q(applicant_email__icontains=search)
            )

        return (
            qs.select_related("applicant", "assigned_to", "assigned_to_masjid")
            .order_by("-created_at", "-id")
        )


# ═══════════════════════════════════════════════════════════════════
#  Application History Service
# ═══════════════════════════════════════════════════════════════════


class ApplicationHistoryService:
    """
    Append-only audit ledger.

    ``record`` never raises: a failed write is logged and ``None`` is
    returned.  The application row stays authoritative.
    """

    @staticmethod
    def _create(
        application: Application,
        *,
        action: str,
        actor: Any = None,
        details: str = "",
        previous_status: str = "",
        new_status: str = "",
        previous_assignee: Any = None,
        new_assignee: Any = None,
        metadata: dict[str, Any] | None = None,
    ) -> ApplicationHistory:
        return ApplicationHistory.objects.create(
            application=application,
            action=action,
            details=details,
            previous_status=previous_status or "",
            new_status=new_status or "",
            previous_assignee=previous_assignee,
            new_assignee=new_assignee,
            metadata=metadata or {},
            **_actor_fields(actor),
        )

    @staticmethod
    def record(application: Application, **fields: Any) -> ApplicationHistory | None:
        """Best-effort append; see ``_create`` for the accepted fields."""
        return run_best_effort(
            ApplicationHistoryService._create,
            application,
            label=f"history [{fields.get('action')}] for application #{application.pk}",
            **fields,
        )

    @staticmethod
    def get_history(
        application_id: int,
        include_internal: bool = True,
    ) -> QuerySet[ApplicationHistory]:
        """
        Return the history of an application, newest first.

        With ``include_internal=False`` (the applicant's view) entries
        for internal reviewer notes and applicant flags are hidden.
        """
        if not Application.objects.filter(pk=application_id).exists():
            raise NotFound(f"Application with id {application_id} not found.")

        qs = (
            ApplicationHistory.objects
            .filter(application_id=application_id)
            .select_related("performed_by_masjid")
            .order_by("-created_at", "-id")
        )
        if not include_internal:
            qs = qs.exclude(
                action=HistoryAction.NOTE_ADDED,
                metadata__is_internal=True,
            ).exclude(action=HistoryAction.FLAGGED)
        return qs


# ═══════════════════════════════════════════════════════════════════
#  Application Creation Service
# ═══════════════════════════════════════════════════════════════════


class ApplicationCreationService:
    """
    Creates drafts and saves draft sections for the applicant.
    """

    @staticmethod
    @transaction.atomic
    def create_draft(
        applicant: Any,
        sections: dict[str, Any] | None = None,
    ) -> Application:
        """
        Create a new ``draft`` application for ``applicant``.

        The applicant's name, email, phone and flag are snapshotted onto
        the application now and never refreshed.  The application number
        is derived from the row's PK and assigned in the same transaction.
        """
        sections = {k: v for k, v in (sections or {}).items() if k in FORM_SECTIONS}

        application = Application.objects.create(
            applicant=applicant,
            applicant_name=applicant.display_name,
            applicant_email=applicant.email,
            applicant_phone=applicant.phone_number,
            applicant_is_flagged=applicant.is_flagged,
            status=ApplicationStatus.DRAFT,
            **sections,
        )
        application.application_number = Application.format_number(application.pk)
        application.save(update_fields=["application_number"])

        ApplicationHistoryService.record(
            application,
            action=HistoryAction.CREATED,
            actor=applicant,
            new_status=ApplicationStatus.DRAFT,
            details="Application created",
        )

        logger.info(
            "Application #%d (%s) created by user %s",
            application.pk,
            application.application_number,
            applicant,
        )
        return application

    @staticmethod
    @transaction.atomic
    def save_draft(
        application_id: int,
        applicant: Any,
        sections: dict[str, Any],
    ) -> Application:
        """
        Overwrite form sections on a draft owned by ``applicant``.

        Raises:
            PermissionDenied: the caller does not own the application.
            InvalidState:     the application is no longer a draft.
        """
        application = lock_for_update(Application, application_id)

        if application.applicant_id != applicant.pk:
            raise PermissionDenied("You can only edit your own application.")
        if application.status != ApplicationStatus.DRAFT:
            raise InvalidState("Only draft applications can be edited.")

        update_fields = []
        for section, value in sections.items():
            if section in FORM_SECTIONS:
                setattr(application, section, value)
                update_fields.append(section)

        if update_fields:
            application.save(update_fields=update_fields + ["updated_at"])
            ApplicationHistoryService.record(
                application,
                action=HistoryAction.EDITED,
                actor=applicant,
                details=f"Draft sections saved: {', '.join(update_fields)}",
                metadata={"sections": update_fields},
            )

        return application


# ═══════════════════════════════════════════════════════════════════
#  Application Workflow Service
# ═══════════════════════════════════════════════════════════════════


class ApplicationWorkflowService:
    """
    Submit, generic status change and resolution.
    """

    @staticmethod
    def submit(application_id: int, applicant: Any) -> Application:
        """
        Move the applicant's draft into the shared review pool.

        Raises:
            NotFound:         no such application.
            PermissionDenied: the caller does not own it.
            InvalidState:     it is not a draft.
        """
        application = ApplicationQueryService.get_application(application_id)

        if application.applicant_id != applicant.pk:
            raise PermissionDenied("You can only submit your own application.")
        if application.status != ApplicationStatus.DRAFT:
            raise InvalidState("Only draft applications can be submitted.")

        rows = conditional_update(
            Application,
            pk=application.pk,
            expected={"status": ApplicationStatus.DRAFT},
            changes={
                "status": ApplicationStatus.SUBMITTED,
                "submitted_at": timezone.now(),
            },
        )
        if rows == 0:
            ApplicationQueryService.get_application(application_id)
            raise InvalidState("This application has already been submitted.")

        application.refresh_from_db()

        ApplicationHistoryService.record(
            application,
            action=HistoryAction.SUBMITTED,
            actor=applicant,
            previous_status=ApplicationStatus.DRAFT,
            new_status=ApplicationStatus.SUBMITTED,
            details="Application submitted for review",
        )
        NotificationService.notify(
            actor=applicant,
            recipients=application.applicant,
            event_type="application_submitted",
            payload=_payload(application),
            related_object=application,
        )

        logger.info(
            "Application #%d submitted by user %s",
            application.pk,
            applicant,
        )
        return application

    @staticmethod
    def change_status(
        application_id: int,
        requesting_user: Any,
        new_status: str,
        note: str = "",
    ) -> Application:
        """
        Move an application one step through the review lifecycle.

        The write is conditional on the status observed when validating,
        so two reviewers racing on the same application cannot both
        apply a transition from the same starting point.  Returning an
        application to ``submitted`` also clears its assignment so it is
        back in the pool.

        Approving or rejecting through this call leaves the resolution
        record empty; ``resolve`` writes both together.

        Raises:
            NotFound:          no such application.
            InvalidState:      unknown status value.
            InvalidTransition: pair not in the table, reserved for
                               submit/claim, or lost a concurrent race.
        """
        application = ApplicationQueryService.get_application(application_id)
        previous_status = application.status
        previous_assignee = application.assigned_to

        validate_status_change(previous_status, new_status)

        changes: dict[str, Any] = {"status": new_status}
        if new_status == ApplicationStatus.SUBMITTED:
            changes.update(
                assigned_to=None,
                assigned_to_masjid=None,
                assigned_at=None,
            )

        rows = conditional_update(
            Application,
            pk=application.pk,
            expected={"status": previous_status},
            changes=changes,
        )
        if rows == 0:
            current = ApplicationQueryService.get_application(application_id)
            raise InvalidTransition(
                current=current.status,
                target=new_status,
                reason="The application was changed by someone else; reload and retry.",
            )

        application.refresh_from_db()

        details = f"Status changed from {previous_status} to {new_status}"
        if note:
            details = f"{details}: {note}"

        history_fields: dict[str, Any] = {}
        if new_status == ApplicationStatus.SUBMITTED and previous_assignee is not None:
            history_fields["previous_assignee"] = previous_assignee

        ApplicationHistoryService.record(
            application,
            action=HistoryAction.STATUS_CHANGED,
            actor=requesting_user,
            previous_status=previous_status,
            new_status=new_status,
            details=details,
            metadata={"note": note} if note else {},
            **history_fields,
        )
        NotificationService.notify(
            actor=requesting_user,
            recipients=application.applicant,
            event_type="status_changed",
            payload=_payload(
                application,
                previous_status=previous_status,
                new_status=new_status,
                status_label=ApplicationStatus(new_status).label,
                status_message=_STATUS_MESSAGES.get(new_status, f"Application status: {new_status}"),
            ),
            related_object=application,
        )

        logger.info(
            "Application #%d status %s → %s by user %s",
            application.pk,
            previous_status,
            new_status,
            requesting_user,
        )
        return application

    @staticmethod
    def resolve(
        application_id: int,
        requesting_user: Any,
        decision: str,
        amount_approved: Decimal | None = None,
        rejection_reason: str = "",
        notes: str = "",
    ) -> Application:
        """
        Approve or reject an application under review.

        The status change and the resolution record are written in the
        same conditional update.  An optional ``notes`` text is added as
        an applicant-visible note.

        Raises:
            InvalidArgument:   unknown decision, approval without a
                               positive amount, rejection without reason.
            NotFound:          no such application.
            InvalidState:      the application is not under review.
            InvalidTransition: lost a concurrent race.
        """
        if decision not in ResolutionDecision.values:
            raise InvalidArgument(f"Unknown decision '{decision}'.")
        if decision == ResolutionDecision.APPROVED:
            if amount_approved is None or Decimal(str(amount_approved)) <= 0:
                raise InvalidArgument("A positive approved amount is required to approve.")
            amount_approved = Decimal(str(amount_approved))
        if decision == ResolutionDecision.REJECTED and not (rejection_reason or "").strip():
            raise InvalidArgument("A rejection reason is required to reject.")

        application = ApplicationQueryService.get_application(application_id)
        previous_status = application.status

        if previous_status not in ACTIVE_REVIEW_STATUSES:
            raise InvalidState("Only applications under review can be resolved.")
        validate_transition(previous_status, decision)

        approved = decision == ResolutionDecision.APPROVED
        rows = conditional_update(
            Application,
            pk=application.pk,
            expected={"status": previous_status},
            changes={
                "status": decision,
                "resolution_decision": decision,
                "resolution_decided_by": requesting_user,
                "resolution_decided_by_masjid_id": requesting_user.masjid_id,
                "resolution_decided_at": timezone.now(),
                "amount_approved": amount_approved if approved else None,
                "rejection_reason": "" if approved else rejection_reason.strip(),
            },
        )
        if rows == 0:
            current = ApplicationQueryService.get_application(application_id)
            raise InvalidTransition(
                current=current.status,
                target=decision,
                reason="The application was changed by someone else; reload and retry.",
            )

        application.refresh_from_db()

        if approved:
            details = f"Application approved for ${amount_approved}"
            metadata = {"decision": decision, "amount_approved": str(amount_approved)}
        else:
            details = f"Application rejected: {application.rejection_reason}"
            metadata = {"decision": decision, "rejection_reason": application.rejection_reason}

        ApplicationHistoryService.record(
            application,
            action=HistoryAction.APPROVED if approved else HistoryAction.REJECTED,
            actor=requesting_user,
            previous_status=previous_status,
            new_status=decision,
            details=details,
            metadata=metadata,
        )
        if notes.strip():
            run_best_effort(
                AdminNoteService._create_note,
                application,
                requesting_user,
                notes.strip(),
                is_internal=False,
                label=f"resolution note for application #{application.pk}",
            )
        NotificationService.notify(
            actor=requesting_user,
            recipients=application.applicant,
            event_type="application_approved" if approved else "application_rejected",
            payload=_payload(
                application,
                amount_approved=application.amount_approved,
                rejection_reason=application.rejection_reason,
            ),
            related_object=application,
        )

        logger.info(
            "Application #%d resolved as %s by user %s",
            application.pk,
            decision,
            requesting_user,
        )
        return application


# ═══════════════════════════════════════════════════════════════════
#  Application Assignment Service
# ═══════════════════════════════════════════════════════════════════


class ApplicationAssignmentService:
    """
    Claim / release against the shared pool of submitted applications.

    At most one reviewer holds an application.  Claim is a conditional
    update keyed on ``status = submitted AND assigned_to IS NULL``; of two
    concurrent claims exactly one updates the row and the other sees zero
    affected rows and reports ``AlreadyAssigned``.
    """

    @staticmethod
    def _claim_error(application: Application) -> Exception:
        """Error for an application that cannot be claimed as it stands."""
        if application.assigned_to_id is not None and application.status in HELD_STATUSES:
            return AlreadyAssigned(
                f"Application {application.application_number} is already "
                f"assigned to another reviewer."
            )
        return InvalidState(
            f"Only submitted applications can be claimed "
            f"(current status: {application.status})."
        )

    @staticmethod
    def claim(application_id: int, requesting_user: Any) -> Application:
        """
        Take an unassigned, submitted application for review.

        Raises:
            NotFound:        no such application.
            AlreadyAssigned: another reviewer holds it (including one who
                             won a concurrent claim).
            InvalidState:    it is not in ``submitted``.
        """
        application = ApplicationQueryService.get_application(application_id)

        if application.assigned_to_id is not None or application.status != ApplicationStatus.SUBMITTED:
            raise ApplicationAssignmentService._claim_error(application)

        rows = conditional_update(
            Application,
            pk=application.pk,
            expected={
                "status": ApplicationStatus.SUBMITTED,
                "assigned_to__isnull": True,
            },
            changes={
                "assigned_to": requesting_user,
                "assigned_to_masjid_id": requesting_user.masjid_id,
                "assigned_at": timezone.now(),
                "status": ApplicationStatus.UNDER_REVIEW,
            },
        )
        if rows == 0:
            current = ApplicationQueryService.get_application(application_id)
            logger.info(
                "Claim of application #%d by user %s lost to a concurrent update",
                application.pk,
                requesting_user,
            )
            if current.assigned_to_id is None and current.status == ApplicationStatus.SUBMITTED:
                raise AlreadyAssigned("The application was claimed concurrently; reload and retry.")
            raise ApplicationAssignmentService._claim_error(current)

        application.refresh_from_db()

        ApplicationHistoryService.record(
            application,
            action=HistoryAction.ASSIGNED,
            actor=requesting_user,
            previous_status=ApplicationStatus.SUBMITTED,
            new_status=ApplicationStatus.UNDER_REVIEW,
            new_assignee=requesting_user,
            details=f"Application claimed by {requesting_user.display_name}",
        )
        NotificationService.notify(
            actor=requesting_user,
            recipients=application.applicant,
            event_type="application_under_review",
            payload=_payload(application),
            related_object=application,
        )

        logger.info(
            "Application #%d claimed by user %s",
            application.pk,
            requesting_user,
        )
        return application

    @staticmethod
    def release(
        application_id: int,
        requesting_user: Any,
        reason: str = "",
    ) -> Application:
        """
        Return a held application to the pool.

        Only assignment and status change.  Notes, document requests and
        their verification state are kept.

        Raises:
            NotFound:     no such application.
            NotOwner:     the caller does not hold it.
            InvalidState: it is not in an active review status.
        """
        application = ApplicationQueryService.get_application(application_id)

        if application.assigned_to_id != requesting_user.pk:
            raise NotOwner("You can only release applications assigned to you.")
        if application.status not in ACTIVE_REVIEW_STATUSES:
            raise InvalidState(
                f"Application cannot be released in status '{application.status}'."
            )

        previous_status = application.status
        rows = conditional_update(
            Application,
            pk=application.pk,
            expected={
                "assigned_to": requesting_user.pk,
                "status": previous_status,
            },
            changes={
                "assigned_to": None,
                "assigned_to_masjid": None,
                "assigned_at": None,
                "status": ApplicationStatus.SUBMITTED,
            },
        )
        if rows == 0:
            current = ApplicationQueryService.get_application(application_id)
            if current.assigned_to_id != requesting_user.pk:
                raise NotOwner("You can only release applications assigned to you.")
            raise InvalidState(
                f"Application cannot be released in status '{current.status}'."
            )

        application.refresh_from_db()

        details = "Application released to pool"
        if reason:
            details = f"{details}: {reason}"

        ApplicationHistoryService.record(
            application,
            action=HistoryAction.RELEASED,
            actor=requesting_user,
            previous_status=previous_status,
            new_status=ApplicationStatus.SUBMITTED,
            previous_assignee=requesting_user,
            details=details,
            metadata={"reason": reason} if reason else {},
        )
        NotificationService.notify(
            actor=requesting_user,
            recipients=application.applicant,
            event_type="application_released",
            payload=_payload(application),
            related_object=application,
        )

        logger.info(
            "Application #%d released by user %s",
            application.pk,
            requesting_user,
        )
        return application


# ═══════════════════════════════════════════════════════════════════
#  Admin Note Service
# ═══════════════════════════════════════════════════════════════════


class AdminNoteService:
    """
    Reviewer notes.  Notes are append-only: there is no update or delete.
    """

    @staticmethod
    def _create_note(
        application: Application,
        author: Any,
        content: str,
        is_internal: bool = True,
    ) -> AdminNote:
        return AdminNote.objects.create(
            application=application,
            content=content,
            created_by=author,
            created_by_name=author.display_name,
            created_by_masjid_id=author.masjid_id,
            is_internal=is_internal,
        )

    @staticmethod
    def add_note(
        application_id: int,
        requesting_user: Any,
        content: str,
        is_internal: bool = True,
    ) -> AdminNote:
        """
        Add a note to an application.

        Internal notes stay with reviewers; others notify the applicant.

        Raises:
            InvalidArgument: empty content or longer than the limit.
            NotFound:        no such application.
        """
        content = (content or "").strip()
        max_length = getattr(settings, "ZAKAT_NOTE_MAX_LENGTH", 5000)
        if not content:
            raise InvalidArgument("Note content is required.")
        if len(content) > max_length:
            raise InvalidArgument(f"Note content must be at most {max_length} characters.")

        application = ApplicationQueryService.get_application(application_id)
        note = AdminNoteService._create_note(application, requesting_user, content, is_internal)

        ApplicationHistoryService.record(
            application,
            action=HistoryAction.NOTE_ADDED,
            actor=requesting_user,
            details="Internal note added" if is_internal else "Note added",
            metadata={"note_id": note.pk, "is_internal": is_internal},
        )
        if not is_internal:
            NotificationService.notify(
                actor=requesting_user,
                recipients=application.applicant,
                event_type="note_added",
                payload=_payload(application),
                related_object=application,
            )

        logger.info(
            "Note #%d (%s) added to application #%d by user %s",
            note.pk,
            "internal" if is_internal else "visible",
            application.pk,
            requesting_user,
        )
        return note

    @staticmethod
    def list_notes(application_id: int, include_internal: bool = True) -> QuerySet[AdminNote]:
        if not Application.objects.filter(pk=application_id).exists():
            raise NotFound(f"Application with id {application_id} not found.")
        qs = AdminNote.objects.filter(application_id=application_id).order_by("-created_at", "-id")
        if not include_internal:
            qs = qs.filter(is_internal=False)
        return qs


# ═══════════════════════════════════════════════════════════════════
#  Document Request Service
# ═══════════════════════════════════════════════════════════════════


class DocumentRequestService:
    """
    Reviewer-to-applicant document requests.

    None of these operations changes the application's status; moving to
    ``pending_documents`` or back to ``under_review`` is a separate status
    change by the reviewer.
    """

    @staticmethod
    def list_requests(application_id: int) -> QuerySet[DocumentRequest]:
        """Requests on an application, newest first."""
        if not Application.objects.filter(pk=application_id).exists():
            raise NotFound(f"Application with id {application_id} not found.")
        return (
            DocumentRequest.objects
            .filter(application_id=application_id)
            .order_by("-requested_at", "-id")
        )

    @staticmethod
    def request_document(
        application_id: int,
        requesting_user: Any,
        document_type: str,
        description: str = "",
        required: bool = True,
    ) -> DocumentRequest:
        """
        Ask the applicant for a document.

        Raises:
            InvalidArgument: empty document type.
            NotFound:        no such application.
        """
        document_type = (document_type or "").strip()
        if not document_type:
            raise InvalidArgument("Document type is required.")

        application = ApplicationQueryService.get_application(application_id)

        doc_request = DocumentRequest.objects.create(
            application=application,
            document_type=document_type,
            description=description,
            required=required,
            requested_by=requesting_user,
            requested_by_name=requesting_user.display_name,
        )

        ApplicationHistoryService.record(
            application,
            action=HistoryAction.DOCUMENT_REQUESTED,
            actor=requesting_user,
            details=f"Document requested: {document_type}",
            metadata={"request_id": doc_request.pk, "document_type": document_type, "required": required},
        )
        NotificationService.notify(
            actor=requesting_user,
            recipients=application.applicant,
            event_type="document_requested",
            payload=_payload(application, document_type=document_type, description=description),
            related_object=application,
        )

        logger.info(
            "Document request #%d (%s) on application #%d by user %s",
            doc_request.pk,
            document_type,
            application.pk,
            requesting_user,
        )
        return doc_request

    @staticmethod
    def fulfill_request(
        application_id: int,
        request_id: int,
        storage_path: str,
        file_name: str = "",
        requesting_user: Any = None,
    ) -> DocumentRequest:
        """
        Record the applicant's upload for a request.

        Any previous verification outcome is cleared, so a re-upload
        after a rejection goes back to awaiting verification.  The
        caller's ownership of the application is checked by the view.

        Raises:
            InvalidArgument: empty storage path.
            NotFound:        the request is not on this application.
        """
        if not (storage_path or "").strip():
            raise InvalidArgument("Storage path is required.")

        with transaction.atomic():
            doc_request = lock_for_update(
                DocumentRequest, request_id, application_id=application_id
            )
            doc_request.storage_path = storage_path
            doc_request.file_name = file_name
            doc_request.fulfilled_by = requesting_user
            doc_request.fulfilled_at = timezone.now()
            doc_request.verified = None
            doc_request.verified_by = None
            doc_request.verified_by_name = ""
            doc_request.verified_at = None
            doc_request.verification_notes = ""
            doc_request.save(update_fields=[
                "storage_path", "file_name", "fulfilled_by", "fulfilled_at",
                "verified", "verified_by", "verified_by_name", "verified_at",
                "verification_notes", "updated_at",
            ])

        application = ApplicationQueryService.get_application(application_id)

        ApplicationHistoryService.record(
            application,
            action=HistoryAction.DOCUMENT_UPLOADED,
            actor=requesting_user,
            details=f"Document uploaded: {doc_request.document_type}",
            metadata={
                "request_id": doc_request.pk,
                "document_type": doc_request.document_type,
                "storage_path": storage_path,
            },
        )
        if application.assigned_to is not None:
            all_fulfilled = not DocumentRequest.objects.filter(
                application_id=application_id,
                required=True,
                fulfilled_at__isnull=True,
            ).exists()
            NotificationService.notify(
                actor=requesting_user,
                recipients=application.assigned_to,
                event_type="document_uploaded",
                payload=_payload(
                    application,
                    document_type=doc_request.document_type,
                    completion=" All required documents have been submitted." if all_fulfilled else "",
                ),
                related_object=application,
            )

        logger.info(
            "Document request #%d on application #%d fulfilled by user %s",
            doc_request.pk,
            application_id,
            requesting_user,
        )
        return doc_request

    @staticmethod
    def verify_request(
        application_id: int,
        request_id: int,
        requesting_user: Any,
        verified: bool,
        notes: str = "",
    ) -> DocumentRequest:
        """
        Record the reviewer's verdict on an uploaded document.

        Raises:
            NotFound: the request is not on this application, or nothing
                      has been uploaded for it yet.
        """
        with transaction.atomic():
            doc_request = lock_for_update(
                DocumentRequest, request_id, application_id=application_id
            )
            if not doc_request.is_fulfilled:
                raise NotFound(
                    f"Document request #{request_id} has not been fulfilled yet."
                )
            doc_request.verified = bool(verified)
            doc_request.verified_by = requesting_user
            doc_request.verified_by_name = requesting_user.display_name
            doc_request.verified_at = timezone.now()
            doc_request.verification_notes = notes
            doc_request.save(update_fields=[
                "verified", "verified_by", "verified_by_name", "verified_at",
                "verification_notes", "updated_at",
            ])

        application = ApplicationQueryService.get_application(application_id)

        outcome = "verified" if verified else "rejected"
        details = f"Document {outcome}: {doc_request.document_type}"
        if notes and not verified:
            details = f"{details} - {notes}"

        ApplicationHistoryService.record(
            application,
            action=HistoryAction.DOCUMENT_VERIFIED,
            actor=requesting_user,
            details=details,
            metadata={
                "request_id": doc_request.pk,
                "document_type": doc_request.document_type,
                "verified": bool(verified),
                "notes": notes,
            },
        )
        if not verified:
            NotificationService.notify(
                actor=requesting_user,
                recipients=application.applicant,
                event_type="document_rejected",
                payload=_payload(
                    application,
                    document_type=doc_request.document_type,
                    notes=notes or "Please check and re-upload.",
                ),
                related_object=application,
            )

        logger.info(
            "Document request #%d on application #%d %s by user %s",
            doc_request.pk,
            application_id,
            outcome,
            requesting_user,
        )
        return doc_request


# ═══════════════════════════════════════════════════════════════════
#  Applicant Flag Service
# ═══════════════════════════════════════════════════════════════════


class FlagService:
    """
    Reviewer flags on applicants.

    ``User.is_flagged`` and ``Application.applicant_is_flagged`` on every
    application the applicant filed are true exactly while the applicant
    has an active flag.  Flag creation and resolution lock the applicant's
    user row so the two cannot interleave and leave that state stale.
    """

    @staticmethod
    def _set_applicant_flagged(applicant_id: int, flagged: bool) -> None:
        User.objects.filter(pk=applicant_id).update(is_flagged=flagged)
        Application.objects.filter(applicant_id=applicant_id).update(
            applicant_is_flagged=flagged,
            updated_at=timezone.now(),
        )

    @staticmethod
    def get_flag(flag_id: int) -> ApplicantFlag:
        try:
            return ApplicantFlag.objects.select_related(
                "applicant", "application", "flagged_by_masjid",
            ).get(pk=flag_id)
        except ApplicantFlag.DoesNotExist:
            raise NotFound(f"Flag with id {flag_id} not found.")

    @staticmethod
    def list_flags(filters: dict[str, Any] | None = None) -> QuerySet[ApplicantFlag]:
        """
        Flags newest first, optionally filtered by ``is_active``,
        ``severity``, ``applicant`` or ``masjid`` (the flagging masjid).
        """
        filters = filters or {}
        qs = ApplicantFlag.objects.select_related(
            "applicant", "application", "flagged_by_masjid",
        )
        if filters.get("is_active") is not None:
            qs = qs.filter(is_active=filters["is_active"])
        if filters.get("severity"):
            qs = qs.filter(severity=filters["severity"])
        if filters.get("applicant"):
            qs = qs.filter(applicant_id=filters["applicant"])
        if filters.get("masjid"):
            qs = qs.filter(flagged_by_masjid_id=filters["masjid"])
        return qs.order_by("-created_at", "-id")

    @staticmethod
    def get_flags_for_applicant(applicant_id: int) -> QuerySet[ApplicantFlag]:
        return FlagService.list_flags({"applicant": applicant_id})

    @staticmethod
    def is_applicant_flagged(applicant_id: int) -> bool:
        return ApplicantFlag.objects.filter(applicant_id=applicant_id, is_active=True).exists()

    @staticmethod
    def flag_applicant(
        requesting_user: Any,
        applicant_id: int,
        reason: str,
        severity: str = FlagSeverity.WARNING,
        application_id: int | None = None,
    ) -> ApplicantFlag:
        """
        Flag an applicant for fraud or eligibility concerns.

        Marks the applicant and all of their applications as flagged and
        appends a ``flagged`` history entry to each of those applications.

        Raises:
            InvalidArgument: empty reason, unknown severity, or an
                             application filed by someone else.
            NotFound:        no such applicant or application.
        """
        reason = (reason or "").strip()
        if not reason:
            raise InvalidArgument("A reason is required to flag an applicant.")
        if severity not in FlagSeverity.values:
            raise InvalidArgument(
                f"Unknown severity '{severity}'. Valid values: {', '.join(FlagSeverity.values)}."
            )

        application = None
        if application_id is not None:
            application = ApplicationQueryService.get_application(application_id)
            if application.applicant_id != applicant_id:
                raise InvalidArgument(
                    f"Application {application.application_number} was not filed by this applicant."
                )

        with transaction.atomic():
            lock_for_update(User, applicant_id)
            flag = ApplicantFlag.objects.create(
                applicant_id=applicant_id,
                application=application,
                reason=reason,
                severity=severity,
                flagged_by=requesting_user,
                flagged_by_name=requesting_user.display_name,
                flagged_by_masjid_id=requesting_user.masjid_id,
            )
            FlagService._set_applicant_flagged(applicant_id, True)

        for flagged_application in Application.objects.filter(applicant_id=applicant_id):
            ApplicationHistoryService.record(
                flagged_application,
                action=HistoryAction.FLAGGED,
                actor=requesting_user,
                details=f"Applicant flagged: {reason} ({severity})",
                metadata={"flag_id": flag.pk, "severity": severity},
            )

        logger.info(
            "Applicant #%d flagged (%s) by user %s, flag #%d",
            applicant_id,
            severity,
            requesting_user,
            flag.pk,
        )
        return FlagService.get_flag(flag.pk)

    @staticmethod
    def resolve_flag(
        flag_id: int,
        requesting_user: Any,
        resolution_notes: str,
    ) -> ApplicantFlag:
        """
        Resolve an active flag.

        The applicant is unflagged once none of their flags is active.
        Only super admins and the reviewer who raised the flag may
        resolve it.

        Raises:
            InvalidArgument:  empty resolution notes.
            NotFound:         no such flag.
            PermissionDenied: caller neither raised it nor is a super admin.
            InvalidState:     the flag is already resolved.
        """
        resolution_notes = (resolution_notes or "").strip()
        if not resolution_notes:
            raise InvalidArgument("Resolution notes are required to resolve a flag.")

        flag = FlagService.get_flag(flag_id)
        if not requesting_user.is_super_admin and flag.flagged_by_id != requesting_user.pk:
            raise PermissionDenied("Only super admins or the reviewer who raised a flag can resolve it.")

        with transaction.atomic():
            lock_for_update(User, flag.applicant_id)
            rows = conditional_update(
                ApplicantFlag,
                pk=flag.pk,
                expected={"is_active": True},
                changes={
                    "is_active": False,
                    "resolved_by": requesting_user,
                    "resolved_at": timezone.now(),
                    "resolution_notes": resolution_notes,
                },
            )
            if rows == 0:
                raise InvalidState(f"Flag #{flag.pk} is already resolved.")
            still_flagged = FlagService.is_applicant_flagged(flag.applicant_id)
            if not still_flagged:
                FlagService._set_applicant_flagged(flag.applicant_id, False)

        logger.info(
            "Flag #%d on applicant #%d resolved by user %s (applicant still flagged: %s)",
            flag.pk,
            flag.applicant_id,
            requesting_user,
            still_flagged,
        )
        return FlagService.get_flag(flag.pk)

"""Service facade consumed by the presentation/API layer."""

from __future__ import annotations

from datetime import date, time
from decimal import Decimal
from typing import Any, Protocol, Sequence, runtime_checkable

import structlog

from .core import (
    ApplicationWorkflow,
    BulkScheduleReport,
    CommitteeDecisionProcessor,
    Decision,
    DecisionReport,
    EndorsementBatchProcessor,
    EndorsementReport,
    FilterMode,
    InterviewScheduler,
)
from .schemas import Application, Evaluation, InterviewResult, InterviewSlot, InterviewType
from .store import AuditLogger, ScholarshipRepository


@runtime_checkable
class Notifier(Protocol):
    """Outbound notification channel (email, SMS, ...)."""

    def notify(self, event: str, application: Application, **details: Any) -> None:
        """Deliver a notification about ``application``."""


class LoggingNotifier:
    """Notifier that only records notifications in the structured log."""

    def __init__(self) -> None:
        self._logger = structlog.get_logger(__name__)

    def notify(self, event: str, application: Application, **details: Any) -> None:
        self._logger.info(
            "notification.sent",
            notification_event=event,
            application_id=application.id,
            student_ref=application.student_ref,
            **details,
        )


class ScholarshipService:
    """Entry points for lifecycle transitions, scheduling, endorsement and decisions.

    Every call is one synchronous unit of work. Errors from the core propagate
    to the caller unchanged; notifications are fire-and-forget and an audit
    record is appended for every successful state change.
    """

    def __init__(
        self,
        *,
        repository: ScholarshipRepository,
        workflow: ApplicationWorkflow,
        scheduler: InterviewScheduler,
        endorsement: EndorsementBatchProcessor,
        decisions: CommitteeDecisionProcessor,
        notifier: Notifier | None = None,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._repository = repository
        self._workflow = workflow
        self._scheduler = scheduler
        self._endorsement = endorsement
        self._decisions = decisions
        self._notifier = notifier or LoggingNotifier()
        self._audit = audit_logger
        self._logger = structlog.get_logger(__name__)

    @property
    def repository(self) -> ScholarshipRepository:
        return self._repository

    @property
    def scheduler(self) -> InterviewScheduler:
        return self._scheduler

    def with_audit_logger(self, audit_logger: AuditLogger | None) -> "ScholarshipService":
        self._audit = audit_logger
        return self

    def get_application(self, application_id: str) -> Application:
        return self._repository.get_application(application_id)

    # lifecycle

    def submit_application(self, application_id: str, *, actor: str | None = None) -> Application:
        return self._transition(application_id, "submit", notify="submitted", actor=actor)

    def mark_documents_reviewed(
        self, application_id: str, *, actor: str | None = None, notes: str | None = None
    ) -> Application:
        return self._transition(
            application_id, "mark_documents_reviewed", notify="documents_reviewed", actor=actor, notes=notes
        )

    def endorse_application(
        self, application_id: str, notes: str | None = None, *, actor: str | None = None
    ) -> Application:
        return self._transition(application_id, "endorse", notify="endorsed_to_ssc", actor=actor, notes=notes)

    def approve_application(
        self,
        application_id: str,
        notes: str | None = None,
        *,
        approved_amount: Decimal | int | str | None = None,
        actor: str | None = None,
    ) -> Application:
        return self._transition(
            application_id,
            "approve",
            notify="approved",
            approved_amount=approved_amount,
            actor=actor,
            notes=notes,
        )

    def reject_application(
        self, application_id: str, reason: str | None, *, actor: str | None = None
    ) -> Application:
        """Reject the application, cancelling its scheduled interview if it has one."""
        with structlog.contextvars.bound_contextvars(application_id=application_id, action="reject"):
            application, cancelled = self._scheduler.reject_application(
                application_id, reason, rejected_by=actor
            )
            for slot in cancelled:
                self._record(
                    "interview.cancelled",
                    entity="interview_slot",
                    entity_id=slot.id,
                    application_id=slot.application_id,
                    reason=slot.cancellation_reason,
                    actor=actor,
                )
            self._committed(application, "reject", notify="rejected", actor=actor)
        return application

    def withdraw_application(self, application_id: str, *, actor: str | None = None) -> Application:
        return self._transition(application_id, "withdraw", actor=actor)

    def put_on_hold(self, application_id: str, reason: str | None, *, actor: str | None = None) -> Application:
        return self._transition(application_id, "put_on_hold", reason=reason, actor=actor)

    def resume_application(self, application_id: str, *, actor: str | None = None) -> Application:
        return self._transition(application_id, "resume", actor=actor)

    def flag_for_compliance(
        self, application_id: str, reason: str | None, *, actor: str | None = None
    ) -> Application:
        return self._transition(
            application_id, "flag_for_compliance", notify="for_compliance", reason=reason, actor=actor
        )

    def submit_compliance_documents(self, application_id: str, *, actor: str | None = None) -> Application:
        return self._transition(application_id, "submit_compliance_documents", actor=actor)

    def clear_compliance(self, application_id: str, *, actor: str | None = None) -> Application:
        return self._transition(application_id, "clear_compliance", actor=actor)

    def release_interview(self, application_id: str, *, actor: str | None = None) -> Application:
        """Return an application whose slot was cancelled to the schedulable state."""
        return self._transition(application_id, "unschedule_interview", actor=actor)

    def start_grant_processing(self, application_id: str, *, actor: str | None = None) -> Application:
        return self._transition(application_id, "start_grant_processing", actor=actor)

    def mark_grant_disbursed(self, application_id: str, *, actor: str | None = None) -> Application:
        return self._transition(application_id, "mark_disbursed", notify="grants_disbursed", actor=actor)

    # scheduling

    def schedule_interview(
        self,
        application_id: str,
        interviewer_id: str,
        day: date,
        start_time: time,
        duration_minutes: int | None = None,
        meeting_link: str | None = None,
        *,
        interview_type: InterviewType = InterviewType.ONLINE,
        location: str | None = None,
        notes: str | None = None,
        scheduled_by: str | None = None,
    ) -> InterviewSlot:
        with structlog.contextvars.bound_contextvars(
            application_id=application_id, interviewer_id=interviewer_id
        ):
            slot = self._scheduler.schedule(
                application_id,
                interviewer_id,
                day,
                start_time,
                duration_minutes,
                meeting_link,
                interview_type=interview_type,
                location=location,
                notes=notes,
                scheduled_by=scheduled_by,
            )
            self._after_booking(slot, scheduled_by=scheduled_by, bulk=False)
        return slot

    def schedule_interview_first_available(
        self,
        application_id: str,
        interviewer_id: str,
        from_date: date,
        days: int = 7,
        duration_minutes: int | None = None,
        meeting_link: str | None = None,
        *,
        interview_type: InterviewType = InterviewType.ONLINE,
        location: str | None = None,
        notes: str | None = None,
        scheduled_by: str | None = None,
    ) -> InterviewSlot:
        with structlog.contextvars.bound_contextvars(
            application_id=application_id, interviewer_id=interviewer_id
        ):
            slot = self._scheduler.schedule_first_available(
                application_id,
                interviewer_id,
                from_date,
                days,
                duration_minutes,
                meeting_link,
                interview_type=interview_type,
                location=location,
                notes=notes,
                scheduled_by=scheduled_by,
            )
            self._after_booking(slot, scheduled_by=scheduled_by, bulk=False, automatic=True)
        return slot

    def schedule_bulk_interviews(
        self,
        application_ids: Sequence[str],
        interviewer_id: str,
        day: date,
        start_time: time,
        duration_minutes: int | None = None,
        gap_minutes: int | None = None,
        *,
        meeting_link: str | None = None,
        interview_type: InterviewType = InterviewType.ONLINE,
        notes: str | None = None,
        scheduled_by: str | None = None,
    ) -> BulkScheduleReport:
        report = self._scheduler.schedule_bulk(
            application_ids,
            interviewer_id,
            day,
            start_time,
            duration_minutes,
            gap_minutes,
            meeting_link=meeting_link,
            interview_type=interview_type,
            notes=notes,
            scheduled_by=scheduled_by,
        )
        for slot in report.scheduled:
            self._after_booking(slot, scheduled_by=scheduled_by, bulk=True)
        return report

    def cancel_interview(
        self,
        slot_id: str,
        reason: str | None,
        *,
        cancelled_by: str | None = None,
        release_application: bool = False,
    ) -> InterviewSlot:
        slot = self._scheduler.cancel(slot_id, reason, cancelled_by=cancelled_by)
        self._record(
            "interview.cancelled",
            entity="interview_slot",
            entity_id=slot.id,
            application_id=slot.application_id,
            reason=slot.cancellation_reason,
            actor=cancelled_by,
        )
        if release_application:
            self.release_interview(slot.application_id, actor=cancelled_by)
        return slot

    def reschedule_interview(
        self,
        slot_id: str,
        day: date,
        start_time: time,
        duration_minutes: int | None = None,
        *,
        interviewer_id: str | None = None,
        meeting_link: str | None = None,
        reason: str | None = None,
        scheduled_by: str | None = None,
    ) -> InterviewSlot:
        slot = self._scheduler.reschedule(
            slot_id,
            day,
            start_time,
            duration_minutes,
            interviewer_id=interviewer_id,
            meeting_link=meeting_link,
            reason=reason,
            scheduled_by=scheduled_by,
        )
        self._record(
            "interview.rescheduled",
            entity="interview_slot",
            entity_id=slot.id,
            application_id=slot.application_id,
            previous_slot_id=slot.rescheduled_from,
            actor=scheduled_by,
        )
        self._notify(
            "interview_rescheduled",
            slot.application_id,
            interview_date=slot.date.isoformat(),
            interview_time=slot.start_time.strftime("%H:%M"),
        )
        return slot

    def complete_interview(
        self,
        slot_id: str,
        result: InterviewResult | str,
        evaluation: Evaluation,
        *,
        completed_by: str | None = None,
    ) -> Application:
        application = self._scheduler.complete(
            slot_id, InterviewResult(result), evaluation, completed_by=completed_by
        )
        self._record(
            "interview.completed",
            entity="application",
            entity_id=application.id,
            slot_id=slot_id,
            from_status="interview_scheduled",
            to_status=application.status.value,
            result=InterviewResult(result).value,
            recommendation=evaluation.overall_recommendation.value,
            actor=completed_by,
        )
        return application

    def available_interview_starts(
        self, interviewer_id: str, day: date, duration_minutes: int | None = None
    ) -> list[time]:
        return self._scheduler.available_starts(interviewer_id, day, duration_minutes)

    # endorsement

    def bulk_endorse(
        self,
        application_ids: Sequence[str],
        filter_mode: FilterMode | str,
        notes: str | None = None,
        *,
        endorsed_by: str | None = None,
    ) -> EndorsementReport:
        report = self._endorsement.bulk_endorse(
            application_ids, filter_mode, notes, endorsed_by=endorsed_by
        )
        for item in report.results:
            if item.outcome != "endorsed":
                continue
            self._record(
                "application.endorse",
                entity="application",
                entity_id=item.application_id,
                from_status="interview_completed",
                to_status="endorsed_to_ssc",
                bulk_operation=True,
                filter_mode=report.filter_mode.value,
                actor=endorsed_by,
            )
            self._notify("endorsed_to_ssc", item.application_id)
        return report

    # committee decisions

    def bulk_approve(
        self,
        application_ids: Sequence[str],
        notes: str | None = None,
        *,
        approved_by: str | None = None,
    ) -> DecisionReport:
        report = self._decisions.bulk_approve(application_ids, notes, approved_by=approved_by)
        self._after_decisions(report, actor=approved_by)
        return report

    def bulk_reject(
        self,
        application_ids: Sequence[str],
        reason: str | None,
        *,
        rejected_by: str | None = None,
    ) -> DecisionReport:
        report = self._decisions.bulk_reject(application_ids, reason, rejected_by=rejected_by)
        self._after_decisions(report, actor=rejected_by)
        return report

    # internals

    def _transition(
        self,
        application_id: str,
        action: str,
        *,
        notify: str | None = None,
        **kwargs: Any,
    ) -> Application:
        with structlog.contextvars.bound_contextvars(application_id=application_id, action=action):
            application = self._workflow.transition(application_id, action, **kwargs)
            self._committed(application, action, notify=notify, actor=kwargs.get("actor"))
        return application

    def _committed(
        self, application: Application, action: str, *, notify: str | None, actor: str | None
    ) -> None:
        change = application.history[-1]
        self._record(
            f"application.{action}",
            entity="application",
            entity_id=application.id,
            from_status=change.from_status.value,
            to_status=change.to_status.value,
            actor=actor,
        )
        if notify:
            self._notify(notify, application)

    def _after_decisions(self, report: DecisionReport, *, actor: str | None) -> None:
        approved = report.decision is Decision.APPROVE
        for item in report.results:
            if item.outcome != "decided":
                continue
            self._record(
                f"application.{report.decision.value}",
                entity="application",
                entity_id=item.application_id,
                from_status="endorsed_to_ssc",
                to_status="approved" if approved else "rejected",
                bulk_operation=True,
                actor=actor,
            )
            self._notify("approved" if approved else "rejected", item.application_id)

    def _after_booking(
        self, slot: InterviewSlot, *, scheduled_by: str | None, bulk: bool, automatic: bool = False
    ) -> None:
        self._record(
            "interview.scheduled_auto" if automatic else "interview.scheduled",
            entity="interview_slot",
            entity_id=slot.id,
            application_id=slot.application_id,
            interviewer_id=slot.interviewer_id,
            interview_date=slot.date.isoformat(),
            interview_time=slot.start_time.strftime("%H:%M"),
            duration=slot.duration_minutes,
            bulk_operation=bulk,
            scheduling_type="automatic" if automatic else "manual",
            actor=scheduled_by,
        )
        self._notify(
            "interview_scheduled",
            slot.application_id,
            interview_date=slot.date.isoformat(),
            interview_time=slot.start_time.strftime("%H:%M"),
            interview_type=slot.interview_type.value,
            meeting_link=slot.meeting_link,
        )

    def _record(self, action: str, **record: Any) -> None:
        if self._audit is None:
            return
        self._audit.append({"action": action, **record})

    def _notify(self, event: str, application: Application | str, **details: Any) -> None:
        try:
            if isinstance(application, str):
                application = self._repository.get_application(application)
            self._notifier.notify(event, application, **details)
        except Exception as exc:  # noqa: BLE001
            application_id = application if isinstance(application, str) else application.id
            self._logger.warning(
                "notification.failed",
                notification_event=event,
                application_id=application_id,
                error=str(exc),
            )


__all__ = ["LoggingNotifier", "Notifier", "ScholarshipService"]

"""Interview slot allocation with per-interviewer conflict detection."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import TYPE_CHECKING, Any, Callable, Mapping, Sequence

import pendulum
import structlog

from ..schemas import (
    Application,
    Evaluation,
    InterviewResult,
    InterviewSlot,
    InterviewType,
    Interviewer,
    SlotStatus,
)
from ..schemas.config import SchedulerConfig
from .errors import (
    InvalidSchedule,
    InvalidState,
    MissingInterviewerBinding,
    MissingReason,
    NoAvailability,
    RecordNotFound,
    ScholarFlowError,
    SchedulingConflict,
)
from .intervals import (
    Conflict,
    TimeRange,
    active_slots,
    find_batch_conflicts,
    find_conflicts,
    format_hhmm,
    free_start_times,
    pack_consecutive,
)
from .lifecycle import ApplicationLifecycle
from .locks import KeyedLocks, application_key, interviewer_day_key

if TYPE_CHECKING:
    from ..store import ScholarshipRepository


@dataclass(slots=True)
class BulkItemFailure:
    """Application that could not be scheduled during a bulk allocation."""

    application_id: str
    code: str
    message: str
    planned_start: str | None = None
    planned_end: str | None = None


@dataclass(slots=True)
class BulkScheduleReport:
    """Outcome of a bulk consecutive allocation, in input order."""

    interviewer_id: str
    date: date
    scheduled: list[InterviewSlot] = field(default_factory=list)
    failed: list[BulkItemFailure] = field(default_factory=list)

    @property
    def fully_scheduled(self) -> bool:
        return not self.failed

    def to_dict(self) -> dict[str, Any]:
        return {
            "interviewer_id": self.interviewer_id,
            "date": self.date.isoformat(),
            "scheduled": [slot.model_dump(mode="json") for slot in self.scheduled],
            "failed": [
                {
                    "application_id": item.application_id,
                    "code": item.code,
                    "message": item.message,
                    "planned_start": item.planned_start,
                    "planned_end": item.planned_end,
                }
                for item in self.failed
            ],
        }


class InterviewScheduler:
    """Allocate, cancel, complete and reschedule interview slots.

    Conflict detection and slot creation for one ``(interviewer, date)`` run
    inside that pair's lock; application status changes additionally hold the
    application's lock. Slots are never deleted.
    """

    def __init__(
        self,
        *,
        repository: "ScholarshipRepository",
        lifecycle: ApplicationLifecycle,
        locks: KeyedLocks,
        config: SchedulerConfig | Mapping[str, Any] | None = None,
        id_factory: Callable[[], str] | None = None,
        now_provider: Callable[[], datetime] | None = None,
    ) -> None:
        self._repository = repository
        self._lifecycle = lifecycle
        self._locks = locks
        if config is None or isinstance(config, SchedulerConfig):
            self._config = config or SchedulerConfig()
        else:
            self._config = SchedulerConfig.model_validate(dict(config))
        self._new_id = id_factory or (lambda: uuid.uuid4().hex)
        self._now = now_provider or pendulum.now
        self._logger = structlog.get_logger(__name__)

    @property
    def config(self) -> SchedulerConfig:
        return self._config

    def schedule(
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
        duration = self._config.default_duration_minutes if duration_minutes is None else duration_minutes
        requested = TimeRange.from_start(start_time, duration)

        with self._locks.hold(interviewer_day_key(interviewer_id, day), application_key(application_id)):
            application = self._repository.get_application(application_id)
            self._lifecycle.ensure(application, "schedule_interview")
            interviewer = self._bound_interviewer(interviewer_id)
            self._ensure_no_active_slot(application_id)

            existing = self._repository.slots_for_interviewer(interviewer.id, day)
            conflicts = find_conflicts(
                existing,
                requested,
                candidate_application_id=application_id,
                applicant_refs=self._applicant_refs(existing),
            )
            if conflicts:
                self._logger.info(
                    "interview.conflict",
                    application_id=application_id,
                    interviewer_id=interviewer.id,
                    date=day.isoformat(),
                    requested=requested.label(),
                    conflicts=[conflict.slot_id for conflict in conflicts],
                )
                raise SchedulingConflict(conflicts)

            slot = self._book(
                application,
                interviewer,
                day,
                requested,
                meeting_link=meeting_link,
                interview_type=interview_type,
                location=location,
                notes=notes,
                scheduled_by=scheduled_by,
            )
        return slot

    def schedule_bulk(
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
        location: str | None = None,
        notes: str | None = None,
        scheduled_by: str | None = None,
    ) -> BulkScheduleReport:
        """Pack applications into consecutive slots, all-or-nothing on conflicts.

        Every computed interval is validated against existing bookings before
        any slot is created. After validation each application is booked on its
        own; per-item failures are reported rather than rolled back.
        """
        if not application_ids:
            raise InvalidSchedule("application_ids must not be empty")
        duration = self._config.default_duration_minutes if duration_minutes is None else duration_minutes
        gap = self._config.default_gap_minutes if gap_minutes is None else gap_minutes
        plan = list(zip(application_ids, pack_consecutive(start_time, duration, gap, len(application_ids))))
        interviewer = self._bound_interviewer(interviewer_id)
        report = BulkScheduleReport(interviewer_id=interviewer.id, date=day)

        with self._locks.hold(interviewer_day_key(interviewer.id, day)):
            existing = self._repository.slots_for_interviewer(interviewer.id, day)
            conflicts = find_batch_conflicts(existing, plan, applicant_refs=self._applicant_refs(existing))
            if conflicts:
                self._logger.info(
                    "interview.bulk_rejected",
                    interviewer_id=interviewer.id,
                    date=day.isoformat(),
                    requested=len(plan),
                    conflicts=len(conflicts),
                )
                raise SchedulingConflict(conflicts)

            for application_id, planned in plan:
                try:
                    with self._locks.hold(application_key(application_id)):
                        application = self._repository.get_application(application_id)
                        self._lifecycle.ensure(application, "schedule_interview")
                        self._ensure_no_active_slot(application_id)
                        slot = self._book(
                            application,
                            interviewer,
                            day,
                            planned,
                            meeting_link=meeting_link,
                            interview_type=interview_type,
                            location=location,
                            notes=notes,
                            scheduled_by=scheduled_by,
                        )
                except ScholarFlowError as exc:
                    report.failed.append(
                        BulkItemFailure(
                            application_id=application_id,
                            code=exc.code,
                            message=str(exc),
                            planned_start=format_hhmm(planned.start),
                            planned_end=format_hhmm(planned.end),
                        )
                    )
                    self._logger.warning(
                        "interview.bulk_item_failed",
                        application_id=application_id,
                        code=exc.code,
                        error=str(exc),
                    )
                    continue
                report.scheduled.append(slot)

        self._logger.info(
            "interview.bulk_scheduled",
            interviewer_id=interviewer.id,
            date=day.isoformat(),
            scheduled=len(report.scheduled),
            failed=len(report.failed),
        )
        return report

    def schedule_first_available(
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
        """Book the earliest free start for the interviewer from ``from_date`` on.

        ``days`` calendar days are searched, weekends skipped when configured.
        Each day is checked and booked inside the same locks as ``schedule``.
        """
        if days < 1:
            raise InvalidSchedule("days must be at least 1")
        duration = self._config.default_duration_minutes if duration_minutes is None else duration_minutes
        interviewer = self._bound_interviewer(interviewer_id)

        for offset in range(days):
            day = from_date + timedelta(days=offset)
            if self._config.skip_weekends and day.weekday() >= 5:
                continue
            with self._locks.hold(interviewer_day_key(interviewer.id, day), application_key(application_id)):
                application = self._repository.get_application(application_id)
                self._lifecycle.ensure(application, "schedule_interview")
                self._ensure_no_active_slot(application_id)

                starts = free_start_times(
                    self._repository.slots_for_interviewer(interviewer.id, day),
                    window_start=self._config.business_day_start,
                    window_end=self._config.business_day_end,
                    duration_minutes=duration,
                    step_minutes=self._config.slot_step_minutes,
                )
                if not starts:
                    continue
                slot = self._book(
                    application,
                    interviewer,
                    day,
                    TimeRange.from_start(starts[0], duration),
                    meeting_link=meeting_link,
                    interview_type=interview_type,
                    location=location,
                    notes=notes,
                    scheduled_by=scheduled_by,
                )
            self._logger.info(
                "interview.auto_scheduled",
                slot_id=slot.id,
                application_id=application_id,
                searched_days=offset + 1,
            )
            return slot

        raise NoAvailability(interviewer.id, from_date, from_date + timedelta(days=days - 1))

    def reject_application(
        self, application_id: str, reason: str | None, *, rejected_by: str | None = None
    ) -> tuple[Application, list[InterviewSlot]]:
        """Reject an application and cancel its scheduled slot with the same reason.

        Returns the committed application and the slots that were cancelled.
        """
        if reason is None or not reason.strip():
            raise MissingReason("reject an application")
        while True:
            held = self._live_slot_keys(application_id)
            with self._locks.hold(*held, application_key(application_id)):
                if not self._live_slot_keys(application_id) <= held:
                    # A slot was booked between the read and the lock; retry with its key.
                    continue
                application = self._repository.get_application(application_id)
                self._lifecycle.reject(application, reason, actor=rejected_by)
                now = self._now()
                live = active_slots(self._repository.slots_for_application(application_id))
                saved = self._repository.save_application(application)
                cancelled: list[InterviewSlot] = []
                for slot in live:
                    slot.status = SlotStatus.CANCELLED
                    slot.cancellation_reason = saved.rejection_reason
                    slot.cancelled_at = now
                    cancelled.append(self._repository.save_slot(slot))
            break

        for slot in cancelled:
            self._logger.info(
                "interview.cancelled",
                slot_id=slot.id,
                application_id=application_id,
                cancelled_by=rejected_by,
                cause="rejected",
            )
        return saved, cancelled

    def cancel(self, slot_id: str, reason: str | None, *, cancelled_by: str | None = None) -> InterviewSlot:
        if reason is None or not reason.strip():
            raise MissingReason("cancel an interview")
        slot = self._repository.get_slot(slot_id)
        with self._locks.hold(interviewer_day_key(slot.interviewer_id, slot.date)):
            slot = self._repository.get_slot(slot_id)
            if slot.status is not SlotStatus.SCHEDULED:
                raise InvalidState(slot.id, slot.status, "cancel")
            slot.status = SlotStatus.CANCELLED
            slot.cancellation_reason = reason.strip()
            slot.cancelled_at = self._now()
            saved = self._repository.save_slot(slot)
        self._logger.info(
            "interview.cancelled",
            slot_id=slot_id,
            application_id=saved.application_id,
            cancelled_by=cancelled_by,
        )
        return saved

    def complete(
        self,
        slot_id: str,
        result: InterviewResult,
        evaluation: Evaluation,
        *,
        completed_by: str | None = None,
    ) -> Application:
        slot = self._repository.get_slot(slot_id)
        with self._locks.hold(
            interviewer_day_key(slot.interviewer_id, slot.date),
            application_key(slot.application_id),
        ):
            slot = self._repository.get_slot(slot_id)
            if slot.status is not SlotStatus.SCHEDULED:
                raise InvalidState(slot.id, slot.status, "complete")
            now = self._now()
            attached = evaluation.model_copy(
                update={
                    "slot_id": slot.id,
                    "created_at": evaluation.created_at or now,
                    "evaluated_by": evaluation.evaluated_by or completed_by,
                }
            )

            application = self._repository.get_application(slot.application_id)
            self._lifecycle.complete_interview(application, attached, actor=completed_by)

            slot.status = SlotStatus.COMPLETED
            slot.result = InterviewResult(result)
            slot.evaluation = attached
            slot.completed_at = now
            saved_application = self._repository.save_application(application)
            self._repository.save_slot(slot)

        self._logger.info(
            "interview.completed",
            slot_id=slot_id,
            application_id=saved_application.id,
            result=slot.result.value,
            recommendation=attached.overall_recommendation.value,
        )
        return saved_application

    def reschedule(
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
        """Replace a scheduled slot; the old one is kept as ``rescheduled``."""
        old = self._repository.get_slot(slot_id)
        duration = old.duration_minutes if duration_minutes is None else duration_minutes
        requested = TimeRange.from_start(start_time, duration)
        interviewer = self._bound_interviewer(interviewer_id or old.interviewer_id)

        with self._locks.hold(
            interviewer_day_key(old.interviewer_id, old.date),
            interviewer_day_key(interviewer.id, day),
            application_key(old.application_id),
        ):
            old = self._repository.get_slot(slot_id)
            if old.status is not SlotStatus.SCHEDULED:
                raise InvalidState(old.id, old.status, "reschedule")

            existing = [
                slot
                for slot in self._repository.slots_for_interviewer(interviewer.id, day)
                if slot.id != old.id
            ]
            conflicts = find_conflicts(
                existing,
                requested,
                candidate_application_id=old.application_id,
                applicant_refs=self._applicant_refs(existing),
            )
            if conflicts:
                raise SchedulingConflict(conflicts)

            now = self._now()
            new_slot = InterviewSlot(
                id=self._new_id(),
                application_id=old.application_id,
                interviewer_id=interviewer.id,
                date=day,
                start_time=requested.start_time,
                duration_minutes=requested.duration,
                status=SlotStatus.SCHEDULED,
                interview_type=old.interview_type,
                location=old.location,
                meeting_link=meeting_link if meeting_link is not None else old.meeting_link,
                notes=old.notes,
                scheduled_by=scheduled_by or old.scheduled_by,
                rescheduled_from=old.id,
                created_at=now,
            )
            old.status = SlotStatus.RESCHEDULED
            old.rescheduled_to = new_slot.id
            old.cancellation_reason = reason.strip() if reason and reason.strip() else None
            old.cancelled_at = now
            self._repository.save_slot(old)
            saved = self._repository.add_slot(new_slot)

        self._logger.info(
            "interview.rescheduled",
            old_slot_id=slot_id,
            new_slot_id=saved.id,
            application_id=saved.application_id,
            date=day.isoformat(),
            time=requested.label(),
        )
        return saved

    def available_starts(
        self,
        interviewer_id: str,
        day: date,
        duration_minutes: int | None = None,
    ) -> list[time]:
        """Free start times for an interviewer within the configured business day."""
        if self._config.skip_weekends and day.weekday() >= 5:
            return []
        interviewer = self._repository.get_interviewer(interviewer_id)
        return free_start_times(
            self._repository.slots_for_interviewer(interviewer.id, day),
            window_start=self._config.business_day_start,
            window_end=self._config.business_day_end,
            duration_minutes=(
                self._config.default_duration_minutes if duration_minutes is None else duration_minutes
            ),
            step_minutes=self._config.slot_step_minutes,
        )

    def _book(
        self,
        application: Application,
        interviewer: Interviewer,
        day: date,
        planned: TimeRange,
        **details: Any,
    ) -> InterviewSlot:
        now = self._now()
        slot = InterviewSlot(
            id=self._new_id(),
            application_id=application.id,
            interviewer_id=interviewer.id,
            date=day,
            start_time=planned.start_time,
            duration_minutes=planned.duration,
            status=SlotStatus.SCHEDULED,
            created_at=now,
            **details,
        )
        self._lifecycle.schedule_interview(application, actor=details.get("scheduled_by"))
        self._repository.save_application(application)
        saved = self._repository.add_slot(slot)
        self._logger.info(
            "interview.scheduled",
            slot_id=saved.id,
            application_id=application.id,
            interviewer_id=interviewer.id,
            date=day.isoformat(),
            time=planned.label(),
        )
        return saved

    def _bound_interviewer(self, interviewer_id: str) -> Interviewer:
        interviewer = self._repository.get_interviewer(interviewer_id)
        if not interviewer.is_bound:
            raise MissingInterviewerBinding(interviewer.id)
        return interviewer

    def _ensure_no_active_slot(self, application_id: str) -> None:
        active = active_slots(self._repository.slots_for_application(application_id))
        if active:
            raise InvalidState(
                active[0].id,
                active[0].status,
                "schedule",
                detail=f"application {application_id} already has an active interview slot",
            )

    def _live_slot_keys(self, application_id: str) -> set[tuple[str, str, str]]:
        return {
            interviewer_day_key(slot.interviewer_id, slot.date)
            for slot in active_slots(self._repository.slots_for_application(application_id))
        }

    def _applicant_refs(self, slots: Sequence[InterviewSlot]) -> dict[str, str | None]:
        refs: dict[str, str | None] = {}
        for slot in slots:
            if slot.application_id in refs:
                continue
            try:
                refs[slot.application_id] = self._repository.get_application(slot.application_id).student_ref
            except RecordNotFound:
                refs[slot.application_id] = None
        return refs


__all__ = [
    "BulkItemFailure",
    "BulkScheduleReport",
    "Conflict",
    "InterviewScheduler",
]

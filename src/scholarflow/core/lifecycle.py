"""Application lifecycle state machine."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any, Callable

import pendulum
import structlog

from ..schemas import Application, ApplicationStatus, Evaluation, StatusChange
from .errors import InvalidAmount, InvalidState, InvalidTransition, MissingReason
from .intervals import active_slots
from .locks import KeyedLocks, application_key

if TYPE_CHECKING:
    from ..store import ScholarshipRepository

S = ApplicationStatus

# Core stages an application can be paused or flagged from.
IN_PROGRESS: frozenset[ApplicationStatus] = frozenset(
    {
        S.SUBMITTED,
        S.DOCUMENTS_REVIEWED,
        S.INTERVIEW_SCHEDULED,
        S.INTERVIEW_COMPLETED,
        S.ENDORSED_TO_SSC,
    }
)
COMPLIANCE_STATES: frozenset[ApplicationStatus] = frozenset(
    {S.FOR_COMPLIANCE, S.COMPLIANCE_DOCUMENTS_SUBMITTED}
)


@dataclass(frozen=True, slots=True)
class TransitionRule:
    """Allowed predecessors and target status of one lifecycle action."""

    sources: frozenset[ApplicationStatus]
    target: ApplicationStatus | None  # None: target is the recorded return state
    requires_reason: bool = False


RULES: dict[str, TransitionRule] = {
    "submit": TransitionRule(frozenset({S.DRAFT}), S.SUBMITTED),
    "mark_documents_reviewed": TransitionRule(frozenset({S.SUBMITTED}), S.DOCUMENTS_REVIEWED),
    "schedule_interview": TransitionRule(frozenset({S.DOCUMENTS_REVIEWED}), S.INTERVIEW_SCHEDULED),
    "unschedule_interview": TransitionRule(frozenset({S.INTERVIEW_SCHEDULED}), S.DOCUMENTS_REVIEWED),
    "complete_interview": TransitionRule(frozenset({S.INTERVIEW_SCHEDULED}), S.INTERVIEW_COMPLETED),
    "endorse": TransitionRule(frozenset({S.INTERVIEW_COMPLETED}), S.ENDORSED_TO_SSC),
    "approve": TransitionRule(frozenset({S.ENDORSED_TO_SSC}), S.APPROVED),
    "start_grant_processing": TransitionRule(frozenset({S.APPROVED}), S.GRANTS_PROCESSING),
    "mark_disbursed": TransitionRule(frozenset({S.GRANTS_PROCESSING}), S.GRANTS_DISBURSED),
    "reject": TransitionRule(
        frozenset(
            {
                S.DOCUMENTS_REVIEWED,
                S.INTERVIEW_SCHEDULED,
                S.INTERVIEW_COMPLETED,
                S.ENDORSED_TO_SSC,
                S.ON_HOLD,
            }
        )
        | COMPLIANCE_STATES,
        S.REJECTED,
        requires_reason=True,
    ),
    "withdraw": TransitionRule(frozenset({S.SUBMITTED, S.DOCUMENTS_REVIEWED}), S.WITHDRAWN),
    "put_on_hold": TransitionRule(IN_PROGRESS | COMPLIANCE_STATES, S.ON_HOLD, requires_reason=True),
    "resume": TransitionRule(frozenset({S.ON_HOLD}), None),
    "flag_for_compliance": TransitionRule(IN_PROGRESS, S.FOR_COMPLIANCE, requires_reason=True),
    "submit_compliance_documents": TransitionRule(
        frozenset({S.FOR_COMPLIANCE}), S.COMPLIANCE_DOCUMENTS_SUBMITTED
    ),
    "clear_compliance": TransitionRule(frozenset({S.COMPLIANCE_DOCUMENTS_SUBMITTED}), None),
}


class ApplicationLifecycle:
    """Guard-then-mutate transitions over a single ``Application``.

    Each action checks the current status against the action's allowed
    predecessors, then applies the new status, its timestamp and a history
    entry. A failed guard raises ``InvalidTransition`` and leaves the
    application untouched; nothing is ever silently skipped.
    """

    def __init__(self, *, now_provider: Callable[[], datetime] | None = None) -> None:
        self._now = now_provider or pendulum.now
        self._logger = structlog.get_logger(__name__)

    def can(self, application: Application, action: str) -> bool:
        return application.status in RULES[action].sources

    def ensure(self, application: Application, action: str) -> None:
        rule = RULES[action]
        if application.status not in rule.sources:
            raise InvalidTransition(
                application.status,
                self._target_for(application, action) or action,
                application_id=application.id,
            )

    def apply(self, application: Application, action: str, **kwargs: Any) -> Application:
        """Dispatch ``action`` by name."""
        if action not in RULES:
            raise ValueError(f"Unknown lifecycle action: {action!r}")
        return getattr(self, action)(application, **kwargs)

    # main track

    def submit(self, application: Application, *, actor: str | None = None) -> Application:
        now = self._guard(application, "submit")
        return self._move(application, "submit", now, actor=actor, submitted_at=now)

    def mark_documents_reviewed(
        self, application: Application, *, actor: str | None = None, notes: str | None = None
    ) -> Application:
        now = self._guard(application, "mark_documents_reviewed")
        return self._move(
            application, "mark_documents_reviewed", now, actor=actor, notes=notes, reviewed_at=now
        )

    def schedule_interview(self, application: Application, *, actor: str | None = None) -> Application:
        now = self._guard(application, "schedule_interview")
        return self._move(application, "schedule_interview", now, actor=actor)

    def unschedule_interview(
        self, application: Application, *, actor: str | None = None, notes: str | None = None
    ) -> Application:
        now = self._guard(application, "unschedule_interview")
        return self._move(application, "unschedule_interview", now, actor=actor, notes=notes)

    def complete_interview(
        self,
        application: Application,
        evaluation: Evaluation,
        *,
        actor: str | None = None,
    ) -> Application:
        # The recommendation is kept on the slot for the endorsement batch;
        # it never changes the application status by itself.
        if evaluation is None:
            raise ValueError("An evaluation is required to complete an interview")
        now = self._guard(application, "complete_interview")
        return self._move(
            application,
            "complete_interview",
            now,
            actor=actor,
            notes=f"recommendation={evaluation.overall_recommendation.value}",
        )

    def endorse(
        self, application: Application, *, notes: str | None = None, actor: str | None = None
    ) -> Application:
        now = self._guard(application, "endorse")
        return self._move(
            application,
            "endorse",
            now,
            actor=actor,
            notes=notes,
            endorsed_at=now,
            endorsement_notes=notes,
        )

    def approve(
        self,
        application: Application,
        approved_amount: Decimal | int | str | None = None,
        *,
        notes: str | None = None,
        actor: str | None = None,
    ) -> Application:
        """Approve at ``approved_amount``, defaulting to the requested amount."""
        amount = self._checked_amount(
            application.requested_amount if approved_amount is None else approved_amount
        )
        now = self._guard(application, "approve")
        return self._move(
            application,
            "approve",
            now,
            actor=actor,
            notes=notes,
            approved_amount=amount,
            decided_at=now,
            decision_notes=notes,
        )

    def start_grant_processing(self, application: Application, *, actor: str | None = None) -> Application:
        now = self._guard(application, "start_grant_processing")
        return self._move(application, "start_grant_processing", now, actor=actor)

    def mark_disbursed(
        self, application: Application, *, actor: str | None = None, notes: str | None = None
    ) -> Application:
        now = self._guard(application, "mark_disbursed")
        return self._move(application, "mark_disbursed", now, actor=actor, notes=notes, disbursed_at=now)

    # exits

    def reject(self, application: Application, reason: str | None, *, actor: str | None = None) -> Application:
        reason = self._require_reason(reason, "reject an application")
        now = self._guard(application, "reject")
        return self._move(
            application,
            "reject",
            now,
            actor=actor,
            notes=reason,
            rejection_reason=reason,
            decided_at=now,
            held_from=None,
            hold_reason=None,
        )

    def withdraw(
        self, application: Application, *, actor: str | None = None, notes: str | None = None
    ) -> Application:
        now = self._guard(application, "withdraw")
        return self._move(application, "withdraw", now, actor=actor, notes=notes)

    # side branches

    def put_on_hold(self, application: Application, reason: str | None, *, actor: str | None = None) -> Application:
        reason = self._require_reason(reason, "put an application on hold")
        now = self._guard(application, "put_on_hold")
        return self._move(
            application,
            "put_on_hold",
            now,
            actor=actor,
            notes=reason,
            held_from=application.status,
            hold_reason=reason,
        )

    def resume(self, application: Application, *, actor: str | None = None) -> Application:
        now = self._guard(application, "resume")
        return self._move(
            application,
            "resume",
            now,
            actor=actor,
            target=application.held_from,
            held_from=None,
            hold_reason=None,
        )

    def flag_for_compliance(
        self, application: Application, reason: str | None, *, actor: str | None = None
    ) -> Application:
        reason = self._require_reason(reason, "flag an application for compliance")
        now = self._guard(application, "flag_for_compliance")
        return self._move(
            application,
            "flag_for_compliance",
            now,
            actor=actor,
            notes=reason,
            compliance_from=application.status,
            compliance_reason=reason,
        )

    def submit_compliance_documents(
        self, application: Application, *, actor: str | None = None, notes: str | None = None
    ) -> Application:
        now = self._guard(application, "submit_compliance_documents")
        return self._move(application, "submit_compliance_documents", now, actor=actor, notes=notes)

    def clear_compliance(
        self, application: Application, *, actor: str | None = None, notes: str | None = None
    ) -> Application:
        now = self._guard(application, "clear_compliance")
        return self._move(
            application,
            "clear_compliance",
            now,
            actor=actor,
            notes=notes,
            target=application.compliance_from,
            compliance_from=None,
            compliance_reason=None,
        )

    # internals

    def _guard(self, application: Application, action: str) -> datetime:
        self.ensure(application, action)
        return self._now()

    def _target_for(self, application: Application, action: str) -> ApplicationStatus | None:
        rule = RULES[action]
        if rule.target is not None:
            return rule.target
        if action == "resume":
            return application.held_from
        return application.compliance_from

    def _move(
        self,
        application: Application,
        action: str,
        now: datetime,
        *,
        actor: str | None = None,
        notes: str | None = None,
        target: ApplicationStatus | None = None,
        **changes: Any,
    ) -> Application:
        target = target or RULES[action].target
        if target is None:
            raise InvalidTransition(application.status, action, application_id=application.id)
        previous = application.status
        for name, value in changes.items():
            setattr(application, name, value)
        application.status = target
        application.history.append(
            StatusChange(
                from_status=previous,
                to_status=target,
                changed_at=now,
                changed_by=actor,
                notes=notes,
            )
        )
        self._logger.info(
            "application.transition",
            application_id=application.id,
            action=action,
            from_status=previous.value,
            to_status=target.value,
        )
        return application

    @staticmethod
    def _checked_amount(value: Decimal | int | str) -> Decimal:
        try:
            amount = value if isinstance(value, Decimal) else Decimal(str(value))
        except InvalidOperation as exc:
            raise InvalidAmount(value) from exc
        if not amount.is_finite() or amount < 0:
            raise InvalidAmount(value)
        return amount

    @staticmethod
    def _require_reason(reason: str | None, operation: str) -> str:
        if reason is None or not reason.strip():
            raise MissingReason(operation)
        return reason.strip()


class ApplicationWorkflow:
    """Run lifecycle actions against stored applications, one at a time per id."""

    def __init__(
        self,
        *,
        repository: "ScholarshipRepository",
        lifecycle: ApplicationLifecycle,
        locks: KeyedLocks,
    ) -> None:
        self._repository = repository
        self._lifecycle = lifecycle
        self._locks = locks

    @property
    def lifecycle(self) -> ApplicationLifecycle:
        return self._lifecycle

    def transition(self, application_id: str, action: str, **kwargs: Any) -> Application:
        with self._locks.hold(application_key(application_id)):
            application = self._repository.get_application(application_id)
            if action == "unschedule_interview":
                self._ensure_slot_released(application_id)
            self._lifecycle.apply(application, action, **kwargs)
            return self._repository.save_application(application)

    def _ensure_slot_released(self, application_id: str) -> None:
        # Slots are only booked under the application lock, so this read is stable.
        live = active_slots(self._repository.slots_for_application(application_id))
        if live:
            raise InvalidState(
                live[0].id,
                live[0].status,
                "release",
                detail=f"application {application_id} still holds this slot; cancel it first",
            )


__all__ = [
    "ApplicationLifecycle",
    "ApplicationWorkflow",
    "COMPLIANCE_STATES",
    "IN_PROGRESS",
    "RULES",
    "TransitionRule",
]

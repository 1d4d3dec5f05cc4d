"""Bulk committee decisions on endorsed applications."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Literal, Sequence

import structlog

from ..schemas import ApplicationStatus
from .endorsement import run_batch
from .errors import MissingReason, RecordNotFound, ScholarFlowError
from .lifecycle import ApplicationWorkflow

if TYPE_CHECKING:
    from ..store import ScholarshipRepository

DecisionOutcome = Literal["decided", "skipped", "failed"]


class Decision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"

    @property
    def count_key(self) -> str:
        return "approved_count" if self is Decision.APPROVE else "rejected_count"


@dataclass(slots=True)
class DecisionItemResult:
    application_id: str
    outcome: DecisionOutcome
    code: str | None = None
    message: str | None = None


@dataclass(slots=True)
class DecisionReport:
    """Per-item outcomes of one bulk approve or reject, in input order."""

    decision: Decision
    results: list[DecisionItemResult] = field(default_factory=list)

    @property
    def decided_count(self) -> int:
        return sum(1 for item in self.results if item.outcome == "decided")

    @property
    def skipped_count(self) -> int:
        return sum(1 for item in self.results if item.outcome == "skipped")

    @property
    def failed_count(self) -> int:
        return sum(1 for item in self.results if item.outcome == "failed")

    @property
    def total_processed(self) -> int:
        """Endorsed applications that were attempted."""
        return self.decided_count + self.failed_count

    @property
    def failed_applications(self) -> list[dict[str, str | None]]:
        return [
            {"id": item.application_id, "error": item.message}
            for item in self.results
            if item.outcome == "failed"
        ]

    def to_dict(self) -> dict[str, Any]:
        return {
            "decision": self.decision.value,
            self.decision.count_key: self.decided_count,
            "total_processed": self.total_processed,
            "skipped_count": self.skipped_count,
            "failed_applications": self.failed_applications,
            "results": [
                {
                    "application_id": item.application_id,
                    "outcome": item.outcome,
                    "code": item.code,
                    "message": item.message,
                }
                for item in self.results
            ],
        }


class CommitteeDecisionProcessor:
    """Approve or reject many endorsed applications at once.

    Only applications currently ``endorsed_to_ssc`` are decided; anything
    else is skipped with ``not_endorsed``. Approvals grant the requested
    amount.
    """

    DEFAULT_APPROVAL_NOTES = "Bulk approved by SSC"

    def __init__(
        self,
        *,
        repository: "ScholarshipRepository",
        workflow: ApplicationWorkflow,
        max_workers: int | None = 1,
        default_approval_notes: str | None = None,
    ) -> None:
        self._repository = repository
        self._workflow = workflow
        self._max_workers = max(1, int(max_workers or 1))
        self._default_approval_notes = default_approval_notes or self.DEFAULT_APPROVAL_NOTES
        self._logger = structlog.get_logger(__name__)

    def bulk_approve(
        self,
        application_ids: Sequence[str],
        notes: str | None = None,
        *,
        approved_by: str | None = None,
    ) -> DecisionReport:
        notes = notes.strip() if notes and notes.strip() else self._default_approval_notes
        return self._run(Decision.APPROVE, application_ids, approved_by, notes=notes)

    def bulk_reject(
        self,
        application_ids: Sequence[str],
        reason: str | None,
        *,
        rejected_by: str | None = None,
    ) -> DecisionReport:
        if reason is None or not reason.strip():
            raise MissingReason("reject applications in bulk")
        return self._run(Decision.REJECT, application_ids, rejected_by, reason=reason.strip())

    def _run(
        self,
        decision: Decision,
        application_ids: Sequence[str],
        actor: str | None,
        **kwargs: Any,
    ) -> DecisionReport:
        if not application_ids:
            raise ValueError("application_ids must not be empty")

        def process(application_id: str) -> DecisionItemResult:
            return self._decide_one(application_id, decision, actor, kwargs)

        report = DecisionReport(
            decision=decision, results=run_batch(process, application_ids, self._max_workers)
        )
        self._logger.info(
            "decision.batch_completed",
            decision=decision.value,
            requested=len(application_ids),
            decided=report.decided_count,
            skipped=report.skipped_count,
            failed=report.failed_count,
        )
        return report

    def _decide_one(
        self,
        application_id: str,
        decision: Decision,
        actor: str | None,
        kwargs: dict[str, Any],
    ) -> DecisionItemResult:
        try:
            application = self._repository.get_application(application_id)
        except RecordNotFound as exc:
            return DecisionItemResult(application_id, "failed", code=exc.code, message=str(exc))

        if application.status is not ApplicationStatus.ENDORSED_TO_SSC:
            return DecisionItemResult(
                application_id,
                "skipped",
                code="not_endorsed",
                message=f"Application is {application.status.value!r}, not endorsed to SSC",
            )

        try:
            self._workflow.transition(application_id, decision.value, actor=actor, **kwargs)
        except ScholarFlowError as exc:
            self._logger.warning(
                "decision.item_failed",
                application_id=application_id,
                decision=decision.value,
                code=exc.code,
                error=str(exc),
            )
            return DecisionItemResult(application_id, "failed", code=exc.code, message=str(exc))
        return DecisionItemResult(application_id, "decided")


__all__ = [
    "CommitteeDecisionProcessor",
    "Decision",
    "DecisionItemResult",
    "DecisionReport",
]

"""Bulk endorsement of interviewed applications to the selection committee."""

from __future__ import annotations

import concurrent.futures
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Literal, Sequence, TypeVar

import structlog

from ..schemas import Application, Evaluation, Recommendation, SlotStatus
from .errors import RecordNotFound, ScholarFlowError
from .lifecycle import ApplicationWorkflow

if TYPE_CHECKING:
    from ..store import ScholarshipRepository

OutcomeType = Literal["endorsed", "skipped", "failed"]
_ResultT = TypeVar("_ResultT")


class FilterMode(str, Enum):
    READY = "ready"
    CONSIDERATION = "consideration"
    ALL = "all"

    @classmethod
    def parse(cls, value: "FilterMode | str") -> "FilterMode":
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        normalized = _FILTER_ALIASES.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError as exc:
            raise ValueError(f"Unknown endorsement filter mode: {value!r}") from exc

    def admits(self, recommendation: Recommendation) -> bool:
        if self is FilterMode.ALL:
            return True
        return recommendation is _FILTER_RECOMMENDATION[self]


_FILTER_ALIASES = {"recommended": "ready", "conditional": "consideration"}
_FILTER_RECOMMENDATION = {
    FilterMode.READY: Recommendation.RECOMMENDED,
    FilterMode.CONSIDERATION: Recommendation.NEEDS_FOLLOWUP,
}


def run_batch(
    process: Callable[[str], _ResultT], application_ids: Sequence[str], max_workers: int
) -> list[_ResultT]:
    """Apply ``process`` to every id, in input order, on a thread pool when allowed."""
    if max_workers > 1 and len(application_ids) > 1:
        with concurrent.futures.ThreadPoolExecutor(max_workers=max_workers) as executor:
            return list(executor.map(process, application_ids))
    return [process(application_id) for application_id in application_ids]


@dataclass(slots=True)
class EndorsementItemResult:
    application_id: str
    outcome: OutcomeType
    code: str | None = None
    message: str | None = None
    recommendation: Recommendation | None = None


@dataclass(slots=True)
class EndorsementReport:
    """Per-item outcomes of one bulk endorsement, in input order."""

    filter_mode: FilterMode
    results: list[EndorsementItemResult] = field(default_factory=list)

    @property
    def endorsed_count(self) -> int:
        return sum(1 for item in self.results if item.outcome == "endorsed")

    @property
    def skipped_count(self) -> int:
        return sum(1 for item in self.results if item.outcome == "skipped")

    @property
    def failed_count(self) -> int:
        return sum(1 for item in self.results if item.outcome == "failed")

    @property
    def total_processed(self) -> int:
        """Items that passed the filter and were attempted."""
        return self.endorsed_count + self.failed_count

    def to_dict(self) -> dict[str, Any]:
        return {
            "filter_mode": self.filter_mode.value,
            "endorsed_count": self.endorsed_count,
            "total_processed": self.total_processed,
            "skipped_count": self.skipped_count,
            "failed_count": self.failed_count,
            "results": [
                {
                    "application_id": item.application_id,
                    "outcome": item.outcome,
                    "code": item.code,
                    "message": item.message,
                    "recommendation": item.recommendation.value if item.recommendation else None,
                }
                for item in self.results
            ],
        }


class EndorsementBatchProcessor:
    """Partition applications by recommendation and endorse the admitted ones.

    A single item's failure is captured in its result; the batch itself only
    raises for request-level problems (empty input, unknown filter mode).
    """

    DEFAULT_NOTES = "Bulk endorsed to SSC"

    def __init__(
        self,
        *,
        repository: "ScholarshipRepository",
        workflow: ApplicationWorkflow,
        max_workers: int | None = 1,
        default_notes: str | None = None,
    ) -> None:
        self._repository = repository
        self._workflow = workflow
        self._max_workers = max(1, int(max_workers or 1))
        self._default_notes = default_notes or self.DEFAULT_NOTES
        self._logger = structlog.get_logger(__name__)

    def bulk_endorse(
        self,
        application_ids: Sequence[str],
        filter_mode: FilterMode | str,
        notes: str | None = None,
        *,
        endorsed_by: str | None = None,
    ) -> EndorsementReport:
        if not application_ids:
            raise ValueError("application_ids must not be empty")
        mode = FilterMode.parse(filter_mode)
        notes = notes.strip() if notes and notes.strip() else self._default_notes

        def process(application_id: str) -> EndorsementItemResult:
            return self._process_one(application_id, mode, notes, endorsed_by)

        results = run_batch(process, application_ids, self._max_workers)

        report = EndorsementReport(filter_mode=mode, results=results)
        self._logger.info(
            "endorsement.batch_completed",
            filter_mode=mode.value,
            requested=len(application_ids),
            endorsed=report.endorsed_count,
            skipped=report.skipped_count,
            failed=report.failed_count,
        )
        return report

    def latest_evaluation(self, application_id: str) -> Evaluation | None:
        completed = [
            slot
            for slot in self._repository.slots_for_application(application_id)
            if slot.status is SlotStatus.COMPLETED and slot.evaluation is not None
        ]
        if not completed:
            return None
        completed.sort(key=lambda slot: slot.completed_at.timestamp() if slot.completed_at else 0.0)
        return completed[-1].evaluation

    def _process_one(
        self,
        application_id: str,
        mode: FilterMode,
        notes: str,
        endorsed_by: str | None,
    ) -> EndorsementItemResult:
        try:
            self._repository.get_application(application_id)
        except RecordNotFound as exc:
            return EndorsementItemResult(application_id, "failed", code=exc.code, message=str(exc))

        evaluation = self.latest_evaluation(application_id)

        recommendation = evaluation.overall_recommendation if evaluation else None
        if mode is not FilterMode.ALL:
            if recommendation is None:
                return EndorsementItemResult(
                    application_id,
                    "skipped",
                    code="missing_evaluation",
                    message="No completed interview evaluation",
                )
            if not mode.admits(recommendation):
                return EndorsementItemResult(
                    application_id,
                    "skipped",
                    code="not_recommended",
                    message=f"Recommendation {recommendation.value!r} is outside filter {mode.value!r}",
                    recommendation=recommendation,
                )

        try:
            application: Application = self._workflow.transition(
                application_id, "endorse", notes=notes, actor=endorsed_by
            )
        except ScholarFlowError as exc:
            self._logger.warning(
                "endorsement.item_failed",
                application_id=application_id,
                code=exc.code,
                error=str(exc),
            )
            return EndorsementItemResult(
                application_id,
                "failed",
                code=exc.code,
                message=str(exc),
                recommendation=recommendation,
            )
        return EndorsementItemResult(
            application.id,
            "endorsed",
            recommendation=recommendation,
        )


__all__ = [
    "EndorsementBatchProcessor",
    "EndorsementItemResult",
    "EndorsementReport",
    "FilterMode",
    "run_batch",
]

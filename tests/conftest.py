from __future__ import annotations

import itertools
from dataclasses import dataclass
from datetime import date, time
from typing import Any

import pendulum
import pytest

from scholarflow.core import (
    ApplicationLifecycle,
    ApplicationWorkflow,
    CommitteeDecisionProcessor,
    EndorsementBatchProcessor,
    InterviewScheduler,
    KeyedLocks,
)
from scholarflow.schemas import (
    Application,
    Evaluation,
    InterviewResult,
    InterviewSlot,
    Interviewer,
    Recommendation,
)
from scholarflow.schemas.config import SchedulerConfig
from scholarflow.store import InMemoryRepository

# Monday
INTERVIEW_DAY = date(2025, 3, 3)


class FakeClock:
    def __init__(self) -> None:
        self.current = pendulum.datetime(2025, 3, 1, 8, 0, tz="UTC")

    def __call__(self) -> pendulum.DateTime:
        return self.current

    def advance(self, **kwargs: int) -> pendulum.DateTime:
        self.current = self.current.add(**kwargs)
        return self.current


def build_evaluation(recommendation: Recommendation = Recommendation.RECOMMENDED, **kwargs: Any) -> Evaluation:
    defaults: dict[str, Any] = {
        "academic_motivation": 4,
        "leadership_involvement": 3,
        "financial_need": 5,
        "character_values": 4,
        "overall_recommendation": recommendation,
        "remarks": "Clear goals and strong community involvement.",
    }
    defaults.update(kwargs)
    return Evaluation(**defaults)


@dataclass
class World:
    clock: FakeClock
    repository: InMemoryRepository
    locks: KeyedLocks
    lifecycle: ApplicationLifecycle
    workflow: ApplicationWorkflow
    scheduler: InterviewScheduler
    endorsement: EndorsementBatchProcessor
    decisions: CommitteeDecisionProcessor

    def add_interviewer(self, interviewer_id: str = "INT-1", *, bound: bool = True) -> Interviewer:
        return self.repository.add_interviewer(
            Interviewer(
                id=interviewer_id,
                display_name=f"Interviewer {interviewer_id}",
                external_user_ref=f"user-{interviewer_id}" if bound else None,
            )
        )

    def add_application(
        self,
        application_id: str,
        *,
        reviewed: bool = True,
        submitted: bool = True,
        requested_amount: str = "0",
    ) -> Application:
        self.repository.add_application(
            Application(
                id=application_id,
                student_ref=f"student-{application_id}",
                requested_amount=requested_amount,
            )
        )
        if submitted:
            self.workflow.transition(application_id, "submit")
        if submitted and reviewed:
            self.workflow.transition(application_id, "mark_documents_reviewed")
        return self.repository.get_application(application_id)

    def interviewed(
        self,
        application_id: str,
        recommendation: Recommendation,
        *,
        start: time,
        interviewer_id: str = "INT-1",
    ) -> InterviewSlot:
        """Create a reviewed application, book it and complete the interview."""
        self.add_application(application_id)
        slot = self.scheduler.schedule(application_id, interviewer_id, INTERVIEW_DAY, start)
        self.clock.advance(minutes=5)
        self.scheduler.complete(slot.id, InterviewResult.PASSED, build_evaluation(recommendation))
        return self.repository.get_slot(slot.id)

    def endorsed(
        self,
        application_id: str,
        *,
        start: time,
        requested_amount: str = "0",
        interviewer_id: str = "INT-1",
    ) -> Application:
        """Create an application that has reached ``endorsed_to_ssc``."""
        self.add_application(application_id, requested_amount=requested_amount)
        slot = self.scheduler.schedule(application_id, interviewer_id, INTERVIEW_DAY, start)
        self.clock.advance(minutes=5)
        self.scheduler.complete(slot.id, InterviewResult.PASSED, build_evaluation())
        return self.workflow.transition(application_id, "endorse", notes="Panel consensus")


def build_world(*, max_workers: int = 1, config: SchedulerConfig | None = None) -> World:
    clock = FakeClock()
    counter = itertools.count(1)
    repository = InMemoryRepository()
    locks = KeyedLocks()
    lifecycle = ApplicationLifecycle(now_provider=clock)
    workflow = ApplicationWorkflow(repository=repository, lifecycle=lifecycle, locks=locks)
    scheduler = InterviewScheduler(
        repository=repository,
        lifecycle=lifecycle,
        locks=locks,
        config=config,
        id_factory=lambda: f"SLOT-{next(counter)}",
        now_provider=clock,
    )
    endorsement = EndorsementBatchProcessor(
        repository=repository,
        workflow=workflow,
        max_workers=max_workers,
    )
    decisions = CommitteeDecisionProcessor(
        repository=repository,
        workflow=workflow,
        max_workers=max_workers,
    )
    return World(clock, repository, locks, lifecycle, workflow, scheduler, endorsement, decisions)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def world() -> World:
    built = build_world()
    built.add_interviewer("INT-1")
    return built


@pytest.fixture
def make_world():
    return build_world


@pytest.fixture
def make_evaluation():
    return build_evaluation

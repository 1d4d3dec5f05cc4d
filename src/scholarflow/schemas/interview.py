"""Interview slot, evaluation and interviewer schemas."""

from __future__ import annotations

import datetime as dt
from datetime import datetime, time
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class SlotStatus(str, Enum):
    PENDING = "pending"
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"


class InterviewType(str, Enum):
    ONLINE = "online"
    IN_PERSON = "in_person"
    PHONE = "phone"


class InterviewResult(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    NEEDS_FOLLOWUP = "needs_followup"


class Recommendation(str, Enum):
    RECOMMENDED = "recommended"
    NEEDS_FOLLOWUP = "needs_followup"
    NOT_RECOMMENDED = "not_recommended"


class Interviewer(BaseModel):
    """Staff member who conducts interviews."""

    id: str
    display_name: str
    external_user_ref: str | None = None

    model_config = ConfigDict(extra="forbid")

    @property
    def is_bound(self) -> bool:
        return bool(self.external_user_ref and self.external_user_ref.strip())


class Evaluation(BaseModel):
    """Interviewer's scored assessment of a completed interview.

    Immutable once created. ``slot_id`` is filled in by the scheduler when the
    evaluation is attached to its completed slot.
    """

    slot_id: str | None = None
    academic_motivation: int = Field(ge=1, le=5)
    leadership_involvement: int = Field(ge=1, le=5)
    financial_need: int = Field(ge=1, le=5)
    character_values: int = Field(ge=1, le=5)
    overall_recommendation: Recommendation
    remarks: str = Field(min_length=1)
    evaluated_by: str | None = None
    created_at: datetime | None = None

    model_config = ConfigDict(extra="forbid", frozen=True)

    @field_validator("remarks")
    @classmethod
    def _remarks_not_blank(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("remarks must not be blank")
        return stripped

    @property
    def total_score(self) -> int:
        return (
            self.academic_motivation
            + self.leadership_involvement
            + self.financial_need
            + self.character_values
        )


class InterviewSlot(BaseModel):
    """Interview time block bound to one interviewer and one application."""

    id: str
    application_id: str
    interviewer_id: str
    date: dt.date
    start_time: time
    duration_minutes: int = Field(gt=0)
    status: SlotStatus = SlotStatus.SCHEDULED
    interview_type: InterviewType = InterviewType.ONLINE
    location: str | None = None
    meeting_link: str | None = None
    notes: str | None = None
    scheduled_by: str | None = None
    result: InterviewResult | None = None
    evaluation: Evaluation | None = None
    cancellation_reason: str | None = None
    rescheduled_from: str | None = None
    rescheduled_to: str | None = None
    created_at: datetime | None = None
    cancelled_at: datetime | None = None
    completed_at: datetime | None = None

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def _check_completion_fields(self) -> "InterviewSlot":
        completed = self.status is SlotStatus.COMPLETED
        if self.result is not None and not completed:
            raise ValueError("result may only be set on a completed slot")
        if completed != (self.evaluation is not None):
            raise ValueError("evaluation must exist iff the slot is completed")
        return self

"""Scholarship application schema and lifecycle statuses."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ApplicationStatus(str, Enum):
    """Lifecycle states of a scholarship application."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    DOCUMENTS_REVIEWED = "documents_reviewed"
    INTERVIEW_SCHEDULED = "interview_scheduled"
    INTERVIEW_COMPLETED = "interview_completed"
    ENDORSED_TO_SSC = "endorsed_to_ssc"
    APPROVED = "approved"
    GRANTS_PROCESSING = "grants_processing"
    GRANTS_DISBURSED = "grants_disbursed"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"
    ON_HOLD = "on_hold"
    FOR_COMPLIANCE = "for_compliance"
    COMPLIANCE_DOCUMENTS_SUBMITTED = "compliance_documents_submitted"


# Required forward order of the main track.
STAGE_ORDER: tuple[ApplicationStatus, ...] = (
    ApplicationStatus.DRAFT,
    ApplicationStatus.SUBMITTED,
    ApplicationStatus.DOCUMENTS_REVIEWED,
    ApplicationStatus.INTERVIEW_SCHEDULED,
    ApplicationStatus.INTERVIEW_COMPLETED,
    ApplicationStatus.ENDORSED_TO_SSC,
    ApplicationStatus.APPROVED,
    ApplicationStatus.GRANTS_PROCESSING,
    ApplicationStatus.GRANTS_DISBURSED,
)

TERMINAL_STATUSES: frozenset[ApplicationStatus] = frozenset(
    {
        ApplicationStatus.GRANTS_DISBURSED,
        ApplicationStatus.REJECTED,
        ApplicationStatus.WITHDRAWN,
    }
)


def stage_rank(status: ApplicationStatus) -> int | None:
    """Return the position of ``status`` on the main track, if it has one."""
    try:
        return STAGE_ORDER.index(status)
    except ValueError:
        return None


class StatusChange(BaseModel):
    """Single entry of an application's status history."""

    from_status: ApplicationStatus
    to_status: ApplicationStatus
    changed_at: datetime
    changed_by: str | None = None
    notes: str | None = None

    model_config = ConfigDict(extra="forbid", frozen=True)


class Application(BaseModel):
    """Scholarship application tracked by the lifecycle state machine."""

    id: str
    status: ApplicationStatus = ApplicationStatus.DRAFT
    student_ref: str | None = None
    school_ref: str | None = None
    category_ref: str | None = None
    subcategory_ref: str | None = None
    requested_amount: Decimal = Field(default=Decimal("0"), ge=0)
    approved_amount: Decimal = Field(default=Decimal("0"), ge=0)
    submitted_at: datetime | None = None
    reviewed_at: datetime | None = None
    endorsed_at: datetime | None = None
    decided_at: datetime | None = None
    disbursed_at: datetime | None = None
    rejection_reason: str | None = None
    endorsement_notes: str | None = None
    decision_notes: str | None = None
    held_from: ApplicationStatus | None = None
    hold_reason: str | None = None
    compliance_from: ApplicationStatus | None = None
    compliance_reason: str | None = None
    version: int = 0
    history: list[StatusChange] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")

    @property
    def effective_stage(self) -> ApplicationStatus | None:
        """Main-track stage the application sits on, looking through side states."""
        status = self.status
        if status is ApplicationStatus.ON_HOLD:
            status = self.held_from or status
        if status in (
            ApplicationStatus.FOR_COMPLIANCE,
            ApplicationStatus.COMPLIANCE_DOCUMENTS_SUBMITTED,
        ):
            status = self.compliance_from or status
        return status if stage_rank(status) is not None else None

    @model_validator(mode="after")
    def _check_invariants(self) -> "Application":
        if (self.status is ApplicationStatus.REJECTED) != bool(self.rejection_reason):
            raise ValueError("rejection_reason must be present iff status is 'rejected'")
        if self.status is ApplicationStatus.ON_HOLD and self.held_from is None:
            raise ValueError("held_from is required while on hold")

        ordered = [
            ts for ts in (self.submitted_at, self.reviewed_at, self.endorsed_at) if ts is not None
        ]
        if ordered != sorted(ordered):
            raise ValueError("stage timestamps must be non-decreasing")

        stage = self.effective_stage
        if stage is not None:
            rank = stage_rank(stage)
            for required_stage, value, name in (
                (ApplicationStatus.SUBMITTED, self.submitted_at, "submitted_at"),
                (ApplicationStatus.DOCUMENTS_REVIEWED, self.reviewed_at, "reviewed_at"),
                (ApplicationStatus.ENDORSED_TO_SSC, self.endorsed_at, "endorsed_at"),
            ):
                reached = rank >= stage_rank(required_stage)
                if reached != (value is not None):
                    raise ValueError(
                        f"{name} must be set iff status has reached '{required_stage.value}'"
                    )
        return self

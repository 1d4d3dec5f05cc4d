"""Pydantic schema definitions for the scholarship core."""

from __future__ import annotations

from .application import (
    STAGE_ORDER,
    TERMINAL_STATUSES,
    Application,
    ApplicationStatus,
    StatusChange,
    stage_rank,
)
from .interview import (
    Evaluation,
    InterviewResult,
    InterviewSlot,
    InterviewType,
    Interviewer,
    Recommendation,
    SlotStatus,
)

__all__ = [
    "Application",
    "ApplicationStatus",
    "StatusChange",
    "STAGE_ORDER",
    "TERMINAL_STATUSES",
    "stage_rank",
    "Evaluation",
    "InterviewResult",
    "InterviewSlot",
    "InterviewType",
    "Interviewer",
    "Recommendation",
    "SlotStatus",
]

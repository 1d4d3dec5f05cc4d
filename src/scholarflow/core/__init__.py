"""Core lifecycle, scheduling and endorsement components."""

from __future__ import annotations

from .decisions import CommitteeDecisionProcessor, Decision, DecisionItemResult, DecisionReport
from .endorsement import (
    EndorsementBatchProcessor,
    EndorsementItemResult,
    EndorsementReport,
    FilterMode,
)
from .errors import (
    ConcurrentModification,
    InvalidAmount,
    InvalidSchedule,
    InvalidState,
    InvalidTransition,
    MissingInterviewerBinding,
    MissingReason,
    NoAvailability,
    RecordNotFound,
    ScholarFlowError,
    SchedulingConflict,
)
from .intervals import Conflict, TimeRange, find_conflicts, free_start_times, pack_consecutive
from .lifecycle import ApplicationLifecycle, ApplicationWorkflow
from .locks import KeyedLocks
from .scheduler import BulkItemFailure, BulkScheduleReport, InterviewScheduler

__all__ = [
    "ApplicationLifecycle",
    "ApplicationWorkflow",
    "BulkItemFailure",
    "BulkScheduleReport",
    "CommitteeDecisionProcessor",
    "ConcurrentModification",
    "Conflict",
    "Decision",
    "DecisionItemResult",
    "DecisionReport",
    "EndorsementBatchProcessor",
    "EndorsementItemResult",
    "EndorsementReport",
    "FilterMode",
    "InterviewScheduler",
    "InvalidAmount",
    "InvalidSchedule",
    "InvalidState",
    "InvalidTransition",
    "KeyedLocks",
    "MissingInterviewerBinding",
    "MissingReason",
    "NoAvailability",
    "RecordNotFound",
    "ScholarFlowError",
    "SchedulingConflict",
    "TimeRange",
    "find_conflicts",
    "free_start_times",
    "pack_consecutive",
]

"""Error taxonomy raised by the scholarship core."""

from __future__ import annotations

from typing import Any, Sequence


class ScholarFlowError(Exception):
    """Base class for client-actionable core errors."""

    code = "error"

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": str(self)}


class InvalidTransition(ScholarFlowError):
    """Lifecycle move not permitted from the application's current status."""

    code = "invalid_transition"

    def __init__(self, from_status: Any, attempted: Any, *, application_id: str | None = None):
        self.from_status = getattr(from_status, "value", from_status)
        self.attempted = getattr(attempted, "value", attempted)
        self.application_id = application_id
        subject = f"application {application_id}" if application_id else "application"
        super().__init__(f"Cannot move {subject} from {self.from_status!r} to {self.attempted!r}")

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload.update(
            {
                "from": self.from_status,
                "attempted": self.attempted,
                "application_id": self.application_id,
            }
        )
        return payload


class InvalidState(ScholarFlowError):
    """Interview slot is not in a status that allows the requested operation."""

    code = "invalid_state"

    def __init__(self, slot_id: str | None, status: Any, attempted: str, *, detail: str | None = None):
        self.slot_id = slot_id
        self.status = getattr(status, "value", status)
        self.attempted = attempted
        message = f"Cannot {attempted} slot {slot_id} in status {self.status!r}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload.update({"slot_id": self.slot_id, "status": self.status, "attempted": self.attempted})
        return payload


class SchedulingConflict(ScholarFlowError):
    """One or more existing bookings overlap the requested interval(s)."""

    code = "scheduling_conflict"

    def __init__(self, conflicts: Sequence[Any]):
        self.conflicts = list(conflicts)
        super().__init__(f"Interviewer has {len(self.conflicts)} conflicting booking(s)")

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["conflicts"] = [
            conflict.to_dict() if hasattr(conflict, "to_dict") else conflict
            for conflict in self.conflicts
        ]
        return payload


class MissingInterviewerBinding(ScholarFlowError):
    """Interviewer record lacks the external identity needed to create a slot."""

    code = "missing_interviewer_binding"

    def __init__(self, interviewer_id: str):
        self.interviewer_id = interviewer_id
        super().__init__(f"Interviewer {interviewer_id} has no external user reference")


class MissingReason(ScholarFlowError):
    """Reject, cancel, hold or compliance call without justification text."""

    code = "missing_reason"

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"A reason is required to {operation}")


class InvalidSchedule(ScholarFlowError, ValueError):
    """Requested schedule parameters cannot describe a valid slot."""

    code = "invalid_schedule"


class InvalidAmount(ScholarFlowError, ValueError):
    """Monetary amount is negative or not a number."""

    code = "invalid_amount"

    def __init__(self, amount: Any):
        self.amount = amount
        super().__init__(f"Invalid amount {amount!r}, expected a non-negative number")


class NoAvailability(ScholarFlowError):
    """No free start time exists for the interviewer inside the search window."""

    code = "no_availability"

    def __init__(self, interviewer_id: str, first_day: Any, last_day: Any):
        self.interviewer_id = interviewer_id
        self.first_day = first_day
        self.last_day = last_day
        super().__init__(
            f"Interviewer {interviewer_id} has no free start time between {first_day} and {last_day}"
        )


class RecordNotFound(ScholarFlowError, LookupError):
    code = "not_found"

    def __init__(self, kind: str, record_id: str):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} {record_id!r} not found")


class ConcurrentModification(ScholarFlowError):
    """Stored record changed since it was read."""

    code = "concurrent_modification"

    def __init__(self, record_id: str, expected_version: int, actual_version: int):
        self.record_id = record_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Record {record_id} is at version {actual_version}, expected {expected_version}"
        )


__all__ = [
    "ScholarFlowError",
    "InvalidTransition",
    "InvalidState",
    "SchedulingConflict",
    "MissingInterviewerBinding",
    "MissingReason",
    "InvalidSchedule",
    "InvalidAmount",
    "NoAvailability",
    "RecordNotFound",
    "ConcurrentModification",
]

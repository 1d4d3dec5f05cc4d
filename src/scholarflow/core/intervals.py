"""Pure interval arithmetic for interview slots.

Times are handled as minutes since midnight on the slot's date. Every interval
is half-open, ``[start, end)``, so an interview ending at 10:00 does not clash
with one starting at 10:00.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import time
from typing import Iterable, Sequence

from ..schemas import InterviewSlot, SlotStatus
from .errors import InvalidSchedule

MINUTES_PER_DAY = 24 * 60


def to_minutes(value: time) -> int:
    if value.second or value.microsecond:
        raise InvalidSchedule(f"{value.isoformat()} is not on a whole minute")
    return value.hour * 60 + value.minute


def from_minutes(minutes: int) -> time:
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise InvalidSchedule(f"{minutes} minutes is outside a single day")
    return time(minutes // 60, minutes % 60)


def format_hhmm(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def format_display(minutes: int) -> str:
    """Render minutes as ``9:30 AM`` style text."""
    hour, minute = divmod(minutes % MINUTES_PER_DAY, 60)
    suffix = "AM" if hour < 12 else "PM"
    hour12 = hour % 12 or 12
    return f"{hour12}:{minute:02d} {suffix}"


@dataclass(frozen=True, slots=True)
class TimeRange:
    """Half-open ``[start, end)`` interval in minutes since midnight."""

    start: int
    end: int

    @classmethod
    def from_start(cls, start: time, duration_minutes: int) -> "TimeRange":
        if duration_minutes <= 0:
            raise InvalidSchedule("duration_minutes must be positive")
        begin = to_minutes(start)
        end = begin + duration_minutes
        if end > MINUTES_PER_DAY:
            raise InvalidSchedule(
                f"slot starting {format_hhmm(begin)} for {duration_minutes} minutes runs past midnight"
            )
        return cls(begin, end)

    @classmethod
    def of_slot(cls, slot: InterviewSlot) -> "TimeRange":
        return cls.from_start(slot.start_time, slot.duration_minutes)

    @property
    def start_time(self) -> time:
        return from_minutes(self.start)

    @property
    def duration(self) -> int:
        return self.end - self.start

    def overlaps(self, other: "TimeRange") -> bool:
        return self.start < other.end and other.start < self.end

    def label(self) -> str:
        return f"{format_hhmm(self.start)}-{format_hhmm(self.end)}"


@dataclass(frozen=True, slots=True)
class Conflict:
    """Existing booking that collides with a requested interval."""

    slot_id: str
    application_id: str
    existing: TimeRange
    requested: TimeRange
    applicant_ref: str | None = None
    candidate_application_id: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "slot_id": self.slot_id,
            "application_id": self.application_id,
            "applicant_ref": self.applicant_ref,
            "candidate_application_id": self.candidate_application_id,
            "start_time": format_hhmm(self.existing.start),
            "end_time": format_hhmm(self.existing.end),
            "display_start_time": format_display(self.existing.start),
            "display_end_time": format_display(self.existing.end),
            "requested": self.requested.label(),
        }


def active_slots(slots: Iterable[InterviewSlot], *, exclude: Iterable[str] = ()) -> list[InterviewSlot]:
    """Slots that hold a booking, i.e. status ``scheduled``."""
    excluded = set(exclude)
    return [
        slot
        for slot in slots
        if slot.status is SlotStatus.SCHEDULED and slot.id not in excluded
    ]


def find_conflicts(
    existing: Iterable[InterviewSlot],
    requested: TimeRange,
    *,
    candidate_application_id: str | None = None,
    applicant_refs: dict[str, str | None] | None = None,
) -> list[Conflict]:
    """Return every scheduled slot in ``existing`` overlapping ``requested``.

    The caller is responsible for passing slots of a single interviewer/date.
    """
    refs = applicant_refs or {}
    conflicts: list[Conflict] = []
    for slot in active_slots(existing):
        booked = TimeRange.of_slot(slot)
        if booked.overlaps(requested):
            conflicts.append(
                Conflict(
                    slot_id=slot.id,
                    application_id=slot.application_id,
                    existing=booked,
                    requested=requested,
                    applicant_ref=refs.get(slot.application_id),
                    candidate_application_id=candidate_application_id,
                )
            )
    conflicts.sort(key=lambda item: (item.existing.start, item.slot_id))
    return conflicts


def pack_consecutive(start: time, duration_minutes: int, gap_minutes: int, count: int) -> list[TimeRange]:
    """Lay out ``count`` back-to-back slots separated by ``gap_minutes``.

    Slot 0 starts at ``start``; slot ``i`` starts at slot ``i-1``'s end plus the gap.
    """
    if gap_minutes < 0:
        raise InvalidSchedule("gap_minutes must not be negative")
    if count < 0:
        raise InvalidSchedule("count must not be negative")
    ranges: list[TimeRange] = []
    cursor = start
    for index in range(count):
        current = TimeRange.from_start(cursor, duration_minutes)
        ranges.append(current)
        if index + 1 < count:
            next_start = current.end + gap_minutes
            if next_start >= MINUTES_PER_DAY:
                raise InvalidSchedule(f"slot {index + 2} of {count} would start after midnight")
            cursor = from_minutes(next_start)
    return ranges


def find_batch_conflicts(
    existing: Sequence[InterviewSlot],
    planned: Sequence[tuple[str, TimeRange]],
    *,
    applicant_refs: dict[str, str | None] | None = None,
) -> list[Conflict]:
    """Check every planned ``(application_id, range)`` against existing bookings."""
    conflicts: list[Conflict] = []
    for application_id, requested in planned:
        conflicts.extend(
            find_conflicts(
                existing,
                requested,
                candidate_application_id=application_id,
                applicant_refs=applicant_refs,
            )
        )
    return conflicts


def free_start_times(
    existing: Iterable[InterviewSlot],
    *,
    window_start: time,
    window_end: time,
    duration_minutes: int,
    step_minutes: int,
) -> list[time]:
    """Start times on a ``step_minutes`` grid whose slot fits the window without clashing."""
    if step_minutes <= 0:
        raise InvalidSchedule("step_minutes must be positive")
    if duration_minutes <= 0:
        raise InvalidSchedule("duration_minutes must be positive")
    booked = [TimeRange.of_slot(slot) for slot in active_slots(existing)]
    first = to_minutes(window_start)
    last = to_minutes(window_end)
    starts: list[time] = []
    for begin in range(first, last, step_minutes):
        candidate = TimeRange(begin, begin + duration_minutes)
        if candidate.end > last:
            break
        if not any(candidate.overlaps(other) for other in booked):
            starts.append(from_minutes(begin))
    return starts


__all__ = [
    "Conflict",
    "TimeRange",
    "active_slots",
    "find_batch_conflicts",
    "find_conflicts",
    "format_display",
    "format_hhmm",
    "free_start_times",
    "from_minutes",
    "pack_consecutive",
    "to_minutes",
]

from __future__ import annotations

from datetime import date, time

import pytest

from scholarflow.core import InvalidSchedule, TimeRange, find_conflicts, free_start_times, pack_consecutive
from scholarflow.core.intervals import find_batch_conflicts, format_display, format_hhmm, to_minutes
from scholarflow.schemas import InterviewSlot, SlotStatus

DAY = date(2025, 3, 3)


def build_slot(slot_id: str, start: time, duration: int = 30, **kwargs) -> InterviewSlot:
    defaults = {
        "id": slot_id,
        "application_id": f"APP-{slot_id}",
        "interviewer_id": "INT-1",
        "date": DAY,
        "start_time": start,
        "duration_minutes": duration,
    }
    defaults.update(kwargs)
    return InterviewSlot(**defaults)


def test_pack_consecutive_inserts_gap_after_each_slot():
    ranges = pack_consecutive(time(9, 0), 30, 15, 3)

    assert [item.label() for item in ranges] == ["09:00-09:30", "09:45-10:15", "10:30-11:00"]


def test_pack_consecutive_without_gap_is_back_to_back():
    ranges = pack_consecutive(time(13, 0), 20, 0, 3)

    assert [item.label() for item in ranges] == ["13:00-13:20", "13:20-13:40", "13:40-14:00"]


def test_pack_consecutive_rejects_negative_gap_and_midnight_overflow():
    with pytest.raises(InvalidSchedule):
        pack_consecutive(time(9, 0), 30, -5, 2)
    with pytest.raises(InvalidSchedule):
        pack_consecutive(time(23, 0), 30, 15, 3)


def test_touching_intervals_do_not_overlap():
    existing = [build_slot("S1", time(9, 30))]

    assert find_conflicts(existing, TimeRange.from_start(time(10, 0), 30)) == []
    assert find_conflicts(existing, TimeRange.from_start(time(9, 0), 30)) == []

    conflicts = find_conflicts(
        existing,
        TimeRange.from_start(time(9, 45), 30),
        candidate_application_id="APP-NEW",
        applicant_refs={"APP-S1": "student-1"},
    )
    assert len(conflicts) == 1
    conflict = conflicts[0]
    assert conflict.slot_id == "S1"
    assert conflict.existing.label() == "09:30-10:00"
    assert conflict.applicant_ref == "student-1"
    assert conflict.to_dict()["display_start_time"] == "9:30 AM"
    assert conflict.to_dict()["candidate_application_id"] == "APP-NEW"


def test_only_scheduled_slots_block_time():
    existing = [
        build_slot("S1", time(9, 0), status=SlotStatus.CANCELLED),
        build_slot("S2", time(9, 0), status=SlotStatus.RESCHEDULED),
        build_slot("S3", time(9, 0), status=SlotStatus.PENDING),
    ]

    assert find_conflicts(existing, TimeRange.from_start(time(9, 0), 30)) == []


def test_to_minutes_rejects_sub_minute_times():
    assert to_minutes(time(9, 30)) == 570

    with pytest.raises(InvalidSchedule):
        to_minutes(time(9, 0, 45))
    with pytest.raises(InvalidSchedule):
        TimeRange.from_start(time(9, 0, 0, 500), 30)


def test_from_start_rejects_non_positive_duration_and_midnight():
    with pytest.raises(InvalidSchedule):
        TimeRange.from_start(time(9, 0), 0)
    with pytest.raises(InvalidSchedule):
        TimeRange.from_start(time(23, 45), 30)
    assert TimeRange.from_start(time(23, 30), 30).end == 24 * 60


def test_batch_conflicts_report_the_planned_application():
    existing = [build_slot("S1", time(10, 30))]
    plan = list(zip(["A", "B", "C"], pack_consecutive(time(9, 0), 30, 15, 3)))

    conflicts = find_batch_conflicts(existing, plan)

    assert [conflict.candidate_application_id for conflict in conflicts] == ["C"]


def test_free_start_times_skip_booked_time():
    existing = [build_slot("S1", time(10, 0))]

    starts = free_start_times(
        existing,
        window_start=time(9, 0),
        window_end=time(12, 0),
        duration_minutes=30,
        step_minutes=30,
    )
    assert starts == [time(9, 0), time(9, 30), time(10, 30), time(11, 0), time(11, 30)]

    hour_long = free_start_times(
        existing,
        window_start=time(9, 0),
        window_end=time(12, 0),
        duration_minutes=60,
        step_minutes=30,
    )
    assert hour_long == [time(9, 0), time(10, 30), time(11, 0)]


def test_formatting_helpers():
    assert format_hhmm(9 * 60 + 5) == "09:05"
    assert format_display(0) == "12:00 AM"
    assert format_display(13 * 60) == "1:00 PM"
    assert format_display(12 * 60 + 30) == "12:30 PM"

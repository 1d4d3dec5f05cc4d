from __future__ import annotations

from datetime import time
from decimal import Decimal

import pytest

from scholarflow.core import Decision, MissingReason
from scholarflow.schemas import ApplicationStatus

S = ApplicationStatus


def seed(world) -> None:
    world.endorsed("APP-1", start=time(9, 0), requested_amount="10000")
    world.endorsed("APP-2", start=time(10, 0), requested_amount="7500.25")
    world.add_application("APP-3")


def outcomes(report) -> dict[str, str]:
    return {item.application_id: item.outcome for item in report.results}


def test_bulk_approve_grants_requested_amounts(world):
    seed(world)

    report = world.decisions.bulk_approve(["APP-1", "APP-2", "APP-3", "APP-404"], approved_by="ssc-chair")

    assert report.decision is Decision.APPROVE
    assert outcomes(report) == {
        "APP-1": "decided",
        "APP-2": "decided",
        "APP-3": "skipped",
        "APP-404": "failed",
    }
    assert report.decided_count == 2
    assert report.total_processed == 3
    first = world.repository.get_application("APP-1")
    second = world.repository.get_application("APP-2")
    assert first.status is S.APPROVED
    assert first.approved_amount == Decimal("10000")
    assert second.approved_amount == Decimal("7500.25")
    assert first.decision_notes == "Bulk approved by SSC"
    assert first.history[-1].changed_by == "ssc-chair"
    assert world.repository.get_application("APP-3").status is S.DOCUMENTS_REVIEWED


def test_bulk_approve_report_shape(world):
    seed(world)

    payload = world.decisions.bulk_approve(["APP-1", "APP-404"], "Approved in March sitting").to_dict()

    assert payload["decision"] == "approve"
    assert payload["approved_count"] == 1
    assert payload["total_processed"] == 2
    assert payload["failed_applications"] == [
        {"id": "APP-404", "error": "Application 'APP-404' not found"}
    ]
    assert world.repository.get_application("APP-1").decision_notes == "Approved in March sitting"


def test_bulk_reject_requires_reason(world):
    seed(world)

    with pytest.raises(MissingReason):
        world.decisions.bulk_reject(["APP-1"], "   ")

    assert world.repository.get_application("APP-1").status is S.ENDORSED_TO_SSC


def test_bulk_reject_records_reason(world):
    seed(world)

    report = world.decisions.bulk_reject(["APP-1", "APP-3"], " Funding exhausted ", rejected_by="ssc-chair")

    assert report.to_dict()["rejected_count"] == 1
    assert outcomes(report) == {"APP-1": "decided", "APP-3": "skipped"}
    assert report.results[1].code == "not_endorsed"
    rejected = world.repository.get_application("APP-1")
    assert rejected.status is S.REJECTED
    assert rejected.rejection_reason == "Funding exhausted"


def test_second_decision_is_skipped(world):
    seed(world)
    world.decisions.bulk_approve(["APP-1"])

    report = world.decisions.bulk_reject(["APP-1"], "Late reversal")

    assert outcomes(report) == {"APP-1": "skipped"}
    assert world.repository.get_application("APP-1").status is S.APPROVED


def test_empty_request_is_rejected(world):
    with pytest.raises(ValueError):
        world.decisions.bulk_approve([])


def test_parallel_workers_match_sequential_outcomes(make_world):
    world = make_world(max_workers=4)
    world.add_interviewer("INT-1")
    for index, hour in enumerate(range(9, 15), start=1):
        world.endorsed(f"APP-{index}", start=time(hour, 0), requested_amount="5000")

    report = world.decisions.bulk_approve([f"APP-{index}" for index in range(1, 7)])

    assert [item.application_id for item in report.results] == [f"APP-{index}" for index in range(1, 7)]
    assert report.decided_count == 6

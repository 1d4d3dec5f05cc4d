from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

from scholarflow.schemas import STAGE_ORDER, Application, ApplicationStatus, stage_rank

S = ApplicationStatus


def at(hour: int) -> datetime:
    return datetime(2025, 3, 1, hour, 0, tzinfo=timezone.utc)


def test_application_defaults():
    application = Application(id="APP-1")

    assert application.status is S.DRAFT
    assert application.requested_amount == Decimal("0")
    assert application.history == []
    assert application.version == 0
    assert application.effective_stage is S.DRAFT


def test_rejection_reason_matches_rejected_status():
    with pytest.raises(ValidationError):
        Application(id="APP-1", status=S.REJECTED)
    with pytest.raises(ValidationError):
        Application(id="APP-1", status=S.DRAFT, rejection_reason="Not eligible")

    rejected = Application(
        id="APP-1",
        status=S.REJECTED,
        rejection_reason="Not eligible",
        submitted_at=at(8),
        reviewed_at=at(9),
    )
    assert rejected.effective_stage is None


def test_stage_timestamps_follow_status():
    with pytest.raises(ValidationError):
        Application(id="APP-1", status=S.SUBMITTED)
    with pytest.raises(ValidationError):
        Application(id="APP-1", status=S.DRAFT, submitted_at=at(8))

    reviewed = Application(
        id="APP-1", status=S.DOCUMENTS_REVIEWED, submitted_at=at(8), reviewed_at=at(9)
    )
    assert reviewed.effective_stage is S.DOCUMENTS_REVIEWED


def test_stage_timestamps_must_not_decrease():
    with pytest.raises(ValidationError):
        Application(
            id="APP-1",
            status=S.DOCUMENTS_REVIEWED,
            submitted_at=at(10),
            reviewed_at=at(9),
        )


def test_side_states_use_recorded_stage():
    with pytest.raises(ValidationError):
        Application(id="APP-1", status=S.ON_HOLD, submitted_at=at(8))

    held = Application(
        id="APP-1",
        status=S.ON_HOLD,
        held_from=S.ENDORSED_TO_SSC,
        submitted_at=at(8),
        reviewed_at=at(9),
        endorsed_at=at(10),
    )
    assert held.effective_stage is S.ENDORSED_TO_SSC

    with pytest.raises(ValidationError):
        Application(
            id="APP-1",
            status=S.FOR_COMPLIANCE,
            compliance_from=S.DOCUMENTS_REVIEWED,
            submitted_at=at(8),
        )


def test_amounts_are_non_negative_decimals():
    application = Application(id="APP-1", requested_amount="15000.50")
    assert application.requested_amount == Decimal("15000.50")

    with pytest.raises(ValidationError):
        Application(id="APP-1", requested_amount=-1)


def test_stage_rank_orders_main_track():
    assert [stage_rank(status) for status in STAGE_ORDER] == list(range(len(STAGE_ORDER)))
    assert stage_rank(S.ENDORSED_TO_SSC) > stage_rank(S.INTERVIEW_COMPLETED)
    assert stage_rank(S.ON_HOLD) is None

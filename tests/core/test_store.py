from __future__ import annotations

import json
from datetime import time
from pathlib import Path

import pytest

from scholarflow.core import RecordNotFound
from scholarflow.schemas import Application, ApplicationStatus, Recommendation, SlotStatus
from scholarflow.store import AuditLogger, InMemoryRepository, StateLoadError, StateLoader, StateWriter


def test_repository_returns_detached_copies():
    repository = InMemoryRepository(applications=[Application(id="APP-1")])

    copy = repository.get_application("APP-1")
    copy.status = ApplicationStatus.WITHDRAWN

    assert repository.get_application("APP-1").status is ApplicationStatus.DRAFT
    with pytest.raises(RecordNotFound) as exc:
        repository.get_application("APP-404")
    assert exc.value.to_dict() == {"code": "not_found", "message": "Application 'APP-404' not found"}
    with pytest.raises(ValueError):
        repository.add_application(Application(id="APP-1"))


def test_state_snapshot_survives_write_and_load(world, tmp_path: Path):
    world.interviewed("APP-1", Recommendation.RECOMMENDED, start=time(9, 0))
    path = tmp_path / "state" / "scholarships.json"

    StateWriter().write(path, world.repository)
    loaded = StateLoader().load(path)

    application = loaded.get_application("APP-1")
    assert application.status is ApplicationStatus.INTERVIEW_COMPLETED
    assert len(application.history) == 4
    slot = loaded.slots_for_application("APP-1")[0]
    assert slot.status is SlotStatus.COMPLETED
    assert slot.evaluation.overall_recommendation is Recommendation.RECOMMENDED
    assert loaded.get_interviewer("INT-1").is_bound


def test_state_loader_collects_invalid_records(tmp_path: Path):
    path = tmp_path / "state.json"
    path.write_text(
        json.dumps(
            {
                "applications": [
                    {"id": "APP-1", "status": "rejected"},
                    {"id": "APP-2"},
                ],
                "slots": {"not": "a list"},
            }
        ),
        encoding="utf-8",
    )

    with pytest.raises(StateLoadError) as exc:
        StateLoader().load(path)

    assert exc.value.errors[0].startswith("applications[0]")
    assert exc.value.errors[1] == "slots: expected a list"


def test_state_loader_rejects_invalid_json(tmp_path: Path):
    path = tmp_path / "state.json"
    path.write_text("{broken", encoding="utf-8")

    with pytest.raises(ValueError):
        StateLoader().load(path)


def test_audit_logger_appends_json_lines(tmp_path: Path):
    path = tmp_path / "audit" / "audit.jsonl"
    logger = AuditLogger(path)

    logger.append({"action": "application.submit", "entity_id": "APP-1"})
    logger.append({"action": "application.withdraw", "entity_id": "APP-1"})

    lines = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert [line["action"] for line in lines] == ["application.submit", "application.withdraw"]
    assert "timestamp" in lines[0]

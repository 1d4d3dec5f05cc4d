from __future__ import annotations

from datetime import time
from pathlib import Path

import pytest
from pydantic import ValidationError

from scholarflow.config import ConfigManager
from scholarflow.container import create_container
from scholarflow.schemas import Application
from scholarflow.schemas.config import AppConfig, load_config
from scholarflow.service import ScholarshipService
from scholarflow.store import InMemoryRepository


def test_create_container_with_overrides():
    container = create_container(
        settings={
            "scheduler": {"default_duration_minutes": 45, "business_day_start": "08:00"},
            "endorsement": {"max_workers": 3, "default_notes": "Forwarded to committee"},
            "committee": {"default_approval_notes": "Approved at plenary"},
        }
    )

    scheduler = container.scheduler()
    endorsement = container.endorsement()
    decisions = container.decisions()

    assert scheduler.config.default_duration_minutes == 45
    assert scheduler.config.default_gap_minutes == 15
    assert scheduler.config.business_day_start == time(8, 0)
    assert endorsement._max_workers == 3
    assert endorsement._default_notes == "Forwarded to committee"
    assert decisions._default_approval_notes == "Approved at plenary"
    assert decisions._max_workers == 1


def test_components_read_settings_from_configuration_provider():
    container = create_container()
    container.config.from_dict(
        {
            "scheduler": {"default_gap_minutes": 5},
            "endorsement": {"max_workers": 2},
        }
    )

    assert container.scheduler().config.default_gap_minutes == 5
    assert container.scheduler().config.default_duration_minutes == 30
    assert container.endorsement()._max_workers == 2
    assert container.endorsement()._default_notes == "Bulk endorsed to SSC"


def test_container_defaults_share_one_repository():
    repository = InMemoryRepository(applications=[Application(id="APP-1")])
    container = create_container(repository=repository)

    service = container.service()

    assert isinstance(service, ScholarshipService)
    assert service.repository is repository
    assert container.scheduler().config.default_duration_minutes == 30
    service.submit_application("APP-1")
    assert repository.get_application("APP-1").status.value == "submitted"


def test_load_config_validation():
    app_config = load_config({"scheduler": {"default_gap_minutes": 0}})
    assert isinstance(app_config, AppConfig)
    settings = app_config.to_settings()
    assert settings["scheduler"]["default_gap_minutes"] == 0
    assert settings["endorsement"]["default_notes"] == "Bulk endorsed to SSC"
    assert load_config(None) == AppConfig()

    with pytest.raises(ValidationError):
        load_config({"scheduler": {"business_day_start": "17:00", "business_day_end": "09:00"}})
    with pytest.raises(ValidationError):
        load_config({"scheduler": {"default_gap_minutes": -1}})
    with pytest.raises(ValidationError):
        load_config({"unknown": {}})


def test_config_manager_loads_yaml(tmp_path: Path):
    (tmp_path / "scholarflow.yml").write_text(
        "scheduler:\n  default_duration_minutes: 40\n", encoding="utf-8"
    )
    (tmp_path / "empty.yaml").write_text("", encoding="utf-8")
    (tmp_path / "list.yaml").write_text("- a\n- b\n", encoding="utf-8")

    manager = ConfigManager(tmp_path)

    assert manager.load("scholarflow") == {"scheduler": {"default_duration_minutes": 40}}
    assert manager.load("empty") == {}
    assert ConfigManager.load_path(tmp_path / "scholarflow.yml")["scheduler"]["default_duration_minutes"] == 40
    with pytest.raises(ValueError):
        manager.load("list")

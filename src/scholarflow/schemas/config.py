"""Pydantic configuration schema for YAML settings."""

from __future__ import annotations

from datetime import time
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class SchedulerConfig(BaseModel):
    default_duration_minutes: int = Field(default=30, gt=0)
    default_gap_minutes: int = Field(default=15, ge=0)
    business_day_start: time = time(9, 0)
    business_day_end: time = time(17, 0)
    slot_step_minutes: int = Field(default=30, gt=0)
    skip_weekends: bool = True

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def _check_business_day(self) -> "SchedulerConfig":
        if self.business_day_end <= self.business_day_start:
            raise ValueError("business_day_end must be after business_day_start")
        return self


class EndorsementConfig(BaseModel):
    max_workers: int = Field(default=1, ge=1)
    default_notes: str = "Bulk endorsed to SSC"

    model_config = ConfigDict(extra="forbid")


class CommitteeConfig(BaseModel):
    max_workers: int = Field(default=1, ge=1)
    default_approval_notes: str = "Bulk approved by SSC"

    model_config = ConfigDict(extra="forbid")


class AppConfig(BaseModel):
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    endorsement: EndorsementConfig = Field(default_factory=EndorsementConfig)
    committee: CommitteeConfig = Field(default_factory=CommitteeConfig)

    model_config = ConfigDict(extra="forbid")

    def to_settings(self) -> dict[str, Any]:
        return self.model_dump(mode="python")


def load_config(raw: Any) -> AppConfig:
    if raw is None:
        return AppConfig()
    return AppConfig.model_validate(raw)

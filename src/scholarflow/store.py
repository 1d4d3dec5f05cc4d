"""Record storage: repository contract, in-memory store and JSON snapshots."""

from __future__ import annotations

import json
import threading
from datetime import date
from pathlib import Path
from typing import Any, Iterable, Protocol, runtime_checkable

import pendulum
import structlog

from .core.errors import ConcurrentModification, RecordNotFound
from .schemas import Application, InterviewSlot, Interviewer, SlotStatus


@runtime_checkable
class ScholarshipRepository(Protocol):
    """Storage contract used by the lifecycle, scheduler and endorsement code.

    Reads return detached copies; changes only become visible through the
    ``save_*``/``add_*`` calls.
    """

    def get_application(self, application_id: str) -> Application:
        """Return a copy of the application or raise ``RecordNotFound``."""

    def save_application(self, application: Application) -> Application:
        """Persist if the stored version still equals ``application.version``."""

    def get_interviewer(self, interviewer_id: str) -> Interviewer:
        """Return the interviewer or raise ``RecordNotFound``."""

    def get_slot(self, slot_id: str) -> InterviewSlot:
        """Return a copy of the slot or raise ``RecordNotFound``."""

    def add_slot(self, slot: InterviewSlot) -> InterviewSlot:
        """Insert a new slot."""

    def save_slot(self, slot: InterviewSlot) -> InterviewSlot:
        """Replace an existing slot."""

    def slots_for_interviewer(self, interviewer_id: str, day: date) -> list[InterviewSlot]:
        """All slots of one interviewer on one date, any status."""

    def slots_for_application(self, application_id: str) -> list[InterviewSlot]:
        """All slots ever created for an application."""


class InMemoryRepository:
    """Thread-safe in-process repository with optimistic version checks."""

    def __init__(
        self,
        *,
        applications: Iterable[Application] = (),
        interviewers: Iterable[Interviewer] = (),
        slots: Iterable[InterviewSlot] = (),
    ) -> None:
        self._lock = threading.RLock()
        self._applications = {item.id: item.model_copy(deep=True) for item in applications}
        self._interviewers = {item.id: item.model_copy(deep=True) for item in interviewers}
        self._slots = {item.id: item.model_copy(deep=True) for item in slots}

    def add_application(self, application: Application) -> Application:
        with self._lock:
            if application.id in self._applications:
                raise ValueError(f"Application {application.id!r} already exists")
            self._applications[application.id] = application.model_copy(deep=True)
            return application.model_copy(deep=True)

    def get_application(self, application_id: str) -> Application:
        with self._lock:
            try:
                return self._applications[application_id].model_copy(deep=True)
            except KeyError as exc:
                raise RecordNotFound("Application", application_id) from exc

    def save_application(self, application: Application) -> Application:
        with self._lock:
            stored = self._applications.get(application.id)
            if stored is None:
                raise RecordNotFound("Application", application.id)
            if stored.version != application.version:
                raise ConcurrentModification(application.id, application.version, stored.version)
            committed = application.model_copy(deep=True, update={"version": application.version + 1})
            self._applications[application.id] = committed
            return committed.model_copy(deep=True)

    def applications(self) -> list[Application]:
        with self._lock:
            return [item.model_copy(deep=True) for item in self._applications.values()]

    def add_interviewer(self, interviewer: Interviewer) -> Interviewer:
        with self._lock:
            self._interviewers[interviewer.id] = interviewer.model_copy(deep=True)
            return interviewer

    def get_interviewer(self, interviewer_id: str) -> Interviewer:
        with self._lock:
            try:
                return self._interviewers[interviewer_id].model_copy(deep=True)
            except KeyError as exc:
                raise RecordNotFound("Interviewer", interviewer_id) from exc

    def interviewers(self) -> list[Interviewer]:
        with self._lock:
            return [item.model_copy(deep=True) for item in self._interviewers.values()]

    def get_slot(self, slot_id: str) -> InterviewSlot:
        with self._lock:
            try:
                return self._slots[slot_id].model_copy(deep=True)
            except KeyError as exc:
                raise RecordNotFound("InterviewSlot", slot_id) from exc

    def add_slot(self, slot: InterviewSlot) -> InterviewSlot:
        with self._lock:
            if slot.id in self._slots:
                raise ValueError(f"Slot {slot.id!r} already exists")
            self._slots[slot.id] = slot.model_copy(deep=True)
            return slot.model_copy(deep=True)

    def save_slot(self, slot: InterviewSlot) -> InterviewSlot:
        with self._lock:
            if slot.id not in self._slots:
                raise RecordNotFound("InterviewSlot", slot.id)
            self._slots[slot.id] = slot.model_copy(deep=True)
            return slot.model_copy(deep=True)

    def slots_for_interviewer(self, interviewer_id: str, day: date) -> list[InterviewSlot]:
        with self._lock:
            return [
                slot.model_copy(deep=True)
                for slot in self._slots.values()
                if slot.interviewer_id == interviewer_id and slot.date == day
            ]

    def slots_for_application(self, application_id: str) -> list[InterviewSlot]:
        with self._lock:
            return [
                slot.model_copy(deep=True)
                for slot in self._slots.values()
                if slot.application_id == application_id
            ]

    def slots(self, *, status: SlotStatus | None = None) -> list[InterviewSlot]:
        with self._lock:
            return [
                slot.model_copy(deep=True)
                for slot in self._slots.values()
                if status is None or slot.status is status
            ]


class StateLoadError(ValueError):
    """Raised when a state snapshot contains invalid records."""

    def __init__(self, errors: list[str]):
        super().__init__("State loading failed")
        self.errors = errors

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"State loading failed: {self.errors}"


class StateLoader:
    """Load a repository from a JSON snapshot file."""

    def load(self, path: Path) -> InMemoryRepository:
        with path.open("r", encoding="utf-8") as handle:
            try:
                data = json.load(handle)
            except json.JSONDecodeError as exc:
                raise ValueError(f"Invalid state JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise ValueError("State file must contain a JSON object")

        errors: list[str] = []
        applications = self._parse(data.get("applications", []), Application, "applications", errors)
        interviewers = self._parse(data.get("interviewers", []), Interviewer, "interviewers", errors)
        slots = self._parse(data.get("slots", []), InterviewSlot, "slots", errors)
        if errors:
            raise StateLoadError(errors)
        return InMemoryRepository(
            applications=applications,
            interviewers=interviewers,
            slots=slots,
        )

    @staticmethod
    def _parse(records: Any, model: Any, section: str, errors: list[str]) -> list[Any]:
        if not isinstance(records, list):
            errors.append(f"{section}: expected a list")
            return []
        parsed = []
        for idx, record in enumerate(records):
            try:
                parsed.append(model.model_validate(record))
            except ValueError as exc:
                errors.append(f"{section}[{idx}]: {exc}")
        return parsed


class StateWriter:
    """Persist a repository snapshot as JSON."""

    def write(self, path: Path, repository: InMemoryRepository) -> None:
        payload = {
            "applications": [item.model_dump(mode="json") for item in repository.applications()],
            "interviewers": [item.model_dump(mode="json") for item in repository.interviewers()],
            "slots": [item.model_dump(mode="json") for item in repository.slots()],
        }
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps(payload, ensure_ascii=False, indent=2),
            encoding="utf-8",
        )


class AuditLogger:
    """Append-only audit logger writing JSON lines."""

    def __init__(self, path: Path):
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._logger = structlog.get_logger(__name__)

    def append(self, record: dict) -> None:
        entry = {"timestamp": pendulum.now().to_iso8601_string(), **record}
        line = json.dumps(entry, ensure_ascii=False, default=str)
        with self._lock:
            with self._path.open("a", encoding="utf-8") as handle:
                handle.write(line)
                handle.write("\n")
        self._logger.debug("audit.appended", action=record.get("action"))


__all__ = [
    "AuditLogger",
    "InMemoryRepository",
    "ScholarshipRepository",
    "StateLoadError",
    "StateLoader",
    "StateWriter",
]

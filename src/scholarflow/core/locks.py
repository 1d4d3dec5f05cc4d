"""Keyed mutual exclusion for per-interviewer and per-application critical sections."""

from __future__ import annotations

import threading
from contextlib import ExitStack, contextmanager
from datetime import date
from typing import Hashable, Iterable, Iterator


def interviewer_day_key(interviewer_id: str, day: date) -> tuple[str, str, str]:
    return ("interviewer", interviewer_id, day.isoformat())


def application_key(application_id: str) -> tuple[str, str]:
    return ("application", application_id)


# Interviewer-day locks are always taken before application locks.
_KIND_ORDER = {"interviewer": 0, "application": 1}


def _acquisition_order(key: Hashable) -> tuple[int, str]:
    kind = key[0] if isinstance(key, tuple) and key else None
    return (_KIND_ORDER.get(kind, len(_KIND_ORDER)), repr(key))


class KeyedLocks:
    """Registry handing out one re-entrant lock per key.

    Multiple keys are acquired in a fixed global order (interviewer-day keys,
    then application keys) so callers locking overlapping key sets cannot
    deadlock. A caller that already holds an interviewer-day lock may take
    application locks one at a time afterwards.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[Hashable, threading.RLock] = {}

    def _lock_for(self, key: Hashable) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, *keys: Hashable) -> Iterator[None]:
        with self.hold_all(keys):
            yield

    @contextmanager
    def hold_all(self, keys: Iterable[Hashable]) -> Iterator[None]:
        ordered = sorted(set(keys), key=_acquisition_order)
        with ExitStack() as stack:
            for key in ordered:
                stack.enter_context(self._lock_for(key))
            yield


__all__ = ["KeyedLocks", "application_key", "interviewer_day_key"]

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from .constants import DATA_JSON_PATH, SCHEMA_VERSION, STORAGE_KEY
from .errors import StorageWriteError
from .logger import ErrorLogger
from .models import AppState

log = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryKeyValueStore:
    def __init__(self, initial: dict[str, str] | None = None):
        self.data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value


class JsonFileKeyValueStore:
    """String values under string keys, kept in one JSON object on disk.

    Writes go to a sibling temp file that replaces the real one, so the file
    always holds either the previous or the new complete content.
    """

    def __init__(self, path: Path = DATA_JSON_PATH):
        self.path = Path(path)

    def _read_all(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except ValueError:
            log.warning("Ignoring unreadable key-value file %s", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str) -> str | None:
        value = self._read_all().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        with tmp.open("w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False)
        os.replace(tmp, self.path)


def needs_migration(data: dict[str, Any]) -> bool:
    """True for payloads written before roll numbers and archiving existed."""
    try:
        version = int(data.get("version", 0) or 0)
    except Exception:
        version = 0
    if version < SCHEMA_VERSION:
        return True
    return students_need_repair(data.get("students") or [])


def students_need_repair(students: list[dict[str, Any]]) -> bool:
    return any(not s.get("rollNumber") or "archived" not in s for s in students)


def migrate_students(students: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Assign missing roll numbers in stored order and default ``archived``.

    A student without a roll number gets one more than the highest number
    seen so far; a student that has one raises the running maximum.
    """
    current_max = 0
    migrated: list[dict[str, Any]] = []
    for s in students:
        try:
            roll = int(s.get("rollNumber") or 0)
        except Exception:
            roll = 0
        if roll <= 0:
            current_max += 1
            roll = current_max
        elif roll > current_max:
            current_max = roll
        migrated.append({**s, "rollNumber": roll, "archived": s.get("archived") is True})
    return migrated


@dataclass
class LoadResult:
    state: AppState
    migrated: bool = False
    recovered: bool = False  # stored value was unreadable; started fresh


class StateGateway:
    """Loads and saves the whole application state under one storage key."""

    def __init__(
        self,
        kv: KeyValueStore,
        key: str = STORAGE_KEY,
        err_logger: ErrorLogger | None = None,
    ):
        self.kv = kv
        self.key = key
        self.err_logger = err_logger

    def _report(self, exc: BaseException, context: str) -> None:
        log.warning("%s: %s", context, exc)
        if self.err_logger is not None:
            self.err_logger.log_exception(exc, context)

    def load(self) -> LoadResult:
        try:
            raw = self.kv.get(self.key)
        except Exception as e:
            self._report(e, "load_state: storage unavailable")
            return LoadResult(AppState(), recovered=True)
        if raw is None:
            return LoadResult(AppState())

        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError("stored state is not a JSON object")
            students = data.get("students") or []
            if not isinstance(students, list):
                raise ValueError("stored students is not a list")
            migrated = needs_migration(data)
            if migrated:
                data = {**data, "students": migrate_students(students)}
            state = AppState.from_dict(data)
        except Exception as e:
            self._report(e, "load_state: discarding unreadable data")
            return LoadResult(AppState(), recovered=True)

        if migrated:
            log.info("Repaired %d stored students (roll numbers/archived flag)", len(state.students))
        return LoadResult(state, migrated=migrated)

    @staticmethod
    def serialize(state: AppState) -> str:
        payload = {"version": SCHEMA_VERSION, **state.to_dict()}
        return json.dumps(payload, ensure_ascii=False)

    def save(self, state: AppState) -> None:
        value = self.serialize(state)
        try:
            self.kv.set(self.key, value)
        except Exception as e:
            raise StorageWriteError(f"Could not save data: {e}", e) from e

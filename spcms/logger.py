from __future__ import annotations

import traceback
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from .constants import ERROR_LOG_PATH


@dataclass
class AppEvent:
    timestamp: str
    action: str
    entity_type: str
    entity_id: str
    details: str = ""


class ActivityLog:
    """Recent activity for the current session, newest last."""

    def __init__(self, max_events: int = 500):
        self._events: deque[AppEvent] = deque(maxlen=max_events)

    def add_event(self, event: AppEvent) -> None:
        self._events.append(event)

    def list_events(self, limit: int = 500) -> list[AppEvent]:
        events = list(self._events)
        return events[-limit:] if limit > 0 else []

    def __len__(self) -> int:
        return len(self._events)


class ErrorLogger:
    def __init__(self, path: Path = ERROR_LOG_PATH):
        self.path = path

    def log_exception(self, exc: BaseException, context: str = "") -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        ts = now_ts()
        with self.path.open("a", encoding="utf-8") as f:
            f.write(f"[{ts}] {context}\n")
            f.write("".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))
            f.write("\n")


def now_ts() -> str:
    return datetime.now().isoformat(timespec="seconds")

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .constants import (
    AI_ATTENDANCE_WINDOW,
    AI_MODEL,
    APP_VERSION,
    CLASS_NAME,
    COUNTRY_CODE,
    DATA_JSON_PATH,
    SESSION_YEAR,
    SETTINGS_JSON_PATH,
    STORAGE_KEY,
)


@dataclass
class Settings:
    class_name: str = CLASS_NAME
    app_version: str = APP_VERSION
    session_year: int = SESSION_YEAR
    country_code: str = COUNTRY_CODE
    storage_key: str = STORAGE_KEY
    data_path: str = str(DATA_JSON_PATH)
    admin_numbers: list[str] = field(default_factory=list)
    allowed_phones: list[str] = field(default_factory=list)
    passcode: str = ""  # empty leaves the access gate open
    payment_pin: str = ""  # empty disables the mark-paid PIN prompt
    ai_api_key: str = ""
    ai_model: str = AI_MODEL
    ai_attendance_window: int = AI_ATTENDANCE_WINDOW
    ai_timeout: float = 20.0

    @property
    def api_key(self) -> str:
        return self.ai_api_key or os.environ.get("API_KEY", "")

    @staticmethod
    def from_dict(d: dict[str, Any]) -> "Settings":
        try:
            session_year = int(d.get("session_year", SESSION_YEAR))
        except Exception:
            session_year = SESSION_YEAR
        try:
            window = int(d.get("ai_attendance_window", AI_ATTENDANCE_WINDOW))
        except Exception:
            window = AI_ATTENDANCE_WINDOW
        if window < 0:
            window = 0
        try:
            timeout = float(d.get("ai_timeout", 20.0))
        except Exception:
            timeout = 20.0
        # httpx treats zero as "fail immediately"; keep a usable floor.
        if timeout < 1.0:
            timeout = 1.0
        admins = d.get("admin_numbers", [])
        if not isinstance(admins, list):
            admins = []
        allowed = d.get("allowed_phones", [])
        if not isinstance(allowed, list):
            allowed = []
        return Settings(
            class_name=str(d.get("class_name", CLASS_NAME)),
            app_version=str(d.get("app_version", APP_VERSION)),
            session_year=session_year,
            country_code=str(d.get("country_code", COUNTRY_CODE)),
            storage_key=str(d.get("storage_key", STORAGE_KEY)),
            data_path=str(d.get("data_path", DATA_JSON_PATH)),
            admin_numbers=[str(n) for n in admins],
            allowed_phones=[str(n) for n in allowed],
            passcode=str(d.get("passcode", "")),
            payment_pin=str(d.get("payment_pin", "")),
            ai_api_key=str(d.get("ai_api_key", "")),
            ai_model=str(d.get("ai_model", AI_MODEL)),
            ai_attendance_window=window,
            ai_timeout=timeout,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "class_name": self.class_name,
            "app_version": self.app_version,
            "session_year": self.session_year,
            "country_code": self.country_code,
            "storage_key": self.storage_key,
            "data_path": self.data_path,
            "admin_numbers": self.admin_numbers,
            "allowed_phones": self.allowed_phones,
            "passcode": self.passcode,
            "payment_pin": self.payment_pin,
            "ai_api_key": self.ai_api_key,
            "ai_model": self.ai_model,
            "ai_attendance_window": self.ai_attendance_window,
            "ai_timeout": self.ai_timeout,
        }


class SettingsStore:
    def __init__(self, path: Path = SETTINGS_JSON_PATH):
        self.path = path

    def load(self) -> Settings:
        if not self.path.exists():
            settings = Settings()
            self.save(settings)
            return settings

        with self.path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        return Settings.from_dict(data if isinstance(data, dict) else {})

    def save(self, settings: Settings) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8") as f:
            json.dump(settings.to_dict(), f, indent=2)
            f.write("\n")

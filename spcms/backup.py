"""Backup files (JSON) and roster exports (CSV and Excel)."""
from __future__ import annotations

import csv
import io
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from .constants import APP_VERSION, CLASS_NAME, DOB_PLACEHOLDER, ROSTER_HEADERS, SESSION_YEAR
from .errors import ImportValidationError
from .models import AppState, AttendanceRecord, FeeRecord, Student
from .storage import migrate_students, students_need_repair
from .views import sort_by_roll

log = logging.getLogger(__name__)


def build_backup(
    state: AppState,
    now: datetime | None = None,
    class_name: str = CLASS_NAME,
    app_version: str = APP_VERSION,
) -> dict[str, Any]:
    now = now or datetime.now()
    return {
        **state.to_dict(),
        "backupDate": now.isoformat(),
        "appVersion": app_version,
        "className": class_name,
    }


def dump_backup(backup: dict[str, Any]) -> str:
    return json.dumps(backup, indent=2, ensure_ascii=False)


def backup_filename(now: datetime | None = None, class_name: str = CLASS_NAME) -> str:
    now = now or datetime.now()
    return f"{class_name.replace(' ', '')}_Backup_{now.date().isoformat()}.json"


@dataclass
class BackupPayload:
    """Collections found in a backup file; ``None`` means the key was absent."""

    students: list[Student]
    attendance: list[AttendanceRecord] | None = None
    fees: list[FeeRecord] | None = None


def _optional_list(data: dict[str, Any], key: str) -> list[Any] | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, list):
        raise ImportValidationError(f"Invalid backup file format: '{key}' must be a list.")
    return value


def parse_backup(text: str) -> BackupPayload:
    """Validate a backup document completely before anything is replaced."""
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as e:
        raise ImportValidationError("Could not read backup file.") from e
    if not isinstance(data, dict) or not isinstance(data.get("students"), list):
        raise ImportValidationError("Invalid backup file format.")

    raw_attendance = _optional_list(data, "attendance")
    raw_fees = _optional_list(data, "fees")
    try:
        raw_students = data["students"]
        if students_need_repair(raw_students):
            log.info("Backup has students without roll numbers; assigning them")
            raw_students = migrate_students(raw_students)
        students = [Student.from_dict(s) for s in raw_students]
        attendance = [AttendanceRecord.from_dict(r) for r in raw_attendance] if raw_attendance is not None else None
        fees = [FeeRecord.from_dict(f) for f in raw_fees] if raw_fees is not None else None
    except (AttributeError, TypeError, ValueError) as e:
        raise ImportValidationError(f"Invalid backup file format: {e}") from e
    return BackupPayload(students=students, attendance=attendance, fees=fees)


def load_backup_file(path: Path) -> BackupPayload:
    try:
        text = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ImportValidationError("Could not read backup file.") from e
    return parse_backup(text)


# ---------------- Roster exports ----------------
def _fee_cell(value: float) -> int | float:
    return int(value) if float(value).is_integer() else value


def roster_rows(students: list[Student]) -> list[list[Any]]:
    return [
        [
            s.roll_number,
            s.name,
            s.grade,
            s.phone,
            s.dob or DOB_PLACEHOLDER,
            s.enrollment_date,
            _fee_cell(s.monthly_fee),
        ]
        for s in sort_by_roll(students)
    ]


def roster_csv(students: list[Student]) -> str:
    """Every student, active or archived, one row each; text columns quoted."""
    if not students:
        raise ValueError("No students to export!")
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")
    buf.write(",".join(ROSTER_HEADERS) + "\n")
    writer.writerows(roster_rows(students))
    return buf.getvalue()


def roster_filename(session_year: int = SESSION_YEAR, ext: str = "csv") -> str:
    return f"Student_Directory_{session_year}.{ext}"


def roster_workbook(students: list[Student], path: Path) -> Path:
    if not students:
        raise ValueError("No students to export!")
    wb = Workbook()
    ws = wb.active
    ws.title = "Students"
    ws.append(ROSTER_HEADERS)
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for row in roster_rows(students):
        ws.append(row)
    for col, header in enumerate(ROSTER_HEADERS, start=1):
        ws.column_dimensions[get_column_letter(col)].width = max(12, len(header) + 4)
    ws.freeze_panes = "A2"

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(path)
    return path

from __future__ import annotations

import logging
from dataclasses import dataclass, fields, replace
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable

from .backup import (
    backup_filename,
    build_backup,
    dump_backup,
    parse_backup,
    roster_csv,
    roster_filename,
    roster_workbook,
)
from .constants import APP_NAME
from .errors import HubError, ImportValidationError, PinRejectedError
from .gate import AccessGate
from .insights import InsightRequester, InsightService
from .logger import ActivityLog, AppEvent, ErrorLogger, now_ts
from .messaging import birthday_admin_alert, whatsapp_link
from .models import Student
from .settings_store import SettingsStore
from .state import StateStore
from .storage import JsonFileKeyValueStore, KeyValueStore, StateGateway
from .views import DashboardSummary, birthday_windows, dashboard_summary

log = logging.getLogger(__name__)

_STUDENT_FIELDS = {f.name for f in fields(Student)} - {"id", "archived"}


@dataclass
class Notice:
    ok: bool
    message: str


class HubApp:
    """Headless controller the screens call into.

    Owns settings, the access gate, the state store and its persistence hook,
    the activity log and the AI summary requester. Each action returns a
    ``Notice`` instead of raising; failures are written to the error log.
    """

    def __init__(
        self,
        settings_store: SettingsStore | None = None,
        kv: KeyValueStore | None = None,
        err_logger: ErrorLogger | None = None,
        insight_service: InsightService | None = None,
    ):
        self.err_logger = err_logger or ErrorLogger()
        self.settings_store = settings_store or SettingsStore()
        self.settings = self.settings_store.load()

        self.gate = AccessGate(self.settings.allowed_phones, self.settings.passcode, self.settings.payment_pin)
        self.activity = ActivityLog()

        kv = kv if kv is not None else JsonFileKeyValueStore(Path(self.settings.data_path))
        self.gateway = StateGateway(kv, self.settings.storage_key, self.err_logger)
        loaded = self.gateway.load()
        self.store = StateStore(loaded.state, gate=self.gate)
        self.store.subscribe(self._persist)
        self.startup_notice: Notice | None = None
        if loaded.recovered:
            self.startup_notice = Notice(False, "Saved data could not be read; starting fresh.")
        if loaded.migrated:
            # Write the repaired data back so later loads parse it as-is.
            try:
                self.gateway.save(self.store.state)
            except HubError as e:
                self.err_logger.log_exception(e, "save_migrated_state")
                self.startup_notice = Notice(False, str(e))

        self.insights = InsightRequester(
            insight_service
            or InsightService(
                api_key=self.settings.api_key,
                model=self.settings.ai_model,
                attendance_window=self.settings.ai_attendance_window,
                timeout=self.settings.ai_timeout,
                class_name=self.settings.class_name,
            )
        )
        log.debug("%s ready with %d students", APP_NAME, len(self.store.students))

    # ---------------- Plumbing ----------------
    def _persist(self, store: StateStore) -> None:
        self.gateway.save(store.state)

    def _emit(self, action: str, entity_type: str, entity_id: str, details: str = "") -> None:
        self.activity.add_event(AppEvent(timestamp=now_ts(), action=action, entity_type=entity_type, entity_id=entity_id, details=details))

    def _run(self, context: str, fn: Callable[[], Notice]) -> Notice:
        try:
            return fn()
        except HubError as e:
            self.err_logger.log_exception(e, context)
            return Notice(False, str(e))
        except Exception as e:
            self.err_logger.log_exception(e, context)
            return Notice(False, f"Something went wrong: {e}")

    # ---------------- Gate ----------------
    def unlock(self, phone: str, passcode: str) -> Notice:
        if self.gate.unlock(phone, passcode):
            self._emit("unlock", "session", phone)
            return Notice(True, "Welcome back!")
        return Notice(False, "Access denied.")

    def lock(self) -> Notice:
        self.gate.lock()
        self._emit("lock", "session", "local")
        return Notice(True, "Portal locked.")

    # ---------------- Students ----------------
    def add_student(
        self,
        name: str,
        grade: str,
        phone: str = "",
        monthly_fee: float = 0.0,
        fee_day: int = 5,
        dob: str | None = None,
        photo: str | None = None,
        today: date | None = None,
    ) -> Notice:
        def action() -> Notice:
            if not name.strip() or not grade.strip():
                return Notice(False, "Name and grade are required.")
            candidate = Student(
                id="",
                name=name.strip(),
                grade=grade.strip(),
                phone=phone.strip(),
                monthly_fee=max(float(monthly_fee or 0), 0.0),
                fee_day=fee_day if 1 <= fee_day <= 31 else 5,
                dob=dob or None,
                photo=photo or None,
            )
            student = self.store.add_student(candidate, today=today)
            self._emit("add_student", "student", student.id, f"{student.name} (Roll {student.roll_number})")
            return Notice(True, f"{student.name} enrolled with roll number {student.roll_number}.")

        return self._run("add_student", action)

    def update_student(self, student_id: str, **changes: Any) -> Notice:
        def action() -> Notice:
            current = self.store.get_student(student_id)
            if current is None:
                return Notice(False, "Student not found.")
            unknown = set(changes) - _STUDENT_FIELDS
            if unknown:
                return Notice(False, f"Cannot change: {', '.join(sorted(unknown))}")
            updated = replace(current, **changes)
            self.store.update_student(updated)
            self._emit("edit_student", "student", student_id, "updated profile")
            return Notice(True, f"{updated.name} updated.")

        return self._run("update_student", action)

    def archive_student(self, student_id: str) -> Notice:
        def action() -> Notice:
            if not self.store.archive_student(student_id):
                return Notice(False, "Student not found.")
            self._emit("archive_student", "student", student_id, "moved to archive")
            return Notice(True, "Student archived. Attendance and fee history is kept.")

        return self._run("archive_student", action)

    def restore_student(self, student_id: str) -> Notice:
        def action() -> Notice:
            if not self.store.restore_student(student_id):
                return Notice(False, "Student not found.")
            self._emit("restore_student", "student", student_id, "restored from archive")
            return Notice(True, "Student restored.")

        return self._run("restore_student", action)

    # ---------------- Attendance ----------------
    def save_roll_call(self, on: date, statuses: dict[str, str]) -> Notice:
        def action() -> Notice:
            records = self.store.save_roll_call(on, statuses)
            self._emit("save_attendance", "attendance", on.isoformat(), f"{len(records)} records")
            return Notice(True, f"Attendance for {on.isoformat()} saved successfully!")

        return self._run("save_roll_call", action)

    def toggle_attendance(self, student_id: str, on: date) -> Notice:
        def action() -> Notice:
            record = self.store.cycle_attendance(student_id, on)
            self._emit("toggle_attendance", "attendance", student_id, f"{record.date}: {record.status}")
            return Notice(True, record.status)

        return self._run("toggle_attendance", action)

    def mark_holiday(self, on: date) -> Notice:
        def action() -> Notice:
            records = self.store.mark_holiday(on)
            self._emit("mark_holiday", "attendance", on.isoformat(), f"{len(records)} students")
            return Notice(True, f"{on.isoformat()} marked as a holiday.")

        return self._run("mark_holiday", action)

    # ---------------- Fees ----------------
    def set_fee_status(self, student_id: str, month: int, year: int, status: str, pin: str = "", today: date | None = None) -> Notice:
        def action() -> Notice:
            student = self.store.get_student(student_id)
            if student is None:
                return Notice(False, "Student not found.")
            if status == "paid" and not self.gate.verify_pin(pin):
                raise PinRejectedError("Incorrect PIN.")
            record = self.store.set_fee_status(student, month, year, status, today=today)
            self._emit("set_fee", "fee", record.id, status)
            return Notice(True, f"{student.name}: {status}.")

        return self._run("set_fee_status", action)

    # ---------------- Backup ----------------
    def export_backup(self, directory: Path, now: datetime | None = None) -> Notice:
        def action() -> Notice:
            stamp = now or datetime.now()
            backup = build_backup(self.store.state, stamp, self.settings.class_name, self.settings.app_version)
            path = Path(directory) / backup_filename(stamp, self.settings.class_name)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(dump_backup(backup), encoding="utf-8")
            self._emit("export_backup", "backup", path.name)
            return Notice(True, str(path))

        return self._run("export_backup", action)

    def restore_backup(self, text: str) -> Notice:
        def action() -> Notice:
            try:
                payload = parse_backup(text)
            except ImportValidationError as e:
                return Notice(False, f"Error: {e}")
            self.store.import_state(students=payload.students, attendance=payload.attendance, fees=payload.fees)
            self._emit("restore_backup", "backup", "file", f"{len(payload.students)} students")
            return Notice(True, "Data successfully restored from backup!")

        return self._run("restore_backup", action)

    def export_roster(self, directory: Path, excel: bool = False) -> Notice:
        def action() -> Notice:
            students = self.store.students
            if not students:
                return Notice(False, "No students to export!")
            path = Path(directory) / roster_filename(self.settings.session_year, "xlsx" if excel else "csv")
            if excel:
                roster_workbook(students, path)
            else:
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_text(roster_csv(students), encoding="utf-8")
            self._emit("export_roster", "backup", path.name)
            return Notice(True, str(path))

        return self._run("export_roster", action)

    # ---------------- Views and messages ----------------
    def dashboard(self, today: date | None = None) -> DashboardSummary:
        return dashboard_summary(self.store.state, today or date.today())

    def message_link(self, student_id: str, message: str) -> str | None:
        student = self.store.get_student(student_id)
        if student is None or not student.phone:
            return None
        return whatsapp_link(student.phone, message, self.settings.country_code)

    def birthday_alert_links(self, today: date | None = None) -> list[str]:
        today = today or date.today()
        tomorrow = birthday_windows(self.store.state, today).tomorrow
        if not tomorrow:
            return []
        if not self.settings.admin_numbers:
            log.warning("%d birthday(s) tomorrow but no admin_numbers configured", len(tomorrow))
            return []
        msg = birthday_admin_alert(tomorrow, today, self.settings.class_name)
        return [whatsapp_link(n, msg, self.settings.country_code) for n in self.settings.admin_numbers]

    async def generate_insight(self, today: date | None = None) -> str | None:
        return await self.insights.request(self.store.state, today)

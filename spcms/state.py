from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import date
from typing import Callable, Iterable

from .errors import GateLockedError
from .gate import AccessGate
from .models import AppState, AttendanceRecord, FeeRecord, Student, fee_record_id
from .views import active_roster, find_fee, iso_date, next_status

Listener = Callable[["StateStore"], None]


class StateStore:
    """The single in-memory copy of students, attendance and fees.

    Every mutation notifies the subscribed listeners afterwards; persistence
    is one such listener. A listener failure is re-raised to the caller once
    all listeners have run, and the mutation itself stays applied.
    """

    def __init__(self, state: AppState | None = None, gate: AccessGate | None = None):
        self._state = state if state is not None else AppState()
        self.gate = gate
        self._listeners: list[Listener] = []

    # ---------------- Listeners ----------------
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _changed(self) -> None:
        first_error: Exception | None = None
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                if first_error is None:
                    first_error = e
        if first_error is not None:
            raise first_error

    def _check_gate(self) -> None:
        if self.gate is not None and not self.gate.authorized:
            raise GateLockedError("Unlock the portal before changing data")

    # ---------------- Reads ----------------
    @property
    def state(self) -> AppState:
        return self._state

    @property
    def students(self) -> list[Student]:
        return list(self._state.students)

    @property
    def attendance(self) -> list[AttendanceRecord]:
        return list(self._state.attendance)

    @property
    def fees(self) -> list[FeeRecord]:
        return list(self._state.fees)

    def snapshot(self) -> AppState:
        return self._state.copy()

    def get_student(self, student_id: str) -> Student | None:
        for s in self._state.students:
            if s.id == student_id:
                return s
        return None

    def records_for_student(self, student_id: str) -> list[AttendanceRecord]:
        return [r for r in self._state.attendance if r.student_id == student_id]

    def fees_for_student(self, student_id: str) -> list[FeeRecord]:
        return [f for f in self._state.fees if f.student_id == student_id]

    # ---------------- Students ----------------
    def next_roll_number(self) -> int:
        return max((s.roll_number for s in self._state.students), default=0) + 1

    def add_student(self, candidate: Student, today: date | None = None) -> Student:
        """Append a student with the next roll number, never reusing one."""
        self._check_gate()
        student = replace(
            candidate,
            id=candidate.id or uuid.uuid4().hex,
            roll_number=self.next_roll_number(),
            archived=False,
            enrollment_date=candidate.enrollment_date or iso_date(today or date.today()),
        )
        self._state.students.append(student)
        self._changed()
        return student

    def update_student(self, student: Student) -> bool:
        self._check_gate()
        for idx, s in enumerate(self._state.students):
            if s.id == student.id:
                self._state.students[idx] = student
                self._changed()
                return True
        return False

    def _set_archived(self, student_id: str, archived: bool) -> bool:
        self._check_gate()
        for idx, s in enumerate(self._state.students):
            if s.id == student_id:
                self._state.students[idx] = replace(s, archived=archived)
                self._changed()
                return True
        return False

    def archive_student(self, student_id: str) -> bool:
        return self._set_archived(student_id, True)

    def restore_student(self, student_id: str) -> bool:
        return self._set_archived(student_id, False)

    # ---------------- Attendance ----------------
    def mark_attendance(self, records: Iterable[AttendanceRecord]) -> None:
        """Upsert records by (date, student id); other records are untouched."""
        self._check_gate()
        records = list(records)
        if not records:
            return
        by_key = {r.key: r for r in self._state.attendance}
        for r in records:
            by_key[r.key] = r
        self._state.attendance = list(by_key.values())
        self._changed()

    def cycle_attendance(self, student_id: str, on: date | str) -> AttendanceRecord:
        day = iso_date(on)
        current = None
        for r in self._state.attendance:
            if r.date == day and r.student_id == student_id:
                current = r.status
                break
        record = AttendanceRecord(date=day, student_id=student_id, status=next_status(current))
        self.mark_attendance([record])
        return record

    def mark_holiday(self, on: date | str) -> list[AttendanceRecord]:
        day = iso_date(on)
        records = [AttendanceRecord(date=day, student_id=s.id, status="holiday") for s in active_roster(self._state.students)]
        self.mark_attendance(records)
        return records

    def save_roll_call(self, on: date | str, statuses: dict[str, str]) -> list[AttendanceRecord]:
        """Write one record per active student; unlisted students are present."""
        day = iso_date(on)
        records = [
            AttendanceRecord(date=day, student_id=s.id, status=statuses.get(s.id) or "present")
            for s in active_roster(self._state.students)
        ]
        self.mark_attendance(records)
        return records

    # ---------------- Fees ----------------
    def upsert_fee(self, record: FeeRecord) -> None:
        self._check_gate()
        self._state.fees = [f for f in self._state.fees if f.id != record.id]
        self._state.fees.append(record)
        self._changed()

    def set_fee_status(self, student: Student, month: int, year: int, status: str, today: date | None = None) -> FeeRecord:
        existing = find_fee(self._state.fees, student.id, month, year)
        record = FeeRecord(
            id=existing.id if existing else fee_record_id(student.id, month, year),
            student_id=student.id,
            month=month,
            year=year,
            amount=student.monthly_fee or 0.0,
            status=status,
            payment_date=iso_date(today or date.today()) if status == "paid" else None,
        )
        self.upsert_fee(record)
        return record

    # ---------------- Import ----------------
    def import_state(
        self,
        students: list[Student] | None = None,
        attendance: list[AttendanceRecord] | None = None,
        fees: list[FeeRecord] | None = None,
    ) -> None:
        """Replace each given collection wholesale; ``None`` leaves it as is."""
        self._check_gate()
        if students is None and attendance is None and fees is None:
            return
        if students is not None:
            self._state.students = list(students)
        if attendance is not None:
            self._state.attendance = list(attendance)
        if fees is not None:
            self._state.fees = list(fees)
        self._changed()

"""Read-only summaries computed from a state snapshot.

Every function here is pure: it takes an ``AppState`` (or plain lists) plus a
reference date or period and returns fresh values. Fee periods and monthly
reports use zero-based months (0-11), the same as ``FeeRecord.month``.
"""
from __future__ import annotations

import calendar
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from .constants import LATE_CREDIT, STATUS_CYCLE
from .models import AppState, AttendanceRecord, FeeRecord, Student


def iso_date(d: date | str) -> str:
    if isinstance(d, datetime):
        d = d.date()
    if isinstance(d, date):
        return d.isoformat()
    return str(d)


def month_prefix(year: int, month: int) -> str:
    return f"{year:04d}-{month + 1:02d}"


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month + 1)[1]


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


# ---------------- Rosters ----------------
def active_roster(students: list[Student]) -> list[Student]:
    return [s for s in students if not s.archived]


def sort_by_roll(students: list[Student]) -> list[Student]:
    return sorted(students, key=lambda s: s.roll_number or 0)


@dataclass
class Directory:
    active: list[Student]
    archived: list[Student]


def directory(state: AppState) -> Directory:
    ordered = sort_by_roll(state.students)
    return Directory(
        active=[s for s in ordered if not s.archived],
        archived=[s for s in ordered if s.archived],
    )


def broadcast_contacts(state: AppState) -> list[Student]:
    return [s for s in active_roster(state.students) if s.phone]


def contact_list(state: AppState) -> str:
    return ", ".join(s.phone for s in broadcast_contacts(state))


# ---------------- Attendance ----------------
@dataclass
class TodayAttendance:
    date: str
    present_count: int
    absent_count: int
    by_status: dict[str, list[AttendanceRecord]]
    absent_students: list[Student]


def today_attendance(state: AppState, today: date | str) -> TodayAttendance:
    day = iso_date(today)
    by_status: dict[str, list[AttendanceRecord]] = {}
    for r in state.attendance:
        if r.date == day:
            by_status.setdefault(r.status, []).append(r)
    absent_ids = {r.student_id for r in by_status.get("absent", [])}
    return TodayAttendance(
        date=day,
        present_count=len(by_status.get("present", [])),
        absent_count=len(by_status.get("absent", [])),
        by_status=by_status,
        absent_students=[s for s in active_roster(state.students) if s.id in absent_ids],
    )


def roll_call_statuses(state: AppState, on: date | str) -> dict[str, str]:
    """Status per active student for a day; unmarked students default to present."""
    day = iso_date(on)
    marked = {r.student_id: r.status for r in state.attendance if r.date == day}
    return {s.id: marked.get(s.id, "present") for s in active_roster(state.students)}


def next_status(current: str | None) -> str:
    if current is None:
        return "present"
    return STATUS_CYCLE[current]


def records_in_month(attendance: list[AttendanceRecord], student_id: str, year: int, month: int) -> list[AttendanceRecord]:
    prefix = month_prefix(year, month)
    return [r for r in attendance if r.student_id == student_id and r.date.startswith(prefix)]


def attendance_percentage(records: list[AttendanceRecord]) -> int:
    """Present counts fully, late counts half; every marked day is in the denominator."""
    marked = len(records)
    if marked == 0:
        return 0
    present = sum(1 for r in records if r.status == "present")
    late = sum(1 for r in records if r.status == "late")
    return _round_half_up((present + LATE_CREDIT * late) / marked * 100)


def monthly_percentage(attendance: list[AttendanceRecord], student_id: str, year: int, month: int) -> int:
    return attendance_percentage(records_in_month(attendance, student_id, year, month))


def percent_band(percent: int) -> str:
    if percent > 85:
        return "good"
    if percent > 60:
        return "fair"
    return "poor"


@dataclass
class MonthlyRow:
    student: Student
    cells: dict[int, str] = field(default_factory=dict)
    percent: int = 0


def monthly_matrix(state: AppState, year: int, month: int) -> list[MonthlyRow]:
    rows: list[MonthlyRow] = []
    for s in active_roster(state.students):
        records = records_in_month(state.attendance, s.id, year, month)
        cells: dict[int, str] = {}
        for r in records:
            try:
                cells[int(r.date[8:10])] = r.status
            except ValueError:
                continue
        rows.append(MonthlyRow(student=s, cells=cells, percent=attendance_percentage(records)))
    return rows


# ---------------- Fees ----------------
def find_fee(fees: list[FeeRecord], student_id: str, month: int, year: int) -> FeeRecord | None:
    for f in fees:
        if f.student_id == student_id and f.month == month and f.year == year:
            return f
    return None


def fee_status(fees: list[FeeRecord], student_id: str, month: int, year: int) -> str:
    record = find_fee(fees, student_id, month, year)
    return record.status if record else "unpaid"


@dataclass
class PendingFee:
    student: Student
    status: str  # "unpaid" (no record or reset) or "pending" (promised)
    amount: float


def pending_fee_roster(state: AppState, year: int, month: int) -> list[PendingFee]:
    pending: list[PendingFee] = []
    for s in active_roster(state.students):
        status = fee_status(state.fees, s.id, month, year)
        if status != "paid":
            pending.append(PendingFee(student=s, status=status, amount=s.monthly_fee or 0.0))
    return pending


@dataclass
class FeeTotals:
    collected: float
    pending: float


def fee_totals(state: AppState, year: int, month: int) -> FeeTotals:
    collected = sum(f.amount for f in state.fees if f.month == month and f.year == year and f.status == "paid")
    pending = sum(p.amount for p in pending_fee_roster(state, year, month))
    return FeeTotals(collected=collected, pending=pending)


# ---------------- Birthdays ----------------
@dataclass
class BirthdayWindows:
    today: list[Student]
    tomorrow: list[Student]
    later_this_month: list[Student]


def birthday_windows(state: AppState, today: date) -> BirthdayWindows:
    tomorrow = today + timedelta(days=1)
    todays: list[Student] = []
    tomorrows: list[Student] = []
    later: list[tuple[int, Student]] = []
    for s in active_roster(state.students):
        info = s.birthday()
        if info is None:
            continue
        month, day = info
        if (month, day) == (today.month, today.day):
            todays.append(s)
        if (month, day) == (tomorrow.month, tomorrow.day):
            tomorrows.append(s)
        if month == today.month and day > today.day:
            later.append((day, s))
    later.sort(key=lambda pair: pair[0])
    return BirthdayWindows(today=todays, tomorrow=tomorrows, later_this_month=[s for _, s in later])


# ---------------- Dashboard ----------------
@dataclass
class DashboardSummary:
    total_students: int
    attendance: TodayAttendance
    collected: float
    pending_fees: list[PendingFee]
    birthdays_today: list[Student]


def dashboard_summary(state: AppState, today: date, year: int | None = None) -> DashboardSummary:
    year = today.year if year is None else year
    month = today.month - 1
    return DashboardSummary(
        total_students=len(active_roster(state.students)),
        attendance=today_attendance(state, today),
        collected=fee_totals(state, year, month).collected,
        pending_fees=pending_fee_roster(state, year, month),
        birthdays_today=birthday_windows(state, today).today,
    )

"""Entity records for students, daily attendance and monthly fees.

Serialized keys are camelCase so that data saved by earlier releases (and
backup files) load without conversion. Attribute names are snake_case.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any

from .constants import ATTENDANCE_STATUSES, DEFAULT_FEE_DAY, PAYMENT_STATUSES


def _safe_int(v: Any, default: int) -> int:
    try:
        return int(v)
    except Exception:
        return default


def _safe_float(v: Any, default: float) -> float:
    try:
        return float(v)
    except Exception:
        return default


def _opt_str(v: Any) -> str | None:
    if v is None:
        return None
    s = str(v)
    return s if s else None


def fee_record_id(student_id: str, month: int, year: int) -> str:
    return f"{student_id}-{month}-{year}"


@dataclass
class Student:
    id: str
    name: str
    grade: str = ""
    phone: str = ""
    enrollment_date: str = ""
    monthly_fee: float = 0.0
    fee_day: int = DEFAULT_FEE_DAY
    roll_number: int = 0  # 0 means "not assigned yet"
    dob: str | None = None
    archived: bool = False
    photo: str | None = None

    def birthday(self) -> tuple[int, int] | None:
        """(month, day) of the date of birth, ignoring the year."""
        if not self.dob:
            return None
        parts = self.dob.split("-")
        if len(parts) < 3:
            return None
        month = _safe_int(parts[1], 0)
        day = _safe_int(parts[2][:2], 0)
        if not (1 <= month <= 12 and 1 <= day <= 31):
            return None
        return month, day

    @staticmethod
    def from_dict(d: dict[str, Any]) -> "Student":
        fee_day = _safe_int(d.get("feeDay", DEFAULT_FEE_DAY), DEFAULT_FEE_DAY)
        if not 1 <= fee_day <= 31:
            fee_day = DEFAULT_FEE_DAY
        monthly_fee = _safe_float(d.get("monthlyFee", 0) or 0, 0.0)
        if monthly_fee < 0:
            monthly_fee = 0.0
        roll = _safe_int(d.get("rollNumber", 0) or 0, 0)
        return Student(
            id=str(d.get("id", "")),
            name=str(d.get("name", "") or ""),
            grade=str(d.get("grade", "") or ""),
            phone=str(d.get("phone", "") or ""),
            enrollment_date=str(d.get("enrollmentDate", "") or ""),
            monthly_fee=monthly_fee,
            fee_day=fee_day,
            roll_number=roll if roll > 0 else 0,
            dob=_opt_str(d.get("dob")),
            archived=d.get("archived") is True,
            photo=_opt_str(d.get("photo")),
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "rollNumber": self.roll_number,
            "name": self.name,
            "grade": self.grade,
            "phone": self.phone,
        }
        if self.dob:
            d["dob"] = self.dob
        d.update(
            {
                "enrollmentDate": self.enrollment_date,
                "monthlyFee": self.monthly_fee,
                "feeDay": self.fee_day,
                "archived": self.archived,
            }
        )
        if self.photo:
            d["photo"] = self.photo
        return d


@dataclass
class AttendanceRecord:
    date: str
    student_id: str
    status: str
    note: str | None = None

    def __post_init__(self) -> None:
        if self.status not in ATTENDANCE_STATUSES:
            raise ValueError(f"Unknown attendance status: {self.status!r}")

    @property
    def key(self) -> tuple[str, str]:
        return self.date, self.student_id

    @staticmethod
    def from_dict(d: dict[str, Any]) -> "AttendanceRecord":
        return AttendanceRecord(
            date=str(d.get("date", "")),
            student_id=str(d.get("studentId", "")),
            status=str(d.get("status", "")),
            note=_opt_str(d.get("note")),
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"date": self.date, "studentId": self.student_id, "status": self.status}
        if self.note:
            d["note"] = self.note
        return d


@dataclass
class FeeRecord:
    id: str
    student_id: str
    month: int  # 0-11
    year: int
    amount: float
    status: str
    payment_date: str | None = None

    def __post_init__(self) -> None:
        if self.status not in PAYMENT_STATUSES:
            raise ValueError(f"Unknown payment status: {self.status!r}")
        if not 0 <= self.month <= 11:
            raise ValueError(f"Fee month must be 0-11, got {self.month}")

    @property
    def period(self) -> tuple[str, int, int]:
        return self.student_id, self.month, self.year

    @staticmethod
    def from_dict(d: dict[str, Any]) -> "FeeRecord":
        student_id = str(d.get("studentId", ""))
        month = _safe_int(d.get("month", 0), 0)
        year = _safe_int(d.get("year", 0), 0)
        return FeeRecord(
            id=str(d.get("id") or fee_record_id(student_id, month, year)),
            student_id=student_id,
            month=month,
            year=year,
            amount=_safe_float(d.get("amount", 0) or 0, 0.0),
            status=str(d.get("status", "unpaid")),
            payment_date=_opt_str(d.get("paymentDate")),
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "studentId": self.student_id,
            "month": self.month,
            "year": self.year,
            "amount": self.amount,
            "status": self.status,
        }
        if self.payment_date:
            d["paymentDate"] = self.payment_date
        return d


@dataclass
class AppState:
    students: list[Student] = field(default_factory=list)
    attendance: list[AttendanceRecord] = field(default_factory=list)
    fees: list[FeeRecord] = field(default_factory=list)

    @staticmethod
    def from_dict(d: dict[str, Any]) -> "AppState":
        return AppState(
            students=[Student.from_dict(s) for s in d.get("students") or []],
            attendance=[AttendanceRecord.from_dict(r) for r in d.get("attendance") or []],
            fees=[FeeRecord.from_dict(f) for f in d.get("fees") or []],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "students": [s.to_dict() for s in self.students],
            "attendance": [r.to_dict() for r in self.attendance],
            "fees": [f.to_dict() for f in self.fees],
        }

    def copy(self) -> "AppState":
        return copy.deepcopy(self)

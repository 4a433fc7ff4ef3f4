import unittest
from datetime import date

from spcms.models import AppState, AttendanceRecord, FeeRecord, Student
from spcms.views import (
    active_roster,
    attendance_percentage,
    birthday_windows,
    broadcast_contacts,
    contact_list,
    dashboard_summary,
    days_in_month,
    directory,
    fee_status,
    fee_totals,
    monthly_matrix,
    monthly_percentage,
    next_status,
    pending_fee_roster,
    percent_band,
    roll_call_statuses,
    today_attendance,
)


def _student(sid, roll, **kwargs):
    return Student(id=sid, name=kwargs.pop("name", sid.upper()), roll_number=roll, **kwargs)


def _att(day, sid, status):
    return AttendanceRecord(date=day, student_id=sid, status=status)


class RosterTests(unittest.TestCase):
    def test_active_and_directory(self):
        state = AppState(students=[
            _student("c", 3),
            _student("a", 1, archived=True),
            _student("b", 2, phone="9876543210"),
        ])
        self.assertEqual([s.id for s in active_roster(state.students)], ["c", "b"])
        d = directory(state)
        self.assertEqual([s.id for s in d.active], ["b", "c"])
        self.assertEqual([s.id for s in d.archived], ["a"])
        self.assertEqual([s.id for s in broadcast_contacts(state)], ["b"])
        self.assertEqual(contact_list(state), "9876543210")


class TodayAttendanceTests(unittest.TestCase):
    def test_split_counts_and_absent_join(self):
        state = AppState(
            students=[_student("a", 1), _student("b", 2), _student("z", 3, archived=True)],
            attendance=[
                _att("2026-03-10", "a", "present"),
                _att("2026-03-10", "b", "absent"),
                _att("2026-03-10", "z", "absent"),
                _att("2026-03-09", "a", "absent"),
            ],
        )
        today = today_attendance(state, date(2026, 3, 10))
        self.assertEqual(today.present_count, 1)
        self.assertEqual(today.absent_count, 2)
        self.assertEqual([s.id for s in today.absent_students], ["b"])

    def test_roll_call_defaults(self):
        state = AppState(students=[_student("a", 1), _student("b", 2)], attendance=[_att("2026-03-10", "b", "late")])
        self.assertEqual(roll_call_statuses(state, "2026-03-10"), {"a": "present", "b": "late"})


class MonthlyTests(unittest.TestCase):
    def test_percentage_example(self):
        records = (
            [_att(f"2026-03-{d:02d}", "a", "present") for d in range(1, 16)]
            + [_att(f"2026-03-{d:02d}", "a", "late") for d in range(16, 18)]
            + [_att(f"2026-03-{d:02d}", "a", "absent") for d in range(18, 21)]
        )
        self.assertEqual(monthly_percentage(records, "a", 2026, 2), 80)

    def test_no_marked_days_is_zero(self):
        self.assertEqual(monthly_percentage([], "a", 2026, 2), 0)

    def test_holiday_and_excused_count_as_marked(self):
        records = [_att("2026-03-01", "a", "present"), _att("2026-03-02", "a", "holiday"),
                   _att("2026-03-03", "a", "excused"), _att("2026-03-04", "a", "present")]
        self.assertEqual(attendance_percentage(records), 50)

    def test_half_rounds_up(self):
        # one late out of four marked days is 12.5%
        records = [_att("2026-03-01", "a", "late")] + [_att(f"2026-03-0{d}", "a", "absent") for d in (2, 3, 4)]
        self.assertEqual(attendance_percentage(records), 13)

    def test_other_months_ignored(self):
        records = [_att("2026-03-01", "a", "present"), _att("2026-04-01", "a", "absent"), _att("2025-03-02", "a", "absent")]
        self.assertEqual(monthly_percentage(records, "a", 2026, 2), 100)

    def test_matrix_cells_and_percent(self):
        state = AppState(
            students=[_student("a", 1), _student("b", 2, archived=True)],
            attendance=[_att("2026-02-03", "a", "present"), _att("2026-02-04", "a", "absent")],
        )
        rows = monthly_matrix(state, 2026, 1)
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0].cells, {3: "present", 4: "absent"})
        self.assertEqual(rows[0].percent, 50)
        self.assertEqual(days_in_month(2026, 1), 28)

    def test_status_cycle(self):
        self.assertEqual(next_status(None), "present")
        self.assertEqual(next_status("holiday"), "present")
        self.assertEqual(next_status("present"), "absent")

    def test_percent_band(self):
        self.assertEqual(percent_band(86), "good")
        self.assertEqual(percent_band(85), "fair")
        self.assertEqual(percent_band(60), "poor")


class FeeViewTests(unittest.TestCase):
    def setUp(self):
        self.state = AppState(
            students=[
                _student("a", 1, monthly_fee=500),
                _student("b", 2, monthly_fee=600),
                _student("c", 3, monthly_fee=700),
                _student("z", 4, monthly_fee=900, archived=True),
            ],
            fees=[
                FeeRecord(id="b-2-2026", student_id="b", month=2, year=2026, amount=600, status="paid"),
                FeeRecord(id="c-2-2026", student_id="c", month=2, year=2026, amount=650, status="pending"),
                FeeRecord(id="z-2-2026", student_id="z", month=2, year=2026, amount=900, status="paid"),
                FeeRecord(id="a-2-2025", student_id="a", month=2, year=2025, amount=500, status="paid"),
            ],
        )

    def test_pending_roster(self):
        pending = pending_fee_roster(self.state, 2026, 2)
        self.assertEqual([(p.student.id, p.status, p.amount) for p in pending], [("a", "unpaid", 500), ("c", "pending", 700)])

    def test_status_label(self):
        self.assertEqual(fee_status(self.state.fees, "a", 2, 2026), "unpaid")
        self.assertEqual(fee_status(self.state.fees, "c", 2, 2026), "pending")

    def test_totals(self):
        totals = fee_totals(self.state, 2026, 2)
        self.assertEqual(totals.collected, 1500)
        self.assertEqual(totals.pending, 1200)


class BirthdayTests(unittest.TestCase):
    def test_year_end_rollover(self):
        state = AppState(students=[_student("a", 1, dob="2015-01-01")])
        windows = birthday_windows(state, date(2026, 12, 31))
        self.assertEqual([s.id for s in windows.tomorrow], ["a"])
        self.assertEqual(windows.today, [])
        self.assertEqual(windows.later_this_month, [])

    def test_windows(self):
        state = AppState(students=[
            _student("a", 1, dob="2014-03-20"),
            _student("b", 2, dob="2013-03-10"),
            _student("c", 3, dob="2012-03-11"),
            _student("d", 4, dob="2012-03-15"),
            _student("e", 5),
            _student("f", 6, dob="2012-03-10", archived=True),
        ])
        windows = birthday_windows(state, date(2026, 3, 10))
        self.assertEqual([s.id for s in windows.today], ["b"])
        self.assertEqual([s.id for s in windows.tomorrow], ["c"])
        self.assertEqual([s.id for s in windows.later_this_month], ["c", "d", "a"])

    def test_month_end_rollover(self):
        state = AppState(students=[_student("a", 1, dob="2010-03-01")])
        windows = birthday_windows(state, date(2026, 2, 28))
        self.assertEqual([s.id for s in windows.tomorrow], ["a"])


class DashboardTests(unittest.TestCase):
    def test_summary(self):
        state = AppState(
            students=[_student("a", 1, monthly_fee=300, dob="2015-10-17"), _student("b", 2, monthly_fee=400)],
            attendance=[_att("2026-10-17", "b", "absent")],
            fees=[FeeRecord(id="a-9-2026", student_id="a", month=9, year=2026, amount=300, status="paid")],
        )
        summary = dashboard_summary(state, date(2026, 10, 17))
        self.assertEqual(summary.total_students, 2)
        self.assertEqual(summary.collected, 300)
        self.assertEqual([p.student.id for p in summary.pending_fees], ["b"])
        self.assertEqual([s.id for s in summary.birthdays_today], ["a"])
        self.assertEqual([s.id for s in summary.attendance.absent_students], ["b"])

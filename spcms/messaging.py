from __future__ import annotations

import re
from datetime import date, timedelta
from urllib.parse import quote

from .constants import CLASS_NAME, COUNTRY_CODE, MONTHS, SESSION_YEAR
from .models import Student

_NON_DIGITS = re.compile(r"\D")
# Punctuation left unescaped in the message text.
_URI_SAFE = "!~*'()"


def digits_only(phone: str) -> str:
    return _NON_DIGITS.sub("", phone or "")


def normalize_phone(phone: str, country_code: str = COUNTRY_CODE) -> str:
    """Strip formatting; a bare 10-digit local number gets the country code."""
    digits = digits_only(phone)
    return f"{country_code}{digits}" if len(digits) == 10 else digits


def whatsapp_link(phone: str, message: str, country_code: str = COUNTRY_CODE) -> str:
    return f"https://wa.me/{normalize_phone(phone, country_code)}?text={quote(message, safe=_URI_SAFE)}"


def call_link(phone: str) -> str:
    return f"tel:{phone}"


def _amount(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:.2f}"


# ---------------- Templates ----------------
def absence_alert(student: Student, day: str, class_name: str = CLASS_NAME) -> str:
    return (
        f"*{class_name.upper()} ALERT* ⚠️\n\n"
        f"Dear Parent, your child *{student.name}* (Roll: {student.roll_number}) is *ABSENT* today ({day}).\n\n"
        "If you have a reason, please inform us. Regular attendance is important for progress.\n\n"
        f"— {class_name} Classes —"
    )


def fee_reminder(student: Student, month: int, year: int = SESSION_YEAR, status: str = "unpaid") -> str:
    return (
        f"*Fee Reminder:* Dear Parent, fee for *{student.name}* ({MONTHS[month]} {year}) is "
        f"*{status.upper()}*. Amount: ₹{_amount(student.monthly_fee)}. Please pay soon."
    )


def fee_receipt(student: Student, month: int, year: int = SESSION_YEAR) -> str:
    return f"*Fee Receipt:* Thank you! Received ₹{_amount(student.monthly_fee)} for {student.name} ({MONTHS[month]} {year})."


def birthday_admin_alert(students: list[Student], today: date, class_name: str = CLASS_NAME) -> str:
    tomorrow = today + timedelta(days=1)
    lines = "\n".join(f"• {s.name} (Roll: {s.roll_number})" for s in students)
    return (
        f"*{class_name.upper()} BIRTHDAY ALERT* 🎂\n\n"
        "Hello Admin,\n\n"
        f"Tomorrow ({tomorrow.strftime('%a %b %d %Y')}) is the birthday of the following student(s):\n\n"
        f"{lines}\n\n"
        "Kindly prepare the celebrations or greetings accordingly.\n\n"
        "— Automated Birthday Alert —"
    )


def id_card(student: Student, session_year: int = SESSION_YEAR, class_name: str = CLASS_NAME) -> str:
    return (
        f"*{class_name.upper()} - DIGITAL ID CARD* 🪪\n\n"
        f"*Name:* {student.name}\n"
        f"*Roll No:* {student.roll_number:03d}\n"
        f"*Grade:* {student.grade}\n"
        f"*Enrollment:* {student.enrollment_date}\n"
        f"*Session:* {session_year}\n\n"
        f"This is a verified digital identification for {class_name} Classes.\n\n"
        "— READ. LEARN. GROW. —"
    )


NOTICE_TEMPLATES = {
    "Complaint: Absence": (
        "*{class_name} Classes Alert* ⚠️\n\nDear Parent, your child *{name}* (Roll No: {roll}) was absent today "
        "without prior notice. Please ensure regular attendance for better results."
    ),
    "Complaint: Behavior": (
        "*{class_name} Classes Update* 📝\n\nDear Parent, we noticed some behavioral issues with *{name}* in class "
        "today. Requesting you to have a talk with them regarding discipline."
    ),
    "Performance: Low": (
        "*{class_name} Classes Report* 📉\n\nDear Parent, *{name}* is struggling with the current topics. "
        "We suggest extra practice at home."
    ),
    "Performance: Excellent": (
        "*{class_name} Classes Appreciation* 🌟\n\nDear Parent, *{name}* performed exceptionally well in today's "
        "class. Keep up the encouragement!"
    ),
}


def notice(title: str, student: Student, class_name: str = CLASS_NAME) -> str:
    return NOTICE_TEMPLATES[title].format(class_name=class_name, name=student.name, roll=student.roll_number)

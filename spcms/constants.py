from __future__ import annotations

from pathlib import Path

APP_NAME = "Scholars Point Classes Management System"
CLASS_NAME = "Scholars Point"
APP_VERSION = "2026.1.0"
SESSION_YEAR = 2026

WORKSPACE_ROOT = Path(__file__).resolve().parents[1]
DATA_JSON_PATH = WORKSPACE_ROOT / "local_storage.json"
SETTINGS_JSON_PATH = WORKSPACE_ROOT / "settings.json"
ERROR_LOG_PATH = WORKSPACE_ROOT / "error_log.txt"

STORAGE_KEY = "scholars_point_attendance_2026_v2"
SCHEMA_VERSION = 2

COUNTRY_CODE = "91"

MONTHS = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December"
]

ATTENDANCE_STATUSES = ("present", "absent", "late", "excused", "holiday")
PAYMENT_STATUSES = ("paid", "unpaid", "pending")

# Manual toggling order; an unmarked cell starts at "present".
STATUS_CYCLE = {
    "present": "absent",
    "absent": "late",
    "late": "excused",
    "excused": "holiday",
    "holiday": "present",
}

LATE_CREDIT = 0.5

DEFAULT_FEE_DAY = 5
DOB_PLACEHOLDER = "N/A"
ROSTER_HEADERS = ["Roll No", "Name", "Grade", "Phone", "DOB", "Enrollment Date", "Monthly Fee"]

AI_MODEL = "gemini-3-flash-preview"
AI_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
AI_ATTENDANCE_WINDOW = 50
AI_NO_STUDENTS = "No student data available."
AI_EMPTY_RESPONSE = "Unable to generate insights at this moment."
AI_FAILURE = "Error connecting to AI service."

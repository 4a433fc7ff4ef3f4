from __future__ import annotations

import json
import logging
from datetime import date
from typing import Any

import httpx

from .constants import (
    AI_ATTENDANCE_WINDOW,
    AI_EMPTY_RESPONSE,
    AI_ENDPOINT,
    AI_FAILURE,
    AI_MODEL,
    AI_NO_STUDENTS,
    CLASS_NAME,
)
from .models import AppState
from .views import active_roster, fee_totals

log = logging.getLogger(__name__)


def extract_text(body: dict[str, Any]) -> str:
    parts: list[str] = []
    for candidate in body.get("candidates") or []:
        content = candidate.get("content") or {}
        for part in content.get("parts") or []:
            text = part.get("text")
            if text:
                parts.append(text)
        if parts:
            break
    return "".join(parts).strip()


class InsightService:
    """Asks the hosted model for a short attendance and fee summary.

    Never raises: a missing key, HTTP error or odd response body all turn
    into a fixed fallback message.
    """

    def __init__(
        self,
        api_key: str,
        model: str = AI_MODEL,
        attendance_window: int = AI_ATTENDANCE_WINDOW,
        timeout: float = 20.0,
        class_name: str = CLASS_NAME,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.model = model
        self.attendance_window = attendance_window
        self.timeout = timeout
        self.class_name = class_name
        self.transport = transport

    def build_prompt(self, state: AppState, today: date) -> str:
        students = active_roster(state.students)
        recent = state.attendance[-self.attendance_window:] if self.attendance_window else []
        totals = fee_totals(state, today.year, today.month - 1)
        roster = json.dumps([{"name": s.name, "fee": s.monthly_fee} for s in students], ensure_ascii=False)
        history = json.dumps([r.to_dict() for r in recent], ensure_ascii=False)
        return (
            f"Analyze the following performance and financial data for '{self.class_name}' for {today.year}.\n\n"
            f"Students: {roster}\n"
            f"Attendance History: {history}\n"
            f"Current Month Fees: Collected: ₹{totals.collected:g}, Pending: ₹{totals.pending:g}\n\n"
            "Provide a professional, motivating summary covering:\n"
            "1. Overall attendance health.\n"
            "2. Fee collection status for this month.\n"
            "3. Any student concerns (low attendance or pending fees).\n"
            "Keep it concise and encouraging for the teacher. Use bullet points."
        )

    async def summarize(self, state: AppState, today: date | None = None) -> str:
        today = today or date.today()
        if not active_roster(state.students):
            return AI_NO_STUDENTS
        if not self.api_key:
            log.warning("AI insight requested without an API key")
            return AI_FAILURE

        payload = {
            "contents": [{"parts": [{"text": self.build_prompt(state, today)}]}],
            "generationConfig": {"temperature": 0.7, "topK": 40, "topP": 0.95},
        }
        url = AI_ENDPOINT.format(model=self.model)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(url, params={"key": self.api_key}, json=payload)
            response.raise_for_status()
            text = extract_text(response.json())
        except Exception as e:
            log.warning("AI insight request failed: %s", e)
            return AI_FAILURE
        return text or AI_EMPTY_RESPONSE


class InsightRequester:
    """Tracks the summary shown by one view; only the newest request wins.

    Each request takes a sequence number. A response that comes back after a
    newer request was issued, or after ``abandon()``, is dropped.
    """

    def __init__(self, service: InsightService):
        self.service = service
        self.text: str | None = None
        self.loading = False
        self._seq = 0

    async def request(self, state: AppState, today: date | None = None) -> str | None:
        self._seq += 1
        seq = self._seq
        self.loading = True
        try:
            text = await self.service.summarize(state.copy(), today)
        finally:
            if seq == self._seq:
                self.loading = False
        if seq != self._seq:
            log.debug("Dropping stale insight response #%d", seq)
            return None
        self.text = text
        return text

    def abandon(self) -> None:
        self._seq += 1
        self.loading = False

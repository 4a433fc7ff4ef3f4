import asyncio
import json
import unittest
from datetime import date

import httpx

from spcms.constants import AI_EMPTY_RESPONSE, AI_FAILURE, AI_NO_STUDENTS
from spcms.insights import InsightRequester, InsightService, extract_text
from spcms.models import AppState, AttendanceRecord, FeeRecord, Student


def _state():
    return AppState(
        students=[Student(id="a", name="Asha", roll_number=1, monthly_fee=500),
                  Student(id="b", name="Ravi", roll_number=2, monthly_fee=400)],
        attendance=[AttendanceRecord(date=f"2026-03-{d:02d}", student_id="a", status="present") for d in range(1, 11)],
        fees=[FeeRecord(id="a-2-2026", student_id="a", month=2, year=2026, amount=500, status="paid")],
    )


def _reply(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


class InsightServiceTests(unittest.TestCase):
    def _service(self, handler, api_key="k-123", **kwargs):
        return InsightService(api_key=api_key, model="test-model", transport=httpx.MockTransport(handler), **kwargs)

    def test_success_returns_model_text(self):
        seen = {}

        def handler(request):
            seen["url"] = request.url
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=_reply("  • Attendance is strong.  "))

        text = asyncio.run(self._service(handler).summarize(_state(), date(2026, 3, 15)))
        self.assertEqual(text, "• Attendance is strong.")
        self.assertEqual(seen["url"].params["key"], "k-123")
        self.assertIn("test-model:generateContent", seen["url"].path)
        prompt = seen["body"]["contents"][0]["parts"][0]["text"]
        self.assertIn("Collected: ₹500, Pending: ₹400", prompt)
        self.assertIn("Asha", prompt)

    def test_http_error_falls_back(self):
        service = self._service(lambda request: httpx.Response(500, json={"error": "boom"}))
        self.assertEqual(asyncio.run(service.summarize(_state(), date(2026, 3, 15))), AI_FAILURE)

    def test_network_error_falls_back(self):
        def handler(request):
            raise httpx.ConnectError("offline", request=request)

        self.assertEqual(asyncio.run(self._service(handler).summarize(_state(), date(2026, 3, 15))), AI_FAILURE)

    def test_empty_text(self):
        service = self._service(lambda request: httpx.Response(200, json={"candidates": []}))
        self.assertEqual(asyncio.run(service.summarize(_state(), date(2026, 3, 15))), AI_EMPTY_RESPONSE)

    def test_no_students_skips_request(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json=_reply("x"))

        archived_only = AppState(students=[Student(id="a", name="A", archived=True)])
        self.assertEqual(asyncio.run(self._service(handler).summarize(archived_only)), AI_NO_STUDENTS)
        self.assertEqual(calls, [])

    def test_missing_key(self):
        service = self._service(lambda request: httpx.Response(200, json=_reply("x")), api_key="")
        self.assertEqual(asyncio.run(service.summarize(_state())), AI_FAILURE)

    def test_prompt_uses_recent_window(self):
        service = InsightService(api_key="k", attendance_window=3)
        prompt = service.build_prompt(_state(), date(2026, 3, 15))
        self.assertIn("2026-03-10", prompt)
        self.assertNotIn("2026-03-07", prompt)

    def test_extract_text_skips_empty_parts(self):
        body = {"candidates": [{"content": {"parts": [{"text": ""}, {"text": "hi"}]}}]}
        self.assertEqual(extract_text(body), "hi")


class ControlledService:
    """Returns whatever text the test releases, in any order."""

    def __init__(self):
        self.pending = []

    async def summarize(self, state, today=None):
        fut = asyncio.get_running_loop().create_future()
        self.pending.append(fut)
        return await fut


class InsightRequesterTests(unittest.TestCase):
    def test_late_response_for_older_request_is_dropped(self):
        async def scenario():
            service = ControlledService()
            requester = InsightRequester(service)
            first = asyncio.create_task(requester.request(_state()))
            await asyncio.sleep(0)
            second = asyncio.create_task(requester.request(_state()))
            await asyncio.sleep(0)
            service.pending[1].set_result("new")
            service.pending[0].set_result("old")
            return await first, await second, requester

        first, second, requester = asyncio.run(scenario())
        self.assertIsNone(first)
        self.assertEqual(second, "new")
        self.assertEqual(requester.text, "new")
        self.assertFalse(requester.loading)

    def test_abandon_discards_outstanding(self):
        async def scenario():
            service = ControlledService()
            requester = InsightRequester(service)
            task = asyncio.create_task(requester.request(_state()))
            await asyncio.sleep(0)
            requester.abandon()
            service.pending[0].set_result("late")
            return await task, requester

        result, requester = asyncio.run(scenario())
        self.assertIsNone(result)
        self.assertIsNone(requester.text)
        self.assertFalse(requester.loading)

    def test_cancelled_request_clears_loading(self):
        async def scenario():
            service = ControlledService()
            requester = InsightRequester(service)
            task = asyncio.create_task(requester.request(_state()))
            await asyncio.sleep(0)
            self.assertTrue(requester.loading)
            task.cancel()
            with self.assertRaises(asyncio.CancelledError):
                await task
            return requester

        requester = asyncio.run(scenario())
        self.assertFalse(requester.loading)
        self.assertIsNone(requester.text)

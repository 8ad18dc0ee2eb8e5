import asyncio

from services.booking.services.side_effects import (
    SideEffectReport,
    run_one,
    run_side_effects,
)
from services.common.http_errors import NotificationError


async def succeed(value):
    await asyncio.sleep(0)
    return value


async def fail(message):
    await asyncio.sleep(0)
    raise NotificationError(message)


class TestSideEffects:
    async def test_run_one_success(self):
        outcome = await run_one("meeting", succeed("ok"), "b-1")

        assert outcome.ok
        assert outcome.result == "ok"
        assert outcome.error is None

    async def test_run_one_failure(self):
        outcome = await run_one("meeting", fail("no"), "b-1")

        assert not outcome.ok
        assert outcome.error == "NotificationError: no"

    async def test_failures_are_isolated(self):
        report = await run_side_effects(
            [
                ("first", succeed(1)),
                ("second", fail("boom")),
                ("third", succeed(3)),
            ],
            "b-1",
        )

        assert not report.ok
        assert [o.name for o in report.outcomes] == ["first", "second", "third"]
        assert [o.name for o in report.failed] == ["second"]
        assert report.get("third").result == 3
        assert report.get("missing") is None

    async def test_empty(self):
        report = await run_side_effects([])

        assert report.ok
        assert report.outcomes == []

    async def test_report_as_dict(self):
        report = SideEffectReport()
        report.record(await run_one("meeting", succeed(None)))
        report.extend(await run_side_effects([("email", fail("down"))]))

        assert report.as_dict() == {
            "ok": False,
            "effects": [
                {"name": "meeting", "ok": True, "error": None},
                {"name": "email", "ok": False, "error": "NotificationError: down"},
            ],
        }

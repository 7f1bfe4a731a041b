"""Tests for the daily digest trigger."""

from __future__ import annotations

import asyncio
from datetime import datetime, time, timedelta, timezone

from apscheduler.triggers.cron import CronTrigger
import pytest

from market_digest.scheduler import JOB_ID, DailyScheduler, daily_trigger, next_run_after, parse_run_time


UTC = timezone.utc


def test_parse_run_time():
    assert parse_run_time("12:00") == time(12, 0)
    assert parse_run_time(" 07:30 ") == time(7, 30)
    assert parse_run_time(time(9, 15)) == time(9, 15)


@pytest.mark.parametrize("value", ["noon", "25:00", "12", "12:00:00"])
def test_parse_run_time_rejects_invalid_values(value):
    with pytest.raises(ValueError):
        parse_run_time(value)


def test_daily_trigger_is_a_utc_cron():
    trigger = daily_trigger("07:30")

    assert isinstance(trigger, CronTrigger)
    fields = {f.name: str(f) for f in trigger.fields}
    assert fields["hour"] == "7"
    assert fields["minute"] == "30"
    assert str(trigger.timezone) == "UTC"


def test_next_run_is_later_today_or_tomorrow():
    morning = datetime(2026, 10, 18, 8, 0, tzinfo=UTC)
    evening = datetime(2026, 10, 18, 20, 0, tzinfo=UTC)

    assert next_run_after(morning, "12:00") == datetime(2026, 10, 18, 12, 0, tzinfo=UTC)
    assert next_run_after(evening, "12:00") == datetime(2026, 10, 19, 12, 0, tzinfo=UTC)


def test_next_run_at_exact_trigger_time_is_tomorrow():
    at_noon = datetime(2026, 10, 18, 12, 0, tzinfo=UTC)

    assert next_run_after(at_noon, "12:00") == datetime(2026, 10, 19, 12, 0, tzinfo=UTC)


class _Clock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now


def test_job_runs_at_most_once_per_day():
    clock = _Clock(datetime(2026, 10, 18, 12, 0, tzinfo=UTC))
    fired: list[datetime] = []

    async def job():
        fired.append(clock.now)

    scheduler = DailyScheduler(job, "12:00", clock=clock)

    async def _run():
        await scheduler.run_job()
        clock.now += timedelta(minutes=30)
        await scheduler.run_job()
        clock.now += timedelta(days=1)
        await scheduler.run_job()

    asyncio.run(_run())

    assert scheduler.runs == 2
    assert fired == [
        datetime(2026, 10, 18, 12, 0, tzinfo=UTC),
        datetime(2026, 10, 19, 12, 30, tzinfo=UTC),
    ]


def test_failing_job_does_not_stop_later_runs():
    clock = _Clock(datetime(2026, 10, 18, 12, 0, tzinfo=UTC))
    calls = {"count": 0}

    async def job():
        calls["count"] += 1
        raise RuntimeError("batch exploded")

    scheduler = DailyScheduler(job, "12:00", clock=clock)

    async def _run():
        await scheduler.run_job()
        clock.now += timedelta(days=1)
        await scheduler.run_job()

    asyncio.run(_run())

    assert calls["count"] == 2
    assert scheduler.last_run_date == datetime(2026, 10, 19).date()


def test_cancelled_job_propagates_cancellation():
    async def job():
        raise asyncio.CancelledError()

    scheduler = DailyScheduler(job, "12:00")

    with pytest.raises(asyncio.CancelledError):
        asyncio.run(scheduler.run_job())


def test_start_registers_daily_cron_job():
    async def job():
        return None

    async def _run():
        scheduler = DailyScheduler(job, "06:45")
        scheduler.start()
        try:
            registered = scheduler.scheduler.get_job(JOB_ID)
            return registered.trigger, scheduler.next_run_time()
        finally:
            scheduler.shutdown()

    trigger, next_run = asyncio.run(_run())

    assert isinstance(trigger, CronTrigger)
    assert next_run is not None
    utc_next = next_run.astimezone(UTC)
    assert (utc_next.hour, utc_next.minute) == (6, 45)


def test_serve_shuts_down_when_cancelled():
    async def job():
        return None

    scheduler = DailyScheduler(job, "12:00")

    async def _run():
        task = asyncio.create_task(scheduler.serve())
        await asyncio.sleep(0.05)
        assert scheduler.scheduler.running
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(_run())

    assert not scheduler.scheduler.running

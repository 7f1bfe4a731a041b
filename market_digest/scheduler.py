"""
Daily trigger for digest batches.

An APScheduler cron job fires once per calendar day (UTC) at a fixed time.
A batch that fails or overruns never causes a second run on the same day.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from datetime import date, datetime, time, timedelta, timezone
import logging
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from .utils.logging import log_event


logger = logging.getLogger(__name__)

JOB_ID = "market_digest_daily"


def parse_run_time(value: str | time) -> time:
    """Parse an HH:MM string into a UTC time of day."""
    if isinstance(value, time):
        return value.replace(tzinfo=None)
    try:
        hours, minutes = value.strip().split(":")
        return time(int(hours), int(minutes))
    except (ValueError, AttributeError) as exc:
        raise ValueError(f"Invalid schedule time {value!r}, expected HH:MM") from exc


def daily_trigger(at: str | time) -> CronTrigger:
    run_time = parse_run_time(at)
    return CronTrigger(hour=run_time.hour, minute=run_time.minute, timezone="UTC")


def next_run_after(now: datetime, at: str | time) -> datetime:
    """Next trigger strictly after `now` for the daily time `at`."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    # The cron trigger treats `now` as inclusive; step past it
    fire_time = daily_trigger(at).get_next_fire_time(None, now + timedelta(microseconds=1))
    return fire_time.astimezone(timezone.utc)


def create_scheduler() -> AsyncIOScheduler:
    """Scheduler for long-running daily batches.

    One instance per job, and missed runs are coalesced so a late wakeup
    fires at most one batch.
    """
    return AsyncIOScheduler(
        job_defaults={
            "coalesce": True,
            "max_instances": 1,
            "misfire_grace_time": 3600,
        },
        timezone="UTC",
    )


class DailyScheduler:
    """Runs a digest job every day at a fixed UTC time.

    Attributes:
        at: Daily run time
        scheduler: Underlying APScheduler instance
        runs: Number of triggers that started a job
        last_run_date: Calendar day of the most recent trigger
    """

    def __init__(
        self,
        job: Callable[[], Awaitable[Any]],
        at: str | time,
        scheduler: AsyncIOScheduler | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.job = job
        self.at = parse_run_time(at)
        self.scheduler = scheduler or create_scheduler()
        self.runs = 0
        self.last_run_date: date | None = None
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def run_job(self) -> None:
        """One trigger: run the job unless it already ran today."""
        today = self._clock().astimezone(timezone.utc).date()
        if self.last_run_date == today:
            log_event(logger, "Digest already ran today, skipping", event="schedule_skip", day=today.isoformat())
            return
        self.last_run_date = today
        self.runs += 1
        try:
            await self.job()
        except Exception as exc:  # noqa: BLE001
            log_event(
                logger,
                "Scheduled digest run failed",
                level=logging.ERROR,
                event="schedule_run_failed",
                error=str(exc),
            )

    def start(self) -> None:
        """Register the daily job and start the scheduler on the running loop."""
        self.scheduler.add_job(
            self.run_job,
            trigger=daily_trigger(self.at),
            id=JOB_ID,
            replace_existing=True,
        )
        self.scheduler.start()
        log_event(
            logger,
            "Daily digest scheduled",
            event="schedule_start",
            next_run=str(self.next_run_time()),
        )

    def next_run_time(self) -> datetime | None:
        job = self.scheduler.get_job(JOB_ID)
        return job.next_run_time if job is not None else None

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

    async def serve(self) -> None:
        """Run until cancelled; cancellation shuts the scheduler down."""
        self.start()
        try:
            await asyncio.Event().wait()
        finally:
            self.shutdown()

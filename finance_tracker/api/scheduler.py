"""
Scheduled jobs

Two jobs run inside the API process:
- daily:   send today's reminders, then post due subscriptions
- monthly: record a net-worth snapshot

A single polling loop wakes up every poll_interval_seconds, works out
which jobs are due for the current local time and runs each at most once
per period.
"""

import asyncio
from datetime import datetime
from typing import Callable, Optional

import structlog

from finance_tracker.config import SchedulerSettings
from finance_tracker.orchestrator import LedgerService


logger = structlog.get_logger(__name__)

DAILY_SUBSCRIPTIONS = "daily_subscriptions"
MONTHLY_NETWORTH = "monthly_networth"


def period_key(job: str, now: datetime) -> str:
    """Identifier of the period a job run belongs to."""
    if job == MONTHLY_NETWORTH:
        return now.strftime("%Y-%m")
    return now.strftime("%Y-%m-%d")


def due_jobs(now: datetime, settings: SchedulerSettings, last_runs: dict[str, str]) -> list[str]:
    """
    Jobs whose trigger time has passed and that have not run this period.

    Args:
        now: Current local time
        settings: Trigger hours and day
        last_runs: job name -> period key of its last run
    """
    jobs = []
    if (
        now.hour >= settings.daily_subscriptions_hour
        and last_runs.get(DAILY_SUBSCRIPTIONS) != period_key(DAILY_SUBSCRIPTIONS, now)
    ):
        jobs.append(DAILY_SUBSCRIPTIONS)
    if (
        now.day == settings.monthly_networth_day
        and now.hour >= settings.monthly_networth_hour
        and last_runs.get(MONTHLY_NETWORTH) != period_key(MONTHLY_NETWORTH, now)
    ):
        jobs.append(MONTHLY_NETWORTH)
    return jobs


async def run_job(service: LedgerService, job: str, now: datetime) -> None:
    today = now.date()
    if job == DAILY_SUBSCRIPTIONS:
        logger.info("running_daily_subscription_check", today=today.isoformat())
        reminders = await service.send_reminders(today)
        result = await service.post_subscriptions(today)
        logger.info(
            "daily_subscription_check_done",
            reminders_sent=len(reminders["sent"]),
            posted=result.posted,
            failed=result.failed,
        )
    elif job == MONTHLY_NETWORTH:
        logger.info("creating_monthly_networth_snapshot", today=today.isoformat())
        await service.take_networth_snapshot(today)
    else:
        raise ValueError(f"Unknown job: {job}")


async def scheduler_loop(
    service: LedgerService,
    settings: SchedulerSettings,
    clock: Optional[Callable[[], datetime]] = None,
) -> None:
    """Background task: run due jobs forever until cancelled."""
    clock = clock or datetime.now
    last_runs: dict[str, str] = {}
    interval = max(1, settings.poll_interval_seconds)

    logger.info(
        "scheduler_started",
        daily_hour=settings.daily_subscriptions_hour,
        monthly_day=settings.monthly_networth_day,
        monthly_hour=settings.monthly_networth_hour,
    )
    while True:
        now = clock()
        for job in due_jobs(now, settings, last_runs):
            # Mark first so a failing job is not retried every poll
            last_runs[job] = period_key(job, now)
            try:
                await run_job(service, job, now)
            except Exception as e:
                logger.error("scheduled_job_failed", job=job, error=str(e))
                await service.audit_logger.log_error(
                    error_type="scheduled_job_failed",
                    error_message=str(e),
                    details={"job": job},
                )
        await asyncio.sleep(interval)

"""APScheduler integration for FastAPI.

Runs the two monitor jobs: frequent urgent-alert checks and the slower
periodic report. Each job allows a single running instance, so a slow cycle
makes the next trigger skip rather than overlap.
"""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from tradejournal.config import settings
from tradejournal.utils.constants import CYCLE_ALERTS, CYCLE_REPORT, INTERVAL_HOURS

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()


def _job_id(kind: str) -> str:
    return f"monitor_{kind}"


def _get_trigger(interval: str) -> IntervalTrigger:
    # Support arbitrary "<N>m" schedule intervals
    if interval.endswith("m") and interval[:-1].isdigit():
        return IntervalTrigger(minutes=int(interval[:-1]))
    hours = INTERVAL_HOURS.get(interval, 1.0)
    if hours < 1:
        return IntervalTrigger(minutes=int(hours * 60))
    return IntervalTrigger(hours=hours)


async def run_scheduled_cycle(kind: str):
    """Job body: one monitor cycle, with failures logged rather than raised."""
    from tradejournal.engine.monitor_job import run_monitor_cycle

    try:
        result = await run_monitor_cycle(kind)
    except Exception as e:
        logger.error(f"[{kind}] Monitor cycle crashed: {e}", exc_info=True)
        return
    if result.status_code >= 500:
        logger.error(f"[{kind}] Monitor cycle failed: {result.message}")


def add_monitor_job(kind: str, interval: str):
    """Add or replace the scheduler job for one cycle kind."""
    job_id = _job_id(kind)

    if scheduler.get_job(job_id):
        scheduler.remove_job(job_id)

    scheduler.add_job(
        run_scheduled_cycle,
        trigger=_get_trigger(interval),
        args=[kind],
        id=job_id,
        name=f"Monitor {kind}",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=60,
    )
    logger.info(f"Scheduled {kind} cycle every {interval}")


def start_scheduler():
    """Start the scheduler with the alert and report jobs."""
    add_monitor_job(CYCLE_ALERTS, settings.alert_interval)
    add_monitor_job(CYCLE_REPORT, settings.report_interval)
    scheduler.start()
    logger.info(f"Scheduler started with {len(scheduler.get_jobs())} jobs")


def stop_scheduler():
    """Shut down the scheduler."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")


def get_scheduler_status() -> dict:
    """Return current scheduler state for the API."""
    jobs = scheduler.get_jobs()
    return {
        "running": scheduler.running,
        "job_count": len(jobs),
        "jobs": [
            {
                "id": j.id,
                "name": j.name,
                "next_run": str(j.next_run_time) if getattr(j, "next_run_time", None) else None,
                "trigger": str(j.trigger),
            }
            for j in jobs
        ],
    }

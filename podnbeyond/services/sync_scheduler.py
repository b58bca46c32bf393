"""
Channel Sync Scheduler

Periodic jobs for every configured channel provider:
- push: availability + rates over the sync horizon (every 15 minutes)
- pull: new and cancelled reservations (every 5 minutes)

Uses APScheduler interval triggers. Jobs are plain functions, so the
AsyncIOScheduler runs them in its thread pool and blocking provider calls
never stall the event loop.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..config import settings
from ..database import SessionLocal
from ..exceptions import BookingCoreError
from ..utils.dates import utcnow
from .channels.registry import configured_providers, get_provider
from .sync_orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)

PUSH_JOB_ID = "channel_push"
PULL_JOB_ID = "channel_pull"

# Global scheduler instance
_scheduler: Optional[AsyncIOScheduler] = None
_last_runs: Dict[str, Dict] = {}


def _record_run(job: str, result: Dict):
    _last_runs[job] = {"finished_at": utcnow().isoformat(), "result": result}


def run_push(provider_names: Optional[List[str]] = None) -> Dict:
    """Push availability and rates for each provider over the sync horizon."""
    results = {}
    db = SessionLocal()
    try:
        for name in provider_names or configured_providers():
            try:
                orchestrator = SyncOrchestrator(db, get_provider(name, db))
                pushed = orchestrator.sync_all()
                results[name] = {
                    kind: {"success": r.success, "message": r.message, "records": r.records_processed}
                    for kind, r in pushed.items()
                }
            except BookingCoreError as e:
                logger.error(f"Push for provider {name} skipped: {e.detail}")
                results[name] = {"error": e.detail}
    finally:
        db.close()

    _record_run("push", results)
    return results


def run_pull(provider_names: Optional[List[str]] = None) -> Dict:
    """Pull reservations for each provider since its last successful pull."""
    results = {}
    db = SessionLocal()
    try:
        for name in provider_names or configured_providers():
            try:
                summary = SyncOrchestrator(db, get_provider(name, db)).pull_bookings()
                results[name] = {
                    "success": summary.success,
                    "message": summary.message,
                    "created": summary.created,
                    "cancelled": summary.cancelled,
                    "skipped": summary.skipped,
                }
            except BookingCoreError as e:
                logger.error(f"Pull for provider {name} skipped: {e.detail}")
                results[name] = {"error": e.detail}
    finally:
        db.close()

    _record_run("pull", results)
    return results


def _push_job():
    logger.info("Running scheduled channel push...")
    try:
        run_push()
    except Exception:
        logger.exception("Scheduled channel push failed")


def _pull_job():
    logger.info("Running scheduled reservation pull...")
    try:
        run_pull()
    except Exception:
        logger.exception("Scheduled reservation pull failed")


def configure_jobs(scheduler: BaseScheduler) -> BaseScheduler:
    scheduler.add_job(
        _push_job,
        IntervalTrigger(minutes=settings.sync_push_interval_minutes),
        id=PUSH_JOB_ID,
        name=f"Availability/rate push every {settings.sync_push_interval_minutes} min",
        replace_existing=True,
        max_instances=1,
        coalesce=True
    )
    scheduler.add_job(
        _pull_job,
        IntervalTrigger(minutes=settings.sync_pull_interval_minutes),
        id=PULL_JOB_ID,
        name=f"Reservation pull every {settings.sync_pull_interval_minutes} min",
        replace_existing=True,
        max_instances=1,
        coalesce=True
    )
    return scheduler


def start_sync_scheduler() -> bool:
    """
    Start the in-process scheduler.

    Returns:
        True if scheduler started successfully, False otherwise
    """
    global _scheduler

    if _scheduler is not None and _scheduler.running:
        logger.warning("Sync scheduler is already running")
        return True

    try:
        _scheduler = configure_jobs(AsyncIOScheduler(timezone="UTC"))
        _scheduler.start()
        logger.info(
            f"Sync scheduler started for providers {configured_providers() or '[none configured]'} "
            f"(push every {settings.sync_push_interval_minutes}m, pull every {settings.sync_pull_interval_minutes}m)"
        )
        return True
    except Exception as e:
        logger.error(f"Failed to start sync scheduler: {e}")
        _scheduler = None
        return False


def stop_sync_scheduler() -> bool:
    global _scheduler

    if _scheduler is None:
        return True

    try:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("Sync scheduler stopped")
        return True
    except Exception as e:
        logger.error(f"Failed to stop sync scheduler: {e}")
        return False


def get_scheduler_status() -> Dict:
    status = {
        "running": False,
        "enabled": settings.sync_enabled,
        "providers": configured_providers(),
        "jobs": [],
        "last_runs": dict(_last_runs),
    }

    if _scheduler is not None and _scheduler.running:
        status["running"] = True
        for job in _scheduler.get_jobs():
            next_run: Optional[datetime] = job.next_run_time
            status["jobs"].append({
                "id": job.id,
                "name": job.name,
                "next_run": next_run.isoformat() if next_run else None,
            })

    return status


def trigger_sync(kind: str = "all", provider_names: Optional[List[str]] = None) -> Dict:
    """Run push and/or pull immediately, outside the schedule."""
    result = {}
    if kind in ("all", "push"):
        result["push"] = run_push(provider_names)
    if kind in ("all", "pull"):
        result["pull"] = run_pull(provider_names)
    return result

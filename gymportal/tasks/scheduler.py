"""
Scheduler module: APScheduler setup for background jobs
"""
import logging
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from gymportal.config import CHECKIN_TOKEN_CLEANUP_MINUTES
from gymportal.tasks.membership_jobs import job_expire_memberships
from gymportal.tasks.checkin_jobs import job_cleanup_checkin_tokens

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler()


def start_scheduler():
    """Register all jobs and start the scheduler."""

    # 1) Tandai membership yang sudah lewat end_date sebagai expired
    #    Jalan setiap hari jam 00:05
    scheduler.add_job(
        job_expire_memberships,
        trigger=CronTrigger(hour=0, minute=5),
        id="expire_memberships",
        name="Expire ended memberships",
        replace_existing=True,
    )

    # 2) Hapus token QR check-in yang kadaluarsa
    scheduler.add_job(
        job_cleanup_checkin_tokens,
        trigger=IntervalTrigger(minutes=CHECKIN_TOKEN_CLEANUP_MINUTES),
        id="cleanup_checkin_tokens",
        name="Clean up check-in tokens",
        replace_existing=True,
    )

    scheduler.start()
    logger.info("Scheduler started with %d jobs", len(scheduler.get_jobs()))


def stop_scheduler():
    """Shutdown the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")

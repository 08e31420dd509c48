import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from src.core.config import settings

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()

async def run_due_reports():
    """
    Job function: send every scheduled report whose next run has passed.
    Individual report failures are handled (and logged) by the dispatcher.
    """
    logger.info("Running scheduled job: Due Reports")
    try:
        from src.reporting.service import run_scheduled_reports
        outcomes = await run_scheduled_reports()
        sent = sum(1 for o in outcomes if o.status == "sent")
        failed = sum(1 for o in outcomes if o.status == "failed")
        logger.info(f"Due reports job complete: {len(outcomes)} attempted, {sent} sent, {failed} failed")
    except Exception as e:
        logger.error(f"Failed to run due reports job: {e}", exc_info=True)


def start_scheduler():
    """
    Initialize and start the scheduler.
    """
    # Poll for due reports. A slow run is never overlapped by the next tick.
    scheduler.add_job(
        run_due_reports,
        IntervalTrigger(minutes=settings.report_poll_interval_minutes),
        id='due_reports',
        max_instances=1,
        coalesce=True,
        replace_existing=True
    )

    scheduler.start()
    logger.info(f"APScheduler started. Due reports every {settings.report_poll_interval_minutes} minutes.")

async def stop_scheduler():
    """
    Shutdown the scheduler.
    """
    logger.info("Stopping APScheduler...")
    if scheduler.running:
        scheduler.shutdown()

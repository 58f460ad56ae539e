"""
APScheduler Configuration

Manages periodic jobs for the exchange: expiring stale requests and
reconciling cached token balances against the ledger.
"""
import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from swap import config
from swap.services.ledger import get_ledger
from swap.services.request_expiry import expire_stale_requests

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = AsyncIOScheduler()


async def expire_requests_job():
    """
    Periodic job expiring PENDING requests past the retention horizon.

    Refunds are written by the sweep in the same transaction as each expiry.
    """
    try:
        summary = await expire_stale_requests()
        if summary["candidates"]:
            logger.info(
                f"Expiry sweep: {summary['expired']} of {summary['candidates']} requests expired "
                f"in {summary['duration_ms']:.2f}ms"
            )
    except Exception as e:
        logger.error(f"Failed to expire stale requests: {e}", exc_info=True)


async def reconcile_ledger_job():
    """Hourly job checking cached balances against ledger entry sums"""
    logger.info("Starting hourly ledger reconciliation")

    try:
        summary = await get_ledger().reconcile()
        if summary["drifted"]:
            logger.error(
                f"Ledger ALERT: {len(summary['drifted'])} of {summary['users_checked']} users drifted"
            )
        else:
            logger.info(f"Ledger reconciled: {summary['users_checked']} users consistent")
    except Exception as e:
        logger.error(f"Failed to reconcile ledger: {e}", exc_info=True)


def configure_scheduler():
    """
    Configure APScheduler with all scheduled jobs.

    Jobs:
        - Request expiry: every EXPIRY_SWEEP_INTERVAL_MINUTES
        - Ledger reconciliation: every hour at :45
    """
    scheduler.add_job(
        expire_requests_job,
        trigger=IntervalTrigger(minutes=config.EXPIRY_SWEEP_INTERVAL_MINUTES),
        id='request_expiry',
        name='Expire Stale Requests',
        replace_existing=True,
        coalesce=True,  # Combine missed runs into single execution
        max_instances=1  # Only one instance at a time
    )

    scheduler.add_job(
        reconcile_ledger_job,
        trigger=CronTrigger(hour='*', minute=45),
        id='ledger_reconciliation',
        name='Reconcile Token Ledger',
        replace_existing=True,
        coalesce=True,
        max_instances=1
    )

    logger.info("Scheduler configured with request expiry and ledger reconciliation jobs")


def start_scheduler():
    """Start the APScheduler"""
    configure_scheduler()
    scheduler.start()
    logger.info("Scheduler started")


def stop_scheduler():
    """Stop the APScheduler"""
    if scheduler.running:
        scheduler.shutdown()
    logger.info("Scheduler stopped")

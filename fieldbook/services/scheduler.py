"""Background scheduler for booking maintenance jobs."""
import logging
from datetime import timedelta
from typing import Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from fieldbook.core.config import settings
from fieldbook.core.database import AsyncSessionLocal
from fieldbook.core.timeslots import business_tz, today_local
from fieldbook.services.booking_service import booking_service
from fieldbook.services.field_catalog import field_catalog
from fieldbook.services.schedule_store import schedule_store

logger = logging.getLogger(__name__)


class MaintenanceScheduler:
    """
    Runs the periodic jobs of the booking core.

    - price changes: folds due pending price changes into live configuration
    - cleanup: deletes empty schedule records from past dates
    - completion: completes confirmed bookings that have ended
    - payment expiry: cancels pending bookings left unpaid past the timeout
    """

    def __init__(self, session_factory: Optional[Callable] = None):
        self.scheduler = AsyncIOScheduler(timezone=business_tz())
        self.session_factory = session_factory or AsyncSessionLocal
        self.running = False

    async def start(self):
        """Start the scheduler."""
        if self.running:
            logger.warning("Scheduler is already running")
            return

        logger.info("Starting maintenance scheduler")

        self.scheduler.add_job(
            self.apply_price_changes,
            CronTrigger(hour=settings.PRICE_CHANGE_HOUR, minute=1),
            id="price_change_job",
            name="Apply due price changes",
            replace_existing=True,
        )
        self.scheduler.add_job(
            self.cleanup_schedule_records,
            CronTrigger(hour=settings.CLEANUP_HOUR, minute=0),
            id="schedule_cleanup_job",
            name="Delete empty past schedule records",
            replace_existing=True,
        )
        self.scheduler.add_job(
            self.complete_finished_bookings,
            IntervalTrigger(minutes=15),
            id="completion_job",
            name="Complete finished bookings",
            replace_existing=True,
        )
        self.scheduler.add_job(
            self.expire_unpaid_bookings,
            IntervalTrigger(minutes=5),
            id="payment_expiry_job",
            name="Expire unpaid bookings",
            replace_existing=True,
        )

        self.scheduler.start()
        self.running = True
        logger.info("Maintenance scheduler started")

    async def stop(self):
        """Stop the scheduler."""
        if not self.running:
            return

        logger.info("Stopping maintenance scheduler")
        self.scheduler.shutdown(wait=False)
        self.running = False
        logger.info("Maintenance scheduler stopped")

    async def apply_price_changes(self) -> int:
        async with self.session_factory() as db:
            try:
                updated = await field_catalog.apply_due_price_changes(db)
                logger.info(f"Price change job updated {updated} field(s)")
                return updated
            except Exception as e:
                logger.error(f"Error applying price changes: {e}", exc_info=True)
                return 0

    async def cleanup_schedule_records(self) -> int:
        """Keep yesterday's records; anything older and empty goes."""
        before = today_local() - timedelta(days=1)
        async with self.session_factory() as db:
            try:
                return await schedule_store.cleanup_empty_records(db, before)
            except Exception as e:
                logger.error(f"Error cleaning up schedule records: {e}", exc_info=True)
                return 0

    async def complete_finished_bookings(self) -> int:
        async with self.session_factory() as db:
            try:
                completed = await booking_service.complete_finished_bookings(db)
                if completed:
                    logger.info(f"Completed {completed} finished booking(s)")
                return completed
            except Exception as e:
                logger.error(f"Error completing finished bookings: {e}", exc_info=True)
                return 0

    async def expire_unpaid_bookings(self) -> int:
        async with self.session_factory() as db:
            try:
                expired = await booking_service.expire_unpaid_bookings(db)
                if expired:
                    logger.info(f"Expired {expired} unpaid booking(s)")
                return expired
            except Exception as e:
                logger.error(f"Error expiring unpaid bookings: {e}", exc_info=True)
                return 0


# Singleton instance
maintenance_scheduler = MaintenanceScheduler()

"""
Scheduled jobs of the collection routine.

- Overdue check at 08:00: penalties, statuses and owner alerts
- Bills due at 08:30: statuses and owner reminders
- Loan reminders at 09:00: owner digest and early client reminders
"""

import logging
from typing import Any, Dict

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from cobrafacil.core.config import settings
from cobrafacil.services.overdue_service import overdue_service
from cobrafacil.services.reminder_service import reminder_service

logger = logging.getLogger(__name__)


class TaskScheduler:
    """Owns the AsyncIOScheduler running the daily jobs."""

    def __init__(self, timezone: str = settings.SCHEDULER_TIMEZONE):
        self.scheduler = AsyncIOScheduler(timezone=timezone)

    def start(self):
        self.scheduler.add_job(
            self.run_overdue_check,
            CronTrigger(hour=8, minute=0),
            id="overdue_check",
            name="Overdue check",
            replace_existing=True,
        )
        self.scheduler.add_job(
            self.run_bills_due,
            CronTrigger(hour=8, minute=30),
            id="bills_due",
            name="Bills due reminder",
            replace_existing=True,
        )
        self.scheduler.add_job(
            self.run_loan_reminders,
            CronTrigger(hour=9, minute=0),
            id="loan_reminders",
            name="Loan reminders",
            replace_existing=True,
        )
        self.scheduler.start()
        logger.info("Scheduler started with %d jobs", len(self.scheduler.get_jobs()))

    def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")

    # ---- jobs ----

    async def run_overdue_check(self) -> Dict[str, Any]:
        try:
            result = await overdue_service.check_overdue_loans()
            logger.info("Overdue check finished: %s", result)
            return result
        except Exception:
            logger.exception("Overdue check failed")
            return {"error": "overdue check failed"}

    async def run_bills_due(self) -> Dict[str, Any]:
        try:
            result = await reminder_service.check_bills_due()
            logger.info("Bills due check finished: %s", result)
            return result
        except Exception:
            logger.exception("Bills due check failed")
            return {"error": "bills due check failed"}

    async def run_loan_reminders(self) -> Dict[str, Any]:
        try:
            result = await reminder_service.check_loan_reminders()
            logger.info("Loan reminders finished: %s", result)
            return result
        except Exception:
            logger.exception("Loan reminders failed")
            return {"error": "loan reminders failed"}


task_scheduler = TaskScheduler()

import logging
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from config import get_settings
from database import session_scope
from services import BillService


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class SchedulerManager:
    def __init__(self) -> None:
        self.settings = get_settings()
        self.scheduler = BackgroundScheduler(timezone=self.settings.timezone)

    def _run_job(self, source: str = "manual") -> int:
        logger.info(f"reminder_run: source={source}")
        with session_scope() as session:
            reminders = BillService(session).due_reminders()
            for record in reminders:
                logger.info(
                    f"bill_due: id={record['id']} name={record['name']!r} "
                    f"status={record['status']} label={record['status_label']!r}"
                )
        logger.info(f"reminder_run: source={source} bills_due={len(reminders)}")
        return len(reminders)

    def start(self) -> None:
        self._run_job("startup")

        hour = self.settings.reminder_hour
        self.scheduler.add_job(
            self._run_job,
            CronTrigger(hour=hour, minute=0),
            args=[f"daily_{hour:02d}:00"],
            id="bill_reminders_daily",
            replace_existing=True,
            misfire_grace_time=3600,
        )

        self.scheduler.start()
        logger.info(f"Scheduler started with daily bill reminders at {hour:02d}:00")

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")

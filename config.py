import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        upcoming_days: int,
        detect_months: int,
        detect_min_transactions: int,
        reminder_hour: int,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.upcoming_days = upcoming_days
        self.detect_months = detect_months
        self.detect_min_transactions = detect_min_transactions
        self.reminder_hour = reminder_hour


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("BILLS_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "bills.db"
    database_url = os.getenv("BILLS_DATABASE_URL", f"sqlite:///{default_db}")
    timezone = os.getenv("BILLS_TIMEZONE", "Europe/Berlin")
    upcoming_days = int(os.getenv("BILLS_UPCOMING_DAYS", "30"))
    detect_months = int(os.getenv("BILLS_DETECT_MONTHS", "6"))
    detect_min_transactions = int(os.getenv("BILLS_DETECT_MIN_TRANSACTIONS", "3"))
    reminder_hour = int(os.getenv("BILLS_REMINDER_HOUR", "9"))
    return Settings(
        database_url=database_url,
        timezone=timezone,
        upcoming_days=upcoming_days,
        detect_months=detect_months,
        detect_min_transactions=detect_min_transactions,
        reminder_hour=reminder_hour,
    )

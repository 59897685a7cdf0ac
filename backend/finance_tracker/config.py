import os
from dataclasses import dataclass


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    storage_backend: str = os.getenv("STORAGE_BACKEND", "memory").strip().lower()
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./finance_tracker.db")
    log_level: str = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    log_format: str = os.getenv("LOG_FORMAT", "console").strip().lower()
    seed_demo_data: bool = _env_flag("SEED_DEMO_DATA")
    upcoming_window_days: int = int(os.getenv("UPCOMING_WINDOW_DAYS", "30"))
    dashboard_list_limit: int = int(os.getenv("DASHBOARD_LIST_LIMIT", "5"))
    monthly_window_bounded: bool = _env_flag("MONTHLY_WINDOW_BOUNDED")


settings = Settings()

from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path


class Settings(BaseSettings):
    APP_NAME: str = "Finapp Backend"
    ENV: str = "dev"

    # apps/backend/db.sqlite3 as an absolute path so the CWD does not matter
    _default_db_path = Path(__file__).resolve().parents[2] / "db.sqlite3"
    DATABASE_URL: str = f"sqlite:///{_default_db_path}"

    CORS_ORIGINS: list[str] = ["*"]
    TIMEZONE: str = "America/Sao_Paulo"
    LOG_LEVEL: str = "INFO"

    # Fixed accounts
    DEFAULT_REMINDER_DAYS: int = 3
    NOTIFICATION_WINDOW_DAYS: int = 3
    NOTIFICATION_DEDUP_HOURS: int = 24

    # Cron expressions reported to external schedulers; nothing in-process runs them.
    PROCESSING_SCHEDULE: str = "0 6 * * *"
    NOTIFICATION_SCHEDULE: str = "0 */4 * * *"
    JOB_HISTORY_PAGE_SIZE: int = 10

    model_config = SettingsConfigDict(env_file=(".env",), env_prefix="FINAPP_", case_sensitive=False)


settings = Settings()

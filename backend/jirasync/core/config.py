"""Application configuration loaded from environment variables."""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[2]


class Settings(BaseSettings):
    APP_NAME: str = "Jira Sync Engine"
    ENV: str = "development"

    DATABASE_URL: str = "postgresql+psycopg://postgres@localhost:5432/jira_sync"
    LOG_LEVEL: str = "INFO"

    # Key material for site API tokens stored at rest.
    ENCRYPTION_SECRET: str = "change-me-change-me-change-me-32b"

    CORS_ORIGINS: str = "http://localhost:3000"

    # jira transport
    JIRA_HTTP_TIMEOUT_SECONDS: float = 25.0
    JIRA_SEARCH_PAGE_SIZE: int = 100
    JIRA_COLLECTION_PAGE_SIZE: int = 100
    JIRA_FETCH_MAX_ATTEMPTS: int = 3
    JIRA_FETCH_BASE_DELAY_SECONDS: float = 0.5
    JIRA_FETCH_MAX_DELAY_SECONDS: float = 8.0

    # workflow driver
    SYNC_ACTIVITY_MAX_ATTEMPTS: int = 5
    SYNC_ACTIVITY_BASE_DELAY_SECONDS: float = 2.0
    SYNC_ACTIVITY_MAX_DELAY_SECONDS: float = 60.0
    SYNC_DEFAULT_CRON: str = "*/15 * * * *"
    SYNC_SCHEDULER_ENABLED: bool = True
    SYNC_SCHEDULER_POLL_SECONDS: int = 30
    SYNC_SCHEDULER_STARTUP_DELAY_SECONDS: int = 10

    # ops alerts
    OPS_ALERT_EMAILS: str = ""
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_FROM: str = ""
    SMTP_TLS: bool = True

    model_config = SettingsConfigDict(env_file=str(BASE_DIR / ".env"), env_file_encoding="utf-8")

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def ops_alert_recipients(self) -> list[str]:
        return [email.strip() for email in self.OPS_ALERT_EMAILS.split(",") if email.strip()]

    @property
    def smtp_ready(self) -> bool:
        return bool(self.SMTP_HOST.strip() and self.SMTP_FROM.strip())


settings = Settings()

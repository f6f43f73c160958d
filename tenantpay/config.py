"""Application configuration."""
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str

    # Application
    APP_ENV: str = "development"
    SECRET_KEY: str
    API_V1_PREFIX: str = "/api"
    # Local timezone for "today" (payment dates, reminder trigger days)
    TIMEZONE: str = "Europe/Tirane"
    LOG_LEVEL: str = "INFO"

    # Frontend
    FRONTEND_URL: str = "http://localhost:3000"

    # Auth
    JWT_ALGORITHM: str = "HS256"

    # Email (Resend)
    RESEND_API_KEY: str = ""
    EMAIL_FROM: str = "TenantPay Apartments <noreply@notifications.tenantpay.app>"
    EMAIL_REPLY_TO: str = "support@tenantpay.app"
    # When set, every outgoing email is redirected here with a [TEST] subject
    EMAIL_REDIRECT_TO: Optional[str] = None

    # Push (Expo)
    EXPO_ACCESS_TOKEN: str = ""

    # Reminder scheduler
    SCHEDULER_ENABLED: bool = True
    REMINDER_HOUR: int = Field(9, ge=0, le=23)
    REMINDER_MINUTE: int = Field(0, ge=0, le=59)
    REMINDER_DAYS_BEFORE: int = Field(3, ge=1, le=28)
    REMINDER_RUN_TIMEOUT_SECONDS: int = 600

    # Notification outbox
    OUTBOX_RETRY_MINUTES: int = 15
    OUTBOX_MAX_ATTEMPTS: int = 5

    # Reconciliation
    RECONCILIATION_BATCH_SIZE: int = Field(100, ge=1)
    RECONCILIATION_TIMEOUT_SECONDS: int = 900

    # Rate limiting
    RATE_LIMIT_DEFAULT: str = "120/minute"

    # CORS
    @property
    def ALLOWED_ORIGINS(self) -> List[str]:
        if self.APP_ENV == "development":
            return ["*"]  # Allow all origins in development
        return [self.FRONTEND_URL, "http://localhost:3000"]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True
    )


settings = Settings()

# barbershop/config.py

from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="BARBERSHOP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # SQLite database (file-based) by default
    database_url: str = "sqlite:///./barbershop.db"
    sql_echo: bool = False
    log_level: str = "INFO"
    seed_demo_data: bool = False

    # JWT verification (tokens are issued outside this service)
    secret_key: SecretStr = SecretStr("change-me-later")
    algorithm: str = "HS256"

    # Shop rules
    shop_name: str = "Royal Cut"
    timezone: str = "Europe/Lisbon"
    slot_minutes: int = Field(default=30, gt=0)
    hold_minutes: int = Field(default=30, gt=0)
    cancellation_lead_hours: int = Field(default=2, ge=0)
    reminder_window_start_hours: int = 23
    reminder_window_end_hours: int = 25

    # Payments
    stripe_secret_key: Optional[SecretStr] = None
    stripe_webhook_secret: Optional[SecretStr] = None
    currency: str = "eur"
    frontend_url: str = "http://localhost:5173"

    # Notifications
    email_from: str = "Royal Cut <no-reply@royalcut.pt>"
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_username: Optional[str] = None
    smtp_password: Optional[SecretStr] = None
    smtp_use_tls: bool = True
    twilio_account_sid: Optional[str] = None
    twilio_auth_token: Optional[SecretStr] = None
    twilio_from_number: Optional[str] = None

    # Background jobs
    celery_broker_url: str = "redis://localhost:6379/0"

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        ZoneInfo(value)  # raises for unknown zones
        return value

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


settings = Settings()


def shop_now() -> datetime:
    """Current wall-clock time in the shop's timezone, as a naive datetime."""
    return datetime.now(settings.tz).replace(tzinfo=None, microsecond=0)

from datetime import date
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env from the project root so it loads regardless of cwd
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"

DEFAULT_BUSINESS_HOURS: dict[str, str | None] = {
    "mon": "09:00-17:00",
    "tue": "09:00-17:00",
    "wed": "09:00-17:00",
    "thu": "09:00-17:00",
    "fri": "09:00-17:00",
    "sat": "09:00-17:00",
    "sun": None,
}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(str(_ENV_FILE), ".env", "../.env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str

    # JWT (admin endpoints only)
    secret_key: str
    access_token_expire_minutes: int = 60
    algorithm: str = "HS256"

    # Admin login. Password is stored as a bcrypt hash, never in clear.
    admin_email: str = ""
    admin_password_hash: str = ""

    # CORS
    cors_origins: str = "http://localhost:3000"

    # Calendar policy
    business_time_zone: str = "America/New_York"
    # Weekday -> "HH:MM-HH:MM" local, or null when closed. JSON in env.
    business_hours: dict[str, str | None] = DEFAULT_BUSINESS_HOURS
    blackout_dates: list[date] = []
    slot_granularity_minutes: int = 30
    buffer_minutes: int = 15
    min_lead_time_minutes: int = 120
    booking_horizon_days: int = 60  # 0 disables the horizon

    # Local development conveniences; production uses Alembic
    create_tables_on_startup: bool = False
    seed_catalog_on_startup: bool = False

    # Env
    env: str = "development"

    # Email (SMTP). Leave smtp_host empty to disable sending.
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    from_email: str = ""
    from_name: str = "Shine Mobile Detailing"
    email_logo_url: str = ""
    site_name: str = "Shine Mobile Detailing"
    contact_email: str = "hello@shinedetailing.com"
    contact_phone: str = "555-010-2030"
    contact_address: str = "Mobile service, we come to you"

    @field_validator("slot_granularity_minutes")
    @classmethod
    def _positive_granularity(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("slot_granularity_minutes must be > 0")
        return v

    @field_validator("buffer_minutes", "min_lead_time_minutes", "booking_horizon_days")
    @classmethod
    def _non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def email_enabled(self) -> bool:
        return bool(self.smtp_host and self.smtp_user and self.smtp_password and self.from_email)

    @property
    def admin_enabled(self) -> bool:
        return bool(self.admin_email and self.admin_password_hash)


settings = Settings()

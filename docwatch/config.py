"""
Application settings (Pydantic Settings).
"""
from pathlib import Path
from typing import Annotated

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

# .env at the project root (parent of docwatch/)
_env_path = Path(__file__).resolve().parent.parent / ".env"

DEFAULT_SOURCE_PAGE_URL = (
    "https://belgrad.diplo.de/rs-sr/service/2339474-2339474?openAccordionId=item-2728068-0-panel"
)
DEFAULT_SOURCE_LINK_TITLE = "Abholliste/Lista za preuzimanje - Kneza Milosa 75"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=_env_path, extra="ignore")

    database_url: str = "sqlite:///./docwatch.db"
    log_level: str = "INFO"
    cors_origins: str = ""  # CORS_ORIGINS, comma-separated

    # Source page and monitored number
    source_page_url: str = DEFAULT_SOURCE_PAGE_URL
    source_link_title: str = DEFAULT_SOURCE_LINK_TITLE
    search_number: str = "590698"
    # False where the source blocks this host: checks reuse the cached PDF URL
    scraping_allowed: bool = True

    # Schedule: fixed daily wall-clock hours, not an interval
    check_hours: Annotated[list[int], NoDecode] = [8, 12, 16]
    check_timezone: str = "Europe/Belgrade"
    check_lease_seconds: int = 300
    scheduler_enabled: bool = True

    context_limit: int = 10
    history_limit: int = 10
    http_timeout_seconds: float = 30.0

    # Mail: SMTP_USER / SMTP_PASSWORD (Gmail app password), NOTIFY_EMAIL recipient
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    notify_email: str = ""
    notify_from: str = ""
    notify_on_error: bool = False

    # Trigger auth
    scheduled_check_secret: str = ""
    cron_secret: str = ""
    trusted_scheduler_header: str = ""

    @field_validator(
        "smtp_user",
        "smtp_password",
        "notify_email",
        "notify_from",
        "scheduled_check_secret",
        "cron_secret",
        "trusted_scheduler_header",
        "search_number",
        mode="after",
    )
    @classmethod
    def strip_value(cls, v: str) -> str:
        return (v or "").strip()

    @field_validator("check_hours", mode="before")
    @classmethod
    def parse_hours(cls, v):
        if isinstance(v, str):
            v = [s.strip() for s in v.split(",") if s.strip()]
        hours = sorted({int(h) for h in v})
        if not hours or any(h < 0 or h > 23 for h in hours):
            raise ValueError("CHECK_HOURS must be hours between 0 and 23")
        return hours

    @field_validator("context_limit", mode="after")
    @classmethod
    def clamp_context_limit(cls, v: int) -> int:
        return max(1, min(v, 10))


settings = Settings()

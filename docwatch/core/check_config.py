"""
Check pipeline config. Settings (.env) is the source of truth; this is the frozen snapshot
the orchestrator receives, so a run never reads ambient globals and tests can pass their own.
"""
import logging
from dataclasses import dataclass, field

from docwatch.config import Settings, settings as default_settings

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckConfig:
    source_page_url: str
    source_link_title: str
    search_number: str
    # Capability flag: False where the source blocks this host, so the cached URL is used
    scraping_allowed: bool = True
    check_hours: list[int] = field(default_factory=lambda: [8, 12, 16])
    check_timezone: str = "UTC"
    context_limit: int = 10
    lease_seconds: int = 300
    http_timeout_seconds: float = 30.0
    notify_on_error: bool = False


def get_check_config(config: Settings | None = None) -> CheckConfig:
    s = config or default_settings
    return CheckConfig(
        source_page_url=s.source_page_url,
        source_link_title=s.source_link_title,
        search_number=s.search_number,
        scraping_allowed=s.scraping_allowed,
        check_hours=list(s.check_hours),
        check_timezone=s.check_timezone,
        context_limit=s.context_limit,
        lease_seconds=s.check_lease_seconds,
        http_timeout_seconds=s.http_timeout_seconds,
        notify_on_error=s.notify_on_error,
    )


def log_check_config(config: CheckConfig) -> None:
    """Log effective config at startup so each environment can verify env vars are applied."""
    _log.info(
        "Check config: page=%s search_number=%s scraping_allowed=%s hours=%s tz=%s context_limit=%s",
        config.source_page_url,
        config.search_number,
        config.scraping_allowed,
        config.check_hours,
        config.check_timezone,
        config.context_limit,
    )

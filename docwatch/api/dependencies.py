"""FastAPI dependencies for the check pipeline. Tests override these with app.dependency_overrides."""
from typing import Iterator

import httpx
from fastapi import Depends

from docwatch.config import Settings, settings
from docwatch.core.check_config import CheckConfig, get_check_config
from docwatch.services.document_matcher import TextExtractor
from docwatch.services.email_notify import Notifier


def get_settings() -> Settings:
    return settings


def get_config(app_settings: Settings = Depends(get_settings)) -> CheckConfig:
    return get_check_config(app_settings)


def get_notifier(app_settings: Settings = Depends(get_settings)) -> Notifier:
    return Notifier(app_settings)


def get_http_client(app_settings: Settings = Depends(get_settings)) -> Iterator[httpx.Client]:
    client = httpx.Client(timeout=app_settings.http_timeout_seconds, follow_redirects=True)
    try:
        yield client
    finally:
        client.close()


def get_text_extractor() -> TextExtractor | None:
    """None means the pdfplumber extractor."""
    return None

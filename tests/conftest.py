from datetime import datetime, timezone

import httpx
import pytest
from sqlalchemy.orm import sessionmaker

import docwatch.models  # noqa: F401
from docwatch.core.check_config import CheckConfig
from docwatch.db.base import Base
from docwatch.db.session import create_engine_for
from docwatch.services.email_notify import NotifyResult

PAGE_URL = "https://embassy.example/rs-sr/service/2339474?openAccordionId=item-1"
LINK_TITLE = "Abholliste/Lista za preuzimanje - Kneza Milosa 75"
DOC_URL = "https://embassy.example/blob/list.pdf"


def page_html(href: str = "/blob/list.pdf", title: str = LINK_TITLE) -> str:
    return f"""
    <html><body>
      <a href="/other.pdf" title="Something else">Other</a>
      <a title="{title}" href="{href}">Pickup list</a>
    </body></html>
    """


def pdf_bytes(text: str) -> bytes:
    """Fake PDF payload: the header plus plain text that text_extractor returns as-is."""
    return b"%PDF-1.4\n" + text.encode("utf-8")


def text_extractor(data: bytes) -> tuple[str, int]:
    return data.decode("utf-8").split("\n", 1)[1], 1


def mock_client(routes: dict[str, httpx.Response | Exception]) -> httpx.Client:
    """httpx.Client whose responses come from routes, keyed by URL without query string."""
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        key = f"{request.url.scheme}://{request.url.host}{request.url.path}"
        calls.append(key)
        response = routes.get(key)
        if response is None:
            return httpx.Response(404, text="not found")
        if isinstance(response, Exception):
            raise response
        return response

    client = httpx.Client(transport=httpx.MockTransport(handler))
    client.calls = calls
    return client


def page_response(href: str = "/blob/list.pdf") -> httpx.Response:
    return httpx.Response(200, text=page_html(href), headers={"content-type": "text/html"})


def pdf_response(text: str) -> httpx.Response:
    return httpx.Response(200, content=pdf_bytes(text), headers={"content-type": "application/pdf"})


class FakeNotifier:
    """Records events; notify() succeeds or fails per the flag."""

    def __init__(self, succeed: bool = True) -> None:
        self.succeed = succeed
        self.events = []

    def notify(self, event):
        self.events.append(event)
        if self.succeed:
            return NotifyResult(success=True, message_id="<test@docwatch>")
        return NotifyResult(success=False, error="Email service not configured")

    def send(self, event):
        self.events.append(event)
        return "<test@docwatch>"

    def is_configured(self) -> bool:
        return self.succeed


@pytest.fixture
def engine():
    eng = create_engine_for("sqlite:///:memory:")
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def config():
    return CheckConfig(
        source_page_url=PAGE_URL,
        source_link_title=LINK_TITLE,
        search_number="590698",
        scraping_allowed=True,
        check_hours=[8, 12, 16],
        check_timezone="UTC",
        context_limit=10,
        lease_seconds=300,
    )


@pytest.fixture
def now():
    return datetime(2026, 3, 10, 13, 0, tzinfo=timezone.utc)

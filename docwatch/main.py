"""
FastAPI app entrypoint.

Triggers for the document check (manual, scheduled poll, cron) plus status and tool endpoints.
An in-process APScheduler job also runs the check at each configured hour.
"""
import logging
from contextlib import asynccontextmanager

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from docwatch.api.routes import automation, scheduled, tools
from docwatch.config import settings
from docwatch.core.check_config import get_check_config, log_check_config
from docwatch.core.constants import CHECK_JOB_ID
from docwatch.core.errors import DocwatchError, docwatch_error_handler
from docwatch.db.session import init_db
from docwatch.scheduler.check_job import run_scheduled_check_job

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

_scheduler = BackgroundScheduler(timezone=settings.check_timezone)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.database_url.startswith("sqlite"):
        init_db()
    log_check_config(get_check_config())
    if settings.scheduler_enabled:
        # A minute past each slot so next_check_at (the slot itself) has passed
        _scheduler.add_job(
            run_scheduled_check_job,
            CronTrigger(hour=",".join(str(h) for h in settings.check_hours), minute=1),
            id=CHECK_JOB_ID,
            replace_existing=True,
        )
        _scheduler.start()
        app.state.scheduler = _scheduler
        logger.info("Check job scheduled at hours %s (%s)", settings.check_hours, settings.check_timezone)
    yield
    if _scheduler.running:
        _scheduler.shutdown(wait=False)


app = FastAPI(title="Document Watch", version="0.1.0", lifespan=lifespan)

# CORS: dev origins + optional CORS_ORIGINS env (comma-separated) for the status page
_cors_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]
if settings.cors_origins:
    _cors_origins.extend(o.strip() for o in settings.cors_origins.split(",") if o.strip())
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(DocwatchError, docwatch_error_handler)

app.include_router(automation.router, prefix="/api", tags=["automation"])
app.include_router(scheduled.router, prefix="/api", tags=["triggers"])
app.include_router(tools.router, prefix="/api", tags=["tools"])


@app.get("/", include_in_schema=False)
def root():
    """Root: point to API docs and health."""
    return {"message": "Document Watch API", "docs": "/docs", "health": "/health"}


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}

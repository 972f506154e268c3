"""Runs at each configured check hour: perform one due-gated check in its own session."""
import logging

from docwatch.core.check_config import get_check_config
from docwatch.core.constants import SOURCE_SCHEDULED
from docwatch.core.errors import StoreError
from docwatch.db.session import SessionLocal
from docwatch.services.orchestrator import perform_check

logger = logging.getLogger(__name__)


def run_scheduled_check_job() -> None:
    db = SessionLocal()
    try:
        outcome = perform_check(db, get_check_config(), source=SOURCE_SCHEDULED, require_due=True)
        if outcome.skipped:
            logger.info("Scheduled job: check skipped (%s)", outcome.reason)
    except StoreError as e:
        logger.error("Scheduled job: result not stored: %s", e.message)
    except Exception as e:
        logger.exception("Scheduled check job failed: %s", e)
    finally:
        db.close()

#!/usr/bin/env python3
"""
Run one document check from the command line, or print the current status.
Run: poetry run python scripts/run_check.py            # manual check (ignores schedule)
     poetry run python scripts/run_check.py --due      # only if the next slot has passed
     poetry run python scripts/run_check.py --status   # show status and recent history
"""
import argparse
import json
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from docwatch.config import settings
from docwatch.core.check_config import get_check_config
from docwatch.core.constants import SOURCE_MANUAL, SOURCE_SCHEDULED
from docwatch.db.session import SessionLocal, init_db
from docwatch.services.orchestrator import perform_check
from docwatch.services.result_store import ResultStore


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--due", action="store_true", help="skip unless the next scheduled slot has passed")
    parser.add_argument("--status", action="store_true", help="print status and recent checks, do not run")
    parser.add_argument("--search-number", help="override the monitored number for this run")
    args = parser.parse_args()

    logging.basicConfig(level=settings.log_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    if settings.database_url.startswith("sqlite"):
        init_db()

    db = SessionLocal()
    try:
        if args.status:
            store = ResultStore(db)
            status = store.get_status()
            print(json.dumps({
                "status": status.to_dict() if status else None,
                "recent": [r.to_dict() for r in store.get_recent(settings.history_limit)],
                "totalChecks": store.count(),
            }, indent=2))
            return 0
        outcome = perform_check(
            db,
            get_check_config(),
            source=SOURCE_SCHEDULED if args.due else SOURCE_MANUAL,
            search_number=args.search_number,
            require_due=args.due,
        )
        print(json.dumps(outcome.to_dict(), indent=2))
        if outcome.skipped:
            return 0
        return 0 if outcome.result.success else 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())

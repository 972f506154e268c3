"""
Centralized constants for the check pipeline and scheduler.

Change job IDs, caps and request headers here instead of scattering literals across
routes, services and main.
"""

# Scheduler job ID (must match the id used in main.py add_job)
CHECK_JOB_ID = "document_check"

# CheckResult.source values
SOURCE_MANUAL = "manual"
SOURCE_SCHEDULED = "scheduled"
SOURCE_CRON = "cron"
CHECK_SOURCES = (SOURCE_MANUAL, SOURCE_SCHEDULED, SOURCE_CRON)

# Hard cap on context snippets per result (settings.context_limit may lower it)
MAX_CONTEXTS = 10
CONTEXT_JOINER = " ... "

# Status read: at most this many history entries alongside the status record (HISTORY_LIMIT may lower it)
HISTORY_READ_MAX = 10

# The source server rejects obvious non-browser clients
BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9,de;q=0.8",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}

PDF_ACCEPT_HEADERS = {
    "User-Agent": BROWSER_HEADERS["User-Agent"],
    "Accept": "application/pdf,*/*;q=0.8",
}

from docwatch.models.automation_status import AutomationStatus
from docwatch.models.check_history import CheckHistory

__all__ = [
    "AutomationStatus",
    "CheckHistory",
]

"""
Centralized error handling for pipeline and API failures.
Exception types, their HTTP status codes and a reusable renderer so routes stay thin.
"""
from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse

# ---------------------------------------------------------------------------
# Constants: status codes
# ---------------------------------------------------------------------------

STATUS_BAD_GATEWAY = 502  # source or mail server failed
STATUS_SERVICE_UNAVAILABLE = 503  # database down
STATUS_INTERNAL_ERROR = 500


class DocwatchError(Exception):
    """Base for all expected pipeline failures."""

    status_code = STATUS_INTERNAL_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class FetchError(DocwatchError):
    """Network or non-success HTTP response while fetching the page or document."""

    status_code = STATUS_BAD_GATEWAY


class NotFoundError(DocwatchError):
    """Expected markup or link attribute absent from the source page."""

    status_code = 404


class ParseError(DocwatchError):
    """Document is not a PDF or its text could not be extracted."""

    status_code = 422


class ConfigurationError(DocwatchError):
    """Missing or rejected mail credentials; raised before anything is sent."""

    status_code = STATUS_INTERNAL_ERROR


class DeliveryError(DocwatchError):
    """Mail transport rejected the message."""

    status_code = STATUS_BAD_GATEWAY


class StoreError(DocwatchError):
    """Persistence unavailable."""

    status_code = STATUS_SERVICE_UNAVAILABLE


def error_payload(exc: Exception) -> tuple[int, dict]:
    """
    Map an exception to (status_code, body). Known DocwatchError types keep their
    own status; anything else is a 500 with the exception message.
    """
    if isinstance(exc, DocwatchError):
        return exc.status_code, {"success": False, "error": exc.message}
    return STATUS_INTERNAL_ERROR, {"success": False, "error": str(exc) or exc.__class__.__name__}


def error_response(exc: Exception) -> JSONResponse:
    status_code, body = error_payload(exc)
    return JSONResponse(status_code=status_code, content=body)


async def docwatch_error_handler(request: Request, exc: DocwatchError) -> JSONResponse:
    """Registered in main for DocwatchError: user-visible failures are always JSON."""
    return error_response(exc)

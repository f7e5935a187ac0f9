"""Typed errors for the bookkeeping service and their HTTP translation.

Every business-rule failure is a ``BookkeepingError`` subclass with a stable
``code`` that clients can rely on.  ``register_exception_handlers`` wires them
(and infrastructure failures) into the ``{success, error}`` response envelope.
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from starlette.exceptions import HTTPException as StarletteHTTPException

from bookkeeping.config import settings

logger = logging.getLogger(__name__)


class BookkeepingError(Exception):
    code = "SERVER_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Request could not be processed"

    def __init__(self, message: str | None = None, details: dict[str, Any] | None = None):
        self.message = message or self.message
        self.details = details
        super().__init__(self.message)


class ValidationFailed(BookkeepingError):
    code = "VALIDATION_ERROR"
    message = "Invalid input data"


class OrganizationNotFound(BookkeepingError):
    code = "ORGANIZATION_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND
    message = "Organization not found"


class AccountNotFound(BookkeepingError):
    code = "ACCOUNT_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND
    message = "Account not found"


class DuplicateAccountCode(BookkeepingError):
    code = "DUPLICATE_ACCOUNT_CODE"
    message = "An account with this code already exists in this organization"


class InvalidAccountType(BookkeepingError):
    code = "INVALID_ACCOUNT_TYPE"
    message = "The specified account type does not exist"


class InvalidAccountCategory(BookkeepingError):
    code = "INVALID_ACCOUNT_CATEGORY"
    message = (
        "The specified account category does not exist "
        "or does not belong to this organization"
    )


class InvalidParentAccount(BookkeepingError):
    code = "INVALID_PARENT_ACCOUNT"
    message = (
        "The specified parent account does not exist "
        "or does not belong to this organization"
    )


class JournalEntryNotFound(BookkeepingError):
    code = "JOURNAL_ENTRY_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND
    message = "Journal entry not found"


class UnbalancedEntry(BookkeepingError):
    code = "UNBALANCED_ENTRY"
    message = "Journal entry must be balanced (total debits must equal total credits)"


class MissingDateParameters(BookkeepingError):
    code = "MISSING_DATE_PARAMETERS"
    message = "Both startDate and endDate are required"


class BalanceIntegrityError(BookkeepingError):
    """An account referenced by a posting has no balance row."""
    code = "BALANCE_INTEGRITY_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Account balance record is missing"


# ---------------------------------------------------------------------------
# Envelope helpers
# ---------------------------------------------------------------------------

_HTTP_CODES = {
    status.HTTP_401_UNAUTHORIZED: "UNAUTHORIZED",
    status.HTTP_403_FORBIDDEN: "FORBIDDEN",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
}


def error_response(
    status_code: int,
    code: str,
    message: str,
    details: Any = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    error: dict[str, Any] = {"code": code, "message": message}
    if details is not None:
        error["details"] = jsonable_encoder(details)
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error},
        headers=headers,
    )


def _expose_internals() -> bool:
    return settings.ENVIRONMENT == "development"


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def bookkeeping_error_handler(request: Request, exc: BookkeepingError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return error_response(exc.status_code, exc.code, exc.message, exc.details)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": err.get("msg", ""),
        }
        for err in exc.errors()
    ]
    return error_response(
        status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR", "Invalid input data", details
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = _HTTP_CODES.get(exc.status_code, "HTTP_ERROR")
    return error_response(
        exc.status_code,
        code,
        str(exc.detail),
        headers=getattr(exc, "headers", None),
    )


async def database_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Database unavailable on {request.method} {request.url.path}: {exc}")
    return error_response(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "DATABASE_ERROR",
        "Database service is currently unavailable. Please try again later.",
        str(exc) if _expose_internals() else None,
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "SERVER_ERROR",
        "An unexpected error occurred",
        str(exc) if _expose_internals() else None,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BookkeepingError, bookkeeping_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    for exc_class in (OperationalError, InterfaceError, PoolTimeoutError, ConnectionRefusedError):
        app.add_exception_handler(exc_class, database_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

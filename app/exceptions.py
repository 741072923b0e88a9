"""Custom exception classes and global exception handlers."""

import logging
import traceback

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

# PostgreSQL SQLSTATE for unique_violation
UNIQUE_VIOLATION = "23505"


class RollbookException(Exception):
    """Base exception for all Rollbook-specific errors."""

    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class ValidationException(RollbookException):
    """Validation error exception with field-level errors."""

    def __init__(self, errors: list[dict] | str):
        if isinstance(errors, str):
            errors = [{"field": "general", "message": errors}]
        super().__init__("Validation failed", 422)
        self.errors = errors


class ConfigurationError(RollbookException):
    """A request cannot run at all (bad input shape, missing tenant context).

    Raised before any write happens, so nothing needs undoing.
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message, status_code)


class TenantNotFoundError(ConfigurationError):
    """The school code does not resolve to an active tenant."""

    def __init__(self, code: str):
        super().__init__(f"School '{code}' not found", 404)
        self.code = code


class StorageError(RollbookException):
    """A data store write or read failed."""

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message, 500)
        self.code = code


class ConflictError(StorageError):
    """A write hit a uniqueness constraint: someone already wrote this key."""

    def __init__(self, message: str = "Resource already exists", code: str | None = UNIQUE_VIOLATION):
        super().__init__(message, code)
        self.status_code = 409


def is_unique_violation(code: str | None, message: str | None = None) -> bool:
    """Decide whether a store failure is a uniqueness violation.

    The SQLSTATE is authoritative. The message is only consulted when the
    driver did not report a code.
    """
    if code:
        return code == UNIQUE_VIOLATION
    text = (message or "").lower()
    return "duplicate key" in text or "unique constraint" in text


def create_exception_handlers():
    """Create JSON exception handlers for the API."""

    async def rollbook_exception_handler(request: Request, exc: RollbookException):
        """Handle Rollbook custom exceptions."""
        logger.warning(f"RollbookException on {request.method} {request.url.path}: {exc.message} (status={exc.status_code})")

        content = {
            "status": "error",
            "message": exc.message,
        }
        if hasattr(exc, "errors"):
            content["errors"] = exc.errors
        return JSONResponse(status_code=exc.status_code, content=content)

    async def generic_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        logger.error(f"Unhandled exception on {request.method} {request.url.path}")
        logger.error(f"Exception: {type(exc).__name__}: {exc}")
        tb_lines = traceback.format_exception(type(exc), exc, exc.__traceback__)
        logger.error("".join(tb_lines))

        return JSONResponse(
            status_code=500,
            content={
                "status": "error",
                "message": "An unexpected error occurred",
            },
        )

    return {
        RollbookException: rollbook_exception_handler,
        Exception: generic_exception_handler,
    }

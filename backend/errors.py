"""Error taxonomy and the FastAPI handlers that render it."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from logging_config import get_logger

logger = get_logger("errors")


class RelayError(Exception):
    """Base class for every error the relay surfaces to a caller."""

    status_code = 500

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(message)
        self.message = message
        # Full backend text for the server log, never shown to end users
        self.detail = detail


class ValidationError(RelayError):
    status_code = 400


class AuthError(RelayError):
    status_code = 401


class InvalidTokenError(AuthError):
    pass


class ExpiredTokenError(AuthError):
    pass


class ForbiddenError(RelayError):
    status_code = 403


class NotFoundError(RelayError):
    status_code = 404


class RateLimitError(RelayError):
    status_code = 429


class BackendNotConfiguredError(RelayError):
    status_code = 500


class BackendTransportError(RelayError):
    """Telegram could not be reached or timed out. Safe to retry."""

    status_code = 502


class BackendProtocolError(RelayError):
    """Telegram answered with a failure payload."""

    status_code = 502

    def __init__(
        self,
        message: str,
        detail: str | None = None,
        error_code: int | None = None,
        transient: bool = False,
    ):
        super().__init__(message, detail)
        self.error_code = error_code
        self.transient = transient


class FileTooBigError(BackendProtocolError):
    """getFile refuses files above the Bot API download limit."""


class PersistenceError(RelayError):
    status_code = 500


def relay_error_handler(request: Request, exc: RelayError):
    if exc.status_code >= 500:
        logger.error(
            f"{type(exc).__name__} on {request.url.path}: {exc.message}"
            + (f" ({exc.detail})" if exc.detail else "")
        )
    else:
        logger.info(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"status": "error", "message": exc.message},
    )


def sqlalchemy_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"SQLAlchemy Error: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"status": "error", "message": "Database error occurred."},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RelayError, relay_error_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_error_handler)

"""Mapping of pipeline errors to HTTP responses."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..exceptions import (
    ConfigurationMissingError,
    NotFoundError,
    PersistenceError,
    RetryBudgetExhaustedError
)
from ..utils.logger import get_app_logger

STATUS_CODES = (
    (ConfigurationMissingError, 503),
    (NotFoundError, 404),
    (RetryBudgetExhaustedError, 409),
    (PersistenceError, 500),
)


def register_exception_handlers(app: FastAPI):
    """Install a JSON error handler for every pipeline error class."""
    logger = get_app_logger()

    for exc_class, status_code in STATUS_CODES:
        async def handler(request: Request, exc: Exception, status_code: int = status_code) -> JSONResponse:
            if status_code >= 500:
                logger.error(f"{request.method} {request.url.path} failed: {exc}")
            return JSONResponse(
                status_code=status_code,
                content={"detail": str(exc), "error": type(exc).__name__}
            )

        app.add_exception_handler(exc_class, handler)

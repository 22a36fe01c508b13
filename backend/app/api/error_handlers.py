"""
Global exception handlers.

- PresaleError -> its code, message and HTTP status
- RequestValidationError -> 400 with field-level details
- anything else -> 500 without internal details
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.errors import (
    ConfigurationInvalid,
    ConfigurationMissing,
    PresaleError,
    StorageFailure,
)

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""

    @app.exception_handler(PresaleError)
    async def presale_error_handler(request: Request, exc: PresaleError):
        if isinstance(exc, (StorageFailure, ConfigurationMissing, ConfigurationInvalid)):
            logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
        else:
            logger.warning(f"{exc.code} on {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.http_status, content=exc.to_response())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "status": "error",
                "code": "VALIDATION_ERROR",
                "message": "Invalid input",
                "details": {
                    "errors": [
                        {
                            "field": ".".join(str(loc) for loc in e["loc"]),
                            "message": e["msg"],
                        }
                        for e in exc.errors()
                    ],
                },
            },
        )

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "status": "error",
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
            },
        )

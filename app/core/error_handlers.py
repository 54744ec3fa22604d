import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

logger = logging.getLogger(__name__)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation error on {request.method} {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=422, content={"detail": exc.errors()})


async def integrity_exception_handler(request: Request, exc: IntegrityError):
    """Constraint violations the handlers did not anticipate."""
    logger.error(f"Integrity error on {request.url.path}: {exc.orig}")
    return JSONResponse(
        status_code=400,
        content={"detail": "Request conflicts with existing data"},
    )


async def general_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unexpected error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})

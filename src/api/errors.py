"""
Exception handlers - map domain errors to HTTP responses.

Every error body has a stable `message`. Diagnostic fields are added
only outside production.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.config.settings import get_settings
from src.domain.exceptions import (
    AuthError,
    AuthFlowError,
    ConflictError,
    DeliveryError,
    NotFoundError,
    TokenError,
    ValidationError,
)

logger = logging.getLogger(__name__)

STATUS_CODES: dict[type[AuthFlowError], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    ConflictError: status.HTTP_400_BAD_REQUEST,
    TokenError: status.HTTP_400_BAD_REQUEST,
    AuthError: status.HTTP_401_UNAUTHORIZED,
    NotFoundError: status.HTTP_404_NOT_FOUND,
}


def status_for(exc: AuthFlowError) -> int:
    for exc_type, code in STATUS_CODES.items():
        if isinstance(exc, exc_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def auth_flow_error_handler(request: Request, exc: AuthFlowError) -> JSONResponse:
    code = status_for(exc)
    body: dict = {"message": exc.message}

    if isinstance(exc, ValidationError):
        if exc.missing_fields:
            body["missingFields"] = exc.missing_fields
        if len(exc.errors) > 1:
            body["errors"] = exc.errors
    elif isinstance(exc, AuthError) and exc.is_verified is not None:
        body["isVerified"] = exc.is_verified
    elif isinstance(exc, TokenError):
        body["reason"] = exc.reason.value
    elif isinstance(exc, DeliveryError):
        body["reason"] = exc.reason.value
        if exc.detail and not get_settings().is_production:
            body["error"] = exc.detail

    if code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=code, content=body)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    body: dict = {"message": "Invalid request body"}
    if not get_settings().is_production:
        body["errors"] = [error.get("msg", "") for error in exc.errors()]
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    body: dict = {"message": "Internal server error"}
    if not get_settings().is_production:
        body["error"] = str(exc)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AuthFlowError, auth_flow_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

"""
Error responses for the AUTHGATE API.

Every error body has the same shape: {"error", "detail", "code"}.
"""
import os
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..auth.errors import (
    AlreadyEnrolled,
    CodeRequired,
    FieldRequired,
    FieldTooLong,
    InvalidCode,
    InvalidCredentials,
    InvalidPassword,
    InvalidToken,
    NotFound,
    Unauthorized,
    UserAlreadyExists,
    UserServiceError,
)
from ..utils.log import request_id_var

logger = logging.getLogger(__name__)

# First match wins; anything unlisted (provider, enrollment, token signing) is a 500
ERROR_STATUS = [
    (FieldRequired, status.HTTP_400_BAD_REQUEST, "Bad Request"),
    (FieldTooLong, status.HTTP_400_BAD_REQUEST, "Bad Request"),
    (InvalidPassword, status.HTTP_400_BAD_REQUEST, "Bad Request"),
    (CodeRequired, status.HTTP_400_BAD_REQUEST, "Bad Request"),
    (InvalidCredentials, status.HTTP_401_UNAUTHORIZED, "Unauthorized"),
    (InvalidCode, status.HTTP_401_UNAUTHORIZED, "Unauthorized"),
    (InvalidToken, status.HTTP_401_UNAUTHORIZED, "Unauthorized"),
    (Unauthorized, status.HTTP_401_UNAUTHORIZED, "Unauthorized"),
    (NotFound, status.HTTP_404_NOT_FOUND, "Not Found"),
    (AlreadyEnrolled, status.HTTP_409_CONFLICT, "Conflict"),
    (UserAlreadyExists, status.HTTP_409_CONFLICT, "Conflict"),
]


def error_status(exc: UserServiceError) -> tuple:
    """(HTTP status, error summary) for a service error."""
    for error_class, status_code, summary in ERROR_STATUS:
        if isinstance(exc, error_class):
            return status_code, summary
    return status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error"


def error_body(summary: str, detail, code: str) -> dict:
    return {"error": summary, "detail": detail, "code": code}


async def handle_service_error(request: Request, exc: UserServiceError):
    status_code, summary = error_status(exc)
    if status_code >= 500:
        logger.error(f"{exc.code}: {exc}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.code}")
    return JSONResponse(status_code=status_code, content=error_body(summary, str(exc), exc.code))


async def handle_validation_error(request: Request, exc: RequestValidationError):
    problems = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"] if part != "body")
        problems.append(f"{field or 'body'}: {error['msg']}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_body("Validation Error", "; ".join(problems), "VALIDATION_ERROR"),
    )


async def handle_unexpected_error(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    detail = str(exc) if os.getenv("APP_ENV") == "development" else None
    body = error_body("Internal Server Error", detail, "INTERNAL_ERROR")
    body["request_id"] = request_id_var.get()
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(UserServiceError, handle_service_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

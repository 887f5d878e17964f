"""
API error codes and exception handlers.

Every error response has the shape ``{"message": str, "error": ErrorCode}``.
Raw exception text is logged, never returned to the client.
"""
import logging
from enum import Enum
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.orm.exc import StaleDataError

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_ENROLLED = "NOT_ENROLLED"
    NOT_OWNER = "NOT_OWNER"
    NOT_FOUND = "NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    ALREADY_REVIEWED = "ALREADY_REVIEWED"
    SELF_HELPFUL = "SELF_HELPFUL"
    CONFLICT = "CONFLICT"
    GENERATION_FAILED = "GENERATION_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


_DEFAULT_CODES = {
    status.HTTP_400_BAD_REQUEST: ErrorCode.VALIDATION_ERROR,
    status.HTTP_401_UNAUTHORIZED: ErrorCode.UNAUTHORIZED,
    status.HTTP_403_FORBIDDEN: ErrorCode.FORBIDDEN,
    status.HTTP_404_NOT_FOUND: ErrorCode.NOT_FOUND,
    status.HTTP_409_CONFLICT: ErrorCode.CONFLICT,
    status.HTTP_422_UNPROCESSABLE_ENTITY: ErrorCode.VALIDATION_ERROR,
}


class ApiError(HTTPException):
    """HTTPException that carries a fixed error code."""

    def __init__(
        self,
        status_code: int,
        message: str,
        code: Optional[ErrorCode] = None,
        headers: Optional[dict] = None,
    ):
        super().__init__(status_code=status_code, detail=message, headers=headers)
        self.code = code or _DEFAULT_CODES.get(status_code, ErrorCode.INTERNAL_ERROR)


def bad_request(message: str = "Bad Request", code: ErrorCode = ErrorCode.VALIDATION_ERROR) -> ApiError:
    return ApiError(status.HTTP_400_BAD_REQUEST, message, code)


def unauthorized(message: str = "Could not validate credentials") -> ApiError:
    return ApiError(
        status.HTTP_401_UNAUTHORIZED,
        message,
        ErrorCode.UNAUTHORIZED,
        headers={"WWW-Authenticate": "Bearer"},
    )


def forbidden(message: str = "Forbidden", code: ErrorCode = ErrorCode.FORBIDDEN) -> ApiError:
    return ApiError(status.HTTP_403_FORBIDDEN, message, code)


def not_found(message: str = "Not Found") -> ApiError:
    return ApiError(status.HTTP_404_NOT_FOUND, message, ErrorCode.NOT_FOUND)


def conflict(message: str = "Conflict") -> ApiError:
    return ApiError(status.HTTP_409_CONFLICT, message, ErrorCode.CONFLICT)


def unprocessable(message: str, code: ErrorCode = ErrorCode.GENERATION_FAILED) -> ApiError:
    return ApiError(status.HTTP_422_UNPROCESSABLE_ENTITY, message, code)


def _error_body(message: str, code: ErrorCode, **extra: Any) -> dict:
    body = {"message": message, "error": code.value}
    body.update(extra)
    return body


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(str(exc.detail), exc.code),
        headers=exc.headers,
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    code = _DEFAULT_CODES.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    message = exc.detail if isinstance(exc.detail, str) else code.value
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(message, code),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=jsonable_encoder(
            _error_body("Invalid request", ErrorCode.VALIDATION_ERROR, details=details)
        ),
    )


async def stale_data_handler(request: Request, exc: StaleDataError) -> JSONResponse:
    logger.warning(f"Concurrent modification on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content=_error_body("Resource was modified concurrently, retry the request", ErrorCode.CONFLICT),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body("An unexpected error occurred", ErrorCode.INTERNAL_ERROR),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StaleDataError, stale_data_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

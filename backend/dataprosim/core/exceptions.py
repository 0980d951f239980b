"""
Application errors and the handlers that turn them into JSON error envelopes.

Every error response has the shape::

    {"success": false, "error": {"code", "message", "field"?, "details"?}, "request_id"?}

Provider failures never reach this layer; the AI service absorbs them and
serves fallback content.
"""
import logging
import traceback
from typing import Any, Dict, Optional, Sequence

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ErrorDetail(BaseModel):
    code: str
    message: str
    field: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class ErrorResponse(BaseModel):
    success: bool = False
    error: ErrorDetail
    request_id: Optional[str] = None


class ErrorCode:
    """Error codes, grouped by the resource they concern."""
    VAL_INVALID_INPUT = "VAL_001"

    RES_NOT_FOUND = "RES_001"
    RES_METHOD_NOT_ALLOWED = "RES_002"

    USR_NOT_FOUND = "USR_001"
    USR_USERNAME_TAKEN = "USR_002"
    USR_EMAIL_TAKEN = "USR_003"

    PRJ_NOT_FOUND = "PRJ_001"
    PRJ_NO_DATASET = "PRJ_002"

    DST_NO_FILE = "DST_001"
    DST_EMPTY_FILE = "DST_002"
    DST_TOO_LARGE = "DST_003"
    DST_UNREADABLE = "DST_004"

    SRV_INTERNAL_ERROR = "SRV_001"


# Framework-raised HTTP errors mapped onto application codes
HTTP_STATUS_CODES = {
    status.HTTP_404_NOT_FOUND: ErrorCode.RES_NOT_FOUND,
    status.HTTP_405_METHOD_NOT_ALLOWED: ErrorCode.RES_METHOD_NOT_ALLOWED,
    status.HTTP_413_REQUEST_ENTITY_TOO_LARGE: ErrorCode.DST_TOO_LARGE,
}


# ============================================================================
# Application errors
# ============================================================================


class AppException(Exception):
    """
    Base for errors raised deliberately by routes and services.

    Subclasses fix the HTTP status; the code identifies the exact failure.
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: str = ErrorCode.SRV_INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
        field: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details
        self.field = field
        if status_code is not None:
            self.status_code = status_code


class NotFoundError(AppException):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(
        self,
        message: str = "Resource not found",
        code: str = ErrorCode.RES_NOT_FOUND,
        resource_type: Optional[str] = None,
        resource_id: Optional[Any] = None,
    ):
        details = {}
        if resource_type:
            details["resource_type"] = resource_type
        if resource_id is not None:
            details["resource_id"] = str(resource_id)
        super().__init__(message, code=code, details=details or None)


class ConflictError(AppException):
    """A unique value (username, email) is already in use."""

    status_code = status.HTTP_409_CONFLICT


class ValidationError(AppException):
    """Input rejected by application rules. 400 unless told otherwise."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        message: str = "Validation failed",
        code: str = ErrorCode.VAL_INVALID_INPUT,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message, code=code, details=details, field=field, status_code=status_code)


class PayloadTooLargeError(AppException):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE

    def __init__(self, size: int, limit: int):
        super().__init__(
            f"Upload of {size} bytes exceeds the {limit} byte limit",
            code=ErrorCode.DST_TOO_LARGE,
            details={"size": size, "limit": limit},
        )


def field_path(loc: Sequence[Any]) -> Optional[str]:
    """Dotted field path from a pydantic error location, minus the body/query/path prefix."""
    parts = [str(part) for part in loc]
    if parts and parts[0] in ("body", "query", "path", "header", "cookie"):
        parts = parts[1:]
    return ".".join(parts) or None


# ============================================================================
# Handlers
# ============================================================================


def _envelope(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    field: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    body = ErrorResponse(
        error=ErrorDetail(code=code, message=message, field=field, details=details),
        request_id=getattr(request.state, "request_id", None),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def _log_extra(request: Request, **extra: Any) -> Dict[str, Any]:
    return {
        "request_id": getattr(request.state, "request_id", None),
        "method": request.method,
        "path": request.url.path,
        **extra,
    }


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(f"[{exc.code}] {exc.message}", extra=_log_extra(request, code=exc.code, details=exc.details))
    return _envelope(request, exc.status_code, exc.code, exc.message, exc.field, exc.details)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code >= 500:
        code = ErrorCode.SRV_INTERNAL_ERROR
    else:
        code = HTTP_STATUS_CODES.get(exc.status_code, ErrorCode.VAL_INVALID_INPUT)
    message = str(exc.detail) if exc.detail else "An error occurred"

    logger.warning(f"HTTP {exc.status_code}: {message}", extra=_log_extra(request, code=code))
    return _envelope(request, exc.status_code, code, message)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """422 envelope naming the first offending field and listing all of them."""
    errors = [
        {"field": field_path(err.get("loc", ())), "message": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    first = errors[0] if errors else {"field": None, "message": "Validation failed"}

    logger.warning(f"Validation error: {first['message']}", extra=_log_extra(request, errors=errors))
    return _envelope(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        ErrorCode.VAL_INVALID_INPUT,
        f"Validation error: {first['message']}",
        field=first["field"],
        details={"errors": errors},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled exception: {exc}", extra=_log_extra(request))

    # Internal details stay in the logs in production
    if request.app.state.settings.is_production:
        return _envelope(
            request, status.HTTP_500_INTERNAL_SERVER_ERROR,
            ErrorCode.SRV_INTERNAL_ERROR, "An internal error occurred",
        )
    return _envelope(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        ErrorCode.SRV_INTERNAL_ERROR,
        str(exc),
        details={"traceback": traceback.format_exception(type(exc), exc, exc.__traceback__)},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

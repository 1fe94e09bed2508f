from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from datetime import datetime, timezone
import logging
import uuid

from homecare.core.exceptions import ApiError
from homecare.schemas.response import ErrorResponse, ErrorDetail
from homecare.utils.error_handler import get_error_notification

logger = logging.getLogger(__name__)

def _get_error_code(status_code: int) -> str:
    code_map = {
        400: "BAD_REQUEST",
        401: "UNAUTHORIZED",
        403: "FORBIDDEN",
        404: "NOT_FOUND",
        409: "CONFLICT",
        422: "VALIDATION_ERROR",
        429: "RATE_LIMITED",
        500: "INTERNAL_SERVER_ERROR",
        503: "SERVICE_UNAVAILABLE",
    }
    return code_map.get(status_code, f"HTTP_{status_code}")

def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())

def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()

async def api_error_handler(request: Request, exc: ApiError):
    request_id = _request_id(request)
    # transport failures reach the caller as an unavailable upstream
    status_code = exc.status_code if exc.status_code >= 400 else 503
    notification = get_error_notification(exc)

    details = {"notification": notification.model_dump(mode="json")}
    if exc.errors:
        details["errors"] = exc.errors

    error_response = ErrorResponse(
        error=ErrorDetail(code=_get_error_code(status_code), message=exc.message, details=details),
        timestamp=_timestamp(),
        path=str(request.url),
        request_id=request_id
    )
    log_level = logging.ERROR if status_code >= 500 else logging.WARNING
    logger.log(log_level, f"[{request_id}] {type(exc).__name__} {status_code}: {exc.message}",
               extra={"request_id": request_id})
    return JSONResponse(status_code=status_code, content=error_response.model_dump())

async def validation_exception_handler(request: Request, exc: RequestValidationError):
    request_id = _request_id(request)
    error_response = ErrorResponse(
        error=ErrorDetail(
            code="VALIDATION_ERROR",
            message="Request validation failed",
            details={"validation_errors": jsonable_encoder(exc.errors())}
        ),
        timestamp=_timestamp(),
        path=str(request.url),
        request_id=request_id
    )
    logger.warning(f"[{request_id}] Validation error: {exc.errors()}", extra={"request_id": request_id})
    return JSONResponse(status_code=422, content=error_response.model_dump())

async def global_exception_handler(request: Request, exc: Exception):
    request_id = _request_id(request)

    if isinstance(exc, HTTPException):
        error_response = ErrorResponse(
            error=ErrorDetail(
                code=_get_error_code(exc.status_code),
                message=exc.detail if isinstance(exc.detail, str) else str(exc.detail)
            ),
            timestamp=_timestamp(),
            path=str(request.url),
            request_id=request_id
        )
        logger.warning(f"[{request_id}] HTTP {exc.status_code}: {exc.detail}", extra={"request_id": request_id})
        return JSONResponse(status_code=exc.status_code, content=error_response.model_dump())

    error_response = ErrorResponse(
        error=ErrorDetail(
            code="INTERNAL_SERVER_ERROR",
            message="An unexpected error occurred",
            details={"error_type": type(exc).__name__}
        ),
        timestamp=_timestamp(),
        path=str(request.url),
        request_id=request_id
    )
    logger.error(f"[{request_id}] Unhandled exception: {exc}", exc_info=True, extra={"request_id": request_id})
    return JSONResponse(status_code=500, content=error_response.model_dump())

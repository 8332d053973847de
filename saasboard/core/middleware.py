"""
HTTP middleware and exception handlers.

Every error leaving the application, whatever raised it, is rendered as the
same ``{"error": {...}}`` envelope and carries the request id.
"""

import math
import time
import uuid
from collections.abc import Callable
from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from saasboard.core.errors import AppError, ErrorCode, ErrorResponse
from saasboard.core.logging import get_logger, request_id_ctx, stream_id_ctx, user_id_ctx

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Starlette HTTPException status -> error code
_HTTP_STATUS_CODES = {
    401: ErrorCode.UNAUTHORIZED,
    403: ErrorCode.FORBIDDEN,
    404: ErrorCode.NOT_FOUND,
    405: ErrorCode.METHOD_NOT_ALLOWED,
    413: ErrorCode.REQUEST_TOO_LARGE,
    429: ErrorCode.RATE_LIMITED,
}


def error_json(
    status_code: int,
    code: ErrorCode,
    message: str,
    details: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Render an error envelope tagged with the current request id."""
    request_id = request_id_ctx.get()
    body = ErrorResponse(code=code, message=message, request_id=request_id, details=details)
    all_headers = {REQUEST_ID_HEADER: request_id} if request_id else {}
    all_headers.update(headers or {})
    return JSONResponse(status_code=status_code, content=body.to_dict(), headers=all_headers)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assign a request id, expose it to loggers, and log each completed request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        tokens = (
            (request_id_ctx, request_id_ctx.set(request_id)),
            (user_id_ctx, user_id_ctx.set(None)),  # filled in by the identity guard
            (stream_id_ctx, stream_id_ctx.set(None)),
        )
        started = time.perf_counter()
        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            logger.info(
                "Request completed",
                data={
                    "method": request.method,
                    "path": request.url.path,
                    "status": response.status_code,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                },
            )
            return response
        finally:
            for var, token in tokens:
                var.reset(token)


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject requests whose declared body size exceeds ``max_bytes`` (413)."""

    def __init__(self, app: FastAPI, max_bytes: int = 1048576):
        super().__init__(app)
        self.max_bytes = max_bytes

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        declared = request.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > self.max_bytes:
            logger.warning(
                "Request body too large",
                data={"content_length": int(declared), "max_bytes": self.max_bytes},
            )
            return error_json(
                413,
                ErrorCode.REQUEST_TOO_LARGE,
                f"Request body exceeds {self.max_bytes} bytes",
            )
        return await call_next(request)


def setup_exception_handlers(app: FastAPI) -> None:
    """Register the handlers that turn exceptions into error envelopes."""
    from fastapi.encoders import jsonable_encoder
    from fastapi.exceptions import RequestValidationError
    from starlette.exceptions import HTTPException as StarletteHTTPException

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        _request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return error_json(
            422,
            ErrorCode.VALIDATION_ERROR,
            "Validation error",
            details={"errors": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        _request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return error_json(
            exc.status_code,
            _HTTP_STATUS_CODES.get(exc.status_code, ErrorCode.INTERNAL_ERROR),
            str(exc.detail) if exc.detail else "HTTP error",
        )

    @app.exception_handler(AppError)
    async def app_error_handler(_request: Request, exc: AppError) -> JSONResponse:
        logger.warning(
            f"Application error: {exc.message}",
            data={"code": exc.code.value, "details": exc.details},
        )
        headers = {}
        if exc.status_code == 429 and exc.details and "window_seconds" in exc.details:
            headers["Retry-After"] = str(math.ceil(exc.details["window_seconds"]))
        return error_json(exc.status_code, exc.code, exc.message, exc.details, headers)

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
        # Details stay in the log; the client only gets the request id
        logger.error(
            "Unhandled exception",
            exc_info=exc,
            data={"path": request.url.path, "method": request.method},
        )
        return error_json(500, ErrorCode.INTERNAL_ERROR, "An unexpected error occurred")

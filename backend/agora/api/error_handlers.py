"""Error Handlers — every failure leaves the API in the same {"error": {...}} envelope.

Invariants:
    - AgoraError -> its own to_response() at its own http_status
    - FastAPI's RequestValidationError (headers, body shape) is folded into
      InputValidationError, so clients see one VALIDATION_ERROR format
    - Anything else -> opaque INTERNAL_ERROR; the traceback stays in the log

Design Decisions:
    - Client mistakes (4xx) log at info, server faults (5xx) at error
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from agora.core.errors import AgoraError, ErrorSeverity, InputValidationError

logger = logging.getLogger(__name__)

_INTERNAL_ERROR = {
    "error": {
        "code": "INTERNAL_ERROR",
        "message": "An unexpected error occurred",
        "category": "internal",
        "severity": ErrorSeverity.CRITICAL.value,
        "retryable": False,
    },
}


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AgoraError, _agora_error)
    app.add_exception_handler(RequestValidationError, _transport_validation_error)
    app.add_exception_handler(Exception, _unexpected_error)


def _respond(request: Request, exc: AgoraError, details: list | None = None) -> JSONResponse:
    log = logger.error if exc.http_status >= 500 else logger.info
    log(
        f"{exc.code} on {request.url.path}: {exc.message}",
        extra={
            "error_code": exc.code,
            "path": request.url.path,
            "request_kind": exc.context.request_kind,
            "user_id": exc.context.user_id,
        },
    )
    body = exc.to_response()
    if details:
        body["error"]["details"] = details
    return JSONResponse(status_code=exc.http_status, content=body)


async def _agora_error(request: Request, exc: AgoraError) -> JSONResponse:
    return _respond(request, exc)


async def _transport_validation_error(
    request: Request, exc: RequestValidationError,
) -> JSONResponse:
    problems = exc.errors()
    first = problems[0] if problems else {"loc": (), "msg": "Invalid request"}
    error = InputValidationError(
        f"Invalid request: {first['msg']}",
        field=".".join(str(part) for part in first["loc"]) or None,
    )
    details = [
        {"field": ".".join(str(part) for part in p["loc"]), "message": p["msg"]}
        for p in problems
    ]
    return _respond(request, error, details if len(details) > 1 else None)


async def _unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled {type(exc).__name__} on {request.url.path}: {exc}",
        exc_info=True,
        extra={"path": request.url.path},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=_INTERNAL_ERROR,
    )

# itasks/exceptions/handlers.py
import time

from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from itasks.core import tracing
from itasks.exceptions.domain import ITasksError, ValidationError


def get_safe_headers(request: Request) -> dict:
    """Extract and mask sensitive headers for logging"""
    headers = request.headers
    return {
        "user_agent": headers.get("user-agent", "unknown"),
        "authorization": (headers.get("authorization", "")[:10] + "...") if headers.get("authorization") else "none",
        "referer": headers.get("referer", "none")
    }


def error_body(request: Request, status_code: int, detail, **extra) -> dict:
    body = {
        "detail": detail,
        "status_code": status_code,
        "trace_id": tracing.get_current_trace_id(),
        "timestamp": time.time(),
        "path": request.url.path,
    }
    body.update(extra)
    return body


async def domain_exception_handler(request: Request, exc: ITasksError) -> JSONResponse:
    """Authorization, NotFound and Validation errors keep their precise message"""
    tracing.warning(
        f"Domain error {type(exc).__name__}: {exc.message}",
        url=str(request.url),
        ip=get_remote_address(request),
        status_code=exc.status_code,
    )

    extra = {"error_type": type(exc).__name__}
    if isinstance(exc, ValidationError) and exc.field:
        extra["field"] = exc.field

    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(request, exc.status_code, exc.message, **extra),
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    client_ip = get_remote_address(request)
    headers = get_safe_headers(request)

    tracing.error(
        f"HTTP {exc.status_code}: {exc.detail}",
        url=str(request.url),
        ip=client_ip,
        **headers
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(request, exc.status_code, exc.detail),
        headers=getattr(exc, 'headers', None)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    client_ip = get_remote_address(request)
    headers = get_safe_headers(request)

    errors = [
        {
            "field": " -> ".join(str(x) for x in error["loc"]),
            "message": error["msg"],
            "type": error["type"]
        }
        for error in exc.errors()
    ]

    tracing.warning(
        f"Validation error: {len(errors)} errors",
        url=str(request.url),
        ip=client_ip,
        **headers
    )

    return JSONResponse(
        status_code=422,
        content=error_body(request, 422, "Validation error", errors=errors)
    )


async def rate_limit_exception_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    tracing.warning(
        f"Rate limit exceeded: {exc.detail}",
        url=str(request.url),
        ip=get_remote_address(request),
    )

    return JSONResponse(
        status_code=429,
        content=error_body(request, 429, f"Rate limit exceeded: {exc.detail}"),
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    client_ip = get_remote_address(request)
    headers = get_safe_headers(request)

    tracing.error(
        f"UNHANDLED EXCEPTION: {str(exc)}",
        url=str(request.url),
        ip=client_ip,
        **headers
    )

    return JSONResponse(
        status_code=500,
        content=error_body(request, 500, "Internal server error", error_type=type(exc).__name__)
    )


async def starlette_http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    tracing.warning(
        f"HTTP {exc.status_code}: {exc.detail}",
        url=str(request.url),
        ip=get_remote_address(request),
        **get_safe_headers(request)
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(request, exc.status_code, exc.detail)
    )

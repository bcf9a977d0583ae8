"""JSON error responses in the {success: false, message, errors} envelope."""
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from web.api.middleware import security_headers

logger = logging.getLogger("tracker.api")

_LOCATIONS = ("body", "query", "path", "header")


class ValidationFailed(Exception):
    """Business-rule violations found before any write; rendered as HTTP 400."""

    def __init__(self, errors: list[dict], message: str = "Validation failed"):
        super().__init__(message)
        self.errors = errors
        self.message = message


def _field_name(loc) -> str:
    parts = [str(part) for part in loc if part not in _LOCATIONS and not isinstance(part, int)]
    return ".".join(parts) or "body"


def _error_body(message: str, errors: list[dict] | None = None) -> dict:
    body = {"success": False, "message": message}
    if errors is not None:
        body["errors"] = errors
    return body


async def validation_failed_handler(request: Request, exc: ValidationFailed):
    return JSONResponse(status_code=400, content=_error_body(exc.message, exc.errors))


async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": _field_name(err.get("loc", ())),
            "message": str(err.get("msg", "Invalid value")).removeprefix("Value error, "),
        }
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content=_error_body("Validation failed", errors))


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    # Runs in ServerErrorMiddleware, outside SecurityHeadersMiddleware
    return JSONResponse(
        status_code=500, content=_error_body("Server Error"), headers=security_headers(request)
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ValidationFailed, validation_failed_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

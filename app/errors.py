from __future__ import annotations

import logging

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

_GENERIC_DOWNSTREAM_MESSAGE = (
    "The billing system could not complete the request. Please try again."
)


class PortalError(Exception):
    """Base class for failures the portal reports to its callers."""

    status_code = 500
    code = "internal_error"
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, details: object = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class Unauthorized(PortalError):
    status_code = 401
    code = "unauthorized"
    default_message = "Unauthorized: Invalid or missing token."


class ValidationFailed(PortalError):
    status_code = 400
    code = "validation_error"
    default_message = "Invalid request."


class AccessDenied(PortalError):
    status_code = 403
    code = "access_denied"
    default_message = "You do not have access to this resource."


class NotFound(PortalError):
    status_code = 404
    code = "not_found"
    default_message = "The requested item could not be found."


class Conflict(PortalError):
    status_code = 409
    code = "conflict"
    default_message = "Request conflict"


class DownstreamFailure(PortalError):
    """The billing system or the generative model failed.

    ``message`` is shown to the caller only when ``safe`` is set; otherwise the
    caller gets a generic message and the detail goes to the log.
    """

    status_code = 502
    code = "downstream_error"
    default_message = _GENERIC_DOWNSTREAM_MESSAGE

    def __init__(
        self, message: str | None = None, details: object = None, safe: bool = False
    ) -> None:
        super().__init__(message, details)
        self.safe = safe

    @property
    def public_message(self) -> str:
        return self.message if self.safe else _GENERIC_DOWNSTREAM_MESSAGE


def _error_payload(code: str, message: str, details: object, request_id: str | None):
    return {"code": code, "message": message, "details": details, "request_id": request_id}


def _request_id(request: Request) -> str:
    rid = getattr(request.state, "request_id", None)
    return str(rid) if rid else "unknown"


def register_error_handlers(app) -> None:
    @app.exception_handler(PortalError)
    async def portal_error_handler(request: Request, exc: PortalError):
        message = exc.message
        if isinstance(exc, DownstreamFailure):
            logger.error(
                "Downstream failure on %s %s: %s",
                request.method,
                request.url.path,
                exc.message,
                extra={"request_id": _request_id(request)},
            )
            message = exc.public_message
        elif exc.status_code >= 500:
            logger.error("Portal error on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_payload(exc.code, message, exc.details, _request_id(request)),
        )

    async def _handle_http_exception(request: Request, status_code: int, detail: object):
        code = f"http_{status_code}"
        message = "Request failed"
        details = None
        if isinstance(detail, dict):
            code = detail.get("code", code)
            message = detail.get("message", message)
            details = detail.get("details")
        elif isinstance(detail, str):
            message = detail
        else:
            details = detail
        return JSONResponse(
            status_code=status_code,
            content=_error_payload(code, message, details, _request_id(request)),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return await _handle_http_exception(request, exc.status_code, exc.detail)

    @app.exception_handler(StarletteHTTPException)
    async def starlette_http_exception_handler(request: Request, exc: StarletteHTTPException):
        detail = exc.detail if getattr(exc, "detail", None) is not None else "Request failed"
        return await _handle_http_exception(request, exc.status_code, detail)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        def _sanitize_input(value):
            if isinstance(value, bytes):
                return value.decode("utf-8", errors="replace")
            if isinstance(value, dict):
                return {key: _sanitize_input(val) for key, val in value.items()}
            if isinstance(value, (list, tuple, set)):
                return [_sanitize_input(item) for item in value]
            if isinstance(value, (str, int, float, bool)) or value is None:
                return value
            return str(value)

        errors = []
        for error in exc.errors():
            error_copy = {key: val for key, val in error.items() if key != "ctx"}
            if "input" in error_copy:
                error_copy["input"] = _sanitize_input(error_copy.get("input"))
            errors.append(error_copy)
        return JSONResponse(
            status_code=422,
            content=_error_payload(
                "validation_error", "Validation error", errors, _request_id(request)
            ),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(
            "Unhandled exception on %s %s",
            request.method,
            request.url.path,
            extra={"request_id": _request_id(request)},
        )
        return JSONResponse(
            status_code=500,
            content=_error_payload(
                "internal_error", "Internal server error", None, _request_id(request)
            ),
        )

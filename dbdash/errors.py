from __future__ import annotations

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from starlette.exceptions import HTTPException as StarletteHTTPException

from dbdash.logging import get_logger
from dbdash.services.backend_client import BackendError, RecordNotFoundError
from dbdash.services.database_view import ViewStateError
from dbdash.web.auth.dependencies import AuthenticationRequired

logger = get_logger(__name__)
templates = Jinja2Templates(directory="templates")

_FRIENDLY_DEFAULT_BAD_REQUEST = (
    "Some required information is missing or invalid. Please check the form and try again."
)
_TEMPLATED_STATUSES = {400, 403, 404, 409, 500, 502}


def _error_payload(code: str, message: str, details: object, request_id: str | None):
    return {"code": code, "message": message, "details": details, "request_id": request_id}


def _is_html_request(request: Request) -> bool:
    accept = (request.headers.get("accept") or "").lower()
    content_type = (request.headers.get("content-type") or "").lower()
    if request.url.path.startswith("/api/"):
        return False
    if "application/json" in content_type:
        return False
    if "application/json" in accept and "text/html" not in accept:
        return False
    return True


def _request_id(request: Request) -> str:
    rid = getattr(request.state, "request_id", None)
    return str(rid) if rid else "unknown"


def _friendly_bad_request_message(detail: object) -> str:
    if isinstance(detail, str):
        msg = detail.strip()
        if not msg:
            return _FRIENDLY_DEFAULT_BAD_REQUEST
        lowered = msg.lower()
        if any(
            token in lowered
            for token in ("validation error", "type_error", "value_error", "traceback", "{", "[")
        ):
            return _FRIENDLY_DEFAULT_BAD_REQUEST
        return msg
    if isinstance(detail, dict):
        for key in ("message", "detail", "error"):
            val = detail.get(key)
            if isinstance(val, str) and val.strip():
                return val.strip()
    return _FRIENDLY_DEFAULT_BAD_REQUEST


def _template_response(request: Request, status_code: int, message: str):
    template_status = status_code if status_code in _TEMPLATED_STATUSES else 500
    return templates.TemplateResponse(
        request,
        f"errors/{template_status}.html",
        {
            "message": message,
            "request_id": _request_id(request),
        },
        status_code=status_code,
    )


def register_error_handlers(app) -> None:
    @app.exception_handler(AuthenticationRequired)
    async def auth_required_handler(request: Request, exc: AuthenticationRequired):
        """Redirect to login page when authentication is required."""
        return RedirectResponse(url=exc.redirect_url, status_code=303)

    async def _handle_http_exception(request: Request, status_code: int, detail: object):
        if _is_html_request(request):
            if status_code == 400:
                return _template_response(
                    request,
                    status_code=400,
                    message=_friendly_bad_request_message(detail),
                )
            if status_code in _TEMPLATED_STATUSES:
                default = "Page not found" if status_code == 404 else "Request failed"
                message = detail if isinstance(detail, str) and detail.strip() else default
                return _template_response(request, status_code=status_code, message=message)

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

    @app.exception_handler(ViewStateError)
    async def view_state_handler(request: Request, exc: ViewStateError):
        return await _handle_http_exception(request, 409, str(exc))

    @app.exception_handler(BackendError)
    async def backend_error_handler(request: Request, exc: BackendError):
        if isinstance(exc, RecordNotFoundError):
            return await _handle_http_exception(request, 404, exc.detail or "Record not found")
        logger.error(
            "Backend failure escaped on %s %s: %s",
            request.method,
            request.url.path,
            exc.message,
            extra={"request_id": _request_id(request)},
        )
        return await _handle_http_exception(
            request, 502, exc.detail or "The data service is unavailable. Please try again."
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        if _is_html_request(request):
            return _template_response(
                request,
                status_code=400,
                message=_FRIENDLY_DEFAULT_BAD_REQUEST,
            )
        errors = []
        for error in exc.errors():
            error_copy = dict(error)
            if "input" in error_copy:
                error_copy["input"] = str(error_copy.get("input"))
            error_copy.pop("ctx", None)
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
        if _is_html_request(request):
            return _template_response(
                request,
                status_code=500,
                message="Oops! Something went wrong on our end. Please try again later.",
            )
        return JSONResponse(
            status_code=500,
            content=_error_payload(
                "internal_error", "Internal server error", None, _request_id(request)
            ),
        )

import uuid

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse
from starlette.responses import Response

from dbdash.config import settings, warn_insecure_service_urls
from dbdash.csrf import (
    CSRF_COOKIE_NAME,
    CSRF_HEADER_NAME,
    generate_csrf_token,
    set_csrf_cookie,
    submitted_form_token,
    tokens_match,
)
from dbdash.errors import register_error_handlers
from dbdash.logging import configure_logging, get_logger
from dbdash.web import router as web_router

configure_logging()
logger = get_logger(__name__)
warn_insecure_service_urls(settings)

app = FastAPI(title="dbdash")
register_error_handlers(app)

_CSRF_PROTECTED_PATHS = ["/admin/"]
_CSRF_EXEMPT_PATHS = ["/health", "/static/"]
_REQUEST_ID_HEADER = "X-Request-ID"


def _csrf_forbidden(message: str) -> HTMLResponse:
    logger.warning("CSRF check failed: %s", message)
    return HTMLResponse(
        content=f"<h1>403 Forbidden</h1><p>{message}</p>",
        status_code=403,
    )


@app.middleware("http")
async def csrf_middleware(request: Request, call_next):
    """
    CSRF protection middleware using double-submit cookie pattern.

    For GET requests: Sets CSRF cookie if not present.
    For POST/PUT/PATCH/DELETE on protected paths: Validates CSRF token.
    """
    path = request.url.path
    method = request.method.upper()

    if any(path.startswith(exempt) for exempt in _CSRF_EXEMPT_PATHS):
        return await call_next(request)
    if not any(path.startswith(protected) for protected in _CSRF_PROTECTED_PATHS):
        return await call_next(request)

    cookie_token = request.cookies.get(CSRF_COOKIE_NAME)
    generated_token: str | None = None
    if not cookie_token:
        generated_token = generate_csrf_token()
        request.state.csrf_token = generated_token
    else:
        request.state.csrf_token = cookie_token

    if method in ("POST", "PUT", "DELETE", "PATCH"):
        if not cookie_token:
            return _csrf_forbidden("CSRF token missing. Please refresh the page and try again.")

        header_token = request.headers.get(CSRF_HEADER_NAME)
        if header_token:
            if not tokens_match(cookie_token, header_token):
                return _csrf_forbidden("CSRF token invalid. Please refresh the page and try again.")
        else:
            content_type = request.headers.get("content-type", "")
            if "application/x-www-form-urlencoded" not in content_type:
                return _csrf_forbidden("CSRF token missing. Please refresh the page and try again.")
            body = await request.body()
            if not tokens_match(cookie_token, submitted_form_token(body)):
                return _csrf_forbidden("CSRF token invalid. Please refresh the page and try again.")

            # Replay the consumed body for downstream handlers
            async def receive():
                return {"type": "http.request", "body": body, "more_body": False}

            request = Request(scope=request.scope, receive=receive)

    response = await call_next(request)

    if generated_token:
        set_csrf_cookie(response, generated_token, request)

    return response


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    request_id = request.headers.get(_REQUEST_ID_HEADER) or uuid.uuid4().hex
    request.state.request_id = request_id
    response: Response = await call_next(request)
    response.headers[_REQUEST_ID_HEADER] = request_id
    return response


@app.get("/health")
def health():
    return {"status": "ok"}


app.include_router(web_router)

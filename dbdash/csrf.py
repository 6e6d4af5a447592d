"""CSRF protection utilities using double-submit cookie pattern."""

import secrets
from urllib.parse import parse_qs

from fastapi import Request
from starlette.responses import Response

from dbdash.config import settings

CSRF_TOKEN_NAME = "_csrf_token"
CSRF_COOKIE_NAME = "csrf_token"
CSRF_HEADER_NAME = "X-CSRF-Token"
CSRF_TOKEN_LENGTH = 32


def generate_csrf_token() -> str:
    """Generate a cryptographically secure CSRF token."""
    return secrets.token_urlsafe(CSRF_TOKEN_LENGTH)


def get_csrf_token(request: Request) -> str:
    """Token for templates: the one the middleware bound, else the cookie."""
    token = getattr(request.state, "csrf_token", None) or request.cookies.get(CSRF_COOKIE_NAME)
    return token or generate_csrf_token()


def _is_https_request(request: Request | None) -> bool:
    """Return True when request is HTTPS (directly or via proxy header)."""
    if not request:
        return False
    forwarded_proto = request.headers.get("x-forwarded-proto", "")
    if forwarded_proto:
        return forwarded_proto.split(",")[0].strip().lower() == "https"
    return request.url.scheme == "https"


def set_csrf_cookie(response: Response, token: str, request: Request | None = None) -> None:
    """Set CSRF token in a secure cookie."""
    secure_cookie = settings.secure_cookies and _is_https_request(request)
    response.set_cookie(
        key=CSRF_COOKIE_NAME,
        value=token,
        httponly=False,  # Must be readable by JS for fetch
        samesite="strict",
        secure=secure_cookie,
        max_age=3600 * 24,  # 24 hours
    )


def submitted_form_token(body: bytes) -> str | None:
    """Extract the CSRF token from an urlencoded form body."""
    form_data = parse_qs(body.decode("utf-8", errors="ignore"))
    values = form_data.get(CSRF_TOKEN_NAME)
    return values[0] if values else None


def tokens_match(cookie_token: str | None, submitted: str | None) -> bool:
    if not cookie_token or not submitted:
        return False
    return secrets.compare_digest(cookie_token, submitted)

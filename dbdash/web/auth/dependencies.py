"""Web authentication dependencies for cookie-based auth with redirects.

Sessions are issued and validated by the backend. The dashboard only carries
the operator's token through to it; a rejected token surfaces as a backend
error on the first call.
"""

from urllib.parse import quote

from fastapi import Request

from dbdash.config import settings


class AuthenticationRequired(Exception):
    """Raised when authentication is required but not provided."""

    def __init__(self, redirect_url: str = "/auth/login"):
        self.redirect_url = redirect_url
        super().__init__("Authentication required")


def get_session_token(request: Request) -> str | None:
    """Extract session token from cookie or Authorization header."""
    # First check for cookie-based token
    cookie_token = request.cookies.get("session_token")
    if cookie_token:
        return cookie_token

    # Fall back to Bearer token from Authorization header (for API calls)
    auth_header = request.headers.get("authorization")
    if auth_header:
        parts = auth_header.split(" ", 1)
        if len(parts) == 2 and parts[0].lower() == "bearer" and parts[1].strip():
            return parts[1].strip()

    return None


def require_web_auth(request: Request) -> str:
    """Require a session token for web routes.

    Raises AuthenticationRequired if none is present; the error handler
    redirects to the login page with a ``next`` parameter.
    """
    token = get_session_token(request)
    if not token:
        next_url = str(request.url.path)
        if request.url.query:
            next_url += f"?{request.url.query}"
        raise AuthenticationRequired(f"{settings.login_url}?next={quote(next_url)}")

    request.state.session_token = token
    return token

import ipaddress
import logging
import os
import urllib.parse

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

load_dotenv()

logger = logging.getLogger(__name__)

_SERVICE_URL_FIELDS = ("backend_url",)


def _env_list(name: str, default: str) -> tuple[str, ...]:
    raw = os.getenv(name, default)
    return tuple(item.strip() for item in raw.split(",") if item.strip())


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("true", "1", "yes", "on")


class Settings(BaseModel):
    # Backend contract
    backend_url: str = Field(
        default=os.getenv("DBDASH_BACKEND_URL", "http://localhost:8000/api")
    )
    backend_timeout: float = Field(
        default=float(os.getenv("DBDASH_BACKEND_TIMEOUT", "30"))
    )

    # Pagination
    default_page_limit: int = Field(
        default=int(os.getenv("DBDASH_DEFAULT_PAGE_LIMIT", "50"))
    )
    page_limit_choices: tuple[int, ...] = Field(
        default=tuple(
            int(value) for value in _env_list("DBDASH_PAGE_LIMIT_CHOICES", "10,25,50,100")
        )
    )

    # Table and editor conventions
    table_column_limit: int = Field(
        default=int(os.getenv("DBDASH_TABLE_COLUMN_LIMIT", "8"))
    )
    long_text_markers: tuple[str, ...] = Field(
        default=_env_list("DBDASH_LONG_TEXT_MARKERS", "description,content,notes")
    )
    strict_numeric_input: bool = Field(
        default=_env_bool("DBDASH_STRICT_NUMERIC_INPUT", "false")
    )

    # Display
    display_timezone: str = Field(default=os.getenv("DBDASH_DISPLAY_TIMEZONE", "UTC"))
    datetime_format: str = Field(
        default=os.getenv("DBDASH_DATETIME_FORMAT", "%Y-%m-%d %H:%M:%S")
    )

    # Web sessions
    view_session_ttl: int = Field(default=int(os.getenv("DBDASH_VIEW_SESSION_TTL", "1800")))
    login_url: str = Field(default=os.getenv("DBDASH_LOGIN_URL", "/auth/login"))
    secure_cookies: bool = Field(default=_env_bool("SECURE_COOKIES", "true"))

    @field_validator("default_page_limit", "table_column_limit", "view_session_ttl")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be a positive integer")
        return v

    @field_validator("page_limit_choices")
    @classmethod
    def validate_limit_choices(cls, v: tuple[int, ...]) -> tuple[int, ...]:
        if any(choice < 1 for choice in v):
            raise ValueError("page limit choices must be positive integers")
        return v

    class Config:
        frozen = True


settings = Settings()


def _is_loopback_host(hostname: str) -> bool:
    if hostname == "localhost":
        return True
    try:
        return ipaddress.ip_address(hostname).is_loopback
    except ValueError:
        return False


def warn_insecure_service_urls(config: Settings) -> None:
    """Log a warning for plain-http service URLs that leave the host."""
    for name in _SERVICE_URL_FIELDS:
        parsed = urllib.parse.urlparse(getattr(config, name) or "")
        if parsed.scheme != "http" or not parsed.hostname:
            continue
        if _is_loopback_host(parsed.hostname):
            continue
        logger.warning(
            "Insecure http:// URL configured for %s; session tokens are sent in clear text",
            name,
        )

"""In-memory registry of database dashboard views, one per operator session."""

from __future__ import annotations

import hashlib
from collections.abc import Callable
from time import monotonic

from dbdash.config import settings
from dbdash.logging import get_logger
from dbdash.services.backend_client import BackendClient
from dbdash.services.database_view import DatabaseView

logger = get_logger(__name__)

ClientFactory = Callable[[str], BackendClient]


def _session_key(session_token: str) -> str:
    return hashlib.sha256(session_token.encode("utf-8")).hexdigest()


def default_client_factory(session_token: str) -> BackendClient:
    return BackendClient(auth_token=session_token)


class ViewSessionRegistry:
    """Keeps each operator's view between requests and drops idle ones.

    Views are keyed by a digest of the session token, so the raw token never
    sits in the registry's keys.
    """

    def __init__(
        self,
        *,
        ttl_seconds: int | None = None,
        client_factory: ClientFactory | None = None,
        clock: Callable[[], float] = monotonic,
    ):
        self.ttl_seconds = ttl_seconds or settings.view_session_ttl
        self.client_factory = client_factory or default_client_factory
        self._clock = clock
        self._views: dict[str, tuple[DatabaseView, float]] = {}

    def __len__(self) -> int:
        return len(self._views)

    def _evict_expired(self, now: float) -> None:
        expired = [
            key for key, (_, touched) in self._views.items() if now - touched > self.ttl_seconds
        ]
        for key in expired:
            del self._views[key]
        if expired:
            logger.debug("Evicted %d idle database views", len(expired))

    def get_or_create(self, session_token: str) -> DatabaseView:
        now = self._clock()
        self._evict_expired(now)
        key = _session_key(session_token)
        entry = self._views.get(key)
        view = entry[0] if entry else DatabaseView(self.client_factory(session_token))
        self._views[key] = (view, now)
        return view

    def clear(self) -> None:
        self._views.clear()


view_sessions = ViewSessionRegistry()

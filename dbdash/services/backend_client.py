"""HTTP client for the backend model administration API.

The backend exposes every browsable entity under ``/models``. This client only
knows the transport; shaping responses into schemas happens in the catalog and
record services.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx

from dbdash.config import settings
from dbdash.logging import get_logger

logger = get_logger(__name__)


class BackendError(Exception):
    """Base exception for backend failures (network, auth, server)."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        detail: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        # Human-readable text supplied by the backend, when it sent one.
        self.detail = detail


class RecordNotFoundError(BackendError):
    """The backend answered 404 for a model or record."""


def _error_message(response: httpx.Response) -> str | None:
    try:
        payload = response.json()
    except ValueError:
        return None
    if isinstance(payload, dict):
        for key in ("message", "detail", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return None


def _segment(value: object) -> str:
    return quote(str(value), safe="")


class BackendClient:
    """Async HTTP client for the ``/models`` contract.

    A fresh ``httpx.AsyncClient`` is opened per call so a client instance can
    be shared by concurrent requests of one view session.
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        auth_token: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.backend_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.backend_timeout
        self.headers = {"Accept": "application/json"}
        if auth_token:
            self.headers["Authorization"] = f"Bearer {auth_token}"
        self._transport = transport

    async def _request(
        self,
        method: str,
        path: str,
        params: dict | None = None,
        json_data: dict | None = None,
    ) -> httpx.Response:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                headers=self.headers,
                transport=self._transport,
            ) as client:
                response = await client.request(method, url, params=params, json=json_data)
                response.raise_for_status()
                return response
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            detail = _error_message(exc.response)
            message = detail or f"API error: {status_code}"
            if status_code == 404:
                logger.warning("Backend not found: %s %s", method, path)
                raise RecordNotFoundError(message, status_code=404, detail=detail) from exc
            logger.error(
                "Backend API error: %s %s -> %s - %s",
                method,
                path,
                status_code,
                exc.response.text,
            )
            raise BackendError(message, status_code=status_code, detail=detail) from exc
        except httpx.RequestError as exc:
            logger.error("Backend request error: %s %s - %s", method, path, exc)
            raise BackendError(f"Request error: {exc}") from exc

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise BackendError("Invalid JSON response from backend") from exc

    # -------------------------------------------------------------------------
    # Catalog
    # -------------------------------------------------------------------------

    async def get_models(self) -> Any:
        response = await self._request("GET", "/models")
        return self._json(response)

    async def get_model_fields(self, model: str) -> Any:
        response = await self._request("GET", f"/models/{_segment(model)}/fields")
        return self._json(response)

    # -------------------------------------------------------------------------
    # Records
    # -------------------------------------------------------------------------

    async def get_model_records(self, model: str, *, page: int, limit: int) -> Any:
        response = await self._request(
            "GET",
            f"/models/{_segment(model)}/records",
            params={"page": page, "limit": limit},
        )
        return self._json(response)

    async def get_model_record(self, model: str, record_id: object) -> Any:
        response = await self._request(
            "GET", f"/models/{_segment(model)}/records/{_segment(record_id)}"
        )
        return self._json(response)

    async def create_model_record(self, model: str, payload: dict) -> Any:
        response = await self._request(
            "POST", f"/models/{_segment(model)}/records", json_data=payload
        )
        return self._json(response)

    async def update_model_record(self, model: str, record_id: object, payload: dict) -> Any:
        response = await self._request(
            "PATCH",
            f"/models/{_segment(model)}/records/{_segment(record_id)}",
            json_data=payload,
        )
        return self._json(response)

    async def delete_model_record(self, model: str, record_id: object) -> None:
        await self._request(
            "DELETE", f"/models/{_segment(model)}/records/{_segment(record_id)}"
        )

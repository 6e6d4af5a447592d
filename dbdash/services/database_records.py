"""Generic paginated listing and mutations for any backend model."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from dbdash.logging import get_logger
from dbdash.schemas.database import (
    CREATE_EXCLUDED_KEYS,
    UPDATE_EXCLUDED_KEYS,
    RecordPage,
)
from dbdash.services.backend_client import BackendClient, BackendError

logger = get_logger(__name__)


class ConfirmationRequired(Exception):
    """Raised when a delete is attempted without a matching confirmation."""


@dataclass(frozen=True)
class DeleteConfirmation:
    """Proof that the operator explicitly confirmed deleting one record."""

    model: str
    record_id: str

    def covers(self, model: str, record_id: object) -> bool:
        return self.model == model and self.record_id == str(record_id)


def _as_record(data: Any) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise BackendError("Invalid record from backend")
    return data


def sanitize_create_payload(payload: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in payload.items() if key not in CREATE_EXCLUDED_KEYS}


def sanitize_update_payload(payload: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in payload.items() if key not in UPDATE_EXCLUDED_KEYS}


async def list_records(client: BackendClient, model: str, page: int, limit: int) -> RecordPage:
    """Fetch one page of ``model``. Inputs are passed through unclamped."""
    data = await client.get_model_records(model, page=page, limit=limit)
    if not isinstance(data, dict):
        raise BackendError("Invalid record page from backend")
    records = data.get("data") or []
    if not isinstance(records, list) or not all(isinstance(r, dict) for r in records):
        raise BackendError("Invalid record page from backend")
    try:
        total = max(int(data.get("total") or 0), 0)
    except (TypeError, ValueError) as exc:
        raise BackendError("Invalid record total from backend") from exc
    return RecordPage(records=records, total=total, page=max(page, 1), limit=max(limit, 1))


async def get_record(client: BackendClient, model: str, record_id: object) -> dict[str, Any]:
    return _as_record(await client.get_model_record(model, record_id))


async def create_record(
    client: BackendClient, model: str, payload: dict[str, Any]
) -> dict[str, Any]:
    created = _as_record(
        await client.create_model_record(model, sanitize_create_payload(payload))
    )
    logger.info("record_created model=%s id=%s", model, created.get("id"))
    return created


async def update_record(
    client: BackendClient, model: str, record_id: object, payload: dict[str, Any]
) -> dict[str, Any]:
    updated = _as_record(
        await client.update_model_record(model, record_id, sanitize_update_payload(payload))
    )
    logger.info("record_updated model=%s id=%s", model, record_id)
    return updated


async def delete_record(
    client: BackendClient,
    model: str,
    record_id: object,
    *,
    confirmation: DeleteConfirmation | None,
) -> None:
    """Delete one record. There is no undo, so a confirmation is mandatory."""
    if confirmation is None or not confirmation.covers(model, record_id):
        raise ConfirmationRequired(f"Delete of {model} {record_id} was not confirmed")
    await client.delete_model_record(model, record_id)
    logger.info("record_deleted model=%s id=%s", model, record_id)

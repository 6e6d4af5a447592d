"""Model catalog and field schema lookups for the database dashboard."""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from dbdash.logging import get_logger
from dbdash.schemas.database import FieldDescriptor, FieldType
from dbdash.services.backend_client import BackendClient, BackendError

logger = get_logger(__name__)


def _parse_field(raw: Any) -> FieldDescriptor:
    if not isinstance(raw, dict):
        raise BackendError("Invalid field descriptor from backend")
    declared = raw.get("type")
    declared_str = str(declared) if declared is not None else None
    try:
        return FieldDescriptor(
            name=str(raw.get("name") or ""),
            type=FieldType.from_declared(declared_str),
            nullable=bool(raw.get("nullable", True)),
            declared_type=declared_str,
        )
    except ValidationError as exc:
        raise BackendError("Invalid field descriptor from backend") from exc


async def list_models(client: BackendClient) -> list[str]:
    """Return the browsable model names in backend order."""
    data = await client.get_models()
    if data is None:
        return []
    if not isinstance(data, list):
        raise BackendError("Invalid model list from backend")
    return [str(name) for name in data if name is not None and str(name)]


async def get_fields(client: BackendClient, model: str) -> list[FieldDescriptor]:
    """Return the ordered field descriptors of ``model``.

    Order is taken verbatim from the backend; duplicates keep their first
    position.
    """
    data = await client.get_model_fields(model)
    raw_fields = data.get("fields") if isinstance(data, dict) else None
    if raw_fields is None:
        return []
    if not isinstance(raw_fields, list):
        raise BackendError("Invalid field list from backend")

    fields: list[FieldDescriptor] = []
    seen: set[str] = set()
    for raw in raw_fields:
        field = _parse_field(raw)
        if field.name in seen:
            logger.warning("Duplicate field %s on model %s ignored", field.name, model)
            continue
        seen.add(field.name)
        fields.append(field)
    return fields

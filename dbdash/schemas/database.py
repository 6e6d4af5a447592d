from __future__ import annotations

import math
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Keys the backend owns; never sent in mutation payloads.
CREATE_EXCLUDED_KEYS = frozenset({"id", "created_at", "updated_at"})
UPDATE_EXCLUDED_KEYS = frozenset({"id", "created_at"})


class FieldType(str, Enum):
    string = "string"
    int = "int"
    float = "float"
    boolean = "boolean"
    datetime = "datetime"
    other = "other"

    @classmethod
    def from_declared(cls, declared: str | None) -> FieldType:
        """Map a backend type name onto the closed set; unknown names become ``other``."""
        token = (declared or "").strip().lower()
        try:
            return cls(token)
        except ValueError:
            return cls.other


class FieldDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    type: FieldType
    nullable: bool = True
    declared_type: str | None = None

    @property
    def type_label(self) -> str:
        return self.declared_type or self.type.value


class RecordPage(BaseModel):
    records: list[dict[str, Any]] = Field(default_factory=list)
    total: int = Field(default=0, ge=0)
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=50, ge=1)

    @field_validator("records", mode="before")
    @classmethod
    def drop_null_records(cls, v: Any) -> Any:
        return v or []

    @property
    def total_pages(self) -> int:
        return total_pages(self.total, self.limit)


def total_pages(total: int, limit: int) -> int:
    if limit < 1:
        raise ValueError("limit must be a positive integer")
    return math.ceil(max(total, 0) / limit)


def clamp_page(page: int, total: int, limit: int) -> int:
    """Clamp ``page`` into ``[1, max(1, total_pages)]``."""
    return min(max(page, 1), max(1, total_pages(total, limit)))

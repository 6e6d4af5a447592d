"""Type-driven editor selection and value conversion for record forms.

Each field descriptor maps to a ``FieldEditor`` describing which input control
to render and how to convert between the stored value and the control state
(the string a browser submits). The dispatch table covers every ``FieldType``
and is checked when this module is imported.
"""

from __future__ import annotations

import json
import math
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from dbdash.config import settings
from dbdash.schemas.database import FieldDescriptor, FieldType
from dbdash.services.value_format import display_timezone, parse_iso_datetime, to_display_zone

_INT_PREFIX = re.compile(r"^\s*([+-]?\d+)")
_INT_STRICT = re.compile(r"^\s*[+-]?\d+\s*$")
_FLOAT_PREFIX = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")
_FLOAT_STRICT = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?\s*$")

DATETIME_CONTROL_FORMAT = "%Y-%m-%dT%H:%M"
TEXTAREA_ROWS = 4


class FieldValueError(ValueError):
    """A submitted control value cannot be stored for its field."""

    def __init__(self, field_name: str, message: str):
        super().__init__(f"{field_name}: {message}")
        self.field_name = field_name
        self.message = message


class ControlKind(str, Enum):
    select = "select"
    datetime_local = "datetime-local"
    number = "number"
    textarea = "textarea"
    text = "text"


@dataclass(frozen=True)
class EditorOptions:
    long_text_markers: tuple[str, ...] = ()
    strict_numeric: bool = False

    @classmethod
    def from_settings(cls) -> EditorOptions:
        return cls(
            long_text_markers=tuple(settings.long_text_markers),
            strict_numeric=settings.strict_numeric_input,
        )


@dataclass(frozen=True)
class FieldEditor:
    field: FieldDescriptor
    control: ControlKind
    to_display: Callable[[Any], str]
    from_control: Callable[[str | None], Any]
    choices: tuple[tuple[str, str], ...] = ()
    step: str | None = None
    rows: int | None = None

    @property
    def name(self) -> str:
        return self.field.name


def is_long_text(name: str, markers: Iterable[str]) -> bool:
    return any(marker and marker in name for marker in markers)


# ---------------------------------------------------------------------------
# boolean
# ---------------------------------------------------------------------------

BOOLEAN_CHOICES = (("", "Select value"), ("true", "True"), ("false", "False"))


def _boolean_to_display(value: Any) -> str:
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower()
    return ""


def _build_boolean(field: FieldDescriptor, options: EditorOptions) -> FieldEditor:
    def from_control(raw: str | None) -> bool | None:
        token = (raw or "").strip().lower()
        if token == "true":
            return True
        if token == "false":
            return False
        if token == "":
            return None
        raise FieldValueError(field.name, "must be True or False")

    return FieldEditor(
        field=field,
        control=ControlKind.select,
        to_display=_boolean_to_display,
        from_control=from_control,
        choices=BOOLEAN_CHOICES,
    )


# ---------------------------------------------------------------------------
# datetime
# ---------------------------------------------------------------------------


def _datetime_to_display(value: Any) -> str:
    if isinstance(value, datetime):
        parsed: datetime | None = value
    elif isinstance(value, str) and value.strip():
        parsed = parse_iso_datetime(value)
    else:
        parsed = None
    if parsed is None:
        return ""
    return to_display_zone(parsed).strftime(DATETIME_CONTROL_FORMAT)


def _build_datetime(field: FieldDescriptor, options: EditorOptions) -> FieldEditor:
    def from_control(raw: str | None) -> str | None:
        text = (raw or "").strip()
        if not text:
            return None
        parsed = parse_iso_datetime(text)
        if parsed is None:
            raise FieldValueError(field.name, "is not a valid date and time")
        if parsed.tzinfo is None:
            # A wall time repeated when clocks go back resolves to its first occurrence.
            parsed = parsed.replace(tzinfo=display_timezone(), fold=0)
        instant = parsed.astimezone(timezone.utc).replace(second=0, microsecond=0)
        return instant.strftime("%Y-%m-%dT%H:%M:%SZ")

    return FieldEditor(
        field=field,
        control=ControlKind.datetime_local,
        to_display=_datetime_to_display,
        from_control=from_control,
    )


# ---------------------------------------------------------------------------
# int / float
# ---------------------------------------------------------------------------


def _number_to_display(value: Any) -> str:
    if value is None or isinstance(value, bool):
        return ""
    return str(value)


def _build_int(field: FieldDescriptor, options: EditorOptions) -> FieldEditor:
    def from_control(raw: str | None) -> int | None:
        text = raw or ""
        if options.strict_numeric:
            if not text.strip() and field.nullable:
                return None
            if not _INT_STRICT.match(text):
                raise FieldValueError(field.name, "must be a whole number")
            return int(text.strip())
        # Unparsable input stores 0 rather than failing the submit.
        match = _INT_PREFIX.match(text)
        return int(match.group(1)) if match else 0

    return FieldEditor(
        field=field,
        control=ControlKind.number,
        to_display=_number_to_display,
        from_control=from_control,
        step="1",
    )


def _build_float(field: FieldDescriptor, options: EditorOptions) -> FieldEditor:
    def from_control(raw: str | None) -> float | None:
        text = raw or ""
        if options.strict_numeric:
            if not text.strip() and field.nullable:
                return None
            if not _FLOAT_STRICT.match(text):
                raise FieldValueError(field.name, "must be a number")
            value = float(text.strip())
            if not math.isfinite(value):
                raise FieldValueError(field.name, "must be a finite number")
            return value
        match = _FLOAT_PREFIX.match(text)
        if not match:
            return 0.0
        value = float(match.group(1))
        return value if math.isfinite(value) else 0.0

    return FieldEditor(
        field=field,
        control=ControlKind.number,
        to_display=_number_to_display,
        from_control=from_control,
        step="any",
    )


# ---------------------------------------------------------------------------
# string / other
# ---------------------------------------------------------------------------


def _text_to_display(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str, ensure_ascii=False, separators=(",", ":"))
    return str(value)


def _text_from_control(raw: str | None) -> str:
    return raw if raw is not None else ""


def _build_string(field: FieldDescriptor, options: EditorOptions) -> FieldEditor:
    if is_long_text(field.name, options.long_text_markers):
        return FieldEditor(
            field=field,
            control=ControlKind.textarea,
            to_display=_text_to_display,
            from_control=_text_from_control,
            rows=TEXTAREA_ROWS,
        )
    return FieldEditor(
        field=field,
        control=ControlKind.text,
        to_display=_text_to_display,
        from_control=_text_from_control,
    )


def _build_other(field: FieldDescriptor, options: EditorOptions) -> FieldEditor:
    return FieldEditor(
        field=field,
        control=ControlKind.text,
        to_display=_text_to_display,
        from_control=_text_from_control,
    )


_BUILDERS: dict[FieldType, Callable[[FieldDescriptor, EditorOptions], FieldEditor]] = {
    FieldType.boolean: _build_boolean,
    FieldType.datetime: _build_datetime,
    FieldType.int: _build_int,
    FieldType.float: _build_float,
    FieldType.string: _build_string,
    FieldType.other: _build_other,
}

_UNHANDLED = set(FieldType) - set(_BUILDERS)
if _UNHANDLED:
    raise RuntimeError(
        f"No field editor registered for: {sorted(t.value for t in _UNHANDLED)}"
    )


def build_editor(field: FieldDescriptor, options: EditorOptions | None = None) -> FieldEditor:
    return _BUILDERS[field.type](field, options or EditorOptions.from_settings())


def build_editors(
    fields: Iterable[FieldDescriptor],
    *,
    exclude: Iterable[str] = (),
    options: EditorOptions | None = None,
) -> list[FieldEditor]:
    excluded = set(exclude)
    opts = options or EditorOptions.from_settings()
    return [build_editor(f, opts) for f in fields if f.name not in excluded]


def display_values(editors: Iterable[FieldEditor], record: Mapping[str, Any]) -> dict[str, str]:
    """Control state for each editor, seeded from ``record``."""
    return {editor.name: editor.to_display(record.get(editor.name)) for editor in editors}


def convert_form(
    editors: Iterable[FieldEditor],
    form: Mapping[str, Any],
    *,
    omit_blank: bool = False,
) -> tuple[dict[str, Any], dict[str, str]]:
    """Convert submitted control state into a payload.

    Returns ``(values, errors)``; ``errors`` maps field names to messages.
    Fields absent from ``form`` are skipped. With ``omit_blank`` a blank
    submission is also skipped so the backend applies its own default.
    """
    values: dict[str, Any] = {}
    errors: dict[str, str] = {}
    for editor in editors:
        if editor.name not in form:
            continue
        raw = form.get(editor.name)
        raw_text = raw if isinstance(raw, str) else ("" if raw is None else str(raw))
        if omit_blank and not raw_text.strip():
            continue
        try:
            values[editor.name] = editor.from_control(raw_text)
        except FieldValueError as exc:
            errors[editor.name] = exc.message
    return values, errors

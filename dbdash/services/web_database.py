"""Service helpers for the admin database dashboard web routes."""

from __future__ import annotations

from typing import Any

from starlette.datastructures import FormData

from dbdash.config import settings
from dbdash.csrf import CSRF_TOKEN_NAME
from dbdash.services.database_view import (
    ConfirmDelete,
    CreateOpen,
    DatabaseView,
    EditOpen,
    Loading,
    NoModelSelected,
    Ready,
    ViewOpen,
)
from dbdash.services.field_editors import FieldEditor
from dbdash.services.value_format import format_value


def form_values(form: FormData) -> dict[str, str]:
    """Submitted control state, minus the CSRF token."""
    values: dict[str, str] = {}
    for key, value in form.multi_items():
        if key == CSRF_TOKEN_NAME:
            continue
        values[key] = value if isinstance(value, str) else ""
    return values


def _form_int(form: FormData, key: str) -> int | None:
    value = form.get(key)
    if not isinstance(value, str):
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def parse_page_form(form: FormData) -> tuple[int | None, int | None]:
    return _form_int(form, "page"), _form_int(form, "limit")


def _input_context(
    editor: FieldEditor,
    form: dict[str, str],
    errors: dict[str, str],
    *,
    mark_required: bool,
) -> dict[str, object]:
    return {
        "name": editor.name,
        "control": editor.control.value,
        "value": form.get(editor.name, ""),
        "choices": editor.choices,
        "step": editor.step,
        "rows": editor.rows,
        "type_label": editor.field.type_label,
        "required": mark_required and not editor.field.nullable,
        "error": errors.get(editor.name),
    }


def _dialog_context(view: DatabaseView) -> dict[str, object] | None:
    state = view.state
    if isinstance(state, CreateOpen):
        return {
            "kind": "create",
            "inputs": [
                _input_context(editor, state.form, state.errors, mark_required=True)
                for editor in view.create_editors()
            ],
            "pending": view.is_pending("create"),
        }
    if isinstance(state, EditOpen):
        return {
            "kind": "edit",
            "record_id": state.record_id,
            "inputs": [
                _input_context(editor, state.form, state.errors, mark_required=False)
                for editor in view.edit_editors()
            ],
            "pending": view.is_pending(f"update:{state.record_id}"),
        }
    if isinstance(state, ViewOpen):
        return {
            "kind": "view",
            "record_id": state.record.get("id"),
            "items": [
                {"name": f.name, "value": format_value(state.record.get(f.name))}
                for f in state.ready.fields
            ],
        }
    if isinstance(state, ConfirmDelete):
        return {
            "kind": "confirm_delete",
            "record_id": state.record_id,
            "pending": view.is_pending(f"delete:{state.record_id}"),
        }
    return None


def _state_name(view: DatabaseView) -> str:
    state = view.state
    if isinstance(state, NoModelSelected):
        return "no_model"
    if isinstance(state, Loading):
        return "loading"
    if isinstance(state, Ready):
        return "ready"
    return "dialog"


def page_context(view: DatabaseView) -> dict[str, Any]:
    """Everything the dashboard template renders for the current state."""
    ready = view.ready
    context: dict[str, Any] = {
        "models": view.models,
        "selected_model": view.selected_model,
        "state": _state_name(view),
        "busy": view.busy,
        "loading": isinstance(view.state, Loading) or view.busy,
        "limit": view.limit,
        "limit_choices": sorted(set(settings.page_limit_choices) | {view.limit}),
        "columns": [],
        "rows": [],
        "total": 0,
        "page": 1,
        "total_pages": 0,
        "show_pager": False,
        "has_prev": False,
        "has_next": False,
        "dialog": _dialog_context(view),
        "notifications": view.drain_notifications(),
    }
    if ready is None:
        return context

    columns = list(ready.fields[: settings.table_column_limit])
    page = ready.page
    total_pages = page.total_pages
    context.update(
        {
            "columns": [f.name for f in columns],
            "rows": [
                {
                    "id": record.get("id"),
                    "cells": [format_value(record.get(f.name)) for f in columns],
                }
                for record in page.records
            ],
            "total": page.total,
            "page": ready.target.page,
            "total_pages": total_pages,
            "show_pager": total_pages > 1,
            "has_prev": ready.target.page > 1,
            "has_next": ready.target.page < total_pages,
        }
    )
    return context

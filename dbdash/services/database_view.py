"""State machine behind the database dashboard view.

The view is always in exactly one of the states below. Dialog states carry the
``Ready`` snapshot they return to, so two dialogs can never be open together.

    NoModelSelected -> Loading -> Ready -> {CreateOpen, EditOpen, ViewOpen,
    ConfirmDelete} -> Ready

Every field and page fetch is tagged with the target it was issued for plus a
generation number. A response whose tag no longer matches the current target
is dropped, so a slow answer for a previously selected model can never
overwrite the newer one.
"""

from __future__ import annotations

import asyncio
import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Union

from dbdash.config import settings
from dbdash.logging import get_logger
from dbdash.schemas.database import (
    CREATE_EXCLUDED_KEYS,
    UPDATE_EXCLUDED_KEYS,
    FieldDescriptor,
    RecordPage,
    clamp_page,
)
from dbdash.services import database_catalog, database_records
from dbdash.services.backend_client import BackendClient, BackendError
from dbdash.services.database_records import DeleteConfirmation
from dbdash.services.field_editors import (
    EditorOptions,
    FieldEditor,
    build_editors,
    convert_form,
    display_values,
)

logger = get_logger(__name__)

# Bounded so a backend whose total keeps shrinking cannot keep us re-fetching.
MAX_CLAMP_REFETCHES = 3


class ViewStateError(Exception):
    """The requested transition is not legal from the current state."""


@dataclass(frozen=True)
class PageTarget:
    model: str
    page: int
    limit: int


@dataclass(frozen=True)
class Notification:
    level: str
    message: str


@dataclass(frozen=True)
class NoModelSelected:
    pass


@dataclass(frozen=True)
class Loading:
    target: PageTarget


@dataclass(frozen=True)
class Ready:
    target: PageTarget
    fields: tuple[FieldDescriptor, ...]
    page: RecordPage

    @property
    def model(self) -> str:
        return self.target.model

    def find_record(self, record_id: object) -> dict[str, Any] | None:
        wanted = str(record_id)
        for record in self.page.records:
            if str(record.get("id")) == wanted:
                return record
        return None


@dataclass(frozen=True)
class CreateOpen:
    ready: Ready
    form: dict[str, str] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class EditOpen:
    ready: Ready
    record: dict[str, Any]
    form: dict[str, str] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)
    # Control state as first shown; only controls that differ from it are saved.
    initial: dict[str, str] = field(default_factory=dict)

    @property
    def record_id(self) -> Any:
        return self.record.get("id")


@dataclass(frozen=True)
class ViewOpen:
    ready: Ready
    record: dict[str, Any]


@dataclass(frozen=True)
class ConfirmDelete:
    ready: Ready
    record_id: str
    confirmation: DeleteConfirmation


DialogState = Union[CreateOpen, EditOpen, ViewOpen, ConfirmDelete]
ViewState = Union[NoModelSelected, Loading, Ready, DialogState]
DIALOG_STATES = (CreateOpen, EditOpen, ViewOpen, ConfirmDelete)


def _failure_text(exc: BackendError, fallback: str) -> str:
    return exc.detail or fallback


def _control_state(editors: list[FieldEditor], form: Mapping[str, Any]) -> dict[str, str]:
    state: dict[str, str] = {}
    for editor in editors:
        raw = form.get(editor.name)
        state[editor.name] = raw if isinstance(raw, str) else ("" if raw is None else str(raw))
    return state


def _changed_controls(form: Mapping[str, Any], initial: Mapping[str, str]) -> dict[str, Any]:
    """Submitted controls whose value differs from what the dialog first showed."""
    changed: dict[str, Any] = {}
    for name, raw in form.items():
        text = raw if isinstance(raw, str) else ("" if raw is None else str(raw))
        if name not in initial or text != initial[name]:
            changed[name] = raw
    return changed


class DatabaseView:
    """One operator's database dashboard."""

    def __init__(
        self,
        client: BackendClient,
        *,
        limit: int | None = None,
        editor_options: EditorOptions | None = None,
    ):
        self.client = client
        self.editor_options = editor_options or EditorOptions.from_settings()
        self.models: list[str] = []
        self.activated = False
        self._state: ViewState = NoModelSelected()
        self._limit = limit or settings.default_page_limit
        self._target: PageTarget | None = None
        self._selection_generation = 0
        self._page_generation = 0
        self._inflight = 0
        self._pending: set[str] = set()
        self._notifications: list[Notification] = []

    # -------------------------------------------------------------------------
    # Read-only view of the current state
    # -------------------------------------------------------------------------

    @property
    def state(self) -> ViewState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._inflight > 0

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def ready(self) -> Ready | None:
        state = self._state
        if isinstance(state, Ready):
            return state
        if isinstance(state, DIALOG_STATES):
            return state.ready
        return None

    @property
    def selected_model(self) -> str | None:
        state = self._state
        if isinstance(state, Loading):
            return state.target.model
        ready = self.ready
        return ready.model if ready else None

    def is_pending(self, action: str) -> bool:
        return action in self._pending

    def create_editors(self) -> list[FieldEditor]:
        ready = self.ready
        if ready is None:
            return []
        return build_editors(ready.fields, exclude=CREATE_EXCLUDED_KEYS, options=self.editor_options)

    def edit_editors(self) -> list[FieldEditor]:
        ready = self.ready
        if ready is None:
            return []
        return build_editors(ready.fields, exclude=UPDATE_EXCLUDED_KEYS, options=self.editor_options)

    def notify(self, level: str, message: str) -> None:
        self._notifications.append(Notification(level=level, message=message))

    def drain_notifications(self) -> list[Notification]:
        notes, self._notifications = self._notifications, []
        return notes

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _begin(self) -> None:
        self._inflight += 1

    def _end(self) -> None:
        self._inflight = max(self._inflight - 1, 0)

    def _retarget(self, target: PageTarget) -> int:
        self._page_generation += 1
        self._target = target
        return self._page_generation

    def _is_current_page(self, target: PageTarget, generation: int) -> bool:
        return generation == self._page_generation and target == self._target

    def _is_current_selection(self, model: str, generation: int) -> bool:
        return (
            generation == self._selection_generation
            and self._target is not None
            and self._target.model == model
        )

    def _require_ready(self) -> Ready:
        state = self._state
        if isinstance(state, DIALOG_STATES):
            raise ViewStateError("Close the open dialog first")
        if not isinstance(state, Ready):
            raise ViewStateError("Select a model first")
        return state

    def _replace_ready(self, ready: Ready) -> None:
        state = self._state
        if isinstance(state, Ready):
            self._state = ready
        elif isinstance(state, DIALOG_STATES):
            self._state = dataclasses.replace(state, ready=ready)

    async def _load_fields(self, model: str, generation: int) -> tuple[FieldDescriptor, ...] | None:
        """Fetch fields for ``model``; ``None`` means the answer went stale."""
        try:
            fields = await database_catalog.get_fields(self.client, model)
        except BackendError as exc:
            if not self._is_current_selection(model, generation):
                logger.debug("Dropping stale field error for model %s", model)
                return None
            self.notify("error", _failure_text(exc, "Failed to load model fields"))
            return ()
        if not self._is_current_selection(model, generation):
            logger.debug("Dropping stale fields for model %s", model)
            return None
        return tuple(fields)

    async def _load_page(
        self, target: PageTarget, generation: int
    ) -> tuple[PageTarget, RecordPage] | None:
        """Fetch ``target``, re-issuing once per clamp when it is out of range.

        Returns the target actually shown with its page, or ``None`` when a
        newer fetch superseded this one.
        """
        for _ in range(MAX_CLAMP_REFETCHES + 1):
            try:
                page = await database_records.list_records(
                    self.client, target.model, target.page, target.limit
                )
            except BackendError as exc:
                if not self._is_current_page(target, generation):
                    logger.debug("Dropping stale page error for %s", target)
                    return None
                self.notify("error", _failure_text(exc, "Failed to load records"))
                empty_target = dataclasses.replace(target, page=1)
                self._target = empty_target
                return empty_target, RecordPage(records=[], total=0, page=1, limit=target.limit)

            if not self._is_current_page(target, generation):
                logger.debug("Dropping stale page for %s", target)
                return None

            clamped = clamp_page(target.page, page.total, target.limit)
            if clamped == target.page:
                return target, page
            logger.info(
                "Page %s of %s out of range, clamping to %s", target.page, target.model, clamped
            )
            target = dataclasses.replace(target, page=clamped)
            generation = self._retarget(target)

        logger.warning("Page for %s kept moving out of range; showing last response", target)
        return target, page

    async def _fetch_target(self, target: PageTarget) -> tuple[PageTarget, RecordPage] | None:
        generation = self._retarget(target)
        self._begin()
        try:
            return await self._load_page(target, generation)
        finally:
            self._end()

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    async def activate(self) -> list[str]:
        """Load the model catalog for this view activation."""
        self._begin()
        try:
            self.models = await database_catalog.list_models(self.client)
        except BackendError as exc:
            self.models = []
            self.notify("error", _failure_text(exc, "Failed to load models"))
            return self.models
        finally:
            self._end()
        self.activated = True
        return self.models

    async def select_model(self, model: str) -> None:
        """Switch to ``model``, discarding everything loaded for the previous one."""
        model = (model or "").strip()
        if not model:
            raise ViewStateError("Select a model")

        self._selection_generation += 1
        selection = self._selection_generation
        target = PageTarget(model=model, page=1, limit=self._limit)
        page_generation = self._retarget(target)
        self._state = Loading(target)

        self._begin()
        try:
            fields, loaded = await asyncio.gather(
                self._load_fields(model, selection),
                self._load_page(target, page_generation),
            )
        finally:
            self._end()

        if fields is None or loaded is None or selection != self._selection_generation:
            return
        shown_target, page = loaded
        self._state = Ready(target=shown_target, fields=fields, page=page)

    async def change_page(self, page: int) -> None:
        ready = self._require_ready()
        if self.busy:
            raise ViewStateError("Please wait for the current request to finish")
        await self._show(dataclasses.replace(ready.target, page=max(int(page), 1)))

    async def change_limit(self, limit: int) -> None:
        ready = self._require_ready()
        if self.busy:
            raise ViewStateError("Please wait for the current request to finish")
        limit = int(limit)
        if limit < 1:
            raise ViewStateError("Page size must be a positive number")
        self._limit = limit
        await self._show(dataclasses.replace(ready.target, limit=limit))

    async def refresh(self) -> None:
        """Re-fetch the current page; the backend is the source of truth."""
        ready = self.ready
        if ready is None:
            return
        await self._show(ready.target)

    async def _show(self, target: PageTarget) -> None:
        loaded = await self._fetch_target(target)
        if loaded is None:
            return
        ready = self.ready
        if ready is None or ready.model != target.model:
            return
        shown_target, page = loaded
        self._replace_ready(Ready(target=shown_target, fields=ready.fields, page=page))

    def open_create(self) -> CreateOpen:
        ready = self._require_ready()
        self._state = CreateOpen(ready=ready)
        return self._state

    def open_edit(self, record_id: object) -> EditOpen | None:
        ready = self._require_ready()
        record = ready.find_record(record_id)
        if record is None:
            self.notify("error", "Record not found")
            return None
        form = display_values(self.edit_editors(), record)
        self._state = EditOpen(ready=ready, record=dict(record), form=form, initial=dict(form))
        return self._state

    async def open_view(self, record_id: object) -> ViewOpen | None:
        ready = self._require_ready()
        self._begin()
        try:
            record = await database_records.get_record(self.client, ready.model, record_id)
        except BackendError as exc:
            if self._state is ready:
                self.notify("error", _failure_text(exc, "Failed to load record"))
            return None
        finally:
            self._end()
        if self._state is not ready:
            logger.debug("Dropping record view for %s %s; view moved on", ready.model, record_id)
            return None
        self._state = ViewOpen(ready=ready, record=record)
        return self._state

    def request_delete(self, record_id: object) -> ConfirmDelete | None:
        ready = self._require_ready()
        if ready.find_record(record_id) is None:
            self.notify("error", "Record not found")
            return None
        self._state = ConfirmDelete(
            ready=ready,
            record_id=str(record_id),
            confirmation=DeleteConfirmation(model=ready.model, record_id=str(record_id)),
        )
        return self._state

    def ensure_editing(self, record_id: object) -> EditOpen:
        state = self._state
        if not isinstance(state, EditOpen) or str(state.record_id) != str(record_id):
            raise ViewStateError("This record is not open for editing")
        return state

    def ensure_deleting(self, record_id: object) -> ConfirmDelete:
        state = self._state
        if not isinstance(state, ConfirmDelete) or state.record_id != str(record_id):
            raise ViewStateError("Delete was not confirmed for this record")
        return state

    def cancel(self) -> None:
        """Close any open dialog, discarding unsaved input."""
        state = self._state
        if isinstance(state, DIALOG_STATES):
            self._state = state.ready

    async def submit_create(self, form: Mapping[str, Any]) -> bool:
        state = self._state
        if not isinstance(state, CreateOpen):
            raise ViewStateError("The create dialog is not open")
        action = "create"
        if action in self._pending:
            raise ViewStateError("This record is already being created")

        editors = self.create_editors()
        values, errors = convert_form(editors, form, omit_blank=True)
        dialog = CreateOpen(ready=state.ready, form=_control_state(editors, form), errors=errors)
        self._state = dialog
        if errors:
            self.notify("error", "Please correct the highlighted fields")
            return False

        self._pending.add(action)
        self._begin()
        try:
            await database_records.create_record(self.client, state.ready.model, values)
        except BackendError as exc:
            self.notify("error", _failure_text(exc, "Failed to create record"))
            return False
        finally:
            self._pending.discard(action)
            self._end()

        self.notify("success", "Record created successfully")
        if self._state is dialog:
            self._state = dialog.ready
        await self.refresh()
        return True

    async def submit_edit(self, form: Mapping[str, Any]) -> bool:
        state = self._state
        if not isinstance(state, EditOpen):
            raise ViewStateError("The edit dialog is not open")
        action = f"update:{state.record_id}"
        if action in self._pending:
            raise ViewStateError("This record is already being saved")

        editors = self.edit_editors()
        values, errors = convert_form(editors, _changed_controls(form, state.initial))
        form_state = dict(state.form)
        form_state.update(
            (name, value) for name, value in _control_state(editors, form).items() if name in form
        )
        dialog = EditOpen(
            ready=state.ready,
            record=state.record,
            form=form_state,
            errors=errors,
            initial=state.initial,
        )
        self._state = dialog
        if errors:
            self.notify("error", "Please correct the highlighted fields")
            return False
        if not values:
            self.notify("info", "No changes to save")
            self._state = dialog.ready
            return True

        self._pending.add(action)
        self._begin()
        try:
            await database_records.update_record(
                self.client, state.ready.model, state.record_id, values
            )
        except BackendError as exc:
            self.notify("error", _failure_text(exc, "Failed to update record"))
            return False
        finally:
            self._pending.discard(action)
            self._end()

        self.notify("success", "Record updated successfully")
        if self._state is dialog:
            self._state = dialog.ready
        await self.refresh()
        return True

    async def confirm_delete(self) -> bool:
        state = self._state
        if not isinstance(state, ConfirmDelete):
            raise ViewStateError("No delete is awaiting confirmation")
        action = f"delete:{state.record_id}"
        if action in self._pending:
            raise ViewStateError("This record is already being deleted")

        self._pending.add(action)
        self._begin()
        try:
            await database_records.delete_record(
                self.client,
                state.ready.model,
                state.record_id,
                confirmation=state.confirmation,
            )
        except BackendError as exc:
            self.notify("error", _failure_text(exc, "Failed to delete record"))
            return False
        finally:
            self._pending.discard(action)
            self._end()

        self.notify("success", "Record deleted successfully")
        if self._state is state:
            self._state = state.ready
        await self.refresh()
        return True

"""Tests for type-driven field editors and form conversion."""

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import pytest

from dbdash.schemas.database import FieldDescriptor, FieldType
from dbdash.services import field_editors
from dbdash.services.field_editors import (
    BOOLEAN_CHOICES,
    ControlKind,
    EditorOptions,
    FieldValueError,
    build_editor,
    build_editors,
    convert_form,
    display_values,
)

OPTIONS = EditorOptions(long_text_markers=("description", "content", "notes"))
STRICT = EditorOptions(long_text_markers=("description", "content", "notes"), strict_numeric=True)


def _field(name, type_, nullable=True):
    return FieldDescriptor(name=name, type=FieldType(type_), nullable=nullable)


def test_every_field_type_has_an_editor():
    for field_type in FieldType:
        editor = build_editor(_field("value", field_type.value), OPTIONS)
        assert editor.field.type is field_type


def test_unknown_declared_type_maps_to_other():
    assert FieldType.from_declared("JSONB") is FieldType.other
    assert FieldType.from_declared(None) is FieldType.other
    assert FieldType.from_declared("Boolean") is FieldType.boolean


# =============================================================================
# boolean
# =============================================================================


class TestBooleanEditor:
    def test_renders_three_option_select(self):
        editor = build_editor(_field("published", "boolean"), OPTIONS)
        assert editor.control is ControlKind.select
        assert editor.choices == BOOLEAN_CHOICES
        assert [value for value, _ in editor.choices] == ["", "true", "false"]

    def test_stores_real_booleans_not_strings(self):
        editor = build_editor(_field("published", "boolean"), OPTIONS)
        assert editor.from_control("true") is True
        assert editor.from_control("false") is False
        assert editor.from_control("") is None

    def test_displays_current_value(self):
        editor = build_editor(_field("published", "boolean"), OPTIONS)
        assert editor.to_display(True) == "true"
        assert editor.to_display(False) == "false"
        assert editor.to_display(None) == ""

    def test_rejects_other_tokens(self):
        editor = build_editor(_field("published", "boolean"), OPTIONS)
        with pytest.raises(FieldValueError):
            editor.from_control("maybe")


# =============================================================================
# datetime
# =============================================================================


class TestDatetimeEditor:
    def test_uses_datetime_local_control(self):
        editor = build_editor(_field("starts_at", "datetime"), OPTIONS)
        assert editor.control is ControlKind.datetime_local

    def test_display_truncates_to_minutes(self):
        editor = build_editor(_field("starts_at", "datetime"), OPTIONS)
        assert editor.to_display("2024-01-15T10:30:45Z") == "2024-01-15T10:30"
        assert editor.to_display(None) == ""
        assert editor.to_display("not a date") == ""

    def test_control_value_is_stored_as_utc_iso(self):
        editor = build_editor(_field("starts_at", "datetime"), OPTIONS)
        assert editor.from_control("2024-01-15T10:30") == "2024-01-15T10:30:00Z"
        assert editor.from_control("") is None

    def test_round_trip_keeps_the_minute(self):
        editor = build_editor(_field("starts_at", "datetime"), OPTIONS)
        stored = editor.from_control(editor.to_display("2024-06-01T23:59:59+00:00"))
        assert stored == "2024-06-01T23:59:00Z"

    def test_rejects_unparsable_input(self):
        editor = build_editor(_field("starts_at", "datetime"), OPTIONS)
        with pytest.raises(FieldValueError):
            editor.from_control("next tuesday")


# =============================================================================
# int / float
# =============================================================================


class TestNumberEditors:
    def test_int_uses_whole_number_step(self):
        editor = build_editor(_field("duration", "int"), OPTIONS)
        assert editor.control is ControlKind.number
        assert editor.step == "1"

    def test_float_allows_any_step(self):
        editor = build_editor(_field("price", "float"), OPTIONS)
        assert editor.control is ControlKind.number
        assert editor.step == "any"

    def test_int_parses_leading_digits(self):
        editor = build_editor(_field("duration", "int"), OPTIONS)
        assert editor.from_control("42") == 42
        assert editor.from_control(" -7 ") == -7
        assert editor.from_control("12abc") == 12

    def test_unparsable_int_defaults_to_zero(self):
        editor = build_editor(_field("duration", "int"), OPTIONS)
        assert editor.from_control("abc") == 0
        assert editor.from_control("") == 0

    def test_unparsable_float_defaults_to_zero(self):
        editor = build_editor(_field("price", "float"), OPTIONS)
        assert editor.from_control("19.99") == pytest.approx(19.99)
        assert editor.from_control("abc") == 0.0
        assert editor.from_control("") == 0.0

    def test_strict_mode_reports_invalid_numbers(self):
        int_editor = build_editor(_field("duration", "int"), STRICT)
        float_editor = build_editor(_field("price", "float"), STRICT)
        with pytest.raises(FieldValueError):
            int_editor.from_control("12abc")
        with pytest.raises(FieldValueError):
            float_editor.from_control("nan")

    def test_strict_mode_keeps_blank_nullable_numbers_empty(self):
        editor = build_editor(_field("duration", "int"), STRICT)
        assert editor.from_control("") is None
        required = build_editor(_field("duration", "int", nullable=False), STRICT)
        with pytest.raises(FieldValueError):
            required.from_control("")

    def test_display_of_numbers(self):
        editor = build_editor(_field("duration", "int"), OPTIONS)
        assert editor.to_display(5) == "5"
        assert editor.to_display(None) == ""


# =============================================================================
# string / other
# =============================================================================


class TestTextEditors:
    def test_long_text_names_get_a_textarea(self):
        editor = build_editor(_field("lesson_notes", "string"), OPTIONS)
        assert editor.control is ControlKind.textarea
        assert editor.rows == 4

    def test_short_text_names_get_a_single_line_input(self):
        editor = build_editor(_field("title", "string"), OPTIONS)
        assert editor.control is ControlKind.text
        assert editor.rows is None

    def test_markers_come_from_options(self):
        editor = build_editor(_field("summary", "string"), EditorOptions(("summary",)))
        assert editor.control is ControlKind.textarea

    def test_other_types_edit_as_text(self):
        editor = build_editor(_field("metadata_content", "other"), OPTIONS)
        assert editor.control is ControlKind.text
        assert editor.to_display({"a": 1}) == '{"a":1}'
        assert editor.from_control("raw") == "raw"


# =============================================================================
# Form helpers
# =============================================================================


FIELDS = [
    _field("id", "int", nullable=False),
    _field("title", "string", nullable=False),
    _field("published", "boolean"),
    _field("duration", "int"),
    _field("created_at", "datetime"),
]


def test_build_editors_keeps_order_and_skips_excluded():
    editors = build_editors(FIELDS, exclude={"id", "created_at"}, options=OPTIONS)
    assert [e.name for e in editors] == ["title", "published", "duration"]


def test_display_values_seed_controls_from_record():
    editors = build_editors(FIELDS, exclude={"id"}, options=OPTIONS)
    record = {"id": 3, "title": "Intro", "published": False, "duration": None}
    assert display_values(editors, record) == {
        "title": "Intro",
        "published": "false",
        "duration": "",
        "created_at": "",
    }


def test_convert_form_converts_per_type():
    editors = build_editors(FIELDS, exclude={"id"}, options=OPTIONS)
    values, errors = convert_form(
        editors,
        {"title": "Intro", "published": "true", "duration": "15", "created_at": ""},
    )
    assert errors == {}
    assert values == {"title": "Intro", "published": True, "duration": 15, "created_at": None}


def test_convert_form_skips_absent_fields():
    editors = build_editors(FIELDS, exclude={"id"}, options=OPTIONS)
    values, _ = convert_form(editors, {"title": "Only title"})
    assert values == {"title": "Only title"}


def test_convert_form_can_omit_blank_inputs():
    editors = build_editors(FIELDS, exclude={"id"}, options=OPTIONS)
    values, _ = convert_form(
        editors, {"title": "New", "published": "", "duration": " "}, omit_blank=True
    )
    assert values == {"title": "New"}


def test_convert_form_collects_errors_per_field():
    editors = build_editors(FIELDS, exclude={"id"}, options=OPTIONS)
    values, errors = convert_form(editors, {"title": "x", "published": "perhaps"})
    assert values == {"title": "x"}
    assert set(errors) == {"published"}


def test_editor_options_follow_settings(monkeypatch):
    patched = field_editors.settings.model_copy(update={"long_text_markers": ("body",)})
    monkeypatch.setattr(field_editors, "settings", patched)
    options = EditorOptions.from_settings()
    assert options.long_text_markers == ("body",)


def test_repeated_wall_time_resolves_to_first_occurrence(monkeypatch):
    try:
        tz = ZoneInfo("America/New_York")
    except ZoneInfoNotFoundError:
        pytest.skip("tz database not available")
    monkeypatch.setattr(field_editors, "display_timezone", lambda name=None: tz)
    editor = build_editor(_field("starts_at", "datetime"), OPTIONS)

    assert editor.from_control("2024-11-03T01:30") == "2024-11-03T05:30:00Z"

"""Tests for record value display formatting."""

from datetime import date, datetime, timedelta, timezone

from dbdash.services import value_format
from dbdash.services.value_format import EMPTY_DISPLAY, format_value


class TestFormatValue:
    def test_none_renders_placeholder(self):
        assert format_value(None) == EMPTY_DISPLAY == "-"

    def test_booleans_render_yes_no(self):
        assert format_value(True) == "Yes"
        assert format_value(False) == "No"

    def test_numbers_render_as_text(self):
        assert format_value(42) == "42"
        assert format_value(0) == "0"
        assert format_value(2.5) == "2.5"

    def test_plain_strings_are_unchanged(self):
        assert format_value("hello world") == "hello world"
        assert format_value("") == ""

    def test_string_with_t_that_is_not_a_date_is_unchanged(self):
        assert format_value("The Tempest") == "The Tempest"
        assert format_value("T") == "T"

    def test_iso_datetime_string_is_formatted(self):
        assert format_value("2024-01-15T10:30:00Z") == "2024-01-15 10:30:00"

    def test_iso_datetime_with_offset_is_converted_to_display_zone(self):
        assert format_value("2024-01-15T12:30:00+02:00") == "2024-01-15 10:30:00"

    def test_date_only_string_is_unchanged(self):
        assert format_value("2024-01-15") == "2024-01-15"

    def test_datetime_objects_are_formatted(self):
        value = datetime(2024, 3, 1, 8, 5, 9, tzinfo=timezone.utc)
        assert format_value(value) == "2024-03-01 08:05:09"

    def test_date_objects_render_iso(self):
        assert format_value(date(2024, 3, 1)) == "2024-03-01"

    def test_structures_render_as_compact_json(self):
        assert format_value({"a": 1, "tags": ["x", "y"]}) == '{"a":1,"tags":["x","y"]}'
        assert format_value([1, 2]) == "[1,2]"

    def test_never_raises_for_unprintable_objects(self):
        class Broken:
            def __str__(self):
                raise RuntimeError("boom")

        result = format_value(Broken())
        assert isinstance(result, str)
        assert "Broken" in result


class TestDisplayTimezone:
    def test_utc_names_short_circuit(self):
        assert value_format.display_timezone("UTC") is timezone.utc
        assert value_format.display_timezone("z") is timezone.utc

    def test_unknown_zone_falls_back_to_utc(self):
        assert value_format.display_timezone("Not/AZone") is timezone.utc

    def test_named_zone_is_used_for_display(self, monkeypatch):
        tz = timezone(timedelta(hours=1))
        monkeypatch.setattr(value_format, "display_timezone", lambda name=None: tz)
        assert format_value("2024-01-15T10:30:00Z") == "2024-01-15 11:30:00"

    def test_naive_values_are_taken_as_display_zone_wall_time(self):
        parsed = value_format.to_display_zone(datetime(2024, 1, 15, 10, 30))
        assert parsed.tzinfo is not None
        assert parsed.hour == 10


def test_formatting_is_idempotent():
    for value in ("2024-01-15T10:30:00Z", {"Title": "Intro", "tags": ["a"]}, True, False, None):
        once = format_value(value)
        assert format_value(once) == once

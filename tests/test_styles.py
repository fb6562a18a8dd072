"""Tests for record style resolution."""

from archive_mirror.styles import StyleInfo, default_header, resolve_style


class TestDefaultHeader:
    def test_last_segment_capitalized(self):
        assert default_header("design:notes") == "Notes"
        assert default_header("description") == "Description"

    def test_empty_key(self):
        assert default_header("") == ""


class TestResolveStyle:
    def test_builtin_default(self):
        style = resolve_style("features")
        assert style == StyleInfo(depth=2, header_text="Features", is_ordered=False)

    def test_schema_overrides_default(self):
        style = resolve_style("features", {"features": {"headerText": "Highlights", "depth": 3}})
        assert style.header_text == "Highlights"
        assert style.depth == 3
        assert style.is_ordered is False

    def test_entry_overrides_schema_per_field(self):
        schema = {"features": {"headerText": "Highlights", "isOrdered": False}}
        entry = {"features": {"isOrdered": True}}
        style = resolve_style("features", schema, entry)
        assert style.header_text == "Highlights"
        assert style.is_ordered is True

    def test_malformed_layer_ignored(self):
        style = resolve_style("features", {"features": "bogus"}, {"features": {"depth": "deep"}})
        assert style.depth == 2
        assert style.header_text == "Features"

    def test_blank_header_is_kept(self):
        style = resolve_style("description", {"description": {"headerText": ""}})
        assert style.header_text == ""

"""
Unit tests for the schema-free JSON accessors and the ranked property lookup.
"""

from acrostic_core.utils.json_value import JsonObject, extract_plain_text, find_property


class TestJsonObject:
    """Accessors return None on a shape mismatch instead of raising."""

    def test_typed_accessors(self):
        data = JsonObject(
            {"s": "text", "b": True, "n": 3, "f": 1.5, "a": [1, 2], "o": {"k": "v"}}
        )

        assert data.as_string("s") == "text"
        assert data.as_bool("b") is True
        assert data.as_number("n") == 3
        assert data.as_number("f") == 1.5
        assert data.as_array("a") == [1, 2]
        assert data.as_object("o").as_string("k") == "v"

    def test_shape_mismatch_returns_none(self):
        data = JsonObject({"s": "text", "b": True, "n": 3})

        assert data.as_bool("s") is None
        assert data.as_string("n") is None
        assert data.as_array("s") is None
        assert data.as_object("n") is None
        assert data.as_string("missing") is None

    def test_bool_is_not_a_number(self):
        assert JsonObject({"flag": True}).as_number("flag") is None

    def test_non_dict_input_is_empty(self):
        data = JsonObject(["not", "an", "object"])

        assert not data
        assert data.raw == {}
        assert data.as_string("anything") is None

    def test_path_stops_at_first_missing_step(self):
        data = JsonObject({"date": {"start": "2025-01-01"}, "flat": "x"})

        assert data.path("date", "start") == "2025-01-01"
        assert data.path("date", "end") is None
        assert data.path("flat", "deeper") is None


class TestExtractPlainText:
    def test_concatenates_runs(self):
        runs = [{"plain_text": "Buy "}, {"plain_text": "milk"}]

        assert extract_plain_text(runs) == "Buy milk"

    def test_falls_back_to_text_content(self):
        runs = [{"type": "text", "text": {"content": "Call bank"}}]

        assert extract_plain_text(runs) == "Call bank"

    def test_non_list_is_empty(self):
        assert extract_plain_text(None) == ""
        assert extract_plain_text("raw") == ""


class TestFindProperty:
    """Exact names beat substrings, candidate order breaks ties, type is the last resort."""

    def test_exact_match_beats_substring(self):
        properties = {"Due soon": {"type": "checkbox"}, "Due": {"type": "date"}}

        name, _ = find_property(properties, ("due",))

        assert name == "Due"

    def test_exact_match_is_case_insensitive(self):
        name, prop = find_property({"STATUS": {"type": "status"}}, ("status",))

        assert name == "STATUS"
        assert prop.as_string("type") == "status"

    def test_candidate_order_ranks_matches(self):
        properties = {"Done": {"type": "checkbox"}, "Status": {"type": "status"}}

        name, _ = find_property(properties, ("status", "done"))

        assert name == "Status"

    def test_substring_match(self):
        name, _ = find_property({"Task name": {"type": "title"}}, ("name",))

        assert name == "Task name"

    def test_type_fallback(self):
        properties = {"Label": {"type": "rich_text"}, "Headline": {"type": "title"}}

        name, _ = find_property(properties, ("title",), property_type="title")

        assert name == "Headline"

    def test_no_match(self):
        assert find_property({"Label": {"type": "rich_text"}}, ("title",)) is None
        assert find_property({}, ("title",)) is None
        assert find_property(None, ("title",)) is None

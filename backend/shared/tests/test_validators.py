import pytest

from shared.validators import parse_string_list


class TestParseStringList:
    def test_list_passthrough(self):
        assert parse_string_list(["a", "b"]) == ["a", "b"]

    def test_json_array(self):
        assert parse_string_list('["http://a", "http://b"]') == ["http://a", "http://b"]

    def test_csv_with_whitespace(self):
        assert parse_string_list(" a , b ,, c ") == ["a", "b", "c"]

    def test_empty_rejected_by_default(self):
        with pytest.raises(ValueError, match="must not be empty"):
            parse_string_list("")
        with pytest.raises(ValueError, match="must not be empty"):
            parse_string_list([])

    def test_empty_allowed(self):
        assert parse_string_list("", allow_empty=True) == []
        assert parse_string_list("[]", allow_empty=True) == []

    def test_malformed_json(self):
        with pytest.raises(ValueError, match="Invalid JSON array"):
            parse_string_list('["a",')

    def test_json_must_contain_strings(self):
        with pytest.raises(ValueError, match="array of strings"):
            parse_string_list("[1, 2]")

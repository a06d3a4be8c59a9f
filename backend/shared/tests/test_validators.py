import pytest

from shared.validators import ZERO_ADDRESS, is_zero_address, normalize_address, parse_string_list

CHECKSUMMED = "0x369228cD84AeFb713Ef4E7E96aD984539e26825E"


class TestNormalizeAddress:
    def test_lowercase_becomes_checksum(self):
        assert normalize_address(CHECKSUMMED.lower()) == CHECKSUMMED

    def test_checksum_is_preserved(self):
        assert normalize_address(CHECKSUMMED) == CHECKSUMMED

    @pytest.mark.parametrize("value", ["", "0x1234", "369228cd84aefb713ef4e7e96ad984539e26825e00", "0xzz" + "0" * 38])
    def test_malformed_raises(self, value):
        with pytest.raises(ValueError, match="Invalid address"):
            normalize_address(value)

    def test_non_string_raises(self):
        with pytest.raises(ValueError, match="Invalid address"):
            normalize_address(42)  # type: ignore[arg-type]


class TestIsZeroAddress:
    def test_zero(self):
        assert is_zero_address(ZERO_ADDRESS)

    def test_non_zero(self):
        assert not is_zero_address(CHECKSUMMED)


class TestParseStringList:
    def test_json_array_string(self):
        result = parse_string_list('["http://a.com","http://b.com"]')
        assert result == ["http://a.com", "http://b.com"]

    def test_comma_separated_with_whitespace(self):
        result = parse_string_list("http://a.com , http://b.com")
        assert result == ["http://a.com", "http://b.com"]

    def test_passthrough_list(self):
        origins = ["http://a.com", "http://b.com"]
        assert parse_string_list(origins) == origins

    def test_empty_string_raises(self):
        with pytest.raises(ValueError, match="must not be empty"):
            parse_string_list("")

    def test_empty_string_allowed(self):
        assert parse_string_list("", allow_empty=True) == []

    def test_invalid_json_raises(self):
        with pytest.raises(ValueError, match="Invalid JSON array"):
            parse_string_list("[not valid json")

    def test_json_mixed_types_array_raises(self):
        with pytest.raises(ValueError, match="must be an array of strings"):
            parse_string_list('["http://a.com", 123]')

    def test_comma_separated_skips_empty_segments(self):
        result = parse_string_list("http://a.com,,http://b.com,")
        assert result == ["http://a.com", "http://b.com"]

    def test_comma_only_raises(self):
        with pytest.raises(ValueError, match="must not be empty"):
            parse_string_list(",")

"""Tests for interval parsing."""

import pytest

from jbs_cli.exceptions import InvalidIntervalFormat
from jbs_cli.scheduler.interval import (
    MANUAL,
    ManualOnly,
    format_interval,
    is_manual,
    parse_interval,
)


class TestParseInterval:
    """Tests for parse_interval."""

    @pytest.mark.parametrize(
        "spec,expected",
        [
            ("30s", 30),
            ("5m", 300),
            ("1h", 3600),
            ("2d", 172800),
            ("1w", 604800),
            ("90", 90),
            ("0", 0),
            ("1H", 3600),
            ("  10m ", 600),
        ],
    )
    def test_string_specs(self, spec, expected):
        """Test unit and plain-second strings."""
        assert parse_interval(spec) == expected

    def test_numbers_are_seconds(self):
        """Test that numbers are taken as seconds."""
        assert parse_interval(45) == 45
        assert parse_interval(2.9) == 2
        assert parse_interval("7.5") == 7

    @pytest.mark.parametrize("spec", [1.9, "1.9", " 1.9 "])
    def test_fractions_truncate_the_same_way(self, spec):
        """Test that float and string fractions are both truncated."""
        assert parse_interval(spec) == 1

    @pytest.mark.parametrize("spec", [None, False, MANUAL, "manual", "never", "MANUAL"])
    def test_manual_sentinels(self, spec):
        """Test every manual spelling maps to MANUAL."""
        assert parse_interval(spec) is MANUAL

    def test_zero_is_not_manual(self):
        """Test that 0 seconds stays distinct from manual-only."""
        assert parse_interval(0) == 0
        assert not is_manual(parse_interval(0))

    @pytest.mark.parametrize("spec", ["", "abc", "10x", "1.5h", "-5s", "s", "10 m", "1h30m"])
    def test_malformed_strings_raise(self, spec):
        """Test that malformed strings raise instead of falling back to 0."""
        with pytest.raises(InvalidIntervalFormat) as exc_info:
            parse_interval(spec)
        assert exc_info.value.value == spec

    @pytest.mark.parametrize("spec", [True, -1, -0.5, [30], {"s": 30}])
    def test_invalid_values_raise(self, spec):
        """Test non-duration values."""
        with pytest.raises(InvalidIntervalFormat):
            parse_interval(spec)

    def test_error_is_value_error(self):
        """Test that callers catching ValueError still see the error."""
        with pytest.raises(ValueError):
            parse_interval("soon")


class TestManualSentinel:
    """Tests for the MANUAL sentinel."""

    def test_singleton(self):
        """Test that ManualOnly always yields the same object."""
        assert ManualOnly() is MANUAL

    def test_repr(self):
        """Test repr."""
        assert repr(MANUAL) == "MANUAL"

    def test_is_manual(self):
        """Test is_manual."""
        assert is_manual(MANUAL)
        assert not is_manual(30)


class TestFormatInterval:
    """Tests for format_interval."""

    @pytest.mark.parametrize(
        "seconds,expected",
        [
            (0, "0s"),
            (30, "30s"),
            (90, "90s"),
            (120, "2m"),
            (3600, "1h"),
            (5400, "90m"),
            (86400, "1d"),
            (604800, "1w"),
            (1209600, "2w"),
        ],
    )
    def test_largest_exact_unit(self, seconds, expected):
        """Test that the largest exactly dividing unit is used."""
        assert format_interval(seconds) == expected

    def test_manual(self):
        """Test formatting the manual sentinel."""
        assert format_interval(MANUAL) == "manual"

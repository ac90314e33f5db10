"""Tests for duration parsing."""

from datetime import timedelta

import pytest

from mealsync import parse_duration


class TestParseDuration:
    """Tests for parse_duration function."""

    def test_units(self) -> None:
        assert parse_duration("100ms") == 100
        assert parse_duration("30s") == 30_000
        assert parse_duration("5m") == 300_000
        assert parse_duration("2h") == 7_200_000
        assert parse_duration("1d") == 86_400_000

    def test_compound(self) -> None:
        """Test that unit groups add up."""
        assert parse_duration("1m30s") == 90_000
        assert parse_duration("1h5m") == 3_900_000
        assert parse_duration("1s500ms") == 1_500

    def test_integer_passthrough(self) -> None:
        assert parse_duration(1000) == 1000
        assert parse_duration(0) == 0

    def test_timedelta(self) -> None:
        assert parse_duration(timedelta(minutes=10)) == 600_000
        assert parse_duration(timedelta(milliseconds=250)) == 250

    def test_surrounding_whitespace_is_ignored(self) -> None:
        assert parse_duration(" 10s ") == 10_000

    @pytest.mark.parametrize("value", ["invalid", "10x", "s10", "", "10", "1m 30s"])
    def test_invalid_format(self, value: str) -> None:
        with pytest.raises(ValueError, match="Invalid duration"):
            parse_duration(value)

    def test_negative_rejected(self) -> None:
        with pytest.raises(ValueError, match="negative"):
            parse_duration(-1)
        with pytest.raises(ValueError, match="negative"):
            parse_duration(timedelta(seconds=-1))

    def test_bool_rejected(self) -> None:
        with pytest.raises(ValueError, match="Invalid duration"):
            parse_duration(True)

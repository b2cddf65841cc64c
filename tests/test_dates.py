"""
Unit tests for dates module.
"""

from datetime import date
import pytest

from sensilib.dates import DateUtils


class TestTenors:
    """Tests for tenor parsing and arithmetic."""

    def test_parse_tenor(self):
        """Test tenor parsing."""
        assert DateUtils.parse_tenor("3M") == (3, "M")
        assert DateUtils.parse_tenor("10y") == (10, "Y")
        assert DateUtils.parse_tenor(" 2W ") == (2, "W")

    def test_parse_invalid_tenor(self):
        """Test invalid tenors raise."""
        with pytest.raises(ValueError):
            DateUtils.parse_tenor("3X")
        with pytest.raises(ValueError):
            DateUtils.parse_tenor("M3")

    def test_is_tenor(self):
        """Test tenor detection."""
        assert DateUtils.is_tenor("5Y")
        assert not DateUtils.is_tenor("2024-01-15")

    def test_add_days_and_weeks(self):
        """Test day and week tenors."""
        start = date(2024, 1, 15)

        assert DateUtils.add_tenor(start, "1D") == date(2024, 1, 16)
        assert DateUtils.add_tenor(start, "2W") == date(2024, 1, 29)

    def test_add_months_clamps_month_end(self):
        """Test month tenors clamp to the last day of the month."""
        assert DateUtils.add_tenor(date(2024, 1, 31), "1M") == date(2024, 2, 29)
        assert DateUtils.add_tenor(date(2023, 1, 31), "1M") == date(2023, 2, 28)
        assert DateUtils.add_tenor(date(2024, 11, 15), "3M") == date(2025, 2, 15)

    def test_add_years_leap_day(self):
        """Test year tenors from a leap day."""
        assert DateUtils.add_tenor(date(2024, 2, 29), "1Y") == date(2025, 2, 28)
        assert DateUtils.add_tenor(date(2024, 2, 29), "4Y") == date(2028, 2, 29)

    def test_tenor_to_years(self):
        """Test approximate tenor lengths."""
        assert DateUtils.tenor_to_years("6M") == pytest.approx(0.5)
        assert DateUtils.tenor_to_years("2Y") == pytest.approx(2.0)


class TestResolveDate:
    """Tests for date-like value resolution."""

    @pytest.fixture
    def as_of(self):
        return date(2024, 1, 15)

    def test_date_passes_through(self, as_of):
        """Test a date is returned unchanged."""
        d = date(2030, 6, 1)
        assert DateUtils.resolve_date(d, as_of) == d

    def test_number_of_days(self, as_of):
        """Test numbers are days from the as-of date."""
        assert DateUtils.resolve_date(10, as_of) == date(2024, 1, 25)
        assert DateUtils.resolve_date(9.6, as_of) == date(2024, 1, 25)

    def test_tenor_string(self, as_of):
        """Test tenor strings are added to the as-of date."""
        assert DateUtils.resolve_date("2Y", as_of) == date(2026, 1, 15)

    def test_iso_string(self, as_of):
        """Test ISO strings are parsed."""
        assert DateUtils.resolve_date("2029-03-20", as_of) == date(2029, 3, 20)

    def test_invalid_values(self, as_of):
        """Test values that are not dates raise."""
        with pytest.raises(ValueError):
            DateUtils.resolve_date(True, as_of)
        with pytest.raises(ValueError):
            DateUtils.resolve_date("next tuesday", as_of)
        with pytest.raises(ValueError):
            DateUtils.resolve_date([1, 2], as_of)

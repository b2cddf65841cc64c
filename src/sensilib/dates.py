"""
Date utilities for curve tenors and scenario terms.

Provides:
- Tenor parsing and date arithmetic ("3M", "5Y")
- Resolution of date-like inputs (date, ISO string, tenor, day count)
"""

from datetime import date, timedelta
from typing import Tuple, Union
import re


class DateUtils:
    """Utility class for date manipulation in curve contexts."""

    # Tenor regex pattern: number + unit (D/W/M/Y)
    TENOR_PATTERN = re.compile(r'^(\d+)([DWMY])$', re.IGNORECASE)

    @staticmethod
    def parse_tenor(tenor: str) -> Tuple[int, str]:
        """
        Parse a tenor string into (amount, unit).

        Args:
            tenor: Tenor string like "1D", "3M", "2Y"

        Returns:
            Tuple of (amount, unit) where unit is D/W/M/Y

        Raises:
            ValueError: If tenor format is invalid
        """
        match = DateUtils.TENOR_PATTERN.match(tenor.upper().strip())
        if not match:
            raise ValueError(f"Invalid tenor format: {tenor}. Expected format like '3M', '2Y'")

        return int(match.group(1)), match.group(2).upper()

    @staticmethod
    def is_tenor(text: str) -> bool:
        """Whether a string parses as a tenor."""
        return DateUtils.TENOR_PATTERN.match(text.upper().strip()) is not None

    @staticmethod
    def add_tenor(start: date, tenor: str) -> date:
        """
        Add a tenor to a date (calendar arithmetic, no holiday adjustment).

        Args:
            start: Starting date
            tenor: Tenor string (e.g., "1D", "3M", "2Y")

        Returns:
            End date
        """
        amount, unit = DateUtils.parse_tenor(tenor)

        if unit == 'D':
            return start + timedelta(days=amount)
        elif unit == 'W':
            return start + timedelta(weeks=amount)
        elif unit == 'M':
            # Preserve day of month where possible
            year = start.year + (start.month + amount - 1) // 12
            month = (start.month + amount - 1) % 12 + 1
            day = min(start.day, _days_in_month(year, month))
            return date(year, month, day)
        elif unit == 'Y':
            year = start.year + amount
            day = min(start.day, _days_in_month(year, start.month))
            return date(year, start.month, day)
        else:
            raise ValueError(f"Unknown tenor unit: {unit}")

    @staticmethod
    def add_days(start: date, days: Union[int, float]) -> date:
        """Add a (rounded) number of calendar days to a date."""
        return start + timedelta(days=int(round(days)))

    @staticmethod
    def tenor_to_years(tenor: str) -> float:
        """
        Convert tenor to approximate year fraction.

        Args:
            tenor: Tenor string

        Returns:
            Approximate years as float
        """
        amount, unit = DateUtils.parse_tenor(tenor)

        if unit == 'D':
            return amount / 365.0
        elif unit == 'W':
            return amount * 7 / 365.0
        elif unit == 'M':
            return amount / 12.0
        elif unit == 'Y':
            return float(amount)
        else:
            raise ValueError(f"Unknown tenor unit: {unit}")

    @staticmethod
    def resolve_date(value: Union[date, str, int, float], as_of: date) -> date:
        """
        Resolve a date-like value relative to an as-of date.

        Args:
            value: A date, an ISO date string, a tenor string or a number of days
            as_of: Reference date for tenors and day counts

        Returns:
            Resolved date
        """
        if isinstance(value, date):
            return value
        if isinstance(value, bool):
            raise ValueError(f"Cannot interpret {value!r} as a date")
        if isinstance(value, (int, float)):
            return DateUtils.add_days(as_of, value)
        if isinstance(value, str):
            text = value.strip()
            if DateUtils.is_tenor(text):
                return DateUtils.add_tenor(as_of, text)
            return date.fromisoformat(text)
        raise ValueError(f"Cannot interpret {value!r} as a date")


def _days_in_month(year: int, month: int) -> int:
    """Return number of days in a month."""
    if month in (1, 3, 5, 7, 8, 10, 12):
        return 31
    elif month in (4, 6, 9, 11):
        return 30
    elif month == 2:
        if (year % 4 == 0 and year % 100 != 0) or (year % 400 == 0):
            return 29
        return 28
    raise ValueError(f"Invalid month: {month}")


__all__ = [
    "DateUtils",
]

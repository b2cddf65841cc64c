"""
Market conventions and bump enumerations.

Day Counts:
- ACT/360: Actual days / 360 (money markets, OIS)
- ACT/365: Actual days / 365 (curve time axis)
- 30/360: 30 days per month / 360

Bump vocabulary:
- BumpFlags: direction, relative/absolute, refit and interpolation switches
- BumpUnit: unit in which bump sizes (and realized bumps) are expressed
- SensitivityMethod: bump topology (uniform, parallel, by tenor)
- ScenarioShiftType: how a scenario shift value is applied
- Defaulted: credit state of a survival curve
"""

from datetime import date
from enum import Enum, Flag, auto


class DayCount(Enum):
    """Day count convention enumeration."""
    ACT_360 = "ACT/360"
    ACT_365 = "ACT/365"
    THIRTY_360 = "30/360"

    @classmethod
    def from_string(cls, s: str) -> "DayCount":
        """Parse day count from string representation."""
        mapping = {
            "ACT/360": cls.ACT_360,
            "ACT360": cls.ACT_360,
            "ACT/365": cls.ACT_365,
            "ACT365": cls.ACT_365,
            "30/360": cls.THIRTY_360,
            "30360": cls.THIRTY_360,
        }
        key = s.upper().replace(" ", "")
        if key in mapping:
            return mapping[key]
        raise ValueError(f"Unknown day count convention: {s}")


class BumpFlags(Flag):
    """Options controlling a single quote bump."""
    NONE = 0
    BUMP_RELATIVE = auto()
    BUMP_DOWN = auto()
    REFIT_CURVE = auto()
    BUMP_INTERPOLATED = auto()
    ALLOW_NEGATIVE_SPREADS = auto()

    @classmethod
    def create(cls, up: bool = True, relative: bool = False, refit: bool = False) -> "BumpFlags":
        """Build flags from the usual (direction, relative, refit) triple."""
        flags = cls.NONE
        if relative:
            flags |= cls.BUMP_RELATIVE
        if not up:
            flags |= cls.BUMP_DOWN
        if refit:
            flags |= cls.REFIT_CURVE
        return flags


class BumpUnit(Enum):
    """Unit of bump sizes."""
    NATURAL = "natural"    # Same units as the quote
    BASIS_POINTS = "bp"    # 1 = 0.0001 of the quote
    RELATIVE = "relative"  # Fraction of the quote

    @classmethod
    def from_string(cls, s: str) -> "BumpUnit":
        """Parse bump unit from string representation."""
        mapping = {
            "NATURAL": cls.NATURAL,
            "NONE": cls.NATURAL,
            "ABSOLUTE": cls.NATURAL,
            "BP": cls.BASIS_POINTS,
            "BASIS_POINTS": cls.BASIS_POINTS,
            "RELATIVE": cls.RELATIVE,
        }
        key = s.upper().replace(" ", "_")
        if key in mapping:
            return mapping[key]
        raise ValueError(f"Unknown bump unit: {s}")


class SensitivityMethod(Enum):
    """Bump topology."""
    UNIFORM = "Uniform"
    PARALLEL = "Parallel"
    BY_TENOR = "ByTenor"

    @classmethod
    def from_string(cls, s: str) -> "SensitivityMethod":
        """Parse topology from string representation."""
        key = s.upper().replace("_", "").replace(" ", "")
        for member in cls:
            if member.value.upper() == key or member.name.replace("_", "") == key:
                return member
        raise ValueError(f"Unknown sensitivity method: {s}")


class ScenarioShiftType(Enum):
    """How a scenario shift value is applied to its target."""
    NONE = "None"
    RELATIVE = "Relative"
    ABSOLUTE = "Absolute"
    SPECIFIED = "Specified"


class Defaulted(Enum):
    """Credit state of a survival curve."""
    NOT_DEFAULTED = "NotDefaulted"
    WILL_DEFAULT = "WillDefault"
    HAS_DEFAULTED = "HasDefaulted"


def year_fraction(start: date, end: date, day_count: DayCount = DayCount.ACT_365) -> float:
    """
    Calculate year fraction between two dates using specified day count convention.

    Args:
        start: Start date
        end: End date
        day_count: Day count convention

    Returns:
        Year fraction as float (0 when end is not after start)
    """
    if start >= end:
        return 0.0

    actual_days = (end - start).days

    if day_count == DayCount.ACT_360:
        return actual_days / 360.0
    elif day_count == DayCount.ACT_365:
        return actual_days / 365.0
    elif day_count == DayCount.THIRTY_360:
        d1 = min(start.day, 30)
        d2 = end.day if d1 < 30 else min(end.day, 30)
        return (360 * (end.year - start.year) + 30 * (end.month - start.month) + (d2 - d1)) / 360.0
    else:
        raise ValueError(f"Unknown day count: {day_count}")


__all__ = [
    "DayCount",
    "BumpFlags",
    "BumpUnit",
    "SensitivityMethod",
    "ScenarioShiftType",
    "Defaulted",
    "year_fraction",
]

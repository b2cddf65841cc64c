"""
Scenario shift values.

    Absolute:  new = value + shift
    Relative:  new = value + value * shift
    Specified: new = shift
    None:      unchanged
"""

from dataclasses import dataclass
from typing import Union

from ..conventions import ScenarioShiftType


class Scenarios:
    """Helpers for applying scenario shift values."""

    @staticmethod
    def bump(value: float, shift_type: ScenarioShiftType, size: float) -> float:
        """
        Apply a shift to a value.

        Args:
            value: Current value
            shift_type: How the shift applies
            size: Shift size

        Returns:
            Shifted value
        """
        if shift_type == ScenarioShiftType.ABSOLUTE:
            return value + size
        if shift_type == ScenarioShiftType.RELATIVE:
            return value + value * size
        if shift_type == ScenarioShiftType.SPECIFIED:
            return size
        return value

    @staticmethod
    def shift_type(value: Union[str, ScenarioShiftType, None]) -> ScenarioShiftType:
        """Parse a shift type (None means no shift)."""
        if value is None:
            return ScenarioShiftType.NONE
        if isinstance(value, ScenarioShiftType):
            return value
        key = value.strip().lower()
        for member in ScenarioShiftType:
            if member.value.lower() == key or member.name.lower() == key:
                return member
        raise ValueError(f"Unknown scenario shift type: {value}")


@dataclass
class ScenarioValueShift:
    """
    A shift of a numeric pricer or product field.

    Attributes:
        shift_type: How the shift applies
        value: Shift size
    """
    shift_type: ScenarioShiftType
    value: float

    def apply(self, current: float) -> float:
        return Scenarios.bump(current, self.shift_type, self.value)


__all__ = [
    "Scenarios",
    "ScenarioValueShift",
]

"""
Exception taxonomy for sensitivity and scenario calculations.

- Validation errors are raised before any market object is touched.
- Missing-dependency errors are raised when a mandatory curve or measure is absent.
- Refit errors come from calibration; bump loops record them as failed cells.
- Cyclic dependencies between curves are detected rather than looped on.
"""

from typing import Optional


class SensitivityError(Exception):
    """Base exception for the library."""


class BumpValidationError(SensitivityError, ValueError):
    """Malformed bump or shift parameters."""


class MissingDependencyError(SensitivityError, ValueError):
    """A required measure or market object is missing from a pricer."""

    def __init__(self, pricer_name: Optional[str], message: str):
        self.pricer_name = pricer_name
        super().__init__(f"[{pricer_name or 'UNKNOWN'}] {message}")


class RefitError(SensitivityError, RuntimeError):
    """Calibration of a curve failed."""


class CurveFitError(RefitError):
    """A curve could not be fitted at a given tenor."""

    def __init__(self, curve_name: str, tenor_name: Optional[str], message: str):
        self.curve_name = curve_name
        self.tenor_name = tenor_name
        where = f"{curve_name}.{tenor_name}" if tenor_name else curve_name
        super().__init__(f"Failed to fit {where}: {message}")


class CyclicDependencyError(SensitivityError, ValueError):
    """The curve dependency structure is not acyclic."""


__all__ = [
    "SensitivityError",
    "BumpValidationError",
    "MissingDependencyError",
    "RefitError",
    "CurveFitError",
    "CyclicDependencyError",
]

"""
Volatility term structures.

Implied volatilities are quoted per expiry on VolatilityQuote tenors. The
fitted values are the volatilities themselves; the calibrator checks that
total variance sigma^2 * t does not decrease with expiry.

A surface can also be shifted on its output without touching the quotes:
``bump_interpolated`` overlays an absolute or relative shift on every value
returned by ``vol`` until ``reset_interpolated`` is called.
"""

from datetime import date
from typing import List, Sequence, Union

from ..conventions import DayCount
from ..errors import CurveFitError
from .base import CalibratedCurve, Calibrator
from .instruments import VolatilityQuote


class VolatilitySurface(CalibratedCurve):
    """Implied volatility by expiry."""

    STATE_ATTRIBUTES = CalibratedCurve.STATE_ATTRIBUTES + ("_output_bump", "_output_relative")

    def __init__(self, as_of: date, name: str, tenors=None, calibrator=None,
                 day_count: DayCount = DayCount.ACT_365):
        super().__init__(as_of, name, "Volatility", tenors, calibrator, day_count)
        self._output_bump = 0.0
        self._output_relative = False

    def vol(self, t: Union[float, date]) -> float:
        """Implied volatility at t, including any output shift."""
        sigma = self.value(t)
        if self._output_relative:
            return sigma * (1.0 + self._output_bump)
        return sigma + self._output_bump

    def bump_interpolated(self, bump: float, relative: bool = False) -> None:
        """Shift every interpolated volatility without refitting."""
        self._output_bump = float(bump)
        self._output_relative = bool(relative)

    def reset_interpolated(self) -> None:
        self._output_bump = 0.0
        self._output_relative = False

    @property
    def is_interpolated_bumped(self) -> bool:
        return self._output_bump != 0.0


class VolatilityCalibrator(Calibrator):
    """Fits volatilities from quotes, rejecting calendar arbitrage."""

    def fit(self, curve: CalibratedCurve, from_index: int = 0) -> None:
        times: List[float] = []
        vols: List[float] = []
        last_variance = 0.0
        for tenor in curve.tenors:
            t = curve.time(tenor.maturity)
            if t <= 0:
                continue
            sigma = tenor.quote
            if sigma < 0:
                raise CurveFitError(curve.name, tenor.name, f"negative volatility {sigma}")
            variance = sigma * sigma * t
            if variance < last_variance - 1e-12:
                raise CurveFitError(curve.name, tenor.name, "total variance decreases with expiry")
            last_variance = variance
            times.append(t)
            vols.append(sigma)
        if not times:
            raise CurveFitError(curve.name, None, "no expiries after the curve date")
        curve.set_points(times, vols)


def create_flat_volatility_surface(
    as_of: date,
    vol: float,
    name: str = "Vol",
    tenors: Sequence[str] = ("3M", "6M", "1Y", "2Y", "5Y", "10Y")
) -> VolatilitySurface:
    """
    Create a flat volatility surface.

    Args:
        as_of: Surface date
        vol: Flat volatility (decimal)
        name: Surface name
        tenors: Expiry tenors

    Returns:
        Fitted VolatilitySurface
    """
    surface = VolatilitySurface(as_of, name, calibrator=VolatilityCalibrator())
    for tenor in tenors:
        surface.add_tenor(VolatilityQuote(tenor=tenor, quote=vol))
    surface.fit()
    return surface


__all__ = [
    "VolatilitySurface",
    "VolatilityCalibrator",
    "create_flat_volatility_surface",
]

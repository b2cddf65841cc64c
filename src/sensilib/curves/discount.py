"""
Discount curves.

The fitted representation holds continuously compounded zero rates at the
tenor maturities, interpolated linearly in time:
    P(0,t) = exp(-z(t) * t)

Calibration is a sequential bootstrap:
1. Tenors are processed in maturity order
2. Rate instruments (Deposit, OISSwap) solve for the discount factor at
   their maturity given the nodes already fitted
3. CurvePoint tenors are taken as zero rates directly
"""

from datetime import date
from typing import List, Sequence, Tuple, Union

import numpy as np
import structlog

from ..conventions import DayCount
from ..errors import CurveFitError
from .base import CalibratedCurve, Calibrator, CurveTenor
from .instruments import CurveInstrument, CurvePoint, RateInstrument


logger = structlog.get_logger(__name__)


class DiscountCurve(CalibratedCurve):
    """
    Zero-rate discount curve.

    Conventions:
        - Zero rates are continuously compounded
        - Times are year fractions from as_of on the curve day count
        - Discount factor at t=0 is 1.0
    """

    def __init__(self, as_of: date, name: str, tenors=None, calibrator=None,
                 day_count: DayCount = DayCount.ACT_365, currency: str = "USD"):
        super().__init__(as_of, name, "Rate", tenors, calibrator, day_count)
        self.currency = currency

    def zero_rate(self, t: Union[float, date]) -> float:
        """Continuously compounded zero rate to t."""
        return self.value(t)

    def discount_factor(self, t: Union[float, date]) -> float:
        """
        Discount factor P(0,t).

        Args:
            t: Year fraction or date

        Returns:
            Discount factor
        """
        if isinstance(t, date):
            t = self.time(t)
        if t <= 0:
            return 1.0
        return float(np.exp(-self.value_at_time(t) * t))

    def forward_rate(self, t1: Union[float, date], t2: Union[float, date]) -> float:
        """Simple forward rate between t1 and t2."""
        if isinstance(t1, date):
            t1 = self.time(t1)
        if isinstance(t2, date):
            t2 = self.time(t2)
        if t2 <= t1:
            raise ValueError("t2 must be greater than t1")
        return (self.discount_factor(t1) / self.discount_factor(t2) - 1.0) / (t2 - t1)


class DiscountBootstrapCalibrator(Calibrator):
    """
    Sequential bootstrap of a discount curve from its tenor quotes.

    Attributes:
        min_discount_factor: Smallest discount factor accepted as a fit
    """

    def __init__(self, min_discount_factor: float = 1e-6):
        self.min_discount_factor = min_discount_factor

    def fit(self, curve: CalibratedCurve, from_index: int = 0) -> None:
        # Later tenors depend on earlier nodes, so the whole curve is refitted
        prior: List[Tuple[float, float]] = [(0.0, 1.0)]
        times: List[float] = []
        zeros: List[float] = []

        for tenor in curve.tenors:
            t = curve.time(tenor.maturity)
            if t <= 0:
                continue
            product = tenor.product
            if isinstance(product, RateInstrument):
                try:
                    t, df = product.implied_discount_factor(curve.as_of, curve.time, prior)
                except ValueError as e:
                    raise CurveFitError(curve.name, tenor.name, str(e)) from e
                if not np.isfinite(df) or df < self.min_discount_factor:
                    raise CurveFitError(curve.name, tenor.name, f"invalid discount factor {df}")
                zero = -np.log(df) / t
            else:
                zero = tenor.quote
                df = float(np.exp(-zero * t))
            prior.append((t, df))
            times.append(t)
            zeros.append(zero)

        if not times:
            raise CurveFitError(curve.name, None, "no tenors after the curve date")
        curve.set_points(times, zeros)

    def instrument_value(self, curve: CalibratedCurve, product: CurveInstrument) -> float:
        if isinstance(product, RateInstrument):
            return product.value(curve.as_of, curve.discount_factor)
        return super().instrument_value(curve, product)


def create_flat_curve(
    as_of: date,
    rate: float,
    name: str = "Flat",
    tenors: Sequence[str] = ("1Y", "2Y", "5Y", "10Y", "30Y"),
    day_count: DayCount = DayCount.ACT_365
) -> DiscountCurve:
    """
    Create a flat discount curve.

    The curve carries one CurvePoint tenor per entry of ``tenors`` so it can
    be bumped and refitted like any market curve.

    Args:
        as_of: Curve date
        rate: Flat continuously compounded zero rate
        name: Curve name
        tenors: Tenor names
        day_count: Day count of the time axis

    Returns:
        Fitted DiscountCurve
    """
    curve = DiscountCurve(as_of, name, calibrator=DiscountBootstrapCalibrator(), day_count=day_count)
    for tenor in tenors:
        curve.add_tenor(CurvePoint(tenor=tenor, quote=rate, day_count=day_count))
    curve.fit()
    return curve


__all__ = [
    "DiscountCurve",
    "DiscountBootstrapCalibrator",
    "create_flat_curve",
]

"""
Stock forward curves.

The fitted values are continuously compounded dividend yields q(t):
    F(t) = spot * exp((r(t) - q(t) - spread) * t)

where r(t) is the zero rate of the funding curve and ``spread`` is an
additive dividend-yield shift used by scenarios. The spot price is quoted
on a SpotAsset tenor; StockForward tenors imply the dividend yields.
"""

from datetime import date
from typing import List, Optional, Sequence, Union

import numpy as np

from ..conventions import DayCount
from ..errors import CurveFitError
from .base import CalibratedCurve, Calibrator
from .discount import DiscountCurve
from .instruments import SpotAsset, StockForward


class StockCurve(CalibratedCurve):
    """
    Forward curve of a stock.

    Attributes:
        spot: Spot price
        discount_curve: Funding curve
        dividend_yield: Yield used when no forwards are quoted
        spread: Additive dividend-yield shift
    """

    STATE_ATTRIBUTES = CalibratedCurve.STATE_ATTRIBUTES + ("spot", "dividend_yield", "spread")

    def __init__(self, as_of: date, name: str, spot: float, discount_curve: DiscountCurve,
                 tenors=None, calibrator: Optional[Calibrator] = None, dividend_yield: float = 0.0,
                 day_count: DayCount = DayCount.ACT_365):
        super().__init__(as_of, name, "Stock", tenors, calibrator, day_count)
        self.spot = spot
        self.discount_curve = discount_curve
        self.dividend_yield = dividend_yield
        self.spread = 0.0

    @property
    def spot_tenors(self):
        return [t for t in self.tenors if isinstance(t.product, SpotAsset)]

    def set_spot(self, spot: float) -> None:
        """Set the spot price and every tenor quoted off it."""
        self.spot = float(spot)
        for tenor in self.spot_tenors:
            tenor.quote = self.spot

    def dividend(self, t: Union[float, date]) -> float:
        """Dividend yield to t, including the spread."""
        base = self.value(t) if self.is_fitted else self.dividend_yield
        return base + self.spread

    def forward(self, t: Union[float, date]) -> float:
        """Forward price at t."""
        if isinstance(t, date):
            t = self.time(t)
        if t <= 0:
            return self.spot
        r = self.discount_curve.zero_rate(t)
        return float(self.spot * np.exp((r - self.dividend(t)) * t))

    def fit_from_quotes(self) -> None:
        # Without a calibrator the curve carries a flat dividend yield
        spot_tenors = self.spot_tenors
        if spot_tenors:
            self.spot = spot_tenors[0].quote
        self.set_points([0.0], [self.dividend_yield])


class StockCalibrator(Calibrator):
    """
    Implies dividend yields from quoted forwards.

    Attributes:
        discount_curve: Funding curve
    """

    def __init__(self, discount_curve: DiscountCurve):
        self.discount_curve = discount_curve

    def prerequisite_curves(self) -> List[CalibratedCurve]:
        return [self.discount_curve]

    def fit(self, curve: CalibratedCurve, from_index: int = 0) -> None:
        spot_tenors = curve.spot_tenors
        if spot_tenors:
            curve.spot = spot_tenors[0].quote
        if curve.spot <= 0:
            raise CurveFitError(curve.name, None, f"invalid spot price {curve.spot}")

        times: List[float] = []
        yields: List[float] = []
        for tenor in curve.tenors:
            if not isinstance(tenor.product, StockForward):
                continue
            t = curve.time(tenor.maturity)
            if t <= 0:
                continue
            if tenor.quote <= 0:
                raise CurveFitError(curve.name, tenor.name, f"invalid forward price {tenor.quote}")
            r = self.discount_curve.zero_rate(t)
            times.append(t)
            yields.append(r - np.log(tenor.quote / curve.spot) / t)

        if not times:
            times, yields = [0.0], [curve.dividend_yield]
        curve.set_points(times, yields)


def create_stock_curve(
    as_of: date,
    spot: float,
    discount_curve: DiscountCurve,
    dividend_yield: float = 0.0,
    name: str = "Stock",
    tenors: Sequence[str] = ("6M", "1Y", "2Y", "5Y")
) -> StockCurve:
    """
    Create a stock curve quoted by spot and forwards at a flat dividend yield.

    Args:
        as_of: Curve date
        spot: Spot price
        discount_curve: Funding curve
        dividend_yield: Flat dividend yield used to generate the forward quotes
        name: Curve name
        tenors: Forward tenors

    Returns:
        Fitted StockCurve
    """
    curve = StockCurve(as_of, name, spot, discount_curve, calibrator=StockCalibrator(discount_curve),
                       dividend_yield=dividend_yield)
    curve.add_tenor(SpotAsset(tenor="0D", quote=spot), name="Spot")
    for tenor in tenors:
        product = StockForward(tenor=tenor, quote=spot)
        t = curve.time(product.maturity_date(as_of))
        product.quote = float(spot * np.exp((discount_curve.zero_rate(t) - dividend_yield) * t))
        curve.add_tenor(product)
    curve.fit()
    return curve


__all__ = [
    "StockCurve",
    "StockCalibrator",
    "create_stock_curve",
]

"""
FX forward curves.

An FxCurve gives the outright forward rate from_ccy -> to_ccy by date.
It is built one of two ways:
- supplied: the outright forwards are quoted directly on FxForward tenors
- basis-fit: forwards follow covered interest parity off the two discount
  curves, adjusted by a cross-currency basis curve:
      F(t) = spot * DF_from(t) / DF_to(t) * exp(basis(t) * t)

In both cases the earliest FxForward tenor carries the spot rate.
"""

from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Union

import numpy as np

from ..conventions import DayCount
from ..dates import DateUtils
from ..errors import CurveFitError
from .base import CalibratedCurve, Calibrator
from .discount import DiscountCurve
from .instruments import CurvePoint, FxForward


@dataclass
class FxRate:
    """
    Spot exchange rate.

    Attributes:
        from_ccy: Base currency
        to_ccy: Quote currency
        rate: Units of to_ccy per unit of from_ccy
    """
    from_ccy: str
    to_ccy: str
    rate: float

    @property
    def name(self) -> str:
        return f"{self.from_ccy}{self.to_ccy}"


class BasisCurve(CalibratedCurve):
    """Cross-currency basis spreads quoted directly on CurvePoint tenors."""

    def __init__(self, as_of: date, name: str, tenors=None, day_count: DayCount = DayCount.ACT_365):
        super().__init__(as_of, name, "Basis", tenors, None, day_count)

    def basis(self, t: Union[float, date]) -> float:
        return self.value(t)

    @classmethod
    def flat(cls, as_of: date, spread: float, name: str = "Basis",
             tenors=("1Y", "5Y", "10Y")) -> "BasisCurve":
        curve = cls(as_of, name)
        for tenor in tenors:
            curve.add_tenor(CurvePoint(tenor=tenor, quote=spread))
        curve.fit()
        return curve


class FxCurve(CalibratedCurve):
    """
    Outright fx forward curve.

    Attributes:
        spot: Spot rate, refreshed from the earliest FxForward tenor on each fit
        domestic_curve: Discount curve of to_ccy
        foreign_curve: Discount curve of from_ccy
        basis_curve: Basis curve used by a basis fit
        inverse_basis_curve: Basis curve of the inverse pair, if quoted separately
    """

    def __init__(
        self,
        as_of: date,
        name: str,
        spot: FxRate,
        tenors=None,
        calibrator: Optional[Calibrator] = None,
        domestic_curve: Optional[DiscountCurve] = None,
        foreign_curve: Optional[DiscountCurve] = None,
        basis_curve: Optional[BasisCurve] = None,
        inverse_basis_curve: Optional[BasisCurve] = None,
        day_count: DayCount = DayCount.ACT_365
    ):
        super().__init__(as_of, name, "FX", tenors, calibrator, day_count)
        self.spot = spot
        self.domestic_curve = domestic_curve
        self.foreign_curve = foreign_curve
        self.basis_curve = basis_curve
        self.inverse_basis_curve = inverse_basis_curve

    @property
    def is_supplied(self) -> bool:
        """Forwards are supplied directly rather than fitted off a basis curve."""
        return not isinstance(self.calibrator, FxBasisCalibrator)

    @property
    def spot_tenor(self):
        """The earliest FxForward tenor, which carries the spot rate."""
        for tenor in self.tenors:
            if isinstance(tenor.product, FxForward):
                return tenor
        return None

    def fx_rate(self, d: Optional[Union[date, float]] = None) -> float:
        """Outright forward rate at a date (the spot when no date is given)."""
        if d is None:
            return self.spot.rate
        if isinstance(d, date) and d <= self.as_of:
            return self.spot.rate
        return self.value(d)

    def fit_from_quotes(self) -> None:
        spot_tenor = self.spot_tenor
        if spot_tenor is not None:
            self.spot.rate = spot_tenor.quote
        super().fit_from_quotes()

    def component_curves(self) -> List[CalibratedCurve]:
        return [c for c in (self.basis_curve, self.inverse_basis_curve) if c is not None]

    def copy_from(self, saved: "FxCurve") -> None:
        super().copy_from(saved)
        self.spot.rate = saved.spot.rate


class FxBasisCalibrator(Calibrator):
    """
    Fits forwards from the discount curves and a basis curve.

    Attributes:
        domestic_curve: Discount curve of the quote currency
        foreign_curve: Discount curve of the base currency
        basis_curve: Basis spread curve
        grid: Extra tenors at which forwards are materialized
    """

    def __init__(self, domestic_curve: DiscountCurve, foreign_curve: DiscountCurve,
                 basis_curve: Optional[BasisCurve] = None,
                 grid=("1M", "3M", "6M", "1Y", "2Y", "3Y", "5Y", "7Y", "10Y", "20Y", "30Y")):
        self.domestic_curve = domestic_curve
        self.foreign_curve = foreign_curve
        self.basis_curve = basis_curve
        self.grid = tuple(grid)

    def prerequisite_curves(self) -> List[CalibratedCurve]:
        curves: List[CalibratedCurve] = [self.domestic_curve, self.foreign_curve]
        if self.basis_curve is not None:
            curves.append(self.basis_curve)
        return curves

    def forward(self, curve: FxCurve, t: float, spot: float) -> float:
        if t <= 0:
            return spot
        ratio = self.foreign_curve.discount_factor(t) / self.domestic_curve.discount_factor(t)
        basis = self.basis_curve.value_at_time(t) if self.basis_curve is not None else 0.0
        return spot * ratio * float(np.exp(basis * t))

    def fit(self, curve: CalibratedCurve, from_index: int = 0) -> None:
        spot_tenor = curve.spot_tenor
        if spot_tenor is None:
            raise CurveFitError(curve.name, None, "no FxForward tenor carries the spot rate")
        if spot_tenor.quote <= 0:
            raise CurveFitError(curve.name, spot_tenor.name, f"invalid spot rate {spot_tenor.quote}")
        curve.spot.rate = spot_tenor.quote

        times = {curve.time(t.maturity) for t in curve.tenors}
        times.update(curve.time(DateUtils.add_tenor(curve.as_of, g)) for g in self.grid)
        times = sorted(t for t in times if t > 0)
        forwards = [self.forward(curve, t, curve.spot.rate) for t in times]
        curve.set_points([0.0] + times, [curve.spot.rate] + forwards)


__all__ = [
    "FxRate",
    "BasisCurve",
    "FxCurve",
    "FxBasisCalibrator",
]

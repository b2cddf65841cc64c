"""
Survival and recovery curves.

SurvivalCurve stores the average hazard rate h(t) at each CDS maturity,
interpolated linearly in time:
    S(t) = exp(-h(t) * t)

Each CDS tenor is fitted so that its running premium reprices the contract:
    premium * annuity = protection
    annuity    = sum(tau_k * DF(t_k) * (S(t_{k-1}) + S(t_k)) / 2)
    protection = (1 - R) * sum(DF(t_k) * (S(t_{k-1}) - S(t_k)))

The fit needs the discount curve and the recovery curve first, which makes
them prerequisites of the survival curve.
"""

from datetime import date
from typing import Callable, List, Optional, Sequence, Tuple, Union

import numpy as np
import structlog
from scipy.optimize import brentq

from ..conventions import DayCount, Defaulted
from ..dates import DateUtils
from ..errors import CurveFitError
from .base import CalibratedCurve, Calibrator
from .discount import DiscountCurve
from .instruments import CDS, CurveInstrument, CurvePoint, RecoveryQuote


logger = structlog.get_logger(__name__)

# Largest average hazard rate the fit searches
MAX_HAZARD = 50.0


class RecoveryCurve(CalibratedCurve):
    """
    Recovery rate term structure.

    The quoted recovery is shifted by ``spread`` and clamped to [0, 1].

    Attributes:
        spread: Additive shift on top of the quoted recovery
    """

    STATE_ATTRIBUTES = CalibratedCurve.STATE_ATTRIBUTES + ("spread",)

    def __init__(self, as_of: date, name: str, tenors=None, day_count: DayCount = DayCount.ACT_365):
        super().__init__(as_of, name, "Recovery", tenors, None, day_count)
        self.spread = 0.0

    def recovery_rate(self, d: Union[date, float, None] = None) -> float:
        """Recovery rate at a date (flat curves ignore the date)."""
        base = self.value(self.last_maturity if d is None else d)
        return float(np.clip(base + self.spread, 0.0, 1.0))

    @classmethod
    def flat(cls, as_of: date, recovery: float, name: str = "Recovery",
             tenor: str = "5Y") -> "RecoveryCurve":
        """Flat recovery curve carrying a single quote."""
        curve = cls(as_of, name)
        curve.add_tenor(RecoveryQuote(tenor=tenor, quote=recovery))
        curve.fit()
        return curve


class SurvivalCurve(CalibratedCurve):
    """
    Credit curve of a reference entity.

    Attributes:
        defaulted: Credit state
        default_date: Default date when the state is not NOT_DEFAULTED
        will_recover: Recovery is still to be settled after a default
        recovery_curve: Recovery curve used by pricers and the fit
    """

    STATE_ATTRIBUTES = CalibratedCurve.STATE_ATTRIBUTES + ("defaulted", "default_date", "will_recover")

    def __init__(self, as_of: date, name: str, tenors=None, calibrator=None,
                 day_count: DayCount = DayCount.ACT_365,
                 recovery_curve: Optional[RecoveryCurve] = None):
        super().__init__(as_of, name, "Credit", tenors, calibrator, day_count)
        self.recovery_curve = recovery_curve
        self.defaulted = Defaulted.NOT_DEFAULTED
        self.default_date: Optional[date] = None
        self.will_recover = False

    @property
    def jump_date(self) -> Optional[date]:
        if self.defaulted != Defaulted.NOT_DEFAULTED:
            return self.default_date
        return None

    def set_defaulted(self, default_date: date, state: Defaulted = Defaulted.WILL_DEFAULT) -> None:
        """Mark the curve as defaulting on a date."""
        self.defaulted = state
        self.default_date = default_date

    def survival_probability(self, t: Union[float, date]) -> float:
        """
        Survival probability to t.

        Returns 0 on or after the default date of a defaulted curve.
        """
        if isinstance(t, date):
            if self.jump_date is not None and t >= self.jump_date:
                return 0.0
            t = self.time(t)
        if t <= 0:
            return 1.0
        return float(np.exp(-self.value_at_time(t) * t))

    def hazard_rate(self, t: Union[float, date]) -> float:
        """Average hazard rate to t."""
        return self.value(t)

    def default_probability(self, t: Union[float, date]) -> float:
        return 1.0 - self.survival_probability(t)

    def component_curves(self) -> List[CalibratedCurve]:
        return [self.recovery_curve] if self.recovery_curve is not None else []


def premium_schedule(as_of: date, product: CDS) -> List[date]:
    """Premium payment dates of a CDS, ending at its maturity."""
    months = max(12 // max(product.frequency, 1), 1)
    maturity = product.maturity_date(as_of)
    dates = []
    k = 1
    while True:
        d = DateUtils.add_tenor(as_of, f"{k * months}M")
        if d >= maturity:
            break
        dates.append(d)
        k += 1
    dates.append(maturity)
    return dates


def cds_legs(
    as_of: date,
    product: CDS,
    survival: Callable[[float], float],
    curve_time: Callable[[date], float],
    discount: DiscountCurve,
    recovery: float
) -> Tuple[float, float]:
    """
    Risky annuity and protection leg of a CDS per unit notional.

    Args:
        as_of: Valuation date
        product: CDS contract
        survival: Survival probability by curve time
        curve_time: Maps dates to the survival curve time axis
        discount: Discount curve
        recovery: Recovery rate

    Returns:
        Tuple of (annuity, protection)
    """
    annuity = 0.0
    protection = 0.0
    prev_date = as_of
    prev_surv = 1.0
    for d in premium_schedule(as_of, product):
        tau = (d - prev_date).days / 360.0
        surv = survival(curve_time(d))
        df = discount.discount_factor(d)
        annuity += tau * df * 0.5 * (prev_surv + surv)
        protection += df * (prev_surv - surv)
        prev_date, prev_surv = d, surv
    return annuity, (1.0 - recovery) * protection


class SurvivalFitCalibrator(Calibrator):
    """
    Fits a survival curve to CDS premia tenor by tenor.

    Attributes:
        discount_curve: Curve discounting both legs
        recovery_curve: Recovery assumption; falls back to recovery_rate when None
        recovery_rate: Fixed recovery used without a recovery curve
    """

    def __init__(self, discount_curve: DiscountCurve, recovery_curve: Optional[RecoveryCurve] = None,
                 recovery_rate: float = 0.4):
        self.discount_curve = discount_curve
        self.recovery_curve = recovery_curve
        self.recovery_rate = recovery_rate

    def prerequisite_curves(self) -> List[CalibratedCurve]:
        curves: List[CalibratedCurve] = [self.discount_curve]
        if self.recovery_curve is not None:
            curves.append(self.recovery_curve)
        return curves

    def recovery(self, maturity: date) -> float:
        if self.recovery_curve is not None:
            return self.recovery_curve.recovery_rate(maturity)
        return self.recovery_rate

    def fit(self, curve: CalibratedCurve, from_index: int = 0) -> None:
        times: List[float] = []
        hazards: List[float] = []

        for tenor in curve.tenors:
            t = curve.time(tenor.maturity)
            if t <= 0:
                continue
            if isinstance(tenor.product, CurvePoint):
                # Average hazard rate quoted directly
                times.append(t)
                hazards.append(tenor.quote)
                continue
            if not isinstance(tenor.product, CDS):
                continue
            product = tenor.product
            recovery = self.recovery(tenor.maturity)
            prior_times = np.array(times, dtype=np.float64)
            prior_hazards = np.array(hazards, dtype=np.float64)

            def residual(h: float) -> float:
                node_times = np.append(prior_times, t)
                node_values = np.append(prior_hazards, h)

                def survival(s: float) -> float:
                    if s <= 0:
                        return 1.0
                    return float(np.exp(-np.interp(s, node_times, node_values) * s))

                annuity, protection = cds_legs(
                    curve.as_of, product, survival, curve.time, self.discount_curve, recovery
                )
                return product.quote * annuity - protection

            lo, hi = 0.0, MAX_HAZARD
            f_lo, f_hi = residual(lo), residual(hi)
            if f_lo * f_hi > 0:
                raise CurveFitError(
                    curve.name, tenor.name, f"premium {product.quote:.6g} cannot be matched by a hazard rate"
                )
            h = brentq(residual, lo, hi, xtol=1e-14)
            times.append(t)
            hazards.append(h)

        if not times:
            raise CurveFitError(curve.name, None, "no credit tenors after the curve date")
        curve.set_points(times, hazards)

    def instrument_value(self, curve: CalibratedCurve, product: CurveInstrument) -> float:
        """PV to the protection seller of a CDS paying its (frozen) quote."""
        if not isinstance(product, CDS):
            return super().instrument_value(curve, product)
        maturity = product.maturity_date(curve.as_of)
        annuity, protection = cds_legs(
            curve.as_of, product, curve.survival_probability, curve.time,
            self.discount_curve, self.recovery(maturity)
        )
        return product.quote * annuity - protection


def create_flat_survival_curve(
    as_of: date,
    spread: float,
    discount_curve: DiscountCurve,
    recovery: float = 0.4,
    name: str = "Credit",
    tenors: Sequence[str] = ("1Y", "3Y", "5Y", "7Y", "10Y")
) -> SurvivalCurve:
    """
    Create a survival curve fitted to a flat CDS premium.

    Args:
        as_of: Curve date
        spread: CDS premium for every tenor (decimal)
        discount_curve: Discount curve for the fit
        recovery: Flat recovery rate
        name: Curve name
        tenors: CDS tenors

    Returns:
        Fitted SurvivalCurve with its own RecoveryCurve
    """
    recovery_curve = RecoveryCurve.flat(as_of, recovery, name=f"{name}.Recovery")
    calibrator = SurvivalFitCalibrator(discount_curve, recovery_curve)
    curve = SurvivalCurve(as_of, name, calibrator=calibrator, recovery_curve=recovery_curve)
    for tenor in tenors:
        curve.add_tenor(CDS(tenor=tenor, quote=spread))
    curve.fit()
    return curve


__all__ = [
    "RecoveryCurve",
    "SurvivalCurve",
    "SurvivalFitCalibrator",
    "premium_schedule",
    "cds_legs",
    "create_flat_survival_curve",
]

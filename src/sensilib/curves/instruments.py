"""
Curve tenor instruments.

Each curve tenor references the instrument whose market quote it carries:
- CurvePoint: a value quoted directly on the curve (basis spread, dividend yield...)
- Deposit / OISSwap: money-market and swap rates for discount curves
- CDS: running premium for survival curves
- RecoveryQuote: recovery rate, kept in [0, 1]
- FxForward: outright fx rates; the earliest one is the spot
- SpotAsset / StockForward: stock spot and forward prices
- VolatilityQuote: implied volatility at an expiry

Each instrument knows how to:
1. Calculate its maturity from the curve as-of date
2. Restrict a bump so that its quote stays in its valid domain
"""

from abc import abstractmethod
from dataclasses import dataclass
from datetime import date
from typing import Callable, ClassVar, List, Optional, Tuple

import numpy as np
from scipy.optimize import brentq

from ..conventions import BumpFlags, DayCount, year_fraction
from ..dates import DateUtils


@dataclass
class CurveInstrument:
    """
    Base class for instruments quoted on a curve tenor.

    Attributes:
        tenor: Instrument tenor (e.g., "3M", "2Y")
        quote: Market quote (rate, spread, price or volatility in decimal)
        day_count: Accrual day count convention
        description: Optional label (defaults to the tenor)
    """
    tenor: str
    quote: float
    day_count: DayCount = DayCount.ACT_360
    description: str = ""

    # Quote domain; None means unbounded
    QUOTE_FLOOR: ClassVar[Optional[float]] = None
    QUOTE_CAP: ClassVar[Optional[float]] = None

    def maturity_date(self, anchor: date) -> date:
        """Maturity date from anchor."""
        return DateUtils.add_tenor(anchor, self.tenor)

    def maturity_time(self, anchor: date) -> float:
        """Accrual time to maturity in years."""
        return year_fraction(anchor, self.maturity_date(anchor), self.day_count)

    def adjust_bump(self, amount: float, flags: BumpFlags) -> float:
        """
        Restrict a quote change to the instrument's quote domain.

        A bump that would push the quote through its floor is halved towards
        the floor instead, so the realized bump keeps the requested sign.
        A bump through the cap stops at the cap.

        Args:
            amount: Signed change requested
            flags: Bump flags (ALLOW_NEGATIVE_SPREADS lifts the floor)

        Returns:
            Signed change to apply
        """
        new_quote = self.quote + amount
        floor = self.QUOTE_FLOOR
        if floor is not None and not (flags & BumpFlags.ALLOW_NEGATIVE_SPREADS):
            if amount < 0 and new_quote <= floor:
                amount = (floor - self.quote) / 2.0
        if self.QUOTE_CAP is not None and new_quote > self.QUOTE_CAP:
            amount = self.QUOTE_CAP - self.quote
        return amount


@dataclass
class CurvePoint(CurveInstrument):
    """A value quoted directly on the curve at the tenor maturity."""


@dataclass
class RateInstrument(CurveInstrument):
    """Instrument quoted as a rate from which a discount factor is bootstrapped."""

    @abstractmethod
    def payment_schedule(self, anchor: date) -> List[Tuple[date, float]]:
        """List of (payment_date, accrual_fraction)."""

    def implied_discount_factor(
        self,
        anchor: date,
        curve_time: Callable[[date], float],
        prior_dfs: List[Tuple[float, float]]
    ) -> Tuple[float, float]:
        """
        Solve for the discount factor at maturity that prices the instrument at par.

        Intermediate payments falling beyond the last known node are
        interpolated log-linearly towards the unknown final node.

        Args:
            anchor: Curve anchor date
            curve_time: Maps a date to the curve time axis
            prior_dfs: (time, df) pairs for earlier maturities, ascending

        Returns:
            Tuple of (time, discount_factor)

        Raises:
            ValueError: If no discount factor reprices the quote
        """
        schedule = self.payment_schedule(anchor)
        if not schedule:
            return (0.0, 1.0)

        times = np.array([t for t, _ in prior_dfs], dtype=np.float64)
        log_dfs = np.log(np.array([df for _, df in prior_dfs], dtype=np.float64))
        pay_times = [curve_time(d) for d, _ in schedule]
        taus = [tau for _, tau in schedule]
        t_n = pay_times[-1]
        if t_n <= 0:
            return (0.0, 1.0)

        def df_at(t: float, df_n: float) -> float:
            if t >= t_n:
                return df_n
            if t <= times[-1]:
                return float(np.exp(np.interp(t, times, log_dfs)))
            t0, l0 = times[-1], log_dfs[-1]
            w = (t - t0) / (t_n - t0)
            return float(np.exp(l0 + w * (np.log(df_n) - l0)))

        def residual(df_n: float) -> float:
            fixed = sum(self.quote * tau * df_at(t, df_n) for t, tau in zip(pay_times, taus))
            return fixed + df_n - 1.0

        df_final = brentq(residual, 1e-8, 4.0, xtol=1e-14)
        return (t_n, df_final)

    def value(self, anchor: date, discount_factor: Callable[[date], float],
              coupon: Optional[float] = None) -> float:
        """
        PV of receiving a fixed coupon against par, per unit notional.

        Args:
            anchor: Valuation date
            discount_factor: Discount factor by date
            coupon: Fixed rate (defaults to the current quote)
        """
        rate = self.quote if coupon is None else coupon
        schedule = self.payment_schedule(anchor)
        annuity = sum(tau * discount_factor(d) for d, tau in schedule)
        return rate * annuity + discount_factor(schedule[-1][0]) - 1.0


@dataclass
class Deposit(RateInstrument):
    """
    Money market deposit.

    Simple interest instrument: the depositor receives (1 + R*tau) at maturity.
    """

    def payment_schedule(self, anchor: date) -> List[Tuple[date, float]]:
        mat = self.maturity_date(anchor)
        return [(mat, year_fraction(anchor, mat, self.day_count))]


@dataclass
class OISSwap(RateInstrument):
    """
    Overnight Index Swap.

    Par swap rate: R = (1 - DF(Tn)) / sum(delta_i * DF(Ti))
    """
    payment_frequency: str = "ANNUAL"  # ANNUAL, SEMI, QUARTERLY, MONTHLY

    def payment_schedule(self, anchor: date) -> List[Tuple[date, float]]:
        freq_map = {"ANNUAL": 1, "SEMI": 2, "QUARTERLY": 4, "MONTHLY": 12}
        months = 12 // freq_map.get(self.payment_frequency.upper(), 1)
        mat = self.maturity_date(anchor)

        dates = []
        k = 1
        while True:
            d = DateUtils.add_tenor(anchor, f"{k * months}M")
            if d >= mat:
                break
            dates.append(d)
            k += 1
        dates.append(mat)

        result = []
        prev = anchor
        for d in dates:
            result.append((d, year_fraction(prev, d, self.day_count)))
            prev = d
        return result


@dataclass
class CDS(CurveInstrument):
    """
    Credit default swap quoted by its running premium.

    Attributes:
        frequency: Premium payments per year
    """
    frequency: int = 4

    QUOTE_FLOOR: ClassVar[Optional[float]] = 0.0


@dataclass
class RecoveryQuote(CurveInstrument):
    """Recovery rate as a fraction of notional."""

    QUOTE_FLOOR: ClassVar[Optional[float]] = 0.0
    QUOTE_CAP: ClassVar[Optional[float]] = 1.0

    def adjust_bump(self, amount: float, flags: BumpFlags) -> float:
        # Recovery stays in [0, 1] whatever the flags
        return float(np.clip(self.quote + amount, 0.0, 1.0)) - self.quote


@dataclass
class FxForward(CurveInstrument):
    """Outright fx forward; the earliest forward on an fx curve is the spot."""

    QUOTE_FLOOR: ClassVar[Optional[float]] = 0.0


@dataclass
class SpotAsset(CurveInstrument):
    """Stock spot price."""

    QUOTE_FLOOR: ClassVar[Optional[float]] = 0.0


@dataclass
class StockForward(CurveInstrument):
    """Stock forward price."""

    QUOTE_FLOOR: ClassVar[Optional[float]] = 0.0


@dataclass
class VolatilityQuote(CurveInstrument):
    """Implied volatility at the tenor expiry."""

    QUOTE_FLOOR: ClassVar[Optional[float]] = 0.0


__all__ = [
    "CurveInstrument",
    "CurvePoint",
    "RateInstrument",
    "Deposit",
    "OISSwap",
    "CDS",
    "RecoveryQuote",
    "FxForward",
    "SpotAsset",
    "StockForward",
    "VolatilityQuote",
]

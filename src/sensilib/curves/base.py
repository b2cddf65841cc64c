"""
Calibrated curve model.

A CalibratedCurve is an identity-bearing, mutable market object:
- an ordered list of named tenors, each carrying the instrument whose quote it holds
- an optional Calibrator that refits the curve from the current tenor quotes,
  and that may need other curves to be fitted first
- a fitted representation (times and values) interpolated linearly in time

Subclasses choose what the fitted values mean (zero rates, average hazard
rates, forward prices, volatilities) and which extra attributes belong to the
curve state that a bump must save and restore.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from typing import Iterator, List, Optional, Sequence, Tuple, Union
import copy

import numpy as np

from ..conventions import BumpFlags, DayCount, year_fraction
from .instruments import CurveInstrument


@dataclass
class CurveTenor:
    """
    A named point on a curve.

    Attributes:
        name: Tenor name (e.g., "5Y")
        product: Instrument carrying the market quote
        maturity: Maturity date of the instrument
    """
    name: str
    product: CurveInstrument
    maturity: date

    @property
    def quote(self) -> float:
        return self.product.quote

    @quote.setter
    def quote(self, value: float) -> None:
        self.product.quote = float(value)

    def bump_quote(self, size: float, flags: BumpFlags) -> float:
        """
        Bump the tenor quote.

        Args:
            size: Non-negative bump size in quote units (a fraction of the quote if relative)
            flags: Direction and relative/absolute flags

        Returns:
            Realized bump magnitude in quote units
        """
        up = not (flags & BumpFlags.BUMP_DOWN)
        amount = size if up else -size
        if flags & BumpFlags.BUMP_RELATIVE:
            amount = self.quote * amount
        amount = self.product.adjust_bump(amount, flags)
        self.quote = self.quote + amount
        return amount if up else -amount


class Calibrator(ABC):
    """Refits a curve from the quotes of its tenors."""

    @abstractmethod
    def fit(self, curve: "CalibratedCurve", from_index: int = 0) -> None:
        """
        Fit the curve from its current tenor quotes.

        Args:
            curve: Curve to fit in place
            from_index: First tenor whose quote may have changed

        Raises:
            CurveFitError: If a tenor cannot be fitted
        """

    def prerequisite_curves(self) -> List["CalibratedCurve"]:
        """Curves that must be fitted before this calibrator can run."""
        return []

    def instrument_value(self, curve: "CalibratedCurve", product: CurveInstrument) -> float:
        """
        Value of a tenor instrument off the fitted curve.

        The default reads the curve value at the instrument maturity.
        """
        return curve.value(product.maturity_date(curve.as_of))


class CalibratedCurve:
    """
    Base class for curves fitted from tenor quotes.

    Attributes:
        as_of: Curve date (time 0)
        name: Curve name, unique within a market
        category: Curve kind reported in result tables
        tenors: Ordered tenors
        calibrator: Optional calibrator; without one the tenor quotes are the curve values
        day_count: Day count of the curve time axis
    """

    # Attributes restored by copy_from; collaborator references are not part of the state
    STATE_ATTRIBUTES: Tuple[str, ...] = ("as_of", "tenors", "_times", "_values")

    def __init__(
        self,
        as_of: date,
        name: str,
        category: str = "",
        tenors: Optional[Sequence[CurveTenor]] = None,
        calibrator: Optional[Calibrator] = None,
        day_count: DayCount = DayCount.ACT_365
    ):
        self.as_of = as_of
        self.name = name
        self.category = category
        self.calibrator = calibrator
        self.day_count = day_count
        self.tenors: List[CurveTenor] = []
        self._times = np.zeros(0, dtype=np.float64)
        self._values = np.zeros(0, dtype=np.float64)
        for tenor in tenors or []:
            self._insert_tenor(tenor)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r}, as_of={self.as_of}, tenors={len(self.tenors)})"

    # =========================================================================
    # Tenors
    # =========================================================================

    def add_tenor(self, product: CurveInstrument, name: Optional[str] = None) -> CurveTenor:
        """
        Add a tenor carrying an instrument quote.

        Args:
            product: Instrument for the tenor
            name: Tenor name (defaults to the instrument description or tenor)

        Returns:
            The new tenor
        """
        tenor = CurveTenor(
            name=name or product.description or product.tenor,
            product=product,
            maturity=product.maturity_date(self.as_of)
        )
        self._insert_tenor(tenor)
        return tenor

    def _insert_tenor(self, tenor: CurveTenor) -> None:
        if self.tenor_index(tenor.name) >= 0:
            raise ValueError(f"Curve {self.name} already has a tenor named {tenor.name}")
        idx = len(self.tenors)
        while idx > 0 and self.tenors[idx - 1].maturity > tenor.maturity:
            idx -= 1
        self.tenors.insert(idx, tenor)

    def tenor_index(self, name: str) -> int:
        """Index of the named tenor, or -1."""
        for i, tenor in enumerate(self.tenors):
            if tenor.name == name:
                return i
        return -1

    def find_tenor(self, name: str) -> Optional[CurveTenor]:
        idx = self.tenor_index(name)
        return self.tenors[idx] if idx >= 0 else None

    @property
    def tenor_names(self) -> List[str]:
        return [t.name for t in self.tenors]

    @property
    def quotes(self) -> np.ndarray:
        return np.array([t.quote for t in self.tenors], dtype=np.float64)

    @property
    def last_maturity(self) -> Optional[date]:
        return self.tenors[-1].maturity if self.tenors else None

    def __iter__(self) -> Iterator[CurveTenor]:
        return iter(self.tenors)

    def __len__(self) -> int:
        return len(self.tenors)

    # =========================================================================
    # Fitted representation
    # =========================================================================

    def time(self, d: date) -> float:
        """Year fraction from the curve date on the curve time axis."""
        return year_fraction(self.as_of, d, self.day_count)

    def set_points(self, times: Sequence[float], values: Sequence[float]) -> None:
        """Replace the fitted representation."""
        times = np.asarray(times, dtype=np.float64)
        values = np.asarray(values, dtype=np.float64)
        if times.shape != values.shape:
            raise ValueError("times and values must have the same length")
        order = np.argsort(times, kind="stable")
        self._times = times[order]
        self._values = values[order]

    @property
    def points(self) -> Tuple[np.ndarray, np.ndarray]:
        """Copies of the fitted (times, values)."""
        return self._times.copy(), self._values.copy()

    @property
    def is_fitted(self) -> bool:
        return self._times.size > 0

    def value_at_time(self, t: float) -> float:
        """Fitted value at time t, flat beyond the first and last points."""
        if not self.is_fitted:
            raise RuntimeError(f"Curve {self.name} is not fitted")
        return float(np.interp(t, self._times, self._values))

    def value(self, d: Union[date, float]) -> float:
        """Fitted value at a date (or a time)."""
        t = self.time(d) if isinstance(d, date) else float(d)
        return self.value_at_time(t)

    def fit(self) -> None:
        """Fit the whole curve."""
        self.refit(0)

    def refit(self, from_index: int = 0) -> None:
        """
        Refit the curve from its current tenor quotes.

        Args:
            from_index: First tenor whose quote may have changed
        """
        if self.calibrator is not None:
            self.calibrator.fit(self, from_index)
        else:
            self.fit_from_quotes()

    def fit_from_quotes(self) -> None:
        """Use the tenor quotes directly as curve values."""
        if not self.tenors:
            return
        self.set_points([self.time(t.maturity) for t in self.tenors], [t.quote for t in self.tenors])

    # =========================================================================
    # Dependencies
    # =========================================================================

    @property
    def jump_date(self) -> Optional[date]:
        """Date of a discontinuity (e.g. a default); curves with one are not bumped."""
        return None

    def prerequisite_curves(self) -> List["CalibratedCurve"]:
        """Curves that must be fitted before this one."""
        if self.calibrator is None:
            return []
        return [c for c in self.calibrator.prerequisite_curves() if c is not None and c is not self]

    def component_curves(self) -> List["CalibratedCurve"]:
        """Curves this one is built from (overlays, basis curves)."""
        return []

    # =========================================================================
    # State
    # =========================================================================

    def clone(self) -> "CalibratedCurve":
        """Independent deep copy of the curve and its collaborators."""
        return copy.deepcopy(self)

    def copy_from(self, saved: "CalibratedCurve") -> None:
        """
        Restore the curve state from a saved clone.

        Only the attributes in STATE_ATTRIBUTES are copied; references to
        other curves and the calibrator are left untouched.
        """
        for attr in self.STATE_ATTRIBUTES:
            setattr(self, attr, copy.deepcopy(getattr(saved, attr)))

    def same_state(self, other: "CalibratedCurve") -> bool:
        """Whether quotes and fitted points are identical to another curve's."""
        return (
            np.array_equal(self.quotes, other.quotes)
            and np.array_equal(self._times, other._times)
            and np.array_equal(self._values, other._values)
        )


__all__ = [
    "CurveTenor",
    "Calibrator",
    "CalibratedCurve",
]

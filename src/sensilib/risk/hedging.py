"""
Hedge instruments for sensitivity reports.

The hedge for a bumped curve is the tenor instrument of that curve at the
hedge tenor, with its quote frozen at the base market. Its value moves with
the bump exactly as the curve does, which gives the hedge delta.

Hedge tenor selectors:
- None or "": no hedge
- tenor name: that tenor
- date or ISO date string: the tenor maturing closest to the date
- "maturity": the tenor maturing closest to the evaluator's product maturity
- "matching": the tenor being bumped (ByTenor only)
"""

from dataclasses import dataclass
from datetime import date
from typing import Optional, Union
import copy

from ..config import HEDGE_MATCHING, HEDGE_MATURITY
from ..curves import CalibratedCurve, CurveInstrument, CurveTenor


@dataclass
class HedgeInstrument:
    """
    Frozen hedge instrument on a curve.

    Attributes:
        curve: Curve the hedge is priced off
        tenor_name: Name of the hedge tenor
        product: Clone of the tenor instrument at its base quote
    """
    curve: CalibratedCurve
    tenor_name: str
    product: CurveInstrument

    def value(self) -> float:
        """Value of the hedge off the current state of its curve."""
        calibrator = self.curve.calibrator
        if calibrator is not None:
            return float(calibrator.instrument_value(self.curve, self.product))
        return self.curve.value(self.product.maturity_date(self.curve.as_of))


def closest_tenor(curve: CalibratedCurve, target: date) -> Optional[CurveTenor]:
    """Tenor maturing closest to a date; the earlier one wins a tie."""
    best = None
    best_distance = None
    for tenor in curve.tenors:
        distance = abs((tenor.maturity - target).days)
        if best_distance is None or distance < best_distance:
            best, best_distance = tenor, distance
    return best


def resolve_hedge_tenor(
    curve: CalibratedCurve,
    hedge_tenor: Union[str, date, None],
    product_maturity: Optional[date] = None,
    bumped_tenor: Optional[str] = None
) -> Optional[CurveTenor]:
    """
    Pick the hedge tenor of a curve.

    Args:
        curve: Bumped curve
        hedge_tenor: Hedge selector
        product_maturity: Maturity of the evaluator's product, for "maturity"
        bumped_tenor: Tenor being bumped, for "matching"

    Returns:
        The hedge tenor, or None when there is nothing to hedge with
    """
    if hedge_tenor is None or hedge_tenor == "":
        return None
    if isinstance(hedge_tenor, date):
        return closest_tenor(curve, hedge_tenor)

    key = hedge_tenor.strip()
    if key.lower() == HEDGE_MATCHING:
        return curve.find_tenor(bumped_tenor) if bumped_tenor else None
    if key.lower() == HEDGE_MATURITY:
        return closest_tenor(curve, product_maturity) if product_maturity else None

    tenor = curve.find_tenor(key)
    if tenor is not None:
        return tenor
    try:
        target = date.fromisoformat(key)
    except ValueError:
        return None
    return closest_tenor(curve, target)


def make_hedge(curve: CalibratedCurve, tenor: Optional[CurveTenor]) -> Optional[HedgeInstrument]:
    """Freeze the hedge instrument of a tenor at the current quote."""
    if tenor is None:
        return None
    return HedgeInstrument(curve=curve, tenor_name=tenor.name, product=copy.deepcopy(tenor.product))


__all__ = [
    "HedgeInstrument",
    "closest_tenor",
    "resolve_hedge_tenor",
    "make_hedge",
]

"""
Finite-difference measures from (base, up, down) values.

All bumps are non-negative magnitudes; the down leg enters with a minus sign:
    delta = (up - base) - (down - base)                       unscaled
    delta = ((up - base) - (down - base)) / (up_bump + down_bump)   scaled
    gamma = ((up - base) / up_bump + (down - base) / down_bump) / ((up_bump + down_bump) / 2)

A missing leg (None) contributes nothing. Bumps are the realized ones.
"""

from typing import Optional

import numpy as np


def calc_delta(
    base: float,
    up: Optional[float],
    down: Optional[float],
    up_bump: float,
    down_bump: float,
    scaled: bool = True
) -> float:
    """
    First-order sensitivity.

    Args:
        base: Base value
        up: Value after the up bump (None if not bumped up)
        down: Value after the down bump (None if not bumped down)
        up_bump: Realized up bump
        down_bump: Realized down bump
        scaled: Divide by the total bump

    Returns:
        Delta (NaN if a realized bump is NaN)
    """
    delta = (up - base if up is not None else 0.0) - (down - base if down is not None else 0.0)
    if not scaled:
        return delta
    total = (up_bump if up is not None else 0.0) + (down_bump if down is not None else 0.0)
    if np.isnan(total):
        return np.nan
    if total == 0.0:
        return 0.0
    return delta / total


def calc_gamma(
    base: float,
    up: Optional[float],
    down: Optional[float],
    up_bump: float,
    down_bump: float,
    scaled: bool = True
) -> float:
    """
    Second-order sensitivity from a centred difference.

    With unequal bumps the result is the convexity at the bump-weighted
    midpoint rather than at the base point.

    Returns:
        Gamma; 0 unless both legs are present
    """
    if up is None or down is None:
        return 0.0
    if not scaled:
        return (up - base) + (down - base)
    if np.isnan(up_bump) or np.isnan(down_bump):
        return np.nan
    if up_bump == 0.0 or down_bump == 0.0:
        return 0.0
    return ((up - base) / up_bump + (down - base) / down_bump) / ((up_bump + down_bump) / 2.0)


def calc_hedge(
    hedge_base: float,
    hedge_up: Optional[float],
    hedge_down: Optional[float],
    up_bump: float,
    down_bump: float,
    scaled: bool = True
) -> float:
    """
    Sensitivity of the hedge instrument to the same bump.

    Returns:
        Hedge delta; 0 when the total bump is 0
    """
    hedge = (hedge_up - hedge_base if hedge_up is not None else 0.0) \
        - (hedge_down - hedge_base if hedge_down is not None else 0.0)
    if not scaled:
        return hedge
    total = (up_bump if hedge_up is not None else 0.0) + (down_bump if hedge_down is not None else 0.0)
    if np.isnan(total):
        return np.nan
    if abs(total) < 1e-14:
        return 0.0
    return hedge / total


def hedge_notional(delta: float, hedge: float) -> float:
    """Hedge notional delta / hedge; 0 when the hedge has no sensitivity."""
    if np.isnan(delta) or np.isnan(hedge):
        return np.nan
    if hedge == 0.0:
        return 0.0
    return delta / hedge


__all__ = [
    "calc_delta",
    "calc_gamma",
    "calc_hedge",
    "hedge_notional",
]

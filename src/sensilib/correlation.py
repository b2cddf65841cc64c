"""
Factor correlation objects.

A one-factor correlation assigns each name a factor loading f_i; the pairwise
correlation is rho_ij = f_i * f_j. The loadings may form a term structure
(one row per date), interpolated linearly between dates.

Bumps act on the correlation rho_i = f_i^2 by default, or on the factor itself:
- absolute: new = orig + bump
- relative up: new = orig * (1 + bump)
- relative down (bump < 0): new = orig / (1 - bump)

Results are clamped to [0, 1] and every bump operation returns the realized
average change, which can be smaller than requested near the boundaries.
"""

from datetime import date
from typing import List, Optional, Sequence, Union
import copy

import numpy as np
import structlog


logger = structlog.get_logger(__name__)


class FactorCorrelation:
    """
    One-factor correlation, optionally term-structured.

    Attributes:
        name: Correlation object name
        names: Underlying names, one per factor column
        dates: Dates of the factor rows (None for a single row)
        modified: Set whenever a bump changed the correlations
    """

    def __init__(self, name: str, names: Sequence[str], factors: Union[float, Sequence, np.ndarray],
                 dates: Optional[Sequence[date]] = None):
        self.name = name
        self.names = list(names)
        self.dates = list(dates) if dates is not None else None
        n_rows = len(self.dates) if self.dates else 1
        values = np.asarray(factors, dtype=np.float64)
        if values.ndim == 0:
            values = np.full((n_rows, len(self.names)), float(values))
        elif values.ndim == 1:
            values = np.tile(values, (n_rows, 1))
        if values.shape != (n_rows, len(self.names)):
            raise ValueError(
                f"Correlation {name}: factors shape {values.shape} does not match "
                f"{n_rows} dates x {len(self.names)} names"
            )
        if np.any(values < 0) or np.any(values > 1):
            raise ValueError(f"Correlation {name}: factors must lie in [0, 1]")
        self.factors = values
        self.modified = False

    def __repr__(self) -> str:
        return f"FactorCorrelation({self.name!r}, names={len(self.names)}, dates={len(self.dates or [])})"

    # =========================================================================
    # Queries
    # =========================================================================

    def name_index(self, name_or_index: Union[str, int]) -> int:
        """Column index of a name (indices pass through)."""
        if isinstance(name_or_index, (int, np.integer)):
            idx = int(name_or_index)
            if not 0 <= idx < len(self.names):
                raise IndexError(f"Correlation {self.name}: no name at index {idx}")
            return idx
        try:
            return self.names.index(name_or_index)
        except ValueError:
            raise KeyError(f"Correlation {self.name}: unknown name {name_or_index}") from None

    def factor(self, i: Union[str, int], d: Optional[date] = None) -> float:
        """Factor loading of a name at a date."""
        col = self.factors[:, self.name_index(i)]
        if self.dates is None or d is None or len(self.dates) == 1:
            return float(col[0])
        x = [dt.toordinal() for dt in self.dates]
        return float(np.interp(d.toordinal(), x, col))

    def correlation(self, i: Union[str, int], j: Union[str, int], d: Optional[date] = None) -> float:
        """Pairwise correlation between two names."""
        if self.name_index(i) == self.name_index(j):
            return 1.0
        return self.factor(i, d) * self.factor(j, d)

    def level(self, row: Optional[int] = None, name: Optional[Union[str, int]] = None,
              factor: bool = False) -> float:
        """Average correlation (or factor) of one date row and/or name; all of them by default."""
        rows = slice(None) if row is None else slice(row, row + 1)
        if name is None:
            cols = slice(None)
        else:
            col = self.name_index(name)
            cols = slice(col, col + 1)
        block = self.factors[rows, cols]
        return float(np.mean(block if factor else block * block))

    @property
    def tenor_dates(self) -> List[date]:
        return list(self.dates or [])

    # =========================================================================
    # Bumps
    # =========================================================================

    @staticmethod
    def _bump_values(values: np.ndarray, bump: float, relative: bool, factor: bool) -> np.ndarray:
        """Bump factor values in place; returns the realized changes."""
        orig = values.copy() if factor else values * values
        if relative:
            target = orig * (1.0 + bump) if bump > 0 else orig / (1.0 - bump)
        else:
            target = orig + bump
        target = np.clip(target, 0.0, 1.0)
        values[...] = target if factor else np.sqrt(target)
        return target - orig

    def _apply(self, rows, cols, bump: float, relative: bool, factor: bool) -> float:
        if bump == 0.0:
            return 0.0
        block = self.factors[rows, cols]
        realized = self._bump_values(block, bump, relative, factor)
        self.factors[rows, cols] = block
        self.modified = True
        avg = float(np.mean(realized)) if realized.size else 0.0
        logger.debug("correlation_bump: applied", correlation=self.name, bump=bump,
                     relative=relative, avg_bump=avg)
        return avg

    def bump_correlations(self, bump: float, relative: bool = False, factor: bool = False) -> float:
        """
        Bump every correlation.

        Args:
            bump: Signed bump size
            relative: Relative rather than absolute bump
            factor: Bump the factor loadings instead of the correlations

        Returns:
            Realized average bump
        """
        return self._apply(slice(None), slice(None), bump, relative, factor)

    def bump_correlations_by_name(self, name_or_index: Union[str, int], bump: float,
                                  relative: bool = False, factor: bool = False) -> float:
        """Bump the correlations of one name across all dates."""
        col = self.name_index(name_or_index)
        return self._apply(slice(None), slice(col, col + 1), bump, relative, factor)

    def bump_tenor(self, tenor_index: int, name_index: Optional[Union[str, int]], bump: float,
                   relative: bool = False, factor: bool = False) -> float:
        """
        Bump the correlations at one date row.

        Args:
            tenor_index: Row index into dates
            name_index: Name to bump, or None for every name
            bump: Signed bump size
            relative: Relative rather than absolute bump
            factor: Bump the factor loadings instead of the correlations

        Returns:
            Realized average bump
        """
        if not 0 <= tenor_index < self.factors.shape[0]:
            raise IndexError(f"Correlation {self.name}: no date at index {tenor_index}")
        if name_index is None:
            cols = slice(None)
        else:
            col = self.name_index(name_index)
            cols = slice(col, col + 1)
        return self._apply(slice(tenor_index, tenor_index + 1), cols, bump, relative, factor)

    # =========================================================================
    # State
    # =========================================================================

    def set_correlations(self, other: "FactorCorrelation") -> None:
        """Copy the factor values of another correlation with the same shape."""
        if other.factors.shape != self.factors.shape:
            raise ValueError(
                f"Correlation {self.name}: cannot copy factors of shape {other.factors.shape}"
            )
        self.factors = other.factors.copy()

    def copy_from(self, saved: "FactorCorrelation") -> None:
        self.set_correlations(saved)
        self.modified = saved.modified

    def clone(self) -> "FactorCorrelation":
        return copy.deepcopy(self)

    def same_state(self, other: "FactorCorrelation") -> bool:
        return np.array_equal(self.factors, other.factors)


__all__ = ["FactorCorrelation"]

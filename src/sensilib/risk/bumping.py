"""
Curve bumping framework for sensitivity calculations.

The bump/restore protocol:
1. Save clones of the curves about to move (one linked object graph, so
   curves sharing a discount curve still share one clone)
2. Bump the quotes of the selected tenors and record the realized bump
3. Refit the bumped curves and every dependent, prerequisites first
4. Re-evaluate the affected evaluators
5. Restore every live curve from its saved clone, on every exit path

Bump units:
- natural: the size is in quote units
- bp: the size is in basis points of the quote (1 = 0.0001)
- relative: the size is a fraction of the quote
The realized bump is reported in the same unit as the size. A relative
bump of a curve reports the realized change as a fraction of each quote; a
relative bump of a correlation reports it as a fraction of the average
bumped correlation.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Set, Union
import copy

import numpy as np
import structlog

from ..conventions import BumpFlags, BumpUnit
from ..correlation import FactorCorrelation
from ..curves import CalibratedCurve, RecoveryCurve, SurvivalCurve
from ..errors import RefitError
from ..graph import DependencyGraph


logger = structlog.get_logger(__name__)

BP = 1e-4


class BumpResultState(Enum):
    """Outcome of bumping one curve or tenor."""
    BUMPED = "Bumped"
    SKIPPED = "Skipped"
    FAILED = "Failed"

    @classmethod
    def from_realized(cls, realized: float) -> "BumpResultState":
        if np.isnan(realized):
            return cls.FAILED
        if realized == 0.0:
            return cls.SKIPPED
        return cls.BUMPED


@dataclass
class BumpResult:
    """
    Realized bump of one curve.

    Attributes:
        curve: Bumped curve
        realized: Average realized bump in the bump unit (NaN if the refit failed)
        tenors_bumped: Number of tenors whose quote moved
    """
    curve: CalibratedCurve
    realized: float
    tenors_bumped: int = 0

    @property
    def state(self) -> BumpResultState:
        return BumpResultState.from_realized(self.realized)


def clone_object_graph(objects: Iterable) -> List:
    """
    Deep copy objects as one graph.

    A single memo is shared across the copies, so an object referenced by
    several of them is cloned once and the clones keep sharing it.
    """
    memo: dict = {}
    return [copy.deepcopy(o, memo) for o in objects]


def selected_tenor_names(curve: CalibratedCurve, tenors: Optional[Sequence[str]]) -> List[str]:
    """Tenor names to bump: the given ones, or every tenor of the curve."""
    if tenors is None:
        return curve.tenor_names
    return list(tenors)


def bump_curve_quotes(
    curve: CalibratedCurve,
    tenors: Optional[Sequence[str]],
    bump_sizes: Union[float, Sequence[float]],
    flags: BumpFlags,
    unit: BumpUnit = BumpUnit.NATURAL
) -> BumpResult:
    """
    Bump the quotes of one curve without refitting.

    Args:
        curve: Curve to bump in place
        tenors: Tenor names (None for every tenor)
        bump_sizes: Non-negative size, or one size per tenor name
        flags: Direction and relative flags
        unit: Unit of the sizes

    Returns:
        BumpResult with the running average of realized bumps
    """
    if curve.jump_date is not None:
        logger.debug("bump_quotes: curve has a jump date, not bumped", curve=curve.name)
        return BumpResult(curve, 0.0, 0)

    names = selected_tenor_names(curve, tenors)
    sizes = np.atleast_1d(np.asarray(bump_sizes, dtype=np.float64))
    if sizes.size != 1 and sizes.size != len(names):
        raise ValueError(f"{sizes.size} bump sizes for {len(names)} tenors")
    if unit == BumpUnit.RELATIVE:
        flags |= BumpFlags.BUMP_RELATIVE

    avg = 0.0
    count = 0
    for k, name in enumerate(names):
        tenor = curve.find_tenor(name)
        if tenor is None:
            continue
        size = float(sizes[k] if sizes.size > 1 else sizes[0])
        if unit == BumpUnit.BASIS_POINTS:
            size *= BP
        quote = tenor.quote
        realized = tenor.bump_quote(size, flags)
        if unit == BumpUnit.BASIS_POINTS:
            realized /= BP
        elif unit == BumpUnit.RELATIVE:
            realized = realized / abs(quote) if quote != 0.0 else 0.0
        count += 1
        avg += (realized - avg) / count

    return BumpResult(curve, avg, count)


def bump_quotes(
    curves: Sequence[CalibratedCurve],
    tenors: Optional[Sequence[str]],
    bump_sizes: Union[float, Sequence[float]],
    flags: BumpFlags,
    unit: BumpUnit = BumpUnit.NATURAL
) -> np.ndarray:
    """
    Bump the quotes of several curves.

    With REFIT_CURVE in the flags each bumped curve is refitted; a refit
    failure turns that curve's realized bump into NaN.

    Returns:
        Realized average bump per curve (0 when nothing matched)
    """
    result = np.zeros(len(curves), dtype=np.float64)
    for i, curve in enumerate(curves):
        bumped = bump_curve_quotes(curve, tenors, bump_sizes, flags, unit)
        result[i] = bumped.realized
        if bumped.tenors_bumped and (flags & BumpFlags.REFIT_CURVE):
            try:
                curve.refit()
            except RefitError as e:
                logger.debug("bump_quotes: refit failed", curve=curve.name, error=str(e))
                result[i] = np.nan
        logger.debug("bump_quotes: curve bumped", curve=curve.name, tenors=bumped.tenors_bumped,
                     avg_bump=result[i])
    return result


class CurveBumpSession:
    """
    Exclusive mutation window over a set of live curves.

    On entry, the curves to bump and every curve depending on them are saved
    as one cloned object graph. Bumps and refits then act on the live curves.
    On exit, whatever happened inside, every affected curve is restored from
    its clone and the evaluators are invalidated.

    Usage:
        with CurveBumpSession([curve], evaluators, population=all_curves) as session:
            realized = session.bump(["5Y"], 1.0, BumpFlags.NONE, BumpUnit.BASIS_POINTS)
            values = [e.evaluate() for e in evaluators]

    Attributes:
        curves: Curves whose quotes are bumped
        affected: Bumped curves and their dependents, prerequisites first
        evaluators: Evaluators reset after every change
    """

    def __init__(self, curves: Sequence[CalibratedCurve], evaluators: Sequence = (),
                 refit_dependents: bool = True, population: Optional[Iterable[CalibratedCurve]] = None):
        self.curves = list(curves)
        self.evaluators = list(evaluators)
        if refit_dependents and population is not None:
            self.affected = DependencyGraph.get_descendants(self.curves, population)
        else:
            graph = DependencyGraph(self.curves)
            self.affected = [c for c in graph if any(c is b for b in self.curves)]
        self.recovery_modified = any(isinstance(c, (RecoveryCurve, SurvivalCurve)) for c in self.affected)
        self._saved: Optional[List[CalibratedCurve]] = None

    def __enter__(self) -> "CurveBumpSession":
        self.save()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.restore()
        return False

    @property
    def active(self) -> bool:
        return self._saved is not None

    def save(self) -> None:
        if self._saved is None:
            self._saved = clone_object_graph(self.affected)

    def bump(
        self,
        tenors: Optional[Sequence[str]],
        bump_sizes: Union[float, Sequence[float]],
        flags: BumpFlags,
        unit: BumpUnit = BumpUnit.NATURAL
    ) -> np.ndarray:
        """
        Bump the session curves and refit everything affected.

        Returns:
            Realized average bump per session curve; NaN where a refit failed
        """
        if not self.active:
            raise RuntimeError("CurveBumpSession.bump called outside an active session")
        # Refits happen below in dependency order, not curve by curve
        realized = bump_quotes(self.curves, tenors, bump_sizes, flags & ~BumpFlags.REFIT_CURVE, unit)
        moved = realized != 0.0
        changed = [c for c, m in zip(self.curves, moved) if m]
        if changed:
            failed = self.refit(changed)
            if failed:
                realized[moved] = np.nan
        self.invalidate()
        return realized

    def refit(self, changed: Sequence[CalibratedCurve]) -> Set[int]:
        """
        Refit changed curves and their dependents in dependency order.

        Returns:
            Identities of curves whose refit failed (their dependents are not refitted)
        """
        dirty = {id(c) for c in changed}
        failed: Set[int] = set()
        graph = DependencyGraph(self.affected)
        for curve in graph:
            if not any(c is curve for c in self.affected):
                continue
            parents = graph.parents_of(curve)
            if any(id(p) in failed for p in parents):
                failed.add(id(curve))
                continue
            if id(curve) not in dirty and not any(id(p) in dirty for p in parents):
                continue
            try:
                curve.refit()
            except RefitError as e:
                logger.warning("bump_refit: fit failed", curve=curve.name, error=str(e))
                failed.add(id(curve))
                continue
            dirty.add(id(curve))
        return failed

    def invalidate(self) -> None:
        for e in self.evaluators:
            e.reset(recovery_modified=self.recovery_modified)

    def restore(self) -> None:
        """Put every affected curve back to its saved state; a no-op when nothing is saved."""
        if self._saved is None:
            return
        saved, self._saved = self._saved, None
        for live, clone in zip(self.affected, saved):
            live.copy_from(clone)
        self.invalidate()


class CorrelationBumpSession:
    """
    Exclusive mutation window over correlation objects.

    Correlations are saved as clones on entry and copied back on exit; the
    evaluators are reset with ``correlation_modified`` after every change.
    Bumps act on a whole object, one name, one date row, or a name within a row.
    """

    def __init__(self, correlations: Sequence[FactorCorrelation], evaluators: Sequence = ()):
        self.correlations = list(correlations)
        self.evaluators = list(evaluators)
        self._saved: Optional[List[FactorCorrelation]] = None

    def __enter__(self) -> "CorrelationBumpSession":
        self.save()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.restore()
        return False

    def save(self) -> None:
        if self._saved is None:
            self._saved = [c.clone() for c in self.correlations]

    def bump(
        self,
        name: Optional[str],
        bump_size: float,
        flags: BumpFlags,
        unit: BumpUnit = BumpUnit.NATURAL,
        row: Optional[int] = None
    ) -> np.ndarray:
        """
        Bump the correlations of every name, or of one name only.

        Args:
            name: Name to bump (None for every name)
            bump_size: Non-negative size
            flags: Direction and relative flags
            unit: Unit of the size
            row: Date row to bump (None for every date)

        Returns:
            Realized average bump per correlation object, in the bump unit;
            0 where the name or row is absent
        """
        if self._saved is None:
            raise RuntimeError("CorrelationBumpSession.bump called outside an active session")
        up = not (flags & BumpFlags.BUMP_DOWN)
        relative = unit == BumpUnit.RELATIVE or bool(flags & BumpFlags.BUMP_RELATIVE)
        size = bump_size * BP if unit == BumpUnit.BASIS_POINTS else bump_size
        signed = size if up else -size

        realized = np.zeros(len(self.correlations), dtype=np.float64)
        for i, corr in enumerate(self.correlations):
            if name is not None and name not in corr.names:
                continue
            if row is not None and row >= corr.factors.shape[0]:
                continue
            level = corr.level(row, name)
            if row is not None:
                change = corr.bump_tenor(row, name, signed, relative)
            elif name is None:
                change = corr.bump_correlations(signed, relative)
            else:
                change = corr.bump_correlations_by_name(name, signed, relative)
            change = change if up else -change
            if relative:
                change = change / level if level > 0.0 else 0.0
            realized[i] = change / BP if unit == BumpUnit.BASIS_POINTS else change
        for e in self.evaluators:
            e.reset(correlation_modified=True)
        return realized

    def restore(self) -> None:
        if self._saved is None:
            return
        saved, self._saved = self._saved, None
        for live, clone in zip(self.correlations, saved):
            live.copy_from(clone)
        for e in self.evaluators:
            e.reset(correlation_modified=True)


__all__ = [
    "BumpResultState",
    "BumpResult",
    "clone_object_graph",
    "selected_tenor_names",
    "bump_curve_quotes",
    "bump_quotes",
    "CurveBumpSession",
    "CorrelationBumpSession",
]

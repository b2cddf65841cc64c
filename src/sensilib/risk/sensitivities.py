"""
Bump-and-reprice sensitivity orchestration.

Bump topologies:
- Uniform: every selected curve is bumped together; one row per evaluator
- Parallel: each curve is bumped on its own; one row per (curve, evaluator)
- ByTenor: each tenor of each curve is bumped on its own; one row per
  (tenor, curve, evaluator)

Correlation sensitivities use the same topologies over correlation objects;
ByTenor bumps one date row at a time, or one name at a time with by_name.

For every cell of the topology the curves are bumped up and/or down inside a
CurveBumpSession, the affected evaluators are re-evaluated, and the session
restores the curves. Cells that do not move anything are Skipped (0.0); cells
whose refit fails are Failed (NaN).

Result columns:
    Category, Element, Curve Tenor, Pricer, Delta
    [Gamma] [Hedge Tenor, Hedge Delta, Hedge Notional]
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence
import time

import numpy as np
import pandas as pd
import structlog

from ..config import SensitivityConfig
from ..conventions import BumpFlags, SensitivityMethod
from ..correlation import FactorCorrelation
from ..curves import CalibratedCurve
from ..errors import BumpValidationError, MissingDependencyError
from ..evaluator import Measure, PricerEvaluator, as_evaluators, fast_evaluation
from ..graph import curve_dependency_scope, is_in_dependency_scope
from .bumping import BumpResultState, CorrelationBumpSession, CurveBumpSession
from .calculators import calc_delta, calc_gamma, calc_hedge, hedge_notional
from .hedging import HedgeInstrument, make_hedge, resolve_hedge_tenor


logger = structlog.get_logger(__name__)

# Hedge deltas are reported per 1mm notional of the hedge instrument
HEDGE_SCALE = 1e6

ALL = "all"

CurveGetter = Callable[[PricerEvaluator], Sequence[CalibratedCurve]]


@dataclass
class _Cell:
    """One bump of the topology."""
    element: str
    tenor_label: str
    targets: List[Any]
    tenors: Optional[List[str]]
    size_index: Optional[int]
    evaluators: List[PricerEvaluator]
    hedges: Dict[int, Optional[HedgeInstrument]] = field(default_factory=dict)
    row: Optional[int] = None


@dataclass
class _Leg:
    """Outcome of the up or down bump of a cell."""
    realized: float
    values: Dict[int, float]
    hedge_values: Dict[int, float]


def _average_realized(realized: np.ndarray) -> float:
    """Average realized bump over the objects that moved; NaN if any failed."""
    if realized.size == 0:
        return 0.0
    if np.any(np.isnan(realized)):
        return np.nan
    moved = realized[realized != 0.0]
    return float(np.mean(moved)) if moved.size else 0.0


def _unique(objects: Iterable[Any]) -> List[Any]:
    result: List[Any] = []
    seen = set()
    for obj in objects:
        if obj is not None and id(obj) not in seen:
            seen.add(id(obj))
            result.append(obj)
    return result


class SensitivityEngine:
    """
    Computes sensitivities of evaluators to bumps of their market objects.

    Attributes:
        evaluators: Evaluators (pricers are wrapped on construction)
        config: Bump parameters
    """

    def __init__(
        self,
        evaluators: Iterable[Any],
        config: Optional[SensitivityConfig] = None,
        measure: Measure = "pv",
        allow_missing: bool = False,
        **overrides
    ):
        config = config or SensitivityConfig()
        self.config = config.with_overrides(**overrides) if overrides else config
        self.evaluators = as_evaluators(evaluators, measure, allow_missing)

    # =========================================================================
    # Public API
    # =========================================================================

    def calculate(self, curve_getter: CurveGetter, category: str = "Rate") -> pd.DataFrame:
        """
        Curve sensitivities of every evaluator.

        Args:
            curve_getter: Selects the curves of an evaluator to bump
            category: Category reported in the result table

        Returns:
            Result DataFrame, rows in topology order

        Raises:
            BumpValidationError: If the bump parameters are malformed, or a curve is
                already being bumped by an enclosing run
            MissingDependencyError: If must_exist is set and an evaluator has no curve
        """
        config = self.config
        config.validate()
        start = time.perf_counter()

        curves = self._collect(curve_getter, category)
        if not curves:
            logger.info("calculate: no curves to bump", category=category)
            return self._frame([])
        busy = [c.name for c in curves if is_in_dependency_scope(c)]
        if busy:
            raise BumpValidationError(f"Curves already being bumped by an enclosing run: {busy}")

        population = _unique(
            o for e in self.evaluators for o in e.dependencies() if isinstance(o, CalibratedCurve)
        )
        cells = self._curve_cells(curves)

        def session_for(cell: _Cell) -> CurveBumpSession:
            return CurveBumpSession(cell.targets, cell.evaluators, config.refit_dependents, population)

        def apply(session: CurveBumpSession, cell: _Cell, size, flags: BumpFlags) -> np.ndarray:
            return session.bump(cell.tenors, size, flags, config.bump_unit)

        rows: List[Dict[str, Any]] = []
        with curve_dependency_scope(curves), fast_evaluation(self.evaluators, config.fast_mode):
            initial = None
            try:
                if config.initial_bump:
                    initial = CurveBumpSession(curves, self.evaluators, config.refit_dependents, population)
                    initial.save()
                    flags = self._flags(up=config.initial_bump > 0)
                    realized = initial.bump(None, abs(config.initial_bump), flags, config.bump_unit)
                    logger.debug("calculate: initial bump applied", category=category,
                                 avg_bump=_average_realized(realized))
                base = self._base_values()
                for cell in cells:
                    self._attach_hedges(cell)
                    rows.extend(self._run_cell(cell, base, category, session_for, apply))
            finally:
                if initial is not None:
                    initial.restore()

        result = self._frame(rows)
        logger.info(
            "calculate: sensitivities complete",
            category=category,
            method=config.method.value,
            curves=len(curves),
            rows=len(result),
            elapsed=round(time.perf_counter() - start, 3),
        )
        return result

    def calculate_correlations(self, category: str = "Correlation", by_name: bool = False) -> pd.DataFrame:
        """
        Correlation sensitivities of every evaluator.

        Uniform bumps every correlation object together, Parallel each object,
        ByTenor each date row of each object (reported in the Curve Tenor
        column as an ISO date, or "all" for an object without dates).
        Hedges do not apply to correlations.

        Args:
            category: Category reported in the result table
            by_name: Under ByTenor, bump each name across all dates instead
        """
        config = self.config.with_overrides(calc_hedge=False)
        config.validate()
        start = time.perf_counter()

        correlations = _unique(c for e in self.evaluators for c in e.correlations)
        for e in self.evaluators:
            if config.must_exist and not e.correlations:
                raise MissingDependencyError(e.name, "No correlation objects")
        if not correlations:
            logger.info("calculate_correlations: no correlations to bump")
            return self._frame([], config)

        cells = self._correlation_cells(correlations, config, by_name)

        def session_for(cell: _Cell) -> CorrelationBumpSession:
            return CorrelationBumpSession(cell.targets, cell.evaluators)

        def apply(session: CorrelationBumpSession, cell: _Cell, size, flags: BumpFlags) -> np.ndarray:
            name = cell.tenors[0] if cell.tenors else None
            return session.bump(name, float(np.atleast_1d(size)[0]), flags, config.bump_unit, cell.row)

        rows: List[Dict[str, Any]] = []
        with fast_evaluation(self.evaluators, config.fast_mode):
            base = self._base_values()
            for cell in cells:
                rows.extend(self._run_cell(cell, base, category, session_for, apply, config))

        result = self._frame(rows, config)
        logger.info(
            "calculate_correlations: sensitivities complete",
            method=config.method.value,
            correlations=len(correlations),
            rows=len(result),
            elapsed=round(time.perf_counter() - start, 3),
        )
        return result

    # =========================================================================
    # Topology
    # =========================================================================

    def _collect(self, curve_getter: CurveGetter, category: str) -> List[CalibratedCurve]:
        curves: List[CalibratedCurve] = []
        for e in self.evaluators:
            found = [c for c in curve_getter(e) if c is not None]
            if not found and self.config.must_exist:
                raise MissingDependencyError(e.name, f"No {category} curves")
            curves.extend(found)
        return _unique(curves)

    def _dependents(self, targets: Sequence[Any]) -> List[PricerEvaluator]:
        return [e for e in self.evaluators if any(e.depends_on(t) for t in targets)]

    def _tenor_label(self) -> str:
        if self.config.all_tenors:
            return ALL
        return "\n".join(self.config.bump_tenors)

    def _explicit_tenors(self) -> Optional[List[str]]:
        return None if self.config.all_tenors else list(self.config.bump_tenors)

    def _curve_cells(self, curves: List[CalibratedCurve]) -> List[_Cell]:
        method = self.config.method
        if method == SensitivityMethod.UNIFORM:
            return [_Cell(ALL, self._tenor_label(), list(curves), self._explicit_tenors(), None,
                          self._dependents(curves))]

        if method == SensitivityMethod.PARALLEL:
            return [
                _Cell(c.name, self._tenor_label(), [c], self._explicit_tenors(), None, self._dependents([c]))
                for c in curves
            ]

        cells: List[_Cell] = []
        if not self.config.all_tenors:
            for k, name in enumerate(self.config.bump_tenors):
                for c in curves:
                    cells.append(_Cell(c.name, name, [c], [name], k, self._dependents([c])))
            return cells

        per_curve = {id(c): self.default_tenors(c, self.config.maturity_cutoff) for c in curves}
        names: List[str] = []
        for c in curves:
            for name in per_curve[id(c)]:
                if name not in names:
                    names.append(name)
        for name in names:
            for c in curves:
                if name in per_curve[id(c)]:
                    cells.append(_Cell(c.name, name, [c], [name], None, self._dependents([c])))
        return cells

    def default_tenors(self, curve: CalibratedCurve, to_maturity: bool = True) -> List[str]:
        """
        Tenors bumped by ByTenor when none are named.

        Every tenor after the curve date, up to and including the first tenor
        maturing on or after the last product maturity of the dependent
        evaluators. All future tenors are used when a maturity is unknown or
        to_maturity is False.
        """
        future = [t for t in curve.tenors if t.maturity > curve.as_of]
        maturities = [e.product_maturity for e in self._dependents([curve])]
        if not to_maturity or not maturities or any(m is None for m in maturities):
            return [t.name for t in future]
        last = max(maturities)
        names = []
        for tenor in future:
            names.append(tenor.name)
            if tenor.maturity >= last:
                break
        return names

    def _correlation_cells(self, correlations: List[FactorCorrelation],
                           config: SensitivityConfig, by_name: bool) -> List[_Cell]:
        if config.method == SensitivityMethod.UNIFORM:
            return [_Cell(ALL, ALL, list(correlations), None, None, self._dependents(correlations))]
        if config.method == SensitivityMethod.PARALLEL:
            return [_Cell(c.name, ALL, [c], None, None, self._dependents([c])) for c in correlations]
        cells = []
        for c in correlations:
            dependents = self._dependents([c])
            if by_name:
                names = c.names if config.all_tenors else [n for n in config.bump_tenors if n in c.names]
                for name in names:
                    cells.append(_Cell(c.name, name, [c], [name], None, dependents))
                continue
            labels = [d.isoformat() for d in c.tenor_dates] or [ALL]
            for k, label in enumerate(labels):
                if config.all_tenors or label in config.bump_tenors:
                    cells.append(_Cell(c.name, label, [c], None, None, dependents, row=k))
        return cells

    # =========================================================================
    # Bumping
    # =========================================================================

    def _flags(self, up: bool, config: Optional[SensitivityConfig] = None) -> BumpFlags:
        config = config or self.config
        flags = BumpFlags.create(up=up, relative=config.relative)
        if config.allow_negative:
            flags |= BumpFlags.ALLOW_NEGATIVE_SPREADS
        return flags

    def _base_values(self) -> Dict[int, float]:
        for e in self.evaluators:
            e.reset()
        return {id(e): e.evaluate() for e in self.evaluators}

    def _attach_hedges(self, cell: _Cell) -> None:
        config = self.config
        if not config.wants_hedge:
            return
        bumped_tenor = cell.tenors[0] if cell.tenors and len(cell.tenors) == 1 else None
        for e in cell.evaluators:
            hedge = None
            for curve in cell.targets:
                tenor = resolve_hedge_tenor(curve, config.hedge_tenor, e.product_maturity, bumped_tenor)
                if tenor is not None:
                    hedge = make_hedge(curve, tenor)
                    break
            cell.hedges[id(e)] = hedge

    def _run_cell(self, cell: _Cell, base: Dict[int, float], category: str,
                  session_for, apply, config: Optional[SensitivityConfig] = None) -> List[Dict[str, Any]]:
        config = config or self.config
        hedge_base = {key: h.value() for key, h in cell.hedges.items() if h is not None}
        n = len(cell.tenors) if cell.tenors else 1

        legs: Dict[bool, _Leg] = {}
        for up in (True, False):
            if not config.has_leg(up):
                continue
            sizes = config.bump_sizes(up, n)
            size = sizes[cell.size_index] if cell.size_index is not None and sizes.size > 1 else sizes[0]
            with session_for(cell) as session:
                realized = _average_realized(apply(session, cell, size, self._flags(up, config)))
                values: Dict[int, float] = {}
                hedge_values: Dict[int, float] = {}
                if BumpResultState.from_realized(realized) == BumpResultState.BUMPED:
                    for e in cell.evaluators:
                        values[id(e)] = e.evaluate()
                    for key, hedge in cell.hedges.items():
                        if hedge is not None:
                            hedge_values[key] = hedge.value()
            legs[up] = _Leg(realized, values, hedge_values)
            logger.debug("bump_cell: leg done", element=cell.element, tenor=cell.tenor_label,
                         up=up, avg_bump=realized)

        return [self._row(cell, e, base[id(e)], legs, hedge_base, category, config)
                for e in cell.evaluators]

    def _row(self, cell: _Cell, e: PricerEvaluator, base: float, legs: Dict[bool, _Leg],
             hedge_base: Dict[int, float], category: str, config: SensitivityConfig) -> Dict[str, Any]:
        up_leg = legs.get(True)
        down_leg = legs.get(False)
        realized = [leg.realized for leg in (up_leg, down_leg) if leg is not None]
        failed = any(np.isnan(r) for r in realized)
        skipped = not failed and all(r == 0.0 for r in realized)

        row: Dict[str, Any] = {
            "Category": category,
            "Element": cell.element,
            "Curve Tenor": cell.tenor_label,
            "Pricer": e.name,
        }
        hedge = cell.hedges.get(id(e))

        if failed or skipped:
            fill = np.nan if failed else 0.0
            row["Delta"] = fill
            if config.calc_gamma:
                row["Gamma"] = fill
            if config.wants_hedge:
                row["Hedge Tenor"] = hedge.tenor_name if hedge is not None else ""
                row["Hedge Delta"] = fill
                row["Hedge Notional"] = fill
            return row

        key = id(e)
        up_value = up_leg.values.get(key) if up_leg is not None else None
        down_value = down_leg.values.get(key) if down_leg is not None else None
        up_bump = up_leg.realized if up_leg is not None else 0.0
        down_bump = down_leg.realized if down_leg is not None else 0.0

        delta = calc_delta(base, up_value, down_value, up_bump, down_bump, config.scaled_delta)
        row["Delta"] = delta
        if config.calc_gamma:
            row["Gamma"] = calc_gamma(base, up_value, down_value, up_bump, down_bump, config.scaled_delta)
        if config.wants_hedge:
            if hedge is None:
                row["Hedge Tenor"] = ""
                row["Hedge Delta"] = 0.0
                row["Hedge Notional"] = 0.0
            else:
                h = calc_hedge(
                    hedge_base[key],
                    up_leg.hedge_values.get(key) if up_leg is not None else None,
                    down_leg.hedge_values.get(key) if down_leg is not None else None,
                    up_bump,
                    down_bump,
                    config.scaled_delta,
                )
                row["Hedge Tenor"] = hedge.tenor_name
                row["Hedge Delta"] = HEDGE_SCALE * h
                row["Hedge Notional"] = hedge_notional(delta, h)
        return row

    def _columns(self, config: Optional[SensitivityConfig] = None) -> List[str]:
        config = config or self.config
        columns = ["Category", "Element", "Curve Tenor", "Pricer", "Delta"]
        if config.calc_gamma:
            columns.append("Gamma")
        if config.wants_hedge:
            columns.extend(["Hedge Tenor", "Hedge Delta", "Hedge Notional"])
        return columns

    def _frame(self, rows: List[Dict[str, Any]], config: Optional[SensitivityConfig] = None) -> pd.DataFrame:
        return pd.DataFrame(rows, columns=self._columns(config))


# =============================================================================
# Convenience functions
# =============================================================================

def _engine(pricers, config, measure, overrides) -> SensitivityEngine:
    return SensitivityEngine(pricers, config, measure=measure, **overrides)


def rate_sensitivities(pricers: Iterable[Any], config: Optional[SensitivityConfig] = None,
                       measure: Measure = "pv", **overrides) -> pd.DataFrame:
    """Sensitivities to the quotes of discount curves."""
    return _engine(pricers, config, measure, overrides).calculate(lambda e: e.discount_curves, "Rate")


def spread_sensitivities(pricers: Iterable[Any], config: Optional[SensitivityConfig] = None,
                         measure: Measure = "pv", **overrides) -> pd.DataFrame:
    """Sensitivities to the CDS quotes of survival curves."""
    return _engine(pricers, config, measure, overrides).calculate(lambda e: e.survival_curves, "Credit")


def recovery_sensitivities(pricers: Iterable[Any], config: Optional[SensitivityConfig] = None,
                           measure: Measure = "pv", **overrides) -> pd.DataFrame:
    """Sensitivities to recovery rates; dependent survival curves are refitted."""
    return _engine(pricers, config, measure, overrides).calculate(lambda e: e.recovery_curves, "Recovery")


def fx_sensitivities(pricers: Iterable[Any], config: Optional[SensitivityConfig] = None,
                     measure: Measure = "pv", **overrides) -> pd.DataFrame:
    """Sensitivities to fx forward quotes, spot included."""
    return _engine(pricers, config, measure, overrides).calculate(lambda e: e.fx_curves, "FX")


def volatility_sensitivities(pricers: Iterable[Any], config: Optional[SensitivityConfig] = None,
                             measure: Measure = "pv", **overrides) -> pd.DataFrame:
    """Sensitivities to volatility quotes."""
    return _engine(pricers, config, measure, overrides).calculate(
        lambda e: e.volatility_surfaces, "Volatility"
    )


def correlation_sensitivities(pricers: Iterable[Any], config: Optional[SensitivityConfig] = None,
                              measure: Measure = "pv", by_name: bool = False, **overrides) -> pd.DataFrame:
    """Sensitivities to factor correlations; ByTenor bumps date rows, or names with by_name."""
    return _engine(pricers, config, measure, overrides).calculate_correlations(by_name=by_name)


__all__ = [
    "SensitivityEngine",
    "HEDGE_SCALE",
    "rate_sensitivities",
    "spread_sensitivities",
    "recovery_sensitivities",
    "fx_sensitivities",
    "volatility_sensitivities",
    "correlation_sensitivities",
]

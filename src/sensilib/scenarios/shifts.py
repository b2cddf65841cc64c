"""
Scenario shifts.

A scenario shift mutates one piece of market or pricer state and can put it
back. Every shift follows the same sequence, driven by calc_scenario:

    validate()                 reject malformed parameters before anything moves
    save_state(evaluators)     snapshot what the shift is about to change
    perform_shift(evaluators)  apply the shift
    perform_refit(evaluators)  refit whatever the shift invalidated
    restore_state(evaluators)  put everything back and drop the snapshot

restore_state is a no-op when nothing is saved, so it is always safe to call
from a finally block. After perform_shift the evaluators hold stale values
until they are reset; the flags recovery_modified, correlation_modified and
default_changed tell the caller which resets are needed.

Shift values are signed. Curve quote shifts are absolute in the given bump
unit (basis points by default) or relative to the quote.
"""

from abc import ABC, abstractmethod
from datetime import date
from numbers import Real
from typing import Any, Dict, List, Optional, Sequence, Union

import structlog

from ..conventions import BumpFlags, BumpUnit, Defaulted, ScenarioShiftType
from ..correlation import FactorCorrelation
from ..curves import (
    CalibratedCurve,
    FxCurve,
    FxForward,
    RecoveryCurve,
    StockCurve,
    StockForward,
    SurvivalCurve,
    VolatilitySurface,
)
from ..errors import BumpValidationError
from ..graph import DependencyGraph
from ..risk.bumping import bump_curve_quotes, clone_object_graph
from .fields import assign_field, find_field
from .values import Scenarios


logger = structlog.get_logger(__name__)

# Settle used when no evaluator reports one
EARLIEST_SETTLE = date(1990, 1, 1)

Shifts = Union[float, Sequence[float], None]


def scenario_bump_flags(up: bool = True, relative: bool = False) -> BumpFlags:
    """Bump flags for scenario quote shifts; quotes may cross zero."""
    return BumpFlags.create(up=up, relative=relative) | BumpFlags.ALLOW_NEGATIVE_SPREADS


def _as_list(values: Any) -> List:
    if values is None:
        return []
    if isinstance(values, Real):
        return [values]
    return list(values)


def _check_count(values: Sequence, count: int, what: str) -> None:
    if values and len(values) != 1 and len(values) != count:
        raise BumpValidationError(f"If {what} are specified, give one or one for each of {count} items")


def _pick(values: Sequence[float], i: int) -> float:
    return float(values[0] if len(values) == 1 else values[i])


def _restore(live: Sequence, saved: Optional[Sequence]) -> None:
    if saved is None:
        return
    for obj, clone in zip(live, saved):
        obj.copy_from(clone)


def _recovery_curve(curve: SurvivalCurve) -> Optional[RecoveryCurve]:
    if curve.recovery_curve is not None:
        return curve.recovery_curve
    return getattr(curve.calibrator, "recovery_curve", None)


def _shift_recovery(rc: RecoveryCurve, shift_type: ScenarioShiftType, size: float) -> None:
    """Move a recovery curve through its spread."""
    base = rc.value(rc.as_of)
    if shift_type == ScenarioShiftType.ABSOLUTE:
        rc.spread += size
    elif shift_type == ScenarioShiftType.RELATIVE:
        rc.spread = base * size
    elif shift_type == ScenarioShiftType.SPECIFIED:
        rc.spread = size - base


def _market_curves(evaluators: Sequence) -> List[CalibratedCurve]:
    """Every curve the evaluators depend on, each once."""
    curves: List[CalibratedCurve] = []
    seen = set()
    for e in evaluators:
        for obj in e.dependencies():
            if isinstance(obj, CalibratedCurve) and id(obj) not in seen:
                seen.add(id(obj))
                curves.append(obj)
    return curves


class ScenarioShift(ABC):
    """Base class of scenario shifts."""

    @property
    def recovery_modified(self) -> bool:
        return False

    @property
    def correlation_modified(self) -> bool:
        return False

    @property
    def default_changed(self) -> bool:
        return False

    def validate(self) -> None:
        """Raise BumpValidationError on inconsistent parameters."""

    @abstractmethod
    def save_state(self, evaluators: Sequence) -> None:
        """Snapshot the state the shift will change."""

    @abstractmethod
    def perform_shift(self, evaluators: Sequence) -> None:
        """Apply the shift."""

    def perform_refit(self, evaluators: Sequence) -> None:
        """Refit objects invalidated by the shift."""

    @abstractmethod
    def restore_state(self, evaluators: Sequence) -> None:
        """Restore the snapshot and clear it."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


# =============================================================================
# Pricer and product terms
# =============================================================================

class ScenarioShiftPricerTerms(ScenarioShift):
    """
    Set named fields of the pricers or their products.

    A single name containing ';' expands to several names; a single value
    with several names is used for all of them. Pricers without a field are
    left alone.

    Example:
        >>> shift = ScenarioShiftPricerTerms("maturity", "2Y")
        >>> shift = ScenarioShiftPricerTerms("coupon;notional",
        ...                                  ScenarioValueShift(ScenarioShiftType.RELATIVE, 0.1))
    """

    def __init__(self, names: Union[str, Sequence[str]], values: Any):
        names = [names] if isinstance(names, str) else list(names)
        if len(names) == 1 and ";" in names[0]:
            names = [n.strip() for n in names[0].split(";")]
        values = list(values) if isinstance(values, (list, tuple)) else [values]
        if len(names) > 1 and len(values) == 1:
            values = values * len(names)
        self.names = names
        self.values = values
        self._saved: Optional[List[tuple]] = None

    def validate(self) -> None:
        if self.names and len(self.names) != len(self.values):
            raise BumpValidationError(
                f"Number of field names ({len(self.names)}) does not match "
                f"number of field values ({len(self.values)})"
            )

    def _pricers(self, evaluators: Sequence) -> List[Any]:
        pricers, seen = [], set()
        for e in evaluators:
            if id(e.pricer) not in seen:
                seen.add(id(e.pricer))
                pricers.append(e.pricer)
        return pricers

    def save_state(self, evaluators: Sequence) -> None:
        saved = []
        for pricer in self._pricers(evaluators):
            for name, value in zip(self.names, self.values):
                if not name:
                    continue
                accessor = find_field(pricer, name)
                if accessor is None:
                    logger.debug("pricer_terms: field not found, pricer skipped",
                                 pricer=getattr(pricer, "name", type(pricer).__name__), field=name)
                    continue
                current = accessor.get(pricer)
                # Curves changed in place are restored from a clone
                clone = current.clone() if accessor.in_place and isinstance(current, CalibratedCurve) else None
                saved.append((pricer, accessor, value, current, clone))
        self._saved = saved

    def perform_shift(self, evaluators: Sequence) -> None:
        if self._saved is None:
            return
        for pricer, accessor, value, _, _ in self._saved:
            assign_field(pricer, accessor, value)
        for pricer in self._pricers(evaluators):
            if hasattr(pricer, "reset"):
                pricer.reset()

    def restore_state(self, evaluators: Sequence) -> None:
        if self._saved is None:
            return
        saved, self._saved = self._saved, None
        for pricer, accessor, _, original, clone in reversed(saved):
            if clone is not None:
                original.copy_from(clone)
            accessor.set(pricer, original)
        for pricer in self._pricers(evaluators):
            if hasattr(pricer, "reset"):
                pricer.reset()

    def __repr__(self) -> str:
        return f"ScenarioShiftPricerTerms({self.names!r}, {self.values!r})"


# =============================================================================
# Curve quotes
# =============================================================================

class ScenarioShiftCurves(ScenarioShift):
    """
    Shift the quotes of whole curves.

    Absolute shifts are in ``unit``; relative shifts are fractions of each
    quote. With refit_dependents, every curve the evaluators use that
    depends on a shifted curve is refitted too, prerequisites first.

    Attributes:
        curves: Curves to shift
        shifts: One shift, or one per curve
        shift_type: ABSOLUTE, RELATIVE or NONE
        refit_dependents: Refit dependent curves as well
        unit: Unit of absolute shifts
    """

    def __init__(self, curves: Sequence[CalibratedCurve], shifts: Shifts,
                 shift_type: Union[str, ScenarioShiftType] = ScenarioShiftType.ABSOLUTE,
                 refit_dependents: bool = True, unit: BumpUnit = BumpUnit.BASIS_POINTS):
        self.curves = list(curves or [])
        self.shifts = _as_list(shifts)
        self.shift_type = Scenarios.shift_type(shift_type)
        self.refit_dependents = refit_dependents
        self.unit = BumpUnit(unit)
        self.affected: List[CalibratedCurve] = []
        self._saved: Optional[List[CalibratedCurve]] = None

    @property
    def nothing_to_do(self) -> bool:
        return not self.curves

    @property
    def recovery_modified(self) -> bool:
        return any(isinstance(c, (RecoveryCurve, SurvivalCurve)) for c in self.affected or self.curves)

    def validate(self) -> None:
        if self.shift_type == ScenarioShiftType.SPECIFIED:
            raise BumpValidationError("Specified curve shifts are not supported")
        if self.curves and not self.shifts:
            raise BumpValidationError("Shifts must be specified if curves are specified")
        _check_count(self.shifts, len(self.curves), "curve shifts")

    def _affected(self, evaluators: Sequence) -> List[CalibratedCurve]:
        items: List[CalibratedCurve] = []
        for curve in self.curves:
            for c in [curve] + curve.component_curves():
                if not any(c is i for i in items):
                    items.append(c)
        if self.refit_dependents:
            return DependencyGraph.get_descendants(items, _market_curves(evaluators))
        keep = {id(c) for c in items}
        return [c for c in DependencyGraph(items) if id(c) in keep]

    def save_state(self, evaluators: Sequence) -> None:
        if self.nothing_to_do:
            return
        self.affected = self._affected(evaluators)
        self._saved = clone_object_graph(self.affected)

    def perform_shift(self, evaluators: Sequence) -> None:
        if self.nothing_to_do or self.shift_type == ScenarioShiftType.NONE:
            return
        relative = self.shift_type == ScenarioShiftType.RELATIVE
        unit = BumpUnit.RELATIVE if relative else self.unit
        for i, curve in enumerate(self.curves):
            bump = _pick(self.shifts, i)
            if bump == 0.0:
                continue
            logger.debug("scenario_shift: curve shifted", curve=curve.name, bump=bump,
                         shift_type=self.shift_type.value)
            bump_curve_quotes(curve, None, bump, scenario_bump_flags(True, relative), unit)

    def perform_refit(self, evaluators: Sequence) -> None:
        if self.nothing_to_do:
            return
        for curve in self.affected:
            curve.refit()

    def restore_state(self, evaluators: Sequence) -> None:
        saved, self._saved = self._saved, None
        _restore(self.affected, saved)

    def __repr__(self) -> str:
        names = [c.name for c in self.curves]
        return f"ScenarioShiftCurves({names!r}, {self.shifts!r}, {self.shift_type.value})"


# =============================================================================
# Credit
# =============================================================================

class _CreditShiftBase(ScenarioShift):
    """Saves survival curves together with their recovery curves."""

    def __init__(self, curves: Sequence[SurvivalCurve]):
        self.curves = list(curves or [])
        self._objects: List[CalibratedCurve] = []
        self._saved: Optional[List[CalibratedCurve]] = None

    def _save(self) -> None:
        objects: List[CalibratedCurve] = []
        for curve in self.curves:
            for c in (curve, _recovery_curve(curve)):
                if c is not None and not any(c is o for o in objects):
                    objects.append(c)
        self._objects = objects
        self._saved = clone_object_graph(objects)

    def restore_state(self, evaluators: Sequence) -> None:
        saved, self._saved = self._saved, None
        _restore(self._objects, saved)

    @staticmethod
    def _require_calibrated(curve: SurvivalCurve) -> None:
        if curve.calibrator is None:
            raise BumpValidationError(f"The curve '{curve.name}' is not a calibrated curve")


class ScenarioShiftCreditCurves(_CreditShiftBase):
    """
    Shift credit spreads and recovery rates of survival curves.

    Spreads move only while a curve is not defaulted. Recoveries move while
    the curve is alive, will default, or is flagged to recover; only live
    curves are refitted.

    Attributes:
        curves: Survival curves
        spread_shifts: Spread shift, or one per curve
        spread_shift_type: How spread shifts apply
        recovery_shifts: Recovery shift, or one per curve
        recovery_shift_type: How recovery shifts apply
        unit: Unit of absolute spread shifts
    """

    def __init__(self, curves: Sequence[SurvivalCurve], spread_shifts: Shifts = None,
                 spread_shift_type: Union[str, ScenarioShiftType] = ScenarioShiftType.ABSOLUTE,
                 recovery_shifts: Shifts = None,
                 recovery_shift_type: Union[str, ScenarioShiftType] = ScenarioShiftType.NONE,
                 unit: BumpUnit = BumpUnit.BASIS_POINTS):
        super().__init__(curves)
        self.spread_shifts = _as_list(spread_shifts)
        self.spread_shift_type = Scenarios.shift_type(spread_shift_type)
        self.recovery_shifts = _as_list(recovery_shifts)
        self.recovery_shift_type = Scenarios.shift_type(recovery_shift_type)
        self.unit = BumpUnit(unit)
        self._refit: List[bool] = []

    @property
    def recoveries_bumped(self) -> bool:
        return bool(self.recovery_shifts) and self.recovery_shift_type != ScenarioShiftType.NONE

    @property
    def recovery_modified(self) -> bool:
        return self.recoveries_bumped

    @property
    def nothing_to_do(self) -> bool:
        return not self.curves or (
            self.spread_shift_type == ScenarioShiftType.NONE
            and self.recovery_shift_type == ScenarioShiftType.NONE
        )

    def validate(self) -> None:
        if self.spread_shift_type == ScenarioShiftType.SPECIFIED:
            raise BumpValidationError("Specified spread shifts are not supported")
        _check_count(self.spread_shifts, len(self.curves), "spread shifts")
        _check_count(self.recovery_shifts, len(self.curves), "recovery shifts")

    def save_state(self, evaluators: Sequence) -> None:
        if self.nothing_to_do:
            return
        self._save()

    def perform_shift(self, evaluators: Sequence) -> None:
        if self.nothing_to_do:
            return
        self._refit = [False] * len(self.curves)
        relative = self.spread_shift_type == ScenarioShiftType.RELATIVE
        for i, curve in enumerate(self.curves):
            self._require_calibrated(curve)
            alive = curve.defaulted == Defaulted.NOT_DEFAULTED

            if self.recoveries_bumped:
                rbump = _pick(self.recovery_shifts, i)
                rc = _recovery_curve(curve)
                may_move = alive or curve.defaulted == Defaulted.WILL_DEFAULT or curve.will_recover
                if rc is not None and rbump != 0.0 and may_move:
                    logger.debug("scenario_shift: recovery shifted", curve=curve.name, bump=rbump,
                                 shift_type=self.recovery_shift_type.value)
                    _shift_recovery(rc, self.recovery_shift_type, rbump)
                    self._refit[i] = alive

            if self.spread_shifts and alive and self.spread_shift_type != ScenarioShiftType.NONE:
                bump = _pick(self.spread_shifts, i)
                if bump == 0.0:
                    continue
                logger.debug("scenario_shift: spreads shifted", curve=curve.name, bump=bump,
                             shift_type=self.spread_shift_type.value)
                unit = BumpUnit.RELATIVE if relative else self.unit
                bump_curve_quotes(curve, None, bump, scenario_bump_flags(True, relative), unit)
                self._refit[i] = True

    def perform_refit(self, evaluators: Sequence) -> None:
        if self.nothing_to_do:
            return
        for curve, refit in zip(self.curves, self._refit):
            if refit:
                curve.refit()


class ScenarioShiftDefaults(_CreditShiftBase):
    """
    Mark survival curves as defaulting on the latest evaluator settle date.

    Curves that are already defaulted are left alone. Recoveries of the
    marked curves can be shifted at the same time (absolute or specified).
    """

    def __init__(self, curves: Sequence[SurvivalCurve], recovery_shifts: Shifts = None,
                 recovery_shift_type: Union[str, ScenarioShiftType] = ScenarioShiftType.ABSOLUTE):
        super().__init__(curves)
        self.recovery_shifts = _as_list(recovery_shifts)
        self.recovery_shift_type = Scenarios.shift_type(recovery_shift_type)

    @property
    def recoveries_bumped(self) -> bool:
        return bool(self.recovery_shifts)

    @property
    def recovery_modified(self) -> bool:
        return self.recoveries_bumped

    @property
    def default_changed(self) -> bool:
        return True

    def validate(self) -> None:
        if self.recovery_shift_type == ScenarioShiftType.RELATIVE:
            raise BumpValidationError("Relative recovery shifts are not supported with defaults")
        _check_count(self.recovery_shifts, len(self.curves), "recovery shifts")

    @staticmethod
    def last_settle(evaluators: Sequence) -> date:
        settle = EARLIEST_SETTLE
        for e in evaluators:
            if e.settle is not None and e.settle > settle:
                settle = e.settle
        return settle

    def save_state(self, evaluators: Sequence) -> None:
        if self.curves:
            self._save()

    def perform_shift(self, evaluators: Sequence) -> None:
        if not self.curves:
            return
        settle = self.last_settle(evaluators)
        for i, curve in enumerate(self.curves):
            self._require_calibrated(curve)
            if curve.defaulted != Defaulted.NOT_DEFAULTED:
                continue
            logger.debug("scenario_shift: curve marked defaulted", curve=curve.name, default_date=settle)
            curve.set_defaulted(settle, Defaulted.WILL_DEFAULT)
            rc = _recovery_curve(curve)
            if not self.recovery_shifts or rc is None:
                continue
            _shift_recovery(rc, self.recovery_shift_type, _pick(self.recovery_shifts, i))


# =============================================================================
# FX
# =============================================================================

class _FxCurveState:
    """
    Snapshot of an fx curve.

    Supplied curves carry their own forward quotes; basis-fit curves also
    depend on the basis curves, which are saved with them.
    """

    def __init__(self, curve: FxCurve):
        self.curve = curve
        self.originals: List[CalibratedCurve] = [curve]
        if not curve.is_supplied:
            self.originals.extend(curve.component_curves())
        self.saved = clone_object_graph(self.originals)

    def restore(self) -> None:
        _restore(self.originals, self.saved)


class ScenarioShiftFxCurves(ScenarioShift):
    """
    Shift fx spot rates and basis spreads.

    A spot shift on a supplied curve scales every forward quote by the
    spot ratio; on a basis-fit curve it moves the spot quote and the
    forwards follow from the refit.

    Attributes:
        curves: Fx curves
        fx_shifts: Spot shift, or one per curve (natural units when absolute)
        fx_shift_type: How spot shifts apply
        basis_shifts: Basis shift, or one per curve
        basis_shift_type: How basis shifts apply
        unit: Unit of absolute basis shifts
    """

    def __init__(self, curves: Sequence[FxCurve], fx_shifts: Shifts = None,
                 fx_shift_type: Union[str, ScenarioShiftType] = ScenarioShiftType.ABSOLUTE,
                 basis_shifts: Shifts = None,
                 basis_shift_type: Union[str, ScenarioShiftType] = ScenarioShiftType.NONE,
                 unit: BumpUnit = BumpUnit.BASIS_POINTS):
        self.curves = list(curves or [])
        self.fx_shifts = _as_list(fx_shifts)
        self.fx_shift_type = Scenarios.shift_type(fx_shift_type)
        self.basis_shifts = _as_list(basis_shifts)
        self.basis_shift_type = Scenarios.shift_type(basis_shift_type)
        self.unit = BumpUnit(unit)
        self._saved: Optional[List[_FxCurveState]] = None

    @property
    def nothing_to_do(self) -> bool:
        return not self.curves or (
            self.fx_shift_type == ScenarioShiftType.NONE
            and self.basis_shift_type == ScenarioShiftType.NONE
        )

    def validate(self) -> None:
        if not self.curves:
            return
        if self.fx_shift_type == ScenarioShiftType.SPECIFIED:
            raise BumpValidationError("Specified fx shifts are not supported")
        if self.basis_shift_type == ScenarioShiftType.SPECIFIED:
            raise BumpValidationError("Specified fx basis shifts are not supported")
        _check_count(self.fx_shifts, len(self.curves), "fx shifts")
        _check_count(self.basis_shifts, len(self.curves), "fx basis shifts")

    def save_state(self, evaluators: Sequence) -> None:
        if self.nothing_to_do:
            return
        self._saved = [_FxCurveState(c) for c in self.curves]

    def _shift_spot(self, curve: FxCurve, bump: float) -> None:
        old = curve.spot.rate
        new = Scenarios.bump(old, self.fx_shift_type, bump)
        if old <= 0.0 or new <= 0.0:
            raise BumpValidationError(f"Fx curve {curve.name}: cannot shift spot {old} to {new}")
        logger.debug("scenario_shift: fx spot shifted", curve=curve.name, spot=old, shifted=new,
                     supplied=curve.is_supplied)
        if curve.is_supplied:
            ratio = new / old
            for tenor in curve.tenors:
                if isinstance(tenor.product, FxForward):
                    tenor.quote = tenor.quote * ratio
        else:
            spot_tenor = curve.spot_tenor
            if spot_tenor is not None:
                spot_tenor.quote = new
        curve.spot.rate = new

    def perform_shift(self, evaluators: Sequence) -> None:
        if self.nothing_to_do:
            return
        for i, curve in enumerate(self.curves):
            if self.fx_shifts and self.fx_shift_type != ScenarioShiftType.NONE:
                bump = _pick(self.fx_shifts, i)
                if bump != 0.0:
                    self._shift_spot(curve, bump)

            if curve.basis_curve is None or not self.basis_shifts:
                continue
            bump = _pick(self.basis_shifts, i)
            if bump == 0.0 or self.basis_shift_type == ScenarioShiftType.NONE:
                continue
            relative = self.basis_shift_type == ScenarioShiftType.RELATIVE
            logger.debug("scenario_shift: fx basis shifted", curve=curve.name, bump=bump,
                         shift_type=self.basis_shift_type.value)
            bump_curve_quotes(curve.basis_curve, None, bump, scenario_bump_flags(True, relative),
                              BumpUnit.RELATIVE if relative else self.unit)

    def perform_refit(self, evaluators: Sequence) -> None:
        if self.nothing_to_do:
            return
        for curve in self.curves:
            if curve.basis_curve is not None:
                curve.basis_curve.refit()
            curve.refit()

    def restore_state(self, evaluators: Sequence) -> None:
        if self._saved is None:
            return
        saved, self._saved = self._saved, None
        for state in saved:
            state.restore()


# =============================================================================
# Stocks
# =============================================================================

class ScenarioShiftStockCurves(ScenarioShift):
    """
    Shift stock spot prices and dividend-yield spreads.

    A spot shift moves every SpotAsset tenor to the new spot and scales the
    StockForward quotes by the spot ratio before the curve is refitted.
    Dividend shifts are absolute and act on the curve spread.
    """

    def __init__(self, curves: Sequence[StockCurve], spot_shifts: Shifts = None,
                 spot_shift_type: Union[str, ScenarioShiftType] = ScenarioShiftType.ABSOLUTE,
                 dividend_shifts: Shifts = None,
                 dividend_shift_type: Union[str, ScenarioShiftType] = ScenarioShiftType.NONE):
        self.curves = list(curves or [])
        self.spot_shifts = _as_list(spot_shifts)
        self.spot_shift_type = Scenarios.shift_type(spot_shift_type)
        self.dividend_shifts = _as_list(dividend_shifts)
        self.dividend_shift_type = Scenarios.shift_type(dividend_shift_type)
        self._refit: List[bool] = []
        self._saved: Optional[List[StockCurve]] = None

    @property
    def nothing_to_do(self) -> bool:
        return not self.curves or (
            self.spot_shift_type == ScenarioShiftType.NONE
            and self.dividend_shift_type == ScenarioShiftType.NONE
        )

    def validate(self) -> None:
        if not self.curves:
            return
        if self.dividend_shift_type not in (ScenarioShiftType.ABSOLUTE, ScenarioShiftType.NONE):
            raise BumpValidationError("Only absolute dividend yield shifts are supported")
        _check_count(self.spot_shifts, len(self.curves), "stock price shifts")
        _check_count(self.dividend_shifts, len(self.curves), "dividend yield shifts")

    def save_state(self, evaluators: Sequence) -> None:
        if self.nothing_to_do:
            return
        self._saved = clone_object_graph(self.curves)

    @staticmethod
    def spot_change(spot: float, shift_type: ScenarioShiftType, size: float) -> float:
        """Change of the spot price implied by a shift."""
        return Scenarios.bump(spot, shift_type, size) - spot

    def perform_shift(self, evaluators: Sequence) -> None:
        if self.nothing_to_do:
            return
        self._refit = [False] * len(self.curves)
        for i, curve in enumerate(self.curves):
            bump = _pick(self.spot_shifts, i) if self.spot_shifts else 0.0
            change = self.spot_change(curve.spot, self.spot_shift_type, bump) if bump != 0.0 else 0.0
            if change != 0.0:
                old = curve.spot
                new = old + change
                if new <= 0.0:
                    raise BumpValidationError(f"Stock curve {curve.name}: cannot shift spot {old} to {new}")
                logger.debug("scenario_shift: stock spot shifted", curve=curve.name, spot=old, shifted=new)
                ratio = new / old
                for tenor in curve.tenors:
                    if isinstance(tenor.product, StockForward):
                        tenor.quote = tenor.quote * ratio
                curve.set_spot(new)
                self._refit[i] = True

            if not self.dividend_shifts or self.dividend_shift_type == ScenarioShiftType.NONE:
                continue
            div_bump = _pick(self.dividend_shifts, i)
            if div_bump != 0.0:
                logger.debug("scenario_shift: dividend yield shifted", curve=curve.name, bump=div_bump)
                curve.spread += div_bump

    def perform_refit(self, evaluators: Sequence) -> None:
        if self.nothing_to_do:
            return
        for curve, refit in zip(self.curves, self._refit):
            if refit:
                curve.refit()

    def restore_state(self, evaluators: Sequence) -> None:
        saved, self._saved = self._saved, None
        _restore(self.curves, saved)


# =============================================================================
# Correlations and volatilities
# =============================================================================

class ScenarioShiftCorrelation(ScenarioShift):
    """Shift every correlation of one or more correlation objects."""

    def __init__(self, correlations: Sequence[FactorCorrelation], shifts: Shifts,
                 shift_type: Union[str, ScenarioShiftType] = ScenarioShiftType.ABSOLUTE):
        self.correlations = list(correlations or [])
        self.shifts = _as_list(shifts)
        self.shift_type = Scenarios.shift_type(shift_type)
        self._saved: Optional[List[FactorCorrelation]] = None

    @property
    def correlation_modified(self) -> bool:
        return True

    @property
    def nothing_to_do(self) -> bool:
        return not self.correlations or self.shift_type == ScenarioShiftType.NONE

    def validate(self) -> None:
        if self.shift_type == ScenarioShiftType.SPECIFIED:
            raise BumpValidationError("Specified correlation shifts are not supported")
        _check_count(self.shifts, len(self.correlations), "correlation shifts")

    def save_state(self, evaluators: Sequence) -> None:
        if self.nothing_to_do:
            return
        self._saved = [c.clone() for c in self.correlations]

    def perform_shift(self, evaluators: Sequence) -> None:
        if self.nothing_to_do or not self.shifts:
            return
        relative = self.shift_type == ScenarioShiftType.RELATIVE
        for i, corr in enumerate(self.correlations):
            bump = _pick(self.shifts, i)
            if bump == 0.0:
                continue
            realized = corr.bump_correlations(bump, relative)
            corr.modified = True
            logger.debug("scenario_shift: correlation shifted", correlation=corr.name, bump=bump,
                         avg_bump=realized)

    def restore_state(self, evaluators: Sequence) -> None:
        saved, self._saved = self._saved, None
        _restore(self.correlations, saved)


class ScenarioShiftVolatilities(ScenarioShift):
    """
    Shift volatility surfaces.

    By default the expiry quotes are shifted and the surfaces refitted. With
    bump_interpolated the output volatilities are shifted directly and
    nothing is refitted.
    """

    def __init__(self, surfaces: Sequence[VolatilitySurface], shifts: Shifts,
                 shift_type: Union[str, ScenarioShiftType] = ScenarioShiftType.ABSOLUTE,
                 bump_interpolated: bool = False):
        self.surfaces = list(surfaces or [])
        self.shifts = _as_list(shifts)
        self.shift_type = Scenarios.shift_type(shift_type)
        self.bump_interpolated = bump_interpolated
        self._shifted: Dict[int, bool] = {}
        self._saved: Optional[List[VolatilitySurface]] = None

    @property
    def nothing_to_do(self) -> bool:
        return not self.surfaces or self.shift_type == ScenarioShiftType.NONE

    def validate(self) -> None:
        if self.shift_type == ScenarioShiftType.SPECIFIED:
            raise BumpValidationError("Specified volatility shifts are not supported")
        _check_count(self.shifts, len(self.surfaces), "volatility shifts")

    def save_state(self, evaluators: Sequence) -> None:
        if self.nothing_to_do:
            return
        self._saved = clone_object_graph(self.surfaces)

    def perform_shift(self, evaluators: Sequence) -> None:
        if self.nothing_to_do or not self.shifts:
            return
        relative = self.shift_type == ScenarioShiftType.RELATIVE
        self._shifted = {}
        for i, surface in enumerate(self.surfaces):
            bump = _pick(self.shifts, i)
            if bump == 0.0:
                continue
            logger.debug("scenario_shift: volatility shifted", surface=surface.name, bump=bump,
                         interpolated=self.bump_interpolated)
            if self.bump_interpolated:
                surface.bump_interpolated(bump, relative)
            else:
                unit = BumpUnit.RELATIVE if relative else BumpUnit.NATURAL
                bump_curve_quotes(surface, None, bump, scenario_bump_flags(True, relative), unit)
                self._shifted[id(surface)] = True

    def perform_refit(self, evaluators: Sequence) -> None:
        if self.nothing_to_do or self.bump_interpolated:
            return
        for surface in self.surfaces:
            if self._shifted.get(id(surface)):
                surface.refit()

    def restore_state(self, evaluators: Sequence) -> None:
        saved, self._saved = self._saved, None
        _restore(self.surfaces, saved)


__all__ = [
    "ScenarioShift",
    "ScenarioShiftPricerTerms",
    "ScenarioShiftCurves",
    "ScenarioShiftCreditCurves",
    "ScenarioShiftDefaults",
    "ScenarioShiftFxCurves",
    "ScenarioShiftStockCurves",
    "ScenarioShiftCorrelation",
    "ScenarioShiftVolatilities",
    "scenario_bump_flags",
]

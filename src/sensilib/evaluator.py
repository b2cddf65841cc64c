"""
Evaluators: a pricer bound to one scalar measure.

The sensitivity engine never prices anything itself. It asks evaluators for
values, for the market objects they depend on, and to forget cached pricing
state after a curve has moved.

Pricers are external collaborators. The Pricer base class fixes the small
contract the engine relies on:
- as_of, settle, product (optionally with a maturity)
- pv() and any other measure exposed as a method or property
- reset(), reset_recovery(), reset_correlation() to drop cached state
- market_objects() listing the curves and correlations it references
- an ``approximate`` flag switched on during bump loops when fast mode is requested
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import date
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Type, TypeVar, Union

import structlog

from .correlation import FactorCorrelation
from .curves import (
    CalibratedCurve,
    DiscountCurve,
    FxCurve,
    RecoveryCurve,
    StockCurve,
    SurvivalCurve,
    VolatilitySurface,
)
from .errors import MissingDependencyError
from .graph import DependencyGraph, curve_parents


logger = structlog.get_logger(__name__)

MarketObject = Union[CalibratedCurve, FactorCorrelation]
Measure = Union[str, Callable[[Any], float]]

C = TypeVar("C")


def market_parents(obj) -> List:
    """Dependency parents of a curve; correlations have none."""
    if isinstance(obj, CalibratedCurve):
        return curve_parents(obj)
    return []


class Pricer(ABC):
    """
    Base class for pricers consumed by the engine.

    Attributes:
        as_of: Pricing date
        settle: Settlement date
        product: Priced product
        approximate: Use a faster, approximate evaluation
    """

    def __init__(self, as_of: date, settle: Optional[date] = None, product: Any = None,
                 name: Optional[str] = None):
        self.as_of = as_of
        self.settle = settle or as_of
        self.product = product
        self.approximate = False
        self._name = name

    @property
    def name(self) -> str:
        if self._name:
            return self._name
        product_name = getattr(self.product, "description", None) or getattr(self.product, "name", None)
        return product_name or type(self).__name__

    @property
    def maturity(self) -> Optional[date]:
        return getattr(self.product, "maturity", None)

    @abstractmethod
    def pv(self) -> float:
        """Present value."""

    def reset(self) -> None:
        """Drop cached state derived from curves."""

    def reset_recovery(self) -> None:
        """Drop cached state derived from recovery rates."""
        self.reset()

    def reset_correlation(self) -> None:
        """Drop cached state derived from correlations."""
        self.reset()

    def market_objects(self) -> List[MarketObject]:
        """
        Curves and correlations referenced by the pricer.

        The default scans instance attributes, including lists, tuples and
        dict values, and returns each object once.
        """
        found: List[MarketObject] = []
        seen = set()

        def visit(value):
            if isinstance(value, (CalibratedCurve, FactorCorrelation)):
                if id(value) not in seen:
                    seen.add(id(value))
                    found.append(value)
            elif isinstance(value, (list, tuple)):
                for v in value:
                    visit(v)
            elif isinstance(value, dict):
                for v in value.values():
                    visit(v)

        for value in vars(self).values():
            visit(value)
        return found

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


def _resolve_measure(pricer: Any, measure: Measure) -> Optional[Callable[[Any], float]]:
    if callable(measure):
        return measure
    attr = getattr(type(pricer), measure, None)
    if attr is None and measure not in getattr(pricer, "__dict__", {}):
        return None

    def read(p):
        value = getattr(p, measure)
        return value() if callable(value) else value

    return read


class PricerEvaluator:
    """
    A pricer bound to a scalar measure, with a cached value.

    Attributes:
        pricer: Underlying pricer
        measure: Measure name or function of the pricer
        dirty: Forces recomputation on the next evaluate()
        valid: False when the measure is missing and allow_missing was set
    """

    def __init__(self, pricer: Any, measure: Measure = "pv", allow_missing: bool = False,
                 name: Optional[str] = None):
        self.pricer = pricer
        self.measure = measure
        self._name = name
        self._fn = _resolve_measure(pricer, measure)
        self.valid = self._fn is not None
        if not self.valid and not allow_missing:
            raise MissingDependencyError(self.name, f"Pricer has no measure '{self.measure_name}'")
        self.dirty = True
        self._value: Optional[float] = None

    @classmethod
    def build(cls, pricers: Iterable[Any], measure: Measure = "pv",
              allow_missing: bool = False) -> List["PricerEvaluator"]:
        """
        Evaluators for a set of pricers (evaluators pass through).

        With allow_missing, pricers lacking the measure are left out.
        """
        result = []
        for p in pricers:
            if isinstance(p, PricerEvaluator):
                result.append(p)
                continue
            evaluator = cls(p, measure, allow_missing=allow_missing)
            if evaluator.valid:
                result.append(evaluator)
            else:
                logger.debug("evaluator_build: measure missing, pricer excluded",
                             pricer=evaluator.name, measure=evaluator.measure_name)
        return result

    @property
    def name(self) -> str:
        if self._name:
            return self._name
        return getattr(self.pricer, "name", None) or type(self.pricer).__name__

    @property
    def measure_name(self) -> str:
        if callable(self.measure):
            return getattr(self.measure, "__name__", "measure")
        return self.measure

    def __repr__(self) -> str:
        return f"PricerEvaluator({self.name!r}, {self.measure_name!r})"

    # =========================================================================
    # Evaluation
    # =========================================================================

    def evaluate(self, substitute: Any = None) -> float:
        """
        Current value of the measure.

        Args:
            substitute: Pricer evaluated in place of the bound one, without caching

        Returns:
            Measure value
        """
        if self._fn is None:
            raise MissingDependencyError(self.name, f"Pricer has no measure '{self.measure_name}'")
        if substitute is not None:
            return float(self._fn(substitute))
        if self.dirty or self._value is None:
            self._value = float(self._fn(self.pricer))
            self.dirty = False
        return self._value

    def reset(self, recovery_modified: bool = False, correlation_modified: bool = False,
              default_changed: bool = False) -> None:
        """
        Invalidate cached pricing state.

        Args:
            recovery_modified: Recovery rates changed
            correlation_modified: Correlations changed
            default_changed: Default state of a credit curve changed
        """
        if hasattr(self.pricer, "reset"):
            self.pricer.reset()
        if (recovery_modified or default_changed) and hasattr(self.pricer, "reset_recovery"):
            self.pricer.reset_recovery()
        if correlation_modified and hasattr(self.pricer, "reset_correlation"):
            self.pricer.reset_correlation()
        self.dirty = True

    def mark_dirty(self) -> None:
        self.dirty = True

    # =========================================================================
    # Dependencies
    # =========================================================================

    def market_objects(self) -> List[MarketObject]:
        """Market objects referenced directly by the pricer."""
        if hasattr(self.pricer, "market_objects"):
            return list(self.pricer.market_objects())
        return []

    def dependencies(self) -> List[MarketObject]:
        """Every market object the measure depends on, prerequisites first."""
        return DependencyGraph(self.market_objects(), market_parents).ordered()

    def depends_on(self, obj: Any) -> bool:
        """Whether the measure depends on a market object, directly or through a calibrator."""
        return any(o is obj for o in self.dependencies())

    def _of_type(self, kind: Type[C]) -> List[C]:
        return [o for o in self.dependencies() if isinstance(o, kind)]

    @property
    def discount_curves(self) -> List[DiscountCurve]:
        return self._of_type(DiscountCurve)

    @property
    def survival_curves(self) -> List[SurvivalCurve]:
        return self._of_type(SurvivalCurve)

    @property
    def recovery_curves(self) -> List[RecoveryCurve]:
        return self._of_type(RecoveryCurve)

    @property
    def fx_curves(self) -> List[FxCurve]:
        return self._of_type(FxCurve)

    @property
    def stock_curves(self) -> List[StockCurve]:
        return self._of_type(StockCurve)

    @property
    def volatility_surfaces(self) -> List[VolatilitySurface]:
        return self._of_type(VolatilitySurface)

    @property
    def correlations(self) -> List[FactorCorrelation]:
        return self._of_type(FactorCorrelation)

    @property
    def as_of(self) -> Optional[date]:
        return getattr(self.pricer, "as_of", None)

    @property
    def settle(self) -> Optional[date]:
        return getattr(self.pricer, "settle", None) or self.as_of

    @property
    def product_maturity(self) -> Optional[date]:
        maturity = getattr(self.pricer, "maturity", None)
        if maturity is None:
            maturity = getattr(getattr(self.pricer, "product", None), "maturity", None)
        return maturity


def as_evaluators(items: Iterable[Any], measure: Measure = "pv",
                  allow_missing: bool = False) -> List[PricerEvaluator]:
    """Wrap pricers as evaluators; evaluators are kept as they are."""
    return PricerEvaluator.build(items, measure, allow_missing)


@contextmanager
def fast_evaluation(evaluators: Sequence[PricerEvaluator], enabled: bool = True) -> Iterator[None]:
    """
    Switch pricers to approximate evaluation for the duration of the block.

    The previous flags are restored on exit, including when the block raises.
    """
    saved: Dict[int, bool] = {}
    pricers = []
    if enabled:
        for e in evaluators:
            pricer = e.pricer
            if id(pricer) in saved or not hasattr(pricer, "approximate"):
                continue
            saved[id(pricer)] = pricer.approximate
            pricers.append(pricer)
            pricer.approximate = True
    try:
        yield
    finally:
        for pricer in pricers:
            pricer.approximate = saved[id(pricer)]


__all__ = [
    "Pricer",
    "PricerEvaluator",
    "market_parents",
    "as_evaluators",
    "fast_evaluation",
]

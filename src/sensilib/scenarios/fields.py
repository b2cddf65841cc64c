"""
Typed field access for pricer and product term shifts.

A term shift names a field ("Coupon", "maturity", "discount_curve") and a
new value. Fields are resolved once per (pricer type, product type, name)
to a FieldAccessor that knows where the field lives and what kind of value
it holds. The kind decides how a raw scenario value is converted:

    DATE               int/float -> as_of + N days, str -> as_of + tenor (or ISO date)
    DISCOUNT_CURVE     number    -> curve replaced in place by a flat zero curve
    SURVIVAL_CURVE     number    -> curve replaced in place by a flat hazard curve
    STOCK_CURVE        number    -> spot price of the curve set
    VOLATILITY_SURFACE number    -> field replaced by a flat volatility surface
    VALUE              ScenarioValueShift applied to the current number

Fields can be registered explicitly with ``register_field``; otherwise the
kind is inferred from the current value, looking on the pricer first and
then on its product.
"""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from numbers import Real
from typing import Any, Dict, Optional, Tuple

import structlog

from ..curves import (
    CurvePoint,
    DiscountCurve,
    StockCurve,
    SurvivalCurve,
    VolatilitySurface,
    create_flat_curve,
    create_flat_volatility_surface,
)
from ..dates import DateUtils
from ..errors import BumpValidationError
from .values import ScenarioValueShift


logger = structlog.get_logger(__name__)

PRICER = "pricer"
PRODUCT = "product"


class FieldKind(Enum):
    """Kind of value held by a pricer or product field."""
    DATE = "date"
    VALUE = "value"
    DISCOUNT_CURVE = "discount_curve"
    SURVIVAL_CURVE = "survival_curve"
    STOCK_CURVE = "stock_curve"
    VOLATILITY_SURFACE = "volatility_surface"
    OTHER = "other"


def infer_kind(value: Any) -> FieldKind:
    """Field kind from a current field value."""
    if isinstance(value, SurvivalCurve):
        return FieldKind.SURVIVAL_CURVE
    if isinstance(value, DiscountCurve):
        return FieldKind.DISCOUNT_CURVE
    if isinstance(value, StockCurve):
        return FieldKind.STOCK_CURVE
    if isinstance(value, VolatilitySurface):
        return FieldKind.VOLATILITY_SURFACE
    if isinstance(value, date):
        return FieldKind.DATE
    if isinstance(value, Real) and not isinstance(value, bool):
        return FieldKind.VALUE
    return FieldKind.OTHER


@dataclass(frozen=True)
class FieldAccessor:
    """
    Resolved getter/setter for one named field.

    Attributes:
        name: Attribute name
        kind: Kind of value held
        owner: PRICER or PRODUCT
    """
    name: str
    kind: FieldKind
    owner: str = PRICER

    @property
    def in_place(self) -> bool:
        """Numeric values update the held curve object instead of replacing it."""
        return self.kind in (FieldKind.DISCOUNT_CURVE, FieldKind.SURVIVAL_CURVE, FieldKind.STOCK_CURVE)

    def target(self, pricer: Any) -> Any:
        return pricer if self.owner == PRICER else pricer.product

    def get(self, pricer: Any) -> Any:
        return getattr(self.target(pricer), self.name)

    def set(self, pricer: Any, value: Any) -> None:
        setattr(self.target(pricer), self.name, value)


# =============================================================================
# Registry
# =============================================================================

_REGISTERED: Dict[Tuple[type, str], FieldKind] = {}
_RESOLVED: Dict[Tuple[type, type, str], Optional[FieldAccessor]] = {}


def register_field(cls: type, name: str, kind: FieldKind) -> None:
    """
    Declare the kind of a field of a pricer or product class.

    Registered fields take precedence over inference, and are inherited by
    subclasses.
    """
    _REGISTERED[(cls, name)] = kind
    _RESOLVED.clear()


def _registered_kind(obj: Any, name: str) -> Optional[FieldKind]:
    for klass in type(obj).__mro__:
        kind = _REGISTERED.get((klass, name))
        if kind is not None:
            return kind
    return None


def _has_field(obj: Any, name: str) -> bool:
    """Settable, non-callable public attribute."""
    if obj is None or name.startswith("_") or not hasattr(obj, name):
        return False
    prop = getattr(type(obj), name, None)
    if isinstance(prop, property) and prop.fset is None:
        return False
    return not callable(getattr(obj, name))


def find_field(pricer: Any, name: str) -> Optional[FieldAccessor]:
    """
    Resolve a field on a pricer or its product.

    Returns:
        FieldAccessor, or None when neither the pricer nor its product has the field
    """
    product = getattr(pricer, "product", None)
    key = (type(pricer), type(product), name)
    if key in _RESOLVED:
        return _RESOLVED[key]

    accessor = None
    for owner, obj in ((PRICER, pricer), (PRODUCT, product)):
        if obj is None:
            continue
        kind = _registered_kind(obj, name)
        if kind is None and _has_field(obj, name):
            kind = infer_kind(getattr(obj, name))
        if kind is not None:
            accessor = FieldAccessor(name, kind, owner)
            break

    _RESOLVED[key] = accessor
    return accessor


def resolve_field(pricer: Any, name: str) -> FieldAccessor:
    """Like find_field, but an unknown field raises BumpValidationError."""
    accessor = find_field(pricer, name)
    if accessor is None:
        raise BumpValidationError(f"{type(pricer).__name__} and its product have no field '{name}'")
    return accessor


# =============================================================================
# Value conversion
# =============================================================================

def _number(value: Any, accessor: FieldAccessor) -> float:
    if isinstance(value, bool) or not isinstance(value, Real):
        raise BumpValidationError(
            f"Unable to set {accessor.name} to {value!r}: a {accessor.kind.value} field takes a number"
        )
    return float(value)


def flat_survival_like(curve: SurvivalCurve, hazard: float) -> SurvivalCurve:
    """Survival curve with a flat average hazard rate on the tenors of another curve."""
    flat = SurvivalCurve(curve.as_of, curve.name, day_count=curve.day_count)
    for tenor in curve.tenors:
        flat.add_tenor(CurvePoint(tenor=tenor.product.tenor, quote=hazard), name=tenor.name)
    flat.set_points([0.0], [hazard])
    return flat


def assign_field(pricer: Any, accessor: FieldAccessor, value: Any) -> None:
    """
    Set a field from a scenario value, converting it by field kind.

    Raises:
        BumpValidationError: If the value cannot be converted to the field kind
    """
    current = accessor.get(pricer)
    as_of = getattr(pricer, "as_of", None)

    if isinstance(value, ScenarioValueShift):
        if infer_kind(current) != FieldKind.VALUE:
            raise BumpValidationError(f"Unable to shift {accessor.name}: the field value is not a number")
        accessor.set(pricer, value.apply(float(current)))
        return

    kind = accessor.kind
    if kind == FieldKind.DATE and not isinstance(value, date):
        if isinstance(value, bool) or not isinstance(value, (int, float, str)):
            raise BumpValidationError(f"Unable to set date field {accessor.name} to {value!r}")
        if isinstance(value, float):
            value = int(round(value))
        try:
            new_date = DateUtils.resolve_date(value, as_of)
        except ValueError as e:
            raise BumpValidationError(f"Unable to set {accessor.name} to {value!r}: {e}") from e
        logger.debug("pricer_terms: date set", field=accessor.name, value=value, date=new_date)
        accessor.set(pricer, new_date)
        return

    if kind == FieldKind.DISCOUNT_CURVE and not isinstance(value, DiscountCurve):
        rate = _number(value, accessor)
        flat = create_flat_curve(current.as_of, rate, name=current.name,
                                 tenors=current.tenor_names or ("1Y",), day_count=current.day_count)
        logger.debug("pricer_terms: flat discount curve", field=accessor.name, rate=rate)
        current.copy_from(flat)
        return

    if kind == FieldKind.SURVIVAL_CURVE and not isinstance(value, SurvivalCurve):
        hazard = _number(value, accessor)
        logger.debug("pricer_terms: flat survival curve", field=accessor.name, hazard=hazard)
        current.copy_from(flat_survival_like(current, hazard))
        return

    if kind == FieldKind.STOCK_CURVE and not isinstance(value, StockCurve):
        spot = _number(value, accessor)
        logger.debug("pricer_terms: stock spot set", field=accessor.name, spot=spot)
        current.set_spot(spot)
        return

    if kind == FieldKind.VOLATILITY_SURFACE and not isinstance(value, VolatilitySurface):
        vol = _number(value, accessor)
        surface = create_flat_volatility_surface(current.as_of, vol, name=current.name,
                                                 tenors=current.tenor_names or ("1Y",))
        logger.debug("pricer_terms: flat volatility surface", field=accessor.name, vol=vol)
        accessor.set(pricer, surface)
        return

    if kind == FieldKind.VALUE:
        value = _number(value, accessor)
    elif current is not None and not isinstance(value, type(current)):
        raise BumpValidationError(
            f"Unable to set {accessor.name} to {value!r}. {accessor.name} can only be set to a "
            f"{type(current).__name__}, not a {type(value).__name__}"
        )
    logger.debug("pricer_terms: field set", field=accessor.name, value=value)
    accessor.set(pricer, value)


__all__ = [
    "FieldKind",
    "FieldAccessor",
    "infer_kind",
    "register_field",
    "find_field",
    "resolve_field",
    "assign_field",
    "flat_survival_like",
]

"""
Bump parameters for sensitivity runs.

A SensitivityConfig carries everything the orchestrator needs to know about
a sensitivity request: bump sizes and units, the bump topology, which tenors
to bump, and which derived measures (gamma, hedge) to report.
"""

from dataclasses import dataclass, fields, replace
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import numpy as np

from .conventions import BumpUnit, SensitivityMethod
from .errors import BumpValidationError


BumpSize = Union[float, Sequence[float]]

HEDGE_MATURITY = "maturity"
HEDGE_MATCHING = "matching"
ALL_TENORS = "all"


@dataclass
class SensitivityConfig:
    """
    Parameters of a bump-and-reprice sensitivity run.

    Attributes:
        up_bump: Up bump size (scalar or one per bumped tenor); 0 disables the up leg
        down_bump: Down bump size (scalar or one per bumped tenor); 0 disables the down leg
        bump_unit: Unit of the bump sizes
        method: Bump topology (Uniform, Parallel or ByTenor)
        bump_tenors: Tenor names to bump; ["all"] selects every future tenor, None the
            future tenors up to the last product maturity
        initial_bump: Offset applied to all selected curves before base values are taken
        scaled_delta: Divide delta by the realized bump
        calc_gamma: Report gamma (requires both up and down bumps)
        calc_hedge: Report hedge delta and notional
        hedge_tenor: Hedge selector: tenor name, date, "maturity" or "matching"
        refit_dependents: Refit curves that depend on the bumped ones
        fast_mode: Switch pricers to approximate evaluation during the bump loop
        must_exist: Raise when an evaluator has no curve of the requested kind
        allow_negative: Let spread quotes be bumped through zero
    """
    up_bump: BumpSize = 1.0
    down_bump: BumpSize = 0.0
    bump_unit: BumpUnit = BumpUnit.BASIS_POINTS
    method: SensitivityMethod = SensitivityMethod.PARALLEL
    bump_tenors: Optional[List[str]] = None
    initial_bump: float = 0.0
    scaled_delta: bool = True
    calc_gamma: bool = False
    calc_hedge: bool = False
    hedge_tenor: Optional[Union[str, date]] = None
    refit_dependents: bool = True
    fast_mode: bool = False
    must_exist: bool = False
    allow_negative: bool = False

    def __post_init__(self):
        if isinstance(self.bump_unit, str):
            self.bump_unit = BumpUnit.from_string(self.bump_unit)
        if isinstance(self.method, str):
            self.method = SensitivityMethod.from_string(self.method)
        if isinstance(self.bump_tenors, str):
            self.bump_tenors = [t.strip() for t in self.bump_tenors.split(",") if t.strip()]

    @property
    def relative(self) -> bool:
        """Whether bumps are relative to the quote."""
        return self.bump_unit == BumpUnit.RELATIVE

    @property
    def all_tenors(self) -> bool:
        """Whether every future tenor is bumped."""
        return not self.bump_tenors or (
            len(self.bump_tenors) == 1 and self.bump_tenors[0].lower() == ALL_TENORS
        )

    @property
    def maturity_cutoff(self) -> bool:
        """Whether ByTenor stops at the last product maturity (no tenors named)."""
        return not self.bump_tenors

    @property
    def wants_hedge(self) -> bool:
        return self.calc_hedge and self.hedge_tenor not in (None, "")

    def bump_sizes(self, up: bool, count: int) -> np.ndarray:
        """
        Expand the up or down bump into one size per bumped tenor.

        Args:
            up: Up leg if True, down leg otherwise
            count: Number of tenors bumped together

        Returns:
            Array of non-negative bump sizes
        """
        raw = self.up_bump if up else self.down_bump
        sizes = np.atleast_1d(np.asarray(raw, dtype=np.float64))
        if sizes.size == 1:
            return np.full(max(count, 1), float(sizes[0]))
        return sizes.copy()

    def has_leg(self, up: bool) -> bool:
        """Whether the up or down leg bumps anything."""
        raw = self.up_bump if up else self.down_bump
        return bool(np.any(np.atleast_1d(np.asarray(raw, dtype=np.float64)) != 0.0))

    def validate(self) -> None:
        """
        Check parameter consistency before anything is bumped.

        Raises:
            BumpValidationError: If the parameters are malformed
        """
        up = np.atleast_1d(np.asarray(self.up_bump, dtype=np.float64))
        down = np.atleast_1d(np.asarray(self.down_bump, dtype=np.float64))

        if np.any(up < 0) or np.any(down < 0):
            raise BumpValidationError("Bump sizes must be non-negative; use down_bump for down moves")

        if not self.has_leg(True) and not self.has_leg(False):
            raise BumpValidationError("At least one of up_bump and down_bump must be non-zero")

        for name, sizes in (("up_bump", up), ("down_bump", down)):
            if sizes.size > 1:
                if self.method != SensitivityMethod.BY_TENOR:
                    raise BumpValidationError(
                        f"{name} has {sizes.size} values; per-tenor bumps require the ByTenor method"
                    )
                if self.all_tenors:
                    raise BumpValidationError(f"{name} has {sizes.size} values but no bump tenors were named")
                if sizes.size != len(self.bump_tenors):
                    raise BumpValidationError(
                        f"{name} has {sizes.size} values for {len(self.bump_tenors)} bump tenors"
                    )

        if up.size == down.size and self.has_leg(True) and self.has_leg(False):
            if np.any(up + down == 0.0):
                raise BumpValidationError("Up bump exactly cancels down bump")

        if self.calc_gamma and not (self.has_leg(True) and self.has_leg(False)):
            raise BumpValidationError("Gamma requires both an up and a down bump")

        if self.wants_hedge and isinstance(self.hedge_tenor, str):
            if self.hedge_tenor.lower() == HEDGE_MATCHING and self.method != SensitivityMethod.BY_TENOR:
                raise BumpValidationError(
                    f"Hedge tenor 'matching' is only valid for ByTenor, not {self.method.value}"
                )

    def with_overrides(self, **kwargs) -> "SensitivityConfig":
        """Return a copy with some fields replaced."""
        known = {f.name for f in fields(self)}
        unknown = set(kwargs) - known
        if unknown:
            raise BumpValidationError(f"Unknown sensitivity parameters: {sorted(unknown)}")
        return replace(self, **kwargs)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SensitivityConfig":
        """
        Build a config from a plain mapping, e.g. parsed JSON.

        Enum fields accept their string names ("bp", "ByTenor").
        """
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise BumpValidationError(f"Unknown sensitivity parameters: {sorted(unknown)}")
        kwargs: Dict[str, Any] = dict(data)
        hedge = kwargs.get("hedge_tenor")
        if isinstance(hedge, str) and hedge and hedge.lower() not in (HEDGE_MATURITY, HEDGE_MATCHING):
            try:
                kwargs["hedge_tenor"] = date.fromisoformat(hedge)
            except ValueError:
                pass  # a tenor name
        return cls(**kwargs)


__all__ = [
    "SensitivityConfig",
    "HEDGE_MATURITY",
    "HEDGE_MATCHING",
    "ALL_TENORS",
]

"""
Scenarios package - combined what-if shifts with guaranteed restoration.

Provides:
- Scenario shift values (absolute, relative, specified)
- Shift strategies for pricer terms, curves, credit, defaults, fx, stocks,
  correlations and volatilities
- calc_scenario driver returning base, scenario and delta per pricer
"""

from .values import Scenarios, ScenarioValueShift
from .fields import FieldKind, FieldAccessor, register_field, resolve_field
from .shifts import (
    ScenarioShift,
    ScenarioShiftPricerTerms,
    ScenarioShiftCurves,
    ScenarioShiftCreditCurves,
    ScenarioShiftDefaults,
    ScenarioShiftFxCurves,
    ScenarioShiftStockCurves,
    ScenarioShiftCorrelation,
    ScenarioShiftVolatilities,
)
from .engine import calc_scenario, calc_scenario_values

__all__ = [
    "Scenarios",
    "ScenarioValueShift",
    "FieldKind",
    "FieldAccessor",
    "register_field",
    "resolve_field",
    "ScenarioShift",
    "ScenarioShiftPricerTerms",
    "ScenarioShiftCurves",
    "ScenarioShiftCreditCurves",
    "ScenarioShiftDefaults",
    "ScenarioShiftFxCurves",
    "ScenarioShiftStockCurves",
    "ScenarioShiftCorrelation",
    "ScenarioShiftVolatilities",
    "calc_scenario",
    "calc_scenario_values",
]

"""
SensiLib: Bump-and-Reprice Sensitivity Engine

A modular library for:
- Calibrated market curves (discount, credit, recovery, fx, stock, volatility)
  and factor correlations that can be bumped, refitted and restored
- Delta, gamma and hedge sensitivities by Uniform, Parallel or ByTenor bumps
- Combined scenario shifts with guaranteed restoration of market state

Pricing models are supplied by the caller: any object with the small Pricer
contract (pv, reset, market_objects) can be risked.
"""

__version__ = "0.1.0"

# Core modules
from .conventions import (
    DayCount,
    BumpFlags,
    BumpUnit,
    SensitivityMethod,
    ScenarioShiftType,
    Defaulted,
    year_fraction,
)
from .dates import DateUtils
from .errors import (
    SensitivityError,
    BumpValidationError,
    MissingDependencyError,
    RefitError,
    CurveFitError,
    CyclicDependencyError,
)
from .config import SensitivityConfig
from .log import configure_logging

# Market objects
from .curves import (
    CalibratedCurve,
    DiscountCurve,
    SurvivalCurve,
    RecoveryCurve,
    FxCurve,
    StockCurve,
    VolatilitySurface,
    create_flat_curve,
    create_flat_survival_curve,
    create_stock_curve,
    create_flat_volatility_surface,
)
from .correlation import FactorCorrelation
from .graph import DependencyGraph, curve_dependency_scope

# Evaluation
from .evaluator import Pricer, PricerEvaluator, fast_evaluation

# Risk
from .risk import (
    CurveBumpSession,
    SensitivityEngine,
    rate_sensitivities,
    spread_sensitivities,
    recovery_sensitivities,
    fx_sensitivities,
    volatility_sensitivities,
    correlation_sensitivities,
)

# Scenarios
from .scenarios import (
    Scenarios,
    ScenarioValueShift,
    ScenarioShiftPricerTerms,
    ScenarioShiftCurves,
    ScenarioShiftCreditCurves,
    ScenarioShiftDefaults,
    ScenarioShiftFxCurves,
    ScenarioShiftStockCurves,
    ScenarioShiftCorrelation,
    ScenarioShiftVolatilities,
    calc_scenario,
    calc_scenario_values,
)

__all__ = [
    # Version
    "__version__",
    # Conventions
    "DayCount",
    "BumpFlags",
    "BumpUnit",
    "SensitivityMethod",
    "ScenarioShiftType",
    "Defaulted",
    "year_fraction",
    "DateUtils",
    # Errors
    "SensitivityError",
    "BumpValidationError",
    "MissingDependencyError",
    "RefitError",
    "CurveFitError",
    "CyclicDependencyError",
    # Configuration
    "SensitivityConfig",
    "configure_logging",
    # Market objects
    "CalibratedCurve",
    "DiscountCurve",
    "SurvivalCurve",
    "RecoveryCurve",
    "FxCurve",
    "StockCurve",
    "VolatilitySurface",
    "create_flat_curve",
    "create_flat_survival_curve",
    "create_stock_curve",
    "create_flat_volatility_surface",
    "FactorCorrelation",
    "DependencyGraph",
    "curve_dependency_scope",
    # Evaluation
    "Pricer",
    "PricerEvaluator",
    "fast_evaluation",
    # Risk
    "CurveBumpSession",
    "SensitivityEngine",
    "rate_sensitivities",
    "spread_sensitivities",
    "recovery_sensitivities",
    "fx_sensitivities",
    "volatility_sensitivities",
    "correlation_sensitivities",
    # Scenarios
    "Scenarios",
    "ScenarioValueShift",
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

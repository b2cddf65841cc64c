"""
Risk package - bump-and-reprice sensitivities.

Provides:
- Bump/restore protocol over live curves and correlations
- Delta, gamma and hedge calculators
- Sensitivity orchestration for Uniform, Parallel and ByTenor bumps
"""

from .bumping import (
    BumpResultState,
    BumpResult,
    clone_object_graph,
    bump_curve_quotes,
    bump_quotes,
    CurveBumpSession,
    CorrelationBumpSession,
)
from .calculators import (
    calc_delta,
    calc_gamma,
    calc_hedge,
    hedge_notional,
)
from .hedging import (
    HedgeInstrument,
    resolve_hedge_tenor,
    make_hedge,
)
from .sensitivities import (
    SensitivityEngine,
    HEDGE_SCALE,
    rate_sensitivities,
    spread_sensitivities,
    recovery_sensitivities,
    fx_sensitivities,
    volatility_sensitivities,
    correlation_sensitivities,
)

__all__ = [
    "BumpResultState",
    "BumpResult",
    "clone_object_graph",
    "bump_curve_quotes",
    "bump_quotes",
    "CurveBumpSession",
    "CorrelationBumpSession",
    "calc_delta",
    "calc_gamma",
    "calc_hedge",
    "hedge_notional",
    "HedgeInstrument",
    "resolve_hedge_tenor",
    "make_hedge",
    "SensitivityEngine",
    "HEDGE_SCALE",
    "rate_sensitivities",
    "spread_sensitivities",
    "recovery_sensitivities",
    "fx_sensitivities",
    "volatility_sensitivities",
    "correlation_sensitivities",
]

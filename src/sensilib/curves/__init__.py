"""
Curves package - calibrated market curves that can be bumped and refitted.

Provides:
- CalibratedCurve: Tenor-quoted curve with an optional calibrator
- DiscountCurve, SurvivalCurve, RecoveryCurve, FxCurve, StockCurve, VolatilitySurface
- Calibrators that refit each curve kind from its tenor quotes
"""

from .base import CurveTenor, Calibrator, CalibratedCurve
from .instruments import (
    CurveInstrument,
    CurvePoint,
    RateInstrument,
    Deposit,
    OISSwap,
    CDS,
    RecoveryQuote,
    FxForward,
    SpotAsset,
    StockForward,
    VolatilityQuote,
)
from .discount import DiscountCurve, DiscountBootstrapCalibrator, create_flat_curve
from .survival import (
    RecoveryCurve,
    SurvivalCurve,
    SurvivalFitCalibrator,
    create_flat_survival_curve,
)
from .fx import FxRate, BasisCurve, FxCurve, FxBasisCalibrator
from .stock import StockCurve, StockCalibrator, create_stock_curve
from .volatility import VolatilitySurface, VolatilityCalibrator, create_flat_volatility_surface

__all__ = [
    "CurveTenor",
    "Calibrator",
    "CalibratedCurve",
    "CurveInstrument",
    "CurvePoint",
    "RateInstrument",
    "Deposit",
    "OISSwap",
    "CDS",
    "RecoveryQuote",
    "FxForward",
    "SpotAsset",
    "StockForward",
    "VolatilityQuote",
    "DiscountCurve",
    "DiscountBootstrapCalibrator",
    "create_flat_curve",
    "RecoveryCurve",
    "SurvivalCurve",
    "SurvivalFitCalibrator",
    "create_flat_survival_curve",
    "FxRate",
    "BasisCurve",
    "FxCurve",
    "FxBasisCalibrator",
    "StockCurve",
    "StockCalibrator",
    "create_stock_curve",
    "VolatilitySurface",
    "VolatilityCalibrator",
    "create_flat_volatility_surface",
]

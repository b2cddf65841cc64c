"""
Unit tests for scenario shifts.
"""

from dataclasses import dataclass
from datetime import date
import numpy as np
import pytest

from sensilib.conventions import Defaulted, ScenarioShiftType, year_fraction
from sensilib.correlation import FactorCorrelation
from sensilib.curves import (
    BasisCurve,
    CurvePoint,
    DiscountBootstrapCalibrator,
    DiscountCurve,
    FxBasisCalibrator,
    FxCurve,
    FxForward,
    FxRate,
    SurvivalCurve,
    create_flat_curve,
    create_flat_survival_curve,
    create_flat_volatility_surface,
    create_stock_curve,
)
from sensilib.dates import DateUtils
from sensilib.errors import BumpValidationError
from sensilib.evaluator import Pricer, PricerEvaluator
from sensilib.scenarios import (
    FieldKind,
    Scenarios,
    ScenarioShiftCorrelation,
    ScenarioShiftCreditCurves,
    ScenarioShiftCurves,
    ScenarioShiftDefaults,
    ScenarioShiftFxCurves,
    ScenarioShiftPricerTerms,
    ScenarioShiftStockCurves,
    ScenarioShiftVolatilities,
    ScenarioValueShift,
    calc_scenario,
    calc_scenario_values,
    register_field,
    resolve_field,
)


AS_OF = date(2024, 1, 15)
ONE_YEAR = DateUtils.add_tenor(AS_OF, "1Y")
FIVE_YEARS = DateUtils.add_tenor(AS_OF, "5Y")


@dataclass
class Note:
    """Fixed coupon note."""
    maturity: date
    coupon: float = 0.05
    notional: float = 1000.0
    description: str = "Note"


class NotePricer(Pricer):
    """Coupon times notional."""

    def __init__(self, product, name=None):
        super().__init__(AS_OF, product=product, name=name)

    def pv(self):
        return self.product.notional * self.product.coupon

    @property
    def duration(self):
        return 100.0 * year_fraction(self.as_of, self.product.maturity)


class RatePricer(Pricer):
    """pv = -1000 * z(5Y)."""

    def __init__(self, curve, correlation=None, name="Rate"):
        super().__init__(AS_OF, name=name)
        self.curve = curve
        self.correlation = correlation

    def pv(self):
        value = -1000.0 * self.curve.zero_rate(FIVE_YEARS)
        if self.correlation is not None:
            value += 1000.0 * self.correlation.correlation("A", "B")
        return value


class CreditPricer(Pricer):
    """Survival-contingent payment plus recovery."""

    def __init__(self, credit, settle=None, name="Credit"):
        super().__init__(AS_OF, settle=settle, name=name)
        self.credit = credit

    def pv(self):
        return 1000.0 * self.credit.survival_probability(FIVE_YEARS)

    @property
    def recovery(self):
        return 1000.0 * self.credit.recovery_curve.recovery_rate()


class FxPricer(Pricer):
    def __init__(self, fx):
        super().__init__(AS_OF, name="Fx")
        self.fx = fx

    def pv(self):
        return 1000.0 * self.fx.fx_rate(ONE_YEAR)


class StockPricer(Pricer):
    def __init__(self, stock):
        super().__init__(AS_OF, name="Stock")
        self.stock = stock

    def pv(self):
        return self.stock.forward(ONE_YEAR)


class VolPricer(Pricer):
    def __init__(self, surface):
        super().__init__(AS_OF, name="Vol")
        self.surface = surface

    def pv(self):
        return 1000.0 * self.surface.vol(1.0)


class CorrelationPricer(Pricer):
    def __init__(self, correlation):
        super().__init__(AS_OF, name="Basket")
        self.correlation = correlation

    def pv(self):
        return 1000.0 * self.correlation.correlation("A", "B")


def make_curve(name="USD"):
    curve = DiscountCurve(AS_OF, name, calibrator=DiscountBootstrapCalibrator())
    for tenor, quote in [("1Y", 0.01), ("5Y", 0.02), ("10Y", 0.03)]:
        curve.add_tenor(CurvePoint(tenor=tenor, quote=quote))
    curve.fit()
    return curve


@pytest.fixture
def curve():
    return make_curve()


@pytest.fixture
def credit():
    discount = create_flat_curve(AS_OF, 0.03, name="USD.Flat")
    return create_flat_survival_curve(AS_OF, 0.01, discount, recovery=0.4, name="ACME")


@pytest.fixture
def correlation():
    return FactorCorrelation("Basket", ["A", "B", "C"], 0.5)


def deltas(frame):
    return dict(zip(frame["Pricer"], frame["Delta"]))


class TestScenarioValues:
    """Tests for shift values."""

    def test_bump(self):
        """Test each shift type."""
        assert Scenarios.bump(2.0, ScenarioShiftType.ABSOLUTE, 0.5) == 2.5
        assert Scenarios.bump(2.0, ScenarioShiftType.RELATIVE, 0.5) == 3.0
        assert Scenarios.bump(2.0, ScenarioShiftType.SPECIFIED, 0.5) == 0.5
        assert Scenarios.bump(2.0, ScenarioShiftType.NONE, 0.5) == 2.0

    def test_shift_type_parsing(self):
        """Test shift types parse from strings."""
        assert Scenarios.shift_type("relative") == ScenarioShiftType.RELATIVE
        assert Scenarios.shift_type(None) == ScenarioShiftType.NONE

        with pytest.raises(ValueError):
            Scenarios.shift_type("Proportional")

    def test_value_shift(self):
        """Test a value shift applies to a number."""
        assert ScenarioValueShift(ScenarioShiftType.RELATIVE, 0.1).apply(50.0) == pytest.approx(55.0)


class TestCalcScenario:
    """Tests for the scenario driver."""

    def test_result_layout(self, curve):
        """Test base, scenario and delta per pricer."""
        result = calc_scenario([RatePricer(curve)], [ScenarioShiftCurves([curve], 10.0)])

        assert list(result.columns) == ["Pricer", "Measure", "Base", "Scenario", "Delta"]
        row = result.iloc[0]
        assert row["Measure"] == "pv"
        assert row["Base"] == pytest.approx(-20.0)
        assert row["Scenario"] == pytest.approx(-21.0)
        assert row["Delta"] == pytest.approx(-1.0)

    def test_several_measures(self):
        """Test one row per pricer and measure."""
        pricer = NotePricer(Note(FIVE_YEARS))

        result = calc_scenario([pricer], [ScenarioShiftPricerTerms("maturity", "2Y")],
                               measure=["pv", "duration"])

        assert list(result["Measure"]) == ["pv", "duration"]
        assert result.iloc[0]["Delta"] == 0.0
        assert result.iloc[1]["Delta"] < 0.0

    def test_values_array(self, curve):
        """Test scenario deltas as an array."""
        values = calc_scenario_values([RatePricer(curve)], [ScenarioShiftCurves([curve], 10.0)])

        assert isinstance(values, np.ndarray)
        assert values[0] == pytest.approx(-1.0)

    def test_combined_shifts(self, curve, correlation):
        """Test several shifts apply together and are all undone."""
        saved_curve = curve.clone()
        saved_corr = correlation.clone()
        pricer = RatePricer(curve, correlation)

        result = calc_scenario([pricer], [
            ScenarioShiftCurves([curve], 10.0),
            ScenarioShiftCorrelation([correlation], 0.05),
        ])

        assert result.iloc[0]["Delta"] == pytest.approx(-1.0 + 50.0)
        assert curve.same_state(saved_curve)
        assert correlation.same_state(saved_corr)

    def test_validation_before_shifting(self, curve):
        """Test malformed shifts are rejected before anything moves."""
        saved = curve.clone()

        with pytest.raises(BumpValidationError):
            calc_scenario([RatePricer(curve)], [
                ScenarioShiftCurves([curve], 10.0),
                ScenarioShiftCurves([curve], 10.0, shift_type="Specified"),
            ])

        assert curve.same_state(saved)


class TestCurveShifts:
    """Tests for curve quote shifts."""

    def test_relative(self, curve):
        """Test relative curve shifts."""
        result = calc_scenario([RatePricer(curve)], [ScenarioShiftCurves([curve], 0.1, "Relative")])

        assert result.iloc[0]["Delta"] == pytest.approx(-2.0)

    def test_negative_shift(self, curve):
        """Test shifts are signed."""
        result = calc_scenario([RatePricer(curve)], [ScenarioShiftCurves([curve], -10.0)])

        assert result.iloc[0]["Delta"] == pytest.approx(1.0)

    def test_missing_shifts(self, curve):
        """Test curves without shifts are rejected."""
        with pytest.raises(BumpValidationError):
            ScenarioShiftCurves([curve], None).validate()

    def test_shift_count(self, curve):
        """Test the shift count must match the curve count."""
        with pytest.raises(BumpValidationError):
            ScenarioShiftCurves([curve], [1.0, 2.0]).validate()

    def test_dependents_refitted(self, credit):
        """Test shifting a discount curve refits the credit curves fitted off it."""
        discount = credit.calibrator.discount_curve
        saved = credit.clone()

        result = calc_scenario([CreditPricer(credit)], [ScenarioShiftCurves([discount], 100.0)])

        assert result.iloc[0]["Delta"] != 0.0
        assert credit.same_state(saved)


class TestCreditShifts:
    """Tests for credit spread and recovery shifts."""

    def test_spread_shift(self, credit):
        """Test wider spreads lower survival."""
        saved = credit.clone()

        result = calc_scenario([CreditPricer(credit)], [ScenarioShiftCreditCurves([credit], 10.0)])

        assert result.iloc[0]["Delta"] < 0.0
        assert credit.same_state(saved)
        assert credit.find_tenor("5Y").quote == 0.01

    @pytest.mark.parametrize("shift_type,size,expected", [
        ("Absolute", 0.1, 100.0),
        ("Relative", 0.5, 200.0),
        ("Specified", 0.25, -150.0),
    ])
    def test_recovery_shift(self, credit, shift_type, size, expected):
        """Test recovery shifts by type."""
        shift = ScenarioShiftCreditCurves([credit], recovery_shifts=size, recovery_shift_type=shift_type)

        result = calc_scenario([CreditPricer(credit)], [shift], measure="recovery")

        assert result.iloc[0]["Delta"] == pytest.approx(expected)
        assert credit.recovery_curve.spread == 0.0
        assert shift.recovery_modified

    def test_specified_spread_rejected(self, credit):
        """Test specified spread shifts are rejected."""
        with pytest.raises(BumpValidationError):
            ScenarioShiftCreditCurves([credit], 0.02, "Specified").validate()

    def test_defaulted_spreads_unchanged(self, credit):
        """Test spreads of a defaulted curve do not move."""
        credit.set_defaulted(AS_OF)

        result = calc_scenario([CreditPricer(credit)], [ScenarioShiftCreditCurves([credit], 10.0)])

        assert result.iloc[0]["Delta"] == 0.0

    def test_uncalibrated_curve(self, credit):
        """Test curves without a calibrator are rejected and nothing stays shifted."""
        raw = SurvivalCurve(AS_OF, "Raw")
        raw.add_tenor(CurvePoint(tenor="5Y", quote=0.02))
        raw.fit()
        saved = credit.clone()

        with pytest.raises(BumpValidationError):
            calc_scenario([CreditPricer(credit)], [ScenarioShiftCreditCurves([credit, raw], 10.0)])

        assert credit.same_state(saved)


class TestDefaultShifts:
    """Tests for default scenarios."""

    def test_default(self, credit):
        """Test a defaulted name has no survival value."""
        pricer = CreditPricer(credit)

        result = calc_scenario([pricer], [ScenarioShiftDefaults([credit])])

        row = result.iloc[0]
        assert row["Scenario"] == 0.0
        assert row["Delta"] == pytest.approx(-row["Base"])
        assert credit.defaulted == Defaulted.NOT_DEFAULTED
        assert credit.default_date is None

    def test_last_settle(self, credit):
        """Test the default date is the latest settle date."""
        evaluators = [
            PricerEvaluator(CreditPricer(credit, settle=date(2024, 1, 17), name="A")),
            PricerEvaluator(CreditPricer(credit, settle=date(2024, 2, 1), name="B")),
        ]

        assert ScenarioShiftDefaults.last_settle(evaluators) == date(2024, 2, 1)
        assert ScenarioShiftDefaults.last_settle([]) == date(1990, 1, 1)

    def test_default_with_recovery(self, credit):
        """Test recoveries can be shifted with the default."""
        shift = ScenarioShiftDefaults([credit], recovery_shifts=0.1)

        result = calc_scenario([CreditPricer(credit)], [shift], measure="recovery")

        assert result.iloc[0]["Delta"] == pytest.approx(100.0)
        assert shift.default_changed

    def test_relative_recovery_rejected(self, credit):
        """Test relative recovery shifts are rejected with defaults."""
        with pytest.raises(BumpValidationError):
            ScenarioShiftDefaults([credit], 0.1, "Relative").validate()


class TestFxShifts:
    """Tests for fx spot and basis shifts."""

    @pytest.fixture
    def supplied(self):
        curve = FxCurve(AS_OF, "EURUSD", FxRate("EUR", "USD", 1.10))
        curve.add_tenor(FxForward(tenor="0D", quote=1.10), name="Spot")
        curve.add_tenor(FxForward(tenor="1Y", quote=1.12))
        curve.fit()
        return curve

    @pytest.fixture
    def basis_fit(self):
        usd = create_flat_curve(AS_OF, 0.05, name="USD")
        eur = create_flat_curve(AS_OF, 0.03, name="EUR")
        basis = BasisCurve.flat(AS_OF, 0.0, name="EURUSD.Basis")
        curve = FxCurve(
            AS_OF, "EURUSD", FxRate("EUR", "USD", 1.10),
            calibrator=FxBasisCalibrator(usd, eur, basis),
            domestic_curve=usd, foreign_curve=eur, basis_curve=basis,
        )
        curve.add_tenor(FxForward(tenor="0D", quote=1.10), name="Spot")
        curve.fit()
        return curve

    def test_supplied_spot_shift(self, supplied):
        """Test supplied forwards scale with the spot."""
        saved = supplied.clone()

        result = calc_scenario([FxPricer(supplied)], [ScenarioShiftFxCurves([supplied], 0.1, "Relative")])

        assert result.iloc[0]["Delta"] == pytest.approx(112.0)
        assert supplied.same_state(saved)
        assert supplied.fx_rate() == pytest.approx(1.10)

    def test_basis_fit_spot_shift(self, basis_fit):
        """Test basis-fit forwards follow the shifted spot."""
        t = basis_fit.time(ONE_YEAR)

        result = calc_scenario([FxPricer(basis_fit)], [ScenarioShiftFxCurves([basis_fit], 0.05)])

        assert result.iloc[0]["Delta"] == pytest.approx(1000.0 * 0.05 * np.exp(0.02 * t))
        assert basis_fit.spot.rate == pytest.approx(1.10)

    def test_basis_shift(self, basis_fit):
        """Test basis shifts move the forwards."""
        t = basis_fit.time(ONE_YEAR)
        base = 1000.0 * 1.10 * np.exp(0.02 * t)
        shift = ScenarioShiftFxCurves([basis_fit], basis_shifts=10.0, basis_shift_type="Absolute")

        result = calc_scenario([FxPricer(basis_fit)], [shift])

        assert result.iloc[0]["Delta"] == pytest.approx(base * (np.exp(0.001 * t) - 1.0))
        assert basis_fit.basis_curve.find_tenor("1Y").quote == 0.0

    def test_negative_spot(self, supplied):
        """Test a shift to a non-positive spot fails and restores the curve."""
        saved = supplied.clone()

        with pytest.raises(BumpValidationError):
            calc_scenario([FxPricer(supplied)], [ScenarioShiftFxCurves([supplied], -2.0)])

        assert supplied.same_state(saved)
        assert supplied.fx_rate() == pytest.approx(1.10)


class TestStockShifts:
    """Tests for stock spot and dividend shifts."""

    @pytest.fixture
    def stock(self):
        return create_stock_curve(AS_OF, 100.0, create_flat_curve(AS_OF, 0.05), dividend_yield=0.02)

    def test_spot_shift(self, stock):
        """Test forwards move with the spot."""
        t = stock.time(ONE_YEAR)
        saved = stock.clone()

        result = calc_scenario([StockPricer(stock)], [ScenarioShiftStockCurves([stock], 10.0)])

        assert result.iloc[0]["Delta"] == pytest.approx(10.0 * np.exp(0.03 * t))
        assert stock.same_state(saved)
        assert stock.spot == 100.0

    def test_dividend_shift(self, stock):
        """Test dividend yield shifts lower the forward."""
        t = stock.time(ONE_YEAR)
        shift = ScenarioShiftStockCurves([stock], dividend_shifts=0.01, dividend_shift_type="Absolute")

        result = calc_scenario([StockPricer(stock)], [shift])

        expected = 100.0 * (np.exp(0.02 * t) - np.exp(0.03 * t))
        assert result.iloc[0]["Delta"] == pytest.approx(expected)
        assert stock.spread == 0.0

    def test_relative_dividend_rejected(self, stock):
        """Test only absolute dividend shifts are accepted."""
        with pytest.raises(BumpValidationError):
            ScenarioShiftStockCurves([stock], dividend_shifts=0.1, dividend_shift_type="Relative").validate()


class TestCorrelationAndVolatilityShifts:
    """Tests for correlation and volatility shifts."""

    def test_correlation_shift(self, correlation):
        """Test absolute and relative correlation shifts."""
        pricer = CorrelationPricer(correlation)

        absolute = calc_scenario([pricer], [ScenarioShiftCorrelation([correlation], 0.05)])
        relative = calc_scenario([pricer], [ScenarioShiftCorrelation([correlation], -0.2, "Relative")])

        assert absolute.iloc[0]["Delta"] == pytest.approx(50.0)
        assert relative.iloc[0]["Delta"] == pytest.approx(1000.0 * (0.25 / 1.2 - 0.25))
        assert not correlation.modified

    def test_specified_correlation_rejected(self, correlation):
        """Test specified correlation shifts are rejected."""
        with pytest.raises(BumpValidationError):
            ScenarioShiftCorrelation([correlation], 0.3, "Specified").validate()

    @pytest.mark.parametrize("shift_type,size,interpolated,expected", [
        ("Absolute", 0.01, False, 10.0),
        ("Relative", 0.1, False, 20.0),
        ("Absolute", 0.01, True, 10.0),
    ])
    def test_volatility_shift(self, shift_type, size, interpolated, expected):
        """Test quote and interpolated volatility shifts."""
        surface = create_flat_volatility_surface(AS_OF, 0.2)
        saved = surface.clone()
        shift = ScenarioShiftVolatilities([surface], size, shift_type, bump_interpolated=interpolated)

        result = calc_scenario([VolPricer(surface)], [shift])

        assert result.iloc[0]["Delta"] == pytest.approx(expected)
        assert surface.same_state(saved)
        assert not surface.is_interpolated_bumped


class TestPricerTerms:
    """Tests for pricer and product term shifts."""

    def test_value_shift(self):
        """Test a relative shift of a product field."""
        pricer = NotePricer(Note(FIVE_YEARS))
        shift = ScenarioShiftPricerTerms("coupon", ScenarioValueShift(ScenarioShiftType.RELATIVE, 0.1))

        result = calc_scenario([pricer], [shift])

        assert result.iloc[0]["Delta"] == pytest.approx(5.0)
        assert pricer.product.coupon == 0.05

    def test_plain_value(self):
        """Test a plain number replaces a numeric field."""
        pricer = NotePricer(Note(FIVE_YEARS))

        result = calc_scenario([pricer], [ScenarioShiftPricerTerms("coupon", 0.06)])

        assert result.iloc[0]["Delta"] == pytest.approx(10.0)

    def test_names_expanded(self):
        """Test ';' separated names share one value."""
        pricer = NotePricer(Note(FIVE_YEARS))
        shift = ScenarioShiftPricerTerms("coupon; notional", ScenarioValueShift(ScenarioShiftType.RELATIVE, 0.1))

        result = calc_scenario([pricer], [shift])

        assert shift.names == ["coupon", "notional"]
        assert result.iloc[0]["Delta"] == pytest.approx(1100.0 * 0.055 - 50.0)
        assert pricer.product.notional == 1000.0

    def test_date_tenor(self):
        """Test a tenor moves a date field relative to the pricing date."""
        pricer = NotePricer(Note(FIVE_YEARS))
        expected = 100.0 * (year_fraction(AS_OF, DateUtils.add_tenor(AS_OF, "2Y"))
                            - year_fraction(AS_OF, FIVE_YEARS))

        result = calc_scenario([pricer], [ScenarioShiftPricerTerms("maturity", "2Y")], measure="duration")

        assert result.iloc[0]["Delta"] == pytest.approx(expected)
        assert pricer.product.maturity == FIVE_YEARS

    def test_date_days(self):
        """Test a number moves a date field by days."""
        pricer = NotePricer(Note(FIVE_YEARS))
        expected = 100.0 * (year_fraction(AS_OF, DateUtils.add_days(AS_OF, 365))
                            - year_fraction(AS_OF, FIVE_YEARS))

        result = calc_scenario([pricer], [ScenarioShiftPricerTerms("maturity", 365)], measure="duration")

        assert result.iloc[0]["Delta"] == pytest.approx(expected)

    def test_discount_curve_level(self, curve):
        """Test a number sets a curve field to a flat curve in place."""
        pricer = RatePricer(curve)
        saved = curve.clone()

        result = calc_scenario([pricer], [ScenarioShiftPricerTerms("curve", 0.04)])

        assert result.iloc[0]["Delta"] == pytest.approx(-20.0)
        assert pricer.curve is curve
        assert curve.same_state(saved)

    def test_volatility_level(self):
        """Test a number replaces a surface field with a flat surface."""
        surface = create_flat_volatility_surface(AS_OF, 0.2)
        pricer = VolPricer(surface)

        result = calc_scenario([pricer], [ScenarioShiftPricerTerms("surface", 0.3)])

        assert result.iloc[0]["Delta"] == pytest.approx(100.0)
        assert pricer.surface is surface

    def test_pricers_without_field_skipped(self, curve):
        """Test pricers lacking the field are left alone."""
        pricers = [NotePricer(Note(FIVE_YEARS), name="Note"), RatePricer(curve)]

        result = calc_scenario(pricers, [ScenarioShiftPricerTerms("coupon", 0.06)])

        values = deltas(result)
        assert values["Note"] == pytest.approx(10.0)
        assert values["Rate"] == 0.0

    def test_type_mismatch(self):
        """Test a value of the wrong kind is rejected and the field restored."""
        pricer = NotePricer(Note(FIVE_YEARS))

        with pytest.raises(BumpValidationError):
            calc_scenario([pricer], [ScenarioShiftPricerTerms("maturity", {"days": 365})])

        assert pricer.product.maturity == FIVE_YEARS

    def test_count_mismatch(self):
        """Test names and values must pair up."""
        with pytest.raises(BumpValidationError):
            ScenarioShiftPricerTerms(["coupon", "notional"], [0.1, 0.2, 0.3]).validate()

    def test_registered_field(self):
        """Test registered fields resolve with their declared kind."""
        register_field(Note, "coupon", FieldKind.VALUE)
        pricer = NotePricer(Note(FIVE_YEARS))

        accessor = resolve_field(pricer, "coupon")

        assert accessor.kind == FieldKind.VALUE
        assert accessor.get(pricer) == 0.05
        with pytest.raises(BumpValidationError):
            resolve_field(pricer, "strike")

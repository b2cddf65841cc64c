"""
Unit tests for pricer evaluators.
"""

from dataclasses import dataclass
from datetime import date
import pytest

from sensilib.correlation import FactorCorrelation
from sensilib.curves import create_flat_curve, create_flat_survival_curve
from sensilib.errors import MissingDependencyError
from sensilib.evaluator import Pricer, PricerEvaluator, as_evaluators, fast_evaluation


AS_OF = date(2024, 1, 15)


@dataclass
class Note:
    """Minimal product."""
    maturity: date
    description: str = "Note"


class CountingPricer(Pricer):
    """Pricer counting its pv calls and resets."""

    def __init__(self, as_of, curve, credit=None, correlation=None, product=None):
        super().__init__(as_of, product=product)
        self.curve = curve
        self.credit = credit
        self.correlation = correlation
        self.calls = 0
        self.resets = []

    def pv(self):
        self.calls += 1
        value = 100.0 * self.curve.discount_factor(5.0)
        if self.approximate:
            value = round(value, 2)
        return value

    @property
    def duration(self):
        return 4.5

    def reset(self):
        self.resets.append("reset")

    def reset_recovery(self):
        self.resets.append("recovery")

    def reset_correlation(self):
        self.resets.append("correlation")


@pytest.fixture
def discount():
    return create_flat_curve(AS_OF, 0.05, name="USD")


@pytest.fixture
def pricer(discount):
    return CountingPricer(AS_OF, discount, product=Note(date(2029, 1, 15)))


class TestPricerEvaluator:
    """Tests for measure evaluation and caching."""

    def test_value_is_cached(self, pricer):
        """Test the measure is computed once until invalidated."""
        evaluator = PricerEvaluator(pricer)

        first = evaluator.evaluate()
        second = evaluator.evaluate()

        assert first == second
        assert pricer.calls == 1

        evaluator.mark_dirty()
        evaluator.evaluate()
        assert pricer.calls == 2

    def test_reset_invalidates(self, pricer):
        """Test reset clears the pricer and recomputes."""
        evaluator = PricerEvaluator(pricer)
        evaluator.evaluate()

        evaluator.reset()
        evaluator.evaluate()

        assert pricer.resets == ["reset"]
        assert pricer.calls == 2

    def test_reset_flags(self, pricer):
        """Test recovery and correlation resets are forwarded."""
        evaluator = PricerEvaluator(pricer)

        evaluator.reset(recovery_modified=True, correlation_modified=True)

        assert pricer.resets == ["reset", "recovery", "correlation"]

    def test_default_change_resets_recovery(self, pricer):
        """Test a default change also resets recovery state."""
        PricerEvaluator(pricer).reset(default_changed=True)

        assert "recovery" in pricer.resets

    def test_property_measure(self, pricer):
        """Test measures can be properties."""
        evaluator = PricerEvaluator(pricer, "duration")

        assert evaluator.evaluate() == 4.5
        assert evaluator.measure_name == "duration"

    def test_callable_measure(self, pricer):
        """Test measures can be functions of the pricer."""
        def doubled(p):
            return 2.0 * p.pv()

        evaluator = PricerEvaluator(pricer, doubled)

        assert evaluator.evaluate() == pytest.approx(2.0 * pricer.pv())
        assert evaluator.measure_name == "doubled"

    def test_substitute(self, pricer, discount):
        """Test evaluating a substitute pricer does not touch the cache."""
        evaluator = PricerEvaluator(pricer)
        base = evaluator.evaluate()
        other = CountingPricer(AS_OF, create_flat_curve(AS_OF, 0.06))

        assert evaluator.evaluate(substitute=other) < base
        assert evaluator.evaluate() == base

    def test_names(self, pricer):
        """Test evaluator names come from the product description."""
        evaluator = PricerEvaluator(pricer)

        assert evaluator.name == "Note"
        assert PricerEvaluator(pricer, name="Custom").name == "Custom"

    def test_product_maturity(self, pricer):
        """Test the product maturity is exposed."""
        evaluator = PricerEvaluator(pricer)

        assert evaluator.product_maturity == date(2029, 1, 15)
        assert evaluator.as_of == AS_OF
        assert evaluator.settle == AS_OF


class TestMissingMeasures:
    """Tests for missing measures."""

    def test_missing_measure_raises(self, pricer):
        """Test a missing measure raises with the pricer name."""
        with pytest.raises(MissingDependencyError, match=r"\[Note\]"):
            PricerEvaluator(pricer, "vega")

    def test_allow_missing(self, pricer, discount):
        """Test allow_missing leaves out pricers lacking the measure."""
        class Plain:
            name = "Plain"
            vega = 1.0

        evaluators = as_evaluators([pricer, Plain()], "vega", allow_missing=True)

        assert len(evaluators) == 1
        assert evaluators[0].name == "Plain"

    def test_evaluators_pass_through(self, pricer):
        """Test existing evaluators are kept as they are."""
        evaluator = PricerEvaluator(pricer)

        assert as_evaluators([evaluator])[0] is evaluator


class TestDependencies:
    """Tests for market object discovery."""

    def test_direct_and_indirect_curves(self, discount):
        """Test curves reached through a calibrator are dependencies."""
        credit = create_flat_survival_curve(AS_OF, 0.01, discount)
        correlation = FactorCorrelation("Basket", ["A", "B"], 0.5)
        pricer = CountingPricer(AS_OF, create_flat_curve(AS_OF, 0.03, name="EUR"),
                                credit=credit, correlation=correlation)
        evaluator = PricerEvaluator(pricer)

        assert evaluator.depends_on(discount)
        assert any(c is discount for c in evaluator.discount_curves)
        assert evaluator.survival_curves == [credit]
        assert evaluator.recovery_curves == [credit.recovery_curve]
        assert evaluator.correlations == [correlation]
        assert len(evaluator.discount_curves) == 2

    def test_unrelated_curve(self, pricer):
        """Test unrelated curves are not dependencies."""
        other = create_flat_curve(AS_OF, 0.03, name="EUR")

        assert not PricerEvaluator(pricer).depends_on(other)


class TestFastEvaluation:
    """Tests for the approximate evaluation switch."""

    def test_flag_set_and_restored(self, pricer):
        """Test the flag is switched on inside the block only."""
        evaluators = [PricerEvaluator(pricer)]

        with fast_evaluation(evaluators):
            assert pricer.approximate

        assert not pricer.approximate

    def test_flag_restored_on_error(self, pricer):
        """Test the flag is restored when the block raises."""
        evaluators = [PricerEvaluator(pricer)]

        with pytest.raises(ValueError):
            with fast_evaluation(evaluators):
                raise ValueError("pricing failed")

        assert not pricer.approximate

    def test_disabled(self, pricer):
        """Test nothing changes when fast mode is off."""
        with fast_evaluation([PricerEvaluator(pricer)], enabled=False):
            assert not pricer.approximate

    def test_previous_value_kept(self, pricer):
        """Test a pricer already in approximate mode stays there."""
        pricer.approximate = True

        with fast_evaluation([PricerEvaluator(pricer)]):
            pass

        assert pricer.approximate

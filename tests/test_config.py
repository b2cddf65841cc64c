"""
Unit tests for sensitivity configuration.
"""

from datetime import date
import numpy as np
import pytest

from sensilib.config import SensitivityConfig
from sensilib.conventions import BumpUnit, SensitivityMethod
from sensilib.errors import BumpValidationError


class TestSensitivityConfig:
    """Tests for parameter parsing and defaults."""

    def test_defaults(self):
        """Test default configuration is a 1bp parallel up bump."""
        config = SensitivityConfig()

        assert config.up_bump == 1.0
        assert config.down_bump == 0.0
        assert config.bump_unit == BumpUnit.BASIS_POINTS
        assert config.method == SensitivityMethod.PARALLEL
        assert config.all_tenors
        config.validate()

    def test_string_parsing(self):
        """Test enum fields and tenor lists accept strings."""
        config = SensitivityConfig(bump_unit="relative", method="ByTenor", bump_tenors="1Y, 5Y,10Y")

        assert config.bump_unit == BumpUnit.RELATIVE
        assert config.relative
        assert config.method == SensitivityMethod.BY_TENOR
        assert config.bump_tenors == ["1Y", "5Y", "10Y"]
        assert not config.all_tenors

    def test_all_tenors_keyword(self):
        """Test 'all' selects every tenor."""
        assert SensitivityConfig(bump_tenors=["All"]).all_tenors

    def test_bump_sizes_broadcast(self):
        """Test scalar bumps expand to one size per tenor."""
        config = SensitivityConfig(up_bump=2.0, down_bump=1.0)

        np.testing.assert_allclose(config.bump_sizes(True, 3), [2.0, 2.0, 2.0])
        np.testing.assert_allclose(config.bump_sizes(False, 1), [1.0])

    def test_has_leg(self):
        """Test a zero bump disables its leg."""
        config = SensitivityConfig(up_bump=0.0, down_bump=1.0)

        assert not config.has_leg(True)
        assert config.has_leg(False)

    def test_wants_hedge(self):
        """Test hedges need both the flag and a tenor."""
        assert not SensitivityConfig(calc_hedge=True).wants_hedge
        assert not SensitivityConfig(hedge_tenor="5Y").wants_hedge
        assert SensitivityConfig(calc_hedge=True, hedge_tenor="5Y").wants_hedge


class TestValidation:
    """Tests for parameter validation."""

    def test_negative_bump(self):
        """Test negative bump sizes are rejected."""
        with pytest.raises(BumpValidationError):
            SensitivityConfig(up_bump=-1.0).validate()

    def test_no_bump(self):
        """Test at least one leg must bump."""
        with pytest.raises(BumpValidationError):
            SensitivityConfig(up_bump=0.0, down_bump=0.0).validate()

    def test_per_tenor_bumps_need_by_tenor(self):
        """Test bump arrays require the ByTenor method."""
        with pytest.raises(BumpValidationError):
            SensitivityConfig(up_bump=[1.0, 2.0], bump_tenors=["1Y", "5Y"]).validate()

    def test_per_tenor_bumps_need_tenors(self):
        """Test bump arrays require named tenors."""
        with pytest.raises(BumpValidationError):
            SensitivityConfig(up_bump=[1.0, 2.0], method="ByTenor").validate()

    def test_per_tenor_bumps_count(self):
        """Test bump arrays must match the tenor count."""
        with pytest.raises(BumpValidationError):
            SensitivityConfig(up_bump=[1.0, 2.0], method="ByTenor",
                              bump_tenors=["1Y", "5Y", "10Y"]).validate()

        SensitivityConfig(up_bump=[1.0, 2.0, 3.0], method="ByTenor",
                          bump_tenors=["1Y", "5Y", "10Y"]).validate()

    def test_gamma_needs_both_legs(self):
        """Test gamma requires up and down bumps."""
        with pytest.raises(BumpValidationError):
            SensitivityConfig(calc_gamma=True).validate()

        SensitivityConfig(calc_gamma=True, down_bump=1.0).validate()

    @pytest.mark.parametrize("method", ["Uniform", "Parallel"])
    def test_matching_hedge_rejected(self, method):
        """Test the matching hedge is only valid by tenor."""
        config = SensitivityConfig(method=method, calc_hedge=True, hedge_tenor="matching")

        with pytest.raises(BumpValidationError):
            config.validate()

    def test_matching_hedge_by_tenor(self):
        """Test the matching hedge is accepted by tenor."""
        SensitivityConfig(method="ByTenor", calc_hedge=True, hedge_tenor="matching").validate()


class TestOverrides:
    """Tests for with_overrides and from_dict."""

    def test_with_overrides(self):
        """Test overrides return a modified copy."""
        base = SensitivityConfig()
        config = base.with_overrides(up_bump=5.0, calc_gamma=True)

        assert config.up_bump == 5.0
        assert config.calc_gamma
        assert base.up_bump == 1.0

    def test_unknown_override(self):
        """Test unknown parameters raise."""
        with pytest.raises(BumpValidationError):
            SensitivityConfig().with_overrides(bump_size=5.0)

    def test_from_dict(self):
        """Test building a config from a plain mapping."""
        config = SensitivityConfig.from_dict({
            "up_bump": 10.0,
            "bump_unit": "bp",
            "method": "Uniform",
            "calc_hedge": True,
            "hedge_tenor": "2030-01-15",
        })

        assert config.up_bump == 10.0
        assert config.method == SensitivityMethod.UNIFORM
        assert config.hedge_tenor == date(2030, 1, 15)

    def test_from_dict_keeps_tenor_names(self):
        """Test hedge tenor names are not parsed as dates."""
        assert SensitivityConfig.from_dict({"hedge_tenor": "5Y"}).hedge_tenor == "5Y"
        assert SensitivityConfig.from_dict({"hedge_tenor": "maturity"}).hedge_tenor == "maturity"

    def test_from_dict_unknown_key(self):
        """Test unknown keys raise."""
        with pytest.raises(BumpValidationError):
            SensitivityConfig.from_dict({"bump": 1.0})

"""
Tests for calibrated smile sections.
"""

import pytest

from zabr_smile.errors import InvalidDomainError, UnsupportedOperationError
from zabr_smile.models import EvaluationMode, ZabrSmileSection, implied_volatility


class TestZabrSmileSection:
    """Tests for ZabrSmileSection."""

    @pytest.fixture
    def section(self, true_params):
        return ZabrSmileSection(true_params, expiry=5.0, forward=0.04)

    def test_volatility_matches_model(self, section, true_params):
        assert section.volatility(0.05) == pytest.approx(
            implied_volatility(true_params, 0.04, 0.05)
        )

    def test_vectorised_volatility(self, section):
        vols = section.volatility([0.03, 0.04, 0.05])
        assert vols.shape == (3,)

    def test_variance(self, section):
        vol = section.volatility(0.05)
        assert section.variance(0.05) == pytest.approx(vol * vol * 5.0)

    def test_atm_level(self, section):
        assert section.atm_level() == 0.04

    def test_normal_mode(self, true_params):
        section = ZabrSmileSection(
            true_params, 5.0, 0.04, EvaluationMode.SHORT_MATURITY_NORMAL
        )
        assert section.volatility(0.04) == pytest.approx(0.045 * 0.04 ** 0.5)

    def test_non_positive_strike(self, section):
        with pytest.raises(InvalidDomainError):
            section.volatility(-0.01)

    @pytest.mark.parametrize("method", ["primitive", "derivative", "second_derivative"])
    def test_unsupported_operations(self, section, method):
        with pytest.raises(UnsupportedOperationError):
            getattr(section, method)(0.04)

    def test_immutable(self, section):
        with pytest.raises(AttributeError):
            section.forward = 0.05

    def test_to_dict(self, section):
        d = section.to_dict()
        assert d["expiry"] == 5.0
        assert d["forward"] == 0.04
        assert d["evaluation"] == "short_maturity_lognormal"
        assert d["parameters"]["alpha"] == 0.045

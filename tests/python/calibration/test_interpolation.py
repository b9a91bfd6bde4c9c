"""
Tests for ZabrInterpolation.
"""

import numpy as np
import pandas as pd
import pytest

from zabr_smile.calibration import SmileContext, TerminationStatus, ZabrInterpolation
from zabr_smile.errors import (
    CalibrationError,
    InvalidDomainError,
    InvalidInputError,
    UnsupportedOperationError,
)


@pytest.fixture
def smile(synthetic_smile):
    return ZabrInterpolation(
        synthetic_smile["strikes"],
        synthetic_smile["vols"],
        SmileContext(expiry=5.0, forward=0.04),
        beta=0.5,
        gamma=1.0,
        fixed=["beta", "gamma"],
        error_accept=1e-8,
        max_guesses=10,
    )


class TestZabrInterpolation:
    """Tests for the interpolation facade."""

    def test_not_calibrated(self, smile):
        assert not smile.is_calibrated
        with pytest.raises(CalibrationError):
            smile(0.04)
        with pytest.raises(CalibrationError):
            smile.alpha

    def test_update(self, smile, synthetic_smile):
        result = smile.update()
        assert smile.is_calibrated
        assert result is smile.result
        assert smile.rms_error < 1e-6
        assert smile.max_error < 1e-5
        assert smile.termination_status is TerminationStatus.CONVERGED
        assert smile.alpha == pytest.approx(synthetic_smile["params"].alpha, rel=1e-4)
        assert smile.beta == 0.5
        assert smile.gamma == 1.0
        assert smile.nu > 0
        assert -1 < smile.rho < 1

    def test_value(self, smile, synthetic_smile):
        smile.calibrate()
        np.testing.assert_allclose(
            smile.value(synthetic_smile["strikes"]), synthetic_smile["vols"], atol=1e-5
        )
        assert isinstance(smile(0.045), float)
        assert smile(0.045) == smile.value(0.045)

    def test_value_invalid_strike(self, smile):
        smile.update()
        with pytest.raises(InvalidDomainError):
            smile(0.0)

    def test_context_properties(self, smile):
        assert smile.expiry == 5.0
        assert smile.forward == 0.04

    def test_uniform_weights(self, smile):
        np.testing.assert_allclose(smile.weights, np.full(9, 1 / 9))
        smile.update()
        np.testing.assert_allclose(smile.weights, np.full(9, 1 / 9))

    def test_vega_weights(self, synthetic_smile):
        context = SmileContext(expiry=5.0, forward=0.04)
        smile = ZabrInterpolation(
            synthetic_smile["strikes"], synthetic_smile["vols"], context,
            beta=0.5, gamma=1.0, fixed=["beta", "gamma"],
            vega_weighted=True, error_accept=1e-8,
        )
        smile.update()
        weights = smile.weights
        assert weights.sum() == pytest.approx(1.0)
        assert not np.allclose(weights, 1 / 9)

        context.forward = 0.045
        smile.update()
        assert not np.allclose(smile.weights, weights)

    def test_recalibration_is_explicit(self, smile):
        smile.update()
        first = smile.result
        assert not smile.is_stale

        smile.context.forward = 0.042
        assert smile.forward == 0.042
        assert smile.is_stale
        assert smile.section.forward == 0.04

        smile.update()
        assert smile.result is not first
        assert smile.section.forward == 0.042
        assert not smile.is_stale

    @pytest.mark.parametrize("method", ["primitive", "derivative", "second_derivative"])
    def test_unsupported_operations(self, smile, method):
        with pytest.raises(UnsupportedOperationError):
            getattr(smile, method)(0.04)

    def test_from_dataframe(self, synthetic_smile):
        data = pd.DataFrame(
            {"strike": synthetic_smile["strikes"], "implied_vol": synthetic_smile["vols"]}
        )
        smile = ZabrInterpolation.from_dataframe(
            data, SmileContext(5.0, 0.04), beta=0.5, fixed=["beta"], max_guesses=3
        )
        np.testing.assert_array_equal(smile.strikes, synthetic_smile["strikes"])
        assert smile.guess.fixed_names() == ("beta",)

    @pytest.mark.parametrize(
        "strikes,vols,expiry,forward",
        [
            ([], [], 1.0, 0.04),
            ([0.03, 0.04], [0.2, -0.2], 1.0, 0.04),
            ([0.0, 0.04], [0.2, 0.2], 1.0, 0.04),
            ([0.03, 0.04], [0.2, 0.2], 0.0, 0.04),
            ([0.03, 0.04], [0.2, 0.2], 1.0, -0.04),
        ],
    )
    def test_invalid_construction(self, strikes, vols, expiry, forward):
        with pytest.raises(InvalidInputError):
            ZabrInterpolation(strikes, vols, SmileContext(expiry=expiry, forward=forward))

    def test_invalid_guess(self):
        with pytest.raises(InvalidInputError, match="gamma"):
            ZabrInterpolation([0.03], [0.2], SmileContext(1.0, 0.04), gamma=-0.5)

    def test_invalid_forward_at_update(self, smile):
        smile.context.forward = -1.0
        with pytest.raises(InvalidInputError, match="forward"):
            smile.update()

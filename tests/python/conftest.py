"""
Pytest configuration for zabr_smile tests.
"""

import numpy as np
import pytest

from zabr_smile.calibration import SmileContext
from zabr_smile.calibration.optimizers import (
    OptimizationMethod,
    OptimizationOutcome,
    TerminationStatus,
)
from zabr_smile.models import ZabrParameters, implied_volatility


class CountingOptimizer(OptimizationMethod):
    """Returns the starting point unchanged and counts calls."""

    name = "counting"

    def __init__(self, status=TerminationStatus.CONVERGED):
        self.status = status
        self.calls = 0
        self.starts = []

    def minimize(self, residuals, x0, end_criteria):
        self.calls += 1
        self.starts.append(np.array(x0, copy=True))
        residuals(x0)
        return OptimizationOutcome(x=np.array(x0, copy=True), status=self.status)


class ConstantOptimizer(OptimizationMethod):
    """Returns the same point whatever the start."""

    name = "constant"

    def __init__(self, value=0.5, first_status=TerminationStatus.MAX_ITERATIONS):
        self.value = value
        self.first_status = first_status
        self.calls = 0

    def minimize(self, residuals, x0, end_criteria):
        self.calls += 1
        status = self.first_status if self.calls == 1 else TerminationStatus.CONVERGED
        return OptimizationOutcome(x=np.full(len(x0), self.value), status=status)


@pytest.fixture
def counting_optimizer():
    return CountingOptimizer()


@pytest.fixture
def constant_optimizer():
    return ConstantOptimizer()


@pytest.fixture
def example_points():
    """Three market points around a 4% forward, 5y expiry."""
    return {
        "strikes": np.array([0.03, 0.04, 0.05]),
        "vols": np.array([0.22, 0.20, 0.19]),
        "context": SmileContext(expiry=5.0, forward=0.04),
    }


@pytest.fixture
def true_params():
    """SABR-like parameters (gamma = 1) used to generate smiles."""
    return ZabrParameters(alpha=0.045, beta=0.5, nu=0.35, rho=-0.25, gamma=1.0)


@pytest.fixture
def synthetic_smile(true_params):
    """Smile evaluated from true_params on nine strikes."""
    forward = 0.04
    strikes = np.linspace(0.02, 0.06, 9)
    vols = np.asarray(implied_volatility(true_params, forward, strikes))
    return {
        "strikes": strikes,
        "vols": vols,
        "context": SmileContext(expiry=5.0, forward=forward),
        "params": true_params,
    }


@pytest.fixture
def noisy_smile(synthetic_smile):
    """synthetic_smile with deterministic noise so no fit is exact."""
    rng = np.random.default_rng(7)
    noisy = dict(synthetic_smile)
    noisy["vols"] = synthetic_smile["vols"] + rng.normal(0.0, 0.004, 9)
    return noisy

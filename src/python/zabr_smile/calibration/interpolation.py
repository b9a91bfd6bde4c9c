"""
ZABR smile interpolation over market quotes of one expiry.

ZabrInterpolation owns the market data, the shared SmileContext, the
calibration weights and the latest FitResult. Calibration is explicit: when
the forward in the context moves, the caller runs `update()` again and a new
FitResult replaces the old one.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable, Optional, Sequence, Union

import numpy as np

from ..errors import CalibrationError, UnsupportedOperationError
from ..models.smile_section import ZabrSmileSection
from ..models.zabr import EvaluationMode, ParameterGuess, StrikeLike
from .objective import uniform_weights, vega_weights
from .optimizers import EndCriteria, OptimizationMethod, TerminationStatus
from .restarts import DEFAULT_SEED
from .zabr_calibrator import FitResult, SmileContext, ZabrCalibrator, validate_market_data

if TYPE_CHECKING:
    import pandas as pd

logger = logging.getLogger(__name__)


class ZabrInterpolation:
    """
    Volatility smile interpolated by a calibrated ZABR model.

    Example:
        >>> context = SmileContext(expiry=5.0, forward=0.04)
        >>> smile = ZabrInterpolation(
        ...     [0.03, 0.04, 0.05], [0.22, 0.20, 0.19], context,
        ...     beta=0.5, fixed=["beta"],
        ... )
        >>> smile.update()
        >>> smile(0.045)
    """

    def __init__(
        self,
        strikes: Sequence[float],
        vols: Sequence[float],
        context: SmileContext,
        alpha: Optional[float] = None,
        beta: Optional[float] = None,
        nu: Optional[float] = None,
        rho: Optional[float] = None,
        gamma: Optional[float] = None,
        fixed: Iterable[str] = (),
        evaluation: Union[str, EvaluationMode] = EvaluationMode.SHORT_MATURITY_LOGNORMAL,
        vega_weighted: bool = False,
        end_criteria: Optional[EndCriteria] = None,
        optimizer: Optional[OptimizationMethod] = None,
        error_accept: float = 0.002,
        use_max_error: bool = False,
        max_guesses: int = 50,
        seed: Optional[int] = DEFAULT_SEED,
        max_calibration_time: Optional[float] = None,
    ):
        """
        Initialize the interpolation; inputs are validated eagerly.

        Args:
            strikes: Market strikes (> 0)
            vols: Market volatilities (> 0)
            context: Shared expiry and forward
            alpha, beta, nu, rho, gamma: Starting values (None = default)
            fixed: Names of parameters held at their supplied values
            evaluation: Smile evaluation mode
            vega_weighted: Weight residuals by Black vega instead of uniformly
            end_criteria: Stopping rule of each local optimization
            optimizer: Local optimizer (default: Levenberg-Marquardt)
            error_accept: Error at or below which restarts stop
            use_max_error: Use max error instead of RMS error as criterion
            max_guesses: Maximum number of restarts
            seed: Seed of the restart sequence
            max_calibration_time: Optional wall-clock budget in seconds

        Raises:
            InvalidInputError: If market data, context or guess are invalid
        """
        self.strikes, self.vols = validate_market_data(strikes, vols)
        context.validate()
        self.context = context
        self.guess = ParameterGuess.create(
            alpha=alpha, beta=beta, nu=nu, rho=rho, gamma=gamma, fixed=fixed
        )
        self.vega_weighted = vega_weighted
        self.calibrator = ZabrCalibrator(
            evaluation=evaluation,
            optimizer=optimizer,
            end_criteria=end_criteria,
            error_accept=error_accept,
            use_max_error=use_max_error,
            max_guesses=max_guesses,
            seed=seed,
            max_calibration_time=max_calibration_time,
        )

        self._weights = uniform_weights(len(self.strikes))
        self._result: Optional[FitResult] = None

    @classmethod
    def from_dataframe(
        cls,
        data: "pd.DataFrame",
        context: SmileContext,
        strike_col: str = "strike",
        vol_col: str = "implied_vol",
        **kwargs,
    ) -> "ZabrInterpolation":
        """Build from a DataFrame with strike and implied volatility columns."""
        return cls(
            data[strike_col].to_numpy(dtype=float),
            data[vol_col].to_numpy(dtype=float),
            context,
            **kwargs,
        )

    def update(self) -> FitResult:
        """
        Recalibrate against the current context.

        Recomputes vega weights when enabled, then replaces the previous fit.

        Returns:
            The new FitResult
        """
        context = self.context.snapshot()
        context.validate()

        if self.vega_weighted:
            self._weights = vega_weights(self.strikes, self.vols, context.forward, context.expiry)
        else:
            self._weights = uniform_weights(len(self.strikes))

        self._result = self.calibrator.calibrate(
            self.strikes, self.vols, context, self.guess, self._weights
        )
        return self._result

    calibrate = update

    @property
    def result(self) -> FitResult:
        if self._result is None:
            raise CalibrationError("smile has not been calibrated, call update() first")
        return self._result

    @property
    def is_calibrated(self) -> bool:
        return self._result is not None

    @property
    def is_stale(self) -> bool:
        """True if the context moved since the last calibration."""
        section = self.result.section
        return (section.forward, section.expiry) != (self.context.forward, self.context.expiry)

    @property
    def section(self) -> ZabrSmileSection:
        return self.result.section

    def value(self, strike: StrikeLike) -> Union[float, np.ndarray]:
        """
        Calibrated volatility at one or more strikes.

        Raises:
            CalibrationError: If the smile was never calibrated
            InvalidDomainError: If a strike is not positive
        """
        return self.section.volatility(strike)

    def __call__(self, strike: StrikeLike) -> Union[float, np.ndarray]:
        return self.value(strike)

    @property
    def expiry(self) -> float:
        return self.context.expiry

    @property
    def forward(self) -> float:
        return self.context.forward

    @property
    def alpha(self) -> float:
        return self.result.parameters.alpha

    @property
    def beta(self) -> float:
        return self.result.parameters.beta

    @property
    def nu(self) -> float:
        return self.result.parameters.nu

    @property
    def rho(self) -> float:
        return self.result.parameters.rho

    @property
    def gamma(self) -> float:
        return self.result.parameters.gamma

    @property
    def rms_error(self) -> float:
        return self.result.rms_error

    @property
    def max_error(self) -> float:
        return self.result.max_error

    @property
    def termination_status(self) -> TerminationStatus:
        return self.result.termination_status

    @property
    def weights(self) -> np.ndarray:
        """Weights used by the latest calibration (uniform before any)."""
        return self._weights.copy()

    def primitive(self, strike: float) -> float:
        raise UnsupportedOperationError("ZABR primitive not implemented")

    def derivative(self, strike: float) -> float:
        raise UnsupportedOperationError("ZABR derivative not implemented")

    def second_derivative(self, strike: float) -> float:
        raise UnsupportedOperationError("ZABR second derivative not implemented")

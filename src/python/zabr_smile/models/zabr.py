"""
ZABR stochastic volatility smile model.

The ZABR model of Andreasen & Huge (2011) extends SABR with a free exponent
on the volatility process:
    dF_t = σ_t F_t^β dW_t^F
    dσ_t = ν σ_t^γ dW_t^σ
    dW_t^F · dW_t^σ = ρ dt

Parameters:
    α (alpha): Volatility level
    β (beta): CEV exponent of the forward
    ν (nu): Volatility of volatility
    ρ (rho): Correlation between forward and volatility
    γ (gamma): Exponent of the volatility process (γ = 1 is SABR)

The short maturity expansion expresses the smile through a single distance
function x(K). For γ = 1 it is available in closed form; otherwise it solves

    dx/dy = (-B x + sqrt(B² x² - 4 A (C x² - 1))) / (2 A),    x(0) = 0

in the variable y(K) = α^(γ-2) (F^(1-β) - K^(1-β)) / (1-β).

Reference:
    Andreasen, J. & Huge, B. (2011). "ZABR - Expansions for the masses."
    Hagan, P. S. et al. (2002). "Managing smile risk." Wilmott Magazine.
"""

from __future__ import annotations

import logging
import math
import warnings
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Dict, Iterable, Optional, Tuple, Union

import numpy as np
from scipy.integrate import ODEintWarning, odeint

from ..errors import InvalidDomainError, InvalidInputError

if TYPE_CHECKING:
    import pandas as pd

logger = logging.getLogger(__name__)

PARAMETER_NAMES: Tuple[str, ...] = ("alpha", "beta", "nu", "rho", "gamma")

# Values used for parameters the caller leaves unset
DEFAULT_VALUES: Dict[str, float] = {
    "alpha": math.sqrt(0.2),
    "beta": 0.5,
    "nu": math.sqrt(0.4),
    "rho": 0.0,
    "gamma": 1.0,
}

# Strikes this close to the forward use the analytic ATM limit
_ATM_RTOL = 1e-8
# Below this distance from 1, beta uses the log-moneyness limit of y(K)
_BETA_ONE_TOL = 1e-8
_GAMMA_ONE_TOL = 1e-12
_ODE_RTOL = 1e-10
_ODE_ATOL = 1e-12
_ODE_MXSTEP = 5000

StrikeLike = Union[float, Iterable[float], np.ndarray]


class EvaluationMode(Enum):
    """Closed-form approximation used to turn parameters into a smile."""

    SHORT_MATURITY_LOGNORMAL = "short_maturity_lognormal"
    SHORT_MATURITY_NORMAL = "short_maturity_normal"

    @classmethod
    def from_name(cls, value: Union[str, "EvaluationMode"]) -> "EvaluationMode":
        """Resolve a mode from its enum member or its string value."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            valid = ", ".join(mode.value for mode in cls)
            raise InvalidInputError(
                f"unknown evaluation mode {value!r}, expected one of: {valid}"
            ) from None


@dataclass(frozen=True)
class ZabrParameters:
    """
    ZABR model parameters for a single expiry.

    Attributes:
        alpha: Volatility level (α > 0)
        beta: CEV exponent (0 < β ≤ 1)
        nu: Vol of vol (ν ≥ 0)
        rho: Correlation (-1 < ρ < 1)
        gamma: Vol process exponent (γ ≥ 0)
    """

    alpha: float
    beta: float
    nu: float
    rho: float
    gamma: float

    def __post_init__(self):
        """Validate parameters."""
        if not self.alpha > 0:
            raise InvalidInputError(f"alpha must be positive, got {self.alpha}")
        if not 0 < self.beta <= 1:
            raise InvalidInputError(f"beta must be in (0, 1], got {self.beta}")
        if not self.nu >= 0:
            raise InvalidInputError(f"nu must be non-negative, got {self.nu}")
        if not -1 < self.rho < 1:
            raise InvalidInputError(f"rho must be in (-1, 1), got {self.rho}")
        if not self.gamma >= 0:
            raise InvalidInputError(f"gamma must be non-negative, got {self.gamma}")

    def to_dict(self) -> Dict[str, float]:
        """Convert to dictionary."""
        return {name: getattr(self, name) for name in PARAMETER_NAMES}

    def to_array(self) -> np.ndarray:
        """Convert to numpy array [alpha, beta, nu, rho, gamma]."""
        return np.array([getattr(self, name) for name in PARAMETER_NAMES])

    @classmethod
    def from_array(cls, arr: np.ndarray) -> "ZabrParameters":
        """Create from numpy array ordered as PARAMETER_NAMES."""
        return cls(*(float(value) for value in arr))

    @classmethod
    def from_dict(cls, d: Dict[str, float]) -> "ZabrParameters":
        """Create from dictionary."""
        return cls(**{name: float(d[name]) for name in PARAMETER_NAMES})

    @classmethod
    def default(cls) -> "ZabrParameters":
        """Default starting parameters."""
        return cls.from_dict(DEFAULT_VALUES)


@dataclass(frozen=True)
class ParameterGuess:
    """
    Starting parameters for a calibration, each tagged fixed or free.

    Fixed parameters keep their value through calibration. A parameter the
    caller did not supply takes its default value and is always free.
    """

    parameters: ZabrParameters
    fixed: Tuple[bool, bool, bool, bool, bool] = (False, False, False, False, False)

    def __post_init__(self):
        if len(self.fixed) != len(PARAMETER_NAMES):
            raise InvalidInputError(
                f"expected {len(PARAMETER_NAMES)} fixed flags, got {len(self.fixed)}"
            )

    @classmethod
    def create(
        cls,
        alpha: Optional[float] = None,
        beta: Optional[float] = None,
        nu: Optional[float] = None,
        rho: Optional[float] = None,
        gamma: Optional[float] = None,
        fixed: Iterable[str] = (),
    ) -> "ParameterGuess":
        """
        Build a guess from optional values and the names of fixed parameters.

        Args:
            alpha, beta, nu, rho, gamma: Starting values (None = default)
            fixed: Names of parameters to hold fixed

        Returns:
            ParameterGuess

        Raises:
            InvalidInputError: On unknown names or out-of-domain values
        """
        fixed = set(fixed)
        unknown = fixed.difference(PARAMETER_NAMES)
        if unknown:
            raise InvalidInputError(f"unknown parameter names: {sorted(unknown)}")

        supplied = {"alpha": alpha, "beta": beta, "nu": nu, "rho": rho, "gamma": gamma}
        values = {}
        flags = []
        for name in PARAMETER_NAMES:
            if supplied[name] is None:
                if name in fixed:
                    logger.debug(f"{name} has no value and stays free")
                values[name] = DEFAULT_VALUES[name]
                flags.append(False)
            else:
                values[name] = float(supplied[name])
                flags.append(name in fixed)

        return cls(parameters=ZabrParameters(**values), fixed=tuple(flags))

    @property
    def free_mask(self) -> np.ndarray:
        """Boolean mask of free parameters, ordered as PARAMETER_NAMES."""
        return ~np.array(self.fixed, dtype=bool)

    @property
    def n_free(self) -> int:
        return int(np.count_nonzero(self.free_mask))

    @property
    def all_fixed(self) -> bool:
        return all(self.fixed)

    def fixed_names(self) -> Tuple[str, ...]:
        return tuple(n for n, f in zip(PARAMETER_NAMES, self.fixed) if f)


def validated_strikes(strikes: StrikeLike) -> np.ndarray:
    """Return strikes as a 1-d float array, rejecting non-positive values."""
    k = np.atleast_1d(np.asarray(strikes, dtype=float))
    bad = ~(k > 0)
    if np.any(bad):
        raise InvalidDomainError(f"strike must be positive: {k[bad][0]} not allowed")
    return k


def zabr_y(params: ZabrParameters, forward: float, strikes: np.ndarray) -> np.ndarray:
    """Compute the transformed moneyness y(K)."""
    scale = params.alpha ** (params.gamma - 2.0)
    one_minus_beta = 1.0 - params.beta
    if one_minus_beta < _BETA_ONE_TOL:
        return np.log(forward / strikes) * scale
    return (
        (forward**one_minus_beta - strikes**one_minus_beta) * scale / one_minus_beta
    )


def _sabr_x(params: ZabrParameters, y: np.ndarray) -> np.ndarray:
    """Closed form of x(y) for gamma = 1."""
    nu, rho = params.nu, params.rho
    if nu == 0.0:
        return y.copy()
    nu_y = nu * y
    j = np.sqrt(1.0 + nu_y * nu_y - 2.0 * rho * nu_y)
    # log((J + νy - ρ) / (1 - ρ)) written to stay accurate for small νy
    return np.log1p((nu_y + (nu_y * nu_y - 2.0 * rho * nu_y) / (j + 1.0)) / (1.0 - rho)) / nu


def _zabr_x_ode(params: ZabrParameters, y: np.ndarray) -> np.ndarray:
    """Integrate dx/dy from y = 0 outwards to every requested y."""
    g, nu, rho = params.gamma, params.nu, params.rho
    a2 = (g - 2.0) * (g - 2.0) * nu * nu
    a1 = 2.0 * rho * (g - 2.0) * nu
    b0 = 2.0 * rho * (1.0 - g) * nu
    b1 = 2.0 * (1.0 - g) * (g - 2.0) * nu * nu
    c = (1.0 - g) * (1.0 - g) * nu * nu

    def slope(u, t):
        x = u[0]
        a = 1.0 + a2 * t * t + a1 * t
        b = b0 + b1 * t
        disc = max(b * b * x * x - 4.0 * a * (c * x * x - 1.0), 0.0)
        return [(-b * x + math.sqrt(disc)) / (2.0 * a)]

    result = np.zeros_like(y)
    for side in (y > 0.0, y < 0.0):
        if not np.any(side):
            continue
        targets = y[side]
        order = np.argsort(np.abs(targets))
        grid = np.concatenate(([0.0], targets[order]))
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", ODEintWarning)
            path = odeint(
                slope, [0.0], grid, rtol=_ODE_RTOL, atol=_ODE_ATOL, mxstep=_ODE_MXSTEP
            )
        values = np.empty_like(targets)
        values[order] = path[1:, 0]
        result[side] = values
    return result


def zabr_x(params: ZabrParameters, forward: float, strikes: np.ndarray) -> np.ndarray:
    """
    Compute the short maturity distance x(K).

    Args:
        params: ZABR parameters
        forward: Forward level F
        strikes: Positive strikes

    Returns:
        Array of x(K), zero at the forward
    """
    y = zabr_y(params, forward, strikes)
    if abs(params.gamma - 1.0) < _GAMMA_ONE_TOL:
        return _sabr_x(params, y)
    return _zabr_x_ode(params, y)


def implied_volatility(
    params: ZabrParameters,
    forward: float,
    strikes: StrikeLike,
    evaluation: Union[str, EvaluationMode] = EvaluationMode.SHORT_MATURITY_LOGNORMAL,
) -> Union[float, np.ndarray]:
    """
    Compute the model volatility at one or more strikes.

    Lognormal mode returns Black volatilities ln(F/K) / x(K); normal mode
    returns Bachelier volatilities (F - K) / x(K). At the forward both use
    the analytic limit.

    Args:
        params: ZABR parameters
        forward: Forward level F (> 0)
        strikes: Strike or array of strikes (> 0)
        evaluation: Evaluation mode

    Returns:
        Volatility as float for scalar input, numpy array otherwise

    Raises:
        InvalidDomainError: If any strike is not positive
    """
    mode = EvaluationMode.from_name(evaluation)
    k = validated_strikes(strikes)

    atm = np.isclose(k, forward, rtol=_ATM_RTOL, atol=0.0)
    x = np.zeros_like(k)
    if not np.all(atm):
        x[~atm] = zabr_x(params, forward, k[~atm])

    level = params.alpha ** (2.0 - params.gamma)
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        if mode is EvaluationMode.SHORT_MATURITY_LOGNORMAL:
            vols = np.log(forward / k) / x
            atm_vol = level * forward ** (params.beta - 1.0)
        else:
            vols = (forward - k) / x
            atm_vol = level * forward**params.beta
    vols = np.where(atm, atm_vol, vols)

    if np.ndim(strikes) == 0:
        return float(vols[0])
    return vols


def generate_synthetic_smile(
    forward: float = 0.04,
    expiry: float = 5.0,
    params: Optional[ZabrParameters] = None,
    n_strikes: int = 9,
    strike_range: Tuple[float, float] = (0.5, 1.5),
    noise_std: float = 0.0,
    evaluation: Union[str, EvaluationMode] = EvaluationMode.SHORT_MATURITY_LOGNORMAL,
    seed: Optional[int] = None,
) -> "pd.DataFrame":
    """
    Generate a synthetic smile from the model for testing.

    Args:
        forward: Forward level
        expiry: Option expiry in years
        params: True parameters (default: ZabrParameters.default())
        n_strikes: Number of strikes
        strike_range: Strike range as fraction of forward (min, max)
        noise_std: Standard deviation of additive vol noise
        evaluation: Evaluation mode
        seed: Seed for the noise generator

    Returns:
        DataFrame with strike, expiry, implied_vol columns
    """
    import pandas as pd

    params = params or ZabrParameters.default()
    strikes = np.linspace(forward * strike_range[0], forward * strike_range[1], n_strikes)
    vols = np.asarray(implied_volatility(params, forward, strikes, evaluation))

    if noise_std > 0:
        rng = np.random.default_rng(seed)
        vols = np.maximum(vols + rng.normal(0.0, noise_std, len(vols)), 1e-4)

    return pd.DataFrame({"strike": strikes, "expiry": expiry, "implied_vol": vols})

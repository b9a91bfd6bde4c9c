"""
Black (1976) formula sensitivities used for calibration weights.
"""

import numpy as np
from scipy.stats import norm

from ..errors import InvalidInputError


def black_std_dev_derivative(
    strikes: np.ndarray,
    forward: float,
    std_devs: np.ndarray,
    discount: float = 1.0,
    displacement: float = 0.0,
) -> np.ndarray:
    """
    Derivative of the Black price with respect to total standard deviation.

        dP/dσ√T = D · (F + d) · φ(d1),   d1 = ln((F + d)/(K + d)) / σ√T + σ√T / 2

    The value is the same for calls and puts.

    Args:
        strikes: Option strikes
        forward: Forward level
        std_devs: Total standard deviations σ√T (one per strike)
        discount: Discount factor
        displacement: Shift applied to forward and strikes

    Returns:
        Array of sensitivities, zero where the standard deviation is zero
    """
    strikes = np.asarray(strikes, dtype=float) + displacement
    std_devs = np.asarray(std_devs, dtype=float)
    shifted_forward = forward + displacement

    if shifted_forward <= 0:
        raise InvalidInputError(
            f"forward + displacement ({forward}, {displacement}) must be positive"
        )
    if np.any(strikes <= 0):
        raise InvalidInputError("strike + displacement must be positive")
    if np.any(std_devs < 0):
        raise InvalidInputError("standard deviation must be non-negative")

    result = np.zeros_like(std_devs)
    live = std_devs > 0
    d1 = np.log(shifted_forward / strikes[live]) / std_devs[live] + 0.5 * std_devs[live]
    result[live] = discount * shifted_forward * norm.pdf(d1)
    return result

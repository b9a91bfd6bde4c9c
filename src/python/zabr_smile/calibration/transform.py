"""
Smooth reparameterization between optimizer space and ZABR parameters.

The optimizer works on an unconstrained vector; `direct` maps it into the
parameter domain so no bound-constrained optimizer is needed:

    alpha = x0² + ε        (capped at 25 for |x0| ≥ 5)
    beta  = exp(-x1²)      (floored at ε)
    nu    = x2² + ε        (capped at 25 for |x2| ≥ 5)
    rho   = 0.9999 sin(x3) (ε for |x3| ≥ 10)
    gamma = x4² + ε        (capped at 25 for |x4| ≥ 5)

`inverse` is only accurate near the image of `direct`; it seeds the
optimizer from parameters already known to be valid.
"""

import numpy as np

EPSILON = 1e-7
RHO_SATURATION = 0.9999
SQUARE_CAP = 25.0

_SQUARE_LIMIT = 5.0
_BETA_LIMIT = 1000.0
_RHO_LIMIT = 10.0


def _bounded_square(x: float) -> float:
    return x * x + EPSILON if abs(x) < _SQUARE_LIMIT else SQUARE_CAP


def _inverse_square(y: float) -> float:
    return float(np.sqrt(max(y - EPSILON, 0.0)))


class ZabrParametersTransformation:
    """Map [alpha, beta, nu, rho, gamma] to and from an unconstrained vector."""

    def direct(self, x: np.ndarray) -> np.ndarray:
        """Unconstrained vector -> parameters satisfying the ZABR domain."""
        x = np.asarray(x, dtype=float)
        y = np.empty(5)
        y[0] = _bounded_square(x[0])
        y[1] = max(np.exp(-x[1] * x[1]), EPSILON) if abs(x[1]) < _BETA_LIMIT else EPSILON
        y[2] = _bounded_square(x[2])
        y[3] = RHO_SATURATION * np.sin(x[3]) if abs(x[3]) < _RHO_LIMIT else EPSILON
        y[4] = _bounded_square(x[4])
        return y

    def inverse(self, y: np.ndarray) -> np.ndarray:
        """Parameters -> unconstrained vector."""
        y = np.asarray(y, dtype=float)
        x = np.empty(5)
        x[0] = _inverse_square(y[0])
        x[1] = np.sqrt(-np.log(min(max(y[1], EPSILON), 1.0)))
        x[2] = _inverse_square(y[2])
        x[3] = np.arcsin(np.clip(y[3] / RHO_SATURATION, -1.0, 1.0))
        x[4] = _inverse_square(y[4])
        return x

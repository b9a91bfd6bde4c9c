"""
Deterministic restart points for the multi-start calibration.

Restarts come from a scrambled Halton sequence with a fixed seed, so two
calibrations on identical inputs visit identical starting points.
"""

from typing import Iterator, Optional

import numpy as np
from scipy.stats import qmc

from ..models.zabr import ParameterGuess
from .transform import ZabrParametersTransformation

DEFAULT_SEED = 42

_EDGE = 1e-6


class RestartSequence:
    """
    Lazy low-discrepancy sequence in [0, 1)^k.

    Attributes:
        dimension: Number of free parameters k
        seed: Seed of the scrambled Halton engine
    """

    def __init__(self, dimension: int, seed: Optional[int] = DEFAULT_SEED):
        self.dimension = dimension
        self.seed = seed
        self._engine = qmc.Halton(d=dimension, scramble=True, seed=seed)

    def __iter__(self) -> Iterator[np.ndarray]:
        while True:
            yield self._engine.random(1)[0]


def scale_sample(sample: np.ndarray, free_mask: np.ndarray) -> np.ndarray:
    """
    Spread a unit-cube sample over the free parameters.

    Alpha and beta land in (0, 1), nu and gamma in (0, 5], rho in (-1, 1).
    Fixed slots are left at zero.
    """
    scaled = np.zeros(5)
    values = iter(sample)
    if free_mask[0]:
        scaled[0] = (1.0 - 2 * _EDGE) * next(values) + _EDGE
    if free_mask[1]:
        scaled[1] = (1.0 - 2 * _EDGE) * next(values) + _EDGE
    if free_mask[2]:
        scaled[2] = 5.0 * next(values) + _EDGE
    if free_mask[3]:
        scaled[3] = (2.0 * next(values) - 1.0) * (1.0 - _EDGE)
    if free_mask[4]:
        scaled[4] = 5.0 * next(values) + _EDGE
    return scaled


def starting_points(
    guess: ParameterGuess,
    transformation: ZabrParametersTransformation,
    seed: Optional[int] = DEFAULT_SEED,
) -> Iterator[np.ndarray]:
    """
    Yield starting parameter vectors: the guess itself, then restarts.

    Restart samples are scaled, pushed through the transformation and get the
    fixed values written back, so every yielded vector is a valid parameter
    set.
    """
    initial = guess.parameters.to_array()
    yield initial.copy()

    free_mask = guess.free_mask
    for sample in RestartSequence(guess.n_free, seed):
        start = transformation.direct(scale_sample(sample, free_mask))
        start[~free_mask] = initial[~free_mask]
        yield start

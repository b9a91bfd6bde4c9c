"""
Exception hierarchy for smile calibration.

Input and domain problems fail fast. Optimizer non-convergence is never
raised; it is reported through the termination status of a fit.
"""


class ZabrError(Exception):
    """Base class for all zabr_smile errors."""

    pass


class InvalidInputError(ZabrError, ValueError):
    """Raised when construction or calibration inputs are invalid."""

    pass


class InvalidDomainError(ZabrError, ValueError):
    """Raised when a smile is queried outside its domain (strike <= 0)."""

    pass


class UnsupportedOperationError(ZabrError, NotImplementedError):
    """Raised for queries the smile does not support (derivatives, primitive)."""

    pass


class CalibrationError(ZabrError, RuntimeError):
    """Raised when a smile is queried before it has been calibrated."""

    pass

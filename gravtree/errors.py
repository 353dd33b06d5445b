"""
Exceptions raised by the gravity core.

Invalid input is rejected at the boundary (body construction, step
invocation, config creation) so NaN/Inf never reaches the octree.
"""


class GravTreeError(Exception):
    """Base exception for the gravity core."""

    pass


class ValidationError(GravTreeError, ValueError):
    """Base exception for rejected input."""

    pass


class InvalidBodyError(ValidationError):
    """Raised when a body has non-positive mass or non-finite state."""

    pass


class InvalidTimeStepError(ValidationError):
    """Raised when a time delta is negative or non-finite."""

    pass


class InvalidConfigError(ValidationError):
    """Raised when a simulation parameter is out of range."""

    pass


class StaleTreeError(GravTreeError):
    """Raised when a tree was built for a different body set than the one evaluated."""

    pass


class NumericalInstabilityError(GravTreeError, ArithmeticError):
    """Raised when non-finite values appear in body state or forces."""

    pass


__all__ = [
    "GravTreeError",
    "ValidationError",
    "InvalidBodyError",
    "InvalidTimeStepError",
    "InvalidConfigError",
    "NumericalInstabilityError",
    "StaleTreeError",
]

"""Exception and warning types raised by the engine."""

from __future__ import annotations


class ValidationError(ValueError):
    """An input is outside the domain the engine accepts.

    Raised for probabilities outside [0, 1], negative sizes, energies or
    distances, eccentricity >= 1 and missing required orbital elements.
    """


class ComputationError(RuntimeError):
    """A numerical computation could not produce a result."""


class SimulationCancelled(ComputationError):
    """A Monte Carlo run was stopped by its cancellation check or deadline.

    Attributes:
        completed: Samples evaluated before the run stopped.
    """

    def __init__(self, message: str, completed: int = 0) -> None:
        super().__init__(message)
        self.completed = completed


class KeplerConvergenceWarning(RuntimeWarning):
    """Kepler's equation did not converge; the best estimate was returned."""

"""
Exceptions and warnings raised by the SGP4/SDP4 propagator.

The functional API (``sgp4_propagate`` and friends) never raises while
propagating, since it must trace under ``jax.jit``; it reports problems
through ``PropagationResult.error`` and ``PropagationResult.converged``.
These classes are raised by ``sgp4_init`` and by the eager
``SGP4Propagator`` wrapper.
"""

from __future__ import annotations

from sdp4jax.sgp4._types import PropagationError


class ConfigurationError(ValueError):
    """Mean elements cannot be initialized (e.g. e >= 1 or a <= 0)."""


class PhysicalDecayError(RuntimeError):
    """Propagation produced a physically invalid orbit.

    Attributes:
        code: The ``PropagationError`` reported by the propagator.
        tsince: Minutes since epoch at which it occurred.
    """

    _MESSAGES = {
        PropagationError.MEAN_ECCENTRICITY: "mean eccentricity left the range [-0.001, 1)",
        PropagationError.MEAN_MOTION: "mean motion is not positive",
        PropagationError.PERTURBED_ECCENTRICITY: "perturbed eccentricity left the range [0, 1]",
        PropagationError.SEMI_LATUS_RECTUM: "semi-latus rectum is negative",
        PropagationError.DECAYED: "satellite has decayed below the Earth's surface",
    }

    def __init__(self, code: int, tsince: float) -> None:
        self.code = PropagationError(code)
        self.tsince = tsince
        reason = self._MESSAGES.get(self.code, self.code.name)
        super().__init__(f"Propagation failed at tsince={tsince:.6f} min: {reason} (error {int(code)})")


class NumericalWarning(RuntimeWarning):
    """An iteration stopped at its cap without meeting its tolerance.

    Emitted for the Kepler solver inside propagation and for the
    mean-element fit.
    """


class FitDivergenceError(RuntimeError):
    """The mean-element least-squares fit diverged."""

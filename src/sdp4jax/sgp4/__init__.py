"""
SGP4/SDP4 orbit propagator implemented in JAX.

Initialization (``sgp4_init``) runs once in Python and selects one of five
propagation modes: near-earth with or without the higher-order drag terms,
and deep-space without resonance, with synchronous (1-day) resonance or with
half-day resonance. Propagation is pure JAX: ``sgp4_propagate`` dispatches
on the mode with ``jax.lax.switch`` and works under ``jax.jit``, ``jax.vmap``
and ``jax.lax.scan``. ``SGP4Propagator`` wraps the functional API with a
mutable state and exceptions.
"""

from sdp4jax.sgp4._constants import GRAVITY_MODELS, WGS72, WGS72OLD, WGS84, EarthGravity
from sdp4jax.sgp4._errors import (
    ConfigurationError,
    FitDivergenceError,
    NumericalWarning,
    PhysicalDecayError,
)
from sdp4jax.sgp4._fitting import MeanElementsFit, fit_mean_elements, state_to_mean_elements
from sdp4jax.sgp4._initialization import sgp4_init
from sdp4jax.sgp4._kepler import two_body_state
from sdp4jax.sgp4._propagation import (
    sgp4_propagate,
    sgp4_propagate_many,
    sgp4_propagate_to_epoch,
    sgp4_step,
    solve_kepler,
)
from sdp4jax.sgp4._propagator import SGP4Propagator
from sdp4jax.sgp4._types import (
    MeanElements,
    PropagationError,
    PropagationMode,
    PropagationResult,
    SGP4State,
)

__all__ = [
    # Types
    "MeanElements",
    "EarthGravity",
    "PropagationMode",
    "PropagationError",
    "PropagationResult",
    "SGP4State",
    # Gravity models
    "WGS72OLD",
    "WGS72",
    "WGS84",
    "GRAVITY_MODELS",
    # Errors
    "ConfigurationError",
    "PhysicalDecayError",
    "NumericalWarning",
    "FitDivergenceError",
    # Functional API
    "sgp4_init",
    "sgp4_propagate",
    "sgp4_step",
    "sgp4_propagate_many",
    "sgp4_propagate_to_epoch",
    "solve_kepler",
    # Stateful API
    "SGP4Propagator",
    # Checks
    "two_body_state",
    # Fitting
    "MeanElementsFit",
    "fit_mean_elements",
    "state_to_mean_elements",
]

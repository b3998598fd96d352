"""
sdp4jax is an SGP4/SDP4 analytic satellite propagator implemented in JAX.
"""

from .config import set_dtype, get_dtype

from .sgp4 import (
    MeanElements,
    EarthGravity,
    WGS72OLD,
    WGS72,
    WGS84,
    PropagationMode,
    PropagationError,
    PropagationResult,
    SGP4State,
    ConfigurationError,
    PhysicalDecayError,
    NumericalWarning,
    FitDivergenceError,
    sgp4_init,
    sgp4_propagate,
    sgp4_step,
    sgp4_propagate_many,
    sgp4_propagate_to_epoch,
    SGP4Propagator,
    two_body_state,
    MeanElementsFit,
    fit_mean_elements,
    state_to_mean_elements,
)

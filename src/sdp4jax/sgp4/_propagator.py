"""Stateful SGP4/SDP4 propagator.

Provides :class:`SGP4Propagator`, a convenience wrapper that owns an
``SGP4State`` and rebinds it after every successful call, turning the
non-zero error codes of the functional API into exceptions.
"""

from __future__ import annotations

import logging
import warnings

import jax
import numpy as np
from jax import Array
from jax.typing import ArrayLike

from sdp4jax.sgp4._constants import MINUTES_PER_DAY, WGS72, EarthGravity, resolve_gravity
from sdp4jax.sgp4._errors import NumericalWarning, PhysicalDecayError
from sdp4jax.sgp4._initialization import sgp4_init
from sdp4jax.sgp4._propagation import sgp4_propagate, sgp4_propagate_many
from sdp4jax.sgp4._types import MeanElements, PropagationMode, PropagationResult, SGP4State

logger = logging.getLogger(__name__)

_propagate = jax.jit(sgp4_propagate)
_propagate_many = jax.jit(sgp4_propagate_many)


class SGP4Propagator:
    """SGP4/SDP4 propagator bound to one set of mean elements.

    Each call propagates from the current state, so increasing times reuse
    the deep-space resonance checkpoint. A failed call raises and leaves
    the state untouched.

    Examples:
        ```python
        from sdp4jax.sgp4 import MeanElements, SGP4Propagator

        elements = MeanElements.from_tle_units(
            2454732.01782528, 15.72125391, 0.0006703, 51.6416, 247.4627, 130.5360, 325.0288,
            bstar=-1.1606e-5,
        )
        prop = SGP4Propagator(elements)
        r, v = prop.propagate(90.0)
        r, v = prop.step(10.0)        # 100 minutes after epoch
        prop.mean_elements["e"]
        ```

    Args:
        elements: Mean elements at epoch.
        gravity: Gravity model name or :class:`EarthGravity` instance.
        opsmode: ``"i"`` (improved) or ``"a"`` (legacy AFSPC).
        warn_nonconvergence: Emit a :class:`NumericalWarning` when the
            Kepler solver reaches its iteration cap.
    """

    def __init__(
        self,
        elements: MeanElements,
        gravity: str | EarthGravity = WGS72,
        opsmode: str = "i",
        *,
        warn_nonconvergence: bool = True,
    ) -> None:
        self._elements = elements
        self._gravity: EarthGravity = resolve_gravity(gravity)
        self._opsmode = opsmode
        self.warn_nonconvergence = warn_nonconvergence
        self._state: SGP4State = sgp4_init(elements, self._gravity, opsmode)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> SGP4State:
        """Current functional state (for use with ``sgp4_propagate``)."""
        return self._state

    @property
    def mode(self) -> PropagationMode:
        """Propagation variant chosen at initialization."""
        return self._state.propagation_mode

    @property
    def tsince(self) -> float:
        """Minutes since epoch of the last successful propagation."""
        return float(self._state.tsince)

    @property
    def mean_elements(self) -> dict[str, float]:
        """Mean elements at ``tsince`` (``a`` in km, angles in rad, ``n`` in rad/min)."""
        return self._state.mean_elements

    @property
    def epoch(self) -> float:
        """Julian date of the element epoch."""
        return self._elements.epoch

    @property
    def gravity(self) -> EarthGravity:
        return self._gravity

    # ------------------------------------------------------------------
    # Propagation
    # ------------------------------------------------------------------

    def _check(self, result: PropagationResult, tsince: Array) -> None:
        errors = np.atleast_1d(np.asarray(result.error))
        times = np.atleast_1d(np.asarray(tsince))
        failed = np.flatnonzero(errors)
        if failed.size:
            idx = int(failed[0])
            code, t = int(errors[idx]), float(times[idx])
            logger.warning("SGP4 propagation failed at tsince=%.6f min with error %d", t, code)
            raise PhysicalDecayError(code, t)

        converged = np.atleast_1d(np.asarray(result.converged))
        if not converged.all():
            t = float(times[int(np.flatnonzero(~converged)[0])])
            logger.debug("Kepler solver hit its iteration cap at tsince=%.6f min", t)
            if self.warn_nonconvergence:
                warnings.warn(
                    f"Kepler solver did not converge at tsince={t:.6f} min",
                    NumericalWarning,
                    stacklevel=3,
                )

    def propagate(self, tsince: float) -> tuple[Array, Array]:
        """Propagate to *tsince* minutes from epoch.

        Args:
            tsince: Time since epoch [min]. May be negative.

        Returns:
            Tuple ``(r, v)``: TEME position [km] and velocity [km/s].

        Raises:
            PhysicalDecayError: If the propagator reports a non-zero error.
        """
        result, new_state = _propagate(self._state, tsince)
        self._check(result, new_state.tsince)
        self._state = new_state
        return result.r, result.v

    def step(self, dt: float) -> tuple[Array, Array]:
        """Propagate *dt* minutes past the current ``tsince``."""
        return self.propagate(self.tsince + dt)

    def propagate_many(self, times: ArrayLike) -> tuple[Array, Array]:
        """Propagate sequentially through *times* (minutes since epoch).

        Returns:
            Tuple ``(r, v)`` with shapes ``(N, 3)``.

        Raises:
            PhysicalDecayError: At the first time with a non-zero error; the
                state is left as it was before the call.
        """
        results, final_state = _propagate_many(self._state, times)
        self._check(results, np.asarray(times, dtype=float))
        self._state = final_state
        return results.r, results.v

    def propagate_to_epoch(self, jd: float, jd_fraction: float = 0.0) -> tuple[Array, Array]:
        """Propagate to the Julian date ``jd + jd_fraction``.

        The offset from epoch is formed in Python float64, so a single
        Julian date argument is resolved to well under a millisecond
        whatever the configured dtype.
        """
        days = (jd - self._elements.jdsatepoch) + (jd_fraction - self._elements.jdsatepochF)
        return self.propagate(days * MINUTES_PER_DAY)

    def copy(self) -> SGP4Propagator:
        """Independent propagator sharing the current state."""
        other = object.__new__(SGP4Propagator)
        other._elements = self._elements
        other._gravity = self._gravity
        other._opsmode = self._opsmode
        other.warn_nonconvergence = self.warn_nonconvergence
        other._state = self._state
        return other

    def __repr__(self) -> str:
        return (
            f"SGP4Propagator(mode={self.mode.name}, epoch={self.epoch:.8f}, "
            f"tsince={self.tsince:.3f})"
        )

"""
Unperturbed two-body state from mean elements.

Gives the Keplerian position and velocity for the same elements SGP4 is
initialized with, as a coarse reference for the propagator near epoch.
"""

from __future__ import annotations

import jax
import jax.numpy as jnp
from jax import Array

from sdp4jax.config import get_dtype
from sdp4jax.sgp4._constants import WGS72, EarthGravity, resolve_gravity
from sdp4jax.sgp4._types import MeanElements


def _eccentric_anomaly(M: Array, e: Array) -> Array:
    """Solve ``M = E - e sin(E)`` by Newton-Raphson."""
    E0 = jnp.where(e < 0.8, M, jnp.pi)

    def newton_step(_, E):
        f = E - e * jnp.sin(E) - M
        return E - f / (1.0 - e * jnp.cos(E))

    return jax.lax.fori_loop(0, 10, newton_step, E0)


def two_body_state(
    elements: MeanElements, gravity: str | EarthGravity = WGS72
) -> tuple[Array, Array]:
    """Two-body TEME state at epoch for a set of mean elements.

    The semi-major axis follows from the Kozai mean motion through Kepler's
    third law. Position and velocity are built from the perifocal P and Q
    vectors (Montenbruck & Gill Eq. 2.43-2.44).

    Args:
        elements: Mean elements at epoch.
        gravity: Gravity model name or :class:`EarthGravity` instance.

    Returns:
        Tuple ``(r, v)``: position [km] and velocity [km/s].

    Examples:
        ```python
        from sdp4jax.sgp4 import MeanElements, two_body_state
        elements = MeanElements.from_tle_units(2451545.0, 15.5, 0.001, 51.6, 0.0, 0.0, 0.0)
        r, v = two_body_state(elements)
        ```
    """
    gravity = resolve_gravity(gravity)
    dtype = get_dtype()

    n = jnp.asarray(elements.no_kozai / 60.0, dtype=dtype)  # rad/s
    e = jnp.asarray(elements.ecco, dtype=dtype)
    i = jnp.asarray(elements.inclo, dtype=dtype)
    raan = jnp.asarray(elements.nodeo, dtype=dtype)
    omega = jnp.asarray(elements.argpo, dtype=dtype)
    M = jnp.asarray(elements.mo, dtype=dtype) % (2.0 * jnp.pi)

    a = (gravity.mu / (n * n)) ** (1.0 / 3.0)
    E = _eccentric_anomaly(M, e)

    cos_o = jnp.cos(omega)
    sin_o = jnp.sin(omega)
    cos_R = jnp.cos(raan)
    sin_R = jnp.sin(raan)
    cos_i = jnp.cos(i)
    sin_i = jnp.sin(i)

    P = jnp.array(
        [
            cos_o * cos_R - sin_o * cos_i * sin_R,
            cos_o * sin_R + sin_o * cos_i * cos_R,
            sin_o * sin_i,
        ]
    )
    Q = jnp.array(
        [
            -sin_o * cos_R - cos_o * cos_i * sin_R,
            -sin_o * sin_R + cos_o * cos_i * cos_R,
            cos_o * sin_i,
        ]
    )

    cos_E = jnp.cos(E)
    sin_E = jnp.sin(E)
    sqrt_1me2 = jnp.sqrt(1.0 - e * e)

    r = a * (cos_E - e) * P + a * sqrt_1me2 * sin_E * Q
    r_mag = jnp.linalg.norm(r)
    v = (jnp.sqrt(gravity.mu * a) / r_mag) * (-sin_E * P + sqrt_1me2 * cos_E * Q)
    return r, v

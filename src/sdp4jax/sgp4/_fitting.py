"""
Least-squares fit of SGP4 mean elements to TEME state vectors.

The unknowns are a TEME position and velocity at the fit epoch, plus B*
when requested. Each estimate is mapped to mean elements through its
osculating Keplerian elements, initialized with ``sgp4_init`` and
propagated to every observation time. Initialization runs in Python, so
the Jacobian columns come from forward differences; the nominal and all
perturbed states are propagated together in one batched call.

References:
    D. A. Vallado and P. Crawford, *SGP4 Orbit Determination*, AIAA/AAS
    Astrodynamics Specialist Conference, 2008.
"""

from __future__ import annotations

import logging
import math
import warnings
from typing import Literal, NamedTuple

import jax
import jax.numpy as jnp
import numpy as np
from jax import Array
from jax.typing import ArrayLike

from sdp4jax.config import get_dtype
from sdp4jax.sgp4._constants import (
    FIT_DIVERGENCE_RESIDUAL,
    FIT_INITIAL_BSTAR,
    FIT_MAX_CORRECTION,
    FIT_MIN_STEP,
    FIT_RELATIVE_STEP,
    MINUTES_PER_DAY,
    TWOPI,
    WGS72,
    EarthGravity,
    resolve_gravity,
)
from sdp4jax.sgp4._errors import (
    ConfigurationError,
    FitDivergenceError,
    NumericalWarning,
    PhysicalDecayError,
)
from sdp4jax.sgp4._initialization import sgp4_init
from sdp4jax.sgp4._propagation import sgp4_propagate
from sdp4jax.sgp4._types import MeanElements

logger = logging.getLogger(__name__)

# States stacked on the leading axis, shared times on the second: (S, N, 3)
_propagate_grid = jax.jit(
    jax.vmap(jax.vmap(sgp4_propagate, in_axes=(None, 0)), in_axes=(0, None))
)


class MeanElementsFit(NamedTuple):
    """Result of :func:`fit_mean_elements`.

    Attributes:
        elements: Fitted mean elements at the fit epoch.
        covariance: ``(7, 7)`` covariance of the unknowns
            ``[rx, ry, rz, vx, vy, vz, bstar]``; the B* row and column are
            zero when B* is not estimated.
        residual: Mean weighted squared residual per observation at the
            last iteration [km^2 with unit weights].
        iterations: Number of iterations performed.
    """

    elements: MeanElements
    covariance: Array
    residual: float
    iterations: int


def state_to_mean_elements(
    r: ArrayLike,
    v: ArrayLike,
    jd: float,
    jd_fraction: float = 0.0,
    *,
    bstar: float = 0.0,
    gravity: str | EarthGravity = WGS72,
) -> MeanElements:
    """Mean elements equal to the osculating elements of a TEME state.

    Osculating elements follow from angular momentum, vis-viva and the
    eccentric anomaly (Montenbruck & Gill Eq. 2.56-2.68). The mean motion
    is taken as the Kozai mean motion, so this is the exact inverse of
    :func:`two_body_state`.

    Args:
        r: TEME position [km].
        v: TEME velocity [km/s].
        jd: Julian date of the state (whole part).
        jd_fraction: Fractional part of the Julian date.
        bstar: B* drag term to attach [1/earth_radii].
        gravity: Gravity model name or :class:`EarthGravity` instance.

    Returns:
        The ``MeanElements`` with epoch ``jd + jd_fraction``.

    Raises:
        ConfigurationError: If the state is not a bound orbit.
    """
    gravity = resolve_gravity(gravity)
    mu = gravity.mu
    rx, ry, rz = (float(c) for c in np.asarray(r, dtype=np.float64))
    vx, vy, vz = (float(c) for c in np.asarray(v, dtype=np.float64))

    r_mag = math.sqrt(rx * rx + ry * ry + rz * rz)
    v_sq = vx * vx + vy * vy + vz * vz

    # Angular momentum
    hx = ry * vz - rz * vy
    hy = rz * vx - rx * vz
    hz = rx * vy - ry * vx
    h_mag = math.sqrt(hx * hx + hy * hy + hz * hz)
    if h_mag == 0.0:
        raise ConfigurationError("State has zero angular momentum")
    wx, wy, wz = hx / h_mag, hy / h_mag, hz / h_mag

    a = 1.0 / (2.0 / r_mag - v_sq / mu)
    if not (math.isfinite(a) and a > 0.0):
        raise ConfigurationError(f"State is not a bound orbit: a={a!r} km")

    inclo = math.atan2(math.hypot(wx, wy), wz)
    nodeo = math.atan2(wx, -wy)
    p = h_mag * h_mag / mu
    n = math.sqrt(mu / (a * a * a))  # rad/s
    ecco = math.sqrt(max(1.0 - p / a, 0.0))

    E = math.atan2((rx * vx + ry * vy + rz * vz) / (n * a * a), 1.0 - r_mag / a)
    mo = E - ecco * math.sin(E)

    # Argument of latitude minus true anomaly
    u = math.atan2(rz, -rx * wy + ry * wx)
    nu = math.atan2(math.sqrt(1.0 - ecco * ecco) * math.sin(E), math.cos(E) - ecco)

    return MeanElements(
        jdsatepoch=jd,
        jdsatepochF=jd_fraction,
        no_kozai=n * 60.0,
        ecco=ecco,
        inclo=inclo,
        nodeo=nodeo % TWOPI,
        argpo=(u - nu) % TWOPI,
        mo=mo % TWOPI,
        bstar=bstar,
    )


def _difference_step(value: float) -> float:
    return math.copysign(max(abs(value) * FIT_RELATIVE_STEP, FIT_MIN_STEP), value)


def fit_mean_elements(
    jd: ArrayLike,
    r: ArrayLike,
    v: ArrayLike,
    *,
    jd_fraction: ArrayLike = 0.0,
    weights: ArrayLike | None = None,
    estimate_bstar: bool = True,
    epoch: Literal["begin", "end"] = "end",
    gravity: str | EarthGravity = WGS72,
    opsmode: str = "i",
    max_iterations: int = 50,
    atol: float = 2.0e-10,
    rtol: float = 2.0e-4,
) -> MeanElementsFit:
    """Fit SGP4 mean elements to a series of TEME state vectors.

    Gauss-Newton on the unknowns ``[r, v, bstar]`` at the fit epoch, with
    each position and velocity correction limited to 10% of ``|r|`` and
    ``|v|``. Iteration stops when the residual drops below *atol*, when its
    relative change drops below *rtol*, or after *max_iterations*.

    Args:
        jd: ``(N,)`` Julian dates of the observations (whole parts, or the
            full dates when *jd_fraction* is zero).
        r: ``(N, 3)`` TEME positions [km].
        v: ``(N, 3)`` TEME velocities [km/s].
        jd_fraction: Fractional parts of the Julian dates, broadcast
            against *jd*.
        weights: ``(6, 6)`` weight matrix applied to each position/velocity
            residual. Defaults to the identity.
        estimate_bstar: Estimate B* as well; otherwise B* is held at zero.
        epoch: Use the first (``"begin"``) or last (``"end"``) observation
            time as the epoch of the fitted elements.
        gravity: Gravity model name or :class:`EarthGravity` instance.
        opsmode: ``"i"`` (improved) or ``"a"`` (legacy AFSPC).
        max_iterations: Iteration cap.
        atol: Residual [km^2] below which the fit has converged.
        rtol: Relative residual change below which the fit has converged.

    Returns:
        A :class:`MeanElementsFit`.

    Raises:
        ValueError: If the inputs have inconsistent shapes or *epoch* is
            not ``"begin"`` or ``"end"``.
        PhysicalDecayError: If an estimate cannot be propagated to every
            observation time.
        FitDivergenceError: If the residual grew three times in a row while
            above 5e5 km^2.

    Examples:
        ```python
        import jax
        import numpy as np
        from sdp4jax.sgp4 import fit_mean_elements, sgp4_init, sgp4_propagate

        state = sgp4_init(elements)
        minutes = np.arange(0.0, 1440.0, 10.0)
        results, _ = jax.vmap(sgp4_propagate, in_axes=(None, 0))(state, minutes)
        fit = fit_mean_elements(
            np.full(minutes.shape, elements.jdsatepoch), results.r, results.v,
            jd_fraction=elements.jdsatepochF + minutes / 1440.0, epoch="begin",
        )
        fit.elements.no_kozai
        ```
    """
    gravity = resolve_gravity(gravity)
    if epoch not in ("begin", "end"):
        raise ValueError(f"epoch must be 'begin' or 'end', got {epoch!r}")

    jd = np.asarray(jd, dtype=np.float64)
    if jd.ndim != 1 or jd.size == 0:
        raise ValueError(f"jd must be a non-empty 1-D array, got shape {jd.shape}")
    jd_fraction = np.broadcast_to(np.asarray(jd_fraction, dtype=np.float64), jd.shape)
    r_obs = np.asarray(r, dtype=np.float64)
    v_obs = np.asarray(v, dtype=np.float64)
    if r_obs.shape != (jd.size, 3) or v_obs.shape != (jd.size, 3):
        raise ValueError(
            f"r and v must have shape ({jd.size}, 3), got {r_obs.shape} and {v_obs.shape}"
        )
    W = np.eye(6) if weights is None else np.asarray(weights, dtype=np.float64)
    if W.shape != (6, 6):
        raise ValueError(f"weights must have shape (6, 6), got {W.shape}")

    dtype = get_dtype()
    k = 0 if epoch == "begin" else -1
    epoch_jd = float(jd[k])
    epoch_fraction = float(jd_fraction[k])
    times = jnp.asarray(
        ((jd - epoch_jd) + (jd_fraction - epoch_fraction)) * MINUTES_PER_DAY, dtype=dtype
    )
    y_obs = jnp.asarray(np.concatenate([r_obs, v_obs], axis=1), dtype=dtype)
    W = jnp.asarray(W, dtype=dtype)
    num_obs = jd.size
    num_unknowns = 7 if estimate_bstar else 6

    def _elements(x: np.ndarray) -> MeanElements:
        return state_to_mean_elements(
            x[:3], x[3:6], epoch_jd, epoch_fraction, bstar=float(x[6]), gravity=gravity
        )

    x = np.concatenate([r_obs[k], v_obs[k], [FIT_INITIAL_BSTAR if estimate_bstar else 0.0]])
    covariance = jnp.zeros((7, 7), dtype=dtype)
    residual_prev = math.nan
    increases = 0
    converged = False

    for iteration in range(1, max_iterations + 1):
        candidates = [x]
        steps = []
        for j in range(num_unknowns):
            step = _difference_step(float(x[j]))
            perturbed = x.copy()
            perturbed[j] += step
            candidates.append(perturbed)
            steps.append(step)

        states = [sgp4_init(_elements(c), gravity, opsmode) for c in candidates]
        batch = jax.tree.map(lambda *xs: jnp.stack(xs), *states)
        results, _ = _propagate_grid(batch, times)

        errors = np.asarray(results.error)
        if errors.any():
            s, n = np.argwhere(errors)[0]
            raise PhysicalDecayError(int(errors[s, n]), float(times[n]))

        y = jnp.concatenate([results.r, results.v], axis=-1)  # (S, N, 6)
        b = y_obs - y[0]
        steps = jnp.asarray(steps, dtype=dtype)
        A = jnp.moveaxis((y[1:] - y[0]) / steps[:, None, None], 0, -1)  # (N, 6, U)

        normal = jnp.einsum("nki,kl,nlj->ij", A, W, A)
        rhs = jnp.einsum("nki,kl,nl->i", A, W, b)
        residual = float(jnp.einsum("nk,kl,nl->", b, W, b)) / num_obs

        P = jnp.linalg.pinv(normal)
        dx = np.zeros(7)
        dx[:num_unknowns] = np.asarray(P @ rhs)
        covariance = covariance.at[:num_unknowns, :num_unknowns].set(P)

        # B* is left unlimited
        r_cap = FIT_MAX_CORRECTION * float(np.linalg.norm(x[:3]))
        v_cap = FIT_MAX_CORRECTION * float(np.linalg.norm(x[3:6]))
        dx[:3] = np.clip(dx[:3], -r_cap, r_cap)
        dx[3:6] = np.clip(dx[3:6], -v_cap, v_cap)
        x = x + dx

        variation = (residual - residual_prev) / residual_prev
        logger.debug(
            "Mean-element fit iteration %d: residual=%.6g km^2, variation=%.3g",
            iteration,
            residual,
            variation,
        )

        increases = increases + 1 if residual > residual_prev else 0
        if increases >= 3 and residual > FIT_DIVERGENCE_RESIDUAL:
            raise FitDivergenceError(
                f"Mean-element fit diverged at iteration {iteration}: residual={residual:.6g} km^2"
            )

        if abs(variation) < rtol or residual < atol:
            converged = True
            break
        residual_prev = residual

    if not converged:
        logger.debug("Mean-element fit reached its iteration cap (%d)", max_iterations)
        warnings.warn(
            f"Mean-element fit did not converge in {max_iterations} iterations "
            f"(residual={residual:.6g} km^2)",
            NumericalWarning,
            stacklevel=2,
        )

    return MeanElementsFit(
        elements=_elements(x),
        covariance=covariance,
        residual=residual,
        iterations=iteration,
    )

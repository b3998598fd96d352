"""
SGP4/SDP4 propagation in JAX.

Each ``PropagationMode`` gets its own branch function, built once at import
time with the mode's flags resolved in Python. ``sgp4_propagate``
dispatches on ``SGP4State.mode`` with ``jax.lax.switch``, so the same
compiled program serves every mode and ``vmap`` over satellites with mixed
modes works unchanged.

All functions here are pure: they return a new ``SGP4State`` carrying the
updated mean elements and resonance checkpoint instead of modifying their
input.
"""

from __future__ import annotations

import jax
import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from sdp4jax.sgp4._constants import (
    ECCENTRICITY_FLOOR,
    KEPLER_MAX_ITERATIONS,
    KEPLER_MAX_STEP,
    KEPLER_TOLERANCE,
    MINUTES_PER_DAY,
    TWOPI,
    X2O3,
)
from sdp4jax.sgp4._deep_space import deep_space_periodics, deep_space_secular
from sdp4jax.sgp4._types import (
    _IDX,
    PropagationError,
    PropagationMode,
    PropagationResult,
    SGP4State,
)

_I = _IDX  # alias for brevity in propagation code


# ---------------------------------------------------------------------------
# Pipeline stages
# ---------------------------------------------------------------------------


def _secular_update(p: Array, t: Array, mode: PropagationMode) -> tuple[Array, ...]:
    """Secular gravity and atmospheric drag at *t*.

    Returns:
        Tuple ``(mm, argpm, nodem, tempa, tempe, templ)``.
    """
    xmdf = p[_I["mo"]] + p[_I["mdot"]] * t
    argpdf = p[_I["argpo"]] + p[_I["argpdot"]] * t
    nodedf = p[_I["nodeo"]] + p[_I["nodedot"]] * t
    argpm = argpdf
    mm = xmdf
    t2 = t * t
    nodem = nodedf + p[_I["nodecf"]] * t2
    tempa = 1.0 - p[_I["cc1"]] * t
    tempe = p[_I["bstar"]] * p[_I["cc4"]] * t
    templ = p[_I["t2cof"]] * t2

    if mode == PropagationMode.NEAR_EARTH_FULL:
        delomg = p[_I["omgcof"]] * t
        delmtemp = 1.0 + p[_I["eta"]] * jnp.cos(xmdf)
        delm = p[_I["xmcof"]] * (delmtemp * delmtemp * delmtemp - p[_I["delmo"]])
        temp = delomg + delm
        mm = xmdf + temp
        argpm = argpdf - temp
        t3 = t2 * t
        t4 = t3 * t
        tempa = tempa - p[_I["d2"]] * t2 - p[_I["d3"]] * t3 - p[_I["d4"]] * t4
        tempe = tempe + p[_I["bstar"]] * p[_I["cc5"]] * (jnp.sin(mm) - p[_I["sinmao"]])
        templ = templ + p[_I["t3cof"]] * t3 + t4 * (p[_I["t4cof"]] + t * p[_I["t5cof"]])

    return mm, argpm, nodem, tempa, tempe, templ


def solve_kepler(u: ArrayLike, axnl: ArrayLike, aynl: ArrayLike) -> tuple[Array, Array]:
    """Solve the modified Kepler equation for the eccentric longitude.

    Newton-Raphson on ``E + w`` with at most ten iterations and each
    correction clamped to +/-0.95 rad. Stops early once the correction
    drops below 1e-12 rad.

    Args:
        u: Mean longitude minus node [rad].
        axnl: ``e cos(w)`` including long-period terms.
        aynl: ``e sin(w)`` including long-period terms.

    Returns:
        Tuple ``(eo1, converged)`` where ``eo1`` is ``E + w`` [rad] and
        ``converged`` is ``False`` when the iteration cap was reached first.
    """

    def _cond(carry):
        _, tem5, ktr = carry
        return (jnp.abs(tem5) >= KEPLER_TOLERANCE) & (ktr <= KEPLER_MAX_ITERATIONS)

    def _body(carry):
        eo1, _, ktr = carry
        sineo1 = jnp.sin(eo1)
        coseo1 = jnp.cos(eo1)
        tem5 = 1.0 - coseo1 * axnl - sineo1 * aynl
        tem5 = (u - aynl * coseo1 + axnl * sineo1 - eo1) / tem5
        tem5 = jnp.clip(tem5, -KEPLER_MAX_STEP, KEPLER_MAX_STEP)
        return eo1 + tem5, tem5, ktr + 1

    u = jnp.asarray(u)
    init = (u, jnp.full_like(u, 9999.9), jnp.asarray(1, dtype=jnp.int32))
    eo1, tem5, _ = jax.lax.while_loop(_cond, _body, init)
    return eo1, jnp.abs(tem5) < KEPLER_TOLERANCE


def _xlcof(j3oj2: Array, sinip: Array, cosip: Array) -> Array:
    denom = jnp.where(jnp.abs(cosip + 1.0) > 1.5e-12, 1.0 + cosip, 1.5e-12)
    return -0.25 * j3oj2 * sinip * (3.0 + 5.0 * cosip) / denom


def _short_period(
    p: Array,
    am: Array,
    nm: Array,
    eo1: Array,
    axnl: Array,
    aynl: Array,
    xincp: Array,
    nodep: Array,
    sinip: Array,
    cosip: Array,
    con41: Array,
    x1mth2: Array,
    x7thm1: Array,
) -> tuple[Array, Array, Array, Array]:
    """Short-period J2 corrections and TEME position/velocity.

    Returns:
        Tuple ``(r, v, mrt, pl)``; ``mrt`` is the corrected radius in Earth
        radii and ``pl`` the semi-latus rectum used for error checks.
    """
    xke = p[_I["xke"]]
    j2 = p[_I["j2"]]
    radiusearthkm = p[_I["radiusearthkm"]]
    vkmpersec = radiusearthkm * xke / 60.0

    sineo1 = jnp.sin(eo1)
    coseo1 = jnp.cos(eo1)
    ecose = axnl * coseo1 + aynl * sineo1
    esine = axnl * sineo1 - aynl * coseo1
    el2 = axnl * axnl + aynl * aynl
    pl = am * (1.0 - el2)

    rl = am * (1.0 - ecose)
    rdotl = jnp.sqrt(am) * esine / rl
    rvdotl = jnp.sqrt(pl) / rl
    betal = jnp.sqrt(1.0 - el2)
    temp = esine / (1.0 + betal)
    sinu = am / rl * (sineo1 - aynl - axnl * temp)
    cosu = am / rl * (coseo1 - axnl + aynl * temp)
    su = jnp.arctan2(sinu, cosu)
    sin2u = (cosu + cosu) * sinu
    cos2u = 1.0 - 2.0 * sinu * sinu
    temp = 1.0 / pl
    temp1 = 0.5 * j2 * temp
    temp2 = temp1 * temp

    mrt = rl * (1.0 - 1.5 * temp2 * betal * con41) + 0.5 * temp1 * x1mth2 * cos2u
    su = su - 0.25 * temp2 * x7thm1 * sin2u
    xnode = nodep + 1.5 * temp2 * cosip * sin2u
    xinc = xincp + 1.5 * temp2 * cosip * sinip * cos2u
    mvt = rdotl - nm * temp1 * x1mth2 * sin2u / xke
    rvdot = rvdotl + nm * temp1 * (x1mth2 * cos2u + 1.5 * con41) / xke

    # Orientation vectors
    sinsu = jnp.sin(su)
    cossu = jnp.cos(su)
    snod = jnp.sin(xnode)
    cnod = jnp.cos(xnode)
    sini = jnp.sin(xinc)
    cosi = jnp.cos(xinc)
    xmx = -snod * cosi
    xmy = cnod * cosi
    ux = xmx * sinsu + cnod * cossu
    uy = xmy * sinsu + snod * cossu
    uz = sini * sinsu
    vx = xmx * cossu - cnod * sinsu
    vy = xmy * cossu - snod * sinsu
    vz = sini * cossu

    _mr = mrt * radiusearthkm
    r = jnp.stack([_mr * ux, _mr * uy, _mr * uz])
    v = jnp.stack(
        [
            (mvt * ux + rvdot * vx) * vkmpersec,
            (mvt * uy + rvdot * vy) * vkmpersec,
            (mvt * uz + rvdot * vz) * vkmpersec,
        ]
    )
    return r, v, mrt, pl


def _error_code(nm_ok: Array, em_ok: Array, ep_ok: Array, pl_ok: Array, mrt: Array) -> Array:
    """Combine the validity checks; earlier checks take precedence."""
    code = jnp.where(mrt < 1.0, int(PropagationError.DECAYED), int(PropagationError.NONE))
    code = jnp.where(pl_ok, code, int(PropagationError.SEMI_LATUS_RECTUM))
    code = jnp.where(ep_ok, code, int(PropagationError.PERTURBED_ECCENTRICITY))
    code = jnp.where(em_ok, code, int(PropagationError.MEAN_ECCENTRICITY))
    code = jnp.where(nm_ok, code, int(PropagationError.MEAN_MOTION))
    return code.astype(jnp.int32)


# ---------------------------------------------------------------------------
# Mode branches
# ---------------------------------------------------------------------------


def _make_branch(mode: PropagationMode):
    """Build the propagation function for one mode.

    The returned function maps ``(params, t, atime, xli, xni)`` to
    ``(r, v, error, converged, elements, atime, xli, xni)``.
    """
    deep = mode.is_deep_space

    def branch(params, t, atime, xli, xni):
        p = params
        xke = p[_I["xke"]]
        no_unkozai = p[_I["no_unkozai"]]

        mm, argpm, nodem, tempa, tempe, templ = _secular_update(p, t, mode)
        em = p[_I["ecco"]]
        inclm = p[_I["inclo"]]
        nm = no_unkozai

        if deep:
            em, argpm, inclm, mm, nodem, nm, atime, xli, xni = deep_space_secular(
                p, t, em, argpm, inclm, mm, nodem, atime, xli, xni, mode
            )

        nm_ok = nm > 0.0
        am = (xke / nm) ** X2O3 * tempa * tempa
        nm = xke / am**1.5
        em = em - tempe
        em_ok = (em < 1.0) & (em >= -0.001)
        em = jnp.maximum(em, ECCENTRICITY_FLOOR)

        mm = mm + no_unkozai * templ
        xlm = mm + argpm + nodem
        nodem = jnp.fmod(nodem, TWOPI)
        argpm = jnp.fmod(argpm, TWOPI)
        xlm = jnp.fmod(xlm, TWOPI)
        mm = jnp.fmod(xlm - argpm - nodem, TWOPI)

        elements = jnp.stack([am * p[_I["radiusearthkm"]], em, inclm, nodem, argpm, nm, mm])

        ep, xincp, nodep, argpp, mp = em, inclm, nodem, argpm, mm
        if deep:
            ep, xincp, nodep, argpp, mp = deep_space_periodics(p, t, ep, xincp, nodep, argpp, mp)
            flip = xincp < 0.0
            xincp = jnp.where(flip, -xincp, xincp)
            nodep = jnp.where(flip, nodep + jnp.pi, nodep)
            argpp = jnp.where(flip, argpp - jnp.pi, argpp)
            ep_ok = ep <= 1.0
            ep = jnp.maximum(ep, ECCENTRICITY_FLOOR)

            sinip = jnp.sin(xincp)
            cosip = jnp.cos(xincp)
            aycof = -0.5 * p[_I["j3oj2"]] * sinip
            xlcof = _xlcof(p[_I["j3oj2"]], sinip, cosip)
            cosisq = cosip * cosip
            con41 = 3.0 * cosisq - 1.0
            x1mth2 = 1.0 - cosisq
            x7thm1 = 7.0 * cosisq - 1.0
        else:
            ep_ok = jnp.asarray(True)
            sinip = jnp.sin(inclm)
            cosip = jnp.cos(inclm)
            aycof = p[_I["aycof"]]
            xlcof = p[_I["xlcof"]]
            con41 = p[_I["con41"]]
            x1mth2 = p[_I["x1mth2"]]
            x7thm1 = p[_I["x7thm1"]]

        # Long-period periodics
        axnl = ep * jnp.cos(argpp)
        temp = 1.0 / (am * (1.0 - ep * ep))
        aynl = ep * jnp.sin(argpp) + temp * aycof
        xl = mp + argpp + nodep + temp * xlcof * axnl

        u = jnp.fmod(xl - nodep, TWOPI)
        eo1, converged = solve_kepler(u, axnl, aynl)

        r, v, mrt, pl = _short_period(
            p, am, nm, eo1, axnl, aynl, xincp, nodep, sinip, cosip, con41, x1mth2, x7thm1
        )

        error = _error_code(nm_ok, em_ok, ep_ok, pl >= 0.0, mrt)
        valid = error == 0
        r = jnp.where(valid, r, jnp.full_like(r, jnp.nan))
        v = jnp.where(valid, v, jnp.full_like(v, jnp.nan))

        return r, v, error, converged, elements, atime, xli, xni

    branch.__name__ = f"_propagate_{mode.name.lower()}"
    return branch


# Indexed by PropagationMode value; one entry per mode.
_BRANCHES = tuple(_make_branch(mode) for mode in PropagationMode)


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------


def sgp4_propagate(state: SGP4State, tsince: ArrayLike) -> tuple[PropagationResult, SGP4State]:
    """Propagate to *tsince* minutes from epoch (JAX, JIT-compatible).

    Args:
        state: State from ``sgp4_init`` or a previous propagation. The
            resonance checkpoint it carries is reused when *tsince* lies
            beyond it in the same direction.
        tsince: Time since epoch [min]. May be negative.

    Returns:
        Tuple ``(result, new_state)``. ``result.r`` is the TEME position
        [km] and ``result.v`` the TEME velocity [km/s], both NaN when
        ``result.error`` is non-zero. ``new_state`` carries the mean
        elements and resonance checkpoint at *tsince*.

    Examples:
        ```python
        import jax
        from sdp4jax.sgp4 import sgp4_init, sgp4_propagate

        state = sgp4_init(elements)
        result, state = jax.jit(sgp4_propagate)(state, 90.0)
        result.r, result.v
        ```
    """
    t = jnp.asarray(tsince, dtype=state.params.dtype)
    r, v, error, converged, elements, atime, xli, xni = jax.lax.switch(
        state.mode, _BRANCHES, state.params, t, state.atime, state.xli, state.xni
    )
    new_state = state._replace(tsince=t, elements=elements, atime=atime, xli=xli, xni=xni)
    return PropagationResult(r=r, v=v, error=error, converged=converged), new_state


def sgp4_step(state: SGP4State, dt: ArrayLike) -> tuple[PropagationResult, SGP4State]:
    """Propagate *dt* minutes past the state's current ``tsince``.

    Args:
        state: State from ``sgp4_init`` or a previous propagation.
        dt: Step [min]. May be negative.

    Returns:
        Tuple ``(result, new_state)`` as for ``sgp4_propagate``.
    """
    return sgp4_propagate(state, state.tsince + dt)


def sgp4_propagate_many(state: SGP4State, times: ArrayLike) -> tuple[PropagationResult, SGP4State]:
    """Propagate sequentially through an array of times with ``jax.lax.scan``.

    The resonance checkpoint is threaded from one time to the next, so an
    increasing sequence of times integrates each 720 minute step only once.

    Args:
        state: State from ``sgp4_init`` or a previous propagation.
        times: 1-D array of times since epoch [min].

    Returns:
        Tuple ``(results, final_state)`` where ``results`` holds stacked
        ``(N, 3)`` positions and velocities and ``(N,)`` error codes and
        convergence flags.
    """
    times = jnp.asarray(times, dtype=state.params.dtype)

    def _scan_step(carry, t):
        result, carry = sgp4_propagate(carry, t)
        return carry, result

    final_state, results = jax.lax.scan(_scan_step, state, times)
    return results, final_state


def tsince_from_epoch(state: SGP4State, jd: ArrayLike, jd_fraction: ArrayLike = 0.0) -> Array:
    """Minutes from the element epoch to the Julian date ``jd + jd_fraction``.

    Whole and fractional parts are differenced separately, so a whole-day
    *jd* keeps sub-second resolution even in float32.
    """
    dtype = state.params.dtype
    days = jnp.asarray(jd, dtype=dtype) - state.params[_I["jdsatepoch"]]
    fraction = jnp.asarray(jd_fraction, dtype=dtype) - state.params[_I["jdsatepochF"]]
    return (days + fraction) * MINUTES_PER_DAY


def sgp4_propagate_to_epoch(
    state: SGP4State, jd: ArrayLike, jd_fraction: ArrayLike = 0.0
) -> tuple[PropagationResult, SGP4State]:
    """Propagate to an absolute Julian date.

    Args:
        state: State from ``sgp4_init`` or a previous propagation.
        jd: Julian date (UTC). Pass the whole part here and the fraction in
            *jd_fraction* to keep full precision.
        jd_fraction: Fractional part of the Julian date.

    Returns:
        Tuple ``(result, new_state)`` as for ``sgp4_propagate``.
    """
    return sgp4_propagate(state, tsince_from_epoch(state, jd, jd_fraction))

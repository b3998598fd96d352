"""
Deep-space (SDP4) initialization and propagation routines.

Initialization (``deep_space_init``) runs at Python time on plain floats:
it evaluates the solar and lunar perturbation series, the lunar-solar
secular rates, and, for resonant orbits, the geopotential resonance
coefficients. The propagation helpers (``deep_space_secular`` and
``deep_space_periodics``) are pure JAX functions used inside the branches
of ``sgp4_propagate``.
"""

from __future__ import annotations

from math import atan2, cos, fmod, pi, sin, sqrt
from typing import NamedTuple

import jax
import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from sdp4jax.sgp4._constants import (
    DAY_OFFSET,
    EARTH_ROTATION_RATE,
    HALF_DAY,
    HALF_DAY_BAND,
    HALF_DAY_FITS_ABOVE_07,
    HALF_DAY_FITS_BELOW_07,
    HALF_DAY_FITS_HIGH_E,
    HALF_DAY_FITS_LOW_E,
    HALF_DAY_G520_HIGH_E,
    HALF_DAY_G520_MID_E,
    HALF_DAY_MIN_ECCENTRICITY,
    LUNAR,
    LUNAR_EPHEMERIS,
    LYDDANE_INCLINATION,
    RESONANCE_STEP,
    RESONANCE_STEP2,
    SHALLOW_INCLINATION,
    SOLAR,
    SOLAR_ANOMALY_AT_EPOCH,
    SOLAR_ANOMALY_RATE,
    SOLAR_GEOMETRY,
    SYNCHRONOUS,
    SYNCHRONOUS_BAND,
    TWOPI,
    X2O3,
)
from sdp4jax.sgp4._types import _IDX, PropagationMode

# ---------------------------------------------------------------------------
# Python-time deep-space init helpers
# ---------------------------------------------------------------------------


class _Orientation(NamedTuple):
    """Orientation of a perturbing body's orbit (cos/sin of g, i and h)."""

    cosg: float
    sing: float
    cosi: float
    sini: float
    cosh: float
    sinh: float


class _OrbitTrig(NamedTuple):
    """Satellite quantities shared by the solar and lunar series."""

    em: float
    emsq: float
    betasq: float
    rtemsq: float
    sinim: float
    cosim: float
    sinomm: float
    cosomm: float
    xnoi: float


class _BodyTerms(NamedTuple):
    """Series coefficients for one perturbing body."""

    s1: float
    s2: float
    s3: float
    s4: float
    s5: float
    s6: float
    s7: float
    z1: float
    z2: float
    z3: float
    z11: float
    z12: float
    z13: float
    z21: float
    z22: float
    z23: float
    z31: float
    z32: float
    z33: float


def _third_body_terms(g: _Orientation, coupling: float, orb: _OrbitTrig) -> _BodyTerms:
    """Evaluate the perturbation series of one body against the satellite orbit."""
    a1 = g.cosg * g.cosh + g.sing * g.cosi * g.sinh
    a3 = -g.sing * g.cosh + g.cosg * g.cosi * g.sinh
    a7 = -g.cosg * g.sinh + g.sing * g.cosi * g.cosh
    a8 = g.sing * g.sini
    a9 = g.sing * g.sinh + g.cosg * g.cosi * g.cosh
    a10 = g.cosg * g.sini
    a2 = orb.cosim * a7 + orb.sinim * a8
    a4 = orb.cosim * a9 + orb.sinim * a10
    a5 = -orb.sinim * a7 + orb.cosim * a8
    a6 = -orb.sinim * a9 + orb.cosim * a10

    x1 = a1 * orb.cosomm + a2 * orb.sinomm
    x2 = a3 * orb.cosomm + a4 * orb.sinomm
    x3 = -a1 * orb.sinomm + a2 * orb.cosomm
    x4 = -a3 * orb.sinomm + a4 * orb.cosomm
    x5 = a5 * orb.sinomm
    x6 = a6 * orb.sinomm
    x7 = a5 * orb.cosomm
    x8 = a6 * orb.cosomm

    emsq = orb.emsq
    z31 = 12.0 * x1 * x1 - 3.0 * x3 * x3
    z32 = 24.0 * x1 * x2 - 6.0 * x3 * x4
    z33 = 12.0 * x2 * x2 - 3.0 * x4 * x4
    z1 = 3.0 * (a1 * a1 + a2 * a2) + z31 * emsq
    z2 = 6.0 * (a1 * a3 + a2 * a4) + z32 * emsq
    z3 = 3.0 * (a3 * a3 + a4 * a4) + z33 * emsq
    z11 = -6.0 * a1 * a5 + emsq * (-24.0 * x1 * x7 - 6.0 * x3 * x5)
    z12 = -6.0 * (a1 * a6 + a3 * a5) + emsq * (
        -24.0 * (x2 * x7 + x1 * x8) - 6.0 * (x3 * x6 + x4 * x5)
    )
    z13 = -6.0 * a3 * a6 + emsq * (-24.0 * x2 * x8 - 6.0 * x4 * x6)
    z21 = 6.0 * a2 * a5 + emsq * (24.0 * x1 * x5 - 6.0 * x3 * x7)
    z22 = 6.0 * (a4 * a5 + a2 * a6) + emsq * (
        24.0 * (x2 * x5 + x1 * x6) - 6.0 * (x4 * x7 + x3 * x8)
    )
    z23 = 6.0 * a4 * a6 + emsq * (24.0 * x2 * x6 - 6.0 * x4 * x8)
    z1 = z1 + z1 + orb.betasq * z31
    z2 = z2 + z2 + orb.betasq * z32
    z3 = z3 + z3 + orb.betasq * z33

    s3 = coupling * orb.xnoi
    s2 = -0.5 * s3 / orb.rtemsq
    s4 = s3 * orb.rtemsq
    s1 = -15.0 * orb.em * s4
    s5 = x1 * x3 + x2 * x4
    s6 = x2 * x3 + x1 * x4
    s7 = x2 * x4 - x1 * x3

    return _BodyTerms(
        s1, s2, s3, s4, s5, s6, s7,
        z1, z2, z3, z11, z12, z13, z21, z22, z23, z31, z32, z33,
    )


def _lunar_orientation(day: float, cnodm: float, snodm: float) -> tuple[_Orientation, float]:
    """Orientation of the lunar orbit at *day* (days since 1900 Jan 0.5).

    Returns:
        Tuple of the lunar ``_Orientation`` relative to the satellite node
        and the lunar perigee longitude ``gam`` [rad].
    """
    eph = LUNAR_EPHEMERIS
    xnodce = fmod(eph.node_at_epoch + eph.node_rate * day, TWOPI)
    stem = sin(xnodce)
    ctem = cos(xnodce)
    zcosil = eph.cos_inclination_mean + eph.cos_inclination_amplitude * ctem
    zsinil = sqrt(1.0 - zcosil * zcosil)
    zsinhl = eph.sin_node_scale * stem / zsinil
    zcoshl = sqrt(1.0 - zsinhl * zsinhl)
    gam = eph.perigee_at_epoch + eph.perigee_rate * day
    zx = SOLAR_GEOMETRY.sin_inclination * stem / zsinil
    zy = zcoshl * ctem + SOLAR_GEOMETRY.cos_inclination * zsinhl * stem
    zx = atan2(zx, zy)
    zx = gam + zx - xnodce
    orientation = _Orientation(
        cosg=cos(zx),
        sing=sin(zx),
        cosi=zcosil,
        sini=zsinil,
        cosh=zcoshl * cnodm + zsinhl * snodm,
        sinh=snodm * zcoshl - cnodm * zsinhl,
    )
    return orientation, gam


def _periodic_amplitudes(
    terms: _BodyTerms, body_eccentricity: float, emsq: float
) -> tuple[float, ...]:
    """Periodic amplitudes (e, i, l, gh, h) of one body, in table order."""
    t = terms
    return (
        2.0 * t.s1 * t.s6,
        2.0 * t.s1 * t.s7,
        2.0 * t.s2 * t.z12,
        2.0 * t.s2 * (t.z13 - t.z11),
        -2.0 * t.s3 * t.z2,
        -2.0 * t.s3 * (t.z3 - t.z1),
        -2.0 * t.s3 * (-21.0 - 9.0 * emsq) * body_eccentricity,
        2.0 * t.s4 * t.z32,
        2.0 * t.s4 * (t.z33 - t.z31),
        -18.0 * t.s4 * body_eccentricity,
        -2.0 * t.s2 * t.z22,
        -2.0 * t.s2 * (t.z23 - t.z21),
    )


_SOLAR_AMPLITUDES = ("se2", "se3", "si2", "si3", "sl2", "sl3", "sl4", "sgh2", "sgh3", "sgh4", "sh2", "sh3")
_LUNAR_AMPLITUDES = ("ee2", "e3", "xi2", "xi3", "xl2", "xl3", "xl4", "xgh2", "xgh3", "xgh4", "xh2", "xh3")


def _secular_rates(
    body: _BodyTerms, rate: float, emsq: float, inclo: float
) -> tuple[float, float, float, float, float]:
    """Secular rates (e, i, l, gh, h) contributed by one body."""
    edot = body.s1 * rate * body.s5
    idot = body.s2 * rate * (body.z11 + body.z13)
    ldot = -rate * body.s3 * (body.z1 + body.z3 - 14.0 - 6.0 * emsq)
    ghdot = body.s4 * rate * (body.z31 + body.z33 - 6.0)
    hdot = -rate * body.s2 * (body.z21 + body.z23)
    if inclo < SHALLOW_INCLINATION or inclo > pi - SHALLOW_INCLINATION:
        hdot = 0.0
    return edot, idot, ldot, ghdot, hdot


def _fit(coefficients: tuple[float, ...], em: float, emsq: float, eoc: float) -> float:
    value = coefficients[0] + coefficients[1] * em + coefficients[2] * emsq
    if len(coefficients) > 3:
        value = value + coefficients[3] * eoc
    return value


def _half_day_coefficients(
    d: dict[str, float], em: float, emsq: float, sinim: float, cosim: float, nm: float, aonv: float
) -> None:
    """Fill the 12 h resonance coefficients d2201..d5433 into *d*."""
    eoc = em * emsq
    g201 = -0.306 - (em - 0.64) * 0.440

    fits = dict(HALF_DAY_FITS_LOW_E if em <= 0.65 else HALF_DAY_FITS_HIGH_E)
    if em > 0.715:
        fits["g520"] = HALF_DAY_G520_HIGH_E
    elif em > 0.65:
        fits["g520"] = HALF_DAY_G520_MID_E
    fits.update(HALF_DAY_FITS_BELOW_07 if em < 0.7 else HALF_DAY_FITS_ABOVE_07)
    g = {name: _fit(c, em, emsq, eoc) for name, c in fits.items()}

    cosisq = cosim * cosim
    sini2 = sinim * sinim
    f220 = 0.75 * (1.0 + 2.0 * cosim + cosisq)
    f221 = 1.5 * sini2
    f321 = 1.875 * sinim * (1.0 - 2.0 * cosim - 3.0 * cosisq)
    f322 = -1.875 * sinim * (1.0 + 2.0 * cosim - 3.0 * cosisq)
    f441 = 35.0 * sini2 * f220
    f442 = 39.3750 * sini2 * sini2
    f522 = (
        9.84375
        * sinim
        * (
            sini2 * (1.0 - 2.0 * cosim - 5.0 * cosisq)
            + 0.33333333 * (-2.0 + 4.0 * cosim + 6.0 * cosisq)
        )
    )
    f523 = sinim * (
        4.92187512 * sini2 * (-2.0 - 4.0 * cosim + 10.0 * cosisq)
        + 6.56250012 * (1.0 + 2.0 * cosim - 3.0 * cosisq)
    )
    f542 = 29.53125 * sinim * (2.0 - 8.0 * cosim + cosisq * (-12.0 + 8.0 * cosim + 10.0 * cosisq))
    f543 = 29.53125 * sinim * (-2.0 - 8.0 * cosim + cosisq * (12.0 + 8.0 * cosim - 10.0 * cosisq))

    res = HALF_DAY
    ainv2 = aonv * aonv
    temp1 = 3.0 * nm * nm * ainv2
    temp = temp1 * res.root22
    d["d2201"] = temp * f220 * g201
    d["d2211"] = temp * f221 * g["g211"]
    temp1 = temp1 * aonv
    temp = temp1 * res.root32
    d["d3210"] = temp * f321 * g["g310"]
    d["d3222"] = temp * f322 * g["g322"]
    temp1 = temp1 * aonv
    temp = 2.0 * temp1 * res.root44
    d["d4410"] = temp * f441 * g["g410"]
    d["d4422"] = temp * f442 * g["g422"]
    temp1 = temp1 * aonv
    temp = temp1 * res.root52
    d["d5220"] = temp * f522 * g["g520"]
    d["d5232"] = temp * f523 * g["g532"]
    temp = 2.0 * temp1 * res.root54
    d["d5421"] = temp * f542 * g["g521"]
    d["d5433"] = temp * f543 * g["g533"]


def _synchronous_coefficients(
    d: dict[str, float], emsq: float, sinim: float, cosim: float, nm: float, aonv: float
) -> None:
    """Fill the 24 h resonance coefficients del1..del3 into *d*."""
    g200 = 1.0 + emsq * (-2.5 + 0.8125 * emsq)
    g310 = 1.0 + 2.0 * emsq
    g300 = 1.0 + emsq * (-6.0 + 6.60937 * emsq)
    f220 = 0.75 * (1.0 + cosim) * (1.0 + cosim)
    f311 = 0.9375 * sinim * sinim * (1.0 + 3.0 * cosim) - 0.75 * (1.0 + cosim)
    f330 = 1.0 + cosim
    f330 = 1.875 * f330 * f330 * f330
    del1 = 3.0 * nm * nm * aonv * aonv
    d["del2"] = 2.0 * del1 * f220 * g200 * SYNCHRONOUS.q22
    d["del3"] = 3.0 * del1 * f330 * g300 * SYNCHRONOUS.q33 * aonv
    d["del1"] = del1 * f311 * g310 * SYNCHRONOUS.q31 * aonv


def resonance_mode(no_unkozai: float, ecco: float) -> PropagationMode:
    """Classify a deep-space orbit by its geopotential resonance."""
    if SYNCHRONOUS_BAND[0] < no_unkozai < SYNCHRONOUS_BAND[1]:
        return PropagationMode.DEEP_SPACE_SYNCHRONOUS
    if HALF_DAY_BAND[0] <= no_unkozai <= HALF_DAY_BAND[1] and ecco >= HALF_DAY_MIN_ECCENTRICITY:
        return PropagationMode.DEEP_SPACE_HALF_DAY
    return PropagationMode.DEEP_SPACE_NON_RESONANT


# ---------------------------------------------------------------------------
# Deep-space init orchestrator
# ---------------------------------------------------------------------------


def deep_space_init(
    d: dict[str, float],
    *,
    epoch: float,
    xke: float,
    ecco: float,
    inclo: float,
    nodeo: float,
    argpo: float,
    mo: float,
    no_unkozai: float,
    gsto: float,
    mdot: float,
    nodedot: float,
    xpidot: float,
) -> PropagationMode:
    """Initialize the deep-space parameters. Modifies ``d`` in place.

    Args:
        d: Parameter dictionary being assembled by ``sgp4_init``.
        epoch: Days since 1950 Jan 0.
        xke: Gravity constant xke.
        ecco, inclo, nodeo, argpo, mo: Elements at epoch [rad].
        no_unkozai: Recovered (Brouwer) mean motion [rad/min].
        gsto: Greenwich sidereal time at epoch [rad].
        mdot, nodedot: Secular rates of M and the node from the zonals.
        xpidot: Secular rate of the longitude of perigee.

    Returns:
        The deep-space ``PropagationMode`` of the orbit.
    """
    snodm = sin(nodeo)
    cnodm = cos(nodeo)
    emsq = ecco * ecco
    betasq = 1.0 - emsq
    orb = _OrbitTrig(
        em=ecco,
        emsq=emsq,
        betasq=betasq,
        rtemsq=sqrt(betasq),
        sinim=sin(inclo),
        cosim=cos(inclo),
        sinomm=sin(argpo),
        cosomm=cos(argpo),
        xnoi=1.0 / no_unkozai,
    )

    day = epoch + DAY_OFFSET
    solar_orientation = _Orientation(
        cosg=SOLAR_GEOMETRY.cos_perigee,
        sing=SOLAR_GEOMETRY.sin_perigee,
        cosi=SOLAR_GEOMETRY.cos_inclination,
        sini=SOLAR_GEOMETRY.sin_inclination,
        cosh=cnodm,
        sinh=snodm,
    )
    lunar_orientation, gam = _lunar_orientation(day, cnodm, snodm)
    solar = _third_body_terms(solar_orientation, SOLAR.coupling, orb)
    lunar = _third_body_terms(lunar_orientation, LUNAR.coupling, orb)

    d.update(zip(_SOLAR_AMPLITUDES, _periodic_amplitudes(solar, SOLAR.eccentricity, emsq)))
    d.update(zip(_LUNAR_AMPLITUDES, _periodic_amplitudes(lunar, LUNAR.eccentricity, emsq)))
    d["zmol"] = fmod(LUNAR_EPHEMERIS.longitude_at_epoch + LUNAR_EPHEMERIS.longitude_rate * day - gam, TWOPI)
    d["zmos"] = fmod(SOLAR_ANOMALY_AT_EPOCH + SOLAR_ANOMALY_RATE * day, TWOPI)

    # Lunar-solar secular rates
    ses, sis, sls, sghs, shs = _secular_rates(solar, SOLAR.mean_motion, emsq, inclo)
    sel, sil, sll, sghl, shll = _secular_rates(lunar, LUNAR.mean_motion, emsq, inclo)
    if orb.sinim != 0.0:
        shs = shs / orb.sinim
    sgs = sghs - orb.cosim * shs
    d["dedt"] = ses + sel
    d["didt"] = sis + sil
    d["dmdt"] = sls + sll
    domdt = sgs + sghl
    dnodt = shs
    if orb.sinim != 0.0:
        domdt = domdt - orb.cosim / orb.sinim * shll
        dnodt = dnodt + shll / orb.sinim
    d["domdt"] = domdt
    d["dnodt"] = dnodt

    mode = resonance_mode(no_unkozai, ecco)
    if not mode.is_resonant:
        return mode

    theta = fmod(gsto, TWOPI)
    aonv = (no_unkozai / xke) ** X2O3
    if mode == PropagationMode.DEEP_SPACE_HALF_DAY:
        _half_day_coefficients(d, ecco, emsq, orb.sinim, orb.cosim, no_unkozai, aonv)
        d["xlamo"] = fmod(mo + nodeo + nodeo - theta - theta, TWOPI)
        d["xfact"] = mdot + d["dmdt"] + 2.0 * (nodedot + dnodt - EARTH_ROTATION_RATE) - no_unkozai
    else:
        _synchronous_coefficients(d, emsq, orb.sinim, orb.cosim, no_unkozai, aonv)
        d["xlamo"] = fmod(mo + nodeo + argpo - theta, TWOPI)
        d["xfact"] = (
            mdot + xpidot - EARTH_ROTATION_RATE + d["dmdt"] + domdt + dnodt - no_unkozai
        )
    return mode


# ---------------------------------------------------------------------------
# JAX propagation helpers
# ---------------------------------------------------------------------------


def _synchronous_rates(p: Array, atime: Array, xli: Array, xni: Array) -> tuple[Array, Array, Array]:
    """Phase rate, phase acceleration and its derivative for 24 h resonance."""
    res = SYNCHRONOUS
    del1 = p[_IDX["del1"]]
    del2 = p[_IDX["del2"]]
    del3 = p[_IDX["del3"]]
    xndt = (
        del1 * jnp.sin(xli - res.fasx2)
        + del2 * jnp.sin(2.0 * (xli - res.fasx4))
        + del3 * jnp.sin(3.0 * (xli - res.fasx6))
    )
    xldot = xni + p[_IDX["xfact"]]
    xnddt = (
        del1 * jnp.cos(xli - res.fasx2)
        + 2.0 * del2 * jnp.cos(2.0 * (xli - res.fasx4))
        + 3.0 * del3 * jnp.cos(3.0 * (xli - res.fasx6))
    )
    return xndt, xldot, xnddt * xldot


def _half_day_rates(p: Array, atime: Array, xli: Array, xni: Array) -> tuple[Array, Array, Array]:
    """Phase rate, phase acceleration and its derivative for 12 h resonance."""
    res = HALF_DAY
    d2201 = p[_IDX["d2201"]]
    d2211 = p[_IDX["d2211"]]
    d3210 = p[_IDX["d3210"]]
    d3222 = p[_IDX["d3222"]]
    d4410 = p[_IDX["d4410"]]
    d4422 = p[_IDX["d4422"]]
    d5220 = p[_IDX["d5220"]]
    d5232 = p[_IDX["d5232"]]
    d5421 = p[_IDX["d5421"]]
    d5433 = p[_IDX["d5433"]]

    xomi = p[_IDX["argpo"]] + p[_IDX["argpdot"]] * atime
    x2omi = xomi + xomi
    x2li = xli + xli
    xndt = (
        d2201 * jnp.sin(x2omi + xli - res.g22)
        + d2211 * jnp.sin(xli - res.g22)
        + d3210 * jnp.sin(xomi + xli - res.g32)
        + d3222 * jnp.sin(-xomi + xli - res.g32)
        + d4410 * jnp.sin(x2omi + x2li - res.g44)
        + d4422 * jnp.sin(x2li - res.g44)
        + d5220 * jnp.sin(xomi + xli - res.g52)
        + d5232 * jnp.sin(-xomi + xli - res.g52)
        + d5421 * jnp.sin(xomi + x2li - res.g54)
        + d5433 * jnp.sin(-xomi + x2li - res.g54)
    )
    xldot = xni + p[_IDX["xfact"]]
    xnddt = (
        d2201 * jnp.cos(x2omi + xli - res.g22)
        + d2211 * jnp.cos(xli - res.g22)
        + d3210 * jnp.cos(xomi + xli - res.g32)
        + d3222 * jnp.cos(-xomi + xli - res.g32)
        + d5220 * jnp.cos(xomi + xli - res.g52)
        + d5232 * jnp.cos(-xomi + xli - res.g52)
        + 2.0
        * (
            d4410 * jnp.cos(x2omi + x2li - res.g44)
            + d4422 * jnp.cos(x2li - res.g44)
            + d5421 * jnp.cos(xomi + x2li - res.g54)
            + d5433 * jnp.cos(-xomi + x2li - res.g54)
        )
    )
    return xndt, xldot, xnddt * xldot


def deep_space_secular(
    params: Array,
    t: ArrayLike,
    em: ArrayLike,
    argpm: ArrayLike,
    inclm: ArrayLike,
    mm: ArrayLike,
    nodem: ArrayLike,
    atime: ArrayLike,
    xli: ArrayLike,
    xni: ArrayLike,
    mode: PropagationMode,
) -> tuple[Array, Array, Array, Array, Array, Array, Array, Array, Array]:
    """Lunar-solar secular effects and resonance integration (JAX).

    The resonance terms are integrated from a checkpoint ``(atime, xli,
    xni)`` in fixed 720 minute steps followed by one partial step to *t*.
    The integration resumes from the checkpoint when *t* lies further from
    epoch than ``atime`` in the same direction; otherwise it restarts at
    epoch. The returned checkpoint is the last whole step, so propagating
    to t1 and then to t2 gives the same result as propagating to t2 alone.

    Args:
        params: Flat parameter array.
        t: Time since epoch [min].
        em, argpm, inclm, mm, nodem: Elements after the zonal and drag
            secular update.
        atime, xli, xni: Resonance checkpoint.
        mode: Deep-space propagation mode, resolved at trace time.

    Returns:
        Tuple ``(em, argpm, inclm, mm, nodem, nm, atime, xli, xni)``.
    """
    p = params
    no = p[_IDX["no_unkozai"]]

    em = em + p[_IDX["dedt"]] * t
    inclm = inclm + p[_IDX["didt"]] * t
    argpm = argpm + p[_IDX["domdt"]] * t
    nodem = nodem + p[_IDX["dnodt"]] * t
    mm = mm + p[_IDX["dmdt"]] * t
    nm = no

    if not mode.is_resonant:
        return em, argpm, inclm, mm, nodem, nm, atime, xli, xni

    rates = _half_day_rates if mode == PropagationMode.DEEP_SPACE_HALF_DAY else _synchronous_rates
    theta = jnp.fmod(p[_IDX["gsto"]] + t * EARTH_ROTATION_RATE, TWOPI)

    restart = (atime == 0.0) | (t * atime <= 0.0) | (jnp.abs(t) < jnp.abs(atime))
    atime = jnp.where(restart, 0.0, atime)
    xli = jnp.where(restart, p[_IDX["xlamo"]], xli)
    xni = jnp.where(restart, no, xni)
    delt = jnp.where(t > 0.0, RESONANCE_STEP, -RESONANCE_STEP)

    def _loop_cond(carry):
        atime_s, _, _ = carry
        return jnp.abs(t - atime_s) >= RESONANCE_STEP

    def _loop_body(carry):
        atime_s, xli_s, xni_s = carry
        xndt, xldot, xnddt = rates(p, atime_s, xli_s, xni_s)
        xli_s = xli_s + xldot * delt + xndt * RESONANCE_STEP2
        xni_s = xni_s + xndt * delt + xnddt * RESONANCE_STEP2
        return atime_s + delt, xli_s, xni_s

    atime, xli, xni = jax.lax.while_loop(_loop_cond, _loop_body, (atime, xli, xni))

    ft = t - atime
    xndt, xldot, xnddt = rates(p, atime, xli, xni)
    nm = xni + xndt * ft + xnddt * ft * ft * 0.5
    xl = xli + xldot * ft + xndt * ft * ft * 0.5
    if mode == PropagationMode.DEEP_SPACE_SYNCHRONOUS:
        mm = xl - nodem - argpm + theta
    else:
        mm = xl - 2.0 * nodem + 2.0 * theta
    dndt = nm - no
    nm = no + dndt

    return em, argpm, inclm, mm, nodem, nm, atime, xli, xni


def _body_periodics(zm: Array, body_eccentricity: float) -> tuple[Array, Array, Array]:
    zf = zm + 2.0 * body_eccentricity * jnp.sin(zm)
    sinzf = jnp.sin(zf)
    f2 = 0.5 * sinzf * sinzf - 0.25
    f3 = -0.5 * sinzf * jnp.cos(zf)
    return f2, f3, sinzf


def deep_space_periodics(
    params: Array,
    t: ArrayLike,
    ep: ArrayLike,
    inclp: ArrayLike,
    nodep: ArrayLike,
    argpp: ArrayLike,
    mp: ArrayLike,
) -> tuple[Array, Array, Array, Array, Array]:
    """Apply the lunar-solar periodic perturbations (JAX).

    Above 0.2 rad of perturbed inclination the corrections are added
    directly; below it Lyddane's formulation avoids the 1/sin(i)
    singularity.

    Returns:
        Tuple of ``(ep, inclp, nodep, argpp, mp)`` with perturbations applied.
    """
    p = params

    def amp(name):
        return p[_IDX[name]]

    f2, f3, sinzf = _body_periodics(amp("zmos") + SOLAR.mean_motion * t, SOLAR.eccentricity)
    ses = amp("se2") * f2 + amp("se3") * f3
    sis = amp("si2") * f2 + amp("si3") * f3
    sls = amp("sl2") * f2 + amp("sl3") * f3 + amp("sl4") * sinzf
    sghs = amp("sgh2") * f2 + amp("sgh3") * f3 + amp("sgh4") * sinzf
    shs = amp("sh2") * f2 + amp("sh3") * f3

    f2, f3, sinzf = _body_periodics(amp("zmol") + LUNAR.mean_motion * t, LUNAR.eccentricity)
    sel = amp("ee2") * f2 + amp("e3") * f3
    sil = amp("xi2") * f2 + amp("xi3") * f3
    sll = amp("xl2") * f2 + amp("xl3") * f3 + amp("xl4") * sinzf
    sghl = amp("xgh2") * f2 + amp("xgh3") * f3 + amp("xgh4") * sinzf
    shll = amp("xh2") * f2 + amp("xh3") * f3

    pe = ses + sel
    pinc = sis + sil
    pl = sls + sll
    pgh = sghs + sghl
    ph = shs + shll

    inclp = inclp + pinc
    ep = ep + pe
    sinip = jnp.sin(inclp)
    cosip = jnp.cos(inclp)

    # Direct application
    ph_direct = ph / sinip
    pgh_direct = pgh - cosip * ph_direct
    argpp_direct = argpp + pgh_direct
    nodep_direct = nodep + ph_direct

    # Lyddane modification
    afspc = amp("afspc") > 0.5
    sinop = jnp.sin(nodep)
    cosop = jnp.cos(nodep)
    alfdp = sinip * sinop + (ph * cosop + pinc * cosip * sinop)
    betdp = sinip * cosop + (-ph * sinop + pinc * cosip * cosop)
    xnoh = jnp.fmod(nodep, TWOPI)
    xnoh = jnp.where(afspc & (xnoh < 0.0), xnoh + TWOPI, xnoh)
    xls = mp + argpp + cosip * xnoh
    xls = xls + (pl + pgh - pinc * xnoh * sinip)
    nodep_lyd = jnp.arctan2(alfdp, betdp)
    nodep_lyd = jnp.where(afspc & (nodep_lyd < 0.0), nodep_lyd + TWOPI, nodep_lyd)
    nodep_lyd = jnp.where(
        jnp.abs(xnoh - nodep_lyd) > jnp.pi,
        jnp.where(nodep_lyd < xnoh, nodep_lyd + TWOPI, nodep_lyd - TWOPI),
        nodep_lyd,
    )
    argpp_lyd = xls - (mp + pl) - cosip * nodep_lyd

    use_direct = inclp >= LYDDANE_INCLINATION
    argpp = jnp.where(use_direct, argpp_direct, argpp_lyd)
    nodep = jnp.where(use_direct, nodep_direct, nodep_lyd)
    mp = mp + pl

    return ep, inclp, nodep, argpp, mp

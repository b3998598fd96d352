"""
SGP4/SDP4 initialization.

``sgp4_init`` runs at Python time (not under JIT). It validates the mean
elements, recovers the Brouwer mean motion and semi-major axis from the
Kozai mean motion, computes the drag and secular coefficients, selects the
propagation mode, and packs everything into an ``SGP4State``.
"""

from __future__ import annotations

import logging
from math import cos, fabs, isfinite, pi, sin, sqrt

import jax.numpy as jnp

from sdp4jax.config import get_dtype
from sdp4jax.sgp4._constants import (
    DEEP_SPACE_PERIOD,
    JD_1950,
    LOW_PERIGEE_ALTITUDE,
    TWOPI,
    WGS72,
    X2O3,
    EarthGravity,
    resolve_gravity,
)
from sdp4jax.sgp4._deep_space import deep_space_init
from sdp4jax.sgp4._errors import ConfigurationError
from sdp4jax.sgp4._types import _PARAM_NAMES, MeanElements, PropagationMode, SGP4State

logger = logging.getLogger(__name__)

_OPSMODES = ("a", "i")


def _gstime(jdut1: float) -> float:
    """Greenwich mean sidereal time (IAU-82) from a UT1 Julian date [rad]."""
    tut1 = (jdut1 - 2451545.0) / 36525.0
    temp = (
        -6.2e-6 * tut1 * tut1 * tut1
        + 0.093104 * tut1 * tut1
        + (876600.0 * 3600 + 8640184.812866) * tut1
        + 67310.54841
    )
    temp = (temp * (pi / 180.0) / 240.0) % TWOPI
    if temp < 0.0:
        temp += TWOPI
    return temp


def _gstime_afspc(epoch: float) -> float:
    """Greenwich sidereal time with the legacy AFSPC 1970-based formula [rad].

    Args:
        epoch: Days since 1950 Jan 0.
    """
    ts70 = epoch - 7305.0
    ds70 = (ts70 + 1.0e-8) // 1.0
    tfrac = ts70 - ds70
    c1 = 1.72027916940703639e-2
    thgr70 = 1.7321343856509374
    fk5r = 5.07551419432269442e-15
    c1p2p = c1 + TWOPI
    gsto = (thgr70 + c1 * ds70 + c1p2p * tfrac + ts70 * ts70 * fk5r) % TWOPI
    if gsto < 0.0:
        gsto = gsto + TWOPI
    return gsto


def _recover_mean_motion(xke: float, j2: float, ecco: float, inclo: float, no_kozai: float) -> float:
    """Recover the Brouwer mean motion from the Kozai mean motion [rad/min]."""
    eccsq = ecco * ecco
    omeosq = 1.0 - eccsq
    rteosq = sqrt(omeosq)
    cosio = cos(inclo)
    cosio2 = cosio * cosio

    ak = (xke / no_kozai) ** X2O3
    d1 = 0.75 * j2 * (3.0 * cosio2 - 1.0) / (rteosq * omeosq)
    del_ = d1 / (ak * ak)
    adel = ak * (1.0 - del_ * del_ - del_ * (1.0 / 3.0 + 134.0 * del_ * del_ / 81.0))
    del_ = d1 / (adel * adel)
    return no_kozai / (1.0 + del_)


def _validate(elements: MeanElements, opsmode: str) -> None:
    for name in ("jdsatepoch", "jdsatepochF", "no_kozai", "ecco", "inclo", "nodeo", "argpo", "mo", "bstar"):
        value = getattr(elements, name)
        if not isfinite(value):
            raise ConfigurationError(f"Element {name} must be finite, got {value!r}")
    if not 0.0 <= elements.ecco < 1.0:
        raise ConfigurationError(f"Eccentricity must be in [0, 1), got {elements.ecco!r}")
    if elements.no_kozai <= 0.0:
        raise ConfigurationError(
            f"Mean motion must be positive (semi-major axis undefined), got {elements.no_kozai!r}"
        )
    if opsmode not in _OPSMODES:
        raise ConfigurationError(f"opsmode must be one of {_OPSMODES}, got {opsmode!r}")


def sgp4_init(
    elements: MeanElements,
    gravity: str | EarthGravity = WGS72,
    opsmode: str = "i",
) -> SGP4State:
    """Initialize an SGP4/SDP4 propagator state from mean elements.

    This function runs at Python time (not under JIT). It computes all the
    coefficients needed by ``sgp4_propagate`` and packs them into a flat
    JAX array in the configured float dtype.

    Args:
        elements: Mean elements at epoch.
        gravity: Earth gravity model (``EarthGravity`` or model name).
        opsmode: Operation mode; ``'i'`` (improved) or ``'a'`` (legacy
            AFSPC sidereal time and node handling).

    Returns:
        The initialized ``SGP4State`` with ``tsince`` zero and the
        resonance checkpoint at epoch.

    Raises:
        ConfigurationError: If the elements are not finite, the
            eccentricity is outside ``[0, 1)``, the mean motion is not
            positive, or the recovered semi-major axis is not positive.
    """
    gravity = resolve_gravity(gravity)
    _validate(elements, opsmode)

    d: dict[str, float] = {name: 0.0 for name in _PARAM_NAMES}
    re = gravity.radiusearthkm
    j2 = gravity.j2
    ecco = elements.ecco
    inclo = elements.inclo
    argpo = elements.argpo
    bstar = elements.bstar

    d["radiusearthkm"] = re
    d["xke"] = gravity.xke
    d["j2"] = j2
    d["j3oj2"] = gravity.j3oj2
    d["bstar"] = bstar
    d["ecco"] = ecco
    d["argpo"] = argpo
    d["inclo"] = inclo
    d["mo"] = elements.mo
    d["no_kozai"] = elements.no_kozai
    d["nodeo"] = elements.nodeo
    d["afspc"] = 1.0 if opsmode == "a" else 0.0

    # Days since 1950 Jan 0
    epoch = elements.jdsatepoch + elements.jdsatepochF - JD_1950
    d["jdsatepoch"] = elements.jdsatepoch
    d["jdsatepochF"] = elements.jdsatepochF

    no_unkozai = _recover_mean_motion(gravity.xke, j2, ecco, inclo, elements.no_kozai)
    ao = (gravity.xke / no_unkozai) ** X2O3
    if not (isfinite(ao) and ao > 0.0):
        raise ConfigurationError(f"Recovered semi-major axis is not positive: {ao!r} earth radii")

    eccsq = ecco * ecco
    omeosq = 1.0 - eccsq
    rteosq = sqrt(omeosq)
    cosio = cos(inclo)
    cosio2 = cosio * cosio
    sinio = sin(inclo)
    po = ao * omeosq
    con42 = 1.0 - 5.0 * cosio2
    con41 = -con42 - cosio2 - cosio2
    posq = po * po
    rp = ao * (1.0 - ecco)

    gsto = _gstime_afspc(epoch) if opsmode == "a" else _gstime(epoch + JD_1950)

    d["no_unkozai"] = no_unkozai
    d["ao"] = ao
    d["con41"] = con41
    d["gsto"] = gsto

    # Atmospheric density parameters, altered for perigees below 156 km
    perige = (rp - 1.0) * re
    sfour = 78.0 / re + 1.0
    qzms24 = ((120.0 - 78.0) / re) ** 4
    if perige < 156.0:
        sfour = perige - 78.0
        if perige < 98.0:
            sfour = 20.0
        qzms24 = ((120.0 - sfour) / re) ** 4
        sfour = sfour / re + 1.0

    pinvsq = 1.0 / posq
    tsi = 1.0 / (ao - sfour)
    eta = ao * ecco * tsi
    etasq = eta * eta
    eeta = ecco * eta
    psisq = fabs(1.0 - etasq)
    coef = qzms24 * tsi**4
    coef1 = coef / psisq**3.5
    cc2 = (
        coef1
        * no_unkozai
        * (
            ao * (1.0 + 1.5 * etasq + eeta * (4.0 + etasq))
            + 0.375 * j2 * tsi / psisq * con41 * (8.0 + 3.0 * etasq * (8.0 + etasq))
        )
    )
    cc1 = bstar * cc2
    cc3 = 0.0
    if ecco > 1.0e-4:
        cc3 = -2.0 * coef * tsi * gravity.j3oj2 * no_unkozai * sinio / ecco
    x1mth2 = 1.0 - cosio2
    cc4 = (
        2.0
        * no_unkozai
        * coef1
        * ao
        * omeosq
        * (
            eta * (2.0 + 0.5 * etasq)
            + ecco * (0.5 + 2.0 * etasq)
            - j2
            * tsi
            / (ao * psisq)
            * (
                -3.0 * con41 * (1.0 - 2.0 * eeta + etasq * (1.5 - 0.5 * eeta))
                + 0.75 * x1mth2 * (2.0 * etasq - eeta * (1.0 + etasq)) * cos(2.0 * argpo)
            )
        )
    )
    cc5 = 2.0 * coef1 * ao * omeosq * (1.0 + 2.75 * (etasq + eeta) + eeta * etasq)

    # Secular rates from J2, J2^2 and J4
    cosio4 = cosio2 * cosio2
    temp1 = 1.5 * j2 * pinvsq * no_unkozai
    temp2 = 0.5 * temp1 * j2 * pinvsq
    temp3 = -0.46875 * gravity.j4 * pinvsq * pinvsq * no_unkozai
    mdot = (
        no_unkozai
        + 0.5 * temp1 * rteosq * con41
        + 0.0625 * temp2 * rteosq * (13.0 - 78.0 * cosio2 + 137.0 * cosio4)
    )
    argpdot = (
        -0.5 * temp1 * con42
        + 0.0625 * temp2 * (7.0 - 114.0 * cosio2 + 395.0 * cosio4)
        + temp3 * (3.0 - 36.0 * cosio2 + 49.0 * cosio4)
    )
    xhdot1 = -temp1 * cosio
    nodedot = xhdot1 + (0.5 * temp2 * (4.0 - 19.0 * cosio2) + 2.0 * temp3 * (3.0 - 7.0 * cosio2)) * cosio
    xpidot = argpdot + nodedot

    d["cc1"] = cc1
    d["cc4"] = cc4
    d["cc5"] = cc5
    d["eta"] = eta
    d["mdot"] = mdot
    d["argpdot"] = argpdot
    d["nodedot"] = nodedot
    d["omgcof"] = bstar * cc3 * cos(argpo)
    if ecco > 1.0e-4:
        d["xmcof"] = -X2O3 * coef * bstar / eeta
    d["nodecf"] = 3.5 * omeosq * xhdot1 * cc1
    d["t2cof"] = 1.5 * cc1

    # Long-period coefficients; guard the 180 deg inclination singularity
    denom = 1.0 + cosio if fabs(cosio + 1.0) > 1.5e-12 else 1.5e-12
    d["xlcof"] = -0.25 * gravity.j3oj2 * sinio * (3.0 + 5.0 * cosio) / denom
    d["aycof"] = -0.5 * gravity.j3oj2 * sinio
    delmotemp = 1.0 + eta * cos(elements.mo)
    d["delmo"] = delmotemp * delmotemp * delmotemp
    d["sinmao"] = sin(elements.mo)
    d["x1mth2"] = x1mth2
    d["x7thm1"] = 7.0 * cosio2 - 1.0

    period = TWOPI / no_unkozai
    if period >= DEEP_SPACE_PERIOD:
        mode = deep_space_init(
            d,
            epoch=epoch,
            xke=gravity.xke,
            ecco=ecco,
            inclo=inclo,
            nodeo=elements.nodeo,
            argpo=argpo,
            mo=elements.mo,
            no_unkozai=no_unkozai,
            gsto=gsto,
            mdot=mdot,
            nodedot=nodedot,
            xpidot=xpidot,
        )
    elif rp < LOW_PERIGEE_ALTITUDE / re + 1.0:
        mode = PropagationMode.NEAR_EARTH_LOW_PERIGEE
    else:
        mode = PropagationMode.NEAR_EARTH_FULL
        cc1sq = cc1 * cc1
        d2 = 4.0 * ao * tsi * cc1sq
        temp = d2 * tsi * cc1 / 3.0
        d3 = (17.0 * ao + sfour) * temp
        d4 = 0.5 * temp * ao * tsi * (221.0 * ao + 31.0 * sfour) * cc1
        d["d2"] = d2
        d["d3"] = d3
        d["d4"] = d4
        d["t3cof"] = d2 + 2.0 * cc1sq
        d["t4cof"] = 0.25 * (3.0 * d3 + cc1 * (12.0 * d2 + 10.0 * cc1sq))
        d["t5cof"] = 0.2 * (3.0 * d4 + 12.0 * cc1 * d3 + 6.0 * d2 * d2 + 15.0 * cc1sq * (2.0 * d2 + cc1sq))

    logger.debug(
        "Initialized SGP4 state: mode=%s, period=%.3f min, perigee=%.3f km",
        mode.name,
        period,
        perige,
    )

    dtype = get_dtype()
    params = jnp.array([d[name] for name in _PARAM_NAMES], dtype=dtype)
    return SGP4State(
        params=params,
        mode=jnp.asarray(int(mode), dtype=jnp.int32),
        tsince=jnp.zeros((), dtype=dtype),
        elements=jnp.array(
            [ao * re, ecco, inclo, elements.nodeo, argpo, no_unkozai, elements.mo], dtype=dtype
        ),
        atime=jnp.zeros((), dtype=dtype),
        xli=jnp.asarray(d["xlamo"], dtype=dtype),
        xni=jnp.asarray(no_unkozai, dtype=dtype),
    )

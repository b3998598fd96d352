"""
Data types for the SGP4/SDP4 propagator.

``MeanElements`` is the plain-Python input record. ``SGP4State`` and
``PropagationResult`` are ``NamedTuple`` containers and therefore JAX
pytrees: they pass through ``jax.jit``, ``jax.vmap`` and ``jax.lax.scan``
unchanged.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import NamedTuple

from jax import Array

from sdp4jax.sgp4._constants import DEG2RAD, MINUTES_PER_DAY, TWOPI


@dataclass(frozen=True)
class MeanElements:
    """SGP4 mean elements at epoch, in the units the propagator consumes.

    Parsing of two-line or OMM text is left to the caller; any source that
    yields these numbers can feed ``sgp4_init``.

    Attributes:
        jdsatepoch: Julian date of epoch (whole part).
        jdsatepochF: Julian date of epoch (fractional part). Keeping the
            split preserves sub-millisecond resolution in float64.
        no_kozai: Mean motion (Kozai convention) [rad/min].
        ecco: Eccentricity [dimensionless].
        inclo: Inclination [rad].
        nodeo: Right ascension of ascending node [rad].
        argpo: Argument of perigee [rad].
        mo: Mean anomaly [rad].
        bstar: B* drag term [1/earth_radii].
    """

    jdsatepoch: float
    jdsatepochF: float
    no_kozai: float
    ecco: float
    inclo: float
    nodeo: float
    argpo: float
    mo: float
    bstar: float = 0.0

    @classmethod
    def from_tle_units(
        cls,
        epoch_jd: float,
        mean_motion: float,
        eccentricity: float,
        inclination: float,
        raan: float,
        argp: float,
        mean_anomaly: float,
        bstar: float = 0.0,
    ) -> MeanElements:
        """Build elements from the customary units of a mean-element record.

        Args:
            epoch_jd: Julian date of epoch. Split into whole and fractional
                parts so ``jdsatepochF`` is in ``[0, 1)``.
            mean_motion: Mean motion [rev/day].
            eccentricity: Eccentricity [dimensionless].
            inclination: Inclination [deg].
            raan: Right ascension of ascending node [deg].
            argp: Argument of perigee [deg].
            mean_anomaly: Mean anomaly [deg].
            bstar: B* drag term [1/earth_radii].

        Returns:
            The equivalent ``MeanElements``.
        """
        whole = float(int(epoch_jd))
        return cls(
            jdsatepoch=whole,
            jdsatepochF=epoch_jd - whole,
            no_kozai=mean_motion * TWOPI / MINUTES_PER_DAY,
            ecco=eccentricity,
            inclo=inclination * DEG2RAD,
            nodeo=raan * DEG2RAD,
            argpo=argp * DEG2RAD,
            mo=mean_anomaly * DEG2RAD,
            bstar=bstar,
        )

    @property
    def epoch(self) -> float:
        """Julian date of epoch as a single float."""
        return self.jdsatepoch + self.jdsatepochF


class PropagationMode(enum.IntEnum):
    """Propagation variant, fixed at initialization.

    The integer values index the branch table used by ``sgp4_propagate``.
    """

    NEAR_EARTH_FULL = 0
    NEAR_EARTH_LOW_PERIGEE = 1
    DEEP_SPACE_NON_RESONANT = 2
    DEEP_SPACE_SYNCHRONOUS = 3
    DEEP_SPACE_HALF_DAY = 4

    @property
    def is_deep_space(self) -> bool:
        return self >= PropagationMode.DEEP_SPACE_NON_RESONANT

    @property
    def is_resonant(self) -> bool:
        return self in (PropagationMode.DEEP_SPACE_SYNCHRONOUS, PropagationMode.DEEP_SPACE_HALF_DAY)


class PropagationError(enum.IntEnum):
    """Error codes reported in ``PropagationResult.error``.

    Values follow the numbering used by Vallado's SGP4 and python-sgp4
    (code 5 is retired there and unused here).
    """

    NONE = 0
    MEAN_ECCENTRICITY = 1
    MEAN_MOTION = 2
    PERTURBED_ECCENTRICITY = 3
    SEMI_LATUS_RECTUM = 4
    DECAYED = 6


# ---------------------------------------------------------------------------
# Parameter index layout for the flat params array
# ---------------------------------------------------------------------------
_PARAM_NAMES = [
    # Gravity constants
    "radiusearthkm",
    "xke",
    "j2",
    "j3oj2",
    # Elements at epoch; the Julian date stays split to keep its resolution
    "jdsatepoch",
    "jdsatepochF",
    "bstar",
    "ecco",
    "argpo",
    "inclo",
    "mo",
    "no_kozai",
    "nodeo",
    # Recovered (Brouwer) quantities and GMST
    "no_unkozai",
    "ao",
    "con41",
    "gsto",
    # Drag and secular coefficients
    "cc1",
    "cc4",
    "cc5",
    "d2",
    "d3",
    "d4",
    "delmo",
    "eta",
    "argpdot",
    "omgcof",
    "sinmao",
    "t2cof",
    "t3cof",
    "t4cof",
    "t5cof",
    "x1mth2",
    "x7thm1",
    "mdot",
    "nodedot",
    "xlcof",
    "xmcof",
    "nodecf",
    "aycof",
    # Lunar-solar secular rates
    "dedt",
    "didt",
    "dmdt",
    "dnodt",
    "domdt",
    # Lunar-solar periodic amplitudes
    "e3",
    "ee2",
    "se2",
    "se3",
    "sgh2",
    "sgh3",
    "sgh4",
    "sh2",
    "sh3",
    "si2",
    "si3",
    "sl2",
    "sl3",
    "sl4",
    "xgh2",
    "xgh3",
    "xgh4",
    "xh2",
    "xh3",
    "xi2",
    "xi3",
    "xl2",
    "xl3",
    "xl4",
    "zmol",
    "zmos",
    # Resonance coefficients
    "d2201",
    "d2211",
    "d3210",
    "d3222",
    "d4410",
    "d4422",
    "d5220",
    "d5232",
    "d5421",
    "d5433",
    "del1",
    "del2",
    "del3",
    "xfact",
    "xlamo",
    # 1.0 for the legacy AFSPC operation mode, else 0.0
    "afspc",
]

_IDX = {name: i for i, name in enumerate(_PARAM_NAMES)}
_NUM_PARAMS = len(_PARAM_NAMES)

# Layout of SGP4State.elements
_ELEMENT_NAMES = ("a", "e", "i", "raan", "argp", "n", "M")


class SGP4State(NamedTuple):
    """Initialized propagator state.

    ``params`` and ``mode`` are fixed at initialization. The remaining
    fields are replaced by every propagation call; propagation functions
    return a new state rather than modifying this one.

    Attributes:
        params: Flat coefficient array, indexed by ``_IDX``.
        mode: ``PropagationMode`` value as an int32 scalar.
        tsince: Minutes since epoch of the last propagation.
        elements: Singly averaged mean elements at ``tsince``:
            ``[a_km, e, i, raan, argp, n_rad_per_min, M]``.
        atime: Resonance integrator checkpoint time [min].
        xli: Resonance phase at ``atime`` [rad].
        xni: Resonance phase rate at ``atime`` [rad/min].
    """

    params: Array
    mode: Array
    tsince: Array
    elements: Array
    atime: Array
    xli: Array
    xni: Array

    @property
    def propagation_mode(self) -> PropagationMode:
        """The propagation variant as a Python enum (not usable under JIT)."""
        return PropagationMode(int(self.mode))

    @property
    def mean_elements(self) -> dict[str, float]:
        """Current mean elements keyed by name, as Python floats."""
        return {name: float(value) for name, value in zip(_ELEMENT_NAMES, self.elements)}


class PropagationResult(NamedTuple):
    """Output of one propagation call.

    Attributes:
        r: TEME position [km]; NaN when ``error`` is non-zero.
        v: TEME velocity [km/s]; NaN when ``error`` is non-zero.
        error: ``PropagationError`` code (int32, 0 on success).
        converged: Whether the Kepler solver met its tolerance.
    """

    r: Array
    v: Array
    error: Array
    converged: Array

"""
Physical and model constants for the SGP4/SDP4 propagator.

Provides the three standard Earth gravity models (WGS72OLD, WGS72 and
WGS84) together with the named coefficient tables used by the deep-space
(SDP4) routines: solar and lunar perturbation constants, the lunar
ephemeris polynomials, and the geopotential resonance coefficients for
synchronous (24 h) and half-day (12 h) orbits.

Gravity values match the reference ``sgp4`` library exactly. The
deep-space values are those published with Spacetrack Report #3 and its
2006 revision; they are dimensioned in Earth radii, minutes and radians.
"""

from math import pi, sqrt
from typing import NamedTuple


class EarthGravity(NamedTuple):
    """Earth gravity model constants for SGP4 propagation.

    Attributes:
        tumin: Time units per minute (1/xke).
        mu: Gravitational parameter [km^3/s^2].
        radiusearthkm: Earth equatorial radius [km].
        xke: Reciprocal of tumin (sqrt(GM) in Earth radii and minutes).
        j2: Second zonal harmonic.
        j3: Third zonal harmonic.
        j4: Fourth zonal harmonic.
        j3oj2: Ratio j3/j2.
    """

    tumin: float
    mu: float
    radiusearthkm: float
    xke: float
    j2: float
    j3: float
    j4: float
    j3oj2: float


def _gravity(mu: float, radius: float, j2: float, j3: float, j4: float, xke: float | None = None):
    if xke is None:
        xke = 60.0 / sqrt(radius**3 / mu)
    return EarthGravity(
        tumin=1.0 / xke,
        mu=mu,
        radiusearthkm=radius,
        xke=xke,
        j2=j2,
        j3=j3,
        j4=j4,
        j3oj2=j3 / j2,
    )


WGS72OLD = _gravity(
    mu=398600.79964,
    radius=6378.135,
    j2=0.001082616,
    j3=-0.00000253881,
    j4=-0.00000165597,
    xke=0.0743669161,
)
"""WGS 72 Old gravity model (legacy, truncated xke)."""

WGS72 = _gravity(
    mu=398600.8,
    radius=6378.135,
    j2=0.001082616,
    j3=-0.00000253881,
    j4=-0.00000165597,
)
"""WGS 72 gravity model (standard for SGP4)."""

WGS84 = _gravity(
    mu=398600.5,
    radius=6378.137,
    j2=0.00108262998905,
    j3=-0.00000253215306,
    j4=-0.00000161098761,
)
"""WGS 84 gravity model."""

GRAVITY_MODELS = {
    "wgs72old": WGS72OLD,
    "wgs72": WGS72,
    "wgs84": WGS84,
}
"""Mapping of gravity model names to ``EarthGravity`` instances."""


def resolve_gravity(gravity: "str | EarthGravity") -> EarthGravity:
    """Return the ``EarthGravity`` for a model name or instance.

    Args:
        gravity: Model name (``'wgs72'``, ``'wgs84'``, ``'wgs72old'``,
            case-insensitive) or an ``EarthGravity`` instance.

    Raises:
        KeyError: If *gravity* names an unknown model.
    """
    if isinstance(gravity, str):
        return GRAVITY_MODELS[gravity.lower()]
    return gravity


# ---------------------------------------------------------------------------
# Model-wide constants
# ---------------------------------------------------------------------------

TWOPI = 2.0 * pi

X2O3 = 2.0 / 3.0

MINUTES_PER_DAY = 1440.0

DEG2RAD = pi / 180.0

JD_1950 = 2433281.5
"""Julian date of 1950 Jan 0.0 UT; epochs are carried as days from here."""

DEEP_SPACE_PERIOD = 225.0
"""Orbital period [min] at or above which the deep-space model is used."""

LOW_PERIGEE_ALTITUDE = 220.0
"""Perigee altitude [km] below which the simplified drag model is used."""

ECCENTRICITY_FLOOR = 1.0e-6

KEPLER_MAX_ITERATIONS = 10
KEPLER_TOLERANCE = 1.0e-12
KEPLER_MAX_STEP = 0.95

RESONANCE_STEP = 720.0
"""Fixed integrator step [min] for the deep-space resonance terms."""

RESONANCE_STEP2 = 0.5 * RESONANCE_STEP * RESONANCE_STEP

EARTH_ROTATION_RATE = 4.37526908801129966e-3
"""Sidereal rotation rate of the Earth [rad/min]."""

LYDDANE_INCLINATION = 0.2
"""Perturbed inclination [rad] below which Lyddane's periodics are used."""

SHALLOW_INCLINATION = 5.2359877e-2
"""Inclination [rad] (3 deg) within which node rates from the Sun and Moon are dropped."""


# ---------------------------------------------------------------------------
# Third-body (solar and lunar) tables
# ---------------------------------------------------------------------------


class ThirdBodyConstants(NamedTuple):
    """Perturbing-body constants for the lunar-solar secular and periodic terms.

    Attributes:
        mean_motion: Mean motion of the perturbing body [rad/min] (zns, znl).
        eccentricity: Eccentricity of its apparent orbit (zes, zel).
        coupling: Perturbation strength coefficient (c1ss, c1l).
    """

    mean_motion: float
    eccentricity: float
    coupling: float


SOLAR = ThirdBodyConstants(mean_motion=1.19459e-5, eccentricity=0.01675, coupling=2.9864797e-6)
LUNAR = ThirdBodyConstants(mean_motion=1.5835218e-4, eccentricity=0.05490, coupling=4.7968065e-7)


class SolarGeometry(NamedTuple):
    """Fixed orientation of the solar orbit relative to the equator."""

    cos_inclination: float
    sin_inclination: float
    cos_perigee: float
    sin_perigee: float


SOLAR_GEOMETRY = SolarGeometry(
    cos_inclination=0.91744867,
    sin_inclination=0.39785416,
    cos_perigee=0.1945905,
    sin_perigee=-0.98088458,
)


class LunarEphemeris(NamedTuple):
    """Linear and trigonometric models of the lunar orbit.

    Time arguments are days since 1900 Jan 0.5 (``epoch + DAY_OFFSET``).
    """

    node_at_epoch: float
    node_rate: float
    cos_inclination_mean: float
    cos_inclination_amplitude: float
    sin_node_scale: float
    perigee_at_epoch: float
    perigee_rate: float
    longitude_at_epoch: float
    longitude_rate: float


LUNAR_EPHEMERIS = LunarEphemeris(
    node_at_epoch=4.5236020,
    node_rate=-9.2422029e-4,
    cos_inclination_mean=0.91375164,
    cos_inclination_amplitude=-0.03568096,
    sin_node_scale=0.089683511,
    perigee_at_epoch=5.8351514,
    perigee_rate=0.0019443680,
    longitude_at_epoch=4.7199672,
    longitude_rate=0.22997150,
)

SOLAR_ANOMALY_AT_EPOCH = 6.2565837
SOLAR_ANOMALY_RATE = 0.017201977

DAY_OFFSET = 18261.5
"""Days between 1950 Jan 0.0 and 1900 Jan 0.5."""


# ---------------------------------------------------------------------------
# Geopotential resonance tables
# ---------------------------------------------------------------------------

SYNCHRONOUS_BAND = (0.0034906585, 0.0052359877)
"""Open interval of mean motion [rad/min] treated as 24 h resonant."""

HALF_DAY_BAND = (8.26e-3, 9.24e-3)
"""Closed interval of mean motion [rad/min] treated as 12 h resonant."""

HALF_DAY_MIN_ECCENTRICITY = 0.5


class SynchronousResonance(NamedTuple):
    """Tesseral coefficients and phase angles for 24 h resonance."""

    q22: float
    q31: float
    q33: float
    fasx2: float
    fasx4: float
    fasx6: float


SYNCHRONOUS = SynchronousResonance(
    q22=1.7891679e-6,
    q31=2.1460748e-6,
    q33=2.2123015e-7,
    fasx2=0.13130908,
    fasx4=2.8843198,
    fasx6=0.37448087,
)


class HalfDayResonance(NamedTuple):
    """Tesseral coefficients and phase angles for 12 h resonance."""

    root22: float
    root32: float
    root44: float
    root52: float
    root54: float
    g22: float
    g32: float
    g44: float
    g52: float
    g54: float


HALF_DAY = HalfDayResonance(
    root22=1.7891679e-6,
    root32=3.7393792e-7,
    root44=7.3636953e-9,
    root52=1.1428639e-7,
    root54=2.1765803e-9,
    g22=5.7686396,
    g32=0.95240898,
    g44=1.8014998,
    g52=1.0508330,
    g54=4.4108898,
)

# Eccentricity-function fits for the 12 h resonance. Each entry holds cubic
# coefficients (c0, c1, c2, c3) in e, e^2, e^3; a three-term fit omits c3.
HALF_DAY_FITS_LOW_E = {
    "g211": (3.616, -13.2470, 16.2900),
    "g310": (-19.302, 117.3900, -228.4190, 156.5910),
    "g322": (-18.9068, 109.7927, -214.6334, 146.5816),
    "g410": (-41.122, 242.6940, -471.0940, 313.9530),
    "g422": (-146.407, 841.8800, -1629.014, 1083.4350),
    "g520": (-532.114, 3017.977, -5740.032, 3708.2760),
}
"""Fits valid for e <= 0.65."""

HALF_DAY_FITS_HIGH_E = {
    "g211": (-72.099, 331.819, -508.738, 266.724),
    "g310": (-346.844, 1582.851, -2415.925, 1246.113),
    "g322": (-342.585, 1554.908, -2366.899, 1215.972),
    "g410": (-1052.797, 4758.686, -7193.992, 3651.957),
    "g422": (-3581.690, 16178.110, -24462.770, 12422.520),
}
"""Fits valid for e > 0.65."""

HALF_DAY_G520_MID_E = (1464.74, -4664.75, 3763.64)
"""g520 for 0.65 < e <= 0.715."""

HALF_DAY_G520_HIGH_E = (-5149.66, 29936.92, -54087.36, 31324.56)
"""g520 for e > 0.715."""

HALF_DAY_FITS_BELOW_07 = {
    "g533": (-919.22770, 4988.6100, -9064.7700, 5542.21),
    "g521": (-822.71072, 4568.6173, -8491.4146, 5337.524),
    "g532": (-853.66600, 4690.2500, -8624.7700, 5341.4),
}
"""Fits valid for e < 0.7."""

HALF_DAY_FITS_ABOVE_07 = {
    "g533": (-37995.780, 161616.52, -229838.20, 109377.94),
    "g521": (-51752.104, 218913.95, -309468.16, 146349.42),
    "g532": (-40023.880, 170470.89, -242699.48, 115605.82),
}
"""Fits valid for e >= 0.7."""

# ---------------------------------------------------------------------------
# Mean-element fitting
# ---------------------------------------------------------------------------

FIT_INITIAL_BSTAR = 1.0e-5
"""Starting B* [1/earth_radii] when B* is estimated."""

FIT_RELATIVE_STEP = 1.0e-6
FIT_MIN_STEP = 1.0e-9
"""Forward-difference step: relative to each unknown, never below the minimum."""

FIT_MAX_CORRECTION = 0.1
"""Largest position or velocity correction per iteration, as a fraction of |r| or |v|."""

FIT_DIVERGENCE_RESIDUAL = 5.0e5
"""Residual [km^2] above which three successive increases abort the fit."""

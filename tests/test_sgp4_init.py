"""Tests for SGP4 initialization and gravity constants."""

import dataclasses
import logging
import math

import jax.numpy as jnp
import pytest
from sgp4 import earth_gravity

from sdp4jax.sgp4 import (
    GRAVITY_MODELS,
    WGS72,
    WGS72OLD,
    WGS84,
    ConfigurationError,
    MeanElements,
    PropagationMode,
    sgp4_init,
)
from sdp4jax.sgp4._types import _IDX, _NUM_PARAMS

ISS_LINE1 = "1 25544U 98067A   08264.51782528 -.00002182  00000-0 -11606-4 0  2927"
ISS_LINE2 = "2 25544  51.6416 247.4627 0006703 130.5360 325.0288 15.72125391563537"

COSMOS_LINE1 = "1 28350U 04020A   06167.21788666  .16154492  76267-5  18678-3 0  8894"
COSMOS_LINE2 = "2 28350  64.9977 345.6130 0024870 260.7578  99.9590 16.47856722116490"

MOLNIYA_LINE1 = "1 08195U 75081A   06176.33215444  .00000099  00000-0  11873-3 0   813"
MOLNIYA_LINE2 = "2 08195  64.1586 279.0717 6877146 264.7651  20.2257  2.00491383225656"

ITALSAT_LINE1 = "1 24208U 96044A   06177.04061740 -.00000094  00000-0  10000-3 0  1600"
ITALSAT_LINE2 = "2 24208   3.8536  80.0121 0026640 311.0977  48.3000  1.00778054 36119"

_NEAR_EARTH_COEFFICIENTS = [
    "no_unkozai",
    "gsto",
    "con41",
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
]

_DEEP_SPACE_COEFFICIENTS = [
    "no_unkozai",
    "gsto",
    "cc1",
    "cc4",
    "mdot",
    "nodedot",
    "argpdot",
    "dedt",
    "didt",
    "dmdt",
    "dnodt",
    "domdt",
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
]


def _assert_coefficients(state, sat, names) -> None:
    for name in names:
        ours = float(state.params[_IDX[name]])
        ref = getattr(sat, name)
        assert ours == pytest.approx(ref, rel=1e-11, abs=1e-18), f"{name}: {ours} vs {ref}"


class TestGravityModels:
    """Gravity presets agree with the reference library."""

    @pytest.mark.parametrize(
        ("ours", "ref"),
        [
            (WGS72OLD, earth_gravity.wgs72old),
            (WGS72, earth_gravity.wgs72),
            (WGS84, earth_gravity.wgs84),
        ],
        ids=["wgs72old", "wgs72", "wgs84"],
    )
    def test_matches_reference(self, ours, ref) -> None:
        assert ours.radiusearthkm == ref.radiusearthkm
        assert ours.mu == ref.mu
        assert ours.xke == pytest.approx(ref.xke, rel=1e-15)
        assert ours.tumin == pytest.approx(ref.tumin, rel=1e-15)
        assert ours.j2 == ref.j2
        assert ours.j3 == ref.j3
        assert ours.j4 == ref.j4
        assert ours.j3oj2 == pytest.approx(ref.j3oj2, rel=1e-15)

    def test_lookup_by_name(self, tle_elements) -> None:
        assert GRAVITY_MODELS["wgs84"] is WGS84
        elements, _ = tle_elements(ISS_LINE1, ISS_LINE2)
        state = sgp4_init(elements, gravity="WGS84")
        assert float(state.params[_IDX["radiusearthkm"]]) == WGS84.radiusearthkm

    def test_unknown_name_raises(self, tle_elements) -> None:
        elements, _ = tle_elements(ISS_LINE1, ISS_LINE2)
        with pytest.raises(KeyError):
            sgp4_init(elements, gravity="egm96")


class TestSGP4InitCoefficients:
    """Initialization coefficients agree with the reference library."""

    def test_near_earth_full(self, tle_elements) -> None:
        elements, sat = tle_elements(ISS_LINE1, ISS_LINE2)
        state = sgp4_init(elements)
        assert state.propagation_mode == PropagationMode.NEAR_EARTH_FULL
        assert sat.isimp == 0
        _assert_coefficients(state, sat, _NEAR_EARTH_COEFFICIENTS)

    def test_near_earth_low_perigee(self, tle_elements) -> None:
        elements, sat = tle_elements(COSMOS_LINE1, COSMOS_LINE2)
        state = sgp4_init(elements)
        assert state.propagation_mode == PropagationMode.NEAR_EARTH_LOW_PERIGEE
        assert sat.isimp == 1
        _assert_coefficients(state, sat, _NEAR_EARTH_COEFFICIENTS)
        # Higher-order drag terms are not used in this mode
        for name in ("d2", "d3", "d4", "t3cof", "t4cof", "t5cof"):
            assert float(state.params[_IDX[name]]) == 0.0

    @pytest.mark.parametrize(
        ("line1", "line2"),
        [(MOLNIYA_LINE1, MOLNIYA_LINE2), (ITALSAT_LINE1, ITALSAT_LINE2)],
        ids=["half_day", "synchronous"],
    )
    def test_deep_space(self, tle_elements, line1, line2) -> None:
        elements, sat = tle_elements(line1, line2)
        state = sgp4_init(elements)
        _assert_coefficients(state, sat, _DEEP_SPACE_COEFFICIENTS)


class TestSGP4InitState:
    """Shape and contents of a freshly initialized state."""

    def test_initial_state(self, tle_elements) -> None:
        elements, sat = tle_elements(ITALSAT_LINE1, ITALSAT_LINE2)
        state = sgp4_init(elements)

        assert state.params.shape == (_NUM_PARAMS,)
        assert state.params.dtype == jnp.float64
        assert state.mode.dtype == jnp.int32
        assert float(state.tsince) == 0.0
        assert float(state.atime) == 0.0
        assert float(state.xli) == pytest.approx(sat.xlamo, rel=1e-12)
        assert float(state.xni) == pytest.approx(sat.no_unkozai, rel=1e-12)
        assert state.elements.shape == (7,)
        assert state.mean_elements["e"] == pytest.approx(elements.ecco)
        assert state.mean_elements["n"] == pytest.approx(sat.no_unkozai, rel=1e-12)

    def test_params_are_finite(self, tle_elements) -> None:
        for lines in [(ISS_LINE1, ISS_LINE2), (COSMOS_LINE1, COSMOS_LINE2), (MOLNIYA_LINE1, MOLNIYA_LINE2)]:
            elements, _ = tle_elements(*lines)
            assert jnp.all(jnp.isfinite(sgp4_init(elements).params))

    def test_mode_selection_logged(self, tle_elements, caplog) -> None:
        elements, _ = tle_elements(MOLNIYA_LINE1, MOLNIYA_LINE2)
        with caplog.at_level(logging.DEBUG, logger="sdp4jax.sgp4._initialization"):
            sgp4_init(elements)
        assert "DEEP_SPACE_HALF_DAY" in caplog.text


class TestSGP4InitValidation:
    """Invalid configurations are rejected at initialization."""

    @pytest.fixture()
    def iss(self, tle_elements) -> MeanElements:
        elements, _ = tle_elements(ISS_LINE1, ISS_LINE2)
        return elements

    @pytest.mark.parametrize("ecco", [1.0, 1.5, -0.1])
    def test_bad_eccentricity(self, iss, ecco) -> None:
        with pytest.raises(ConfigurationError, match="Eccentricity"):
            sgp4_init(dataclasses.replace(iss, ecco=ecco))

    @pytest.mark.parametrize("no_kozai", [0.0, -0.05])
    def test_bad_mean_motion(self, iss, no_kozai) -> None:
        with pytest.raises(ConfigurationError, match="Mean motion"):
            sgp4_init(dataclasses.replace(iss, no_kozai=no_kozai))

    def test_non_finite_element(self, iss) -> None:
        with pytest.raises(ConfigurationError, match="finite"):
            sgp4_init(dataclasses.replace(iss, inclo=math.nan))

    def test_bad_opsmode(self, iss) -> None:
        with pytest.raises(ConfigurationError, match="opsmode"):
            sgp4_init(iss, opsmode="x")

    def test_is_value_error(self, iss) -> None:
        with pytest.raises(ValueError):
            sgp4_init(dataclasses.replace(iss, ecco=2.0))


class TestMeanElements:
    """Construction helpers for ``MeanElements``."""

    def test_from_tle_units_matches_parsed(self, tle_elements) -> None:
        parsed, _ = tle_elements(ISS_LINE1, ISS_LINE2)
        built = MeanElements.from_tle_units(
            parsed.epoch,
            15.72125391,
            0.0006703,
            51.6416,
            247.4627,
            130.5360,
            325.0288,
            bstar=-1.1606e-5,
        )
        assert built.epoch == pytest.approx(parsed.epoch, abs=1e-9)
        assert 0.0 <= built.jdsatepochF < 1.0
        assert built.no_kozai == pytest.approx(parsed.no_kozai, rel=1e-12)
        assert built.inclo == pytest.approx(parsed.inclo, rel=1e-12)
        assert built.nodeo == pytest.approx(parsed.nodeo, rel=1e-12)
        assert built.argpo == pytest.approx(parsed.argpo, rel=1e-12)
        assert built.mo == pytest.approx(parsed.mo, rel=1e-12)
        assert built.bstar == pytest.approx(parsed.bstar, rel=1e-12)

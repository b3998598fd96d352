"""Tests for SDP4 deep-space propagation against the reference python-sgp4 library."""

import jax
import jax.numpy as jnp
import pytest
from sgp4.api import WGS72 as SGP4_WGS72
from sgp4.api import Satrec

from sdp4jax.sgp4 import MeanElements, PropagationMode, sgp4_init, sgp4_propagate, sgp4_propagate_many

# Molniya 2-14: Highly-elliptical, 12-hour resonance
MOLNIYA_2_14_L1 = "1 08195U 75081A   06176.33215444  .00000099  00000-0  11873-3 0   813"
MOLNIYA_2_14_L2 = "2 08195  64.1586 279.0717 6877146 264.7651  20.2257  2.00491383225656"

# Molniya 1-36: Highly-elliptical, 12-hour resonance
MOLNIYA_1_36_L1 = "1 09880U 77021A   06176.56157475  .00000421  00000-0  10000-3 0   837"
MOLNIYA_1_36_L2 = "2 09880  64.5968 349.3786 7069051 270.0229  16.3320  2.00813614112380"

# ITALSAT 2: GEO, synchronous resonance, low inclination
ITALSAT_2_L1 = "1 24208U 96044A   06177.04061740 -.00000094  00000-0  10000-3 0  1600"
ITALSAT_2_L2 = "2 24208   3.8536  80.0121 0026640 311.0977  48.3000  1.00778054 36119"

# Vela 5A: Deep-space, non-resonant
VELA_5A_L1 = "1 04965U 69046F   06175.83186726  .00000094  00000-0  10000-3 0  4711"
VELA_5A_L2 = "2 04965  32.9048 138.7680 6088834 148.5862 269.3268  2.47283741134637"

POS_ATOL = 1e-5  # km
VEL_ATOL = 1e-8  # km/s


class TestSDP4Modes:
    """Deep-space mode selection at initialization."""

    @pytest.mark.parametrize(
        ("line1", "line2", "mode"),
        [
            (MOLNIYA_2_14_L1, MOLNIYA_2_14_L2, PropagationMode.DEEP_SPACE_HALF_DAY),
            (MOLNIYA_1_36_L1, MOLNIYA_1_36_L2, PropagationMode.DEEP_SPACE_HALF_DAY),
            (ITALSAT_2_L1, ITALSAT_2_L2, PropagationMode.DEEP_SPACE_SYNCHRONOUS),
            (VELA_5A_L1, VELA_5A_L2, PropagationMode.DEEP_SPACE_NON_RESONANT),
        ],
    )
    def test_mode(self, tle_elements, line1, line2, mode) -> None:
        elements, sat = tle_elements(line1, line2)
        state = sgp4_init(elements)
        assert state.propagation_mode == mode
        assert state.propagation_mode.is_deep_space
        assert sat.method == "d"
        assert sat.irez == int(mode) - 2
        assert jnp.all(jnp.isfinite(state.params))


class TestSDP4PropagateDeepSpace:
    """Test deep-space SDP4 propagation against reference python-sgp4."""

    def _assert_match(self, tle_elements, line1: str, line2: str, tsince: float) -> None:
        """Assert a fresh propagation matches python-sgp4 at the given tsince."""
        elements, sat = tle_elements(line1, line2)
        state = sgp4_init(elements)

        result, _ = sgp4_propagate(state, tsince)
        e_ref, r_ref, v_ref = sat.sgp4_tsince(tsince)
        assert e_ref == 0, f"Reference SGP4 error {e_ref} at tsince={tsince}"
        assert int(result.error) == 0

        assert jnp.allclose(result.r, jnp.array(r_ref), atol=POS_ATOL), (
            f"Position mismatch at t={tsince}: {result.r} vs {r_ref}, "
            f"diff={float(jnp.max(jnp.abs(result.r - jnp.array(r_ref))))}"
        )
        assert jnp.allclose(result.v, jnp.array(v_ref), atol=VEL_ATOL), (
            f"Velocity mismatch at t={tsince}: {result.v} vs {v_ref}, "
            f"diff={float(jnp.max(jnp.abs(result.v - jnp.array(v_ref))))}"
        )

    # --- Molniya 2-14 (12-hour resonance) ---

    @pytest.mark.parametrize("tsince", [0.0, 359.117678, 718.235357, 1440.0, -1440.0])
    def test_molniya_2_14(self, tle_elements, tsince) -> None:
        self._assert_match(tle_elements, MOLNIYA_2_14_L1, MOLNIYA_2_14_L2, tsince)

    # --- Molniya 1-36 (12-hour resonance) ---

    @pytest.mark.parametrize("tsince", [0.0, 358.541428, 717.082857, 1440.0])
    def test_molniya_1_36(self, tle_elements, tsince) -> None:
        self._assert_match(tle_elements, MOLNIYA_1_36_L1, MOLNIYA_1_36_L2, tsince)

    # --- ITALSAT 2 (synchronous resonance, Lyddane periodics) ---

    @pytest.mark.parametrize("tsince", [0.0, 714.441261, 1428.882522, 1440.0, 10000.0])
    def test_italsat_2(self, tle_elements, tsince) -> None:
        self._assert_match(tle_elements, ITALSAT_2_L1, ITALSAT_2_L2, tsince)

    # --- Vela 5A (non-resonant) ---

    @pytest.mark.parametrize("tsince", [0.0, 291.163502, 582.327004, 1440.0])
    def test_vela_5a(self, tle_elements, tsince) -> None:
        self._assert_match(tle_elements, VELA_5A_L1, VELA_5A_L2, tsince)


class TestResonanceCheckpoint:
    """The integrator checkpoint carried in the state."""

    def test_checkpoint_at_last_whole_step(self, tle_elements) -> None:
        elements, _ = tle_elements(ITALSAT_2_L1, ITALSAT_2_L2)
        state = sgp4_init(elements)
        assert float(state.atime) == 0.0

        _, forward = sgp4_propagate(state, 1500.0)
        assert float(forward.atime) == 1440.0

        _, backward = sgp4_propagate(state, -1500.0)
        assert float(backward.atime) == -1440.0

    def test_non_resonant_checkpoint_unused(self, tle_elements) -> None:
        elements, _ = tle_elements(VELA_5A_L1, VELA_5A_L2)
        state = sgp4_init(elements)
        _, new_state = sgp4_propagate(state, 5000.0)
        assert float(new_state.atime) == 0.0
        assert float(new_state.xni) == float(state.xni)

    @pytest.mark.parametrize(
        "times",
        [
            [0.0, 1000.0, 2000.0, 5000.0],  # forward, checkpoint reused
            [5000.0, 3000.0, 6000.0],  # shorter time restarts
            [3000.0, -3000.0, 2000.0],  # direction change restarts
        ],
        ids=["forward", "shorter", "reversal"],
    )
    @pytest.mark.parametrize(
        ("line1", "line2"),
        [(ITALSAT_2_L1, ITALSAT_2_L2), (MOLNIYA_2_14_L1, MOLNIYA_2_14_L2)],
        ids=["synchronous", "half_day"],
    )
    def test_sequential_calls(self, tle_elements, line1, line2, times) -> None:
        """Chained calls match fresh calls and the reference object's own sequence."""
        elements, _ = tle_elements(line1, line2)
        sequential_ref = Satrec.twoline2rv(line1, line2, SGP4_WGS72)
        state = sgp4_init(elements)

        for t in times:
            result, state = sgp4_propagate(state, t)
            fresh, _ = sgp4_propagate(sgp4_init(elements), t)
            e_ref, r_ref, v_ref = sequential_ref.sgp4_tsince(t)
            assert e_ref == 0

            assert jnp.allclose(result.r, fresh.r, atol=1e-8)
            assert jnp.allclose(result.v, fresh.v, atol=1e-11)
            assert jnp.allclose(result.r, jnp.array(r_ref), atol=POS_ATOL)
            assert jnp.allclose(result.v, jnp.array(v_ref), atol=VEL_ATOL)

    def test_scan_threads_checkpoint(self, tle_elements) -> None:
        elements, sat = tle_elements(MOLNIYA_1_36_L1, MOLNIYA_1_36_L2)
        state = sgp4_init(elements)
        times = jnp.arange(0.0, 7200.0, 360.0)

        results, final_state = jax.jit(sgp4_propagate_many)(state, times)
        assert float(final_state.atime) == 6480.0

        for k, t in enumerate(times):
            e_ref, r_ref, v_ref = sat.sgp4_tsince(float(t))
            assert e_ref == 0
            assert jnp.allclose(results.r[k], jnp.array(r_ref), atol=POS_ATOL)
            assert jnp.allclose(results.v[k], jnp.array(v_ref), atol=VEL_ATOL)


class TestAFSPCMode:
    """Legacy AFSPC operation mode."""

    @pytest.mark.parametrize(
        ("line1", "line2"),
        [(ITALSAT_2_L1, ITALSAT_2_L2), (VELA_5A_L1, VELA_5A_L2)],
        ids=["lyddane", "direct"],
    )
    def test_matches_reference(self, tle_elements, line1, line2) -> None:
        elements, parsed = tle_elements(line1, line2)
        sat = Satrec()
        sat.sgp4init(
            SGP4_WGS72,
            "a",
            parsed.satnum,
            parsed.jdsatepoch + parsed.jdsatepochF - 2433281.5,
            parsed.bstar,
            parsed.ndot,
            parsed.nddot,
            parsed.ecco,
            parsed.argpo,
            parsed.inclo,
            parsed.mo,
            parsed.no_kozai,
            parsed.nodeo,
        )
        state = sgp4_init(elements, opsmode="a")
        assert float(state.params[-1]) == 1.0

        for t in (0.0, 720.0, 2880.0):
            result, _ = sgp4_propagate(state, t)
            e_ref, r_ref, v_ref = sat.sgp4_tsince(t)
            assert e_ref == 0
            assert jnp.allclose(result.r, jnp.array(r_ref), atol=1e-4)
            assert jnp.allclose(result.v, jnp.array(v_ref), atol=1e-7)


class TestEccentricityFloor:
    """A circular deep-space orbit stays on the eccentricity floor."""

    # Circular, drag-free geosynchronous orbit
    CIRCULAR_GEO = MeanElements.from_tle_units(2453918.5, 1.0027, 0.0, 4.0, 80.0, 0.0, 48.0)

    def test_floor_persists(self) -> None:
        state = sgp4_init(self.CIRCULAR_GEO)
        assert state.propagation_mode == PropagationMode.DEEP_SPACE_SYNCHRONOUS

        for direction in (1.0, -1.0):
            clamped = []
            for t in (1.0e3, 1.0e4, 5.0e4, 1.0e5):
                result, new_state = sgp4_propagate(state, direction * t)
                assert int(result.error) == 0
                assert bool(jnp.all(jnp.isfinite(result.r)))
                e = float(new_state.elements[1])
                assert e >= 1e-6
                clamped.append(e == 1e-6)
            # Once on the floor it stays there for larger offsets
            assert clamped == sorted(clamped)
            assert clamped[0]

"""Tests for the sdp4jax.config module."""

import jax
import jax.numpy as jnp
import pytest

from sdp4jax.config import get_dtype, set_dtype
from sdp4jax.sgp4 import (
    MeanElements,
    SGP4Propagator,
    sgp4_init,
    sgp4_propagate,
    sgp4_propagate_to_epoch,
    two_body_state,
)

pytestmark = pytest.mark.order("first")

ISS = MeanElements.from_tle_units(
    2454732.01782528, 15.72125391, 0.0006703, 51.6416, 247.4627, 130.5360, 325.0288,
    bstar=-1.1606e-5,
)


@pytest.fixture(autouse=True)
def reset_dtype():
    """Reset dtype to float32 before and after each test."""
    set_dtype(jnp.float32)
    yield
    set_dtype(jnp.float32)


class TestGetSetDtype:
    def test_default_dtype(self):
        assert get_dtype() == jnp.float32

    def test_set_float64(self):
        set_dtype(jnp.float64)
        assert get_dtype() == jnp.float64

    def test_roundtrip(self):
        for dtype in (jnp.float16, jnp.bfloat16, jnp.float32, jnp.float64):
            set_dtype(dtype)
            assert get_dtype() == dtype

    def test_invalid_dtype_raises(self):
        with pytest.raises(ValueError, match="Unsupported dtype"):
            set_dtype(jnp.int32)

    def test_invalid_dtype_string_raises(self):
        with pytest.raises(ValueError, match="Unsupported dtype"):
            set_dtype("float32")

    def test_float64_enables_x64(self):
        set_dtype(jnp.float64)
        assert jax.config.jax_enable_x64 is True


class TestDtypeSwitchingOutputs:
    """Verify that states and results carry the configured dtype."""

    def test_state_dtype_float64(self):
        set_dtype(jnp.float64)
        state = sgp4_init(ISS)
        assert state.params.dtype == jnp.float64
        assert state.elements.dtype == jnp.float64
        assert state.mode.dtype == jnp.int32

    def test_result_dtype_float64(self):
        set_dtype(jnp.float64)
        result, new_state = sgp4_propagate(sgp4_init(ISS), 60.0)
        assert result.r.dtype == jnp.float64
        assert result.v.dtype == jnp.float64
        assert new_state.tsince.dtype == jnp.float64

    def test_two_body_dtype_float64(self):
        set_dtype(jnp.float64)
        r, v = two_body_state(ISS)
        assert r.dtype == jnp.float64


class TestFloat32Precision:
    """Single precision still gives a usable orbit."""

    def test_float32_reasonable_tolerance(self):
        set_dtype(jnp.float64)
        ref, _ = sgp4_propagate(sgp4_init(ISS), 60.0)

        set_dtype(jnp.float32)
        state = sgp4_init(ISS)
        assert state.params.dtype == jnp.float32
        result, _ = sgp4_propagate(state, 60.0)
        assert result.r.dtype == jnp.float32
        assert int(result.error) == 0
        # Within a few km after one hour
        assert float(jnp.max(jnp.abs(result.r - ref.r))) < 5.0

    def test_float32_propagate_to_epoch(self):
        """Absolute dates resolve to the requested minute in single precision."""
        state = sgp4_init(ISS)
        assert state.params.dtype == jnp.float32

        result_epoch, new_state = sgp4_propagate_to_epoch(
            state, ISS.jdsatepoch, ISS.jdsatepochF + 90.0 / 1440.0
        )
        result_direct, _ = sgp4_propagate(state, 90.0)

        assert abs(float(new_state.tsince) - 90.0) < 1e-3
        assert float(jnp.max(jnp.abs(result_epoch.r - result_direct.r))) < 0.5

    def test_float32_propagator_to_epoch(self):
        prop = SGP4Propagator(ISS)
        prop.propagate_to_epoch(ISS.epoch + 90.0 / 1440.0)
        assert abs(prop.tsince - 90.0) < 1e-3

        prop.propagate_to_epoch(ISS.jdsatepoch + 1.0, ISS.jdsatepochF)
        assert abs(prop.tsince - 1440.0) < 1e-3

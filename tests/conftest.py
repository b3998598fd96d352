import jax.numpy as jnp
import pytest
from sgp4.api import WGS72 as SGP4_WGS72
from sgp4.api import Satrec

from sdp4jax.config import set_dtype
from sdp4jax.sgp4 import MeanElements


@pytest.fixture(autouse=True)
def _ensure_float64():
    """Set float64 precision before every test.

    With pytest-xdist, each worker process starts with the default float32.
    This fixture ensures all tests get float64 unless they explicitly override
    it (e.g. test_config.py has its own autouse fixture that sets float32).
    """
    set_dtype(jnp.float64)


def elements_from_satrec(sat: Satrec) -> MeanElements:
    """Mean elements exactly as the reference library parsed them."""
    return MeanElements(
        jdsatepoch=sat.jdsatepoch,
        jdsatepochF=sat.jdsatepochF,
        no_kozai=sat.no_kozai,
        ecco=sat.ecco,
        inclo=sat.inclo,
        nodeo=sat.nodeo,
        argpo=sat.argpo,
        mo=sat.mo,
        bstar=sat.bstar,
    )


@pytest.fixture()
def tle_elements():
    """Factory turning a pair of TLE lines into ``(MeanElements, Satrec)``."""

    def _make(line1: str, line2: str) -> tuple[MeanElements, Satrec]:
        sat = Satrec.twoline2rv(line1, line2, SGP4_WGS72)
        return elements_from_satrec(sat), sat

    return _make

"""Floating-point precision used by the propagator.

``sgp4_init`` packs its coefficient array in the dtype returned by
``get_dtype``, and every later propagation inherits that dtype from the
state. The default is ``jnp.float32``; SGP4 loses metres per day of
accuracy in single precision, so reference-grade work should call
``set_dtype(jnp.float64)`` first, which also turns on ``jax_enable_x64``.

States created before a dtype change keep the dtype they were built with.
"""

from __future__ import annotations

import jax
import jax.numpy as jnp

_VALID_DTYPES = (jnp.float16, jnp.bfloat16, jnp.float32, jnp.float64)

_dtype = jnp.float32


def set_dtype(dtype) -> None:
    """Set the float dtype for newly initialized states.

    If *dtype* is ``jnp.float64``, JAX's 64-bit mode is enabled via
    ``jax.config.update("jax_enable_x64", True)``.

    Args:
        dtype: One of ``jnp.float16``, ``jnp.bfloat16``, ``jnp.float32``,
            or ``jnp.float64``.

    Raises:
        ValueError: If *dtype* is not a supported float type.
    """
    global _dtype
    if dtype not in _VALID_DTYPES:
        raise ValueError(
            f"Unsupported dtype {dtype}. Must be one of: "
            f"jnp.float16, jnp.bfloat16, jnp.float32, jnp.float64"
        )
    if dtype == jnp.float64:
        jax.config.update("jax_enable_x64", True)
    _dtype = dtype


def get_dtype():
    """Return the float dtype used for new states (default ``jnp.float32``)."""
    return _dtype

"""Module-wide floating-point precision and date-tolerance configuration.

Provides ``set_dtype`` and ``get_dtype`` to control the float dtype used
throughout orbitjax.  Orbit propagation with sub-millisecond event location
needs double precision, so the default is ``jnp.float64`` and JAX's 64-bit
mode (``jax_enable_x64``) is switched on when this module is imported.
Lower precisions remain selectable for experimentation.

The epoch equality tolerance follows the active dtype unless it is
overridden with :func:`set_epoch_eq_tolerance`.
"""

from __future__ import annotations

import jax
import jax.numpy as jnp

_VALID_DTYPES = (jnp.float16, jnp.bfloat16, jnp.float32, jnp.float64)

jax.config.update("jax_enable_x64", True)

_dtype = jnp.float64
_epoch_eq_tolerance: float | None = None


def set_dtype(dtype) -> None:
    """Set the module-wide float dtype for orbitjax.

    Must be called **before** any ``jax.jit`` compilation.  In eager mode
    the change takes effect immediately.

    If *dtype* is ``jnp.float64``, JAX's 64-bit mode is (re-)enabled via
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
    """Return the current module-wide float dtype.

    Returns:
        The active float dtype (default ``jnp.float64``).
    """
    return _dtype


def set_epoch_eq_tolerance(seconds: float | None) -> None:
    """Override the threshold below which two epochs compare equal.

    Args:
        seconds: Positive tolerance in seconds, or ``None`` to restore the
            dtype-adaptive default.

    Raises:
        ValueError: If *seconds* is not strictly positive.
    """
    global _epoch_eq_tolerance
    if seconds is not None and not seconds > 0.0:
        raise ValueError(f"Epoch tolerance must be positive, got {seconds}")
    _epoch_eq_tolerance = seconds


def get_epoch_eq_tolerance() -> float:
    """Return the tolerance used for Epoch equality comparisons.

    Unless overridden, the tolerance scales with the precision of the
    configured float dtype:

    - ``float16``:  0.1 s
    - ``bfloat16``: 0.1 s
    - ``float32``:  1e-3 s
    - ``float64``:  1e-9 s

    Returns:
        float: Tolerance in seconds.
    """
    if _epoch_eq_tolerance is not None:
        return _epoch_eq_tolerance
    if _dtype == jnp.float64:
        return 1e-9
    if _dtype == jnp.float32:
        return 1e-3
    # float16 and bfloat16
    return 0.1

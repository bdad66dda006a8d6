"""Elementary rotation matrices.

Each matrix performs a passive (frame) rotation: ``R @ v`` expresses the
vector ``v`` in axes rotated counter-clockwise by ``angle`` about the given
axis.

References:

    1. O. Montenbruck, and E. Gill, *Satellite Orbits: Models, Methods and Applications*, 2012, p.27.
"""

from __future__ import annotations

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from orbitjax.config import get_dtype


def Rx(angle: ArrayLike) -> Array:
    """Rotation matrix about the x-axis.

    Args:
        angle: Counter-clockwise angle of rotation [rad].

    Returns:
        jax.Array: 3x3 rotation matrix.
    """
    c = jnp.cos(angle)
    s = jnp.sin(angle)
    one, zero = jnp.ones_like(c), jnp.zeros_like(c)

    return jnp.array([[one, zero, zero],
                      [zero, +c, +s],
                      [zero, -s, +c]], dtype=get_dtype())


def Rz(angle: ArrayLike) -> Array:
    """Rotation matrix about the z-axis.

    Args:
        angle: Counter-clockwise angle of rotation [rad].

    Returns:
        jax.Array: 3x3 rotation matrix.
    """
    c = jnp.cos(angle)
    s = jnp.sin(angle)
    one, zero = jnp.ones_like(c), jnp.zeros_like(c)

    return jnp.array([[+c, +s, zero],
                      [-s, +c, zero],
                      [zero, zero, one]], dtype=get_dtype())


def unit(v: ArrayLike) -> Array:
    """Return ``v`` scaled to unit length."""
    v = jnp.asarray(v, dtype=get_dtype())
    return v / jnp.linalg.norm(v)

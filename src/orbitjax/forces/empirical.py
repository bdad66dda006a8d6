"""Empirical harmonic acceleration.

Models unmodelled periodic perturbations as

    a_loc = A cos(n theta) + B sin(n theta) + C

where ``theta`` is the in-plane angle of the spacecraft measured from a
reference direction ``S`` projected on the orbital plane, and ``A``, ``B``,
``C`` are vectors in a local frame.  ``S`` is usually the Sun direction
(heliosynchronous orbits) or the ascending node.
"""

from __future__ import annotations

from collections.abc import Sequence

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from orbitjax.config import get_dtype
from orbitjax.errors import ConfigurationError
from orbitjax.forces.base import ForceModel, direction_in_state_frame
from orbitjax.frames import Frame, LOFType
from orbitjax.parameters import Parameter, as_parameter

_COEFFICIENT_NAMES = ("AX", "AY", "AZ", "BX", "BY", "BZ", "CX", "CY", "CZ")


def harmonic_cos_sin(
    position: ArrayLike, velocity: ArrayLike, direction: ArrayLike, harmonic: int
) -> tuple[Array, Array]:
    """``cos(n theta)`` and ``sin(n theta)`` of the in-plane angle.

    The orbital-plane basis is ``w = h/|h|``, ``v = unit(w x S)``,
    ``u = unit(v x w)``; ``cos theta = r.u`` and ``sin theta = r.v``.

    Args:
        position: Position in an inertial frame [m].
        velocity: Velocity in the same frame [m/s].
        direction: Reference direction ``S`` in the same frame.
        harmonic: Harmonic factor ``n``.

    Returns:
        tuple: ``(cos(n theta), sin(n theta))``.
    """
    _float = get_dtype()
    r = jnp.asarray(position, dtype=_float)
    s = jnp.asarray(direction, dtype=_float)

    w = jnp.cross(r, jnp.asarray(velocity, dtype=_float))
    w = w / jnp.linalg.norm(w)
    v = jnp.cross(w, s)
    v = v / jnp.linalg.norm(v)
    u = jnp.cross(v, w)
    u = u / jnp.linalg.norm(u)

    r_hat = r / jnp.linalg.norm(r)
    theta = jnp.arctan2(jnp.dot(r_hat, v), jnp.dot(r_hat, u))
    return jnp.cos(harmonic * theta), jnp.sin(harmonic * theta)


class EmpiricalForce(ForceModel):
    """Harmonic empirical acceleration with 9 estimable coefficients.

    The coefficient vectors are expressed in ``frame`` if given, else in
    the local orbital frame ``lof_type`` if given, else in the spacecraft
    body frame (the state must then carry an attitude).

    Args:
        harmonic: Harmonic factor ``n`` (>= 1).
        direction: Reference direction ``S`` in the state frame.
        a: ``(AX, AY, AZ)`` coefficients of ``cos(n theta)`` [m/s^2].
        b: ``(BX, BY, BZ)`` coefficients of ``sin(n theta)`` [m/s^2].
        c: ``(CX, CY, CZ)`` constant coefficients [m/s^2].
        frame: Frame of the coefficient vectors.
        lof_type: Local orbital frame of the coefficient vectors.

    Raises:
        ConfigurationError: If ``harmonic`` is lower than 1 or ``direction``
            is null.
    """

    def __init__(
        self,
        harmonic: int,
        direction: ArrayLike,
        a: Sequence[Parameter | float],
        b: Sequence[Parameter | float],
        c: Sequence[Parameter | float],
        frame: Frame | None = None,
        lof_type: LOFType | None = None,
    ) -> None:
        super().__init__()
        if harmonic < 1:
            raise ConfigurationError(f"harmonic factor must be >= 1, got {harmonic}")
        s = jnp.asarray(direction, dtype=get_dtype())
        s_norm = float(jnp.linalg.norm(s))
        if s_norm == 0.0:
            raise ConfigurationError("reference direction must not be the null vector")
        coefficients = [*a, *b, *c]
        if len(coefficients) != 9:
            raise ConfigurationError("A, B and C must each have three components")

        self.harmonic = int(harmonic)
        self.direction = s / s_norm
        self.frame = frame
        self.lof_type = lof_type
        self._coefficients = [
            as_parameter(name, value) for name, value in zip(_COEFFICIENT_NAMES, coefficients)
        ]

    def parameters(self) -> list[Parameter]:
        return list(self._coefficients)

    def _acceleration(self, state, values):
        ax, ay, az, bx, by, bz, cx, cy, cz = (values[p] for p in self._coefficients)
        cos_n, sin_n = harmonic_cos_sin(state.position, state.velocity,
                                        self.direction, self.harmonic)
        local = (jnp.stack([ax, ay, az]) * cos_n
                 + jnp.stack([bx, by, bz]) * sin_n
                 + jnp.stack([cx, cy, cz]))
        return direction_in_state_frame(state, local, self.frame, self.lof_type)

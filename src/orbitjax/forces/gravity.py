"""Point-mass gravitational attraction.

Provides the central-body :class:`NewtonianAttraction` and the
:class:`ThirdBodyAttraction` of a perturbing body (Sun, Moon, ...).  Both
expose their gravitational parameter as a :class:`Parameter` and provide
position gradients.

References:
    1. O. Montenbruck and E. Gill, *Satellite Orbits: Models, Methods
       and Applications*, 2012, Sec. 3.2.
"""

from __future__ import annotations

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from orbitjax.bodies import CelestialBody
from orbitjax.config import get_dtype
from orbitjax.constants import GM_EARTH
from orbitjax.forces.base import ForceModel
from orbitjax.parameters import Parameter, as_parameter


def accel_point_mass(r_object: ArrayLike, gm: ArrayLike) -> Array:
    """Acceleration of a point mass orbiting a central body.

    Args:
        r_object: Position of the object relative to the central body [m].
        gm: Gravitational parameter of the central body [m^3/s^2].

    Returns:
        jax.Array: Acceleration [m/s^2].
    """
    r = jnp.asarray(r_object, dtype=get_dtype())
    return -gm * r / jnp.linalg.norm(r) ** 3


def accel_third_body(r_object: ArrayLike, r_body: ArrayLike, gm: ArrayLike) -> Array:
    """Perturbing acceleration of a third body on an Earth orbiter.

    Includes the indirect term accounting for the acceleration of the
    central body itself.

    Args:
        r_object: Position of the object [m].
        r_body: Position of the perturbing body, same origin and frame [m].
        gm: Gravitational parameter of the perturbing body [m^3/s^2].

    Returns:
        jax.Array: Acceleration [m/s^2].
    """
    _float = get_dtype()
    r = jnp.asarray(r_object, dtype=_float)
    s = jnp.asarray(r_body, dtype=_float)
    d = r - s
    return -gm * (d / jnp.linalg.norm(d) ** 3 + s / jnp.linalg.norm(s) ** 3)


class NewtonianAttraction(ForceModel):
    """Keplerian attraction of the central body.

    Args:
        mu: Gravitational parameter [m^3/s^2], a value or a shared
            :class:`Parameter`. Default: ``GM_EARTH``.
    """

    compute_gradient_position = True

    def __init__(self, mu: Parameter | float = GM_EARTH) -> None:
        super().__init__()
        self.mu = as_parameter("mu", mu)

    def parameters(self) -> list[Parameter]:
        return [self.mu]

    def _acceleration(self, state, values):
        return accel_point_mass(state.position, values[self.mu])


class ThirdBodyAttraction(ForceModel):
    """Point-mass attraction of a perturbing body.

    Args:
        body: Position provider of the perturbing body.
        gm: Gravitational parameter; defaults to ``body.gm``.
    """

    compute_gradient_position = True

    def __init__(self, body: CelestialBody, gm: Parameter | float | None = None) -> None:
        super().__init__()
        self.body = body
        self.gm = as_parameter(f"{body.name} attraction coefficient",
                               body.gm if gm is None else gm)

    def parameters(self) -> list[Parameter]:
        return [self.gm]

    def _acceleration(self, state, values):
        r_body = self.body.position(state.epoch, state.frame)
        return accel_third_body(state.position, r_body, values[self.gm])

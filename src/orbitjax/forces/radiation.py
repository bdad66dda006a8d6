"""Solar radiation pressure.

The flux is scaled with the inverse square of the Sun distance and
reduced by the fraction of the solar disk hidden by the occulting body
(conical shadow model with penumbra).

References:
    1. O. Montenbruck and E. Gill, *Satellite Orbits: Models, Methods
       and Applications*, 2012, Sec. 3.4.
"""

from __future__ import annotations

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from orbitjax.bodies import CelestialBody
from orbitjax.config import get_dtype
from orbitjax.constants import AU, P_SUN, R_EARTH, R_SUN
from orbitjax.forces.base import ForceModel
from orbitjax.forces.spacecraft import RadiationSensitive
from orbitjax.parameters import Parameter


def eclipse_conical(
    r_object: ArrayLike,
    r_sun: ArrayLike,
    sun_radius: float = R_SUN,
    occulting_radius: float = R_EARTH,
) -> Array:
    """Fraction of the solar disk visible from the object.

    The occulting body sits at the origin of the positions.

    Args:
        r_object: Position of the object [m].
        r_sun: Position of the Sun, same origin and frame [m].
        sun_radius: Radius of the occulted body [m].
        occulting_radius: Radius of the occulting body [m].

    Returns:
        jax.Array: 0.0 in umbra, 1.0 in full light, in between in penumbra.

    Examples:
        ```python
        import jax.numpy as jnp
        from orbitjax.constants import AU, R_EARTH
        r_sun = jnp.array([AU, 0.0, 0.0])
        eclipse_conical(jnp.array([-R_EARTH - 100e3, 0.0, 0.0]), r_sun)   # 0.0
        ```
    """
    _float = get_dtype()
    r = jnp.asarray(r_object, dtype=_float)
    d = jnp.asarray(r_sun, dtype=_float) - r

    r_norm = jnp.linalg.norm(r)
    d_norm = jnp.linalg.norm(d)

    # apparent radii of the Sun (a) and the occulting body (b), separation (c)
    a = jnp.arcsin(sun_radius / d_norm)
    b = jnp.arcsin(occulting_radius / r_norm)
    c = jnp.arccos(jnp.clip(-jnp.dot(r, d) / (r_norm * d_norm), -1.0, 1.0))

    x = (c**2 + a**2 - b**2) / (2.0 * c)
    y = jnp.sqrt(jnp.maximum(a**2 - x**2, 0.0))
    overlap = (a**2 * jnp.arccos(jnp.clip(x / a, -1.0, 1.0))
               + b**2 * jnp.arccos(jnp.clip((c - x) / b, -1.0, 1.0)) - c * y)
    partial = 1.0 - overlap / (jnp.pi * a**2)

    in_light = (a + b) <= c
    in_penumbra = (jnp.abs(a - b) < c) & (c < (a + b))
    return jnp.where(in_light, _float(1.0), jnp.where(in_penumbra, partial, _float(0.0)))


class SolarRadiationPressure(ForceModel):
    """Radiation pressure of the Sun on the spacecraft.

    Args:
        sun: Position provider of the Sun.
        spacecraft: Radiation geometry, owner of the ``cr`` parameter.
        occulting_radius: Radius of the central (shadowing) body [m].
        reference_flux: Radiation pressure at ``reference_distance`` [N/m^2].
        reference_distance: Distance of the reference flux [m]. Default: 1 AU.
        eclipse: Whether to apply the shadow model.
    """

    compute_gradient_position = True

    def __init__(
        self,
        sun: CelestialBody,
        spacecraft: RadiationSensitive,
        occulting_radius: float = R_EARTH,
        reference_flux: float = P_SUN,
        reference_distance: float = AU,
        eclipse: bool = True,
    ) -> None:
        super().__init__()
        self.sun = sun
        self.spacecraft = spacecraft
        self.occulting_radius = occulting_radius
        self.reference_flux = reference_flux
        self.reference_distance = reference_distance
        self.eclipse = eclipse

    def parameters(self) -> list[Parameter]:
        return self.spacecraft.radiation_parameters()

    def lighting_ratio(self, state) -> Array:
        """Visible fraction of the solar disk at ``state``."""
        if not self.eclipse:
            return jnp.asarray(1.0, dtype=get_dtype())
        r_sun = self.sun.position(state.epoch, state.frame)
        return eclipse_conical(state.position, r_sun, self.sun.radius, self.occulting_radius)

    def _acceleration(self, state, values):
        r_sun = self.sun.position(state.epoch, state.frame)
        d = state.position - r_sun
        d_norm = jnp.linalg.norm(d)
        pressure = (self.lighting_ratio(state) * self.reference_flux
                    * (self.reference_distance / d_norm) ** 2)
        return self.spacecraft.radiation_acceleration(state, pressure, d / d_norm, values)

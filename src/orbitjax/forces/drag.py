"""Atmospheric drag.

The density comes from an :class:`Atmosphere` collaborator and the
geometry from a :class:`~orbitjax.forces.spacecraft.DragSensitive` model.
The relative velocity is taken with respect to an atmosphere co-rotating
with the Earth-fixed frame.

References:
    1. O. Montenbruck and E. Gill, *Satellite Orbits: Models, Methods
       and Applications*, 2012, Sec. 3.5.
    2. D. Vallado, *Fundamentals of Astrodynamics and Applications*,
       4th ed., 2013, Table 8-4.
"""

from __future__ import annotations

from typing import Protocol

import jax.numpy as jnp
from jax import Array

from orbitjax.config import get_dtype
from orbitjax.constants import R_EARTH
from orbitjax.epoch import Epoch
from orbitjax.errors import ConfigurationError
from orbitjax.forces.base import ForceModel
from orbitjax.forces.spacecraft import DragSensitive
from orbitjax.frames import ITRF, Frame
from orbitjax.parameters import Parameter


class Atmosphere(Protocol):
    """Source of atmospheric density."""

    def density(self, epoch: Epoch, position: Array, frame: Frame) -> Array:
        """Density at ``position`` (expressed in ``frame``) [kg/m^3]."""
        ...


class ExponentialAtmosphere:
    """Single-layer exponential atmosphere over a spherical Earth.

    ``rho = rho0 * exp(-(h - h0) / scale_height)``

    Args:
        rho0: Density at the reference altitude [kg/m^3].
        h0: Reference altitude [m].
        scale_height: Scale height [m].
        radius: Radius of the central body [m].

    Raises:
        ConfigurationError: If ``rho0`` is negative or ``scale_height`` is
            not positive.
    """

    def __init__(
        self,
        rho0: float = 3.614e-13,
        h0: float = 700.0e3,
        scale_height: float = 88.667e3,
        radius: float = R_EARTH,
    ) -> None:
        if rho0 < 0.0:
            raise ConfigurationError(f"reference density must not be negative, got {rho0}")
        if not scale_height > 0.0:
            raise ConfigurationError(f"scale height must be positive, got {scale_height}")
        self.rho0 = rho0
        self.h0 = h0
        self.scale_height = scale_height
        self.radius = radius

    def density(self, epoch, position, frame):
        altitude = jnp.linalg.norm(position) - self.radius
        return self.rho0 * jnp.exp(-(altitude - self.h0) / self.scale_height)


class DragForce(ForceModel):
    """Atmospheric drag acceleration.

    Args:
        atmosphere: Density provider.
        spacecraft: Drag geometry, owner of the ``cd`` parameter.
        body_frame: Frame the atmosphere co-rotates with. Default: ITRF.
    """

    compute_gradient_position = True
    compute_gradient_velocity = True

    def __init__(
        self,
        atmosphere: Atmosphere,
        spacecraft: DragSensitive,
        body_frame: Frame = ITRF,
    ) -> None:
        super().__init__()
        self.atmosphere = atmosphere
        self.spacecraft = spacecraft
        self.body_frame = body_frame

    def parameters(self) -> list[Parameter]:
        return self.spacecraft.drag_parameters()

    def relative_velocity(self, state) -> Array:
        """Velocity relative to the co-rotating atmosphere, in the state frame."""
        spin = self.body_frame.rotation_to(state.frame, state.epoch) @ jnp.asarray(
            self.body_frame.spin, dtype=get_dtype()
        )
        return state.velocity - jnp.cross(spin, state.position)

    def _acceleration(self, state, values):
        rho = self.atmosphere.density(state.epoch, state.position, state.frame)
        return self.spacecraft.drag_acceleration(
            state, rho, self.relative_velocity(state), values
        )

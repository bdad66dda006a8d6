"""Spacecraft geometry models for surface forces.

Surface forces (drag, solar radiation pressure) delegate the geometry to a
sensitivity model:

- :class:`IsotropicSpacecraft`: a "cannonball" with a fixed cross-section,
- :class:`FacetSpacecraft`: a set of flat :class:`Facet` plates in the body
  frame, each contributing its area projected on the incoming flux.

The aerodynamic coefficient ``cd`` and the reflectivity coefficient ``cr``
are :class:`~orbitjax.parameters.Parameter` objects owned by the geometry
model, so that they can be estimated through the force models using them.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Protocol

import jax.numpy as jnp
from jax import Array

from orbitjax.config import get_dtype
from orbitjax.errors import ConfigurationError
from orbitjax.parameters import Parameter, as_parameter
from orbitjax.state import SpacecraftState

logger = logging.getLogger(__name__)


class DragSensitive(Protocol):
    """Geometry providing the drag acceleration."""

    def drag_parameters(self) -> list[Parameter]:
        ...

    def drag_acceleration(
        self,
        state: SpacecraftState,
        density: Array,
        relative_velocity: Array,
        values: Mapping[Parameter, Array],
    ) -> Array:
        ...


class RadiationSensitive(Protocol):
    """Geometry providing the radiation pressure acceleration."""

    def radiation_parameters(self) -> list[Parameter]:
        ...

    def radiation_acceleration(
        self,
        state: SpacecraftState,
        pressure: Array,
        flux_direction: Array,
        values: Mapping[Parameter, Array],
    ) -> Array:
        ...


class IsotropicSpacecraft:
    """Spherical spacecraft with the same cross-section in every direction.

    Args:
        area: Cross-sectional area [m^2].
        cd: Drag coefficient (value or shared :class:`Parameter`).
        cr: Reflectivity coefficient (value or shared :class:`Parameter`).

    Raises:
        ConfigurationError: If ``area`` is not positive.
    """

    def __init__(self, area: float, cd: Parameter | float = 2.2, cr: Parameter | float = 1.3) -> None:
        if not area > 0.0:
            raise ConfigurationError(f"cross-section area must be positive, got {area}")
        self.area = float(area)
        self.cd = as_parameter("C_D", cd)
        self.cr = as_parameter("C_R", cr)

    def drag_parameters(self) -> list[Parameter]:
        return [self.cd]

    def radiation_parameters(self) -> list[Parameter]:
        return [self.cr]

    def drag_acceleration(self, state, density, relative_velocity, values):
        v_abs = jnp.linalg.norm(relative_velocity)
        return (-0.5 * values[self.cd] * self.area / state.total_mass
                * density * v_abs * relative_velocity)

    def radiation_acceleration(self, state, pressure, flux_direction, values):
        return values[self.cr] * self.area / state.total_mass * pressure * flux_direction


@dataclass(frozen=True)
class Facet:
    """A flat plate of the spacecraft surface.

    Args:
        normal: Outward normal in the body frame (normalised on use).
        area: Plate area [m^2].

    Raises:
        ConfigurationError: If the area is negative or the normal is null.
    """

    normal: tuple[float, float, float]
    area: float

    def __post_init__(self) -> None:
        if self.area < 0.0:
            raise ConfigurationError(f"facet area must not be negative, got {self.area}")
        if all(c == 0.0 for c in self.normal):
            raise ConfigurationError("facet normal must not be the null vector")


class FacetSpacecraft:
    """Spacecraft made of flat plates.

    Zero-area facets carry no force; they are dropped at construction.
    Only facets whose normal faces the incoming flow (drag) or the Sun
    (radiation) contribute, with their projected area.

    Args:
        facets: The plates, normals in the body frame.
        cd: Drag coefficient (value or shared :class:`Parameter`).
        cr: Reflectivity coefficient (value or shared :class:`Parameter`).

    Raises:
        ConfigurationError: If no facet with a positive area remains.
    """

    def __init__(
        self,
        facets: Iterable[Facet],
        cd: Parameter | float = 2.2,
        cr: Parameter | float = 1.3,
    ) -> None:
        facets = list(facets)
        kept = [f for f in facets if f.area > 0.0]
        if len(kept) < len(facets):
            logger.warning("Dropped %d zero-area facet(s)", len(facets) - len(kept))
        if not kept:
            raise ConfigurationError("spacecraft geometry has no facet with a positive area")

        _float = get_dtype()
        self.facets = tuple(kept)
        normals = jnp.asarray([f.normal for f in kept], dtype=_float)
        self._normals = normals / jnp.linalg.norm(normals, axis=1, keepdims=True)
        self._areas = jnp.asarray([f.area for f in kept], dtype=_float)
        self.cd = as_parameter("C_D", cd)
        self.cr = as_parameter("C_R", cr)

    def drag_parameters(self) -> list[Parameter]:
        return [self.cd]

    def radiation_parameters(self) -> list[Parameter]:
        return [self.cr]

    def _projected_area(self, state: SpacecraftState, direction: Array) -> Array:
        """Sum of facet areas projected on a plane normal to ``direction``.

        ``direction`` is expressed in the state frame and points from the
        spacecraft towards the source of the flux.
        """
        body_dir = state.get_attitude().frame_to_body(direction, state.frame, state.epoch)
        cosines = self._normals @ body_dir
        return jnp.sum(self._areas * jnp.maximum(cosines, 0.0))

    def drag_acceleration(self, state, density, relative_velocity, values):
        v_abs = jnp.linalg.norm(relative_velocity)
        area = self._projected_area(state, relative_velocity / v_abs)
        return (-0.5 * values[self.cd] * area / state.total_mass
                * density * v_abs * relative_velocity)

    def radiation_acceleration(self, state, pressure, flux_direction, values):
        area = self._projected_area(state, -flux_direction)
        return values[self.cr] * area / state.total_mass * pressure * flux_direction

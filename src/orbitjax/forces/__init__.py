"""Force models.

- **Gravity**: central attraction and point-mass third bodies
- **Drag**: atmospheric drag with a rotating atmosphere
- **SRP**: solar radiation pressure with a conical shadow model
- **Empirical**: harmonic empirical accelerations
- **Maneuvers**: constant thrust, thrust errors and impulses
- **Spacecraft**: isotropic and facet geometry models for surface forces
"""

from orbitjax.forces.base import ForceModel, direction_in_state_frame
from orbitjax.forces.drag import Atmosphere, DragForce, ExponentialAtmosphere
from orbitjax.forces.empirical import EmpiricalForce, harmonic_cos_sin
from orbitjax.forces.gravity import (
    NewtonianAttraction,
    ThirdBodyAttraction,
    accel_point_mass,
    accel_third_body,
)
from orbitjax.forces.maneuvers import ConstantThrustError, ConstantThrustManeuver, ImpulseManeuver
from orbitjax.forces.radiation import SolarRadiationPressure, eclipse_conical
from orbitjax.forces.spacecraft import (
    DragSensitive,
    Facet,
    FacetSpacecraft,
    IsotropicSpacecraft,
    RadiationSensitive,
)

__all__ = [
    "ForceModel",
    "direction_in_state_frame",
    # Gravity
    "NewtonianAttraction",
    "ThirdBodyAttraction",
    "accel_point_mass",
    "accel_third_body",
    # Surface forces
    "Atmosphere",
    "ExponentialAtmosphere",
    "DragForce",
    "SolarRadiationPressure",
    "eclipse_conical",
    "DragSensitive",
    "RadiationSensitive",
    "IsotropicSpacecraft",
    "Facet",
    "FacetSpacecraft",
    # Empirical
    "EmpiricalForce",
    "harmonic_cos_sin",
    # Maneuvers
    "ConstantThrustManeuver",
    "ConstantThrustError",
    "ImpulseManeuver",
]

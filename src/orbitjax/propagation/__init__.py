"""Numerical propagation of spacecraft states.

- :class:`NumericalPropagator` orchestrates force models, event detectors,
  step handlers and the integrator,
- :class:`StateMapper` converts between states and integration vectors,
- :class:`ForceAccumulator` and :class:`TimeDerivativesEquations` build the
  equations of motion,
- :class:`PartialDerivativesEquations` propagates the state transition
  matrix and parameter Jacobian,
- :class:`IntegratedEphemeris` serves states from a finished propagation.
"""

from orbitjax.propagation.ephemeris import IntegratedEphemeris
from orbitjax.propagation.equations import (
    AdditionalEquations,
    ForceAccumulator,
    PartialDerivativesEquations,
    TimeDerivativesEquations,
)
from orbitjax.propagation.handlers import (
    FixedStepHandler,
    SpacecraftStateInterpolator,
    StepHandler,
    StepNormalizer,
)
from orbitjax.propagation.mapper import StateMapper
from orbitjax.propagation.numerical import DetectorAdapter, NumericalPropagator, PropagationMode

__all__ = [
    "NumericalPropagator",
    "PropagationMode",
    "DetectorAdapter",
    "StateMapper",
    "ForceAccumulator",
    "TimeDerivativesEquations",
    "AdditionalEquations",
    "PartialDerivativesEquations",
    "StepHandler",
    "FixedStepHandler",
    "StepNormalizer",
    "SpacecraftStateInterpolator",
    "IntegratedEphemeris",
]

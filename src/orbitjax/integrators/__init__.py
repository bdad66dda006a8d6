"""Numerical ODE integrators driving the propagation.

Provides fixed-step and adaptive Runge-Kutta integrators implemented with
JAX arrays:

- :class:`DormandPrince54` -- Dormand-Prince 5(4), FSAL, 4th-order dense output
- :class:`RungeKuttaFehlberg45` -- Runge-Kutta-Fehlberg 4(5), Hermite dense output
- :class:`ClassicalRungeKutta` -- classic 4th-order Runge-Kutta (fixed step)

``Integrator.integrate(ode, t0, y0, t_end, events, step_handlers)`` runs
the step loop with event handling.  The single-step functions share a
common, jit-compatible interface::

    result = step_fn(dynamics, t, state, dt)

where ``dynamics(t, x) -> dx`` defines the ODE right-hand side, and the
result is a :class:`StepResult` named tuple.
"""

from orbitjax.integrators._types import AdaptiveConfig, IntegratorStatus, StepResult
from orbitjax.integrators.base import AdaptiveStepIntegrator, Integrator
from orbitjax.integrators.dp54 import DormandPrince54, dp54_step
from orbitjax.integrators.interpolator import (
    DormandPrinceInterpolator,
    HermiteInterpolator,
    StepInterpolator,
)
from orbitjax.integrators.rk4 import ClassicalRungeKutta, rk4_step
from orbitjax.integrators.rkf45 import RungeKuttaFehlberg45, rkf45_step

__all__ = [
    "AdaptiveConfig",
    "IntegratorStatus",
    "StepResult",
    "Integrator",
    "AdaptiveStepIntegrator",
    "DormandPrince54",
    "RungeKuttaFehlberg45",
    "ClassicalRungeKutta",
    "StepInterpolator",
    "HermiteInterpolator",
    "DormandPrinceInterpolator",
    "rk4_step",
    "rkf45_step",
    "dp54_step",
]

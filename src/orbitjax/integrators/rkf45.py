"""Runge-Kutta-Fehlberg 4(5) adaptive integrator (RKF45).

Fehlberg embedded Runge-Kutta method with a 5th-order solution for
propagation and a 4th-order solution for error estimation, 6 stages per
step.  There is no FSAL stage: the derivative at the end of an accepted
step is evaluated once and serves both the cubic Hermite dense output and
the first stage of the next step.

Butcher tableau (standard Fehlberg formulation):

- Nodes (c): [0, 1/4, 3/8, 12/13, 1, 1/2]
- 5th-order weights (b_high): [16/135, 0, 6656/12825, 28561/56430, -9/50, 2/55]
- 4th-order weights (b_low): [25/216, 0, 1408/2565, 2197/4104, -1/5, 0]
"""

from __future__ import annotations

from collections.abc import Callable

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from orbitjax.config import get_dtype
from orbitjax.integrators._adaptive import adaptive_single_step
from orbitjax.integrators._types import AdaptiveConfig, StepResult
from orbitjax.integrators.base import AdaptiveStepIntegrator
from orbitjax.integrators.interpolator import HermiteInterpolator

_C = (0.0, 1.0 / 4.0, 3.0 / 8.0, 12.0 / 13.0, 1.0, 1.0 / 2.0)

_A1 = (1.0 / 4.0,)
_A2 = (3.0 / 32.0, 9.0 / 32.0)
_A3 = (1932.0 / 2197.0, -7200.0 / 2197.0, 7296.0 / 2197.0)
_A4 = (439.0 / 216.0, -8.0, 3680.0 / 513.0, -845.0 / 4104.0)
_A5 = (-8.0 / 27.0, 2.0, -3544.0 / 2565.0, 1859.0 / 4104.0, -11.0 / 40.0)

_B_HIGH = (16.0 / 135.0, 0.0, 6656.0 / 12825.0, 28561.0 / 56430.0, -9.0 / 50.0, 2.0 / 55.0)
_B_LOW = (25.0 / 216.0, 0.0, 1408.0 / 2565.0, 2197.0 / 4104.0, -1.0 / 5.0, 0.0)


def _rkf45_stages(f, t, state, h, k0):
    """Trial step from the initial derivative ``k0``: ``(state_high, error_vec)``."""
    k1 = f(t + _C[1] * h, state + h * _A1[0] * k0)
    k2 = f(t + _C[2] * h, state + h * (_A2[0] * k0 + _A2[1] * k1))
    k3 = f(t + _C[3] * h, state + h * (_A3[0] * k0 + _A3[1] * k1 + _A3[2] * k2))
    k4 = f(
        t + _C[4] * h,
        state + h * (_A4[0] * k0 + _A4[1] * k1 + _A4[2] * k2 + _A4[3] * k3),
    )
    k5 = f(
        t + _C[5] * h,
        state + h * (_A5[0] * k0 + _A5[1] * k1 + _A5[2] * k2 + _A5[3] * k3 + _A5[4] * k4),
    )

    state_high = state + h * (
        _B_HIGH[0] * k0 + _B_HIGH[2] * k2 + _B_HIGH[3] * k3 + _B_HIGH[4] * k4 + _B_HIGH[5] * k5
    )
    state_low = state + h * (_B_LOW[0] * k0 + _B_LOW[2] * k2 + _B_LOW[3] * k3 + _B_LOW[4] * k4)
    return state_high, state_high - state_low


def rkf45_step(
    dynamics: Callable[[ArrayLike, ArrayLike], Array],
    t: ArrayLike,
    state: ArrayLike,
    dt: ArrayLike,
    config: AdaptiveConfig | None = None,
    control: Callable[[ArrayLike, ArrayLike], Array] | None = None,
) -> StepResult:
    """Perform a single adaptive RKF45 integration step.

    Compatible with ``jax.jit`` and ``jax.vmap``. Not compatible with
    reverse-mode ``jax.grad`` due to the internal ``lax.while_loop``.

    Args:
        dynamics: ODE right-hand side function ``f(t, x) -> dx/dt``.
        t: Current time.
        state: Current state vector.
        dt: Requested timestep. May be negative for backward integration.
        config: Adaptive step-size configuration. Uses default
            :class:`AdaptiveConfig` if ``None``.
        control: Optional additive control function ``u(t, x)``.

    Returns:
        StepResult: State at ``t + dt_used``, ``dt_used``, normalized
            error and suggested next timestep.

    Examples:
        ```python
        import jax.numpy as jnp
        from orbitjax.integrators import rkf45_step
        def harmonic(t, x):
            return jnp.array([x[1], -x[0]])
        result = rkf45_step(harmonic, 0.0, jnp.array([1.0, 0.0]), 0.1)
        ```
    """
    if config is None:
        config = AdaptiveConfig()

    dtype = get_dtype()
    t = jnp.asarray(t, dtype=dtype)
    state = jnp.asarray(state, dtype=dtype)
    dt = jnp.asarray(dt, dtype=dtype)

    def f(ti, xi):
        dx = dynamics(ti, xi)
        if control is not None:
            dx = dx + control(ti, xi)
        return dx

    k0 = f(t, state)
    h_used, state_out, error_out, dt_next = adaptive_single_step(
        lambda h: _rkf45_stages(f, t, state, h, k0), state, dt, config, 4.0
    )
    return StepResult(state=state_out, dt_used=h_used, error_estimate=error_out, dt_next=dt_next)


class RungeKuttaFehlberg45(AdaptiveStepIntegrator):
    """Runge-Kutta-Fehlberg 4(5) integrator with cubic Hermite dense output.

    Args:
        config: Step-size control settings.
    """

    name = "Runge-Kutta-Fehlberg 4(5)"
    order = 4.0

    def _trial(self, ode, t, y, f, h):
        state_high, error_vec = _rkf45_stages(ode, t, y, h, f)
        return state_high, error_vec, ()

    def _finish(self, ode, t, y, f, t_new, y_new, stages):
        f_new = ode(t_new, y_new)
        return f_new, HermiteInterpolator(t, y, f, t_new, y_new, f_new)

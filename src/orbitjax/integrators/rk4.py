"""Classic 4th-order Runge-Kutta integrator (RK4).

Standard four-stage, 4th-order explicit Runge-Kutta method.  Fixed step,
no error control:

.. math::

    \\begin{array}{c|cccc}
    0   &     &     &     &   \\\\
    1/2 & 1/2 &     &     &   \\\\
    1/2 &  0  & 1/2 &     &   \\\\
    1   &  0  &  0  &  1  &   \\\\
    \\hline
        & 1/6 & 1/3 & 1/3 & 1/6
    \\end{array}
"""

from __future__ import annotations

from collections.abc import Callable

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from orbitjax.config import get_dtype
from orbitjax.errors import ConfigurationError
from orbitjax.integrators._types import StepResult
from orbitjax.integrators.base import Integrator
from orbitjax.integrators.interpolator import HermiteInterpolator


def _rk4_increment(f, t, state, dt, k1):
    k2 = f(t + 0.5 * dt, state + 0.5 * dt * k1)
    k3 = f(t + 0.5 * dt, state + 0.5 * dt * k2)
    k4 = f(t + dt, state + dt * k3)
    return state + (dt / 6.0) * (k1 + 2.0 * k2 + 2.0 * k3 + k4)


def rk4_step(
    dynamics: Callable[[ArrayLike, ArrayLike], Array],
    t: ArrayLike,
    state: ArrayLike,
    dt: ArrayLike,
    control: Callable[[ArrayLike, ArrayLike], Array] | None = None,
) -> StepResult:
    """Perform a single RK4 integration step.

    Advances the state from time ``t`` to ``t + dt``. Compatible with
    ``jax.jit`` and ``jax.vmap``.

    Args:
        dynamics: ODE right-hand side function ``f(t, x) -> dx/dt``.
        t: Current time.
        state: Current state vector.
        dt: Timestep to take. May be negative for backward integration.
        control: Optional additive control function ``u(t, x)``.

    Returns:
        StepResult: State at ``t + dt``; ``dt_used`` and ``dt_next`` equal
            ``dt`` and ``error_estimate`` is 0.0.

    Examples:
        ```python
        import jax.numpy as jnp
        from orbitjax.integrators import rk4_step
        def harmonic(t, x):
            return jnp.array([x[1], -x[0]])
        result = rk4_step(harmonic, 0.0, jnp.array([1.0, 0.0]), 0.01)
        result.state  # ~[cos(0.01), -sin(0.01)]
        ```
    """
    dtype = get_dtype()
    t = jnp.asarray(t, dtype=dtype)
    state = jnp.asarray(state, dtype=dtype)
    dt = jnp.asarray(dt, dtype=dtype)

    def f(ti, xi):
        dx = dynamics(ti, xi)
        if control is not None:
            dx = dx + control(ti, xi)
        return dx

    state_new = _rk4_increment(f, t, state, dt, f(t, state))
    return StepResult(
        state=state_new,
        dt_used=dt,
        error_estimate=jnp.asarray(0.0, dtype=dtype),
        dt_next=dt,
    )


class ClassicalRungeKutta(Integrator):
    """Fixed-step RK4 integrator with cubic Hermite dense output.

    The last step is shortened to land exactly on the end time.

    Args:
        step: Step size magnitude [s].

    Raises:
        ConfigurationError: If ``step`` is not positive.
    """

    name = "classical Runge-Kutta"
    order = 4.0

    def __init__(self, step: float) -> None:
        super().__init__()
        if not step > 0.0:
            raise ConfigurationError(f"step size must be positive, got {step}")
        self.step = float(step)

    def _initial_step(self, ode, t, y, f, direction):
        return self.step

    def _advance(self, ode, t, y, f, h, t_end):
        remaining = t_end - t
        last = abs(h) >= abs(remaining)
        if last:
            h = remaining
        t_new = t_end if last else t + h
        y_new = _rk4_increment(ode, t, y, h, f)
        f_new = ode(t_new, y_new)
        interpolator = HermiteInterpolator(t, y, f, t_new, y_new, f_new)
        return t_new, y_new, f_new, interpolator, (1.0 if h > 0 else -1.0) * self.step

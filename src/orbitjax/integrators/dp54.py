"""Dormand-Prince 5(4) adaptive integrator (DP54).

Implements the Dormand-Prince embedded Runge-Kutta method with a 5th-order
solution for propagation and a 4th-order solution for error estimation. The
method uses 7 stages per step.

The method has the First-Same-As-Last (FSAL) property: the 7th stage of an
accepted step is the 1st stage of the next one.  :class:`DormandPrince54`
reuses it, so an accepted step costs six new derivative evaluations.  The
single-step function :func:`dp54_step` stays purely functional and
recomputes it.

The Butcher tableau coefficients are the standard Dormand-Prince values:

- Nodes (c): [0, 1/5, 3/10, 4/5, 8/9, 1, 1]
- 5th-order weights (b_high): [35/384, 0, 500/1113, 125/192, -2187/6784, 11/84, 0]
- 4th-order weights (b_low): [5179/57600, 0, 7571/16695, 393/640, -92097/339200,
  187/2100, 1/40]

Dense output uses the 4th-order continuous extension of Hairer, Norsett
and Wanner (``DOPRI5``).
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
from orbitjax.integrators.interpolator import DormandPrinceInterpolator

# Butcher tableau coefficients as Python tuples (cast at call time).
# Nodes
_C = (0.0, 1.0 / 5.0, 3.0 / 10.0, 4.0 / 5.0, 8.0 / 9.0, 1.0, 1.0)

# Coupling coefficients (lower-triangular rows)
_A1 = (1.0 / 5.0,)
_A2 = (3.0 / 40.0, 9.0 / 40.0)
_A3 = (44.0 / 45.0, -56.0 / 15.0, 32.0 / 9.0)
_A4 = (19372.0 / 6561.0, -25360.0 / 2187.0, 64448.0 / 6561.0, -212.0 / 729.0)
_A5 = (9017.0 / 3168.0, -355.0 / 33.0, 46732.0 / 5247.0, 49.0 / 176.0, -5103.0 / 18656.0)

# 5th-order weights, also the last coupling row
_B_HIGH = (35.0 / 384.0, 0.0, 500.0 / 1113.0, 125.0 / 192.0, -2187.0 / 6784.0, 11.0 / 84.0, 0.0)

# 4th-order weights (error estimation)
_B_LOW = (
    5179.0 / 57600.0,
    0.0,
    7571.0 / 16695.0,
    393.0 / 640.0,
    -92097.0 / 339200.0,
    187.0 / 2100.0,
    1.0 / 40.0,
)

# b_high - b_low
_E = tuple(bh - bl for bh, bl in zip(_B_HIGH, _B_LOW))


def _dp54_stages(f, t, state, h, k0):
    """Stages of one DP54 step from the initial derivative ``k0``.

    Returns:
        tuple: ``(state_high, error_vec, (k0, ..., k6))``.
    """
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

    # _B_HIGH[1] = _B_HIGH[6] = 0
    state_high = state + h * (
        _B_HIGH[0] * k0
        + _B_HIGH[2] * k2
        + _B_HIGH[3] * k3
        + _B_HIGH[4] * k4
        + _B_HIGH[5] * k5
    )
    k6 = f(t + _C[6] * h, state_high)

    error_vec = h * (
        _E[0] * k0 + _E[2] * k2 + _E[3] * k3 + _E[4] * k4 + _E[5] * k5 + _E[6] * k6
    )
    return state_high, error_vec, (k0, k1, k2, k3, k4, k5, k6)


def dp54_step(
    dynamics: Callable[[ArrayLike, ArrayLike], Array],
    t: ArrayLike,
    state: ArrayLike,
    dt: ArrayLike,
    config: AdaptiveConfig | None = None,
    control: Callable[[ArrayLike, ArrayLike], Array] | None = None,
) -> StepResult:
    """Perform a single adaptive DP54 integration step.

    Advances the state from time ``t`` by up to ``dt``. If the error exceeds
    the tolerance, the step is rejected and retried with a smaller timestep
    inside a ``jax.lax.while_loop``, so the function is compatible with
    ``jax.jit`` and ``jax.vmap`` when ``dynamics`` is traceable.

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
        from orbitjax.integrators import dp54_step
        def harmonic(t, x):
            return jnp.array([x[1], -x[0]])
        result = dp54_step(harmonic, 0.0, jnp.array([1.0, 0.0]), 0.1)
        result.state  # ~[cos(0.1), -sin(0.1)]
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

    def attempt(h):
        state_new, error_vec, _ = _dp54_stages(f, t, state, h, k0)
        return state_new, error_vec

    h_used, state_out, error_out, dt_next = adaptive_single_step(attempt, state, dt, config, 4.0)
    return StepResult(state=state_out, dt_used=h_used, error_estimate=error_out, dt_next=dt_next)


class DormandPrince54(AdaptiveStepIntegrator):
    """Dormand-Prince 5(4) integrator with FSAL and 4th-order dense output.

    Args:
        config: Step-size control settings.

    Examples:
        ```python
        import jax.numpy as jnp
        from orbitjax.integrators import AdaptiveConfig, DormandPrince54
        integrator = DormandPrince54(AdaptiveConfig(abs_tol=1e-10, rel_tol=1e-10))
        t, y = integrator.integrate(lambda t, y: jnp.array([y[1], -y[0]]),
                                    0.0, jnp.array([1.0, 0.0]), jnp.pi)
        ```
    """

    name = "Dormand-Prince 5(4)"
    order = 4.0

    def _trial(self, ode, t, y, f, h):
        return _dp54_stages(ode, t, y, h, f)

    def _finish(self, ode, t, y, f, t_new, y_new, stages):
        return stages[6], DormandPrinceInterpolator(t, y, t_new, y_new, stages)

"""Adaptive step-size control utilities for embedded Runge-Kutta methods.

Shared error-norm computation, step-size prediction and initial step
estimation used by the RKF45 and DP54 integrators:

1. Compute a normalized error using mixed absolute/relative tolerances.
2. Accept the step if the normalized error is <= 1.0.
3. Predict the next step size using the error and the method order.
"""

from __future__ import annotations

from collections.abc import Callable

import jax
import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from orbitjax.config import get_dtype


def compute_error_norm(
    error_vec: ArrayLike,
    state_new: ArrayLike,
    state_old: ArrayLike,
    abs_tol: ArrayLike,
    rel_tol: ArrayLike,
) -> Array:
    """Compute the normalized error norm for adaptive step-size control.

    Uses a mixed absolute/relative tolerance per component with the infinity
    norm (maximum over components):

    .. math::

        \\text{tol}_i = \\text{abs\\_tol}_i + \\text{rel\\_tol}_i
            \\cdot \\max(|y^{\\text{new}}_i|, |y^{\\text{old}}_i|)

    Args:
        error_vec: Difference between high-order and low-order solutions.
        state_new: High-order solution.
        state_old: State at the beginning of the step.
        abs_tol: Absolute tolerance, scalar or per component.
        rel_tol: Relative tolerance, scalar or per component.

    Returns:
        jax.Array: Scalar normalized error. Step is accepted if <= 1.0.
    """
    _float = get_dtype()
    error_vec = jnp.asarray(error_vec, dtype=_float)
    state_new = jnp.asarray(state_new, dtype=_float)
    state_old = jnp.asarray(state_old, dtype=_float)

    scale = abs_tol + rel_tol * jnp.maximum(jnp.abs(state_new), jnp.abs(state_old))
    return jnp.max(jnp.abs(error_vec) / scale)


def compute_next_step_size(
    error: ArrayLike,
    h: ArrayLike,
    order: float,
    safety_factor: float,
    min_scale_factor: float,
    max_scale_factor: float,
    min_step: float,
    max_step: float,
) -> Array:
    """Compute the next step size based on the current error estimate.

    .. math::

        h_{\\text{next}} = |h| \\cdot S \\cdot
            \\left(\\frac{1}{\\text{error}}\\right)^{1/(p+1)}

    The result is clamped by the scale-factor bounds and the absolute
    step-size bounds; the sign of ``h`` is preserved.

    Args:
        error: Normalized error from :func:`compute_error_norm`.
        h: Current step size (negative for backward integration).
        order: Order of the error estimator.
        safety_factor: Multiplicative safety factor.
        min_scale_factor: Minimum allowed ratio ``|h_next| / |h|``.
        max_scale_factor: Maximum allowed ratio ``|h_next| / |h|``.
        min_step: Absolute minimum step size (0 disables the lower clamp).
        max_step: Absolute maximum step size.

    Returns:
        jax.Array: Suggested next step size with the sign of ``h``.
    """
    _float = get_dtype()
    error = jnp.asarray(error, dtype=_float)
    h = jnp.asarray(h, dtype=_float)

    exponent = 1.0 / (order + 1.0)
    safe_error = jnp.where(error > 0.0, error, 1.0)
    raw_scale = jnp.where(error > 0.0, jnp.power(1.0 / safe_error, exponent), max_scale_factor)
    scale = jnp.clip(safety_factor * raw_scale, min_scale_factor, max_scale_factor)

    abs_h_next = jnp.clip(jnp.abs(h) * scale, min_step, max_step)
    return jnp.sign(h) * abs_h_next


def estimate_initial_step(
    ode: Callable[[float, Array], Array],
    t0: float,
    y0: Array,
    f0: Array,
    direction: float,
    order: float,
    abs_tol: ArrayLike,
    rel_tol: ArrayLike,
    min_step: float,
    max_step: float,
) -> float:
    """Starting step size magnitude from the local behaviour of the ODE.

    Follows the heuristic of Hairer, Norsett and Wanner (Solving Ordinary
    Differential Equations I, Sec. II.4): an explicit Euler trial step
    estimates the second derivative, from which a step giving a local
    error close to the tolerance is derived.

    Args:
        ode: Right-hand side ``f(t, y)``.
        t0: Start time.
        y0: Start state.
        f0: ``f(t0, y0)``.
        direction: +1.0 forward, -1.0 backward.
        order: Order of the method.
        abs_tol: Absolute tolerance.
        rel_tol: Relative tolerance.
        min_step: Lower bound of the result.
        max_step: Upper bound of the result.

    Returns:
        float: Positive step size magnitude.
    """
    scale = abs_tol + rel_tol * jnp.abs(y0)
    d0 = float(jnp.sqrt(jnp.mean((y0 / scale) ** 2)))
    d1 = float(jnp.sqrt(jnp.mean((f0 / scale) ** 2)))
    h0 = 1e-6 if d0 < 1e-5 or d1 < 1e-5 else 0.01 * d0 / d1
    h0 = min(h0, max_step)

    y1 = y0 + direction * h0 * f0
    f1 = ode(t0 + direction * h0, y1)
    d2 = float(jnp.sqrt(jnp.mean(((f1 - f0) / scale) ** 2))) / h0

    d_max = max(d1, d2)
    if d_max <= 1e-15:
        h1 = max(1e-6, h0 * 1e-3)
    else:
        h1 = (0.01 / d_max) ** (1.0 / (order + 1.0))

    return min(max(min(100.0 * h0, h1), min_step), max_step)


def adaptive_single_step(
    attempt: Callable[[Array], tuple[Array, Array]],
    state: Array,
    dt: Array,
    config,
    order: float,
):
    """Jit-compatible accept/reject loop around a trial step.

    Retries with a reduced step while the error exceeds 1.0, at most
    ``config.max_step_attempts`` times; a step at ``min_step`` is accepted
    regardless of its error.

    Args:
        attempt: ``h -> (state_new, error_vec)`` trial step.
        state: State at the beginning of the step.
        dt: Requested step size.
        config: :class:`~orbitjax.integrators.AdaptiveConfig`.
        order: Order of the error estimator.

    Returns:
        tuple: ``(h_used, state_new, error, h_next)``.
    """
    def next_step(error, h):
        return compute_next_step_size(
            error, h, order, config.safety_factor,
            config.min_scale_factor, config.max_scale_factor,
            config.min_step, config.max_step,
        )

    # carry: (h, attempts, accepted, state_out, error_out)
    def cond_fn(carry):
        _h, attempts, accepted, _state_out, _error_out = carry
        return (~accepted) & (attempts < config.max_step_attempts)

    def body_fn(carry):
        h, attempts, _accepted, _state_out, _error_out = carry
        state_new, error_vec = attempt(h)
        error = compute_error_norm(error_vec, state_new, state, config.abs_tol, config.rel_tol)
        accepted = (error <= 1.0) | (jnp.abs(h) <= config.min_step)
        return (jnp.where(accepted, h, next_step(error, h)), attempts + 1, accepted,
                state_new, error)

    init_carry = (
        dt,
        jnp.asarray(0, dtype=jnp.int32),
        jnp.asarray(False),
        state,
        jnp.asarray(jnp.inf, dtype=get_dtype()),
    )
    h_used, _attempts, _accepted, state_out, error_out = jax.lax.while_loop(
        cond_fn, body_fn, init_carry
    )
    return h_used, state_out, error_out, next_step(error_out, h_used)

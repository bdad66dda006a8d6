"""Type definitions for numerical integrators.

- :class:`StepResult`: output of the single-step functions.
- :class:`AdaptiveConfig`: step-size control settings of the adaptive
  integrators.
- :class:`IntegratorStatus`: lifecycle of an integrator instance.

``StepResult`` and ``AdaptiveConfig`` are :class:`~typing.NamedTuple`
instances, which JAX treats as pytrees.
"""

from __future__ import annotations

import enum
from typing import NamedTuple

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from orbitjax.errors import ConfigurationError


class StepResult(NamedTuple):
    """Result of a single integrator step.

    For the fixed-step method (RK4), ``error_estimate`` is always 0.0 and
    ``dt_next`` equals ``dt_used``.

    Attributes:
        state: State vector at time ``t + dt_used``.
        dt_used: Timestep actually taken.
        error_estimate: Normalized error estimate (<= 1.0 when the
            tolerance is met).
        dt_next: Suggested timestep for the next step.
    """

    state: Array
    dt_used: Array
    error_estimate: Array
    dt_next: Array


class AdaptiveConfig(NamedTuple):
    """Configuration for adaptive step-size control.

    Attributes:
        abs_tol: Absolute error tolerance, scalar or per component.
        rel_tol: Relative error tolerance, scalar or per component.
        safety_factor: Multiplicative safety factor applied to step-size
            predictions.
        min_scale_factor: Minimum allowed ratio ``dt_next / dt_used``.
        max_scale_factor: Maximum allowed ratio ``dt_next / dt_used``.
        min_step: Minimum step size magnitude.  The integration fails when
            the controller needs a smaller step, except for the final step
            clipped to the end time.
        max_step: Maximum step size magnitude.
        max_step_attempts: Maximum number of rejected attempts of a single
            step before the integration fails.
        initial_step: First step size magnitude; ``None`` selects an
            automatic estimate.
    """

    abs_tol: ArrayLike = 1e-6
    rel_tol: ArrayLike = 1e-3
    safety_factor: float = 0.9
    min_scale_factor: float = 0.2
    max_scale_factor: float = 10.0
    min_step: float = 1e-12
    max_step: float = 900.0
    max_step_attempts: int = 10
    initial_step: float | None = None


def check_config(config: AdaptiveConfig) -> AdaptiveConfig:
    """Validate an :class:`AdaptiveConfig`.

    Raises:
        ConfigurationError: If a tolerance is negative (or both are zero),
            the step bounds are not ordered, or a factor is out of range.
    """
    abs_tol = jnp.asarray(config.abs_tol)
    rel_tol = jnp.asarray(config.rel_tol)
    if bool(jnp.any(abs_tol < 0.0)) or bool(jnp.any(rel_tol < 0.0)):
        raise ConfigurationError("tolerances must not be negative")
    if bool(jnp.all(abs_tol == 0.0)) and bool(jnp.all(rel_tol == 0.0)):
        raise ConfigurationError("at least one of abs_tol and rel_tol must be positive")
    if not 0.0 < config.min_step <= config.max_step:
        raise ConfigurationError(
            f"step bounds must satisfy 0 < min_step <= max_step, got "
            f"[{config.min_step}, {config.max_step}]"
        )
    if not 0.0 < config.safety_factor <= 1.0:
        raise ConfigurationError(f"safety factor must be in (0, 1], got {config.safety_factor}")
    if not 0.0 < config.min_scale_factor < 1.0 < config.max_scale_factor:
        raise ConfigurationError("scale factors must satisfy 0 < min < 1 < max")
    if config.max_step_attempts < 1:
        raise ConfigurationError("max_step_attempts must be at least 1")
    if config.initial_step is not None and not config.initial_step > 0.0:
        raise ConfigurationError(f"initial step must be positive, got {config.initial_step}")
    return config


class IntegratorStatus(enum.Enum):
    """Lifecycle of an integrator."""

    NOT_STARTED = "not_started"
    STEPPING = "stepping"
    INTERPOLATING = "interpolating"
    FINISHED = "finished"
    FAILED = "failed"

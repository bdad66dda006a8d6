"""Integration driver shared by the Runge-Kutta integrators.

:meth:`Integrator.integrate` advances an ODE ``y' = f(t, y)`` from ``t0`` to
``t_end`` one accepted step at a time.  After every accepted step the step
interpolator is handed to an :class:`~orbitjax.events.manager.EventManager`
which locates events inside the step, applies their actions and calls the
step handlers.  The manager may truncate the step (state reset or stop).

The driver runs eagerly on the host: event actions are arbitrary Python
callbacks, so the loop cannot be staged into a ``jax.lax`` control-flow
primitive.  The single-step functions (``dp54_step``, ``rkf45_step``,
``rk4_step``) remain available for jit-compiled use.
"""

from __future__ import annotations

import abc
import logging
from collections.abc import Callable, Sequence

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from orbitjax.config import get_dtype
from orbitjax.errors import StepAttemptsExceededError, StepSizeUnderflowError
from orbitjax.events.event_state import EventHandler
from orbitjax.events.manager import EventManager, StepHandlerLike
from orbitjax.integrators._adaptive import (
    compute_error_norm,
    compute_next_step_size,
    estimate_initial_step,
)
from orbitjax.integrators._types import AdaptiveConfig, IntegratorStatus, check_config
from orbitjax.integrators.interpolator import StepInterpolator

logger = logging.getLogger(__name__)

ODE = Callable[[float, Array], Array]


class Integrator(abc.ABC):
    """Base class of the step-by-step integrators.

    Attributes:
        status: Current :class:`IntegratorStatus`.
        evaluations: Number of right-hand side evaluations of the last
            :meth:`integrate` call.
    """

    name: str = ""
    order: float = 4.0

    def __init__(self) -> None:
        self.status = IntegratorStatus.NOT_STARTED
        self.evaluations = 0

    @abc.abstractmethod
    def _initial_step(self, ode: ODE, t: float, y: Array, f: Array, direction: float) -> float:
        """Magnitude of the first step (and of the first step after a reset)."""

    @abc.abstractmethod
    def _advance(
        self, ode: ODE, t: float, y: Array, f: Array, h: float, t_end: float
    ) -> tuple[float, Array, Array, StepInterpolator, float]:
        """Take one accepted step of signed size at most ``h``.

        Returns:
            tuple: ``(t_new, y_new, f_new, interpolator, h_next)``.
        """

    def integrate(
        self,
        ode: ODE,
        t0: float,
        y0: ArrayLike,
        t_end: float,
        events: Sequence[EventHandler] = (),
        step_handlers: Sequence[StepHandlerLike] = (),
    ) -> tuple[float, Array]:
        """Integrate from ``(t0, y0)`` towards ``t_end``.

        Args:
            ode: Right-hand side ``f(t, y) -> dy/dt``.
            t0: Start time.
            y0: Start state.
            t_end: Target time; may be lower than ``t0`` (backward).
            events: Event handlers monitored during the integration.
            step_handlers: Objects with ``handle_step(interpolator, is_last)``
                called after each accepted (possibly truncated) step.

        Returns:
            tuple: ``(t, y)`` at the end of the integration, which is
                ``t_end`` unless an event stopped it earlier.

        Raises:
            StepSizeUnderflowError: If the step size collapses.
            StepAttemptsExceededError: If a step is rejected too many times.
            RootFindingError: If an event root cannot be located.
        """
        _float = get_dtype()
        self.evaluations = 0

        def rhs(t, y):
            self.evaluations += 1
            return jnp.asarray(ode(t, y), dtype=_float)

        t = float(t0)
        t_end = float(t_end)
        y = jnp.asarray(y0, dtype=_float)
        manager = EventManager(events, step_handlers)
        self.status = IntegratorStatus.STEPPING

        try:
            manager.init(t, y, t_end)
            if t == t_end:
                self.status = IntegratorStatus.FINISHED
                return t, y

            direction = 1.0 if t_end > t else -1.0
            f = rhs(t, y)
            h = direction * self._initial_step(rhs, t, y, f, direction)

            while True:
                t_new, y_new, f_new, interpolator, h_next = self._advance(rhs, t, y, f, h, t_end)

                self.status = IntegratorStatus.INTERPOLATING
                outcome = manager.accept_step(interpolator, t_end)
                self.status = IntegratorStatus.STEPPING

                t, y = outcome.t, outcome.y
                if outcome.is_last or t == t_end:
                    break
                if outcome.reset:
                    f = rhs(t, y)
                    h = direction * self._initial_step(rhs, t, y, f, direction)
                else:
                    f, h = f_new, h_next
        except Exception:
            self.status = IntegratorStatus.FAILED
            raise

        self.status = IntegratorStatus.FINISHED
        return t, y


class AdaptiveStepIntegrator(Integrator):
    """Embedded Runge-Kutta integrator with error control.

    Args:
        config: Step-size control settings. Default: :class:`AdaptiveConfig`.

    Raises:
        ConfigurationError: If ``config`` is inconsistent.
    """

    def __init__(self, config: AdaptiveConfig | None = None) -> None:
        super().__init__()
        self.config = check_config(config if config is not None else AdaptiveConfig())

    @abc.abstractmethod
    def _trial(self, ode: ODE, t: float, y: Array, f: Array, h: float) -> tuple[Array, Array, tuple]:
        """One trial step: ``(y_high, error_vector, stages)``."""

    @abc.abstractmethod
    def _finish(
        self, ode: ODE, t: float, y: Array, f: Array, t_new: float, y_new: Array, stages: tuple
    ) -> tuple[Array, StepInterpolator]:
        """Derivative at the new point and dense output of an accepted step."""

    def _initial_step(self, ode, t, y, f, direction):
        cfg = self.config
        if cfg.initial_step is not None:
            return min(cfg.initial_step, cfg.max_step)
        return estimate_initial_step(ode, t, y, f, direction, self.order,
                                     cfg.abs_tol, cfg.rel_tol, cfg.min_step, cfg.max_step)

    def _advance(self, ode, t, y, f, h, t_end):
        cfg = self.config
        attempts = 0
        while True:
            remaining = t_end - t
            last = abs(h) >= abs(remaining)
            if last:
                h = remaining

            y_new, error_vec, stages = self._trial(ode, t, y, f, h)
            error = float(compute_error_norm(error_vec, y_new, y, cfg.abs_tol, cfg.rel_tol))
            if error <= 1.0:
                break

            attempts += 1
            h_new = float(compute_next_step_size(
                error, h, self.order, cfg.safety_factor,
                cfg.min_scale_factor, 1.0, 0.0, cfg.max_step,
            ))
            logger.debug("Step rejected at t=%.6f s: h=%.3e s, error=%.3e, retrying with %.3e s",
                         t, h, error, h_new)
            if abs(h_new) < cfg.min_step:
                raise StepSizeUnderflowError(t, h_new, cfg.min_step)
            if attempts >= cfg.max_step_attempts:
                raise StepAttemptsExceededError(t, h_new, attempts)
            h = h_new

        t_new = t_end if last else t + h
        f_new, interpolator = self._finish(ode, t, y, f, t_new, y_new, stages)
        h_next = float(compute_next_step_size(
            error, h, self.order, cfg.safety_factor,
            cfg.min_scale_factor, cfg.max_scale_factor, cfg.min_step, cfg.max_step,
        ))
        return t_new, y_new, f_new, interpolator, h_next

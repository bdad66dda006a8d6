"""Dense output of accepted integration steps.

A :class:`StepInterpolator` covers one accepted step ``[t_prev, t_curr]``
(its *global* bounds) and evaluates the state anywhere inside it.  Event
handling narrows the part of the step handed to step handlers through the
*soft* bounds ``previous_time`` / ``current_time`` (see :meth:`restricted`),
without changing the polynomial.

Two interpolants are provided:

- :class:`HermiteInterpolator`: cubic Hermite from the end-point states and
  derivatives (RKF45 and RK4, 4th order at best),
- :class:`DormandPrinceInterpolator`: the 4th-order continuous extension
  of the Dormand-Prince 5(4) pair.
"""

from __future__ import annotations

import abc
import copy

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from orbitjax.config import get_dtype


class StepInterpolator(abc.ABC):
    """Interpolant over one accepted step.

    Args:
        t_prev: Start time of the step.
        y_prev: State at ``t_prev``.
        t_curr: End time of the step.
        y_curr: State at ``t_curr``.
    """

    def __init__(self, t_prev: float, y_prev: Array, t_curr: float, y_curr: Array) -> None:
        self.global_previous_time = float(t_prev)
        self.global_current_time = float(t_curr)
        self.previous_time = self.global_previous_time
        self.current_time = self.global_current_time
        self.previous_state = y_prev
        self.current_state = y_curr

    @property
    def forward(self) -> bool:
        return self.global_current_time >= self.global_previous_time

    @property
    def step_size(self) -> float:
        return self.global_current_time - self.global_previous_time

    def restricted(self, t0: float, t1: float) -> StepInterpolator:
        """Copy of this interpolator with soft bounds ``[t0, t1]``."""
        other = copy.copy(self)
        other.previous_time = float(t0)
        other.current_time = float(t1)
        return other

    def interpolate(self, t: float) -> Array:
        """State at time ``t`` inside the global bounds.

        The step end points return the stored states exactly.
        """
        t = float(t)
        if t == self.global_current_time:
            return self.current_state
        if t == self.global_previous_time:
            return self.previous_state
        theta = (t - self.global_previous_time) / self.step_size
        return self._interpolate(theta)

    @abc.abstractmethod
    def _interpolate(self, theta: float) -> Array:
        """State at the normalized position ``theta`` in [0, 1]."""


class HermiteInterpolator(StepInterpolator):
    """Cubic Hermite interpolant matching states and derivatives at both ends."""

    def __init__(
        self,
        t_prev: float,
        y_prev: Array,
        f_prev: ArrayLike,
        t_curr: float,
        y_curr: Array,
        f_curr: ArrayLike,
    ) -> None:
        super().__init__(t_prev, y_prev, t_curr, y_curr)
        _float = get_dtype()
        self._f_prev = jnp.asarray(f_prev, dtype=_float)
        self._f_curr = jnp.asarray(f_curr, dtype=_float)

    def _interpolate(self, theta):
        h = self.step_size
        t2 = theta * theta
        t3 = t2 * theta
        h00 = 2.0 * t3 - 3.0 * t2 + 1.0
        h10 = t3 - 2.0 * t2 + theta
        h01 = -2.0 * t3 + 3.0 * t2
        h11 = t3 - t2
        return (h00 * self.previous_state + h10 * h * self._f_prev
                + h01 * self.current_state + h11 * h * self._f_curr)


# Continuous extension coefficients of Dormand-Prince 5(4)
_D1 = -12715105075.0 / 11282082432.0
_D3 = 87487479700.0 / 32700410799.0
_D4 = -10690763975.0 / 1880347072.0
_D5 = 701980252875.0 / 199316789632.0
_D6 = -1453857185.0 / 822651844.0
_D7 = 69997945.0 / 29380423.0


class DormandPrinceInterpolator(StepInterpolator):
    """4th-order dense output of a Dormand-Prince 5(4) step.

    Args:
        t_prev: Start time of the step.
        y_prev: State at ``t_prev``.
        t_curr: End time of the step.
        y_curr: 5th-order state at ``t_curr``.
        stages: The seven stage derivatives ``k0..k6`` of the step, ``k6``
            being ``f(t_curr, y_curr)``.
    """

    def __init__(
        self,
        t_prev: float,
        y_prev: Array,
        t_curr: float,
        y_curr: Array,
        stages: tuple[Array, ...],
    ) -> None:
        super().__init__(t_prev, y_prev, t_curr, y_curr)
        k0, _k1, k2, k3, k4, k5, k6 = stages
        h = self.step_size
        delta = y_curr - y_prev
        self._r1 = y_prev
        self._r2 = delta
        self._r3 = h * k0 - delta
        self._r4 = delta - h * k6 - self._r3
        self._r5 = h * (_D1 * k0 + _D3 * k2 + _D4 * k3 + _D5 * k4 + _D6 * k5 + _D7 * k6)

    def _interpolate(self, theta):
        eta = 1.0 - theta
        return self._r1 + theta * (self._r2 + eta * (self._r3 + theta * (self._r4 + eta * self._r5)))

"""Step handlers: user callbacks on the accepted steps of a propagation.

- :class:`StepHandler` receives a :class:`SpacecraftStateInterpolator` for
  every accepted (possibly event-truncated) step,
- :class:`FixedStepHandler` receives states on a regular time grid, through
  a :class:`StepNormalizer`.

Handlers observe the propagation; they cannot change its outcome.
"""

from __future__ import annotations

import abc

from orbitjax.epoch import Epoch
from orbitjax.integrators.interpolator import StepInterpolator
from orbitjax.propagation.mapper import StateMapper
from orbitjax.state import SpacecraftState


class SpacecraftStateInterpolator:
    """Read-only view of one accepted step in spacecraft-state terms.

    Args:
        interpolator: Dense output of the step; its soft bounds delimit the
            part of the step being handled.
        mapper: Conversion from integration variables to states.
    """

    def __init__(self, interpolator: StepInterpolator, mapper: StateMapper) -> None:
        self._interpolator = interpolator
        self._mapper = mapper

    @property
    def forward(self) -> bool:
        return self._interpolator.forward

    @property
    def previous_date(self) -> Epoch:
        return self._mapper.epoch_at(self._interpolator.previous_time)

    @property
    def current_date(self) -> Epoch:
        return self._mapper.epoch_at(self._interpolator.current_time)

    @property
    def previous_state(self) -> SpacecraftState:
        return self._state_at_time(self._interpolator.previous_time)

    @property
    def current_state(self) -> SpacecraftState:
        return self._state_at_time(self._interpolator.current_time)

    def _state_at_time(self, t: float) -> SpacecraftState:
        return self._mapper.to_state(t, self._interpolator.interpolate(t))

    def get_interpolated_state(self, epoch: Epoch) -> SpacecraftState:
        """State at ``epoch``, which should lie inside the handled step."""
        return self._state_at_time(self._mapper.time_of(epoch))


class StepHandler(abc.ABC):
    """Callback on every accepted step (variable-step master mode)."""

    def init(self, state0: SpacecraftState, target: Epoch) -> None:
        """Called once before the propagation starts."""

    @abc.abstractmethod
    def handle_step(self, interpolator: SpacecraftStateInterpolator, is_last: bool) -> None:
        """Handle the step covered by ``interpolator``."""


class FixedStepHandler(abc.ABC):
    """Callback on states regularly spaced in time (fixed-step master mode)."""

    def init(self, state0: SpacecraftState, target: Epoch) -> None:
        """Called once before the propagation starts."""

    @abc.abstractmethod
    def handle_step(self, state: SpacecraftState, is_last: bool) -> None:
        """Handle one grid state; ``is_last`` flags the final state."""


class StepNormalizer(StepHandler):
    """Adapts variable steps to a :class:`FixedStepHandler`.

    States are handed out at ``t0, t0 + h, t0 + 2h, ...`` (``t0 - h, ...``
    backward) and at the final date when it is not on the grid.

    Args:
        step: Grid spacing [s], sign ignored.
        handler: Receiver of the grid states.
    """

    def __init__(self, step: float, handler: FixedStepHandler) -> None:
        self.step = abs(float(step))
        self.handler = handler
        self._last_date: Epoch | None = None
        self._last_state: SpacecraftState | None = None

    def init(self, state0, target):
        self._last_date = None
        self._last_state = None
        self.handler.init(state0, target)

    def handle_step(self, interpolator, is_last):
        if self._last_date is None:
            self._last_date = interpolator.previous_date
            self._last_state = interpolator.previous_state

        h = self.step if interpolator.forward else -self.step
        current = interpolator.current_date
        next_date = self._last_date.shifted_by(h)
        # grid dates strictly inside the step
        while float(next_date.duration_from(current)) * h < 0.0:
            self.handler.handle_step(self._last_state, False)
            self._last_date = next_date
            self._last_state = interpolator.get_interpolated_state(next_date)
            next_date = self._last_date.shifted_by(h)

        if next_date == current:
            self.handler.handle_step(self._last_state, False)
            self._last_date = current
            self._last_state = interpolator.current_state

        if is_last:
            if self._last_date != current:
                self.handler.handle_step(self._last_state, False)
                self._last_state = interpolator.current_state
            self.handler.handle_step(self._last_state, True)

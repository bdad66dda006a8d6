"""Event arbitration over accepted integration steps.

:meth:`EventManager.accept_step` is called by the integrator with the dense
output of every accepted step.  It

1. asks every :class:`~orbitjax.events.event_state.EventState` whether an
   event occurs inside the step,
2. handles the events in chronological order (registration order breaks
   ties closer than the detector threshold),
3. feeds the step handlers with the part of the step before each event,
4. applies the event actions: a ``STOP`` ends the integration at the event
   date, a reset truncates the step at the event date so integration
   restarts from the (possibly modified) state.

Before a reset is applied the part of the step up to the reset date is
scanned again for events that the coarse ``max_check`` sampling could have
missed; those are handled first and the reset is postponed behind them.
After a ``RESET_STATE`` the other handlers are re-evaluated on the new
state, which is how one event can cancel, create or delay another.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING, NamedTuple, Protocol

from jax import Array

from orbitjax.events.event_state import EventHandler, EventState, EventStatus

if TYPE_CHECKING:
    from orbitjax.integrators.interpolator import StepInterpolator

logger = logging.getLogger(__name__)


class StepHandlerLike(Protocol):
    """Receiver of the dense output of accepted steps."""

    def handle_step(self, interpolator: StepInterpolator, is_last: bool) -> None: ...


class StepOutcome(NamedTuple):
    """Where the integrator stands after an accepted step.

    Attributes:
        t: Time reached, the step end or an event date.
        y: State at ``t``.
        is_last: Whether integration is over.
        reset: Whether derivatives must be recomputed before the next step.
    """

    t: float
    y: Array
    is_last: bool
    reset: bool


class EventManager:
    """Event states and step handlers of one integration.

    Args:
        handlers: Event handlers, in registration order.
        step_handlers: Step handlers, called in order after each (part of)
            step.
    """

    def __init__(
        self,
        handlers: Iterable[EventHandler] = (),
        step_handlers: Sequence[StepHandlerLike] = (),
    ) -> None:
        self.states = [EventState(handler) for handler in handlers]
        self.step_handlers = list(step_handlers)
        self._initialized = False

    def init(self, t0: float, y0: Array, t_end: float) -> None:
        """Forward the start of integration to every handler."""
        for state in self.states:
            state.handler.init(t0, y0, t_end)
        self._initialized = False

    def _remove(self, state: EventState) -> None:
        if state in self.states:
            logger.warning("Event detector %r asked for removal at t=%.6f s",
                           state.handler, state.t0)
            state.status = EventStatus.REMOVED
            self.states.remove(state)

    def _next_event(self, occurring: list[EventState], forward: bool) -> EventState:
        """Pop the chronologically first event; near-ties go to registration order."""
        sign = 1.0 if forward else -1.0
        first = min(occurring, key=lambda s: sign * s.event_time)
        candidates = [
            s for s in occurring
            if abs(s.event_time - first.event_time) <= min(s.convergence, first.convergence)
        ]
        chosen = min(candidates, key=self.states.index)
        occurring.remove(chosen)
        return chosen

    def _handle_step(self, interpolator: StepInterpolator, is_last: bool) -> None:
        for handler in self.step_handlers:
            handler.handle_step(interpolator, is_last)

    def accept_step(self, interpolator: StepInterpolator, t_end: float) -> StepOutcome:
        """Process the events of an accepted step.

        Args:
            interpolator: Dense output of the step.
            t_end: Integration target time.

        Returns:
            StepOutcome: Time and state reached and whether integration
                stops or restarts from a reset.

        Raises:
            RootFindingError: If an event date cannot be refined.
        """
        previous_t = interpolator.global_previous_time
        current_t = interpolator.global_current_time
        forward = interpolator.forward

        if not self._initialized:
            for state in self.states:
                state.reinitialize_begin(interpolator)
            self._initialized = True

        occurring = [state for state in self.states if state.evaluate_step(interpolator)]

        is_last = False
        while occurring:
            current = self._next_event(occurring, forward)
            event_t = current.event_time
            restricted = interpolator.restricted(previous_t, event_t)
            event_y = interpolator.interpolate(event_t)

            # an event exactly at the end of integration is not applied
            is_last = event_t == t_end
            if not is_last:
                current.step_accepted(event_t, event_y)
                is_last = current.stop
                logger.debug("Event %r at t=%.6f s, action %s",
                             current.handler, event_t, current.next_action.value)
            last_detection = current.remove

            self._handle_step(restricted, is_last)

            if is_last:
                if last_detection:
                    self._remove(current)
                return StepOutcome(event_t, event_y, True, False)

            if current.pending_reset and self._rescan(current, interpolator, restricted,
                                                      previous_t, event_t, occurring):
                current.cancel_step_accepted()
                occurring.append(current)
                continue

            reset, event_y = current.reset(event_t, event_y)
            if reset:
                for state in list(self.states):
                    if state is current or not state.evaluate_at(event_t, event_y):
                        continue
                    state.step_accepted(event_t, event_y)
                    logger.debug("Event %r at t=%.6f s after reset, action %s",
                                 state.handler, event_t, state.next_action.value)
                    _, event_y = state.reset(event_t, event_y)
                    if state.remove:
                        self._remove(state)
                    if state.stop:
                        if last_detection:
                            self._remove(current)
                        return StepOutcome(event_t, event_y, True, False)

                for state in self.states:
                    state.store_state(event_t, event_y, False)
                if last_detection:
                    self._remove(current)
                return StepOutcome(event_t, event_y, False, True)

            # continue with the rest of the step
            previous_t = event_t
            interpolator = interpolator.restricted(event_t, current_t)
            if not last_detection and current.evaluate_step(interpolator):
                occurring.append(current)
            if last_detection:
                self._remove(current)

        current_y = interpolator.interpolate(current_t)
        for state in self.states:
            state.step_accepted(current_t, current_y)
            is_last = is_last or state.stop
        is_last = is_last or current_t == t_end

        self._handle_step(interpolator.restricted(previous_t, current_t), is_last)
        return StepOutcome(current_t, current_y, is_last, False)

    def _rescan(
        self,
        current: EventState,
        interpolator: StepInterpolator,
        restricted: StepInterpolator,
        previous_t: float,
        event_t: float,
        occurring: list[EventState],
    ) -> bool:
        """Look for events missed before a reset date; queue them in ``occurring``."""
        forward = interpolator.forward
        found = False
        occurring.clear()
        for state in self.states:
            if (forward and state.t0 > event_t) or (not forward and state.t0 < event_t):
                # reference point moved past the reset by a filtered crossing
                state.store_state(previous_t, interpolator.interpolate(previous_t), True)
            close = (state.previous_event_time is not None
                     and abs(state.previous_event_time - event_t) <= state.step_convergence)
            if state is current or close or not state.evaluate_step(restricted):
                continue
            # an event at the reset date itself is handled after the reset
            if abs(state.event_time - event_t) > state.step_convergence:
                occurring.append(state)
                found = True
        return found

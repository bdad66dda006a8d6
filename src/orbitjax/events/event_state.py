"""Runtime state of one event handler during an integration.

:class:`EventState` tracks the sign of a switching function along the
accepted steps, brackets sign changes by sampling the dense output every
``max_check`` seconds, and refines each bracket with the Pegasus solver.
It works on the raw integration variables ``(t, y)``; the propagation layer
adapts :class:`~orbitjax.events.detector.EventDetector` objects (which work
on spacecraft states) to the :class:`EventHandler` protocol below.

Sign bookkeeping follows the integration direction: ``increasing`` is true
when ``g`` grows along the direction of integration.  Handlers are told
whether ``g`` grows with *time*, so a detector sees the same crossing
direction whether the trajectory is propagated forward or backward.
"""

from __future__ import annotations

import enum
import math
from typing import TYPE_CHECKING, Protocol

from jax import Array

from orbitjax.events.detector import Action, SlopeSelection
from orbitjax.events.solver import AllowedSolution, PegasusSolver

if TYPE_CHECKING:
    from orbitjax.integrators.interpolator import StepInterpolator

# below this step length a step is checked at its end point only
_DATE_EPSILON = 1.0e-14


class EventHandler(Protocol):
    """Switching function and event reaction on integration variables."""

    max_check: float
    threshold: float
    max_iterations: int
    slope_selection: SlopeSelection

    def init(self, t0: float, y0: Array, t_end: float) -> None: ...

    def g(self, t: float, y: Array) -> float: ...

    def event_occurred(self, t: float, y: Array, increasing: bool, forward: bool) -> Action: ...

    def reset_state(self, t: float, y: Array) -> Array: ...

    def should_be_removed(self) -> bool: ...


class EventStatus(enum.Enum):
    """Where an event state stands in the current step."""

    IDLE = "idle"
    BRACKETED = "bracketed"
    REFINING = "refining"
    FIRED = "fired"
    REMOVED = "removed"


def _signed_infinity(positive: bool) -> float:
    return math.inf if positive else -math.inf


def _sign_value(g: float) -> float:
    """Collapse ``g`` to +/-inf, keeping an exact zero."""
    if g > 0.0:
        return math.inf
    if g < 0.0:
        return -math.inf
    return g


class EventState:
    """Per-handler event bookkeeping.

    Args:
        handler: The monitored event handler.

    Attributes:
        status: Current :class:`EventStatus`.
        previous_event_time: Date of the last handled event, ``None`` if
            there is none to protect against re-detection.
    """

    def __init__(self, handler: EventHandler) -> None:
        self.handler = handler
        self.max_check = float(handler.max_check)
        self.convergence = abs(float(handler.threshold))
        self.max_iterations = int(handler.max_iterations)
        self.step_convergence = self.convergence
        self.solver = PegasusSolver(self.convergence)

        self.initial_time = math.nan
        self.t0 = math.nan
        self.g0 = math.nan
        self.g0_old = math.nan
        self.pending = False
        self.pending_time = math.nan
        self.previous_event_time: float | None = None
        self.forward = True
        self.increasing = True
        self.next_action = Action.CONTINUE
        self.remove = False
        self.status = EventStatus.IDLE

    def __repr__(self):
        return f"EventState({self.handler!r}, status={self.status.value})"

    # ─── helpers ─────────────────────────────────────────────────────────

    def _selected(self, increasing: bool) -> bool:
        """Whether a crossing, increasing along integration, passes the slope filter."""
        slope = self.handler.slope_selection
        if slope == SlopeSelection.BOTH:
            return True
        increasing_in_time = increasing == self.forward
        return increasing_in_time == (slope == SlopeSelection.INCREASING)

    def _clear_pending(self) -> None:
        self.pending = False
        self.pending_time = math.nan

    def _set_pending(self, t: float) -> None:
        self.pending = True
        self.pending_time = t
        self.status = EventStatus.BRACKETED

    def _close_to_pending(self, t: float) -> bool:
        return self.pending and abs(self.pending_time - t) <= self.step_convergence

    # ─── life cycle ──────────────────────────────────────────────────────

    def reinitialize_begin(self, interpolator: StepInterpolator) -> None:
        """Record ``g`` at the start of the first step."""
        self.t0 = interpolator.previous_time
        self.g0 = _sign_value(self.handler.g(self.t0, interpolator.interpolate(self.t0)))
        self.initial_time = self.t0
        self.forward = interpolator.forward

    @property
    def event_time(self) -> float:
        """Pending event date, or +/-inf (integration direction) if none."""
        if self.pending:
            return self.pending_time
        return _signed_infinity(self.forward)

    @property
    def pending_reset(self) -> bool:
        return self.next_action in (Action.RESET_STATE, Action.RESET_DERIVATIVES)

    @property
    def stop(self) -> bool:
        return self.next_action is Action.STOP

    def store_state(self, t: float, y: Array, force: bool) -> None:
        """Move the reference point to ``t``, re-reading ``g`` if ``force``."""
        self.t0 = t
        if force:
            self.g0_old = self.g0
            self.g0 = _sign_value(self.handler.g(t, y))
            self.previous_event_time = None

    # ─── detection ───────────────────────────────────────────────────────

    def evaluate_step(self, interpolator: StepInterpolator) -> bool:
        """Look for a sign change of ``g`` between ``t0`` and the step end.

        The step end is the interpolator's soft current time. Sampling uses
        ``n = max(1, ceil(|dt| / max_check))`` sub-intervals; each sign
        change that passes the slope filter is refined with the Pegasus
        solver, on the side of the root already past the crossing.

        Returns:
            bool: Whether an event is pending inside the step.

        Raises:
            RootFindingError: If a root cannot be refined within
                ``max_iterations`` evaluations.
        """
        forward = interpolator.forward
        if forward != self.forward:
            # direction flipped since the last step: forget past events
            self._clear_pending()
            self.previous_event_time = None
        self.forward = forward

        t1 = interpolator.current_time
        dt = t1 - self.t0
        abs_dt = abs(dt)
        self.step_convergence = min(abs_dt, self.convergence)

        def g(t):
            return float(self.handler.g(t, interpolator.interpolate(t)))

        if abs_dt < _DATE_EPSILON:
            gb = g(t1)
            sign_change = (self.g0 >= 0.0 and gb < 0.0) or (self.g0 <= 0.0 and gb > 0.0)
            if abs_dt > 0.0 and sign_change:
                self._set_pending(self.t0)
                return True
            self._clear_pending()
            return False

        n = max(1, math.ceil(abs_dt / self.max_check))
        h = dt / n
        t00 = self.t0
        ta, ga = self.t0, self.g0

        i = 0
        while i < n:
            tb = t1 if i == n - 1 else t00 + (i + 1) * h
            gb = g(tb)
            at_first_step = self.g0 == 0.0 and t00 == self.initial_time and ta == t00

            if ((ga >= 0.0) != (gb >= 0.0)) or at_first_step:
                self.increasing = gb >= ga
                if self._selected(self.increasing):
                    root = ta
                    ga2 = g(ta)
                    if (ga2 >= 0.0) != (gb >= 0.0):
                        self.status = EventStatus.REFINING
                        if forward:
                            root = self.solver.solve(self.max_iterations, g, ta, tb,
                                                     AllowedSolution.RIGHT_SIDE)
                        else:
                            root = self.solver.solve(self.max_iterations, g, tb, ta,
                                                     AllowedSolution.LEFT_SIDE)

                    previous = self.previous_event_time
                    if (previous is not None
                            and abs(root - ta) <= self.step_convergence
                            and abs(root - previous) <= self.step_convergence):
                        # the event just handled: look again a little further
                        ta = ta + self.step_convergence if forward else ta - self.step_convergence
                        ga = g(ta)
                        continue
                    if previous is None or abs(previous - root) > self.step_convergence:
                        self._set_pending(root)
                        return True
                    ta, ga = tb, gb
                else:
                    # filtered crossing: move the reference point past it
                    ta, ga = tb, gb
                    self.t0 = ta
                    self.previous_event_time = self.t0
                    self.increasing = not self.increasing
                    self.g0_old = self.g0
                    self.g0 = -math.inf if self.increasing else math.inf
            else:
                ta, ga = tb, gb
            i += 1

        self._clear_pending()
        self.status = EventStatus.IDLE
        return False

    def evaluate_at(self, t: float, y: Array) -> bool:
        """Check for an event exactly at ``(t, y)``, typically after a reset.

        Returns:
            bool: Whether an event is pending at ``t``.
        """
        ga = self.g0
        gb = float(self.handler.g(t, y))
        if self.previous_event_time == t:
            return self.pending

        was_pending = self._close_to_pending(t)
        reference = self.g0_old if was_pending else ga
        if (reference >= 0.0) != (gb >= 0.0):
            self.increasing = gb >= reference
            if self._selected(self.increasing):
                self._set_pending(t)
        else:
            self._clear_pending()
        return self.pending

    # ─── event handling ──────────────────────────────────────────────────

    def step_accepted(self, t: float, y: Array) -> None:
        """Acknowledge that integration reached ``t``; fire a pending event there."""
        if self.g0 != 0.0:
            self.increasing = self.g0 < 0.0
        self.t0 = t
        self.g0_old = self.g0

        if self._close_to_pending(t):
            self.previous_event_time = t
            increasing_in_time = self.increasing == self.forward
            self.next_action = self.handler.event_occurred(t, y, increasing_in_time, self.forward)
            self.remove = self.handler.should_be_removed()
            self.g0_old = self.g0
            self.g0 = _signed_infinity(self.increasing)
            self.status = EventStatus.FIRED
        else:
            self.next_action = Action.CONTINUE

    def cancel_step_accepted(self) -> None:
        """Undo :meth:`step_accepted` for an event postponed behind earlier ones."""
        self.increasing = not self.increasing
        self.g0_old = self.g0
        self.g0 = _signed_infinity(self.increasing)
        self.previous_event_time = None

    def reset(self, t: float, y: Array) -> tuple[bool, Array]:
        """Apply the pending action at ``t``.

        Returns:
            tuple: ``(reset_needed, y)`` where ``y`` is the state after a
                :attr:`Action.RESET_STATE`, unchanged otherwise.
        """
        if not self._close_to_pending(t):
            return False, y
        if self.next_action is Action.RESET_STATE:
            y = self.handler.reset_state(t, y)
        self._clear_pending()
        return self.pending_reset, y

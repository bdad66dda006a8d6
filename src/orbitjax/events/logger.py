"""Recording of event occurrences.

Examples:
    ```python
    events = EventsLogger()
    propagator.add_event_detector(events.monitor(ApsideDetector(action_periapsis=Action.CONTINUE,
                                                                action_apoapsis=Action.CONTINUE)))
    propagator.propagate(target)
    [e.root_date for e in events.logged_events]
    ```
"""

from __future__ import annotations

from typing import NamedTuple

from orbitjax.epoch import Epoch
from orbitjax.events.detector import Action, EventDetector
from orbitjax.state import SpacecraftState


class LoggedEvent(NamedTuple):
    """One event occurrence.

    Attributes:
        detector: The monitored (unwrapped) detector.
        state: Spacecraft state at the event.
        increasing: Whether ``g`` increased with time at the event.
        root_date: Date of the event.
    """

    detector: EventDetector
    state: SpacecraftState
    increasing: bool
    root_date: Epoch


class _LoggingWrapper(EventDetector):
    """Detector delegating to another one and logging its occurrences."""

    def __init__(self, detector: EventDetector, log: list[LoggedEvent]) -> None:
        super().__init__(detector.max_check, detector.threshold, detector.max_iterations,
                         detector.slope_selection)
        self.detector = detector
        self._log = log

    def g(self, state):
        return self.detector.g(state)

    def init(self, state0, target):
        self.detector.init(state0, target)

    def event_occurred(self, state: SpacecraftState, increasing: bool, forward: bool) -> Action:
        self._log.append(LoggedEvent(self.detector, state, increasing, state.epoch))
        return self.detector.event_occurred(state, increasing, forward)

    def reset_state(self, state):
        return self.detector.reset_state(state)

    def should_be_removed(self):
        return self.detector.should_be_removed()

    def __repr__(self):
        return f"Logged({self.detector!r})"


class EventsLogger:
    """Collects the events of the detectors it monitors, in occurrence order."""

    def __init__(self) -> None:
        self._events: list[LoggedEvent] = []

    def monitor(self, detector: EventDetector) -> EventDetector:
        """Wrap ``detector`` so that its occurrences are logged.

        Returns:
            EventDetector: The wrapper to register in place of ``detector``.
        """
        return _LoggingWrapper(detector, self._events)

    def clear(self) -> None:
        self._events.clear()

    @property
    def logged_events(self) -> list[LoggedEvent]:
        """A copy of the logged events."""
        return list(self._events)

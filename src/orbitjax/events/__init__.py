"""Event detection.

- :class:`EventDetector` and the concrete detectors (date, apsides, nodes,
  eclipses) define switching functions on spacecraft states,
- :class:`EventState` locates their roots inside integration steps with the
  Pegasus solver,
- :class:`EventManager` orders simultaneous events and applies their
  actions,
- :class:`EventsLogger` records event occurrences.
"""

from orbitjax.events.detector import (
    DEFAULT_MAX_CHECK,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_THRESHOLD,
    Action,
    EventDetector,
    SlopeSelection,
)
from orbitjax.events.detectors import ApsideDetector, DateDetector, EclipseDetector, NodeDetector
from orbitjax.events.event_state import EventHandler, EventState, EventStatus
from orbitjax.events.logger import EventsLogger, LoggedEvent
from orbitjax.events.manager import EventManager, StepOutcome
from orbitjax.events.solver import AllowedSolution, PegasusSolver

__all__ = [
    "DEFAULT_MAX_CHECK",
    "DEFAULT_MAX_ITERATIONS",
    "DEFAULT_THRESHOLD",
    "Action",
    "SlopeSelection",
    "EventDetector",
    "DateDetector",
    "ApsideDetector",
    "NodeDetector",
    "EclipseDetector",
    "EventHandler",
    "EventState",
    "EventStatus",
    "EventManager",
    "StepOutcome",
    "EventsLogger",
    "LoggedEvent",
    "AllowedSolution",
    "PegasusSolver",
]

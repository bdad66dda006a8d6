"""Event detector interface.

An :class:`EventDetector` owns a switching function ``g(state)`` whose
sign changes locate events along the trajectory.  Detection settings:

- ``max_check``: largest sampling interval of ``g`` inside a step [s]; a
  double sign change inside one interval is missed,
- ``threshold``: convergence threshold of the root location [s],
- ``max_iterations``: evaluation budget of the root solver,
- ``slope_selection``: which crossings are reported.

When an event occurs the detector chooses an :class:`Action` depending on
the crossing direction, and may ask to be removed from the propagation.
"""

from __future__ import annotations

import abc
import enum

from orbitjax.epoch import Epoch
from orbitjax.errors import ConfigurationError
from orbitjax.state import SpacecraftState


class Action(enum.Enum):
    """What the integrator does once an event has occurred."""

    CONTINUE = "continue"
    RESET_STATE = "reset_state"
    RESET_DERIVATIVES = "reset_derivatives"
    STOP = "stop"


class SlopeSelection(enum.IntEnum):
    """Crossings reported by a detector, in the sense of increasing time."""

    DECREASING = 0
    INCREASING = 1
    BOTH = 2


DEFAULT_MAX_CHECK = 600.0
DEFAULT_THRESHOLD = 1.0e-6
DEFAULT_MAX_ITERATIONS = 100


class EventDetector(abc.ABC):
    """Base class of event detectors.

    Args:
        max_check: Maximal sampling interval of ``g`` [s].
        threshold: Convergence threshold of the event date [s].
        max_iterations: Maximal number of ``g`` evaluations of the root
            solver per event.
        slope_selection: Crossings to report.
        action_increasing: Action for an increasing crossing of ``g``.
        action_decreasing: Action for a decreasing crossing of ``g``.
        remove_increasing: Whether to drop the detector after an increasing
            crossing.
        remove_decreasing: Whether to drop the detector after a decreasing
            crossing.

    Raises:
        ConfigurationError: If ``max_check``, ``threshold`` or
            ``max_iterations`` is not positive.
    """

    def __init__(
        self,
        max_check: float = DEFAULT_MAX_CHECK,
        threshold: float = DEFAULT_THRESHOLD,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        slope_selection: SlopeSelection = SlopeSelection.BOTH,
        action_increasing: Action = Action.STOP,
        action_decreasing: Action = Action.STOP,
        remove_increasing: bool = False,
        remove_decreasing: bool = False,
    ) -> None:
        if not max_check > 0.0:
            raise ConfigurationError(f"max_check must be positive, got {max_check}")
        if not threshold > 0.0:
            raise ConfigurationError(f"threshold must be positive, got {threshold}")
        if not max_iterations > 0:
            raise ConfigurationError(f"max_iterations must be positive, got {max_iterations}")
        self.max_check = float(max_check)
        self.threshold = float(threshold)
        self.max_iterations = int(max_iterations)
        self.slope_selection = SlopeSelection(slope_selection)
        self.action_increasing = action_increasing
        self.action_decreasing = action_decreasing
        self.remove_increasing = remove_increasing
        self.remove_decreasing = remove_decreasing
        self._remove = False

    @abc.abstractmethod
    def g(self, state: SpacecraftState) -> float:
        """Switching function; events are its sign changes."""

    def init(self, state0: SpacecraftState, target: Epoch) -> None:
        """Called once at the start of each propagation."""

    def event_occurred(self, state: SpacecraftState, increasing: bool, forward: bool) -> Action:
        """Handle an event and choose the action to take.

        Args:
            state: State at the event date.
            increasing: Whether ``g`` increases with time at the event.
            forward: Whether the propagation goes forward in time.

        Returns:
            Action: The action configured for this crossing direction.
        """
        self._remove = self.remove_increasing if increasing else self.remove_decreasing
        return self.action_increasing if increasing else self.action_decreasing

    def reset_state(self, state: SpacecraftState) -> SpacecraftState:
        """New state after a :attr:`Action.RESET_STATE` event. Default: unchanged."""
        return state

    def should_be_removed(self) -> bool:
        """Whether the last occurrence asked for the detector to be dropped."""
        return self._remove

    def __repr__(self):
        return f"{type(self).__name__}(max_check={self.max_check}, threshold={self.threshold})"

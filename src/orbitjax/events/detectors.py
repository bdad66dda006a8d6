"""Concrete event detectors.

- :class:`DateDetector`: a fixed date,
- :class:`ApsideDetector`: periapsis and apoapsis passages,
- :class:`NodeDetector`: equator crossings of the state frame,
- :class:`EclipseDetector`: entry into and exit from the shadow of the
  central body.
"""

from __future__ import annotations

import jax.numpy as jnp

from orbitjax.bodies import CelestialBody
from orbitjax.constants import R_EARTH
from orbitjax.epoch import Epoch
from orbitjax.events.detector import (
    DEFAULT_MAX_CHECK,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_THRESHOLD,
    Action,
    EventDetector,
    SlopeSelection,
)
from orbitjax.state import SpacecraftState


class DateDetector(EventDetector):
    """Event at a fixed date: ``g = t - date``.

    Args:
        date: Target date.
        action: Action taken when the date is reached. Default: STOP.
        remove: Whether to drop the detector once the date is reached.
        max_check: Maximal sampling interval [s]; ``g`` is linear so a
            single sample per step is enough.
        threshold: Convergence threshold [s].

    Examples:
        ```python
        stop = DateDetector(Epoch(2024, 1, 1, 12, 0, 0))
        propagator.add_event_detector(stop)
        ```
    """

    def __init__(
        self,
        date: Epoch,
        action: Action = Action.STOP,
        remove: bool = False,
        max_check: float = 1.0e10,
        threshold: float = DEFAULT_THRESHOLD,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
    ) -> None:
        super().__init__(max_check, threshold, max_iterations, SlopeSelection.BOTH,
                         action, action, remove, remove)
        self.date = Epoch(date)

    def g(self, state: SpacecraftState) -> float:
        return float(state.epoch.duration_from(self.date))

    def __repr__(self):
        return f"DateDetector({self.date})"


class ApsideDetector(EventDetector):
    """Apside passages: ``g = r . v``.

    ``g`` increases through zero at periapsis and decreases through zero
    at apoapsis.

    Args:
        action_periapsis: Action at periapsis. Default: STOP.
        action_apoapsis: Action at apoapsis. Default: STOP.
        slope_selection: ``INCREASING`` reports periapsides only,
            ``DECREASING`` apoapsides only.
        max_check: Maximal sampling interval [s], a fraction of the period.
        threshold: Convergence threshold [s].
    """

    def __init__(
        self,
        action_periapsis: Action = Action.STOP,
        action_apoapsis: Action = Action.STOP,
        slope_selection: SlopeSelection = SlopeSelection.BOTH,
        max_check: float = DEFAULT_MAX_CHECK,
        threshold: float = DEFAULT_THRESHOLD,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
    ) -> None:
        super().__init__(max_check, threshold, max_iterations, slope_selection,
                         action_periapsis, action_apoapsis)

    def g(self, state):
        return float(jnp.dot(state.position, state.velocity))


class NodeDetector(EventDetector):
    """Node crossings of the equatorial plane of the state frame: ``g = z``.

    Args:
        action_ascending: Action at the ascending node. Default: STOP.
        action_descending: Action at the descending node. Default: STOP.
        slope_selection: ``INCREASING`` reports ascending nodes only.
        max_check: Maximal sampling interval [s].
        threshold: Convergence threshold [s].
    """

    def __init__(
        self,
        action_ascending: Action = Action.STOP,
        action_descending: Action = Action.STOP,
        slope_selection: SlopeSelection = SlopeSelection.BOTH,
        max_check: float = DEFAULT_MAX_CHECK,
        threshold: float = DEFAULT_THRESHOLD,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
    ) -> None:
        super().__init__(max_check, threshold, max_iterations, slope_selection,
                         action_ascending, action_descending)

    def g(self, state):
        return float(state.position[2])


class EclipseDetector(EventDetector):
    """Eclipse of a body (usually the Sun) by the central body.

    ``g`` is the angular separation between the occulted and occulting
    discs as seen from the spacecraft, minus the separation at contact:

    - ``total=False`` (penumbra): contact when the discs start to overlap,
    - ``total=True`` (umbra): contact when the occulted disc is fully hidden.

    ``g > 0`` in light, so entering the eclipse is a decreasing crossing
    and exiting it an increasing one.

    Args:
        occulted: The occulted body.
        occulted_radius: Radius of the occulted body [m]; defaults to
            ``occulted.radius``.
        occulting_radius: Radius of the central body [m].
        total: Whether to detect the umbra instead of the penumbra.
        action_entry: Action on eclipse entry. Default: CONTINUE.
        action_exit: Action on eclipse exit. Default: STOP.
        remove_entry: Whether to drop the detector after an entry.
        remove_exit: Whether to drop the detector after an exit.
        max_check: Maximal sampling interval [s].
        threshold: Convergence threshold [s].
    """

    def __init__(
        self,
        occulted: CelestialBody,
        occulted_radius: float | None = None,
        occulting_radius: float = R_EARTH,
        total: bool = False,
        action_entry: Action = Action.CONTINUE,
        action_exit: Action = Action.STOP,
        remove_entry: bool = False,
        remove_exit: bool = False,
        max_check: float = DEFAULT_MAX_CHECK,
        threshold: float = DEFAULT_THRESHOLD,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
    ) -> None:
        super().__init__(max_check, threshold, max_iterations, SlopeSelection.BOTH,
                         action_exit, action_entry, remove_exit, remove_entry)
        self.occulted = occulted
        self.occulted_radius = occulted.radius if occulted_radius is None else occulted_radius
        self.occulting_radius = occulting_radius
        self.total = total

    def g(self, state):
        r = state.position
        to_occulted = self.occulted.position(state.epoch, state.frame) - r
        to_occulting = -r

        d_occulted = jnp.linalg.norm(to_occulted)
        d_occulting = jnp.linalg.norm(to_occulting)
        cos_sep = jnp.dot(to_occulted, to_occulting) / (d_occulted * d_occulting)
        separation = jnp.arccos(jnp.clip(cos_sep, -1.0, 1.0))

        occulting_disc = jnp.arcsin(jnp.clip(self.occulting_radius / d_occulting, -1.0, 1.0))
        occulted_disc = jnp.arcsin(jnp.clip(self.occulted_radius / d_occulted, -1.0, 1.0))

        if self.total:
            return float(separation - occulting_disc + occulted_disc)
        return float(separation - occulting_disc - occulted_disc)

"""Maneuver force models.

- :class:`ConstantThrustManeuver`: continuous thrust of constant magnitude
  and direction, consuming propellant from a named mass part,
- :class:`ConstantThrustError`: constant or linear thrust error
  acceleration over a firing window,
- :class:`ImpulseManeuver`: instantaneous velocity increment applied as a
  state reset when a trigger detector fires.

Continuous maneuvers fire either over a date window or between the events
of a start and a stop detector:

- Date windows are ``[start, end)`` forward and ``(start, end]`` backward.
  During a propagation the firing flag is set from the initial date and
  direction, then switched by detectors on the window bounds, so the
  thrust never changes inside an integration step.  Outside a propagation
  firing is read from the state date.
- Detector-driven maneuvers keep a firing flag switched by their detectors;
  the flag can be read and set through :attr:`firing` / :meth:`set_firing`,
  which is what a split propagation needs to resume mid-burn.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from orbitjax.config import get_dtype
from orbitjax.constants import G0_STANDARD
from orbitjax.epoch import Epoch
from orbitjax.errors import ConfigurationError
from orbitjax.events.detector import Action, EventDetector
from orbitjax.events.detectors import DateDetector
from orbitjax.forces.base import ForceModel, direction_in_state_frame
from orbitjax.frames import Frame, LOFType
from orbitjax.parameters import Parameter, as_parameter
from orbitjax.state import SpacecraftState


class _FiringSwitch(EventDetector):
    """Start or stop detector of a continuous maneuver.

    The maneuver switches on a ``STOP`` of the wrapped detector, and only
    when the switch changes the firing flag for the current direction.
    """

    def __init__(self, owner: _FiringWindow, detector: EventDetector, starts: bool) -> None:
        super().__init__(detector.max_check, detector.threshold, detector.max_iterations,
                         detector.slope_selection)
        self.owner = owner
        self.detector = detector
        self.starts = starts

    def g(self, state):
        return self.detector.g(state)

    def init(self, state0, target):
        self.detector.init(state0, target)

    def event_occurred(self, state, increasing, forward):
        action = self.detector.event_occurred(state, increasing, forward)
        if action is not Action.STOP:
            return Action.CONTINUE
        # forward start or backward stop switches on, the other two switch off
        switch_on = forward if self.starts else not forward
        if self.owner._firing == switch_on:
            return Action.CONTINUE
        self.owner._firing = switch_on
        return Action.RESET_DERIVATIVES

    def should_be_removed(self):
        return self.detector.should_be_removed()

    def __repr__(self):
        kind = "start" if self.starts else "stop"
        return f"FiringSwitch({kind}, {self.detector!r})"


class _FiringWindow(ForceModel):
    """Firing logic shared by the continuous maneuver models."""

    def _set_window(
        self,
        start: Epoch | None,
        duration: float | None,
        start_detector: EventDetector | None,
        stop_detector: EventDetector | None,
    ) -> None:
        self._propagating = False
        if start_detector is not None or stop_detector is not None:
            if start_detector is None or stop_detector is None:
                raise ConfigurationError("both start and stop detectors are required")
            self.start_date = None
            self.end_date = None
            self._detector_driven = True
            self._firing = False
            self._detectors = [
                _FiringSwitch(self, start_detector, True),
                _FiringSwitch(self, stop_detector, False),
            ]
            return

        if start is None or duration is None:
            raise ConfigurationError(
                "a maneuver needs either a start date and a duration or start and stop detectors"
            )
        start = Epoch(start)
        end = start.shifted_by(duration)
        if duration < 0:
            start, end = end, start
        self.start_date = start
        self.end_date = end
        self.duration = abs(float(duration))
        self._detector_driven = False
        self._firing = False
        self._detectors = [
            _FiringSwitch(self, DateDetector(start), True),
            _FiringSwitch(self, DateDetector(end), False),
        ]

    @property
    def detector_driven(self) -> bool:
        return self._detector_driven

    @property
    def firing(self) -> bool:
        """Firing flag of a detector-driven maneuver.

        Raises:
            ConfigurationError: For date-windowed maneuvers, whose firing
                depends on the date (see :meth:`is_active`).
        """
        if not self._detector_driven:
            raise ConfigurationError("date-windowed maneuvers have no firing flag")
        return self._firing

    def set_firing(self, firing: bool) -> None:
        """Set the firing flag of a detector-driven maneuver (split propagation)."""
        if not self._detector_driven:
            raise ConfigurationError("date-windowed maneuvers have no firing flag")
        self._firing = bool(firing)

    def init(self, state0: SpacecraftState, target: Epoch) -> None:
        super().init(state0, target)
        if not self._detector_driven:
            # the window detectors switch the flag, so the thrust is constant within a step
            self._firing = self._in_window(state0)
            self._propagating = True

    def finish(self) -> None:
        self._propagating = False

    def _in_window(self, state: SpacecraftState) -> bool:
        from_start = float(state.epoch.duration_from(self.start_date))
        from_end = float(state.epoch.duration_from(self.end_date))
        if self.forward:
            return from_start >= 0.0 and from_end < 0.0
        return from_start > 0.0 and from_end <= 0.0

    def is_active(self, state: SpacecraftState) -> bool:
        if self._detector_driven or self._propagating:
            return self._firing
        return self._in_window(state)

    def event_detectors(self) -> list[EventDetector]:
        return list(self._detectors)


class ConstantThrustManeuver(_FiringWindow):
    """Constant thrust maneuver.

    While firing, the acceleration is ``F / m * u`` where ``m`` is the total
    spacecraft mass and ``u`` the unit thrust direction, and the part
    ``part`` loses mass at the rate ``F / (isp * g0)``.  An empty part
    produces no thrust.

    The direction is expressed in ``frame`` if given, else in the local
    orbital frame ``lof_type`` (the state frame must then be
    pseudo-inertial), else in the spacecraft body frame.

    Args:
        start: Firing start date.
        duration: Firing duration [s]; negative values fire over
            ``[start + duration, start]``.
        thrust: Thrust magnitude [N].
        isp: Specific impulse [s].
        direction: Thrust direction, normalised internally.
        part: Name of the propellant mass part.
        frame: Frame of ``direction``.
        lof_type: Local orbital frame of ``direction``.

    Raises:
        ConfigurationError: If ``direction`` is null or ``isp`` is not
            positive.

    Examples:
        ```python
        burn = ConstantThrustManeuver(Epoch(2024, 1, 1, 0, 10, 0), 120.0, 400.0, 300.0,
                                      [1.0, 0.0, 0.0], "tank", lof_type=LOFType.TNW)
        propagator.add_force_model(burn)
        ```
    """

    def __init__(
        self,
        start: Epoch | None,
        duration: float | None,
        thrust: Parameter | float,
        isp: Parameter | float,
        direction: ArrayLike,
        part: str,
        frame: Frame | None = None,
        lof_type: LOFType | None = None,
        start_detector: EventDetector | None = None,
        stop_detector: EventDetector | None = None,
    ) -> None:
        super().__init__()
        _float = get_dtype()
        direction = jnp.asarray(direction, dtype=_float)
        norm = float(jnp.linalg.norm(direction))
        if norm == 0.0:
            raise ConfigurationError("thrust direction must not be null")
        self.thrust = as_parameter("thrust", thrust)
        self.isp = as_parameter("isp", isp)
        if not self.isp.value > 0.0:
            raise ConfigurationError(f"isp must be positive, got {self.isp.value}")
        self.direction = direction / norm
        self.part = part
        self.frame = frame
        self.lof_type = lof_type
        self._set_window(start, duration, start_detector, stop_detector)

    @classmethod
    def from_detectors(
        cls,
        start_detector: EventDetector,
        stop_detector: EventDetector,
        thrust: Parameter | float,
        isp: Parameter | float,
        direction: ArrayLike,
        part: str,
        frame: Frame | None = None,
        lof_type: LOFType | None = None,
    ) -> ConstantThrustManeuver:
        """Maneuver starting on a ``STOP`` of ``start_detector`` and ending on one of ``stop_detector``."""
        return cls(None, None, thrust, isp, direction, part, frame, lof_type,
                   start_detector=start_detector, stop_detector=stop_detector)

    def parameters(self) -> list[Parameter]:
        return [self.thrust, self.isp]

    def _acceleration(self, state, values):
        _float = get_dtype()
        if float(state.get_mass(self.part)) <= 0.0:
            return jnp.zeros(3, dtype=_float)
        u = direction_in_state_frame(state, self.direction, self.frame, self.lof_type)
        return values[self.thrust] / state.total_mass * u

    def mass_derivatives(self, state: SpacecraftState) -> dict[str, Array]:
        if not self.is_active(state) or float(state.get_mass(self.part)) <= 0.0:
            return {}
        flow = -self.thrust.value / (self.isp.value * G0_STANDARD)
        return {self.part: jnp.asarray(flow, dtype=get_dtype())}

    def __repr__(self):
        window = (f"{self.start_date} -> {self.end_date}" if not self.detector_driven
                  else "detector-driven")
        return f"ConstantThrustManeuver({window}, thrust={self.thrust.value} N)"


class ConstantThrustError(_FiringWindow):
    """Thrust error acceleration over a firing window.

    Each axis ``i`` of the error is either a constant ``c_i`` or a linear
    law ``slope_i * (t - t_ref) + offset_i`` (see :meth:`linear`).  The
    error vector is expressed in ``frame``, in ``lof_type``, or in the
    spacecraft body frame.  The model has no state gradient.

    Args:
        start: Firing start date.
        duration: Firing duration [s]; a negative duration swaps the bounds.
        cx: Constant error along x [m/s^2].
        cy: Constant error along y [m/s^2].
        cz: Constant error along z [m/s^2].
        frame: Frame of the error vector.
        lof_type: Local orbital frame of the error vector.
    """

    def __init__(
        self,
        start: Epoch | None,
        duration: float | None,
        cx: Parameter | float = 0.0,
        cy: Parameter | float = 0.0,
        cz: Parameter | float = 0.0,
        frame: Frame | None = None,
        lof_type: LOFType | None = None,
        start_detector: EventDetector | None = None,
        stop_detector: EventDetector | None = None,
    ) -> None:
        super().__init__()
        self.frame = frame
        self.lof_type = lof_type
        self.reference_date: Epoch | None = None
        self.slopes: list[Parameter] = []
        self.offsets = [as_parameter("CX", cx), as_parameter("CY", cy), as_parameter("CZ", cz)]
        self._set_window(start, duration, start_detector, stop_detector)

    @classmethod
    def linear(
        cls,
        start: Epoch,
        duration: float,
        slopes: Sequence[Parameter | float],
        offsets: Sequence[Parameter | float],
        reference_date: Epoch,
        frame: Frame | None = None,
        lof_type: LOFType | None = None,
    ) -> ConstantThrustError:
        """Error growing linearly from ``reference_date``.

        Args:
            slopes: ``(AX, AY, AZ)`` slopes [m/s^3].
            offsets: ``(BX, BY, BZ)`` values at ``reference_date`` [m/s^2].
            reference_date: Date ``t_ref`` of the linear laws.

        Raises:
            ConfigurationError: If ``slopes`` or ``offsets`` does not have
                3 elements.
        """
        if len(slopes) != 3 or len(offsets) != 3:
            raise ConfigurationError("linear thrust error needs 3 slopes and 3 offsets")
        model = cls(start, duration, frame=frame, lof_type=lof_type)
        model.reference_date = Epoch(reference_date)
        model.slopes = [as_parameter(n, s) for n, s in zip(("AX", "AY", "AZ"), slopes)]
        model.offsets = [as_parameter(n, b) for n, b in zip(("BX", "BY", "BZ"), offsets)]
        return model

    @classmethod
    def from_detectors(
        cls,
        start_detector: EventDetector,
        stop_detector: EventDetector,
        cx: Parameter | float = 0.0,
        cy: Parameter | float = 0.0,
        cz: Parameter | float = 0.0,
        frame: Frame | None = None,
        lof_type: LOFType | None = None,
    ) -> ConstantThrustError:
        return cls(None, None, cx, cy, cz, frame, lof_type,
                   start_detector=start_detector, stop_detector=stop_detector)

    def parameters(self) -> list[Parameter]:
        if not self.slopes:
            return list(self.offsets)
        params = []
        for slope, offset in zip(self.slopes, self.offsets):
            params.extend((slope, offset))
        return params

    def _acceleration(self, state: SpacecraftState, values: Mapping[Parameter, ArrayLike]) -> Array:
        components = [values[p] for p in self.offsets]
        if self.slopes:
            dt = state.epoch.duration_from(self.reference_date)
            components = [values[a] * dt + b for a, b in zip(self.slopes, components)]
        error = jnp.stack([jnp.asarray(c, dtype=get_dtype()) for c in components])
        return direction_in_state_frame(state, error, self.frame, self.lof_type)


class ImpulseManeuver(EventDetector):
    """Impulsive maneuver applied when a trigger detector fires.

    On a ``STOP`` of ``trigger`` the velocity is incremented by
    ``delta_v`` and the mass of ``part`` decreases following the rocket
    equation ``m1 = m0 * exp(-|dv| / (isp * g0))``.  Propagating backward
    applies the opposite increment and restores the mass.  Other actions of
    the trigger are ignored.

    Args:
        trigger: Detector giving the maneuver date.
        delta_v: Velocity increment [m/s].
        isp: Specific impulse [s].
        part: Name of the propellant mass part.
        frame: Frame of ``delta_v``.
        lof_type: Local orbital frame of ``delta_v``.

    Raises:
        ConfigurationError: If ``isp`` is not positive.
    """

    def __init__(
        self,
        trigger: EventDetector,
        delta_v: ArrayLike,
        isp: float,
        part: str,
        frame: Frame | None = None,
        lof_type: LOFType | None = None,
    ) -> None:
        super().__init__(trigger.max_check, trigger.threshold, trigger.max_iterations,
                         trigger.slope_selection)
        if not isp > 0.0:
            raise ConfigurationError(f"isp must be positive, got {isp}")
        self.trigger = trigger
        self.delta_v = jnp.asarray(delta_v, dtype=get_dtype())
        self.isp = float(isp)
        self.part = part
        self.frame = frame
        self.lof_type = lof_type
        self._fired_forward = True

    def g(self, state):
        return self.trigger.g(state)

    def init(self, state0, target):
        self.trigger.init(state0, target)

    def event_occurred(self, state, increasing, forward):
        action = self.trigger.event_occurred(state, increasing, forward)
        self._fired_forward = forward
        return Action.RESET_STATE if action is Action.STOP else Action.CONTINUE

    def reset_state(self, state: SpacecraftState) -> SpacecraftState:
        sign = 1.0 if self._fired_forward else -1.0
        dv = direction_in_state_frame(state, self.delta_v, self.frame, self.lof_type)
        ratio = jnp.exp(-sign * jnp.linalg.norm(self.delta_v) / (self.isp * G0_STANDARD))
        consumed = state.total_mass * (1.0 - ratio)
        new_state = state.with_pv(state.position, state.velocity + sign * dv)
        return new_state.with_mass(self.part, state.get_mass(self.part) - consumed)

    def should_be_removed(self):
        return self.trigger.should_be_removed()

    def __repr__(self):
        return f"ImpulseManeuver({self.trigger!r}, dv={self.delta_v.tolist()})"

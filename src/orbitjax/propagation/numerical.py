"""Numerical orbit propagator.

:class:`NumericalPropagator` integrates the equations of motion assembled
from its force models with a step-by-step integrator, while monitoring
event detectors and feeding step handlers:

- force-model detectors (maneuver windows, ...) are registered before the
  user detectors, so that they win ties,
- integration runs in seconds since the initial state epoch,
- the final state becomes the new initial state, so successive calls chain
  and ``propagate(t2); propagate(t0)`` retro-propagates.

Examples:
    ```python
    propagator = NumericalPropagator(DormandPrince54(AdaptiveConfig(abs_tol=1e-3, rel_tol=1e-10)))
    propagator.initial_state = state0
    propagator.add_force_model(NewtonianAttraction())
    final = propagator.propagate(state0.epoch + 3600.0)
    ```
"""

from __future__ import annotations

import enum
import logging

from jax import Array

from orbitjax.attitude import AttitudeProvider
from orbitjax.epoch import Epoch
from orbitjax.errors import ConfigurationError, NotInertialFrameError
from orbitjax.events.detector import Action, EventDetector
from orbitjax.forces.base import ForceModel
from orbitjax.integrators.base import Integrator
from orbitjax.integrators.interpolator import StepInterpolator
from orbitjax.propagation.ephemeris import IntegratedEphemeris
from orbitjax.propagation.equations import (
    AdditionalEquations,
    ForceAccumulator,
    TimeDerivativesEquations,
)
from orbitjax.propagation.handlers import (
    FixedStepHandler,
    SpacecraftStateInterpolator,
    StepHandler,
    StepNormalizer,
)
from orbitjax.propagation.mapper import StateMapper
from orbitjax.state import SpacecraftState

logger = logging.getLogger(__name__)


class PropagationMode(enum.Enum):
    """How results are delivered.

    - ``SLAVE``: only the final state is returned,
    - ``MASTER``: step handlers are called along the way,
    - ``EPHEMERIS``: an :class:`IntegratedEphemeris` is built.
    """

    SLAVE = "slave"
    MASTER = "master"
    EPHEMERIS = "ephemeris"


class DetectorAdapter:
    """Presents an :class:`EventDetector` to the integrator in ``(t, y)`` terms."""

    def __init__(self, detector: EventDetector, mapper: StateMapper) -> None:
        self.detector = detector
        self.mapper = mapper
        self.max_check = detector.max_check
        self.threshold = detector.threshold
        self.max_iterations = detector.max_iterations
        self.slope_selection = detector.slope_selection

    def init(self, t0: float, y0: Array, t_end: float) -> None:
        self.detector.init(self.mapper.to_state(t0, y0), self.mapper.epoch_at(t_end))

    def g(self, t: float, y: Array) -> float:
        return self.detector.g(self.mapper.to_state(t, y))

    def event_occurred(self, t: float, y: Array, increasing: bool, forward: bool) -> Action:
        return self.detector.event_occurred(self.mapper.to_state(t, y), increasing, forward)

    def reset_state(self, t: float, y: Array) -> Array:
        return self.mapper.to_array(self.detector.reset_state(self.mapper.to_state(t, y)))

    def should_be_removed(self) -> bool:
        return self.detector.should_be_removed()

    def __repr__(self):
        return repr(self.detector)


class _HandlerAdapter:
    """Presents a :class:`StepHandler` to the integrator."""

    def __init__(self, handler: StepHandler, mapper: StateMapper) -> None:
        self.handler = handler
        self.mapper = mapper

    def handle_step(self, interpolator: StepInterpolator, is_last: bool) -> None:
        self.handler.handle_step(SpacecraftStateInterpolator(interpolator, self.mapper), is_last)


class NumericalPropagator:
    """Propagator integrating force models numerically.

    Args:
        integrator: Step-by-step integrator.
        initial_state: State to propagate from; can be set later through
            :attr:`initial_state`.
        attitude_provider: Attitude law evaluated along the trajectory.
            Without one the initial attitude is kept.
    """

    def __init__(
        self,
        integrator: Integrator,
        initial_state: SpacecraftState | None = None,
        attitude_provider: AttitudeProvider | None = None,
    ) -> None:
        self.integrator = integrator
        self.attitude_provider = attitude_provider
        self.force_accumulator = ForceAccumulator()
        self._initial_state = initial_state
        self._detectors: list[EventDetector] = []
        self._equations: list[AdditionalEquations] = []
        self._step_handlers: list[StepHandler] = []
        self._mode = PropagationMode.SLAVE
        self._ephemeris: IntegratedEphemeris | None = None

    # ─── configuration ───────────────────────────────────────────────────

    @property
    def initial_state(self) -> SpacecraftState | None:
        return self._initial_state

    @initial_state.setter
    def initial_state(self, state: SpacecraftState) -> None:
        self._initial_state = state

    def add_force_model(self, model: ForceModel) -> None:
        self.force_accumulator.add(model)

    def remove_force_models(self) -> None:
        self.force_accumulator.clear()

    @property
    def force_models(self) -> list[ForceModel]:
        return self.force_accumulator.models

    def add_event_detector(self, detector: EventDetector) -> None:
        self._detectors.append(detector)

    def clear_event_detectors(self) -> None:
        self._detectors.clear()

    @property
    def event_detectors(self) -> list[EventDetector]:
        """User detectors, without those contributed by force models."""
        return list(self._detectors)

    def add_additional_equations(self, equations: AdditionalEquations) -> None:
        self._equations.append(equations)

    @property
    def additional_equations(self) -> list[AdditionalEquations]:
        return list(self._equations)

    def add_step_handler(self, handler: StepHandler) -> None:
        """Add a step handler and switch to master mode."""
        self._step_handlers.append(handler)
        self._mode = PropagationMode.MASTER

    def clear_step_handlers(self) -> None:
        self._step_handlers.clear()

    # ─── modes ───────────────────────────────────────────────────────────

    @property
    def mode(self) -> PropagationMode:
        return self._mode

    def set_slave_mode(self) -> None:
        self._mode = PropagationMode.SLAVE
        self._step_handlers.clear()

    def set_master_mode(self, handler: StepHandler | FixedStepHandler, step: float | None = None) -> None:
        """Call ``handler`` along the propagation.

        Args:
            handler: A :class:`StepHandler`, or a :class:`FixedStepHandler`
                when ``step`` is given.
            step: Grid spacing [s] for a fixed-step handler.

        Raises:
            ConfigurationError: If ``step`` is given but not positive.
        """
        self._step_handlers.clear()
        if step is not None:
            if not abs(step) > 0.0:
                raise ConfigurationError(f"fixed step must be non-zero, got {step}")
            handler = StepNormalizer(step, handler)
        self._step_handlers.append(handler)
        self._mode = PropagationMode.MASTER

    def set_ephemeris_mode(self) -> None:
        self._mode = PropagationMode.EPHEMERIS
        self._step_handlers.clear()

    def get_generated_ephemeris(self) -> IntegratedEphemeris:
        """Ephemeris of the last propagation in ephemeris mode.

        Raises:
            ConfigurationError: If no ephemeris was generated.
        """
        if self._ephemeris is None:
            raise ConfigurationError("no ephemeris: call set_ephemeris_mode() and propagate first")
        return self._ephemeris

    # ─── propagation ─────────────────────────────────────────────────────

    def propagate(self, start_or_target: Epoch, target: Epoch | None = None) -> SpacecraftState:
        """Propagate to ``target``.

        With two dates, the initial state is first propagated to the start
        date without detectors or handlers, then from there to the target.

        Args:
            start_or_target: Target date, or start date when ``target`` is given.
            target: Target date.

        Returns:
            SpacecraftState: State at ``target``, or at the event that
                stopped the propagation.

        Raises:
            ConfigurationError: If no initial state is set.
            NotInertialFrameError: If the state frame is not pseudo-inertial.
            StepSizeUnderflowError: If the integrator step collapses.
            RootFindingError: If an event cannot be located.
        """
        if target is not None:
            if self._require_initial_state().epoch != start_or_target:
                self._initial_state = self._integrate(start_or_target, monitored=False)
            return self._integrate(target, monitored=True)
        return self._integrate(start_or_target, monitored=True)

    def _require_initial_state(self) -> SpacecraftState:
        if self._initial_state is None:
            raise ConfigurationError("initial state not set")
        return self._initial_state

    def _integrate(self, target: Epoch, monitored: bool) -> SpacecraftState:
        state0 = self._require_initial_state()
        if not state0.frame.pseudo_inertial:
            raise NotInertialFrameError(state0.frame)

        mapper = StateMapper(state0, self.attitude_provider)
        if self.attitude_provider is not None:
            state0 = mapper.to_state(0.0, mapper.to_array(state0))
        t_end = mapper.time_of(target)

        for model in self.force_models:
            model.init(state0, target)

        events = [DetectorAdapter(d, mapper) for m in self.force_models for d in m.event_detectors()]
        step_handlers = []
        self._ephemeris = None
        if monitored:
            events.extend(DetectorAdapter(d, mapper) for d in self._detectors)
            if self._mode is PropagationMode.MASTER:
                for handler in self._step_handlers:
                    handler.init(state0, target)
                    step_handlers.append(_HandlerAdapter(handler, mapper))
            elif self._mode is PropagationMode.EPHEMERIS:
                self._ephemeris = IntegratedEphemeris(mapper)
                step_handlers.append(self._ephemeris)

        logger.info("Propagating from %s to %s (%s mode, %d force models, %d detectors)",
                    state0.epoch, target, self._mode.value, len(self.force_models), len(events))

        ode = TimeDerivativesEquations(self.force_accumulator, mapper, self._equations)
        try:
            t, y = self.integrator.integrate(ode, 0.0, mapper.to_array(state0), t_end,
                                             events, step_handlers)
        finally:
            for model in self.force_models:
                model.finish()
        final = mapper.to_state(t, y)

        logger.info("Propagation ended at %s after %d evaluations", final.epoch,
                    self.integrator.evaluations)
        self._initial_state = final
        return final

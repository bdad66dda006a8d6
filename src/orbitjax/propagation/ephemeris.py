"""Ephemeris built from the dense output of a propagation."""

from __future__ import annotations

import numpy as np

from orbitjax.epoch import Epoch
from orbitjax.errors import MissingDataError
from orbitjax.integrators.interpolator import StepInterpolator
from orbitjax.propagation.mapper import StateMapper
from orbitjax.state import SpacecraftState


class IntegratedEphemeris:
    """Continuous ephemeris over the interval covered by a propagation.

    Collects the step interpolators of the propagation (it is registered
    as a step handler in ephemeris mode) and evaluates the one covering a
    requested date.

    Args:
        mapper: Conversion from integration variables to states.

    Examples:
        ```python
        propagator.set_ephemeris_mode()
        propagator.propagate(t0 + 3600.0)
        ephemeris = propagator.get_generated_ephemeris()
        state = ephemeris.get_state(t0 + 1234.5)
        ```
    """

    def __init__(self, mapper: StateMapper) -> None:
        self._mapper = mapper
        self._steps: list[StepInterpolator] = []
        self._starts = np.empty(0)
        self._ends = np.empty(0)

    def handle_step(self, interpolator: StepInterpolator, is_last: bool) -> None:
        if interpolator.current_time == interpolator.previous_time:
            return
        self._steps.append(interpolator)
        if is_last:
            self._index()

    def _index(self) -> None:
        bounds = np.array([(s.previous_time, s.current_time) for s in self._steps])
        self._starts = bounds.min(axis=1)
        self._ends = bounds.max(axis=1)
        order = np.argsort(self._starts, kind="stable")
        self._steps = [self._steps[i] for i in order]
        self._starts = self._starts[order]
        self._ends = self._ends[order]

    @property
    def min_date(self) -> Epoch:
        """Earliest covered date."""
        self._check()
        return self._mapper.epoch_at(float(self._starts[0]))

    @property
    def max_date(self) -> Epoch:
        """Latest covered date."""
        self._check()
        return self._mapper.epoch_at(float(self._ends[-1]))

    def _check(self) -> None:
        if len(self._starts) == 0:
            raise MissingDataError("ephemeris holds no step")

    def get_state(self, epoch: Epoch) -> SpacecraftState:
        """State at ``epoch``.

        Raises:
            MissingDataError: If ``epoch`` lies outside the covered interval.
        """
        self._check()
        t = self._mapper.time_of(epoch)
        if not self._starts[0] <= t <= self._ends[-1]:
            raise MissingDataError(
                f"date {epoch} outside ephemeris interval [{self.min_date}, {self.max_date}]"
            )
        index = int(np.searchsorted(self._starts, t, side="right")) - 1
        index = min(max(index, 0), len(self._steps) - 1)
        step = self._steps[index]
        return self._mapper.to_state(t, step.interpolate(t))

"""Mapping between spacecraft states and flat integration vectors.

The integrator works on ``(t, y)`` where ``t`` is the number of seconds
since a reference epoch and ``y`` a flat vector laid out as::

    [x, y, z, vx, vy, vz, m_part1, ..., m_partN, additional states...]

Mass parts and additional states appear in sorted name order, additional
states flattened one after the other.  The layout is fixed by the state
the mapper is built from.
"""

from __future__ import annotations

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from orbitjax.attitude import AttitudeProvider
from orbitjax.config import get_dtype
from orbitjax.epoch import Epoch
from orbitjax.state import MassModel, SpacecraftState


class StateMapper:
    """Converts between :class:`SpacecraftState` and ``(t, y)``.

    Args:
        reference: State fixing the reference epoch, frame and layout.
        attitude_provider: Attitude law evaluated for every mapped state.
            Without it the attitude of ``reference`` is kept.
    """

    def __init__(self, reference: SpacecraftState, attitude_provider: AttitudeProvider | None = None) -> None:
        self.reference_epoch = reference.epoch
        self.frame = reference.frame
        self.attitude_provider = attitude_provider
        self.attitude = reference.attitude
        self.part_names = reference.masses.part_names
        self.additional_names = tuple(sorted(reference.additional_states))
        self.additional_sizes = tuple(
            int(reference.additional_states[name].shape[0]) for name in self.additional_names
        )
        self.size = 6 + len(self.part_names) + sum(self.additional_sizes)

    def time_of(self, epoch: Epoch) -> float:
        """Integration time of ``epoch`` [s]."""
        return float(epoch.duration_from(self.reference_epoch))

    def epoch_at(self, t: float) -> Epoch:
        return self.reference_epoch.shifted_by(t)

    def to_array(self, state: SpacecraftState) -> Array:
        """Flatten ``state`` into the integration vector."""
        _float = get_dtype()
        pieces = [state.position, state.velocity]
        pieces.append(jnp.asarray([state.get_mass(p) for p in self.part_names], dtype=_float))
        pieces.extend(state.get_additional_state(name) for name in self.additional_names)
        return jnp.concatenate([jnp.ravel(jnp.asarray(p, dtype=_float)) for p in pieces])

    def to_state(self, t: float, y: ArrayLike) -> SpacecraftState:
        """Rebuild the spacecraft state at integration time ``t``."""
        epoch = self.epoch_at(t)
        position, velocity = y[0:3], y[3:6]

        index = 6
        masses = {}
        for name in self.part_names:
            masses[name] = y[index]
            index += 1
        additional = {}
        for name, size in zip(self.additional_names, self.additional_sizes):
            additional[name] = y[index:index + size]
            index += size

        attitude = self.attitude
        if self.attitude_provider is not None:
            attitude = self.attitude_provider.get_attitude(position, velocity, epoch, self.frame)

        return SpacecraftState(epoch, position, velocity, self.frame, attitude,
                               MassModel(masses), additional)

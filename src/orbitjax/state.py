"""Immutable spacecraft state snapshot.

A :class:`SpacecraftState` bundles everything force models and event
detectors may look at: the date, position and velocity in a frame, the
optional attitude, the mass of every named part and any additional state
vectors (e.g. partial derivatives or user-defined flags).  Instances are
frozen; every "modification" returns a new state.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType

import jax
import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from orbitjax.attitude import Attitude
from orbitjax.config import get_dtype
from orbitjax.epoch import Epoch
from orbitjax.errors import (
    ConfigurationError,
    MissingAttitudeError,
    MissingDataError,
    MissingMassPartError,
)
from orbitjax.frames import GCRF, Frame


class MassModel(Mapping):
    """Immutable mapping from named spacecraft parts to their masses [kg].

    Args:
        parts: Mapping of part name to mass.

    Raises:
        ConfigurationError: If a mass is negative.

    Examples:
        ```python
        masses = MassModel({"BODY": 1000.0, "TANK": 250.0})
        masses.total_mass           # 1250.0
        masses.with_mass("TANK", 200.0)["TANK"]
        ```
    """

    __slots__ = ("_parts",)

    def __init__(self, parts: Mapping[str, ArrayLike] | None = None) -> None:
        _float = get_dtype()
        checked = {}
        for name, value in (parts or {}).items():
            value = jnp.asarray(value, dtype=_float)
            if not isinstance(value, jax.core.Tracer) and float(value) < 0.0:
                raise ConfigurationError(f"mass of part '{name}' is negative: {float(value)}")
            checked[name] = value
        self._parts = checked

    def __getitem__(self, part: str) -> Array:
        return self.get_mass(part)

    def __iter__(self) -> Iterator[str]:
        return iter(self._parts)

    def __len__(self) -> int:
        return len(self._parts)

    @property
    def part_names(self) -> tuple[str, ...]:
        """Part names in sorted order (the state-vector layout order)."""
        return tuple(sorted(self._parts))

    @property
    def total_mass(self) -> Array:
        """Sum of the masses of all parts."""
        return sum(self._parts.values(), jnp.asarray(0.0, dtype=get_dtype()))

    def get_mass(self, part: str) -> Array:
        """Mass of one part.

        Raises:
            MissingMassPartError: If the part does not exist.
        """
        try:
            return self._parts[part]
        except KeyError:
            raise MissingMassPartError(part) from None

    def with_mass(self, part: str, value: ArrayLike) -> MassModel:
        """Return a copy with ``part`` set to ``value``.

        Raises:
            MissingMassPartError: If the part does not exist.
        """
        if part not in self._parts:
            raise MissingMassPartError(part)
        return MassModel({**self._parts, part: value})

    def __repr__(self):
        body = ", ".join(f"{k}={float(v):.6g}" for k, v in self._parts.items())
        return f"MassModel({body})"


@dataclass(frozen=True, eq=False)
class SpacecraftState:
    """Point-in-time spacecraft state.

    Args:
        epoch: Date of the state.
        position: Position in ``frame`` [m].
        velocity: Velocity in ``frame`` [m/s].
        frame: Frame of position and velocity. Default: GCRF.
        attitude: Optional spacecraft attitude.
        masses: Mass of each spacecraft part.
        additional_states: Named additional state vectors.

    Examples:
        ```python
        state = SpacecraftState(Epoch(2024, 1, 1), [7e6, 0, 0], [0, 7.5e3, 0],
                                masses=MassModel({"BODY": 500.0}))
        burnt = state.with_mass("BODY", 490.0)
        float(state.total_mass), float(burnt.total_mass)   # (500.0, 490.0)
        ```
    """

    epoch: Epoch
    position: Array
    velocity: Array
    frame: Frame = GCRF
    attitude: Attitude | None = None
    masses: MassModel = field(default_factory=MassModel)
    additional_states: Mapping[str, Array] = field(default_factory=dict)

    def __post_init__(self) -> None:
        _float = get_dtype()
        object.__setattr__(self, "position", jnp.asarray(self.position, dtype=_float))
        object.__setattr__(self, "velocity", jnp.asarray(self.velocity, dtype=_float))
        if not isinstance(self.masses, MassModel):
            object.__setattr__(self, "masses", MassModel(self.masses))
        object.__setattr__(
            self,
            "additional_states",
            MappingProxyType({
                name: jnp.atleast_1d(jnp.asarray(value, dtype=_float))
                for name, value in self.additional_states.items()
            }),
        )

    # Accessors

    @property
    def pv(self) -> Array:
        """6-element ``[x, y, z, vx, vy, vz]`` vector."""
        return jnp.concatenate([self.position, self.velocity])

    @property
    def total_mass(self) -> Array:
        return self.masses.total_mass

    def get_mass(self, part: str) -> Array:
        """Mass of a named part, raising :class:`MissingMassPartError` if absent."""
        return self.masses.get_mass(part)

    def get_attitude(self) -> Attitude:
        """Return the attitude.

        Raises:
            MissingAttitudeError: If the state carries no attitude.
        """
        if self.attitude is None:
            raise MissingAttitudeError(f"state at {self.epoch} has no attitude")
        return self.attitude

    def get_additional_state(self, name: str) -> Array:
        """Return a named additional state.

        Raises:
            MissingDataError: If no additional state has this name.
        """
        try:
            return self.additional_states[name]
        except KeyError:
            raise MissingDataError(f"unknown additional state '{name}'") from None

    @property
    def kinetic_energy(self) -> Array:
        """Kinetic energy ``0.5 * m * |v|^2`` [J]."""
        return 0.5 * self.total_mass * jnp.dot(self.velocity, self.velocity)

    @property
    def angular_momentum(self) -> Array:
        """Specific orbital angular momentum ``r x v`` [m^2/s]."""
        return jnp.cross(self.position, self.velocity)

    # Functional updates

    def with_pv(self, position: ArrayLike, velocity: ArrayLike) -> SpacecraftState:
        return replace(self, position=position, velocity=velocity)

    def with_attitude(self, attitude: Attitude | None) -> SpacecraftState:
        return replace(self, attitude=attitude)

    def with_mass(self, part: str, value: ArrayLike) -> SpacecraftState:
        return replace(self, masses=self.masses.with_mass(part, value))

    def with_additional_state(self, name: str, value: ArrayLike) -> SpacecraftState:
        """Return a copy where the additional state ``name`` is set (or added)."""
        return replace(self, additional_states={**self.additional_states, name: value})

    def __repr__(self):
        return (f"SpacecraftState(epoch={self.epoch}, frame={self.frame.name}, "
                f"position={self.position}, velocity={self.velocity})")

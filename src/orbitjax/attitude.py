"""Spacecraft attitude and attitude laws.

An :class:`Attitude` stores the rotation from the spacecraft body frame to
a reference frame (columns are the body axes expressed in the reference
frame) together with the body spin.  Attitude laws implement the
:class:`AttitudeProvider` protocol and are evaluated by the propagator for
every state it builds.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from orbitjax.config import get_dtype
from orbitjax.epoch import Epoch
from orbitjax.frames import Frame, LOFType


@dataclass(frozen=True, eq=False)
class Attitude:
    """Orientation of the spacecraft body frame.

    Args:
        frame: Reference frame of the rotation.
        rotation: 3x3 matrix mapping body components to ``frame`` components.
        spin: Angular velocity of the body with respect to ``frame``,
            expressed in body axes [rad/s].
    """

    frame: Frame
    rotation: Array
    spin: Array = field(default_factory=lambda: jnp.zeros(3, dtype=get_dtype()))

    def body_to_frame(self, vector: ArrayLike, frame: Frame, epoch: Epoch) -> Array:
        """Express a body-frame vector in ``frame``.

        Args:
            vector: Vector in body axes.
            frame: Destination frame.
            epoch: Instant of the transformation.

        Returns:
            jax.Array: The vector in ``frame`` components.
        """
        v = jnp.asarray(vector, dtype=get_dtype())
        return self.frame.rotation_to(frame, epoch) @ (self.rotation @ v)

    def frame_to_body(self, vector: ArrayLike, frame: Frame, epoch: Epoch) -> Array:
        """Express a vector given in ``frame`` in body axes."""
        v = jnp.asarray(vector, dtype=get_dtype())
        return self.rotation.T @ (frame.rotation_to(self.frame, epoch) @ v)


class AttitudeProvider(Protocol):
    """An attitude law."""

    def get_attitude(
        self, position: Array, velocity: Array, epoch: Epoch, frame: Frame
    ) -> Attitude:
        ...


class InertialAttitude:
    """Constant orientation with respect to the state frame.

    Args:
        rotation: Body-to-frame rotation matrix. Default: identity.
    """

    def __init__(self, rotation: ArrayLike | None = None) -> None:
        if rotation is None:
            rotation = jnp.eye(3)
        self.rotation = jnp.asarray(rotation, dtype=get_dtype())

    def get_attitude(self, position, velocity, epoch, frame) -> Attitude:
        return Attitude(frame, self.rotation)


class LofAttitude:
    """Body axes aligned with a local orbital frame.

    Args:
        lof_type: The local orbital frame the body follows.
    """

    def __init__(self, lof_type: LOFType) -> None:
        self.lof_type = lof_type

    def get_attitude(self, position, velocity, epoch, frame) -> Attitude:
        rotation = self.lof_type.rotation_to_inertial(position, velocity)
        r = jnp.asarray(position, dtype=get_dtype())
        v = jnp.asarray(velocity, dtype=get_dtype())
        # orbital rate about the momentum axis
        rate = jnp.linalg.norm(jnp.cross(r, v)) / jnp.dot(r, r)
        momentum_axis = 1 if self.lof_type is LOFType.VNC else 2
        spin = jnp.zeros(3, dtype=get_dtype()).at[momentum_axis].set(rate)
        return Attitude(frame, rotation, spin)

"""Reference frames and local orbital frames.

Frames are lightweight descriptors that know how to rotate vectors into
GCRF at a given epoch.  Only the pieces the propagation core needs are
modelled:

- ``GCRF`` and ``EME2000`` are pseudo-inertial (the frame bias between
  them is neglected),
- ``ITRF`` rotates with the Earth using only the GMST angle, the same
  simplified model as a single :math:`R_z(\\theta_{\\text{GMST}})`
  rotation.

Frames are collected by a :class:`FrameProvider` which is passed
explicitly to the models that need one; there is no mutable registry.

Local orbital frames (:class:`LOFType`) are built from the instantaneous
position and velocity.

References:
    1. D. Vallado, *Fundamentals of Astrodynamics and Applications*,
       4th ed., Microcosm Press, 2013, Sec. 3.7.
    2. H. Schaub and J. Junkins, *Analytical Mechanics of Space Systems*,
       2nd ed., AIAA, 2009.
"""

from __future__ import annotations

import enum
from collections.abc import Callable
from dataclasses import dataclass, field

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from orbitjax.config import get_dtype
from orbitjax.constants import OMEGA_EARTH
from orbitjax.epoch import Epoch
from orbitjax.rotations import Rz


@dataclass(frozen=True, eq=False)
class Frame:
    """A reference frame defined by its orientation relative to GCRF.

    Args:
        name: Frame name.
        pseudo_inertial: Whether Newton's laws hold without fictitious
            forces in this frame.
        to_gcrf: Callable ``epoch -> R`` returning the 3x3 matrix mapping
            components in this frame to GCRF components.  ``None`` means the
            frame is aligned with GCRF.
        spin: Angular velocity of the frame with respect to GCRF, expressed
            in the frame's own axes [rad/s].

    Frames compare by identity.
    """

    name: str
    pseudo_inertial: bool
    to_gcrf: Callable[[Epoch], Array] | None = None
    spin: tuple[float, float, float] = (0.0, 0.0, 0.0)

    def rotation_to_gcrf(self, epoch: Epoch) -> Array:
        """Matrix mapping this frame's components to GCRF at ``epoch``."""
        if self.to_gcrf is None:
            return jnp.eye(3, dtype=get_dtype())
        return self.to_gcrf(epoch)

    def rotation_to(self, other: Frame, epoch: Epoch) -> Array:
        """Matrix mapping this frame's components to ``other``'s at ``epoch``.

        Args:
            other: Destination frame.
            epoch: Instant of the transformation.

        Returns:
            jax.Array: 3x3 rotation matrix.
        """
        if other is self:
            return jnp.eye(3, dtype=get_dtype())
        return other.rotation_to_gcrf(epoch).T @ self.rotation_to_gcrf(epoch)

    def transform_pv(
        self, other: Frame, epoch: Epoch, position: ArrayLike, velocity: ArrayLike
    ) -> tuple[Array, Array]:
        """Express a position/velocity pair given in this frame in ``other``.

        The transport term ``omega x r`` of rotating frames is accounted for.

        Args:
            other: Destination frame.
            epoch: Instant of the transformation.
            position: Position in this frame [m].
            velocity: Velocity in this frame [m/s].

        Returns:
            tuple: (position, velocity) in ``other`` [m, m/s].
        """
        _float = get_dtype()
        r = jnp.asarray(position, dtype=_float)
        v = jnp.asarray(velocity, dtype=_float)
        if other is self:
            return r, v

        w_self = jnp.asarray(self.spin, dtype=_float)
        r_gcrf = self.rotation_to_gcrf(epoch) @ r
        v_gcrf = self.rotation_to_gcrf(epoch) @ (v + jnp.cross(w_self, r))

        rot_other = other.rotation_to_gcrf(epoch).T
        w_other = jnp.asarray(other.spin, dtype=_float)
        r_out = rot_other @ r_gcrf
        v_out = rot_other @ v_gcrf - jnp.cross(w_other, r_out)
        return r_out, v_out

    def __repr__(self):
        return f"Frame({self.name})"


def _itrf_to_gcrf(epoch: Epoch) -> Array:
    # Rz(gmst) maps GCRF to ITRF components
    return Rz(epoch.gmst()).T


GCRF = Frame("GCRF", pseudo_inertial=True)
EME2000 = Frame("EME2000", pseudo_inertial=True)
ITRF = Frame("ITRF", pseudo_inertial=False, to_gcrf=_itrf_to_gcrf,
             spin=(0.0, 0.0, OMEGA_EARTH))


@dataclass(frozen=True)
class FrameProvider:
    """Container of the frames available to models.

    Passed explicitly to constructors that need a frame lookup, in place of
    a process-wide factory.

    Examples:
        ```python
        frames = FrameProvider()
        frames.get("ITRF").pseudo_inertial   # False
        ```
    """

    gcrf: Frame = GCRF
    eme2000: Frame = EME2000
    itrf: Frame = ITRF
    extra: tuple[Frame, ...] = field(default_factory=tuple)

    def get(self, name: str) -> Frame:
        """Look a frame up by name.

        Raises:
            KeyError: If no frame has this name.
        """
        for frame in (self.gcrf, self.eme2000, self.itrf, *self.extra):
            if frame.name == name:
                return frame
        raise KeyError(f"unknown frame '{name}'")


class LOFType(enum.Enum):
    """Local orbital frame definitions.

    - ``QSW``: Q radial (from the central body to the spacecraft), W along
      the orbital momentum, S completing the triad (also known as RTN or
      LVLH).
    - ``TNW``: T along the velocity, W along the orbital momentum, N = W x T.
    - ``VNC``: V along the velocity, N along the orbital momentum, C = V x N.
    """

    QSW = "QSW"
    TNW = "TNW"
    VNC = "VNC"

    def rotation_to_inertial(self, position: ArrayLike, velocity: ArrayLike) -> Array:
        """Matrix whose columns are the LOF axes in the inertial frame.

        Args:
            position: Position in the (pseudo-inertial) state frame [m].
            velocity: Velocity in the state frame [m/s].

        Returns:
            jax.Array: 3x3 rotation matrix (LOF -> inertial).
        """
        _float = get_dtype()
        r = jnp.asarray(position, dtype=_float)
        v = jnp.asarray(velocity, dtype=_float)

        h = jnp.cross(r, v)
        h_hat = h / jnp.linalg.norm(h)

        if self is LOFType.QSW:
            r_hat = r / jnp.linalg.norm(r)
            return jnp.column_stack([r_hat, jnp.cross(h_hat, r_hat), h_hat])

        v_hat = v / jnp.linalg.norm(v)
        if self is LOFType.TNW:
            return jnp.column_stack([v_hat, jnp.cross(h_hat, v_hat), h_hat])
        return jnp.column_stack([v_hat, h_hat, jnp.cross(v_hat, h_hat)])

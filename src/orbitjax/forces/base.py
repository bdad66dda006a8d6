"""Force model interface.

Every perturbation is a :class:`ForceModel`.  A model owns zero or more
:class:`~orbitjax.parameters.Parameter` objects and implements a single
method, :meth:`ForceModel._acceleration`, that computes the acceleration
for explicit parameter values.  Everything else is derived from it:

- :meth:`compute_acceleration` evaluates it with the current values,
- :meth:`add_dacc_dparam` differentiates it with respect to one parameter
  value using forward-mode autodiff (``jax.jacfwd``),
- :meth:`add_dacc_dstate` differentiates it with respect to position and
  velocity, for models whose gradient flags are set.

Accelerations are expressed in the frame of the state they are computed
from.  Models must be pure functions of the state and their parameters:
calling them twice with the same state yields bit-identical results.
"""

from __future__ import annotations

import abc
from collections.abc import Mapping
from typing import TYPE_CHECKING

import jax
import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from orbitjax.config import get_dtype
from orbitjax.epoch import Epoch
from orbitjax.errors import NotInertialFrameError, UnsupportedParameterError
from orbitjax.frames import Frame, LOFType
from orbitjax.parameters import Parameter
from orbitjax.state import SpacecraftState

if TYPE_CHECKING:
    from orbitjax.events.detector import EventDetector


class ForceModel(abc.ABC):
    """Base class of force models.

    Subclasses implement :meth:`parameters` and :meth:`_acceleration` and
    set the class attributes ``compute_gradient_position`` /
    ``compute_gradient_velocity`` when the state Jacobian is meaningful.
    """

    compute_gradient_position: bool = False
    compute_gradient_velocity: bool = False

    def __init__(self) -> None:
        self._forward = True

    # Interface to implement

    @abc.abstractmethod
    def parameters(self) -> list[Parameter]:
        """Parameters owned by this model, in a stable order."""

    @abc.abstractmethod
    def _acceleration(
        self, state: SpacecraftState, values: Mapping[Parameter, ArrayLike]
    ) -> Array:
        """Acceleration in the state frame for the given parameter values."""

    # Optional hooks

    def init(self, state0: SpacecraftState, target: Epoch) -> None:
        """Prepare for a propagation from ``state0`` towards ``target``."""
        self._forward = float(target.duration_from(state0.epoch)) >= 0.0

    def finish(self) -> None:
        """Called once the propagation started by :meth:`init` has ended."""

    @property
    def forward(self) -> bool:
        """Direction of the propagation the model was last initialised for."""
        return self._forward

    def is_active(self, state: SpacecraftState) -> bool:
        """Whether the model contributes at this state (firing predicate)."""
        return True

    def mass_derivatives(self, state: SpacecraftState) -> dict[str, Array]:
        """Mass flow per part [kg/s]; empty unless the model consumes mass."""
        return {}

    def event_detectors(self) -> list[EventDetector]:
        """Detectors the propagator must register alongside this model."""
        return []

    # Derived operations

    def supports_parameter(self, parameter: Parameter) -> bool:
        return any(parameter is p for p in self.parameters())

    def parameter_values(self) -> dict[Parameter, Array]:
        _float = get_dtype()
        return {p: _float(p.value) for p in self.parameters()}

    def compute_acceleration(self, state: SpacecraftState) -> Array:
        """Acceleration contribution of this model at ``state``.

        Args:
            state: Current spacecraft state.

        Returns:
            jax.Array: 3-element acceleration in the state frame [m/s^2].
                Zero when the model is not active.
        """
        if not self.is_active(state):
            return jnp.zeros(3, dtype=get_dtype())
        return self._acceleration(state, self.parameter_values())

    def add_dacc_dparam(
        self, state: SpacecraftState, parameter: Parameter, d_acc: ArrayLike
    ) -> Array:
        """Accumulate the derivative of the acceleration w.r.t. a parameter.

        Args:
            state: Current spacecraft state.
            parameter: One of :meth:`parameters`.
            d_acc: 3-element accumulator.

        Returns:
            jax.Array: ``d_acc + d(acceleration)/d(parameter)``.  The
                contribution is exactly zero when the model is not active.

        Raises:
            UnsupportedParameterError: If ``parameter`` does not belong to
                this model.
        """
        if not self.supports_parameter(parameter):
            raise UnsupportedParameterError(parameter, self)

        _float = get_dtype()
        d_acc = jnp.asarray(d_acc, dtype=_float)
        if not self.is_active(state):
            return d_acc

        values = self.parameter_values()

        def acc_of(x):
            return self._acceleration(state, {**values, parameter: x})

        return d_acc + jax.jacfwd(acc_of)(_float(parameter.value))

    def add_dacc_dstate(
        self,
        state: SpacecraftState,
        d_acc_dpos: ArrayLike,
        d_acc_dvel: ArrayLike,
    ) -> tuple[Array, Array]:
        """Accumulate the acceleration Jacobians w.r.t. position and velocity.

        Models that do not provide state gradients return the accumulators
        unchanged.

        Args:
            state: Current spacecraft state.
            d_acc_dpos: 3x3 accumulator for d(acceleration)/d(position).
            d_acc_dvel: 3x3 accumulator for d(acceleration)/d(velocity).

        Returns:
            tuple: Updated ``(d_acc_dpos, d_acc_dvel)``.
        """
        _float = get_dtype()
        d_acc_dpos = jnp.asarray(d_acc_dpos, dtype=_float)
        d_acc_dvel = jnp.asarray(d_acc_dvel, dtype=_float)
        if not (self.compute_gradient_position or self.compute_gradient_velocity):
            return d_acc_dpos, d_acc_dvel
        if not self.is_active(state):
            return d_acc_dpos, d_acc_dvel

        values = self.parameter_values()

        def acc_of(r, v):
            return self._acceleration(state.with_pv(r, v), values)

        jac_r, jac_v = jax.jacfwd(acc_of, argnums=(0, 1))(state.position, state.velocity)
        if self.compute_gradient_position:
            d_acc_dpos = d_acc_dpos + jac_r
        if self.compute_gradient_velocity:
            d_acc_dvel = d_acc_dvel + jac_v
        return d_acc_dpos, d_acc_dvel


def direction_in_state_frame(
    state: SpacecraftState,
    vector: ArrayLike,
    frame: Frame | None = None,
    lof_type: LOFType | None = None,
) -> Array:
    """Express a model-frame vector in the state frame.

    The model frame is, by priority, an explicit ``frame``, a local
    orbital frame ``lof_type``, or the spacecraft body frame given by the
    state's attitude.

    Args:
        state: Current spacecraft state.
        vector: Vector in the model frame.
        frame: Optional frame the vector is expressed in.
        lof_type: Optional local orbital frame the vector is expressed in.

    Returns:
        jax.Array: The vector in state frame components.

    Raises:
        NotInertialFrameError: If a LOF is used while the state frame is
            not pseudo-inertial.
        MissingAttitudeError: If the body frame is needed but the state
            has no attitude.
    """
    vector = jnp.asarray(vector, dtype=get_dtype())
    if frame is not None:
        return frame.rotation_to(state.frame, state.epoch) @ vector
    if lof_type is not None:
        if not state.frame.pseudo_inertial:
            raise NotInertialFrameError(state.frame)
        return lof_type.rotation_to_inertial(state.position, state.velocity) @ vector
    return state.get_attitude().body_to_frame(vector, state.frame, state.epoch)

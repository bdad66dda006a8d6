"""Equations of motion assembled from force models.

- :class:`ForceAccumulator` sums the accelerations, partial derivatives and
  mass flows of an ordered list of force models,
- :class:`TimeDerivativesEquations` is the ODE right-hand side handed to the
  integrator,
- :class:`AdditionalEquations` adds user-defined state derivatives, e.g.
  :class:`PartialDerivativesEquations` for the state transition matrix and
  the parameter Jacobian.
"""

from __future__ import annotations

import abc
from collections.abc import Iterable

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from orbitjax.config import get_dtype
from orbitjax.errors import UnsupportedParameterError
from orbitjax.forces.base import ForceModel
from orbitjax.parameters import Parameter, unique_parameters
from orbitjax.propagation.mapper import StateMapper
from orbitjax.state import SpacecraftState


class ForceAccumulator:
    """Ordered collection of force models with enable flags.

    Sums follow registration order so that results are reproducible.
    Errors raised by a model propagate unchanged.
    """

    def __init__(self, models: Iterable[ForceModel] = ()) -> None:
        self._models: list[ForceModel] = []
        self._disabled: set[int] = set()
        for model in models:
            self.add(model)

    def add(self, model: ForceModel) -> None:
        self._models.append(model)

    def clear(self) -> None:
        self._models.clear()
        self._disabled.clear()

    @property
    def models(self) -> list[ForceModel]:
        return list(self._models)

    def enable(self, model: ForceModel) -> None:
        self._disabled.discard(id(model))

    def disable(self, model: ForceModel) -> None:
        """Keep ``model`` registered but skip it in every sum."""
        self._disabled.add(id(model))

    def is_enabled(self, model: ForceModel) -> bool:
        return id(model) not in self._disabled

    def active_models(self, state: SpacecraftState) -> list[ForceModel]:
        """Enabled models whose firing predicate holds at ``state``."""
        return [m for m in self._models if self.is_enabled(m) and m.is_active(state)]

    def compute_total_acceleration(self, state: SpacecraftState) -> Array:
        """Sum of the accelerations of the active models, in the state frame."""
        total = jnp.zeros(3, dtype=get_dtype())
        for model in self.active_models(state):
            total = total + model.compute_acceleration(state)
        return total

    def parameters(self) -> list[Parameter]:
        """Union of the model parameters, deduplicated by identity."""
        return unique_parameters(m.parameters() for m in self._models)

    def mass_derivatives(self, state: SpacecraftState) -> dict[str, Array]:
        """Mass flow per part, summed over the active models."""
        flows: dict[str, Array] = {}
        for model in self.active_models(state):
            for part, flow in model.mass_derivatives(state).items():
                flows[part] = flows.get(part, 0.0) + flow
        return flows

    def add_dacc_dstate(self, state: SpacecraftState) -> tuple[Array, Array]:
        """Total ``(da/dr, da/dv)`` of the active models."""
        _float = get_dtype()
        d_pos = jnp.zeros((3, 3), dtype=_float)
        d_vel = jnp.zeros((3, 3), dtype=_float)
        for model in self.active_models(state):
            d_pos, d_vel = model.add_dacc_dstate(state, d_pos, d_vel)
        return d_pos, d_vel

    def add_dacc_dparam(self, state: SpacecraftState, parameter: Parameter) -> Array:
        """Total ``da/dp`` over the enabled models owning ``parameter``.

        Raises:
            UnsupportedParameterError: If no registered model owns it.
        """
        d_acc = jnp.zeros(3, dtype=get_dtype())
        owners = [m for m in self._models if m.supports_parameter(parameter)]
        if not owners:
            raise UnsupportedParameterError(parameter)
        for model in owners:
            if self.is_enabled(model):
                d_acc = model.add_dacc_dparam(state, parameter, d_acc)
        return d_acc


class AdditionalEquations(abc.ABC):
    """Derivatives of a named additional state.

    Attributes:
        name: Name of the additional state these equations drive.
    """

    name: str

    @abc.abstractmethod
    def compute_derivatives(self, state: SpacecraftState) -> Array:
        """Time derivative of the additional state ``name`` at ``state``."""


class TimeDerivativesEquations:
    """ODE right-hand side ``dy/dt = f(t, y)`` of a propagation.

    The derivative vector follows the :class:`StateMapper` layout:
    velocity, total acceleration, mass flows, then the additional state
    derivatives.  Additional states without equations are constant.

    Args:
        accumulator: Force models.
        mapper: State layout.
        equations: Additional equations, by name.
    """

    def __init__(
        self,
        accumulator: ForceAccumulator,
        mapper: StateMapper,
        equations: Iterable[AdditionalEquations] = (),
    ) -> None:
        self.accumulator = accumulator
        self.mapper = mapper
        self.equations = {eq.name: eq for eq in equations}

    def __call__(self, t: float, y: ArrayLike) -> Array:
        _float = get_dtype()
        state = self.mapper.to_state(t, y)
        acceleration = self.accumulator.compute_total_acceleration(state)

        flows = self.accumulator.mass_derivatives(state)
        pieces = [state.velocity, acceleration]
        pieces.append(jnp.asarray([flows.get(p, 0.0) for p in self.mapper.part_names], dtype=_float))
        for name, size in zip(self.mapper.additional_names, self.mapper.additional_sizes):
            if name in self.equations:
                pieces.append(jnp.ravel(self.equations[name].compute_derivatives(state)))
            else:
                pieces.append(jnp.zeros(size, dtype=_float))
        return jnp.concatenate([jnp.asarray(p, dtype=_float) for p in pieces])


class PartialDerivativesEquations(AdditionalEquations):
    """Variational equations of the orbit.

    Propagates the state transition matrix ``Phi = d(r, v)/d(r0, v0)`` and
    the parameter Jacobian ``S = d(r, v)/dp`` as the additional state
    ``name``, flattened row-major as ``[Phi (6x6), S (6xN)]``::

        Phi' = A Phi,    S' = A S + B,
        A = [[0, I], [da/dr, da/dv]],    B = [0; da/dp]

    Args:
        name: Name of the additional state.
        accumulator: Force models of the propagation (usually
            ``propagator.force_accumulator``).

    Examples:
        ```python
        partials = PartialDerivativesEquations("partials", propagator.force_accumulator)
        partials.select_parameters(gravity.mu)
        propagator.add_additional_equations(partials)
        propagator.initial_state = partials.initial_state(state0)
        final = propagator.propagate(target)
        phi = partials.state_jacobian(final)
        ```
    """

    def __init__(self, name: str, accumulator: ForceAccumulator) -> None:
        self.name = name
        self.accumulator = accumulator
        self._selected: list[Parameter] | None = None
        self._parameters: list[Parameter] = []

    def select_parameters(self, *parameters: Parameter) -> None:
        """Restrict the Jacobian columns to ``parameters`` (default: all of them)."""
        self._selected = unique_parameters([parameters])

    @property
    def parameters(self) -> list[Parameter]:
        """Parameters of the Jacobian columns, fixed by :meth:`initial_state`."""
        return list(self._parameters)

    def initial_state(self, state: SpacecraftState) -> SpacecraftState:
        """Add ``Phi = I`` and ``S = 0`` to ``state``.

        Raises:
            UnsupportedParameterError: If a selected parameter belongs to no
                force model.
        """
        available = self.accumulator.parameters()
        selected = self._selected if self._selected is not None else available
        for parameter in selected:
            if not any(parameter is p for p in available):
                raise UnsupportedParameterError(parameter)
        self._parameters = list(selected)

        _float = get_dtype()
        phi = jnp.eye(6, dtype=_float)
        s = jnp.zeros((6, len(self._parameters)), dtype=_float)
        return state.with_additional_state(self.name, jnp.concatenate([phi.ravel(), s.ravel()]))

    def state_jacobian(self, state: SpacecraftState) -> Array:
        """6x6 ``d(r, v)/d(r0, v0)`` stored in ``state``."""
        return state.get_additional_state(self.name)[:36].reshape(6, 6)

    def parameters_jacobian(self, state: SpacecraftState) -> Array:
        """6xN ``d(r, v)/dp`` stored in ``state``, columns in :attr:`parameters` order."""
        return state.get_additional_state(self.name)[36:].reshape(6, len(self._parameters))

    def compute_derivatives(self, state):
        _float = get_dtype()
        d_pos, d_vel = self.accumulator.add_dacc_dstate(state)
        a = jnp.block([
            [jnp.zeros((3, 3), dtype=_float), jnp.eye(3, dtype=_float)],
            [d_pos, d_vel],
        ])
        phi = self.state_jacobian(state)
        s = self.parameters_jacobian(state)

        s_dot = a @ s
        if self._parameters:
            d_param = jnp.stack(
                [self.accumulator.add_dacc_dparam(state, p) for p in self._parameters], axis=1
            )
            b = jnp.concatenate([jnp.zeros((3, len(self._parameters)), dtype=_float), d_param])
            s_dot = s_dot + b
        return jnp.concatenate([(a @ phi).ravel(), s_dot.ravel()])

"""Tests for orbitjax.propagation.PartialDerivativesEquations.

Tests cover:
- State transition matrix against central finite differences
- Parameter Jacobian (gravitational parameter, drag coefficient)
- Parameter selection and its errors
- Additional states without equations
"""

import math

import jax.numpy as jnp
import pytest

from orbitjax.constants import GM_EARTH
from orbitjax.epoch import Epoch
from orbitjax.errors import UnsupportedParameterError
from orbitjax.forces import DragForce, ExponentialAtmosphere, IsotropicSpacecraft, NewtonianAttraction
from orbitjax.integrators import ClassicalRungeKutta
from orbitjax.parameters import Parameter
from orbitjax.propagation import NumericalPropagator, PartialDerivativesEquations
from orbitjax.state import MassModel, SpacecraftState

_T0 = Epoch(2024, 1, 1)
_TARGET = _T0.shifted_by(1000.0)


def _state0(dr=None, dv=None):
    r = 7.0e6
    v = math.sqrt(GM_EARTH / r)
    position = jnp.array([r, 0.0, 0.0])
    velocity = jnp.array([0.0, 0.9 * v, 0.3 * v])
    if dr is not None:
        position = position + dr
    if dv is not None:
        velocity = velocity + dv
    return SpacecraftState(_T0, position, velocity, masses=MassModel({"body": 500.0}))


def _final(state0, mu=GM_EARTH):
    propagator = NumericalPropagator(ClassicalRungeKutta(10.0), state0)
    propagator.add_force_model(NewtonianAttraction(mu))
    return propagator.propagate(_TARGET)


def _with_partials(state0):
    propagator = NumericalPropagator(ClassicalRungeKutta(10.0))
    gravity = NewtonianAttraction()
    propagator.add_force_model(gravity)
    partials = PartialDerivativesEquations("partials", propagator.force_accumulator)
    partials.select_parameters(gravity.mu)
    propagator.add_additional_equations(partials)
    propagator.initial_state = partials.initial_state(state0)
    return propagator, partials, gravity


def _pv(state):
    return jnp.concatenate([state.position, state.velocity])


# ──────────────────────────────────────────────
# Initial values
# ──────────────────────────────────────────────


class TestInitialState:
    def test_identity_and_zero(self):
        """Phi starts at identity and the parameter Jacobian at zero."""
        _, partials, gravity = _with_partials(_state0())
        state = partials.initial_state(_state0())
        assert jnp.array_equal(partials.state_jacobian(state), jnp.eye(6))
        assert jnp.array_equal(partials.parameters_jacobian(state), jnp.zeros((6, 1)))
        assert partials.parameters == [gravity.mu]

    def test_all_parameters_by_default(self):
        """Without a selection every force model parameter gets a column."""
        propagator = NumericalPropagator(ClassicalRungeKutta(10.0))
        propagator.add_force_model(NewtonianAttraction())
        propagator.add_force_model(DragForce(ExponentialAtmosphere(), IsotropicSpacecraft(1.0)))
        partials = PartialDerivativesEquations("partials", propagator.force_accumulator)
        state = partials.initial_state(_state0())
        assert [p.name for p in partials.parameters] == ["mu", "C_D"]
        assert partials.parameters_jacobian(state).shape == (6, 2)

    def test_unknown_parameter(self):
        """Selecting a parameter no force model owns is rejected."""
        propagator = NumericalPropagator(ClassicalRungeKutta(10.0))
        propagator.add_force_model(NewtonianAttraction())
        partials = PartialDerivativesEquations("partials", propagator.force_accumulator)
        partials.select_parameters(Parameter("mu", GM_EARTH))
        with pytest.raises(UnsupportedParameterError):
            partials.initial_state(_state0())


# ──────────────────────────────────────────────
# Propagated Jacobians
# ──────────────────────────────────────────────


class TestJacobians:
    def test_state_transition_matrix(self):
        """Phi matches central differences of the propagated state."""
        propagator, partials, _ = _with_partials(_state0())
        phi = partials.state_jacobian(propagator.propagate(_TARGET))

        steps = [1.0, 1.0, 1.0, 1e-3, 1e-3, 1e-3]
        for j, h in enumerate(steps):
            delta = jnp.zeros(6).at[j].set(h)
            plus = _final(_state0(delta[:3], delta[3:]))
            minus = _final(_state0(-delta[:3], -delta[3:]))
            column = (_pv(plus) - _pv(minus)) / (2.0 * h)
            assert jnp.allclose(phi[:, j], column, rtol=1e-5, atol=1e-6), f"column {j}"

    def test_mu_jacobian(self):
        """d(r, v)/dmu matches central differences."""
        propagator, partials, _ = _with_partials(_state0())
        s = partials.parameters_jacobian(propagator.propagate(_TARGET))

        h = GM_EARTH * 1e-7
        column = (_pv(_final(_state0(), GM_EARTH + h)) - _pv(_final(_state0(), GM_EARTH - h))) / (2.0 * h)
        assert jnp.allclose(s[:, 0], column, rtol=1e-5, atol=1e-16)

    def test_partials_do_not_perturb_orbit(self):
        """The orbit is the same with and without variational equations."""
        propagator, _, _ = _with_partials(_state0())
        final = propagator.propagate(_TARGET)
        assert jnp.allclose(final.position, _final(_state0()).position, atol=1e-9)


class TestAdditionalStates:
    def test_constant_without_equations(self):
        """An additional state with no equations is carried unchanged."""
        state0 = _state0().with_additional_state("bias", [1.0, 2.0])
        final = _final(state0)
        assert jnp.array_equal(final.get_additional_state("bias"), jnp.array([1.0, 2.0]))

"""Tests for orbitjax.propagation.NumericalPropagator.

Tests cover:
- Keplerian propagation: period closure, energy, retro-propagation
- Split propagations, including ones resumed in the middle of a date-windowed
  or a detector-driven burn
- Master mode (variable and fixed step) and ephemeris mode
- Stopping and logged events (dates, apsides, nodes)
- Maneuvers inside a propagation: mass flow across the window edges forward
  and backward, and impulses
- Configuration errors
"""

import math

import jax.numpy as jnp
import pytest

from orbitjax.attitude import LofAttitude
from orbitjax.constants import G0_STANDARD, GM_EARTH
from orbitjax.epoch import Epoch
from orbitjax.errors import ConfigurationError, MissingDataError, NotInertialFrameError
from orbitjax.events import Action, ApsideDetector, DateDetector, EventsLogger, NodeDetector
from orbitjax.forces import (
    ConstantThrustManeuver,
    DragForce,
    ExponentialAtmosphere,
    ImpulseManeuver,
    IsotropicSpacecraft,
    NewtonianAttraction,
)
from orbitjax.frames import GCRF, ITRF, LOFType
from orbitjax.integrators import AdaptiveConfig, ClassicalRungeKutta, DormandPrince54
from orbitjax.propagation import FixedStepHandler, NumericalPropagator, PropagationMode, StepHandler
from orbitjax.state import MassModel, SpacecraftState

_T0 = Epoch(2024, 1, 1)
_R = 7.0e6


def _circular_state(inclination=0.0, arg_lat=0.0, frame=GCRF):
    v = math.sqrt(GM_EARTH / _R)
    ci, si = math.cos(inclination), math.sin(inclination)
    cu, su = math.cos(arg_lat), math.sin(arg_lat)
    return SpacecraftState(
        _T0,
        [_R * cu, _R * su * ci, _R * su * si],
        [-v * su, v * cu * ci, v * cu * si],
        frame=frame,
        masses=MassModel({"body": 800.0, "tank": 200.0}),
    )


def _period(a=_R):
    return 2.0 * math.pi * math.sqrt(a**3 / GM_EARTH)


def _propagator(state=None):
    integrator = DormandPrince54(AdaptiveConfig(abs_tol=1e-6, rel_tol=1e-11, max_step=300.0))
    propagator = NumericalPropagator(integrator, state if state is not None else _circular_state())
    propagator.add_force_model(NewtonianAttraction())
    return propagator


def _energy(state):
    return float(0.5 * jnp.dot(state.velocity, state.velocity)
                 - GM_EARTH / jnp.linalg.norm(state.position))


def _window_burn():
    return ConstantThrustManeuver(_T0.shifted_by(500.0), 1000.0, 20.0, 300.0, [1.0, 0.0, 0.0],
                                  "tank", lof_type=LOFType.TNW)


def _detector_burn():
    return ConstantThrustManeuver.from_detectors(
        DateDetector(_T0.shifted_by(500.0)), DateDetector(_T0.shifted_by(1500.0)),
        20.0, 300.0, [1.0, 0.0, 0.0], "tank", lof_type=LOFType.TNW,
    )


class _RecordingHandler(StepHandler):
    def __init__(self):
        self.steps = []

    def handle_step(self, interpolator, is_last):
        self.steps.append((interpolator.previous_date, interpolator.current_date, is_last))


class _GridHandler(FixedStepHandler):
    def __init__(self):
        self.states = []

    def handle_step(self, state, is_last):
        self.states.append((state, is_last))


# ──────────────────────────────────────────────
# Keplerian motion
# ──────────────────────────────────────────────


class TestKeplerian:
    def test_period_closure(self):
        """A circular orbit returns to its start after one period."""
        state0 = _circular_state()
        final = _propagator(state0).propagate(_T0.shifted_by(_period()))
        assert jnp.allclose(final.position, state0.position, atol=1.0)
        assert jnp.allclose(final.velocity, state0.velocity, atol=1e-3)

    def test_energy_conserved(self):
        """Specific orbital energy is conserved by the two-body motion."""
        state0 = _circular_state(inclination=0.9, arg_lat=0.4)
        final = _propagator(state0).propagate(_T0.shifted_by(4000.0))
        assert _energy(final) == pytest.approx(_energy(state0), rel=1e-9)

    def test_masses_untouched(self):
        """Without mass flow the masses are carried unchanged."""
        final = _propagator().propagate(_T0.shifted_by(600.0))
        assert float(final.get_mass("tank")) == 200.0
        assert float(final.total_mass) == 1000.0

    def test_retro_propagation(self):
        """Propagating back to the start date recovers the initial state."""
        state0 = _circular_state(inclination=0.5)
        propagator = _propagator(state0)
        propagator.propagate(_T0.shifted_by(3000.0))
        back = propagator.propagate(_T0)
        assert float(back.epoch.duration_from(_T0)) == pytest.approx(0.0, abs=1e-9)
        assert jnp.allclose(back.position, state0.position, atol=0.1)

    def test_initial_state_chains(self):
        """The final state becomes the initial state of the next call."""
        propagator = _propagator()
        final = propagator.propagate(_T0.shifted_by(100.0))
        assert propagator.initial_state is final

    def test_two_date_propagation(self):
        """``propagate(start, target)`` reaches the target through the start date."""
        direct = _propagator().propagate(_T0.shifted_by(1500.0))
        two_step = _propagator().propagate(_T0.shifted_by(500.0), _T0.shifted_by(1500.0))
        assert two_step.epoch == direct.epoch
        assert jnp.allclose(two_step.position, direct.position, atol=0.1)

    def test_fixed_step_rk4(self):
        """The classical Runge-Kutta integrator drives the same propagation."""
        state0 = _circular_state()
        propagator = NumericalPropagator(ClassicalRungeKutta(10.0), state0)
        propagator.add_force_model(NewtonianAttraction())
        final = propagator.propagate(_T0.shifted_by(_period()))
        assert jnp.allclose(final.position, state0.position, atol=1.0)


class TestSplitPropagation:
    def test_split_matches_single(self):
        """Two chained calls agree with one call over the same span."""
        single = _propagator().propagate(_T0.shifted_by(2000.0))
        propagator = _propagator()
        propagator.propagate(_T0.shifted_by(900.0))
        split = propagator.propagate(_T0.shifted_by(2000.0))
        assert jnp.allclose(split.position, single.position, atol=0.1)

    def test_split_inside_burn(self):
        """A propagation resumed mid-burn keeps firing until the window ends."""

        def run(stops):
            propagator = _propagator()
            propagator.add_force_model(_window_burn())
            for dt in stops:
                final = propagator.propagate(_T0.shifted_by(dt))
            return final

        single = run([2000.0])
        split = run([1000.0, 2000.0])
        assert jnp.allclose(split.position, single.position, atol=0.1)
        assert float(split.get_mass("tank")) == pytest.approx(float(single.get_mass("tank")),
                                                             abs=1e-7)

    def test_detector_driven_matches_date_window(self):
        """A burn switched by date detectors matches the same date-windowed burn."""
        windowed = _propagator()
        windowed.add_force_model(_window_burn())
        expected = windowed.propagate(_T0.shifted_by(2000.0))

        burn = _detector_burn()
        propagator = _propagator()
        propagator.add_force_model(burn)
        final = propagator.propagate(_T0.shifted_by(2000.0))

        assert not burn.firing
        assert jnp.allclose(final.position, expected.position, atol=0.1)
        assert float(final.get_mass("tank")) == pytest.approx(float(expected.get_mass("tank")),
                                                             abs=1e-7)

    def test_split_detector_driven_restart(self):
        """A new propagator resumes a detector-driven burn from the carried firing flag."""
        single = _propagator()
        single.add_force_model(_detector_burn())
        expected = single.propagate(_T0.shifted_by(2000.0))

        first = _propagator()
        burn = _detector_burn()
        first.add_force_model(burn)
        middle = first.propagate(_T0.shifted_by(1000.0))
        assert burn.firing

        resumed = _detector_burn()
        resumed.set_firing(burn.firing)
        second = _propagator(middle)
        second.add_force_model(resumed)
        split = second.propagate(_T0.shifted_by(2000.0))

        assert not resumed.firing
        assert jnp.allclose(split.position, expected.position, atol=0.1)
        assert float(split.get_mass("tank")) == pytest.approx(float(expected.get_mass("tank")),
                                                             abs=1e-7)

        # without the flag the start date is already past and the burn never restarts
        idle = _propagator(middle)
        idle.add_force_model(_detector_burn())
        coasted = idle.propagate(_T0.shifted_by(2000.0))
        assert float(coasted.get_mass("tank")) == pytest.approx(float(middle.get_mass("tank")),
                                                               abs=1e-12)


# ──────────────────────────────────────────────
# Output modes
# ──────────────────────────────────────────────


class TestOutputModes:
    def test_slave_by_default(self):
        """A new propagator returns the final state only."""
        assert _propagator().mode is PropagationMode.SLAVE

    def test_variable_step_handler(self):
        """Accepted steps are contiguous and cover the whole span."""
        handler = _RecordingHandler()
        propagator = _propagator()
        propagator.add_step_handler(handler)
        assert propagator.mode is PropagationMode.MASTER
        target = _T0.shifted_by(2000.0)
        propagator.propagate(target)

        assert handler.steps[0][0] == _T0
        assert handler.steps[-1][1] == target
        for (_, end, _), (start, _, _) in zip(handler.steps, handler.steps[1:]):
            assert start == end
        assert [last for _, _, last in handler.steps] == [False] * (len(handler.steps) - 1) + [True]

    def test_fixed_step_handler(self):
        """Grid states every 60 s, the last one flagged."""
        handler = _GridHandler()
        propagator = _propagator()
        propagator.set_master_mode(handler, 60.0)
        propagator.propagate(_T0.shifted_by(600.0))

        offsets = [float(s.epoch.duration_from(_T0)) for s, _ in handler.states]
        assert offsets == pytest.approx([60.0 * k for k in range(11)], abs=1e-6)
        assert [last for _, last in handler.states] == [False] * 10 + [True]

    def test_fixed_step_off_grid_end(self):
        """An off-grid final date is handed out last."""
        handler = _GridHandler()
        propagator = _propagator()
        propagator.set_master_mode(handler, 60.0)
        propagator.propagate(_T0.shifted_by(150.0))

        offsets = [float(s.epoch.duration_from(_T0)) for s, _ in handler.states]
        assert offsets == pytest.approx([0.0, 60.0, 120.0, 150.0], abs=1e-6)
        assert handler.states[-1][1] is True

    def test_invalid_fixed_step(self):
        """A zero grid step is rejected."""
        with pytest.raises(ConfigurationError):
            _propagator().set_master_mode(_GridHandler(), 0.0)

    def test_ephemeris(self):
        """The generated ephemeris matches a direct propagation."""
        state0 = _circular_state(inclination=0.3)
        propagator = _propagator(state0)
        propagator.set_ephemeris_mode()
        propagator.propagate(_T0.shifted_by(3000.0))
        ephemeris = propagator.get_generated_ephemeris()

        assert ephemeris.min_date == _T0
        assert ephemeris.max_date == _T0.shifted_by(3000.0)

        date = _T0.shifted_by(1234.5)
        direct = _propagator(state0).propagate(date)
        assert jnp.allclose(ephemeris.get_state(date).position, direct.position, atol=1.0)

    def test_ephemeris_out_of_range(self):
        """Dates outside the propagated span are rejected."""
        propagator = _propagator()
        propagator.set_ephemeris_mode()
        propagator.propagate(_T0.shifted_by(600.0))
        with pytest.raises(MissingDataError):
            propagator.get_generated_ephemeris().get_state(_T0.shifted_by(700.0))

    def test_no_ephemeris(self):
        """Asking for an ephemeris outside ephemeris mode is an error."""
        propagator = _propagator()
        propagator.propagate(_T0.shifted_by(60.0))
        with pytest.raises(ConfigurationError):
            propagator.get_generated_ephemeris()


# ──────────────────────────────────────────────
# Events
# ──────────────────────────────────────────────


class TestEvents:
    def test_date_stop(self):
        """A date detector stops the propagation at its date."""
        propagator = _propagator()
        propagator.add_event_detector(DateDetector(_T0.shifted_by(1000.0)))
        final = propagator.propagate(_T0.shifted_by(3000.0))
        assert float(final.epoch.duration_from(_T0)) == pytest.approx(1000.0, abs=1e-5)

    def test_nodes(self):
        """Descending then ascending node of an inclined circular orbit."""
        arg_lat = 0.5
        logger = EventsLogger()
        propagator = _propagator(_circular_state(inclination=0.8, arg_lat=arg_lat))
        propagator.add_event_detector(logger.monitor(
            NodeDetector(Action.CONTINUE, Action.CONTINUE, max_check=300.0)))
        propagator.propagate(_T0.shifted_by(_period()))

        n = 2.0 * math.pi / _period()
        events = logger.logged_events
        assert [e.increasing for e in events] == [False, True]
        assert float(events[0].root_date.duration_from(_T0)) == pytest.approx(
            (math.pi - arg_lat) / n, abs=1e-2)
        assert float(events[1].root_date.duration_from(_T0)) == pytest.approx(
            (2.0 * math.pi - arg_lat) / n, abs=1e-2)
        assert abs(float(events[1].state.position[2])) < 0.1

    def test_apsides(self):
        """Apoapsis half a period after periapsis, periapsis one period after."""
        a, r_p = 8.0e6, 7.0e6
        v_p = math.sqrt(GM_EARTH * (2.0 / r_p - 1.0 / a))
        state0 = SpacecraftState(_T0, [r_p, 0.0, 0.0], [0.0, v_p, 0.0],
                                 masses=MassModel({"body": 1000.0}))
        period = _period(a)

        propagator = _propagator(state0)
        propagator.propagate(_T0.shifted_by(100.0))
        logger = EventsLogger()
        propagator.add_event_detector(logger.monitor(
            ApsideDetector(Action.CONTINUE, Action.CONTINUE, max_check=300.0)))
        propagator.propagate(_T0.shifted_by(period + 100.0))

        events = logger.logged_events
        assert [e.increasing for e in events] == [False, True]
        assert float(events[0].root_date.duration_from(_T0)) == pytest.approx(period / 2.0, abs=1e-2)
        assert float(events[1].root_date.duration_from(_T0)) == pytest.approx(period, abs=1e-2)
        assert float(jnp.linalg.norm(events[0].state.position)) == pytest.approx(2 * a - r_p, rel=1e-8)


# ──────────────────────────────────────────────
# Maneuvers and perturbations
# ──────────────────────────────────────────────


class TestManeuvers:
    def test_burn_mass_flow(self):
        """A complete burn consumes thrust * duration / (isp * g0)."""
        propagator = _propagator()
        propagator.add_force_model(ConstantThrustManeuver(
            _T0.shifted_by(100.0), 300.0, 20.0, 300.0, [1.0, 0.0, 0.0], "tank",
            lof_type=LOFType.TNW,
        ))
        final = propagator.propagate(_T0.shifted_by(600.0))
        consumed = 20.0 * 300.0 / (300.0 * G0_STANDARD)
        assert float(final.get_mass("tank")) == pytest.approx(200.0 - consumed, rel=1e-8)
        assert float(final.get_mass("body")) == 800.0
        assert _energy(final) > _energy(_circular_state())

    def test_burn_across_window_edges_and_back(self):
        """Propagating across both window edges and back restores the initial state."""
        state0 = _circular_state()
        burn = ConstantThrustManeuver(_T0.shifted_by(100.0), 300.0, 20.0, 300.0,
                                      [1.0, 0.0, 0.0], "tank", lof_type=LOFType.TNW)
        propagator = _propagator(state0)
        propagator.add_force_model(burn)
        consumed = 20.0 * 300.0 / (300.0 * G0_STANDARD)

        after = propagator.propagate(_T0.shifted_by(600.0))
        assert float(after.get_mass("tank")) == pytest.approx(200.0 - consumed, rel=1e-8)

        back = propagator.propagate(_T0)
        assert float(back.get_mass("tank")) == pytest.approx(200.0, rel=1e-8)
        assert jnp.allclose(back.position, state0.position, atol=1.0)
        assert jnp.allclose(back.velocity, state0.velocity, atol=1e-3)
        # outside a propagation firing follows the date again
        assert not burn.is_active(back)

    def test_backward_burn_from_fresh_state(self):
        """A backward propagation over a past window refills the tank."""
        propagator = _propagator()
        propagator.add_force_model(ConstantThrustManeuver(
            _T0.shifted_by(-500.0), 300.0, 20.0, 300.0, [1.0, 0.0, 0.0], "tank",
            lof_type=LOFType.TNW,
        ))
        final = propagator.propagate(_T0.shifted_by(-600.0))
        consumed = 20.0 * 300.0 / (300.0 * G0_STANDARD)
        assert float(final.get_mass("tank")) == pytest.approx(200.0 + consumed, rel=1e-8)
        assert _energy(final) < _energy(_circular_state())

    def test_impulse(self):
        """An impulse changes velocity and follows the rocket equation."""
        state0 = _circular_state()
        propagator = _propagator(state0)
        propagator.add_event_detector(ImpulseManeuver(
            DateDetector(_T0.shifted_by(500.0)), [10.0, 0.0, 0.0], 300.0, "tank",
            lof_type=LOFType.TNW,
        ))
        final = propagator.propagate(_T0.shifted_by(1000.0))

        expected = 1000.0 * math.exp(-10.0 / (300.0 * G0_STANDARD))
        assert float(final.total_mass) == pytest.approx(expected, rel=1e-12)
        v_circ = math.sqrt(GM_EARTH / _R)
        assert _energy(final) == pytest.approx(0.5 * (v_circ + 10.0) ** 2 - GM_EARTH / _R, rel=1e-6)

    def test_impulse_retro_propagation(self):
        """Propagating back across an impulse undoes it."""
        state0 = _circular_state()
        propagator = _propagator(state0)
        propagator.add_event_detector(ImpulseManeuver(
            DateDetector(_T0.shifted_by(500.0)), [10.0, 0.0, 0.0], 300.0, "tank",
            lof_type=LOFType.TNW,
        ))
        propagator.propagate(_T0.shifted_by(1000.0))
        back = propagator.propagate(_T0)
        assert float(back.total_mass) == pytest.approx(1000.0, rel=1e-12)
        assert jnp.allclose(back.position, state0.position, atol=1e-1)

    def test_drag_decay(self):
        """Drag removes orbital energy."""
        r = 6.378e6 + 300e3
        v = math.sqrt(GM_EARTH / r)
        state0 = SpacecraftState(_T0, [r, 0.0, 0.0], [0.0, v, 0.0],
                                 masses=MassModel({"body": 100.0}))
        propagator = _propagator(state0)
        propagator.add_force_model(DragForce(ExponentialAtmosphere(), IsotropicSpacecraft(2.0)))
        final = propagator.propagate(_T0.shifted_by(3000.0))
        assert _energy(final) < _energy(state0)

    def test_attitude_provider(self):
        """States along the propagation carry the provider's attitude."""
        propagator = _propagator()
        propagator.attitude_provider = LofAttitude(LOFType.QSW)
        final = propagator.propagate(_T0.shifted_by(100.0))
        radial = final.get_attitude().body_to_frame(jnp.array([1.0, 0.0, 0.0]), GCRF, final.epoch)
        assert jnp.allclose(radial, final.position / jnp.linalg.norm(final.position), atol=1e-12)


# ──────────────────────────────────────────────
# Configuration errors
# ──────────────────────────────────────────────


class TestConfigurationErrors:
    def test_no_initial_state(self):
        """Propagating without an initial state is an error."""
        propagator = NumericalPropagator(DormandPrince54())
        with pytest.raises(ConfigurationError):
            propagator.propagate(_T0.shifted_by(10.0))

    def test_rotating_frame(self):
        """States in a rotating frame cannot be integrated."""
        propagator = _propagator(_circular_state(frame=ITRF))
        with pytest.raises(NotInertialFrameError):
            propagator.propagate(_T0.shifted_by(10.0))

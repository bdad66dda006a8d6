"""Tests for the orbitjax.events engine on plain ODEs.

The dynamics is a unit-rate clock ``s' = 1`` so that event dates are known
in closed form, and resets of ``s`` move the events of the detectors that
watch ``s``.

Tests cover:
- Pegasus root solver (convergence, side selection, failures)
- Detector settings validation
- Chronological ordering and registration-order tie breaking
- STOP, RESET_STATE cascades (cancelled, created and delayed events, including
  events due at the reset date, forward and backward)
- Slope selection forward and backward
- Removal after firing and events at the end of integration
- Root-finding failure
"""

import math

import jax.numpy as jnp
import pytest

from orbitjax.errors import ConfigurationError, RootFindingError
from orbitjax.events import (
    Action,
    AllowedSolution,
    DateDetector,
    EventManager,
    EventState,
    EventStatus,
    PegasusSolver,
    SlopeSelection,
)
from orbitjax.integrators import ClassicalRungeKutta, DormandPrince54


def _clock(t, y):
    return jnp.ones_like(y)


class _Handler:
    """Event handler on ``(t, y)`` recording its occurrences in a shared log."""

    def __init__(self, name, g, log, action=Action.CONTINUE, reset=None,
                 slope=SlopeSelection.BOTH, max_check=600.0, threshold=1e-9,
                 max_iterations=100, remove=False):
        self.name = name
        self._g = g
        self.log = log
        self.action = action
        self._reset = reset
        self.slope_selection = slope
        self.max_check = max_check
        self.threshold = threshold
        self.max_iterations = max_iterations
        self.remove = remove
        self.fired = False

    def init(self, t0, y0, t_end):
        self.fired = False

    def g(self, t, y):
        return self._g(t, y)

    def event_occurred(self, t, y, increasing, forward):
        self.log.append((self.name, t, increasing))
        self.fired = True
        return self.action

    def reset_state(self, t, y):
        return self._reset(y)

    def should_be_removed(self):
        return self.remove and self.fired

    def __repr__(self):
        return self.name


def _at_time(t_event):
    return lambda t, y: t - t_event


def _at_clock(s_event):
    return lambda t, y: float(y[0]) - s_event


def _names(log):
    return [name for name, _, _ in log]


def _dates(log):
    return {name: t for name, t, _ in log}


# ──────────────────────────────────────────────
# Root solver
# ──────────────────────────────────────────────


class TestPegasusSolver:
    def test_converges(self):
        """The root of x^2 - 2 is found to the absolute accuracy."""
        solver = PegasusSolver(1e-12)
        root = solver.solve(100, lambda x: x * x - 2.0, 0.0, 2.0)
        assert root == pytest.approx(math.sqrt(2.0), abs=1e-11)
        assert 2 < solver.evaluations < 100

    def test_exact_end_point(self):
        """A zero at a bracket end is returned directly."""
        assert PegasusSolver(1e-9).solve(10, lambda x: x - 1.0, 1.0, 3.0) == 1.0

    @pytest.mark.parametrize("allowed", [AllowedSolution.LEFT_SIDE, AllowedSolution.BELOW_SIDE])
    def test_left_or_below(self, allowed):
        """LEFT_SIDE and BELOW_SIDE of an increasing function stay below the root."""
        root = PegasusSolver(1e-6).solve(100, lambda x: math.exp(x) - 2.0, 0.0, 2.0, allowed)
        assert root <= math.log(2.0)
        assert root == pytest.approx(math.log(2.0), abs=1e-6)

    @pytest.mark.parametrize("allowed", [AllowedSolution.RIGHT_SIDE, AllowedSolution.ABOVE_SIDE])
    def test_right_or_above(self, allowed):
        """RIGHT_SIDE and ABOVE_SIDE of an increasing function stay above the root."""
        root = PegasusSolver(1e-6).solve(100, lambda x: math.exp(x) - 2.0, 0.0, 2.0, allowed)
        assert root >= math.log(2.0)
        assert root == pytest.approx(math.log(2.0), abs=1e-6)

    def test_no_bracket(self):
        """Same-sign end points are rejected."""
        with pytest.raises(ValueError):
            PegasusSolver(1e-9).solve(10, lambda x: x * x + 1.0, -1.0, 1.0)

    def test_budget_exhausted(self):
        """Running out of evaluations raises RootFindingError."""
        with pytest.raises(RootFindingError) as excinfo:
            PegasusSolver(1e-15).solve(3, lambda x: math.atan(x - 0.3), -10.0, 10.0)
        assert excinfo.value.iterations == 3


# ──────────────────────────────────────────────
# Detector settings
# ──────────────────────────────────────────────


class TestDetectorSettings:
    @pytest.mark.parametrize("kwargs", [
        {"max_check": 0.0},
        {"max_check": -10.0},
        {"threshold": 0.0},
        {"max_iterations": 0},
    ])
    def test_invalid(self, kwargs):
        """Non-positive detection settings are rejected at construction."""
        from orbitjax.epoch import Epoch

        with pytest.raises(ConfigurationError):
            DateDetector(Epoch(2024, 1, 1), **kwargs)

    def test_initial_status(self):
        """A fresh event state is idle with no pending event."""
        state = EventState(_Handler("a", _at_time(1.0), []))
        assert state.status is EventStatus.IDLE
        assert state.event_time == math.inf


# ──────────────────────────────────────────────
# Ordering and actions
# ──────────────────────────────────────────────


class TestOrdering:
    def test_no_crossing(self):
        """A switching function that never crosses zero produces no event."""
        log = []
        handler = _Handler("never", lambda t, y: 1.0 + t, log)
        ClassicalRungeKutta(1.0).integrate(_clock, 0.0, jnp.zeros(1), 10.0, [handler])
        assert log == []

    def test_chronological_within_step(self):
        """Two roots in one step are handled in date order, not registration order."""
        log = []
        late = _Handler("late", _at_time(5.6), log)
        early = _Handler("early", _at_time(5.3), log)
        ClassicalRungeKutta(1.0).integrate(_clock, 0.0, jnp.zeros(1), 10.0, [late, early])
        assert _names(log) == ["early", "late"]
        assert _dates(log)["early"] == pytest.approx(5.3, abs=1e-9)
        assert _dates(log)["late"] == pytest.approx(5.6, abs=1e-9)

    @pytest.mark.parametrize("order", [("a", "b"), ("b", "a")])
    def test_simultaneous_roots_follow_registration(self, order):
        """Roots closer than the threshold fire in registration order."""
        log = []
        handlers = [_Handler(name, _at_time(5.3), log) for name in order]
        ClassicalRungeKutta(1.0).integrate(_clock, 0.0, jnp.zeros(1), 10.0, handlers)
        assert _names(log) == list(order)

    def test_stop(self):
        """STOP ends the integration at the event date."""
        log = []
        handler = _Handler("stop", _at_time(3.7), log, action=Action.STOP)
        t, y = ClassicalRungeKutta(1.0).integrate(_clock, 0.0, jnp.zeros(1), 10.0, [handler])
        assert t == pytest.approx(3.7, abs=1e-9)
        assert float(y[0]) == pytest.approx(3.7, abs=1e-9)
        assert _names(log) == ["stop"]

    def test_stop_feeds_truncated_step(self):
        """Step handlers see the step cut at the stop date with is_last set."""
        seen = []

        class Recorder:
            def handle_step(self, interpolator, is_last):
                seen.append((interpolator.previous_time, interpolator.current_time, is_last))

        handler = _Handler("stop", _at_time(3.7), [], action=Action.STOP)
        ClassicalRungeKutta(1.0).integrate(_clock, 0.0, jnp.zeros(1), 10.0, [handler],
                                           [Recorder()])
        assert seen[-1][0] == 3.0
        assert seen[-1][1] == pytest.approx(3.7, abs=1e-9)
        assert seen[-1][2] is True

    def test_event_at_end_not_applied(self):
        """A root exactly at the target date is not handled."""
        log = []
        handler = _Handler("end", _at_time(10.0), log, action=Action.STOP)
        t, _ = ClassicalRungeKutta(1.0).integrate(_clock, 0.0, jnp.zeros(1), 10.0, [handler])
        assert t == 10.0
        assert log == []

    def test_removed_after_first_occurrence(self):
        """A detector asking for removal does not fire again."""
        log = []
        periodic = _Handler("periodic", lambda t, y: math.sin(math.pi * (t - 0.25)), log,
                            max_check=0.5, remove=True)
        ClassicalRungeKutta(0.5).integrate(_clock, 0.0, jnp.zeros(1), 4.0, [periodic])
        assert len(log) == 1
        assert log[0][1] == pytest.approx(0.25, abs=1e-6)

    def test_removal_logged(self, caplog):
        """Removing a detector is reported at WARNING level."""
        periodic = _Handler("periodic", lambda t, y: math.sin(math.pi * (t - 0.25)), [],
                            max_check=0.5, remove=True)
        with caplog.at_level("WARNING", logger="orbitjax.events.manager"):
            ClassicalRungeKutta(0.5).integrate(_clock, 0.0, jnp.zeros(1), 4.0, [periodic])
        assert any("removal" in record.getMessage() for record in caplog.records)

    def test_root_finding_failure(self):
        """An exhausted root solver budget aborts the integration."""
        handler = _Handler("slow", lambda t, y: math.atan(t - 2.3) ** 3, [],
                           threshold=1e-15, max_iterations=2)
        with pytest.raises(RootFindingError):
            ClassicalRungeKutta(1.0).integrate(_clock, 0.0, jnp.zeros(1), 5.0, [handler])


# ──────────────────────────────────────────────
# Reset cascades
# ──────────────────────────────────────────────


def _shift_clock(offset):
    return lambda y: y + offset


class TestResetCascades:
    def test_reset_state_applied(self):
        """RESET_STATE replaces the state at the event date."""
        log = []
        jump = _Handler("jump", _at_time(2.5), log, action=Action.RESET_STATE,
                        reset=_shift_clock(100.0))
        t, y = ClassicalRungeKutta(1.0).integrate(_clock, 0.0, jnp.zeros(1), 4.0, [jump])
        assert t == 4.0
        assert float(y[0]) == pytest.approx(104.0, abs=1e-9)

    def test_cancel(self):
        """A reset moving the clock back cancels a pending event of the same step."""
        log = []
        d1 = _Handler("D1", _at_time(5.3), log, action=Action.RESET_STATE,
                      reset=_shift_clock(-10.0))
        d2 = _Handler("D2", _at_clock(5.6), log)
        d3 = _Handler("D3", _at_time(7.0), log)
        ClassicalRungeKutta(1.0).integrate(_clock, 0.0, jnp.zeros(1), 10.0, [d1, d2, d3])
        assert _names(log) == ["D1", "D3"]

    def test_create(self):
        """A reset advancing the clock creates an event that had no root."""
        log = []
        d1 = _Handler("D1", _at_time(5.3), log, action=Action.RESET_STATE,
                      reset=_shift_clock(5.0))
        d2 = _Handler("D2", _at_clock(13.0), log)
        d3 = _Handler("D3", _at_time(7.0), log)
        ClassicalRungeKutta(1.0).integrate(_clock, 0.0, jnp.zeros(1), 10.0, [d1, d2, d3])
        assert _names(log) == ["D1", "D3", "D2"]
        assert _dates(log)["D2"] == pytest.approx(8.0, abs=1e-9)

    def test_delay_forward(self):
        """A reset inside the step delays a sibling root bracketed in that step."""
        log = []
        d1 = _Handler("D1", _at_time(5.3), log, action=Action.RESET_STATE,
                      reset=_shift_clock(-0.2))
        d2 = _Handler("D2", _at_clock(5.6), log)
        d3 = _Handler("D3", _at_time(7.0), log)
        ClassicalRungeKutta(1.0).integrate(_clock, 0.0, jnp.zeros(1), 10.0, [d1, d2, d3])
        assert _names(log) == ["D1", "D2", "D3"]
        assert _dates(log)["D2"] == pytest.approx(5.8, abs=1e-9)

    def test_delay_backward(self):
        """Propagating backward, the delayed root moves to an earlier date."""
        log = []
        d1 = _Handler("D1", _at_time(5.3), log, action=Action.RESET_STATE,
                      reset=_shift_clock(0.2))
        d2 = _Handler("D2", _at_clock(5.0), log)
        d3 = _Handler("D3", _at_time(7.0), log)
        ClassicalRungeKutta(1.0).integrate(_clock, 10.0, jnp.array([10.0]), 0.0, [d1, d2, d3])
        assert _names(log) == ["D3", "D1", "D2"]
        assert _dates(log)["D2"] == pytest.approx(4.8, abs=1e-9)

    def test_cancel_same_date(self):
        """A reset cancels a sibling event due at the reset date itself."""
        log = []
        d1 = _Handler("D1", _at_time(5.3), log, action=Action.RESET_STATE,
                      reset=_shift_clock(-10.0))
        d2 = _Handler("D2", _at_clock(5.3), log)
        d3 = _Handler("D3", _at_time(7.0), log)
        ClassicalRungeKutta(1.0).integrate(_clock, 0.0, jnp.zeros(1), 10.0, [d1, d2, d3])
        assert _names(log) == ["D1", "D3"]

    def test_delay_same_date_forward(self):
        """A reset delays a sibling event due at the reset date to a later date."""
        log = []
        d1 = _Handler("D1", _at_time(5.3), log, action=Action.RESET_STATE,
                      reset=_shift_clock(-0.2))
        d2 = _Handler("D2", _at_clock(5.3), log)
        d3 = _Handler("D3", _at_time(7.0), log)
        ClassicalRungeKutta(1.0).integrate(_clock, 0.0, jnp.zeros(1), 10.0, [d1, d2, d3])
        assert _names(log) == ["D1", "D2", "D3"]
        assert _dates(log)["D2"] == pytest.approx(5.5, abs=1e-9)

    def test_cancel_same_date_backward(self):
        """Propagating backward, a reset cancels a sibling event due at the reset date."""
        log = []
        d1 = _Handler("D1", _at_time(5.3), log, action=Action.RESET_STATE,
                      reset=_shift_clock(10.0))
        d2 = _Handler("D2", _at_clock(5.3), log)
        d3 = _Handler("D3", _at_time(7.0), log)
        ClassicalRungeKutta(1.0).integrate(_clock, 10.0, jnp.array([10.0]), 0.0, [d1, d2, d3])
        assert _names(log) == ["D3", "D1"]

    def test_delay_same_date_backward(self):
        """Propagating backward, a sibling event due at the reset date moves earlier."""
        log = []
        d1 = _Handler("D1", _at_time(5.3), log, action=Action.RESET_STATE,
                      reset=_shift_clock(0.2))
        d2 = _Handler("D2", _at_clock(5.3), log)
        d3 = _Handler("D3", _at_time(7.0), log)
        ClassicalRungeKutta(1.0).integrate(_clock, 10.0, jnp.array([10.0]), 0.0, [d1, d2, d3])
        assert _names(log) == ["D3", "D1", "D2"]
        assert _dates(log)["D2"] == pytest.approx(5.1, abs=1e-9)

    def test_stop_after_reset(self):
        """A STOP triggered by a reset ends the integration at the reset date."""
        log = []
        d1 = _Handler("D1", _at_time(2.5), log, action=Action.RESET_STATE,
                      reset=_shift_clock(10.0))
        guard = _Handler("guard", _at_clock(5.0), log, action=Action.STOP)
        t, y = ClassicalRungeKutta(1.0).integrate(_clock, 0.0, jnp.zeros(1), 10.0, [d1, guard])
        assert t == pytest.approx(2.5, abs=1e-9)
        assert float(y[0]) == pytest.approx(12.5, abs=1e-9)
        assert _names(log) == ["D1", "guard"]


# ──────────────────────────────────────────────
# Slope selection and direction
# ──────────────────────────────────────────────


def _wave(t, y):
    """Crosses zero upward at 0.3, 2.3 and downward at 1.3, 3.3."""
    return math.sin(math.pi * (t - 0.3))


class TestSlopeSelection:
    @pytest.mark.parametrize("slope, expected", [
        (SlopeSelection.BOTH, [0.3, 1.3, 2.3, 3.3]),
        (SlopeSelection.INCREASING, [0.3, 2.3]),
        (SlopeSelection.DECREASING, [1.3, 3.3]),
    ])
    def test_forward(self, slope, expected):
        """Only the selected crossings are reported, with their direction."""
        log = []
        handler = _Handler("wave", _wave, log, slope=slope, max_check=0.25)
        DormandPrince54().integrate(_clock, 0.0, jnp.zeros(1), 4.0, [handler])
        assert [t for _, t, _ in log] == pytest.approx(expected, abs=1e-6)
        for _, t, increasing in log:
            assert increasing == (round(t - 0.3) % 2 == 0)

    @pytest.mark.parametrize("slope, expected", [
        (SlopeSelection.BOTH, [3.3, 2.3, 1.3, 0.3]),
        (SlopeSelection.INCREASING, [2.3, 0.3]),
        (SlopeSelection.DECREASING, [3.3, 1.3]),
    ])
    def test_backward(self, slope, expected):
        """Slope selection refers to time, whatever the integration direction."""
        log = []
        handler = _Handler("wave", _wave, log, slope=slope, max_check=0.25)
        DormandPrince54().integrate(_clock, 4.0, jnp.array([4.0]), 0.0, [handler])
        assert [t for _, t, _ in log] == pytest.approx(expected, abs=1e-6)
        for _, t, increasing in log:
            assert increasing == (round(t - 0.3) % 2 == 0)

    def test_forward_backward_same_events(self):
        """Retro-propagation reproduces the forward events in reverse order."""
        forward_log, backward_log = [], []
        ClassicalRungeKutta(0.8).integrate(
            _clock, 0.0, jnp.zeros(1), 4.0,
            [_Handler("wave", _wave, forward_log, max_check=0.2)],
        )
        ClassicalRungeKutta(0.8).integrate(
            _clock, 4.0, jnp.array([4.0]), 0.0,
            [_Handler("wave", _wave, backward_log, max_check=0.2)],
        )
        assert [t for _, t, _ in backward_log] == pytest.approx(
            [t for _, t, _ in reversed(forward_log)], abs=1e-6
        )
        assert [inc for _, _, inc in backward_log] == [inc for _, _, inc in reversed(forward_log)]


class TestEventManager:
    def test_states_follow_registration(self):
        """The manager keeps one event state per handler, in order."""
        handlers = [_Handler(name, _at_time(1.0), []) for name in "abc"]
        manager = EventManager(handlers)
        assert [s.handler.name for s in manager.states] == ["a", "b", "c"]

    def test_init_forwards_to_handlers(self):
        """init() reaches every handler."""
        handler = _Handler("a", _at_time(1.0), [])
        handler.fired = True
        EventManager([handler]).init(0.0, jnp.zeros(1), 1.0)
        assert handler.fired is False

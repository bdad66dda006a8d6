# /// script
# requires-python = ">=3.10"
# dependencies = ["typer>=0.9.0", "orbitjax"]
#
# [tool.uv.sources]
# orbitjax = { path = ".." }
# ///
"""Propagate a LEO spacecraft through an orbit-raising burn.

Builds a perturbed force model (central gravity, Sun and Moon, drag, solar
radiation pressure), adds a tangential constant-thrust burn and an impulse
at every apogee, then propagates with the Dormand-Prince 5(4) integrator while
logging apsides, nodes and eclipse transitions.

Usage:
    uv run examples/propagate_maneuver.py [OPTIONS]

Examples:
    # Default scenario: 10 min burn at 400 N, 10 m/s impulse at each apogee
    uv run examples/propagate_maneuver.py

    # Longer propagation, tighter tolerances, fixed-step output every 5 min
    uv run examples/propagate_maneuver.py --duration 0.5 --rel-tol 1e-12 --output-step 300
"""

import logging
import math
import time
from typing import Annotated

import jax.numpy as jnp
import typer

from orbitjax.constants import GM_EARTH, R_EARTH
from orbitjax.epoch import Epoch
from orbitjax.bodies import Moon, Sun
from orbitjax.events import Action, ApsideDetector, EclipseDetector, EventsLogger, NodeDetector
from orbitjax.forces import (
    ConstantThrustManeuver,
    DragForce,
    ExponentialAtmosphere,
    ImpulseManeuver,
    IsotropicSpacecraft,
    NewtonianAttraction,
    SolarRadiationPressure,
    ThirdBodyAttraction,
)
from orbitjax.frames import LOFType
from orbitjax.integrators import AdaptiveConfig, DormandPrince54
from orbitjax.propagation import FixedStepHandler, NumericalPropagator
from orbitjax.state import MassModel, SpacecraftState


class AltitudePrinter(FixedStepHandler):
    """Prints altitude and propellant on a regular grid."""

    def handle_step(self, state, is_last):
        altitude = (float(jnp.linalg.norm(state.position)) - R_EARTH) / 1e3
        tank = float(state.get_mass("tank"))
        marker = "  (final)" if is_last else ""
        print(f"  {state.epoch}  alt={altitude:8.2f} km  tank={tank:7.3f} kg{marker}")


def main(
    altitude: Annotated[float, typer.Option(help="Initial circular altitude [km]")] = 400.0,
    inclination: Annotated[float, typer.Option(help="Inclination [deg]")] = 51.6,
    duration: Annotated[float, typer.Option(help="Propagation duration [days]")] = 0.1,
    thrust: Annotated[float, typer.Option(help="Burn thrust [N]")] = 400.0,
    burn_duration: Annotated[float, typer.Option(help="Burn duration [s]")] = 600.0,
    impulse: Annotated[float, typer.Option(help="Impulse at each apogee [m/s]")] = 10.0,
    isp: Annotated[float, typer.Option(help="Specific impulse [s]")] = 300.0,
    rel_tol: Annotated[float, typer.Option(help="Integrator relative tolerance")] = 1e-10,
    output_step: Annotated[float, typer.Option(help="Output grid spacing [s]")] = 900.0,
    verbose: Annotated[bool, typer.Option(help="Log propagation progress")] = False,
):
    if verbose:
        logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")

    # ── Initial state ───────────────────────────────────────────────────
    epoch0 = Epoch(2024, 3, 20, 12, 0, 0.0)
    r = R_EARTH + altitude * 1e3
    v = math.sqrt(GM_EARTH / r)
    inc = math.radians(inclination)
    # start past the ascending node, with a small radial velocity so that the
    # node and apside functions do not start at zero
    u = 0.2
    r_hat = jnp.array([math.cos(u), math.sin(u) * math.cos(inc), math.sin(u) * math.sin(inc)])
    t_hat = jnp.array([-math.sin(u), math.cos(u) * math.cos(inc), math.cos(u) * math.sin(inc)])
    state0 = SpacecraftState(
        epoch0,
        r * r_hat,
        v * t_hat + 20.0 * r_hat,
        masses=MassModel({"dry": 900.0, "tank": 300.0}),
    )
    print(f"Initial state at {epoch0}: r={r / 1e3:.1f} km, v={v / 1e3:.3f} km/s")

    # ── Force model ─────────────────────────────────────────────────────
    sun = Sun()
    spacecraft = IsotropicSpacecraft(area=4.0, cd=2.2, cr=1.3)
    integrator = DormandPrince54(AdaptiveConfig(abs_tol=1e-3, rel_tol=rel_tol, max_step=300.0))
    propagator = NumericalPropagator(integrator, state0)
    propagator.add_force_model(NewtonianAttraction())
    propagator.add_force_model(ThirdBodyAttraction(sun))
    propagator.add_force_model(ThirdBodyAttraction(Moon()))
    propagator.add_force_model(DragForce(ExponentialAtmosphere(), spacecraft))
    propagator.add_force_model(SolarRadiationPressure(sun, spacecraft))

    burn = ConstantThrustManeuver(epoch0.shifted_by(1200.0), burn_duration, thrust, isp,
                                  [1.0, 0.0, 0.0], "tank", lof_type=LOFType.TNW)
    propagator.add_force_model(burn)

    # ── Events ──────────────────────────────────────────────────────────
    events = EventsLogger()
    propagator.add_event_detector(events.monitor(ApsideDetector(Action.CONTINUE, Action.CONTINUE)))
    propagator.add_event_detector(events.monitor(NodeDetector(Action.CONTINUE, Action.CONTINUE)))
    propagator.add_event_detector(events.monitor(EclipseDetector(sun, action_exit=Action.CONTINUE)))

    apogee = ApsideDetector(Action.CONTINUE, Action.STOP)
    propagator.add_event_detector(ImpulseManeuver(apogee, [impulse, 0.0, 0.0], isp, "tank",
                                                  lof_type=LOFType.TNW))

    # ── Propagation ─────────────────────────────────────────────────────
    propagator.set_master_mode(AltitudePrinter(), output_step)
    target = epoch0.shifted_by(duration * 86400.0)
    print(f"\nPropagating to {target}")
    t0 = time.perf_counter()
    final = propagator.propagate(target)
    elapsed = time.perf_counter() - t0

    print(f"\nPropagation took {elapsed:.1f}s ({integrator.evaluations} evaluations)")
    print(f"Propellant used: {300.0 - float(final.get_mass('tank')):.3f} kg")

    print("\nLogged events:")
    for event in events.logged_events:
        kind = type(event.detector).__name__.replace("Detector", "")
        direction = "increasing" if event.increasing else "decreasing"
        altitude_km = (float(jnp.linalg.norm(event.state.position)) - R_EARTH) / 1e3
        print(f"  {event.root_date}  {kind:<8} {direction:<10}  alt={altitude_km:8.2f} km")


if __name__ == "__main__":
    typer.run(main)

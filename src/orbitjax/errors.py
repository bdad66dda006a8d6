"""Exception hierarchy for orbitjax.

Errors are split into two families so that callers can tell "bad input"
from "numerical failure":

- :class:`InputError` and its subclasses flag conditions the caller can fix
  (invalid configuration, unsupported parameter, wrong frame, missing mass
  part or attitude).  They are raised at the point of use.
- :class:`NumericalError` and its subclasses flag failures of the numerical
  machinery (step size collapse, repeated step rejection, root finding that
  does not converge).
  They abort the running propagation; no partial result is returned.
"""

from __future__ import annotations


class OrbitJaxError(Exception):
    """Base class of every error raised by orbitjax."""


class InputError(OrbitJaxError):
    """An error caused by the caller's input, fixable by the caller."""


class ConfigurationError(InputError, ValueError):
    """Invalid constructor argument (non-positive threshold, negative area, ...)."""


class UnsupportedParameterError(InputError, KeyError):
    """A partial derivative was requested for a parameter the model does not own.

    Attributes:
        parameter: The offending parameter.
    """

    def __init__(self, parameter, model=None) -> None:
        self.parameter = parameter
        self.model = model
        owner = f" by {type(model).__name__}" if model is not None else ""
        super().__init__(f"unknown parameter {parameter!r}: not supported{owner}")

    def __str__(self) -> str:
        # KeyError quotes its message otherwise
        return self.args[0]


class NotInertialFrameError(InputError):
    """A pseudo-inertial frame was required but another frame was supplied.

    Attributes:
        frame: The non-inertial frame.
    """

    def __init__(self, frame) -> None:
        self.frame = frame
        super().__init__(f"frame {getattr(frame, 'name', frame)} is not a pseudo-inertial frame")


class MissingDataError(InputError, LookupError):
    """A piece of state data needed by a model is absent."""


class MissingMassPartError(MissingDataError, KeyError):
    """The named mass part does not exist in the state's mass model.

    Attributes:
        part_name: Name of the requested part.
    """

    def __init__(self, part_name: str) -> None:
        self.part_name = part_name
        super().__init__(f"mass part '{part_name}' not found")

    def __str__(self) -> str:
        return self.args[0]


class MissingAttitudeError(MissingDataError):
    """A model needs the spacecraft attitude but the state carries none."""


class NumericalError(OrbitJaxError, RuntimeError):
    """A numerical method failed; propagation cannot continue."""


class StepSizeUnderflowError(NumericalError):
    """The adaptive step size collapsed below the configured minimum.

    Attributes:
        t: Integration time at which the failure occurred [s].
        step: Step size that would have been required [s].
        min_step: Configured minimum step size [s].
    """

    def __init__(self, t: float, step: float, min_step: float) -> None:
        self.t = t
        self.step = step
        self.min_step = min_step
        super().__init__(
            f"minimal step size ({min_step:.3e} s) reached at t={t:.6f} s, "
            f"required step is {abs(step):.3e} s"
        )


class StepAttemptsExceededError(NumericalError):
    """A single step was rejected more times than the configured limit.

    Attributes:
        t: Integration time at which the failure occurred [s].
        step: Last step size tried [s].
        attempts: Number of rejected attempts.
    """

    def __init__(self, t: float, step: float, attempts: int) -> None:
        self.t = t
        self.step = step
        self.attempts = attempts
        super().__init__(
            f"step at t={t:.6f} s rejected {attempts} times, "
            f"last step tried is {abs(step):.3e} s"
        )


class RootFindingError(NumericalError):
    """The event root solver exhausted its iteration budget.

    Attributes:
        iterations: Maximum number of evaluations allowed.
    """

    def __init__(self, iterations: int, lower: float, upper: float) -> None:
        self.iterations = iterations
        self.lower = lower
        self.upper = upper
        super().__init__(
            f"root not resolved in [{lower:.9f}, {upper:.9f}] after {iterations} evaluations"
        )

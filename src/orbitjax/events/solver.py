"""Bracketing secant root solver (Pegasus variant of regula falsi).

Events are located by solving ``g(t) = 0`` on a bracket ``[lower, upper]``
where ``g`` changes sign.  The Pegasus modification rescales the retained
end-point value when the same end point is kept twice, which restores
super-linear convergence where plain regula falsi stalls.  The solver can
be asked for a root on a given side of the exact zero, which lets event
handling guarantee that ``g`` has already changed sign at the returned
date.

References:
    1. M. Dowell and P. Jarratt, "The Pegasus method for computing the root
       of an equation", BIT Numerical Mathematics 12, 1972, pp. 503-508.
"""

from __future__ import annotations

import enum
from collections.abc import Callable

from orbitjax.errors import RootFindingError

DEFAULT_RELATIVE_ACCURACY = 1.0e-14
DEFAULT_FUNCTION_ACCURACY = 1.0e-15


class AllowedSolution(enum.Enum):
    """Which approximation of the root the solver may return.

    - ``ANY``: whichever is closest,
    - ``LEFT_SIDE`` / ``RIGHT_SIDE``: a point ``x <= root`` / ``x >= root``,
    - ``BELOW_SIDE`` / ``ABOVE_SIDE``: a point where ``f(x) <= 0`` /
      ``f(x) >= 0``.
    """

    ANY = "any"
    LEFT_SIDE = "left"
    RIGHT_SIDE = "right"
    BELOW_SIDE = "below"
    ABOVE_SIDE = "above"


class PegasusSolver:
    """Pegasus bracketing root solver.

    Args:
        absolute_accuracy: Convergence threshold on the bracket width.
        relative_accuracy: Relative convergence threshold.
        function_accuracy: Values of ``|f|`` below this count as zero.
    """

    def __init__(
        self,
        absolute_accuracy: float,
        relative_accuracy: float = DEFAULT_RELATIVE_ACCURACY,
        function_accuracy: float = DEFAULT_FUNCTION_ACCURACY,
    ) -> None:
        self.absolute_accuracy = absolute_accuracy
        self.relative_accuracy = relative_accuracy
        self.function_accuracy = function_accuracy
        self.evaluations = 0

    def solve(
        self,
        max_evaluations: int,
        f: Callable[[float], float],
        lower: float,
        upper: float,
        allowed: AllowedSolution = AllowedSolution.ANY,
    ) -> float:
        """Find a root of ``f`` in ``[lower, upper]``.

        Args:
            max_evaluations: Evaluation budget.
            f: Scalar function; ``f(lower)`` and ``f(upper)`` must have
                opposite signs (or one of them be zero).
            lower: Lower bound of the bracket.
            upper: Upper bound of the bracket.
            allowed: Side of the root the result must lie on.

        Returns:
            float: The root approximation.

        Raises:
            ValueError: If the interval does not bracket a root.
            RootFindingError: If the budget is exhausted.
        """
        self.evaluations = 0

        def evaluate(x):
            if self.evaluations >= max_evaluations:
                raise RootFindingError(max_evaluations, lower, upper)
            self.evaluations += 1
            return f(x)

        x0, x1 = lower, upper
        f0 = evaluate(x0)
        if f0 == 0.0:
            return x0
        f1 = evaluate(x1)
        if f1 == 0.0:
            return x1
        if f0 * f1 > 0.0:
            raise ValueError(f"interval [{lower}, {upper}] does not bracket a root "
                             f"(f values {f0}, {f1})")

        inverted = False
        while True:
            x = x1 - f1 * (x1 - x0) / (f1 - f0)
            fx = evaluate(x)
            if fx == 0.0:
                return x

            if f1 * fx < 0.0:
                # the root is between x1 and x: x1 becomes the retained end
                x0, f0 = x1, f1
                inverted = not inverted
            else:
                f0 *= f1 / (f1 + fx)
            x1, f1 = x, fx

            if abs(f1) <= self.function_accuracy:
                if allowed is AllowedSolution.ANY:
                    return x1
                if allowed is AllowedSolution.LEFT_SIDE and inverted:
                    return x1
                if allowed is AllowedSolution.RIGHT_SIDE and not inverted:
                    return x1
                if allowed is AllowedSolution.BELOW_SIDE and f1 <= 0.0:
                    return x1
                if allowed is AllowedSolution.ABOVE_SIDE and f1 >= 0.0:
                    return x1

            if abs(x1 - x0) < max(self.relative_accuracy * abs(x1), self.absolute_accuracy):
                if allowed is AllowedSolution.ANY:
                    return x1
                if allowed is AllowedSolution.LEFT_SIDE:
                    return x1 if inverted else x0
                if allowed is AllowedSolution.RIGHT_SIDE:
                    return x0 if inverted else x1
                if allowed is AllowedSolution.BELOW_SIDE:
                    return x1 if f1 <= 0.0 else x0
                return x1 if f1 >= 0.0 else x0

"""Named scalar parameters with identity.

A :class:`Parameter` is the key used for partial-derivative bookkeeping:
force models own parameters, and sensitivity tooling indexes Jacobian
columns by them.  Identity is carried by an integer handle drawn from a
counter, so two parameters with the same name and value are still
distinct, and a single parameter may be shared between several models.
"""

from __future__ import annotations

import itertools
from collections.abc import Iterable

_HANDLES = itertools.count()


class Parameter:
    """Named mutable scalar with identity-based equality.

    Args:
        name: Human readable name (not required to be unique).
        value: Initial value.

    Examples:
        ```python
        cd = Parameter("C_D", 2.2)
        other = Parameter("C_D", 2.2)
        cd == other   # False: distinct handles
        cd.value = 2.3
        ```
    """

    __slots__ = ("name", "_value", "_handle")

    def __init__(self, name: str, value: float) -> None:
        self.name = name
        self._value = float(value)
        self._handle = next(_HANDLES)

    @property
    def handle(self) -> int:
        """Unique integer identifying this parameter."""
        return self._handle

    @property
    def value(self) -> float:
        return self._value

    @value.setter
    def value(self, value: float) -> None:
        self._value = float(value)

    def __eq__(self, other):
        if not isinstance(other, Parameter):
            return NotImplemented
        return self._handle == other._handle

    def __hash__(self):
        return hash(self._handle)

    def __repr__(self):
        return f"Parameter({self.name!r}, {self._value!r}, handle={self._handle})"


def as_parameter(name: str, value: Parameter | float) -> Parameter:
    """Wrap a plain number into a new :class:`Parameter`; pass parameters through."""
    if isinstance(value, Parameter):
        return value
    return Parameter(name, value)


def unique_parameters(groups: Iterable[Iterable[Parameter]]) -> list[Parameter]:
    """Union of parameter collections, deduplicated by identity.

    Order follows first registration, so the result can index Jacobian
    columns deterministically.

    Args:
        groups: Iterable of parameter collections (one per model).

    Returns:
        list[Parameter]: Distinct parameters in first-seen order.
    """
    seen: set[int] = set()
    result: list[Parameter] = []
    for group in groups:
        for param in group:
            if param.handle not in seen:
                seen.add(param.handle)
                result.append(param)
    return result

"""The epoch module provides the ``Epoch`` class for representing instants in time.

An Epoch is stored as an integer Julian Day number, the seconds elapsed
within that day and a Kahan summation compensator.  The compensator tracks
the rounding error of repeated shifts (e.g. an integrator stepping through
thousands of steps), keeping the accumulated error at O(1) machine epsilon
instead of O(N).

Epochs are the absolute time model of the propagator:

- ``shifted_by(dt)`` (or ``epoch + dt``) returns a new epoch,
- ``duration_from(other)`` (or ``epoch - other``) returns seconds,
- comparisons form a total order in which two epochs are equal when their
  separation is below :func:`~orbitjax.config.get_epoch_eq_tolerance`.

The class is registered as a JAX pytree, so epochs can be carried through
``jax.jit``/``jax.tree_util`` utilities alongside state arrays.
"""

from __future__ import annotations

import math
import re

import jax
import jax.numpy as jnp

from .config import get_dtype, get_epoch_eq_tolerance
from .constants import JD_J2000, JD_MJD_OFFSET, SECONDS_PER_DAY
from .time import caldate_to_jd, jd_to_caldate

# Valid ISO 8601 epoch string patterns
_EPOCH_PATTERNS = [
    # YYYY-MM-DD
    re.compile(r'^(\d{4})-(\d{2})-(\d{2})$'),
    # YYYY-MM-DDTHH:MM:SSZ
    re.compile(r'^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})Z$'),
    # YYYY-MM-DDTHH:MM:SS.fffZ
    re.compile(r'^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})\.(\d+)Z$'),
]


class Epoch:
    """Represents a single instant in time with compensated arithmetic.

    The internal representation uses three private components:
        ``_jd`` (jnp.int32), ``_seconds`` and ``_kahan_c`` (both in the
        configured float dtype).

    Constructors:
        Epoch(2018, 1, 1)
        Epoch(2018, 1, 1, 12, 0, 0.0)
        Epoch("2018-01-01T12:00:00Z")
        Epoch(other_epoch)
        Epoch.from_mjd(58119.5)
    """

    __slots__ = ('_jd', '_seconds', '_kahan_c')

    def __init__(self, *args: int | float | str | Epoch) -> None:
        """Initialize Epoch. Supports multiple constructor forms.

        Args:
            *args: Either (year, month, day[, hour, minute, second]),
                a string in ISO 8601 format, or another Epoch instance.

        Raises:
            ValueError: If the arguments match none of the supported forms.
        """
        if len(args) == 1:
            if isinstance(args[0], str):
                self._init_string(args[0])
            elif isinstance(args[0], Epoch):
                self._jd = args[0]._jd
                self._seconds = args[0]._seconds
                self._kahan_c = args[0]._kahan_c
            else:
                raise ValueError(f"Cannot construct Epoch from {type(args[0])}")
        elif 3 <= len(args) <= 6:
            self._init_date(*args)
        else:
            raise ValueError(
                "Epoch requires date components (3-6 args), a string, or an Epoch"
            )

    @classmethod
    def _from_internal(cls, jd, seconds, kahan_c) -> Epoch:
        """Create an Epoch from raw arrays without normalization."""
        obj = object.__new__(cls)
        obj._jd = jd
        obj._seconds = seconds
        obj._kahan_c = kahan_c
        return obj

    @classmethod
    def from_mjd(cls, mjd: float) -> Epoch:
        """Create an Epoch from a Modified Julian Date.

        Args:
            mjd: Modified Julian Date.

        Returns:
            Epoch: The corresponding instant.
        """
        jd_full = float(mjd) + JD_MJD_OFFSET
        jd_int = int(math.floor(jd_full))
        return cls._normalized(jd_int, (jd_full - jd_int) * SECONDS_PER_DAY)

    @classmethod
    def _normalized(cls, jd_int: int, seconds: float) -> Epoch:
        _float = get_dtype()
        day_offset = int(math.floor(seconds / SECONDS_PER_DAY))
        return cls._from_internal(
            jnp.int32(jd_int + day_offset),
            _float(seconds - day_offset * SECONDS_PER_DAY),
            _float(0.0),
        )

    def _init_date(self, year, month, day, hour=0, minute=0, second=0.0):
        jd_full = caldate_to_jd(year, month, day)
        jd_int = int(math.floor(jd_full))
        seconds = ((jd_full - jd_int) * SECONDS_PER_DAY
                   + hour * 3600.0 + minute * 60.0 + second)
        other = Epoch._normalized(jd_int, seconds)
        self._jd = other._jd
        self._seconds = other._seconds
        self._kahan_c = other._kahan_c

    def _init_string(self, string):
        for pattern in _EPOCH_PATTERNS:
            m = pattern.match(string)
            if m:
                groups = m.groups()
                hour, minute, second = 0, 0, 0.0
                if len(groups) >= 6:
                    hour = int(groups[3])
                    minute = int(groups[4])
                    second = float(groups[5])
                if len(groups) == 7:
                    second += float(f"0.{groups[6]}")
                self._init_date(int(groups[0]), int(groups[1]), int(groups[2]),
                                hour, minute, second)
                return

        raise ValueError(
            f'Invalid Epoch string: "{string}" is not ISO 8601 compliant'
        )

    def _compensated_seconds(self):
        return self._seconds - self._kahan_c

    # Arithmetic

    def shifted_by(self, dt: float) -> Epoch:
        """Return a new Epoch shifted by ``dt`` seconds.

        The addition uses Kahan compensated summation so that long chains
        of small shifts do not accumulate rounding error.

        Args:
            dt: Shift in seconds; negative values move back in time.

        Returns:
            Epoch: The shifted instant.

        Examples:
            ```python
            epc = Epoch(2024, 1, 1)
            later = epc.shifted_by(90.0)
            float(later.duration_from(epc))  # 90.0
            ```
        """
        _float = get_dtype()
        y = _float(dt) - self._kahan_c
        t = self._seconds + y
        new_kahan_c = (t - self._seconds) - y

        day_offset = jnp.int32(jnp.floor(t / SECONDS_PER_DAY))
        new_seconds = t - _float(day_offset) * _float(SECONDS_PER_DAY)

        return Epoch._from_internal(self._jd + day_offset, new_seconds, new_kahan_c)

    def duration_from(self, other: Epoch) -> jax.Array:
        """Return the signed duration ``self - other`` in seconds.

        Args:
            other: Reference epoch.

        Returns:
            jax.Array: Scalar number of seconds, positive if ``self`` is
                later than ``other``.
        """
        _float = get_dtype()
        return (_float(self._jd - other._jd) * _float(SECONDS_PER_DAY)
                + (self._compensated_seconds() - other._compensated_seconds()))

    def __add__(self, dt: float) -> Epoch:
        return self.shifted_by(dt)

    def __sub__(self, other: Epoch | float) -> Epoch | jax.Array:
        """Subtract seconds or compute the difference between Epochs.

        Args:
            other: If Epoch, returns the time difference in seconds.
                If numeric, returns a new Epoch with seconds subtracted.

        Returns:
            float or Epoch: Time difference in seconds, or new Epoch.
        """
        if isinstance(other, Epoch):
            return self.duration_from(other)
        return self.shifted_by(-other)

    # Comparison operators (tolerance-aware total order)

    def _offset(self, other):
        if not isinstance(other, Epoch):
            return None
        return float(self.duration_from(other))

    def __eq__(self, other):
        d = self._offset(other)
        if d is None:
            return NotImplemented
        return abs(d) < get_epoch_eq_tolerance()

    def __ne__(self, other):
        d = self._offset(other)
        if d is None:
            return NotImplemented
        return abs(d) >= get_epoch_eq_tolerance()

    def __lt__(self, other):
        d = self._offset(other)
        if d is None:
            return NotImplemented
        return d <= -get_epoch_eq_tolerance()

    def __le__(self, other):
        d = self._offset(other)
        if d is None:
            return NotImplemented
        return d < get_epoch_eq_tolerance()

    def __gt__(self, other):
        d = self._offset(other)
        if d is None:
            return NotImplemented
        return d >= get_epoch_eq_tolerance()

    def __ge__(self, other):
        d = self._offset(other)
        if d is None:
            return NotImplemented
        return d > -get_epoch_eq_tolerance()

    # Time properties

    def caldate(self) -> tuple[int, int, int, int, int, float]:
        """Return the calendar date components.

        Not traceable under ``jax.jit``; call on concrete epochs only.

        Returns:
            tuple: (year, month, day, hour, minute, second) where second
                includes fractional part.
        """
        comp_seconds = float(self._compensated_seconds())
        year, month, day, _, _, _ = jd_to_caldate(int(self._jd) + comp_seconds / SECONDS_PER_DAY)

        # JD day starts at noon
        civil_time = (comp_seconds + 43200.0) % SECONDS_PER_DAY
        hour = int(civil_time // 3600)
        civil_time -= hour * 3600
        minute = int(civil_time // 60)
        second = civil_time - minute * 60

        return year, month, day, hour, minute, second

    def jd(self) -> jax.Array:
        """Return the Julian Date as a single float (lossy below ~10 us)."""
        _float = get_dtype()
        return _float(self._jd) + self._compensated_seconds() / _float(SECONDS_PER_DAY)

    def mjd(self) -> jax.Array:
        """Return the Modified Julian Date as a single float."""
        return self.jd() - get_dtype()(JD_MJD_OFFSET)

    def julian_centuries(self) -> jax.Array:
        """Return Julian centuries elapsed since J2000.0.

        Computed from the split representation to avoid the precision loss
        of a single-float Julian Date.
        """
        _float = get_dtype()
        days = _float(self._jd - jnp.int32(JD_J2000))
        frac_day = self._compensated_seconds() / _float(SECONDS_PER_DAY)
        return (days + frac_day) / _float(36525.0)

    def gmst(self, use_degrees: bool = False) -> jax.Array:
        """Compute Greenwich Mean Sidereal Time using the IAU 1982 model.

        Uses the Vallado GMST82 polynomial and assumes UTC approximates UT1.

        Args:
            use_degrees (bool): If True, return in degrees. Default: False
                (radians).

        Returns:
            jax.Array: Greenwich Mean Sidereal Time in [0, 2pi). Units: rad
                (or deg if use_degrees=True)

        References:

            1. D. Vallado, *Fundamentals of Astrodynamics and Applications
               (4th Ed.)*, 2010.
        """
        _float = get_dtype()
        t_ut1 = self.julian_centuries()

        gmst_sec = (_float(67310.54841)
                    + _float(876600.0 * 3600.0 + 8640184.812866) * t_ut1
                    + _float(0.093104) * t_ut1 * t_ut1
                    - _float(6.2e-6) * t_ut1 * t_ut1 * t_ut1)

        # 1 second of time = 1/240 degree
        gmst_rad = jnp.mod(jnp.deg2rad(gmst_sec / _float(240.0)), _float(2.0 * jnp.pi))

        return jnp.where(use_degrees, jnp.rad2deg(gmst_rad), gmst_rad)

    # String representations

    def __str__(self):
        year, month, day, hour, minute, second = self.caldate()
        return (f'{year:04d}-{month:02d}-{day:02d}T'
                f'{hour:02d}:{minute:02d}:{second:06.3f}Z')

    def __repr__(self):
        return f'Epoch({self})'

    def __hash__(self):
        """Hash of the Julian Day number only.

        Epochs equal within the tolerance fall on the same Julian Day except
        when they straddle its noon boundary, the one case where equal
        epochs may hash differently.
        """
        return hash(int(self._jd))


# Register Epoch as a JAX pytree so it can travel through tree utilities and jit.
jax.tree_util.register_pytree_node(
    Epoch,
    lambda e: ((e._jd, e._seconds, e._kahan_c), None),
    lambda _, children: Epoch._from_internal(*children),
)

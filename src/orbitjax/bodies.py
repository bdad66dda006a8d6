"""Celestial body position providers.

The propagation core only needs read-only body positions.  The
:class:`CelestialBody` protocol captures that, and :class:`Sun` /
:class:`Moon` implement it with the low-precision analytical ephemerides
of Montenbruck & Gill (~0.1 deg accuracy, adequate for perturbations and
shadow detection).  Bodies are grouped in a :class:`CelestialBodyProvider`
that is injected into the models that need them.

.. note::

    Time system: UTC is assumed to approximate TT when computing Julian
    centuries from J2000.

References:
    1. O. Montenbruck and E. Gill, *Satellite Orbits: Models, Methods
       and Applications*, 2012.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

import jax.numpy as jnp
from jax import Array

from orbitjax.config import get_dtype
from orbitjax.constants import AS2RAD, DEG2RAD, GM_MOON, GM_SUN, R_MOON, R_SUN
from orbitjax.epoch import Epoch
from orbitjax.frames import GCRF, Frame
from orbitjax.rotations import Rx

# Obliquity of the J2000 ecliptic [rad]
_EPSILON = 23.43929111 * DEG2RAD


@runtime_checkable
class CelestialBody(Protocol):
    """Read-only source of a body's position."""

    name: str
    gm: float
    radius: float

    def position(self, epoch: Epoch, frame: Frame) -> Array:
        """Position of the body centre in ``frame`` at ``epoch`` [m]."""
        ...


def _frac(x):
    return x - jnp.floor(x)


def _ecliptic_to_frame(r_ecliptic: Array, epoch: Epoch, frame: Frame) -> Array:
    r_gcrf = Rx(-_EPSILON) @ r_ecliptic
    return GCRF.rotation_to(frame, epoch) @ r_gcrf


@dataclass(frozen=True)
class Sun:
    """Analytical Sun ephemeris."""

    name: str = "Sun"
    gm: float = GM_SUN
    radius: float = R_SUN

    def position(self, epoch: Epoch, frame: Frame = GCRF) -> Array:
        """Position of the Sun.

        Args:
            epoch: Epoch at which to compute the position.
            frame: Output frame. Default: GCRF.

        Returns:
            3-element Sun position vector in metres.

        Examples:
            ```python
            from orbitjax import Epoch
            from orbitjax.bodies import Sun
            r_sun = Sun().position(Epoch(2024, 2, 25))
            float(jnp.linalg.norm(r_sun))  # ~1 AU
            ```
        """
        _float = get_dtype()
        pi2 = _float(2.0) * jnp.pi
        T = epoch.julian_centuries()

        # Mean anomaly [rad]
        M = pi2 * _frac(_float(0.9931267) + _float(99.9973583) * T)

        # Ecliptic longitude [rad]
        L = pi2 * _frac(
            _float(0.7859444)
            + M / pi2
            + (_float(6892.0) * jnp.sin(M) + _float(72.0) * jnp.sin(_float(2.0) * M))
            / _float(1296.0e3)
        )

        # Distance [m]
        r = (
            _float(149.619e9)
            - _float(2.499e9) * jnp.cos(M)
            - _float(0.021e9) * jnp.cos(_float(2.0) * M)
        )

        r_ecliptic = jnp.array([r * jnp.cos(L), r * jnp.sin(L), _float(0.0)])
        return _ecliptic_to_frame(r_ecliptic, epoch, frame)


# Periodic terms of the lunar longitude [arcsec]: (amplitude, l, l', D, F)
_MOON_DL = (
    (22640.0, 1, 0, 0, 0),
    (-4586.0, 1, 0, -2, 0),
    (2370.0, 0, 0, 2, 0),
    (769.0, 2, 0, 0, 0),
    (-668.0, 0, 1, 0, 0),
    (-412.0, 0, 0, 0, 2),
    (-212.0, 2, 0, -2, 0),
    (-206.0, 1, 1, -2, 0),
    (192.0, 1, 0, 2, 0),
    (-165.0, 0, 1, -2, 0),
    (-125.0, 0, 0, 1, 0),
    (-110.0, 1, 1, 0, 0),
    (148.0, 1, -1, 0, 0),
    (-55.0, 0, 0, -2, 2),
)

# Periodic terms of the lunar distance [m]: (amplitude, l, l', D)
_MOON_DR = (
    (-20905e3, 1, 0, 0),
    (-3699e3, -1, 0, 2),
    (-2956e3, 0, 0, 2),
    (-570e3, 2, 0, 0),
    (246e3, 2, 0, -2),
    (-205e3, 0, 1, -2),
    (-171e3, 1, 0, 2),
    (-152e3, 1, 1, -2),
)


@dataclass(frozen=True)
class Moon:
    """Analytical Moon ephemeris."""

    name: str = "Moon"
    gm: float = GM_MOON
    radius: float = R_MOON

    def position(self, epoch: Epoch, frame: Frame = GCRF) -> Array:
        """Position of the Moon.

        Args:
            epoch: Epoch at which to compute the position.
            frame: Output frame. Default: GCRF.

        Returns:
            3-element Moon position vector in metres.
        """
        _float = get_dtype()
        pi2 = _float(2.0) * jnp.pi
        T = epoch.julian_centuries()

        L_0 = _frac(_float(0.606433) + _float(1336.851344) * T)
        l_m = pi2 * _frac(_float(0.374897) + _float(1325.552410) * T)
        lp = pi2 * _frac(_float(0.993133) + _float(99.997361) * T)
        D = pi2 * _frac(_float(0.827361) + _float(1236.853086) * T)
        F = pi2 * _frac(_float(0.259086) + _float(1342.227825) * T)

        dL = sum(
            _float(amp) * jnp.sin(a * l_m + b * lp + c * D + d * F)
            for amp, a, b, c, d in _MOON_DL
        )
        L = pi2 * _frac(L_0 + dL / _float(1296.0e3))

        S = F + (dL + _float(412.0) * jnp.sin(_float(2.0) * F)
                 + _float(541.0) * jnp.sin(lp)) * _float(AS2RAD)
        h = F - _float(2.0) * D
        N = (
            -_float(526.0) * jnp.sin(h)
            + _float(44.0) * jnp.sin(l_m + h)
            - _float(31.0) * jnp.sin(-l_m + h)
            - _float(23.0) * jnp.sin(lp + h)
            + _float(11.0) * jnp.sin(-lp + h)
            - _float(25.0) * jnp.sin(-_float(2.0) * l_m + F)
            + _float(21.0) * jnp.sin(-l_m + F)
        )
        B = (_float(18520.0) * jnp.sin(S) + N) * _float(AS2RAD)

        r = _float(385000e3) + sum(
            _float(amp) * jnp.cos(a * l_m + b * lp + c * D)
            for amp, a, b, c in _MOON_DR
        )

        r_ecliptic = jnp.array([
            r * jnp.cos(L) * jnp.cos(B),
            r * jnp.sin(L) * jnp.cos(B),
            r * jnp.sin(B),
        ])
        return _ecliptic_to_frame(r_ecliptic, epoch, frame)


@dataclass(frozen=True)
class CelestialBodyProvider:
    """Injectable container of the celestial bodies used by force models."""

    sun: CelestialBody = field(default_factory=Sun)
    moon: CelestialBody = field(default_factory=Moon)

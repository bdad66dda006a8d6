"""Calendar / Julian Date conversions used to build and print epochs.

These helpers operate on host-side Python scalars: epochs are created and
formatted outside of traced code, while arithmetic on epochs themselves
stays in :mod:`orbitjax.epoch`.
"""

from __future__ import annotations

import math

from .constants import JD_MJD_OFFSET, SECONDS_PER_DAY


def caldate_to_mjd(
    year: int,
    month: int,
    day: int,
    hour: int = 0,
    minute: int = 0,
    second: float = 0.0,
) -> float:
    """Convert a calendar date to Modified Julian Date.

    Algorithm is only valid for Gregorian dates (year 1583 onward).

    Args:
        year: Year of the calendar date.
        month: Month of the calendar date.
        day: Day of the calendar date.
        hour: Hour of the calendar date. Default: ``0``
        minute: Minute of the calendar date. Default: ``0``
        second: Second of the calendar date. Default: ``0.0``

    Returns:
        float: Modified Julian Date.

    References:

        1. Montenbruck, O., & Gill, E. (2012). *Satellite Orbits: Models, Methods and Applications*. Springer Science & Business Media.
    """
    if month <= 2:
        year -= 1
        month += 12

    b = year // 400 - year // 100 + year // 4
    mjd = 365 * year - 679004 + b + math.floor(30.6001 * (month + 1)) + day

    return float(mjd) + (hour * 3600.0 + minute * 60.0 + second) / SECONDS_PER_DAY


def caldate_to_jd(
    year: int,
    month: int,
    day: int,
    hour: int = 0,
    minute: int = 0,
    second: float = 0.0,
) -> float:
    """Convert a calendar date to Julian Date.

    Args:
        year: Year of the calendar date.
        month: Month of the calendar date.
        day: Day of the calendar date.
        hour: Hour of the calendar date. Default: ``0``
        minute: Minute of the calendar date. Default: ``0``
        second: Second of the calendar date. Default: ``0.0``

    Returns:
        float: Julian Date.
    """
    return caldate_to_mjd(year, month, day, hour, minute, second) + JD_MJD_OFFSET


def jd_to_mjd(jd: float) -> float:
    """Convert Julian Date to Modified Julian Date."""
    return jd - JD_MJD_OFFSET


def mjd_to_jd(mjd: float) -> float:
    """Convert Modified Julian Date to Julian Date."""
    return mjd + JD_MJD_OFFSET


def jd_to_caldate(jd: float) -> tuple[int, int, int, int, int, float]:
    """Convert Julian Date to calendar date.

    Uses the algorithm from Montenbruck & Gill for Gregorian calendar dates.
    The time of day is resolved to the microsecond.

    Args:
        jd: Julian Date.

    Returns:
        tuple: (year, month, day, hour, minute, second) where second
            includes the fractional part.

    References:

        1. O. Montenbruck, and E. Gill, *Satellite Orbits: Models, Methods and
           Applications*, 2012, p. 322.
    """
    shifted = jd + 0.5
    z = math.floor(shifted)
    frac = shifted - z

    if z < 2299161:
        a = z
    else:
        alpha = (100 * z - 186721625) // 3652425
        a = z + 1 + alpha - alpha // 4

    b = a + 1524
    c = (100 * b - 12210) // 36525
    d = (36525 * c) // 100
    e = ((b - d) * 10000) // 306001

    day = b - d - (306001 * e) // 10000
    month = e - 1 if e < 14 else e - 13
    year = c - 4716 if month > 2 else c - 4715

    total_us = round(frac * SECONDS_PER_DAY * 1e6)
    hour, total_us = divmod(total_us, 3_600_000_000)
    minute, total_us = divmod(total_us, 60_000_000)

    return int(year), int(month), int(day), int(hour), int(minute), total_us / 1e6


def mjd_to_caldate(mjd: float) -> tuple[int, int, int, int, int, float]:
    """Convert Modified Julian Date to calendar date."""
    return jd_to_caldate(mjd + JD_MJD_OFFSET)

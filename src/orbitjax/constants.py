"""
The `constants` module defines the physical constants used by the force models, detectors and frames.
"""

from jax.numpy import pi as PI

# Mathematical Constants

"""
Constant to convert degrees to radians. Equal to 2pi/360. Units: *rad/deg*
"""
DEG2RAD = 2.0 * PI / 360.0

"""
Constant to convert radians to degrees. Equal to 360/2pi. Units: *deg/rad*
"""
RAD2DEG = 360.0 / (PI * 2.0)

"""
Constant to convert arcseconds to radians. Equal to 2pi/(360*3600). Units: *rad/as*
"""
AS2RAD = 2.0 * PI / 360.0 / 3600.0

# Time Constants

"""
Offset between Julian Date and Modified Julian Date. Units: *days*
"""
JD_MJD_OFFSET = 2400000.5

"""
Julian Date of the J2000.0 epoch (2000-01-01 12:00:00). Units: *days*
"""
JD_J2000 = 2451545

"""
Number of SI seconds in a day. Units: *s*
"""
SECONDS_PER_DAY = 86400.0

# Physical Constants

"""
Astronomical Unit. Equal to the mean distance of the Earth from the sun.
TDB-compatible value. Units: *m*

References:

1. P. Gérard and B. Luzum, *IERS Technical Note 36*, 2010
"""
AU = 1.49597870700e11

"""
Standard gravity, used to convert specific impulse to exhaust velocity. Units: *m/s^2*

References:

1. BIPM, *The International System of Units (SI)*, 9th ed., 2019
"""
G0_STANDARD = 9.80665

# Earth Constants

"""
Earth's equatorial radius. [m]

References:

1. GGM05s Gravity Model
"""
R_EARTH = 6.378136300e6

"""
Earth's Gravitational constant [m^3/s^2]

References:

1. O. Montenbruck, and E. Gill, *Satellite Orbits: Models, Methods and
Applications*, 2012.
"""
GM_EARTH = 3.986004415e14

"""
Earth axial rotation rate. [rad/s]

References:

1. D. Vallado, *Fundamentals of Astrodynamics and Applications (4th Ed.)*, p. 222, 2010
"""
OMEGA_EARTH = 7.292115146706979e-5

# Sun Constants

"""
Gravitational constant of the Sun. [m^3/s^2]

References:

1. O. Montenbruck, and E. Gill, *Satellite Orbits: Models, Methods and
Applications*, 2012.
"""
GM_SUN = 132712440041.939400 * 1e9

"""
Nominal solar photospheric radius. [m]

References:

1. O. Montenbruck, and E. Gill, *Satellite Orbits: Models, Methods and
Applications*, 2012.
"""
R_SUN = 6.957 * 1e8

"""
Nominal solar radiation pressure at 1 AU. [N/m^2]

References:

1. O. Montenbruck, and E. Gill, *Satellite Orbits: Models, Methods and
Applications*, 2012.
"""
P_SUN = 4.560e-6

# Moon Constants

"""
Gravitational constant of the Moon. [m^3/s^2]

References:

1. O. Montenbruck, and E. Gill, *Satellite Orbits: Models, Methods and
Applications*, 2012.
"""
GM_MOON = 4902.800066 * 1e9

"""
Mean radius of the Moon. [m]

References:

1. IAU WG on Cartographic Coordinates and Rotational Elements, 2009
"""
R_MOON = 1737.4e3

"""
orbitjax is a numerical orbit propagation library implemented in JAX: force models with
autodiff partial derivatives, adaptive Runge-Kutta integration and event detection.
"""

from .constants import (
    DEG2RAD,
    RAD2DEG,
    AS2RAD,
    JD_MJD_OFFSET,
    SECONDS_PER_DAY,
    AU,
    G0_STANDARD,
    R_EARTH,
    GM_EARTH,
    OMEGA_EARTH,
    GM_SUN,
    R_SUN,
    P_SUN,
    GM_MOON,
    R_MOON,
)

from .config import set_dtype, get_dtype, set_epoch_eq_tolerance, get_epoch_eq_tolerance
from .epoch import Epoch

from .errors import (
    OrbitJaxError,
    InputError,
    ConfigurationError,
    UnsupportedParameterError,
    NotInertialFrameError,
    MissingDataError,
    MissingMassPartError,
    MissingAttitudeError,
    NumericalError,
    StepSizeUnderflowError,
    StepAttemptsExceededError,
    RootFindingError,
)

from .frames import Frame, FrameProvider, LOFType, GCRF, EME2000, ITRF
from .bodies import CelestialBody, CelestialBodyProvider, Sun, Moon
from .attitude import Attitude, AttitudeProvider, InertialAttitude, LofAttitude
from .parameters import Parameter, unique_parameters
from .state import MassModel, SpacecraftState

from .integrators import (
    AdaptiveConfig,
    IntegratorStatus,
    DormandPrince54,
    RungeKuttaFehlberg45,
    ClassicalRungeKutta,
)

from .events import (
    Action,
    SlopeSelection,
    EventDetector,
    DateDetector,
    ApsideDetector,
    NodeDetector,
    EclipseDetector,
    EventsLogger,
    LoggedEvent,
)

from .forces import (
    ForceModel,
    NewtonianAttraction,
    ThirdBodyAttraction,
    ExponentialAtmosphere,
    DragForce,
    SolarRadiationPressure,
    IsotropicSpacecraft,
    Facet,
    FacetSpacecraft,
    EmpiricalForce,
    ConstantThrustManeuver,
    ConstantThrustError,
    ImpulseManeuver,
)

from .propagation import (
    NumericalPropagator,
    PropagationMode,
    StateMapper,
    ForceAccumulator,
    AdditionalEquations,
    PartialDerivativesEquations,
    StepHandler,
    FixedStepHandler,
    StepNormalizer,
    IntegratedEphemeris,
)

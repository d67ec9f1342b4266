from __future__ import annotations

"""Physical constants and default thresholds for heliocentric orbital mechanics.

Distances are in AU or km, times in days, unless the name says otherwise.
"""

import math

# --- Units ---
AU_KM: float = 149597870.7
"""One astronomical unit in km."""

SECONDS_PER_DAY: float = 86400.0
"""Seconds in one day."""

DEG_TO_RAD: float = math.pi / 180.0
RAD_TO_DEG: float = 180.0 / math.pi

J2000_JD: float = 2451545.0
"""Julian Date of the J2000.0 epoch (2000-01-01T12:00:00 TT)."""

# --- Sun ---
SUN_MU_M3_S2: float = 1.32712440018e20
"""Sun gravitational parameter (GM) in m³/s²."""

SUN_MU_AU3_DAY2: float = SUN_MU_M3_S2 * SECONDS_PER_DAY**2 / (AU_KM * 1000.0) ** 3
"""Sun gravitational parameter (GM) in AU³/day² (about 2.9591e-4)."""

# --- Mass ratios relative to the Sun ---
JUPITER_MASS_RATIO: float = 9.54791938e-4
EARTH_MASS_RATIO: float = 3.00273e-6
MOON_MASS_RATIO: float = 3.69396e-8

# --- Earth and Moon ---
EARTH_RADIUS_KM: float = 6371.0
"""Mean radius of Earth in km."""

EARTH_CAPTURE_RADIUS_KM: float = 6500.0
"""Impact radius in km, slightly above the surface to include atmospheric entry."""

MOON_DISTANCE_KM: float = 384400.0
"""Mean Earth-Moon distance in km (one lunar distance)."""

MOON_MEAN_DISTANCE_KM: float = 385001.0
"""Mean geocentric distance used by the simplified lunar position model in km."""

EARTH_MEAN_MOTION_RAD_DAY: float = 0.01720279
"""Mean motion of the circular-orbit Earth model in rad/day."""

# --- Kepler solver ---
KEPLER_TOLERANCE: float = 1e-10
"""Default convergence tolerance on the eccentric anomaly step (rad)."""

KEPLER_MAX_ITERATIONS: int = 50
"""Default Newton-Raphson iteration limit."""

HIGH_ECCENTRICITY: float = 0.8
"""Above this eccentricity the solver starts from E = pi instead of E = M."""

MAX_SAMPLED_ECCENTRICITY: float = 0.999
"""Upper clamp for eccentricity drawn by the Monte Carlo sampler."""

# --- Closest-approach search ---
COARSE_SEARCH_STEPS: int = 365
"""Samples in the coarse closest-approach pass."""

REFINE_WINDOW_DAYS: float = 7.0
"""Half-width of the refined closest-approach window in days."""

REFINE_SEARCH_STEPS: int = 200
"""Samples in the refined closest-approach pass."""

# --- Monte Carlo hazard thresholds ---
VERY_CLOSE_DISTANCE_KM: float = 50000.0
"""Miss distance counted as a very close approach in km."""

DEFAULT_SIMULATIONS: int = 10000
"""Default Monte Carlo sample count."""

DEFAULT_EXTENDED_SIMULATIONS: int = 1000
"""Default per-day sample count for the extended encounter-window search."""

DEFAULT_WINDOW_DAYS: int = 7
"""Default half-width of the extended encounter window in days."""

# --- Impact energy ---
DEFAULT_DENSITY_KG_M3: float = 2500.0
"""Default bulk density of a rocky asteroid in kg/m³."""

JOULES_PER_MEGATON: float = 4.184e15
"""Energy of one megaton of TNT in J."""

HIROSHIMA_KILOTONS: float = 15.0
"""Yield of the Hiroshima bomb in kilotons of TNT."""

# --- Size from absolute magnitude ---
DEFAULT_ALBEDO: float = 0.14
"""Geometric albedo assumed when converting absolute magnitude to diameter."""

DIAMETER_MAGNITUDE_CONSTANT_KM: float = 1329.0
"""Constant in D = 1329 / sqrt(albedo) * 10^(-H/5), D in km."""

# --- Proximity bands (km) ---
PROXIMITY_LUNAR_KM: float = MOON_DISTANCE_KM
PROXIMITY_CLOSE_KM: float = 1_000_000.0
PROXIMITY_MODERATE_KM: float = 3_000_000.0
PROXIMITY_SAFE_KM: float = 7_500_000.0
"""At or beyond this distance the proximity score is zero."""

# --- Basic risk score weights ---
HAZARDOUS_WEIGHT: float = 40.0
SIZE_WEIGHT: float = 30.0
PROXIMITY_WEIGHT: float = 30.0
SIZE_REFERENCE_M: float = 1000.0
"""Diameter in meters at which the size contribution saturates."""

# --- Comprehensive risk score weights ---
COMPREHENSIVE_PHA_WEIGHT: float = 25.0
COMPREHENSIVE_PROXIMITY_WEIGHT: float = 30.0
COMPREHENSIVE_SIZE_WEIGHT: float = 25.0
COMPREHENSIVE_VELOCITY_WEIGHT: float = 10.0
COMPREHENSIVE_PROBABILITY_WEIGHT: float = 10.0

VELOCITY_REFERENCE_KM_S: float = 30.0
"""Relative velocity at which the velocity contribution saturates."""

PROBABILITY_FLOOR_LOG10: float = -8.0
"""Impact probabilities at or below 10^-8 add nothing to the comprehensive score."""

PROBABILITY_CEILING_LOG10: float = -2.0
"""Impact probabilities at or above 10^-2 add the full probability weight."""

DEFAULT_IMPACT_VELOCITY_KM_S: float = 20.0
"""Typical Earth-relative impact velocity used when none is known."""

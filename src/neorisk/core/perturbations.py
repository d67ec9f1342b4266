"""Approximate third-body accelerations.

These terms annotate trajectory samples only. They are first-order point-mass
accelerations evaluated at the two-body position and are never integrated
back into the orbit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
from numpy.typing import ArrayLike, NDArray

from neorisk.core.elements import JUPITER_ELEMENTS
from neorisk.core.propagation import earth_position, element_columns, kepler_to_cartesian_array
from neorisk.utils.constants import (
    AU_KM,
    DEG_TO_RAD,
    J2000_JD,
    JUPITER_MASS_RATIO,
    MOON_MASS_RATIO,
    MOON_MEAN_DISTANCE_KM,
    SUN_MU_AU3_DAY2,
)

logger = logging.getLogger(__name__)


@dataclass
class Perturbations:
    """Acceleration contributions in AU/day², each shape (3,)."""

    jupiter: NDArray[np.float64]
    moon: NDArray[np.float64]

    @property
    def total(self) -> NDArray[np.float64]:
        return self.jupiter + self.moon


def moon_geocentric_position(jd: ArrayLike) -> NDArray[np.float64]:
    """Moon position relative to Earth in AU (ecliptic), shape (..., 3).

    Low-precision model: mean longitude with the largest equation-of-centre
    term, a single latitude term, and a fixed mean distance.
    """
    d = np.asarray(jd, dtype=np.float64) - J2000_JD

    mean_longitude = np.mod(218.316 + 13.176396 * d, 360.0) * DEG_TO_RAD
    mean_anomaly = np.mod(134.963 + 13.064993 * d, 360.0) * DEG_TO_RAD
    arg_latitude = np.mod(93.272 + 13.229350 * d, 360.0) * DEG_TO_RAD

    lon = mean_longitude + 6.289 * DEG_TO_RAD * np.sin(mean_anomaly)
    lat = 5.128 * DEG_TO_RAD * np.sin(arg_latitude)
    dist = MOON_MEAN_DISTANCE_KM / AU_KM

    return np.stack(
        [
            dist * np.cos(lat) * np.cos(lon),
            dist * np.cos(lat) * np.sin(lon),
            dist * np.sin(lat),
        ],
        axis=-1,
    )


def jupiter_position(jd: ArrayLike) -> NDArray[np.float64]:
    """Jupiter's heliocentric position in AU from its mean elements."""
    return kepler_to_cartesian_array(*element_columns(JUPITER_ELEMENTS), jd)


def calculate_perturbation(
    body_position: ArrayLike, perturber_position: ArrayLike, mass_ratio: float
) -> NDArray[np.float64]:
    """Point-mass acceleration on a body towards a perturber, in AU/day².

    Args:
        body_position: Heliocentric position of the perturbed body (AU), shape (..., 3).
        perturber_position: Heliocentric position of the perturber (AU), shape (..., 3).
        mass_ratio: Perturber mass relative to the Sun.

    Returns:
        Acceleration vector(s), shape (..., 3).
    """
    delta = np.asarray(perturber_position, dtype=np.float64) - np.asarray(body_position, dtype=np.float64)
    r = np.linalg.norm(delta, axis=-1, keepdims=True)
    return SUN_MU_AU3_DAY2 * mass_ratio * delta / (r * r * r)


def perturbation_arrays(
    heliocentric_position: ArrayLike, jd: ArrayLike
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Jupiter and lunar acceleration terms (AU/day²) for one or many samples.

    Args:
        heliocentric_position: Perturbed body position(s) in AU, shape (..., 3).
        jd: Julian Date(s) matching the leading shape of the positions.

    Returns:
        Tuple of (jupiter, moon) accelerations, each shape (..., 3).
    """
    moon_helio = earth_position(jd) + moon_geocentric_position(jd)
    jupiter = calculate_perturbation(heliocentric_position, jupiter_position(jd), JUPITER_MASS_RATIO)
    moon = calculate_perturbation(heliocentric_position, moon_helio, MOON_MASS_RATIO)
    return jupiter, moon

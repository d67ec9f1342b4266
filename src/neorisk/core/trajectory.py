"""Trajectory sampling and Earth closest-approach search.

Earth is modelled with its full Keplerian J2000 elements here. The Monte
Carlo simulator uses a separate circular-orbit Earth (see
``neorisk.core.probability.circular_earth_position``).
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime

import numpy as np
from numpy.typing import NDArray

from neorisk.core.elements import EARTH_ELEMENTS, OrbitalElements
from neorisk.core.errors import ValidationError
from neorisk.core.perturbations import Perturbations, moon_geocentric_position, perturbation_arrays
from neorisk.core.propagation import (
    calculate_velocity,
    calculate_velocity_array,
    earth_position,
    element_columns,
    kepler_to_cartesian,
    kepler_to_cartesian_array,
)
from neorisk.core.timescale import DateLike, julian_date_to_date, to_julian_date
from neorisk.utils.constants import (
    AU_KM,
    COARSE_SEARCH_STEPS,
    REFINE_SEARCH_STEPS,
    REFINE_WINDOW_DAYS,
    SECONDS_PER_DAY,
)

logger = logging.getLogger(__name__)


@dataclass
class RelativeVelocity:
    """Velocity of a body at one sample.

    Attributes:
        heliocentric: Heliocentric velocity in AU/day.
        relative: Velocity relative to Earth in AU/day.
        relative_speed_km_s: Magnitude of ``relative`` in km/s.
    """

    heliocentric: NDArray[np.float64]
    relative: NDArray[np.float64]
    relative_speed_km_s: float


@dataclass
class TrajectoryPoint:
    """One sample along a propagated path.

    Attributes:
        julian_date: Sample time.
        date: Sample time as a UTC datetime.
        heliocentric: Heliocentric ecliptic position in AU.
        geocentric: Position relative to Earth in AU.
        distance_au: Distance from Earth in AU.
        distance_km: Distance from Earth in km.
        velocity: Heliocentric and Earth-relative velocity, if requested.
        perturbations: Third-body acceleration annotations, if requested.
    """

    julian_date: float
    date: datetime
    heliocentric: NDArray[np.float64]
    geocentric: NDArray[np.float64]
    distance_au: float
    distance_km: float
    velocity: RelativeVelocity | None = None
    perturbations: Perturbations | None = None


@dataclass
class ClosestApproach:
    """Result of a closest-approach search.

    ``found`` is False when the search range was empty or no finite distance
    was sampled; every other field is then None.
    """

    found: bool
    date: datetime | None = None
    julian_date: float | None = None
    distance_km: float | None = None
    distance_au: float | None = None
    position: NDArray[np.float64] | None = None
    velocity: RelativeVelocity | None = None

    @classmethod
    def not_found(cls) -> ClosestApproach:
        return cls(found=False)

    @classmethod
    def from_point(cls, point: TrajectoryPoint) -> ClosestApproach:
        return cls(
            found=True,
            date=point.date,
            julian_date=point.julian_date,
            distance_km=point.distance_km,
            distance_au=point.distance_au,
            position=point.geocentric,
            velocity=point.velocity,
        )


@dataclass
class CelestialBodies:
    """Sun, Earth and Moon positions at one instant, heliocentric AU unless noted."""

    julian_date: float
    date: datetime
    sun: NDArray[np.float64]
    earth: NDArray[np.float64]
    moon: NDArray[np.float64]
    moon_geocentric: NDArray[np.float64]


def _speed_km_s(velocity_au_day: NDArray[np.float64]) -> float:
    return float(np.linalg.norm(velocity_au_day)) * AU_KM / SECONDS_PER_DAY


def calculate_position(
    elements: OrbitalElements,
    date: float | DateLike,
    include_velocity: bool = False,
) -> TrajectoryPoint:
    """Position of a body, and its offset from Earth, at one instant.

    Args:
        elements: Keplerian elements of the body.
        date: Julian Date or UTC date.
        include_velocity: Also compute heliocentric and Earth-relative velocity.

    Returns:
        TrajectoryPoint with heliocentric and geocentric vectors and distances.
    """
    jd = to_julian_date(date)

    helio = kepler_to_cartesian(elements, jd).position_au
    earth = kepler_to_cartesian(EARTH_ELEMENTS, jd).position_au
    geocentric = helio - earth
    distance_au = float(np.linalg.norm(geocentric))

    point = TrajectoryPoint(
        julian_date=jd,
        date=julian_date_to_date(jd),
        heliocentric=helio,
        geocentric=geocentric,
        distance_au=distance_au,
        distance_km=distance_au * AU_KM,
    )

    if include_velocity:
        helio_vel = calculate_velocity(elements, jd)
        relative = helio_vel - calculate_velocity(EARTH_ELEMENTS, jd)
        point.velocity = RelativeVelocity(
            heliocentric=helio_vel,
            relative=relative,
            relative_speed_km_s=_speed_km_s(relative),
        )

    return point


def propagate_trajectory(
    elements: OrbitalElements,
    start: float | DateLike,
    end: float | DateLike,
    steps: int = 100,
    apply_perturbations: bool = False,
) -> list[TrajectoryPoint]:
    """Sample a body's path uniformly in Julian Date between two instants.

    Velocities are always included. With ``apply_perturbations`` each point
    also carries approximate Jupiter and lunar accelerations; these are
    annotations only and do not alter the two-body positions.

    Args:
        elements: Keplerian elements of the body.
        start: Start of the range (Julian Date or UTC date).
        end: End of the range (Julian Date or UTC date).
        steps: Number of samples, including both ends.
        apply_perturbations: Attach third-body acceleration annotations.

    Returns:
        List of ``steps`` TrajectoryPoint objects in time order.

    Raises:
        ValidationError: If ``steps`` is less than 1.
    """
    if steps < 1:
        raise ValidationError(f"steps must be at least 1, got {steps}")

    start_jd = to_julian_date(start)
    end_jd = to_julian_date(end)
    jds = np.linspace(start_jd, end_jd, int(steps))

    columns = element_columns(elements)
    helio = kepler_to_cartesian_array(*columns, jds)
    helio_vel = calculate_velocity_array(*columns, jds)
    earth = earth_position(jds)
    earth_vel = calculate_velocity_array(*element_columns(EARTH_ELEMENTS), jds)

    geocentric = helio - earth
    relative_vel = helio_vel - earth_vel
    distances_au = np.linalg.norm(geocentric, axis=-1)
    speeds_km_s = np.linalg.norm(relative_vel, axis=-1) * AU_KM / SECONDS_PER_DAY

    if apply_perturbations:
        jupiter_acc, moon_acc = perturbation_arrays(helio, jds)

    trajectory: list[TrajectoryPoint] = []
    for k, jd in enumerate(jds):
        point = TrajectoryPoint(
            julian_date=float(jd),
            date=julian_date_to_date(float(jd)),
            heliocentric=helio[k],
            geocentric=geocentric[k],
            distance_au=float(distances_au[k]),
            distance_km=float(distances_au[k]) * AU_KM,
            velocity=RelativeVelocity(
                heliocentric=helio_vel[k],
                relative=relative_vel[k],
                relative_speed_km_s=float(speeds_km_s[k]),
            ),
        )
        if apply_perturbations:
            point.perturbations = Perturbations(jupiter=jupiter_acc[k], moon=moon_acc[k])
        trajectory.append(point)

    logger.debug(
        "Propagated trajectory: %d steps JD %.3f -> %.3f (perturbations=%s)",
        len(trajectory), start_jd, end_jd, apply_perturbations,
    )
    return trajectory


def _nearest(points: list[TrajectoryPoint]) -> TrajectoryPoint | None:
    best: TrajectoryPoint | None = None
    for point in points:
        if not math.isfinite(point.distance_km):
            continue
        if best is None or point.distance_km < best.distance_km:
            best = point
    return best


def find_closest_approach(
    elements: OrbitalElements,
    start: float | DateLike,
    end: float | DateLike,
) -> ClosestApproach:
    """Find the minimum Earth distance of a body within a date range.

    Two-phase search:
    1. Coarse pass of 365 samples across the whole range
    2. Refined pass of 200 samples within ±7 days of the coarse minimum,
       clipped to the range

    Args:
        elements: Keplerian elements of the body.
        start: Start of the search range (Julian Date or UTC date).
        end: End of the search range (Julian Date or UTC date).

    Returns:
        ClosestApproach; ``found`` is False if ``end`` is not after ``start``
        or no finite distance was sampled.
    """
    start_jd = to_julian_date(start)
    end_jd = to_julian_date(end)

    if not end_jd > start_jd:
        logger.info("find_closest_approach: empty range JD %.3f -> %.3f", start_jd, end_jd)
        return ClosestApproach.not_found()

    best = _nearest(propagate_trajectory(elements, start_jd, end_jd, COARSE_SEARCH_STEPS))
    if best is None:
        logger.warning("find_closest_approach: no finite distance in coarse pass")
        return ClosestApproach.not_found()

    refine_start = max(start_jd, best.julian_date - REFINE_WINDOW_DAYS)
    refine_end = min(end_jd, best.julian_date + REFINE_WINDOW_DAYS)
    refined = _nearest(propagate_trajectory(elements, refine_start, refine_end, REFINE_SEARCH_STEPS))
    if refined is not None and refined.distance_km < best.distance_km:
        best = refined

    logger.debug("Closest approach %.1f km at JD %.5f", best.distance_km, best.julian_date)
    return ClosestApproach.from_point(best)


def celestial_bodies(date: float | DateLike) -> CelestialBodies:
    """Positions of the Sun, Earth and Moon at one instant."""
    jd = to_julian_date(date)
    earth = kepler_to_cartesian(EARTH_ELEMENTS, jd).position_au
    moon_offset = moon_geocentric_position(jd)
    return CelestialBodies(
        julian_date=jd,
        date=julian_date_to_date(jd),
        sun=np.zeros(3),
        earth=earth,
        moon=earth + moon_offset,
        moon_geocentric=moon_offset,
    )

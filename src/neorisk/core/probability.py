"""Monte Carlo impact probability estimation.

Samples the orbital-element uncertainty, re-evaluates the Earth miss distance
at an encounter date for every sample, and counts samples inside three
independent hazard radii.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime

import numpy as np

logger = logging.getLogger(__name__)
from numpy.typing import ArrayLike, NDArray
from scipy.stats import binomtest

from neorisk.core.elements import DEFAULT_UNCERTAINTY, ElementUncertainty, OrbitalElements
from neorisk.core.errors import SimulationCancelled, ValidationError
from neorisk.core.propagation import kepler_to_cartesian, kepler_to_cartesian_array
from neorisk.core.timescale import DateLike, julian_date_to_date, to_julian_date
from neorisk.utils.constants import (
    AU_KM,
    DEFAULT_EXTENDED_SIMULATIONS,
    DEFAULT_SIMULATIONS,
    DEFAULT_WINDOW_DAYS,
    EARTH_CAPTURE_RADIUS_KM,
    EARTH_MEAN_MOTION_RAD_DAY,
    J2000_JD,
    MAX_SAMPLED_ECCENTRICITY,
    MOON_DISTANCE_KM,
    VERY_CLOSE_DISTANCE_KM,
)

DEFAULT_SAMPLE_BATCH = 1000


@dataclass
class HazardCounts:
    """Samples inside each hazard radius. The buckets overlap; they are not nested subsets of a partition."""

    impacts: int
    close_approaches: int
    very_close: int
    total: int


@dataclass
class DistanceStatistics:
    """Distribution of sampled miss distances in km."""

    min_km: float
    max_km: float
    mean_km: float
    median_km: float
    std_km: float
    percentile_5_km: float
    percentile_95_km: float


@dataclass
class SimulationResult:
    """Result of a Monte Carlo impact simulation.

    Attributes:
        impact_probability: Fraction of samples inside the Earth capture radius.
        close_approach_probability: Fraction inside one lunar distance.
        very_close_probability: Fraction inside 50,000 km.
        counts: Raw per-threshold sample counts.
        statistics: Miss-distance distribution.
        simulation_time_ms: Wall-clock run time in milliseconds.
        encounter_jd: Encounter epoch evaluated.
        encounter_date: Encounter epoch as a UTC datetime.
        impact_probability_ci: 95% Clopper-Pearson interval on the impact fraction.
    """

    impact_probability: float
    close_approach_probability: float
    very_close_probability: float
    counts: HazardCounts
    statistics: DistanceStatistics
    simulation_time_ms: float
    encounter_jd: float
    encounter_date: datetime
    impact_probability_ci: tuple[float, float]


def _resolve_rng(rng: np.random.Generator | None, seed: int | None) -> np.random.Generator:
    if rng is not None:
        return rng
    return np.random.default_rng(seed)


def random_normal(
    rng: np.random.Generator,
    size: int | None = None,
    mean: float = 0.0,
    std: float = 1.0,
):
    """Gaussian draws via the Box-Muller transform.

    Args:
        rng: Source of uniform variates.
        size: Number of draws, or None for a single float.
        mean: Distribution mean.
        std: Standard deviation.

    Returns:
        A float when ``size`` is None, otherwise an array of shape (size,).
    """
    u1 = 1.0 - rng.random(size)  # (0, 1], keeps log finite
    u2 = rng.random(size)
    z = np.sqrt(-2.0 * np.log(u1)) * np.cos(2.0 * np.pi * u2)
    if size is None:
        return float(mean + z * std)
    return mean + z * std


def sample_orbital_elements(
    elements: OrbitalElements,
    uncertainties: ElementUncertainty = DEFAULT_UNCERTAINTY,
    rng: np.random.Generator | None = None,
) -> OrbitalElements:
    """Draw one set of elements from independent Gaussians around the nominal orbit.

    Eccentricity is clamped to [0, 0.999] after the draw. The epoch is kept.

    Raises:
        ValidationError: If the draw produces a non-positive semi-major axis.
    """
    generator = _resolve_rng(rng, None)
    u = uncertainties
    a = elements.semi_major_axis_au + random_normal(generator, None, 0.0, u.semi_major_axis_au)
    e = elements.eccentricity + random_normal(generator, None, 0.0, u.eccentricity)
    return replace(
        elements,
        semi_major_axis_au=a,
        eccentricity=min(max(e, 0.0), MAX_SAMPLED_ECCENTRICITY),
        inclination_deg=elements.inclination_deg + random_normal(generator, None, 0.0, u.inclination_deg),
        longitude_asc_node_deg=elements.longitude_asc_node_deg
        + random_normal(generator, None, 0.0, u.longitude_asc_node_deg),
        arg_perihelion_deg=elements.arg_perihelion_deg + random_normal(generator, None, 0.0, u.arg_perihelion_deg),
        mean_anomaly_deg=elements.mean_anomaly_deg + random_normal(generator, None, 0.0, u.mean_anomaly_deg),
    )


def _sample_columns(
    elements: OrbitalElements,
    uncertainties: ElementUncertainty,
    count: int,
    rng: np.random.Generator,
) -> tuple[NDArray[np.float64], ...]:
    """Vectorized ``sample_orbital_elements``; returns (a, e, i, node, peri, M0) arrays."""
    u = uncertainties
    a = elements.semi_major_axis_au + random_normal(rng, count, 0.0, u.semi_major_axis_au)
    if np.any(a <= 0.0):
        raise ValidationError(
            "Semi-major axis uncertainty is too large: sampled a non-positive semi-major axis"
        )
    e = np.clip(
        elements.eccentricity + random_normal(rng, count, 0.0, u.eccentricity),
        0.0,
        MAX_SAMPLED_ECCENTRICITY,
    )
    inc = elements.inclination_deg + random_normal(rng, count, 0.0, u.inclination_deg)
    node = elements.longitude_asc_node_deg + random_normal(rng, count, 0.0, u.longitude_asc_node_deg)
    peri = elements.arg_perihelion_deg + random_normal(rng, count, 0.0, u.arg_perihelion_deg)
    m0 = elements.mean_anomaly_deg + random_normal(rng, count, 0.0, u.mean_anomaly_deg)
    return a, e, inc, node, peri, m0


def circular_earth_position(jd: ArrayLike) -> NDArray[np.float64]:
    """Earth position on a circular 1 AU orbit in the ecliptic plane, shape (..., 3).

    This is the simplified Earth used by the simulator. It differs from the
    Keplerian Earth in ``neorisk.core.trajectory`` by up to ~0.017 AU.
    """
    angle = (np.asarray(jd, dtype=np.float64) - J2000_JD) * EARTH_MEAN_MOTION_RAD_DAY
    return np.stack([np.cos(angle), np.sin(angle), np.zeros_like(angle)], axis=-1)


def calculate_miss_distance(elements: OrbitalElements, date: float | DateLike) -> float:
    """Distance in km between a body and the circular-orbit Earth at ``date``."""
    jd = to_julian_date(date)
    delta = kepler_to_cartesian(elements, jd).position_au - circular_earth_position(jd)
    return float(np.linalg.norm(delta)) * AU_KM


def _miss_distances(columns: tuple[NDArray[np.float64], ...], epoch_jd: float, jd: float) -> NDArray[np.float64]:
    positions = kepler_to_cartesian_array(*columns, epoch_jd, jd)
    return np.linalg.norm(positions - circular_earth_position(jd), axis=-1) * AU_KM


def _check_cancelled(
    should_cancel: Callable[[], bool] | None,
    deadline: float | None,
    completed: int,
) -> None:
    if should_cancel is not None and should_cancel():
        raise SimulationCancelled(f"Simulation cancelled after {completed} samples", completed)
    if deadline is not None and time.monotonic() >= deadline:
        raise SimulationCancelled(f"Simulation deadline reached after {completed} samples", completed)


def run_simulation(
    elements: OrbitalElements,
    encounter_date: float | DateLike,
    num_simulations: int = DEFAULT_SIMULATIONS,
    uncertainties: ElementUncertainty = DEFAULT_UNCERTAINTY,
    *,
    rng: np.random.Generator | None = None,
    seed: int | None = None,
    batch_size: int = DEFAULT_SAMPLE_BATCH,
    should_cancel: Callable[[], bool] | None = None,
    deadline: float | None = None,
) -> SimulationResult:
    """Estimate impact probability at an encounter date by Monte Carlo sampling.

    Samples are drawn and evaluated ``batch_size`` at a time. Before each
    batch the cancellation callable and the deadline are checked.

    Args:
        elements: Nominal orbital elements.
        encounter_date: Encounter epoch (Julian Date or UTC date).
        num_simulations: Number of samples.
        uncertainties: One-sigma element uncertainties.
        rng: Random generator. Takes precedence over ``seed``.
        seed: Seed for a fresh generator when ``rng`` is None.
        batch_size: Samples evaluated between cancellation checks.
        should_cancel: Callable returning True to stop the run.
        deadline: ``time.monotonic()`` value after which the run stops.

    Returns:
        SimulationResult with counts, probabilities and distance statistics.

    Raises:
        ValidationError: If ``num_simulations`` or ``batch_size`` is below 1.
        SimulationCancelled: If the run was cancelled or hit its deadline.
    """
    if num_simulations < 1:
        raise ValidationError(f"num_simulations must be at least 1, got {num_simulations}")
    if batch_size < 1:
        raise ValidationError(f"batch_size must be at least 1, got {batch_size}")

    generator = _resolve_rng(rng, seed)
    jd = to_julian_date(encounter_date)
    total = int(num_simulations)

    logger.info("Running Monte Carlo simulation with %d samples at JD %.3f", total, jd)
    started = time.perf_counter()

    distances = np.empty(total, dtype=np.float64)
    done = 0
    while done < total:
        _check_cancelled(should_cancel, deadline, done)
        count = min(batch_size, total - done)
        columns = _sample_columns(elements, uncertainties, count, generator)
        distances[done:done + count] = _miss_distances(columns, elements.epoch_jd, jd)
        done += count

    impacts = int(np.count_nonzero(distances < EARTH_CAPTURE_RADIUS_KM))
    close_approaches = int(np.count_nonzero(distances < MOON_DISTANCE_KM))
    very_close = int(np.count_nonzero(distances < VERY_CLOSE_DISTANCE_KM))

    ordered = np.sort(distances)
    statistics = DistanceStatistics(
        min_km=float(ordered[0]),
        max_km=float(ordered[-1]),
        mean_km=float(ordered.mean()),
        median_km=float(ordered[total // 2]),
        std_km=float(ordered.std()),
        percentile_5_km=float(ordered[int(total * 0.05)]),
        percentile_95_km=float(ordered[int(total * 0.95)]),
    )
    interval = binomtest(impacts, total).proportion_ci(confidence_level=0.95)

    elapsed_ms = (time.perf_counter() - started) * 1000.0
    logger.info(
        "Simulation complete: %d impacts, %d within lunar distance, min %.0f km (%.1f ms)",
        impacts, close_approaches, statistics.min_km, elapsed_ms,
    )

    return SimulationResult(
        impact_probability=impacts / total,
        close_approach_probability=close_approaches / total,
        very_close_probability=very_close / total,
        counts=HazardCounts(
            impacts=impacts,
            close_approaches=close_approaches,
            very_close=very_close,
            total=total,
        ),
        statistics=statistics,
        simulation_time_ms=elapsed_ms,
        encounter_jd=jd,
        encounter_date=julian_date_to_date(jd),
        impact_probability_ci=(float(interval.low), float(interval.high)),
    )


def run_extended_simulation(
    elements: OrbitalElements,
    center_date: float | DateLike,
    window_days: int = DEFAULT_WINDOW_DAYS,
    num_simulations: int = DEFAULT_EXTENDED_SIMULATIONS,
    uncertainties: ElementUncertainty = DEFAULT_UNCERTAINTY,
    *,
    rng: np.random.Generator | None = None,
    seed: int | None = None,
    should_cancel: Callable[[], bool] | None = None,
    deadline: float | None = None,
) -> SimulationResult:
    """Search an encounter window day by day for the most dangerous date.

    Runs ``run_simulation`` at every whole-day offset in
    [-window_days, +window_days] around ``center_date`` and keeps the run
    with the highest impact probability, breaking ties on the smaller
    minimum distance.

    Raises:
        ValidationError: If ``window_days`` is negative.
        SimulationCancelled: If any daily run is cancelled.
    """
    if window_days < 0:
        raise ValidationError(f"window_days must be non-negative, got {window_days}")

    generator = _resolve_rng(rng, seed)
    center_jd = to_julian_date(center_date)
    days = int(window_days)

    best: SimulationResult | None = None
    for offset in range(-days, days + 1):
        result = run_simulation(
            elements,
            center_jd + offset,
            num_simulations,
            uncertainties,
            rng=generator,
            should_cancel=should_cancel,
            deadline=deadline,
        )
        if (
            best is None
            or result.impact_probability > best.impact_probability
            or (
                result.impact_probability == best.impact_probability
                and result.statistics.min_km < best.statistics.min_km
            )
        ):
            best = result

    logger.debug(
        "Extended simulation: best JD %.3f, Pi=%.3e over ±%d days",
        best.encounter_jd, best.impact_probability, days,
    )
    return best

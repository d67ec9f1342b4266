from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Union

import numpy as np

from neorisk.config import DEFAULT_CONFIG, EngineConfig
from neorisk.core.elements import Asteroid
from neorisk.core.energy import ImpactEnergy, estimate_impact_energy
from neorisk.core.errors import ValidationError
from neorisk.core.probability import SimulationResult, run_simulation
from neorisk.core.timescale import DateLike
from neorisk.core.torino import TorinoResult, calculate_torino_scale
from neorisk.core.trajectory import calculate_position
from neorisk.utils.constants import (
    COMPREHENSIVE_PHA_WEIGHT,
    COMPREHENSIVE_PROBABILITY_WEIGHT,
    COMPREHENSIVE_PROXIMITY_WEIGHT,
    COMPREHENSIVE_SIZE_WEIGHT,
    COMPREHENSIVE_VELOCITY_WEIGHT,
    DEFAULT_ALBEDO,
    DIAMETER_MAGNITUDE_CONSTANT_KM,
    HAZARDOUS_WEIGHT,
    PROBABILITY_CEILING_LOG10,
    PROBABILITY_FLOOR_LOG10,
    PROXIMITY_CLOSE_KM,
    PROXIMITY_LUNAR_KM,
    PROXIMITY_MODERATE_KM,
    PROXIMITY_SAFE_KM,
    PROXIMITY_WEIGHT,
    SIZE_REFERENCE_M,
    SIZE_WEIGHT,
    VELOCITY_REFERENCE_KM_S,
)

logger = logging.getLogger(__name__)

_PROXIMITY_DISTANCES_KM = np.array([PROXIMITY_LUNAR_KM, PROXIMITY_CLOSE_KM, PROXIMITY_MODERATE_KM, PROXIMITY_SAFE_KM])
_PROXIMITY_SCORES = np.array([100.0, 75.0, 40.0, 0.0])

# Per-item failures that degrade a batch entry instead of aborting the batch
_ITEM_ERRORS = (ValueError, TypeError, KeyError, AttributeError, ArithmeticError, RuntimeError)


@dataclass
class RiskAssessment:
    name: str
    basic_score: int             # 0-100, no simulation
    comprehensive_score: float   # 0-100, weighted
    torino: TorinoResult
    simulation: SimulationResult | None
    energy: ImpactEnergy | None  # None when the size is unknown
    diameter_km: float | None
    label: str                   # CRITICAL/SEVERE/HIGH/ELEVATED/MODERATE/LOW/MINIMAL
    factors: dict                # breakdown of contributing factors
    recommendation: str

    @property
    def sort_score(self) -> float:
        return self.comprehensive_score


@dataclass
class DegradedAssessment:
    """Batch entry whose full assessment failed; only the basic score is known."""

    name: str
    basic_score: int
    error: str

    @property
    def sort_score(self) -> float:
        return float(self.basic_score)


AssessmentResult = Union[RiskAssessment, DegradedAssessment]


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def calculate_proximity_score(distance_km: float) -> float:
    """
    Proximity score from a miss distance.

    Piecewise linear through (384,400 km, 100), (1,000,000 km, 75),
    (3,000,000 km, 40) and (7,500,000 km, 0). Flat at 100 inside one lunar
    distance and at 0 beyond the safe threshold.

    Raises:
        ValidationError: If the distance is negative or NaN
    """
    if not distance_km >= 0:
        raise ValidationError(f"Distance must be non-negative, got {distance_km}")
    if distance_km <= PROXIMITY_LUNAR_KM:
        return 100.0
    if distance_km >= PROXIMITY_SAFE_KM:
        return 0.0
    return float(np.interp(distance_km, _PROXIMITY_DISTANCES_KM, _PROXIMITY_SCORES))


def calculate_risk_score(is_hazardous: bool, diameter_meters: float, miss_distance_km: float) -> int:
    """
    Cheap 0-100 risk heuristic for listing and sorting, without a simulation.

    Args:
        is_hazardous: PHA flag, adds a fixed 40 points
        diameter_meters: Diameter in meters, up to 30 points at 1 km
        miss_distance_km: Miss distance in km, up to 30 points via the proximity score

    Returns:
        Integer score, rounded half up and clamped to [0, 100]

    Raises:
        ValidationError: If diameter or distance is negative
    """
    if not diameter_meters >= 0:
        raise ValidationError(f"Diameter must be non-negative, got {diameter_meters}")

    score = HAZARDOUS_WEIGHT if is_hazardous else 0.0
    score += min(SIZE_WEIGHT, diameter_meters / SIZE_REFERENCE_M * SIZE_WEIGHT)
    score += PROXIMITY_WEIGHT * calculate_proximity_score(miss_distance_km) / 100.0
    return max(0, min(100, _round_half_up(score)))


def estimate_diameter_km(absolute_magnitude: float, albedo: float = DEFAULT_ALBEDO) -> float:
    """Diameter in km from absolute magnitude: D = 1329 / sqrt(albedo) * 10^(-H/5)."""
    if not math.isfinite(absolute_magnitude):
        raise ValidationError(f"Absolute magnitude must be finite, got {absolute_magnitude}")
    if not 0.0 < albedo <= 1.0:
        raise ValidationError(f"Albedo must be in (0, 1], got {albedo}")
    return DIAMETER_MAGNITUDE_CONSTANT_KM / math.sqrt(albedo) * 10.0 ** (-absolute_magnitude / 5.0)


def _probability_fraction(impact_probability: float) -> float:
    """Log-scaled position of a probability between 1e-8 (0) and 1e-2 (1)."""
    if impact_probability <= 0:
        return 0.0
    span = PROBABILITY_CEILING_LOG10 - PROBABILITY_FLOOR_LOG10
    fraction = (math.log10(impact_probability) - PROBABILITY_FLOOR_LOG10) / span
    return min(1.0, max(0.0, fraction))


def _comprehensive_factors(
    is_hazardous: bool,
    diameter_km: float | None,
    miss_distance_km: float | None,
    velocity_km_s: float,
    impact_probability: float,
) -> dict[str, float]:
    pha = COMPREHENSIVE_PHA_WEIGHT if is_hazardous else 0.0
    proximity = 0.0
    if miss_distance_km is not None:
        proximity = COMPREHENSIVE_PROXIMITY_WEIGHT * calculate_proximity_score(miss_distance_km) / 100.0
    size = 0.0
    if diameter_km is not None:
        size = COMPREHENSIVE_SIZE_WEIGHT * min(1.0, diameter_km * 1000.0 / SIZE_REFERENCE_M)
    velocity = COMPREHENSIVE_VELOCITY_WEIGHT * min(1.0, max(0.0, velocity_km_s) / VELOCITY_REFERENCE_KM_S)
    probability = COMPREHENSIVE_PROBABILITY_WEIGHT * _probability_fraction(impact_probability)
    return {
        "pha_score": pha,
        "proximity_score": proximity,
        "size_score": size,
        "velocity_score": velocity,
        "probability_score": probability,
    }


def _label(torino_level: int, comprehensive_score: float) -> str:
    """Final label: Torino level first, comprehensive score when the level is 0."""
    if torino_level >= 8:
        return "CRITICAL"
    elif torino_level >= 5:
        return "SEVERE"
    elif torino_level >= 2:
        return "HIGH"
    elif torino_level == 1:
        return "ELEVATED"

    if comprehensive_score >= 80:
        return "HIGH"
    elif comprehensive_score >= 60:
        return "ELEVATED"
    elif comprehensive_score >= 40:
        return "MODERATE"
    elif comprehensive_score >= 20:
        return "LOW"
    else:
        return "MINIMAL"


def _as_asteroid(asteroid: Asteroid | Mapping[str, Any]) -> Asteroid:
    if isinstance(asteroid, Asteroid):
        return asteroid
    return Asteroid.from_dict(asteroid)


def _resolve_diameter_km(asteroid: Asteroid, config: EngineConfig) -> float | None:
    if asteroid.diameter_km is not None:
        if asteroid.diameter_km < 0:
            raise ValidationError(f"Diameter must be non-negative, got {asteroid.diameter_km}")
        return asteroid.diameter_km
    if asteroid.absolute_magnitude is not None:
        return estimate_diameter_km(asteroid.absolute_magnitude, config.albedo)
    return None


def _basic_score(asteroid: Asteroid, config: EngineConfig) -> int:
    diameter_km = _resolve_diameter_km(asteroid, config)
    miss = asteroid.miss_distance_km
    return calculate_risk_score(
        asteroid.is_hazardous,
        (diameter_km or 0.0) * 1000.0,
        miss if miss is not None else math.inf,
    )


def assess_risk(
    asteroid: Asteroid | Mapping[str, Any],
    encounter_date: float | DateLike | None = None,
    num_simulations: int = 5000,
    *,
    rng: np.random.Generator | None = None,
    seed: int | None = None,
    config: EngineConfig | None = None,
    should_cancel: Callable[[], bool] | None = None,
    deadline: float | None = None,
) -> RiskAssessment:
    """
    Full risk assessment of one asteroid.

    Steps: diameter (given, or estimated from absolute magnitude), basic
    score, Monte Carlo simulation when both orbital elements and an
    encounter date are present, impact energy, Torino level, weighted
    comprehensive score and final label.

    Args:
        asteroid: Asteroid record or a mapping accepted by ``Asteroid.from_dict``
        encounter_date: Encounter epoch for the simulation (Julian Date or UTC date)
        num_simulations: Monte Carlo samples, capped at ``config.max_simulations``
        rng: Random generator for the simulation
        seed: Seed used when ``rng`` is None
        config: Engine bounds and physical defaults (None for defaults)
        should_cancel: Cancellation check forwarded to the simulation
        deadline: ``time.monotonic()`` deadline forwarded to the simulation

    Returns:
        RiskAssessment with scores, Torino classification and label

    Raises:
        ValidationError: If the record or a derived quantity is invalid
        SimulationCancelled: If the simulation was cancelled
    """
    config = config or DEFAULT_CONFIG
    record = _as_asteroid(asteroid)

    if num_simulations < 1:
        raise ValidationError(f"num_simulations must be at least 1, got {num_simulations}")
    if num_simulations > config.max_simulations:
        logger.warning(
            "Clamping num_simulations for %s from %d to %d",
            record.name, num_simulations, config.max_simulations,
        )
        num_simulations = config.max_simulations

    diameter_km = _resolve_diameter_km(record, config)
    basic_score = _basic_score(record, config)

    elements = record.orbital_elements
    can_simulate = elements is not None and encounter_date is not None

    simulation = None
    if can_simulate:
        simulation = run_simulation(
            elements,
            encounter_date,
            num_simulations,
            rng=rng,
            seed=seed,
            batch_size=config.simulation_batch_size,
            should_cancel=should_cancel,
            deadline=deadline,
        )

    if record.relative_velocity_km_s is not None:
        velocity_km_s = record.relative_velocity_km_s
        velocity_source = "observed"
    elif can_simulate:
        point = calculate_position(elements, encounter_date, include_velocity=True)
        velocity_km_s = point.velocity.relative_speed_km_s
        velocity_source = "propagated"
    else:
        velocity_km_s = config.default_impact_velocity_km_s
        velocity_source = "default"

    energy = None
    if diameter_km is not None:
        energy = estimate_impact_energy(diameter_km, velocity_km_s, config.density_kg_m3)

    impact_probability = simulation.impact_probability if simulation is not None else 0.0
    torino = calculate_torino_scale(impact_probability, energy.energy_megatons if energy is not None else 0.0)

    miss_distance_km = record.miss_distance_km
    if miss_distance_km is None and simulation is not None:
        miss_distance_km = simulation.statistics.median_km

    factors = _comprehensive_factors(
        record.is_hazardous, diameter_km, miss_distance_km, velocity_km_s, impact_probability
    )
    comprehensive = min(100.0, max(0.0, sum(factors.values())))
    factors = {key: round(value, 2) for key, value in factors.items()}
    factors.update(
        velocity_km_s=velocity_km_s,
        velocity_source=velocity_source,
        miss_distance_km=miss_distance_km,
        impact_probability=impact_probability,
    )

    label = _label(torino.level, comprehensive)
    logger.debug(
        "Risk assessment %s: basic=%d comprehensive=%.2f torino=%d label=%s",
        record.name, basic_score, comprehensive, torino.level, label,
    )
    return RiskAssessment(
        name=record.name,
        basic_score=basic_score,
        comprehensive_score=round(comprehensive, 2),
        torino=torino,
        simulation=simulation,
        energy=energy,
        diameter_km=diameter_km,
        label=label,
        factors=factors,
        recommendation=torino.recommendation,
    )


def _item_name(item: Any) -> str:
    if isinstance(item, Asteroid):
        return item.name
    if isinstance(item, Mapping):
        for key in ("name", "designation", "nasaId", "spkId"):
            if item.get(key) is not None:
                return str(item[key])
    return "unknown"


def _degraded(item: Any, error: BaseException, config: EngineConfig) -> DegradedAssessment:
    """Fallback entry carrying whatever basic score the record still supports."""
    name = _item_name(item)
    basic_score = 0
    try:
        if isinstance(item, Mapping):
            item = {k: v for k, v in item.items() if k not in ("orbitalElements", "orbital_elements")}
        basic_score = _basic_score(_as_asteroid(item), config)
    except _ITEM_ERRORS as e:
        logger.warning("No basic score for %s: %s", name, e)
    return DegradedAssessment(name=name, basic_score=basic_score, error=str(error))


def batch_assess_risk(
    asteroids: Iterable[Asteroid | Mapping[str, Any]],
    encounter_date: float | DateLike | None = None,
    num_simulations: int = 1000,
    *,
    seed: int | None = None,
    max_workers: int | None = None,
    config: EngineConfig | None = None,
) -> list[AssessmentResult]:
    """
    Assess many asteroids, isolating per-item failures.

    A failed item yields a ``DegradedAssessment`` and the batch continues.
    Each item gets its own generator spawned from ``seed``, so results do not
    depend on ``max_workers`` or completion order.

    Args:
        asteroids: Asteroid records or mappings
        encounter_date: Encounter epoch shared by every item
        num_simulations: Monte Carlo samples per item
        seed: Root seed for the per-item generators
        max_workers: Thread pool size; None runs sequentially
        config: Engine bounds (None for defaults)

    Returns:
        One result per item, sorted by ``sort_score`` descending
    """
    config = config or DEFAULT_CONFIG
    items = list(asteroids)
    if len(items) > config.max_batch_size:
        logger.warning("Batch of %d asteroids truncated to %d", len(items), config.max_batch_size)
        items = items[:config.max_batch_size]

    logger.info("Assessing batch of %d asteroids", len(items))
    child_seeds = np.random.SeedSequence(seed).spawn(len(items))

    def assess(index: int) -> RiskAssessment:
        return assess_risk(
            items[index],
            encounter_date,
            num_simulations,
            rng=np.random.default_rng(child_seeds[index]),
            config=config,
        )

    results: list[AssessmentResult | None] = [None] * len(items)
    if max_workers is None:
        for index, item in enumerate(items):
            try:
                results[index] = assess(index)
            except _ITEM_ERRORS as e:
                logger.warning("Risk assessment failed for %s: %s", _item_name(item), e)
                results[index] = _degraded(item, e, config)
    else:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = {executor.submit(assess, index): index for index in range(len(items))}
            for future in as_completed(futures):
                index = futures[future]
                try:
                    results[index] = future.result()
                except _ITEM_ERRORS as e:
                    logger.warning("Risk assessment failed for %s: %s", _item_name(items[index]), e)
                    results[index] = _degraded(items[index], e, config)

    return sorted(results, key=lambda result: result.sort_score, reverse=True)

"""Torino Impact Hazard Scale classification.

The level (0-10) combines impact probability with kinetic energy. Levels are
assigned by an ordered rule table: the first rule whose predicate holds wins.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import NamedTuple

from neorisk.core.energy import estimate_impact_energy
from neorisk.core.errors import ValidationError
from neorisk.utils.constants import DEFAULT_DENSITY_KG_M3

logger = logging.getLogger(__name__)


class TorinoLevel(NamedTuple):
    level: int
    color: str
    zone: str
    description: str


TORINO_SCALE: dict[int, TorinoLevel] = {
    0: TorinoLevel(0, "white", "No Hazard",
                   "The likelihood of a collision is zero, or is so low as to be effectively zero. "
                   "Also applies to small objects that would disintegrate in the atmosphere."),
    1: TorinoLevel(1, "green", "Normal",
                   "A routine discovery in which a pass near Earth is predicted that poses no unusual "
                   "level of danger. New observations very likely will lead to re-assignment to Level 0."),
    2: TorinoLevel(2, "yellow", "Meriting Attention",
                   "A discovery which may become routine with further observations. An encounter is "
                   "possible that would cause localized damage."),
    3: TorinoLevel(3, "yellow", "Meriting Attention",
                   "A close encounter, meriting attention by astronomers. Current calculations give a 1% "
                   "or greater chance of collision capable of localized destruction."),
    4: TorinoLevel(4, "yellow", "Meriting Attention",
                   "A close encounter, meriting attention by astronomers. A >1% chance of collision "
                   "capable of regional devastation."),
    5: TorinoLevel(5, "orange", "Threatening",
                   "A close encounter posing a serious, but still uncertain threat of regional "
                   "devastation. Attention by astronomers is required."),
    6: TorinoLevel(6, "orange", "Threatening",
                   "A close encounter by a large object posing a serious but still uncertain threat of a "
                   "global catastrophe. Attention by astronomers is warranted."),
    7: TorinoLevel(7, "orange", "Threatening",
                   "A very close encounter by a large object, posing an unprecedented but still uncertain "
                   "threat of a global catastrophe."),
    8: TorinoLevel(8, "red", "Certain Collision",
                   "A collision is certain, capable of causing localized destruction for an impact over "
                   "land or a tsunami if close offshore."),
    9: TorinoLevel(9, "red", "Certain Collision",
                   "A collision is certain, capable of causing unprecedented regional devastation or a "
                   "major tsunami if impacting ocean."),
    10: TorinoLevel(10, "red", "Certain Collision",
                    "A collision is certain, capable of causing global climatic catastrophe that may "
                    "threaten civilization as we know it."),
}

# Energy thresholds in megatons TNT
ENERGY_LOCAL_MT = 0.001
ENERGY_REGIONAL_MT = 1.0
ENERGY_GLOBAL_MT = 1000.0

CERTAIN_PROBABILITY = 0.99
THREATENING_PROBABILITY = 0.01
LIKELY_PROBABILITY = 0.5
ATTENTION_PROBABILITY = 0.001
NOTABLE_PROBABILITY = 0.0001

_COLOR_HEX = {
    "white": "#FFFFFF",
    "green": "#00FF00",
    "yellow": "#FFFF00",
    "orange": "#FFA500",
    "red": "#FF0000",
}

Rule = Callable[[float, float], bool]

# (predicate(probability, energy_mt), level), evaluated top to bottom.
TORINO_RULES: tuple[tuple[Rule, int], ...] = (
    (lambda p, e: e < ENERGY_LOCAL_MT, 0),
    (lambda p, e: p >= CERTAIN_PROBABILITY and e >= ENERGY_GLOBAL_MT, 10),
    (lambda p, e: p >= CERTAIN_PROBABILITY and e >= ENERGY_REGIONAL_MT, 9),
    (lambda p, e: p >= CERTAIN_PROBABILITY, 8),
    (lambda p, e: p >= THREATENING_PROBABILITY and e >= ENERGY_GLOBAL_MT and p >= LIKELY_PROBABILITY, 7),
    (lambda p, e: p >= THREATENING_PROBABILITY and e >= ENERGY_GLOBAL_MT, 6),
    (lambda p, e: p >= THREATENING_PROBABILITY and e >= ENERGY_REGIONAL_MT, 5),
    (lambda p, e: p >= THREATENING_PROBABILITY, 4),
    (lambda p, e: p >= ATTENTION_PROBABILITY and e >= ENERGY_REGIONAL_MT, 4),
    (lambda p, e: p >= ATTENTION_PROBABILITY, 3),
    (lambda p, e: p >= NOTABLE_PROBABILITY and e >= ENERGY_REGIONAL_MT, 3),
    (lambda p, e: p >= NOTABLE_PROBABILITY, 2),
    (lambda p, e: p > 0, 1),
    (lambda p, e: True, 0),
)


@dataclass
class TorinoResult:
    """Torino classification for one object.

    The size fields are only populated by ``calculate_from_parameters``.
    """

    level: int
    color: str
    zone: str
    description: str
    recommendation: str
    impact_probability: float
    energy_mt: float
    diameter_km: float | None = None
    velocity_km_s: float | None = None
    mass_kg: float | None = None
    energy_joules: float | None = None

    @property
    def hex_color(self) -> str:
        return get_scale_color(self.level)


def _check_level(level: int) -> None:
    if isinstance(level, bool) or level not in TORINO_SCALE:
        raise ValidationError(f"Torino level must be an integer 0-10, got {level!r}")


def torino_level(impact_probability: float, energy_mt: float) -> int:
    """Integer Torino level from the rule table (no input validation)."""
    for predicate, level in TORINO_RULES:
        if predicate(impact_probability, energy_mt):
            return level
    return 0


def calculate_torino_scale(impact_probability: float, energy_mt: float) -> TorinoResult:
    """
    Classify an object on the Torino scale.

    Args:
        impact_probability: Probability of impact, in [0, 1]
        energy_mt: Kinetic energy in megatons TNT, non-negative

    Returns:
        TorinoResult with level, colour, zone, description and recommendation

    Raises:
        ValidationError: If probability is outside [0, 1] or energy is negative
    """
    if not 0.0 <= impact_probability <= 1.0:
        raise ValidationError(f"Impact probability must be between 0 and 1, got {impact_probability}")
    if not energy_mt >= 0.0:
        raise ValidationError(f"Energy must be non-negative, got {energy_mt}")

    level = torino_level(impact_probability, energy_mt)
    info = TORINO_SCALE[level]
    logger.debug("Torino level %d (P=%.3e, E=%.3g MT)", level, impact_probability, energy_mt)
    return TorinoResult(
        level=level,
        color=info.color,
        zone=info.zone,
        description=info.description,
        recommendation=get_recommendation(level),
        impact_probability=impact_probability,
        energy_mt=energy_mt,
    )


def calculate_from_parameters(
    impact_probability: float,
    diameter_km: float,
    velocity_km_s: float,
    density: float = DEFAULT_DENSITY_KG_M3,
) -> TorinoResult:
    """Classify from physical parameters, deriving kinetic energy first."""
    energy = estimate_impact_energy(diameter_km, velocity_km_s, density)
    result = calculate_torino_scale(impact_probability, energy.energy_megatons)
    result.diameter_km = diameter_km
    result.velocity_km_s = velocity_km_s
    result.mass_kg = energy.mass_kg
    result.energy_joules = energy.energy_joules
    return result


def get_recommendation(level: int) -> str:
    """Advisory text for a Torino level."""
    _check_level(level)
    if level == 0:
        return "No action required. Object poses no threat."
    elif level == 1:
        return "Continue routine observations. Object will likely be downgraded to level 0."
    elif level <= 4:
        return "Monitor closely. Additional observations needed to refine orbital parameters."
    elif level <= 7:
        return ("URGENT: Government agencies should be notified. Continuous monitoring required. "
                "Begin contingency planning.")
    else:
        return ("CRITICAL: Collision is certain. Immediate government action required for civil "
                "defense and possible deflection mission.")


def get_scale_color(level: int) -> str:
    """Hex display colour for a Torino level."""
    _check_level(level)
    return _COLOR_HEX[TORINO_SCALE[level].color]


def get_all_scale_levels() -> list[TorinoLevel]:
    return [TORINO_SCALE[level] for level in sorted(TORINO_SCALE)]

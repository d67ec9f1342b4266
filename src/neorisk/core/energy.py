"""Kinetic impact energy of a spherical impactor."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum

from neorisk.core.errors import ValidationError
from neorisk.utils.constants import DEFAULT_DENSITY_KG_M3, HIROSHIMA_KILOTONS, JOULES_PER_MEGATON

logger = logging.getLogger(__name__)


class ImpactSeverity(Enum):
    """Qualitative damage band, keyed on energy in megatons TNT."""
    LOCAL = "local"
    CITY_DESTROYER = "city_destroyer"
    REGIONAL = "regional"
    CONTINENTAL = "continental"
    MASS_EXTINCTION = "mass_extinction"
    PLANET_STERILIZING = "planet_sterilizing"


# Upper bound (exclusive, MT) of each band; the last band is open-ended.
_SEVERITY_BANDS: tuple[tuple[float, ImpactSeverity, str], ...] = (
    (0.001, ImpactSeverity.LOCAL, "Local damage (meteor-class)"),
    (0.1, ImpactSeverity.CITY_DESTROYER, "City destroyer (Tunguska-class)"),
    (10.0, ImpactSeverity.REGIONAL, "Regional devastation"),
    (1000.0, ImpactSeverity.CONTINENTAL, "Continental-scale damage"),
    (100000.0, ImpactSeverity.MASS_EXTINCTION, "Mass extinction event"),
    (math.inf, ImpactSeverity.PLANET_STERILIZING, "Planet-sterilizing impact"),
)


@dataclass
class ImpactEnergy:
    energy_joules: float
    energy_megatons: float
    hiroshima_equivalent: int   # whole 15 kt bombs, rounded half up
    mass_kg: float
    severity: ImpactSeverity
    description: str


def classify_energy(energy_mt: float) -> tuple[ImpactSeverity, str]:
    """Map an energy in megatons to its severity band and description."""
    for upper, severity, description in _SEVERITY_BANDS:
        if energy_mt < upper:
            return severity, description
    return _SEVERITY_BANDS[-1][1], _SEVERITY_BANDS[-1][2]


def impactor_mass_kg(diameter_km: float, density: float = DEFAULT_DENSITY_KG_M3) -> float:
    """Mass of a homogeneous sphere of the given diameter, in kg."""
    radius_m = diameter_km * 1000.0 / 2.0
    return (4.0 / 3.0) * math.pi * radius_m ** 3 * density


def estimate_impact_energy(
    diameter_km: float,
    velocity_km_s: float,
    density: float = DEFAULT_DENSITY_KG_M3,
) -> ImpactEnergy:
    """
    Estimate the kinetic energy released by an impact.

    Args:
        diameter_km: Impactor diameter in km
        velocity_km_s: Impact velocity in km/s
        density: Bulk density in kg/m³ (default 2500, rocky)

    Returns:
        ImpactEnergy with joules, megatons TNT, Hiroshima multiple and severity band

    Raises:
        ValidationError: If diameter or velocity is negative or not finite, or density is not positive
    """
    if not math.isfinite(diameter_km) or diameter_km < 0:
        raise ValidationError(f"Diameter must be a non-negative number, got {diameter_km}")
    if not math.isfinite(velocity_km_s) or velocity_km_s < 0:
        raise ValidationError(f"Velocity must be a non-negative number, got {velocity_km_s}")
    if not math.isfinite(density) or density <= 0:
        raise ValidationError(f"Density must be positive, got {density}")

    mass = impactor_mass_kg(diameter_km, density)
    velocity_m_s = velocity_km_s * 1000.0
    energy_joules = 0.5 * mass * velocity_m_s ** 2
    energy_mt = energy_joules / JOULES_PER_MEGATON
    severity, description = classify_energy(energy_mt)

    logger.debug("Impact energy: D=%.4f km v=%.2f km/s -> %.4g MT (%s)",
                 diameter_km, velocity_km_s, energy_mt, severity.value)
    return ImpactEnergy(
        energy_joules=energy_joules,
        energy_megatons=energy_mt,
        hiroshima_equivalent=int(math.floor(energy_mt * 1000.0 / HIROSHIMA_KILOTONS + 0.5)),
        mass_kg=mass,
        severity=severity,
        description=description,
    )

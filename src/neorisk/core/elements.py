"""Keplerian orbital elements and asteroid records.

Elements are supplied by an external source (see ``neorisk.data.sbdb``) and
are never mutated by the engine.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, fields
from typing import Any

from neorisk.core.errors import ValidationError

logger = logging.getLogger(__name__)

# Accepted spellings for each element, in lookup order.
_ELEMENT_KEYS: dict[str, tuple[str, ...]] = {
    "semi_major_axis_au": ("semi_major_axis_au", "semiMajorAxis", "a"),
    "eccentricity": ("eccentricity", "e"),
    "inclination_deg": ("inclination_deg", "inclination", "i"),
    "longitude_asc_node_deg": ("longitude_asc_node_deg", "longitudeAscNode", "om"),
    "arg_perihelion_deg": ("arg_perihelion_deg", "argPerihelion", "w"),
    "mean_anomaly_deg": ("mean_anomaly_deg", "meanAnomaly", "ma"),
    "epoch_jd": ("epoch_jd", "epoch"),
}


def _lookup(data: Mapping[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = data.get(key)
        if value is not None and value != "":
            return value
    return None


def _as_float(value: Any, name: str) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(f"{name} must be numeric, got {value!r}") from None
    return result


@dataclass(frozen=True)
class OrbitalElements:
    """Heliocentric ecliptic Keplerian elements.

    Attributes:
        semi_major_axis_au: Semi-major axis a in AU (> 0).
        eccentricity: Eccentricity e in [0, 1).
        inclination_deg: Inclination i in degrees.
        longitude_asc_node_deg: Longitude of the ascending node in degrees.
        arg_perihelion_deg: Argument of perihelion in degrees.
        mean_anomaly_deg: Mean anomaly M0 at epoch in degrees.
        epoch_jd: Epoch of the elements as a Julian Date.
    """

    semi_major_axis_au: float
    eccentricity: float
    inclination_deg: float
    longitude_asc_node_deg: float
    arg_perihelion_deg: float
    mean_anomaly_deg: float
    epoch_jd: float

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if not math.isfinite(value):
                raise ValidationError(f"{f.name} must be finite, got {value}")
        if self.semi_major_axis_au <= 0:
            raise ValidationError(
                f"semi_major_axis_au must be positive, got {self.semi_major_axis_au}"
            )
        if not 0.0 <= self.eccentricity < 1.0:
            raise ValidationError(
                f"eccentricity must be in [0, 1) for elliptical orbits, got {self.eccentricity}"
            )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> OrbitalElements:
        """Build elements from a mapping.

        Accepts snake_case field names, the camelCase names used by the web
        API (``semiMajorAxis``, ``longitudeAscNode``, ...) and SBDB short
        names (``a``, ``e``, ``i``, ``om``, ``w``, ``ma``, ``epoch``).

        Raises:
            ValidationError: If a required element is missing or invalid.
        """
        if not isinstance(data, Mapping):
            raise ValidationError(f"Orbital elements must be a mapping, got {type(data).__name__}")

        values: dict[str, float] = {}
        missing: list[str] = []
        for name, keys in _ELEMENT_KEYS.items():
            raw = _lookup(data, keys)
            if raw is None:
                missing.append(name)
                continue
            values[name] = _as_float(raw, name)

        if missing:
            raise ValidationError(f"Missing orbital elements: {', '.join(missing)}")
        return cls(**values)

    def to_dict(self) -> dict[str, float]:
        """Return the elements keyed by the web API's camelCase names."""
        return {
            "semiMajorAxis": self.semi_major_axis_au,
            "eccentricity": self.eccentricity,
            "inclination": self.inclination_deg,
            "longitudeAscNode": self.longitude_asc_node_deg,
            "argPerihelion": self.arg_perihelion_deg,
            "meanAnomaly": self.mean_anomaly_deg,
            "epoch": self.epoch_jd,
        }

    @property
    def perihelion_au(self) -> float:
        return self.semi_major_axis_au * (1.0 - self.eccentricity)

    @property
    def aphelion_au(self) -> float:
        return self.semi_major_axis_au * (1.0 + self.eccentricity)


def coerce_elements(value: Any) -> OrbitalElements:
    """Turn elements, a mapping, or a record carrying elements into ``OrbitalElements``.

    Records are objects with an ``orbital_elements`` attribute or mappings
    with an ``orbitalElements`` key.

    Raises:
        ValidationError: If no usable elements can be found.
    """
    if isinstance(value, OrbitalElements):
        return value
    if value is None:
        raise ValidationError("Orbital elements are missing")
    if isinstance(value, Mapping):
        if "orbitalElements" in value or "orbital_elements" in value:
            return coerce_elements(value.get("orbitalElements", value.get("orbital_elements")))
        return OrbitalElements.from_dict(value)
    if hasattr(value, "orbital_elements"):
        return coerce_elements(value.orbital_elements)
    raise ValidationError(f"Cannot read orbital elements from {type(value).__name__}")


@dataclass(frozen=True)
class ElementUncertainty:
    """One-sigma uncertainty of each orbital element (same units as the elements)."""

    semi_major_axis_au: float = 0.0001
    eccentricity: float = 0.00001
    inclination_deg: float = 0.01
    longitude_asc_node_deg: float = 0.01
    arg_perihelion_deg: float = 0.01
    mean_anomaly_deg: float = 0.1

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if not math.isfinite(value) or value < 0:
                raise ValidationError(f"Uncertainty {f.name} must be a non-negative number, got {value}")


DEFAULT_UNCERTAINTY = ElementUncertainty()

# Mean J2000 elements, heliocentric ecliptic. Published tables give the mean
# longitude L and longitude of perihelion w~; here w = w~ - node and M = L - w~.
EARTH_ELEMENTS = OrbitalElements(
    semi_major_axis_au=1.00000261,
    eccentricity=0.01671123,
    inclination_deg=0.00005,
    longitude_asc_node_deg=-11.26064,
    arg_perihelion_deg=114.19832,
    mean_anomaly_deg=-2.47311,
    epoch_jd=2451545.0,
)

JUPITER_ELEMENTS = OrbitalElements(
    semi_major_axis_au=5.20288700,
    eccentricity=0.04838624,
    inclination_deg=1.30439695,
    longitude_asc_node_deg=100.47390909,
    arg_perihelion_deg=-85.74542926,
    mean_anomaly_deg=19.66796068,
    epoch_jd=2451545.0,
)


def _optional_float(data: Mapping[str, Any], keys: tuple[str, ...]) -> float | None:
    raw = _lookup(data, keys)
    if raw is None:
        return None
    value = _as_float(raw, keys[0])
    return value if math.isfinite(value) else None


@dataclass(frozen=True)
class Asteroid:
    """An asteroid record as consumed by the risk engine.

    Attributes:
        name: Display name or designation.
        is_hazardous: Potentially Hazardous Asteroid flag.
        diameter_km: Estimated diameter in km, if known.
        absolute_magnitude: Absolute magnitude H, if known.
        miss_distance_km: Known close-approach miss distance in km.
        relative_velocity_km_s: Known Earth-relative velocity in km/s.
        orbital_elements: Keplerian elements, if available.
    """

    name: str
    is_hazardous: bool = False
    diameter_km: float | None = None
    absolute_magnitude: float | None = None
    miss_distance_km: float | None = None
    relative_velocity_km_s: float | None = None
    orbital_elements: OrbitalElements | None = None

    def __post_init__(self) -> None:
        # Accept mappings here too; anything else must already be OrbitalElements
        if self.orbital_elements is not None and not isinstance(self.orbital_elements, OrbitalElements):
            if not isinstance(self.orbital_elements, Mapping):
                raise ValidationError(
                    f"orbital_elements must be OrbitalElements or a mapping, "
                    f"got {type(self.orbital_elements).__name__}"
                )
            object.__setattr__(self, "orbital_elements", OrbitalElements.from_dict(self.orbital_elements))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Asteroid:
        """Build an asteroid from a mapping using API or snake_case keys.

        ``orbitalElements`` may be ``None``; invalid elements raise.

        Raises:
            ValidationError: If a present field has an invalid value.
        """
        if not isinstance(data, Mapping):
            raise ValidationError(f"Asteroid must be a mapping, got {type(data).__name__}")

        raw_elements = data.get("orbitalElements", data.get("orbital_elements"))
        elements = None if raw_elements is None else coerce_elements(raw_elements)

        hazardous = _lookup(data, ("is_hazardous", "isHazardous", "isPHA", "pha"))
        if isinstance(hazardous, str):
            hazardous = hazardous.strip().upper() in ("Y", "YES", "TRUE", "1")

        return cls(
            name=str(_lookup(data, ("name", "designation", "nasaId", "spkId")) or "unknown"),
            is_hazardous=bool(hazardous),
            diameter_km=_optional_float(data, ("diameter_km", "diameter")),
            absolute_magnitude=_optional_float(data, ("absolute_magnitude", "absoluteMagnitude", "H")),
            miss_distance_km=_optional_float(data, ("miss_distance_km", "missDistanceKm")),
            relative_velocity_km_s=_optional_float(
                data, ("relative_velocity_km_s", "relativeVelocity", "relativeVelocityKmS")
            ),
            orbital_elements=elements,
        )

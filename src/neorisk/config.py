"""Engine configuration.

Resource bounds and assumed physical defaults for risk assessment. The core
functions take an ``EngineConfig`` explicitly; ``None`` means the defaults.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from neorisk.utils.constants import (
    DEFAULT_ALBEDO,
    DEFAULT_DENSITY_KG_M3,
    DEFAULT_IMPACT_VELOCITY_KM_S,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineConfig:
    """Bounds that keep simulation latency predictable.

    Attributes:
        max_simulations: Hard cap on Monte Carlo samples per assessment.
        max_batch_size: Maximum asteroids assessed in one batch call.
        simulation_batch_size: Samples drawn between cancellation checks.
        albedo: Geometric albedo assumed for diameter estimates.
        density_kg_m3: Bulk density used for impact energy.
        default_impact_velocity_km_s: Velocity used when none can be derived.
    """

    max_simulations: int = 5000
    max_batch_size: int = 100
    simulation_batch_size: int = 1000
    albedo: float = DEFAULT_ALBEDO
    density_kg_m3: float = DEFAULT_DENSITY_KG_M3
    default_impact_velocity_km_s: float = DEFAULT_IMPACT_VELOCITY_KM_S

    def __post_init__(self) -> None:
        for name in ("max_simulations", "max_batch_size", "simulation_batch_size"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be at least 1, got {getattr(self, name)}")
        if not 0.0 < self.albedo <= 1.0:
            raise ValueError(f"albedo must be in (0, 1], got {self.albedo}")

    @classmethod
    def from_env(cls) -> EngineConfig:
        """Build a config from ``NEORISK_*`` environment variables.

        Unset variables keep their defaults.

        Raises:
            ValueError: If a variable is set but not a positive integer.
        """
        overrides: dict[str, int] = {}
        for field_name, env_name in (
            ("max_simulations", "NEORISK_MAX_SIMULATIONS"),
            ("max_batch_size", "NEORISK_MAX_BATCH_SIZE"),
            ("simulation_batch_size", "NEORISK_SIMULATION_BATCH_SIZE"),
        ):
            raw = os.environ.get(env_name)
            if raw is None or not raw.strip():
                continue
            try:
                overrides[field_name] = int(raw)
            except ValueError:
                logger.error("Invalid %s: %r", env_name, raw)
                raise ValueError(f"{env_name} must be an integer, got {raw!r}") from None

        logger.debug("EngineConfig overrides from environment: %s", overrides)
        return cls(**overrides)


DEFAULT_CONFIG = EngineConfig()

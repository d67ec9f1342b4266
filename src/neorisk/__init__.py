"""
neorisk — Near-Earth asteroid orbit propagation and impact-risk assessment.

Two-body heliocentric propagation, Earth closest-approach search, Monte
Carlo impact probability, impact energy, Torino scale classification and
composite risk scoring.
"""

from __future__ import annotations

__version__ = "0.1.0.dev0"

from neorisk.config import EngineConfig
from neorisk.core.elements import Asteroid, ElementUncertainty, OrbitalElements, DEFAULT_UNCERTAINTY
from neorisk.core.errors import ComputationError, KeplerConvergenceWarning, SimulationCancelled, ValidationError
from neorisk.core.timescale import date_to_julian_date, julian_date_to_date
from neorisk.core.propagation import (
    StateVector,
    calculate_batch_positions,
    kepler_to_cartesian,
    solve_kepler_equation,
)
from neorisk.core.trajectory import (
    ClosestApproach,
    calculate_position,
    celestial_bodies,
    find_closest_approach,
    propagate_trajectory,
)
from neorisk.core.probability import SimulationResult, run_extended_simulation, run_simulation
from neorisk.core.energy import ImpactEnergy, estimate_impact_energy
from neorisk.core.torino import TorinoResult, calculate_from_parameters, calculate_torino_scale
from neorisk.core.risk import (
    DegradedAssessment,
    RiskAssessment,
    assess_risk,
    batch_assess_risk,
    calculate_risk_score,
)
from neorisk.data.sbdb import SBDBClient

__all__ = [
    "__version__",
    "EngineConfig",
    "Asteroid",
    "ElementUncertainty",
    "OrbitalElements",
    "DEFAULT_UNCERTAINTY",
    "ComputationError",
    "KeplerConvergenceWarning",
    "SimulationCancelled",
    "ValidationError",
    "date_to_julian_date",
    "julian_date_to_date",
    "StateVector",
    "calculate_batch_positions",
    "kepler_to_cartesian",
    "solve_kepler_equation",
    "ClosestApproach",
    "calculate_position",
    "celestial_bodies",
    "find_closest_approach",
    "propagate_trajectory",
    "SimulationResult",
    "run_extended_simulation",
    "run_simulation",
    "ImpactEnergy",
    "estimate_impact_energy",
    "TorinoResult",
    "calculate_from_parameters",
    "calculate_torino_scale",
    "DegradedAssessment",
    "RiskAssessment",
    "assess_risk",
    "batch_assess_risk",
    "calculate_risk_score",
    "SBDBClient",
]

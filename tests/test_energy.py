"""Tests for impact energy estimation."""

from __future__ import annotations

import math

import pytest

from neorisk.core.energy import ImpactSeverity, classify_energy, estimate_impact_energy, impactor_mass_kg
from neorisk.core.errors import ValidationError


class TestEstimateImpactEnergy:
    """Test kinetic energy of a spherical impactor."""

    def test_one_km_at_20_km_s(self):
        result = estimate_impact_energy(1.0, 20.0)
        assert result.mass_kg == pytest.approx(1.308997e12, rel=1e-6)
        assert result.energy_joules == pytest.approx(2.617994e20, rel=1e-6)
        assert result.energy_megatons == pytest.approx(62571.6, rel=1e-5)
        assert result.severity is ImpactSeverity.MASS_EXTINCTION
        assert result.description == "Mass extinction event"

    def test_hiroshima_equivalent_rounded(self):
        result = estimate_impact_energy(0.05, 17.0)
        expected = math.floor(result.energy_megatons * 1000.0 / 15.0 + 0.5)
        assert result.hiroshima_equivalent == expected
        assert isinstance(result.hiroshima_equivalent, int)

    def test_density_scales_linearly(self):
        light = estimate_impact_energy(0.2, 15.0, density=1000.0)
        heavy = estimate_impact_energy(0.2, 15.0, density=3000.0)
        assert heavy.energy_joules == pytest.approx(3.0 * light.energy_joules)

    def test_zero_size_is_local(self):
        result = estimate_impact_energy(0.0, 20.0)
        assert result.energy_joules == 0.0
        assert result.hiroshima_equivalent == 0
        assert result.severity is ImpactSeverity.LOCAL

    @pytest.mark.parametrize(
        "diameter,velocity,density",
        [(-0.1, 20.0, 2500.0), (0.1, -1.0, 2500.0), (0.1, 20.0, 0.0), (float("nan"), 20.0, 2500.0)],
    )
    def test_invalid_inputs(self, diameter, velocity, density):
        with pytest.raises(ValidationError):
            estimate_impact_energy(diameter, velocity, density)

    def test_mass_helper(self):
        assert impactor_mass_kg(0.002, 1000.0) == pytest.approx(4.0 / 3.0 * math.pi * 1000.0)


class TestSeverityBands:
    """Test the six qualitative energy bands."""

    @pytest.mark.parametrize(
        "energy_mt,severity",
        [
            (0.0, ImpactSeverity.LOCAL),
            (0.0009, ImpactSeverity.LOCAL),
            (0.001, ImpactSeverity.CITY_DESTROYER),
            (0.05, ImpactSeverity.CITY_DESTROYER),
            (0.1, ImpactSeverity.REGIONAL),
            (9.99, ImpactSeverity.REGIONAL),
            (10.0, ImpactSeverity.CONTINENTAL),
            (999.0, ImpactSeverity.CONTINENTAL),
            (1000.0, ImpactSeverity.MASS_EXTINCTION),
            (99999.0, ImpactSeverity.MASS_EXTINCTION),
            (100000.0, ImpactSeverity.PLANET_STERILIZING),
            (1e9, ImpactSeverity.PLANET_STERILIZING),
        ],
    )
    def test_band_edges(self, energy_mt, severity):
        assert classify_energy(energy_mt)[0] is severity

    def test_descriptions(self):
        assert classify_energy(0.01)[1] == "City destroyer (Tunguska-class)"
        assert classify_energy(1e6)[1] == "Planet-sterilizing impact"

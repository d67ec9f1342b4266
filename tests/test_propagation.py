"""Tests for two-body propagation and the Kepler solver."""
from __future__ import annotations

import math
import warnings

import numpy as np
import pytest

from neorisk.core.elements import EARTH_ELEMENTS, OrbitalElements
from neorisk.core.errors import KeplerConvergenceWarning, ValidationError
from neorisk.core.propagation import (
    calculate_batch_positions,
    calculate_velocity,
    calculate_velocity_array,
    earth_position,
    eccentric_to_true_anomaly,
    element_columns,
    kepler_to_cartesian,
    kepler_to_cartesian_array,
    mean_motion,
    orbital_radius,
    propagate_mean_anomaly,
    solve_kepler_equation,
    solve_kepler_equation_array,
    state_at,
)
from neorisk.core.trajectory import calculate_position
from neorisk.utils.constants import AU_KM, SECONDS_PER_DAY, SUN_MU_AU3_DAY2


@pytest.fixture
def elements() -> OrbitalElements:
    return OrbitalElements(
        semi_major_axis_au=1.2,
        eccentricity=0.3,
        inclination_deg=5.0,
        longitude_asc_node_deg=50.0,
        arg_perihelion_deg=80.0,
        mean_anomaly_deg=10.0,
        epoch_jd=2451545.0,
    )


class TestKeplerSolver:
    """Test the scalar Newton-Raphson solver."""

    @pytest.mark.parametrize("e", [0.0, 0.1, 0.5, 0.79])
    def test_zero_mean_anomaly_low_e(self, e):
        """M = 0 is already a root when starting from E = M."""
        assert solve_kepler_equation(0.0, e) == 0.0

    @pytest.mark.parametrize("e", [0.8, 0.9, 0.99])
    def test_zero_mean_anomaly_high_e(self, e):
        """High eccentricity starts from pi and still lands on E = 0."""
        assert solve_kepler_equation(0.0, e) == pytest.approx(0.0, abs=1e-9)

    @pytest.mark.parametrize("m,e", [(1.0, 0.5), (2.5, 0.2), (0.1, 0.95), (5.0, 0.85)])
    def test_satisfies_equation(self, m, e):
        big_e = solve_kepler_equation(m, e)
        assert big_e - e * math.sin(big_e) == pytest.approx(m, abs=1e-9)

    def test_circular_orbit_identity(self):
        assert solve_kepler_equation(1.234, 0.0) == pytest.approx(1.234, abs=1e-12)

    def test_non_convergence_warns_and_returns_estimate(self):
        with pytest.warns(KeplerConvergenceWarning):
            big_e = solve_kepler_equation(2.0, 0.9, max_iter=1)
        assert math.isfinite(big_e)

    @pytest.mark.parametrize("e", [1.0, 1.5, -0.01, float("nan")])
    def test_invalid_eccentricity(self, e):
        with pytest.raises(ValidationError):
            solve_kepler_equation(1.0, e)

    def test_invalid_settings(self):
        with pytest.raises(ValidationError):
            solve_kepler_equation(1.0, 0.1, tol=0.0)
        with pytest.raises(ValidationError):
            solve_kepler_equation(1.0, 0.1, max_iter=0)


class TestKeplerSolverArray:
    """Test the vectorized solver used by batch paths."""

    def test_matches_scalar(self):
        m = np.array([0.0, 0.5, 1.0, 2.0, 3.0, 6.0])
        e = 0.3
        big_e, converged = solve_kepler_equation_array(m, e)
        assert converged.all()
        expected = [solve_kepler_equation(float(x), e) for x in m]
        np.testing.assert_allclose(big_e, expected, atol=1e-10)

    def test_broadcasts_eccentricity(self):
        big_e, converged = solve_kepler_equation_array(1.0, np.array([0.1, 0.5, 0.9]))
        assert big_e.shape == (3,)
        assert converged.all()

    def test_zero_mean_anomaly(self):
        big_e, _ = solve_kepler_equation_array(np.zeros(4), np.array([0.0, 0.5, 0.8, 0.95]))
        np.testing.assert_allclose(big_e, 0.0, atol=1e-9)

    def test_non_converged_mask(self):
        with pytest.warns(KeplerConvergenceWarning):
            _, converged = solve_kepler_equation_array(np.array([2.0]), 0.9, max_iter=1)
        assert not converged[0]


class TestAnomalies:
    """Test anomaly conversions and mean motion."""

    def test_true_anomaly_at_apsides(self):
        assert eccentric_to_true_anomaly(0.0, 0.5) == pytest.approx(0.0)
        assert eccentric_to_true_anomaly(math.pi, 0.5) == pytest.approx(math.pi)

    def test_true_anomaly_circular(self):
        assert eccentric_to_true_anomaly(1.0, 0.0) == pytest.approx(1.0)

    def test_true_anomaly_leads_eccentric(self):
        """On the outbound leg the true anomaly is ahead of the eccentric anomaly."""
        assert eccentric_to_true_anomaly(1.0, 0.5) > 1.0

    def test_radius_at_perihelion_and_aphelion(self):
        assert orbital_radius(2.0, 0.25, 0.0) == pytest.approx(1.5)
        assert orbital_radius(2.0, 0.25, math.pi) == pytest.approx(2.5)

    def test_mean_motion_one_au(self):
        """Gaussian gravitational constant."""
        assert mean_motion(1.0) == pytest.approx(0.01720209895, rel=1e-6)

    def test_mean_anomaly_at_epoch_is_exact(self):
        m = propagate_mean_anomaly(10.0, mean_motion(1.2), 0.0)
        assert float(m) == math.radians(10.0)

    def test_mean_anomaly_normalized(self):
        m = float(propagate_mean_anomaly(-10.0, 0.0, 0.0))
        assert 0.0 <= m < 2 * math.pi
        assert m == pytest.approx(math.radians(350.0))

    def test_mean_anomaly_wraps_after_one_period(self):
        n = float(mean_motion(1.0))
        period = 2 * math.pi / n
        m = float(propagate_mean_anomaly(30.0, n, period))
        assert m == pytest.approx(math.radians(30.0), abs=1e-9)


class TestKeplerToCartesian:
    """Test element -> heliocentric position conversion."""

    def test_propagated_mean_anomaly_at_epoch(self, elements):
        """At dt = 0 the propagated mean anomaly is exactly M0 in radians."""
        state = kepler_to_cartesian(elements, 2451545.0)
        assert state.mean_anomaly_rad == math.radians(10.0)

    @pytest.mark.parametrize("a,e", [(1.0, 0.0), (1.2, 0.3), (2.5, 0.6), (0.8, 0.95)])
    def test_perihelion_radius(self, a, e):
        """M0 = 0 at the epoch puts the body at perihelion, r = a(1 - e)."""
        el = OrbitalElements(a, e, 12.0, 40.0, 70.0, 0.0, 2460000.5)
        state = kepler_to_cartesian(el, 2460000.5)
        assert state.radius_au == pytest.approx(a * (1 - e), rel=1e-10)

    def test_planar_orbit_on_x_axis(self):
        el = OrbitalElements(1.5, 0.2, 0.0, 0.0, 0.0, 0.0, 2451545.0)
        state = kepler_to_cartesian(el, 2451545.0)
        np.testing.assert_allclose(state.position_au, [1.2, 0.0, 0.0], atol=1e-12)

    def test_inclined_orbit_leaves_ecliptic(self, elements):
        positions = [kepler_to_cartesian(elements, 2451545.0 + d).position_au for d in range(0, 400, 50)]
        assert max(abs(p[2]) for p in positions) > 0.01

    def test_position_only(self, elements):
        assert kepler_to_cartesian(elements, 2451600.0).velocity_au_per_day is None

    def test_earth_distance_at_j2000(self):
        """Earth is near perihelion in early January."""
        assert np.linalg.norm(earth_position(2451545.0)) == pytest.approx(0.9833, abs=1e-3)

    def test_earth_longitude_at_j2000(self):
        """The Sun's apparent longitude is ~280.4 deg, so Earth's heliocentric one is ~100.4 deg."""
        x, y, _ = earth_position(2451545.0)
        assert math.degrees(math.atan2(y, x)) == pytest.approx(100.4, abs=0.1)


class TestVelocity:
    """Test heliocentric velocity."""

    def test_vis_viva(self, elements):
        jd = 2451700.0
        r = kepler_to_cartesian(elements, jd).radius_au
        v = np.linalg.norm(calculate_velocity(elements, jd))
        expected = math.sqrt(SUN_MU_AU3_DAY2 * (2.0 / r - 1.0 / elements.semi_major_axis_au))
        assert v == pytest.approx(expected, rel=1e-9)

    def test_circular_speed_at_one_au(self):
        el = OrbitalElements(1.0, 0.0, 0.0, 0.0, 0.0, 0.0, 2451545.0)
        speed_km_s = np.linalg.norm(calculate_velocity(el, 2451545.0)) * AU_KM / SECONDS_PER_DAY
        assert speed_km_s == pytest.approx(29.78, abs=0.01)

    def test_velocity_perpendicular_at_perihelion(self):
        el = OrbitalElements(1.3, 0.4, 7.0, 30.0, 60.0, 0.0, 2451545.0)
        r = kepler_to_cartesian(el, 2451545.0).position_au
        v = calculate_velocity(el, 2451545.0)
        assert np.dot(r, v) == pytest.approx(0.0, abs=1e-12)

    def test_state_at_includes_velocity(self, elements):
        state = state_at(elements, 2451600.0, include_velocity=True)
        np.testing.assert_allclose(state.velocity_au_per_day, calculate_velocity(elements, 2451600.0))


class TestArrayPropagation:
    """Test the broadcasting position/velocity functions."""

    def test_many_times_match_scalar(self, elements):
        jds = np.array([2451545.0, 2451600.0, 2451800.0, 2452500.0])
        positions = kepler_to_cartesian_array(*element_columns(elements), jds)
        velocities = calculate_velocity_array(*element_columns(elements), jds)
        assert positions.shape == (4, 3)
        for k, jd in enumerate(jds):
            np.testing.assert_allclose(positions[k], kepler_to_cartesian(elements, jd).position_au, atol=1e-10)
            np.testing.assert_allclose(velocities[k], calculate_velocity(elements, jd), atol=1e-12)

    def test_many_bodies_one_time(self, elements):
        table = np.array([element_columns(elements), element_columns(EARTH_ELEMENTS)])
        positions = kepler_to_cartesian_array(*table.T, 2451700.0)
        assert positions.shape == (2, 3)
        np.testing.assert_allclose(positions[1], earth_position(2451700.0), atol=1e-12)


class TestBatchPositions:
    """Test the packed float32 Earth-relative position buffer."""

    def test_dtype_and_shape(self, elements):
        packed = calculate_batch_positions([elements, elements, elements], 2451545.0)
        assert packed.dtype == np.float32
        assert packed.shape == (9,)

    def test_matches_geocentric_position(self, elements):
        packed = calculate_batch_positions([elements], "2001-06-01T00:00:00Z")
        expected = calculate_position(elements, "2001-06-01T00:00:00Z").geocentric
        np.testing.assert_allclose(packed, expected, rtol=1e-5, atol=1e-6)

    def test_invalid_entries_stay_at_origin(self, elements):
        """Bad entries default to the origin while the rest are computed."""
        bad_mapping = {"semiMajorAxis": 1.0}
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            packed = calculate_batch_positions([None, elements, bad_mapping, {"orbitalElements": None}], 2451545.0)
        view = packed.reshape(4, 3)
        np.testing.assert_array_equal(view[0], 0.0)
        np.testing.assert_array_equal(view[2], 0.0)
        np.testing.assert_array_equal(view[3], 0.0)
        assert np.linalg.norm(view[1]) > 0.0

    def test_beyond_float32_range_stays_at_origin(self, elements):
        """A position finite in float64 but too large for float32 is not packed as inf."""
        huge = dict(elements.to_dict(), semiMajorAxis=1e300)
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            packed = calculate_batch_positions([huge, elements], 2451600.0)
        view = packed.reshape(2, 3)
        assert np.all(np.isfinite(packed))
        np.testing.assert_array_equal(view[0], 0.0)
        np.testing.assert_allclose(view[1], calculate_batch_positions([elements], 2451600.0), rtol=1e-6)

    def test_integer_too_large_for_float_stays_at_origin(self, elements):
        huge = dict(elements.to_dict(), semiMajorAxis=10**400)
        packed = calculate_batch_positions([huge, elements], 2451600.0)
        view = packed.reshape(2, 3)
        np.testing.assert_array_equal(view[0], 0.0)
        np.testing.assert_allclose(view[1], calculate_batch_positions([elements], 2451600.0), rtol=1e-6)

    def test_accepts_records(self, elements):
        packed = calculate_batch_positions([{"name": "x", "orbitalElements": elements.to_dict()}], 2451545.0)
        direct = calculate_batch_positions([elements], 2451545.0)
        np.testing.assert_array_equal(packed, direct)

    def test_earth_is_at_origin(self):
        packed = calculate_batch_positions([EARTH_ELEMENTS], 2455000.0)
        np.testing.assert_allclose(packed, 0.0, atol=1e-7)

    def test_empty(self):
        packed = calculate_batch_positions([], 2451545.0)
        assert packed.dtype == np.float32
        assert packed.size == 0

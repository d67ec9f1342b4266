"""Two-body Keplerian propagation in the heliocentric ecliptic frame."""
from __future__ import annotations

import logging
import math
import warnings
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np

logger = logging.getLogger(__name__)
from numpy.typing import ArrayLike, NDArray
from scipy.optimize import newton

from neorisk.core.elements import EARTH_ELEMENTS, OrbitalElements, coerce_elements
from neorisk.core.errors import KeplerConvergenceWarning, ValidationError
from neorisk.core.timescale import DateLike, to_julian_date
from neorisk.utils.constants import (
    AU_KM,
    DEG_TO_RAD,
    HIGH_ECCENTRICITY,
    KEPLER_MAX_ITERATIONS,
    KEPLER_TOLERANCE,
    SECONDS_PER_DAY,
    SUN_MU_AU3_DAY2,
    SUN_MU_M3_S2,
)

TWO_PI = 2.0 * math.pi


@dataclass
class StateVector:
    """Heliocentric ecliptic state at one instant.

    Attributes:
        position_au: [x, y, z] position in AU.
        julian_date: Time of this state.
        velocity_au_per_day: [vx, vy, vz] velocity in AU/day, if computed.
        mean_anomaly_rad: Propagated mean anomaly, before the Kepler solve.
        eccentric_anomaly_rad: Eccentric anomaly from the Kepler solve.
        true_anomaly_rad: True anomaly.
    """

    position_au: NDArray[np.float64]  # shape (3,)
    julian_date: float
    velocity_au_per_day: NDArray[np.float64] | None = None  # shape (3,)
    mean_anomaly_rad: float | None = None
    eccentric_anomaly_rad: float | None = None
    true_anomaly_rad: float | None = None

    @property
    def radius_au(self) -> float:
        return float(np.linalg.norm(self.position_au))


def _check_eccentricity(eccentricity: ArrayLike) -> None:
    e = np.asarray(eccentricity, dtype=np.float64)
    if not np.all(np.isfinite(e)) or np.any(e < 0.0) or np.any(e >= 1.0):
        raise ValidationError(
            f"Eccentricity must be in [0, 1); parabolic and hyperbolic orbits are not supported (got {eccentricity})"
        )


def _check_solver_settings(tol: float, max_iter: int) -> None:
    if not tol > 0:
        raise ValidationError(f"Kepler tolerance must be positive, got {tol}")
    if max_iter < 1:
        raise ValidationError(f"Kepler iteration limit must be at least 1, got {max_iter}")


def solve_kepler_equation(
    mean_anomaly: float,
    eccentricity: float,
    tol: float = KEPLER_TOLERANCE,
    max_iter: int = KEPLER_MAX_ITERATIONS,
) -> float:
    """Solve Kepler's equation E - e*sin(E) = M for the eccentric anomaly.

    Newton-Raphson with the analytic derivative, starting from E = M for
    e < 0.8 and from E = pi otherwise.

    Args:
        mean_anomaly: Mean anomaly M (radians).
        eccentricity: Eccentricity e in [0, 1).
        tol: Convergence tolerance on the Newton step (radians).
        max_iter: Maximum number of iterations.

    Returns:
        Eccentric anomaly E (radians). If the iteration does not converge the
        last estimate is returned and a ``KeplerConvergenceWarning`` is issued.

    Raises:
        ValidationError: If e is outside [0, 1) or the solver settings are invalid.
    """
    _check_eccentricity(eccentricity)
    _check_solver_settings(tol, max_iter)

    m = float(mean_anomaly)
    e = float(eccentricity)
    x0 = m if e < HIGH_ECCENTRICITY else math.pi

    root, info = newton(
        lambda ecc_anom: ecc_anom - e * np.sin(ecc_anom) - m,
        x0,
        fprime=lambda ecc_anom: 1.0 - e * np.cos(ecc_anom),
        tol=tol,
        maxiter=max_iter,
        full_output=True,
        disp=False,
    )

    if not info.converged:
        logger.warning(
            "Kepler equation did not converge after %d iterations (M=%.6f, e=%.6f)",
            max_iter, m, e,
        )
        warnings.warn(
            f"Kepler equation did not converge after {max_iter} iterations (M={m}, e={e})",
            KeplerConvergenceWarning,
            stacklevel=2,
        )
    return float(root)


def solve_kepler_equation_array(
    mean_anomaly: ArrayLike,
    eccentricity: ArrayLike,
    tol: float = KEPLER_TOLERANCE,
    max_iter: int = KEPLER_MAX_ITERATIONS,
) -> tuple[NDArray[np.float64], NDArray[np.bool_]]:
    """Vectorized Newton-Raphson solve of Kepler's equation.

    Same iteration and starting guesses as ``solve_kepler_equation``; each
    element stops updating once its step falls below ``tol``.

    Returns:
        Tuple of (eccentric_anomaly, converged_mask), broadcast to a common shape.
    """
    _check_eccentricity(eccentricity)
    _check_solver_settings(tol, max_iter)

    m, e = np.broadcast_arrays(
        np.asarray(mean_anomaly, dtype=np.float64),
        np.asarray(eccentricity, dtype=np.float64),
    )
    ecc_anom = np.where(e < HIGH_ECCENTRICITY, m, np.pi)
    pending = np.ones(ecc_anom.shape, dtype=np.bool_)

    for _ in range(max_iter):
        step = (ecc_anom - e * np.sin(ecc_anom) - m) / (1.0 - e * np.cos(ecc_anom))
        ecc_anom = np.where(pending, ecc_anom - step, ecc_anom)
        pending &= ~(np.abs(step) < tol)
        if not pending.any():
            break

    failed = int(np.count_nonzero(pending))
    if failed:
        logger.warning("Kepler equation did not converge for %d of %d values", failed, pending.size)
        warnings.warn(
            f"Kepler equation did not converge for {failed} of {pending.size} values",
            KeplerConvergenceWarning,
            stacklevel=2,
        )
    return ecc_anom, ~pending


def eccentric_to_true_anomaly(eccentric_anomaly: ArrayLike, eccentricity: ArrayLike) -> Any:
    """True anomaly (radians) from eccentric anomaly, continuous in E."""
    e = np.asarray(eccentricity, dtype=np.float64)
    big_e = np.asarray(eccentric_anomaly, dtype=np.float64)
    beta = e / (1.0 + np.sqrt(1.0 - e * e))
    return big_e + 2.0 * np.arctan2(beta * np.sin(big_e), 1.0 - beta * np.cos(big_e))


def orbital_radius(semi_major_axis_au: ArrayLike, eccentricity: ArrayLike, true_anomaly: ArrayLike) -> Any:
    """Orbital radius r = a(1 - e^2) / (1 + e cos nu) in AU."""
    a = np.asarray(semi_major_axis_au, dtype=np.float64)
    e = np.asarray(eccentricity, dtype=np.float64)
    return a * (1.0 - e * e) / (1.0 + e * np.cos(true_anomaly))


def mean_motion(semi_major_axis_au: ArrayLike) -> Any:
    """Mean motion in rad/day from the Sun's gravitational parameter."""
    a_m = np.asarray(semi_major_axis_au, dtype=np.float64) * AU_KM * 1000.0
    return np.sqrt(SUN_MU_M3_S2 / (a_m * a_m * a_m)) * SECONDS_PER_DAY


def propagate_mean_anomaly(mean_anomaly_deg: ArrayLike, motion_rad_day: ArrayLike, dt_days: ArrayLike) -> Any:
    """Mean anomaly (radians) after ``dt_days``, normalized to [0, 2*pi)."""
    m = np.mod(
        np.asarray(mean_anomaly_deg, dtype=np.float64) * DEG_TO_RAD
        + np.asarray(motion_rad_day) * np.asarray(dt_days),
        TWO_PI,
    )
    # np.mod of a tiny negative value rounds up to exactly 2*pi.
    return np.where(m >= TWO_PI, m - TWO_PI, m)


def _perifocal_basis(
    inclination_deg: ArrayLike, node_deg: ArrayLike, perihelion_deg: ArrayLike
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Unit vectors P (towards perihelion) and Q in the ecliptic frame, shape (..., 3)."""
    inc = np.asarray(inclination_deg, dtype=np.float64) * DEG_TO_RAD
    node = np.asarray(node_deg, dtype=np.float64) * DEG_TO_RAD
    peri = np.asarray(perihelion_deg, dtype=np.float64) * DEG_TO_RAD

    cos_node, sin_node = np.cos(node), np.sin(node)
    cos_i, sin_i = np.cos(inc), np.sin(inc)
    cos_w, sin_w = np.cos(peri), np.sin(peri)

    p_hat = np.stack(
        [
            cos_node * cos_w - sin_node * sin_w * cos_i,
            sin_node * cos_w + cos_node * sin_w * cos_i,
            sin_w * sin_i,
        ],
        axis=-1,
    )
    q_hat = np.stack(
        [
            -cos_node * sin_w - sin_node * cos_w * cos_i,
            -sin_node * sin_w + cos_node * cos_w * cos_i,
            cos_w * sin_i,
        ],
        axis=-1,
    )
    return p_hat, q_hat


def _to_ecliptic(
    x_orbital: ArrayLike,
    y_orbital: ArrayLike,
    inclination_deg: ArrayLike,
    node_deg: ArrayLike,
    perihelion_deg: ArrayLike,
) -> NDArray[np.float64]:
    p_hat, q_hat = _perifocal_basis(inclination_deg, node_deg, perihelion_deg)
    x = np.asarray(x_orbital, dtype=np.float64)[..., np.newaxis]
    y = np.asarray(y_orbital, dtype=np.float64)[..., np.newaxis]
    return x * p_hat + y * q_hat


def _orbital_plane_velocity(semi_major_axis_au: ArrayLike, eccentricity: ArrayLike, true_anomaly: ArrayLike):
    """In-plane velocity components (AU/day) along P and Q."""
    e = np.asarray(eccentricity, dtype=np.float64)
    p = np.asarray(semi_major_axis_au, dtype=np.float64) * (1.0 - e * e)
    speed = np.sqrt(SUN_MU_AU3_DAY2 / p)
    return -speed * np.sin(true_anomaly), speed * (e + np.cos(true_anomaly))


def kepler_to_cartesian(elements: OrbitalElements, target_jd: float) -> StateVector:
    """Heliocentric ecliptic position of a body at ``target_jd``.

    Args:
        elements: Keplerian elements of the body.
        target_jd: Julian Date to evaluate.

    Returns:
        StateVector with position in AU and the anomalies used to reach it.
    """
    a = elements.semi_major_axis_au
    e = elements.eccentricity

    dt = target_jd - elements.epoch_jd
    m = float(propagate_mean_anomaly(elements.mean_anomaly_deg, mean_motion(a), dt))
    ecc_anom = solve_kepler_equation(m, e)
    nu = float(eccentric_to_true_anomaly(ecc_anom, e))
    r = float(orbital_radius(a, e, nu))

    position = _to_ecliptic(
        r * math.cos(nu),
        r * math.sin(nu),
        elements.inclination_deg,
        elements.longitude_asc_node_deg,
        elements.arg_perihelion_deg,
    )
    return StateVector(
        position_au=position,
        julian_date=float(target_jd),
        mean_anomaly_rad=m,
        eccentric_anomaly_rad=ecc_anom,
        true_anomaly_rad=nu,
    )


def calculate_velocity(elements: OrbitalElements, target_jd: float) -> NDArray[np.float64]:
    """Heliocentric ecliptic velocity in AU/day at ``target_jd``."""
    a = elements.semi_major_axis_au
    e = elements.eccentricity

    dt = target_jd - elements.epoch_jd
    m = float(propagate_mean_anomaly(elements.mean_anomaly_deg, mean_motion(a), dt))
    nu = float(eccentric_to_true_anomaly(solve_kepler_equation(m, e), e))
    vx_orb, vy_orb = _orbital_plane_velocity(a, e, nu)

    return _to_ecliptic(
        vx_orb,
        vy_orb,
        elements.inclination_deg,
        elements.longitude_asc_node_deg,
        elements.arg_perihelion_deg,
    )


def state_at(elements: OrbitalElements, target_jd: float, include_velocity: bool = False) -> StateVector:
    """Position, and optionally velocity, of a body at ``target_jd``."""
    state = kepler_to_cartesian(elements, target_jd)
    if include_velocity:
        state.velocity_au_per_day = calculate_velocity(elements, target_jd)
    return state


def element_columns(elements: OrbitalElements) -> tuple[float, ...]:
    """Elements in the positional order taken by the ``*_array`` functions."""
    return (
        elements.semi_major_axis_au,
        elements.eccentricity,
        elements.inclination_deg,
        elements.longitude_asc_node_deg,
        elements.arg_perihelion_deg,
        elements.mean_anomaly_deg,
        elements.epoch_jd,
    )


def _anomalies_array(a, e, mean_anomaly_deg, epoch_jd, target_jd):
    m = propagate_mean_anomaly(mean_anomaly_deg, mean_motion(a), np.asarray(target_jd) - np.asarray(epoch_jd))
    ecc_anom, _ = solve_kepler_equation_array(m, e)
    return eccentric_to_true_anomaly(ecc_anom, e)


def kepler_to_cartesian_array(
    semi_major_axis_au: ArrayLike,
    eccentricity: ArrayLike,
    inclination_deg: ArrayLike,
    node_deg: ArrayLike,
    perihelion_deg: ArrayLike,
    mean_anomaly_deg: ArrayLike,
    epoch_jd: ArrayLike,
    target_jd: ArrayLike,
) -> NDArray[np.float64]:
    """Vectorized ``kepler_to_cartesian``.

    All arguments broadcast against each other, so one body can be evaluated
    at many times or many bodies at one time.

    Returns:
        Positions in AU, shape (..., 3).
    """
    nu = _anomalies_array(semi_major_axis_au, eccentricity, mean_anomaly_deg, epoch_jd, target_jd)
    r = orbital_radius(semi_major_axis_au, eccentricity, nu)
    return _to_ecliptic(r * np.cos(nu), r * np.sin(nu), inclination_deg, node_deg, perihelion_deg)


def calculate_velocity_array(
    semi_major_axis_au: ArrayLike,
    eccentricity: ArrayLike,
    inclination_deg: ArrayLike,
    node_deg: ArrayLike,
    perihelion_deg: ArrayLike,
    mean_anomaly_deg: ArrayLike,
    epoch_jd: ArrayLike,
    target_jd: ArrayLike,
) -> NDArray[np.float64]:
    """Vectorized ``calculate_velocity``; velocities in AU/day, shape (..., 3)."""
    nu = _anomalies_array(semi_major_axis_au, eccentricity, mean_anomaly_deg, epoch_jd, target_jd)
    vx_orb, vy_orb = _orbital_plane_velocity(semi_major_axis_au, eccentricity, nu)
    return _to_ecliptic(vx_orb, vy_orb, inclination_deg, node_deg, perihelion_deg)


def earth_position(target_jd: ArrayLike) -> NDArray[np.float64]:
    """Earth's heliocentric position (AU) from its full Keplerian elements."""
    return kepler_to_cartesian_array(*element_columns(EARTH_ELEMENTS), target_jd)


def calculate_batch_positions(elements_list: Sequence[Any], date: float | DateLike) -> NDArray[np.float32]:
    """Earth-relative positions of many bodies at one epoch, packed for transport.

    Args:
        elements_list: One entry per body: ``OrbitalElements``, a mapping of
            elements, or a record carrying ``orbital_elements`` /
            ``orbitalElements``. ``None`` is allowed.
        date: Julian Date or UTC date.

    Returns:
        Flat float32 array ``[x1, y1, z1, x2, y2, z2, ...]`` in AU. Entries
        that cannot be evaluated stay at the origin.
    """
    jd = to_julian_date(date)
    n = len(elements_list)
    packed = np.zeros(n * 3, dtype=np.float32)
    if n == 0:
        return packed

    failed = 0
    indices: list[int] = []
    rows: list[tuple[float, ...]] = []
    for idx, item in enumerate(elements_list):
        try:
            rows.append(element_columns(coerce_elements(item)))
        except ValidationError as exc:
            logger.debug("Batch entry %d left at origin: %s", idx, exc)
            failed += 1
            continue
        indices.append(idx)

    if rows:
        table = np.asarray(rows, dtype=np.float64)
        helio = kepler_to_cartesian_array(*table.T, jd)
        with np.errstate(over="ignore", invalid="ignore"):
            relative = (helio - earth_position(jd)).astype(np.float32)
        # Checked after the cast: float64 values beyond float32 range become inf
        finite = np.all(np.isfinite(relative), axis=1)
        relative[~finite] = 0.0
        failed += int(np.count_nonzero(~finite))

        view = packed.reshape(n, 3)
        view[np.asarray(indices)] = relative

    if failed:
        logger.warning("calculate_batch_positions: %d of %d entries defaulted to origin", failed, n)
    logger.debug("Computed batch positions for %d bodies at JD %.5f", len(rows), jd)
    return packed

"""
Roughness lengths over water.

Momentum roughness follows the Charnock relation with a smooth-surface
viscous term; the heat/humidity roughness is tied to it through the
roughness Reynolds number (Zeng et al. 1998). The neutral first guess of
u* and z0 is found with a per-sample fixed-point iteration.
"""

import logging
from dataclasses import dataclass
from typing import Tuple, Union

import numpy as np

from .constants import CHARNOCK, K_VON_KARMAN
from .utils import real_power

logger = logging.getLogger(__name__)


def initial_friction_velocity(wind_speed: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """
    Empirical first guess of u* from wind speed.

    .. math:: u_* = U \\sqrt{0.00104 + \\frac{0.0015}{1 + e^{(12.5 - U)/1.56}}}

    Args:
        wind_speed: Wind speed (m/s)

    Returns:
        Friction velocity (m/s)
    """
    return wind_speed * np.sqrt(0.00104 + 0.0015 / (1 + np.exp((-wind_speed + 12.5) / 1.56)))


def charnock_roughness(
    ustar: Union[float, np.ndarray],
    gravity: Union[float, np.ndarray],
    kin_viscosity: Union[float, np.ndarray],
    charnock: float = CHARNOCK,
) -> Union[float, np.ndarray]:
    """
    Momentum roughness length from the Charnock relation.

    .. math:: z_0 = \\alpha \\frac{u_*^2}{g} + 0.11 \\frac{\\nu}{u_*}

    Parameters
    ----------
    ustar : float or ndarray
        Friction velocity (m s⁻¹).
    gravity : float or ndarray
        Gravitational acceleration (m s⁻²).
    kin_viscosity : float or ndarray
        Kinematic viscosity of air (m² s⁻¹).
    charnock : float, default 0.013
        Charnock constant α.

    Returns
    -------
    float or ndarray
        Roughness length z0 (m).
    """
    return (charnock * ustar**2 / gravity) + (0.11 * kin_viscosity / ustar)


def roughness_reynolds(
    ustar: Union[float, np.ndarray],
    z0: Union[float, np.ndarray],
    kin_viscosity: Union[float, np.ndarray],
) -> Union[float, np.ndarray]:
    """Roughness Reynolds number u* z0 / ν."""
    return ustar * z0 / kin_viscosity


def scalar_roughness(
    z0: Union[float, np.ndarray],
    reynolds: Union[float, np.ndarray],
    clamp: bool = False,
) -> Union[float, np.ndarray]:
    """
    Heat/humidity roughness length from the momentum roughness.

    .. math:: z_{0t} = z_{0q} = z_0 \\exp(-(2.67\\,Re^{1/4} - 2.57))

    Args:
        z0: Momentum roughness length (m)
        reynolds: Roughness Reynolds number
        clamp: If True the exponent 2.67 Re^0.25 - 2.57 is floored at zero,
            so that z0t never exceeds z0

    Returns:
        Scalar roughness length (m)
    """
    xq = 2.67 * real_power(reynolds, 0.25) - 2.57
    if clamp:
        xq = np.maximum(xq, 0)
    return z0 / np.exp(xq)


@dataclass
class RoughnessSolution:
    """
    Outcome of the neutral roughness iteration for one sample.

    Attributes
    ----------
    ustar : float
        Friction velocity at the last iterate (m s⁻¹).
    z0 : float
        Roughness length at the last iterate (m).
    iterations : int
        Number of passes performed.
    converged : bool
        ``True`` if the relative change in z0 fell below the tolerance;
        ``False`` means the values are the last iterate before the cap.
    """

    ustar: float
    z0: float
    iterations: int
    converged: bool


def solve_roughness_length(
    wind_speed: float,
    height: float,
    ustar: float,
    z0: float,
    gravity: float,
    kin_viscosity: float,
    tolerance: float = 1e-5,
    max_iterations: int = 100,
    von_karman: float = K_VON_KARMAN,
    charnock: float = CHARNOCK,
) -> RoughnessSolution:
    """
    Fixed-point iteration of the neutral log-wind law and Charnock relation.

    Each pass computes ``u* = κ U / ln(z / z0)`` and then z0 from
    :func:`charnock_roughness`, until
    ``|z0_new - z0_old| / |z0_old| <= tolerance``. The loop starts with
    ``z0_old = 1.1 z0`` so at least one pass is made.

    Parameters
    ----------
    wind_speed : float
        Wind speed (m s⁻¹).
    height : float
        Wind measurement height (m).
    ustar, z0 : float
        Starting friction velocity (m s⁻¹) and roughness length (m).
    gravity : float
        Gravitational acceleration (m s⁻²).
    kin_viscosity : float
        Kinematic viscosity (m² s⁻¹).
    tolerance : float, default 1e-5
        Relative change in z0 treated as converged.
    max_iterations : int, default 100
        Maximum number of passes.

    Returns
    -------
    RoughnessSolution
        Converged values, or the last iterate with ``converged=False``.
    """
    z0_prev = z0 * 1.1
    iterations = 0

    # NaN keeps the loop running until the cap flags it
    while not abs(z0 - z0_prev) / abs(z0_prev) <= tolerance:
        if iterations >= max_iterations:
            return RoughnessSolution(ustar, z0, iterations, False)
        ustar = von_karman * wind_speed / np.log(height / z0)
        z0_prev = z0
        z0 = charnock_roughness(ustar, gravity, kin_viscosity, charnock)
        iterations += 1

    return RoughnessSolution(ustar, z0, iterations, True)


def solve_roughness_lengths(
    wind_speed: np.ndarray,
    height: np.ndarray,
    gravity: Union[float, np.ndarray],
    kin_viscosity: np.ndarray,
    tolerance: float = 1e-5,
    max_iterations: int = 100,
    von_karman: float = K_VON_KARMAN,
    charnock: float = CHARNOCK,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """
    Neutral u* and z0 for every sample.

    Seeds u* from :func:`initial_friction_velocity` and z0 from
    :func:`charnock_roughness`, then runs :func:`solve_roughness_length`
    independently per sample.

    Returns
    -------
    ustar, z0 : ndarray
        Friction velocity (m s⁻¹) and roughness length (m).
    iterations : ndarray of int
        Passes used per sample.
    converged : ndarray of bool
        Convergence flag per sample.
    """
    n = wind_speed.shape[0]
    gravity = np.broadcast_to(gravity, (n,))
    height = np.broadcast_to(height, (n,))

    ustar = initial_friction_velocity(wind_speed)
    z0 = charnock_roughness(ustar, gravity, kin_viscosity, charnock)

    iterations = np.zeros(n, dtype=int)
    converged = np.ones(n, dtype=bool)

    for i in range(n):
        solution = solve_roughness_length(
            float(wind_speed[i]),
            float(height[i]),
            float(ustar[i]),
            float(z0[i]),
            float(gravity[i]),
            float(kin_viscosity[i]),
            tolerance=tolerance,
            max_iterations=max_iterations,
            von_karman=von_karman,
            charnock=charnock,
        )
        ustar[i] = solution.ustar
        z0[i] = solution.z0
        iterations[i] = solution.iterations
        converged[i] = solution.converged

    if not converged.all():
        logger.warning(
            "Roughness iteration did not converge for %d of %d samples "
            "within %d passes",
            int((~converged).sum()),
            n,
            max_iterations,
        )

    return ustar, z0, iterations, converged

"""
Physical constants and configuration parameters for bulk flux calculations.

This module provides:
1. Physical constants
2. Stability-regime thresholds
3. Site-dependent constants (gravity)
4. Solver configuration defaults
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Tuple, Union

import numpy as np

# Physical constants
K_VON_KARMAN = 0.41  # von Karman constant (dimensionless)
R_DRY_AIR = 287.1  # Gas constant for dry air (J/kg/K)
CP_AIR = 1006.0  # Specific heat capacity of air (J/kg/K)
CP_DRY_AIR = 1004.67  # Used in the potential temperature exponent (J/kg/K)
CHARNOCK = 0.013  # Charnock constant (dimensionless)
L_VAPORIZATION = 2.501e6  # Latent heat of vaporization at 0°C (J/kg)

# Temperature conversions
T_ZERO_C = 273.16  # Offset used for °C -> K throughout the algorithm

# Pressure reference values
P_SEA_LEVEL = 101325.0  # Standard sea-level pressure (Pa)
P_REFERENCE_MB = 1000.0  # Reference pressure for potential temperature (mb)

# Heights
REFERENCE_HEIGHT = 10.0  # Output reference height (m)

# Stability thresholds (Zeng et al. 1998)
ZETA_M = -1.574  # Momentum very-unstable threshold
ZETA_T = -0.465  # Heat/humidity very-unstable threshold
ZETA_LIMIT = 15.0  # |zeta| clamp

# Exponent used by the free-convection terms
CONVECTIVE_EXPONENT = 0.333

# Wind speed floors (m/s)
MIN_WIND_SPEED = 0.2
MIN_GUST_WIND_SPEED = 0.1


class StabilityRegime(IntEnum):
    """
    Classification of the surface layer by the stability parameter ζ = z/L.

    ==============  =============================================
    Member          Range
    --------------  ---------------------------------------------
    VERY_UNSTABLE   ζ < ζ_threshold (ζ_m or ζ_t)
    UNSTABLE        ζ_threshold ≤ ζ < 0
    STABLE          0 ≤ ζ ≤ 1
    VERY_STABLE     ζ > 1
    ==============  =============================================
    """

    VERY_UNSTABLE = 1
    UNSTABLE = 2
    STABLE = 3
    VERY_STABLE = 4


class ProfileKind(IntEnum):
    """Which similarity function a profile uses"""

    MOMENTUM = 1
    SCALAR = 2


def gravity(
    latitude: Union[float, np.ndarray],
    altitude: Union[float, np.ndarray],
) -> Union[float, np.ndarray]:
    """
    Latitude- and altitude-corrected gravitational acceleration.

    .. math::

        g = 9.780310\\,\\bigl(1 + 0.00530239 \\sin^2|\\phi|
            - 0.00000587 \\sin^2|2\\phi| - 31.55\\times10^{-8} z\\bigr)

    Parameters
    ----------
    latitude : float or ndarray
        Latitude φ in **radians**.
    altitude : float or ndarray
        Site altitude *z* in metres.

    Returns
    -------
    float or ndarray
        Gravitational acceleration (m s⁻²).

    Notes
    -----
    The altitude term carries no explicit unit conversion. It is kept
    exactly as published rather than re-derived.
    """
    return 9.780310 * (
        1
        + 0.00530239 * np.sin(np.abs(latitude)) ** 2
        - 0.00000587 * np.sin(np.abs(2 * latitude)) ** 2
        - 31.55e-8 * altitude
    )


@dataclass(frozen=True)
class FluxConstants:
    """
    Immutable set of constants used by a single solver run.

    Parameters
    ----------
    gravity : float or ndarray
        Gravitational acceleration (m s⁻²), scalar or per sample.
    von_karman : float
        von Kármán constant.
    gas_constant : float
        Gas constant of dry air (J kg⁻¹ K⁻¹).
    specific_heat : float
        Specific heat capacity of air (J kg⁻¹ K⁻¹).
    charnock : float
        Charnock constant.

    Examples
    --------
    >>> const = FluxConstants.for_site(latitude=45.0, altitude=100.0)
    >>> round(float(const.gravity), 3)
    9.806
    """

    gravity: Union[float, np.ndarray]
    von_karman: float = K_VON_KARMAN
    gas_constant: float = R_DRY_AIR
    specific_heat: float = CP_AIR
    charnock: float = CHARNOCK

    @classmethod
    def for_site(
        cls,
        latitude: Union[float, np.ndarray],
        altitude: Union[float, np.ndarray],
        lat_units: str = "degrees",
    ) -> "FluxConstants":
        """
        Build the constants for a site.

        Parameters
        ----------
        latitude : float or ndarray
            Site latitude.
        altitude : float or ndarray
            Site altitude (m).
        lat_units : {'degrees', 'radians'}, default ``'degrees'``
            Units of *latitude*. Degrees are converted to radians before
            evaluating :func:`gravity`.

        Raises
        ------
        ValueError
            If *lat_units* is not recognised.
        """
        if lat_units == "degrees":
            latitude = np.deg2rad(latitude)
        elif lat_units != "radians":
            raise ValueError(f"Unsupported latitude units: {lat_units}")

        return cls(gravity=gravity(latitude, altitude))


@dataclass(frozen=True)
class SolverConfig:
    """
    Iteration settings for :class:`bulk_flux.solver.BulkFluxSolver`.

    Parameters
    ----------
    outer_iterations : int, default 20
        Number of stability-correction passes.
    roughness_tolerance : float, default 1e-5
        Relative change in z0 below which the neutral roughness loop stops.
    max_roughness_iterations : int, default 100
        Cap on the per-sample roughness loop.
    zeta_limit : float, default 15
        ζ is clamped to [-zeta_limit, zeta_limit] before classification.
    zeta_m, zeta_t : float
        Very-unstable thresholds for momentum and heat/humidity.
    flux_tolerance : tuple of float, optional
        ``(tau, H, LE)`` tolerances (N m⁻², W m⁻², W m⁻²). When given the
        outer loop stops early once every sample changes by less than these
        amounts between two passes. ``None`` always runs
        *outer_iterations* passes.
    """

    outer_iterations: int = 20
    roughness_tolerance: float = 1e-5
    max_roughness_iterations: int = 100
    zeta_limit: float = ZETA_LIMIT
    zeta_m: float = ZETA_M
    zeta_t: float = ZETA_T
    flux_tolerance: Optional[Tuple[float, float, float]] = None

    def __post_init__(self):
        if self.outer_iterations < 1:
            raise ValueError("outer_iterations must be at least 1")
        if self.roughness_tolerance <= 0:
            raise ValueError("roughness_tolerance must be positive")
        if self.max_roughness_iterations < 1:
            raise ValueError("max_roughness_iterations must be at least 1")
        if self.zeta_limit <= 0:
            raise ValueError("zeta_limit must be positive")
        if not self.zeta_m < 0 or not self.zeta_t < 0:
            raise ValueError("Very-unstable thresholds must be negative")
        if self.flux_tolerance is not None:
            if len(self.flux_tolerance) != 3:
                raise ValueError("flux_tolerance must hold (tau, H, LE) tolerances")
            if any(not tol >= 0 for tol in self.flux_tolerance):
                raise ValueError("flux_tolerance entries must be non-negative")

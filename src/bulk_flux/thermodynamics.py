"""
Thermodynamic properties of near-surface air over a water body.

This module derives the non-iterative quantities the bulk flux solver
needs from air/surface temperature, relative humidity and altitude:
station pressure, saturation vapour pressure, specific humidity, moist-air
gas constant, latent heat of vaporization, air density, kinematic viscosity,
virtual and potential temperature, and water density.

References:
    Zeng, X., Zhao, M., Dickinson, R.E. (1998) Intercomparison of bulk
    aerodynamic algorithms for the computation of sea surface fluxes using
    TOGA COARE and TAO data. Journal of Climate 11: 2628-2644.
"""

from dataclasses import dataclass
from typing import Union

import numpy as np

from .constants import (
    CP_DRY_AIR,
    L_VAPORIZATION,
    P_REFERENCE_MB,
    P_SEA_LEVEL,
    R_DRY_AIR,
    T_ZERO_C,
)
from .utils import real_power


def station_pressure(altitude: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """
    Air pressure at a given altitude from the barometric formula.

    .. math:: p = 101325\\,(1 - 2.25577\\times10^{-5} z)^{5.25588} / 100

    Parameters
    ----------
    altitude : float or ndarray
        Altitude above sea level (m).

    Returns
    -------
    float or ndarray
        Station pressure in **millibars** (hPa).

    Examples
    --------
    >>> round(station_pressure(0.0), 2)
    1013.25
    """
    return P_SEA_LEVEL * real_power(1 - 2.25577e-5 * np.asarray(altitude), 5.25588) / 100


def tetens(
    t: Union[float, np.ndarray],
    a: float = 6.11,
    b: float = 17.27,
    c: float = 237.3,
) -> Union[float, np.ndarray]:
    """
    Saturation vapour pressure from the Tetens approximation.

    .. math:: e_s = a \\exp\\left(\\frac{b\\,T}{T + c}\\right)

    Parameters
    ----------
    t : float or ndarray
        Temperature in **degrees Celsius**.
    a : float, optional
        Empirical constant in **mb**. Defaults to 6.11 mb.
    b : float, optional
        Empirical constant (dimensionless). Defaults to 17.27.
    c : float, optional
        Empirical constant in **°C**. Defaults to 237.3 °C.

    Returns
    -------
    float or ndarray
        Saturation vapour pressure (mb).

    Examples
    --------
    >>> round(tetens(0.0), 2)
    6.11
    """
    return a * np.exp((b * t) / (t + c))


def specific_humidity(
    vapor_pressure: Union[float, np.ndarray],
    pressure: Union[float, np.ndarray],
) -> Union[float, np.ndarray]:
    """Specific humidity (kg/kg) from vapour pressure and pressure, both in mb."""
    return 0.622 * vapor_pressure / pressure


def moist_air_gas_constant(q: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """Gas constant of moist air (J/kg/K) for specific humidity ``q`` (kg/kg)."""
    return 287 * (1 + 0.608 * q)


def latent_heat_of_vaporization(ts: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """
    Latent heat of vaporization as a linear function of surface temperature.

    Parameters
    ----------
    ts : float or ndarray
        Surface (water) temperature in **°C**.

    Returns
    -------
    float or ndarray
        Latent heat (J kg⁻¹).

    Examples
    --------
    >>> latent_heat_of_vaporization(20.0)
    2453600.0
    """
    return L_VAPORIZATION - 2370 * ts


def air_density(
    pressure: Union[float, np.ndarray],
    gas_constant: Union[float, np.ndarray],
    ta: Union[float, np.ndarray],
) -> Union[float, np.ndarray]:
    """
    Air density from the ideal gas law.

    Args:
        pressure: Air pressure (mb)
        gas_constant: Gas constant of moist air (J/kg/K)
        ta: Air temperature (°C)

    Returns:
        Air density (kg/m^3)
    """
    return 100 * pressure / (gas_constant * (ta + T_ZERO_C))


def kinematic_viscosity(
    ta: Union[float, np.ndarray],
    rho_a: Union[float, np.ndarray],
) -> Union[float, np.ndarray]:
    """Kinematic viscosity of air (m^2/s) from air temperature (°C) and density (kg/m^3)."""
    return (1 / rho_a) * (4.94e-8 * ta + 1.7184e-5)


def virtual_temperature(
    ta: Union[float, np.ndarray],
    q: Union[float, np.ndarray],
) -> Union[float, np.ndarray]:
    """Virtual air temperature (K) from air temperature (°C) and specific humidity."""
    return (ta + T_ZERO_C) * (1 + 0.61 * q)


def potential_temperature(
    ta: Union[float, np.ndarray],
    pressure: Union[float, np.ndarray],
) -> Union[float, np.ndarray]:
    """
    Potential temperature referenced to 1000 mb.

    Args:
        ta: Air temperature (°C)
        pressure: Air pressure (mb)

    Returns:
        Potential temperature (K)
    """
    return (ta + T_ZERO_C) * (P_REFERENCE_MB / pressure) ** (R_DRY_AIR / CP_DRY_AIR)


def water_density(ts: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """
    Density of fresh water as an empirical function of temperature.

    .. math:: \\rho_w = 1000\\,(1 - 1.9549\\times10^{-5} |T - 3.84|^{1.68})

    Parameters
    ----------
    ts : float or ndarray
        Water temperature (°C).

    Returns
    -------
    float or ndarray
        Water density (kg m⁻³); the maximum of 1000 is reached at 3.84 °C.
    """
    return 1000 * (1 - 1.9549e-5 * np.abs(ts - 3.84) ** 1.68)


def relative_humidity(
    q: Union[float, np.ndarray],
    t: Union[float, np.ndarray],
    pressure: Union[float, np.ndarray],
) -> Union[float, np.ndarray]:
    """
    Relative humidity from specific humidity.

    Saturation vapour pressure follows Buck (1981) with the pressure
    enhancement factor; the result is **not** clamped.

    Parameters
    ----------
    q : float or ndarray
        Specific humidity (kg kg⁻¹).
    t : float or ndarray
        Air temperature (°C).
    pressure : float or ndarray
        Air pressure (mb).

    Returns
    -------
    float or ndarray
        Relative humidity (%).
    """
    es = tetens(t, a=6.1121, b=17.502, c=240.97) * (1.0007 + 3.46e-6 * pressure)
    em = q * pressure / (0.378 * q + 0.622)
    return 100 * em / es


@dataclass
class ThermodynamicState:
    """
    Derived thermodynamic quantities for a batch of samples.

    All attributes are arrays of length N.

    Attributes
    ----------
    pressure : ndarray
        Station pressure (mb).
    e_s : ndarray
        Saturation vapour pressure at air temperature (mb).
    e_a : ndarray
        Actual vapour pressure (mb).
    q_z : ndarray
        Specific humidity of air at measurement height (kg kg⁻¹).
    e_sat : ndarray
        Saturation vapour pressure at surface temperature (mb).
    q_s : ndarray
        Saturation specific humidity at the surface (kg kg⁻¹).
    R_a : ndarray
        Gas constant of moist air (J kg⁻¹ K⁻¹).
    xlv : ndarray
        Latent heat of vaporization (J kg⁻¹).
    rho_a : ndarray
        Air density (kg m⁻³).
    KinV : ndarray
        Kinematic viscosity (m² s⁻¹).
    t_virt : ndarray
        Virtual air temperature (K).
    theta : ndarray
        Potential temperature (K).
    """

    pressure: np.ndarray
    e_s: np.ndarray
    e_a: np.ndarray
    q_z: np.ndarray
    e_sat: np.ndarray
    q_s: np.ndarray
    R_a: np.ndarray
    xlv: np.ndarray
    rho_a: np.ndarray
    KinV: np.ndarray
    t_virt: np.ndarray
    theta: np.ndarray

    @classmethod
    def from_observations(
        cls,
        ts: np.ndarray,
        ta: np.ndarray,
        rh: np.ndarray,
        altitude: np.ndarray,
    ) -> "ThermodynamicState":
        """
        Derive the thermodynamic state.

        Args:
            ts: Surface temperature (°C)
            ta: Air temperature (°C)
            rh: Relative humidity (%)
            altitude: Site altitude (m)

        Returns:
            ThermodynamicState for the batch
        """
        pressure = station_pressure(altitude)

        e_s = tetens(ta)
        e_a = rh * e_s / 100
        q_z = specific_humidity(e_a, pressure)
        e_sat = tetens(ts)
        q_s = specific_humidity(e_sat, pressure)

        R_a = moist_air_gas_constant(q_z)
        xlv = latent_heat_of_vaporization(ts)
        rho_a = air_density(pressure, R_a, ta)

        return cls(
            pressure=pressure,
            e_s=e_s,
            e_a=e_a,
            q_z=q_z,
            e_sat=e_sat,
            q_s=q_s,
            R_a=R_a,
            xlv=xlv,
            rho_a=rho_a,
            KinV=kinematic_viscosity(ta, rho_a),
            t_virt=virtual_temperature(ta, q_z),
            theta=potential_temperature(ta, pressure),
        )
